"""
Error and diagnostic types for the strategy logic model.

Hard errors are plain exceptions with actionable messages. Soft findings
(clamped thresholds, dangling references, unused indicators) are returned
as Diagnostic records and never fail compilation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class StrategyLogicError(Exception):
    """Base class for all strategy logic errors."""
    pass


class DanglingReferenceError(StrategyLogicError):
    """
    A value reference points at an indicator or output that is not selected.

    Only raised by resolve_or_raise(); resolve_value_ref() returns the
    DanglingReference value instead.
    """

    def __init__(self, dangling):
        self.dangling = dangling
        super().__init__(dangling.message)


class EditLimitError(StrategyLogicError):
    """An edit would exceed a configured editor limit."""

    def __init__(self, message: str, limit: int):
        self.limit = limit
        super().__init__(message)


class NodeNotFoundError(StrategyLogicError):
    """A reducer was given a container/group/condition id that does not exist."""

    def __init__(self, kind: str, node_id: str, parent: str = ""):
        self.kind = kind
        self.node_id = node_id
        self.parent = parent
        where = f" in {parent}" if parent else ""
        super().__init__(f"Unknown {kind} id '{node_id}'{where}")


class DuplicateIndicatorError(StrategyLogicError):
    """An indicator with the same signature is already selected."""

    def __init__(self, signature: str, existing_id: str):
        self.signature = signature
        self.existing_id = existing_id
        super().__init__(
            f"Indicator '{signature}' is already selected as '{existing_id}'"
        )


class ConfigFormatError(StrategyLogicError, ValueError):
    """A persisted or hand-authored document does not have the expected shape."""
    pass


class SubmissionError(StrategyLogicError):
    """
    Submitting the compiled strategy to the backend failed.

    The backend message is carried verbatim in `message`.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


# =============================================================================
# Diagnostics (soft findings)
# =============================================================================

class DiagnosticCode(str, Enum):
    """Machine-readable kinds of compile findings."""
    THRESHOLD_OUT_OF_RANGE = "THRESHOLD_OUT_OF_RANGE"
    EMPTY_REQUIRED_FIELD = "EMPTY_REQUIRED_FIELD"
    DANGLING_REFERENCE = "DANGLING_REFERENCE"
    UNUSED_INDICATOR = "UNUSED_INDICATOR"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """
    One soft finding produced while compiling.

    Attributes:
        code: Kind of finding
        path: Location in the tree ("entry.long/open-long/group-1/c1")
        message: Human-readable description
        severity: INFO for silent corrections, WARNING for things the user should see
        details: Extra machine-readable context (authored/clamped values, ref keys)
    """
    code: DiagnosticCode
    path: str
    message: str
    severity: Severity = Severity.WARNING
    details: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "path": self.path,
            "message": self.message,
            "severity": self.severity.value,
            "details": dict(self.details),
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.path}: {self.message}"
