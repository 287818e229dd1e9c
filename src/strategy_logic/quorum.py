"""
The quorum rule, shared by every nesting level.

A level (group over conditions, container over groups, branch over
containers, action set over actions) is handled identically:

1. Filter children to enabled ones. Disabled children are absent.
2. Partition the live children into required and optional.
3. The level passes iff every required child passes and at least
   `min_pass` optional children pass. With no optional children `min_pass`
   is ignored; with no required children that clause is vacuous.
4. At compile time `min_pass` is clamped to [0, optional count].

A level with no live children at all is "empty". It compiles to
`min_pass = 1` over an empty child list and is evaluated as passing only
when `min_pass <= 0`, so an empty enabled level never passes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Tuple, TypeVar

T = TypeVar("T")

# Threshold emitted for an enabled level with nothing live under it
EMPTY_LEVEL_MIN_PASS = 1


def _default_enabled(node) -> bool:
    return bool(getattr(node, "enabled", True))


def _default_required(node) -> bool:
    return bool(getattr(node, "required", False))


def live_children(
    children: Iterable[T],
    is_enabled: Callable[[T], bool] = _default_enabled,
) -> Tuple[T, ...]:
    """Children with enabled == True, in authored order."""
    return tuple(c for c in children if is_enabled(c))


def partition(
    children: Iterable[T],
    is_required: Callable[[T], bool] = _default_required,
) -> Tuple[Tuple[T, ...], Tuple[T, ...]]:
    """Split children into (required, optional), each keeping authored order."""
    required = []
    optional = []
    for child in children:
        (required if is_required(child) else optional).append(child)
    return tuple(required), tuple(optional)


def clamp_min_pass(min_pass: int, optional_count: int) -> int:
    """Clamp a threshold into [0, optional_count]."""
    return max(0, min(int(min_pass), optional_count))


@dataclass(frozen=True)
class QuorumPlan(Generic[T]):
    """
    Compile-time view of one level.

    Attributes:
        live: Enabled children in authored order
        required: Live children flagged required
        optional: Live children not flagged required
        authored_min_pass: Threshold as authored in the editor
        min_pass: Threshold to emit
    """
    live: Tuple[T, ...]
    required: Tuple[T, ...]
    optional: Tuple[T, ...]
    authored_min_pass: int
    min_pass: int

    @property
    def is_empty(self) -> bool:
        return not self.live

    @property
    def was_clamped(self) -> bool:
        """True when a non-empty level had its threshold corrected."""
        return not self.is_empty and self.min_pass != self.authored_min_pass


def plan_quorum(
    children: Iterable[T],
    min_pass: int,
    is_enabled: Callable[[T], bool] = _default_enabled,
    is_required: Callable[[T], bool] = _default_required,
) -> QuorumPlan[T]:
    """
    Filter, partition and clamp one level.

    Args:
        children: All authored children, enabled or not
        min_pass: Authored threshold
        is_enabled: Accessor for the enabled flag
        is_required: Accessor for the required flag

    Returns:
        QuorumPlan describing what to emit
    """
    live = live_children(children, is_enabled)
    required, optional = partition(live, is_required)
    if not live:
        effective = EMPTY_LEVEL_MIN_PASS
    else:
        effective = clamp_min_pass(min_pass, len(optional))
    return QuorumPlan(
        live=live,
        required=required,
        optional=optional,
        authored_min_pass=int(min_pass),
        min_pass=effective,
    )


@dataclass(frozen=True)
class QuorumResult:
    """Outcome of evaluating one level."""
    passed: bool
    min_pass: int
    required_total: int = 0
    required_passed: int = 0
    optional_total: int = 0
    optional_passed: int = 0

    @property
    def is_empty(self) -> bool:
        return self.required_total == 0 and self.optional_total == 0

    @property
    def pass_count(self) -> int:
        return self.required_passed + self.optional_passed

    def __str__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        return (
            f"{status} required {self.required_passed}/{self.required_total}, "
            f"optional {self.optional_passed}/{self.optional_total} (min {self.min_pass})"
        )


def evaluate_quorum(
    children: Iterable[T],
    min_pass: int,
    passes: Callable[[T], bool],
    is_enabled: Callable[[T], bool] = _default_enabled,
    is_required: Callable[[T], bool] = _default_required,
) -> QuorumResult:
    """
    Evaluate one level.

    Every live child's predicate is evaluated (no short-circuit) so the
    result carries complete counts.

    Args:
        children: Children of the level, enabled or not
        min_pass: Threshold as emitted in the config
        passes: Predicate deciding whether one child passes
        is_enabled: Accessor for the enabled flag
        is_required: Accessor for the required flag

    Returns:
        QuorumResult with pass/fail and counts
    """
    live = live_children(children, is_enabled)
    required, optional = partition(live, is_required)

    if not live:
        return QuorumResult(passed=min_pass <= 0, min_pass=min_pass)

    required_passed = sum(1 for c in required if passes(c))
    optional_passed = sum(1 for c in optional if passes(c))

    all_required = required_passed == len(required)
    enough_optional = not optional or optional_passed >= min_pass

    return QuorumResult(
        passed=all_required and enough_optional,
        min_pass=min_pass,
        required_total=len(required),
        required_passed=required_passed,
        optional_total=len(optional),
        optional_passed=optional_passed,
    )
