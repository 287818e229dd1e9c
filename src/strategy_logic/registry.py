"""
Method Registry - Single source of truth for condition and action methods.

Used by:
- Reducers (reject unknown comparators when a condition is saved)
- Preview generator (labels)
- Reference evaluator (dispatch, arity, lookback needs)

Adding a method requires an entry here and, for comparators, a function in
operators.py.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, FrozenSet, Optional, Tuple


class MethodKind(Enum):
    """What a method does with its args."""
    COMPARISON = auto()  # left <op> right on the current bar
    CROSS = auto()       # needs previous bar values of both sides
    RANGE = auto()       # value against [low, high] bounds
    ACTION = auto()      # side-effecting action-set step


@dataclass(frozen=True)
class MethodSpec:
    """
    Specification for a single method.

    Attributes:
        name: Canonical wire name (e.g., "GreaterThan")
        kind: Evaluation kind
        symbol: Short label used in summaries (">", "crosses above")
        description: Long label used in the condition preview
        arity: Number of args the method takes
        aliases: Other wire names accepted for the same method
    """
    name: str
    kind: MethodKind
    symbol: str
    description: str
    arity: int = 2
    aliases: Tuple[str, ...] = ()

    @property
    def needs_prev_value(self) -> bool:
        return self.kind == MethodKind.CROSS

    @property
    def is_condition(self) -> bool:
        return self.kind != MethodKind.ACTION

    @property
    def label(self) -> str:
        """Preview label: "greater than (>)"."""
        if self.symbol == self.description:
            return self.symbol
        return f"{self.description} ({self.symbol})"


# =============================================================================
# METHOD REGISTRY
# =============================================================================

_SPECS: Tuple[MethodSpec, ...] = (
    MethodSpec("GreaterThan", MethodKind.COMPARISON, ">", "greater than"),
    MethodSpec("GreaterThanOrEqual", MethodKind.COMPARISON, ">=", "greater than or equal"),
    MethodSpec("LessThan", MethodKind.COMPARISON, "<", "less than"),
    MethodSpec("LessThanOrEqual", MethodKind.COMPARISON, "<=", "less than or equal"),
    MethodSpec("Equal", MethodKind.COMPARISON, "=", "equal"),
    MethodSpec("NotEqual", MethodKind.COMPARISON, "!=", "not equal"),
    MethodSpec("CrossUp", MethodKind.CROSS, "crosses above", "crosses above", aliases=("CrossOver",)),
    MethodSpec("CrossDown", MethodKind.CROSS, "crosses below", "crosses below", aliases=("CrossUnder",)),
    MethodSpec("CrossAny", MethodKind.CROSS, "crosses", "crosses either way"),
    MethodSpec("Between", MethodKind.RANGE, "between", "between", arity=3),
    MethodSpec("Outside", MethodKind.RANGE, "outside", "outside", arity=3),
    MethodSpec("MakeTrade", MethodKind.ACTION, "trade", "make trade", arity=1),
)

# Keyed by lowercase wire name, aliases included
METHOD_REGISTRY: Dict[str, MethodSpec] = {}
for _spec in _SPECS:
    METHOD_REGISTRY[_spec.name.lower()] = _spec
    for _alias in _spec.aliases:
        METHOD_REGISTRY[_alias.lower()] = _spec

# Canonical names only (excludes aliases)
CONDITION_METHODS: FrozenSet[str] = frozenset(s.name for s in _SPECS if s.is_condition)
ACTION_METHODS: FrozenSet[str] = frozenset(s.name for s in _SPECS if not s.is_condition)

# Action args per branch slot
TRADE_ACTIONS: FrozenSet[str] = frozenset({"Long", "Short", "CloseLong", "CloseShort"})


def get_method_spec(method: str) -> Optional[MethodSpec]:
    """
    Look up the MethodSpec for a wire method name.

    Args:
        method: Method name or alias (case-insensitive)

    Returns:
        MethodSpec if known, None if unknown
    """
    return METHOD_REGISTRY.get((method or "").strip().lower())


def get_canonical_method(method: str) -> Optional[str]:
    """Resolve aliases ("CrossOver" -> "CrossUp"); None if unknown."""
    spec = get_method_spec(method)
    return spec.name if spec else None


def validate_condition_method(method: str) -> Optional[str]:
    """
    Validate a comparator name.

    Returns:
        Error message if invalid, None if valid
    """
    spec = get_method_spec(method)
    if spec is None:
        return (
            f"Unknown method '{method}'. "
            f"Allowed: {', '.join(sorted(CONDITION_METHODS))}"
        )
    if not spec.is_condition:
        return f"'{method}' is an action, not a comparator"
    return None


def method_label(method: str, short: bool = False) -> str:
    """Display label for a method; unknown names are shown as-is."""
    spec = get_method_spec(method)
    if spec is None:
        return method
    return spec.symbol if short else spec.label
