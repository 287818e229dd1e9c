"""
Comparator semantics for the reference evaluator.

Each comparator takes the operand values at the current bar and, for cross
methods, at the previous bar. Values are already resolved floats; missing
values are handled by the caller before dispatch.
"""

from typing import Callable, Dict, Optional, Sequence

from .registry import MethodKind, MethodSpec


EQUAL_TOLERANCE = 1e-10


def eval_gt(left: float, right: float) -> bool:
    return left > right


def eval_ge(left: float, right: float) -> bool:
    return left >= right


def eval_lt(left: float, right: float) -> bool:
    return left < right


def eval_le(left: float, right: float) -> bool:
    return left <= right


def eval_eq(left: float, right: float) -> bool:
    return abs(left - right) <= EQUAL_TOLERANCE


def eval_neq(left: float, right: float) -> bool:
    return abs(left - right) > EQUAL_TOLERANCE


def eval_cross_up(prev_left: float, prev_right: float, left: float, right: float) -> bool:
    # prev_lhs <= prev_rhs AND curr_lhs > curr_rhs
    return prev_left <= prev_right and left > right


def eval_cross_down(prev_left: float, prev_right: float, left: float, right: float) -> bool:
    # prev_lhs >= prev_rhs AND curr_lhs < curr_rhs
    return prev_left >= prev_right and left < right


def eval_cross_any(prev_left: float, prev_right: float, left: float, right: float) -> bool:
    return (
        eval_cross_up(prev_left, prev_right, left, right)
        or eval_cross_down(prev_left, prev_right, left, right)
    )


def eval_between(value: float, bound_a: float, bound_b: float) -> bool:
    """Inclusive range check; bounds may be given in either order."""
    low, high = min(bound_a, bound_b), max(bound_a, bound_b)
    return low <= value <= high


def eval_outside(value: float, bound_a: float, bound_b: float) -> bool:
    low, high = min(bound_a, bound_b), max(bound_a, bound_b)
    return value < low or value > high


COMPARISON_OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    "GreaterThan": eval_gt,
    "GreaterThanOrEqual": eval_ge,
    "LessThan": eval_lt,
    "LessThanOrEqual": eval_le,
    "Equal": eval_eq,
    "NotEqual": eval_neq,
}

CROSS_OPERATORS: Dict[str, Callable[[float, float, float, float], bool]] = {
    "CrossUp": eval_cross_up,
    "CrossDown": eval_cross_down,
    "CrossAny": eval_cross_any,
}

RANGE_OPERATORS: Dict[str, Callable[[float, float, float], bool]] = {
    "Between": eval_between,
    "Outside": eval_outside,
}


def apply_method(
    spec: MethodSpec,
    current: Sequence[float],
    previous: Optional[Sequence[float]] = None,
) -> bool:
    """
    Dispatch a comparator.

    Args:
        spec: Registry spec of the method
        current: Operand values on the current bar, in arg order
        previous: Operand values one bar back (cross methods only)

    Returns:
        Whether the condition holds

    Raises:
        ValueError: If the method is an action or the operand count is wrong
    """
    if len(current) != spec.arity:
        raise ValueError(
            f"{spec.name} expects {spec.arity} operands, got {len(current)}"
        )
    if spec.kind == MethodKind.COMPARISON:
        return COMPARISON_OPERATORS[spec.name](current[0], current[1])
    if spec.kind == MethodKind.CROSS:
        if previous is None or len(previous) != spec.arity:
            raise ValueError(f"{spec.name} requires previous bar values")
        return CROSS_OPERATORS[spec.name](previous[0], previous[1], current[0], current[1])
    if spec.kind == MethodKind.RANGE:
        return RANGE_OPERATORS[spec.name](current[0], current[1], current[2])
    raise ValueError(f"{spec.name} is not a comparator")
