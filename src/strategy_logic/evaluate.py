"""
Reference evaluator for compiled logic configs.

Evaluates a StrategyLogicConfig against one snapshot of series values using
the quorum rule at every level. The execution engine owns live evaluation;
this evaluator pins down the semantics the compiled config must preserve,
so compiled trees can be checked without a backend.

Operand values are read at the ref's min_bars_back; cross methods also read
one bar further back.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum, auto
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from .logic_config import (
    ActionSetConfig,
    ConditionContainerConfig,
    ConditionGroupConfig,
    MethodArg,
    MethodConfig,
    StrategyLogicBranchConfig,
    StrategyLogicConfig,
)
from .operators import apply_method
from .quorum import QuorumResult, evaluate_quorum
from .registry import get_method_spec
from .value_refs import ValueRef


class ReasonCode(IntEnum):
    """Why a single condition evaluated the way it did."""

    OK = 0  # Condition held
    CONDITION_FAILED = auto()  # Evaluated cleanly, condition not met

    # Missing data
    MISSING_VALUE = auto()  # Operand has no value on the bar read
    MISSING_PREV_VALUE = auto()  # Cross method needs the previous bar, unavailable

    # Config errors
    UNKNOWN_METHOD = auto()  # Method not in the registry or not a comparator
    BAD_ARITY = auto()  # Too few args for the method
    INVALID_OPERAND = auto()  # Arg is neither a ref nor numeric


class ValueSnapshot(Protocol):
    """Source of operand values."""

    def value(self, ref: ValueRef, bars_back: int) -> Optional[float]:
        """Value of `ref`'s series `bars_back` bars ago, or None if unavailable."""
        ...


class MappingSnapshot:
    """
    Snapshot backed by a mapping of series key -> values.

    Values are ordered newest first: index 0 is the current bar, index 1
    the previous bar. NaN reads as missing.

    Example:
        snap = MappingSnapshot({rsi.series_key: [28.0, 31.0]})
    """

    def __init__(self, series: Mapping[str, Sequence[Optional[float]]]):
        self._series = dict(series)

    @classmethod
    def from_refs(cls, values: Mapping[ValueRef, Sequence[Optional[float]]]) -> "MappingSnapshot":
        return cls({ref.series_key: seq for ref, seq in values.items()})

    def value(self, ref: ValueRef, bars_back: int) -> Optional[float]:
        if ref.is_literal:
            return ref.literal_value
        seq = self._series.get(ref.series_key)
        if seq is None or bars_back >= len(seq):
            return None
        raw = seq[bars_back]
        if raw is None:
            return None
        value = float(raw)
        if math.isnan(value):
            return None
        return value


@dataclass(frozen=True)
class ConditionResult:
    """Outcome of one comparator."""
    ok: bool
    reason: ReasonCode
    method: str
    message: str = ""


@dataclass(frozen=True)
class BranchResult:
    """
    Outcome of one branch.

    Attributes:
        slot: "entry.long" etc.
        evaluated: False when the branch is disabled
        passed: Branch quorum satisfied
        quorum: Branch-level quorum result (None when not evaluated)
        containers: Per-container quorum results, in config order
        actions: Action calls to run (empty unless passed and onPass enabled)
    """
    slot: str
    evaluated: bool
    passed: bool
    quorum: Optional[QuorumResult] = None
    containers: Tuple[QuorumResult, ...] = ()
    actions: Tuple[MethodConfig, ...] = ()


class LogicEvaluator:
    """Evaluates compiled configs against a ValueSnapshot."""

    def __init__(self, snapshot: ValueSnapshot):
        self.snapshot = snapshot

    # -------------------------------------------------------------------------
    # Operands
    # -------------------------------------------------------------------------

    def _operand(self, arg: MethodArg, extra_bars: int) -> Optional[float]:
        if isinstance(arg, ValueRef):
            return self.snapshot.value(arg, arg.min_bars_back + extra_bars)
        if isinstance(arg, str):
            return float(arg.strip())
        return float(arg)

    def _operands(self, args: Sequence[MethodArg], extra_bars: int) -> Optional[List[float]]:
        values = []
        for arg in args:
            value = self._operand(arg, extra_bars)
            if value is None:
                return None
            values.append(value)
        return values

    # -------------------------------------------------------------------------
    # Levels
    # -------------------------------------------------------------------------

    def evaluate_condition(self, condition: MethodConfig) -> ConditionResult:
        """Evaluate one comparator (enabled flag is the caller's concern)."""
        spec = get_method_spec(condition.method)
        if spec is None or not spec.is_condition:
            return ConditionResult(
                False, ReasonCode.UNKNOWN_METHOD, condition.method,
                f"Unknown comparator '{condition.method}'",
            )
        if len(condition.args) < spec.arity:
            return ConditionResult(
                False, ReasonCode.BAD_ARITY, spec.name,
                f"{spec.name} expects {spec.arity} args, got {len(condition.args)}",
            )
        args = condition.args[:spec.arity]

        try:
            current = self._operands(args, 0)
        except (TypeError, ValueError):
            return ConditionResult(False, ReasonCode.INVALID_OPERAND, spec.name, "Non-numeric operand value")
        if current is None:
            return ConditionResult(False, ReasonCode.MISSING_VALUE, spec.name, "Operand value is missing")

        previous = None
        if spec.needs_prev_value:
            try:
                previous = self._operands(args, 1)
            except (TypeError, ValueError):
                return ConditionResult(
                    False, ReasonCode.INVALID_OPERAND, spec.name,
                    "Non-numeric previous bar value",
                )
            if previous is None:
                return ConditionResult(
                    False, ReasonCode.MISSING_PREV_VALUE, spec.name,
                    "Previous bar value is missing",
                )

        ok = apply_method(spec, current, previous)
        return ConditionResult(ok, ReasonCode.OK if ok else ReasonCode.CONDITION_FAILED, spec.name)

    def evaluate_group(self, group: ConditionGroupConfig) -> QuorumResult:
        return evaluate_quorum(
            group.conditions,
            group.min_pass_conditions,
            passes=lambda c: self.evaluate_condition(c).ok,
            is_enabled=lambda c: c.enabled,
            is_required=lambda c: c.required,
        )

    def evaluate_container(self, container: ConditionContainerConfig) -> QuorumResult:
        checks = container.checks
        return evaluate_quorum(
            checks.groups,
            checks.min_pass_groups,
            passes=lambda g: self.evaluate_group(g).passed,
            is_enabled=lambda g: g.enabled,
            is_required=lambda g: g.required,
        )

    def evaluate_branch(self, branch: StrategyLogicBranchConfig, slot: str = "") -> BranchResult:
        """Evaluate one branch; a disabled branch is reported as not evaluated."""
        if not branch.enabled:
            return BranchResult(slot=slot, evaluated=False, passed=False)

        container_results: Dict[int, QuorumResult] = {}

        def container_passes(container: ConditionContainerConfig) -> bool:
            result = self.evaluate_container(container)
            container_results[id(container)] = result
            return result.passed

        quorum = evaluate_quorum(
            branch.containers,
            branch.min_pass_condition_container,
            passes=container_passes,
            is_enabled=lambda c: c.checks.enabled,
            is_required=lambda c: c.checks.required,
        )
        containers = tuple(
            container_results[id(c)] for c in branch.containers if id(c) in container_results
        )
        actions: Tuple[MethodConfig, ...] = ()
        if quorum.passed and branch.on_pass.enabled:
            actions = tuple(a for a in branch.on_pass.conditions if a.enabled)
        return BranchResult(
            slot=slot,
            evaluated=True,
            passed=quorum.passed,
            quorum=quorum,
            containers=containers,
            actions=actions,
        )

    def evaluate_logic(self, config: StrategyLogicConfig) -> Dict[str, BranchResult]:
        """Evaluate all four branches, keyed by slot name."""
        return {slot: self.evaluate_branch(branch, slot) for slot, branch in config.items()}


def run_action_set(
    action_set: ActionSetConfig,
    run_action: Callable[[MethodConfig], bool],
) -> QuorumResult:
    """
    Run an action set's actions and apply its quorum to their outcomes.

    Every enabled action is run once. A disabled action set runs nothing
    and does not pass.

    Args:
        action_set: The branch's onPass
        run_action: Executes one action, returns whether it succeeded
    """
    if not action_set.enabled:
        return QuorumResult(passed=False, min_pass=action_set.min_pass_conditions)
    return evaluate_quorum(
        action_set.conditions,
        action_set.min_pass_conditions,
        passes=run_action,
        is_enabled=lambda a: a.enabled,
        is_required=lambda a: a.required,
    )
