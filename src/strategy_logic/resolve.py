"""
ValueRef resolution against the selected indicators.

Resolution is pure: it never touches the condition tree. A dangling
reference is a value (DanglingReference), not an exception; callers that
want an exception use resolve_or_raise().
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Dict, Iterator, List, Optional, Tuple, Union

from ..config.constants import KLINE_FIELDS, is_kline_field
from .errors import DanglingReferenceError
from .indicators import IndicatorOutput, IndicatorSelection, SelectedIndicator
from .logic_config import StrategyLogicConfig
from .model import ConditionItem, StrategyLogicTree
from .value_refs import ValueRef

OPERAND_POSITIONS = ("left", "right", "upper")


class DanglingReason(str, Enum):
    INDICATOR_NOT_SELECTED = "indicator_not_selected"
    OUTPUT_NOT_DECLARED = "output_not_declared"
    UNKNOWN_FIELD = "unknown_field"


@dataclass(frozen=True)
class ResolvedRef:
    """
    A reference that points at something real.

    Attributes:
        ref: The reference itself
        indicator: Selected indicator it reads (None for Field/Const refs)
        output_hint: Display name of the output channel
    """
    ref: ValueRef
    indicator: Optional[SelectedIndicator] = None
    output_hint: str = ""

    @property
    def key(self) -> str:
        return self.ref.series_key


@dataclass(frozen=True)
class DanglingReference:
    """A reference to an indicator/output/field that is not available."""
    ref: ValueRef
    reason: DanglingReason
    message: str

    @property
    def key(self) -> str:
        return self.ref.series_key


ResolveResult = Union[ResolvedRef, DanglingReference]


@dataclass(frozen=True)
class ConditionPath:
    """Location of a condition (and optionally one operand) in the tree."""
    slot: str
    container_id: str
    group_id: str
    condition_id: str
    operand: str = ""

    def __str__(self) -> str:
        base = f"{self.slot}/{self.container_id}/{self.group_id}/{self.condition_id}"
        return f"{base}:{self.operand}" if self.operand else base


def resolve_value_ref(ref: ValueRef, selection: IndicatorSelection) -> ResolveResult:
    """
    Resolve a reference against the current selection.

    Args:
        ref: Reference to resolve
        selection: Indicators the user has selected

    Returns:
        ResolvedRef, or DanglingReference when the indicator is not selected,
        the output is not declared by it, or the kline field is unknown
    """
    if ref.is_literal:
        return ResolvedRef(ref=ref, output_hint=ref.input_channel)

    if ref.is_field:
        if not is_kline_field(ref.input_channel):
            return DanglingReference(
                ref=ref,
                reason=DanglingReason.UNKNOWN_FIELD,
                message=(
                    f"Unknown kline field '{ref.input_channel}'. "
                    f"Allowed: {', '.join(KLINE_FIELDS)}"
                ),
            )
        return ResolvedRef(ref=ref, output_hint=KLINE_FIELDS[ref.input_channel][1])

    indicator = selection.find(ref)
    if indicator is None:
        return DanglingReference(
            ref=ref,
            reason=DanglingReason.INDICATOR_NOT_SELECTED,
            message=f"Indicator '{ref.indicator_key}' is not selected",
        )
    if not indicator.declares_output(ref.output_channel):
        return DanglingReference(
            ref=ref,
            reason=DanglingReason.OUTPUT_NOT_DECLARED,
            message=(
                f"Indicator '{indicator.id}' ({indicator.code}) has no output "
                f"'{ref.output_channel}'. Allowed: {', '.join(indicator.output_keys)}"
            ),
        )
    return ResolvedRef(
        ref=ref,
        indicator=indicator,
        output_hint=indicator.output_hint(ref.output_channel),
    )


def resolve_or_raise(ref: ValueRef, selection: IndicatorSelection) -> ResolvedRef:
    """
    Resolve a reference, raising on dangling.

    Raises:
        DanglingReferenceError: If the reference does not resolve
    """
    result = resolve_value_ref(ref, selection)
    if isinstance(result, DanglingReference):
        raise DanglingReferenceError(result)
    return result


# =============================================================================
# Tree walking
# =============================================================================

def iter_conditions(
    tree: StrategyLogicTree,
    enabled_only: bool = True,
) -> Iterator[Tuple[ConditionPath, ConditionItem]]:
    """
    Yield (path, condition) for conditions in the tree.

    With enabled_only, a condition is yielded only when it and every
    ancestor (group, container, branch) are enabled.
    """
    for branch in tree.branches:
        if enabled_only and not branch.enabled:
            continue
        for container in branch.containers:
            if enabled_only and not container.enabled:
                continue
            for group in container.groups:
                if enabled_only and not group.enabled:
                    continue
                for condition in group.conditions:
                    if enabled_only and not condition.enabled:
                        continue
                    path = ConditionPath(branch.slot.value, container.id, group.id, condition.id)
                    yield path, condition


def iter_operand_refs(
    tree: StrategyLogicTree,
    enabled_only: bool = True,
) -> Iterator[Tuple[ConditionPath, ValueRef]]:
    """Yield (path with operand position, ref) for every series operand."""
    for path, condition in iter_conditions(tree, enabled_only):
        for position, operand in zip(OPERAND_POSITIONS, condition.operands):
            if isinstance(operand, ValueRef) and not operand.is_literal:
                yield ConditionPath(
                    path.slot, path.container_id, path.group_id, path.condition_id, position
                ), operand


@lru_cache(maxsize=128)
def used_outputs(tree: StrategyLogicTree) -> frozenset:
    """
    Indicator outputs that influence at least one branch.

    Only refs reachable through enabled branches, containers, groups and
    conditions count. Kline fields and literals are not indicator outputs.
    The tree is hashable, so results are cached per tree value.

    Returns:
        frozenset of ValueRef
    """
    return frozenset(
        ref for _, ref in iter_operand_refs(tree, enabled_only=True) if ref.is_indicator
    )


@dataclass(frozen=True)
class DanglingOperand:
    """A dangling reference plus where it sits in the tree."""
    path: ConditionPath
    dangling: DanglingReference

    @property
    def message(self) -> str:
        return f"{self.path}: {self.dangling.message}"


def dangling_references(
    tree: StrategyLogicTree,
    selection: IndicatorSelection,
    enabled_only: bool = True,
) -> Tuple[DanglingOperand, ...]:
    """List every operand that does not resolve against `selection`."""
    found: List[DanglingOperand] = []
    for path, ref in iter_operand_refs(tree, enabled_only):
        result = resolve_value_ref(ref, selection)
        if isinstance(result, DanglingReference):
            found.append(DanglingOperand(path=path, dangling=result))
    return tuple(found)


def unused_indicators(
    tree: StrategyLogicTree,
    selection: IndicatorSelection,
) -> Tuple[SelectedIndicator, ...]:
    """Selected indicators that no enabled condition reads."""
    used = used_outputs(tree)
    return tuple(
        indicator for indicator in selection
        if not any(indicator.matches(ref) for ref in used)
    )


@dataclass(frozen=True)
class IndicatorUsage:
    """One place an indicator is referenced."""
    path: ConditionPath
    output: str
    active: bool  # reachable through enabled nodes


def indicator_usages(
    tree: StrategyLogicTree,
    indicator: SelectedIndicator,
) -> Tuple[IndicatorUsage, ...]:
    """
    Every reference to `indicator`, enabled or not.

    Used before editing or removing an indicator so the user can see what
    would be affected.
    """
    active_paths = {str(path) for path, _ in iter_operand_refs(tree, enabled_only=True)}
    return tuple(
        IndicatorUsage(path=path, output=ref.output_channel, active=str(path) in active_paths)
        for path, ref in iter_operand_refs(tree, enabled_only=False)
        if indicator.matches(ref)
    )


def extract_indicators(config: StrategyLogicConfig) -> IndicatorSelection:
    """
    Rebuild a selection from the indicator refs found in a compiled config.

    Used when hydrating a persisted strategy whose selection was not stored.
    Refs to the same indicator instance are merged into one entry whose
    outputs are listed in first-seen order. Ids are "loaded-<n>".
    """
    order: List[str] = []
    first_ref: Dict[str, ValueRef] = {}
    outputs: Dict[str, List[str]] = {}
    for _, branch in config.items():
        for container in branch.containers:
            for group in container.checks.groups:
                for condition in group.conditions:
                    for arg in condition.args:
                        if not isinstance(arg, ValueRef) or not arg.is_indicator:
                            continue
                        key = arg.indicator_key
                        if key not in first_ref:
                            order.append(key)
                            first_ref[key] = arg
                            outputs[key] = []
                        if arg.output_channel not in outputs[key]:
                            outputs[key].append(arg.output_channel)
    indicators = []
    for index, key in enumerate(order, start=1):
        ref = first_ref[key]
        indicators.append(SelectedIndicator(
            id=f"loaded-{index}",
            code=ref.indicator_id,
            timeframe=ref.timeframe,
            input_channel=ref.input_channel,
            params=ref.params,
            outputs=tuple(IndicatorOutput(o) for o in outputs[key]),
            offset_range=ref.offset_range,
            aggregation=ref.aggregation,
        ))
    return IndicatorSelection(tuple(indicators))
