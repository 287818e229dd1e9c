"""
Read-only projections for display.

- build_condition_preview: one condition as "<left> <method> <right>"
- build_logic_summary: container -> group -> condition lines
- build_logic_json: canonical JSON of a compiled config (also the payload)

Nothing here raises on dangling references; labels fall back to the raw
series key instead.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from ..utils.helpers import format_number
from .indicators import IndicatorSelection
from .logic_config import MethodConfig, StrategyLogicConfig
from .model import ConditionItem, StrategyLogicTree
from .registry import MethodKind, get_method_spec, method_label
from .resolve import DanglingReference, resolve_value_ref, used_outputs
from .value_refs import Operand, ValueRef, normalize_timeframe

NOT_CONFIGURED = "not configured"


def format_timeframe_label(raw: Optional[str]) -> str:
    """Display form of a timeframe ("M5" -> "5m")."""
    return normalize_timeframe(raw)


def _offset_suffix(ref: ValueRef) -> str:
    low, high = ref.offset_range
    if high == 0:
        return ""
    if low == high:
        return f"[{low}]"
    return f"[{low}..{high}]"


def format_value_ref_label(
    ref: Optional[ValueRef],
    selection: Optional[IndicatorSelection] = None,
) -> str:
    """
    Human label for a ValueRef.

    Const -> "30"; Field -> "CLOSE 1h"; Indicator -> "RSI 1h (14) Value".
    Historical offsets are appended as "[1]" or "[1..3]". The output hint
    comes from the selection when one is given.
    """
    if ref is None:
        return NOT_CONFIGURED
    if ref.is_literal:
        return ref.input_channel or "0"
    timeframe = format_timeframe_label(ref.timeframe)
    if ref.is_field:
        label = f"{ref.input_channel} {timeframe}" if timeframe else ref.input_channel
        return label + _offset_suffix(ref)
    params = ref.params_key or "default"
    output = selection.output_hint(ref) if selection is not None else ref.output_channel
    tf_part = f" {timeframe}" if timeframe else ""
    return f"{ref.indicator_id}{tf_part} ({params}) {output}".strip() + _offset_suffix(ref)


def _operand_label(
    operand: Union[Operand, str, None],
    selection: Optional[IndicatorSelection],
) -> str:
    if operand is None:
        return NOT_CONFIGURED
    if isinstance(operand, str):
        return operand
    if not isinstance(operand, ValueRef):
        return format_number(operand)
    if selection is not None and not operand.is_literal:
        if isinstance(resolve_value_ref(operand, selection), DanglingReference):
            return operand.series_key
    return format_value_ref_label(operand, selection)


def _render(method: str, operands: Sequence, selection: Optional[IndicatorSelection], short: bool) -> str:
    labels = [_operand_label(o, selection) for o in operands]
    while len(labels) < 2:
        labels.append(NOT_CONFIGURED)
    spec = get_method_spec(method)
    name = method_label(method, short=short)
    if spec is not None and spec.kind == MethodKind.RANGE:
        upper = labels[2] if len(labels) > 2 else NOT_CONFIGURED
        return f"{labels[0]} {name} {labels[1]} and {upper}"
    return f"{labels[0]} {name} {labels[1]}"


def build_condition_preview(
    condition: Union[ConditionItem, MethodConfig, None],
    selection: Optional[IndicatorSelection] = None,
    short: bool = False,
) -> str:
    """
    Render one condition as "<left label> <method> <right label or literal>".

    Args:
        condition: Editable condition or compiled MethodConfig
        selection: Selected indicators for output hints and dangling detection
        short: Use the short method symbol (">=") instead of the long label

    Returns:
        Preview string; never raises
    """
    if condition is None:
        return "no condition configured"
    if isinstance(condition, ConditionItem):
        return _render(condition.method, condition.operands, selection, short)
    return _render(condition.method, condition.args, selection, short)


# =============================================================================
# Summary
# =============================================================================

@dataclass(frozen=True)
class SummaryGroup:
    title: str
    enabled: bool
    lines: Tuple[str, ...]


@dataclass(frozen=True)
class SummarySection:
    """One container's summary."""
    slot: str
    container_id: str
    title: str
    enabled: bool
    groups: Tuple[SummaryGroup, ...]

    def to_text(self) -> str:
        out = [self.title]
        for group in self.groups:
            out.append(f"  {group.title}")
            out.extend(f"    - {line}" for line in group.lines)
        return "\n".join(out)


def _suffix(enabled: bool, required: bool = False) -> str:
    parts = []
    if required:
        parts.append(" (required)")
    if not enabled:
        parts.append(" (disabled)")
    return "".join(parts)


def build_logic_summary(
    tree: StrategyLogicTree,
    selection: Optional[IndicatorSelection] = None,
) -> List[SummarySection]:
    """
    Summarize the editable tree for display.

    Containers and groups without any conditions are skipped. Disabled
    nodes stay in the summary with a "(disabled)" suffix; a container in a
    disabled branch is shown as disabled.
    """
    sections: List[SummarySection] = []
    for branch in tree.branches:
        for container in branch.containers:
            groups = []
            for index, group in enumerate(container.groups, start=1):
                if not group.conditions:
                    continue
                lines = tuple(
                    build_condition_preview(c, selection, short=True) + _suffix(c.enabled, c.required)
                    for c in group.conditions
                )
                title = (group.name or f"Group {index}") + _suffix(group.enabled, group.required)
                groups.append(SummaryGroup(title=title, enabled=group.enabled, lines=lines))
            if not groups:
                continue
            enabled = branch.enabled and container.enabled
            title = f"{container.title or branch.slot.title} ({branch.slot.value})"
            title += f", {len(groups)} group{'s' if len(groups) != 1 else ''}"
            title += _suffix(enabled, container.required)
            sections.append(SummarySection(
                slot=branch.slot.value,
                container_id=container.id,
                title=title,
                enabled=enabled,
                groups=tuple(groups),
            ))
    return sections


def render_summary_text(sections: Sequence[SummarySection]) -> str:
    """Plain-text rendering of a summary."""
    if not sections:
        return "No conditions configured"
    return "\n\n".join(s.to_text() for s in sections)


def build_logic_json(config: StrategyLogicConfig, compact: bool = False) -> str:
    """
    Canonical JSON of a compiled config.

    Keys are sorted so equal configs always serialize identically.
    """
    if compact:
        return json.dumps(config.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return json.dumps(config.to_dict(), sort_keys=True, indent=2, ensure_ascii=False)


def used_indicator_labels(
    tree: StrategyLogicTree,
    selection: Optional[IndicatorSelection] = None,
) -> Tuple[str, ...]:
    """Distinct labels of indicator outputs used by enabled conditions, sorted."""
    labels = {format_value_ref_label(ref, selection) for ref in used_outputs(tree)}
    return tuple(sorted(labels))
