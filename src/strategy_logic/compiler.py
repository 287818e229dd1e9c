"""
Quorum compiler: editable tree -> StrategyLogicConfig.

Compilation is a pure, total function over any well-formed tree. The same
quorum plan (quorum.plan_quorum) is applied at group, container, branch and
action-set level:

- disabled children are omitted from the output
- thresholds are clamped to [0, optional count]
- an enabled level with nothing live compiles to min_pass = 1 over an
  empty list (never passes)
- a disabled branch compiles to enabled: false (not evaluated)

Child order is preserved. Soft findings are reported as Diagnostics by
compile_strategy_logic(); none of them fail compilation.

decompile_logic() is the best-effort inverse used to hydrate a persisted
config back into an editable tree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import ConfigFormatError, Diagnostic, DiagnosticCode, Severity
from .indicators import IndicatorSelection
from .logic_config import (
    ActionSetConfig,
    ConditionContainerConfig,
    ConditionGroupConfig,
    ConditionGroupSetConfig,
    MethodConfig,
    StrategyLogicBranchConfig,
    StrategyLogicConfig,
)
from .model import (
    BranchSlot,
    ConditionContainer,
    ConditionGroup,
    ConditionItem,
    LogicBranch,
    StrategyLogicTree,
)
from .quorum import QuorumPlan, plan_quorum
from .resolve import dangling_references, unused_indicators
from .value_refs import ValueRef, as_value_ref, operand_from_wire

logger = logging.getLogger(__name__)


# =============================================================================
# Result types
# =============================================================================

@dataclass(frozen=True)
class CompileResult:
    """Compiled config plus the soft findings collected on the way."""
    config: StrategyLogicConfig
    diagnostics: Tuple[Diagnostic, ...] = field(default_factory=tuple)

    def by_code(self, code: DiagnosticCode) -> Tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.code == code)

    @property
    def warnings(self) -> Tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.severity == Severity.WARNING)

    @property
    def corrections(self) -> int:
        """Number of thresholds clamped."""
        return len(self.by_code(DiagnosticCode.THRESHOLD_OUT_OF_RANGE))

    @property
    def has_dangling(self) -> bool:
        return bool(self.by_code(DiagnosticCode.DANGLING_REFERENCE))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "logic": self.config.to_dict(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


# =============================================================================
# Compile
# =============================================================================

def _check_plan(
    plan: QuorumPlan,
    path: str,
    level: str,
    diagnostics: Optional[List[Diagnostic]],
) -> None:
    """Record clamp / empty-level findings for one level."""
    if plan.is_empty:
        if diagnostics is not None:
            diagnostics.append(Diagnostic(
                code=DiagnosticCode.EMPTY_REQUIRED_FIELD,
                path=path,
                message=f"Enabled {level} has no enabled children and will never pass",
                details={"level": level},
            ))
        return
    if plan.was_clamped:
        logger.debug(
            "Clamped %s threshold at %s: %d -> %d",
            level, path, plan.authored_min_pass, plan.min_pass,
        )
        if diagnostics is not None:
            diagnostics.append(Diagnostic(
                code=DiagnosticCode.THRESHOLD_OUT_OF_RANGE,
                path=path,
                message=(
                    f"{level} threshold {plan.authored_min_pass} corrected to {plan.min_pass} "
                    f"({len(plan.optional)} optional of {len(plan.live)} enabled)"
                ),
                severity=Severity.INFO,
                details={
                    "level": level,
                    "authored": plan.authored_min_pass,
                    "clamped": plan.min_pass,
                    "optional": len(plan.optional),
                },
            ))


def compile_condition(condition: ConditionItem) -> MethodConfig:
    """
    Compile one live condition.

    Literal operands become Const refs aligned to the left operand's
    timeframe and calcMode.
    """
    args = tuple(as_value_ref(operand, like=condition.left) for operand in condition.operands)
    return MethodConfig(
        method=condition.method,
        args=args,
        enabled=True,
        required=condition.required,
    )


def compile_group(
    group: ConditionGroup,
    path: str = "",
    diagnostics: Optional[List[Diagnostic]] = None,
) -> ConditionGroupConfig:
    """Compile one enabled group."""
    group_path = f"{path}/{group.id}" if path else group.id
    plan = plan_quorum(group.conditions, group.min_pass_conditions)
    _check_plan(plan, group_path, "group", diagnostics)
    return ConditionGroupConfig(
        conditions=tuple(compile_condition(c) for c in plan.live),
        enabled=True,
        min_pass_conditions=plan.min_pass,
        required=group.required,
    )


def compile_container(
    container: ConditionContainer,
    path: str = "",
    diagnostics: Optional[List[Diagnostic]] = None,
) -> ConditionContainerConfig:
    """Compile one enabled container."""
    container_path = f"{path}/{container.id}" if path else container.id
    plan = plan_quorum(container.groups, container.min_pass_groups)
    _check_plan(plan, container_path, "container", diagnostics)
    return ConditionContainerConfig(checks=ConditionGroupSetConfig(
        groups=tuple(compile_group(g, container_path, diagnostics) for g in plan.live),
        enabled=True,
        min_pass_groups=plan.min_pass,
        required=container.required,
    ))


def compile_action_set(
    action_set: ActionSetConfig,
    path: str = "",
    diagnostics: Optional[List[Diagnostic]] = None,
) -> ActionSetConfig:
    """Apply the quorum plan to an action set (drop disabled actions, clamp)."""
    plan = plan_quorum(action_set.conditions, action_set.min_pass_conditions)
    if action_set.enabled:
        _check_plan(plan, f"{path}/onPass" if path else "onPass", "action set", diagnostics)
    return ActionSetConfig(
        conditions=plan.live,
        enabled=action_set.enabled,
        min_pass_conditions=plan.min_pass,
    )


def compile_branch(
    branch: LogicBranch,
    diagnostics: Optional[List[Diagnostic]] = None,
) -> StrategyLogicBranchConfig:
    """
    Compile one branch.

    A disabled branch keeps its action set but carries no containers.
    """
    path = branch.slot.value
    on_pass = compile_action_set(branch.on_pass, path, diagnostics if branch.enabled else None)
    if not branch.enabled:
        return StrategyLogicBranchConfig.disabled(on_pass)
    plan = plan_quorum(branch.containers, branch.min_pass_containers)
    _check_plan(plan, path, "branch", diagnostics)
    return StrategyLogicBranchConfig(
        enabled=True,
        min_pass_condition_container=plan.min_pass,
        containers=tuple(compile_container(c, path, diagnostics) for c in plan.live),
        on_pass=on_pass,
    )


def _compile_tree(
    tree: StrategyLogicTree,
    diagnostics: Optional[List[Diagnostic]],
) -> StrategyLogicConfig:
    return StrategyLogicConfig(
        entry_long=compile_branch(tree.entry_long, diagnostics),
        entry_short=compile_branch(tree.entry_short, diagnostics),
        exit_long=compile_branch(tree.exit_long, diagnostics),
        exit_short=compile_branch(tree.exit_short, diagnostics),
    )


def compile_logic(tree: StrategyLogicTree) -> StrategyLogicConfig:
    """
    Compile an editable tree into the engine config.

    Pure and deterministic: the same tree always yields an equal config.
    """
    return _compile_tree(tree, None)


def compile_strategy_logic(
    tree: StrategyLogicTree,
    selection: Optional[IndicatorSelection] = None,
) -> CompileResult:
    """
    Compile and collect diagnostics.

    Args:
        tree: Editable tree
        selection: Selected indicators; when given, dangling references and
            unused indicators are reported too

    Returns:
        CompileResult (never raises for a well-formed tree)
    """
    diagnostics: List[Diagnostic] = []
    config = _compile_tree(tree, diagnostics)

    if selection is not None:
        for item in dangling_references(tree, selection):
            diagnostics.append(Diagnostic(
                code=DiagnosticCode.DANGLING_REFERENCE,
                path=str(item.path),
                message=item.dangling.message,
                details={
                    "ref": item.dangling.key,
                    "reason": item.dangling.reason.value,
                },
            ))
        for indicator in unused_indicators(tree, selection):
            diagnostics.append(Diagnostic(
                code=DiagnosticCode.UNUSED_INDICATOR,
                path=indicator.id,
                message=f"Indicator '{indicator.label}' is selected but no enabled condition uses it",
                severity=Severity.INFO,
                details={"indicator": indicator.indicator_key},
            ))

    return CompileResult(config=config, diagnostics=tuple(diagnostics))


def count_live_conditions(config: StrategyLogicConfig) -> int:
    """Number of comparator calls in a compiled config."""
    return sum(
        len(group.conditions)
        for _, branch in config.items()
        for container in branch.containers
        for group in container.checks.groups
    )


# =============================================================================
# Decompile
# =============================================================================

def _decompile_condition(config: MethodConfig, condition_id: str) -> ConditionItem:
    args = config.args
    if len(args) < 2:
        raise ConfigFormatError(
            f"Condition '{condition_id}' ({config.method}) needs at least 2 args, got {len(args)}"
        )
    left = args[0]
    if not isinstance(left, ValueRef):
        # A literal on the left has no series to test; keep it as a Const ref.
        left = as_value_ref(operand_from_wire(left))
    upper = operand_from_wire(args[2]) if len(args) > 2 else None
    return ConditionItem(
        id=condition_id,
        method=config.method,
        left=left,
        right=operand_from_wire(args[1]),
        upper=upper,
        enabled=config.enabled,
        required=config.required,
    )


def _decompile_group(config: ConditionGroupConfig, group_id: str, index: int) -> ConditionGroup:
    return ConditionGroup(
        id=group_id,
        name=f"Group {index}",
        conditions=tuple(
            _decompile_condition(c, f"{group_id}-condition-{n}")
            for n, c in enumerate(config.conditions, start=1)
        ),
        enabled=config.enabled,
        required=config.required,
        min_pass_conditions=config.min_pass_conditions,
    )


def _decompile_container(
    config: ConditionContainerConfig,
    slot: BranchSlot,
    index: int,
) -> ConditionContainer:
    container_id = slot.container_id if index == 1 else f"{slot.container_id}-{index}"
    title = slot.title if index == 1 else f"{slot.title} {index}"
    checks = config.checks
    return ConditionContainer(
        id=container_id,
        title=title,
        groups=tuple(
            _decompile_group(g, f"{container_id}-group-{n}", n)
            for n, g in enumerate(checks.groups, start=1)
        ),
        enabled=checks.enabled,
        required=checks.required,
        min_pass_groups=checks.min_pass_groups,
    )


def _decompile_branch(config: StrategyLogicBranchConfig, slot: BranchSlot) -> LogicBranch:
    return LogicBranch(
        slot=slot,
        containers=tuple(
            _decompile_container(c, slot, n) for n, c in enumerate(config.containers, start=1)
        ),
        enabled=config.enabled,
        min_pass_containers=config.min_pass_condition_container,
        on_pass=config.on_pass,
    )


def decompile_logic(config: Union[StrategyLogicConfig, Dict[str, Any]]) -> StrategyLogicTree:
    """
    Rebuild an editable tree from a compiled config.

    Best-effort inverse of compile_logic(): flags, thresholds and order of
    every emitted node are restored; ids are regenerated deterministically
    ("open-long-group-1-condition-2"). Const refs and bare numeric args come
    back as literals.

    Args:
        config: StrategyLogicConfig or its wire dict

    Returns:
        StrategyLogicTree

    Raises:
        ConfigFormatError: If the document is malformed
    """
    if not isinstance(config, StrategyLogicConfig):
        config = StrategyLogicConfig.from_dict(config)
    tree = StrategyLogicTree()
    for slot_name, branch in config.items():
        slot = BranchSlot(slot_name)
        tree = tree.with_branch(_decompile_branch(branch, slot))
    return tree
