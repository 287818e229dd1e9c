"""
Pure edit operations on the condition tree.

Every reducer takes a tree and returns a new one; the input is never
modified. Nodes are addressed by branch slot plus container/group/condition
ids. Unknown ids raise NodeNotFoundError, exceeded editor limits raise
EditLimitError.

Required nodes sort first: switching `required` on (or saving a required
condition) moves the node to the top of its collection.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterable, Optional, Sequence, Tuple, TypeVar, Union

from ..config.config import EditorLimitsConfig, get_config
from .errors import EditLimitError, NodeNotFoundError
from .indicators import SelectedIndicator
from .model import (
    BranchSlot,
    ConditionContainer,
    ConditionGroup,
    ConditionItem,
    LogicBranch,
    StrategyLogicTree,
)
from .registry import MethodKind, get_method_spec, validate_condition_method
from .value_refs import Operand, ValueRef

T = TypeVar("T")

FLAG_KEYS = ("enabled", "required")

SlotLike = Union[BranchSlot, str]


# =============================================================================
# Helpers
# =============================================================================

def _limits(limits: Optional[EditorLimitsConfig]) -> EditorLimitsConfig:
    return limits if limits is not None else get_config().limits


def promote_to_top(items: Sequence[T], index: int) -> Tuple[T, ...]:
    """Move items[index] to the front, keeping the others in order."""
    items = tuple(items)
    if index <= 0 or index >= len(items):
        return items
    return (items[index],) + items[:index] + items[index + 1:]


def _index_of(items: Sequence, node_id: str) -> int:
    for i, item in enumerate(items):
        if item.id == node_id:
            return i
    return -1


def _next_id(prefix: str, existing: Iterable[str]) -> str:
    taken = set(existing)
    n = 1
    while f"{prefix}{n}" in taken:
        n += 1
    return f"{prefix}{n}"


def _check_flag(key: str) -> None:
    if key not in FLAG_KEYS:
        raise ValueError(f"Unknown flag '{key}'. Allowed: {', '.join(FLAG_KEYS)}")


def _update_branch(
    tree: StrategyLogicTree,
    slot: SlotLike,
    fn: Callable[[LogicBranch], LogicBranch],
) -> StrategyLogicTree:
    return tree.with_branch(fn(tree.branch(slot)))


def _update_container(
    tree: StrategyLogicTree,
    slot: SlotLike,
    container_id: str,
    fn: Callable[[ConditionContainer], ConditionContainer],
) -> StrategyLogicTree:
    def apply(branch: LogicBranch) -> LogicBranch:
        index = _index_of(branch.containers, container_id)
        if index < 0:
            raise NodeNotFoundError("container", container_id, branch.slot.value)
        containers = list(branch.containers)
        containers[index] = fn(containers[index])
        return replace(branch, containers=tuple(containers))

    return _update_branch(tree, slot, apply)


def _update_group(
    tree: StrategyLogicTree,
    slot: SlotLike,
    container_id: str,
    group_id: str,
    fn: Callable[[ConditionGroup], ConditionGroup],
) -> StrategyLogicTree:
    def apply(container: ConditionContainer) -> ConditionContainer:
        index = _index_of(container.groups, group_id)
        if index < 0:
            raise NodeNotFoundError("group", group_id, container.id)
        groups = list(container.groups)
        groups[index] = fn(groups[index])
        return replace(container, groups=tuple(groups))

    return _update_container(tree, slot, container_id, apply)


def _toggle_in(items: Sequence[T], node_id: str, key: str, kind: str, parent: str) -> Tuple[T, ...]:
    _check_flag(key)
    index = _index_of(items, node_id)
    if index < 0:
        raise NodeNotFoundError(kind, node_id, parent)
    node = items[index]
    value = not getattr(node, key)
    updated = list(items)
    updated[index] = replace(node, **{key: value})
    if key == "required" and value:
        return promote_to_top(updated, index)
    return tuple(updated)


# =============================================================================
# Branches and containers
# =============================================================================

def set_branch_enabled(tree: StrategyLogicTree, slot: SlotLike, enabled: bool) -> StrategyLogicTree:
    """Enable or disable a whole branch."""
    return _update_branch(tree, slot, lambda b: replace(b, enabled=bool(enabled)))


def add_container(
    tree: StrategyLogicTree,
    slot: SlotLike,
    container_id: Optional[str] = None,
    title: str = "",
) -> StrategyLogicTree:
    """Append an empty, enabled container to a branch."""
    def apply(branch: LogicBranch) -> LogicBranch:
        new_id = container_id or _next_id(f"{branch.slot.container_id}-", (c.id for c in branch.containers))
        if branch.get(new_id) is not None:
            raise ValueError(f"Container id '{new_id}' already exists in {branch.slot.value}")
        container = ConditionContainer(new_id, title=title or branch.slot.title)
        return replace(branch, containers=branch.containers + (container,))

    return _update_branch(tree, slot, apply)


def remove_container(tree: StrategyLogicTree, slot: SlotLike, container_id: str) -> StrategyLogicTree:
    def apply(branch: LogicBranch) -> LogicBranch:
        if branch.get(container_id) is None:
            raise NodeNotFoundError("container", container_id, branch.slot.value)
        return replace(branch, containers=tuple(c for c in branch.containers if c.id != container_id))

    return _update_branch(tree, slot, apply)


def toggle_container_flag(
    tree: StrategyLogicTree,
    slot: SlotLike,
    container_id: str,
    key: str,
) -> StrategyLogicTree:
    """Flip a container's `enabled` or `required` flag."""
    def apply(branch: LogicBranch) -> LogicBranch:
        containers = _toggle_in(branch.containers, container_id, key, "container", branch.slot.value)
        return replace(branch, containers=containers)

    return _update_branch(tree, slot, apply)


# =============================================================================
# Groups
# =============================================================================

def add_group(
    tree: StrategyLogicTree,
    slot: SlotLike,
    container_id: str,
    group_id: Optional[str] = None,
    name: str = "",
    limits: Optional[EditorLimitsConfig] = None,
) -> StrategyLogicTree:
    """
    Append an empty group to a container.

    Raises:
        EditLimitError: If the container already holds max_groups_per_container groups
    """
    max_groups = _limits(limits).max_groups_per_container

    def apply(container: ConditionContainer) -> ConditionContainer:
        if len(container.groups) >= max_groups:
            raise EditLimitError(
                f"{container.title or container.id} can hold at most {max_groups} groups",
                max_groups,
            )
        new_id = group_id or _next_id(f"{container.id}-group-", (g.id for g in container.groups))
        if container.get(new_id) is not None:
            raise ValueError(f"Group id '{new_id}' already exists in {container.id}")
        group = ConditionGroup(new_id, name=name or f"Group {len(container.groups) + 1}")
        return replace(container, groups=container.groups + (group,))

    return _update_container(tree, slot, container_id, apply)


def remove_group(
    tree: StrategyLogicTree,
    slot: SlotLike,
    container_id: str,
    group_id: str,
) -> StrategyLogicTree:
    def apply(container: ConditionContainer) -> ConditionContainer:
        if container.get(group_id) is None:
            raise NodeNotFoundError("group", group_id, container.id)
        return replace(container, groups=tuple(g for g in container.groups if g.id != group_id))

    return _update_container(tree, slot, container_id, apply)


def toggle_group_flag(
    tree: StrategyLogicTree,
    slot: SlotLike,
    container_id: str,
    group_id: str,
    key: str,
) -> StrategyLogicTree:
    """Flip a group's `enabled` or `required` flag."""
    def apply(container: ConditionContainer) -> ConditionContainer:
        return replace(container, groups=_toggle_in(container.groups, group_id, key, "group", container.id))

    return _update_container(tree, slot, container_id, apply)


def set_min_pass(
    tree: StrategyLogicTree,
    slot: SlotLike,
    value: int,
    container_id: Optional[str] = None,
    group_id: Optional[str] = None,
) -> StrategyLogicTree:
    """
    Set a threshold.

    With no ids the branch's min_pass_containers is set; with a container id
    the container's min_pass_groups; with both ids the group's
    min_pass_conditions. Out-of-range values are kept as authored and
    clamped at compile time.

    Raises:
        ValueError: If value is negative or group_id is given without container_id
    """
    value = int(value)
    if value < 0:
        raise ValueError(f"Threshold must be >= 0, got {value}")
    if container_id is None:
        if group_id is not None:
            raise ValueError("group_id requires container_id")
        return _update_branch(tree, slot, lambda b: replace(b, min_pass_containers=value))
    if group_id is None:
        return _update_container(
            tree, slot, container_id, lambda c: replace(c, min_pass_groups=value)
        )
    return _update_group(
        tree, slot, container_id, group_id, lambda g: replace(g, min_pass_conditions=value)
    )


# =============================================================================
# Conditions
# =============================================================================

def _validate_condition(condition: ConditionItem) -> None:
    error = validate_condition_method(condition.method)
    if error:
        raise ValueError(error)
    spec = get_method_spec(condition.method)
    if spec.kind == MethodKind.RANGE and condition.upper is None:
        raise ValueError(f"{spec.name} needs an upper bound")
    if spec.kind != MethodKind.RANGE and condition.upper is not None:
        raise ValueError(f"{spec.name} takes two operands, got an upper bound")


def save_condition(
    tree: StrategyLogicTree,
    slot: SlotLike,
    container_id: str,
    group_id: str,
    condition: ConditionItem,
    limits: Optional[EditorLimitsConfig] = None,
) -> StrategyLogicTree:
    """
    Insert or update a condition.

    An existing id is replaced in place; a new id is appended. A required
    condition is then moved to the top of its group.

    Raises:
        ValueError: If the method is unknown or operands don't fit it
        EditLimitError: If appending would exceed max_conditions_per_group
    """
    _validate_condition(condition)
    max_conditions = _limits(limits).max_conditions_per_group

    def apply(group: ConditionGroup) -> ConditionGroup:
        index = _index_of(group.conditions, condition.id)
        if index >= 0:
            conditions = list(group.conditions)
            conditions[index] = condition
        else:
            if len(group.conditions) >= max_conditions:
                raise EditLimitError(
                    f"{group.name or group.id} can hold at most {max_conditions} conditions",
                    max_conditions,
                )
            conditions = list(group.conditions) + [condition]
            index = len(conditions) - 1
        if condition.required:
            return replace(group, conditions=promote_to_top(conditions, index))
        return replace(group, conditions=tuple(conditions))

    return _update_group(tree, slot, container_id, group_id, apply)


def remove_condition(
    tree: StrategyLogicTree,
    slot: SlotLike,
    container_id: str,
    group_id: str,
    condition_id: str,
) -> StrategyLogicTree:
    def apply(group: ConditionGroup) -> ConditionGroup:
        if group.get(condition_id) is None:
            raise NodeNotFoundError("condition", condition_id, group.id)
        return replace(group, conditions=tuple(c for c in group.conditions if c.id != condition_id))

    return _update_group(tree, slot, container_id, group_id, apply)


def toggle_condition_flag(
    tree: StrategyLogicTree,
    slot: SlotLike,
    container_id: str,
    group_id: str,
    condition_id: str,
    key: str,
) -> StrategyLogicTree:
    """Flip a condition's `enabled` or `required` flag."""
    def apply(group: ConditionGroup) -> ConditionGroup:
        return replace(
            group,
            conditions=_toggle_in(group.conditions, condition_id, key, "condition", group.id),
        )

    return _update_group(tree, slot, container_id, group_id, apply)


# =============================================================================
# Indicator edits
# =============================================================================

def _retarget_operand(operand: Operand, old: SelectedIndicator, new: SelectedIndicator) -> Operand:
    if not isinstance(operand, ValueRef) or not old.matches(operand):
        return operand
    output = operand.output_channel
    if not new.declares_output(output):
        output = new.default_output
    ref = new.ref(output)
    # Per-reference bar offset and calcMode survive the edit
    if operand.offset_range != old.offset_range:
        ref = ref.with_offset(*operand.offset_range)
    if operand.aggregation != old.aggregation:
        ref = replace(ref, aggregation=operand.aggregation)
    return ref


def retarget_indicator(
    tree: StrategyLogicTree,
    old: SelectedIndicator,
    new: SelectedIndicator,
) -> StrategyLogicTree:
    """
    Re-point every reference to `old` at `new` after an indicator edit.

    A ref whose output `new` no longer declares falls back to `new`'s first
    output. Conditions that don't reference `old` are left as they are
    (same objects), enabled or not.
    """
    def condition_fn(condition: ConditionItem) -> ConditionItem:
        left = _retarget_operand(condition.left, old, new)
        right = _retarget_operand(condition.right, old, new)
        upper = condition.upper
        if upper is not None:
            upper = _retarget_operand(upper, old, new)
        if left is condition.left and right is condition.right and upper is condition.upper:
            return condition
        return replace(condition, left=left, right=right, upper=upper)

    for branch in tree.branches:
        containers = tuple(
            replace(container, groups=tuple(
                replace(group, conditions=tuple(condition_fn(c) for c in group.conditions))
                for group in container.groups
            ))
            for container in branch.containers
        )
        tree = tree.with_branch(replace(branch, containers=containers))
    return tree
