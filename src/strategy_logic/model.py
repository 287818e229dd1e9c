"""
Editable condition model.

The tree a user builds in the editor, as immutable value types addressed
by stable ids:

    StrategyLogicTree
      └─ LogicBranch (entry.long / entry.short / exit.long / exit.short)
           └─ ConditionContainer
                └─ ConditionGroup
                     └─ ConditionItem (comparator over ValueRefs / literals)

Every node carries its own `enabled` and `required` flags. Nodes are never
mutated; reducers.py returns new trees.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Iterator, Optional, Tuple

from .logic_config import ActionSetConfig, make_trade_action
from .value_refs import Operand, ValueRef


class BranchSlot(str, Enum):
    """The four fixed evaluation pipelines."""
    ENTRY_LONG = "entry.long"
    ENTRY_SHORT = "entry.short"
    EXIT_LONG = "exit.long"
    EXIT_SHORT = "exit.short"

    @property
    def phase(self) -> str:
        return self.value.split(".")[0]

    @property
    def side(self) -> str:
        return self.value.split(".")[1]

    @property
    def default_action(self) -> str:
        """MakeTrade arg emitted for this slot."""
        return {
            BranchSlot.ENTRY_LONG: "Long",
            BranchSlot.ENTRY_SHORT: "Short",
            BranchSlot.EXIT_LONG: "CloseLong",
            BranchSlot.EXIT_SHORT: "CloseShort",
        }[self]

    @property
    def container_id(self) -> str:
        """Id of the default container the editor creates for this slot."""
        return {
            BranchSlot.ENTRY_LONG: "open-long",
            BranchSlot.ENTRY_SHORT: "open-short",
            BranchSlot.EXIT_LONG: "close-long",
            BranchSlot.EXIT_SHORT: "close-short",
        }[self]

    @property
    def title(self) -> str:
        return {
            BranchSlot.ENTRY_LONG: "Open long",
            BranchSlot.ENTRY_SHORT: "Open short",
            BranchSlot.EXIT_LONG: "Close long",
            BranchSlot.EXIT_SHORT: "Close short",
        }[self]

    @classmethod
    def parse(cls, raw: "str | BranchSlot") -> "BranchSlot":
        """Accept "entry.long", "entry-long", "open-long" and friends."""
        if isinstance(raw, BranchSlot):
            return raw
        value = str(raw).strip().lower().replace("-", ".").replace("_", ".")
        aliases = {
            "open.long": cls.ENTRY_LONG,
            "open.short": cls.ENTRY_SHORT,
            "close.long": cls.EXIT_LONG,
            "close.short": cls.EXIT_SHORT,
        }
        if value in aliases:
            return aliases[value]
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown branch slot '{raw}'. Allowed: {allowed}") from None


def _check_unique_ids(kind: str, owner: str, ids: Iterable[str]) -> None:
    seen = set()
    for node_id in ids:
        if node_id in seen:
            raise ValueError(f"{owner}: duplicate {kind} id '{node_id}'")
        seen.add(node_id)


# =============================================================================
# Nodes
# =============================================================================

@dataclass(frozen=True)
class ConditionItem:
    """
    A single comparator test.

    Attributes:
        id: Unique within its group
        method: Comparator name ("GreaterThan", "CrossUp", "Between", ...)
        left: Series being tested
        right: Other series or a literal number
        upper: Upper bound for range methods (Between/Outside), else None
        enabled: Disabled items are treated as absent
        required: Must pass for the group to pass
    """
    id: str
    method: str
    left: ValueRef
    right: Operand
    upper: Optional[Operand] = None
    enabled: bool = True
    required: bool = False

    def __post_init__(self):
        if not self.id:
            raise ValueError("ConditionItem: id is required")
        if not self.method:
            raise ValueError(f"ConditionItem '{self.id}': method is required")
        if not isinstance(self.left, ValueRef):
            raise TypeError(f"ConditionItem '{self.id}': left must be a ValueRef")
        for name in ("right", "upper"):
            value = getattr(self, name)
            if value is None and name == "upper":
                continue
            if isinstance(value, bool) or not isinstance(value, (ValueRef, int, float)):
                raise TypeError(
                    f"ConditionItem '{self.id}': {name} must be a ValueRef or number, got {value!r}"
                )
            if isinstance(value, int):
                object.__setattr__(self, name, float(value))

    @property
    def operands(self) -> Tuple[Operand, ...]:
        """Args in wire order: left, right, then upper when set."""
        if self.upper is None:
            return (self.left, self.right)
        return (self.left, self.right, self.upper)

    @property
    def refs(self) -> Tuple[ValueRef, ...]:
        """Operands that address a series (literals excluded)."""
        return tuple(
            o for o in self.operands
            if isinstance(o, ValueRef) and not o.is_literal
        )


@dataclass(frozen=True)
class ConditionGroup:
    """One clause: a list of conditions under a quorum."""
    id: str
    name: str = ""
    conditions: Tuple[ConditionItem, ...] = ()
    enabled: bool = True
    required: bool = False
    min_pass_conditions: int = 1

    def __post_init__(self):
        if not self.id:
            raise ValueError("ConditionGroup: id is required")
        object.__setattr__(self, "conditions", tuple(self.conditions))
        _check_unique_ids("condition", f"ConditionGroup '{self.id}'", (c.id for c in self.conditions))

    @property
    def children(self) -> Tuple[ConditionItem, ...]:
        return self.conditions

    def get(self, condition_id: str) -> Optional[ConditionItem]:
        for condition in self.conditions:
            if condition.id == condition_id:
                return condition
        return None


@dataclass(frozen=True)
class ConditionContainer:
    """A named filter bank of groups under a quorum."""
    id: str
    title: str = ""
    groups: Tuple[ConditionGroup, ...] = ()
    enabled: bool = True
    required: bool = False
    min_pass_groups: int = 1

    def __post_init__(self):
        if not self.id:
            raise ValueError("ConditionContainer: id is required")
        object.__setattr__(self, "groups", tuple(self.groups))
        _check_unique_ids("group", f"ConditionContainer '{self.id}'", (g.id for g in self.groups))

    @property
    def children(self) -> Tuple[ConditionGroup, ...]:
        return self.groups

    def get(self, group_id: str) -> Optional[ConditionGroup]:
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    @property
    def condition_count(self) -> int:
        return sum(len(g.conditions) for g in self.groups)


@dataclass(frozen=True)
class LogicBranch:
    """
    One entry/exit x long/short pipeline.

    `enabled=False` means the branch is not evaluated at all; an enabled
    branch with no live containers never passes.
    """
    slot: BranchSlot
    containers: Tuple[ConditionContainer, ...] = ()
    enabled: bool = True
    min_pass_containers: int = 1
    on_pass: Optional[ActionSetConfig] = None

    def __post_init__(self):
        object.__setattr__(self, "slot", BranchSlot.parse(self.slot))
        object.__setattr__(self, "containers", tuple(self.containers))
        if self.on_pass is None:
            object.__setattr__(self, "on_pass", make_trade_action(self.slot.default_action))
        _check_unique_ids("container", f"LogicBranch '{self.slot.value}'", (c.id for c in self.containers))

    @property
    def children(self) -> Tuple[ConditionContainer, ...]:
        return self.containers

    def get(self, container_id: str) -> Optional[ConditionContainer]:
        for container in self.containers:
            if container.id == container_id:
                return container
        return None


@dataclass(frozen=True)
class StrategyLogicTree:
    """The four branches of one strategy: editable counterpart of StrategyLogicConfig."""
    entry_long: LogicBranch = field(default_factory=lambda: LogicBranch(BranchSlot.ENTRY_LONG))
    entry_short: LogicBranch = field(default_factory=lambda: LogicBranch(BranchSlot.ENTRY_SHORT))
    exit_long: LogicBranch = field(default_factory=lambda: LogicBranch(BranchSlot.EXIT_LONG))
    exit_short: LogicBranch = field(default_factory=lambda: LogicBranch(BranchSlot.EXIT_SHORT))

    def __post_init__(self):
        for slot in BranchSlot:
            branch = self.branch(slot)
            if branch.slot != slot:
                raise ValueError(
                    f"StrategyLogicTree: branch for {slot.value} has slot {branch.slot.value}"
                )

    @classmethod
    def empty(cls) -> "StrategyLogicTree":
        """A new strategy: every slot holds one enabled, empty container."""
        return cls(**{
            _attr(slot): LogicBranch(
                slot,
                containers=(ConditionContainer(slot.container_id, title=slot.title),),
            )
            for slot in BranchSlot
        })

    @property
    def branches(self) -> Tuple[LogicBranch, ...]:
        return (self.entry_long, self.entry_short, self.exit_long, self.exit_short)

    def __iter__(self) -> Iterator[LogicBranch]:
        return iter(self.branches)

    def branch(self, slot: "BranchSlot | str") -> LogicBranch:
        return getattr(self, _attr(BranchSlot.parse(slot)))

    def with_branch(self, branch: LogicBranch) -> "StrategyLogicTree":
        return replace(self, **{_attr(branch.slot): branch})

    def find_container(self, container_id: str) -> Optional[Tuple[LogicBranch, ConditionContainer]]:
        """Find a container by id in any branch (first match in slot order)."""
        for branch in self.branches:
            container = branch.get(container_id)
            if container is not None:
                return branch, container
        return None


def _attr(slot: BranchSlot) -> str:
    return slot.value.replace(".", "_")
