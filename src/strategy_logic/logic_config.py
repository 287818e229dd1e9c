"""
Compiled logic configuration: the contract handed to the execution engine.

Shape:
    {"entry": {"long": Branch, "short": Branch},
     "exit":  {"long": Branch, "short": Branch}}

    Branch = {"enabled", "minPassConditionContainer",
              "containers": [{"checks": {"enabled", "minPassGroups",
                                          "groups": [{"enabled", "minPassConditions",
                                                      "conditions": [MethodConfig]}]}}],
              "onPass": {"enabled", "minPassConditions", "conditions": [MethodConfig]}}

    MethodConfig = {"enabled", "required", "method", "args": [ValueRef | literal]}

Group and checks objects carry "required": true only for required nodes;
the key is omitted otherwise so plain documents keep the exact contract shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Tuple, Union

from ..utils.helpers import wire_number
from .errors import ConfigFormatError
from .value_refs import ValueRef

MethodArg = Union[ValueRef, float, str]

BRANCH_PATHS: Tuple[Tuple[str, str], ...] = (
    ("entry", "long"),
    ("entry", "short"),
    ("exit", "long"),
    ("exit", "short"),
)


# =============================================================================
# Parsing helpers
# =============================================================================

def _expect_dict(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ConfigFormatError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _expect_list(data: Any, what: str) -> List[Any]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigFormatError(f"{what} must be a list, got {type(data).__name__}")
    return data


def _get_bool(data: Dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigFormatError(f"'{key}' must be true or false, got {value!r}")
    return value


def _get_int(data: Dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise ConfigFormatError(f"'{key}' must be an integer, got {value!r}")
    return int(value)


def _arg_to_wire(arg: MethodArg) -> Any:
    if isinstance(arg, ValueRef):
        return arg.to_dict()
    if isinstance(arg, str):
        return arg
    return wire_number(arg)


def _arg_from_wire(raw: Any) -> MethodArg:
    if isinstance(raw, dict):
        return ValueRef.from_dict(raw)
    if isinstance(raw, bool):
        raise ConfigFormatError(f"Method arg must be a ValueRef, number or string, got {raw!r}")
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        return raw
    raise ConfigFormatError(f"Method arg must be a ValueRef, number or string, got {raw!r}")


# =============================================================================
# Config dataclasses
# =============================================================================

@dataclass(frozen=True)
class MethodConfig:
    """One compiled comparator or action call."""
    method: str
    args: Tuple[MethodArg, ...] = ()
    enabled: bool = True
    required: bool = False

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "required": self.required,
            "method": self.method,
            "args": [_arg_to_wire(a) for a in self.args],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "MethodConfig":
        data = _expect_dict(data, "MethodConfig")
        method = data.get("method")
        if not isinstance(method, str) or not method.strip():
            raise ConfigFormatError(f"MethodConfig: 'method' is required, got {method!r}")
        return cls(
            method=method.strip(),
            args=tuple(_arg_from_wire(a) for a in _expect_list(data.get("args"), "args")),
            enabled=_get_bool(data, "enabled", True),
            required=_get_bool(data, "required", False),
        )


@dataclass(frozen=True)
class ConditionGroupConfig:
    """A compiled group: quorum over its conditions."""
    conditions: Tuple[MethodConfig, ...] = ()
    enabled: bool = True
    min_pass_conditions: int = 1
    required: bool = False

    def __post_init__(self):
        object.__setattr__(self, "conditions", tuple(self.conditions))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "enabled": self.enabled,
            "minPassConditions": self.min_pass_conditions,
            "conditions": [c.to_dict() for c in self.conditions],
        }
        if self.required:
            data["required"] = True
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "ConditionGroupConfig":
        data = _expect_dict(data, "ConditionGroupConfig")
        return cls(
            conditions=tuple(
                MethodConfig.from_dict(c) for c in _expect_list(data.get("conditions"), "conditions")
            ),
            enabled=_get_bool(data, "enabled", True),
            min_pass_conditions=_get_int(data, "minPassConditions", 1),
            required=_get_bool(data, "required", False),
        )


@dataclass(frozen=True)
class ConditionGroupSetConfig:
    """The `checks` object of a container: quorum over its groups."""
    groups: Tuple[ConditionGroupConfig, ...] = ()
    enabled: bool = True
    min_pass_groups: int = 1
    required: bool = False

    def __post_init__(self):
        object.__setattr__(self, "groups", tuple(self.groups))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "enabled": self.enabled,
            "minPassGroups": self.min_pass_groups,
            "groups": [g.to_dict() for g in self.groups],
        }
        if self.required:
            data["required"] = True
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "ConditionGroupSetConfig":
        data = _expect_dict(data, "checks")
        return cls(
            groups=tuple(
                ConditionGroupConfig.from_dict(g) for g in _expect_list(data.get("groups"), "groups")
            ),
            enabled=_get_bool(data, "enabled", True),
            min_pass_groups=_get_int(data, "minPassGroups", 1),
            required=_get_bool(data, "required", False),
        )


@dataclass(frozen=True)
class ConditionContainerConfig:
    """A compiled container (wraps its checks)."""
    checks: ConditionGroupSetConfig

    def to_dict(self) -> Dict[str, Any]:
        return {"checks": self.checks.to_dict()}

    @classmethod
    def from_dict(cls, data: Any) -> "ConditionContainerConfig":
        data = _expect_dict(data, "ConditionContainerConfig")
        return cls(checks=ConditionGroupSetConfig.from_dict(data.get("checks") or {}))


@dataclass(frozen=True)
class ActionSetConfig:
    """Side-effecting step run once the branch passes; same quorum rule as a group."""
    conditions: Tuple[MethodConfig, ...] = ()
    enabled: bool = True
    min_pass_conditions: int = 1

    def __post_init__(self):
        object.__setattr__(self, "conditions", tuple(self.conditions))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "minPassConditions": self.min_pass_conditions,
            "conditions": [c.to_dict() for c in self.conditions],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ActionSetConfig":
        data = _expect_dict(data, "onPass")
        return cls(
            conditions=tuple(
                MethodConfig.from_dict(c) for c in _expect_list(data.get("conditions"), "conditions")
            ),
            enabled=_get_bool(data, "enabled", True),
            min_pass_conditions=_get_int(data, "minPassConditions", 1),
        )


def make_trade_action(action: str) -> ActionSetConfig:
    """Default action set: one MakeTrade call (Long, Short, CloseLong or CloseShort)."""
    return ActionSetConfig(
        conditions=(MethodConfig("MakeTrade", (action,), enabled=True, required=False),),
        enabled=True,
        min_pass_conditions=1,
    )


@dataclass(frozen=True)
class StrategyLogicBranchConfig:
    """One compiled branch."""
    enabled: bool
    min_pass_condition_container: int
    containers: Tuple[ConditionContainerConfig, ...]
    on_pass: ActionSetConfig

    def __post_init__(self):
        object.__setattr__(self, "containers", tuple(self.containers))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "minPassConditionContainer": self.min_pass_condition_container,
            "containers": [c.to_dict() for c in self.containers],
            "onPass": self.on_pass.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "StrategyLogicBranchConfig":
        data = _expect_dict(data, "Branch")
        return cls(
            enabled=_get_bool(data, "enabled", True),
            min_pass_condition_container=_get_int(data, "minPassConditionContainer", 1),
            containers=tuple(
                ConditionContainerConfig.from_dict(c)
                for c in _expect_list(data.get("containers"), "containers")
            ),
            on_pass=ActionSetConfig.from_dict(data.get("onPass") or {}),
        )

    @classmethod
    def disabled(cls, on_pass: ActionSetConfig) -> "StrategyLogicBranchConfig":
        """A branch that is not evaluated at all."""
        return cls(
            enabled=False,
            min_pass_condition_container=1,
            containers=(),
            on_pass=on_pass,
        )


@dataclass(frozen=True)
class StrategyLogicConfig:
    """The compiled artifact: four independent branches."""
    entry_long: StrategyLogicBranchConfig
    entry_short: StrategyLogicBranchConfig
    exit_long: StrategyLogicBranchConfig
    exit_short: StrategyLogicBranchConfig

    def branch(self, slot: str) -> StrategyLogicBranchConfig:
        """Get a branch by slot name ("entry.long")."""
        phase, _, side = str(getattr(slot, "value", slot)).partition(".")
        if (phase, side) not in BRANCH_PATHS:
            raise KeyError(slot)
        return getattr(self, f"{phase}_{side}")

    def items(self) -> Iterator[Tuple[str, StrategyLogicBranchConfig]]:
        """Yield (slot name, branch) in entry.long, entry.short, exit.long, exit.short order."""
        for phase, side in BRANCH_PATHS:
            yield f"{phase}.{side}", getattr(self, f"{phase}_{side}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry": {"long": self.entry_long.to_dict(), "short": self.entry_short.to_dict()},
            "exit": {"long": self.exit_long.to_dict(), "short": self.exit_short.to_dict()},
        }

    @classmethod
    def from_dict(cls, data: Any) -> "StrategyLogicConfig":
        """
        Parse a compiled document.

        A missing branch reads as a disabled branch with the slot's default action.

        Raises:
            ConfigFormatError: If the document has the wrong shape
        """
        data = _expect_dict(data, "StrategyLogicConfig")
        default_actions = {
            ("entry", "long"): "Long",
            ("entry", "short"): "Short",
            ("exit", "long"): "CloseLong",
            ("exit", "short"): "CloseShort",
        }
        branches: Dict[str, StrategyLogicBranchConfig] = {}
        for phase, side in BRANCH_PATHS:
            phase_data = _expect_dict(data.get(phase) or {}, phase)
            raw = phase_data.get(side)
            if raw is None:
                branch = StrategyLogicBranchConfig.disabled(
                    make_trade_action(default_actions[(phase, side)])
                )
            else:
                branch = StrategyLogicBranchConfig.from_dict(raw)
            branches[f"{phase}_{side}"] = branch
        return cls(**branches)
