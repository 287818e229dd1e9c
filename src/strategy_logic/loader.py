"""
File loading for strategy drafts, compiled configs and indicator selections.

Drafts are the editable tree written by hand (YAML or JSON):

    name: RSI dip
    indicators:
      - {id: rsi, code: RSI, timeframe: 1h, input: Close, params: [14]}
    logic:
      entry.long:
        min_pass: 1
        containers:
          - id: open-long
            groups:
              - id: oversold
                conditions:
                  - {id: c1, method: LessThan, left: rsi, right: 30, required: true}

Operands may be written as:
    30 / "30"                        literal
    rsi / rsi.Signal                 selected indicator id (optionally .output)
    CLOSE                            kline field
    {indicator: rsi, output: Value, offset: 1}
    {field: CLOSE, timeframe: 1h, offset: 1}
    {refType: Indicator, ...}        full wire ValueRef
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..config.constants import is_kline_field
from .errors import ConfigFormatError
from .indicators import IndicatorSelection
from .logic_config import ActionSetConfig, StrategyLogicConfig
from .model import (
    BranchSlot,
    ConditionContainer,
    ConditionGroup,
    ConditionItem,
    LogicBranch,
    StrategyLogicTree,
)
from .trade_config import StrategyTradeConfig, merge_trade_config
from .value_refs import Operand, ValueRef


# =============================================================================
# Raw documents
# =============================================================================

def read_document(path: Union[str, Path]) -> Any:
    """
    Read a YAML or JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigFormatError: If the file is empty or cannot be parsed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    try:
        if path.suffix.lower() == ".json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigFormatError(f"Cannot parse {path}: {e}") from e
    if raw is None:
        raise ConfigFormatError(f"Empty document in {path}")
    return raw


def dump_yaml(data: Any) -> str:
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


# =============================================================================
# Operands
# =============================================================================

def _offset(raw: Any) -> tuple:
    if raw is None:
        return (0, 0)
    if isinstance(raw, int) and not isinstance(raw, bool):
        return (raw, raw)
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        return (int(raw[0]), int(raw[1]))
    raise ConfigFormatError(f"offset must be an integer or [min, max], got {raw!r}")


def _indicator_operand(
    indicator_id: str,
    output: Optional[str],
    offset: Any,
    selection: IndicatorSelection,
    where: str,
) -> ValueRef:
    indicator = selection.get(indicator_id)
    if indicator is None:
        raise ConfigFormatError(f"{where}: unknown indicator id '{indicator_id}'")
    ref = indicator.ref(output)
    if offset is not None:
        ref = ref.with_offset(*_offset(offset))
    return ref


def parse_operand(raw: Any, selection: IndicatorSelection, where: str = "operand") -> Operand:
    """
    Parse a draft operand.

    Raises:
        ConfigFormatError: If the operand cannot be interpreted
    """
    if isinstance(raw, bool):
        raise ConfigFormatError(f"{where}: booleans are not valid operands")
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        text = raw.strip()
        try:
            return float(text)
        except ValueError:
            pass
        indicator_id, _, output = text.partition(".")
        if indicator_id in selection:
            return _indicator_operand(indicator_id, output or None, None, selection, where)
        if is_kline_field(text):
            return ValueRef.field(text)
        raise ConfigFormatError(
            f"{where}: '{raw}' is not a number, selected indicator id or kline field"
        )
    if isinstance(raw, dict):
        if "refType" in raw:
            return ValueRef.from_dict(raw)
        try:
            if "indicator" in raw:
                return _indicator_operand(
                    str(raw["indicator"]), raw.get("output"), raw.get("offset"), selection, where
                )
            if "field" in raw:
                low, high = _offset(raw.get("offset"))
                return ValueRef.field(str(raw["field"]), str(raw.get("timeframe") or "")).with_offset(low, high)
        except ConfigFormatError:
            raise
        except ValueError as e:
            raise ConfigFormatError(f"{where}: {e}") from e
    raise ConfigFormatError(f"{where}: unsupported operand {raw!r}")


def operand_to_draft(operand: Operand, selection: IndicatorSelection) -> Any:
    """Inverse of parse_operand, preferring the short forms."""
    if not isinstance(operand, ValueRef):
        return operand
    offset = None
    if operand.offset_range != (0, 0):
        low, high = operand.offset_range
        offset = low if low == high else [low, high]
    if operand.is_field:
        data: Dict[str, Any] = {"field": operand.input_channel}
        if operand.timeframe:
            data["timeframe"] = operand.timeframe
        if offset is not None:
            data["offset"] = offset
        return data
    indicator = selection.find(operand)
    if indicator is None or operand.aggregation != indicator.aggregation:
        return operand.to_dict()
    data = {"indicator": indicator.id, "output": operand.output_channel}
    if operand.offset_range != indicator.offset_range:
        data["offset"] = offset if offset is not None else 0
    return data


# =============================================================================
# Tree
# =============================================================================

def _bool(data: Dict[str, Any], key: str, default: bool, where: str) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigFormatError(f"{where}: '{key}' must be true or false, got {value!r}")
    return value


def _int(data: Dict[str, Any], key: str, default: int, where: str) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigFormatError(f"{where}: '{key}' must be an integer, got {value!r}")
    return value


def _condition_from_dict(data: Any, selection: IndicatorSelection, where: str) -> ConditionItem:
    if not isinstance(data, dict):
        raise ConfigFormatError(f"{where}: condition must be an object")
    for key in ("id", "method", "left", "right"):
        if key not in data:
            raise ConfigFormatError(f"{where}: condition is missing '{key}'")
    where = f"{where}/{data['id']}"
    left = parse_operand(data["left"], selection, f"{where}:left")
    if not isinstance(left, ValueRef):
        left = ValueRef.const(left)
    upper = data.get("upper")
    try:
        return ConditionItem(
            id=str(data["id"]),
            method=str(data["method"]),
            left=left,
            right=parse_operand(data["right"], selection, f"{where}:right"),
            upper=None if upper is None else parse_operand(upper, selection, f"{where}:upper"),
            enabled=_bool(data, "enabled", True, where),
            required=_bool(data, "required", False, where),
        )
    except ConfigFormatError:
        raise
    except (TypeError, ValueError) as e:
        raise ConfigFormatError(f"{where}: {e}") from e


def _group_from_dict(data: Any, selection: IndicatorSelection, where: str) -> ConditionGroup:
    if not isinstance(data, dict) or "id" not in data:
        raise ConfigFormatError(f"{where}: group must be an object with an 'id'")
    where = f"{where}/{data['id']}"
    try:
        return ConditionGroup(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            conditions=tuple(
                _condition_from_dict(c, selection, where) for c in data.get("conditions") or []
            ),
            enabled=_bool(data, "enabled", True, where),
            required=_bool(data, "required", False, where),
            min_pass_conditions=_int(data, "min_pass", 1, where),
        )
    except ConfigFormatError:
        raise
    except ValueError as e:
        raise ConfigFormatError(f"{where}: {e}") from e


def _container_from_dict(data: Any, selection: IndicatorSelection, where: str) -> ConditionContainer:
    if not isinstance(data, dict) or "id" not in data:
        raise ConfigFormatError(f"{where}: container must be an object with an 'id'")
    where = f"{where}/{data['id']}"
    try:
        return ConditionContainer(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            groups=tuple(_group_from_dict(g, selection, where) for g in data.get("groups") or []),
            enabled=_bool(data, "enabled", True, where),
            required=_bool(data, "required", False, where),
            min_pass_groups=_int(data, "min_pass", 1, where),
        )
    except ConfigFormatError:
        raise
    except ValueError as e:
        raise ConfigFormatError(f"{where}: {e}") from e


def tree_from_dict(data: Any, selection: IndicatorSelection) -> StrategyLogicTree:
    """
    Build a tree from the draft `logic` mapping (slot -> branch).

    Slots not mentioned keep the new-strategy default (one empty container).
    """
    if not isinstance(data, dict):
        raise ConfigFormatError("logic must be a mapping of branch slot -> branch")
    tree = StrategyLogicTree.empty()
    for raw_slot, branch_data in data.items():
        try:
            slot = BranchSlot.parse(raw_slot)
        except ValueError as e:
            raise ConfigFormatError(str(e)) from e
        branch_data = branch_data or {}
        if not isinstance(branch_data, dict):
            raise ConfigFormatError(f"{slot.value}: branch must be an object")
        on_pass = branch_data.get("on_pass")
        try:
            branch = LogicBranch(
                slot=slot,
                containers=tuple(
                    _container_from_dict(c, selection, slot.value)
                    for c in branch_data.get("containers") or []
                ),
                enabled=_bool(branch_data, "enabled", True, slot.value),
                min_pass_containers=_int(branch_data, "min_pass", 1, slot.value),
                on_pass=ActionSetConfig.from_dict(on_pass) if on_pass is not None else None,
            )
        except ConfigFormatError:
            raise
        except ValueError as e:
            raise ConfigFormatError(f"{slot.value}: {e}") from e
        tree = tree.with_branch(branch)
    return tree


def tree_to_dict(tree: StrategyLogicTree, selection: IndicatorSelection) -> Dict[str, Any]:
    """Draft `logic` mapping for a tree."""
    logic: Dict[str, Any] = {}
    for branch in tree.branches:
        containers = []
        for container in branch.containers:
            groups = []
            for group in container.groups:
                conditions = []
                for c in group.conditions:
                    item: Dict[str, Any] = {
                        "id": c.id,
                        "method": c.method,
                        "left": operand_to_draft(c.left, selection),
                        "right": operand_to_draft(c.right, selection),
                    }
                    if c.upper is not None:
                        item["upper"] = operand_to_draft(c.upper, selection)
                    item["enabled"] = c.enabled
                    item["required"] = c.required
                    conditions.append(item)
                groups.append({
                    "id": group.id,
                    "name": group.name,
                    "enabled": group.enabled,
                    "required": group.required,
                    "min_pass": group.min_pass_conditions,
                    "conditions": conditions,
                })
            containers.append({
                "id": container.id,
                "title": container.title,
                "enabled": container.enabled,
                "required": container.required,
                "min_pass": container.min_pass_groups,
                "groups": groups,
            })
        logic[branch.slot.value] = {
            "enabled": branch.enabled,
            "min_pass": branch.min_pass_containers,
            "containers": containers,
            "on_pass": branch.on_pass.to_dict(),
        }
    return logic


# =============================================================================
# Drafts and configs
# =============================================================================

@dataclass
class StrategyDraft:
    """A hand-authored strategy: metadata, selection, tree and trade settings."""
    name: str = ""
    description: str = ""
    selection: IndicatorSelection = field(default_factory=IndicatorSelection)
    tree: StrategyLogicTree = field(default_factory=StrategyLogicTree.empty)
    trade: Optional[StrategyTradeConfig] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "indicators": [_indicator_to_draft(i) for i in self.selection.to_list()],
        }
        if self.trade is not None:
            data["trade"] = self.trade.to_dict()
        data["logic"] = tree_to_dict(self.tree, self.selection)
        return data


def _indicator_to_draft(entry: Dict[str, Any]) -> Dict[str, Any]:
    config = entry["config"]
    return {
        "id": entry["id"],
        "code": entry["code"],
        "timeframe": config["timeframe"],
        "input": config["input"],
        "params": config["params"],
        "outputs": entry["outputs"],
        "offsetRange": config["offsetRange"],
        "calcMode": config["calcMode"],
    }


def draft_from_dict(data: Any) -> StrategyDraft:
    """
    Parse a draft document.

    Raises:
        ConfigFormatError: If the document is malformed
    """
    if not isinstance(data, dict):
        raise ConfigFormatError(f"Draft must be an object, got {type(data).__name__}")
    raw_indicators = data.get("indicators") or []
    if not isinstance(raw_indicators, list):
        raise ConfigFormatError("'indicators' must be a list")
    selection = IndicatorSelection.from_list(raw_indicators)
    trade = data.get("trade")
    return StrategyDraft(
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        selection=selection,
        tree=tree_from_dict(data.get("logic") or {}, selection),
        trade=merge_trade_config(trade) if trade is not None else None,
    )


def load_draft(path: Union[str, Path]) -> StrategyDraft:
    """Load a draft from a YAML or JSON file."""
    return draft_from_dict(read_document(path))


def load_indicators(path: Union[str, Path]) -> IndicatorSelection:
    """Load a selection: a list of indicators or {"indicators": [...]}."""
    raw = read_document(path)
    if isinstance(raw, dict):
        raw = raw.get("indicators")
    if not isinstance(raw, list):
        raise ConfigFormatError(f"{path}: expected a list of indicators")
    return IndicatorSelection.from_list(raw)


def logic_section(raw: Any) -> Any:
    """
    Find the logic config inside a document.

    Accepts a bare logic config, a strategy config ({"trade", "logic"}), or a
    create/update payload ({"configJson": {...}}).
    """
    if isinstance(raw, dict):
        if isinstance(raw.get("configJson"), dict):
            raw = raw["configJson"]
        if isinstance(raw.get("logic"), dict):
            return raw["logic"]
    return raw


def load_logic_config(path: Union[str, Path]) -> StrategyLogicConfig:
    """Load a compiled logic config from any of the shapes logic_section() accepts."""
    return StrategyLogicConfig.from_dict(logic_section(read_document(path)))

