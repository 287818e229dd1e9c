"""
Tests for the quorum compiler and its inverse.

Validates that:
1. The compiled document has the engine's exact keys and nesting
2. Disabled nodes are omitted, thresholds clamped, empty levels never pass
3. Compilation is deterministic and decompile -> compile is stable
4. Diagnostics report clamps, empty levels and dangling references
"""

import json

import pytest

from src.strategy_logic.compiler import (
    compile_group,
    compile_logic,
    compile_strategy_logic,
    count_live_conditions,
    decompile_logic,
)
from src.strategy_logic.errors import ConfigFormatError, DiagnosticCode, Severity
from src.strategy_logic.indicators import IndicatorSelection
from src.strategy_logic.logic_config import StrategyLogicConfig
from src.strategy_logic.model import (
    BranchSlot,
    ConditionContainer,
    ConditionGroup,
    ConditionItem,
    LogicBranch,
    StrategyLogicTree,
)
from src.strategy_logic.resolve import used_outputs
from src.strategy_logic.value_refs import ValueRef


RSI = ValueRef("RSI", "1h", "Close", (14,))
EMA = ValueRef("EMA", "1h", "Close", (50,))
CLOSE = ValueRef.field("CLOSE", "1h")


def _tree(*groups, slot=BranchSlot.ENTRY_LONG, container_kwargs=None, branch_kwargs=None):
    """Tree whose `slot` branch holds one container with `groups`."""
    container = ConditionContainer(slot.container_id, groups=groups, **(container_kwargs or {}))
    branch = LogicBranch(slot, containers=(container,), **(branch_kwargs or {}))
    return StrategyLogicTree.empty().with_branch(branch)


class TestLiteralDocument:
    def test_two_required_conditions(self):
        group = ConditionGroup("g1", conditions=(
            ConditionItem("c1", "LessThan", RSI, 30, required=True),
            ConditionItem("c2", "GreaterThan", CLOSE, EMA, required=True),
        ), min_pass_conditions=0)
        compiled = compile_group(group)
        assert compiled.to_dict() == {
            "enabled": True,
            "minPassConditions": 0,
            "conditions": [
                {
                    "enabled": True,
                    "required": True,
                    "method": "LessThan",
                    "args": [
                        RSI.to_dict(),
                        {
                            "refType": "Const",
                            "indicator": "",
                            "timeframe": "1h",
                            "input": "30",
                            "params": [],
                            "output": "Value",
                            "offsetRange": [0, 0],
                            "calcMode": "OnBarClose",
                        },
                    ],
                },
                {
                    "enabled": True,
                    "required": True,
                    "method": "GreaterThan",
                    "args": [CLOSE.to_dict(), EMA.to_dict()],
                },
            ],
        }

    def test_full_config_shape(self):
        tree = _tree(ConditionGroup("g1", conditions=(ConditionItem("c1", "LessThan", RSI, 30),)))
        data = compile_logic(tree).to_dict()
        assert set(data) == {"entry", "exit"}
        assert set(data["entry"]) == {"long", "short"}
        branch = data["entry"]["long"]
        assert set(branch) == {"enabled", "minPassConditionContainer", "containers", "onPass"}
        assert set(branch["containers"][0]) == {"checks"}
        assert set(branch["containers"][0]["checks"]) == {"enabled", "minPassGroups", "groups"}
        assert branch["onPass"] == {
            "enabled": True,
            "minPassConditions": 1,
            "conditions": [
                {"enabled": True, "required": False, "method": "MakeTrade", "args": ["Long"]},
            ],
        }
        assert data["exit"]["short"]["onPass"]["conditions"][0]["args"] == ["CloseShort"]

    def test_required_key_is_sparse(self):
        tree = _tree(
            ConditionGroup("g1", conditions=(ConditionItem("c1", "LessThan", RSI, 30),), required=True),
            ConditionGroup("g2", conditions=(ConditionItem("c1", "GreaterThan", RSI, 70),)),
            container_kwargs={"required": True},
        )
        checks = compile_logic(tree).to_dict()["entry"]["long"]["containers"][0]["checks"]
        assert checks["required"] is True
        assert checks["groups"][0]["required"] is True
        assert "required" not in checks["groups"][1]


class TestQuorumCompile:
    def test_over_threshold_clamp(self):
        tree = _tree(ConditionGroup("g1", conditions=(
            ConditionItem("c1", "LessThan", RSI, 30),
            ConditionItem("c2", "GreaterThan", CLOSE, EMA),
        ), min_pass_conditions=5))
        result = compile_strategy_logic(tree)
        group = result.config.entry_long.containers[0].checks.groups[0]
        assert group.min_pass_conditions == 2
        clamps = result.by_code(DiagnosticCode.THRESHOLD_OUT_OF_RANGE)
        assert len(clamps) == 1
        assert clamps[0].severity == Severity.INFO
        assert clamps[0].details["authored"] == 5
        assert clamps[0].details["clamped"] == 2
        assert result.corrections == 1

    def test_clamp_is_idempotent(self):
        tree = _tree(ConditionGroup("g1", conditions=(
            ConditionItem("c1", "LessThan", RSI, 30),
            ConditionItem("c2", "GreaterThan", CLOSE, EMA),
        ), min_pass_conditions=5))
        first = compile_strategy_logic(tree).config
        second = compile_strategy_logic(tree).config
        assert first == second
        assert second.entry_long.containers[0].checks.groups[0].min_pass_conditions == 2

        # A clamped document compiles back to itself with nothing left to clamp
        again = compile_strategy_logic(decompile_logic(first))
        assert again.config == first
        assert again.config.entry_long.containers[0].checks.groups[0].min_pass_conditions == 2
        assert again.by_code(DiagnosticCode.THRESHOLD_OUT_OF_RANGE) == ()
        assert again.corrections == 0

    def test_disabled_nodes_are_omitted(self):
        tree = _tree(
            ConditionGroup("g1", conditions=(
                ConditionItem("c1", "LessThan", RSI, 30),
                ConditionItem("c2", "GreaterThan", RSI, 10, enabled=False, required=True),
            )),
            ConditionGroup("g2", conditions=(ConditionItem("c1", "LessThan", RSI, 20),), enabled=False),
        )
        config = compile_logic(tree)
        groups = config.entry_long.containers[0].checks.groups
        assert len(groups) == 1
        assert [c.method for c in groups[0].conditions] == ["LessThan"]
        assert all(c.enabled for c in groups[0].conditions)

    def test_empty_container_never_passes(self):
        tree = StrategyLogicTree.empty()
        result = compile_strategy_logic(tree)
        checks = result.config.entry_long.containers[0].checks
        assert checks.enabled
        assert checks.groups == ()
        assert checks.min_pass_groups == 1
        empties = result.by_code(DiagnosticCode.EMPTY_REQUIRED_FIELD)
        assert "entry.long/open-long" in [d.path for d in empties]

    def test_branch_with_only_disabled_containers(self):
        tree = _tree(
            ConditionGroup("g1", conditions=(ConditionItem("c1", "LessThan", RSI, 30),)),
            container_kwargs={"enabled": False},
        )
        branch = compile_logic(tree).entry_long
        assert branch.enabled
        assert branch.containers == ()
        assert branch.min_pass_condition_container == 1

    def test_disabled_branch(self):
        tree = _tree(
            ConditionGroup("g1", conditions=(ConditionItem("c1", "LessThan", RSI, 30),)),
            branch_kwargs={"enabled": False},
        )
        branch = compile_logic(tree).to_dict()["entry"]["long"]
        assert branch["enabled"] is False
        assert branch["containers"] == []
        assert branch["onPass"]["conditions"][0]["args"] == ["Long"]

    def test_child_order_is_preserved(self):
        tree = _tree(ConditionGroup("g1", conditions=(
            ConditionItem("c3", "LessThan", RSI, 30),
            ConditionItem("c1", "GreaterThan", RSI, 10),
            ConditionItem("c2", "Between", RSI, 20, upper=40),
        )))
        conditions = compile_logic(tree).entry_long.containers[0].checks.groups[0].conditions
        assert [c.method for c in conditions] == ["LessThan", "GreaterThan", "Between"]
        assert len(conditions[2].args) == 3

    def test_count_live_conditions(self):
        tree = _tree(ConditionGroup("g1", conditions=(
            ConditionItem("c1", "LessThan", RSI, 30),
            ConditionItem("c2", "GreaterThan", RSI, 10, enabled=False),
        )))
        assert count_live_conditions(compile_logic(tree)) == 1


class TestDeterminism:
    def _sample(self):
        return _tree(
            ConditionGroup("g1", name="Oversold", conditions=(
                ConditionItem("c1", "LessThan", RSI, 30, required=True),
                ConditionItem("c2", "CrossUp", CLOSE, EMA),
                ConditionItem("c3", "Between", RSI, 20, upper=40, enabled=False),
            ), min_pass_conditions=1),
            ConditionGroup("g2", conditions=(ConditionItem("c1", "GreaterThan", EMA, CLOSE),), required=True),
            container_kwargs={"min_pass_groups": 1},
        )

    def test_same_tree_same_json(self):
        a = json.dumps(compile_logic(self._sample()).to_dict(), sort_keys=True)
        b = json.dumps(compile_logic(self._sample()).to_dict(), sort_keys=True)
        assert a == b

    def test_decompile_then_compile_is_stable(self):
        config = compile_logic(self._sample())
        again = compile_logic(decompile_logic(config))
        assert again == config
        assert again.to_dict() == config.to_dict()

    def test_wire_round_trip(self):
        config = compile_logic(self._sample())
        assert StrategyLogicConfig.from_dict(json.loads(json.dumps(config.to_dict()))) == config

    def test_decompile_ids(self):
        tree = decompile_logic(compile_logic(self._sample()).to_dict())
        container = tree.entry_long.containers[0]
        assert container.id == "open-long"
        assert [g.id for g in container.groups] == ["open-long-group-1", "open-long-group-2"]
        assert container.groups[0].name == "Group 1"
        assert container.groups[0].conditions[0].id == "open-long-group-1-condition-1"
        assert container.groups[0].conditions[0].right == 30.0

    def test_decompile_rejects_short_args(self):
        data = compile_logic(self._sample()).to_dict()
        data["entry"]["long"]["containers"][0]["checks"]["groups"][0]["conditions"][0]["args"] = [RSI.to_dict()]
        with pytest.raises(ConfigFormatError, match="at least 2 args"):
            decompile_logic(data)


class TestDiagnostics:
    def test_used_outputs_is_enabled_reach_only(self):
        tree = _tree(
            ConditionGroup("g1", conditions=(
                ConditionItem("c1", "LessThan", RSI, 30),
                ConditionItem("c2", "GreaterThan", EMA, 10, enabled=False),
            )),
        )
        assert used_outputs(tree) == frozenset({RSI})

    def test_used_outputs_ignores_disabled_branch(self):
        tree = _tree(
            ConditionGroup("g1", conditions=(ConditionItem("c1", "LessThan", RSI, 30),)),
            branch_kwargs={"enabled": False},
        )
        assert used_outputs(tree) == frozenset()

    def test_dangling_and_unused(self, rsi, ema):
        macd_signal = ValueRef("MACD", "4h", "Close", (12, 26, 9), "Signal")
        tree = _tree(ConditionGroup("g1", conditions=(
            ConditionItem("c1", "LessThan", RSI, 30),
            ConditionItem("c2", "CrossUp", macd_signal, 0),
        )))
        result = compile_strategy_logic(tree, IndicatorSelection((rsi, ema)))
        dangling = result.by_code(DiagnosticCode.DANGLING_REFERENCE)
        assert [d.path for d in dangling] == ["entry.long/open-long/g1/c2:left"]
        assert result.has_dangling
        unused = result.by_code(DiagnosticCode.UNUSED_INDICATOR)
        assert [d.path for d in unused] == ["ema"]
        # Dangling refs are still compiled
        assert len(result.config.entry_long.containers[0].checks.groups[0].conditions) == 2

    def test_to_dict(self):
        result = compile_strategy_logic(StrategyLogicTree.empty())
        data = result.to_dict()
        assert set(data) == {"logic", "diagnostics"}
        assert all(d["code"] == "EMPTY_REQUIRED_FIELD" for d in data["diagnostics"])
        assert len(data["diagnostics"]) == 4
