"""
Tests for condition previews, summaries and canonical JSON.

Validates that:
1. Labels follow "<code> <tf> (<params>) <output hint>" with offset suffixes
2. Previews never raise, even for dangling or missing operands
3. Summaries skip empty groups/containers and mark disabled/required nodes
4. build_logic_json is stable for equal configs
"""

import json

from src.strategy_logic.compiler import compile_logic
from src.strategy_logic.indicators import IndicatorSelection
from src.strategy_logic.logic_config import MethodConfig
from src.strategy_logic.model import (
    BranchSlot,
    ConditionContainer,
    ConditionGroup,
    ConditionItem,
    LogicBranch,
    StrategyLogicTree,
)
from src.strategy_logic.preview import (
    NOT_CONFIGURED,
    build_condition_preview,
    build_logic_json,
    build_logic_summary,
    format_value_ref_label,
    render_summary_text,
    used_indicator_labels,
)
from src.strategy_logic.value_refs import ValueRef


class TestLabels:
    def test_indicator_label(self, rsi, selection):
        assert format_value_ref_label(rsi.ref(), selection) == "RSI 1h (14) RSI"

    def test_indicator_label_without_selection(self, rsi):
        assert format_value_ref_label(rsi.ref()) == "RSI 1h (14) Value"

    def test_field_and_const(self):
        assert format_value_ref_label(ValueRef.field("close", "M15")) == "CLOSE 15m"
        assert format_value_ref_label(ValueRef.const(30)) == "30"
        assert format_value_ref_label(None) == NOT_CONFIGURED

    def test_offset_suffix(self, rsi):
        assert format_value_ref_label(rsi.ref().with_offset(1)) == "RSI 1h (14) Value[1]"
        assert format_value_ref_label(ValueRef.field("CLOSE").with_offset(1, 3)) == "CLOSE[1..3]"


class TestConditionPreview:
    def test_long_and_short_labels(self, rsi, selection):
        condition = ConditionItem("c1", "LessThan", rsi.ref(), 30)
        assert build_condition_preview(condition, selection) == "RSI 1h (14) RSI less than (<) 30"
        assert build_condition_preview(condition, selection, short=True) == "RSI 1h (14) RSI < 30"

    def test_range(self, rsi):
        condition = ConditionItem("c1", "Between", rsi.ref(), 20, upper=40.5)
        assert build_condition_preview(condition, short=True) == "RSI 1h (14) Value between 20 and 40.5"

    def test_compiled_method_config(self, rsi):
        config = MethodConfig("GreaterThan", (rsi.ref(), ValueRef.const(70, "1h")))
        assert build_condition_preview(config, short=True) == "RSI 1h (14) Value > 70"

    def test_dangling_falls_back_to_series_key(self, rsi):
        ref = ValueRef("CCI", "1h", "Close", (20,))
        condition = ConditionItem("c1", "CrossUp", ref, 100)
        preview = build_condition_preview(condition, IndicatorSelection((rsi,)))
        assert preview == "CCI|1h|Close|Value|20 crosses above 100"

    def test_missing_pieces(self, rsi):
        assert build_condition_preview(None) == "no condition configured"
        config = MethodConfig("Between", (rsi.ref(), 10))
        assert build_condition_preview(config, short=True).endswith(f"and {NOT_CONFIGURED}")
        assert build_condition_preview(MethodConfig("Mystery", ())) == f"{NOT_CONFIGURED} Mystery {NOT_CONFIGURED}"


class TestSummary:
    def _tree(self, rsi, macd):
        groups = (
            ConditionGroup("g1", name="Momentum", conditions=(
                ConditionItem("c1", "LessThan", rsi.ref(), 30, required=True),
                ConditionItem("c2", "CrossUp", macd.ref(), macd.ref("Signal"), enabled=False),
            ), required=True),
            ConditionGroup("g2"),
        )
        long_branch = LogicBranch(
            BranchSlot.ENTRY_LONG,
            containers=(ConditionContainer("open-long", title="Open long", groups=groups),),
        )
        exit_branch = LogicBranch(
            BranchSlot.EXIT_LONG,
            containers=(ConditionContainer("close-long", groups=(
                ConditionGroup("g1", conditions=(ConditionItem("c1", "GreaterThan", rsi.ref(), 70),)),
            )),),
            enabled=False,
        )
        return StrategyLogicTree.empty().with_branch(long_branch).with_branch(exit_branch)

    def test_sections(self, rsi, macd, selection):
        sections = build_logic_summary(self._tree(rsi, macd), selection)
        assert [s.container_id for s in sections] == ["open-long", "close-long"]

        entry = sections[0]
        assert entry.title == "Open long (entry.long), 1 group"
        assert entry.enabled
        assert len(entry.groups) == 1
        assert entry.groups[0].title == "Momentum (required)"
        assert entry.groups[0].lines == (
            "RSI 1h (14) RSI < 30 (required)",
            "MACD 4h (12,26,9) MACD crosses above MACD 4h (12,26,9) Signal (disabled)",
        )

        exit_section = sections[1]
        assert exit_section.title == "Close long (exit.long), 1 group (disabled)"
        assert not exit_section.enabled

    def test_render_text(self, rsi, macd, selection):
        text = render_summary_text(build_logic_summary(self._tree(rsi, macd), selection))
        assert text.startswith("Open long (entry.long), 1 group\n  Momentum (required)\n    - RSI")
        assert render_summary_text([]) == "No conditions configured"

    def test_used_indicator_labels(self, rsi, macd, selection):
        assert used_indicator_labels(self._tree(rsi, macd), selection) == ("RSI 1h (14) RSI",)


class TestLogicJson:
    def test_sorted_and_stable(self, rsi):
        group = ConditionGroup("g1", conditions=(ConditionItem("c1", "LessThan", rsi.ref(), 30),))
        branch = LogicBranch(BranchSlot.ENTRY_LONG, containers=(ConditionContainer("open-long", groups=(group,)),))
        config = compile_logic(StrategyLogicTree.empty().with_branch(branch))
        text = build_logic_json(config)
        assert text == build_logic_json(compile_logic(StrategyLogicTree.empty().with_branch(branch)))
        assert json.loads(text) == config.to_dict()
        assert list(json.loads(text)) == ["entry", "exit"]

    def test_compact(self, rsi):
        config = compile_logic(StrategyLogicTree.empty())
        compact = build_logic_json(config, compact=True)
        assert "\n" not in compact
        assert ": " not in compact
        assert json.loads(compact) == config.to_dict()
