"""
Tests for reference resolution and the indicator selection.

Validates that:
1. Const and known Field refs always resolve
2. Indicator refs resolve only against a selected indicator declaring the output
3. Usages and dangling operands carry their tree path
4. A selection can be rebuilt from a compiled config
"""

import pytest

from src.strategy_logic.compiler import compile_logic
from src.strategy_logic.errors import DanglingReferenceError, DuplicateIndicatorError
from src.strategy_logic.indicators import IndicatorSelection, SelectedIndicator
from src.strategy_logic.model import (
    BranchSlot,
    ConditionContainer,
    ConditionGroup,
    ConditionItem,
    LogicBranch,
    StrategyLogicTree,
)
from src.strategy_logic.resolve import (
    DanglingReason,
    DanglingReference,
    ResolvedRef,
    dangling_references,
    extract_indicators,
    indicator_usages,
    resolve_or_raise,
    resolve_value_ref,
    unused_indicators,
)
from src.strategy_logic.value_refs import ValueRef


def _tree(*conditions, group_enabled=True):
    group = ConditionGroup("g1", conditions=conditions, enabled=group_enabled)
    branch = LogicBranch(BranchSlot.ENTRY_LONG, containers=(ConditionContainer("open-long", groups=(group,)),))
    return StrategyLogicTree.empty().with_branch(branch)


class TestResolveValueRef:
    def test_const_always_resolves(self):
        result = resolve_value_ref(ValueRef.const(30), IndicatorSelection())
        assert isinstance(result, ResolvedRef)

    def test_known_field_resolves(self):
        result = resolve_value_ref(ValueRef.field("hl2"), IndicatorSelection())
        assert isinstance(result, ResolvedRef)
        assert result.output_hint == "HL2"

    def test_unknown_field_dangles(self):
        result = resolve_value_ref(ValueRef.field("VWAP"), IndicatorSelection())
        assert isinstance(result, DanglingReference)
        assert result.reason == DanglingReason.UNKNOWN_FIELD

    def test_selected_indicator_resolves(self, selection, macd):
        result = resolve_value_ref(macd.ref("Signal"), selection)
        assert isinstance(result, ResolvedRef)
        assert result.indicator == macd
        assert result.output_hint == "Signal"

    def test_unselected_indicator_dangles(self, rsi):
        result = resolve_value_ref(ValueRef("CCI", "1h", "Close", (20,)), IndicatorSelection((rsi,)))
        assert isinstance(result, DanglingReference)
        assert result.reason == DanglingReason.INDICATOR_NOT_SELECTED

    def test_undeclared_output_dangles(self, selection, rsi):
        result = resolve_value_ref(rsi.ref("Signal"), selection)
        assert isinstance(result, DanglingReference)
        assert result.reason == DanglingReason.OUTPUT_NOT_DECLARED
        assert "Allowed: Value" in result.message

    def test_timeframe_spelling_still_resolves(self, rsi):
        ref = ValueRef("RSI", "H1", "Close", (14,))
        assert isinstance(resolve_value_ref(ref, IndicatorSelection((rsi,))), ResolvedRef)

    def test_resolve_or_raise(self, rsi):
        with pytest.raises(DanglingReferenceError):
            resolve_or_raise(ValueRef("CCI", "1h", "Close", (20,)), IndicatorSelection((rsi,)))


class TestTreeQueries:
    def test_dangling_paths(self, rsi, macd):
        tree = _tree(
            ConditionItem("c1", "LessThan", rsi.ref(), 30),
            ConditionItem("c2", "CrossUp", macd.ref(), macd.ref("Signal")),
        )
        found = dangling_references(tree, IndicatorSelection((rsi,)))
        assert [str(d.path) for d in found] == [
            "entry.long/open-long/g1/c2:left",
            "entry.long/open-long/g1/c2:right",
        ]

    def test_disabled_conditions_are_not_dangling_by_default(self, rsi, macd):
        tree = _tree(ConditionItem("c1", "LessThan", macd.ref(), 0, enabled=False))
        selection = IndicatorSelection((rsi,))
        assert dangling_references(tree, selection) == ()
        assert len(dangling_references(tree, selection, enabled_only=False)) == 1

    def test_unused_indicators(self, selection, rsi, macd, ema):
        tree = _tree(ConditionItem("c1", "GreaterThan", macd.ref("Histogram"), 0))
        assert unused_indicators(tree, selection) == (rsi, ema)

    def test_indicator_usages_include_disabled(self, rsi):
        tree = _tree(
            ConditionItem("c1", "LessThan", rsi.ref(), 30),
            ConditionItem("c2", "GreaterThan", rsi.ref(), 70, enabled=False),
        )
        usages = indicator_usages(tree, rsi)
        assert [(str(u.path), u.active) for u in usages] == [
            ("entry.long/open-long/g1/c1:left", True),
            ("entry.long/open-long/g1/c2:left", False),
        ]


class TestExtractIndicators:
    def test_merges_outputs_per_instance(self, rsi, macd):
        tree = _tree(
            ConditionItem("c1", "CrossUp", macd.ref(), macd.ref("Signal")),
            ConditionItem("c2", "LessThan", rsi.ref(), 30),
            ConditionItem("c3", "GreaterThan", ValueRef.field("CLOSE"), 100),
        )
        extracted = extract_indicators(compile_logic(tree))
        assert [i.id for i in extracted] == ["loaded-1", "loaded-2"]
        assert extracted.get("loaded-1").code == "MACD"
        assert extracted.get("loaded-1").output_keys == ("Value", "Signal")
        assert extracted.get("loaded-2").indicator_key == rsi.indicator_key
        assert dangling_references(tree, extracted) == ()


class TestIndicatorSelection:
    def test_add_puts_newest_first(self, rsi, macd):
        selection = IndicatorSelection((rsi,)).add(macd)
        assert [i.id for i in selection] == ["macd", "rsi"]

    def test_duplicate_signature_rejected(self, rsi):
        copy = SelectedIndicator(id="rsi-2", code="RSI", timeframe="1H", input_channel="Close", params=(14,))
        with pytest.raises(DuplicateIndicatorError):
            IndicatorSelection((rsi,)).add(copy)

    def test_duplicate_ids_rejected(self, rsi):
        with pytest.raises(ValueError, match="duplicate indicator id"):
            IndicatorSelection((rsi, rsi))

    def test_round_trip(self, selection):
        assert IndicatorSelection.from_list(selection.to_list()) == selection

    def test_flat_entry(self):
        indicator = SelectedIndicator.from_dict({
            "id": "bb", "code": "BOLL", "timeframe": "15m", "input": "Close",
            "params": [20, 2], "outputs": ["Upper", "Middle", "Lower"],
        })
        assert indicator.default_output == "Upper"
        assert indicator.params == (20.0, 2.0)
        assert indicator.label == "BOLL 15m 20,2 Close"
