"""
Tests for the reference evaluator.

Validates that:
1. Comparators, crosses and ranges read the right bars
2. Missing or non-numeric values fail the condition with a reason code
3. Group/container/branch levels follow the quorum rule of the compiled config
4. Disabled branches are not evaluated; passing branches report their actions
"""

import math

import pytest

from src.strategy_logic.compiler import compile_group, compile_logic
from src.strategy_logic.evaluate import (
    LogicEvaluator,
    MappingSnapshot,
    ReasonCode,
    run_action_set,
)
from src.strategy_logic.logic_config import ActionSetConfig, MethodConfig, make_trade_action
from src.strategy_logic.model import (
    BranchSlot,
    ConditionContainer,
    ConditionGroup,
    ConditionItem,
    LogicBranch,
    StrategyLogicTree,
)
from src.strategy_logic.operators import apply_method, eval_cross_up, eval_eq
from src.strategy_logic.registry import get_method_spec
from src.strategy_logic.value_refs import ValueRef

RSI = ValueRef("RSI", "1h", "Close", (14,))
FAST = ValueRef("EMA", "1h", "Close", (9,))
SLOW = ValueRef("EMA", "1h", "Close", (21,))


def _evaluator(**series):
    """Build an evaluator from name -> values using the module refs."""
    refs = {"rsi": RSI, "fast": FAST, "slow": SLOW}
    return LogicEvaluator(MappingSnapshot.from_refs({refs[k]: v for k, v in series.items()}))


class TestOperators:
    def test_equal_tolerance(self):
        assert eval_eq(0.1 + 0.2, 0.3)

    def test_cross_up_needs_touch_then_break(self):
        assert eval_cross_up(1.0, 2.0, 3.0, 2.0)
        assert eval_cross_up(2.0, 2.0, 3.0, 2.0)
        assert not eval_cross_up(3.0, 2.0, 4.0, 2.0)

    def test_between_bounds_any_order(self):
        spec = get_method_spec("Between")
        assert apply_method(spec, [5.0, 10.0, 1.0])
        assert not apply_method(get_method_spec("Outside"), [5.0, 1.0, 10.0])

    def test_arity_mismatch(self):
        with pytest.raises(ValueError, match="expects 2 operands"):
            apply_method(get_method_spec("GreaterThan"), [1.0])

    def test_aliases(self):
        assert get_method_spec("crossover").name == "CrossUp"
        assert get_method_spec("CrossUnder").name == "CrossDown"


class TestConditions:
    def test_comparison_reads_current_bar(self):
        evaluator = _evaluator(rsi=[25.0, 40.0])
        result = evaluator.evaluate_condition(MethodConfig("LessThan", (RSI, 30.0)))
        assert result.ok
        assert result.reason == ReasonCode.OK

    def test_offset_reads_older_bar(self):
        evaluator = _evaluator(rsi=[25.0, 40.0])
        result = evaluator.evaluate_condition(MethodConfig("LessThan", (RSI.with_offset(1), 30.0)))
        assert not result.ok
        assert result.reason == ReasonCode.CONDITION_FAILED

    def test_const_ref_literal(self):
        evaluator = _evaluator(rsi=[75.0])
        assert evaluator.evaluate_condition(MethodConfig("GreaterThan", (RSI, ValueRef.const(70, "1h")))).ok

    def test_cross_uses_previous_bar(self):
        evaluator = _evaluator(fast=[10.5, 9.5], slow=[10.0, 10.0])
        assert evaluator.evaluate_condition(MethodConfig("CrossUp", (FAST, SLOW))).ok
        assert not evaluator.evaluate_condition(MethodConfig("CrossDown", (FAST, SLOW))).ok

    def test_cross_without_history(self):
        evaluator = _evaluator(fast=[10.5], slow=[10.0])
        result = evaluator.evaluate_condition(MethodConfig("CrossUp", (FAST, SLOW)))
        assert not result.ok
        assert result.reason == ReasonCode.MISSING_PREV_VALUE

    def test_missing_and_nan_values(self):
        evaluator = _evaluator(rsi=[math.nan])
        assert evaluator.evaluate_condition(MethodConfig("LessThan", (RSI, 30.0))).reason == ReasonCode.MISSING_VALUE
        result = evaluator.evaluate_condition(MethodConfig("LessThan", (FAST, 30.0)))
        assert result.reason == ReasonCode.MISSING_VALUE

    def test_unknown_method_and_arity(self):
        evaluator = _evaluator(rsi=[25.0])
        assert evaluator.evaluate_condition(MethodConfig("Approx", (RSI, 1.0))).reason == ReasonCode.UNKNOWN_METHOD
        assert evaluator.evaluate_condition(MethodConfig("MakeTrade", ("Long",))).reason == ReasonCode.UNKNOWN_METHOD
        assert evaluator.evaluate_condition(MethodConfig("Between", (RSI, 1.0))).reason == ReasonCode.BAD_ARITY

    def test_non_numeric_literal(self):
        evaluator = _evaluator(rsi=[25.0])
        result = evaluator.evaluate_condition(MethodConfig("LessThan", (RSI, "abc")))
        assert result.reason == ReasonCode.INVALID_OPERAND

    def test_non_numeric_series_values(self):
        # Bad previous bar on a cross method
        evaluator = _evaluator(rsi=[31.0, "n/a"])
        result = evaluator.evaluate_condition(MethodConfig("CrossUp", (RSI, 30.0)))
        assert not result.ok
        assert result.reason == ReasonCode.INVALID_OPERAND

        # Structured values on the current bar
        for raw in ({"v": 1}, [25.0]):
            evaluator = _evaluator(rsi=[raw])
            result = evaluator.evaluate_condition(MethodConfig("LessThan", (RSI, 30.0)))
            assert not result.ok
            assert result.reason == ReasonCode.INVALID_OPERAND


class TestLevels:
    def test_literal_document_passes_iff_both_pass(self):
        group = compile_group(ConditionGroup("g1", conditions=(
            ConditionItem("c1", "LessThan", RSI, 30, required=True),
            ConditionItem("c2", "GreaterThan", FAST, SLOW, required=True),
        ), min_pass_conditions=0))
        assert _evaluator(rsi=[25.0], fast=[11.0], slow=[10.0]).evaluate_group(group).passed
        assert not _evaluator(rsi=[35.0], fast=[11.0], slow=[10.0]).evaluate_group(group).passed
        assert not _evaluator(rsi=[25.0], fast=[9.0], slow=[10.0]).evaluate_group(group).passed

    def test_empty_group_never_passes(self):
        group = compile_group(ConditionGroup("g1"))
        assert group.min_pass_conditions == 1
        assert not _evaluator().evaluate_group(group).passed

    def _tree(self, enabled=True):
        group = ConditionGroup("g1", conditions=(ConditionItem("c1", "LessThan", RSI, 30),))
        branch = LogicBranch(
            BranchSlot.ENTRY_LONG,
            containers=(ConditionContainer("open-long", groups=(group,)),),
            enabled=enabled,
        )
        return StrategyLogicTree.empty().with_branch(branch)

    def test_branch_pass_reports_actions(self):
        results = _evaluator(rsi=[25.0]).evaluate_logic(compile_logic(self._tree()))
        assert list(results) == ["entry.long", "entry.short", "exit.long", "exit.short"]
        entry = results["entry.long"]
        assert entry.evaluated and entry.passed
        assert [a.args for a in entry.actions] == [("Long",)]
        assert entry.containers[0].passed
        # Empty default containers never pass
        assert not results["entry.short"].passed

    def test_branch_fail_has_no_actions(self):
        entry = _evaluator(rsi=[45.0]).evaluate_logic(compile_logic(self._tree()))["entry.long"]
        assert not entry.passed
        assert entry.actions == ()

    def test_disabled_branch_not_evaluated(self):
        entry = _evaluator(rsi=[25.0]).evaluate_logic(compile_logic(self._tree(enabled=False)))["entry.long"]
        assert not entry.evaluated
        assert not entry.passed
        assert entry.quorum is None


class TestActionSets:
    def test_runs_enabled_actions(self):
        ran = []

        def run(action):
            ran.append(action.args[0])
            return True

        result = run_action_set(make_trade_action("Short"), run)
        assert result.passed
        assert ran == ["Short"]

    def test_disabled_action_set_does_not_pass(self):
        action_set = ActionSetConfig(conditions=make_trade_action("Long").conditions, enabled=False)
        result = run_action_set(action_set, lambda a: True)
        assert not result.passed
