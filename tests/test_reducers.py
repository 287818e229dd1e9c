"""
Tests for the pure tree edit operations.

Validates that:
1. Reducers never mutate their input tree
2. Editor limits raise EditLimitError
3. Required nodes move to the top of their collection
4. Indicator edits re-point references and fall back to the default output
"""

from dataclasses import replace

import pytest

from src.config.config import EditorLimitsConfig
from src.strategy_logic.errors import EditLimitError, NodeNotFoundError
from src.strategy_logic.indicators import IndicatorOutput, SelectedIndicator
from src.strategy_logic.model import BranchSlot, ConditionItem, StrategyLogicTree
from src.strategy_logic.reducers import (
    add_container,
    add_group,
    promote_to_top,
    remove_condition,
    remove_container,
    remove_group,
    retarget_indicator,
    save_condition,
    set_branch_enabled,
    set_min_pass,
    toggle_condition_flag,
    toggle_container_flag,
    toggle_group_flag,
)
from src.strategy_logic.value_refs import ValueRef

SLOT = BranchSlot.ENTRY_LONG
CID = "open-long"


@pytest.fixture
def tree():
    tree = StrategyLogicTree.empty()
    return add_group(tree, SLOT, CID)


def _condition(cid, method="LessThan", right=30, **kwargs):
    return ConditionItem(cid, method, ValueRef("RSI", "1h", "Close", (14,)), right, **kwargs)


class TestContainersAndGroups:
    def test_add_group_ids_and_names(self, tree):
        tree = add_group(tree, SLOT, CID)
        groups = tree.branch(SLOT).get(CID).groups
        assert [g.id for g in groups] == ["open-long-group-1", "open-long-group-2"]
        assert [g.name for g in groups] == ["Group 1", "Group 2"]

    def test_group_limit(self, tree):
        limits = EditorLimitsConfig(max_groups_per_container=2)
        tree = add_group(tree, SLOT, CID, limits=limits)
        with pytest.raises(EditLimitError) as exc:
            add_group(tree, SLOT, CID, limits=limits)
        assert exc.value.limit == 2

    def test_group_limit_from_env(self, tree, monkeypatch):
        from src.config.config import reset_config
        monkeypatch.setenv("MAX_GROUPS_PER_CONTAINER", "1")
        reset_config()
        with pytest.raises(EditLimitError):
            add_group(tree, SLOT, CID)

    def test_input_tree_is_unchanged(self, tree):
        before = tree
        add_group(tree, SLOT, CID)
        set_branch_enabled(tree, SLOT, False)
        assert tree == before
        assert len(tree.branch(SLOT).get(CID).groups) == 1
        assert tree.branch(SLOT).enabled

    def test_add_and_remove_container(self, tree):
        tree = add_container(tree, SLOT)
        assert [c.id for c in tree.branch(SLOT).containers] == ["open-long", "open-long-1"]
        tree = remove_container(tree, SLOT, "open-long-1")
        assert [c.id for c in tree.branch(SLOT).containers] == ["open-long"]

    def test_unknown_ids_raise(self, tree):
        with pytest.raises(NodeNotFoundError):
            remove_container(tree, SLOT, "nope")
        with pytest.raises(NodeNotFoundError):
            remove_group(tree, SLOT, CID, "nope")
        with pytest.raises(NodeNotFoundError):
            remove_condition(tree, SLOT, CID, "open-long-group-1", "nope")

    def test_required_group_moves_to_top(self, tree):
        tree = add_group(tree, SLOT, CID)
        tree = toggle_group_flag(tree, SLOT, CID, "open-long-group-2", "required")
        groups = tree.branch(SLOT).get(CID).groups
        assert [g.id for g in groups] == ["open-long-group-2", "open-long-group-1"]
        assert groups[0].required

    def test_toggle_container_enabled(self, tree):
        tree = toggle_container_flag(tree, SLOT, CID, "enabled")
        assert not tree.branch(SLOT).get(CID).enabled

    def test_unknown_flag(self, tree):
        with pytest.raises(ValueError, match="Unknown flag"):
            toggle_container_flag(tree, SLOT, CID, "visible")


class TestThresholds:
    def test_set_levels(self, tree):
        tree = set_min_pass(tree, SLOT, 2)
        tree = set_min_pass(tree, SLOT, 3, container_id=CID)
        tree = set_min_pass(tree, SLOT, 4, container_id=CID, group_id="open-long-group-1")
        branch = tree.branch(SLOT)
        assert branch.min_pass_containers == 2
        assert branch.get(CID).min_pass_groups == 3
        assert branch.get(CID).get("open-long-group-1").min_pass_conditions == 4

    def test_negative_rejected(self, tree):
        with pytest.raises(ValueError, match=">= 0"):
            set_min_pass(tree, SLOT, -1)

    def test_group_without_container(self, tree):
        with pytest.raises(ValueError, match="requires container_id"):
            set_min_pass(tree, SLOT, 1, group_id="open-long-group-1")


class TestConditions:
    GID = "open-long-group-1"

    def test_insert_then_update(self, tree):
        tree = save_condition(tree, SLOT, CID, self.GID, _condition("c1"))
        tree = save_condition(tree, SLOT, CID, self.GID, _condition("c1", right=25))
        conditions = tree.branch(SLOT).get(CID).get(self.GID).conditions
        assert len(conditions) == 1
        assert conditions[0].right == 25.0

    def test_required_condition_promoted(self, tree):
        tree = save_condition(tree, SLOT, CID, self.GID, _condition("c1"))
        tree = save_condition(tree, SLOT, CID, self.GID, _condition("c2"))
        tree = save_condition(tree, SLOT, CID, self.GID, _condition("c3", required=True))
        ids = [c.id for c in tree.branch(SLOT).get(CID).get(self.GID).conditions]
        assert ids == ["c3", "c1", "c2"]

    def test_toggle_required_promotes(self, tree):
        tree = save_condition(tree, SLOT, CID, self.GID, _condition("c1"))
        tree = save_condition(tree, SLOT, CID, self.GID, _condition("c2"))
        tree = toggle_condition_flag(tree, SLOT, CID, self.GID, "c2", "required")
        ids = [c.id for c in tree.branch(SLOT).get(CID).get(self.GID).conditions]
        assert ids == ["c2", "c1"]

    def test_condition_limit(self, tree):
        limits = EditorLimitsConfig(max_conditions_per_group=1)
        tree = save_condition(tree, SLOT, CID, self.GID, _condition("c1"), limits=limits)
        with pytest.raises(EditLimitError):
            save_condition(tree, SLOT, CID, self.GID, _condition("c2"), limits=limits)
        # Updating in place is not an append
        save_condition(tree, SLOT, CID, self.GID, _condition("c1", right=20), limits=limits)

    def test_unknown_method(self, tree):
        with pytest.raises(ValueError, match="Unknown method"):
            save_condition(tree, SLOT, CID, self.GID, _condition("c1", method="Approx"))

    def test_action_is_not_a_comparator(self, tree):
        with pytest.raises(ValueError, match="not a comparator"):
            save_condition(tree, SLOT, CID, self.GID, _condition("c1", method="MakeTrade"))

    def test_range_needs_upper(self, tree):
        with pytest.raises(ValueError, match="upper bound"):
            save_condition(tree, SLOT, CID, self.GID, _condition("c1", method="Between"))
        tree = save_condition(tree, SLOT, CID, self.GID, _condition("c1", method="Between", upper=40))
        assert tree.branch(SLOT).get(CID).get(self.GID).get("c1").upper == 40.0

    def test_remove_condition(self, tree):
        tree = save_condition(tree, SLOT, CID, self.GID, _condition("c1"))
        tree = remove_condition(tree, SLOT, CID, self.GID, "c1")
        assert tree.branch(SLOT).get(CID).get(self.GID).conditions == ()


class TestRetarget:
    def test_params_edit_repoints_refs(self, tree, macd):
        gid = "open-long-group-1"
        tree = save_condition(tree, SLOT, CID, gid, ConditionItem(
            "c1", "CrossUp", macd.ref(), macd.ref("Signal"),
        ))
        edited = SelectedIndicator(
            id="macd", code="MACD", timeframe="4h", input_channel="Close",
            params=(8, 21, 5), outputs=macd.outputs,
        )
        tree = retarget_indicator(tree, macd, edited)
        condition = tree.branch(SLOT).get(CID).get(gid).get("c1")
        assert condition.left == edited.ref()
        assert condition.right == edited.ref("Signal")

    def test_params_edit_keeps_ref_offset_and_mode(self, tree, rsi):
        gid = "open-long-group-1"
        tree = save_condition(tree, SLOT, CID, gid, ConditionItem(
            "c1", "LessThan", rsi.ref().with_offset(1), rsi.ref().with_offset(2, 4),
        ))
        tree = save_condition(tree, SLOT, CID, gid, ConditionItem(
            "c2", "GreaterThan", replace(rsi.ref(), aggregation="OnTick"), 50,
        ))
        edited = replace(rsi, params=(21,))
        tree = retarget_indicator(tree, rsi, edited)
        group = tree.branch(SLOT).get(CID).get(gid)
        c1 = group.get("c1")
        assert c1.left.params == (21,)
        assert c1.left.offset_range == (1, 1)
        assert c1.right.offset_range == (2, 4)
        c2 = group.get("c2")
        assert c2.left.params == (21,)
        assert c2.left.aggregation == "OnTick"
        assert c2.left.offset_range == (0, 0)

    def test_missing_output_falls_back_to_default(self, tree, macd):
        gid = "open-long-group-1"
        tree = save_condition(tree, SLOT, CID, gid, ConditionItem("c1", "GreaterThan", macd.ref("Histogram"), 0))
        edited = SelectedIndicator(
            id="macd", code="MACD", timeframe="4h", input_channel="Close",
            params=(12, 26, 9), outputs=(IndicatorOutput("Value"), IndicatorOutput("Signal")),
        )
        tree = retarget_indicator(tree, macd, edited)
        assert tree.branch(SLOT).get(CID).get(gid).get("c1").left.output_channel == "Value"

    def test_other_refs_untouched(self, tree, macd, rsi):
        gid = "open-long-group-1"
        tree = save_condition(tree, SLOT, CID, gid, ConditionItem("c1", "LessThan", rsi.ref(), 30))
        before = tree.branch(SLOT).get(CID).get(gid).get("c1")
        tree = retarget_indicator(tree, macd, macd)
        assert tree.branch(SLOT).get(CID).get(gid).get("c1") is before


def test_promote_to_top():
    assert promote_to_top(["a", "b", "c"], 2) == ("c", "a", "b")
    assert promote_to_top(["a", "b"], 0) == ("a", "b")
