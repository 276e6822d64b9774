"""Tests for the local-search tree optimizer."""

import pytest

from conftest import lua_node, lua_tree
from treegraph.models import AllocatedSet, OptimizationConstraints
from treegraph.optimizer import TreeOptimizer
from treegraph.parser import parse_tree_data
from treegraph.scoring import OptimizationGoal


def allocation(*ids, **metadata):
    return AllocatedSet(frozenset(str(i) for i in ids), **metadata)


def detour_tree(ascendancy_leaf=False):
    """20 links to 11 and 12; 11 links to 13.

    12 is a damage notable, 13 a big life node.
    """
    flags = {"isAscendancyStart": True} if ascendancy_leaf else {}
    text = lua_tree(
        lua_node(11, "Bridge", out=[13], in_=[20]),
        lua_node(12, "Brutality", ["30% increased Damage"], in_=[20], isNotable=True),
        lua_node(13, "Vitality", ["+100 to maximum Life"], **flags),
        lua_node(20, "Start", out=[11, 12]),
    )
    return parse_tree_data(text, "v")


class TestSwaps:
    """Tests for swapping low-value nodes into better ones."""

    def test_swaps_leaves_for_notable(self, graph):
        result = TreeOptimizer(graph).optimize(allocation(1, 2, 5, 9), OptimizationGoal.MAXIMIZE_DPS)
        assert result.nodes_added == ["3", "4"]
        assert result.nodes_removed == ["5", "9"]
        assert result.net_point_change == 0
        assert result.iterations == 2
        assert result.final_score > result.starting_score
        assert result.constraints_met
        assert result.formatted_tree.nodes == [1, 2, 3, 4]

    def test_improvements(self, graph):
        result = TreeOptimizer(graph).optimize(allocation(1, 2, 5, 9), "damage")
        assert result.goal == "maximize_dps"
        assert result.improvements.dps_change == pytest.approx(2500)
        assert result.improvements.target_value_percent == pytest.approx(2500 / 11000 * 100)
        assert result.improvements.points_change == 0

    def test_life_goal_prefers_life_notable(self, graph):
        result = TreeOptimizer(graph).optimize(allocation(1, 2, 5, 9), OptimizationGoal.MAXIMIZE_LIFE)
        assert result.nodes_added == ["6"]
        assert result.nodes_removed == ["9"]
        assert result.final_stats.life == pytest.approx(1062 * 1.1)

    def test_spare_points_allow_pure_additions(self, graph):
        result = TreeOptimizer(graph).optimize(allocation(1, 2, 9), OptimizationGoal.MAXIMIZE_DPS, max_points=2)
        assert result.nodes_added == ["3", "4"]
        assert result.nodes_removed == []
        assert any("2 additional passive point" in w for w in result.warnings)

    def test_iteration_budget(self, graph):
        result = TreeOptimizer(graph).optimize(
            allocation(1, 2, 9), OptimizationGoal.MAXIMIZE_DPS, max_iterations=1, max_points=2,
        )
        assert result.iterations == 1
        assert result.nodes_added == ["3", "4"]

    def test_rerun_is_idempotent(self, graph):
        optimizer = TreeOptimizer(graph)
        first = optimizer.optimize(allocation(1, 2, 5, 9), OptimizationGoal.MAXIMIZE_DPS)
        second = optimizer.optimize(
            allocation(*first.formatted_tree.nodes), OptimizationGoal.MAXIMIZE_DPS,
        )
        assert not second.has_changes
        assert second.formatted_tree.nodes == first.formatted_tree.nodes

    def test_no_id_both_added_and_removed(self, graph):
        for goal in OptimizationGoal:
            result = TreeOptimizer(graph).optimize(allocation(1, 2, 5, 9), goal, max_points=3)
            assert not set(result.nodes_added) & set(result.nodes_removed)


class TestGuards:
    """Tests for protected nodes, connectivity and constraints."""

    def test_protected_nodes_are_never_removed(self, graph):
        constraints = OptimizationConstraints(protected_nodes=frozenset({"5"}))
        result = TreeOptimizer(graph).optimize(allocation(1, 2, 5, 9), OptimizationGoal.MAXIMIZE_DPS, constraints)
        assert "5" not in result.nodes_removed
        assert not result.has_changes

    def test_swap_that_splits_tree_is_rejected(self, graph):
        result = TreeOptimizer(graph).optimize(allocation(1, 2, 5, 9), OptimizationGoal.MAXIMIZE_DPS)
        engine = TreeOptimizer(graph).path_engine
        assert engine.component_count([str(n) for n in result.formatted_tree.nodes]) == 1

    def test_swap_without_constraints(self):
        result = TreeOptimizer(detour_tree()).optimize(allocation(11, 13, 20), OptimizationGoal.MAXIMIZE_DPS)
        assert result.nodes_added == ["12"]
        assert result.nodes_removed == ["13"]

    def test_constraint_blocks_swap(self):
        constraints = OptimizationConstraints(min_life=1050)
        result = TreeOptimizer(detour_tree()).optimize(
            allocation(11, 13, 20), OptimizationGoal.MAXIMIZE_DPS, constraints,
        )
        assert not result.has_changes
        assert result.constraints_met

    def test_ascendancy_start_is_kept(self):
        optimizer = TreeOptimizer(detour_tree(ascendancy_leaf=True))
        assert optimizer.is_required_for_path("13", {"11", "13", "20"})
        assert optimizer.find_removable_nodes({"11", "13", "20"}) == ["20"]
        result = optimizer.optimize(allocation(11, 13, 20), OptimizationGoal.MAXIMIZE_DPS)
        assert "13" not in result.nodes_removed

    def test_infeasible_constraints_still_return_result(self, graph):
        constraints = OptimizationConstraints(min_es=500)
        result = TreeOptimizer(graph).optimize(allocation(1, 2, 5, 9), OptimizationGoal.MAXIMIZE_DPS, constraints)
        assert not result.constraints_met
        assert "Final allocation does not meet all constraints" in result.warnings


class TestEdgeCases:
    """Tests for inputs the search leaves alone."""

    def test_no_candidates(self):
        graph = parse_tree_data(lua_tree(lua_node(1, "Alone", ["+5 to maximum Life"])), "v")
        result = TreeOptimizer(graph).optimize(allocation(1), OptimizationGoal.MAXIMIZE_LIFE)
        assert not result.has_changes
        assert result.iterations == 1
        assert result.final_score == result.starting_score
        assert "No improving node swaps found" in result.warnings

    def test_unknown_and_dynamic_ids_are_preserved(self, graph):
        result = TreeOptimizer(graph).optimize(
            allocation(1, 2, 5, 9, 555, 70000, class_id=4, ascend_class_id=2),
            OptimizationGoal.MAXIMIZE_DPS,
        )
        assert result.nodes_removed == ["5", "9"]
        assert 555 in result.formatted_tree.nodes
        assert 70000 in result.formatted_tree.nodes
        assert (result.formatted_tree.class_id, result.formatted_tree.ascend_class_id) == (4, 2)
        assert any("555" in w for w in result.warnings)

    def test_zero_iterations(self, graph):
        result = TreeOptimizer(graph).optimize(allocation(1, 2, 5, 9), max_iterations=0)
        assert result.iterations == 0
        assert not result.has_changes
