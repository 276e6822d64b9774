"""Tests for goals, scores and constraint checks."""

import math

import pytest

from treegraph.models import OptimizationConstraints, StatSnapshot
from treegraph.scoring import (
    OptimizationGoal,
    calculate_score,
    constraint_deficit,
    goal_description,
    is_low_life_build,
    meets_constraints,
    parse_goal,
)

STATS = StatSnapshot(life=4000, energy_shield=1000, dps=200000)


@pytest.mark.parametrize("text,goal", [
    ("maximize dps", OptimizationGoal.MAXIMIZE_DPS),
    ("More Damage", OptimizationGoal.MAXIMIZE_DPS),
    ("life", OptimizationGoal.MAXIMIZE_LIFE),
    ("max energy shield", OptimizationGoal.MAXIMIZE_ES),
    ("ES", OptimizationGoal.MAXIMIZE_ES),
    ("life and es", OptimizationGoal.MAXIMIZE_ES),
    ("balanced", OptimizationGoal.BALANCED),
    ("hybrid", OptimizationGoal.BALANCED),
    ("league start", OptimizationGoal.LEAGUE_START),
    ("something else", OptimizationGoal.MAXIMIZE_DPS),
])
def test_parse_goal(text, goal):
    assert parse_goal(text) is goal


def test_parse_goal_keyword_order():
    """Earlier keywords win when goal text mentions several."""
    assert parse_goal("ehp") is OptimizationGoal.MAXIMIZE_EHP
    assert parse_goal("survivability") is OptimizationGoal.MAXIMIZE_EHP
    assert parse_goal("damage and life") is OptimizationGoal.MAXIMIZE_DPS
    assert parse_goal("max life and energy shield") is OptimizationGoal.MAXIMIZE_ES


def test_goal_descriptions_cover_all_goals():
    for goal in OptimizationGoal:
        assert goal_description(goal)


class TestScores:
    """Tests for per-goal score functions."""

    def test_single_stat_goals(self):
        assert calculate_score(STATS, OptimizationGoal.MAXIMIZE_DPS) == 200000
        assert calculate_score(STATS, OptimizationGoal.MAXIMIZE_LIFE) == 4000
        assert calculate_score(STATS, OptimizationGoal.MAXIMIZE_ES) == 1000
        assert calculate_score(STATS, OptimizationGoal.MAXIMIZE_EHP) == 5000

    def test_balanced(self):
        assert calculate_score(STATS, OptimizationGoal.BALANCED) == pytest.approx(math.sqrt(200000 * 5000 / 1000))

    def test_league_start(self):
        assert calculate_score(STATS, OptimizationGoal.LEAGUE_START) == pytest.approx(5000 * 0.6 + 200000 * 0.4 / 1000)


class TestConstraints:
    """Tests for low-life detection and constraint checks."""

    def test_low_life_by_reservation(self):
        assert is_low_life_build(StatSnapshot(life=1500, total_life=4000))
        assert not is_low_life_build(StatSnapshot(life=3500, total_life=4000))

    def test_low_life_by_pools(self):
        assert is_low_life_build(StatSnapshot(life=1200, energy_shield=6000))
        assert not is_low_life_build(StatSnapshot(life=1200, energy_shield=3000))

    def test_no_constraints(self):
        assert meets_constraints(STATS, OptimizationConstraints())
        assert constraint_deficit(STATS, OptimizationConstraints()) == 0

    def test_zero_threshold_is_disabled(self):
        assert meets_constraints(StatSnapshot(fire_resist=-60), OptimizationConstraints(min_fire_resist=0))

    def test_min_life(self):
        assert meets_constraints(STATS, OptimizationConstraints(min_life=4000))
        assert not meets_constraints(STATS, OptimizationConstraints(min_life=4001))

    def test_low_life_skips_min_life(self):
        stats = StatSnapshot(life=1000, energy_shield=7000)
        assert meets_constraints(stats, OptimizationConstraints(min_life=3000))
        assert not meets_constraints(stats, OptimizationConstraints(min_life=3000, min_es=8000))

    def test_resistances(self):
        stats = StatSnapshot(fire_resist=75, cold_resist=75, lightning_resist=60, chaos_resist=-30)
        assert not meets_constraints(stats, OptimizationConstraints(min_lightning_resist=75))
        assert meets_constraints(stats, OptimizationConstraints(min_fire_resist=75, min_chaos_resist=-60))

    def test_deficit_is_relative_shortfall(self):
        stats = StatSnapshot(life=3000, energy_shield=500)
        constraints = OptimizationConstraints(min_life=4000, min_es=1000)
        assert constraint_deficit(stats, constraints) == pytest.approx(0.25 + 0.5)

    def test_deficit_zero_iff_met(self):
        constraints = OptimizationConstraints(min_ehp=5000)
        assert constraint_deficit(STATS, constraints) == 0
        assert constraint_deficit(StatSnapshot(life=4000), constraints) > 0
