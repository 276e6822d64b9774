"""Optimization goals, score functions and defensive constraint checks."""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Callable, Dict, List

from .models import OptimizationConstraints, StatSnapshot


class OptimizationGoal(str, Enum):
    MAXIMIZE_DPS = "maximize_dps"
    MAXIMIZE_LIFE = "maximize_life"
    MAXIMIZE_ES = "maximize_es"
    MAXIMIZE_EHP = "maximize_ehp"
    BALANCED = "balanced"
    LEAGUE_START = "league_start"


GOAL_DESCRIPTIONS: Dict[OptimizationGoal, str] = {
    OptimizationGoal.MAXIMIZE_DPS: "Maximize Total DPS",
    OptimizationGoal.MAXIMIZE_LIFE: "Maximize Life Pool",
    OptimizationGoal.MAXIMIZE_ES: "Maximize Energy Shield",
    OptimizationGoal.MAXIMIZE_EHP: "Maximize Effective HP (Life + ES)",
    OptimizationGoal.BALANCED: "Balance Offense and Defense",
    OptimizationGoal.LEAGUE_START: "Optimize for League Start (prioritize survivability)",
}

SCORERS: Dict[OptimizationGoal, Callable[[StatSnapshot], float]] = {
    OptimizationGoal.MAXIMIZE_DPS: lambda s: s.dps,
    OptimizationGoal.MAXIMIZE_LIFE: lambda s: s.life,
    OptimizationGoal.MAXIMIZE_ES: lambda s: s.energy_shield,
    OptimizationGoal.MAXIMIZE_EHP: lambda s: s.ehp,
    # Geometric mean of damage and EHP punishes lopsided builds.
    OptimizationGoal.BALANCED: lambda s: math.sqrt(max(0.0, s.dps * s.ehp / 1000)),
    # Survivability 60%, damage 40%.
    OptimizationGoal.LEAGUE_START: lambda s: s.ehp * 0.6 + s.dps * 0.4 / 1000,
}


def parse_goal(goal: str) -> OptimizationGoal:
    """Map free-form goal text onto a goal; unknown text means DPS."""
    normalized = re.sub(r"\s+", "_", goal.strip().lower())

    if "dps" in normalized or "damage" in normalized or "offense" in normalized:
        return OptimizationGoal.MAXIMIZE_DPS
    if "life" in normalized and "es" not in normalized and "energy" not in normalized:
        return OptimizationGoal.MAXIMIZE_LIFE
    if "es" in normalized or "energy_shield" in normalized:
        return OptimizationGoal.MAXIMIZE_ES
    if "ehp" in normalized or "survivability" in normalized:
        return OptimizationGoal.MAXIMIZE_EHP
    if "balanced" in normalized or "hybrid" in normalized:
        return OptimizationGoal.BALANCED
    if "league" in normalized or "budget" in normalized:
        return OptimizationGoal.LEAGUE_START
    return OptimizationGoal.MAXIMIZE_DPS


def goal_description(goal: OptimizationGoal) -> str:
    return GOAL_DESCRIPTIONS[goal]


def calculate_score(stats: StatSnapshot, goal: OptimizationGoal) -> float:
    return SCORERS[goal](stats)


# ---------------------------------------------------------------------------
# Defences
# ---------------------------------------------------------------------------

LOW_LIFE_RATIO = 0.5
LOW_LIFE_POOL = 2000
LOW_LIFE_ES_POOL = 4000


def is_low_life_build(stats: StatSnapshot) -> bool:
    """Whether the build deliberately runs on a reduced life pool.

    True when life sits under half of total life (reserved life), or when a
    small life pool sits behind a large energy shield pool.
    """
    total_life = stats.total_life if stats.total_life is not None else stats.life
    if stats.life < total_life * LOW_LIFE_RATIO:
        return True
    return stats.life < LOW_LIFE_POOL and stats.energy_shield > LOW_LIFE_ES_POOL


def _thresholds(stats: StatSnapshot, constraints: OptimizationConstraints) -> List[tuple]:
    """``(value, minimum)`` pairs for every active constraint."""
    pairs = []
    if constraints.min_life and not is_low_life_build(stats):
        pairs.append((stats.life, constraints.min_life))
    if constraints.min_es:
        pairs.append((stats.energy_shield, constraints.min_es))
    if constraints.min_ehp:
        pairs.append((stats.ehp, constraints.min_ehp))
    if constraints.min_fire_resist:
        pairs.append((stats.fire_resist, constraints.min_fire_resist))
    if constraints.min_cold_resist:
        pairs.append((stats.cold_resist, constraints.min_cold_resist))
    if constraints.min_lightning_resist:
        pairs.append((stats.lightning_resist, constraints.min_lightning_resist))
    if constraints.min_chaos_resist:
        pairs.append((stats.chaos_resist, constraints.min_chaos_resist))
    return pairs


def meets_constraints(stats: StatSnapshot, constraints: OptimizationConstraints) -> bool:
    """True when every active minimum is met (low-life builds skip min life)."""
    return all(value >= minimum for value, minimum in _thresholds(stats, constraints))


def constraint_deficit(stats: StatSnapshot, constraints: OptimizationConstraints) -> float:
    """Summed shortfall of all active minimums, each relative to its minimum.

    Zero exactly when :func:`meets_constraints` holds.
    """
    deficit = 0.0
    for value, minimum in _thresholds(stats, constraints):
        if value < minimum:
            deficit += (minimum - value) / max(abs(minimum), 1.0)
    return deficit
