"""Stat evaluation for candidate allocations.

The optimizer only needs "what would the character's stats be with these
nodes".  The authoritative answer comes from the game's own calculation
engine, which is an external collaborator; anything implementing
:class:`StatEvaluator` can be plugged in.  :class:`NodeStatEvaluator` is a
deterministic estimate built from the stat text of allocated nodes.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Dict, Iterable, Optional, Protocol

from .models import NodeIdLike, StatSnapshot, TreeGraph
from .pathing import allocated_ids

logger = logging.getLogger(__name__)


class StatEvaluator(Protocol):
    def evaluate(self, allocated: Iterable[NodeIdLike]) -> StatSnapshot:
        ...


DEFAULT_BASE_STATS = StatSnapshot(life=1000.0, energy_shield=0.0, dps=10000.0)
CHAOS_IMMUNE_RESIST = 100.0

_NUMBER = r"(\d+(?:\.\d+)?)"
FLAT_POOL = re.compile(rf"^\+{_NUMBER} to maximum (Life|Energy Shield)$", re.IGNORECASE)
INCREASED_POOL = re.compile(
    rf"^{_NUMBER}% (increased|reduced) maximum (Life|Energy Shield)$", re.IGNORECASE,
)
INCREASED_SPEED = re.compile(
    rf"^{_NUMBER}% (increased|reduced) (?:Attack|Cast|Attack and Cast) Speed\b", re.IGNORECASE,
)
INCREASED_DAMAGE = re.compile(rf"^{_NUMBER}% (increased|reduced) .*\bDamage\b", re.IGNORECASE)
RESISTANCE = re.compile(rf"^([+-]){_NUMBER}% to (.+?) Resistances?$", re.IGNORECASE)
LIFE_BECOMES_ONE = re.compile(r"maximum life becomes 1", re.IGNORECASE)
CHAOS_IMMUNE = re.compile(r"immune to chaos damage", re.IGNORECASE)

ELEMENTS = ("fire", "cold", "lightning", "chaos")

POOL_KEYS = {"life": "life", "energy shield": "es"}


def parse_stat_line(line: str) -> Dict[str, float]:
    """Modifier contributions recognised in one stat line (empty if none)."""
    line = line.strip()
    mods: Dict[str, float] = {}

    if LIFE_BECOMES_ONE.search(line):
        mods["life_becomes_one"] = 1.0
    if CHAOS_IMMUNE.search(line):
        mods["chaos_immune"] = 1.0
    if mods:
        return mods

    match = FLAT_POOL.match(line)
    if match:
        mods[f"flat_{POOL_KEYS[match.group(2).lower()]}"] = float(match.group(1))
        return mods

    match = INCREASED_POOL.match(line)
    if match:
        sign = 1.0 if match.group(2).lower() == "increased" else -1.0
        mods[f"inc_{POOL_KEYS[match.group(3).lower()]}"] = sign * float(match.group(1))
        return mods

    match = INCREASED_SPEED.match(line)
    if match:
        sign = 1.0 if match.group(2).lower() == "increased" else -1.0
        mods["inc_speed"] = sign * float(match.group(1))
        return mods

    match = INCREASED_DAMAGE.match(line)
    if match and "taken" not in line.lower():
        sign = 1.0 if match.group(2).lower() == "increased" else -1.0
        mods["inc_damage"] = sign * float(match.group(1))
        return mods

    match = RESISTANCE.match(line)
    if match:
        amount = float(match.group(2)) * (1.0 if match.group(1) == "+" else -1.0)
        target = match.group(3).lower()
        if "all elemental" in target:
            elements = ELEMENTS[:3]
        else:
            elements = tuple(e for e in ELEMENTS if e in target)
        for element in elements:
            mods[f"res_{element}"] = amount
    return mods


class NodeStatEvaluator:
    """Estimates a :class:`StatSnapshot` by summing allocated nodes' stat lines.

    Life and energy shield are ``(base + flat) * (1 + increased%)``; DPS is
    the base DPS scaled by increased damage and increased speed;
    resistances add up.  Per-node contributions are parsed once and reused.
    """

    def __init__(self, graph: TreeGraph, base: Optional[StatSnapshot] = None) -> None:
        self.graph = graph
        self.base = base or DEFAULT_BASE_STATS
        self._node_mods: Dict[str, Counter] = {}

    def node_modifiers(self, node_id: str) -> Counter:
        mods = self._node_mods.get(node_id)
        if mods is None:
            mods = Counter()
            node = self.graph.get(node_id)
            if node is not None:
                for line in node.stats:
                    parsed = parse_stat_line(line)
                    if not parsed:
                        logger.debug("Node %s: no modifiers recognised in %r", node_id, line)
                    mods.update(parsed)
            self._node_mods[node_id] = mods
        return mods

    def evaluate(self, allocated: Iterable[NodeIdLike]) -> StatSnapshot:
        ids = [node_id for node_id in allocated_ids(allocated) if node_id in self.graph]
        totals: Counter = Counter()
        for node_id in ids:
            totals.update(self.node_modifiers(node_id))

        base = self.base
        life = (base.life + totals["flat_life"]) * max(0.0, 1 + totals["inc_life"] / 100)
        if totals["life_becomes_one"]:
            life = 1.0
        energy_shield = (base.energy_shield + totals["flat_es"]) * max(0.0, 1 + totals["inc_es"] / 100)
        dps = (
            base.dps
            * max(0.0, 1 + totals["inc_damage"] / 100)
            * max(0.0, 1 + totals["inc_speed"] / 100)
        )
        chaos = base.chaos_resist + totals["res_chaos"]
        if totals["chaos_immune"]:
            chaos = CHAOS_IMMUNE_RESIST

        return StatSnapshot(
            life=life,
            energy_shield=energy_shield,
            dps=dps,
            total_life=life,
            fire_resist=base.fire_resist + totals["res_fire"],
            cold_resist=base.cold_resist + totals["res_cold"],
            lightning_resist=base.lightning_resist + totals["res_lightning"],
            chaos_resist=chaos,
            points_allocated=len(ids),
        )
