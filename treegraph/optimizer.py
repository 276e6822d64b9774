"""Constrained local search over passive allocations.

Unlike the nearby-node query, which only ever adds, the optimizer can give
points back: each iteration considers extending the tree to a nearby
notable or keystone, paid for either from spare points or by dropping the
same number of low-value removable nodes.  The best strictly improving move
that keeps the tree in one piece and does not move away from the defensive
constraints is applied; the search stops at a local optimum or when the
iteration budget runs out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Set, Tuple, Union

from .config import MAX_CANDIDATES, MAX_ITERATIONS, SEARCH_RADIUS
from .evaluator import NodeStatEvaluator, StatEvaluator
from .models import (
    AllocatedSet,
    FormattedTree,
    Improvements,
    OptimizationConstraints,
    OptimizationResult,
    StatSnapshot,
    TreeGraph,
)
from .pathing import PathEngine
from .scoring import (
    OptimizationGoal,
    calculate_score,
    constraint_deficit,
    goal_description,
    meets_constraints,
    parse_goal,
)

logger = logging.getLogger(__name__)

# Gains smaller than this are treated as noise.
SCORE_EPSILON = 1e-9


@dataclass(frozen=True)
class Move:
    target: str
    add: Tuple[str, ...]
    remove: Tuple[str, ...]
    score: float
    stats: StatSnapshot

    @property
    def point_change(self) -> int:
        return len(self.add) - len(self.remove)


class TreeOptimizer:
    """Hill-climbs an allocation toward a goal under defensive constraints."""

    def __init__(
        self,
        graph: TreeGraph,
        evaluator: Optional[StatEvaluator] = None,
        path_engine: Optional[PathEngine] = None,
        search_radius: int = SEARCH_RADIUS,
        max_candidates: int = MAX_CANDIDATES,
    ) -> None:
        self.graph = graph
        self.evaluator = evaluator or NodeStatEvaluator(graph)
        self.path_engine = path_engine or PathEngine(graph)
        self.search_radius = search_radius
        self.max_candidates = max_candidates

    # ------------------------------------------------------------------
    # Removability
    # ------------------------------------------------------------------

    def is_required_for_path(
        self,
        node_id: str,
        allocated: Iterable[str],
        protected: FrozenSet[str] = frozenset(),
    ) -> bool:
        """Whether *node_id* must stay allocated.

        Protected and ascendancy start nodes always stay.  Otherwise a node
        with two or more allocated neighbours is assumed to be carrying the
        path to something else.  This is a local approximation, not a
        cut-vertex test; swaps are additionally checked for connectivity.
        """
        if node_id in protected:
            return True
        node = self.graph.get(node_id)
        if node is None:
            return True
        if node.is_ascendancy_start:
            return True
        allocated = allocated if isinstance(allocated, (set, frozenset)) else set(allocated)
        neighbours = sum(1 for other in self.graph.neighbors(node_id) if other in allocated)
        return neighbours >= 2

    def find_removable_nodes(
        self,
        allocated: Iterable[str],
        constraints: Optional[OptimizationConstraints] = None,
    ) -> List[str]:
        allocated = set(allocated)
        protected = constraints.protected_nodes if constraints else frozenset()
        return sorted(
            (n for n in allocated if not self.is_required_for_path(n, allocated, protected)),
            key=int,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _score(self, allocated: Set[str], goal: OptimizationGoal) -> Tuple[float, StatSnapshot]:
        stats = self.evaluator.evaluate(allocated)
        return calculate_score(stats, goal), stats

    def _rank_removable(
        self,
        current: Set[str],
        goal: OptimizationGoal,
        constraints: OptimizationConstraints,
        score: float,
    ) -> List[str]:
        """Removable nodes, cheapest to lose first."""
        ranked = []
        for node_id in self.find_removable_nodes(current, constraints):
            without, _ = self._score(current - {node_id}, goal)
            ranked.append((score - without, int(node_id), node_id))
        ranked.sort()
        return [node_id for _, _, node_id in ranked]

    def best_move(
        self,
        current: Set[str],
        goal: OptimizationGoal,
        constraints: OptimizationConstraints,
        spare_points: int,
    ) -> Optional[Move]:
        """The best strictly improving move from *current*, or None at a local optimum."""
        score, stats = self._score(current, goal)
        deficit = constraint_deficit(stats, constraints)
        ranked = self._rank_removable(current, goal, constraints, score)
        components = self.path_engine.component_count(current)

        candidates = self.path_engine.find_nearby_nodes(current, self.search_radius)
        best: Optional[Move] = None
        for candidate in candidates[:self.max_candidates]:
            paths = self.path_engine.find_shortest_paths(current, candidate.node_id)
            if not paths:
                continue
            add = tuple(paths[0].nodes)
            cost = len(add)

            options: List[Tuple[str, ...]] = []
            if cost <= spare_points:
                options.append(())
            funding = tuple(ranked[:cost])
            if len(funding) == cost:
                options.append(funding)

            for remove in options:
                proposed = (current - set(remove)) | set(add)
                if remove and self.path_engine.component_count(proposed) > components:
                    continue
                new_score, new_stats = self._score(proposed, goal)
                if new_score <= score + SCORE_EPSILON:
                    continue
                new_deficit = constraint_deficit(new_stats, constraints)
                if new_deficit > deficit + SCORE_EPSILON:
                    continue
                move = Move(candidate.node_id, add, remove, new_score, new_stats)
                if best is None or _preferred(move, best):
                    best = move
        return best

    def optimize(
        self,
        allocation: AllocatedSet,
        goal: Union[OptimizationGoal, str] = OptimizationGoal.MAXIMIZE_DPS,
        constraints: Optional[OptimizationConstraints] = None,
        max_iterations: int = MAX_ITERATIONS,
        max_points: int = 0,
    ) -> OptimizationResult:
        """Search for node swaps that improve *goal*.

        Args:
            allocation: Starting allocation.  Dynamic socket ids and ids
                unknown to the graph are carried through untouched.
            goal: A goal or free-form goal text.
            constraints: Minimum defences and protected nodes.
            max_iterations: Upper bound on search iterations.
            max_points: Extra points the search may spend beyond the
                starting point count.  Whether the character actually has
                them is not checked.
        """
        if not isinstance(goal, OptimizationGoal):
            goal = parse_goal(goal)
        constraints = constraints or OptimizationConstraints()
        warnings: List[str] = []

        static_ids = set(allocation.static_ids())
        current = {n for n in static_ids if n in self.graph}
        unknown = static_ids - current
        if unknown:
            warnings.append(
                f"{len(unknown)} allocated node(s) not found in tree data were left untouched: "
                + ", ".join(sorted(unknown, key=int))
            )
        starting_count = len(current)

        start_score, start_stats = self._score(current, goal)
        added: Set[str] = set()
        removed: Set[str] = set()
        iterations = 0

        while iterations < max_iterations:
            iterations += 1
            spare = max_points - (len(current) - starting_count)
            move = self.best_move(current, goal, constraints, spare)
            if move is None:
                logger.debug("No improving move after %d iteration(s)", iterations)
                break
            logger.debug(
                "Iteration %d: +%s -%s toward %s (score %.2f)",
                iterations, list(move.add), list(move.remove), move.target, move.score,
            )
            for node_id in move.remove:
                current.discard(node_id)
                if node_id in added:
                    added.discard(node_id)
                else:
                    removed.add(node_id)
            for node_id in move.add:
                current.add(node_id)
                if node_id in removed:
                    removed.discard(node_id)
                else:
                    added.add(node_id)

        final_score, final_stats = self._score(current, goal)
        constraints_met = meets_constraints(final_stats, constraints)
        if not constraints_met:
            warnings.append("Final allocation does not meet all constraints")
        if not added and not removed:
            warnings.append("No improving node swaps found")

        net = len(added) - len(removed)
        if net > 0:
            warnings.append(f"Applying these changes needs {net} additional passive point(s)")

        logger.info(
            "Optimized for %s: score %.2f -> %.2f in %d iteration(s), +%d/-%d nodes",
            goal.value, start_score, final_score, iterations, len(added), len(removed),
        )

        untouched = unknown | set(allocation.dynamic_ids())
        return OptimizationResult(
            goal=goal.value,
            goal_description=goal_description(goal),
            starting_stats=start_stats,
            final_stats=final_stats,
            starting_score=start_score,
            final_score=final_score,
            improvements=Improvements(
                target_value_gain=final_score - start_score,
                target_value_percent=(
                    (final_score - start_score) / start_score * 100 if start_score else 0.0
                ),
                life_change=final_stats.life - start_stats.life,
                es_change=final_stats.energy_shield - start_stats.energy_shield,
                dps_change=final_stats.dps - start_stats.dps,
                points_change=net,
            ),
            iterations=iterations,
            nodes_added=sorted(added, key=int),
            nodes_removed=sorted(removed, key=int),
            constraints_met=constraints_met,
            formatted_tree=FormattedTree(
                class_id=allocation.class_id,
                ascend_class_id=allocation.ascend_class_id,
                nodes=sorted(int(n) for n in current | untouched),
            ),
            warnings=warnings,
        )


def _preferred(move: Move, other: Move) -> bool:
    """Higher score wins; then fewer extra points; then the lower target id."""
    if move.score != other.score:
        return move.score > other.score
    if move.point_change != other.point_change:
        return move.point_change < other.point_change
    return int(move.target) < int(other.target)
