"""Analysis of a character's allocated passive nodes."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from .archetype import detect_archetype
from .config import QUEST_POINTS
from .errors import InvalidNodesError
from .models import (
    AllocatedSet,
    AnalysisResult,
    EfficiencyScore,
    Node,
    NodeCategory,
    NodeIdLike,
    OptimizationSuggestion,
    PathOptimization,
    TreeComparison,
    TreeGraph,
    categorize_nodes,
    is_dynamic_node_id,
    normalize_node_id,
)
from .pathing import PathEngine

logger = logging.getLogger(__name__)

NO_NODES_ALLOCATED = "No nodes allocated"

# Allocated paths longer than this many hops get flagged.
LONG_PATH_HOPS = 6
REACHABLE_LIMIT = 5


def map_nodes_to_details(
    node_ids: Iterable[NodeIdLike],
    graph: TreeGraph,
) -> Tuple[List[Node], List[str]]:
    """Resolve ids against the graph.

    Dynamic socket ids are dropped silently; they appear in neither list.

    Returns:
        ``(nodes, invalid_ids)`` in input order.
    """
    nodes: List[Node] = []
    invalid_ids: List[str] = []
    for raw in node_ids:
        node_id = normalize_node_id(raw)
        if is_dynamic_node_id(node_id):
            continue
        node = graph.get(node_id)
        if node is None:
            invalid_ids.append(node_id)
        else:
            nodes.append(node)
    return nodes, invalid_ids


def calculate_passive_points(level: int, allocated_count: int) -> Tuple[int, int]:
    """``(total, available)``: points spent, and points a character of *level* has."""
    available = max(0, int(level) - 1) + QUEST_POINTS
    return allocated_count, available


def calculate_pathing_efficiency(
    allocated: Sequence[Node],
    keystones: Sequence[Node],
    notables: Sequence[Node],
    jewels: Sequence[Node],
) -> str:
    """Rate how many travel nodes the tree spends per destination node."""
    total = len(allocated)
    if total == 0:
        return NO_NODES_ALLOCATED

    destinations = len(keystones) + len(notables) + len(jewels)
    if destinations == 0:
        return "Inefficient"

    ratio = (total - destinations) / destinations
    if ratio < 1.5:
        return "Excellent"
    if ratio < 2.5:
        return "Good"
    if ratio < 3.5:
        return "Moderate"
    return "Inefficient"


class TreeAnalyzer:
    """Produces :class:`AnalysisResult` objects for allocations on one graph."""

    def __init__(self, graph: TreeGraph, path_engine: Optional[PathEngine] = None) -> None:
        self.graph = graph
        self.path_engine = path_engine or PathEngine(graph)

    def analyze(
        self,
        allocation: AllocatedSet,
        requested_version: Optional[str] = None,
    ) -> AnalysisResult:
        """Analyze *allocation*.

        Args:
            allocation: The character's allocated ids and metadata.
            requested_version: Tree version the caller asked the cache for;
                when it differs from the graph's version the graph is fallback
                data and invalid ids are reported as a version mismatch.

        Raises:
            InvalidNodesError: If any static id is missing from the graph.
        """
        requested_version = requested_version or self.graph.version
        nodes, invalid_ids = map_nodes_to_details(allocation.sorted_ids(), self.graph)
        if invalid_ids:
            raise InvalidNodesError(invalid_ids, requested_version, self.graph.version)

        groups = categorize_nodes(nodes)
        logger.debug(
            "Analyzing %d nodes on tree %s (%d keystones, %d notables)",
            len(nodes), self.graph.version, len(groups.keystones), len(groups.notables),
        )
        total, available = calculate_passive_points(allocation.level, len(nodes))
        archetype, confidence = detect_archetype(groups.keystones, groups.notables)
        efficiency = calculate_pathing_efficiency(nodes, groups.keystones, groups.notables, groups.jewels)

        build_version = allocation.tree_version
        version_mismatch = bool(build_version) and build_version not in self.graph.version

        return AnalysisResult(
            total_points=total,
            available_points=available,
            allocated_nodes=nodes,
            keystones=groups.keystones,
            notables=groups.notables,
            jewels=groups.jewels,
            normal_nodes=groups.normal,
            archetype=archetype,
            archetype_confidence=confidence,
            pathing_efficiency=efficiency,
            tree_version=self.graph.version,
            build_version=build_version,
            version_mismatch=version_mismatch,
            invalid_node_ids=[],
            optimization_suggestions=self.suggest(nodes, archetype, groups.keystones, groups.notables),
        )

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def analyze_path_optimizations(self, nodes: Sequence[Node]) -> List[PathOptimization]:
        """Flag destinations that sit at the end of a long allocated path."""
        if not nodes:
            return []
        starts = {n.node_id for n in self.graph.ascendancy_starts()}
        start = next((n for n in nodes if n.node_id in starts), nodes[0])
        allocated = [n.node_id for n in nodes]
        optimizations: List[PathOptimization] = []
        for dest in nodes:
            if dest.category is NodeCategory.NORMAL or dest.node_id == start.node_id:
                continue
            path = self.path_engine.shortest_allocated_path(allocated, start.node_id, dest.node_id)
            if not path:
                continue
            length = len(path) - 1
            if length > LONG_PATH_HOPS:
                optimizations.append(PathOptimization(
                    destination=dest.display_name,
                    current_length=length,
                    optimal_length=length,
                    points_saved=0,
                    suggestion=(
                        f"Path to {dest.display_name} is {length} points long. "
                        "Consider checking if there's a more efficient route."
                    ),
                ))
        return optimizations

    @staticmethod
    def efficiency_scores(normal_nodes: Sequence[Node]) -> List[EfficiencyScore]:
        return [
            EfficiencyScore(
                node_id=node.node_id,
                node_name=node.display_name,
                stats_per_point=float(len(node.stats)),
                is_low_value=not node.stats,
            )
            for node in normal_nodes
        ]

    def reachable_notables(self, nodes: Sequence[Node], limit: int = REACHABLE_LIMIT) -> List[Node]:
        """Unallocated notables/keystones directly adjacent to the allocation."""
        allocated = {n.node_id for n in nodes}
        reachable: List[Node] = []
        seen = set()
        for node in nodes:
            for neighbor_id in self.graph.neighbors(node.node_id):
                if neighbor_id in allocated or neighbor_id in seen:
                    continue
                neighbor = self.graph.get(neighbor_id)
                if neighbor is not None and neighbor.is_high_value:
                    seen.add(neighbor_id)
                    reachable.append(neighbor)
        return reachable[:limit]

    def suggest(
        self,
        nodes: Sequence[Node],
        archetype: str,
        keystones: Sequence[Node],
        notables: Sequence[Node],
    ) -> List[OptimizationSuggestion]:
        suggestions: List[OptimizationSuggestion] = []

        for opt in self.analyze_path_optimizations(nodes)[:3]:
            suggestions.append(OptimizationSuggestion(
                kind="path",
                priority="high" if opt.current_length > 8 else "medium",
                title=f"Long path to {opt.destination}",
                description=opt.suggestion,
                points_saved=opt.points_saved,
            ))

        normal = [n for n in nodes if n.category is NodeCategory.NORMAL]
        low_value = [s for s in self.efficiency_scores(normal) if s.is_low_value or s.stats_per_point < 1]
        if len(low_value) > 3:
            suggestions.append(OptimizationSuggestion(
                kind="efficiency",
                priority="medium",
                title="Multiple low-efficiency pathing nodes detected",
                description=(
                    f"Found {len(low_value)} nodes with minimal stats. Consider reviewing "
                    "your tree pathing for potential point savings."
                ),
                potential_gain=f"Could potentially save {int(len(low_value) * 0.3)} points",
            ))

        reachable = self.reachable_notables(nodes)
        if reachable:
            names = ", ".join(n.display_name for n in reachable[:3])
            suggestions.append(OptimizationSuggestion(
                kind="reachable",
                priority="medium",
                title="High-value notables within reach",
                description=f"Consider allocating these nearby notables: {names}.",
                potential_gain="1-3 additional points for significant stat gains",
            ))

        suggestions.append(OptimizationSuggestion(
            kind="context",
            priority="low",
            title="Build context",
            description=self._context_summary(archetype, keystones, notables, reachable),
        ))
        return suggestions

    @staticmethod
    def _context_summary(
        archetype: str,
        keystones: Sequence[Node],
        notables: Sequence[Node],
        reachable: Sequence[Node],
    ) -> str:
        lines = [
            f"Build Archetype: {archetype}",
            f"Allocated Keystones: {', '.join(k.display_name for k in keystones) or 'None'}",
            f"Notable Passives (count): {len(notables)}",
            "Reachable High-Value Notables:",
        ]
        for node in reachable:
            lines.append(f"- {node.display_name}: {'; '.join(node.stats) or 'No stats'}")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def compare(self, first: AllocatedSet, second: AllocatedSet) -> TreeComparison:
        """Diff two allocations on this graph.

        Raises:
            InvalidNodesError: If either allocation holds unknown ids.
        """
        first_result = self.analyze(first)
        second_result = self.analyze(second)
        first_ids = {n.node_id for n in first_result.allocated_nodes}
        second_ids = {n.node_id for n in second_result.allocated_nodes}

        def pick(ids):
            return [self.graph.nodes[i] for i in sorted(ids, key=int)]

        return TreeComparison(
            unique_to_first=pick(first_ids - second_ids),
            unique_to_second=pick(second_ids - first_ids),
            shared=pick(first_ids & second_ids),
            point_difference=first_result.total_points - second_result.total_points,
            first_archetype=first_result.archetype,
            second_archetype=second_result.archetype,
        )
