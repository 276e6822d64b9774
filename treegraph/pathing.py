"""Path finding over a passive tree graph.

Two searches share one :class:`TreeGraph`:

* a breadth-first search restricted to the allocated subgraph, for path
  lengths inside the tree a character already has, and
* a multi-source Dijkstra over the whole graph seeded from every allocated
  node at distance 0, for "what is nearby" and "how do I get there".

Connections are traversed in both directions.  Node ids at or above the
dynamic threshold are never seeded or looked up.  Tracing goes through an
optional observer callback instead of inline logging.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from collections import deque
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from .models import (
    AllocatedSet,
    NearbyNode,
    NodeIdLike,
    TreeGraph,
    TreePath,
    is_dynamic_node_id,
    normalize_node_id,
)

logger = logging.getLogger(__name__)

Observer = Callable[[str, Dict[str, Any]], None]
EdgeWeight = Callable[[str, str], float]

INFINITY = float("inf")


def unit_weight(src: str, dst: str) -> float:
    return 1.0


def logging_observer(event: str, payload: Dict[str, Any]) -> None:
    """Observer that forwards search events to this module's debug log."""
    logger.debug("[%s] %s", event, payload)


def allocated_ids(allocated: Iterable[NodeIdLike]) -> Set[str]:
    """Normalized static ids of an allocation (dynamic socket ids dropped)."""
    if isinstance(allocated, AllocatedSet):
        return set(allocated.static_ids())
    ids = set()
    for raw in allocated:
        node_id = normalize_node_id(raw)
        if not is_dynamic_node_id(node_id):
            ids.add(node_id)
    return ids


class PathEngine:
    """Shortest-path queries against one immutable tree graph."""

    def __init__(
        self,
        graph: TreeGraph,
        weight: Optional[EdgeWeight] = None,
        observer: Optional[Observer] = None,
    ) -> None:
        self.graph = graph
        self.weight = weight or unit_weight
        self.observer = observer

    def _emit(self, event: str, **payload: Any) -> None:
        if self.observer is not None:
            self.observer(event, payload)

    def _seeds(self, allocated: Iterable[NodeIdLike]) -> Set[str]:
        return {node_id for node_id in allocated_ids(allocated) if node_id in self.graph}

    def _neighbors(self, node_id: str) -> List[str]:
        return [
            other for other in self.graph.neighbors(node_id)
            if not is_dynamic_node_id(other) and other in self.graph
        ]

    # ------------------------------------------------------------------
    # Allocated subgraph
    # ------------------------------------------------------------------

    def allocated_adjacency(self, allocated: Iterable[NodeIdLike]) -> Dict[str, List[str]]:
        """Adjacency lists of the subgraph induced by the allocation."""
        ids = self._seeds(allocated)
        return {
            node_id: [other for other in self.graph.neighbors(node_id) if other in ids]
            for node_id in ids
        }

    def shortest_allocated_path(
        self,
        allocated: Iterable[NodeIdLike],
        start: NodeIdLike,
        end: NodeIdLike,
    ) -> Optional[List[str]]:
        """Fewest-hop path between two allocated nodes through allocated nodes only.

        Returns:
            The node ids from *start* to *end* inclusive, or None when either
            end is not allocated or no path exists.
        """
        start, end = normalize_node_id(start), normalize_node_id(end)
        adjacency = self.allocated_adjacency(allocated)
        if start not in adjacency or end not in adjacency:
            return None
        if start == end:
            return [start]

        previous: Dict[str, str] = {}
        visited = {start}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for neighbor in adjacency[current]:
                if neighbor in visited:
                    continue
                visited.add(neighbor)
                previous[neighbor] = current
                if neighbor == end:
                    path = [end]
                    while path[-1] != start:
                        path.append(previous[path[-1]])
                    path.reverse()
                    return path
                queue.append(neighbor)
        return None

    def component_count(self, allocated: Iterable[NodeIdLike]) -> int:
        """Number of connected pieces the allocated subgraph falls into."""
        adjacency = self.allocated_adjacency(allocated)
        seen: Set[str] = set()
        components = 0
        for root in adjacency:
            if root in seen:
                continue
            components += 1
            seen.add(root)
            queue = deque([root])
            while queue:
                current = queue.popleft()
                for neighbor in adjacency[current]:
                    if neighbor not in seen:
                        seen.add(neighbor)
                        queue.append(neighbor)
        return components

    # ------------------------------------------------------------------
    # Full graph, multi-source Dijkstra
    # ------------------------------------------------------------------

    def _dijkstra(
        self,
        seeds: Set[str],
        max_distance: Optional[float] = None,
        stop_at: Optional[str] = None,
        on_settle: Optional[Callable[[str, float], None]] = None,
    ) -> Tuple[Dict[str, float], Dict[str, str], Dict[str, int]]:
        """Settle nodes in distance order from every seed at once.

        Returns:
            ``(distances, previous, hops)`` for settled nodes only.
        """
        counter = itertools.count()
        tentative: Dict[str, float] = {}
        hops_to: Dict[str, int] = {}
        previous: Dict[str, str] = {}
        heap: List[Tuple[float, int, str]] = []
        for seed in sorted(seeds, key=int):
            tentative[seed] = 0.0
            hops_to[seed] = 0
            heapq.heappush(heap, (0.0, next(counter), seed))

        self._emit("search_started", seeds=len(seeds), max_distance=max_distance, target=stop_at)

        settled: Dict[str, float] = {}
        while heap:
            dist, _, current = heapq.heappop(heap)
            if current in settled or dist > tentative.get(current, INFINITY):
                continue
            if max_distance is not None and dist > max_distance:
                break
            settled[current] = dist
            self._emit("node_settled", node=current, distance=dist)
            if on_settle is not None:
                on_settle(current, dist)
            if current == stop_at:
                break
            for neighbor in self._neighbors(current):
                if neighbor in settled:
                    continue
                candidate = dist + self.weight(current, neighbor)
                if candidate < tentative.get(neighbor, INFINITY):
                    tentative[neighbor] = candidate
                    previous[neighbor] = current
                    hops_to[neighbor] = hops_to[current] + 1
                    heapq.heappush(heap, (candidate, next(counter), neighbor))

        self._emit("search_finished", settled=len(settled))
        hops = {node_id: hops_to[node_id] for node_id in settled}
        return settled, previous, hops

    def distances(
        self,
        allocated: Iterable[NodeIdLike],
        max_distance: Optional[float] = None,
    ) -> Dict[str, float]:
        """Distance from the allocation to every reachable node (allocated = 0)."""
        settled, _, _ = self._dijkstra(self._seeds(allocated), max_distance=max_distance)
        return settled

    def find_nearby_nodes(
        self,
        allocated: Iterable[NodeIdLike],
        max_distance: float,
        stat_filter: Optional[str] = None,
    ) -> List[NearbyNode]:
        """Unallocated notables and keystones within *max_distance* of the allocation.

        ``stat_filter`` keeps only nodes whose name or stat text contains it
        (case-insensitive); filtered-out nodes are still searched through.
        Results are ordered by distance, then hop count.
        """
        seeds = self._seeds(allocated)
        wanted = stat_filter.lower() if stat_filter else None
        found: List[Tuple[str, float]] = []

        def collect(node_id: str, dist: float) -> None:
            node = self.graph.get(node_id)
            if node is None or node_id in seeds or not node.is_high_value or dist <= 0:
                return
            if wanted and wanted not in node.stat_text().lower() and wanted not in node.name.lower():
                return
            found.append((node_id, dist))
            self._emit("candidate_found", node=node_id, name=node.name, distance=dist)

        _, _, hops = self._dijkstra(seeds, max_distance=max_distance, on_settle=collect)

        results = [
            NearbyNode(node_id=node_id, node=self.graph.nodes[node_id], distance=dist, path_cost=hops[node_id])
            for node_id, dist in found
        ]
        results.sort(key=lambda r: (r.distance, r.path_cost))
        return results

    def find_shortest_paths(
        self,
        allocated: Iterable[NodeIdLike],
        target: NodeIdLike,
    ) -> List[TreePath]:
        """Cheapest way to extend the allocation to *target*.

        Returns:
            A list with one :class:`TreePath` whose nodes run from the first
            unallocated step to the target, or an empty list when the target
            is already allocated, unknown, dynamic, or unreachable.
        """
        target = normalize_node_id(target)
        if is_dynamic_node_id(target) or target not in self.graph:
            return []
        seeds = self._seeds(allocated)
        if target in seeds or not seeds:
            return []

        settled, previous, _ = self._dijkstra(seeds, stop_at=target)
        if target not in settled:
            return []

        path: List[str] = []
        current = target
        while current not in seeds:
            path.append(current)
            current = previous[current]
        path.reverse()
        return [TreePath(nodes=path, cost=settled[target])]
