"""Core data models shared by the parser, path engine, analyzer and optimizer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple, Union

from .config import DYNAMIC_NODE_THRESHOLD

NodeIdLike = Union[str, int]


def normalize_node_id(value: NodeIdLike) -> str:
    """Return the canonical string form of a node id.

    Raises:
        ValueError: If *value* is not a non-negative integer id.
    """
    text = str(value).strip()
    if not text.isdigit():
        raise ValueError(f"Invalid node id: {value!r}")
    return str(int(text))


def is_dynamic_node_id(node_id: NodeIdLike) -> bool:
    """True for ids generated at runtime (cluster jewel sockets)."""
    return int(node_id) >= DYNAMIC_NODE_THRESHOLD


class NodeCategory(str, Enum):
    KEYSTONE = "keystone"
    NOTABLE = "notable"
    JEWEL = "jewel"
    NORMAL = "normal"


@dataclass(frozen=True)
class Node:
    """One allocatable passive node. Immutable once parsed."""

    node_id: str
    name: str = ""
    icon: str = ""
    stats: Tuple[str, ...] = ()
    is_keystone: bool = False
    is_notable: bool = False
    is_mastery: bool = False
    is_jewel_socket: bool = False
    is_ascendancy_start: bool = False
    ascendancy_name: Optional[str] = None
    group: Optional[int] = None
    orbit: Optional[int] = None
    orbit_index: Optional[int] = None
    reminder_text: Tuple[str, ...] = ()
    out: Tuple[str, ...] = ()
    in_: Tuple[str, ...] = ()

    @property
    def skill(self) -> int:
        return int(self.node_id)

    @property
    def display_name(self) -> str:
        return self.name or f"Node {self.node_id}"

    @property
    def category(self) -> NodeCategory:
        # Order matters: a keystone flagged notable is still a keystone.
        if self.is_keystone:
            return NodeCategory.KEYSTONE
        if self.is_notable or self.is_mastery:
            return NodeCategory.NOTABLE
        if self.is_jewel_socket:
            return NodeCategory.JEWEL
        return NodeCategory.NORMAL

    @property
    def is_high_value(self) -> bool:
        return self.is_notable or self.is_keystone

    def stat_text(self) -> str:
        return " ".join(self.stats)


@dataclass
class TreeGraph:
    """All nodes of one tree data version, keyed by node id string.

    Connection lists may reference ids that are not present (dangling
    references in upstream data); lookups simply return ``None`` for them.
    A link listed on either end connects both nodes.
    """

    version: str
    nodes: Dict[str, Node] = field(default_factory=dict)
    _adjacency: Dict[str, List[str]] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        adjacency: Dict[str, Dict[str, None]] = {node_id: {} for node_id in self.nodes}
        for node_id, node in self.nodes.items():
            for other in node.out + node.in_:
                if other == node_id:
                    continue
                adjacency[node_id][other] = None
                if other in adjacency:
                    adjacency[other][node_id] = None
        self._adjacency = {node_id: list(links) for node_id, links in adjacency.items()}

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return isinstance(node_id, str) and node_id in self.nodes

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes.values())

    def get(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def neighbors(self, node_id: str) -> List[str]:
        """Ids connected to *node_id* in either direction, first-seen order."""
        return list(self._adjacency.get(node_id, ()))

    def keystones(self) -> List[Node]:
        return [n for n in self.nodes.values() if n.is_keystone]

    def notables(self) -> List[Node]:
        return [n for n in self.nodes.values() if n.is_notable]

    def jewel_sockets(self) -> List[Node]:
        return [n for n in self.nodes.values() if n.is_jewel_socket]

    def ascendancy_starts(self) -> List[Node]:
        return [n for n in self.nodes.values() if n.is_ascendancy_start]

    def find_by_name(self, name: str) -> List[Node]:
        wanted = name.strip().lower()
        return [n for n in self.nodes.values() if n.name.lower() == wanted]


@dataclass
class CategorizedNodes:
    keystones: List[Node] = field(default_factory=list)
    notables: List[Node] = field(default_factory=list)
    jewels: List[Node] = field(default_factory=list)
    normal: List[Node] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.keystones) + len(self.notables) + len(self.jewels) + len(self.normal)


def categorize_nodes(nodes: Iterable[Node]) -> CategorizedNodes:
    """Partition nodes into keystones, notables (incl. masteries), jewels and normal."""
    result = CategorizedNodes()
    buckets = {
        NodeCategory.KEYSTONE: result.keystones,
        NodeCategory.NOTABLE: result.notables,
        NodeCategory.JEWEL: result.jewels,
        NodeCategory.NORMAL: result.normal,
    }
    for node in nodes:
        buckets[node.category].append(node)
    return result


@dataclass
class AllocatedSet:
    """A character's allocated node ids plus the build metadata the engine needs."""

    node_ids: FrozenSet[str] = frozenset()
    level: int = 1
    class_id: int = 0
    ascend_class_id: int = 0
    tree_version: Optional[str] = None

    def __post_init__(self):
        self.node_ids = frozenset(normalize_node_id(n) for n in self.node_ids)

    @classmethod
    def from_string(cls, node_list: str, **metadata) -> "AllocatedSet":
        """Build from a comma-separated id list such as ``"123,456,789"``."""
        ids = [part for part in (p.strip() for p in node_list.split(",")) if part]
        return cls(node_ids=frozenset(ids), **metadata)

    def __len__(self) -> int:
        return len(self.node_ids)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.node_ids

    def static_ids(self) -> FrozenSet[str]:
        return frozenset(n for n in self.node_ids if not is_dynamic_node_id(n))

    def dynamic_ids(self) -> FrozenSet[str]:
        return frozenset(n for n in self.node_ids if is_dynamic_node_id(n))

    def sorted_ids(self) -> List[str]:
        return sorted(self.node_ids, key=int)

    def with_nodes(self, node_ids: Iterable[NodeIdLike]) -> "AllocatedSet":
        return AllocatedSet(
            node_ids=frozenset(normalize_node_id(n) for n in node_ids),
            level=self.level,
            class_id=self.class_id,
            ascend_class_id=self.ascend_class_id,
            tree_version=self.tree_version,
        )


# ---------------------------------------------------------------------------
# Path results
# ---------------------------------------------------------------------------

@dataclass
class TreePath:
    """Nodes to allocate (in order, ending at the target) and their cost."""

    nodes: List[str]
    cost: float


@dataclass
class NearbyNode:
    node_id: str
    node: Node
    distance: float
    path_cost: float


# ---------------------------------------------------------------------------
# Analysis results
# ---------------------------------------------------------------------------

@dataclass
class PathOptimization:
    destination: str
    current_length: int
    optimal_length: int
    points_saved: int
    suggestion: str


@dataclass
class EfficiencyScore:
    node_id: str
    node_name: str
    stats_per_point: float
    is_low_value: bool


@dataclass
class OptimizationSuggestion:
    kind: str  # path | efficiency | reachable | context
    priority: str  # high | medium | low
    title: str
    description: str
    points_saved: Optional[int] = None
    potential_gain: Optional[str] = None


@dataclass
class AnalysisResult:
    total_points: int
    available_points: int
    allocated_nodes: List[Node]
    keystones: List[Node]
    notables: List[Node]
    jewels: List[Node]
    normal_nodes: List[Node]
    archetype: str
    archetype_confidence: str
    pathing_efficiency: str
    tree_version: str
    build_version: Optional[str] = None
    version_mismatch: bool = False
    invalid_node_ids: List[str] = field(default_factory=list)
    optimization_suggestions: List[OptimizationSuggestion] = field(default_factory=list)


@dataclass
class TreeComparison:
    unique_to_first: List[Node]
    unique_to_second: List[Node]
    shared: List[Node]
    point_difference: int
    first_archetype: str
    second_archetype: str

    @property
    def archetype_difference(self) -> str:
        if self.first_archetype == self.second_archetype:
            return "Same archetype"
        return f"{self.first_archetype} vs {self.second_archetype}"


# ---------------------------------------------------------------------------
# Optimization
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OptimizationConstraints:
    """Minimum thresholds and protected nodes for one optimization run.

    A threshold of ``None`` or ``0`` leaves that stat unconstrained.
    """

    min_life: Optional[float] = None
    min_es: Optional[float] = None
    min_ehp: Optional[float] = None
    min_fire_resist: Optional[float] = None
    min_cold_resist: Optional[float] = None
    min_lightning_resist: Optional[float] = None
    min_chaos_resist: Optional[float] = None
    protected_nodes: FrozenSet[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(
            self,
            "protected_nodes",
            frozenset(normalize_node_id(n) for n in self.protected_nodes),
        )


@dataclass(frozen=True)
class StatSnapshot:
    life: float = 0.0
    energy_shield: float = 0.0
    dps: float = 0.0
    total_life: Optional[float] = None
    fire_resist: float = 0.0
    cold_resist: float = 0.0
    lightning_resist: float = 0.0
    chaos_resist: float = 0.0
    points_allocated: int = 0

    @property
    def ehp(self) -> float:
        return self.life + self.energy_shield


@dataclass
class Improvements:
    target_value_gain: float
    target_value_percent: float
    life_change: float
    es_change: float
    dps_change: float
    points_change: int


@dataclass
class FormattedTree:
    class_id: int
    ascend_class_id: int
    nodes: List[int]


@dataclass
class OptimizationResult:
    goal: str
    goal_description: str
    starting_stats: StatSnapshot
    final_stats: StatSnapshot
    starting_score: float
    final_score: float
    improvements: Improvements
    iterations: int
    nodes_added: List[str]
    nodes_removed: List[str]
    constraints_met: bool
    formatted_tree: FormattedTree
    warnings: List[str] = field(default_factory=list)

    @property
    def score_delta(self) -> float:
        return self.final_score - self.starting_score

    @property
    def net_point_change(self) -> int:
        return len(self.nodes_added) - len(self.nodes_removed)

    @property
    def has_changes(self) -> bool:
        return bool(self.nodes_added or self.nodes_removed)
