"""Passive skill tree graph engine: parsing, path finding, analysis and optimization."""

__version__ = "0.1.0"

from .analyzer import TreeAnalyzer
from .cache import VersionedCache
from .errors import (
    InvalidNodesError,
    TreeDataUnavailableError,
    TreeGraphError,
    TreeParseError,
    VersionNotFoundError,
)
from .models import AllocatedSet, Node, OptimizationConstraints, TreeGraph
from .optimizer import TreeOptimizer
from .parser import parse_tree_data
from .pathing import PathEngine
from .scoring import OptimizationGoal

__all__ = [
    "__version__",
    "AllocatedSet",
    "InvalidNodesError",
    "Node",
    "OptimizationConstraints",
    "OptimizationGoal",
    "PathEngine",
    "TreeAnalyzer",
    "TreeDataUnavailableError",
    "TreeGraph",
    "TreeGraphError",
    "TreeOptimizer",
    "TreeParseError",
    "VersionNotFoundError",
    "VersionedCache",
    "parse_tree_data",
]
