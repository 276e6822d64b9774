"""Version-keyed cache of parsed tree graphs.

The cache owns no I/O.  Raw text comes from an injected tree source; the
cache parses it once per version, keeps the graph until it is explicitly
invalidated, and falls back to a designated version exactly once when the
source has no data for the requested one.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .config import DEFAULT_TREE_VERSION, FALLBACK_TREE_VERSION
from .errors import TreeDataUnavailableError, VersionNotFoundError
from .models import TreeGraph
from .parser import parse_tree_data
from .sources import TreeSource

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    graph: TreeGraph
    fetched_at: float


@dataclass
class ResolvedTree:
    """A graph plus the version the caller asked for."""

    graph: TreeGraph
    requested_version: str

    @property
    def actual_version(self) -> str:
        return self.graph.version

    @property
    def is_fallback(self) -> bool:
        return self.graph.version != self.requested_version


class VersionedCache:
    """Holds one parsed :class:`TreeGraph` per requested version.

    Graphs are read-only once built and may be shared between concurrent
    analyses; only inserts and invalidation take the lock.
    """

    def __init__(
        self,
        source: TreeSource,
        fallback_version: Optional[str] = None,
        parse: Callable[[str, str], TreeGraph] = parse_tree_data,
    ) -> None:
        self.source = source
        self.fallback_version = fallback_version or FALLBACK_TREE_VERSION
        self._parse = parse
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, version: Optional[str] = None) -> TreeGraph:
        """Return the graph for *version*; ``graph.version`` names the data actually used."""
        return self.resolve(version).graph

    def resolve(self, version: Optional[str] = None) -> ResolvedTree:
        version = version or DEFAULT_TREE_VERSION
        entry = self._entries.get(version)
        if entry is not None:
            logger.debug("Tree cache hit for version %s", version)
            return ResolvedTree(graph=entry.graph, requested_version=version)

        logger.debug("Tree cache miss for version %s", version)
        graph = self._load(version)
        with self._lock:
            # Another caller may have loaded it meanwhile; keep the first.
            entry = self._entries.setdefault(version, CacheEntry(graph, time.time()))
        return ResolvedTree(graph=entry.graph, requested_version=version)

    def _load(self, version: str) -> TreeGraph:
        try:
            return self._parse(self.source(version), version)
        except VersionNotFoundError:
            if version == self.fallback_version:
                raise TreeDataUnavailableError(version) from None
            logger.warning(
                "Tree data for %s not found, falling back to %s", version, self.fallback_version,
            )

        try:
            return self._parse(self.source(self.fallback_version), self.fallback_version)
        except VersionNotFoundError:
            raise TreeDataUnavailableError(version, self.fallback_version) from None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def put(self, graph: TreeGraph, version: Optional[str] = None) -> None:
        """Store an already-parsed graph under *version* (default: its own tag)."""
        with self._lock:
            self._entries[version or graph.version] = CacheEntry(graph, time.time())

    def invalidate(self, version: Optional[str] = None) -> int:
        """Drop one version, or every version when *version* is None.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            if version is None:
                removed = len(self._entries)
                self._entries.clear()
                logger.info("Cleared all cached tree data")
                return removed
            if self._entries.pop(version, None) is None:
                return 0
        logger.info("Cleared cached tree data for version %s", version)
        return 1

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def __contains__(self, version: object) -> bool:
        return version in self._entries

    def versions(self) -> List[str]:
        return sorted(self._entries)

    def fetched_at(self, version: str) -> Optional[float]:
        entry = self._entries.get(version)
        return entry.fetched_at if entry else None
