"""Exception types raised by the tree graph engine."""

from __future__ import annotations

from typing import List, Optional


class TreeGraphError(Exception):
    """Base class for every error the engine raises on purpose."""


class TreeParseError(TreeGraphError):
    """Raised when raw tree data yields no usable nodes at all."""


class MalformedNodeError(TreeParseError):
    """A single node body could not be parsed.

    The parser catches this per node and skips the node; it only escapes
    when a caller parses one body directly.
    """

    def __init__(self, node_id: str, reason: str):
        super().__init__(f"Node {node_id}: {reason}")
        self.node_id = node_id
        self.reason = reason


class VersionNotFoundError(TreeGraphError):
    """Raised by a tree source when it has no data for a version."""

    def __init__(self, version: str):
        super().__init__(f"Tree data for version '{version}' not found")
        self.version = version


class TreeDataUnavailableError(TreeGraphError):
    """Neither the requested version nor the fallback version could be loaded."""

    def __init__(self, requested_version: str, fallback_version: Optional[str] = None):
        if fallback_version and fallback_version != requested_version:
            message = (
                f"Tree data for version '{requested_version}' not found, "
                f"and fallback version '{fallback_version}' is unavailable too"
            )
        else:
            message = f"Tree data for version '{requested_version}' not found"
        super().__init__(message)
        self.requested_version = requested_version
        self.fallback_version = fallback_version


class InvalidNodesError(TreeGraphError):
    """Allocated node ids that do not exist in the resolved tree data."""

    def __init__(
        self,
        invalid_ids: List[str],
        requested_version: str,
        actual_version: str,
    ):
        self.invalid_ids = list(invalid_ids)
        self.requested_version = requested_version
        self.actual_version = actual_version
        super().__init__(self._build_message())

    @property
    def is_version_mismatch(self) -> bool:
        return self.requested_version != self.actual_version

    def _build_message(self) -> str:
        listed = "\n".join(f"- Node ID: {node_id}" for node_id in self.invalid_ids)
        message = (
            "Invalid passive tree data detected.\n\n"
            "The following node IDs could not be found in the passive tree data:\n"
            f"{listed}\n\n"
        )
        if self.is_version_mismatch:
            message += (
                f"Build tree version: {self.requested_version}\n"
                f"Available tree data: {self.actual_version} "
                f"(fell back because {self.requested_version} data is not available yet)\n\n"
                f"The build uses nodes from {self.requested_version} that do not exist "
                f"in {self.actual_version}.\n"
                "Options:\n"
                f"1. Wait for tree data for {self.requested_version} to be published\n"
                f"2. Use a build from {self.actual_version} or earlier\n"
            )
        else:
            message += (
                "This usually means:\n"
                "1. The build is from an outdated league/patch\n"
                "2. The build file is corrupted\n"
                "3. The passive tree data needs to be refreshed\n"
            )
        return message
