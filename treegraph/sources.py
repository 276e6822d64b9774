"""Tree data sources: where raw tree text for a version comes from.

A source is any callable ``fetch(version) -> str`` that raises
:class:`~treegraph.errors.VersionNotFoundError` when it has no data for the
version.  Network retrieval lives outside this package; the directory
source here serves locally mirrored data laid out as
``<root>/<version>/tree.lua``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, List

from .config import TREE_DATA_FILENAME
from .errors import VersionNotFoundError

logger = logging.getLogger(__name__)

TreeSource = Callable[[str], str]


class DirectoryTreeSource:
    """Reads ``<root>/<version>/tree.lua`` from disk."""

    def __init__(self, root: Path, filename: str = TREE_DATA_FILENAME) -> None:
        self.root = root
        self.filename = filename

    def path_for(self, version: str) -> Path:
        return self.root / version / self.filename

    def available_versions(self) -> List[str]:
        if not self.root.exists():
            return []
        return sorted(
            p.name for p in self.root.iterdir() if p.is_dir() and (p / self.filename).exists()
        )

    def __call__(self, version: str) -> str:
        path = self.path_for(version)
        if not path.is_file():
            raise VersionNotFoundError(version)
        logger.debug("Reading tree data for %s from %s", version, path)
        raw = path.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            logger.warning(
                "Tree data %s is not valid UTF-8 (byte %d); undecodable bytes replaced with U+FFFD",
                path, exc.start,
            )
            return raw.decode("utf-8", errors="replace")


class InMemoryTreeSource:
    """Serves raw text from a ``{version: text}`` mapping and counts fetches."""

    def __init__(self, texts: Dict[str, str]) -> None:
        self.texts = dict(texts)
        self.fetches: List[str] = []

    def __call__(self, version: str) -> str:
        self.fetches.append(version)
        if version not in self.texts:
            raise VersionNotFoundError(version)
        return self.texts[version]
