"""Configuration paths and engine defaults for the tree graph engine."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("TREEGRAPH_HOME", str(Path.home() / ".treegraph"))).expanduser()
TREE_DATA_DIR = BASE_DIR / "tree_data"
TREE_DATA_FILENAME = "tree.lua"

# Node ids at or above this value are generated at runtime for cluster
# jewel sockets and never exist in the static tree data.
DYNAMIC_NODE_THRESHOLD = 65536

# Passive points granted by quests on top of one point per level after 1.
QUEST_POINTS = 22

from .config_manager import load_engine_config  # noqa: E402

_engine_config = load_engine_config()

# Engine defaults -- loaded from ~/.treegraph/config.toml ([engine] table, set via `treegraph set-config`)
DEFAULT_TREE_VERSION = str(_engine_config.get("default_version", "3_26"))
FALLBACK_TREE_VERSION = str(_engine_config.get("fallback_version", "3_26"))
SEARCH_RADIUS = int(_engine_config.get("search_radius", 3))
MAX_ITERATIONS = int(_engine_config.get("max_iterations", 20))
MAX_CANDIDATES = int(_engine_config.get("max_candidates", 25))


def ensure_base_dirs() -> None:
    """Create base directories for local storage if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
    TREE_DATA_DIR.mkdir(parents=True, exist_ok=True)
