"""Configuration manager for the tree graph engine using TOML files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import toml

logger = logging.getLogger(__name__)

CONFIG_FILE = Path(
    os.environ.get("TREEGRAPH_HOME", str(Path.home() / ".treegraph"))
).expanduser() / "config.toml"


DEFAULT_ENGINE_CONFIG: Dict[str, Any] = {
    "default_version": "3_26",
    "fallback_version": "3_26",
    "search_radius": 3,
    "max_iterations": 20,
    "max_candidates": 25,
}

# Keys accepted by ``save_engine_config`` and the type each value is coerced to.
ENGINE_KEYS: Dict[str, type] = {
    "default_version": str,
    "fallback_version": str,
    "search_radius": int,
    "max_iterations": int,
    "max_candidates": int,
}


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Could not read %s: %s", CONFIG_FILE, exc)
        return {}


def _save_full_config(config: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(CONFIG_FILE, "w") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write %s: %s", CONFIG_FILE, exc)
        return False


def load_engine_config() -> Dict[str, Any]:
    """Load engine settings from the ``[engine]`` section.

    Returns:
        The defaults overlaid with whatever the file sets.
    """
    config = DEFAULT_ENGINE_CONFIG.copy()
    config.update(load_full_config().get("engine", {}))
    return config


def save_engine_config(**settings: Any) -> bool:
    """Save engine settings to the ``[engine]`` section.

    Preserves other sections in the file.

    Args:
        **settings: Any of the keys in ``ENGINE_KEYS``.

    Returns:
        True if saved successfully, False otherwise.

    Raises:
        ValueError: For an unknown key or a value that cannot be coerced.
    """
    config = load_full_config()
    engine = config.setdefault("engine", {})
    for key, value in settings.items():
        if key not in ENGINE_KEYS:
            raise ValueError(f"Unknown engine setting: {key}")
        engine[key] = ENGINE_KEYS[key](value)
    return _save_full_config(config)


def clear_engine_config() -> bool:
    """Remove ``[engine]`` section from config, resetting to defaults."""
    config = load_full_config()
    config.pop("engine", None)
    return _save_full_config(config)
