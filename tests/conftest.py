"""Pytest configuration and fixtures for treegraph tests."""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator, Iterable

# Module-level config reads TREEGRAPH_HOME at import time; keep tests away
# from the real ~/.treegraph.
_TEST_HOME = tempfile.mkdtemp(prefix="treegraph-home-")
os.environ["TREEGRAPH_HOME"] = _TEST_HOME

import pytest  # noqa: E402

from treegraph import config_manager  # noqa: E402
from treegraph.models import TreeGraph  # noqa: E402
from treegraph.parser import parse_tree_data  # noqa: E402


def lua_node(
    node_id: int,
    name: str = "",
    stats: Iterable[str] = (),
    out: Iterable[int] = (),
    in_: Iterable[int] = (),
    **flags: bool,
) -> str:
    """Render one node body the way the tree data export writes it."""
    lines = [f"        [{node_id}]= {{", f'            ["skill"]= {node_id},']
    if name:
        lines.append(f'            ["name"]= "{name}",')
    lines.append('            ["stats"]= {')
    for stat in stats:
        lines.append(f'                "{stat}",')
    lines.append("            },")
    for key, value in flags.items():
        lines.append(f'            ["{key}"]= {"true" if value else "false"},')
    lines.append('            ["out"]= { ' + ", ".join(f'"{n}"' for n in out) + " },")
    lines.append('            ["in"]= { ' + ", ".join(f'"{n}"' for n in in_) + " },")
    lines.append("        },")
    return "\n".join(lines)


def lua_tree(*bodies: str) -> str:
    """Wrap node bodies in a full tree document, including a groups table."""
    return (
        "return {\n"
        '    ["tree"]= "Default",\n'
        '    ["groups"]= {\n'
        '        [1]= { ["x"]= -100, ["y"]= 50, ["nodes"]= { "1", "2", "3" } },\n'
        '        [2]= { ["x"]= 40, ["y"]= 90, ["nodes"]= { "4", "5" } },\n'
        "    },\n"
        '    ["nodes"]= {\n'
        + "\n".join(bodies)
        + "\n    },\n"
        "}\n"
    )


# Layout (connections are undirected):
#
#   9 - 1 - 2 - 3 - 4 (notable)
#       |   |   |
#       7   5   8 (jewel socket)
#           |
#           6 (notable)
#
# 7 is the Resolute Technique keystone.
SAMPLE_TREE = lua_tree(
    lua_node(1, "Start", ["+10 to maximum Life"], out=[2, 7, 9]),
    lua_node(2, "Damage", ["10% increased Damage"], out=[3, 5], in_=[1]),
    lua_node(3, "Life", ["8% increased maximum Life"], out=[4, 8]),
    lua_node(4, "Heart of Flame", ["25% increased Fire Damage"], in_=[3], isNotable=True),
    lua_node(5, "Life", ["+12 to maximum Life"], out=[6]),
    lua_node(
        6, "Thick Skin", ["+40 to maximum Life", "10% increased maximum Life"],
        in_=[5], isNotable=True,
    ),
    lua_node(
        7, "Resolute Technique",
        ["Your hits can't be evaded", "Never deal Critical Strikes"],
        isKeystone=True,
    ),
    lua_node(8, "Basic Jewel Socket", isJewelSocket=True),
    lua_node(9, "Life", ["+10 to maximum Life"]),
)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def tree_text() -> str:
    return SAMPLE_TREE


@pytest.fixture
def graph() -> TreeGraph:
    """The sample tree parsed as version 3_26."""
    return parse_tree_data(SAMPLE_TREE, "3_26")


@pytest.fixture
def tree_dir(temp_dir: Path) -> Path:
    """A tree data directory holding the sample tree for 3_26."""
    version_dir = temp_dir / "tree_data" / "3_26"
    version_dir.mkdir(parents=True)
    (version_dir / "tree.lua").write_text(SAMPLE_TREE, encoding="utf-8")
    return temp_dir / "tree_data"


@pytest.fixture
def temp_config(temp_dir: Path, monkeypatch) -> Path:
    """Point the config manager at a throwaway config.toml."""
    config_file = temp_dir / "config.toml"
    monkeypatch.setattr(config_manager, "CONFIG_FILE", config_file)
    return config_file
