"""Tests for the versioned tree cache and tree sources."""

import pytest

from conftest import SAMPLE_TREE, lua_node, lua_tree
from treegraph.cache import VersionedCache
from treegraph.errors import TreeDataUnavailableError, TreeParseError, VersionNotFoundError
from treegraph.parser import parse_tree_data
from treegraph.sources import DirectoryTreeSource, InMemoryTreeSource

OTHER_TREE = lua_tree(lua_node(100, "Other"))


@pytest.fixture
def source() -> InMemoryTreeSource:
    return InMemoryTreeSource({"3_26": SAMPLE_TREE, "3_25": OTHER_TREE})


class TestVersionedCache:
    """Tests for VersionedCache lookups."""

    def test_parses_once_per_version(self, source):
        cache = VersionedCache(source, fallback_version="3_26")
        first = cache.get("3_25")
        second = cache.get("3_25")
        assert first is second
        assert source.fetches == ["3_25"]
        assert first.version == "3_25"

    def test_default_version(self, source):
        cache = VersionedCache(source, fallback_version="3_26")
        resolved = cache.resolve()
        assert resolved.requested_version == "3_26"
        assert not resolved.is_fallback

    def test_fallback_is_reported(self, source):
        cache = VersionedCache(source, fallback_version="3_26")
        resolved = cache.resolve("3_27")
        assert resolved.is_fallback
        assert resolved.requested_version == "3_27"
        assert resolved.actual_version == "3_26"
        assert source.fetches == ["3_27", "3_26"]

    def test_fallback_cached_under_requested_version(self, source):
        cache = VersionedCache(source, fallback_version="3_26")
        cache.get("3_27")
        cache.get("3_27")
        assert source.fetches == ["3_27", "3_26"]
        assert "3_27" in cache

    def test_fallback_happens_at_most_once(self):
        source = InMemoryTreeSource({})
        cache = VersionedCache(source, fallback_version="3_26")
        with pytest.raises(TreeDataUnavailableError) as exc_info:
            cache.get("3_27")
        assert source.fetches == ["3_27", "3_26"]
        assert exc_info.value.fallback_version == "3_26"

    def test_missing_fallback_version_itself(self):
        source = InMemoryTreeSource({})
        cache = VersionedCache(source, fallback_version="3_26")
        with pytest.raises(TreeDataUnavailableError):
            cache.get("3_26")
        assert source.fetches == ["3_26"]

    def test_parse_errors_propagate(self):
        source = InMemoryTreeSource({"3_26": ""})
        cache = VersionedCache(source, fallback_version="3_26")
        with pytest.raises(TreeParseError):
            cache.get("3_26")
        assert "3_26" not in cache


class TestCacheMutation:
    """Tests for put and invalidate."""

    def test_put_uses_graph_version(self, source):
        cache = VersionedCache(source)
        graph = parse_tree_data(OTHER_TREE, "custom")
        cache.put(graph)
        assert cache.get("custom") is graph
        assert source.fetches == []

    def test_invalidate_one(self, source):
        cache = VersionedCache(source, fallback_version="3_26")
        cache.get("3_26")
        cache.get("3_25")
        assert cache.invalidate("3_25") == 1
        assert cache.versions() == ["3_26"]
        assert cache.invalidate("3_25") == 0

    def test_invalidate_all_forces_refetch(self, source):
        cache = VersionedCache(source, fallback_version="3_26")
        cache.get("3_26")
        assert cache.invalidate() == 1
        cache.get("3_26")
        assert source.fetches == ["3_26", "3_26"]

    def test_fetched_at(self, source):
        cache = VersionedCache(source, fallback_version="3_26")
        assert cache.fetched_at("3_26") is None
        cache.get("3_26")
        assert cache.fetched_at("3_26") is not None


class TestDirectoryTreeSource:
    """Tests for reading tree data from disk."""

    def test_reads_version_file(self, tree_dir):
        source = DirectoryTreeSource(tree_dir)
        assert source("3_26") == SAMPLE_TREE
        assert source.available_versions() == ["3_26"]

    def test_missing_version(self, tree_dir):
        with pytest.raises(VersionNotFoundError):
            DirectoryTreeSource(tree_dir)("9_99")

    def test_missing_root(self, temp_dir):
        assert DirectoryTreeSource(temp_dir / "nope").available_versions() == []

    def test_invalid_utf8_is_replaced_and_logged(self, temp_dir, caplog):
        version_dir = temp_dir / "3_26"
        version_dir.mkdir()
        (version_dir / "tree.lua").write_bytes(b'[1]= { ["skill"]= 1, ["name"]= "Bad\xff Byte" }')
        with caplog.at_level("WARNING", logger="treegraph.sources"):
            text = DirectoryTreeSource(temp_dir)("3_26")
        assert '"Bad\ufffd Byte"' in text
        assert "not valid UTF-8" in caplog.text
