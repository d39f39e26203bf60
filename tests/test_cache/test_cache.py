"""
Tests for the index cache.

Covers:
- CachePayload (parallel arrays, equal-length invariant, strict types)
- IndexCache.save / load round trip, file format, atomic write, file mode
- load_or_build (miss → scan + write, hit → no rescan, no invalidation)
- Corruption handling (CacheCorruptError, no silent truncation)
- clear / rebuild (a failed rescan keeps the old cache)
"""

import json
import os
import stat
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from pkgsrc.indexer.cache import (
    CACHE_FILE,
    CacheCorruptError,
    CachePayload,
    IndexCache,
)
from pkgsrc.indexer.descr import DescriptionTooLargeError
from pkgsrc.indexer.tree import PackageRecord, TreeScanner


def make_package(root: Path, category: str, name: str, descr: str) -> None:
    package_dir = root / category / name
    package_dir.mkdir(parents=True, exist_ok=True)
    (package_dir / "DESCR").write_text(descr)


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    root = tmp_path / "pkgsrc"
    make_package(root, "archivers", "libzip", "Zip archive library. More.")
    make_package(root, "devel", "gmake", "GNU version of make.")
    make_package(root, "wip", "libzip", "Newer libzip.")
    return root


@pytest.fixture
def cache(tree: Path) -> IndexCache:
    return IndexCache(tree)


RECORDS = [
    PackageRecord("archivers", "libzip", "Zip archive library"),
    PackageRecord("devel", "gmake", "GNU version of make"),
    PackageRecord("misc", "empty", ""),
]


# ── Tests: CachePayload ──────────────────────────────────────────────────


class TestCachePayload:
    def test_from_records_is_columnar(self):
        payload = CachePayload.from_records(RECORDS)
        assert payload.names == ["libzip", "gmake", "empty"]
        assert payload.categories == ["archivers", "devel", "misc"]
        assert payload.descriptions == ["Zip archive library", "GNU version of make", ""]

    def test_to_records_zips_positionally(self):
        assert CachePayload.from_records(RECORDS).to_records() == RECORDS

    def test_length_mismatch_rejected(self):
        with pytest.raises(ValueError):
            CachePayload(names=["a", "b", "c"], categories=["x", "y"], descriptions=["1", "2", "3"])

    def test_non_string_rejected(self):
        with pytest.raises(ValueError):
            CachePayload.model_validate_json('{"names": [1], "categories": ["a"], "descriptions": ["b"]}')


# ── Tests: save / load ───────────────────────────────────────────────────


class TestSaveLoad:
    def test_default_location(self, cache: IndexCache, tree: Path):
        assert cache.path == tree / CACHE_FILE

    def test_round_trip(self, cache: IndexCache):
        cache.save(RECORDS)
        index = cache.load()
        assert list(index.records) == RECORDS
        assert index.source == "cache"

    def test_file_format(self, cache: IndexCache):
        cache.save(RECORDS)
        data = json.loads(cache.path.read_text(encoding="utf-8"))
        assert set(data) == {"names", "categories", "descriptions"}
        assert data["names"] == ["libzip", "gmake", "empty"]

    def test_file_is_indented(self, cache: IndexCache):
        cache.save(RECORDS)
        text = cache.path.read_text(encoding="utf-8")
        assert '\n  "names": [\n' in text

    def test_non_ascii_round_trip(self, cache: IndexCache):
        records = [PackageRecord("fonts", "noto", "Police de caractères")]
        cache.save(records)
        assert list(cache.load().records) == records

    def test_empty_index(self, cache: IndexCache):
        cache.save([])
        assert len(cache.load()) == 0

    def test_save_leaves_no_temp_files(self, cache: IndexCache, tree: Path):
        cache.save(RECORDS)
        leftovers = [p.name for p in tree.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_failed_write_keeps_previous_cache(self, cache: IndexCache, tree: Path):
        cache.save(RECORDS)
        with patch("pkgsrc.indexer.cache.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                cache.save(RECORDS[:1])
        assert list(cache.load().records) == RECORDS
        assert [p for p in tree.iterdir() if p.name.endswith(".tmp")] == []

    def test_unwritable_location_raises(self, tmp_path: Path):
        cache = IndexCache(tmp_path / "missing-dir")
        with pytest.raises(OSError):
            cache.save(RECORDS)

    def test_custom_filename(self, tree: Path):
        cache = IndexCache(tree, cache_file="index.json")
        cache.save(RECORDS)
        assert (tree / "index.json").is_file()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    @pytest.mark.parametrize("umask, mode", [(0o022, 0o644), (0o027, 0o640)])
    def test_file_mode_follows_umask(self, cache: IndexCache, umask: int, mode: int):
        previous = os.umask(umask)
        try:
            cache.save(RECORDS)
        finally:
            os.umask(previous)
        assert stat.S_IMODE(cache.path.stat().st_mode) == mode

    @pytest.mark.skipif(sys.platform != "linux", reason="needs arbitrary bytes in file names")
    def test_tree_with_non_utf8_names_is_cached(self, cache: IndexCache, tree: Path):
        package_dir = os.path.join(os.fsencode(tree), b"misc", b"caf\xe9")
        os.makedirs(package_dir)
        with open(os.path.join(package_dir, b"DESCR"), "w") as f:
            f.write("Not indexed.")

        index = cache.load_or_build(TreeScanner(tree))

        assert len(index) == 3
        assert list(cache.load().records) == list(index.records)


# ── Tests: corruption ────────────────────────────────────────────────────


class TestCorruption:
    def write(self, cache: IndexCache, content: str | bytes) -> None:
        if isinstance(content, bytes):
            cache.path.write_bytes(content)
        else:
            cache.path.write_text(content, encoding="utf-8")

    def test_length_mismatch(self, cache: IndexCache):
        self.write(cache, json.dumps({
            "names": ["a", "b", "c"],
            "categories": ["x", "y"],
            "descriptions": ["1", "2", "3"],
        }))
        with pytest.raises(CacheCorruptError) as exc_info:
            cache.load()
        assert "differ in length" in str(exc_info.value)
        assert exc_info.value.path == cache.path

    def test_malformed_json(self, cache: IndexCache):
        self.write(cache, '{"names": [')
        with pytest.raises(CacheCorruptError):
            cache.load()

    def test_missing_key(self, cache: IndexCache):
        self.write(cache, json.dumps({"names": [], "categories": []}))
        with pytest.raises(CacheCorruptError):
            cache.load()

    def test_wrong_type(self, cache: IndexCache):
        self.write(cache, json.dumps({"names": "libzip", "categories": [], "descriptions": []}))
        with pytest.raises(CacheCorruptError):
            cache.load()

    def test_top_level_array(self, cache: IndexCache):
        self.write(cache, "[]")
        with pytest.raises(CacheCorruptError):
            cache.load()

    def test_invalid_utf8(self, cache: IndexCache):
        self.write(cache, b'{"names": ["\xff"], "categories": ["a"], "descriptions": ["b"]}')
        with pytest.raises(CacheCorruptError):
            cache.load()

    def test_corrupt_cache_is_not_rebuilt_automatically(self, cache: IndexCache, tree: Path):
        self.write(cache, "not json")
        with pytest.raises(CacheCorruptError):
            cache.load_or_build(TreeScanner(tree))
        assert cache.path.read_text(encoding="utf-8") == "not json"


# ── Tests: load_or_build ─────────────────────────────────────────────────


class TestLoadOrBuild:
    def test_miss_scans_and_writes(self, cache: IndexCache, tree: Path):
        assert not cache.exists()
        index = cache.load_or_build(TreeScanner(tree))
        assert index.source == "scan"
        assert len(index) == 3
        assert cache.exists()

    def test_round_trip_law(self, cache: IndexCache, tree: Path):
        first = cache.load_or_build(TreeScanner(tree))
        second = cache.load_or_build(TreeScanner(tree))
        assert second.source == "cache"
        assert list(first.records) == list(second.records)

    def test_hit_does_not_rescan(self, cache: IndexCache, tree: Path):
        cache.load_or_build(TreeScanner(tree))
        with patch.object(TreeScanner, "scan", side_effect=AssertionError("rescanned")):
            index = cache.load_or_build(TreeScanner(tree))
        assert index.source == "cache"

    def test_cache_is_not_invalidated_by_tree_changes(self, cache: IndexCache, tree: Path):
        cache.load_or_build(TreeScanner(tree))
        make_package(tree, "net", "curl", "Transfer tool.")
        index = cache.load_or_build(TreeScanner(tree))
        assert index.find("curl") is None

    def test_duplicate_names_survive(self, cache: IndexCache, tree: Path):
        cache.load_or_build(TreeScanner(tree))
        index = cache.load_or_build(TreeScanner(tree))
        assert sorted(r.category for r in index if r.name == "libzip") == ["archivers", "wip"]


# ── Tests: clear / rebuild ───────────────────────────────────────────────


class TestClearRebuild:
    def test_clear_existing(self, cache: IndexCache):
        cache.save(RECORDS)
        assert cache.clear() is True
        assert not cache.exists()

    def test_clear_missing(self, cache: IndexCache):
        assert cache.clear() is False

    def test_rebuild_picks_up_new_packages(self, cache: IndexCache, tree: Path):
        cache.load_or_build(TreeScanner(tree))
        make_package(tree, "net", "curl", "Transfer tool.")
        index = cache.rebuild(TreeScanner(tree))
        assert index.source == "scan"
        assert index.find("curl") is not None
        assert cache.load().find("curl") is not None

    def test_failed_rebuild_keeps_previous_cache(self, cache: IndexCache, tree: Path):
        cache.load_or_build(TreeScanner(tree))
        make_package(tree, "misc", "huge", "x" * 5000)
        with pytest.raises(DescriptionTooLargeError):
            cache.rebuild(TreeScanner(tree))
        assert len(cache.load()) == 3

    def test_rebuild_without_existing_cache(self, cache: IndexCache, tree: Path):
        index = cache.rebuild(TreeScanner(tree))
        assert len(index) == 3
        assert cache.exists()

    def test_rebuild_replaces_corrupt_cache(self, cache: IndexCache, tree: Path):
        cache.path.write_text("garbage")
        index = cache.rebuild(TreeScanner(tree))
        assert len(index) == 3
        assert len(cache.load()) == 3
