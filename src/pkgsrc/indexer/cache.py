"""
On-disk cache for the package index.

Saves the index next to the tree it describes so later runs skip the
directory walk. The file is never invalidated automatically: once it
exists it is trusted until it is removed (`pkgsrc reindex`).

File format (JSON, indented), three parallel arrays in record order:

    {
      "names": ["libzip", ...],
      "categories": ["archivers", ...],
      "descriptions": ["Zip archive library", ...]
    }

Typical usage:
    cache = IndexCache(root)
    index = cache.load_or_build(TreeScanner(root))
"""

import json
import os
import tempfile
import time
from pathlib import Path

import structlog
from pydantic import BaseModel, ValidationError, model_validator

from ..logging import HumanLog
from .tree import PackageIndex, PackageRecord, TreeScanner

logger = structlog.get_logger()

CACHE_FILE = ".pkgsrc-index.json"


class CacheCorruptError(Exception):
    """The cache file exists but does not hold a valid index."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Index cache {path} is corrupt: {reason}")


class CachePayload(BaseModel):
    """Serialized form of a PackageIndex."""

    names: list[str]
    categories: list[str]
    descriptions: list[str]

    model_config = {"strict": True}

    @model_validator(mode="after")
    def same_length(self) -> "CachePayload":
        lengths = (len(self.names), len(self.categories), len(self.descriptions))
        if len(set(lengths)) != 1:
            raise ValueError(
                "names, categories and descriptions differ in length "
                f"({lengths[0]}, {lengths[1]}, {lengths[2]})"
            )
        return self

    @classmethod
    def from_records(cls, records: list[PackageRecord] | tuple[PackageRecord, ...]) -> "CachePayload":
        return cls(
            names=[r.name for r in records],
            categories=[r.category for r in records],
            descriptions=[r.description for r in records],
        )

    def to_records(self) -> list[PackageRecord]:
        return [
            PackageRecord(category=category, name=name, description=description)
            for name, category, description in zip(self.names, self.categories, self.descriptions)
        ]


class IndexCache:
    """Index cache stored at the root of a pkgsrc tree."""

    def __init__(self, root: Path, cache_file: str = CACHE_FILE) -> None:
        self.root = root
        self.path = root / cache_file
        self.log = logger.bind(component="index_cache")
        self.hlog = HumanLog(self.log)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> PackageIndex:
        """Read the cache file.

        Raises:
            CacheCorruptError: If the content is not a valid index
            OSError: If the file cannot be read
        """
        start_ms = time.monotonic() * 1000
        raw = self.path.read_bytes()
        try:
            payload = CachePayload.model_validate_json(raw.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise CacheCorruptError(self.path, f"not valid UTF-8 ({e.reason})") from e
        except ValidationError as e:
            raise CacheCorruptError(self.path, _first_error(e)) from e

        records = payload.to_records()
        build_time_ms = round(time.monotonic() * 1000 - start_ms, 1)
        self.log.info("index.cache.hit", path=str(self.path), packages=len(records))
        return PackageIndex(records=tuple(records), source="cache", build_time_ms=build_time_ms)

    def save(self, records: list[PackageRecord] | tuple[PackageRecord, ...]) -> None:
        """Write the cache atomically (temporary file + rename).

        Raises:
            OSError: If the file cannot be written
        """
        payload = CachePayload.from_records(records)
        content = json.dumps(payload.model_dump(), indent=2, ensure_ascii=False) + "\n"

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            # mkstemp creates the file 0600; trees are often shared between users
            os.chmod(tmp_name, 0o666 & ~_current_umask())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        self.hlog.cache_write(str(self.path))

    def clear(self) -> bool:
        """Delete the cache file.

        Returns:
            True if a file was removed.
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        self.hlog.cache_clear(str(self.path))
        return True

    def load_or_build(self, scanner: TreeScanner) -> PackageIndex:
        """Return the cached index, scanning and caching the tree on a miss."""
        if self.exists():
            return self.load()

        self.log.info("index.cache.miss", path=str(self.path))
        index = scanner.build_index()
        self.save(index.records)
        return index

    def rebuild(self, scanner: TreeScanner) -> PackageIndex:
        """Rescan the tree and overwrite the cache.

        The existing cache is left in place until the new one is written,
        so a failed scan keeps the last good index.
        """
        replaced = self.exists()
        index = scanner.build_index()
        self.save(index.records)
        if replaced:
            self.log.info("index.cache.replaced", path=str(self.path), packages=len(index))
        return index


def _current_umask() -> int:
    # os.umask can only be read by setting it
    mask = os.umask(0)
    os.umask(mask)
    return mask


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(part) for part in err.get("loc", ())) or "document"
    return f"{loc}: {err.get('msg', 'invalid value')}"
