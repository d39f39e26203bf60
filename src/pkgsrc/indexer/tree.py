"""
Tree scanner -- builds the package index from a pkgsrc checkout.

A pkgsrc tree is two levels deep:

    <root>/<category>/<package>/DESCR

Any directory one level below a category that contains a DESCR file is
a package. Everything else (top-level files, doc/, mk/, packages without
DESCR, symlinks) is skipped silently. Directory names that are not
valid UTF-8 are skipped with a warning.

Entries are visited in the order the filesystem returns them. The order
is not sorted and may differ between machines, but it is the order the
cache preserves, so index positions stay stable within one run.
"""

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Literal

import structlog

from ..logging import HumanLog
from .descr import DESCR_FILE, MAX_DESCR_BYTES, extract_description

logger = structlog.get_logger()


# --- Data structures ---

@dataclass(frozen=True)
class PackageRecord:
    """One package found in the tree."""

    category: str
    name: str
    description: str

    @property
    def path(self) -> str:
        """Location relative to the tree root, e.g. 'archivers/libzip'."""
        return f"{self.category}/{self.name}"


@dataclass(frozen=True)
class PackageIndex:
    """Ordered, immutable collection of the packages of one tree."""

    records: tuple[PackageRecord, ...]
    source: Literal["scan", "cache"] = "scan"
    build_time_ms: float = 0.0

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[PackageRecord]:
        return iter(self.records)

    def __getitem__(self, i: int) -> PackageRecord:
        return self.records[i]

    def find(self, name: str) -> PackageRecord | None:
        """First record whose name equals `name` exactly, in scan order."""
        for record in self.records:
            if record.name == name:
                return record
        return None


# --- Scanner ---

class TreeScanner:
    """Walks a pkgsrc tree and produces one PackageRecord per package."""

    def __init__(
        self,
        root: Path,
        descr_file: str = DESCR_FILE,
        max_descr_bytes: int = MAX_DESCR_BYTES,
    ) -> None:
        self.root = root
        self.descr_file = descr_file
        self.max_descr_bytes = max_descr_bytes
        self.log = logger.bind(component="tree_scanner")
        self.hlog = HumanLog(self.log)

    def scan(self) -> list[PackageRecord]:
        """Walk the tree and return its packages in walk order.

        Raises:
            OSError: Any filesystem error other than a missing DESCR.
                The scan is aborted; no partial result is returned.
        """
        records: list[PackageRecord] = []
        for category in self._decodable_subdirectories(self.root):
            category_dir = self.root / category
            for name in self._decodable_subdirectories(category_dir):
                package_dir = category_dir / name
                if not self._is_package(package_dir):
                    continue
                description = extract_description(
                    package_dir, self.descr_file, self.max_descr_bytes
                )
                records.append(PackageRecord(category=category, name=name, description=description))
            self.log.debug("index.scan.category", category=category, total=len(records))
        return records

    def build_index(self) -> PackageIndex:
        """Scan the tree and wrap the result in a PackageIndex."""
        self.hlog.scan_start(str(self.root))
        start_ms = time.monotonic() * 1000

        records = self.scan()

        build_time_ms = round(time.monotonic() * 1000 - start_ms, 1)
        self.hlog.scan_complete(len(records), build_time_ms)
        return PackageIndex(records=tuple(records), source="scan", build_time_ms=build_time_ms)

    def _decodable_subdirectories(self, path: Path) -> Iterator[str]:
        """Subdirectory names under `path`, minus those that are not valid UTF-8.

        Such names cannot be written to the cache, so they are skipped
        with a warning.
        """
        for name in _subdirectories(path):
            try:
                name.encode("utf-8")
            except UnicodeEncodeError:
                self.log.warning(
                    "index.scan.undecodable_name",
                    parent=str(path),
                    name=os.fsencode(name).decode("utf-8", errors="backslashreplace"),
                )
                continue
            yield name

    def _is_package(self, package_dir: Path) -> bool:
        try:
            (package_dir / self.descr_file).stat()
        except FileNotFoundError:
            return False
        return True


def _subdirectories(path: Path) -> Iterator[str]:
    """Names of the real directories directly under `path`, unsorted.

    Symlinks are not followed.
    """
    with os.scandir(path) as it:
        for entry in it:
            if entry.is_dir(follow_symlinks=False):
                yield entry.name
