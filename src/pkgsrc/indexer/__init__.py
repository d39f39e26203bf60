"""
Indexer module -- indexing of the pkgsrc tree.

Scans category/package directories, caches the result at the tree root
and answers substring searches over it.
"""

from .cache import CACHE_FILE, CacheCorruptError, IndexCache
from .descr import DescriptionTooLargeError, extract_description
from .query import search
from .tree import PackageIndex, PackageRecord, TreeScanner

__all__ = [
    "CACHE_FILE",
    "CacheCorruptError",
    "DescriptionTooLargeError",
    "IndexCache",
    "PackageIndex",
    "PackageRecord",
    "TreeScanner",
    "extract_description",
    "search",
]
