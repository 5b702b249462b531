"""Storage layer: in-process + disk cache."""

from .cache import Cache, MemoryCache, MemoryTier, TieredCache
from .disk import DiskStore

__all__ = ["Cache", "DiskStore", "MemoryCache", "MemoryTier", "TieredCache"]
