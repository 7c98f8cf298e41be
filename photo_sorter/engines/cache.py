"""Memo table for resolved dates."""
from __future__ import annotations

import os
import threading
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..core.models import CacheKey, ResolvedDate


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Cache performance counters."""
    hits: int = 0
    misses: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def total_queries(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        if self.total_queries == 0:
            return 0.0
        return self.hits / self.total_queries


def make_key(path: Path, stat: os.stat_result) -> CacheKey:
    """Build a cache key from path, size and whole-second mtime.

    A changed size or modification time yields a different key, so stale
    entries are never hit.
    """
    return (str(path), stat.st_size, int(stat.st_mtime))


class MetadataCache:
    """Thread-safe key -> ResolvedDate table.

    Shared by all workers of a run and may outlive a run when the same
    resolver is reused for repeated scans.
    """

    def __init__(self, max_size: int = 0):
        """Initialize the cache.

        Args:
            max_size: Entry limit with least-recently-used eviction; 0 means
                unbounded.
        """
        self._max_size = max_size
        self._entries: OrderedDict[CacheKey, ResolvedDate] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: CacheKey) -> Optional[ResolvedDate]:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self._misses += 1
                return None
            self._hits += 1
            if self._max_size:
                self._entries.move_to_end(key)
            return value

    def put(self, key: CacheKey, value: ResolvedDate) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            if self._max_size:
                while len(self._entries) > self._max_size:
                    self._entries.popitem(last=False)

    def clear(self) -> None:
        """Drop all entries and reset counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(self._entries),
                max_size=self._max_size,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._entries
