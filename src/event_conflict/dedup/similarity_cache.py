"""Bounded LRU cache of event embedding vectors."""

from __future__ import annotations

import threading
from collections import OrderedDict

from event_conflict.events import Event

CacheKey = tuple[str, str]


def cache_key(event: Event) -> CacheKey:
    """Embedding cache key: ``(source, source_id or title)``."""
    return (event.source, event.source_id or event.title)


class SimilarityCache:
    """Key -> vector store with least-recently-used eviction.

    One instance is created per pipeline (or per process) and passed to
    the deduplicator.  All access goes through a lock so concurrent
    embedding batches can read and insert safely.
    """

    def __init__(self, capacity: int = 1000) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: OrderedDict[CacheKey, list[float]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: CacheKey) -> list[float] | None:
        with self._lock:
            vector = self._entries.get(key)
            if vector is None:
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return vector

    def put(self, key: CacheKey, vector: list[float]) -> None:
        with self._lock:
            self._entries[key] = vector
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "capacity": self.capacity,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups else 0.0,
            }
