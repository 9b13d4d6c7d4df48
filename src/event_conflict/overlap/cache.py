"""Two-tier cache of base overlap estimates keyed by category pair.

The memory tier is a lock-guarded TTL mapping.  The optional store tier
persists entries in ``audience_overlap_cache`` (upsert on the four-part
natural key) so estimates survive restarts.  Store failures are logged
and treated as misses -- the cache never breaks a prediction.
"""

from __future__ import annotations

import datetime as dt
import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from event_conflict.caching import TTLCache
from event_conflict.engine.config import OverlapConfig
from event_conflict.errors import StoreError
from event_conflict.events import Event
from event_conflict.models.overlap_cache import OverlapCacheRecord
from event_conflict.overlap.estimators import OverlapEstimator
from event_conflict.overlap.prediction import BaseOverlap, OverlapFactors, OverlapKey
from event_conflict.store.client import RetryingStore

logger = structlog.get_logger()

_KEY_COLUMNS = ["category1", "subcategory1", "category2", "subcategory2"]

# Category pairs worth estimating ahead of the first analysis
COMMON_PAIRS: list[OverlapKey] = [
    ("Entertainment", "Rock", "Entertainment", "Metal"),
    ("Entertainment", "Pop", "Entertainment", "Electronic"),
    ("Entertainment", "Jazz", "Entertainment", "Blues"),
    ("Technology", "AI/ML", "Technology", "Data Science"),
    ("Technology", "Web Development", "Technology", "Mobile Development"),
    ("Business", "Marketing", "Business", "Sales"),
    ("Business", "Finance", "Business", "Investment"),
    ("Entertainment", "Rock", "Sports", "Extreme Sports"),
    ("Technology", "AI/ML", "Business", "Leadership"),
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _key_row(key: OverlapKey) -> dict[str, str]:
    return dict(zip(_KEY_COLUMNS, key))


class OverlapCache:
    """Category-pair -> ``BaseOverlap`` with TTL.

    Args:
        config: Overlap settings (memory TTL, store TTL).
        store: Optional persistent tier.
        clock: Monotonic clock for the memory tier (injectable for tests).
    """

    def __init__(
        self,
        config: OverlapConfig,
        store: RetryingStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._memory: TTLCache[BaseOverlap] = TTLCache(config.memory_ttl_seconds, clock)
        self._store_ttl = timedelta(days=config.store_ttl_days)
        self._store = store
        self._lock = threading.Lock()
        self._hits = 0
        self._store_hits = 0
        self._misses = 0

    async def get(self, key: OverlapKey) -> BaseOverlap | None:
        value = self._memory.get(key)
        if value is not None:
            with self._lock:
                self._hits += 1
            return value

        if self._store is not None:
            value = await self._get_store(key)
            if value is not None:
                self._memory.put(key, value)
                with self._lock:
                    self._store_hits += 1
                return value

        with self._lock:
            self._misses += 1
        return None

    async def _get_store(self, key: OverlapKey) -> BaseOverlap | None:
        try:
            rows = await self._store.select_rows(OverlapCacheRecord, **_key_row(key))
        except StoreError as e:
            logger.warning("overlap_cache_read_failed", key=key, error=str(e))
            return None

        now = _utcnow()
        for row in rows:
            if row.expires_at > now:
                return BaseOverlap(
                    score=row.overlap_score,
                    confidence=row.confidence,
                    factors=OverlapFactors(**row.factors),
                    reasoning=tuple(row.reasoning),
                    method=row.method,
                )
        return None

    async def put(self, key: OverlapKey, value: BaseOverlap) -> None:
        await self.put_many([(key, value)])

    async def put_many(self, items: list[tuple[OverlapKey, BaseOverlap]]) -> None:
        """Cache several estimates, writing the store tier in one transaction."""
        for key, value in items:
            self._memory.put(key, value)

        if self._store is None or not items:
            return

        now = _utcnow()
        rows = [
            {
                **_key_row(key),
                "overlap_score": value.score,
                "confidence": value.confidence,
                "factors": value.factors.to_dict(),
                "reasoning": list(value.reasoning),
                "method": value.method,
                "created_at": now,
                "expires_at": now + self._store_ttl,
            }
            for key, value in items
        ]
        try:
            await self._store.upsert(OverlapCacheRecord, rows, _KEY_COLUMNS)
        except StoreError as e:
            logger.warning("overlap_cache_write_failed", entries=len(rows), error=str(e))

    async def cleanup_expired(self) -> int:
        """Drop expired entries from both tiers; returns the number removed."""
        removed = self._memory.purge_expired()

        if self._store is not None:
            try:
                removed += await self._store.delete_where(
                    OverlapCacheRecord, OverlapCacheRecord.expires_at <= _utcnow()
                )
            except StoreError as e:
                logger.warning("overlap_cache_cleanup_failed", error=str(e))

        logger.info("overlap_cache_cleanup", removed=removed)
        return removed

    async def warm(self, pairs: list[OverlapKey], estimator: OverlapEstimator) -> int:
        """Estimate and cache the given pairs that are not cached yet.

        Args:
            pairs: Category pairs to precompute.
            estimator: Any overlap estimator; only ``"ai"`` results are cached.

        Returns:
            Number of pairs newly cached.
        """
        fresh: list[tuple[OverlapKey, BaseOverlap]] = []
        for key in pairs:
            if await self.get(key) is not None:
                continue
            cat1, sub1, cat2, sub2 = key
            today = dt.date.today()
            planned = Event("warm-a", cat1, today, "", cat1, subcategory=sub1 or None)
            competing = Event("warm-b", cat2, today, "", cat2, subcategory=sub2 or None)
            value = await estimator.estimate(planned, competing)
            if value.method == "ai":
                fresh.append((key, value))

        await self.put_many(fresh)
        logger.info("overlap_cache_warmed", requested=len(pairs), cached=len(fresh))
        return len(fresh)

    def clear(self) -> None:
        self._memory.clear()

    def stats(self) -> dict:
        with self._lock:
            lookups = self._hits + self._store_hits + self._misses
            return {
                "memory_entries": len(self._memory),
                "memory_hits": self._hits,
                "store_hits": self._store_hits,
                "misses": self._misses,
                "hit_rate": (self._hits + self._store_hits) / lookups if lookups else 0.0,
            }
