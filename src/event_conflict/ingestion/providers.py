"""Upstream event providers and the retrying fetch layer.

Every provider answers the same question: which events happen in a city
between two dates.  ``fetch_all_events`` queries all providers
concurrently; a provider that keeps failing after its retries is logged
and contributes no events, so one broken upstream never fails an analysis.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import random
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Protocol

import structlog

from event_conflict.engine.config import FetchConfig
from event_conflict.errors import ProviderFetchError
from event_conflict.events import Event
from event_conflict.ingestion.json_loader import load_event_file
from event_conflict.models.event_record import EventRecord
from event_conflict.preprocessing.normalizer import normalize_city
from event_conflict.store.client import RetryingStore

logger = structlog.get_logger()


class EventProvider(Protocol):
    name: str

    async def fetch_events(
        self,
        city: str,
        start: dt.date,
        end: dt.date,
        category: str | None = None,
    ) -> list[Event]: ...


def _select(
    events: list[Event],
    city: str,
    start: dt.date,
    end: dt.date,
    category: str | None,
    normalize: Callable[[str], str],
) -> list[Event]:
    city_key = normalize(city)
    return [
        e
        for e in events
        if normalize(e.city) == city_key
        and e.overlaps(start, end)
        and (category is None or e.category == category)
    ]


class JsonFileProvider:
    """Events from a validated JSON file, re-read on every fetch."""

    def __init__(
        self,
        path: Path,
        name: str | None = None,
        normalize: Callable[[str], str] = normalize_city,
    ) -> None:
        self.path = Path(path)
        self.name = name or self.path.stem
        self._normalize = normalize

    async def fetch_events(
        self,
        city: str,
        start: dt.date,
        end: dt.date,
        category: str | None = None,
    ) -> list[Event]:
        try:
            data = await asyncio.to_thread(load_event_file, self.path)
        except (OSError, ValueError) as e:
            raise ProviderFetchError(self.name, str(e)) from e
        return _select(data.to_events(), city, start, end, category, self._normalize)


class StoreEventProvider:
    """Events from the ``events`` table."""

    name = "store"

    def __init__(
        self,
        store: RetryingStore,
        normalize: Callable[[str], str] = normalize_city,
    ) -> None:
        self._store = store
        self._normalize = normalize

    async def fetch_events(
        self,
        city: str,
        start: dt.date,
        end: dt.date,
        category: str | None = None,
    ) -> list[Event]:
        # Multi-day events may start before the window
        rows = await self._store.select_where(
            EventRecord,
            EventRecord.date <= end,
            EventRecord.date >= start - dt.timedelta(days=30),
        )
        return _select([r.to_event() for r in rows], city, start, end, category, self._normalize)


def backoff_delay(attempt: int, base_seconds: float, jitter: float = 0.25) -> float:
    """Exponential backoff with jitter: ``base * 2**attempt`` +/- ``jitter``."""
    delay = base_seconds * (2**attempt)
    return max(0.0, delay + delay * jitter * (2 * random.random() - 1))


async def _fetch_with_retry(
    provider: EventProvider,
    city: str,
    start: dt.date,
    end: dt.date,
    category: str | None,
    config: FetchConfig,
    sleep: Callable[[float], Awaitable[None]],
) -> list[Event]:
    name = getattr(provider, "name", type(provider).__name__)
    attempts = config.max_retries + 1
    for attempt in range(attempts):
        try:
            return await asyncio.wait_for(
                provider.fetch_events(city, start, end, category),
                timeout=config.timeout_seconds,
            )
        except Exception as e:
            if attempt + 1 >= attempts:
                logger.error(
                    "provider_fetch_failed",
                    provider=name,
                    attempts=attempts,
                    error=str(e) or type(e).__name__,
                )
                return []
            delay = backoff_delay(attempt, config.backoff_base_seconds)
            logger.warning(
                "provider_fetch_retry",
                provider=name,
                attempt=attempt + 1,
                delay=round(delay, 2),
                error=str(e) or type(e).__name__,
            )
            await sleep(delay)
    return []


async def fetch_all_events(
    providers: list[EventProvider],
    city: str,
    start: dt.date,
    end: dt.date,
    category: str | None = None,
    config: FetchConfig | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[Event]:
    """Fetch from every provider concurrently.

    Args:
        providers: Upstream providers.
        city: City to search.
        start: First date of the window.
        end: Last date of the window (inclusive).
        category: Optional category filter.
        config: Timeout and retry policy.
        sleep: Awaitable used between retries (injectable for tests).

    Returns:
        All events, concatenated in provider order.
    """
    config = config or FetchConfig()
    results = await asyncio.gather(
        *[
            _fetch_with_retry(p, city, start, end, category, config, sleep)
            for p in providers
        ]
    )
    events = [e for batch in results for e in batch]
    logger.info(
        "provider_fetch_complete",
        providers=len(providers),
        events=len(events),
        per_provider=[len(batch) for batch in results],
    )
    return events
