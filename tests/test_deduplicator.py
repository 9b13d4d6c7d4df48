"""Tests for the two-pass event deduplicator.

The embedding capability is replaced by an in-process fake mapping event
titles to fixed vectors -- no Gemini API key required.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import math
from unittest.mock import AsyncMock

import pytest

from event_conflict.dedup import (
    EventDeduplicator,
    SimilarityCache,
    find_exact_pairs,
    is_exact_duplicate,
)
from event_conflict.engine.config import AIConfig, DedupConfig
from event_conflict.errors import EmbeddingDimensionError
from event_conflict.events import Event
from event_conflict.preprocessing.normalizer import make_city_normalizer


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_event(event_id: str, title: str, **overrides) -> Event:
    """Create an Event with sensible defaults."""
    defaults = dict(
        id=event_id,
        title=title,
        date=dt.date(2025, 9, 18),
        city="Praha",
        category="Technology",
        source="goout",
    )
    defaults.update(overrides)
    return Event(**defaults)


def _unit(degrees: float) -> list[float]:
    return [math.cos(math.radians(degrees)), math.sin(math.radians(degrees))]


class FakeEmbedder:
    """Returns a fixed vector per title (the first part of the embedding text)."""

    def __init__(self, vectors: dict[str, list[float]]) -> None:
        self.vectors = vectors
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(texts)
        return [self.vectors[text.split(" | ")[0]] for text in texts]


def _dedup(embedder=None, **config) -> EventDeduplicator:
    return EventDeduplicator(DedupConfig(**config), embedder=embedder)


# ---------------------------------------------------------------------------
# Exact pass
# ---------------------------------------------------------------------------

class TestExactDuplicates:
    def test_case_and_whitespace_insensitive(self):
        a = _make_event("a", "Prague Tech Summit 2024", venue="O2 Universum")
        b = _make_event("b", "prague tech summit  2024", venue="o2 universum")
        assert is_exact_duplicate(a, b)

    def test_missing_venue_still_matches(self):
        a = _make_event("a", "Jazz Night", venue="Lucerna")
        b = _make_event("b", "Jazz Night")
        assert is_exact_duplicate(a, b)

    def test_different_venue_does_not_match(self):
        a = _make_event("a", "Jazz Night", venue="Lucerna")
        b = _make_event("b", "Jazz Night", venue="Jazz Dock")
        assert not is_exact_duplicate(a, b)

    def test_city_aliases_resolved(self):
        normalize = make_city_normalizer({"prague": "praha", "praha": "praha"})
        a = _make_event("a", "Jazz Night", city="Prague")
        b = _make_event("b", "Jazz Night", city="Praha")
        assert is_exact_duplicate(a, b, normalize)
        assert not is_exact_duplicate(a, b)

    def test_dates_ignored_by_default(self):
        a = _make_event("a", "Jazz Night", venue="Lucerna")
        b = _make_event("b", "Jazz Night", venue="Lucerna", date=dt.date(2025, 9, 25))
        assert is_exact_duplicate(a, b)
        assert not is_exact_duplicate(a, b, max_gap_days=1)

    async def test_weekly_series_kept_with_gap_limit(self):
        fridays = [
            _make_event(f"jn-{week}", "Jazz Night", venue="Lucerna",
                        date=dt.date(2025, 9, 5) + dt.timedelta(weeks=week))
            for week in range(4)
        ]
        relisted = _make_event("tm-jn", "JAZZ NIGHT", venue="Lucerna",
                               date=dt.date(2025, 9, 12), source="ticketmaster")

        merged = await _dedup().deduplicate(fridays + [relisted])
        separate = await _dedup(exact_max_gap_days=1).deduplicate(fridays + [relisted])

        assert len(merged.canonical) == 1
        assert [e.id for e in separate.canonical] == ["jn-0", "jn-2", "jn-3", "tm-jn"]
        assert separate.metrics.exact_pairs == 1

    def test_find_exact_pairs(self):
        events = [
            _make_event("a", "Jazz Night"),
            _make_event("b", "Rock Fest"),
            _make_event("c", "JAZZ NIGHT"),
        ]
        edges = find_exact_pairs(events)
        assert [(e.index_a, e.index_b, e.similarity) for e in edges] == [(0, 2, 1.0)]


class TestExactPassSkipsEmbedding:
    async def test_exact_pair_clustered_without_embedding_call(self):
        """Two spellings of the same listing cluster with similarity 1.0, no embed call."""
        embedder = AsyncMock()
        events = [
            _make_event("a", "Prague Tech Summit 2024", venue="O2 Universum", source="goout"),
            _make_event("b", "prague tech summit 2024", venue="O2 Universum", source="eventbrite"),
        ]

        result = await _dedup(embedder).deduplicate(events)

        embedder.embed.assert_not_called()
        assert len(result.canonical) == 1
        cluster = result.clusters[0]
        assert cluster.method == "exact"
        assert cluster.primary.id == "b"  # eventbrite outranks goout
        assert cluster.duplicates == [(events[0], 1.0)]
        assert result.metrics.exact_pairs == 1

    async def test_no_embedder_runs_exact_pass_only(self):
        events = [_make_event("a", "Jazz Night"), _make_event("b", "Jazz Evening")]
        result = await _dedup(None).deduplicate(events)
        assert [e.id for e in result.canonical] == ["a", "b"]


# ---------------------------------------------------------------------------
# Semantic pass
# ---------------------------------------------------------------------------

class TestSemanticDuplicates:
    async def test_similar_titles_merge(self):
        embedder = FakeEmbedder({
            "Jazz Night at Lucerna": _unit(0),
            "Lucerna Jazz Evening": _unit(10),
            "Startup Pitch Day": _unit(90),
        })
        events = [
            _make_event("a", "Jazz Night at Lucerna"),
            _make_event("b", "Lucerna Jazz Evening", source="ticketmaster"),
            _make_event("c", "Startup Pitch Day"),
        ]

        result = await _dedup(embedder).deduplicate(events)

        assert [e.id for e in result.canonical] == ["b", "c"]
        assert len(result.duplicate_clusters) == 1
        cluster = result.duplicate_clusters[0]
        assert cluster.method == "semantic"
        assert cluster.duplicates[0][1] == pytest.approx(math.cos(math.radians(10)))

    async def test_threshold_override(self):
        embedder = FakeEmbedder({"A": _unit(0), "B": _unit(20)})
        events = [_make_event("a", "A"), _make_event("b", "B")]
        dedup = _dedup(embedder)

        assert len((await dedup.deduplicate(events)).canonical) == 1
        assert len((await dedup.deduplicate(events, threshold=0.99)).canonical) == 2

    async def test_transitive_closure(self):
        """A~B and B~C cluster A, B and C together although A and C are far apart."""
        embedder = FakeEmbedder({"A": _unit(0), "B": _unit(30), "C": _unit(60)})
        events = [_make_event("a", "A"), _make_event("b", "B"), _make_event("c", "C")]

        result = await _dedup(embedder).deduplicate(events)

        assert len(result.clusters) == 1
        assert result.clusters[0].size == 3

    async def test_every_event_in_exactly_one_cluster(self):
        embedder = FakeEmbedder({t: _unit(i * 45) for i, t in enumerate("ABCDE")})
        events = [_make_event(t.lower(), t) for t in "ABCDE"]
        events.append(_make_event("a2", "A", source="manual"))

        result = await _dedup(embedder).deduplicate(events)

        assert sum(c.size for c in result.clusters) == len(events)
        assert result.metrics.duplicates_removed == len(events) - len(result.canonical)

    async def test_idempotent(self):
        embedder = FakeEmbedder({"A": _unit(0), "A2": _unit(5), "B": _unit(90)})
        events = [_make_event("a", "A"), _make_event("a2", "A2"), _make_event("b", "B")]
        dedup = _dedup(embedder)

        first = await dedup.deduplicate(events)
        second = await dedup.deduplicate(first.canonical)

        assert [e.id for e in second.canonical] == [e.id for e in first.canonical]

    async def test_dimension_mismatch_propagates(self):
        embedder = FakeEmbedder({"A": [1.0, 0.0], "B": [1.0, 0.0, 0.0]})
        events = [_make_event("a", "A"), _make_event("b", "B")]

        with pytest.raises(EmbeddingDimensionError):
            await _dedup(embedder).deduplicate(events)


# ---------------------------------------------------------------------------
# Batching, caching and failures
# ---------------------------------------------------------------------------

class TestEmbeddingBatches:
    async def test_batches_respect_batch_size(self):
        titles = [f"T{i}" for i in range(5)]
        embedder = FakeEmbedder({t: _unit(i * 90 % 360) for i, t in enumerate(titles)})
        events = [_make_event(t, t) for t in titles]

        await _dedup(embedder, batch_size=2).deduplicate(events)

        assert sorted(len(c) for c in embedder.calls) == [1, 2, 2]

    async def test_cache_prevents_reembedding(self):
        embedder = FakeEmbedder({"A": _unit(0), "B": _unit(90)})
        events = [_make_event("a", "A"), _make_event("b", "B")]
        dedup = EventDeduplicator(DedupConfig(), embedder=embedder, cache=SimilarityCache(10))

        await dedup.deduplicate(events)
        result = await dedup.deduplicate(events)

        assert len(embedder.calls) == 1
        assert result.metrics.cache_hits == 2
        assert result.metrics.cache_hit_rate == 1.0

    async def test_failed_batch_leaves_events_unmerged(self):
        embedder = AsyncMock()
        embedder.embed.side_effect = RuntimeError("quota exceeded")
        events = [_make_event("a", "Jazz Night"), _make_event("b", "Jazz Evening")]

        result = await _dedup(embedder).deduplicate(events)

        assert [e.id for e in result.canonical] == ["a", "b"]
        assert result.metrics.embedding_failures == 2

    async def test_only_failing_batch_is_isolated(self):
        vectors = {"A": _unit(0), "A2": _unit(1), "B": _unit(90), "B2": _unit(91)}

        class FlakyEmbedder(FakeEmbedder):
            async def embed(self, texts):
                if any(t.startswith("B") for t in texts):
                    raise RuntimeError("boom")
                return await super().embed(texts)

        events = [_make_event(t.lower(), t) for t in ["A", "A2", "B", "B2"]]
        result = await _dedup(FlakyEmbedder(vectors), batch_size=2).deduplicate(events)

        assert [e.id for e in result.canonical] == ["a", "b", "b2"]
        assert result.metrics.embedding_failures == 2

    async def test_slow_batch_times_out(self):
        class SlowEmbedder:
            async def embed(self, texts):
                await asyncio.sleep(1)
                return [[1.0, 0.0] for _ in texts]

        events = [_make_event("a", "A"), _make_event("b", "B")]
        dedup = EventDeduplicator(
            DedupConfig(), embedder=SlowEmbedder(), ai_config=AIConfig(timeout_seconds=0.01)
        )

        result = await dedup.deduplicate(events)

        assert len(result.canonical) == 2
        assert result.metrics.embedding_failures == 2
