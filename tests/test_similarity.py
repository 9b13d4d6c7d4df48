"""Tests for cosine similarity, embedding input and the embedding LRU cache."""

import datetime as dt
import math

import pytest

from event_conflict.dedup.similarity import cosine_similarity, embedding_text
from event_conflict.dedup.similarity_cache import SimilarityCache, cache_key
from event_conflict.errors import EmbeddingDimensionError
from event_conflict.events import Event


def _make_event(**overrides) -> Event:
    defaults = dict(
        id="e1",
        title="Jazz Night",
        date=dt.date(2025, 6, 14),
        city="Praha",
        category="Entertainment",
    )
    defaults.update(overrides)
    return Event(**defaults)


# ---------------------------------------------------------------------------
# Cosine similarity
# ---------------------------------------------------------------------------


class TestCosineSimilarity:
    def test_identical_vectors(self):
        assert cosine_similarity([0.3, 0.4], [0.3, 0.4]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_scale_invariant(self):
        assert cosine_similarity([1.0, 1.0], [5.0, 5.0]) == pytest.approx(1.0)

    def test_zero_magnitude_returns_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_dimension_mismatch_raises(self):
        with pytest.raises(EmbeddingDimensionError) as exc:
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
        assert "2" in str(exc.value) and "3" in str(exc.value)

    def test_known_angle(self):
        a = [1.0, 0.0]
        b = [math.cos(math.radians(30)), math.sin(math.radians(30))]
        assert cosine_similarity(a, b) == pytest.approx(math.sqrt(3) / 2)


class TestEmbeddingText:
    def test_all_fields_joined(self):
        event = _make_event(description="Live quartet", venue="Lucerna")
        assert embedding_text(event) == "Jazz Night | Live quartet | Lucerna | Praha | Entertainment"

    def test_missing_fields_skipped(self):
        assert embedding_text(_make_event()) == "Jazz Night | Praha | Entertainment"


# ---------------------------------------------------------------------------
# Similarity cache
# ---------------------------------------------------------------------------


class TestCacheKey:
    def test_uses_source_id_when_present(self):
        event = _make_event(source="ticketmaster", source_id="tm-42")
        assert cache_key(event) == ("ticketmaster", "tm-42")

    def test_falls_back_to_title(self):
        event = _make_event(source="goout")
        assert cache_key(event) == ("goout", "Jazz Night")

    def test_date_not_part_of_key(self):
        a = _make_event(date=dt.date(2025, 6, 14))
        b = _make_event(date=dt.date(2025, 6, 21))
        assert cache_key(a) == cache_key(b)


class TestSimilarityCache:
    def test_get_miss_then_hit(self):
        cache = SimilarityCache(capacity=10)
        assert cache.get(("s", "a")) is None

        cache.put(("s", "a"), [1.0, 0.0])

        assert cache.get(("s", "a")) == [1.0, 0.0]
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == pytest.approx(0.5)

    def test_evicts_least_recently_used(self):
        cache = SimilarityCache(capacity=2)
        cache.put(("s", "a"), [1.0])
        cache.put(("s", "b"), [2.0])
        cache.get(("s", "a"))  # refresh a
        cache.put(("s", "c"), [3.0])

        assert ("s", "a") in cache
        assert ("s", "b") not in cache
        assert ("s", "c") in cache
        assert len(cache) == 2

    def test_put_overwrites(self):
        cache = SimilarityCache(capacity=2)
        cache.put(("s", "a"), [1.0])
        cache.put(("s", "a"), [9.0])
        assert cache.get(("s", "a")) == [9.0]
        assert len(cache) == 1

    def test_clear_resets_stats(self):
        cache = SimilarityCache(capacity=2)
        cache.put(("s", "a"), [1.0])
        cache.get(("s", "a"))
        cache.clear()
        assert len(cache) == 0
        assert cache.stats()["hits"] == 0

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            SimilarityCache(capacity=0)
