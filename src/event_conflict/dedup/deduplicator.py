"""Duplicate detection across provider listings.

Two passes feed one duplicate graph:

1. Exact pass -- normalized title, venue (or either empty) and city agree.
   Exact matches get similarity 1.0 and never reach the embedding model.
2. Semantic pass -- the remaining events are embedded (cached, batched,
   bounded concurrency) and every pair at or above the threshold becomes
   an edge.

Connected components of the graph are the duplicate clusters and one
canonical listing is selected per cluster.
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from event_conflict.ai.client import Embedder
from event_conflict.dedup.canonical import select_canonical
from event_conflict.dedup.clustering import DuplicateEdge, cluster_duplicates
from event_conflict.dedup.similarity import cosine_similarity, embedding_text
from event_conflict.dedup.similarity_cache import SimilarityCache, cache_key
from event_conflict.engine.config import AIConfig, DedupConfig
from event_conflict.events import Event, days_between
from event_conflict.preprocessing.normalizer import normalize_city, normalize_text

logger = structlog.get_logger()


@dataclass
class DuplicateCluster:
    """One real-world event and the listings that duplicate it.

    Attributes:
        primary: The canonical listing.
        duplicates: ``(listing, similarity)`` pairs in input order.
        method: ``"exact"``, ``"semantic"``, ``"mixed"`` or ``"single"``.
    """

    primary: Event
    duplicates: list[tuple[Event, float]] = field(default_factory=list)
    method: str = "single"

    @property
    def size(self) -> int:
        return 1 + len(self.duplicates)


@dataclass
class DedupMetrics:
    total_events: int = 0
    canonical_events: int = 0
    duplicates_removed: int = 0
    exact_pairs: int = 0
    semantic_pairs: int = 0
    embedded_events: int = 0
    embedding_failures: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    sources_with_duplicates: dict[str, int] = field(default_factory=dict)
    elapsed_ms: float = 0.0
    # Set when the semantic pass was abandoned for exact matching only
    semantic_fallback: bool = False

    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hits + self.cache_misses
        return self.cache_hits / lookups if lookups else 0.0


@dataclass
class DedupResult:
    """Result of one deduplication run.

    Attributes:
        canonical: One event per cluster, in input order.
        clusters: Every cluster, singletons included; each input event
            appears in exactly one.
        metrics: Run statistics.
    """

    canonical: list[Event]
    clusters: list[DuplicateCluster]
    metrics: DedupMetrics

    @property
    def duplicate_clusters(self) -> list[DuplicateCluster]:
        return [c for c in self.clusters if c.duplicates]


def is_exact_duplicate(
    a: Event,
    b: Event,
    normalize: Callable[[str | None], str] = normalize_city,
    max_gap_days: int | None = None,
) -> bool:
    """Whether two listings are exact duplicates.

    Titles and cities must match after normalization; venues must match
    unless either listing has none.  Dates are ignored unless
    ``max_gap_days`` is given, in which case listings further apart than
    that (a weekly series, say) stay distinct.
    """
    if normalize_text(a.title) != normalize_text(b.title):
        return False
    if max_gap_days is not None and days_between(a, b) > max_gap_days:
        return False
    if normalize(a.city) != normalize(b.city):
        return False
    venue_a, venue_b = normalize_text(a.venue), normalize_text(b.venue)
    return not venue_a or not venue_b or venue_a == venue_b


def find_exact_pairs(
    events: list[Event],
    normalize: Callable[[str | None], str] = normalize_city,
    max_gap_days: int | None = None,
) -> list[DuplicateEdge]:
    """All exact-duplicate pairs, as graph edges with similarity 1.0."""
    edges: list[DuplicateEdge] = []
    # Only events sharing a normalized title can be exact duplicates
    by_title: dict[str, list[int]] = {}
    for i, event in enumerate(events):
        by_title.setdefault(normalize_text(event.title), []).append(i)

    for indices in by_title.values():
        for pos, i in enumerate(indices):
            for j in indices[pos + 1:]:
                if is_exact_duplicate(events[i], events[j], normalize, max_gap_days):
                    edges.append(DuplicateEdge(i, j, 1.0, "exact"))
    return edges


class EventDeduplicator:
    """Clusters provider listings and picks one canonical listing per cluster.

    The similarity cache is owned by the caller so it can outlive a single
    run.  When ``embedder`` is ``None`` only the exact pass runs.
    """

    def __init__(
        self,
        config: DedupConfig,
        embedder: Embedder | None = None,
        cache: SimilarityCache | None = None,
        normalize: Callable[[str | None], str] = normalize_city,
        ai_config: AIConfig | None = None,
    ) -> None:
        self.config = config
        self.embedder = embedder
        self.cache = cache if cache is not None else SimilarityCache(config.cache_size)
        self.normalize = normalize
        self.timeout_seconds = (ai_config or AIConfig()).timeout_seconds

    async def deduplicate(
        self,
        events: list[Event],
        threshold: float | None = None,
    ) -> DedupResult:
        """Cluster duplicate listings and select canonical events.

        Args:
            events: Raw listings from all providers.
            threshold: Cosine similarity needed for a semantic match
                (defaults to the configured threshold).

        Returns:
            A ``DedupResult`` with canonical events, clusters and metrics.

        Raises:
            EmbeddingDimensionError: If the embedding provider returns
                vectors of different lengths.
        """
        started = time.perf_counter()
        threshold = self.config.threshold if threshold is None else threshold
        metrics = DedupMetrics(total_events=len(events))

        edges = find_exact_pairs(events, self.normalize, self.config.exact_max_gap_days)
        metrics.exact_pairs = len(edges)

        exact_matched = {e.index_a for e in edges} | {e.index_b for e in edges}
        remaining = [i for i in range(len(events)) if i not in exact_matched]

        if self.embedder is not None and len(remaining) > 1:
            vectors = await self._embed_events(events, remaining, metrics)
            semantic = self._semantic_edges(vectors, threshold)
            metrics.semantic_pairs = len(semantic)
            edges.extend(semantic)

        clusters = self._build_clusters(events, edges)
        canonical = [c.primary for c in clusters]

        metrics.canonical_events = len(canonical)
        metrics.duplicates_removed = len(events) - len(canonical)
        source_counts: Counter[str] = Counter()
        for cluster in clusters:
            for duplicate, _ in cluster.duplicates:
                source_counts[duplicate.source] += 1
        metrics.sources_with_duplicates = dict(sorted(source_counts.items()))
        metrics.elapsed_ms = (time.perf_counter() - started) * 1000

        logger.info(
            "dedup_complete",
            total=metrics.total_events,
            canonical=metrics.canonical_events,
            duplicates_removed=metrics.duplicates_removed,
            exact_pairs=metrics.exact_pairs,
            semantic_pairs=metrics.semantic_pairs,
            embedding_failures=metrics.embedding_failures,
            cache_hit_rate=round(metrics.cache_hit_rate, 3),
            elapsed_ms=round(metrics.elapsed_ms, 1),
        )
        return DedupResult(canonical=canonical, clusters=clusters, metrics=metrics)

    async def _embed_events(
        self,
        events: list[Event],
        indices: list[int],
        metrics: DedupMetrics,
    ) -> dict[int, list[float]]:
        """Embed the given positions, serving repeats from the cache.

        Events whose batch fails are left out of the returned mapping,
        which keeps them singletons.
        """
        vectors: dict[int, list[float]] = {}
        misses: list[int] = []
        for i in indices:
            cached = self.cache.get(cache_key(events[i]))
            if cached is None:
                misses.append(i)
                metrics.cache_misses += 1
            else:
                vectors[i] = cached
                metrics.cache_hits += 1

        size = self.config.batch_size
        batches = [misses[k:k + size] for k in range(0, len(misses), size)]
        semaphore = asyncio.Semaphore(self.config.max_concurrent_batches)

        async def embed_batch(batch: list[int]) -> list[list[float]]:
            async with semaphore:
                texts = [embedding_text(events[i]) for i in batch]
                result = await asyncio.wait_for(
                    self.embedder.embed(texts), timeout=self.timeout_seconds
                )
                if len(result) != len(batch):
                    raise ValueError(f"Expected {len(batch)} vectors, got {len(result)}")
                return result

        results = await asyncio.gather(
            *[embed_batch(b) for b in batches],
            return_exceptions=True,
        )

        for batch_no, (batch, result) in enumerate(zip(batches, results)):
            if isinstance(result, Exception):
                logger.warning(
                    "embedding_batch_failed",
                    batch=batch_no,
                    events=len(batch),
                    error=str(result) or type(result).__name__,
                )
                metrics.embedding_failures += len(batch)
                continue
            for i, vector in zip(batch, result):
                self.cache.put(cache_key(events[i]), vector)
                vectors[i] = vector

        metrics.embedded_events = len(vectors)
        return vectors

    @staticmethod
    def _semantic_edges(
        vectors: dict[int, list[float]],
        threshold: float,
    ) -> list[DuplicateEdge]:
        indices = sorted(vectors)
        edges: list[DuplicateEdge] = []
        for pos, i in enumerate(indices):
            for j in indices[pos + 1:]:
                similarity = cosine_similarity(vectors[i], vectors[j])
                if similarity >= threshold:
                    edges.append(DuplicateEdge(i, j, similarity, "semantic"))
        return edges

    def _build_clusters(
        self,
        events: list[Event],
        edges: list[DuplicateEdge],
    ) -> list[DuplicateCluster]:
        clusters: list[tuple[int, DuplicateCluster]] = []
        for component in cluster_duplicates(edges, len(events)):
            members = [(i, events[i]) for i in component.members]
            primary_index, primary = select_canonical(members, self.config.source_priority)
            duplicates = [
                (event, component.best_similarity.get(i, 0.0))
                for i, event in members
                if i != primary_index
            ]
            clusters.append(
                (primary_index, DuplicateCluster(primary, duplicates, component.method))
            )

        clusters.sort(key=lambda c: c[0])
        return [cluster for _, cluster in clusters]
