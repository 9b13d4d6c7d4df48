"""Duplicate detection and canonical selection for provider listings."""

from event_conflict.dedup.deduplicator import (
    DedupMetrics,
    DedupResult,
    DuplicateCluster,
    EventDeduplicator,
    find_exact_pairs,
    is_exact_duplicate,
)
from event_conflict.dedup.similarity import cosine_similarity, embedding_text
from event_conflict.dedup.similarity_cache import SimilarityCache, cache_key

__all__ = [
    "DedupMetrics",
    "DedupResult",
    "DuplicateCluster",
    "EventDeduplicator",
    "SimilarityCache",
    "cache_key",
    "cosine_similarity",
    "embedding_text",
    "find_exact_pairs",
    "is_exact_duplicate",
]
