"""Vector similarity and embedding input construction.

PURE FUNCTIONS -- no network access.
"""

from __future__ import annotations

import math

from event_conflict.errors import EmbeddingDimensionError
from event_conflict.events import Event


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two embedding vectors.

    Args:
        a: First vector.
        b: Second vector.

    Returns:
        Similarity in ``[-1, 1]``; ``0.0`` if either vector has zero magnitude.

    Raises:
        EmbeddingDimensionError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise EmbeddingDimensionError(len(a), len(b))

    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def embedding_text(event: Event) -> str:
    """Text sent to the embedding model for one event."""
    parts = [
        event.title,
        event.description or "",
        event.venue or "",
        event.city,
        event.category,
    ]
    return " | ".join(p.strip() for p in parts if p and p.strip())
