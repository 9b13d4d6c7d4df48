"""Typed errors raised by the conflict engine.

Fail-open paths (embedding, classification, signal lookups, provider fetches)
log and fall back instead of raising; the errors here mark the conditions
that are either fatal or internal to a single layer.
"""


class ConflictEngineError(Exception):
    """Base class for all conflict engine errors."""


class EmbeddingDimensionError(ConflictEngineError):
    """Two embedding vectors of different length were compared."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Embedding dimension mismatch: {left} != {right}")
        self.left = left
        self.right = right


class OverlapEstimationError(ConflictEngineError):
    """An overlap estimator could not produce a prediction."""


class ProviderFetchError(ConflictEngineError):
    """An upstream event provider failed after all retries."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class StoreError(ConflictEngineError):
    """A store operation failed after all retries."""


class ConsolidationInvariantError(ConflictEngineError):
    """A recommended range overlaps a high-risk range."""
