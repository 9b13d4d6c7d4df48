"""Result types of audience overlap prediction."""

from __future__ import annotations

from dataclasses import dataclass, field

from event_conflict.engine.config import FactorWeights
from event_conflict.events import Event

OverlapKey = tuple[str, str, str, str]


def overlap_key(planned: Event, competing: Event) -> OverlapKey:
    """Cache key: ``(category1, subcategory1, category2, subcategory2)``.

    Dates, venues and attendance are deliberately not part of the key.
    """
    return (
        planned.category.strip(),
        (planned.subcategory or "").strip(),
        competing.category.strip(),
        (competing.subcategory or "").strip(),
    )


@dataclass(frozen=True)
class OverlapFactors:
    """Weighted contribution of each audience factor to the base score."""

    demographic_similarity: float = 0.0
    interest_alignment: float = 0.0
    behavior_patterns: float = 0.0
    historical_preference: float = 0.0

    @classmethod
    def from_scores(
        cls,
        demographic: float,
        interest: float,
        behavior: float,
        historical: float,
        weights: FactorWeights,
    ) -> OverlapFactors:
        """Weight raw factor scores (each in [0, 1])."""
        return cls(
            demographic_similarity=round(demographic * weights.demographic, 4),
            interest_alignment=round(interest * weights.interest, 4),
            behavior_patterns=round(behavior * weights.behavior, 4),
            historical_preference=round(historical * weights.historical, 4),
        )

    @classmethod
    def derived(cls, base_score: float, weights: FactorWeights) -> OverlapFactors:
        """Split a base score across the factors by weight."""
        return cls.from_scores(base_score, base_score, base_score, base_score, weights)

    def to_dict(self) -> dict[str, float]:
        return {
            "demographic_similarity": self.demographic_similarity,
            "interest_alignment": self.interest_alignment,
            "behavior_patterns": self.behavior_patterns,
            "historical_preference": self.historical_preference,
        }


@dataclass(frozen=True)
class BaseOverlap:
    """Date-independent overlap estimate for a category pair (what gets cached)."""

    score: float
    confidence: float
    factors: OverlapFactors
    reasoning: tuple[str, ...]
    method: str  # "ai" or "rule-based"


@dataclass
class OverlapPrediction:
    """Final overlap between a planned and a competing event.

    Attributes:
        score: Adjusted overlap in ``[0, 0.95]``.
        base_score: Score before temporal/significance boosts.
        days_between: Gap between the two events' date spans.
    """

    competing_id: str
    score: float
    base_score: float
    confidence: float
    factors: OverlapFactors
    reasoning: list[str] = field(default_factory=list)
    method: str = "rule-based"
    temporal_boost: float = 0.0
    significance_boost: float = 0.0
    days_between: int = 0
    cached: bool = False

    def to_dict(self) -> dict:
        return {
            "competing_id": self.competing_id,
            "score": round(self.score, 4),
            "base_score": round(self.base_score, 4),
            "confidence": round(self.confidence, 4),
            "factors": self.factors.to_dict(),
            "reasoning": list(self.reasoning),
            "method": self.method,
            "temporal_boost": self.temporal_boost,
            "significance_boost": self.significance_boost,
            "days_between": self.days_between,
            "cached": self.cached,
        }
