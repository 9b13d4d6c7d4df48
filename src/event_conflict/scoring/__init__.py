from event_conflict.scoring.consolidation import assert_no_overlap, consolidate
from event_conflict.scoring.results import (
    HIGH,
    LOW,
    MEDIUM,
    CompetingImpact,
    ConsolidationResult,
    DateRangeRecommendation,
    DayScore,
    risk_tier,
)
from event_conflict.scoring.scorer import ConflictScorer, attendee_weight, nearby_competitors

__all__ = [
    "HIGH",
    "LOW",
    "MEDIUM",
    "CompetingImpact",
    "ConflictScorer",
    "ConsolidationResult",
    "DateRangeRecommendation",
    "DayScore",
    "assert_no_overlap",
    "attendee_weight",
    "consolidate",
    "nearby_competitors",
    "risk_tier",
]
