"""Per-day scores and consolidated date ranges."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field

from event_conflict.signals.base import SignalResult

LOW = "Low"
MEDIUM = "Medium"
HIGH = "High"


def risk_tier(score: float, low_threshold: float, medium_threshold: float) -> str:
    """Risk tier of a display score: ``<= low`` Low, ``<= medium`` Medium, else High."""
    if score <= low_threshold:
        return LOW
    if score <= medium_threshold:
        return MEDIUM
    return HIGH


@dataclass(frozen=True)
class CompetingImpact:
    """Contribution of one competing event to a day's conflict score."""

    event_id: str
    title: str
    date: dt.date
    end: dt.date
    category: str
    subcategory: str | None
    expected_attendees: int | None
    overlap: float
    attendee_weight: float
    method: str
    reasoning: tuple[str, ...] = ()
    source: str = "manual"

    @property
    def impact(self) -> float:
        return self.overlap * self.attendee_weight

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "source": self.source,
            "title": self.title,
            "date": self.date.isoformat(),
            "end": self.end.isoformat(),
            "category": self.category,
            "subcategory": self.subcategory,
            "expected_attendees": self.expected_attendees,
            "overlap_percent": round(self.overlap * 100, 1),
            "attendee_weight": round(self.attendee_weight, 4),
            "method": self.method,
            "reasoning": list(self.reasoning),
        }


@dataclass
class DayScore:
    """Conflict assessment of one candidate date.

    Attributes:
        raw_score: Unbounded sum of overlap x attendee weight x multipliers.
        score: ``raw_score`` on the 0-20 display scale.
        risk: ``"Low"``, ``"Medium"`` or ``"High"``.
    """

    date: dt.date
    raw_score: float
    score: float
    risk: str
    competing: list[CompetingImpact] = field(default_factory=list)
    signals: list[SignalResult] = field(default_factory=list)

    @property
    def multiplier(self) -> float:
        result = 1.0
        for signal in self.signals:
            result *= signal.multiplier
        return result

    @property
    def reasoning(self) -> list[str]:
        return [line for signal in self.signals for line in signal.reasoning]

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "raw_score": round(self.raw_score, 4),
            "score": round(self.score, 2),
            "risk": self.risk,
            "multiplier": round(self.multiplier, 4),
            "competing": [c.to_dict() for c in self.competing],
            "signals": {s.source: s.to_dict() for s in self.signals},
            "reasoning": self.reasoning,
        }


@dataclass
class DateRangeRecommendation:
    """Consecutive (or near-consecutive) days of the same risk tier."""

    start: dt.date
    end: dt.date
    risk: str
    days: list[DayScore] = field(default_factory=list)

    @property
    def avg_score(self) -> float:
        return sum(d.score for d in self.days) / len(self.days) if self.days else 0.0

    @property
    def min_score(self) -> float:
        return min((d.score for d in self.days), default=0.0)

    @property
    def max_score(self) -> float:
        return max((d.score for d in self.days), default=0.0)

    def overlaps(self, other: DateRangeRecommendation) -> bool:
        return self.start <= other.end and other.start <= self.end

    def contains(self, day: dt.date) -> bool:
        return self.start <= day <= self.end

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "risk": self.risk,
            "avg_score": round(self.avg_score, 2),
            "min_score": round(self.min_score, 2),
            "max_score": round(self.max_score, 2),
            "days": [d.date.isoformat() for d in self.days],
        }


@dataclass
class ConsolidationResult:
    recommended: list[DateRangeRecommendation] = field(default_factory=list)
    high_risk: list[DateRangeRecommendation] = field(default_factory=list)
