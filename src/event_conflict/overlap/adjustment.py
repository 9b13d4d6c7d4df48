"""Temporal and significance adjustment of base overlap scores.

PURE FUNCTIONS -- applied to every prediction, cached or not, because the
cached base score knows nothing about dates or attendance.
"""

from __future__ import annotations

import re

from event_conflict.engine.config import OverlapConfig, SignificanceBoost, TemporalBoost
from event_conflict.events import Event, days_between
from event_conflict.overlap.prediction import BaseOverlap, OverlapPrediction

_TIMING_WORDS = re.compile(r"\b(days?|weeks?|temporal|proximity|close|timing|dates?)\b")


def temporal_boost(days: int, boosts: list[TemporalBoost]) -> float:
    """Boost for a gap of ``days`` between the events (0 beyond the last bracket)."""
    for bracket in boosts:
        if days <= bracket.max_days:
            return bracket.boost
    return 0.0


def significance_boost(attendees: int, boosts: list[SignificanceBoost]) -> float:
    """Boost for the larger of the two events' expected attendance."""
    for bracket in boosts:
        if attendees >= bracket.min_attendees:
            return bracket.boost
    return 0.0


def mentions_timing(reasons: list[str] | tuple[str, ...]) -> bool:
    """Whether any reason already talks about how close the events are."""
    return any(_TIMING_WORDS.search(reason.lower()) for reason in reasons)


def timing_reason(days: int) -> str:
    """Human-readable note on how close the two events are."""
    if days == 0:
        return "Events occur on the same day, creating maximum competition for the same audience."
    if days <= 3:
        unit = "day" if days == 1 else "days"
        return f"Events occur within {days} {unit}, creating very high competition for attendees."
    if days <= 7:
        return f"Events occur within {days} days, creating high competition for attendees."
    if days <= 30:
        return f"Events are {days} days apart, so part of the audience must choose between them."
    return f"Events are {days} days apart, leaving only limited competition for attendees."


def merge_reasoning(reasons: list[str], extra: str, max_reasons: int) -> list[str]:
    """Add ``extra`` without exceeding ``max_reasons`` (the last slot is replaced)."""
    merged = list(reasons[:max_reasons])
    if len(merged) < max_reasons:
        merged.append(extra)
    else:
        merged[-1] = extra
    return merged


def apply_adjustments(
    base: BaseOverlap,
    planned: Event,
    competing: Event,
    config: OverlapConfig,
    cached: bool = False,
) -> OverlapPrediction:
    """Turn a base estimate into the final prediction for a concrete event pair.

    Args:
        base: Cached or freshly estimated base overlap.
        planned: The planned event (on its candidate date).
        competing: The competing event.
        config: Boost tables, score cap and reason limit.
        cached: Whether ``base`` came from the cache.

    Returns:
        The adjusted ``OverlapPrediction`` with score in ``[0, max_score]``.
    """
    days = days_between(planned, competing)
    t_boost = temporal_boost(days, config.temporal_boosts)
    attendees = max(planned.expected_attendees or 0, competing.expected_attendees or 0)
    s_boost = significance_boost(attendees, config.significance_boosts)

    score = min(config.max_score, max(0.0, base.score + t_boost + s_boost))

    reasoning = list(base.reasoning[:config.max_reasons])
    if t_boost > 0 and not mentions_timing(reasoning):
        reasoning = merge_reasoning(reasoning, timing_reason(days), config.max_reasons)

    return OverlapPrediction(
        competing_id=competing.id,
        score=score,
        base_score=base.score,
        confidence=base.confidence,
        factors=base.factors,
        reasoning=reasoning,
        method=base.method,
        temporal_boost=t_boost,
        significance_boost=s_boost,
        days_between=days,
        cached=cached,
    )
