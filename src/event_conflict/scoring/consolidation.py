"""Consolidation of per-day scores into recommended and high-risk ranges.

PURE FUNCTIONS -- no I/O.

Low-risk days merge into one recommended range when they are at most
``max_gap_days`` apart, every scored day in between is also Low, and no
competing event of either side falls into the gap.  High-risk days merge
under the same distance limit unless a Low day lies in between.  A final
pass drops every recommended range that overlaps a high-risk range.
"""

from __future__ import annotations

import datetime as dt

import structlog

from event_conflict.engine.config import ConsolidationConfig
from event_conflict.errors import ConsolidationInvariantError
from event_conflict.scoring.results import (
    HIGH,
    LOW,
    ConsolidationResult,
    DateRangeRecommendation,
    DayScore,
)

logger = structlog.get_logger()


def _gap_dates(a: dt.date, b: dt.date) -> list[dt.date]:
    """Dates strictly between ``a`` and ``b``."""
    return [a + dt.timedelta(days=i) for i in range(1, (b - a).days)]


def _competitor_in_gap(days: list[DayScore], gap: list[dt.date]) -> bool:
    if not gap:
        return False
    first, last = gap[0], gap[-1]
    return any(
        c.date <= last and c.end >= first
        for day in days
        for c in day.competing
    )


def _can_merge_low(
    current: list[DayScore],
    nxt: DayScore,
    by_date: dict[dt.date, DayScore],
    max_gap_days: int,
) -> bool:
    prev = current[-1]
    if (nxt.date - prev.date).days > max_gap_days:
        return False
    gap = _gap_dates(prev.date, nxt.date)
    if any(d in by_date and by_date[d].risk != LOW for d in gap):
        return False
    return not _competitor_in_gap(current + [nxt], gap)


def _can_merge_high(
    current: list[DayScore],
    nxt: DayScore,
    by_date: dict[dt.date, DayScore],
    max_gap_days: int,
) -> bool:
    prev = current[-1]
    if (nxt.date - prev.date).days > max_gap_days:
        return False
    gap = _gap_dates(prev.date, nxt.date)
    return not any(d in by_date and by_date[d].risk == LOW for d in gap)


def _merge(
    days: list[DayScore], risk: str, can_merge, by_date, max_gap_days
) -> list[DateRangeRecommendation]:
    ranges: list[DateRangeRecommendation] = []
    current: list[DayScore] = []
    for day in days:
        if current and can_merge(current, day, by_date, max_gap_days):
            current.append(day)
            continue
        if current:
            ranges.append(DateRangeRecommendation(current[0].date, current[-1].date, risk, current))
        current = [day]
    if current:
        ranges.append(DateRangeRecommendation(current[0].date, current[-1].date, risk, current))
    return ranges


def consolidate(
    day_scores: list[DayScore],
    config: ConsolidationConfig | None = None,
) -> ConsolidationResult:
    """Group scored days into recommended (Low) and high-risk (High) ranges.

    Medium days belong to neither.  The returned ranges never overlap:
    a day cannot be both recommended and high-risk.

    Args:
        day_scores: Scored days in any order (one per date).
        config: Merge distance.

    Returns:
        ``ConsolidationResult`` with ranges in ascending date order.
    """
    config = config or ConsolidationConfig()
    days = sorted(day_scores, key=lambda d: d.date)
    by_date = {d.date: d for d in days}

    recommended = _merge(
        [d for d in days if d.risk == LOW], LOW, _can_merge_low, by_date, config.max_gap_days
    )
    high_risk = _merge(
        [d for d in days if d.risk == HIGH], HIGH, _can_merge_high, by_date, config.max_gap_days
    )

    kept = [r for r in recommended if not any(r.overlaps(h) for h in high_risk)]
    if len(kept) != len(recommended):
        logger.info("recommended_ranges_dropped", dropped=len(recommended) - len(kept))

    result = ConsolidationResult(recommended=kept, high_risk=high_risk)
    assert_no_overlap(result)
    return result


def assert_no_overlap(result: ConsolidationResult) -> None:
    """Raise if any recommended range shares a date with a high-risk range."""
    for rec in result.recommended:
        for high in result.high_risk:
            if rec.overlaps(high):
                raise ConsolidationInvariantError(
                    f"Recommended range {rec.start}..{rec.end} overlaps "
                    f"high-risk range {high.start}..{high.end}"
                )
