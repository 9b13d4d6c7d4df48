"""Per-day conflict scoring.

For every candidate date the planned event is moved onto that date and
compared with the competing events nearby.  Each competitor contributes
``overlap x attendee_weight``; the sum is scaled by the holiday, seasonal
and venue multipliers of the date.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import math

import structlog

from event_conflict.engine.config import ScoringConfig
from event_conflict.events import Event, date_range
from event_conflict.overlap.estimators import RuleBasedOverlapEstimator
from event_conflict.overlap.predictor import AudienceOverlapPredictor
from event_conflict.scoring.results import CompetingImpact, DayScore, risk_tier
from event_conflict.signals.base import SignalResult
from event_conflict.signals.holiday import HolidaySignalProvider
from event_conflict.signals.seasonal import SeasonalSignalProvider
from event_conflict.signals.venue import VenueSignalProvider

logger = structlog.get_logger()


def attendee_weight(
    competing: Event,
    planned_attendees: int,
    cap: float,
    unknown_weight: float,
) -> float:
    """Relative size of a competitor: ``min(cap, sqrt(competitor / planned))``."""
    if competing.expected_attendees is None:
        return unknown_weight
    if planned_attendees <= 0:
        return cap
    return min(cap, math.sqrt(competing.expected_attendees / planned_attendees))


def nearby_competitors(
    planned: Event, day: dt.date, competing: list[Event], window_days: int
) -> list[Event]:
    """Competitors whose span lies within ``window_days`` of ``day``, by date then id."""
    start = day - dt.timedelta(days=window_days)
    end = day + dt.timedelta(days=window_days)
    nearby = [c for c in competing if c.key != planned.key and c.overlaps(start, end)]
    return sorted(nearby, key=lambda c: (c.date, c.id, c.source))


class ConflictScorer:
    """Scores each candidate date of a planned event.

    Args:
        config: Thresholds, display scale and attendee weighting.
        predictor: Audience overlap predictor (advanced mode).
        holiday: Holiday signal provider.
        seasonal: Seasonal signal provider.
        venue: Venue signal provider (advanced mode).
        rule_estimator: Rule-based overlap table (basic mode).
    """

    def __init__(
        self,
        config: ScoringConfig,
        predictor: AudienceOverlapPredictor,
        holiday: HolidaySignalProvider,
        seasonal: SeasonalSignalProvider,
        venue: VenueSignalProvider,
        rule_estimator: RuleBasedOverlapEstimator,
    ) -> None:
        self.config = config
        self.predictor = predictor
        self.holiday = holiday
        self.seasonal = seasonal
        self.venue = venue
        self.rule_estimator = rule_estimator

    async def score(
        self,
        planned: Event,
        start: dt.date,
        end: dt.date,
        competing: list[Event],
        advanced: bool = True,
        region: str = "CZ",
    ) -> list[DayScore]:
        """Score every date in ``start .. end``.

        Args:
            planned: The planned event; its own date is ignored.
            start: First candidate date.
            end: Last candidate date (inclusive).
            competing: Deduplicated competing events.
            advanced: Use the overlap predictor and the venue signal.
            region: Region for holiday and seasonal lookups.

        Returns:
            One ``DayScore`` per date, in date order.
        """
        days = date_range(start, end)
        semaphore = asyncio.Semaphore(self.config.max_concurrent_days)

        async def score_one(day: dt.date) -> DayScore:
            async with semaphore:
                return await self.score_day(planned, day, competing, advanced, region)

        results = await asyncio.gather(*[score_one(d) for d in days])

        logger.info(
            "days_scored",
            planned=planned.id,
            days=len(results),
            advanced=advanced,
            high=sum(1 for r in results if r.risk == "High"),
        )
        return list(results)

    async def score_day(
        self,
        planned: Event,
        day: dt.date,
        competing: list[Event],
        advanced: bool = True,
        region: str = "CZ",
    ) -> DayScore:
        cfg = self.config
        candidate = planned.on(day)
        nearby = nearby_competitors(candidate, day, competing, cfg.nearby_window_days)
        planned_attendees = planned.expected_attendees or cfg.default_planned_attendees

        impacts = await self._impacts(candidate, nearby, planned_attendees, advanced)
        total = sum(i.impact for i in impacts)

        signals: list[SignalResult] = [
            await self.holiday.multiplier(day, planned.category, planned.subcategory, region)
        ]
        seasonal = await self.seasonal.multiplier(
            day, planned.category, planned.subcategory, region
        )
        signals.append(seasonal)
        if advanced:
            signals.append(
                await self.venue.multiplier(
                    day,
                    planned.category,
                    planned.subcategory,
                    region,
                    venue=planned.venue,
                    expected_attendees=planned.expected_attendees,
                    competitors=[c for c in nearby if c.overlaps(day, day)],
                    demand_multiplier=seasonal.multiplier,
                )
            )

        multiplier = 1.0
        for signal in signals:
            multiplier *= signal.multiplier
        raw = total * multiplier
        score = min(cfg.display_max, raw * cfg.display_scale)

        return DayScore(
            date=day,
            raw_score=raw,
            score=score,
            risk=risk_tier(score, cfg.low_threshold, cfg.medium_threshold),
            competing=impacts,
            signals=signals,
        )

    async def _impacts(
        self,
        candidate: Event,
        nearby: list[Event],
        planned_attendees: int,
        advanced: bool,
    ) -> list[CompetingImpact]:
        cfg = self.config
        if advanced:
            predictions = await self.predictor.predict_many(candidate, nearby)
            overlaps = [(p.score, p.method, tuple(p.reasoning)) for p in predictions]
        else:
            overlaps = [
                (self.rule_estimator.base_score(candidate, c), "rule-based", ())
                for c in nearby
            ]

        impacts = []
        for c, (overlap, method, reasoning) in zip(nearby, overlaps):
            impacts.append(
                CompetingImpact(
                    event_id=c.id,
                    source=c.source,
                    title=c.title,
                    date=c.date,
                    end=c.end,
                    category=c.category,
                    subcategory=c.subcategory,
                    expected_attendees=c.expected_attendees,
                    overlap=overlap,
                    attendee_weight=attendee_weight(
                        c, planned_attendees, cfg.attendee_weight_cap, cfg.unknown_attendee_weight
                    ),
                    method=method,
                    reasoning=reasoning,
                )
            )
        return impacts
