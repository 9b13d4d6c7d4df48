"""Venue capacity pressure signal.

Venue capacity is estimated from the venue name (ordered substring
patterns such as "stadium" or "divadlo") or, failing that, a per-category
default, and scaled by how full events of that category usually get.
The conflict pressure then blends four components:

- capacity utilization: competitor attendance at the same venue plus the
  planned event's attendance, relative to capacity
- pricing impact: day-of-week demand multiplier
- competitor pressure: share of the local audience already committed to
  same-day competitors
- demand forecast: seasonal demand multiplier, when known
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

import structlog

from event_conflict.caching import TTLCache
from event_conflict.engine.config import VenueConfig
from event_conflict.events import Event
from event_conflict.preprocessing.normalizer import normalize_text
from event_conflict.signals.base import SignalResult

logger = structlog.get_logger()


@dataclass(frozen=True)
class VenueCapacity:
    capacity: int
    baseline: int
    utilization: float
    matched_pattern: str | None
    confidence: float


class VenueSignalProvider:
    """Multiplier ``1 + pressure * pressure_weight`` from venue and competitor load."""

    name = "venue"

    def __init__(self, config: VenueConfig | None = None) -> None:
        self.config = config or VenueConfig()
        # Longest pattern first so "grand hotel" wins over "hotel"
        self._patterns = sorted(
            self.config.venue_patterns.items(), key=lambda p: (-len(p[0]), p[0])
        )
        self._capacity_cache: TTLCache[VenueCapacity] = TTLCache(self.config.cache_ttl_seconds)

    def estimate_capacity(self, venue: str | None, category: str) -> VenueCapacity:
        """Expected attendable capacity of a venue for a category of event."""
        key = (venue or "", category)
        cached = self._capacity_cache.get(key)
        if cached is not None:
            return cached

        utilization = self.config.utilization.get(category, self.config.default_utilization)
        name = (venue or "").lower()
        baseline, matched, confidence = None, None, self.config.default_confidence
        for pattern, capacity in self._patterns:
            if pattern in name:
                baseline, matched, confidence = capacity, pattern, self.config.pattern_confidence
                break
        if baseline is None:
            baseline = self.config.category_capacity.get(
                category, self.config.category_capacity.get("Other", 200)
            )

        result = VenueCapacity(
            capacity=max(1, round(baseline * utilization)),
            baseline=baseline,
            utilization=utilization,
            matched_pattern=matched,
            confidence=confidence,
        )
        self._capacity_cache.put(key, result)
        return result

    def day_of_week_multiplier(self, day: dt.date) -> float:
        return self.config.day_of_week_multipliers[day.weekday()]

    async def multiplier(
        self,
        day: dt.date,
        category: str,
        subcategory: str | None = None,
        region: str = "CZ",
        *,
        venue: str | None = None,
        expected_attendees: int | None = None,
        competitors: list[Event] | None = None,
        demand_multiplier: float | None = None,
    ) -> SignalResult:
        """Venue pressure multiplier for the planned event on ``day``.

        Args:
            day: Candidate date.
            category: Planned event category.
            subcategory: Planned event subcategory (unused by the table).
            region: Region code (unused by the table).
            venue: Planned venue name.
            expected_attendees: Planned attendance.
            competitors: Competing events on or near ``day``.
            demand_multiplier: Seasonal demand multiplier, if known.

        Returns:
            ``SignalResult`` in ``[1, 1 + pressure_weight]``; neutral on failure.
        """
        try:
            return self._compute(
                day, category, venue, expected_attendees, competitors or [], demand_multiplier
            )
        except Exception as e:
            logger.warning("venue_signal_failed", day=day.isoformat(), venue=venue, error=str(e))
            return SignalResult.neutral(self.name, "Venue analysis unavailable")

    def _compute(
        self,
        day: dt.date,
        category: str,
        venue: str | None,
        expected_attendees: int | None,
        competitors: list[Event],
        demand_multiplier: float | None,
    ) -> SignalResult:
        cfg = self.config
        estimate = self.estimate_capacity(venue, category)
        expected = expected_attendees or 0

        venue_key = normalize_text(venue)
        booked = sum(
            c.expected_attendees or 0
            for c in competitors
            if venue_key and normalize_text(c.venue) == venue_key
        )
        competitor_attendees = sum(c.expected_attendees or 0 for c in competitors)

        capacity_utilization = min(1.0, (booked + expected) / estimate.capacity)
        pricing_impact = min(self.day_of_week_multiplier(day), 2.0) / 2.0
        if competitor_attendees + expected > 0:
            competitor_pressure = competitor_attendees / (competitor_attendees + expected)
        else:
            competitor_pressure = 0.0
        if demand_multiplier is None:
            demand_forecast = cfg.default_demand
        else:
            demand_forecast = min(demand_multiplier, 2.0) / 2.0

        w = cfg.pressure
        pressure = (
            capacity_utilization * w.capacity_utilization
            + pricing_impact * w.pricing_impact
            + competitor_pressure * w.competitor_pressure
            + demand_forecast * w.demand_forecast
        )
        pressure = min(1.0, max(0.0, pressure))

        reasoning = []
        if estimate.matched_pattern:
            reasoning.append(
                f"Estimated venue capacity {estimate.capacity} ({estimate.matched_pattern})"
            )
        else:
            reasoning.append(f"Estimated venue capacity {estimate.capacity} ({category} default)")
        if booked:
            reasoning.append(f"{booked} attendees already booked at the same venue")
        if competitor_pressure >= 0.5:
            reasoning.append("Same-day competitors draw most of the local audience")
        if pricing_impact >= 0.6:
            reasoning.append(f"{day.strftime('%A')} is a high-demand day")

        return SignalResult(
            round(1.0 + pressure * cfg.pressure_weight, 4),
            reasoning,
            estimate.confidence,
            self.name,
        )
