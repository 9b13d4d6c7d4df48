"""Holiday proximity signal.

A holiday affects a date when the date falls inside the impact window of
a rule for the event's category: ``holiday - days_before`` through
``holiday + days_after``.  Several affecting holidays multiply, capped at
``max_multiplier``.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import structlog
import yaml

from event_conflict.caching import TTLCache
from event_conflict.engine.config import HolidayConfig
from event_conflict.models.holiday import HolidayImpactRuleRecord, HolidayRecord
from event_conflict.signals.base import SignalResult
from event_conflict.store.client import RetryingStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class Holiday:
    name: str
    date: dt.date
    holiday_type: str
    region: str = "CZ"


@dataclass(frozen=True)
class ImpactRule:
    """Effect of a holiday (or a whole holiday type) on one event category."""

    holiday_type: str
    category: str
    multiplier: float
    days_before: int = 0
    days_after: int = 0
    holiday_name: str | None = None
    subcategory: str | None = None
    region: str = "CZ"
    reasoning: str | None = None

    def matches(self, holiday: Holiday, subcategory: str | None) -> bool:
        if self.holiday_type != holiday.holiday_type:
            return False
        if self.holiday_name is not None and self.holiday_name != holiday.name:
            return False
        return self.subcategory is None or self.subcategory == subcategory

    def covers(self, holiday: Holiday, day: dt.date) -> bool:
        start = holiday.date - dt.timedelta(days=self.days_before)
        end = holiday.date + dt.timedelta(days=self.days_after)
        return start <= day <= end

    @property
    def specificity(self) -> int:
        return (2 if self.holiday_name else 0) + (1 if self.subcategory else 0)


class HolidaySource(Protocol):
    async def holidays_between(
        self, start: dt.date, end: dt.date, region: str
    ) -> list[Holiday]: ...

    async def impact_rules(self, category: str, region: str) -> list[ImpactRule]: ...


# ---------------------------------------------------------------------------
# Static calendar (YAML)
# ---------------------------------------------------------------------------


def easter_sunday(year: int) -> dt.date:
    """Gregorian Easter Sunday (anonymous Gregorian algorithm)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    w = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * w) // 451
    month, day = divmod(h + w - 7 * m + 114, 31)
    return dt.date(year, month, day + 1)


@dataclass(frozen=True)
class HolidayDefinition:
    """A recurring holiday: fixed month/day or an offset from Easter Sunday."""

    name: str
    holiday_type: str
    month: int | None = None
    day: int | None = None
    easter_offset: int | None = None
    region: str = "CZ"

    def for_year(self, year: int) -> Holiday:
        if self.easter_offset is not None:
            date = easter_sunday(year) + dt.timedelta(days=self.easter_offset)
        else:
            date = dt.date(year, self.month, self.day)
        return Holiday(self.name, date, self.holiday_type, self.region)


class StaticHolidaySource:
    """In-memory holiday calendar built from recurring definitions."""

    def __init__(self, definitions: list[HolidayDefinition], rules: list[ImpactRule]) -> None:
        self.definitions = definitions
        self.rules = rules

    async def holidays_between(
        self, start: dt.date, end: dt.date, region: str
    ) -> list[Holiday]:
        holidays = [
            d.for_year(year)
            for year in range(start.year, end.year + 1)
            for d in self.definitions
            if d.region == region
        ]
        return sorted(
            (h for h in holidays if start <= h.date <= end),
            key=lambda h: (h.date, h.name),
        )

    async def impact_rules(self, category: str, region: str) -> list[ImpactRule]:
        return [r for r in self.rules if r.category == category and r.region == region]


def load_holiday_calendar(path: Path) -> StaticHolidaySource:
    """Load holiday definitions and impact rules from ``holidays.yaml``.

    Args:
        path: Path to the YAML file.

    Returns:
        A ``StaticHolidaySource``; empty if the file does not exist.
    """
    if not path.exists():
        return StaticHolidaySource([], [])

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    region = data.get("region", "CZ")
    definitions = [
        HolidayDefinition(
            name=h["name"],
            holiday_type=h.get("type", "public_holiday"),
            month=h.get("month"),
            day=h.get("day"),
            easter_offset=h.get("easter_offset"),
            region=h.get("region", region),
        )
        for h in data.get("holidays", [])
    ]
    rules = [
        ImpactRule(
            holiday_type=r.get("holiday_type", "public_holiday"),
            holiday_name=r.get("holiday"),
            category=r["category"],
            subcategory=r.get("subcategory"),
            days_before=r.get("days_before", 0),
            days_after=r.get("days_after", 0),
            multiplier=r["multiplier"],
            region=r.get("region", region),
            reasoning=r.get("reasoning"),
        )
        for r in data.get("impact_rules", [])
    ]
    return StaticHolidaySource(definitions, rules)


# ---------------------------------------------------------------------------
# Store-backed calendar
# ---------------------------------------------------------------------------


class StoreHolidaySource:
    """Holidays and impact rules read from the ``holidays`` tables."""

    def __init__(self, store: RetryingStore) -> None:
        self._store = store

    async def holidays_between(
        self, start: dt.date, end: dt.date, region: str
    ) -> list[Holiday]:
        rows = await self._store.select_where(
            HolidayRecord,
            HolidayRecord.region == region,
            HolidayRecord.date >= start,
            HolidayRecord.date <= end,
        )
        return sorted(
            (Holiday(r.name, r.date, r.holiday_type, r.region) for r in rows),
            key=lambda h: (h.date, h.name),
        )

    async def impact_rules(self, category: str, region: str) -> list[ImpactRule]:
        rows = await self._store.select_rows(
            HolidayImpactRuleRecord, event_category=category, region=region
        )
        return [
            ImpactRule(
                holiday_type=r.holiday_type,
                holiday_name=r.holiday_name,
                category=r.event_category,
                subcategory=r.event_subcategory,
                days_before=r.days_before,
                days_after=r.days_after,
                multiplier=r.impact_multiplier,
                region=r.region,
                reasoning=r.reasoning,
            )
            for r in rows
        ]


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


def impact_level(multiplier: float) -> str:
    """Label for a combined holiday multiplier."""
    if multiplier >= 4.0:
        return "critical"
    if multiplier >= 2.5:
        return "high"
    if multiplier >= 1.8:
        return "moderate"
    if multiplier >= 1.2:
        return "low"
    return "none"


def _strongest_rule(
    rules: list[ImpactRule], holiday: Holiday, day: dt.date, subcategory: str | None
) -> ImpactRule | None:
    """Most specific rule for this holiday whose window covers ``day``."""
    candidates = [r for r in rules if r.matches(holiday, subcategory) and r.covers(holiday, day)]
    if not candidates:
        return None
    return max(candidates, key=lambda r: (r.specificity, r.multiplier))


class HolidaySignalProvider:
    """Multiplier from holidays near a date, cached per lookup."""

    name = "holiday"

    def __init__(
        self,
        source: HolidaySource,
        config: HolidayConfig | None = None,
        cache: TTLCache[SignalResult] | None = None,
    ) -> None:
        self.source = source
        self.config = config or HolidayConfig()
        self.cache = cache if cache is not None else TTLCache(self.config.cache_ttl_seconds)

    async def multiplier(
        self,
        day: dt.date,
        category: str,
        subcategory: str | None = None,
        region: str = "CZ",
    ) -> SignalResult:
        """Combined holiday multiplier for an event of ``category`` on ``day``.

        Never raises: lookup failures give a neutral result.
        """
        key = (day, category, subcategory, region)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            result = await self._compute(day, category, subcategory, region)
        except Exception as e:
            logger.warning(
                "holiday_signal_failed",
                day=day.isoformat(),
                category=category,
                error=str(e),
            )
            return SignalResult.neutral(self.name, "Holiday impact analysis unavailable")

        self.cache.put(key, result)
        return result

    async def _compute(
        self, day: dt.date, category: str, subcategory: str | None, region: str
    ) -> SignalResult:
        rules = await self.source.impact_rules(category, region)
        if not rules:
            return SignalResult(1.0, [], 0.6, self.name)

        # A holiday at H affects days H - before .. H + after
        reach_back = max(r.days_after for r in rules)
        reach_forward = max(r.days_before for r in rules)
        holidays = await self.source.holidays_between(
            day - dt.timedelta(days=reach_back),
            day + dt.timedelta(days=reach_forward),
            region,
        )

        multiplier = 1.0
        lines: list[str] = []
        for holiday in holidays:
            rule = _strongest_rule(rules, holiday, day, subcategory)
            if rule is None:
                continue
            multiplier *= rule.multiplier
            lines.append(f"{holiday.name} ({holiday.holiday_type}) - {rule.multiplier:g}x impact")

        if not lines:
            return SignalResult(1.0, [], 0.6, self.name)

        multiplier = min(self.config.max_multiplier, multiplier)
        noun = "conflict" if len(lines) == 1 else "conflicts"
        reasoning = [f"{len(lines)} holiday {noun} detected", *lines]
        if multiplier >= 2.0:
            reasoning.append("High combined holiday impact expected")
        elif multiplier >= 1.5:
            reasoning.append("Moderate combined holiday impact expected")
        else:
            reasoning.append("Low combined holiday impact expected")

        return SignalResult(round(multiplier, 4), reasoning, 0.8, self.name)
