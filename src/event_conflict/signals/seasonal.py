"""Seasonal demand signal.

Demand multipliers are looked up by ``(category, subcategory, region,
month)``; a missing subcategory row falls back to the category row, and
a missing category row to a neutral default with low confidence.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import structlog
import yaml

from event_conflict.caching import TTLCache
from event_conflict.engine.config import SeasonalConfig
from event_conflict.models.seasonal_rule import SeasonalRuleRecord
from event_conflict.signals.base import SignalResult
from event_conflict.store.client import RetryingStore

logger = structlog.get_logger()

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


@dataclass(frozen=True)
class SeasonalRule:
    category: str
    month: int
    multiplier: float
    confidence: float = 0.8
    subcategory: str | None = None
    region: str = "CZ"
    reasoning: str | None = None


class SeasonalSource(Protocol):
    async def rules(self, category: str, region: str) -> list[SeasonalRule]:
        """All rules of a category (every subcategory and month)."""
        ...


class StaticSeasonalSource:
    def __init__(self, rules: list[SeasonalRule]) -> None:
        self._rules = rules

    async def rules(self, category: str, region: str) -> list[SeasonalRule]:
        return [r for r in self._rules if r.category == category and r.region == region]


class StoreSeasonalSource:
    """Rules read from the ``seasonal_rules`` table."""

    def __init__(self, store: RetryingStore) -> None:
        self._store = store

    async def rules(self, category: str, region: str) -> list[SeasonalRule]:
        rows = await self._store.select_rows(SeasonalRuleRecord, category=category, region=region)
        return [
            SeasonalRule(
                category=r.category,
                subcategory=r.subcategory,
                region=r.region,
                month=r.month,
                multiplier=r.demand_multiplier,
                confidence=r.confidence,
                reasoning=r.reasoning,
            )
            for r in rows
        ]


def load_seasonal_rules(path: Path) -> list[SeasonalRule]:
    """Expand ``seasonal_rules.yaml`` into one rule per month.

    Each entry holds twelve multipliers (January first) and optional
    per-month notes.

    Raises:
        ValueError: If an entry does not have exactly twelve multipliers.
    """
    if not path.exists():
        return []

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    region = data.get("region", "CZ")
    rules: list[SeasonalRule] = []
    for entry in data.get("rules", []):
        multipliers = entry["multipliers"]
        if len(multipliers) != 12:
            raise ValueError(
                f"{entry['category']}/{entry.get('subcategory')}: expected 12 multipliers, "
                f"got {len(multipliers)}"
            )
        notes = entry.get("notes") or {}
        for month, multiplier in enumerate(multipliers, start=1):
            rules.append(
                SeasonalRule(
                    category=entry["category"],
                    subcategory=entry.get("subcategory"),
                    region=entry.get("region", region),
                    month=month,
                    multiplier=float(multiplier),
                    confidence=entry.get("confidence", 0.8),
                    reasoning=notes.get(month),
                )
            )
    return rules


def demand_level(multiplier: float) -> str:
    if multiplier >= 2.0:
        return "very_high"
    if multiplier >= 1.5:
        return "high"
    if multiplier >= 1.0:
        return "medium"
    if multiplier >= 0.7:
        return "low"
    return "very_low"


def _label(category: str, subcategory: str | None) -> str:
    return f"{category} ({subcategory})" if subcategory else category


class SeasonalSignalProvider:
    """Monthly demand multiplier, cached per category/month/region."""

    name = "seasonal"

    def __init__(
        self,
        source: SeasonalSource,
        config: SeasonalConfig | None = None,
        cache: TTLCache[SignalResult] | None = None,
    ) -> None:
        self.source = source
        self.config = config or SeasonalConfig()
        self.cache = cache if cache is not None else TTLCache(self.config.cache_ttl_seconds)

    async def multiplier(
        self,
        day: dt.date,
        category: str,
        subcategory: str | None = None,
        region: str = "CZ",
    ) -> SignalResult:
        """Seasonal demand multiplier for ``category`` in the month of ``day``.

        Never raises: lookup failures give a neutral result.
        """
        key = (category, subcategory, region, day.month)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            rules = await self.source.rules(category, region)
        except Exception as e:
            logger.warning(
                "seasonal_signal_failed",
                category=category,
                month=day.month,
                error=str(e),
            )
            return SignalResult.neutral(self.name, "Seasonal analysis unavailable")

        result = self._evaluate(rules, day.month, category, subcategory)
        self.cache.put(key, result)
        return result

    def _evaluate(
        self,
        rules: list[SeasonalRule],
        month: int,
        category: str,
        subcategory: str | None,
    ) -> SignalResult:
        rule = _pick_rule(rules, month, subcategory)
        if rule is None:
            return SignalResult(
                self.config.default_multiplier,
                [f"No seasonal data available for {_label(category, subcategory)}"],
                self.config.default_confidence,
                self.name,
            )

        reasoning: list[str] = []
        if rule.reasoning:
            reasoning.append(rule.reasoning)
        m = rule.multiplier
        month_name = MONTH_NAMES[month - 1]
        if m >= 1.5:
            reasoning.append(f"High demand period for {category} events in {month_name}")
        elif m >= 1.2:
            reasoning.append(f"Above-average demand for {category} events in {month_name}")
        elif m <= 0.7:
            reasoning.append(f"Lower demand period for {category} events in {month_name}")
        if rule.subcategory:
            reasoning.append(f"Specific patterns for {rule.subcategory} subcategory")

        return SignalResult(m, reasoning, rule.confidence, self.name)

    async def demand_curve(
        self,
        category: str,
        subcategory: str | None = None,
        region: str = "CZ",
    ) -> list[dict]:
        """Twelve monthly points of the demand curve (January first)."""
        try:
            rules = await self.source.rules(category, region)
        except Exception as e:
            logger.warning("seasonal_curve_failed", category=category, error=str(e))
            rules = []

        curve = []
        for month in range(1, 13):
            rule = _pick_rule(rules, month, subcategory)
            multiplier = rule.multiplier if rule else self.config.default_multiplier
            curve.append(
                {
                    "month": month,
                    "month_name": MONTH_NAMES[month - 1],
                    "multiplier": multiplier,
                    "demand_level": demand_level(multiplier),
                    "confidence": rule.confidence if rule else self.config.default_confidence,
                }
            )
        return curve

    async def optimal_months(
        self,
        category: str,
        subcategory: str | None = None,
        region: str = "CZ",
        limit: int = 3,
    ) -> dict[str, list[dict]]:
        """Months with the highest and lowest demand.

        Ties keep calendar order.
        """
        curve = await self.demand_curve(category, subcategory, region)
        best = sorted(curve, key=lambda p: (-p["multiplier"], p["month"]))[:limit]
        avoid = sorted(curve, key=lambda p: (p["multiplier"], p["month"]))[:limit]
        return {"best": best, "avoid": avoid}


def _pick_rule(
    rules: list[SeasonalRule], month: int, subcategory: str | None
) -> SeasonalRule | None:
    """Subcategory row for the month, else the category-level row."""
    category_rule = None
    for rule in rules:
        if rule.month != month:
            continue
        if subcategory and rule.subcategory == subcategory:
            return rule
        if rule.subcategory is None and category_rule is None:
            category_rule = rule
    return category_rule
