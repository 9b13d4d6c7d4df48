"""Load the shipped holiday and seasonal tables into the store."""

from __future__ import annotations

import structlog

from event_conflict.models.holiday import HolidayImpactRuleRecord, HolidayRecord
from event_conflict.models.seasonal_rule import SeasonalRuleRecord
from event_conflict.signals.holiday import StaticHolidaySource
from event_conflict.signals.seasonal import SeasonalRule
from event_conflict.store.client import RetryingStore

logger = structlog.get_logger()


async def seed_reference_data(
    store: RetryingStore,
    calendar: StaticHolidaySource,
    seasonal_rules: list[SeasonalRule],
    years: list[int],
) -> dict[str, int]:
    """Upsert holidays for ``years``, impact rules and seasonal rules.

    Re-running is safe: rows are matched on their natural keys.

    Returns:
        Rows written per table.
    """
    holidays = [d.for_year(year) for year in years for d in calendar.definitions]
    counts = {
        "holidays": await store.upsert(
            HolidayRecord,
            [
                {"name": h.name, "date": h.date, "holiday_type": h.holiday_type, "region": h.region}
                for h in holidays
            ],
            ["name", "date", "region"],
        ),
        "holiday_impact_rules": await store.upsert(
            HolidayImpactRuleRecord,
            [
                {
                    "holiday_type": r.holiday_type,
                    "holiday_name": r.holiday_name,
                    "event_category": r.category,
                    "event_subcategory": r.subcategory,
                    "region": r.region,
                    "days_before": r.days_before,
                    "days_after": r.days_after,
                    "impact_multiplier": r.multiplier,
                    "reasoning": r.reasoning,
                }
                for r in calendar.rules
            ],
            ["holiday_type", "holiday_name", "event_category", "event_subcategory", "region"],
        ),
        "seasonal_rules": await store.upsert(
            SeasonalRuleRecord,
            [
                {
                    "category": r.category,
                    "subcategory": r.subcategory,
                    "region": r.region,
                    "month": r.month,
                    "demand_multiplier": r.multiplier,
                    "confidence": r.confidence,
                    "reasoning": r.reasoning,
                }
                for r in seasonal_rules
            ],
            ["category", "subcategory", "region", "month"],
        ),
    }
    logger.info("reference_data_seeded", years=years, **counts)
    return counts
