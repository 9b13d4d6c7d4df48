"""Holiday, seasonal and venue multipliers for per-day conflict scoring."""

from event_conflict.signals.base import SignalResult
from event_conflict.signals.holiday import (
    Holiday,
    HolidaySignalProvider,
    ImpactRule,
    StaticHolidaySource,
    StoreHolidaySource,
    impact_level,
    load_holiday_calendar,
)
from event_conflict.signals.seasonal import (
    SeasonalRule,
    SeasonalSignalProvider,
    StaticSeasonalSource,
    StoreSeasonalSource,
    demand_level,
    load_seasonal_rules,
)
from event_conflict.signals.venue import VenueCapacity, VenueSignalProvider

__all__ = [
    "Holiday",
    "HolidaySignalProvider",
    "ImpactRule",
    "SeasonalRule",
    "SeasonalSignalProvider",
    "SignalResult",
    "StaticHolidaySource",
    "StaticSeasonalSource",
    "StoreHolidaySource",
    "StoreSeasonalSource",
    "VenueCapacity",
    "VenueSignalProvider",
    "demand_level",
    "impact_level",
    "load_holiday_calendar",
    "load_seasonal_rules",
]
