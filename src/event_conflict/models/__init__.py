from event_conflict.models.base import Base
from event_conflict.models.event_record import EventRecord
from event_conflict.models.holiday import HolidayImpactRuleRecord, HolidayRecord
from event_conflict.models.overlap_cache import OverlapCacheRecord
from event_conflict.models.seasonal_rule import SeasonalRuleRecord

__all__ = [
    "Base",
    "EventRecord",
    "HolidayImpactRuleRecord",
    "HolidayRecord",
    "OverlapCacheRecord",
    "SeasonalRuleRecord",
]
