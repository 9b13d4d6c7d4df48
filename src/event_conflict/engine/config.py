"""Engine configuration with sensible defaults.

All parameters can be overridden via ``config/engine.yaml``.  If the
file does not exist, defaults are used.
"""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class DedupConfig(BaseModel):
    """Parameters for duplicate detection and canonical selection."""

    threshold: float = Field(0.85, ge=0.0, le=1.0)
    batch_size: int = 20
    max_concurrent_batches: int = 5
    cache_size: int = 1000
    # None matches exact duplicates regardless of date
    exact_max_gap_days: int | None = Field(None, ge=0)
    # Primary ticketing > secondary aggregators > scraped > manual
    source_priority: dict[str, int] = {
        "ticketmaster": 3,
        "predicthq": 2,
        "eventbrite": 2,
        "goout": 1,
        "brnoexpat": 1,
        "firecrawl": 1,
        "scraper": 1,
        "manual": 0,
    }


class AIConfig(BaseModel):
    """Configuration for the embedding and classification capabilities."""

    enabled: bool = False
    api_key: str = ""
    model: str = "gemini-2.5-flash"
    embedding_model: str = "gemini-embedding-001"
    temperature: float = 0.3
    max_output_tokens: int = 1024
    timeout_seconds: float = 10.0
    max_concurrent_requests: int = 5


class TemporalBoost(BaseModel):
    max_days: int
    boost: float


class SignificanceBoost(BaseModel):
    min_attendees: int
    boost: float


class FactorWeights(BaseModel):
    """Weights of the four audience overlap factors."""

    demographic: float = 0.3
    interest: float = 0.4
    behavior: float = 0.2
    historical: float = 0.1

    @model_validator(mode="after")
    def warn_if_weights_dont_sum(self) -> "FactorWeights":
        """Log a warning if weights do not sum to approximately 1.0."""
        total = self.demographic + self.interest + self.behavior + self.historical
        if abs(total - 1.0) > 0.01:
            structlog.get_logger().warning(
                "factor_weights_sum_mismatch",
                total=round(total, 4),
                expected=1.0,
            )
        return self


class RuleTableConfig(BaseModel):
    """Base scores of the rule-based overlap table."""

    same_subcategory: float = 0.85
    related_subcategory: float = 0.65
    same_category: float = 0.30
    related_category_high: float = 0.20
    related_category_medium: float = 0.15
    unrelated: float = 0.05
    related_subcategories: list[tuple[str, str]] = [
        ("Rock", "Metal"),
        ("Pop", "Electronic"),
        ("Jazz", "Blues"),
        ("AI/ML", "Data Science"),
        ("Web Development", "Mobile Development"),
        ("Marketing", "Sales"),
        ("Finance", "Investment"),
        ("Startups", "Entrepreneurship"),
        ("Football", "Hockey"),
    ]
    category_relations_high: dict[str, list[str]] = {
        "Entertainment": ["Music", "Arts & Culture"],
        "Music": ["Entertainment"],
        "Business": ["Technology", "Finance"],
        "Technology": ["Business"],
        "Finance": ["Business"],
    }
    category_relations_medium: dict[str, list[str]] = {
        "Entertainment": ["Sports"],
        "Arts & Culture": ["Entertainment", "Music"],
        "Sports": ["Entertainment"],
        "Business": ["Education"],
        "Technology": ["Education"],
        "Education": ["Business", "Technology"],
    }


class OverlapConfig(BaseModel):
    """Audience overlap prediction, caching and adjustment."""

    max_score: float = 0.95
    temporal_boosts: list[TemporalBoost] = [
        TemporalBoost(max_days=0, boost=0.18),
        TemporalBoost(max_days=3, boost=0.13),
        TemporalBoost(max_days=7, boost=0.08),
        TemporalBoost(max_days=30, boost=0.04),
        TemporalBoost(max_days=90, boost=0.01),
    ]
    significance_boosts: list[SignificanceBoost] = [
        SignificanceBoost(min_attendees=10000, boost=0.13),
        SignificanceBoost(min_attendees=1000, boost=0.08),
        SignificanceBoost(min_attendees=100, boost=0.03),
    ]
    max_reasons: int = 3
    memory_ttl_seconds: int = 3600
    store_ttl_days: int = 30
    factor_weights: FactorWeights = FactorWeights()
    rules: RuleTableConfig = RuleTableConfig()

    @field_validator("temporal_boosts")
    @classmethod
    def temporal_boosts_ascending(cls, v: list[TemporalBoost]) -> list[TemporalBoost]:
        days = [b.max_days for b in v]
        if days != sorted(days):
            raise ValueError("temporal_boosts must be ordered by ascending max_days")
        boosts = [b.boost for b in v]
        if boosts != sorted(boosts, reverse=True):
            raise ValueError("temporal_boosts must not grow with distance")
        return v

    @field_validator("significance_boosts")
    @classmethod
    def significance_boosts_descending(
        cls, v: list[SignificanceBoost]
    ) -> list[SignificanceBoost]:
        thresholds = [b.min_attendees for b in v]
        if thresholds != sorted(thresholds, reverse=True):
            raise ValueError("significance_boosts must be ordered by descending min_attendees")
        return v


class HolidayConfig(BaseModel):
    max_multiplier: float = 5.0
    cache_ttl_seconds: int = 900


class SeasonalConfig(BaseModel):
    default_multiplier: float = 1.0
    default_confidence: float = 0.3
    cache_ttl_seconds: int = 1800


class PressureWeights(BaseModel):
    """Weights of the venue conflict pressure components."""

    capacity_utilization: float = 0.3
    pricing_impact: float = 0.2
    competitor_pressure: float = 0.3
    demand_forecast: float = 0.2

    @model_validator(mode="after")
    def warn_if_weights_dont_sum(self) -> "PressureWeights":
        """Log a warning if weights do not sum to approximately 1.0."""
        total = (
            self.capacity_utilization
            + self.pricing_impact
            + self.competitor_pressure
            + self.demand_forecast
        )
        if abs(total - 1.0) > 0.01:
            structlog.get_logger().warning(
                "pressure_weights_sum_mismatch",
                total=round(total, 4),
                expected=1.0,
            )
        return self


class VenueConfig(BaseModel):
    """Venue capacity estimation and pressure scoring."""

    pressure_weight: float = 0.5
    cache_ttl_seconds: int = 3600
    pressure: PressureWeights = PressureWeights()
    pattern_confidence: float = 0.7
    default_confidence: float = 0.3
    default_demand: float = 0.5
    # Monday .. Sunday
    day_of_week_multipliers: list[float] = [1.0, 1.1, 1.1, 1.0, 1.2, 1.2, 0.9]
    category_capacity: dict[str, int] = {
        "Sports": 5000,
        "Entertainment": 2000,
        "Arts & Culture": 800,
        "Business": 300,
        "Technology": 400,
        "Education": 200,
        "Health & Wellness": 150,
        "Food & Drink": 100,
        "Other": 200,
    }
    utilization: dict[str, float] = {
        "Sports": 0.9,
        "Entertainment": 0.8,
        "Arts & Culture": 0.7,
        "Business": 0.6,
        "Technology": 0.75,
        "Education": 0.6,
        "Health & Wellness": 0.5,
        "Food & Drink": 0.8,
    }
    default_utilization: float = 0.7
    # Matched as lowercase substrings, longest pattern first
    venue_patterns: dict[str, int] = {
        "stadium": 15000,
        "arena": 12000,
        "field": 8000,
        "ground": 6000,
        "pitch": 5000,
        "convention center": 2000,
        "exhibition center": 1500,
        "expo center": 1000,
        "conference center": 800,
        "grand hotel": 800,
        "resort": 600,
        "hotel": 400,
        "spa": 200,
        "opera house": 1200,
        "amphitheater": 2000,
        "philharmonic": 1000,
        "concert hall": 800,
        "auditorium": 600,
        "theater": 500,
        "nightclub": 400,
        "club": 300,
        "lounge": 120,
        "bar": 150,
        "pub": 100,
        "restaurant": 80,
        "cafe": 50,
        "cultural center": 400,
        "university": 300,
        "college": 200,
        "school": 150,
        "library": 100,
        "museum": 200,
        "gallery": 80,
        "sports center": 300,
        "gym": 200,
        "hrad": 200,
        "zámek": 300,
        "kostel": 150,
        "divadlo": 400,
        "kino": 200,
        "hospoda": 80,
        "restaurace": 60,
    }


class ScoringConfig(BaseModel):
    """Per-day conflict scoring and risk tiers."""

    nearby_window_days: int = 1
    display_scale: float = 5.0
    display_max: float = 20.0
    low_threshold: float = 5.0
    medium_threshold: float = 12.0
    default_planned_attendees: int = 100
    attendee_weight_cap: float = 3.0
    unknown_attendee_weight: float = 0.5
    max_concurrent_days: int = 8

    @model_validator(mode="after")
    def thresholds_ordered(self) -> "ScoringConfig":
        if self.low_threshold > self.medium_threshold:
            raise ValueError("low_threshold must not exceed medium_threshold")
        return self


class ConsolidationConfig(BaseModel):
    max_gap_days: int = 3


class FetchConfig(BaseModel):
    """Retry policy of the upstream provider fetch layer."""

    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    timeout_seconds: float = 30.0


class StoreConfig(BaseModel):
    max_retries: int = 3
    retry_delay_seconds: float = 1.0


class EngineConfig(BaseModel):
    """Top-level engine configuration combining all sub-configs."""

    dedup: DedupConfig = DedupConfig()
    ai: AIConfig = AIConfig()
    overlap: OverlapConfig = OverlapConfig()
    holiday: HolidayConfig = HolidayConfig()
    seasonal: SeasonalConfig = SeasonalConfig()
    venue: VenueConfig = VenueConfig()
    scoring: ScoringConfig = ScoringConfig()
    consolidation: ConsolidationConfig = ConsolidationConfig()
    fetch: FetchConfig = FetchConfig()
    store: StoreConfig = StoreConfig()


def load_engine_config(path: Path) -> EngineConfig:
    """Load engine configuration from a YAML file.

    If the file does not exist, returns an ``EngineConfig`` with all
    default values.  Partial overrides are supported -- only the keys
    present in the YAML file will override defaults.
    """
    if not path.exists():
        return EngineConfig()

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return EngineConfig(**data)
