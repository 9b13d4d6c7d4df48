"""Conflict analysis pipeline.

Sequence per run:

1. Fetch competing events from every provider (window padded by the
   nearby window so boundary days see their neighbours).
2. Drop the planned event itself, then deduplicate the listings.
3. Score every candidate date.
4. Consolidate the day scores into recommended and high-risk ranges.
5. Attach seasonal intelligence for the planned event's category.

Provider, AI and signal failures degrade the result instead of failing
the run.  An embedding dimension mismatch drops deduplication back to
the exact pass.
"""

from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import asdict, dataclass, field

import structlog

from event_conflict.ai.client import GeminiClassifier, GeminiEmbedder, create_client
from event_conflict.config.settings import Settings, get_settings
from event_conflict.db.session import get_session_factory
from event_conflict.dedup import EventDeduplicator, SimilarityCache
from event_conflict.dedup.deduplicator import DedupMetrics, DedupResult
from event_conflict.engine.config import EngineConfig, load_engine_config
from event_conflict.errors import EmbeddingDimensionError
from event_conflict.events import Event
from event_conflict.ingestion.providers import EventProvider, StoreEventProvider, fetch_all_events
from event_conflict.overlap import (
    AIOverlapEstimator,
    AudienceOverlapPredictor,
    FallbackOverlapEstimator,
    OverlapCache,
    RuleBasedOverlapEstimator,
)
from event_conflict.preprocessing.normalizer import load_city_aliases, make_city_normalizer
from event_conflict.scoring import ConflictScorer, DateRangeRecommendation, DayScore, consolidate
from event_conflict.signals import (
    HolidaySignalProvider,
    SeasonalSignalProvider,
    StaticSeasonalSource,
    StoreHolidaySource,
    StoreSeasonalSource,
    VenueSignalProvider,
    demand_level,
    load_holiday_calendar,
    load_seasonal_rules,
)
from event_conflict.store.client import RetryingStore

logger = structlog.get_logger()


@dataclass
class AnalysisResult:
    """Outcome of one conflict analysis.

    Attributes:
        recommended_dates: Low-risk ranges, none overlapping ``high_risk_dates``.
        high_risk_dates: High-risk ranges.
        all_events: Canonical competing events after deduplication.
        day_scores: One score per candidate date, in date order.
    """

    planned: Event
    start: dt.date
    end: dt.date
    recommended_dates: list[DateRangeRecommendation]
    high_risk_dates: list[DateRangeRecommendation]
    all_events: list[Event]
    day_scores: list[DayScore]
    dedup_metrics: DedupMetrics
    seasonal_intelligence: dict = field(default_factory=dict)
    advanced: bool = True
    run_id: str = ""

    def to_dict(self) -> dict:
        metrics = asdict(self.dedup_metrics)
        metrics["cache_hit_rate"] = round(self.dedup_metrics.cache_hit_rate, 4)
        return {
            "run_id": self.run_id,
            "planned": self.planned.to_dict(),
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "advanced": self.advanced,
            "recommended_dates": [r.to_dict() for r in self.recommended_dates],
            "high_risk_dates": [r.to_dict() for r in self.high_risk_dates],
            "all_events": [e.to_dict() for e in self.all_events],
            "day_scores": [d.to_dict() for d in self.day_scores],
            "dedup_metrics": metrics,
            "seasonal_intelligence": self.seasonal_intelligence,
        }


class ConflictAnalyzer:
    """Runs the fetch, dedup, score and consolidate pipeline for a planned event."""

    def __init__(
        self,
        providers: list[EventProvider],
        deduplicator: EventDeduplicator,
        scorer: ConflictScorer,
        seasonal: SeasonalSignalProvider,
        config: EngineConfig,
        region: str = "CZ",
    ) -> None:
        self.providers = providers
        self.deduplicator = deduplicator
        self.scorer = scorer
        self.seasonal = seasonal
        self.config = config
        self.region = region

    async def analyze(
        self,
        planned: Event,
        start: dt.date,
        end: dt.date,
        enable_advanced: bool = True,
    ) -> AnalysisResult:
        """Analyze date conflicts for ``planned`` between ``start`` and ``end``.

        Args:
            planned: The event being planned; its date is ignored.
            start: First candidate date.
            end: Last candidate date (inclusive).
            enable_advanced: Use AI overlap prediction and venue pressure.

        Returns:
            The full ``AnalysisResult``.

        Raises:
            ValueError: If ``end`` is before ``start``.
        """
        if end < start:
            raise ValueError(f"end date {end} is before start date {start}")

        run_id = uuid.uuid4().hex[:8]
        log = logger.bind(run_id=run_id, planned=planned.id, city=planned.city)
        log.info(
            "analysis_started",
            start=start.isoformat(),
            end=end.isoformat(),
            advanced=enable_advanced,
        )

        window = dt.timedelta(days=self.config.scoring.nearby_window_days)
        fetched = await fetch_all_events(
            self.providers,
            planned.city,
            start - window,
            end + window,
            config=self.config.fetch,
        )
        competitors = [e for e in fetched if e.key != planned.key]

        try:
            dedup = await self.deduplicator.deduplicate(competitors)
        except EmbeddingDimensionError as exc:
            log.error(
                "embedding_dimension_mismatch",
                left=exc.left,
                right=exc.right,
                error=str(exc),
            )
            dedup = await self.exact_only_dedup(competitors)

        day_scores = await self.scorer.score(
            planned, start, end, dedup.canonical, advanced=enable_advanced, region=self.region
        )
        ranges = consolidate(day_scores, self.config.consolidation)
        seasonal = await self.seasonal_intelligence(planned, start)

        log.info(
            "analysis_complete",
            fetched=len(fetched),
            competitors=len(dedup.canonical),
            days=len(day_scores),
            recommended=len(ranges.recommended),
            high_risk=len(ranges.high_risk),
        )
        return AnalysisResult(
            planned=planned,
            start=start,
            end=end,
            recommended_dates=ranges.recommended,
            high_risk_dates=ranges.high_risk,
            all_events=dedup.canonical,
            day_scores=day_scores,
            dedup_metrics=dedup.metrics,
            seasonal_intelligence=seasonal,
            advanced=enable_advanced,
            run_id=run_id,
        )

    async def exact_only_dedup(self, events: list[Event]) -> DedupResult:
        """Deduplicate with the exact pass only, after the embedder misbehaved."""
        # Vectors of the wrong length may already sit in the cache
        self.deduplicator.cache.clear()
        exact = EventDeduplicator(
            self.deduplicator.config,
            embedder=None,
            cache=self.deduplicator.cache,
            normalize=self.deduplicator.normalize,
        )
        result = await exact.deduplicate(events)
        result.metrics.semantic_fallback = True
        return result

    async def seasonal_intelligence(self, planned: Event, start: dt.date) -> dict:
        """Demand curve, best/worst months and the planned month's demand."""
        curve = await self.seasonal.demand_curve(planned.category, planned.subcategory, self.region)
        optimal = await self.seasonal.optimal_months(
            planned.category, planned.subcategory, self.region
        )
        current = await self.seasonal.multiplier(
            start, planned.category, planned.subcategory, self.region
        )
        return {
            "demand_curve": curve,
            "optimal_months": optimal,
            "planned_month": {
                "month": start.month,
                "multiplier": current.multiplier,
                "demand_level": demand_level(current.multiplier),
                "confidence": current.confidence,
                "reasoning": list(current.reasoning),
            },
        }


def build_analyzer(
    settings: Settings | None = None,
    config: EngineConfig | None = None,
    providers: list[EventProvider] | None = None,
    store: RetryingStore | None = None,
) -> ConflictAnalyzer:
    """Wire a ``ConflictAnalyzer`` from settings.

    Gemini embeddings and classification are enabled when an API key is
    configured.  With ``use_store`` the holiday and seasonal tables, the
    overlap cache and an extra event provider are backed by the database;
    otherwise the shipped YAML tables are used.

    Args:
        settings: Application settings (defaults to ``get_settings()``).
        config: Engine config (defaults to the YAML at ``engine_config_path``).
        providers: Event providers to query.
        store: Store to use instead of one built from ``database_url``.
    """
    settings = settings or get_settings()
    config = config or load_engine_config(settings.engine_config_path)
    providers = list(providers or [])

    normalize = make_city_normalizer(load_city_aliases(settings.city_aliases_path))

    api_key = settings.gemini_api_key or config.ai.api_key
    ai_config = config.ai.model_copy(update={"enabled": bool(api_key)})
    embedder = classifier = None
    if api_key:
        client = create_client(api_key)
        embedder = GeminiEmbedder(client, ai_config)
        classifier = GeminiClassifier(client, ai_config)

    if settings.use_store and store is None:
        store = RetryingStore(get_session_factory(), config.store)

    if settings.use_store:
        holiday_source = StoreHolidaySource(store)
        seasonal_source = StoreSeasonalSource(store)
        providers.append(StoreEventProvider(store, normalize))
        overlap_cache = OverlapCache(config.overlap, store)
    else:
        holiday_source = load_holiday_calendar(settings.holidays_path)
        seasonal_source = StaticSeasonalSource(load_seasonal_rules(settings.seasonal_rules_path))
        overlap_cache = OverlapCache(config.overlap)

    rule_estimator = RuleBasedOverlapEstimator(config.overlap)
    estimator = FallbackOverlapEstimator(
        AIOverlapEstimator(classifier, ai_config, config.overlap), rule_estimator
    )
    predictor = AudienceOverlapPredictor(
        estimator,
        config.overlap,
        cache=overlap_cache,
        max_concurrent=ai_config.max_concurrent_requests,
    )
    seasonal = SeasonalSignalProvider(seasonal_source, config.seasonal)
    scorer = ConflictScorer(
        config.scoring,
        predictor,
        HolidaySignalProvider(holiday_source, config.holiday),
        seasonal,
        VenueSignalProvider(config.venue),
        rule_estimator,
    )
    deduplicator = EventDeduplicator(
        config.dedup,
        embedder=embedder,
        cache=SimilarityCache(config.dedup.cache_size),
        normalize=normalize,
        ai_config=ai_config,
    )

    logger.info(
        "analyzer_built",
        ai_enabled=ai_config.enabled,
        use_store=settings.use_store,
        providers=[getattr(p, "name", type(p).__name__) for p in providers],
    )
    return ConflictAnalyzer(
        providers, deduplicator, scorer, seasonal, config, region=settings.default_region
    )
