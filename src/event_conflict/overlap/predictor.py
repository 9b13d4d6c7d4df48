"""Audience overlap predictor: cache, estimator chain, adjustment.

``AudienceOverlapPredictor`` wraps any overlap estimator.  Base estimates
are looked up (and, for AI results, stored) by category pair; temporal
and significance adjustments are applied on every call, so cache hits
and fresh estimates are treated identically.
"""

from __future__ import annotations

import asyncio

import structlog

from event_conflict.engine.config import OverlapConfig
from event_conflict.events import Event
from event_conflict.overlap.adjustment import apply_adjustments
from event_conflict.overlap.cache import OverlapCache
from event_conflict.overlap.estimators import (
    FallbackOverlapEstimator,
    OverlapEstimator,
    RuleBasedOverlapEstimator,
)
from event_conflict.overlap.prediction import BaseOverlap, OverlapPrediction, overlap_key

logger = structlog.get_logger()


class AudienceOverlapPredictor:
    """Predicts audience overlap between a planned event and its competitors.

    Args:
        estimator: Produces base estimates on cache misses.  Wrapped in a
            ``FallbackOverlapEstimator`` with the rule-based table unless it
            already is one, so a prediction is always produced.
        config: Overlap settings.
        cache: Optional shared overlap cache.
        max_concurrent: Upper bound on in-flight estimates in ``predict_many``.
    """

    def __init__(
        self,
        estimator: OverlapEstimator | None,
        config: OverlapConfig,
        cache: OverlapCache | None = None,
        max_concurrent: int = 5,
    ) -> None:
        if not isinstance(estimator, FallbackOverlapEstimator):
            primary = None if isinstance(estimator, RuleBasedOverlapEstimator) else estimator
            estimator = FallbackOverlapEstimator(primary, RuleBasedOverlapEstimator(config))
        self.estimator = estimator
        self.config = config
        self.cache = cache
        self.max_concurrent = max_concurrent

    async def base_overlap(self, planned: Event, competing: Event) -> tuple[BaseOverlap, bool]:
        """Base estimate for the pair's categories and whether it came from the cache."""
        key = overlap_key(planned, competing)
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                return cached, True

        base = await self.estimator.estimate(planned, competing)
        # Rule-based results are cheap and would mask a recovered AI tier
        if self.cache is not None and base.method == "ai":
            await self.cache.put(key, base)
        return base, False

    async def predict(self, planned: Event, competing: Event) -> OverlapPrediction:
        """Predict the overlap of one competing event.

        Args:
            planned: The planned event on its candidate date.
            competing: A competing event.

        Returns:
            Adjusted ``OverlapPrediction`` with score in ``[0, max_score]``.
        """
        base, cached = await self.base_overlap(planned, competing)
        return apply_adjustments(base, planned, competing, self.config, cached=cached)

    async def predict_many(
        self,
        planned: Event,
        competitors: list[Event],
    ) -> list[OverlapPrediction]:
        """Predict overlap for many competitors with bounded concurrency.

        Returns:
            One prediction per competitor, aligned with ``competitors``.
        """
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def predict_one(competing: Event) -> OverlapPrediction:
            async with semaphore:
                return await self.predict(planned, competing)

        results = await asyncio.gather(
            *[predict_one(c) for c in competitors],
            return_exceptions=True,
        )

        predictions: list[OverlapPrediction] = []
        rule_based = self.estimator.fallback
        for competing, result in zip(competitors, results):
            if isinstance(result, Exception):
                logger.error(
                    "predict_one_exception",
                    planned=planned.id,
                    competing=competing.id,
                    source=competing.source,
                    error=str(result),
                )
                base = await rule_based.estimate(planned, competing)
                result = apply_adjustments(base, planned, competing, self.config)
            predictions.append(result)
        return predictions
