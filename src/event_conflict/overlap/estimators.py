"""Base audience overlap estimators.

``AIOverlapEstimator`` asks the classification model; ``RuleBasedOverlapEstimator``
is a deterministic category/subcategory table.  ``FallbackOverlapEstimator``
picks the first available one and drops to the table on any failure, so an
estimate is always produced.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog
from pydantic import ValidationError

from event_conflict.ai.client import Classifier
from event_conflict.ai.prompt import SYSTEM_PROMPT, format_overlap_request
from event_conflict.ai.schemas import OverlapClassification
from event_conflict.engine.config import AIConfig, OverlapConfig
from event_conflict.errors import OverlapEstimationError
from event_conflict.events import Event
from event_conflict.overlap.prediction import BaseOverlap, OverlapFactors

logger = structlog.get_logger()


class OverlapEstimator(Protocol):
    method: str

    @property
    def available(self) -> bool: ...

    async def estimate(self, planned: Event, competing: Event) -> BaseOverlap: ...


class AIOverlapEstimator:
    """Base overlap from the classification model.

    Raises ``OverlapEstimationError`` on timeout, transport failure or a
    response that does not validate against ``OverlapClassification``.
    """

    method = "ai"

    def __init__(
        self,
        classifier: Classifier | None,
        ai_config: AIConfig,
        overlap_config: OverlapConfig,
    ) -> None:
        self._classifier = classifier
        self._ai_config = ai_config
        self._config = overlap_config

    @property
    def available(self) -> bool:
        return self._classifier is not None and self._ai_config.enabled

    async def estimate(self, planned: Event, competing: Event) -> BaseOverlap:
        if self._classifier is None:
            raise OverlapEstimationError("no classifier configured")

        prompt = format_overlap_request(planned, competing)
        try:
            raw = await asyncio.wait_for(
                self._classifier.classify(
                    prompt,
                    system_instruction=SYSTEM_PROMPT,
                    response_schema=OverlapClassification,
                ),
                timeout=self._ai_config.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise OverlapEstimationError(
                f"classification timed out after {self._ai_config.timeout_seconds}s"
            ) from e
        except Exception as e:
            raise OverlapEstimationError(f"classification failed: {e}") from e

        try:
            parsed = OverlapClassification.model_validate(raw)
        except ValidationError as e:
            raise OverlapEstimationError(f"malformed classification: {e}") from e

        factors = OverlapFactors.from_scores(
            parsed.factors.demographic_similarity,
            parsed.factors.interest_alignment,
            parsed.factors.behavior_patterns,
            parsed.factors.historical_preference,
            self._config.factor_weights,
        )
        return BaseOverlap(
            score=min(self._config.max_score, parsed.overlap_score),
            confidence=parsed.confidence,
            factors=factors,
            reasoning=tuple(parsed.reasoning[:self._config.max_reasons]),
            method=self.method,
        )


class RuleBasedOverlapEstimator:
    """Deterministic overlap from category/subcategory relationships.

    Levels, strongest first: same subcategory, related subcategories,
    same category, related categories (high, then medium), unrelated.
    """

    method = "rule-based"

    def __init__(self, overlap_config: OverlapConfig) -> None:
        self._config = overlap_config
        rules = overlap_config.rules
        self._related_subcategories = {
            frozenset((a.lower(), b.lower())) for a, b in rules.related_subcategories
        }

    @property
    def available(self) -> bool:
        return True

    def relation(self, planned: Event, competing: Event) -> str:
        """Name of the strongest relationship between the two events."""
        rules = self._config.rules
        cat_a, cat_b = planned.category, competing.category
        sub_a = (planned.subcategory or "").lower()
        sub_b = (competing.subcategory or "").lower()

        if cat_a == cat_b:
            if sub_a and sub_a == sub_b:
                return "same_subcategory"
            if sub_a and sub_b and frozenset((sub_a, sub_b)) in self._related_subcategories:
                return "related_subcategory"
            return "same_category"
        if sub_a and sub_b and frozenset((sub_a, sub_b)) in self._related_subcategories:
            return "related_subcategory"
        if cat_b in rules.category_relations_high.get(cat_a, []) or cat_a in (
            rules.category_relations_high.get(cat_b, [])
        ):
            return "related_category_high"
        if cat_b in rules.category_relations_medium.get(cat_a, []) or cat_a in (
            rules.category_relations_medium.get(cat_b, [])
        ):
            return "related_category_medium"
        return "unrelated"

    def base_score(self, planned: Event, competing: Event) -> float:
        return getattr(self._config.rules, self.relation(planned, competing))

    async def estimate(self, planned: Event, competing: Event) -> BaseOverlap:
        relation = self.relation(planned, competing)
        score = min(self._config.max_score, getattr(self._config.rules, relation))
        confidence = 0.5
        if planned.subcategory:
            confidence += 0.1
        if competing.subcategory:
            confidence += 0.1

        return BaseOverlap(
            score=score,
            confidence=round(confidence, 2),
            factors=OverlapFactors.derived(score, self._config.factor_weights),
            reasoning=_rule_reasons(relation, planned, competing),
            method=self.method,
        )


def _label(event: Event) -> str:
    if event.subcategory:
        return f"{event.category} / {event.subcategory}"
    return event.category


def _rule_reasons(relation: str, planned: Event, competing: Event) -> tuple[str, ...]:
    a, b = _label(planned), _label(competing)
    if relation == "same_subcategory":
        return (
            f"Both events target the same {a} audience.",
            "Attendees of one are very likely to consider the other.",
        )
    if relation == "related_subcategory":
        return (
            f"{a} and {b} attract closely related interest groups.",
            "A substantial share of attendees follow both topics.",
        )
    if relation == "same_category":
        return (
            f"Both events belong to {planned.category} but cover different topics.",
            "Only part of the audience is interested in both.",
        )
    if relation.startswith("related_category"):
        return (
            f"{planned.category} and {competing.category} audiences partly overlap.",
            "Some attendees split their time between both kinds of events.",
        )
    return (
        f"{a} and {b} draw largely different audiences.",
        "Little audience competition is expected.",
    )


class FallbackOverlapEstimator:
    """Try ``primary`` when available, otherwise (or on failure) use ``fallback``."""

    def __init__(
        self,
        primary: OverlapEstimator | None,
        fallback: RuleBasedOverlapEstimator,
    ) -> None:
        self.primary = primary
        self.fallback = fallback

    @property
    def method(self) -> str:
        if self.primary is not None and self.primary.available:
            return self.primary.method
        return self.fallback.method

    @property
    def available(self) -> bool:
        return True

    async def estimate(self, planned: Event, competing: Event) -> BaseOverlap:
        if self.primary is not None and self.primary.available:
            try:
                return await self.primary.estimate(planned, competing)
            except Exception as e:
                logger.warning(
                    "overlap_estimate_fallback",
                    planned=planned.id,
                    competing=competing.id,
                    estimator=self.primary.method,
                    error=str(e),
                )
        return await self.fallback.estimate(planned, competing)
