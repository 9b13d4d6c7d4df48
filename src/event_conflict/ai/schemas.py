"""Pydantic schemas for the audience overlap classification call."""
from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class OverlapFactorScores(BaseModel):
    demographic_similarity: float = Field(ge=0.0, le=1.0)
    interest_alignment: float = Field(ge=0.0, le=1.0)
    behavior_patterns: float = Field(ge=0.0, le=1.0)
    historical_preference: float = Field(ge=0.0, le=1.0)


class OverlapClassification(BaseModel):
    """Structured response of the overlap classification call.

    Used both as ``response_schema`` for the Gemini request and as the
    validation step for whatever JSON comes back; anything that fails
    validation sends the caller to the rule-based fallback.
    """

    target_audience_a: str = Field(
        default="",
        description="Implied target audience, topics and motivation of event A.",
    )
    target_audience_b: str = Field(
        default="",
        description="Implied target audience, topics and motivation of event B.",
    )
    overlap_score: float = Field(
        description="Fraction of attendees the two events would share, 0.0 to 0.95.",
        ge=0.0,
        le=1.0,
    )
    confidence: float = Field(
        description="Confidence in the estimate, from 0.0 to 1.0.",
        ge=0.0,
        le=1.0,
    )
    factors: OverlapFactorScores
    reasoning: list[str] = Field(
        description="Exactly three short reasons for the estimate.",
        min_length=1,
    )

    @field_validator("reasoning")
    @classmethod
    def strip_empty_reasons(cls, v: list[str]) -> list[str]:
        reasons = [r.strip() for r in v if r and r.strip()]
        if not reasons:
            raise ValueError("reasoning must contain at least one non-empty reason")
        return reasons
