"""Audience overlap prediction between a planned event and its competitors."""

from event_conflict.overlap.adjustment import apply_adjustments, significance_boost, temporal_boost
from event_conflict.overlap.cache import COMMON_PAIRS, OverlapCache
from event_conflict.overlap.estimators import (
    AIOverlapEstimator,
    FallbackOverlapEstimator,
    OverlapEstimator,
    RuleBasedOverlapEstimator,
)
from event_conflict.overlap.prediction import (
    BaseOverlap,
    OverlapFactors,
    OverlapPrediction,
    overlap_key,
)
from event_conflict.overlap.predictor import AudienceOverlapPredictor

__all__ = [
    "AIOverlapEstimator",
    "AudienceOverlapPredictor",
    "BaseOverlap",
    "COMMON_PAIRS",
    "FallbackOverlapEstimator",
    "OverlapCache",
    "OverlapEstimator",
    "OverlapFactors",
    "OverlapPrediction",
    "RuleBasedOverlapEstimator",
    "apply_adjustments",
    "overlap_key",
    "significance_boost",
    "temporal_boost",
]
