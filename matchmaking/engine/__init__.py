"""Match scoring, top-N search and batch computation."""

from .scoring import (
    ScoringConfig,
    ScoreBreakdown,
    ScoreAggregator,
    applicable_weights,
    normalize_score,
    compute_confidence,
)
from .pairs import PairGenerator
from .match_engine import EngineConfig, MatchEngine, create_engine_from_config, MATCHES_COLLECTION

__all__ = [
    "ScoringConfig",
    "ScoreBreakdown",
    "ScoreAggregator",
    "applicable_weights",
    "normalize_score",
    "compute_confidence",
    "PairGenerator",
    "EngineConfig",
    "MatchEngine",
    "create_engine_from_config",
    "MATCHES_COLLECTION",
]
