"""
Weighted aggregation of signals into an explainable score.

Score Formula:
    raw = sum(w_k * m_k) over signals k with a metric and w_k != 0
    z = (raw - 0.5 * sum(w)) / sqrt(sum(w^2) / 12)

The z transform treats each metric as uniform on [0, 1] in the absence of
information, so z measures how far the pair is above an uninformed one.
z is mapped to [0, 1] by the profile's normalization:
- zexp: logistic 1 / (1 + exp(-z / T))
- zscore: standard normal CDF
- minmax: (raw - sum(negative w)) / (sum(positive w) - sum(negative w))

Confidence:
    confidence = completeness * (1 - c + c * consistency)

where completeness is the share of weighted profile signals that were
available and consistency is 1 - 2 * (weighted std of the metric values).
"""

import logging
import math
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List, Tuple

import numpy as np
from scipy.special import expit
from scipy.stats import norm

from ..exceptions import ValidationError
from ..schema import Contribution
from ..signals import ADJUSTMENT_FIELDS, get_display_name
from ..weights import NormalizeConfig, WeightProfile, KNOWN_SIGNALS

logger = logging.getLogger(__name__)


@dataclass
class ScoringConfig:
    """
    Configuration for score aggregation.

    Attributes:
        consistency_weight: Share c of confidence driven by consistency
        availability_influence: Maximum score reduction for zero schedule overlap
    """
    consistency_weight: float = 0.5
    availability_influence: float = 0.25

    def validate(self) -> None:
        """Validate configuration values."""
        if not 0 <= self.consistency_weight <= 1:
            raise ValidationError(f"consistency_weight must be in [0, 1], got {self.consistency_weight}")
        if not 0 <= self.availability_influence <= 1:
            raise ValidationError(
                f"availability_influence must be in [0, 1], got {self.availability_influence}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScoreBreakdown:
    """Result of aggregating one pair's metrics under one profile."""
    score: float
    raw_score: float
    contributions: List[Contribution]
    confidence: float
    adjustments: Dict[str, float] = field(default_factory=dict)


def applicable_weights(metrics: Dict[str, float], weights: Dict[str, float]) -> List[Tuple[str, float, float]]:
    """
    Signals that take part in the weighted sum.

    Returns:
        Sorted list of (key, metric value, weight) for signals with a metric
        and a nonzero weight; adjustment fields never take part
    """
    return [
        (key, float(metrics[key]), float(weight))
        for key, weight in sorted(weights.items())
        if weight != 0 and key in metrics and key not in ADJUSTMENT_FIELDS
    ]


def normalize_score(raw: float, weights: List[float], config: NormalizeConfig) -> float:
    """
    Map a weighted sum to [0, 1].

    Args:
        raw: Weighted sum of metrics
        weights: Weights of the applicable signals
        config: NormalizeConfig of the profile

    Returns:
        Normalized score; 0 when no weight applies
    """
    w = np.asarray(weights, dtype=float)
    sum_sq = float(np.sum(w ** 2))
    if sum_sq == 0:
        return 0.0

    if config.method == "minmax":
        lower = float(np.sum(w[w < 0]))
        upper = float(np.sum(w[w > 0]))
        score = (raw - lower) / (upper - lower)
    else:
        z = (raw - 0.5 * float(np.sum(w))) / math.sqrt(sum_sq / 12.0)
        if config.method == "zscore":
            score = float(norm.cdf(z))
        elif config.method == "zexp":
            score = float(expit(z / config.temperature))
        else:
            raise ValidationError(f"Unknown normalize method: {config.method}")

    return float(np.clip(score, 0.0, 1.0))


def compute_confidence(
    metrics: Dict[str, float],
    weights: Dict[str, float],
    consistency_weight: float = 0.5
) -> float:
    """
    Confidence in a score from input completeness and agreement.

    Confidence is the product of completeness (share of weighted signals
    present) and a blend with consistency (agreement of the present values).
    It is monotone in each term with the other held fixed, not in the number
    of present signals: a new value that disagrees with the rest raises
    completeness but can lower consistency by more.

    Args:
        metrics: Metric map of the pair
        weights: Profile weights
        consistency_weight: Share of confidence driven by consistency

    Returns:
        Confidence in [0, 1]; 0 when no weighted signal is available
    """
    expected = [k for k, w in weights.items() if w != 0 and k in KNOWN_SIGNALS]
    applicable = applicable_weights(metrics, weights)
    if not expected or not applicable:
        return 0.0

    completeness = sum(1 for k in expected if k in metrics) / len(expected)

    values = np.array([v for _, v, _ in applicable])
    abs_weights = np.array([abs(w) for _, _, w in applicable])
    mean = np.average(values, weights=abs_weights)
    std = math.sqrt(np.average((values - mean) ** 2, weights=abs_weights))
    consistency = float(np.clip(1.0 - 2.0 * std, 0.0, 1.0))

    return float(np.clip(completeness * (1 - consistency_weight + consistency_weight * consistency), 0.0, 1.0))


class ScoreAggregator:
    """
    Aggregator turning a metric map into a score, contribution trail and
    confidence for one weight profile.

    Attributes:
        config: ScoringConfig
    """

    def __init__(self, config: ScoringConfig):
        self.config = config
        self.config.validate()

    def aggregate(self, metrics: Dict[str, float], profile: WeightProfile) -> ScoreBreakdown:
        """
        Score a metric map.

        Args:
            metrics: Signal name -> value (may include adjustment fields)
            profile: WeightProfile to apply

        Returns:
            ScoreBreakdown
        """
        applicable = applicable_weights(metrics, profile.weights)
        raw = float(sum(value * weight for _, value, weight in applicable))
        score = normalize_score(raw, [w for _, _, w in applicable], profile.normalize)

        contributions = sorted(
            (
                Contribution(
                    key=key,
                    value=value,
                    weight=weight,
                    contribution=value * weight,
                    display_name=get_display_name(key),
                )
                for key, value, weight in applicable
            ),
            key=lambda c: (-c.contribution, c.key)
        )

        score, adjustments = self.apply_adjustments(score, metrics)
        confidence = compute_confidence(metrics, profile.weights, self.config.consistency_weight)

        return ScoreBreakdown(
            score=score,
            raw_score=raw,
            contributions=contributions,
            confidence=confidence,
            adjustments=adjustments,
        )

    def apply_adjustments(self, score: float, metrics: Dict[str, float]) -> Tuple[float, Dict[str, float]]:
        """
        Apply attendee schedule overlap and badge-scan boost.

        score *= 1 - influence * (1 - availability_overlap), then + scan_boost

        Returns:
            Tuple of (adjusted score clipped to [0, 1], applied adjustments)
        """
        adjustments = {}
        if "availability_overlap" in metrics:
            factor = 1.0 - self.config.availability_influence * (1.0 - metrics["availability_overlap"])
            score *= factor
            adjustments["availability_factor"] = factor
        if "scan_boost" in metrics:
            score += metrics["scan_boost"]
            adjustments["scan_boost"] = metrics["scan_boost"]
        return float(np.clip(score, 0.0, 1.0)), adjustments
