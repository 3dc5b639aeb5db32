"""Tests for score aggregation and normalization."""

import pytest

from matchmaking.engine import (
    ScoreAggregator,
    ScoringConfig,
    applicable_weights,
    compute_confidence,
    normalize_score,
)
from matchmaking.exceptions import ValidationError
from matchmaking.weights import NormalizeConfig, WeightProfile


def make_profile(weights, method="zexp"):
    return WeightProfile(id="p", name="Test", weights=weights, normalize=NormalizeConfig(method=method))


class TestNormalization:
    """Test mapping of the weighted sum to [0, 1]."""

    def test_no_weights_scores_zero(self):
        assert normalize_score(0.0, [], NormalizeConfig()) == 0.0

    @pytest.mark.parametrize("method", ["zexp", "zscore"])
    def test_uninformed_pair_scores_half(self, method):
        """A raw score at half the weight sum maps to 0.5."""
        assert normalize_score(1.5, [1.0, 2.0], NormalizeConfig(method=method)) == pytest.approx(0.5)

    def test_minmax_with_negative_weight(self):
        """Bounds come from the negative and positive weight sums."""
        config = NormalizeConfig(method="minmax")
        assert normalize_score(-1.0, [2.0, -1.0], config) == pytest.approx(0.0)
        assert normalize_score(2.0, [2.0, -1.0], config) == pytest.approx(1.0)
        assert normalize_score(0.5, [2.0, -1.0], config) == pytest.approx(0.5)

    def test_higher_raw_scores_higher(self):
        config = NormalizeConfig()
        low = normalize_score(0.2, [1.0], config)
        high = normalize_score(0.9, [1.0], config)
        assert 0.0 <= low < high <= 1.0

    def test_temperature_flattens(self):
        sharp = normalize_score(0.9, [1.0], NormalizeConfig(temperature=0.5))
        flat = normalize_score(0.9, [1.0], NormalizeConfig(temperature=4.0))
        assert sharp > flat > 0.5


class TestAggregation:
    """Test contributions, confidence and adjustments."""

    def test_applicable_weights_skip_missing_and_zero(self):
        metrics = {"bipartite": 0.8, "tags_jaccard": 0.4, "scan_boost": 0.1}
        weights = {"bipartite": 2.0, "tags_jaccard": 0.0, "text_cosine": 1.0, "scan_boost": 5.0}
        assert applicable_weights(metrics, weights) == [("bipartite", 0.8, 2.0)]

    def test_contributions_ranked_by_impact(self):
        aggregator = ScoreAggregator(ScoringConfig())
        metrics = {"bipartite": 0.5, "tags_jaccard": 1.0, "markets_jaccard": 0.2}
        profile = make_profile({"bipartite": 3.0, "tags_jaccard": 1.0, "markets_jaccard": -1.0})
        breakdown = aggregator.aggregate(metrics, profile)

        assert [c.key for c in breakdown.contributions] == ["bipartite", "tags_jaccard", "markets_jaccard"]
        assert breakdown.raw_score == pytest.approx(1.5 + 1.0 - 0.2)
        assert breakdown.contributions[0].display_name == "Capability-Need Fit"

    def test_confidence_zero_without_signals(self):
        assert compute_confidence({}, {"bipartite": 1.0}) == 0.0

    def test_confidence_tracks_completeness(self):
        weights = {"bipartite": 1.0, "tags_jaccard": 1.0}
        full = compute_confidence({"bipartite": 0.6, "tags_jaccard": 0.6}, weights)
        half = compute_confidence({"bipartite": 0.6}, weights)
        assert full == pytest.approx(1.0)
        assert half == pytest.approx(0.5)

    def test_confidence_drops_with_disagreement(self):
        weights = {"bipartite": 1.0, "tags_jaccard": 1.0}
        agreeing = compute_confidence({"bipartite": 0.5, "tags_jaccard": 0.5}, weights)
        disagreeing = compute_confidence({"bipartite": 0.0, "tags_jaccard": 1.0}, weights)
        assert disagreeing == pytest.approx(0.5)
        assert disagreeing < agreeing

    def test_confidence_per_term_monotonicity(self):
        """A present but discordant signal can cost more consistency than it adds completeness."""
        weights = {"bipartite": 1.0, "tags_jaccard": 1.0, "platform_overlap": 1.0}
        partial = compute_confidence({"bipartite": 1.0, "tags_jaccard": 1.0}, weights)
        concordant = compute_confidence(
            {"bipartite": 1.0, "tags_jaccard": 1.0, "platform_overlap": 1.0}, weights
        )
        discordant = compute_confidence(
            {"bipartite": 1.0, "tags_jaccard": 1.0, "platform_overlap": 0.0}, weights
        )
        assert partial == pytest.approx(2 / 3)
        assert concordant == pytest.approx(1.0)
        assert discordant == pytest.approx(0.529, abs=1e-3)
        assert discordant < partial < concordant

    def test_adjustments(self):
        aggregator = ScoreAggregator(ScoringConfig(availability_influence=0.25))
        score, adjustments = aggregator.apply_adjustments(0.8, {"availability_overlap": 0.0, "scan_boost": 0.1})
        assert adjustments["availability_factor"] == pytest.approx(0.75)
        assert score == pytest.approx(0.8 * 0.75 + 0.1)

    def test_adjusted_score_is_clipped(self):
        aggregator = ScoreAggregator(ScoringConfig())
        score, _ = aggregator.apply_adjustments(0.95, {"scan_boost": 0.2})
        assert score == 1.0

    def test_invalid_config(self):
        with pytest.raises(ValidationError):
            ScoreAggregator(ScoringConfig(consistency_weight=1.5))
