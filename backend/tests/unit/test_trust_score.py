"""
Tests for the trust score engine.
"""

from datetime import datetime, timezone

import pytest

from verifyshot.schemas.analysis import BiasSignals
from verifyshot.scoring.trust_score import (
    LABEL_LIKELY_TRUE,
    LABEL_MISLEADING,
    LABEL_MIXED,
    WEIGHTS_WITH_SOURCES,
    WEIGHTS_WITHOUT_SOURCES,
    bias_penalty,
    calculate_trust_score,
    effective_consensus,
    recency_bucket,
    recency_score,
    round_half_up,
    trust_label,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestCalculateTrustScore:
    """Test the weighted trust score."""

    def test_no_sources_uses_defaults_and_model_heavy_weights(self) -> None:
        """0.20*0.3 + 0.50*0.9 + 0.05*0 + 0.05*0.3 = 0.525, rounded half up."""
        assert calculate_trust_score([], 0.9, 0.0) == 53

    def test_no_sources_all_zero_inputs(self) -> None:
        """Only the neutral defaults contribute: 0.20*0.3 + 0.05*0.3 = 0.075."""
        assert calculate_trust_score([], 0.0, 0.0) == 8

    def test_end_to_end_misleading_example_is_not_inverted(self, make_source) -> None:
        """Confident agreement on "misleading" still produces a mid-range score."""
        sources = [
            make_source("reuters.com", 0.95, date="2026-10-19"),
            make_source("cdc.gov", 0.92, date="2026-10-19"),
            make_source("nytimes.com", 0.88, date="2026-10-19"),
            make_source("a.example.com", 0.3, date="2026-10-19"),
            make_source("b.example.com", 0.3, date="2026-10-19"),
        ]
        avg_confidence = (0.95 + 0.92 + 0.90) / 3

        score = calculate_trust_score(sources, avg_confidence, 0.15, 1.0, now=NOW)

        assert score == 73
        assert trust_label(score) == LABEL_MIXED

    def test_agreement_boosts_score(self, sample_sources) -> None:
        """Test that model agreement raises the score."""
        low = calculate_trust_score(sample_sources, 0.8, 0.0, model_agreement=1 / 3, now=NOW)
        high = calculate_trust_score(sample_sources, 0.8, 0.0, model_agreement=1.0, now=NOW)
        assert high > low

    def test_bias_penalty_lowers_score(self, sample_sources) -> None:
        """Test that bias lowers the score."""
        clean = calculate_trust_score(sample_sources, 0.8, 0.0, now=NOW)
        biased = calculate_trust_score(sample_sources, 0.8, 1.0, now=NOW)
        assert clean - biased == 5

    def test_score_is_bounded_integer(self, make_source) -> None:
        """Every combination of extreme inputs stays within [0, 100]."""
        source_sets = [
            [],
            [make_source("reuters.com", 1.0, date="2026-10-19")] * 4,
            [make_source("x.example.com", 0.0, date="1990-01-01")] * 4,
        ]
        for sources in source_sets:
            for consensus in (0.0, 0.5, 1.0):
                for penalty in (0.0, 0.5, 1.0):
                    for agreement in (0.0, 0.5, 1.0):
                        score = calculate_trust_score(sources, consensus, penalty, agreement, now=NOW)
                        assert isinstance(score, int)
                        assert 0 <= score <= 100

    def test_maximum_inputs_reach_ninety_five(self, make_source) -> None:
        """Test the score for maximal inputs."""
        sources = [make_source("reuters.com", 1.0, date="2026-10-19")] * 3
        assert calculate_trust_score(sources, 1.0, 0.0, 1.0, now=NOW) == 95

    def test_weight_sets_are_named_constants(self) -> None:
        """Test the weight sets."""
        assert WEIGHTS_WITH_SOURCES.source_quality == 0.45
        assert WEIGHTS_WITH_SOURCES.model_consensus == 0.30
        assert WEIGHTS_WITHOUT_SOURCES.source_quality == 0.20
        assert WEIGHTS_WITHOUT_SOURCES.model_consensus == 0.50


class TestComponents:
    """Test the individual score components."""

    @pytest.mark.parametrize("published,expected", [
        ("2026-10-18", 1.0),
        ("2026-10-01", 0.9),
        ("2026-03-01", 0.7),
        ("2024-01-01", 0.4),
        ("not a date", 0.4),
        ("2026-10-25", 1.0),
    ])
    def test_recency_buckets(self, published: str, expected: float) -> None:
        """Test recency buckets by source age."""
        assert recency_bucket(published, NOW) == expected

    def test_recency_of_no_sources_is_zero(self) -> None:
        """Test recency with no sources."""
        assert recency_score([], NOW) == 0.0

    def test_recency_is_mean_of_buckets(self, make_source) -> None:
        """Test recency averaging."""
        sources = [make_source(date="2026-10-18"), make_source(date="2024-01-01")]
        assert recency_score(sources, NOW) == pytest.approx(0.7)

    def test_effective_consensus_blend(self) -> None:
        """Test the confidence and agreement blend."""
        assert effective_consensus(0.8, 1.0) == pytest.approx(0.8)
        assert effective_consensus(0.8, 0.0) == pytest.approx(0.56)
        assert effective_consensus(0.0, 1.0) == 0.0

    def test_bias_penalty(self) -> None:
        """Test the bias penalty."""
        signals = BiasSignals(
            political_bias=-0.4,
            sensationalism=0.6,
            overall_bias="slight_left",
            explanation="test",
        )
        assert bias_penalty(signals) == pytest.approx(0.5)

    @pytest.mark.parametrize("score,label", [
        (100, LABEL_LIKELY_TRUE),
        (75, LABEL_LIKELY_TRUE),
        (74, LABEL_MIXED),
        (40, LABEL_MIXED),
        (39, LABEL_MISLEADING),
        (0, LABEL_MISLEADING),
    ])
    def test_trust_label_thresholds(self, score: int, label: str) -> None:
        """Test trust label thresholds."""
        assert trust_label(score) == label

    def test_round_half_up(self) -> None:
        """Test half-up rounding."""
        assert round_half_up(52.5) == 53
        assert round_half_up(52.4999) == 52
        assert round_half_up(100 * 0.525) == 53
