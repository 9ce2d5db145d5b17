"""Tests for VaultGuard reputation scoring — clamping, weights, confidence."""

import math

import pytest

from reputation import (
    SCORING_WEIGHTS,
    ReputationScore,
    clamp_score,
    compute_confidence,
    compute_score,
    round_half_up,
    validate_weights,
)


class TestClampScore:
    """Every score input lands in [0, 100]."""

    @pytest.mark.parametrize("raw", [-1e9, -1, 0, 42.5, 100, 101, 1e9,
                                     float("inf"), float("-inf")])
    def test_always_in_range(self, raw):
        assert 0 <= clamp_score(raw) <= 100

    def test_nan_is_zero(self):
        assert clamp_score(float("nan")) == 0

    def test_non_numeric_is_zero(self):
        assert clamp_score("lots") == 0
        assert clamp_score(None) == 0

    def test_passthrough(self):
        assert clamp_score(63.2) == 63.2


class TestRoundHalfUp:

    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4

    def test_digits(self):
        assert round_half_up(1.234, 2) == pytest.approx(1.23)


class TestWeights:

    def test_defaults_sum_to_one(self):
        assert sum(SCORING_WEIGHTS.values()) == pytest.approx(1.0)

    def test_bad_sum_rejected(self):
        with pytest.raises(ValueError, match="sum to 1.0"):
            validate_weights({"provenance": 0.5, "performance": 0.5,
                              "perception": 0.5, "verification": 0.0})

    def test_missing_key_rejected(self):
        with pytest.raises(ValueError, match="missing"):
            validate_weights({"provenance": 1.0})

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            validate_weights({"provenance": 1.2, "performance": -0.2,
                              "perception": 0.0, "verification": 0.0})


class TestComputeScore:
    """Weighted overall score (35/30/20/15)."""

    def test_weighted_overall(self):
        s = compute_score(80, 70, 60, 50, now=1000.0)
        # 28 + 21 + 12 + 7.5 = 68.5 → 69
        assert s.overall == 69
        assert s.last_updated == 1000.0

    def test_all_max_is_100(self):
        assert compute_score(100, 100, 100, 100).overall == 100

    def test_out_of_range_inputs_clamped_independently(self):
        s = compute_score(500, -20, float("nan"), 100)
        assert s.provenance == 100
        assert s.performance == 0
        assert s.perception == 0
        assert s.overall == 50

    def test_custom_weights(self):
        w = {"provenance": 1.0, "performance": 0.0,
             "perception": 0.0, "verification": 0.0}
        assert compute_score(40, 90, 90, 90, weights=w).overall == 40

    def test_invalid_custom_weights_rejected(self):
        with pytest.raises(ValueError):
            compute_score(50, 50, 50, weights={"provenance": 2.0})

    def test_monotonic_in_each_input(self):
        low = compute_score(50, 50, 50, 50)
        high = compute_score(60, 50, 50, 50)
        assert high.overall >= low.overall


class TestConfidence:

    def test_in_range(self):
        for args in [(0, 0, 0, 0), (100, 100, 100, 100), (10, 90, 50, 0)]:
            c = compute_confidence(*args)
            assert 0 <= c <= 100

    def test_all_zero_inputs(self):
        # Only input validity contributes: 20 × 0.4 of a possible 30
        assert compute_confidence(0, 0, 0, 0) == 27

    def test_uniform_full_inputs_are_fully_confident(self):
        assert compute_confidence(100, 100, 100, 100) == 100

    def test_disagreeing_inputs_lower_confidence(self):
        assert compute_confidence(90, 10, 50, 50) < compute_confidence(50, 50, 50, 50)


class TestReputationScore:

    def test_post_init_clamps(self):
        s = ReputationScore(overall=150, provenance=-5, confidence=float("nan"))
        assert s.overall == 100
        assert s.provenance == 0
        assert s.confidence == 0

    def test_to_dict(self):
        d = ReputationScore(overall=75).to_dict()
        assert d["overall"] == 75
        assert not math.isnan(d["verification"])
