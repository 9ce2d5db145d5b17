"""Tests for VaultGuard risk metrics — health factor, composite score, levels."""

import math

import pytest

from reputation import ReputationScore
from risk_metrics import (
    RISK_LEVEL_ORDER,
    HistoryPoint,
    RiskLevel,
    RiskWeights,
    calculate_risk_metrics,
    health_factor,
    risk_level,
    risk_score,
    variance,
)
from vaults import CreditVault, TokenPosition


def _vault(collateral=20_000.0, debt=0.0, ltv=0.0, hf=float("inf"),
           max_ltv=70.0) -> CreditVault:
    return CreditVault(
        id="vault_test",
        collateral=TokenPosition(token="WETH", amount=10, value_usd=collateral),
        debt=TokenPosition(token="USDC", amount=debt, value_usd=debt),
        ltv=ltv,
        health_factor=hf,
        max_ltv=max_ltv,
    )


# ── Health Factor ─────────────────────────────────────────────────────


class TestHealthFactor:

    def test_no_debt_is_infinite(self):
        assert math.isinf(health_factor(_vault(debt=0), 70))

    def test_debt_at_ceiling_is_zero(self):
        assert health_factor(_vault(collateral=10_000, debt=7_000), 70) == 0

    def test_debt_above_ceiling_is_zero(self):
        assert health_factor(_vault(collateral=10_000, debt=9_500), 70) == 0

    def test_ratio_below_ceiling(self):
        assert health_factor(_vault(collateral=20_000, debt=5_000), 70) == 4.0

    def test_zero_collateral_with_debt_is_zero(self):
        assert health_factor(_vault(collateral=0, debt=100), 70) == 0


class TestVariance:

    def test_population_variance(self):
        assert variance([1, 2, 3, 4]) == pytest.approx(1.25)

    def test_short_series_is_zero(self):
        assert variance([]) == 0
        assert variance([42]) == 0


# ── Composite Score ───────────────────────────────────────────────────


class TestRiskScore:

    def test_healthy_vault_only_reputation_risk(self):
        # reputation risk 20 × 0.2
        assert risk_score(_vault(), ReputationScore(overall=80)) == 4

    def test_stressed_vault(self):
        v = _vault(collateral=20_000, debt=16_000, ltv=80, hf=0, max_ltv=70)
        # 100×0.4 + 100×0.3 + 60×0.2
        assert risk_score(v, ReputationScore(overall=40)) == 82

    def test_history_volatility_adds_risk(self):
        v = _vault(collateral=20_000, debt=16_000, ltv=80, hf=0, max_ltv=70)
        history = [HistoryPoint(1.0, 50, 2.0), HistoryPoint(2.0, 60, 1.8)]
        assert risk_score(v, ReputationScore(overall=40), history) == 92

    def test_history_accepts_dicts(self):
        v = _vault(ltv=10, hf=5)
        history = [{"timestamp": 1.0, "ltv": 10, "health_factor": 5},
                   {"timestamp": 2.0, "ltv": 10.5, "health_factor": 5}]
        assert 0 <= risk_score(v, ReputationScore(overall=90), history) <= 100

    def test_only_recent_window_counts(self):
        v = _vault(ltv=10, hf=5)
        old_swings = [HistoryPoint(float(i), 90 if i % 2 else 10, 1) for i in range(10)]
        flat = [HistoryPoint(100.0 + i, 10, 1) for i in range(30)]
        s = ReputationScore(overall=90)
        assert risk_score(v, s, old_swings + flat) == risk_score(v, s, flat)

    def test_zero_max_ltv_with_debt_is_full_ltv_risk(self):
        v = _vault(ltv=10, hf=5, max_ltv=0)
        # 100×0.4 + 0 + 0
        assert risk_score(v, ReputationScore(overall=100)) == 40

    def test_always_in_range(self):
        v = _vault(ltv=500, hf=-3, max_ltv=1)
        assert 0 <= risk_score(v, ReputationScore(overall=0)) <= 100

    def test_custom_weights(self):
        w = RiskWeights(ltv=0.0, health_factor=0.0, reputation=1.0, volatility=0.0)
        assert risk_score(_vault(), ReputationScore(overall=30), weights=w) == 70

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValueError):
            RiskWeights(ltv=0.5, health_factor=0.5, reputation=0.5, volatility=0.0)


# ── Risk Level ────────────────────────────────────────────────────────


class TestRiskLevel:

    def test_low(self):
        assert risk_level(50, 2.0, 10) == RiskLevel.LOW

    def test_medium_on_health_factor(self):
        assert risk_level(50, 1.4, 10) == RiskLevel.MEDIUM

    def test_high_on_ltv(self):
        assert risk_level(86, 2.0, 10) == RiskLevel.HIGH

    def test_critical_triggers(self):
        assert risk_level(95, 2.0, 10) == RiskLevel.CRITICAL
        assert risk_level(10, 1.0, 10) == RiskLevel.CRITICAL
        assert risk_level(10, 2.0, 80) == RiskLevel.CRITICAL

    def test_infinite_health_factor_is_safe(self):
        assert risk_level(0, float("inf"), 0) == RiskLevel.LOW

    @pytest.mark.parametrize("hf,score", [(2.0, 10), (1.3, 45), (float("inf"), 0)])
    def test_monotonic_in_ltv(self, hf, score):
        ranks = [RISK_LEVEL_ORDER[risk_level(ltv, hf, score)] for ltv in range(0, 101)]
        assert ranks == sorted(ranks)


# ── Full Metrics ──────────────────────────────────────────────────────


class TestCalculateRiskMetrics:

    def test_critical_vault_has_all_warnings(self):
        v = _vault(collateral=20_000, debt=16_000, ltv=80, hf=0, max_ltv=70)
        m = calculate_risk_metrics(v, ReputationScore(overall=40), now=500.0)
        assert m.risk_level == RiskLevel.CRITICAL
        assert m.timestamp == 500.0
        assert "Vault at risk of liquidation" in m.warnings
        assert "Credibility score is low" in m.warnings
        assert "Enable liquidation protection immediately" in m.recommendations
        assert len(m.recommendations) == 5

    def test_healthy_vault_is_quiet(self):
        m = calculate_risk_metrics(_vault(ltv=10, hf=5), ReputationScore(overall=90))
        assert m.risk_level == RiskLevel.LOW
        assert m.warnings == []
        assert m.recommendations == []

    def test_history_carried_as_pairs(self):
        history = [{"timestamp": 1.0, "ltv": 10, "health_factor": 5.0}]
        m = calculate_risk_metrics(_vault(ltv=10, hf=5), ReputationScore(overall=90), history)
        assert m.ltv_history == [(1.0, 10)]
        assert m.health_factor_history == [(1.0, 5.0)]

    def test_to_dict(self):
        d = calculate_risk_metrics(_vault(), ReputationScore(overall=90), now=1.0).to_dict()
        assert d["vault_id"] == "vault_test"
        assert d["risk_level"] == RiskLevel.LOW
