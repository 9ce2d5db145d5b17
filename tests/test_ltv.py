"""Tests for VaultGuard LTV calculator — static sizing, dynamic chain adjustment."""

import pytest

from chains import ChainConfig, get_chain_config
from credit_tiers import CredibilityTier
from ltv import (
    LTV_CEILING,
    LTV_FLOOR,
    MarketCondition,
    apply_market_condition,
    clamp_ltv,
    collateral_bonus,
    dynamic_max_ltv,
    static_max_ltv,
)
from reputation import ReputationScore


def _score(overall=75.0, verification=0.0, performance=0.0) -> ReputationScore:
    return ReputationScore(overall=overall, verification=verification,
                           performance=performance)


ETH = get_chain_config(1)


# ── Helpers ───────────────────────────────────────────────────────────


class TestClampAndBonuses:

    def test_clamp_band(self):
        assert clamp_ltv(5) == LTV_FLOOR
        assert clamp_ltv(99) == LTV_CEILING
        assert clamp_ltv(50) == 50
        assert clamp_ltv(float("nan")) == LTV_FLOOR

    def test_collateral_steps(self):
        assert collateral_bonus(0) == 0
        assert collateral_bonus(100_000) == 0
        assert collateral_bonus(100_001) == 1
        assert collateral_bonus(500_001) == 2
        assert collateral_bonus(1_000_000) == 2
        assert collateral_bonus(1_000_001) == 3

    def test_collateral_bonus_non_decreasing(self):
        values = [0, 50_000, 100_001, 250_000, 500_001, 750_000, 1_000_001, 5e6]
        bonuses = [collateral_bonus(v) for v in values]
        assert bonuses == sorted(bonuses)

    def test_negative_collateral_has_no_bonus(self):
        assert collateral_bonus(-5e6) == 0


class TestMarketCondition:

    def test_regimes(self):
        assert apply_market_condition(60, MarketCondition.NORMAL) == 60
        assert apply_market_condition(60, "bull") == 62
        assert apply_market_condition(60, "bear") == 57
        assert apply_market_condition(60, "volatile") == 58

    def test_bull_capped(self):
        assert apply_market_condition(84, "bull") == LTV_CEILING

    def test_volatile_floor_is_25(self):
        assert apply_market_condition(26, "volatile") == 25

    def test_unknown_regime_rejected(self):
        with pytest.raises(ValueError, match="Unknown market condition"):
            apply_market_condition(60, "sideways")


# ── Static Sizing ─────────────────────────────────────────────────────


class TestStaticMaxLtv:

    def test_gold_with_score_bonus(self):
        # 60 base + floor(75/20)=3
        assert static_max_ltv(_score(75)) == 63

    def test_all_bonuses(self):
        s = _score(overall=100, verification=100, performance=100)
        # Diamond 80 + 5 + 3 + 2 + 3 → clamped to 85
        assert static_max_ltv(s, collateral_value_usd=2_000_000) == LTV_CEILING

    def test_explicit_tier_overrides_score(self):
        assert static_max_ltv(_score(75), tier=CredibilityTier.BRONZE) == 43

    def test_bear_market_lowers(self):
        assert static_max_ltv(_score(75), market_condition="bear") == 60

    @pytest.mark.parametrize("overall", [0, 10, 55, 72, 88, 100])
    def test_within_band(self, overall):
        assert LTV_FLOOR <= static_max_ltv(_score(overall)) <= LTV_CEILING


# ── Dynamic Sizing ────────────────────────────────────────────────────


class TestDynamicMaxLtv:

    def test_gold_scenario(self):
        # static 65 → +2.5 → ×0.95 → +1 tier bonus
        result = dynamic_max_ltv(_score(75), ETH, collateral_value_usd=1_000_000,
                                 market_volatility=1.0, tier=CredibilityTier.GOLD)
        assert result == pytest.approx(65.13, abs=0.02)
        assert LTV_FLOOR <= result <= LTV_CEILING

    def test_zero_volatility_skips_dampening(self):
        result = dynamic_max_ltv(_score(75), ETH, market_volatility=0.0)
        # static 63 → +2.5 → ×1 → +1
        assert result == pytest.approx(66.5)

    def test_higher_volatility_lowers_ltv(self):
        calm = dynamic_max_ltv(_score(75), ETH, market_volatility=0.5)
        wild = dynamic_max_ltv(_score(75), ETH, market_volatility=5.0)
        assert wild < calm

    def test_negative_volatility_treated_as_zero(self):
        assert (dynamic_max_ltv(_score(75), ETH, market_volatility=-3)
                == dynamic_max_ltv(_score(75), ETH, market_volatility=0))

    def test_monotonic_in_score_within_tier(self):
        tier = CredibilityTier.GOLD
        prev = None
        for overall in range(70, 80):
            ltv = dynamic_max_ltv(_score(overall), ETH, tier=tier)
            if prev is not None:
                assert ltv >= prev
            prev = ltv

    def test_result_rounded_to_cents(self):
        result = dynamic_max_ltv(_score(73), ETH, market_volatility=1.37)
        assert result == round(result, 2)

    def test_clamped_even_with_extreme_chain(self):
        lender = ChainConfig(
            chain_id=5, name="Generous", native_token="X",
            base_multiplier=3.0, score_multiplier=1.0, volatility_multiplier=1.0,
            min_health_factor=1.0, liquidation_penalty=0.0, grace_period=0,
        )
        assert dynamic_max_ltv(_score(100), lender) == LTV_CEILING

    def test_poor_score_hits_floor(self):
        stingy = ChainConfig(
            chain_id=6, name="Stingy", native_token="X",
            base_multiplier=0.1, score_multiplier=1.0, volatility_multiplier=0.1,
            min_health_factor=1.5, liquidation_penalty=0.1, grace_period=0,
        )
        assert dynamic_max_ltv(_score(0), stingy, market_volatility=3) == LTV_FLOOR
