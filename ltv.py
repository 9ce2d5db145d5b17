# VaultGuard LTV Calculator — tier-based lending limits
#
# Two sizing paths, intentionally distinct:
#   static_max_ltv   initial vault sizing: tier base + score/verification/
#                    performance bonuses + discrete collateral-size bonus +
#                    discrete market regime (bull/bear/volatile/normal)
#   dynamic_max_ltv  every recompute: static figure (normal regime) scaled by
#                    the chain's multipliers and dampened continuously by live
#                    market volatility, plus a flat tier bonus
#
# Both results are clamped to the platform-wide band [20, 85].

import logging
import math
from enum import Enum
from typing import Optional

from chains import ChainConfig
from credit_tiers import CredibilityTier, get_tier_info, score_to_tier, tier_bonus
from reputation import ReputationScore

log = logging.getLogger("vaultguard.ltv")

LTV_FLOOR = 20.0
LTV_CEILING = 85.0

# (exclusive lower bound in USD, bonus points) — highest matching step wins
COLLATERAL_BONUS_STEPS = [
    (1_000_000, 3),
    (500_000, 2),
    (100_000, 1),
]

MAX_SCORE_BONUS = 5            # +1 per 20 points of overall score
MAX_VERIFICATION_BONUS = 3     # +1 per 33 points of verification
MAX_PERFORMANCE_BONUS = 2      # +1 per 50 points of performance


class MarketCondition(str, Enum):
    NORMAL = "normal"
    BULL = "bull"
    BEAR = "bear"
    VOLATILE = "volatile"


def clamp_ltv(value: float) -> float:
    if value != value:  # NaN
        return LTV_FLOOR
    return max(LTV_FLOOR, min(LTV_CEILING, value))


def sanitize_amount(value) -> float:
    """Negative, NaN or infinite USD amounts are treated as zero."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def sanitize_volatility(value) -> float:
    """Volatility must be a finite, non-negative exponent."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def collateral_bonus(collateral_value_usd: float) -> int:
    value = sanitize_amount(collateral_value_usd)
    for threshold, bonus in COLLATERAL_BONUS_STEPS:
        if value > threshold:
            return bonus
    return 0


def apply_market_condition(ltv: float, condition) -> float:
    try:
        condition = MarketCondition(condition)
    except ValueError:
        raise ValueError(f"Unknown market condition: {condition!r}") from None

    if condition is MarketCondition.BULL:
        return min(ltv + 2, LTV_CEILING)
    if condition is MarketCondition.BEAR:
        return max(ltv - 3, LTV_FLOOR)
    if condition is MarketCondition.VOLATILE:
        return max(ltv - 2, 25.0)
    return ltv


def static_max_ltv(score: ReputationScore, tier: Optional[CredibilityTier] = None,
                   collateral_value_usd: float = 0.0,
                   market_condition="normal") -> float:
    """Max LTV for initial vault sizing, with discrete size and regime bonuses."""
    tier = CredibilityTier(tier) if tier is not None else score_to_tier(score.overall)
    ltv = float(get_tier_info(tier).max_ltv)

    ltv += min(MAX_SCORE_BONUS, math.floor(score.overall / 20))
    ltv += min(MAX_VERIFICATION_BONUS, math.floor(score.verification / 33))
    ltv += min(MAX_PERFORMANCE_BONUS, math.floor(score.performance / 50))
    ltv += collateral_bonus(collateral_value_usd)

    ltv = apply_market_condition(ltv, market_condition)
    return clamp_ltv(ltv)


def dynamic_max_ltv(score: ReputationScore, chain_config: ChainConfig,
                    collateral_value_usd: float = 0.0,
                    market_volatility: float = 1.0,
                    tier: Optional[CredibilityTier] = None) -> float:
    """Max LTV recomputed against live chain conditions.

    volatility_multiplier ** volatility is a continuous dampener: a
    volatility of 0 leaves the figure untouched, larger values shrink it.
    """
    tier = CredibilityTier(tier) if tier is not None else score_to_tier(score.overall)
    volatility = sanitize_volatility(market_volatility)

    ltv = static_max_ltv(score, tier, collateral_value_usd, MarketCondition.NORMAL)
    ltv *= chain_config.base_multiplier
    ltv += (score.overall - 50) * chain_config.score_multiplier
    ltv *= chain_config.volatility_multiplier ** volatility
    ltv += tier_bonus(tier)

    result = clamp_ltv(round(ltv, 2))
    log.debug("LTV chain=%s tier=%s score=%.0f vol=%.2f -> %.2f",
              chain_config.chain_id, tier.value, score.overall, volatility, result)
    return result
