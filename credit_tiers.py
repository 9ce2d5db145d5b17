# VaultGuard Credibility Tiers — reputation bands and lending ceilings
#
# Five-level trust ladder:
#   Bronze:    0–59   base max LTV 40%
#   Silver:   60–69   base max LTV 50%
#   Gold:     70–79   base max LTV 60%
#   Platinum: 80–89   base max LTV 70%
#   Diamond:  90–100  base max LTV 80%
#
# Bands are contiguous and strictly increasing, as are the LTV ceilings.

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional


class CredibilityTier(str, Enum):
    BRONZE = "BRONZE"        # New entities, basic lending
    SILVER = "SILVER"        # Proven track record
    GOLD = "GOLD"            # Strong reputation
    PLATINUM = "PLATINUM"    # Elite scores
    DIAMOND = "DIAMOND"      # Maximum trust


TIER_ORDER = [
    CredibilityTier.BRONZE,
    CredibilityTier.SILVER,
    CredibilityTier.GOLD,
    CredibilityTier.PLATINUM,
    CredibilityTier.DIAMOND,
]


@dataclass(frozen=True)
class TierInfo:
    tier: CredibilityTier
    name: str
    max_ltv: float
    min_score: float
    max_score: float
    ltv_bonus: float                 # Flat bonus added by the dynamic LTV path
    days_required: int               # Days active needed to enter this tier
    transactions_required: int       # Successful transactions needed to enter
    description: str = ""
    benefits: tuple = field(default_factory=tuple)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["benefits"] = list(self.benefits)
        return d


CREDIBILITY_TIERS: dict[CredibilityTier, TierInfo] = {
    CredibilityTier.BRONZE: TierInfo(
        tier=CredibilityTier.BRONZE, name="Bronze",
        max_ltv=40, min_score=0, max_score=59, ltv_bonus=0,
        days_required=0, transactions_required=0,
        description="Basic tier for new entities",
        benefits=("Access to basic lending", "Standard rates"),
    ),
    CredibilityTier.SILVER: TierInfo(
        tier=CredibilityTier.SILVER, name="Silver",
        max_ltv=50, min_score=60, max_score=69, ltv_bonus=0.5,
        days_required=30, transactions_required=2,
        description="Established entities with a proven track record",
        benefits=("Higher LTV limits", "Better rates", "Priority support"),
    ),
    CredibilityTier.GOLD: TierInfo(
        tier=CredibilityTier.GOLD, name="Gold",
        max_ltv=60, min_score=70, max_score=79, ltv_bonus=1,
        days_required=90, transactions_required=10,
        description="High-performing entities with strong reputation",
        benefits=("Premium LTV limits", "Best rates", "Early access to new features"),
    ),
    CredibilityTier.PLATINUM: TierInfo(
        tier=CredibilityTier.PLATINUM, name="Platinum",
        max_ltv=70, min_score=80, max_score=89, ltv_bonus=2,
        days_required=180, transactions_required=25,
        description="Elite entities with exceptional scores",
        benefits=("Elite LTV limits", "Premium rates", "Governance rights"),
    ),
    CredibilityTier.DIAMOND: TierInfo(
        tier=CredibilityTier.DIAMOND, name="Diamond",
        max_ltv=80, min_score=90, max_score=100, ltv_bonus=3,
        days_required=365, transactions_required=50,
        description="Top-tier entities with maximum trust",
        benefits=("Maximum LTV limits", "Elite rates", "Governance voting", "Revenue sharing"),
    ),
}


def score_to_tier(score: float) -> CredibilityTier:
    """Tier whose band contains score. Out-of-range scores clamp to the ends."""
    if score != score:  # NaN
        return CredibilityTier.BRONZE
    for tier in reversed(TIER_ORDER):
        if score >= CREDIBILITY_TIERS[tier].min_score:
            return tier
    return CredibilityTier.BRONZE


def next_tier(tier: CredibilityTier) -> Optional[CredibilityTier]:
    idx = TIER_ORDER.index(CredibilityTier(tier))
    return TIER_ORDER[idx + 1] if idx < len(TIER_ORDER) - 1 else None


def get_tier_info(tier: CredibilityTier) -> TierInfo:
    return CREDIBILITY_TIERS[CredibilityTier(tier)]


def tier_bonus(tier: CredibilityTier) -> float:
    return CREDIBILITY_TIERS[CredibilityTier(tier)].ltv_bonus


# ── Upgrade Path ──────────────────────────────────────────────────────

def estimate_upgrade_time(overall_score: float,
                          target: Optional[CredibilityTier]) -> str:
    """Rough time-to-upgrade label from the score gap to the next band."""
    if target is None:
        return "Already at highest tier"
    gap = CREDIBILITY_TIERS[target].min_score - overall_score
    if gap <= 0:
        return "Score requirement met"
    if gap <= 5:
        return "1-2 weeks"
    if gap <= 10:
        return "2-4 weeks"
    if gap <= 15:
        return "1-2 months"
    return "3+ months"


def check_tier_upgrade_eligibility(overall_score: float, tier: CredibilityTier,
                                   days_active: int,
                                   successful_transactions: int) -> dict:
    """Check whether an entity qualifies for the tier above its current one."""
    tier = CredibilityTier(tier)
    target = next_tier(tier)
    if target is None:
        return {
            "eligible": False,
            "current_tier": tier,
            "next_tier": None,
            "missing_requirements": ["Already at highest tier"],
            "estimated_time": estimate_upgrade_time(overall_score, None),
        }

    info = CREDIBILITY_TIERS[target]
    missing = []
    if overall_score < info.min_score:
        missing.append(f"Score {overall_score:g}/{info.min_score:g}+ required")
    if days_active < info.days_required:
        missing.append(f"{days_active}/{info.days_required} days active required")
    if successful_transactions < info.transactions_required:
        missing.append(
            f"{successful_transactions}/{info.transactions_required}+ successful transactions required"
        )

    return {
        "eligible": not missing,
        "current_tier": tier,
        "next_tier": target,
        "missing_requirements": missing,
        "estimated_time": estimate_upgrade_time(overall_score, target),
    }


def summarize_tiers(entries: list) -> dict:
    """Tier distribution and average score for a list of (tier, overall_score)."""
    counts = {t: 0 for t in TIER_ORDER}
    totals = {t: 0.0 for t in TIER_ORDER}
    for tier, overall in entries:
        tier = CredibilityTier(tier)
        counts[tier] += 1
        totals[tier] += overall

    return {
        "distribution": {t.value: counts[t] for t in TIER_ORDER},
        "average_scores": {
            t.value: round(totals[t] / counts[t], 2) if counts[t] else 0.0
            for t in TIER_ORDER
        },
    }
