# VaultGuard Risk Metrics — health factor, composite risk score, risk level
#
# Composite risk score (0–100, higher = riskier):
#   LTV risk:            40%   min(100, ltv / max_ltv × 100)
#   Health factor risk:  30%   max(0, 100 − health_factor × 50)
#   Reputation risk:     20%   max(0, 100 − overall score)
#   LTV volatility risk: 10%   min(100, variance(last N LTV samples) × 100)
#
# Risk level bands, first match wins:
#   CRITICAL  hf ≤ 1.0 or ltv ≥ 95 or score ≥ 80
#   HIGH      hf ≤ 1.2 or ltv ≥ 85 or score ≥ 60
#   MEDIUM    hf ≤ 1.5 or ltv ≥ 75 or score ≥ 40
#   LOW       otherwise

import math
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional

from reputation import ReputationScore, round_half_up

VOLATILITY_WINDOW = 30    # Most recent LTV samples used for variance


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


RISK_LEVEL_ORDER = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}

# (level, max health factor, min ltv, min risk score)
RISK_LEVEL_BANDS = [
    (RiskLevel.CRITICAL, 1.0, 95.0, 80.0),
    (RiskLevel.HIGH, 1.2, 85.0, 60.0),
    (RiskLevel.MEDIUM, 1.5, 75.0, 40.0),
]


@dataclass(frozen=True)
class RiskWeights:
    ltv: float = 0.4
    health_factor: float = 0.3
    reputation: float = 0.2
    volatility: float = 0.1

    def __post_init__(self):
        values = (self.ltv, self.health_factor, self.reputation, self.volatility)
        if any(not math.isfinite(v) or v < 0 for v in values):
            raise ValueError("Risk weights must be finite and non-negative")
        if abs(sum(values) - 1.0) > 1e-9:
            raise ValueError(f"Risk weights must sum to 1.0, got {sum(values):.6f}")


DEFAULT_RISK_WEIGHTS = RiskWeights()


@dataclass
class HistoryPoint:
    timestamp: float
    ltv: float
    health_factor: float


@dataclass
class RiskMetrics:
    """Point-in-time risk snapshot for a vault. Owned by the caller."""
    vault_id: str
    current_ltv: float
    current_health_factor: float
    risk_score: float
    risk_level: RiskLevel
    ltv_history: list = field(default_factory=list)             # [(timestamp, ltv)]
    health_factor_history: list = field(default_factory=list)   # [(timestamp, hf)]
    warnings: list = field(default_factory=list)
    recommendations: list = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return asdict(self)


def health_factor(vault, max_ltv: float) -> float:
    """Collateral / debt, or 0 once debt reaches the max-LTV debt ceiling.

    inf when the vault carries no debt.
    """
    debt = vault.debt.value_usd
    collateral = vault.collateral.value_usd
    if debt <= 0:
        return float("inf")
    max_debt = collateral * max_ltv / 100
    if debt >= max_debt:
        return 0.0
    return collateral / debt


def variance(values: list) -> float:
    """Population variance. 0 for fewer than two samples."""
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def _history_ltvs(history: list) -> list:
    out = []
    for point in history or []:
        ltv = point.ltv if isinstance(point, HistoryPoint) else point["ltv"]
        if ltv is not None and math.isfinite(ltv):
            out.append(float(ltv))
    return out


def risk_score(vault, score: ReputationScore, history: Optional[list] = None,
               weights: RiskWeights = DEFAULT_RISK_WEIGHTS,
               window: int = VOLATILITY_WINDOW) -> float:
    if vault.max_ltv > 0:
        ltv_risk = min(100.0, vault.ltv / vault.max_ltv * 100)
    else:
        ltv_risk = 100.0 if vault.ltv > 0 else 0.0
    hf_risk = max(0.0, 100 - vault.health_factor * 50)
    reputation_risk = max(0.0, 100 - score.overall)

    samples = _history_ltvs(history)[-window:]
    volatility_risk = min(100.0, variance(samples) * 100) if len(samples) >= 2 else 0.0

    total = (ltv_risk * weights.ltv
             + hf_risk * weights.health_factor
             + reputation_risk * weights.reputation
             + volatility_risk * weights.volatility)
    return max(0.0, min(100.0, round_half_up(total)))


def risk_level(ltv: float, health_factor: float, risk_score: float) -> RiskLevel:
    for level, max_hf, min_ltv, min_score in RISK_LEVEL_BANDS:
        if health_factor <= max_hf or ltv >= min_ltv or risk_score >= min_score:
            return level
    return RiskLevel.LOW


def generate_warnings(vault, score: ReputationScore, level: RiskLevel) -> list:
    warnings = []
    if vault.ltv >= vault.max_ltv * 0.9:
        warnings.append("LTV approaching maximum limit")
    if vault.health_factor <= 1.2:
        warnings.append("Health factor below safe threshold")
    if score.overall < 50:
        warnings.append("Credibility score is low")
    if level == RiskLevel.CRITICAL:
        warnings.append("Vault at risk of liquidation")
    return warnings


def generate_recommendations(vault, score: ReputationScore, level: RiskLevel) -> list:
    recs = []
    if vault.ltv >= vault.max_ltv * 0.8:
        recs.append("Consider reducing debt or increasing collateral")
    if vault.health_factor <= 1.3:
        recs.append("Monitor health factor closely and take preventive action")
    if score.overall < 60:
        recs.append("Improve credibility score through better performance")
    if level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
        recs.append("Enable liquidation protection immediately")
        recs.append("Contact support for risk mitigation strategies")
    return recs


def calculate_risk_metrics(vault, score: ReputationScore,
                           history: Optional[list] = None,
                           weights: RiskWeights = DEFAULT_RISK_WEIGHTS,
                           now: Optional[float] = None) -> RiskMetrics:
    """Full risk snapshot for a vault whose ltv/health factor are current."""
    history = history or []
    rscore = risk_score(vault, score, history, weights)
    level = risk_level(vault.ltv, vault.health_factor, rscore)

    points = [p if isinstance(p, HistoryPoint) else HistoryPoint(**p) for p in history]
    return RiskMetrics(
        vault_id=vault.id,
        current_ltv=vault.ltv,
        current_health_factor=vault.health_factor,
        risk_score=rscore,
        risk_level=level,
        ltv_history=[(p.timestamp, p.ltv) for p in points],
        health_factor_history=[(p.timestamp, p.health_factor) for p in points],
        warnings=generate_warnings(vault, score, level),
        recommendations=generate_recommendations(vault, score, level),
        timestamp=now if now is not None else time.time(),
    )
