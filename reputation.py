# VaultGuard Reputation Scoring — four-factor weighted trust score
#
# Score Components (each 0–100):
#   Provenance:    35%  (code verification, audit history, deployment origin)
#   Performance:   30%  (realised track record)
#   Perception:    20%  (peer feedback, community signal)
#   Verification:  15%  (completed verification coverage)
#
# Confidence (0–100) is computed independently of the overall score:
#   Data quality:          40%  (completeness + validity of the inputs)
#   Scoring consistency:   30%  (low coefficient of variation → higher)
#   Verification coverage: 20%
#   Historical stability:  10%  (low spread across the first three inputs)

import math
import time
from dataclasses import asdict, dataclass
from typing import Optional

SCORE_MIN = 0.0
SCORE_MAX = 100.0

SCORING_WEIGHTS = {
    "provenance": 0.35,
    "performance": 0.30,
    "perception": 0.20,
    "verification": 0.15,
}

CONFIDENCE_WEIGHTS = {
    "data_quality": 0.40,
    "consistency": 0.30,
    "verification_coverage": 0.20,
    "stability": 0.10,
}

# Maximum points per confidence component before weighting
_CONFIDENCE_CAPS = {
    "data_quality": 40,
    "consistency": 30,
    "verification_coverage": 20,
    "stability": 10,
}


def round_half_up(value: float, digits: int = 0) -> float:
    """Round away from the banker's rule: 2.5 → 3, 0.125 → 0.13."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def clamp_score(value) -> float:
    """Clamp to [0, 100]. NaN and non-numeric input collapse to 0."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return SCORE_MIN
    if math.isnan(value):
        return SCORE_MIN
    return max(SCORE_MIN, min(SCORE_MAX, value))


def validate_weights(weights: dict) -> dict:
    """Reject weight tables that are incomplete or don't sum to 1.0."""
    missing = set(SCORING_WEIGHTS) - set(weights)
    if missing:
        raise ValueError(f"Scoring weights missing: {', '.join(sorted(missing))}")
    unknown = set(weights) - set(SCORING_WEIGHTS)
    if unknown:
        raise ValueError(f"Unknown scoring weights: {', '.join(sorted(unknown))}")
    for name, w in weights.items():
        if not isinstance(w, (int, float)) or not math.isfinite(w) or w < 0:
            raise ValueError(f"Scoring weight {name!r} must be a non-negative number")
    total = sum(weights.values())
    if abs(total - 1.0) > 1e-9:
        raise ValueError(f"Scoring weights must sum to 1.0, got {total:.6f}")
    return dict(weights)


# ── Score Record ──────────────────────────────────────────────────────

@dataclass
class ReputationScore:
    """Reputation snapshot for an entity. All fields are held in [0, 100]."""
    overall: float = 0.0
    provenance: float = 0.0
    performance: float = 0.0
    perception: float = 0.0
    verification: float = 0.0
    confidence: float = 0.0
    last_updated: float = 0.0

    def __post_init__(self):
        self.overall = clamp_score(self.overall)
        self.provenance = clamp_score(self.provenance)
        self.performance = clamp_score(self.performance)
        self.perception = clamp_score(self.perception)
        self.verification = clamp_score(self.verification)
        self.confidence = clamp_score(self.confidence)

    def to_dict(self) -> dict:
        return asdict(self)


# ── Confidence Components ─────────────────────────────────────────────

def _mean_and_std(values: list) -> tuple:
    mean = sum(values) / len(values)
    var = sum((v - mean) ** 2 for v in values) / len(values)
    return mean, math.sqrt(var)


def _data_quality(provenance, performance, perception, verification) -> float:
    score = 0.0
    if provenance > 0 and performance > 0 and perception > 0 and verification > 0:
        score += 20
    elif provenance > 0 and performance > 0 and perception > 0:
        score += 15
    elif provenance > 0 and performance > 0:
        score += 10

    values = [provenance, performance, perception, verification]
    valid = [v for v in values if SCORE_MIN <= v <= SCORE_MAX]
    score += len(valid) / len(values) * 20
    return min(40.0, score)


def _consistency(provenance, performance, perception, verification) -> float:
    present = [v for v in (provenance, performance, perception, verification) if v > 0]
    if len(present) < 2:
        return 0.0
    mean, std = _mean_and_std(present)
    cv = std / mean
    return min(30.0, max(0.0, 30 - cv * 100))


def _verification_coverage(verification) -> float:
    return min(20.0, verification * 0.2)


def _stability(provenance, performance, perception) -> float:
    present = [v for v in (provenance, performance, perception) if v > 0]
    if len(present) < 2:
        return 0.0
    _, std = _mean_and_std(present)
    return min(10.0, max(0.0, 10 - std * 0.5))


def compute_confidence(provenance: float, performance: float,
                       perception: float, verification: float) -> float:
    """Confidence in a score set, 0–100. Inputs are clamped first."""
    provenance = clamp_score(provenance)
    performance = clamp_score(performance)
    perception = clamp_score(perception)
    verification = clamp_score(verification)

    components = {
        "data_quality": _data_quality(provenance, performance, perception, verification),
        "consistency": _consistency(provenance, performance, perception, verification),
        "verification_coverage": _verification_coverage(verification),
        "stability": _stability(provenance, performance, perception),
    }
    weighted = sum(components[k] * CONFIDENCE_WEIGHTS[k] for k in components)
    max_weighted = sum(_CONFIDENCE_CAPS[k] * CONFIDENCE_WEIGHTS[k] for k in components)
    return clamp_score(round_half_up(weighted / max_weighted * 100))


# ── Scoring ───────────────────────────────────────────────────────────

def compute_score(provenance: float, performance: float, perception: float,
                  verification: float = 0.0, weights: Optional[dict] = None,
                  now: Optional[float] = None) -> ReputationScore:
    """Weighted overall score plus confidence from the four sub-scores.

    Each input is clamped to [0, 100] independently before weighting, so a
    single out-of-range input cannot drag the others.
    """
    weights = validate_weights(weights) if weights is not None else SCORING_WEIGHTS

    inputs = {
        "provenance": clamp_score(provenance),
        "performance": clamp_score(performance),
        "perception": clamp_score(perception),
        "verification": clamp_score(verification),
    }
    overall = round_half_up(sum(inputs[k] * weights[k] for k in inputs))

    return ReputationScore(
        overall=overall,
        confidence=compute_confidence(**inputs),
        last_updated=now if now is not None else time.time(),
        **inputs,
    )
