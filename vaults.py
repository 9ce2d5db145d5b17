# VaultGuard Credit Vault Model — collateral, debt and protection settings
#
# Vault lifecycle:  active → suspended → active
#                   active/suspended → closed      (administrative)
#                   active/suspended → liquidated  (external liquidation event)
#
# Vaults are value objects: update functions return a new vault and never
# mutate their input. max_ltv is only ever set by create_vault() and
# recalculate_vault_metrics().

import logging
import time
import uuid
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Optional

from chains import ChainConfig
from credit_tiers import CredibilityTier
from ltv import clamp_ltv, dynamic_max_ltv, sanitize_amount
from reputation import ReputationScore
from risk_metrics import health_factor

log = logging.getLogger("vaultguard.vaults")

DEFAULT_DEBT_TOKEN = "USDC"
PROTECTION_THRESHOLD_RATIO = 0.85    # Protection fires at 85% of max LTV
PROTECTION_COOLDOWN_SEC = 3600       # 1 hour


class VaultStatus(str, Enum):
    ACTIVE = "ACTIVE"
    LIQUIDATED = "LIQUIDATED"    # Terminal: external liquidation event
    CLOSED = "CLOSED"            # Terminal: administrative close
    SUSPENDED = "SUSPENDED"      # Administrative hold


VALID_STATUS_TRANSITIONS = {
    VaultStatus.ACTIVE:     {VaultStatus.SUSPENDED, VaultStatus.CLOSED, VaultStatus.LIQUIDATED},
    VaultStatus.SUSPENDED:  {VaultStatus.ACTIVE, VaultStatus.CLOSED, VaultStatus.LIQUIDATED},
    VaultStatus.LIQUIDATED: set(),
    VaultStatus.CLOSED:     set(),
}


class LiquidationTrigger(str, Enum):
    LTV_EXCEEDED = "LTV_EXCEEDED"
    HEALTH_FACTOR_LOW = "HEALTH_FACTOR_LOW"
    SCORE_DROP = "SCORE_DROP"
    MANUAL = "MANUAL"


@dataclass
class TokenPosition:
    token: str = ""
    amount: float = 0.0
    value_usd: float = 0.0
    last_updated: float = 0.0


@dataclass
class LiquidationProtection:
    enabled: bool = True
    threshold_ltv: float = 0.0
    cooldown_seconds: float = PROTECTION_COOLDOWN_SEC
    last_triggered: Optional[float] = None


@dataclass
class CreditVault:
    id: str = ""
    owner_id: str = ""
    chain_id: int = 1
    status: VaultStatus = VaultStatus.ACTIVE
    collateral: TokenPosition = field(default_factory=TokenPosition)
    debt: TokenPosition = field(default_factory=TokenPosition)
    ltv: float = 0.0
    health_factor: float = float("inf")
    max_ltv: float = 0.0
    liquidation_protection: LiquidationProtection = field(default_factory=LiquidationProtection)
    created_at: float = 0.0
    updated_at: float = 0.0
    last_risk_check: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class LiquidationEvent:
    """Record of an external liquidation, with the vault state around it."""
    vault_id: str
    trigger: LiquidationTrigger
    pre_ltv: float
    pre_health_factor: float
    pre_collateral_value: float
    pre_debt_value: float
    liquidated_amount: float
    liquidated_value: float
    penalty: float
    post_ltv: float
    post_health_factor: float
    event_id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])
    timestamp: float = field(default_factory=time.time)
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def compute_ltv(debt_value_usd: float, collateral_value_usd: float) -> float:
    """Debt / collateral as a percentage. Debt against zero collateral reads 100."""
    debt = sanitize_amount(debt_value_usd)
    collateral = sanitize_amount(collateral_value_usd)
    if debt <= 0:
        return 0.0
    if collateral <= 0:
        return 100.0
    return debt / collateral * 100


def create_vault(owner_id: str, chain_id: int, collateral_token: str,
                 collateral_amount: float, collateral_value_usd: float,
                 max_ltv: float, debt_token: str = DEFAULT_DEBT_TOKEN,
                 now: Optional[float] = None) -> CreditVault:
    """Open an ACTIVE vault with zero debt and protection at 85% of max LTV.

    max_ltv is held to the platform band [20, 85]; NaN reads as the floor.
    """
    now = now if now is not None else time.time()
    max_ltv = clamp_ltv(max_ltv)
    vault = CreditVault(
        id=f"vault_{uuid.uuid4().hex[:12]}",
        owner_id=owner_id,
        chain_id=chain_id,
        status=VaultStatus.ACTIVE,
        collateral=TokenPosition(
            token=collateral_token,
            amount=sanitize_amount(collateral_amount),
            value_usd=sanitize_amount(collateral_value_usd),
            last_updated=now,
        ),
        debt=TokenPosition(token=debt_token, amount=0.0, value_usd=0.0, last_updated=now),
        ltv=0.0,
        health_factor=float("inf"),
        max_ltv=max_ltv,
        liquidation_protection=LiquidationProtection(
            enabled=True,
            threshold_ltv=round(max_ltv * PROTECTION_THRESHOLD_RATIO, 2),
            cooldown_seconds=PROTECTION_COOLDOWN_SEC,
        ),
        created_at=now,
        updated_at=now,
        last_risk_check=now,
    )
    log.info("VAULT %s created owner=%s chain=%s collateral=$%.2f max_ltv=%.2f",
             vault.id, owner_id, chain_id, vault.collateral.value_usd, max_ltv)
    return vault


def update_collateral(vault: CreditVault, amount: float, value_usd: float,
                      now: Optional[float] = None) -> CreditVault:
    now = now if now is not None else time.time()
    collateral = replace(vault.collateral, amount=sanitize_amount(amount),
                         value_usd=sanitize_amount(value_usd), last_updated=now)
    return replace(vault, collateral=collateral, updated_at=now)


def update_debt(vault: CreditVault, amount: float, value_usd: float,
                now: Optional[float] = None) -> CreditVault:
    now = now if now is not None else time.time()
    debt = replace(vault.debt, amount=sanitize_amount(amount),
                   value_usd=sanitize_amount(value_usd), last_updated=now)
    return replace(vault, debt=debt, updated_at=now)


def recalculate_vault_metrics(vault: CreditVault, score: ReputationScore,
                              chain_config: ChainConfig,
                              market_volatility: float = 1.0,
                              tier: Optional[CredibilityTier] = None,
                              now: Optional[float] = None) -> CreditVault:
    """Recompute LTV, health factor and max LTV against live conditions."""
    now = now if now is not None else time.time()
    max_ltv = dynamic_max_ltv(score, chain_config, vault.collateral.value_usd,
                              market_volatility, tier)
    ltv = compute_ltv(vault.debt.value_usd, vault.collateral.value_usd)
    hf = health_factor(vault, max_ltv)

    return replace(
        vault,
        ltv=round(ltv, 2),
        health_factor=round(hf, 2),
        max_ltv=round(max_ltv, 2),
        last_risk_check=now,
        updated_at=now,
    )


def change_status(vault: CreditVault, new_status: VaultStatus,
                  now: Optional[float] = None) -> CreditVault:
    """Administrative status change. Terminal states accept no transitions."""
    new_status = VaultStatus(new_status)
    if new_status == vault.status:
        return vault
    allowed = VALID_STATUS_TRANSITIONS[VaultStatus(vault.status)]
    if new_status not in allowed:
        raise ValueError(
            f"Invalid vault transition {vault.status.value} -> {new_status.value} for {vault.id}"
        )
    log.info("VAULT %s %s -> %s", vault.id, vault.status.value, new_status.value)
    now = now if now is not None else time.time()
    return replace(vault, status=new_status, updated_at=now)


def record_liquidation(vault: CreditVault, trigger: LiquidationTrigger,
                       liquidated_amount: float, liquidated_value_usd: float,
                       chain_config: ChainConfig,
                       now: Optional[float] = None) -> tuple:
    """Apply an external liquidation. Returns (liquidated vault, event).

    The liquidated collateral value plus the chain's liquidation penalty is
    removed from collateral; the liquidated value is repaid against debt.
    """
    now = now if now is not None else time.time()
    liquidated_value = sanitize_amount(liquidated_value_usd)
    penalty = round(liquidated_value * chain_config.liquidation_penalty, 2)

    post_collateral_value = max(0.0, vault.collateral.value_usd - liquidated_value - penalty)
    post_debt_value = max(0.0, vault.debt.value_usd - liquidated_value)
    post_collateral_amount = max(0.0, vault.collateral.amount - sanitize_amount(liquidated_amount))

    liquidated = update_collateral(vault, post_collateral_amount, post_collateral_value, now)
    debt_ratio = post_debt_value / vault.debt.value_usd if vault.debt.value_usd > 0 else 0.0
    liquidated = update_debt(liquidated, vault.debt.amount * debt_ratio, post_debt_value, now)

    post_ltv = round(compute_ltv(post_debt_value, post_collateral_value), 2)
    post_hf = round(health_factor(liquidated, vault.max_ltv), 2)
    liquidated = replace(change_status(liquidated, VaultStatus.LIQUIDATED, now),
                         ltv=post_ltv, health_factor=post_hf)

    event = LiquidationEvent(
        vault_id=vault.id,
        trigger=LiquidationTrigger(trigger),
        pre_ltv=vault.ltv,
        pre_health_factor=vault.health_factor,
        pre_collateral_value=vault.collateral.value_usd,
        pre_debt_value=vault.debt.value_usd,
        liquidated_amount=sanitize_amount(liquidated_amount),
        liquidated_value=liquidated_value,
        penalty=penalty,
        post_ltv=post_ltv,
        post_health_factor=post_hf,
        timestamp=now,
        metadata={"chain_id": chain_config.chain_id},
    )
    log.warning("VAULT %s LIQUIDATED trigger=%s value=$%.2f penalty=$%.2f",
                vault.id, event.trigger.value, liquidated_value, penalty)
    return liquidated, event
