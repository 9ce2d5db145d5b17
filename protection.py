# VaultGuard Liquidation Protection — trigger evaluation and rule execution
#
# Protection fires when enabled, out of cooldown, and either
#   ltv ≥ protection threshold, or
#   health factor ≤ chain min health factor.
#
# Rule execution order:
#   1. drop disabled rules
#   2. stable sort by priority, highest first
#   3. per rule: skip on cooldown → skip when no condition breached →
#      run every action in order → stamp last_executed
# A failing rule is reported and the batch carries on.

import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional

from chains import ChainConfig
from credit_tiers import CredibilityTier
from ltv import dynamic_max_ltv
from reputation import ReputationScore
from risk_metrics import health_factor

log = logging.getLogger("vaultguard.protection")

REASON_EXECUTED = "executed"
REASON_COOLDOWN = "cooldown"
REASON_CONDITIONS_NOT_MET = "conditions not met"
REASON_FAILED = "failed"


class ActionType(str, Enum):
    NOTIFY = "NOTIFY"
    AUTO_REPAY = "AUTO_REPAY"
    COLLATERAL_INCREASE = "COLLATERAL_INCREASE"
    DEBT_REDUCTION = "DEBT_REDUCTION"


@dataclass
class ProtectionAction:
    type: ActionType
    parameters: dict = field(default_factory=dict)


@dataclass
class RuleConditions:
    """Any configured threshold breached is enough (OR, not AND)."""
    ltv_threshold: Optional[float] = None
    health_factor_threshold: Optional[float] = None
    score_threshold: Optional[float] = None
    time_window: Optional[float] = None    # seconds; carried, not evaluated


@dataclass
class ProtectionRule:
    id: str
    vault_id: str
    name: str
    description: str = ""
    conditions: RuleConditions = field(default_factory=RuleConditions)
    actions: list = field(default_factory=list)       # [ProtectionAction]
    enabled: bool = True
    priority: int = 0                                  # Higher runs first
    cooldown_seconds: float = 0.0
    last_executed: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ExecutionResult:
    rule_id: str
    rule_name: str
    executed: bool
    reason: str
    message: str
    actions: list = field(default_factory=list)       # [ActionType] that ran
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return asdict(self)


# ── Action Collaborator ───────────────────────────────────────────────

class ProtectionActionHandler:
    """Side-effecting actions a rule can take.

    The base implementation only logs. Subclass and override to wire real
    notification, repayment and collateral flows.
    """

    def notify(self, vault, rule: ProtectionRule, parameters: dict):
        log.warning("PROTECTION notify vault=%s rule=%s: %s",
                    vault.id, rule.id, rule.description or rule.name)

    def auto_repay(self, vault, rule: ProtectionRule, parameters: dict):
        log.warning("PROTECTION auto-repay vault=%s rule=%s params=%s",
                    vault.id, rule.id, parameters)

    def increase_collateral(self, vault, rule: ProtectionRule, parameters: dict):
        log.warning("PROTECTION collateral increase vault=%s rule=%s params=%s",
                    vault.id, rule.id, parameters)

    def reduce_debt(self, vault, rule: ProtectionRule, parameters: dict):
        log.warning("PROTECTION debt reduction vault=%s rule=%s params=%s",
                    vault.id, rule.id, parameters)


def dispatch_action(handler: ProtectionActionHandler, vault, rule: ProtectionRule,
                    action: ProtectionAction) -> ActionType:
    action_type = ActionType(action.type)
    if action_type is ActionType.NOTIFY:
        handler.notify(vault, rule, action.parameters)
    elif action_type is ActionType.AUTO_REPAY:
        handler.auto_repay(vault, rule, action.parameters)
    elif action_type is ActionType.COLLATERAL_INCREASE:
        handler.increase_collateral(vault, rule, action.parameters)
    elif action_type is ActionType.DEBT_REDUCTION:
        handler.reduce_debt(vault, rule, action.parameters)
    else:
        raise ValueError(f"Unhandled protection action: {action_type!r}")
    return action_type


# ── Trigger Evaluation ────────────────────────────────────────────────

def in_cooldown(last_at: Optional[float], cooldown_seconds: float, now: float) -> bool:
    if last_at is None:
        return False
    return now - last_at < cooldown_seconds


def should_trigger_protection(vault, score: ReputationScore, chain_config: ChainConfig,
                              market_volatility: float = 1.0,
                              tier: Optional[CredibilityTier] = None,
                              now: Optional[float] = None) -> bool:
    protection = vault.liquidation_protection
    if not protection.enabled:
        return False

    now = now if now is not None else time.time()
    if in_cooldown(protection.last_triggered, protection.cooldown_seconds, now):
        return False

    if vault.ltv >= protection.threshold_ltv:
        return True

    max_ltv = dynamic_max_ltv(score, chain_config, vault.collateral.value_usd,
                              market_volatility, tier)
    return health_factor(vault, max_ltv) <= chain_config.min_health_factor


def rule_conditions_met(vault, rule: ProtectionRule, score: ReputationScore,
                        chain_config: ChainConfig, market_volatility: float = 1.0,
                        tier: Optional[CredibilityTier] = None) -> bool:
    cond = rule.conditions
    if cond.ltv_threshold is not None and vault.ltv >= cond.ltv_threshold:
        return True

    if cond.health_factor_threshold is not None:
        max_ltv = dynamic_max_ltv(score, chain_config, vault.collateral.value_usd,
                                  market_volatility, tier)
        if health_factor(vault, max_ltv) <= cond.health_factor_threshold:
            return True

    if cond.score_threshold is not None and score.overall <= cond.score_threshold:
        return True

    return False


# ── Rule Execution ────────────────────────────────────────────────────

def execute_rules(vault, rules: list, score: ReputationScore, chain_config: ChainConfig,
                  market_volatility: float = 1.0,
                  handler: Optional[ProtectionActionHandler] = None,
                  tier: Optional[CredibilityTier] = None,
                  now: Optional[float] = None) -> list:
    """Evaluate rules in priority order and run the ones whose conditions hold."""
    handler = handler or ProtectionActionHandler()
    now = now if now is not None else time.time()

    # sorted() is stable, so equal priorities keep their given order
    ordered = sorted((r for r in rules if r.enabled), key=lambda r: -r.priority)
    results = []

    for rule in ordered:
        if in_cooldown(rule.last_executed, rule.cooldown_seconds, now):
            log.debug("PROTECTION rule %s skipped: cooldown", rule.id)
            results.append(ExecutionResult(
                rule_id=rule.id, rule_name=rule.name, executed=False,
                reason=REASON_COOLDOWN, message="Rule in cooldown period",
                timestamp=now,
            ))
            continue

        if not rule_conditions_met(vault, rule, score, chain_config, market_volatility, tier):
            log.debug("PROTECTION rule %s skipped: conditions not met", rule.id)
            results.append(ExecutionResult(
                rule_id=rule.id, rule_name=rule.name, executed=False,
                reason=REASON_CONDITIONS_NOT_MET, message="Conditions not met",
                timestamp=now,
            ))
            continue

        ran = []
        try:
            for action in rule.actions:
                ran.append(dispatch_action(handler, vault, rule, action))
        except Exception as e:
            log.warning("PROTECTION rule %s on vault %s failed after %d action(s): %s",
                        rule.id, vault.id, len(ran), e)
            results.append(ExecutionResult(
                rule_id=rule.id, rule_name=rule.name, executed=False,
                reason=REASON_FAILED, message=f"Rule execution failed: {e}",
                actions=ran, timestamp=now,
            ))
            continue

        rule.last_executed = now
        log.info("PROTECTION rule %s executed on vault %s (%d action(s))",
                 rule.id, vault.id, len(ran))
        results.append(ExecutionResult(
            rule_id=rule.id, rule_name=rule.name, executed=True,
            reason=REASON_EXECUTED, message="Rule executed successfully",
            actions=ran, timestamp=now,
        ))

    return results
