# VaultGuard Risk Monitor — periodic vault re-evaluation and alerting
#
# Owns three collections, each behind its own lock:
#   alerts        alert_id → Alert
#   market data   chain_id → MarketData
#   vault history vault_id → bounded deque of RiskMetrics
#
# The scheduler is a daemon thread waiting check_interval seconds between
# ticks. Ticks never overlap: a tick that finds the previous one still
# running is skipped. stop() prevents new ticks but lets an in-flight tick
# finish.

# Auto-load .env file (must be before any os.environ reads)
from dotenv import load_dotenv
load_dotenv()

import logging
import os
import threading
import time
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Callable, Iterable, Optional

from chains import ChainConfig, get_chain_config, load_chain_configs
from credit_tiers import CredibilityTier
from ltv import sanitize_volatility
from protection import ProtectionActionHandler, execute_rules, should_trigger_protection
from reputation import ReputationScore
from risk_metrics import (
    RISK_LEVEL_ORDER,
    HistoryPoint,
    RiskLevel,
    RiskMetrics,
    calculate_risk_metrics,
)
from vaults import CreditVault, VaultStatus, recalculate_vault_metrics

LOG_FILE = os.environ.get("VAULTGUARD_LOG_FILE", "")
DEFAULT_VOLATILITY = 1.0

FORECAST_HORIZON_HOURS = 24
FORECAST_MIN_HISTORY = 3          # Fewer samples → neutral forecast
FORECAST_FULL_CONFIDENCE = 10     # Samples needed for confidence 1.0
FORECAST_VOLATILITY_BAND = (0.5, 2.0)


def setup_logging(log_file=None, level=logging.INFO):
    """Console logging for the vaultguard logger tree, plus a file if configured."""
    log_file = log_file or LOG_FILE
    logger = logging.getLogger("vaultguard")

    if logger.handlers:
        return logger

    logger.setLevel(level)
    fmt = logging.Formatter(
        "[%(asctime)s] %(levelname)-8s %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file:
        fh = logging.FileHandler(log_file)
        fh.setLevel(level)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


setup_logging()
log = logging.getLogger("vaultguard.monitor")


# ── Configuration ─────────────────────────────────────────────────────

def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AlertThresholds:
    ltv_warning: float = 70.0
    ltv_alert: float = 80.0
    ltv_critical: float = 90.0
    health_factor_warning: float = 1.5
    health_factor_alert: float = 1.3
    health_factor_critical: float = 1.1


@dataclass
class AutoProtectionConfig:
    enabled: bool = True
    max_protection_triggers: int = 3
    protection_cooldown: float = 3600.0    # seconds


@dataclass
class RiskMonitorConfig:
    check_interval: float = 30.0           # seconds
    alert_thresholds: AlertThresholds = field(default_factory=AlertThresholds)
    auto_protection: AutoProtectionConfig = field(default_factory=AutoProtectionConfig)
    alert_retention_days: float = 30.0
    history_size: int = 100                # RiskMetrics kept per vault
    dedupe_alerts: bool = False            # refresh identical open alerts in place

    def validate(self) -> "RiskMonitorConfig":
        t = self.alert_thresholds
        if self.check_interval <= 0:
            raise ValueError("check_interval must be > 0")
        if not t.ltv_warning <= t.ltv_alert <= t.ltv_critical:
            raise ValueError("LTV thresholds must satisfy warning <= alert <= critical")
        if not t.health_factor_warning >= t.health_factor_alert >= t.health_factor_critical:
            raise ValueError(
                "Health factor thresholds must satisfy warning >= alert >= critical"
            )
        if self.auto_protection.max_protection_triggers < 0:
            raise ValueError("max_protection_triggers must be >= 0")
        if self.auto_protection.protection_cooldown < 0:
            raise ValueError("protection_cooldown must be >= 0")
        if self.history_size < 1:
            raise ValueError("history_size must be >= 1")
        if self.alert_retention_days <= 0:
            raise ValueError("alert_retention_days must be > 0")
        return self

    @classmethod
    def from_env(cls) -> "RiskMonitorConfig":
        d = cls()
        dt = d.alert_thresholds
        da = d.auto_protection
        return cls(
            check_interval=_env_float("VAULTGUARD_CHECK_INTERVAL_SEC", d.check_interval),
            alert_thresholds=AlertThresholds(
                ltv_warning=_env_float("VAULTGUARD_LTV_WARNING", dt.ltv_warning),
                ltv_alert=_env_float("VAULTGUARD_LTV_ALERT", dt.ltv_alert),
                ltv_critical=_env_float("VAULTGUARD_LTV_CRITICAL", dt.ltv_critical),
                health_factor_warning=_env_float("VAULTGUARD_HF_WARNING", dt.health_factor_warning),
                health_factor_alert=_env_float("VAULTGUARD_HF_ALERT", dt.health_factor_alert),
                health_factor_critical=_env_float("VAULTGUARD_HF_CRITICAL", dt.health_factor_critical),
            ),
            auto_protection=AutoProtectionConfig(
                enabled=_env_bool("VAULTGUARD_AUTO_PROTECTION", da.enabled),
                max_protection_triggers=int(_env_float(
                    "VAULTGUARD_MAX_PROTECTION_TRIGGERS", da.max_protection_triggers)),
                protection_cooldown=_env_float(
                    "VAULTGUARD_PROTECTION_COOLDOWN_SEC", da.protection_cooldown),
            ),
            alert_retention_days=_env_float("VAULTGUARD_ALERT_RETENTION_DAYS", d.alert_retention_days),
            history_size=int(_env_float("VAULTGUARD_HISTORY_SIZE", d.history_size)),
            dedupe_alerts=_env_bool("VAULTGUARD_DEDUPE_ALERTS", d.dedupe_alerts),
        ).validate()


# ── Records ───────────────────────────────────────────────────────────

class AlertSeverity(str, Enum):
    WARNING = "WARNING"
    ALERT = "ALERT"
    CRITICAL = "CRITICAL"


class AlertCategory(str, Enum):
    LTV = "LTV"
    HEALTH_FACTOR = "HEALTH_FACTOR"
    RISK_LEVEL = "RISK_LEVEL"


@dataclass
class Alert:
    vault_id: str
    severity: AlertSeverity
    category: AlertCategory
    message: str
    id: str = field(default_factory=lambda: f"alert_{uuid.uuid4().hex[:12]}")
    timestamp: float = field(default_factory=time.time)
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MarketData:
    chain_id: int
    volatility: float = DEFAULT_VOLATILITY
    gas_price: float = 0.0
    block_number: int = 0
    price_feeds: dict = field(default_factory=dict)    # token → USD price
    timestamp: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MonitoredVault:
    """One unit of work for a scheduler tick."""
    vault: CreditVault
    score: ReputationScore
    history: list = field(default_factory=list)        # [HistoryPoint]
    tier: Optional[CredibilityTier] = None
    rules: list = field(default_factory=list)          # [ProtectionRule]


@dataclass
class RiskForecast:
    """Short-horizon projection of a vault's LTV and health factor."""
    predicted_ltv: float
    predicted_health_factor: float
    risk_probability: float           # 0–1, chance LTV ends above max LTV
    confidence: float                 # 0–1, grows with history length
    time_horizon_hours: int = FORECAST_HORIZON_HOURS
    factors: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MonitorResult:
    vault: CreditVault
    risk_metrics: RiskMetrics
    alerts: list
    protection_triggered: bool
    forecast: Optional[RiskForecast] = None


# ── Owned Collections ─────────────────────────────────────────────────

class AlertStore:
    """Alerts keyed by id. Callers only ever see copies."""

    def __init__(self):
        self._lock = threading.Lock()
        self._alerts: dict[str, Alert] = {}

    def add(self, alert: Alert, dedupe: bool = False) -> Alert:
        """Store an alert. With dedupe, an identical unacknowledged alert is
        refreshed in place instead of stored twice."""
        with self._lock:
            if dedupe:
                for existing in self._alerts.values():
                    if (not existing.acknowledged
                            and existing.vault_id == alert.vault_id
                            and existing.category == alert.category
                            and existing.severity == alert.severity):
                        existing.message = alert.message
                        existing.timestamp = alert.timestamp
                        return replace(existing)
            self._alerts[alert.id] = alert
            return replace(alert)

    def get(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            alert = self._alerts.get(alert_id)
            return replace(alert) if alert else None

    def acknowledge(self, alert_id: str, by: str, now: float) -> bool:
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                return False
            if not alert.acknowledged:
                alert.acknowledged = True
                alert.acknowledged_by = by
                alert.acknowledged_at = now
            return True

    def values(self) -> list:
        with self._lock:
            return [replace(a) for a in self._alerts.values()]

    def prune(self, older_than: float) -> int:
        with self._lock:
            stale = [k for k, a in self._alerts.items() if a.timestamp < older_than]
            for k in stale:
                del self._alerts[k]
            return len(stale)

    def __len__(self):
        with self._lock:
            return len(self._alerts)


class MarketDataStore:
    """Per-chain market snapshots, merged from partial updates."""

    def __init__(self):
        self._lock = threading.Lock()
        self._data: dict[int, MarketData] = {}

    def merge(self, chain_id: int, now: float, **fields) -> MarketData:
        unknown = set(fields) - {"volatility", "gas_price", "block_number", "price_feeds"}
        if unknown:
            raise ValueError(f"Unknown market data fields: {', '.join(sorted(unknown))}")
        with self._lock:
            current = self._data.get(chain_id) or MarketData(chain_id=chain_id)
            if "volatility" in fields:
                fields["volatility"] = sanitize_volatility(fields["volatility"])
            if "price_feeds" in fields:
                fields["price_feeds"] = dict(fields["price_feeds"] or {})
            updated = replace(current, timestamp=now, **fields)
            self._data[chain_id] = updated
            return replace(updated, price_feeds=dict(updated.price_feeds))

    def set_price(self, chain_id: int, token: str, price: float, now: float) -> MarketData:
        with self._lock:
            current = self._data.get(chain_id) or MarketData(chain_id=chain_id)
            feeds = dict(current.price_feeds)
            feeds[token] = price
            updated = replace(current, price_feeds=feeds, timestamp=now)
            self._data[chain_id] = updated
            return replace(updated, price_feeds=dict(feeds))

    def get(self, chain_id: int) -> Optional[MarketData]:
        with self._lock:
            data = self._data.get(chain_id)
            return replace(data, price_feeds=dict(data.price_feeds)) if data else None

    def volatility(self, chain_id: int) -> float:
        with self._lock:
            data = self._data.get(chain_id)
            return data.volatility if data else DEFAULT_VOLATILITY

    def values(self) -> list:
        with self._lock:
            return [replace(d, price_feeds=dict(d.price_feeds)) for d in self._data.values()]


def _copy_metrics(m: RiskMetrics) -> RiskMetrics:
    return replace(
        m,
        ltv_history=list(m.ltv_history),
        health_factor_history=list(m.health_factor_history),
        warnings=list(m.warnings),
        recommendations=list(m.recommendations),
    )


class VaultHistoryStore:
    """Bounded RiskMetrics history per vault."""

    def __init__(self, maxlen: int):
        self._lock = threading.Lock()
        self._maxlen = maxlen
        self._history: dict[str, deque] = {}

    def append(self, metrics: RiskMetrics):
        with self._lock:
            if metrics.vault_id not in self._history:
                self._history[metrics.vault_id] = deque(maxlen=self._maxlen)
            self._history[metrics.vault_id].append(metrics)

    def get(self, vault_id: str) -> list:
        with self._lock:
            return [_copy_metrics(m) for m in self._history.get(vault_id, ())]

    def latest_levels(self) -> dict:
        with self._lock:
            return {vid: h[-1].risk_level for vid, h in self._history.items() if h}

    def __len__(self):
        with self._lock:
            return len(self._history)


# ── Risk Monitor ──────────────────────────────────────────────────────

class RiskMonitor:
    """Stateful scheduler over the risk calculators.

    vault_source is called once per tick and returns the MonitoredVault
    entries to evaluate; persistence of vaults and rules stays with the
    caller.
    """

    def __init__(self, config: Optional[RiskMonitorConfig] = None,
                 chain_configs: Optional[dict[int, ChainConfig]] = None,
                 vault_source: Optional[Callable[[], Iterable[MonitoredVault]]] = None,
                 action_handler: Optional[ProtectionActionHandler] = None):
        self.config = (config or RiskMonitorConfig()).validate()
        self.chain_configs = chain_configs if chain_configs is not None else load_chain_configs()
        self.vault_source = vault_source
        self.action_handler = action_handler or ProtectionActionHandler()

        self._alerts = AlertStore()
        self._market = MarketDataStore()
        self._history = VaultHistoryStore(self.config.history_size)

        # _protection_lock guards the two maps; each vault lock serializes
        # budget check, rule execution and budget record for that vault
        self._protection_lock = threading.Lock()
        self._protection_runs: dict[str, deque] = {}
        self._vault_locks: dict[str, threading.Lock] = {}

        self._state_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

        self._stats_lock = threading.Lock()
        self._stats = {
            "total_checks": 0,
            "skipped_checks": 0,
            "failed_checks": 0,
            "error_count": 0,
            "success_rate": 100.0,
            "alerts_pruned": 0,
            "last_check_at": None,
            "average_check_ms": 0.0,
        }

    # ── Scheduler ─────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        with self._state_lock:
            return self._thread is not None

    def start(self):
        with self._state_lock:
            if self._thread is not None:
                return
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._thread = threading.Thread(
                target=self._loop, args=(stop_event,),
                name="vaultguard-risk-monitor", daemon=True,
            )
            self._thread.start()
        log.info("Risk monitor started (interval=%.1fs)", self.config.check_interval)

    def stop(self, wait: bool = False, timeout: Optional[float] = None):
        with self._state_lock:
            if self._thread is None:
                return
            thread = self._thread
            self._stop_event.set()
            self._thread = None
            self._stop_event = None
        log.info("Risk monitor stopped")
        if wait:
            thread.join(timeout)

    def _loop(self, stop_event: threading.Event):
        while not stop_event.wait(self.config.check_interval):
            try:
                self.run_check()
            except Exception:
                # vault_source failures surface here; per-vault errors do not
                log.exception("Risk check tick failed")
                with self._stats_lock:
                    self._stats["error_count"] += 1

    def run_check(self, now: Optional[float] = None) -> dict:
        """One evaluation pass over every vault from vault_source."""
        result = {
            "timestamp": now if now is not None else time.time(),
            "vaults_checked": 0,
            "alerts_raised": 0,
            "protection_triggered": 0,
            "rules_executed": 0,
            "alerts_pruned": 0,
            "skipped": False,
            "errors": [],
        }

        if not self._tick_lock.acquire(blocking=False):
            log.warning("Risk check skipped: previous check still running")
            with self._stats_lock:
                self._stats["skipped_checks"] += 1
            result["skipped"] = True
            return result

        started = time.monotonic()
        completed = False
        try:
            entries = list(self.vault_source()) if self.vault_source else []
            for entry in entries:
                if entry.vault.status != VaultStatus.ACTIVE:
                    continue
                try:
                    outcome = self.monitor_vault(entry.vault, entry.score,
                                                 entry.history, entry.tier, now=now)
                    result["vaults_checked"] += 1
                    result["alerts_raised"] += len(outcome.alerts)
                    if outcome.protection_triggered:
                        result["protection_triggered"] += 1
                        if entry.rules and self.config.auto_protection.enabled:
                            runs = self.run_protection(outcome.vault, entry.rules,
                                                       entry.score, entry.tier, now=now)
                            result["rules_executed"] += sum(1 for r in runs if r.executed)
                except Exception as e:
                    log.error("Risk check failed for vault %s: %s", entry.vault.id, e)
                    result["errors"].append(f"{entry.vault.id}: {e}")

            result["alerts_pruned"] = self.prune_alerts(result["timestamp"])
            completed = True
        finally:
            elapsed_ms = (time.monotonic() - started) * 1000
            with self._stats_lock:
                s = self._stats
                s["total_checks"] += 1
                s["error_count"] += len(result["errors"])
                if not completed or result["errors"]:
                    s["failed_checks"] += 1
                s["success_rate"] = round(
                    (s["total_checks"] - s["failed_checks"]) / s["total_checks"] * 100, 2
                )
                s["alerts_pruned"] += result["alerts_pruned"]
                s["last_check_at"] = result["timestamp"]
                s["average_check_ms"] = (
                    s["average_check_ms"] * (s["total_checks"] - 1) + elapsed_ms
                ) / s["total_checks"]
            self._tick_lock.release()

        if result["vaults_checked"]:
            log.info("Risk check: %d vaults, %d alerts, %d protection triggers",
                     result["vaults_checked"], result["alerts_raised"],
                     result["protection_triggered"])
        return result

    # ── Market Data ───────────────────────────────────────────────────

    def update_market_data(self, chain_id: int, now: Optional[float] = None,
                           **fields) -> MarketData:
        """Merge fields (volatility, gas_price, block_number, price_feeds)."""
        now = now if now is not None else time.time()
        return self._market.merge(int(chain_id), now, **fields)

    def update_price(self, chain_id: int, token: str, price: float,
                     now: Optional[float] = None) -> MarketData:
        now = now if now is not None else time.time()
        return self._market.set_price(int(chain_id), token, price, now)

    def get_market_data(self, chain_id: int) -> Optional[MarketData]:
        return self._market.get(int(chain_id))

    # ── Vault Evaluation ──────────────────────────────────────────────

    def _chain(self, chain_id: int) -> ChainConfig:
        return get_chain_config(chain_id, self.chain_configs)

    def monitor_vault(self, vault: CreditVault, score: ReputationScore,
                      history: Optional[list] = None,
                      tier: Optional[CredibilityTier] = None,
                      now: Optional[float] = None) -> MonitorResult:
        """Recompute a vault's risk, raise alerts, report whether protection
        should fire. Protection rules are not executed here."""
        now = now if now is not None else time.time()
        chain = self._chain(vault.chain_id)
        volatility = self._market.volatility(int(vault.chain_id))

        updated = recalculate_vault_metrics(vault, score, chain, volatility, tier, now=now)
        metrics = calculate_risk_metrics(updated, score, history, now=now)
        self._history.append(metrics)

        alerts = []
        for alert in self._generate_alerts(updated, metrics, now):
            alerts.append(self._alerts.add(alert, dedupe=self.config.dedupe_alerts))
            log.warning("ALERT %s vault=%s %s", alert.severity.value, vault.id, alert.message)

        triggered = should_trigger_protection(updated, score, chain, volatility, tier, now=now)
        if triggered:
            log.warning("VAULT %s liquidation protection should trigger (ltv=%.2f hf=%.2f)",
                        vault.id, updated.ltv, updated.health_factor)

        forecast = predict_risk(updated, history, self._market.get(int(vault.chain_id)))

        return MonitorResult(vault=updated, risk_metrics=metrics, alerts=alerts,
                             protection_triggered=triggered, forecast=forecast)

    def _generate_alerts(self, vault: CreditVault, metrics: RiskMetrics,
                         now: float) -> list:
        t = self.config.alert_thresholds
        alerts = []

        def _alert(severity, category, message):
            alerts.append(Alert(vault_id=vault.id, severity=severity,
                                category=category, message=message, timestamp=now))

        if vault.ltv >= t.ltv_critical:
            _alert(AlertSeverity.CRITICAL, AlertCategory.LTV,
                   f"LTV {vault.ltv:.2f}% exceeds critical threshold")
        elif vault.ltv >= t.ltv_alert:
            _alert(AlertSeverity.ALERT, AlertCategory.LTV,
                   f"LTV {vault.ltv:.2f}% exceeds alert threshold")
        elif vault.ltv >= t.ltv_warning:
            _alert(AlertSeverity.WARNING, AlertCategory.LTV,
                   f"LTV {vault.ltv:.2f}% approaching alert threshold")

        hf = vault.health_factor
        if hf <= t.health_factor_critical:
            _alert(AlertSeverity.CRITICAL, AlertCategory.HEALTH_FACTOR,
                   f"Health factor {hf:.2f} below critical threshold")
        elif hf <= t.health_factor_alert:
            _alert(AlertSeverity.ALERT, AlertCategory.HEALTH_FACTOR,
                   f"Health factor {hf:.2f} below alert threshold")
        elif hf <= t.health_factor_warning:
            _alert(AlertSeverity.WARNING, AlertCategory.HEALTH_FACTOR,
                   f"Health factor {hf:.2f} approaching alert threshold")

        if metrics.risk_level == RiskLevel.CRITICAL:
            _alert(AlertSeverity.CRITICAL, AlertCategory.RISK_LEVEL,
                   f"Vault risk level is CRITICAL (score: {metrics.risk_score:g})")
        elif metrics.risk_level == RiskLevel.HIGH:
            _alert(AlertSeverity.ALERT, AlertCategory.RISK_LEVEL,
                   f"Vault risk level is HIGH (score: {metrics.risk_score:g})")

        return alerts

    # ── Protection ────────────────────────────────────────────────────

    def run_protection(self, vault: CreditVault, rules: list, score: ReputationScore,
                       tier: Optional[CredibilityTier] = None,
                       now: Optional[float] = None) -> list:
        """Execute a vault's protection rules under the auto-protection budget.

        At most max_protection_triggers runs that execute a rule are allowed
        per vault inside any protection_cooldown window.
        """
        ap = self.config.auto_protection
        if not ap.enabled:
            log.info("Auto protection disabled; rules for vault %s not run", vault.id)
            return []

        now = now if now is not None else time.time()
        chain = self._chain(vault.chain_id)
        volatility = self._market.volatility(int(vault.chain_id))

        with self._vault_lock(vault.id):
            with self._protection_lock:
                runs = self._protection_runs.setdefault(vault.id, deque())
                while runs and now - runs[0] >= ap.protection_cooldown:
                    runs.popleft()
                used = len(runs)
            if used >= ap.max_protection_triggers:
                log.warning("Protection budget exhausted for vault %s (%d runs in %.0fs)",
                            vault.id, used, ap.protection_cooldown)
                return []

            results = execute_rules(vault, rules, score, chain, volatility,
                                    handler=self.action_handler, tier=tier, now=now)

            if any(r.executed for r in results):
                with self._protection_lock:
                    self._protection_runs[vault.id].append(now)
        return results

    def _vault_lock(self, vault_id: str) -> threading.Lock:
        with self._protection_lock:
            lock = self._vault_locks.get(vault_id)
            if lock is None:
                lock = self._vault_locks[vault_id] = threading.Lock()
            return lock

    # ── Alerts ────────────────────────────────────────────────────────

    def acknowledge_alert(self, alert_id: str, acknowledged_by: str,
                          now: Optional[float] = None) -> bool:
        now = now if now is not None else time.time()
        ok = self._alerts.acknowledge(alert_id, acknowledged_by, now)
        if ok:
            log.info("Alert %s acknowledged by %s", alert_id, acknowledged_by)
        return ok

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    def get_active_alerts(self) -> list:
        return [a for a in self._alerts.values() if not a.acknowledged]

    def get_vault_alerts(self, vault_id: str) -> list:
        return [a for a in self._alerts.values() if a.vault_id == vault_id]

    def get_alerts_by_category(self, category) -> list:
        category = AlertCategory(category)
        return [a for a in self._alerts.values() if a.category == category]

    def get_alerts_by_severity(self, severity) -> list:
        severity = AlertSeverity(severity)
        return [a for a in self._alerts.values() if a.severity == severity]

    def prune_alerts(self, now: Optional[float] = None) -> int:
        """Drop alerts older than the retention window."""
        now = now if now is not None else time.time()
        cutoff = now - self.config.alert_retention_days * 86400
        removed = self._alerts.prune(cutoff)
        if removed:
            log.info("Pruned %d alerts older than %.0f days",
                     removed, self.config.alert_retention_days)
        return removed

    # ── Reporting ─────────────────────────────────────────────────────

    def get_vault_history(self, vault_id: str) -> list:
        return self._history.get(vault_id)

    def get_risk_summary(self) -> dict:
        alerts = self._alerts.values()
        levels = self._history.latest_levels()
        markets = self._market.values()

        by_level = {level: 0 for level in RISK_LEVEL_ORDER}
        for level in levels.values():
            by_level[level] += 1

        by_severity = {s.value: 0 for s in AlertSeverity}
        by_category = {c.value: 0 for c in AlertCategory}
        for a in alerts:
            by_severity[a.severity.value] += 1
            by_category[a.category.value] += 1

        with self._stats_lock:
            stats = dict(self._stats)

        return {
            "total_vaults": len(levels),
            "critical_risk": by_level[RiskLevel.CRITICAL],
            "high_risk": by_level[RiskLevel.HIGH],
            "medium_risk": by_level[RiskLevel.MEDIUM],
            "low_risk": by_level[RiskLevel.LOW],
            "total_alerts": len(alerts),
            "unacknowledged_alerts": sum(1 for a in alerts if not a.acknowledged),
            "alerts_by_severity": by_severity,
            "alerts_by_category": by_category,
            "market_overview": {
                "total_chains": len(markets),
                "average_volatility": (
                    round(sum(m.volatility for m in markets) / len(markets), 4)
                    if markets else DEFAULT_VOLATILITY
                ),
            },
            "checks": stats,
        }

    def get_status(self) -> dict:
        with self._stats_lock:
            stats = dict(self._stats)
        return {
            "is_running": self.is_running,
            "last_check_at": stats["last_check_at"],
            "alerts_count": len(self._alerts),
            "market_data_count": len(self._market.values()),
            "tracked_vaults": len(self._history),
            "config": asdict(self.config),
            "checks": stats,
        }


def predict_risk(vault: CreditVault, history: Optional[list] = None,
                 market: Optional[MarketData] = None) -> RiskForecast:
    """Project LTV and health factor over the next FORECAST_HORIZON_HOURS.

    Market volatility (clamped to [0.5, 2.0], unset or zero reads as 1.0)
    scales LTV up and health factor down. Below FORECAST_MIN_HISTORY samples
    the forecast is neutral: current values, probability 0.5, confidence 0.1.
    """
    history = history or []
    if len(history) < FORECAST_MIN_HISTORY:
        return RiskForecast(
            predicted_ltv=vault.ltv,
            predicted_health_factor=vault.health_factor,
            risk_probability=0.5,
            confidence=0.1,
            factors=["Insufficient historical data"],
        )

    volatility = DEFAULT_VOLATILITY
    if market is not None and market.volatility:
        volatility = market.volatility
    low, high = FORECAST_VOLATILITY_BAND
    multiplier = max(low, min(high, volatility))

    predicted_ltv = max(0.0, min(100.0, vault.ltv * multiplier))
    predicted_hf = max(0.1, vault.health_factor / multiplier)

    if vault.max_ltv < 100:
        probability = (predicted_ltv - vault.max_ltv) / (100 - vault.max_ltv)
    else:
        probability = 0.0

    return RiskForecast(
        predicted_ltv=round(predicted_ltv, 2),
        predicted_health_factor=round(predicted_hf, 2),
        risk_probability=round(max(0.0, min(1.0, probability)), 4),
        confidence=min(1.0, len(history) / FORECAST_FULL_CONFIDENCE),
        factors=[f"Market volatility: {volatility:.2f}"],
    )


def history_point(vault: CreditVault, timestamp: Optional[float] = None) -> HistoryPoint:
    """Snapshot a vault's current LTV and health factor for later history input."""
    return HistoryPoint(
        timestamp=timestamp if timestamp is not None else vault.last_risk_check,
        ltv=vault.ltv,
        health_factor=vault.health_factor,
    )
