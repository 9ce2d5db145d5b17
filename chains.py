# VaultGuard Chain Configuration — per-network LTV and liquidation constants
#
# Each supported chain carries two groups of constants:
#   LTV adjustments:      base multiplier, score multiplier, volatility multiplier
#   Liquidation settings: min health factor, liquidation penalty, grace period
#
# The table is immutable and loaded once at startup. Unknown chain ids are
# rejected; there is no fallback chain.

import json
import logging
import math
import os
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

log = logging.getLogger("vaultguard.chains")

CHAINS_FILE = os.environ.get("VAULTGUARD_CHAINS_FILE", "")


class ChainConfigError(ValueError):
    """Unknown chain id or malformed chain configuration."""


class ChainId(int, Enum):
    ETHEREUM = 1
    ARBITRUM = 42161
    POLYGON = 137
    ETHEREUM_SEPOLIA = 11155111
    ARBITRUM_SEPOLIA = 421614
    POLYGON_MUMBAI = 80001


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    name: str
    native_token: str

    # LTV adjustments
    base_multiplier: float
    score_multiplier: float
    volatility_multiplier: float

    # Liquidation settings
    min_health_factor: float
    liquidation_penalty: float
    grace_period: int                # seconds

    def __post_init__(self):
        for name in ("base_multiplier", "score_multiplier", "volatility_multiplier",
                     "min_health_factor", "liquidation_penalty"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ChainConfigError(
                    f"Chain {self.chain_id}: {name} must be a finite number, got {value!r}"
                )
        if self.base_multiplier <= 0:
            raise ChainConfigError(f"Chain {self.chain_id}: base_multiplier must be > 0")
        if self.score_multiplier < 0:
            raise ChainConfigError(f"Chain {self.chain_id}: score_multiplier must be >= 0")
        # Must dampen, never amplify, as volatility rises
        if not 0 < self.volatility_multiplier <= 1:
            raise ChainConfigError(
                f"Chain {self.chain_id}: volatility_multiplier must be in (0, 1]"
            )
        if self.min_health_factor <= 0:
            raise ChainConfigError(f"Chain {self.chain_id}: min_health_factor must be > 0")
        if not 0 <= self.liquidation_penalty < 1:
            raise ChainConfigError(
                f"Chain {self.chain_id}: liquidation_penalty must be in [0, 1)"
            )
        if self.grace_period < 0:
            raise ChainConfigError(f"Chain {self.chain_id}: grace_period must be >= 0")

    def to_dict(self) -> dict:
        return asdict(self)


DEFAULT_CHAIN_CONFIGS: dict[int, ChainConfig] = {
    ChainId.ETHEREUM: ChainConfig(
        chain_id=ChainId.ETHEREUM,
        name="Ethereum",
        native_token="ETH",
        base_multiplier=1.0,
        score_multiplier=0.1,
        volatility_multiplier=0.95,
        min_health_factor=1.1,
        liquidation_penalty=0.05,
        grace_period=3600,        # 1 hour
    ),
    ChainId.ARBITRUM: ChainConfig(
        chain_id=ChainId.ARBITRUM,
        name="Arbitrum",
        native_token="ETH",
        base_multiplier=0.95,
        score_multiplier=0.1,
        volatility_multiplier=0.90,
        min_health_factor=1.15,
        liquidation_penalty=0.06,
        grace_period=1800,        # 30 minutes
    ),
    ChainId.POLYGON: ChainConfig(
        chain_id=ChainId.POLYGON,
        name="Polygon",
        native_token="MATIC",
        base_multiplier=0.90,
        score_multiplier=0.1,
        volatility_multiplier=0.85,
        min_health_factor=1.2,
        liquidation_penalty=0.07,
        grace_period=1200,        # 20 minutes
    ),
}


def get_chain_config(chain_id: int,
                     configs: Optional[dict[int, ChainConfig]] = None) -> ChainConfig:
    """Look up a chain's constants. Raises ChainConfigError for unknown ids."""
    table = DEFAULT_CHAIN_CONFIGS if configs is None else configs
    try:
        return table[int(chain_id)]
    except (KeyError, TypeError, ValueError):
        raise ChainConfigError(f"Unsupported chain ID: {chain_id!r}") from None


_REQUIRED_FIELDS = (
    "chain_id", "name", "base_multiplier", "score_multiplier",
    "volatility_multiplier", "min_health_factor", "liquidation_penalty",
    "grace_period",
)


def _parse_chain_entry(entry: dict) -> ChainConfig:
    if not isinstance(entry, dict):
        raise ChainConfigError(f"Chain entry must be an object, got {type(entry).__name__}")
    missing = [k for k in _REQUIRED_FIELDS if k not in entry]
    if missing:
        raise ChainConfigError(
            f"Chain entry {entry.get('chain_id', '?')} missing fields: {', '.join(missing)}"
        )
    try:
        return ChainConfig(
            chain_id=int(entry["chain_id"]),
            name=str(entry["name"]),
            native_token=str(entry.get("native_token", "")),
            base_multiplier=float(entry["base_multiplier"]),
            score_multiplier=float(entry["score_multiplier"]),
            volatility_multiplier=float(entry["volatility_multiplier"]),
            min_health_factor=float(entry["min_health_factor"]),
            liquidation_penalty=float(entry["liquidation_penalty"]),
            grace_period=int(entry["grace_period"]),
        )
    except (TypeError, ValueError) as e:
        if isinstance(e, ChainConfigError):
            raise
        raise ChainConfigError(f"Chain entry {entry.get('chain_id')}: {e}") from e


def parse_chain_configs(data) -> dict[int, ChainConfig]:
    """Build a chain table from a list of entries or a {chain_id: entry} mapping."""
    entries = list(data.values()) if isinstance(data, dict) else data
    if not isinstance(entries, list) or not entries:
        raise ChainConfigError("Chain configuration must be a non-empty list or object")

    table: dict[int, ChainConfig] = {}
    for entry in entries:
        cfg = _parse_chain_entry(entry)
        if cfg.chain_id in table:
            raise ChainConfigError(f"Duplicate chain ID: {cfg.chain_id}")
        table[cfg.chain_id] = cfg
    return table


def load_chain_configs(path: Optional[str] = None) -> dict[int, ChainConfig]:
    """Load the chain table from a JSON file, or the built-in defaults.

    The path defaults to VAULTGUARD_CHAINS_FILE. A missing or malformed file
    is a configuration error, not a reason to fall back.
    """
    path = path or CHAINS_FILE
    if not path:
        return dict(DEFAULT_CHAIN_CONFIGS)
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ChainConfigError(f"Cannot load chain configuration from {path}: {e}") from e

    table = parse_chain_configs(data)
    log.info("Loaded %d chain configs from %s", len(table), path)
    return table
