"""Tests for VaultGuard chain configuration — lookup, validation, loading."""

import json

import pytest

from chains import (
    DEFAULT_CHAIN_CONFIGS,
    ChainConfig,
    ChainConfigError,
    ChainId,
    get_chain_config,
    load_chain_configs,
    parse_chain_configs,
)


def _entry(**overrides) -> dict:
    entry = {
        "chain_id": 10,
        "name": "Optimism",
        "native_token": "ETH",
        "base_multiplier": 0.95,
        "score_multiplier": 0.1,
        "volatility_multiplier": 0.9,
        "min_health_factor": 1.15,
        "liquidation_penalty": 0.06,
        "grace_period": 1800,
    }
    entry.update(overrides)
    return entry


class TestLookup:

    def test_ethereum_defaults(self):
        cfg = get_chain_config(1)
        assert cfg.name == "Ethereum"
        assert cfg.base_multiplier == 1.0
        assert cfg.volatility_multiplier == 0.95
        assert cfg.min_health_factor == 1.1

    def test_lookup_by_enum(self):
        assert get_chain_config(ChainId.POLYGON).native_token == "MATIC"

    def test_unknown_chain_rejected(self):
        with pytest.raises(ChainConfigError, match="Unsupported chain ID"):
            get_chain_config(999)

    def test_testnets_not_configured_by_default(self):
        with pytest.raises(ChainConfigError):
            get_chain_config(ChainId.ETHEREUM_SEPOLIA)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            get_chain_config("not-a-chain")

    def test_custom_table(self):
        table = parse_chain_configs([_entry()])
        assert get_chain_config(10, table).name == "Optimism"
        with pytest.raises(ChainConfigError):
            get_chain_config(1, table)


class TestValidation:

    def test_defaults_are_valid(self):
        for cfg in DEFAULT_CHAIN_CONFIGS.values():
            assert 0 < cfg.volatility_multiplier <= 1

    def test_amplifying_volatility_multiplier_rejected(self):
        with pytest.raises(ChainConfigError, match="volatility_multiplier"):
            ChainConfig(**_entry(volatility_multiplier=1.2))

    def test_nan_multiplier_rejected(self):
        with pytest.raises(ChainConfigError, match="finite"):
            ChainConfig(**_entry(base_multiplier=float("nan")))

    def test_penalty_range(self):
        with pytest.raises(ChainConfigError, match="liquidation_penalty"):
            ChainConfig(**_entry(liquidation_penalty=1.0))

    def test_config_is_immutable(self):
        cfg = get_chain_config(1)
        with pytest.raises(Exception):
            cfg.base_multiplier = 2.0


class TestParsing:

    def test_list_and_mapping_forms(self):
        assert 10 in parse_chain_configs([_entry()])
        assert 10 in parse_chain_configs({"optimism": _entry()})

    def test_duplicate_rejected(self):
        with pytest.raises(ChainConfigError, match="Duplicate"):
            parse_chain_configs([_entry(), _entry()])

    def test_missing_fields_rejected(self):
        bad = _entry()
        del bad["min_health_factor"]
        with pytest.raises(ChainConfigError, match="min_health_factor"):
            parse_chain_configs([bad])

    def test_empty_rejected(self):
        with pytest.raises(ChainConfigError):
            parse_chain_configs([])

    def test_non_numeric_rejected(self):
        with pytest.raises(ChainConfigError):
            parse_chain_configs([_entry(base_multiplier="fast")])


class TestLoading:

    def test_no_path_gives_defaults(self):
        table = load_chain_configs()
        assert set(table) == set(DEFAULT_CHAIN_CONFIGS)

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "chains.json"
        path.write_text(json.dumps([_entry()]))
        table = load_chain_configs(str(path))
        assert list(table) == [10]

    def test_missing_file_is_error(self, tmp_path):
        with pytest.raises(ChainConfigError, match="Cannot load"):
            load_chain_configs(str(tmp_path / "absent.json"))

    def test_malformed_file_is_error(self, tmp_path):
        path = tmp_path / "chains.json"
        path.write_text("{not json")
        with pytest.raises(ChainConfigError):
            load_chain_configs(str(path))
