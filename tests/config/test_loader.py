"""Tests for YAML configuration loading (fx_config)."""

import logging
from decimal import Decimal
from io import StringIO

import pytest

from fx_config import (
    CONFIG_ENV_VAR,
    configure_logging_from,
    get_active_config,
    load_config,
)
from fx_config.loader import compute_checksum, parse_config
from fx_kernel.exceptions import ConfigurationError
from fx_kernel.logging_config import configure_logging, reset_logging
from fx_modules.orders.config import OrderConfig


def _write(tmp_path, text):
    path = tmp_path / "backoffice.yaml"
    path.write_text(text)
    return path


class TestPackagedDefaults:

    def test_defaults_load(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        config = get_active_config()
        assert config.currency.reference_code == "USDT"
        assert config.settlement.tolerance == Decimal("0.00000001")
        assert config.settlement.derived_amount_places == 8
        assert config.database.url == "sqlite://"
        assert "cancelOrder" in config.authority.as_mapping()["manager"]
        assert len(config.checksum) == 64

    def test_env_override(self, monkeypatch, tmp_path):
        path = _write(tmp_path, "currency:\n  reference_code: usdc\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        config = get_active_config()
        assert config.currency.reference_code == "USDC"
        assert config.source == str(path)

    def test_load_emits_config_trace(self, captured_logs):
        from fx_config import DEFAULT_CONFIG_PATH

        config = load_config(DEFAULT_CONFIG_PATH)
        traces = [r for r in captured_logs() if r["message"] == "FX_CONFIG_TRACE"]
        assert traces[-1]["checksum"] == config.checksum


class TestValidation:

    def test_unknown_section_rejected(self):
        with pytest.raises(ConfigurationError, match="unknown sections"):
            parse_config({"settlemnt": {}}, "inline")

    def test_negative_tolerance_rejected(self):
        with pytest.raises(ConfigurationError, match="tolerance"):
            parse_config({"settlement": {"tolerance": "-1"}}, "inline")

    def test_non_numeric_rate_rejected(self):
        with pytest.raises(ConfigurationError, match="default_rate"):
            parse_config({"settlement": {"default_rate": "abc"}}, "inline")

    def test_bad_log_level_rejected(self):
        with pytest.raises(ConfigurationError, match="logging.level"):
            parse_config({"logging": {"level": "chatty"}}, "inline")

    def test_role_permissions_must_be_lists(self):
        with pytest.raises(ConfigurationError, match="must be a list"):
            parse_config({"authority": {"role_permissions": {"manager": "cancelOrder"}}}, "inline")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="file not found"):
            load_config(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = _write(tmp_path, "settlement: [unclosed\n")
        with pytest.raises(ConfigurationError, match="malformed YAML"):
            load_config(path)

    def test_empty_file_uses_defaults(self, tmp_path):
        config = load_config(_write(tmp_path, ""))
        assert config.settlement.default_rate == Decimal("1")


class TestChecksum:

    def test_key_order_does_not_matter(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_value_change_changes_checksum(self):
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})


class TestOrderConfig:

    def test_from_backoffice(self):
        config = parse_config({"settlement": {"tolerance": "0.01", "default_rate": "2"}}, "inline")
        order_config = OrderConfig.from_backoffice(config)
        assert order_config.settlement_tolerance == Decimal("0.01")
        assert order_config.default_rate == Decimal("2")
        assert order_config.reference_currency == "USDT"

    def test_from_dict_parses_decimals(self):
        order_config = OrderConfig.from_dict({"settlement_tolerance": "0.5", "reference_currency": "usdc"})
        assert order_config.settlement_tolerance == Decimal("0.5")
        assert order_config.reference_currency == "USDC"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"settlement_tolerance": Decimal("-1")},
            {"derived_amount_places": -1},
            {"default_rate": Decimal("0")},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            OrderConfig(**kwargs)


class TestLoggingFromConfig:

    def test_level_applied(self):
        config = parse_config({"logging": {"level": "warning"}}, "inline")
        try:
            reset_logging()
            configure_logging_from(config, stream=StringIO())
            assert logging.getLogger("fx_kernel").level == logging.WARNING
        finally:
            reset_logging()
            configure_logging(level=logging.DEBUG, stream=StringIO())
