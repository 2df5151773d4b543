"""
Unit Tests for Configuration Module

These tests verify that the configuration system works correctly:
- Default values are applied when nothing is set
- UNITRADE_ environment variables override defaults
- Validation catches invalid configurations

Run with:
    pytest tests/unit/test_config.py -v
"""

import pytest

from unitrade.core.config import Settings, settings, validate_configuration


def fresh_settings(**overrides):
    """Settings that ignore any local .env file"""
    return Settings(_env_file=None, **overrides)


class TestConfigurationDefaults:
    """Test that defaults are sensible"""

    def test_binance_urls_are_https(self):
        config = fresh_settings()
        for url in (
            config.binance_spot_base_url,
            config.binance_perp_base_url,
            config.binance_spot_sandbox_url,
            config.binance_perp_sandbox_url,
        ):
            assert url.startswith("https://")
            assert "binance" in url

    def test_sandbox_differs_from_live(self):
        config = fresh_settings()
        assert config.binance_spot_sandbox_url != config.binance_spot_base_url
        assert config.binance_perp_sandbox_url != config.binance_perp_base_url

    def test_numeric_defaults_are_positive(self):
        config = fresh_settings()
        assert config.decimal_precision > 0
        assert config.default_ohlcv_limit > 0
        assert config.request_timeout > 0
        assert config.position_mode_ttl == 300
        assert config.binance_recv_window == 5000

    def test_client_order_id_prefix(self):
        assert fresh_settings().client_order_id_prefix == "unitrade"

    def test_global_settings_instance(self):
        assert isinstance(settings, Settings)


class TestEnvironmentOverrides:
    """Test that UNITRADE_ environment variables are honored"""

    def test_prefixed_variables_override(self, monkeypatch):
        monkeypatch.setenv("UNITRADE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("UNITRADE_DEFAULT_OHLCV_LIMIT", "250")

        config = fresh_settings()

        assert config.log_level == "DEBUG"
        assert config.default_ohlcv_limit == 250

    def test_unprefixed_variables_ignored(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        monkeypatch.delenv("UNITRADE_LOG_LEVEL", raising=False)

        assert fresh_settings().log_level == "INFO"


class TestConfigurationValidation:
    """Test validate_configuration"""

    def test_valid_configuration_passes(self):
        validate_configuration(fresh_settings())

    def test_invalid_log_level(self):
        with pytest.raises(ValueError, match="LOG_LEVEL"):
            validate_configuration(fresh_settings(log_level="VERBOSE"))

    @pytest.mark.parametrize("field", [
        "request_timeout",
        "decimal_precision",
        "default_ohlcv_limit",
        "position_mode_ttl",
        "binance_recv_window",
    ])
    def test_non_positive_numbers(self, field):
        with pytest.raises(ValueError, match=field.upper()):
            validate_configuration(fresh_settings(**{field: 0}))

    def test_non_http_url(self):
        with pytest.raises(ValueError, match="BINANCE_PERP_BASE_URL"):
            validate_configuration(fresh_settings(binance_perp_base_url="ftp://fapi.binance.com"))
