"""Tests for configuration management."""

import os
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

from gainday.config import Config
from gainday.core.data.exceptions import ConfigError


class TestConfigDefaults:
    """Tests for default configuration values."""

    def test_default_paths(self):
        with patch.dict(os.environ, {}, clear=True):
            cfg = Config()
            assert cfg.db_path == Path("./data/gainday.db")

    def test_default_valuation_settings(self):
        with patch.dict(os.environ, {}, clear=True):
            cfg = Config()
            assert cfg.reporting_currency == "JPY"
            assert cfg.skip_weekend_snapshots is True
            assert cfg.top_holdings_limit == 6
            assert cfg.history_lookback_days == 5
            assert cfg.log_level == "WARNING"

    def test_default_nisa_limits(self):
        with patch.dict(os.environ, {}, clear=True):
            limits = Config().quota_limits
            assert limits.tsumitate_annual == Decimal("1200000")
            assert limits.growth_annual == Decimal("2400000")
            assert limits.lifetime == Decimal("18000000")
            assert limits.growth_lifetime == Decimal("12000000")
            assert limits.total_annual == Decimal("3600000")


class TestConfigFromEnv:
    """Tests for configuration from environment variables."""

    def test_custom_db_path(self):
        with patch.dict(os.environ, {"GAINDAY_DB_PATH": "/custom/path.db"}):
            cfg = Config()
            assert cfg.db_path == Path("/custom/path.db")

    def test_reporting_currency_is_uppercased(self):
        with patch.dict(os.environ, {"GAINDAY_REPORTING_CURRENCY": "usd"}):
            assert Config().reporting_currency == "USD"

    @pytest.mark.parametrize("value,expected", [("false", False), ("0", False), ("yes", True), ("ON", True)])
    def test_weekend_flag(self, value, expected):
        with patch.dict(os.environ, {"GAINDAY_SKIP_WEEKENDS": value}):
            assert Config().skip_weekend_snapshots is expected

    def test_nisa_override(self):
        with patch.dict(os.environ, {"GAINDAY_NISA_GROWTH_ANNUAL": "3000000"}):
            assert Config().quota_limits.growth_annual == Decimal("3000000")

    def test_string_path_is_converted(self):
        cfg = Config(db_path="some/where.db")
        assert cfg.db_path == Path("some/where.db")


class TestConfigValidation:
    """Tests for validate() method."""

    def test_defaults_pass(self):
        with patch.dict(os.environ, {}, clear=True):
            Config().validate()  # Should not raise

    def test_unknown_reporting_currency(self):
        with patch.dict(os.environ, {"GAINDAY_REPORTING_CURRENCY": "EUR"}):
            with pytest.raises(ConfigError, match="GAINDAY_REPORTING_CURRENCY"):
                Config().validate()

    def test_growth_lifetime_above_lifetime(self):
        cfg = Config(nisa_growth_lifetime_limit=Decimal("20000000"), nisa_lifetime_limit=Decimal("18000000"))
        with pytest.raises(ConfigError, match="cannot exceed"):
            cfg.validate()

    def test_non_positive_limit(self):
        cfg = Config(nisa_tsumitate_annual_limit=Decimal("0"))
        with pytest.raises(ConfigError, match="GAINDAY_NISA_TSUMITATE_ANNUAL"):
            cfg.validate()

    def test_unparseable_limit(self):
        cfg = Config(nisa_lifetime_limit="lots")
        with pytest.raises(ConfigError, match="GAINDAY_NISA_LIFETIME"):
            cfg.validate()

    @pytest.mark.parametrize("value", ["lots", "NaN", "Infinity"])
    def test_bad_nisa_env_reported_by_validate(self, value):
        with patch.dict(os.environ, {"GAINDAY_NISA_LIFETIME": value}):
            cfg = Config()  # Must not raise while loading
            with pytest.raises(ConfigError, match="GAINDAY_NISA_LIFETIME"):
                cfg.validate()

    def test_negative_lookback(self):
        with pytest.raises(ConfigError, match="LOOKBACK"):
            Config(history_lookback_days=-1).validate()

    def test_zero_top_holdings(self):
        with pytest.raises(ConfigError, match="TOP_HOLDINGS"):
            Config(top_holdings_limit=0).validate()


class TestConfigDirectories:
    """Tests for ensure_directories() method."""

    def test_ensure_directories_creates_paths(self, tmp_path):
        db_path = tmp_path / "db" / "test.db"

        with patch.dict(os.environ, {"GAINDAY_DB_PATH": str(db_path)}):
            cfg = Config()
            cfg.ensure_directories()

            assert db_path.parent.exists()
