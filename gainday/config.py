"""
Configuration management for Gainday.

Centralizes all configuration from environment variables with sensible defaults.
This is the SINGLE SOURCE OF TRUTH for all application configuration.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """
    Application configuration loaded from environment variables.

    Optional:
        GAINDAY_DB_PATH: Path to SQLite database
        GAINDAY_REPORTING_CURRENCY: Currency of the global aggregate (JPY, CNY, USD, HKD)
        GAINDAY_SKIP_WEEKENDS: Do not persist snapshots on Saturdays and Sundays
        GAINDAY_LOG_LEVEL: Root log level used by the CLI
        GAINDAY_NISA_*: Override the statutory NISA limits
    """

    # Storage paths
    db_path: Path = field(
        default_factory=lambda: Path(
            os.getenv("GAINDAY_DB_PATH", "./data/gainday.db")
        )
    )

    # ========================================================================
    # Valuation & Snapshots
    # ========================================================================
    reporting_currency: str = field(
        default_factory=lambda: os.getenv("GAINDAY_REPORTING_CURRENCY", "JPY").upper()
    )
    skip_weekend_snapshots: bool = field(
        default_factory=lambda: _env_flag("GAINDAY_SKIP_WEEKENDS", "true")
    )
    top_holdings_limit: int = field(
        default_factory=lambda: int(
            os.getenv("GAINDAY_TOP_HOLDINGS", "6")
        )
    )

    # ========================================================================
    # Market Data
    # Lookback is the number of calendar days searched backwards for the
    # nearest historical price or rate when a day has none (holidays).
    # ========================================================================
    quote_timeout_seconds: float = field(
        default_factory=lambda: float(
            os.getenv("GAINDAY_QUOTE_TIMEOUT", "10")
        )
    )
    history_lookback_days: int = field(
        default_factory=lambda: int(
            os.getenv("GAINDAY_HISTORY_LOOKBACK", "5")
        )
    )
    backfill_period: str = field(
        default_factory=lambda: os.getenv("GAINDAY_BACKFILL_PERIOD", "1y")
    )

    # ========================================================================
    # NISA limits (JPY)
    # ========================================================================
    nisa_tsumitate_annual_limit: Decimal = field(
        default_factory=lambda: os.getenv("GAINDAY_NISA_TSUMITATE_ANNUAL", "1200000")
    )
    nisa_growth_annual_limit: Decimal = field(
        default_factory=lambda: os.getenv("GAINDAY_NISA_GROWTH_ANNUAL", "2400000")
    )
    nisa_lifetime_limit: Decimal = field(
        default_factory=lambda: os.getenv("GAINDAY_NISA_LIFETIME", "18000000")
    )
    nisa_growth_lifetime_limit: Decimal = field(
        default_factory=lambda: os.getenv("GAINDAY_NISA_GROWTH_LIFETIME", "12000000")
    )

    # Logging
    log_level: str = field(
        default_factory=lambda: os.getenv("GAINDAY_LOG_LEVEL", "WARNING").upper()
    )

    def __post_init__(self) -> None:
        """Convert string values to their typed forms if needed."""
        if isinstance(self.db_path, str):
            self.db_path = Path(self.db_path)
        for name in (
            "nisa_tsumitate_annual_limit",
            "nisa_growth_annual_limit",
            "nisa_lifetime_limit",
            "nisa_growth_lifetime_limit",
        ):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                try:
                    setattr(self, name, Decimal(str(value)))
                except InvalidOperation:
                    pass  # Reported by validate()

    def validate(self) -> None:
        """
        Validate configuration.

        Raises:
            ConfigError: If a value is missing or out of range.
        """
        from gainday.core.data.exceptions import ConfigError, UnknownEnumValueError
        from gainday.core.ledger.enums import BaseCurrency

        try:
            BaseCurrency.parse(self.reporting_currency)
        except UnknownEnumValueError as e:
            raise ConfigError(f"Invalid GAINDAY_REPORTING_CURRENCY: {e}") from e

        limits = {
            "GAINDAY_NISA_TSUMITATE_ANNUAL": self.nisa_tsumitate_annual_limit,
            "GAINDAY_NISA_GROWTH_ANNUAL": self.nisa_growth_annual_limit,
            "GAINDAY_NISA_LIFETIME": self.nisa_lifetime_limit,
            "GAINDAY_NISA_GROWTH_LIFETIME": self.nisa_growth_lifetime_limit,
        }
        for env_name, value in limits.items():
            if not isinstance(value, Decimal) or not value.is_finite() or value <= 0:
                raise ConfigError(f"{env_name} must be a positive amount, got {value!r}")

        if self.nisa_growth_lifetime_limit > self.nisa_lifetime_limit:
            raise ConfigError(
                "GAINDAY_NISA_GROWTH_LIFETIME cannot exceed GAINDAY_NISA_LIFETIME"
            )

        if self.history_lookback_days < 0:
            raise ConfigError("GAINDAY_HISTORY_LOOKBACK cannot be negative")
        if self.top_holdings_limit < 1:
            raise ConfigError("GAINDAY_TOP_HOLDINGS must be at least 1")

    def ensure_directories(self) -> None:
        """Create data directories if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def quota_limits(self):
        """NISA limits as a QuotaLimits value."""
        from gainday.core.quota.engine import QuotaLimits

        return QuotaLimits(
            tsumitate_annual=self.nisa_tsumitate_annual_limit,
            growth_annual=self.nisa_growth_annual_limit,
            lifetime=self.nisa_lifetime_limit,
            growth_lifetime=self.nisa_growth_lifetime_limit,
        )


# Global configuration instance
config = Config()
