"""
Pytest configuration and shared fixtures for Gainday tests.

This module provides common fixtures used across all test modules,
including ledger fixtures, quote fixtures and database fixtures.
Ledger builders live in tests.mocks.
"""

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest

from gainday.core.data.quotes import PriceQuote
from gainday.core.ledger.ledger import HoldingLedger
from tests.mocks import entry, holding


# ==============================================================================
# Autouse Fixtures - Run automatically for all tests
# ==============================================================================


@pytest.fixture(autouse=True)
def set_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for testing."""
    monkeypatch.setenv("GAINDAY_DB_PATH", ":memory:")
    monkeypatch.setenv("GAINDAY_REPORTING_CURRENCY", "JPY")
    monkeypatch.setenv("GAINDAY_SKIP_WEEKENDS", "true")


# ==============================================================================
# Ledger Fixtures
# ==============================================================================


@pytest.fixture
def aapl_ledger() -> HoldingLedger:
    """10 AAPL at an average cost of 180 USD."""
    return holding(
        1,
        "AAPL",
        [entry(1, "buy", date(2024, 1, 10), "10", "180", currency="USD")],
        name="Apple Inc.",
    )


@pytest.fixture
def aapl_quote() -> PriceQuote:
    """AAPL closed at 185 after a previous close of 182."""
    return PriceQuote(
        symbol="AAPL",
        close=Decimal("185"),
        currency="USD",
        previous_close=Decimal("182"),
    )


@pytest.fixture
def usd_jpy_rates() -> dict:
    return {("USD", "JPY"): Decimal("150")}


# ==============================================================================
# Database Fixtures
# ==============================================================================


@pytest.fixture
def tmp_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path."""
    return tmp_path / "test_gainday.db"


@pytest.fixture
def tmp_db(tmp_db_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """
    Set up a temporary database for testing.

    Monkeypatches the database path and initializes the schema.
    """
    monkeypatch.setenv("GAINDAY_DB_PATH", str(tmp_db_path))

    # CRITICAL: Also patch the config singleton directly since it reads env at import time
    from gainday.config import config

    monkeypatch.setattr(config, "db_path", tmp_db_path)

    # Reset any existing engine to force creation with new path
    from gainday.db.database import reset_engine

    reset_engine()

    from gainday.db import init_db

    init_db()

    yield tmp_db_path

    # Cleanup
    reset_engine()
    if tmp_db_path.exists():
        tmp_db_path.unlink()


# ==============================================================================
# CLI Test Fixtures
# ==============================================================================


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
