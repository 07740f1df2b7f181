"""
Tests for CLI commands.

Tests cover:
- Main CLI group and help
- portfolio, holding and transaction commands
- refresh with a fake market data provider
- snapshot, nisa and db commands
- Error handling and exit codes
"""

import json
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

from gainday.cli.main import cli
from gainday.core.portfolio.snapshot_service import GLOBAL, get_snapshots
from tests.mocks import FakeMarketData, make_quote


@pytest.fixture(autouse=True)
def setup_db(tmp_db: Path):
    """Use tmp_db fixture from conftest for clean database per test."""
    yield


@pytest.fixture
def aapl_book(cli_runner):
    """Portfolio #1 holding #1: 10 AAPL bought at 180."""
    for args in (
        ["portfolio", "create", "Main"],
        ["portfolio", "add-holding", "1", "AAPL", "-n", "Apple"],
        ["portfolio", "buy", "1", "-q", "10", "-p", "180", "-d", "2024-01-10"],
    ):
        result = cli_runner.invoke(cli, args)
        assert result.exit_code == 0, result.output


class TestCLIMain:
    """Tests for main CLI group."""

    def test_help(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "Gainday" in result.output
        assert "Ledger" in result.output
        assert "Valuation" in result.output

    def test_version(self, cli_runner):
        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "gainday" in result.output.lower()


class TestPortfolioCommands:
    def test_create_and_list(self, cli_runner):
        result = cli_runner.invoke(cli, ["portfolio", "create", "NISA", "-a", "nisa_growth"])
        assert result.exit_code == 0
        assert "Created portfolio #1" in result.output

        result = cli_runner.invoke(cli, ["portfolio", "list", "--json"])
        data = json.loads(result.output)
        assert data[0]["name"] == "NISA"
        assert data[0]["account_type"] == "nisa_growth"

    def test_list_empty(self, cli_runner):
        result = cli_runner.invoke(cli, ["portfolio", "list"])

        assert result.exit_code == 0
        assert "No portfolios yet" in result.output

    def test_holdings_after_buy(self, cli_runner, aapl_book):
        result = cli_runner.invoke(cli, ["portfolio", "holdings", "1", "--json"])

        assert result.exit_code == 0
        [position] = json.loads(result.output)
        assert position["symbol"] == "AAPL"
        assert position["currency"] == "USD"
        assert Decimal(position["quantity"]) == 10
        assert Decimal(position["average_cost"]) == 180

    def test_oversell_rejected(self, cli_runner, aapl_book):
        result = cli_runner.invoke(cli, ["portfolio", "sell", "1", "-q", "11", "-p", "190", "-d", "2024-02-01"])

        assert result.exit_code == 1
        assert "Rejected" in result.output

    def test_sell_before_buy_date_rejected(self, cli_runner, aapl_book):
        result = cli_runner.invoke(cli, ["portfolio", "sell", "1", "-q", "1", "-p", "190", "-d", "2024-01-01"])

        assert result.exit_code == 1

    def test_bad_date(self, cli_runner, aapl_book):
        result = cli_runner.invoke(cli, ["portfolio", "buy", "1", "-q", "1", "-p", "1", "-d", "01-02-2024"])

        assert result.exit_code != 0
        assert "YYYY-MM-DD" in result.output

    def test_unknown_holding(self, cli_runner):
        result = cli_runner.invoke(cli, ["portfolio", "buy", "99", "-q", "1", "-p", "1"])

        assert result.exit_code == 1
        assert "Not found" in result.output

    def test_export_and_import(self, cli_runner, aapl_book, tmp_path):
        target = tmp_path / "ledger.csv"

        result = cli_runner.invoke(cli, ["portfolio", "export", str(target)])
        assert result.exit_code == 0
        assert "Exported 1 transaction" in result.output

        cli_runner.invoke(cli, ["portfolio", "delete", "1", "--yes"])
        result = cli_runner.invoke(cli, ["portfolio", "import", str(target)])
        assert result.exit_code == 0
        assert "Imported 1 transaction" in result.output


class TestRefreshCommand:
    @pytest.fixture
    def provider(self):
        return FakeMarketData(
            quotes={"AAPL": make_quote("AAPL", "185", previous_close="182")},
            rates={("USD", "JPY"): Decimal("150")},
        )

    def test_refresh_records_snapshots(self, cli_runner, aapl_book, provider):
        with patch("gainday.cli.commands.refresh.YahooMarketData", return_value=provider):
            result = cli_runner.invoke(cli, ["refresh", "--date", "2024-06-03"])

        assert result.exit_code == 0, result.output
        assert "Recorded 2 snapshot(s)" in result.output
        [snapshot] = get_snapshots(GLOBAL)
        assert snapshot.total_value == Decimal("277500")
        assert snapshot.daily_pnl == Decimal("4500")

    def test_no_save(self, cli_runner, aapl_book, provider):
        with patch("gainday.cli.commands.refresh.YahooMarketData", return_value=provider):
            result = cli_runner.invoke(cli, ["refresh", "--no-save", "--date", "2024-06-03"])

        assert result.exit_code == 0
        assert get_snapshots(GLOBAL) == []

    def test_missing_rate_reported(self, cli_runner, aapl_book):
        provider = FakeMarketData(quotes={"AAPL": make_quote("AAPL", "185")})

        with patch("gainday.cli.commands.refresh.YahooMarketData", return_value=provider):
            result = cli_runner.invoke(cli, ["refresh", "--date", "2024-06-03"])

        assert result.exit_code == 0
        assert "Skipped 'Main'" in result.output

    def test_nothing_to_refresh(self, cli_runner):
        result = cli_runner.invoke(cli, ["refresh"])

        assert result.exit_code == 0
        assert "No portfolios" in result.output


class TestSnapshotCommands:
    def test_list_empty(self, cli_runner):
        result = cli_runner.invoke(cli, ["snapshot", "list"])

        assert result.exit_code == 0
        assert "No snapshots" in result.output

    def test_list_after_refresh(self, cli_runner, aapl_book):
        provider = FakeMarketData(
            quotes={"AAPL": make_quote("AAPL", "185", previous_close="182")},
            rates={("USD", "JPY"): Decimal("150")},
        )
        with patch("gainday.cli.commands.refresh.YahooMarketData", return_value=provider):
            cli_runner.invoke(cli, ["refresh", "--date", "2024-06-03"])

        result = cli_runner.invoke(cli, ["snapshot", "list", "--range", "ALL", "--json"])

        assert result.exit_code == 0
        [row] = json.loads(result.output)
        assert row["date"] == "2024-06-03"


class TestNisaCommand:
    def test_growth_usage(self, cli_runner):
        for args in (
            ["portfolio", "create", "NISA", "-a", "nisa_growth"],
            ["portfolio", "add-holding", "1", "7203.T", "-m", "JP"],
            ["portfolio", "buy", "1", "-q", "100", "-p", "2500", "-d", "2024-03-01"],
        ):
            assert cli_runner.invoke(cli, args).exit_code == 0

        result = cli_runner.invoke(cli, ["nisa", "--year", "2024", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert Decimal(data["growth"]["annual_used"]) == Decimal("250000")
        assert Decimal(data["tsumitate"]["annual_used"]) == 0

    def test_table_output(self, cli_runner):
        result = cli_runner.invoke(cli, ["nisa", "--year", "2024"])

        assert result.exit_code == 0
        assert "NISA quota 2024" in result.output


class TestDbCommands:
    def test_init(self, cli_runner):
        result = cli_runner.invoke(cli, ["db", "init"])

        assert result.exit_code == 0
        assert "Database ready" in result.output

    def test_migrate_nothing_pending(self, cli_runner):
        result = cli_runner.invoke(cli, ["db", "migrate", "--dry-run"])

        assert result.exit_code == 0
        assert "0 portfolio(s) would be migrated" in result.output

    def test_reset_snapshots_only(self, cli_runner, aapl_book):
        result = cli_runner.invoke(cli, ["db", "reset", "--snapshots-only", "--yes"])

        assert result.exit_code == 0
        assert "Deleted 0 snapshot(s)" in result.output
        assert "Main" in cli_runner.invoke(cli, ["portfolio", "list"]).output
