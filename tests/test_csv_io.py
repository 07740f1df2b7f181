"""Tests for CSV import and export of the transaction ledger."""

import io
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from gainday.core.data.exceptions import CSVImportError
from gainday.core.portfolio.csv_io import export_transactions, import_transactions, parse_date
from gainday.core.portfolio.manager import PortfolioManager
from gainday.db.database import drop_all, init_db

HEADER = "Account,Symbol,Name,Type,Market,TransactionType,Date,Quantity,Price,Fee,Currency,Note\n"


@pytest.fixture(autouse=True)
def setup_db(tmp_db: Path):
    """Use tmp_db fixture from conftest for clean database per test."""
    yield


def csv(*rows: str) -> io.StringIO:
    return io.StringIO(HEADER + "\n".join(rows) + "\n")


class TestParseDate:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("2024-03-15", date(2024, 3, 15)),
            ("2024/03/15", date(2024, 3, 15)),
            ("03/15/2024", date(2024, 3, 15)),
            ("15/03/2024", date(2024, 3, 15)),
        ],
    )
    def test_accepted_formats(self, text, expected):
        assert parse_date(text) == expected

    def test_unparseable(self):
        assert parse_date("yesterday") is None


class TestImport:
    def test_creates_portfolios_holdings_and_transactions(self):
        result = import_transactions(
            csv(
                "Main,AAPL,Apple Inc.,stock,US,buy,2024-01-10,10,180,1.5,USD,first",
                "Main,7203.T,Toyota,stock,JP,buy,2024-01-11,100,2500,0,JPY,",
                "NISA,1306.T,TOPIX ETF,fund,JP,buy,2024-01-12,10,2000,,JPY,",
            )
        )

        assert result.errors == []
        assert result.portfolios_created == 2
        assert result.holdings_created == 3
        assert result.transactions_created == 3

        ledgers = {p.name: p for p in PortfolioManager().load_ledgers()}
        main = ledgers["Main"]
        assert main.account_type.value == "general"
        aapl = [h for h in main.holdings if h.symbol == "AAPL"][0]
        assert aapl.entries[0].fee == Decimal("1.5")
        assert aapl.entries[0].currency == "USD"
        assert aapl.entries[0].note == "first"

    def test_new_portfolio_uses_row_currency(self):
        import_transactions(csv("US Book,AAPL,Apple,stock,US,buy,2024-01-10,1,180,0,USD,"))

        [ledger] = PortfolioManager().load_ledgers()

        assert ledger.base_currency.value == "USD"

    def test_defaults_for_optional_columns(self):
        data = io.StringIO(
            "Account,Symbol,Name,TransactionType,Date,Quantity,Price\n"
            "Main,7203.T,Toyota,buy,2024-01-10,100,2500\n"
        )

        result = import_transactions(data)

        assert result.transactions_created == 1
        [ledger] = PortfolioManager().load_ledgers()
        [h] = ledger.holdings
        assert h.asset_type.value == "stock"
        assert h.market.value == "JP"
        assert h.entries[0].currency == "JPY"

    def test_sell_before_buy_in_file_is_reordered(self):
        result = import_transactions(
            csv(
                "Main,AAPL,Apple,stock,US,sell,2024-02-01,5,190,0,USD,",
                "Main,AAPL,Apple,stock,US,buy,2024-01-10,10,180,0,USD,",
            )
        )

        assert result.errors == []
        assert result.transactions_created == 2

    def test_bad_rows_reported_with_line_numbers(self):
        result = import_transactions(
            csv(
                "Main,AAPL,Apple,stock,US,buy,2024-01-10,10,180,0,USD,",
                "Main,AAPL,Apple,stock,US,transfer,2024-01-11,1,1,0,USD,",
                "Main,AAPL,Apple,stock,US,buy,not-a-date,1,1,0,USD,",
                "Main,AAPL,Apple,stock,US,buy,2024-01-12,-1,1,0,USD,",
                ",AAPL,Apple,stock,US,buy,2024-01-12,1,1,0,USD,",
                "Main,AAPL,Apple,stock,US,sell,2024-01-13,50,1,0,USD,",
            )
        )

        assert result.transactions_created == 1
        lines = sorted(int(message.split(":")[0].split()[1]) for message in result.errors)
        assert lines == [3, 4, 5, 6, 7]
        assert any("Insufficient quantity" in message for message in result.errors)

    def test_unparseable_fee_reported(self):
        result = import_transactions(csv("Main,AAPL,Apple,stock,US,buy,2024-01-10,10,180,12O,USD,"))

        assert result.transactions_created == 0
        assert result.errors == ["Line 2: invalid fee '12O'"]

    def test_zero_price_row_accepted(self):
        result = import_transactions(csv("Main,7203.T,Toyota,stock,JP,buy,2024-01-10,10,0,0,JPY,bonus shares"))

        assert result.errors == []
        assert result.transactions_created == 1

    def test_existing_portfolio_and_holding_reused(self):
        manager = PortfolioManager()
        existing = manager.create_portfolio("Main", "nisa_growth")
        manager.add_holding(existing.id, "AAPL", "Apple", "stock", "US")

        result = import_transactions(csv("Main,AAPL,Apple,stock,US,buy,2024-01-10,1,180,0,USD,"), manager)

        assert result.portfolios_created == 0
        assert result.holdings_created == 0
        assert result.transactions_created == 1

    def test_missing_required_column(self):
        with pytest.raises(CSVImportError, match="Price"):
            import_transactions(io.StringIO("Account,Symbol,Name,TransactionType,Date,Quantity\n"))

    def test_empty_file(self):
        with pytest.raises(CSVImportError):
            import_transactions(io.StringIO(""))


class TestExport:
    def test_export_layout(self, tmp_path):
        import_transactions(
            csv(
                "Main,AAPL,Apple,stock,US,buy,2024-01-10,10,180.25,1,USD,note",
                "Main,AAPL,Apple,stock,US,dividend,2024-03-10,10,0.24,0,USD,",
            )
        )
        target = tmp_path / "out.csv"

        assert export_transactions(target) == 2

        content = target.read_text().splitlines()
        assert content[0] == HEADER.strip()
        assert content[1] == "Main,AAPL,Apple,stock,US,buy,2024-01-10,10,180.25,1,USD,note"
        assert content[2] == "Main,AAPL,Apple,stock,US,dividend,2024-03-10,10,0.24,0,USD,"

    def test_reimport_into_empty_database_reproduces_entries(self, tmp_path):
        import_transactions(
            csv(
                "Main,AAPL,Apple,stock,US,buy,2024-01-10,10,180.25,1,USD,note",
                "Main,AAPL,Apple,stock,US,sell,2024-02-10,4,190,0.5,USD,",
                "NISA,1306.T,TOPIX ETF,fund,JP,buy,2024-01-12,10,2000,,JPY,",
            )
        )
        before = PortfolioManager().load_ledgers()
        target = tmp_path / "out.csv"
        export_transactions(target)

        drop_all()
        init_db()
        result = import_transactions(target)

        assert result.errors == []
        assert _entry_view(PortfolioManager().load_ledgers()) == _entry_view(before)


def _entry_view(ledgers):
    """Ledger contents without database ids."""
    return [
        (
            p.name,
            h.symbol,
            h.market,
            h.asset_type,
            [(e.kind, e.date, e.quantity, e.price, e.fee, e.currency, e.note) for e in h.ordered()],
        )
        for p in ledgers
        for h in p.holdings
    ]
