"""Tests for historical snapshot backfill."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from gainday.core.ledger.enums import BaseCurrency
from gainday.core.portfolio.backfill import backfill_snapshots, build_backfill, lookup_on_or_before
from gainday.core.portfolio.snapshot_service import (
    GLOBAL,
    SnapshotScope,
    SnapshotValues,
    get_snapshots,
    upsert_daily_snapshot,
)
from tests.mocks import entry, holding, portfolio

# Mon 3 .. Fri 7 June 2024
WEEK = [date(2024, 6, d) for d in range(3, 8)]


@pytest.fixture(autouse=True)
def setup_db(tmp_db: Path):
    """Use tmp_db fixture from conftest for clean database per test."""
    yield


@pytest.fixture
def book():
    """Buy 10 AAPL on Tuesday, sell 4 on Thursday."""
    return portfolio(
        1,
        "US",
        [
            holding(
                1,
                "AAPL",
                [
                    entry(1, "buy", date(2024, 6, 4), "10", "100"),
                    entry(2, "sell", date(2024, 6, 6), "4", "110"),
                ],
            )
        ],
    )


@pytest.fixture
def prices():
    return {
        "AAPL": {
            date(2024, 5, 31): Decimal("99"),
            date(2024, 6, 3): Decimal("100"),
            date(2024, 6, 4): Decimal("102"),
            # 5 June missing (holiday)
            date(2024, 6, 6): Decimal("108"),
            date(2024, 6, 7): Decimal("105"),
        }
    }


@pytest.fixture
def rates():
    return {("USD", "JPY"): {date(2024, 6, 3): Decimal("150"), date(2024, 6, 6): Decimal("155")}}


class TestLookup:
    def test_exact_and_lookback(self):
        series = {date(2024, 6, 3): Decimal("1")}

        assert lookup_on_or_before(series, date(2024, 6, 3), 0) == Decimal("1")
        assert lookup_on_or_before(series, date(2024, 6, 5), 2) == Decimal("1")
        assert lookup_on_or_before(series, date(2024, 6, 6), 2) is None
        assert lookup_on_or_before(series, date(2024, 6, 2), 5) is None


class TestBuildBackfill:
    def test_replays_ledger_as_of_each_day(self, book, prices, rates):
        entries = build_backfill([book], prices, rates, "JPY", WEEK[0], WEEK[-1])

        portfolio_days = [e for e in entries if e.scope == SnapshotScope(1)]
        # Nothing held on Monday
        assert [e.day for e in portfolio_days] == WEEK[1:]

        tuesday, wednesday, thursday, friday = portfolio_days
        assert tuesday.values.total_value == Decimal("102") * 10 * 150
        assert tuesday.values.total_cost == Decimal("100") * 10 * 150
        assert tuesday.values.daily_pnl == Decimal("2") * 10 * 150
        # Holiday: price and rate carried from Tuesday / Monday
        assert wednesday.values.total_value == Decimal("102") * 10 * 150
        assert wednesday.values.daily_pnl == 0
        # Six units left after Thursday's sale, new rate
        assert thursday.values.total_value == Decimal("108") * 6 * 155
        assert friday.values.daily_pnl == Decimal("-3") * 6 * 155

    def test_global_scope_follows_each_portfolio(self, book, prices, rates):
        entries = build_backfill([book], prices, rates, "JPY", WEEK[0], WEEK[-1])

        global_days = [e.day for e in entries if e.scope == GLOBAL]

        assert global_days == WEEK[1:]

    def test_existing_days_are_skipped(self, book, prices, rates):
        existing = {"portfolio:1": {WEEK[2]}, "global": {WEEK[2], WEEK[3]}}

        entries = build_backfill([book], prices, rates, "JPY", WEEK[0], WEEK[-1], existing=existing)

        assert [e.day for e in entries if e.scope == SnapshotScope(1)] == [WEEK[1], WEEK[3], WEEK[4]]
        assert [e.day for e in entries if e.scope == GLOBAL] == [WEEK[1], WEEK[4]]

    def test_weekends_skipped(self, book, prices, rates):
        entries = build_backfill([book], prices, rates, "JPY", date(2024, 6, 7), date(2024, 6, 10))

        assert {e.day for e in entries} == {date(2024, 6, 7), date(2024, 6, 10)}

    def test_missing_rate_skips_portfolio(self, book, prices):
        entries = build_backfill([book], prices, {}, "JPY", WEEK[0], WEEK[-1])

        assert entries == []

    def test_missing_reporting_rate_keeps_portfolio_scope_out(self, prices, rates):
        usd_book = portfolio(
            1,
            "US",
            [holding(1, "AAPL", [entry(1, "buy", date(2024, 6, 3), "1", "100")])],
            base_currency=BaseCurrency.USD,
        )

        entries = build_backfill([usd_book], prices, {}, "JPY", WEEK[0], WEEK[0])

        assert entries == []


class TestBackfillSnapshots:
    def test_persists_and_chains(self, book, prices, rates):
        written = backfill_snapshots([book], prices, rates, "JPY", WEEK[0], WEEK[-1])

        assert written == 8
        rows = get_snapshots(SnapshotScope(1))
        assert [r.snapshot_date for r in rows] == WEEK[1:]
        running = Decimal("0")
        for row in rows:
            running += row.daily_pnl
            assert row.cumulative_pnl == running

    def test_does_not_overwrite_existing(self, book, prices, rates):
        upsert_daily_snapshot(
            SnapshotScope(1),
            WEEK[2],
            SnapshotValues(currency="JPY", total_value=Decimal("1"), total_cost=Decimal("1"), daily_pnl=Decimal("7")),
        )

        backfill_snapshots([book], prices, rates, "JPY", WEEK[0], WEEK[-1])

        wednesday = [r for r in get_snapshots(SnapshotScope(1)) if r.snapshot_date == WEEK[2]][0]
        assert wednesday.daily_pnl == Decimal("7")
