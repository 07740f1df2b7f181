"""Tests for the read-only snapshot projection."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from gainday.core.ledger.enums import TimeRange
from gainday.core.portfolio.breakdown import HoldingDailyPnL
from gainday.core.portfolio.snapshot_service import GLOBAL, SnapshotScope, SnapshotValues, upsert_daily_snapshot
from gainday.core.portfolio.widget import DayCell, WidgetProjection


@pytest.fixture(autouse=True)
def setup_db(tmp_db: Path):
    """Use tmp_db fixture from conftest for clean database per test."""
    yield


def holding_pnl(symbol: str, value: str) -> HoldingDailyPnL:
    return HoldingDailyPnL(symbol, symbol, Decimal(value), Decimal("1"), 0.1)


@pytest.fixture
def history():
    holdings = tuple(holding_pnl(s, v) for s, v in [("A", "100"), ("B", "500"), ("C", "300"), ("D", "50")])
    for day, pnl in [(date(2024, 5, 31), "5"), (date(2024, 6, 3), "-10"), (date(2024, 6, 4), "20")]:
        upsert_daily_snapshot(
            GLOBAL,
            day,
            SnapshotValues(
                currency="JPY",
                total_value=Decimal("950"),
                total_cost=Decimal("900"),
                daily_pnl=Decimal(pnl),
                holding_pnls=holdings,
            ),
        )


class TestWidgetProjection:
    def test_latest(self, history):
        assert WidgetProjection().latest().snapshot_date == date(2024, 6, 4)

    def test_latest_none_without_snapshots(self):
        projection = WidgetProjection(SnapshotScope(3))

        assert projection.latest() is None
        assert projection.top_holdings() == []

    def test_top_holdings(self, history):
        projection = WidgetProjection(top_n=2)

        assert [h.symbol for h in projection.top_holdings()] == ["B", "C"]
        assert [h.symbol for h in projection.top_holdings(3)] == ["B", "C", "A"]

    def test_snapshots_for_range(self, history):
        rows = WidgetProjection().snapshots(TimeRange.ONE_WEEK, today=date(2024, 6, 5))

        assert [r.snapshot_date for r in rows] == [date(2024, 5, 31), date(2024, 6, 3), date(2024, 6, 4)]

    def test_month_grid(self, history):
        cells = WidgetProjection().month_pnl(2024, 6)

        assert [c.day for c in cells] == [date(2024, 6, 3), date(2024, 6, 4)]
        assert all(isinstance(c, DayCell) for c in cells)
        assert cells[0].daily_pnl == Decimal("-10")
        assert cells[1].daily_pnl_percent > 0

    def test_month_stats(self, history):
        stats = WidgetProjection().month_stats(2024, 6)

        assert stats.days == 2
        assert stats.profit_days == 1
        assert stats.loss_days == 1
        assert stats.total_pnl == Decimal("10")
        assert stats.win_rate == pytest.approx(50.0)
