"""
Read-only projection of the snapshot history for compact displays.

Everything here is a query over persisted snapshots; nothing is recomputed
from quotes, so a widget shows exactly what the last refresh recorded.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from gainday.core.ledger.enums import TimeRange
from gainday.core.portfolio.breakdown import HoldingDailyPnL
from gainday.core.portfolio.snapshot_service import (
    GLOBAL,
    SnapshotScope,
    get_latest_snapshot,
    get_month_snapshots,
    get_snapshots_for_range,
)
from gainday.core.portfolio.stats import PeriodStats, summarize_period
from gainday.db.models import DailySnapshot


@dataclass(frozen=True)
class DayCell:
    """One day of the month grid."""

    day: date
    daily_pnl: Decimal
    daily_pnl_percent: float


class WidgetProjection:
    """Latest snapshot, ranged history, top holdings and the month grid for one scope."""

    def __init__(self, scope: SnapshotScope = GLOBAL, top_n: int = 6):
        self.scope = scope
        self.top_n = top_n

    def latest(self) -> Optional[DailySnapshot]:
        return get_latest_snapshot(self.scope)

    def snapshots(self, time_range: TimeRange = TimeRange.ONE_MONTH, today: Optional[date] = None) -> list[DailySnapshot]:
        return get_snapshots_for_range(time_range, self.scope, today)

    def top_holdings(self, n: Optional[int] = None) -> list[HoldingDailyPnL]:
        """Largest holdings by market value in the latest snapshot."""
        latest = self.latest()
        if latest is None:
            return []
        holdings = sorted(latest.holding_pnls, key=lambda h: (-h.market_value, h.symbol))
        return holdings[: n or self.top_n]

    def month_pnl(self, year: int, month: int) -> list[DayCell]:
        return [
            DayCell(day=s.snapshot_date, daily_pnl=s.daily_pnl, daily_pnl_percent=s.daily_pnl_percent)
            for s in get_month_snapshots(year, month, self.scope)
        ]

    def month_stats(self, year: int, month: int) -> PeriodStats:
        return summarize_period(get_month_snapshots(year, month, self.scope))
