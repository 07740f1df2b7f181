"""Derived statistics over a run of daily snapshots (month bar, year heatmap)."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Protocol

ZERO = Decimal("0")


class SnapshotLike(Protocol):
    snapshot_date: date
    daily_pnl: Decimal
    daily_pnl_percent: float


@dataclass(frozen=True)
class PeriodStats:
    """Summary of the daily P&L over a period."""

    days: int
    total_pnl: Decimal
    profit_days: int
    loss_days: int
    flat_days: int
    average_daily_pnl_percent: float
    best_day: Optional[tuple[date, Decimal]] = None
    worst_day: Optional[tuple[date, Decimal]] = None

    @property
    def win_rate(self) -> float:
        """Profit days over decisive days, in percent. Flat days count toward neither."""
        decisive = self.profit_days + self.loss_days
        if decisive == 0:
            return 0.0
        return self.profit_days / decisive * 100


def summarize_period(snapshots: Iterable[SnapshotLike]) -> PeriodStats:
    snapshots = list(snapshots)
    if not snapshots:
        return PeriodStats(
            days=0,
            total_pnl=ZERO,
            profit_days=0,
            loss_days=0,
            flat_days=0,
            average_daily_pnl_percent=0.0,
        )

    profit = sum(1 for s in snapshots if s.daily_pnl > ZERO)
    loss = sum(1 for s in snapshots if s.daily_pnl < ZERO)
    best = max(snapshots, key=lambda s: s.daily_pnl)
    worst = min(snapshots, key=lambda s: s.daily_pnl)

    return PeriodStats(
        days=len(snapshots),
        total_pnl=sum((s.daily_pnl for s in snapshots), ZERO),
        profit_days=profit,
        loss_days=loss,
        flat_days=len(snapshots) - profit - loss,
        average_daily_pnl_percent=sum(s.daily_pnl_percent for s in snapshots) / len(snapshots),
        best_day=(best.snapshot_date, best.daily_pnl),
        worst_day=(worst.snapshot_date, worst.daily_pnl),
    )


def monthly_totals(snapshots: Iterable[SnapshotLike]) -> dict[int, Decimal]:
    """Sum of daily P&L per month number (1-12) for the year heatmap."""
    totals: dict[int, Decimal] = {}
    for snapshot in snapshots:
        month = snapshot.snapshot_date.month
        totals[month] = totals.get(month, ZERO) + snapshot.daily_pnl
    return totals


def daily_pnl_by_day(snapshots: Iterable[SnapshotLike]) -> dict[date, Decimal]:
    return {s.snapshot_date: s.daily_pnl for s in snapshots}
