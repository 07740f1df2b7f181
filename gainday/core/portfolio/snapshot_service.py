"""
Daily snapshot persistence.

One DailySnapshot exists per scope (a portfolio, or the global aggregate)
per calendar day. Writing a day again replaces that record atomically, so
refreshing several times a day is idempotent.

Cumulative P&L chains through the history of a scope: each record carries
the cumulative value of the nearest earlier record plus its own daily P&L.
When an earlier day is (re)written, every later record of the same scope is
re-chained in the same transaction.
"""

import logging
import threading
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import col, select

from gainday.core.currency import quantize_money
from gainday.core.ledger.enums import TimeRange
from gainday.core.portfolio.breakdown import (
    AssetBreakdown,
    HoldingDailyPnL,
    build_breakdown,
    build_holding_pnls,
    encode_breakdown,
    encode_holding_pnls,
)
from gainday.core.portfolio.valuation import OverallPnL, daily_percent
from gainday.db.database import get_session
from gainday.db.models import GLOBAL_SCOPE, DailySnapshot

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Serializes read-previous / write / re-chain within this process
_upsert_lock = threading.Lock()


@dataclass(frozen=True)
class SnapshotScope:
    """A portfolio (by id) or, when ``portfolio_id`` is None, the global aggregate."""

    portfolio_id: Optional[int] = None

    @property
    def key(self) -> str:
        if self.portfolio_id is None:
            return GLOBAL_SCOPE
        return f"portfolio:{self.portfolio_id}"

    @property
    def is_global(self) -> bool:
        return self.portfolio_id is None


GLOBAL = SnapshotScope()


@dataclass(frozen=True)
class SnapshotValues:
    """Figures to persist for one scope on one day, in ``currency``."""

    currency: str
    total_value: Decimal
    total_cost: Decimal
    daily_pnl: Decimal
    breakdown: tuple[AssetBreakdown, ...] = ()
    holding_pnls: tuple[HoldingDailyPnL, ...] = ()

    @property
    def daily_pnl_percent(self) -> float:
        return daily_percent(self.daily_pnl, self.total_value)


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


# =============================================================================
# Writes
# =============================================================================


def _previous_snapshot(session, scope: SnapshotScope, day: date) -> Optional[DailySnapshot]:
    return session.exec(
        select(DailySnapshot)
        .where(DailySnapshot.scope_key == scope.key, DailySnapshot.snapshot_date < day)
        .order_by(col(DailySnapshot.snapshot_date).desc())
    ).first()


def _rechain_after(session, scope: SnapshotScope, day: date, cumulative: Decimal) -> int:
    later = session.exec(
        select(DailySnapshot)
        .where(DailySnapshot.scope_key == scope.key, DailySnapshot.snapshot_date > day)
        .order_by(DailySnapshot.snapshot_date)
    ).all()
    changed = 0
    for snapshot in later:
        cumulative = quantize_money(cumulative + snapshot.daily_pnl)
        if snapshot.cumulative_pnl != cumulative:
            snapshot.cumulative_pnl = cumulative
            session.add(snapshot)
            changed += 1
    return changed


def upsert_daily_snapshot(scope: SnapshotScope, day: date, values: SnapshotValues) -> DailySnapshot:
    """
    Insert or replace the snapshot of ``scope`` for ``day``.

    The write is a single INSERT ... ON CONFLICT DO UPDATE inside one
    transaction; readers never observe a partially written record.
    ``created_at`` keeps its original value on replacement.

    Returns:
        The stored snapshot (detached from the session).
    """
    total_value = quantize_money(values.total_value)
    total_cost = quantize_money(values.total_cost)
    daily_pnl = quantize_money(values.daily_pnl)

    with _upsert_lock, get_session() as session:
        previous = _previous_snapshot(session, scope, day)
        cumulative = quantize_money((previous.cumulative_pnl if previous else ZERO) + daily_pnl)

        row = {
            "scope_key": scope.key,
            "portfolio_id": scope.portfolio_id,
            "snapshot_date": day,
            "currency": values.currency,
            "total_value": total_value,
            "total_cost": total_cost,
            "daily_pnl": daily_pnl,
            "daily_pnl_percent": round(daily_percent(daily_pnl, total_value), 6),
            "cumulative_pnl": cumulative,
            "breakdown_json": encode_breakdown(values.breakdown),
            "holding_pnls_json": encode_holding_pnls(values.holding_pnls),
            "created_at": datetime.now(timezone.utc),
        }
        statement = sqlite_insert(DailySnapshot).values(**row)
        statement = statement.on_conflict_do_update(
            index_elements=["scope_key", "snapshot_date"],
            set_={name: statement.excluded[name] for name in row if name != "created_at"},
        )
        session.connection().execute(statement)

        rechained = _rechain_after(session, scope, day, cumulative)
        if rechained:
            logger.info(f"Re-chained cumulative P&L of {rechained} later snapshot(s) for {scope.key}")

        snapshot = session.exec(
            select(DailySnapshot).where(
                DailySnapshot.scope_key == scope.key, DailySnapshot.snapshot_date == day
            )
        ).one()
        session.refresh(snapshot)
        session.expunge(snapshot)

    logger.info(
        f"Snapshot {scope.key}@{day.isoformat()}: value={total_value} "
        f"daily={daily_pnl} cumulative={cumulative}"
    )
    return snapshot


def scoped_values(overall: OverallPnL) -> list[tuple[SnapshotScope, SnapshotValues]]:
    """
    Split an overall valuation into per-portfolio and global snapshot values.

    Every scope is expressed in the overall reporting currency. The global
    entry is omitted when no portfolio was valued.
    """
    entries: list[tuple[SnapshotScope, SnapshotValues]] = []
    all_holdings = []

    for contribution in overall.contributions:
        holdings = [(h, contribution.fx_rate) for h in contribution.pnl.holdings]
        all_holdings.extend(holdings)
        entries.append(
            (
                SnapshotScope(contribution.pnl.portfolio_id),
                SnapshotValues(
                    currency=overall.currency,
                    total_value=contribution.total_value,
                    total_cost=contribution.total_cost,
                    daily_pnl=contribution.daily_pnl,
                    breakdown=tuple(build_breakdown(holdings)),
                    holding_pnls=tuple(build_holding_pnls(holdings)),
                ),
            )
        )

    if overall.contributions:
        entries.append(
            (
                GLOBAL,
                SnapshotValues(
                    currency=overall.currency,
                    total_value=overall.total_value,
                    total_cost=overall.total_cost,
                    daily_pnl=overall.daily_pnl,
                    breakdown=tuple(build_breakdown(all_holdings)),
                    holding_pnls=tuple(build_holding_pnls(all_holdings)),
                ),
            )
        )
    return entries


def record_valuation(
    overall: OverallPnL,
    day: Optional[date] = None,
    skip_weekends: bool = True,
) -> list[DailySnapshot]:
    """
    Persist today's valuation: one snapshot per valued portfolio plus the global one.

    Returns:
        Stored snapshots, global last. Empty when the day is skipped.
    """
    day = day or date.today()
    if skip_weekends and is_weekend(day):
        logger.info(f"Skipping snapshot for weekend day {day.isoformat()}")
        return []
    if not overall.contributions:
        logger.warning(f"No portfolio could be valued on {day.isoformat()}, no snapshot written")
        return []

    return [upsert_daily_snapshot(scope, day, values) for scope, values in scoped_values(overall)]


def delete_all_snapshots() -> int:
    """Bulk reset of the snapshot history. Returns the number of rows deleted."""
    with _upsert_lock, get_session() as session:
        snapshots = session.exec(select(DailySnapshot)).all()
        for snapshot in snapshots:
            session.delete(snapshot)
        count = len(snapshots)
    logger.info(f"Deleted {count} snapshots")
    return count


# =============================================================================
# Reads
# =============================================================================


def get_snapshots(
    scope: SnapshotScope = GLOBAL,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[DailySnapshot]:
    """Snapshots of ``scope`` between the given dates (inclusive), oldest first."""
    with get_session() as session:
        statement = select(DailySnapshot).where(DailySnapshot.scope_key == scope.key)
        if start_date is not None:
            statement = statement.where(DailySnapshot.snapshot_date >= start_date)
        if end_date is not None:
            statement = statement.where(DailySnapshot.snapshot_date <= end_date)
        snapshots = session.exec(statement.order_by(DailySnapshot.snapshot_date)).all()
        for snapshot in snapshots:
            session.expunge(snapshot)
        return list(snapshots)


def get_snapshots_for_range(
    time_range: TimeRange,
    scope: SnapshotScope = GLOBAL,
    today: Optional[date] = None,
) -> list[DailySnapshot]:
    today = today or date.today()
    if time_range is TimeRange.ALL:
        return get_snapshots(scope, None, today)
    return get_snapshots(scope, today - timedelta(days=time_range.days), today)


def get_month_snapshots(year: int, month: int, scope: SnapshotScope = GLOBAL) -> list[DailySnapshot]:
    last_day = monthrange(year, month)[1]
    return get_snapshots(scope, date(year, month, 1), date(year, month, last_day))


def get_year_snapshots(year: int, scope: SnapshotScope = GLOBAL) -> list[DailySnapshot]:
    return get_snapshots(scope, date(year, 1, 1), date(year, 12, 31))


def get_latest_snapshot(scope: SnapshotScope = GLOBAL) -> Optional[DailySnapshot]:
    with get_session() as session:
        snapshot = session.exec(
            select(DailySnapshot)
            .where(DailySnapshot.scope_key == scope.key)
            .order_by(col(DailySnapshot.snapshot_date).desc())
        ).first()
        if snapshot is not None:
            session.expunge(snapshot)
        return snapshot


def snapshot_exists(scope: SnapshotScope, day: date) -> bool:
    with get_session() as session:
        return (
            session.exec(
                select(DailySnapshot.id).where(
                    DailySnapshot.scope_key == scope.key, DailySnapshot.snapshot_date == day
                )
            ).first()
            is not None
        )


def existing_dates(scopes: Iterable[SnapshotScope]) -> dict[str, set[date]]:
    """Recorded days per scope key."""
    keys = [scope.key for scope in scopes]
    result: dict[str, set[date]] = {key: set() for key in keys}
    with get_session() as session:
        rows = session.exec(
            select(DailySnapshot.scope_key, DailySnapshot.snapshot_date).where(
                col(DailySnapshot.scope_key).in_(keys)
            )
        ).all()
        for scope_key, snapshot_date in rows:
            result[scope_key].add(snapshot_date)
    return result
