"""
Historical snapshot backfill.

Rebuilds missing daily snapshots from historical closing prices and
exchange rates. For each trading day the ledger is replayed up to that
day, so quantity and average cost are the ones held at the time, and the
same valuation engine used for live refreshes produces the figures.

A day without a price or rate looks back up to ``lookback_days`` calendar
days for the nearest earlier value (exchange holidays). When a rate is
still missing the affected portfolio is skipped for that day rather than
valued at parity.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from gainday.core.currency import required_pairs
from gainday.core.data.quotes import PriceQuote
from gainday.core.ledger.ledger import PortfolioLedger
from gainday.core.portfolio.snapshot_service import (
    GLOBAL,
    SnapshotScope,
    SnapshotValues,
    existing_dates,
    is_weekend,
    scoped_values,
    upsert_daily_snapshot,
)
from gainday.core.portfolio.valuation import aggregate_overall, valuate_all

logger = logging.getLogger(__name__)

PriceHistory = Mapping[str, Mapping[date, Decimal]]
RateHistory = Mapping[tuple[str, str], Mapping[date, Decimal]]


@dataclass(frozen=True)
class BackfillDay:
    day: date
    scope: SnapshotScope
    values: SnapshotValues


def lookup_on_or_before(series: Mapping[date, Decimal], day: date, lookback_days: int) -> Optional[Decimal]:
    """Value on ``day`` or the nearest earlier day within the lookback window."""
    for offset in range(lookback_days + 1):
        value = series.get(day - timedelta(days=offset))
        if value is not None:
            return value
    return None


def _quotes_for_day(
    portfolios: Sequence[PortfolioLedger],
    price_history: PriceHistory,
    day: date,
    lookback_days: int,
) -> dict[str, PriceQuote]:
    quotes = {}
    for portfolio in portfolios:
        for holding in portfolio.holdings:
            if holding.symbol in quotes:
                continue
            series = price_history.get(holding.symbol, {})
            close = lookup_on_or_before(series, day, lookback_days)
            if close is None:
                continue
            previous = lookup_on_or_before(series, day - timedelta(days=1), lookback_days)
            quotes[holding.symbol] = PriceQuote(
                symbol=holding.symbol,
                close=close,
                currency=holding.currency,
                as_of=day,
                previous_close=previous,
            )
    return quotes


def _rates_for_day(
    pairs: set[tuple[str, str]],
    rate_history: RateHistory,
    day: date,
    lookback_days: int,
) -> dict[tuple[str, str], Decimal]:
    rates = {}
    for pair in pairs:
        value = lookup_on_or_before(rate_history.get(pair, {}), day, lookback_days)
        if value is not None:
            rates[pair] = value
    return rates


def build_backfill(
    portfolios: Sequence[PortfolioLedger],
    price_history: PriceHistory,
    rate_history: RateHistory,
    reporting_currency: str,
    start_date: date,
    end_date: date,
    existing: Optional[Mapping[str, set[date]]] = None,
    lookback_days: int = 5,
    skip_weekends: bool = True,
) -> list[BackfillDay]:
    """
    Compute snapshot values for every (scope, day) that has no record yet.

    Scopes with no open position on a day (before the first buy, after a
    full exit) get no record for that day.

    Returns:
        Entries in ascending date order, portfolios before the global scope.
    """
    existing = existing or {}
    pairs = required_pairs(portfolios, reporting_currency, open_only=False)
    result: list[BackfillDay] = []

    day = start_date
    while day <= end_date:
        if skip_weekends and is_weekend(day):
            day += timedelta(days=1)
            continue

        as_of = [
            replace(p, holdings=tuple(h.as_of(day) for h in p.holdings)) for p in portfolios
        ]
        quotes = _quotes_for_day(as_of, price_history, day, lookback_days)
        rates = _rates_for_day(pairs, rate_history, day, lookback_days)
        # Portfolios holding nothing valued on this day get no record
        outcomes = [o for o in valuate_all(as_of, quotes, rates) if not o.ok or o.pnl.holdings]
        overall = aggregate_overall(outcomes, reporting_currency, rates)

        for scope, values in scoped_values(overall):
            if day in existing.get(scope.key, set()):
                continue
            result.append(BackfillDay(day=day, scope=scope, values=values))

        for failure in overall.failures:
            logger.info(f"Backfill {day.isoformat()}: skipped '{failure.portfolio.name}' ({failure.error})")

        day += timedelta(days=1)

    return result


def backfill_snapshots(
    portfolios: Sequence[PortfolioLedger],
    price_history: PriceHistory,
    rate_history: RateHistory,
    reporting_currency: str,
    start_date: date,
    end_date: Optional[date] = None,
    lookback_days: int = 5,
    skip_weekends: bool = True,
) -> int:
    """
    Persist snapshots for every missing (scope, day) between the dates.

    Existing snapshots are left untouched. Cumulative P&L of later records
    is re-chained as earlier days are inserted.

    Returns:
        Number of snapshots written.
    """
    end_date = end_date or date.today()
    scopes = [SnapshotScope(p.portfolio_id) for p in portfolios] + [GLOBAL]
    entries = build_backfill(
        portfolios,
        price_history,
        rate_history,
        reporting_currency,
        start_date,
        end_date,
        existing=existing_dates(scopes),
        lookback_days=lookback_days,
        skip_weekends=skip_weekends,
    )
    for entry in entries:
        upsert_daily_snapshot(entry.scope, entry.day, entry.values)

    logger.info(f"Backfilled {len(entries)} snapshot(s) from {start_date.isoformat()} to {end_date.isoformat()}")
    return len(entries)
