"""
Refresh orchestration.

A refresh fetches every quote and every needed exchange rate concurrently,
freezes them, then runs the pure valuation engines once and persists the
day's snapshots. Concurrent refreshes of the same portfolio set join the
refresh already in flight; refreshes of different sets run one at a time.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from gainday.core.currency import required_pairs
from gainday.core.data.market_data import QuoteProvider, RateProvider
from gainday.core.data.quotes import PriceQuote
from gainday.core.ledger.ledger import PortfolioLedger
from gainday.core.portfolio.snapshot_service import record_valuation
from gainday.core.portfolio.valuation import OverallPnL, ValuationOutcome, aggregate_overall, valuate_all
from gainday.db.models import DailySnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshResult:
    """Everything one refresh produced."""

    overall: OverallPnL
    outcomes: tuple[ValuationOutcome, ...]
    quotes: Mapping[str, PriceQuote]
    rates: Mapping[tuple[str, str], Decimal]
    failed_pairs: tuple[tuple[str, str], ...] = ()
    snapshots: tuple[DailySnapshot, ...] = field(default_factory=tuple)

    @property
    def missing_quotes(self) -> list[str]:
        symbols: list[str] = []
        for outcome in self.outcomes:
            if outcome.ok:
                for symbol in outcome.pnl.missing_quotes:
                    if symbol not in symbols:
                        symbols.append(symbol)
        return symbols

    @property
    def failures(self) -> tuple[ValuationOutcome, ...]:
        return self.overall.failures


class RefreshCoordinator:
    """Runs refreshes against a quote/rate provider."""

    def __init__(
        self,
        quote_provider: QuoteProvider,
        rate_provider: Optional[RateProvider] = None,
        reporting_currency: str = "JPY",
        skip_weekends: bool = True,
    ):
        self.quote_provider = quote_provider
        self.rate_provider = rate_provider or quote_provider
        self.reporting_currency = reporting_currency
        self.skip_weekends = skip_weekends
        self._lock = asyncio.Lock()
        self._inflight: dict[tuple, asyncio.Future] = {}

    async def refresh(
        self,
        portfolios: Sequence[PortfolioLedger],
        day: Optional[date] = None,
        persist: bool = True,
    ) -> RefreshResult:
        """
        Refresh quotes and rates, value every portfolio and record snapshots.

        Args:
            portfolios: Frozen ledger views to value
            day: Snapshot day (defaults to today)
            persist: Write snapshots when True

        Returns:
            RefreshResult with the overall valuation and per-portfolio outcomes.
        """
        key = (tuple(p.portfolio_id for p in portfolios), day, persist)
        inflight = self._inflight.get(key)
        if inflight is not None:
            logger.info("Refresh already in progress for this portfolio set, joining it")
            return await asyncio.shield(inflight)

        task = asyncio.ensure_future(self._run_serialized(list(portfolios), day, persist))
        self._inflight[key] = task
        task.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _run_serialized(self, portfolios, day, persist) -> RefreshResult:
        async with self._lock:
            return await self._run(portfolios, day, persist)

    async def _fetch_rates(self, pairs) -> tuple[dict, list]:
        results = await asyncio.gather(
            *(asyncio.to_thread(self.rate_provider.fetch_rate, f, t) for f, t in pairs),
            return_exceptions=True,
        )
        rates = {}
        failed = []
        for pair, result in zip(pairs, results):
            if isinstance(result, Exception):
                logger.warning(f"Rate {pair[0]}->{pair[1]} unavailable: {result}")
                failed.append(pair)
            else:
                rates[pair] = result
        return rates, failed

    async def _run(self, portfolios: list[PortfolioLedger], day: Optional[date], persist: bool) -> RefreshResult:
        symbols = sorted({h.symbol for p in portfolios for h in p.holdings})
        pairs = sorted(required_pairs(portfolios, self.reporting_currency))

        if symbols:
            quotes_task = asyncio.to_thread(self.quote_provider.fetch_quotes, symbols)
        else:
            quotes_task = asyncio.sleep(0, result={})
        quotes, (rates, failed) = await asyncio.gather(quotes_task, self._fetch_rates(pairs))

        frozen_quotes = MappingProxyType(dict(quotes))
        frozen_rates = MappingProxyType(rates)
        logger.info(
            f"Fetched {len(frozen_quotes)}/{len(symbols)} quotes and "
            f"{len(frozen_rates)}/{len(pairs)} rates"
        )

        outcomes = valuate_all(portfolios, frozen_quotes, frozen_rates)
        overall = aggregate_overall(outcomes, self.reporting_currency, frozen_rates)

        snapshots = []
        if persist:
            snapshots = await asyncio.to_thread(
                record_valuation, overall, day or date.today(), self.skip_weekends
            )

        return RefreshResult(
            overall=overall,
            outcomes=tuple(outcomes),
            quotes=frozen_quotes,
            rates=frozen_rates,
            failed_pairs=tuple(failed),
            snapshots=tuple(snapshots),
        )
