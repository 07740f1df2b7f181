"""In-memory quote and rate provider for refresh and backfill tests."""

import threading
import time
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from gainday.core.data.exceptions import MarketDataError
from gainday.core.data.quotes import PriceQuote
from gainday.core.ledger.enums import MarketState


def make_quote(
    symbol: str,
    close: str,
    previous_close: Optional[str] = None,
    currency: str = "USD",
    market_state: Optional[MarketState] = None,
    pre: Optional[str] = None,
    post: Optional[str] = None,
) -> PriceQuote:
    return PriceQuote(
        symbol=symbol,
        close=Decimal(close),
        currency=currency,
        previous_close=Decimal(previous_close) if previous_close is not None else None,
        pre_market_price=Decimal(pre) if pre is not None else None,
        post_market_price=Decimal(post) if post is not None else None,
        market_state=market_state,
    )


class FakeMarketData:
    """
    QuoteProvider and RateProvider over fixed dictionaries.

    Records every call so tests can assert how often the network would
    have been hit. ``delay`` slows each call down to let concurrent
    refreshes overlap.
    """

    def __init__(self, quotes=None, rates=None, price_history=None, rate_history=None, delay: float = 0.0):
        self.quotes = dict(quotes or {})
        self.rates = dict(rates or {})
        self.price_history = dict(price_history or {})
        self.rate_history = dict(rate_history or {})
        self.delay = delay
        self.quote_calls: list[tuple[str, ...]] = []
        self.rate_calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def fetch_quotes(self, symbols: Iterable[str]) -> dict[str, PriceQuote]:
        symbols = tuple(symbols)
        with self._lock:
            self.quote_calls.append(symbols)
        if self.delay:
            time.sleep(self.delay)
        return {s: self.quotes[s] for s in symbols if s in self.quotes}

    def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        with self._lock:
            self.rate_calls.append((from_currency, to_currency))
        try:
            return self.rates[(from_currency, to_currency)]
        except KeyError:
            raise MarketDataError(f"No rate for {from_currency}{to_currency}") from None

    def fetch_price_history(self, symbols: Iterable[str], period: str = "1y") -> dict[str, dict[date, Decimal]]:
        return {s: self.price_history[s] for s in symbols if s in self.price_history}

    def fetch_rate_history(self, from_currency: str, to_currency: str, period: str = "1y") -> dict[date, Decimal]:
        try:
            return self.rate_history[(from_currency, to_currency)]
        except KeyError:
            raise MarketDataError(f"No rate history for {from_currency}{to_currency}") from None
