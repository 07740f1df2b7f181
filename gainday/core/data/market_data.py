"""
Market data via Yahoo Finance.

Provides live quotes (with extended-hours prices and session state),
exchange rates and daily closing history for the backfill. Fetching is
blocking; the refresh coordinator runs it in worker threads.

Partial failure is tolerated for quotes and history: a symbol that cannot
be fetched is logged and left out of the result. A rate that cannot be
fetched raises MarketDataError so the caller can record the missing pair.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Protocol

import yfinance as yf

from gainday.core.currency import to_decimal
from gainday.core.data.exceptions import MarketDataError, UnknownEnumValueError
from gainday.core.data.quotes import PriceQuote
from gainday.core.ledger.enums import MarketState

logger = logging.getLogger(__name__)


class QuoteProvider(Protocol):
    def fetch_quotes(self, symbols: Iterable[str]) -> dict[str, PriceQuote]: ...

    def fetch_price_history(self, symbols: Iterable[str], period: str = "1y") -> dict[str, dict[date, Decimal]]: ...


class RateProvider(Protocol):
    def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal: ...

    def fetch_rate_history(self, from_currency: str, to_currency: str, period: str = "1y") -> dict[date, Decimal]: ...


def rate_symbol(from_currency: str, to_currency: str) -> str:
    """Yahoo FX symbol, e.g. ``USDJPY=X``."""
    return f"{from_currency}{to_currency}=X"


def _optional_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        result = to_decimal(value)
    except ArithmeticError:
        return None
    if not result.is_finite():
        return None
    return result


def quote_from_info(symbol: str, info: dict) -> Optional[PriceQuote]:
    """
    Build a PriceQuote from a yfinance ``info`` dict.

    Returns:
        None when the payload has no regular-market price.

    Raises:
        UnknownEnumValueError: If the market state is not recognised.
    """
    close = _optional_decimal(info.get("regularMarketPrice") or info.get("currentPrice"))
    if close is None:
        return None

    state = info.get("marketState")
    return PriceQuote(
        symbol=symbol,
        close=close,
        currency=str(info.get("currency") or "").upper(),
        as_of=date.today(),
        open=_optional_decimal(info.get("regularMarketOpen")),
        high=_optional_decimal(info.get("regularMarketDayHigh") or info.get("dayHigh")),
        low=_optional_decimal(info.get("regularMarketDayLow") or info.get("dayLow")),
        previous_close=_optional_decimal(
            info.get("regularMarketPreviousClose") or info.get("previousClose")
        ),
        pre_market_price=_optional_decimal(info.get("preMarketPrice")),
        post_market_price=_optional_decimal(info.get("postMarketPrice")),
        market_state=MarketState.parse(state) if state else None,
    )


def _close_series(history) -> dict[date, Decimal]:
    """Convert a yfinance history DataFrame into {day: close}."""
    if history is None or history.empty or "Close" not in history:
        return {}
    series = {}
    for timestamp, close in history["Close"].dropna().items():
        value = _optional_decimal(float(close))
        if value is not None:
            series[timestamp.date()] = value
    return series


class YahooMarketData:
    """QuoteProvider and RateProvider backed by yfinance."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def fetch_quotes(self, symbols: Iterable[str]) -> dict[str, PriceQuote]:
        quotes: dict[str, PriceQuote] = {}
        for symbol in dict.fromkeys(symbols):
            try:
                info = yf.Ticker(symbol).info
            except Exception as e:
                logger.warning(f"Quote fetch failed for {symbol}: {e}")
                continue
            try:
                quote = quote_from_info(symbol, info or {})
            except UnknownEnumValueError as e:
                logger.warning(f"Quote for {symbol} rejected: {e}")
                continue
            if quote is None:
                logger.warning(f"No price data found for {symbol}")
                continue
            quotes[symbol] = quote
        return quotes

    def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """
        Latest rate converting ``from_currency`` into ``to_currency``.

        Raises:
            MarketDataError: If Yahoo returns no usable price for the pair.
        """
        symbol = rate_symbol(from_currency, to_currency)
        try:
            info = yf.Ticker(symbol).info or {}
        except Exception as e:
            raise MarketDataError(f"Rate fetch failed for {symbol}: {e}") from e
        value = _optional_decimal(info.get("regularMarketPrice") or info.get("previousClose"))
        if value is None or value <= 0:
            raise MarketDataError(f"No rate available for {symbol}")
        return value

    def fetch_price_history(self, symbols: Iterable[str], period: str = "1y") -> dict[str, dict[date, Decimal]]:
        history: dict[str, dict[date, Decimal]] = {}
        for symbol in dict.fromkeys(symbols):
            try:
                frame = yf.Ticker(symbol).history(period=period, timeout=self.timeout)
            except Exception as e:
                logger.warning(f"History fetch failed for {symbol}: {e}")
                continue
            series = _close_series(frame)
            if not series:
                logger.warning(f"No history found for {symbol}")
                continue
            history[symbol] = series
        return history

    def fetch_rate_history(self, from_currency: str, to_currency: str, period: str = "1y") -> dict[date, Decimal]:
        symbol = rate_symbol(from_currency, to_currency)
        try:
            frame = yf.Ticker(symbol).history(period=period, timeout=self.timeout)
        except Exception as e:
            raise MarketDataError(f"Rate history fetch failed for {symbol}: {e}") from e
        return _close_series(frame)
