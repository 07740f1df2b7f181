"""
Custom exceptions for Gainday.

Every error the engines and the store raise derives from GaindayError so
callers (CLI, refresh coordinator) can catch the whole family in one place.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional


class GaindayError(Exception):
    """Base exception for all Gainday errors."""

    pass


class ConfigError(GaindayError):
    """Raised when configuration values are invalid."""

    pass


class UnknownEnumValueError(GaindayError, ValueError):
    """
    Raised when a stored or supplied tag does not name a known variant.

    Unknown tags are never mapped to a default. Legacy values must go
    through an explicit migration (see gainday.db.migrations).
    """

    def __init__(self, enum_name: str, value: object, allowed: Iterable[str]):
        self.enum_name = enum_name
        self.value = value
        self.allowed = tuple(allowed)
        super().__init__(
            f"Unknown {enum_name} value {value!r}. "
            f"Expected one of: {', '.join(self.allowed)}"
        )


class MissingRateError(GaindayError):
    """
    Raised when an exchange rate needed for a conversion is unavailable.

    The portfolio being valued fails as a whole; sibling portfolios are
    unaffected.
    """

    def __init__(self, from_currency: str, to_currency: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.pair = f"{from_currency}{to_currency}"
        super().__init__(f"No exchange rate available for {from_currency} -> {to_currency}")


class NegativeQuantityError(GaindayError, ValueError):
    """Raised when a transaction would drive a holding's quantity below zero."""

    def __init__(self, symbol: str, on_date: date, quantity: Decimal):
        self.symbol = symbol
        self.date = on_date
        self.quantity = quantity
        super().__init__(
            f"Insufficient quantity for {symbol}: position would be {quantity} on {on_date.isoformat()}"
        )


class InvalidTransactionError(GaindayError, ValueError):
    """Raised when a transaction's fields fail validation."""

    pass


class AccountTypeLockedError(GaindayError, ValueError):
    """Raised when changing the account type of a portfolio that has holdings."""

    def __init__(self, portfolio_name: str, holding_count: int):
        self.portfolio_name = portfolio_name
        self.holding_count = holding_count
        super().__init__(
            f"Cannot change account type of '{portfolio_name}': "
            f"it already has {holding_count} holding(s)"
        )


class MalformedBreakdownError(GaindayError):
    """Raised when a stored breakdown blob cannot be decoded."""

    def __init__(self, reason: str, payload: Optional[str] = None):
        self.reason = reason
        self.payload = payload
        super().__init__(f"Malformed breakdown payload: {reason}")


class NotFoundError(GaindayError, LookupError):
    """Raised when a portfolio, holding or transaction does not exist."""

    def __init__(self, kind: str, key: object):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class MarketDataError(GaindayError):
    """Raised when the quote or rate provider fails to deliver data."""

    pass


class CSVImportError(GaindayError):
    """Raised when a CSV file cannot be imported at all (unreadable, missing columns)."""

    pass
