"""
Closed tag sets used across the ledger, valuation and persistence layers.

Every enum is parsed strictly: an unknown string raises
UnknownEnumValueError instead of falling back to a default variant.
"""

from enum import Enum

from gainday.core.data.exceptions import UnknownEnumValueError


class StrictEnum(str, Enum):
    """String-valued enum with strict parsing."""

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        raise UnknownEnumValueError(cls.__name__, value, [m.value for m in cls])

    def __str__(self) -> str:
        return self.value


class AssetType(StrictEnum):
    STOCK = "stock"
    FUND = "fund"
    METAL = "metal"
    CRYPTO = "crypto"
    BOND = "bond"
    CASH = "cash"

    @property
    def display_name(self) -> str:
        return {
            AssetType.STOCK: "Stock",
            AssetType.FUND: "Fund",
            AssetType.METAL: "Precious Metal",
            AssetType.CRYPTO: "Crypto",
            AssetType.BOND: "Bond",
            AssetType.CASH: "Cash",
        }[self]


class Market(StrictEnum):
    JP = "JP"
    JP_FUND = "JP_FUND"
    CN = "CN"
    US = "US"
    HK = "HK"
    COMMODITY = "COMMODITY"
    CRYPTO = "CRYPTO"

    @property
    def currency(self) -> str:
        """Native trading currency of the market."""
        return _MARKET_CURRENCY[self]


_MARKET_CURRENCY = {
    Market.JP: "JPY",
    Market.JP_FUND: "JPY",
    Market.CN: "CNY",
    Market.US: "USD",
    Market.HK: "HKD",
    Market.COMMODITY: "USD",
    Market.CRYPTO: "USD",
}


class TransactionType(StrictEnum):
    BUY = "buy"
    SELL = "sell"
    DIVIDEND = "dividend"


class AccountType(StrictEnum):
    GENERAL = "general"
    NISA_TSUMITATE = "nisa_tsumitate"
    NISA_GROWTH = "nisa_growth"

    @property
    def is_nisa(self) -> bool:
        return self is not AccountType.GENERAL

    @property
    def display_name(self) -> str:
        return {
            AccountType.GENERAL: "General",
            AccountType.NISA_TSUMITATE: "NISA Tsumitate",
            AccountType.NISA_GROWTH: "NISA Growth",
        }[self]


class MarketState(StrictEnum):
    PRE = "PRE"
    REGULAR = "REGULAR"
    POST = "POST"
    CLOSED = "CLOSED"
    PREPRE = "PREPRE"
    POSTPOST = "POSTPOST"


class BaseCurrency(StrictEnum):
    JPY = "JPY"
    CNY = "CNY"
    USD = "USD"
    HKD = "HKD"

    @property
    def symbol(self) -> str:
        return {
            BaseCurrency.JPY: "¥",
            BaseCurrency.CNY: "¥",
            BaseCurrency.USD: "$",
            BaseCurrency.HKD: "HK$",
        }[self]


class TimeRange(StrictEnum):
    ONE_WEEK = "1W"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    ALL = "ALL"

    @property
    def days(self) -> int:
        return {
            TimeRange.ONE_WEEK: 7,
            TimeRange.ONE_MONTH: 30,
            TimeRange.THREE_MONTHS: 90,
            TimeRange.SIX_MONTHS: 180,
            TimeRange.ONE_YEAR: 365,
            TimeRange.ALL: 3650,
        }[self]
