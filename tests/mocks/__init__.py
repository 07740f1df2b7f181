"""Mock helpers for Gainday tests."""

from .ledgers import entry, holding, portfolio
from .mock_market_data import FakeMarketData, make_quote

__all__ = [
    "entry",
    "holding",
    "portfolio",
    "FakeMarketData",
    "make_quote",
]
