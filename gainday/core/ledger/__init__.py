"""Ledger values, closed enums and cost-basis replay."""

from gainday.core.ledger.cost_basis import CostBasis, compute_cost_basis, cost_basis_as_of
from gainday.core.ledger.enums import (
    AccountType,
    AssetType,
    BaseCurrency,
    Market,
    MarketState,
    TimeRange,
    TransactionType,
)
from gainday.core.ledger.ledger import HoldingLedger, LedgerEntry, PortfolioLedger

__all__ = [
    "AccountType",
    "AssetType",
    "BaseCurrency",
    "CostBasis",
    "HoldingLedger",
    "LedgerEntry",
    "Market",
    "MarketState",
    "PortfolioLedger",
    "TimeRange",
    "TransactionType",
    "compute_cost_basis",
    "cost_basis_as_of",
]
