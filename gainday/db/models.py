"""
Database models for Gainday.

Defines the schema for:
- Portfolio: Named account with an account type and base currency
- Holding: A tradable position owned by one portfolio
- Transaction: Buy, sell or dividend record belonging to one holding
- DailySnapshot: One valuation record per scope (portfolio or global) per day

Deleting a portfolio deletes its holdings and their transactions. Snapshots
are keyed by scope and day and outlive the portfolio they describe.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import Column, Text, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

from gainday.core.data.exceptions import MalformedBreakdownError
from gainday.core.ledger.enums import AccountType, AssetType, BaseCurrency, Market, TransactionType
from gainday.core.ledger.ledger import HoldingLedger, LedgerEntry, PortfolioLedger
from gainday.core.portfolio.breakdown import (
    AssetBreakdown,
    HoldingDailyPnL,
    decode_breakdown,
    decode_holding_pnls,
)

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"


class Portfolio(SQLModel, table=True):
    """
    A named account grouping holdings.

    The account type decides NISA quota treatment and cannot change once
    the portfolio owns holdings.
    """

    __tablename__ = "portfolios"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    account_type: str = Field(default=AccountType.GENERAL.value, max_length=20)  # general, nisa_tsumitate, nisa_growth
    base_currency: str = Field(default=BaseCurrency.JPY.value, max_length=3)  # JPY, CNY, USD, HKD
    sort_order: int = Field(default=0)
    color_tag: str = Field(default="blue", max_length=20)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    holdings: list["Holding"] = Relationship(
        back_populates="portfolio",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class Holding(SQLModel, table=True):
    """A position in one instrument, valued in its market's native currency."""

    __tablename__ = "holdings"

    id: Optional[int] = Field(default=None, primary_key=True)
    portfolio_id: int = Field(foreign_key="portfolios.id", index=True)

    symbol: str = Field(max_length=30, index=True)  # Provider symbol, e.g. AAPL, 7203.T
    name: str = Field(max_length=200)
    asset_type: str = Field(default=AssetType.STOCK.value, max_length=20)
    market: str = Field(default=Market.US.value, max_length=20)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    portfolio: Optional[Portfolio] = Relationship(back_populates="holdings")
    transactions: list["Transaction"] = Relationship(
        back_populates="holding",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class Transaction(SQLModel, table=True):
    """
    Buy, sell or dividend record.

    Quantity, price and fee are always non-negative; the transaction type
    carries the direction. For dividends quantity * price is the payout.
    """

    __tablename__ = "transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    holding_id: int = Field(foreign_key="holdings.id", index=True)

    transaction_type: str = Field(max_length=20)  # buy, sell, dividend
    transaction_date: date = Field(index=True)
    quantity: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=8)
    price: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=6)
    fee: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=4)
    currency: str = Field(default="JPY", max_length=3)  # Currency of price and fee
    notes: Optional[str] = Field(default=None, max_length=500)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    holding: Optional[Holding] = Relationship(back_populates="transactions")


class DailySnapshot(SQLModel, table=True):
    """
    End-of-day valuation of one scope.

    ``scope_key`` is "global" for the all-portfolio aggregate or
    "portfolio:<id>" for a single portfolio; (scope_key, snapshot_date) is
    unique. All amounts are in ``currency`` (the reporting currency at the
    time of the snapshot).
    """

    __tablename__ = "daily_snapshots"
    __table_args__ = (UniqueConstraint("scope_key", "snapshot_date", name="uq_snapshot_scope_day"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    scope_key: str = Field(max_length=40, index=True)
    portfolio_id: Optional[int] = Field(default=None, index=True)  # None for the global scope
    snapshot_date: date = Field(index=True)
    currency: str = Field(default="JPY", max_length=3)

    total_value: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=4)
    total_cost: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=4)
    daily_pnl: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=4)
    daily_pnl_percent: float = Field(default=0.0)
    cumulative_pnl: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=4)  # Previous record's cumulative + daily_pnl

    breakdown_json: str = Field(default="[]", sa_column=Column(Text, nullable=False, default="[]"))
    holding_pnls_json: str = Field(default="[]", sa_column=Column(Text, nullable=False, default="[]"))

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_global(self) -> bool:
        return self.scope_key == GLOBAL_SCOPE

    @property
    def unrealized_pnl(self) -> Decimal:
        return self.total_value - self.total_cost

    @property
    def unrealized_pnl_percent(self) -> float:
        if self.total_cost == 0:
            return 0.0
        return float(self.unrealized_pnl / self.total_cost * 100)

    @property
    def breakdown(self) -> list[AssetBreakdown]:
        """Decoded asset breakdown; an unreadable blob yields an empty list."""
        try:
            return decode_breakdown(self.breakdown_json)
        except MalformedBreakdownError as e:
            logger.warning(f"Snapshot {self.scope_key}@{self.snapshot_date}: {e}")
            return []

    @property
    def holding_pnls(self) -> list[HoldingDailyPnL]:
        """Decoded per-holding daily P&L; an unreadable blob yields an empty list."""
        try:
            return decode_holding_pnls(self.holding_pnls_json)
        except MalformedBreakdownError as e:
            logger.warning(f"Snapshot {self.scope_key}@{self.snapshot_date}: {e}")
            return []


# =============================================================================
# Conversion to immutable ledger views
# =============================================================================


def entry_from_row(row: Transaction) -> LedgerEntry:
    return LedgerEntry(
        entry_id=row.id or 0,
        kind=TransactionType.parse(row.transaction_type),
        date=row.transaction_date,
        quantity=row.quantity,
        price=row.price,
        fee=row.fee,
        currency=row.currency,
        note=row.notes or "",
    )


def holding_to_ledger(holding: Holding) -> HoldingLedger:
    return HoldingLedger(
        holding_id=holding.id,
        symbol=holding.symbol,
        name=holding.name,
        asset_type=AssetType.parse(holding.asset_type),
        market=Market.parse(holding.market),
        entries=tuple(entry_from_row(t) for t in sorted(holding.transactions, key=lambda t: t.id or 0)),
    )


def to_ledger(portfolio: Portfolio) -> PortfolioLedger:
    """
    Freeze a loaded Portfolio (with holdings and transactions) into a ledger view.

    Raises:
        UnknownEnumValueError: If a stored tag is not recognised.
    """
    return PortfolioLedger(
        portfolio_id=portfolio.id,
        name=portfolio.name,
        account_type=AccountType.parse(portfolio.account_type),
        base_currency=BaseCurrency.parse(portfolio.base_currency),
        sort_order=portfolio.sort_order,
        holdings=tuple(holding_to_ledger(h) for h in sorted(portfolio.holdings, key=lambda h: h.id or 0)),
    )
