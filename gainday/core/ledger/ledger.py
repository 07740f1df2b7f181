"""
Immutable ledger views consumed by the pure engines.

The database rows (gainday.db.models) are mutable ORM objects bound to a
session. Engines never see them directly: the store converts them into
these frozen values once per refresh, so every engine call works on a
consistent snapshot of the ledger.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Optional

from gainday.core.ledger.enums import AccountType, AssetType, BaseCurrency, Market, TransactionType


@dataclass(frozen=True)
class LedgerEntry:
    """One buy, sell or dividend event."""

    entry_id: int  # Insertion order; breaks same-day ties
    kind: TransactionType
    date: date
    quantity: Decimal
    price: Decimal
    fee: Decimal = Decimal("0")
    currency: str = "JPY"
    note: str = ""

    @property
    def notional(self) -> Decimal:
        """quantity * price, fee excluded."""
        return self.quantity * self.price

    @property
    def sort_key(self) -> tuple[date, int]:
        return (self.date, self.entry_id)


@dataclass(frozen=True)
class HoldingLedger:
    """A tradable position and its full transaction history."""

    holding_id: int
    symbol: str
    name: str
    asset_type: AssetType
    market: Market
    entries: tuple[LedgerEntry, ...] = ()

    @property
    def currency(self) -> str:
        return self.market.currency

    def append(self, entry: LedgerEntry) -> "HoldingLedger":
        return replace(self, entries=self.entries + (entry,))

    def ordered(self) -> list[LedgerEntry]:
        """Entries by effective date, ties broken by insertion order."""
        # sorted() is stable, so equal keys keep their position in self.entries
        return sorted(self.entries, key=lambda e: e.sort_key)

    def as_of(self, day: date) -> "HoldingLedger":
        """Ledger restricted to entries dated on or before ``day``."""
        return replace(self, entries=tuple(e for e in self.entries if e.date <= day))

    def first_date(self) -> Optional[date]:
        if not self.entries:
            return None
        return min(e.date for e in self.entries)


@dataclass(frozen=True)
class PortfolioLedger:
    """A portfolio and the ledgers of every holding it owns."""

    portfolio_id: int
    name: str
    account_type: AccountType = AccountType.GENERAL
    base_currency: BaseCurrency = BaseCurrency.JPY
    sort_order: int = 0
    holdings: tuple[HoldingLedger, ...] = field(default_factory=tuple)

    @property
    def symbols(self) -> set[str]:
        return {h.symbol for h in self.holdings}
