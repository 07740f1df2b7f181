"""
Weighted-average cost basis replay.

A holding carries a single pooled lot. Replaying its transactions in
effective-date order gives quantity, average cost, realized P&L and
dividend income:

- buy:      avg = (avg * qty + q * p + fee) / (qty + q); qty += q
- sell:     realized += q * p - q * avg - fee; qty -= q; avg unchanged
- dividend: dividends += q * p

All arithmetic is Decimal. Sells that exceed the running quantity are
rejected at entry time by the portfolio manager; the replay itself does
not validate and simply continues with a negative quantity.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from gainday.core.ledger.enums import TransactionType
from gainday.core.ledger.ledger import HoldingLedger, LedgerEntry

ZERO = Decimal("0")


@dataclass(frozen=True)
class CostBasis:
    """Result of replaying a holding's ledger."""

    quantity: Decimal = ZERO
    average_cost: Decimal = ZERO
    realized_pnl: Decimal = ZERO
    total_dividends: Decimal = ZERO

    @property
    def total_cost(self) -> Decimal:
        return self.average_cost * self.quantity


def compute_cost_basis(entries: Iterable[LedgerEntry]) -> CostBasis:
    """
    Replay entries into a CostBasis.

    Entries are sorted by (date, entry_id) first; input order does not
    matter beyond the stable tie-break. An empty iterable yields zeros.
    """
    quantity = ZERO
    average_cost = ZERO
    realized = ZERO
    dividends = ZERO

    for entry in sorted(entries, key=lambda e: e.sort_key):
        if entry.kind is TransactionType.BUY:
            new_quantity = quantity + entry.quantity
            if new_quantity != ZERO:
                average_cost = (
                    average_cost * quantity + entry.quantity * entry.price + entry.fee
                ) / new_quantity
            quantity = new_quantity
        elif entry.kind is TransactionType.SELL:
            realized += entry.quantity * entry.price - entry.quantity * average_cost - entry.fee
            quantity -= entry.quantity
        elif entry.kind is TransactionType.DIVIDEND:
            dividends += entry.quantity * entry.price

    return CostBasis(
        quantity=quantity,
        average_cost=average_cost,
        realized_pnl=realized,
        total_dividends=dividends,
    )


def cost_basis_for(ledger: HoldingLedger) -> CostBasis:
    return compute_cost_basis(ledger.entries)


def cost_basis_as_of(ledger: HoldingLedger, day: date) -> CostBasis:
    """Cost basis using only entries dated on or before ``day``."""
    return compute_cost_basis(ledger.as_of(day).entries)


def find_negative_position(entries: Iterable[LedgerEntry]) -> Optional[tuple[LedgerEntry, Decimal]]:
    """
    Return the first entry that drives the running quantity below zero.

    Returns:
        (entry, resulting_quantity) or None when the history never goes short.
    """
    quantity = ZERO
    for entry in sorted(entries, key=lambda e: e.sort_key):
        if entry.kind is TransactionType.BUY:
            quantity += entry.quantity
        elif entry.kind is TransactionType.SELL:
            quantity -= entry.quantity
            if quantity < ZERO:
                return entry, quantity
    return None
