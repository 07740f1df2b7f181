"""
Portfolio, holding and transaction maintenance.

Provides CRUD over the ledger with explicit validation:
- Portfolio creation, renaming and deletion (cascades to holdings and transactions)
- Account type changes, refused once a portfolio owns holdings
- Holding creation with symbol normalisation and strict enum tags
- Transaction entry, edit and deletion, rejecting any change that would
  drive a holding's quantity below zero at any point in its history
- Frozen ledger views for the valuation, snapshot and quota engines
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import selectinload
from sqlmodel import select

from gainday.core.currency import to_decimal
from gainday.core.data.exceptions import (
    AccountTypeLockedError,
    InvalidTransactionError,
    NegativeQuantityError,
    NotFoundError,
)
from gainday.core.ledger.cost_basis import CostBasis, compute_cost_basis, find_negative_position
from gainday.core.ledger.enums import AccountType, AssetType, BaseCurrency, Market, TransactionType
from gainday.core.ledger.ledger import PortfolioLedger
from gainday.db.database import get_session
from gainday.db.models import Holding, Portfolio, Transaction, entry_from_row, to_ledger

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal, str]

_SYMBOL_RE = re.compile(r"^[A-Z0-9.\-=^_]{1,30}$")


def _validate_symbol(symbol: str) -> str:
    """Validate and normalize a provider symbol.

    Accepts 1-30 characters: A-Z, 0-9 and '.', '-', '=', '^', '_'
    (covers 7203.T, BTC-USD, GC=F, ^N225). Raises ValueError otherwise.
    """
    symbol = symbol.strip().upper()
    if not _SYMBOL_RE.match(symbol):
        raise ValueError(
            f"Invalid symbol: {symbol!r}. "
            "Must be 1-30 characters: A-Z, 0-9, '.', '-', '=', '^', '_'"
        )
    return symbol


@dataclass
class HoldingPosition:
    """A holding with its replayed cost basis, for display without quotes."""

    holding_id: int
    portfolio_id: int
    symbol: str
    name: str
    asset_type: str
    market: str
    currency: str
    transaction_count: int
    cost_basis: CostBasis


class PortfolioManager:
    """Ledger maintenance backed by the SQLite store."""

    # =========================================================================
    # Portfolios
    # =========================================================================

    def create_portfolio(
        self,
        name: str,
        account_type: Union[str, AccountType] = AccountType.GENERAL,
        base_currency: Union[str, BaseCurrency] = BaseCurrency.JPY,
        color_tag: str = "blue",
    ) -> Portfolio:
        """
        Create a portfolio at the end of the display order.

        Raises:
            ValueError: If the name is empty.
            UnknownEnumValueError: If account type or base currency is unknown.
        """
        name = name.strip()
        if not name:
            raise ValueError("Portfolio name cannot be empty")
        account = AccountType.parse(account_type)
        currency = BaseCurrency.parse(base_currency)

        with get_session() as session:
            max_order = session.exec(select(func.max(Portfolio.sort_order))).one()
            portfolio = Portfolio(
                name=name,
                account_type=account.value,
                base_currency=currency.value,
                color_tag=color_tag,
                sort_order=(max_order + 1) if max_order is not None else 0,
            )
            session.add(portfolio)
            session.flush()
            session.refresh(portfolio)
            session.expunge(portfolio)
            logger.info(f"Created portfolio '{name}' ({account.value}, {currency.value})")
            return portfolio

    def list_portfolios(self) -> list[Portfolio]:
        with get_session() as session:
            portfolios = session.exec(
                select(Portfolio).order_by(Portfolio.sort_order, Portfolio.id)
            ).all()
            for portfolio in portfolios:
                session.expunge(portfolio)
            return list(portfolios)

    def get_portfolio(self, portfolio_id: int) -> Portfolio:
        with get_session() as session:
            portfolio = self._require_portfolio(session, portfolio_id)
            session.expunge(portfolio)
            return portfolio

    def find_portfolio(self, name: str) -> Optional[Portfolio]:
        """Look up a portfolio by exact name."""
        with get_session() as session:
            portfolio = session.exec(select(Portfolio).where(Portfolio.name == name.strip())).first()
            if portfolio is not None:
                session.expunge(portfolio)
            return portfolio

    def rename_portfolio(self, portfolio_id: int, name: str) -> Portfolio:
        name = name.strip()
        if not name:
            raise ValueError("Portfolio name cannot be empty")
        with get_session() as session:
            portfolio = self._require_portfolio(session, portfolio_id)
            portfolio.name = name
            session.add(portfolio)
            session.flush()
            session.refresh(portfolio)
            session.expunge(portfolio)
            return portfolio

    def set_account_type(self, portfolio_id: int, account_type: Union[str, AccountType]) -> Portfolio:
        """
        Change a portfolio's account type.

        Raises:
            AccountTypeLockedError: If the portfolio already owns holdings.
        """
        account = AccountType.parse(account_type)
        with get_session() as session:
            portfolio = self._require_portfolio(session, portfolio_id)
            holding_count = len(portfolio.holdings)
            if holding_count and portfolio.account_type != account.value:
                raise AccountTypeLockedError(portfolio.name, holding_count)
            portfolio.account_type = account.value
            session.add(portfolio)
            session.flush()
            session.refresh(portfolio)
            session.expunge(portfolio)
            return portfolio

    def delete_portfolio(self, portfolio_id: int) -> None:
        """Delete a portfolio together with its holdings and their transactions."""
        with get_session() as session:
            portfolio = self._require_portfolio(session, portfolio_id)
            name = portfolio.name
            session.delete(portfolio)
            logger.info(f"Deleted portfolio '{name}' and its holdings")

    # =========================================================================
    # Holdings
    # =========================================================================

    def add_holding(
        self,
        portfolio_id: int,
        symbol: str,
        name: str,
        asset_type: Union[str, AssetType] = AssetType.STOCK,
        market: Union[str, Market] = Market.US,
    ) -> Holding:
        symbol = _validate_symbol(symbol)
        kind = AssetType.parse(asset_type)
        venue = Market.parse(market)

        with get_session() as session:
            self._require_portfolio(session, portfolio_id)
            existing = session.exec(
                select(Holding).where(
                    Holding.portfolio_id == portfolio_id, Holding.symbol == symbol
                )
            ).first()
            if existing is not None:
                raise ValueError(f"{symbol} is already held in portfolio {portfolio_id}")

            holding = Holding(
                portfolio_id=portfolio_id,
                symbol=symbol,
                name=name.strip() or symbol,
                asset_type=kind.value,
                market=venue.value,
            )
            session.add(holding)
            session.flush()
            session.refresh(holding)
            session.expunge(holding)
            return holding

    def find_holding(self, portfolio_id: int, symbol: str) -> Optional[Holding]:
        with get_session() as session:
            holding = session.exec(
                select(Holding).where(
                    Holding.portfolio_id == portfolio_id,
                    Holding.symbol == symbol.strip().upper(),
                )
            ).first()
            if holding is not None:
                session.expunge(holding)
            return holding

    def delete_holding(self, holding_id: int) -> None:
        """Delete a holding and its transactions."""
        with get_session() as session:
            holding = self._require_holding(session, holding_id)
            session.delete(holding)

    def get_positions(self, portfolio_id: int) -> list[HoldingPosition]:
        """Holdings of a portfolio with their replayed cost basis."""
        with get_session() as session:
            self._require_portfolio(session, portfolio_id)
            holdings = session.exec(
                select(Holding)
                .where(Holding.portfolio_id == portfolio_id)
                .options(selectinload(Holding.transactions))
                .order_by(Holding.id)
            ).all()
            return [
                HoldingPosition(
                    holding_id=h.id,
                    portfolio_id=h.portfolio_id,
                    symbol=h.symbol,
                    name=h.name,
                    asset_type=h.asset_type,
                    market=h.market,
                    currency=Market.parse(h.market).currency,
                    transaction_count=len(h.transactions),
                    cost_basis=compute_cost_basis(entry_from_row(t) for t in h.transactions),
                )
                for h in holdings
            ]

    # =========================================================================
    # Transactions
    # =========================================================================

    def add_transaction(
        self,
        holding_id: int,
        transaction_type: Union[str, TransactionType],
        quantity: Number,
        price: Number,
        transaction_date: Optional[date] = None,
        fee: Number = 0,
        notes: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Transaction:
        """
        Record a buy, sell or dividend.

        Args:
            holding_id: Holding the transaction belongs to
            transaction_type: buy, sell or dividend
            quantity: Units traded (for dividends, the payout multiplier)
            price: Price per unit
            transaction_date: Effective date (defaults to today)
            fee: Fees and commissions
            notes: Optional notes
            currency: Currency of price and fee (defaults to the market currency)

        Returns:
            Created Transaction record

        Raises:
            InvalidTransactionError: If quantity, price or fee is not a finite number or is out of range.
            NegativeQuantityError: If the history would go below zero units.
        """
        kind = TransactionType.parse(transaction_type)
        qty, px, fees = self._validate_amounts(quantity, price, fee)

        with get_session() as session:
            holding = self._require_holding(session, holding_id)
            transaction = Transaction(
                holding_id=holding.id,
                transaction_type=kind.value,
                transaction_date=transaction_date or date.today(),
                quantity=qty,
                price=px,
                fee=fees,
                currency=(currency or Market.parse(holding.market).currency).upper(),
                notes=notes,
            )
            session.add(transaction)
            session.flush()
            session.refresh(holding)
            self._check_history(holding)

            session.refresh(transaction)
            session.expunge(transaction)
            logger.info(f"Recorded {kind.value} {qty} {holding.symbol} @ {px}")
            return transaction

    def edit_transaction(
        self,
        transaction_id: int,
        quantity: Optional[Number] = None,
        price: Optional[Number] = None,
        transaction_date: Optional[date] = None,
        fee: Optional[Number] = None,
        notes: Optional[str] = None,
    ) -> Transaction:
        """Edit a transaction; the holding's history is re-validated."""
        with get_session() as session:
            transaction = self._require_transaction(session, transaction_id)
            qty, px, fees = self._validate_amounts(
                transaction.quantity if quantity is None else quantity,
                transaction.price if price is None else price,
                transaction.fee if fee is None else fee,
            )
            transaction.quantity = qty
            transaction.price = px
            transaction.fee = fees
            if transaction_date is not None:
                transaction.transaction_date = transaction_date
            if notes is not None:
                transaction.notes = notes
            session.add(transaction)
            session.flush()

            holding = self._require_holding(session, transaction.holding_id)
            session.refresh(holding)
            self._check_history(holding)

            session.refresh(transaction)
            session.expunge(transaction)
            return transaction

    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction; refused if a later sell would then exceed holdings."""
        with get_session() as session:
            transaction = self._require_transaction(session, transaction_id)
            holding_id = transaction.holding_id
            session.delete(transaction)
            session.flush()

            holding = self._require_holding(session, holding_id)
            session.refresh(holding)
            self._check_history(holding)

    def get_transactions(self, holding_id: int) -> list[Transaction]:
        """Transactions of a holding in effective-date order."""
        with get_session() as session:
            self._require_holding(session, holding_id)
            transactions = session.exec(
                select(Transaction)
                .where(Transaction.holding_id == holding_id)
                .order_by(Transaction.transaction_date, Transaction.id)
            ).all()
            for transaction in transactions:
                session.expunge(transaction)
            return list(transactions)

    # =========================================================================
    # Engine views
    # =========================================================================

    def load_ledgers(self) -> list[PortfolioLedger]:
        """
        Freeze every portfolio into an immutable ledger view.

        Raises:
            UnknownEnumValueError: If a stored tag needs migration.
        """
        with get_session() as session:
            portfolios = session.exec(
                select(Portfolio)
                .options(selectinload(Portfolio.holdings).selectinload(Holding.transactions))
                .order_by(Portfolio.sort_order, Portfolio.id)
            ).all()
            return [to_ledger(p) for p in portfolios]

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _validate_amounts(quantity: Number, price: Number, fee: Number) -> tuple[Decimal, Decimal, Decimal]:
        amounts = {}
        for label, value in (("Quantity", quantity), ("Price", price), ("Fee", fee)):
            try:
                amount = to_decimal(value)
            except InvalidOperation:
                raise InvalidTransactionError(f"{label} is not a number: {value!r}") from None
            if not amount.is_finite():
                raise InvalidTransactionError(f"{label} must be a finite number, got {value!r}")
            amounts[label] = amount
        qty, px, fees = amounts["Quantity"], amounts["Price"], amounts["Fee"]
        if qty <= 0:
            raise InvalidTransactionError("Quantity must be positive")
        if px < 0:
            raise InvalidTransactionError("Price cannot be negative")
        if fees < 0:
            raise InvalidTransactionError("Fee cannot be negative")
        return qty, px, fees

    @staticmethod
    def _check_history(holding: Holding) -> None:
        breach = find_negative_position(entry_from_row(t) for t in holding.transactions)
        if breach is not None:
            entry, quantity = breach
            raise NegativeQuantityError(holding.symbol, entry.date, quantity)

    @staticmethod
    def _require_portfolio(session, portfolio_id: int) -> Portfolio:
        portfolio = session.get(Portfolio, portfolio_id)
        if portfolio is None:
            raise NotFoundError("Portfolio", portfolio_id)
        return portfolio

    @staticmethod
    def _require_holding(session, holding_id: int) -> Holding:
        holding = session.get(Holding, holding_id)
        if holding is None:
            raise NotFoundError("Holding", holding_id)
        return holding

    @staticmethod
    def _require_transaction(session, transaction_id: int) -> Transaction:
        transaction = session.get(Transaction, transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)
        return transaction
