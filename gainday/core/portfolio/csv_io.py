"""
CSV import and export of the transaction ledger.

Format (header row required, column order free):
    Account,Symbol,Name,Type,Market,TransactionType,Date,Quantity,Price,Fee,Currency,Note

Account, Symbol, Name, TransactionType, Date, Quantity and Price are
required. Type defaults to stock, Market to JP, Fee to 0 and Currency to
JPY. Dates may be written as YYYY-MM-DD, YYYY/MM/DD, MM/DD/YYYY or
DD/MM/YYYY (tried in that order).

Import is best effort per row: bad rows are reported with their line
number and skipped, the rest are recorded through PortfolioManager so the
usual validation (including negative positions) applies.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

import pandas as pd

from gainday.core.data.exceptions import CSVImportError, GaindayError
from gainday.core.ledger.enums import AccountType, AssetType, BaseCurrency, Market, TransactionType
from gainday.core.portfolio.manager import PortfolioManager

logger = logging.getLogger(__name__)

COLUMNS = (
    "Account",
    "Symbol",
    "Name",
    "Type",
    "Market",
    "TransactionType",
    "Date",
    "Quantity",
    "Price",
    "Fee",
    "Currency",
    "Note",
)
REQUIRED_COLUMNS = ("Account", "Symbol", "Name", "TransactionType", "Date", "Quantity", "Price")
DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%d/%m/%Y")


@dataclass
class ImportResult:
    """Outcome of a CSV import."""

    portfolios_created: int = 0
    holdings_created: int = 0
    transactions_created: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ImportRow:
    line: int
    account: str
    symbol: str
    name: str
    asset_type: AssetType
    market: Market
    kind: TransactionType
    day: date
    quantity: Decimal
    price: Decimal
    fee: Decimal
    currency: str
    note: str


def parse_date(text: str) -> Optional[date]:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _read_frame(source) -> pd.DataFrame:
    try:
        frame = pd.read_csv(source, dtype=str, keep_default_na=False, skipinitialspace=True)
    except pd.errors.EmptyDataError as e:
        raise CSVImportError("CSV file is empty") from e
    except (OSError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise CSVImportError(f"Cannot read CSV: {e}") from e

    frame.columns = [str(c).strip() for c in frame.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        raise CSVImportError(f"Missing required column(s): {', '.join(missing)}")
    return frame


def parse_rows(frame: pd.DataFrame) -> tuple[list[ImportRow], list[str]]:
    """Validate every row; returns (rows, errors)."""
    rows: list[ImportRow] = []
    errors: list[str] = []

    for index, record in enumerate(frame.to_dict(orient="records")):
        line = index + 2  # Header is line 1
        values = {c: str(record.get(c, "") or "").strip() for c in COLUMNS}

        if not (values["Account"] and values["Symbol"] and values["Name"]):
            errors.append(f"Line {line}: Account, Symbol and Name cannot be empty")
            continue

        try:
            kind = TransactionType.parse(values["TransactionType"].lower())
            asset_type = AssetType.parse(values["Type"].lower() or AssetType.STOCK.value)
            market = Market.parse(values["Market"].upper() or Market.JP.value)
        except GaindayError as e:
            errors.append(f"Line {line}: {e}")
            continue

        day = parse_date(values["Date"])
        if day is None:
            errors.append(f"Line {line}: invalid date '{values['Date']}'")
            continue

        try:
            quantity = Decimal(values["Quantity"])
        except InvalidOperation:
            quantity = None
        if quantity is None or not quantity.is_finite() or quantity <= 0:
            errors.append(f"Line {line}: invalid quantity '{values['Quantity']}'")
            continue

        try:
            price = Decimal(values["Price"])
        except InvalidOperation:
            price = None
        if price is None or not price.is_finite() or price < 0:
            errors.append(f"Line {line}: invalid price '{values['Price']}'")
            continue

        try:
            fee = Decimal(values["Fee"] or "0")
        except InvalidOperation:
            fee = None
        if fee is None or not fee.is_finite() or fee < 0:
            errors.append(f"Line {line}: invalid fee '{values['Fee']}'")
            continue

        rows.append(
            ImportRow(
                line=line,
                account=values["Account"],
                symbol=values["Symbol"].upper(),
                name=values["Name"],
                asset_type=asset_type,
                market=market,
                kind=kind,
                day=day,
                quantity=quantity,
                price=price,
                fee=fee,
                currency=(values["Currency"] or "JPY").upper(),
                note=values["Note"],
            )
        )

    return rows, errors


def import_transactions(source, manager: Optional[PortfolioManager] = None) -> ImportResult:
    """
    Import transactions from a CSV path or file-like object.

    Missing portfolios are created as general accounts with the row's
    currency as base currency; missing holdings are created from the row.
    Rows are recorded in date order so a sell listed before its buy in the
    file is still accepted.

    Raises:
        CSVImportError: If the file is unreadable or lacks required columns.
    """
    manager = manager or PortfolioManager()
    frame = _read_frame(source)
    rows, errors = parse_rows(frame)
    result = ImportResult(errors=errors)

    portfolio_ids: dict[str, int] = {}
    holding_ids: dict[tuple[int, str], int] = {}

    for row in sorted(rows, key=lambda r: (r.day, r.line)):
        try:
            portfolio_id = portfolio_ids.get(row.account)
            if portfolio_id is None:
                portfolio = manager.find_portfolio(row.account)
                if portfolio is None:
                    portfolio = manager.create_portfolio(
                        row.account,
                        account_type=AccountType.GENERAL,
                        base_currency=BaseCurrency.parse(row.currency),
                    )
                    result.portfolios_created += 1
                portfolio_id = portfolio_ids[row.account] = portfolio.id

            holding_id = holding_ids.get((portfolio_id, row.symbol))
            if holding_id is None:
                holding = manager.find_holding(portfolio_id, row.symbol)
                if holding is None:
                    holding = manager.add_holding(
                        portfolio_id, row.symbol, row.name, row.asset_type, row.market
                    )
                    result.holdings_created += 1
                holding_id = holding_ids[(portfolio_id, row.symbol)] = holding.id

            manager.add_transaction(
                holding_id,
                row.kind,
                row.quantity,
                row.price,
                transaction_date=row.day,
                fee=row.fee,
                notes=row.note or None,
                currency=row.currency,
            )
            result.transactions_created += 1
        except (GaindayError, ValueError) as e:
            result.errors.append(f"Line {row.line}: {e}")

    logger.info(
        f"CSV import: {result.transactions_created} transaction(s), "
        f"{result.holdings_created} new holding(s), {result.portfolios_created} new portfolio(s), "
        f"{len(result.errors)} error(s)"
    )
    return result


def export_transactions(destination, manager: Optional[PortfolioManager] = None) -> int:
    """
    Write every transaction to CSV in the import format.

    Returns:
        Number of transactions written.
    """
    manager = manager or PortfolioManager()
    records = []
    for portfolio in manager.load_ledgers():
        for holding in portfolio.holdings:
            for entry in holding.ordered():
                records.append(
                    {
                        "Account": portfolio.name,
                        "Symbol": holding.symbol,
                        "Name": holding.name,
                        "Type": holding.asset_type.value,
                        "Market": holding.market.value,
                        "TransactionType": entry.kind.value,
                        "Date": entry.date.isoformat(),
                        "Quantity": f"{entry.quantity.normalize():f}",
                        "Price": f"{entry.price.normalize():f}",
                        "Fee": f"{entry.fee.normalize():f}",
                        "Currency": entry.currency,
                        "Note": entry.note,
                    }
                )

    pd.DataFrame(records, columns=list(COLUMNS)).to_csv(destination, index=False)
    logger.info(f"Exported {len(records)} transaction(s)")
    return len(records)
