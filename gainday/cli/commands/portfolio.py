"""Portfolio, holding and transaction management commands."""

import json
import logging
from datetime import date, datetime
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from gainday.cli.error_handler import handle_cli_errors
from gainday.cli.formatting import colored_money, format_money, format_quantity
from gainday.core.ledger.enums import AccountType, AssetType, BaseCurrency, Market, TransactionType
from gainday.core.portfolio.csv_io import export_transactions, import_transactions
from gainday.core.portfolio.manager import PortfolioManager

logger = logging.getLogger(__name__)

ACCOUNT_TYPES = [a.value for a in AccountType]
ASSET_TYPES = [a.value for a in AssetType]
MARKETS = [m.value for m in Market]
CURRENCIES = [c.value for c in BaseCurrency]


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise click.BadParameter(f"Invalid date '{value}'. Use YYYY-MM-DD") from None


@click.group()
@click.pass_context
def portfolio(ctx: click.Context) -> None:
    """
    Manage portfolios, holdings and transactions.

    \b
    Examples:
        gainday portfolio create "NISA Growth" -a nisa_growth -c JPY
        gainday portfolio add-holding 1 AAPL -n "Apple" -m US
        gainday portfolio buy 1 -q 10 -p 180 -d 2024-01-15
        gainday portfolio sell 1 -q 5 -p 190
        gainday portfolio holdings 1
        gainday portfolio import trades.csv
    """
    pass


# =============================================================================
# Portfolios
# =============================================================================


@portfolio.command("create")
@click.argument("name")
@click.option("--account-type", "-a", type=click.Choice(ACCOUNT_TYPES), default="general", help="Account type")
@click.option("--currency", "-c", type=click.Choice(CURRENCIES), default="JPY", help="Base currency")
@click.option("--color", default="blue", help="Color tag")
@click.pass_context
@handle_cli_errors
def portfolio_create(ctx: click.Context, name: str, account_type: str, currency: str, color: str) -> None:
    """Create a portfolio."""
    console: Console = ctx.obj["console"]
    created = PortfolioManager().create_portfolio(name, account_type, currency, color_tag=color)
    console.print(f"[green]Created portfolio #{created.id} '{created.name}'[/green] ({account_type}, {currency})")


@portfolio.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_cli_errors
def portfolio_list(ctx: click.Context, as_json: bool) -> None:
    """List portfolios and their holdings."""
    console: Console = ctx.obj["console"]
    ledgers = PortfolioManager().load_ledgers()

    if as_json:
        data = [
            {
                "id": p.portfolio_id,
                "name": p.name,
                "account_type": p.account_type.value,
                "base_currency": p.base_currency.value,
                "holdings": [h.symbol for h in p.holdings],
            }
            for p in ledgers
        ]
        console.print(json.dumps(data, indent=2))
        return

    if not ledgers:
        console.print("[yellow]No portfolios yet.[/yellow] Create one with `gainday portfolio create NAME`.")
        return

    table = Table(title="Portfolios")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Account")
    table.add_column("Currency")
    table.add_column("Holdings")
    for p in ledgers:
        table.add_row(
            str(p.portfolio_id),
            p.name,
            p.account_type.display_name,
            p.base_currency.value,
            ", ".join(h.symbol for h in p.holdings) or "-",
        )
    console.print(table)


@portfolio.command("rename")
@click.argument("portfolio_id", type=int)
@click.argument("name")
@click.pass_context
@handle_cli_errors
def portfolio_rename(ctx: click.Context, portfolio_id: int, name: str) -> None:
    """Rename a portfolio."""
    console: Console = ctx.obj["console"]
    renamed = PortfolioManager().rename_portfolio(portfolio_id, name)
    console.print(f"[green]Portfolio #{renamed.id} renamed to '{renamed.name}'[/green]")


@portfolio.command("set-type")
@click.argument("portfolio_id", type=int)
@click.argument("account_type", type=click.Choice(ACCOUNT_TYPES))
@click.pass_context
@handle_cli_errors
def portfolio_set_type(ctx: click.Context, portfolio_id: int, account_type: str) -> None:
    """Change the account type of a portfolio with no holdings."""
    console: Console = ctx.obj["console"]
    updated = PortfolioManager().set_account_type(portfolio_id, account_type)
    console.print(f"[green]Portfolio '{updated.name}' is now {account_type}[/green]")


@portfolio.command("delete")
@click.argument("portfolio_id", type=int)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
@handle_cli_errors
def portfolio_delete(ctx: click.Context, portfolio_id: int, yes: bool) -> None:
    """Delete a portfolio with all its holdings and transactions."""
    console: Console = ctx.obj["console"]
    manager = PortfolioManager()
    target = manager.get_portfolio(portfolio_id)
    if not yes:
        click.confirm(f"Delete '{target.name}' and all its holdings and transactions?", abort=True)
    manager.delete_portfolio(portfolio_id)
    console.print(f"[green]Deleted portfolio '{target.name}'[/green]")


# =============================================================================
# Holdings
# =============================================================================


@portfolio.command("add-holding")
@click.argument("portfolio_id", type=int)
@click.argument("symbol")
@click.option("--name", "-n", default="", help="Display name (defaults to symbol)")
@click.option("--type", "asset_type", "-t", type=click.Choice(ASSET_TYPES), default="stock", help="Asset type")
@click.option("--market", "-m", type=click.Choice(MARKETS), default="US", help="Market (decides currency)")
@click.pass_context
@handle_cli_errors
def portfolio_add_holding(
    ctx: click.Context, portfolio_id: int, symbol: str, name: str, asset_type: str, market: str
) -> None:
    """Add a holding to a portfolio."""
    console: Console = ctx.obj["console"]
    holding = PortfolioManager().add_holding(portfolio_id, symbol, name or symbol, asset_type, market)
    console.print(
        f"[green]Added holding #{holding.id} {holding.symbol}[/green] "
        f"({asset_type}, {market}, priced in {Market.parse(market).currency})"
    )


@portfolio.command("holdings")
@click.argument("portfolio_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_cli_errors
def portfolio_holdings(ctx: click.Context, portfolio_id: int, as_json: bool) -> None:
    """Show holdings with quantity, average cost and realized P&L."""
    console: Console = ctx.obj["console"]
    positions = PortfolioManager().get_positions(portfolio_id)

    if as_json:
        data = [
            {
                "holding_id": p.holding_id,
                "symbol": p.symbol,
                "name": p.name,
                "currency": p.currency,
                "quantity": str(p.cost_basis.quantity),
                "average_cost": str(p.cost_basis.average_cost),
                "total_cost": str(p.cost_basis.total_cost),
                "realized_pnl": str(p.cost_basis.realized_pnl),
                "dividends": str(p.cost_basis.total_dividends),
            }
            for p in positions
        ]
        console.print(json.dumps(data, indent=2))
        return

    if not positions:
        console.print("[yellow]No holdings in this portfolio.[/yellow]")
        return

    table = Table(title=f"Holdings of portfolio #{portfolio_id}")
    table.add_column("ID", justify="right")
    table.add_column("Symbol", style="bold")
    table.add_column("Name")
    table.add_column("Qty", justify="right")
    table.add_column("Avg Cost", justify="right")
    table.add_column("Total Cost", justify="right")
    table.add_column("Realized", justify="right")
    table.add_column("Dividends", justify="right")
    for p in positions:
        basis = p.cost_basis
        table.add_row(
            str(p.holding_id),
            p.symbol,
            p.name,
            format_quantity(basis.quantity),
            format_money(basis.average_cost, p.currency),
            format_money(basis.total_cost, p.currency),
            colored_money(basis.realized_pnl, p.currency),
            format_money(basis.total_dividends, p.currency),
        )
    console.print(table)


@portfolio.command("delete-holding")
@click.argument("holding_id", type=int)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
@handle_cli_errors
def portfolio_delete_holding(ctx: click.Context, holding_id: int, yes: bool) -> None:
    """Delete a holding and its transactions."""
    console: Console = ctx.obj["console"]
    if not yes:
        click.confirm(f"Delete holding #{holding_id} and its transactions?", abort=True)
    PortfolioManager().delete_holding(holding_id)
    console.print(f"[green]Deleted holding #{holding_id}[/green]")


# =============================================================================
# Transactions
# =============================================================================


def _record(ctx: click.Context, kind: TransactionType, holding_id: int, quantity: str, price: str,
            date_str: Optional[str], fees: str, notes: str) -> None:
    console: Console = ctx.obj["console"]
    transaction = PortfolioManager().add_transaction(
        holding_id,
        kind,
        quantity,
        price,
        transaction_date=_parse_date(date_str),
        fee=fees,
        notes=notes or None,
    )
    console.print(
        f"[green]Recorded {kind.value}[/green] #{transaction.id}: "
        f"{format_quantity(transaction.quantity)} @ {format_money(transaction.price, transaction.currency)} "
        f"on {transaction.transaction_date.isoformat()}"
    )


def _transaction_options(f):
    f = click.option("--notes", default="", help="Transaction notes")(f)
    f = click.option("--fees", default="0", help="Fees and commissions")(f)
    f = click.option("--date", "-d", "date_str", default=None, help="Effective date (YYYY-MM-DD, default today)")(f)
    f = click.option("--price", "-p", required=True, help="Price per unit")(f)
    f = click.option("--quantity", "-q", required=True, help="Quantity")(f)
    return click.argument("holding_id", type=int)(f)


@portfolio.command("buy")
@_transaction_options
@click.pass_context
@handle_cli_errors
def portfolio_buy(ctx, holding_id, quantity, price, date_str, fees, notes) -> None:
    """Record a purchase."""
    _record(ctx, TransactionType.BUY, holding_id, quantity, price, date_str, fees, notes)


@portfolio.command("sell")
@_transaction_options
@click.pass_context
@handle_cli_errors
def portfolio_sell(ctx, holding_id, quantity, price, date_str, fees, notes) -> None:
    """Record a sale (cannot exceed the quantity held on that date)."""
    _record(ctx, TransactionType.SELL, holding_id, quantity, price, date_str, fees, notes)


@portfolio.command("dividend")
@_transaction_options
@click.pass_context
@handle_cli_errors
def portfolio_dividend(ctx, holding_id, quantity, price, date_str, fees, notes) -> None:
    """Record a dividend (quantity x price is the payout)."""
    _record(ctx, TransactionType.DIVIDEND, holding_id, quantity, price, date_str, fees, notes)


@portfolio.command("history")
@click.argument("holding_id", type=int)
@click.pass_context
@handle_cli_errors
def portfolio_history(ctx: click.Context, holding_id: int) -> None:
    """Show a holding's transactions in effective-date order."""
    console: Console = ctx.obj["console"]
    transactions = PortfolioManager().get_transactions(holding_id)
    if not transactions:
        console.print("[yellow]No transactions recorded.[/yellow]")
        return

    table = Table(title=f"Transactions of holding #{holding_id}")
    table.add_column("ID", justify="right")
    table.add_column("Date")
    table.add_column("Type")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Fee", justify="right")
    table.add_column("Notes", style="dim")
    colors = {"buy": "green", "sell": "red", "dividend": "cyan"}
    for t in transactions:
        color = colors.get(t.transaction_type, "white")
        table.add_row(
            str(t.id),
            t.transaction_date.isoformat(),
            f"[{color}]{t.transaction_type}[/{color}]",
            format_quantity(t.quantity),
            format_money(t.price, t.currency),
            format_money(t.fee, t.currency),
            t.notes or "",
        )
    console.print(table)


@portfolio.command("delete-transaction")
@click.argument("transaction_id", type=int)
@click.pass_context
@handle_cli_errors
def portfolio_delete_transaction(ctx: click.Context, transaction_id: int) -> None:
    """Delete a transaction (refused if a later sell would exceed holdings)."""
    console: Console = ctx.obj["console"]
    PortfolioManager().delete_transaction(transaction_id)
    console.print(f"[green]Deleted transaction #{transaction_id}[/green]")


# =============================================================================
# CSV
# =============================================================================


@portfolio.command("import")
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
@handle_cli_errors
def portfolio_import(ctx: click.Context, csv_path: str) -> None:
    """Import transactions from CSV (Account,Symbol,Name,Type,Market,TransactionType,Date,...)."""
    console: Console = ctx.obj["console"]
    result = import_transactions(csv_path)
    console.print(
        f"[green]Imported {result.transactions_created} transaction(s)[/green] "
        f"({result.holdings_created} new holding(s), {result.portfolios_created} new portfolio(s))"
    )
    if result.errors:
        console.print(f"[yellow]{len(result.errors)} row(s) skipped:[/yellow]")
        for message in result.errors:
            console.print(f"  [dim]{message}[/dim]")


@portfolio.command("export")
@click.argument("csv_path", type=click.Path(dir_okay=False, writable=True))
@click.pass_context
@handle_cli_errors
def portfolio_export(ctx: click.Context, csv_path: str) -> None:
    """Export every transaction to CSV in the import format."""
    console: Console = ctx.obj["console"]
    count = export_transactions(csv_path)
    console.print(f"[green]Exported {count} transaction(s) to {csv_path}[/green]")
