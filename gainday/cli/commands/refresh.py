"""Refresh command: fetch quotes and rates, value portfolios, record snapshots."""

import asyncio
import logging
from datetime import datetime

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gainday.cli.error_handler import handle_cli_errors
from gainday.cli.formatting import (
    BORDER_PRIMARY,
    PANEL_PADDING,
    colored_money,
    colored_percent,
    format_money,
    format_quantity,
)
from gainday.config import config
from gainday.core.data.market_data import YahooMarketData
from gainday.core.portfolio.manager import PortfolioManager
from gainday.core.portfolio.refresh import RefreshCoordinator, RefreshResult

logger = logging.getLogger(__name__)


def _holdings_table(result: RefreshResult) -> Table:
    table = Table(title="Holdings")
    table.add_column("Portfolio")
    table.add_column("Symbol", style="bold")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("State", style="dim")
    table.add_column("Value", justify="right")
    table.add_column("Unrealized", justify="right")
    table.add_column("Today", justify="right")

    for outcome in result.outcomes:
        if not outcome.ok:
            continue
        pnl = outcome.pnl
        for h in pnl.holdings:
            table.add_row(
                pnl.name,
                h.symbol,
                format_quantity(h.quantity),
                format_money(h.effective_price, h.currency),
                h.market_state.value if h.market_state else "",
                format_money(h.market_value, pnl.base_currency),
                f"{colored_money(h.unrealized_pnl, pnl.base_currency)} ({colored_percent(h.unrealized_pnl_percent)})",
                f"{colored_money(h.daily_pnl, pnl.base_currency)} ({colored_percent(h.daily_pnl_percent)})",
            )
    return table


def _summary_panel(result: RefreshResult) -> Panel:
    overall = result.overall
    ccy = overall.currency
    lines = [
        f"[bold]Total value:[/bold]  {format_money(overall.total_value, ccy)}",
        f"[bold]Total cost:[/bold]   {format_money(overall.total_cost, ccy)}",
        f"[bold]Unrealized:[/bold]   {colored_money(overall.unrealized_pnl, ccy)} "
        f"({colored_percent(overall.unrealized_pnl_percent)})",
        f"[bold]Today:[/bold]        {colored_money(overall.daily_pnl, ccy)} "
        f"({colored_percent(overall.daily_pnl_percent)})",
    ]
    if len(overall.contributions) > 1:
        lines.append("")
        for c in overall.contributions:
            lines.append(
                f"  {c.pnl.name}: {format_money(c.total_value, ccy)}  today {colored_money(c.daily_pnl, ccy)}"
            )
    return Panel("\n".join(lines), title=f"Overall ({ccy})", border_style=BORDER_PRIMARY, padding=PANEL_PADDING)


@click.command()
@click.option("--no-save", is_flag=True, help="Value portfolios without recording snapshots")
@click.option("--date", "date_str", default=None, help="Snapshot date (YYYY-MM-DD, default today)")
@click.pass_context
@handle_cli_errors
def refresh(ctx: click.Context, no_save: bool, date_str: str) -> None:
    """
    Fetch live prices and exchange rates, then record today's snapshot.

    \b
    Examples:
        gainday refresh
        gainday refresh --no-save
        gainday refresh --date 2024-06-03
    """
    console: Console = ctx.obj["console"]
    day = None
    if date_str:
        try:
            day = datetime.strptime(date_str, "%Y-%m-%d").date()
        except ValueError:
            raise click.BadParameter(f"Invalid date '{date_str}'. Use YYYY-MM-DD") from None

    portfolios = PortfolioManager().load_ledgers()
    if not portfolios:
        console.print("[yellow]No portfolios to refresh.[/yellow]")
        return

    coordinator = RefreshCoordinator(
        YahooMarketData(config.quote_timeout_seconds),
        reporting_currency=config.reporting_currency,
        skip_weekends=config.skip_weekend_snapshots,
    )
    with console.status("[bold blue]Fetching quotes and rates...[/bold blue]"):
        result = asyncio.run(coordinator.refresh(portfolios, day=day, persist=not no_save))

    console.print(_holdings_table(result))
    console.print(_summary_panel(result))

    if result.missing_quotes:
        console.print(f"[yellow]No quote for:[/yellow] {', '.join(result.missing_quotes)}")
    for failure in result.failures:
        console.print(f"[red]Skipped '{failure.portfolio.name}':[/red] {failure.error}")

    if no_save:
        console.print("[dim]Snapshots not saved (--no-save)[/dim]")
    elif result.snapshots:
        console.print(f"[green]Recorded {len(result.snapshots)} snapshot(s)[/green]")
    else:
        console.print("[dim]No snapshot recorded (weekend or nothing valued)[/dim]")
