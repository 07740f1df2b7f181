"""Snapshot history commands: list, stats, latest, top holdings and backfill."""

import json
import logging
from datetime import date, datetime
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gainday.cli.error_handler import handle_cli_errors
from gainday.cli.formatting import (
    BORDER_PRIMARY,
    MISSING,
    PANEL_PADDING,
    colored_money,
    colored_percent,
    format_money,
    format_percent,
)
from gainday.config import config
from gainday.core.currency import required_pairs
from gainday.core.data.exceptions import MarketDataError
from gainday.core.data.market_data import YahooMarketData
from gainday.core.ledger.enums import TimeRange
from gainday.core.portfolio.backfill import backfill_snapshots
from gainday.core.portfolio.manager import PortfolioManager
from gainday.core.portfolio.snapshot_service import GLOBAL, SnapshotScope, get_year_snapshots
from gainday.core.portfolio.stats import monthly_totals
from gainday.core.portfolio.widget import WidgetProjection

logger = logging.getLogger(__name__)


def _scope(portfolio_id: Optional[int]) -> SnapshotScope:
    return GLOBAL if portfolio_id is None else SnapshotScope(portfolio_id)


def _parse_day(value: Optional[str], label: str) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise click.BadParameter(f"Invalid {label} '{value}'. Use YYYY-MM-DD") from None


@click.group()
@click.pass_context
def snapshot(ctx: click.Context) -> None:
    """
    Inspect and rebuild the daily snapshot history.

    \b
    Examples:
        gainday snapshot list --range 1M
        gainday snapshot stats --month 2024-06
        gainday snapshot stats --year 2024
        gainday snapshot top -n 5
        gainday snapshot backfill --start 2024-01-01
    """
    pass


@snapshot.command("list")
@click.option("--range", "range_", type=click.Choice([r.value for r in TimeRange]), default="1M", help="Time range")
@click.option("--portfolio", "-p", "portfolio_id", type=int, default=None, help="Portfolio ID (default: all)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_cli_errors
def snapshot_list(ctx: click.Context, range_: str, portfolio_id: Optional[int], as_json: bool) -> None:
    """List daily snapshots for a time range."""
    console: Console = ctx.obj["console"]
    snapshots = WidgetProjection(_scope(portfolio_id)).snapshots(TimeRange.parse(range_))

    if as_json:
        data = [
            {
                "date": s.snapshot_date.isoformat(),
                "currency": s.currency,
                "total_value": str(s.total_value),
                "total_cost": str(s.total_cost),
                "daily_pnl": str(s.daily_pnl),
                "daily_pnl_percent": s.daily_pnl_percent,
                "cumulative_pnl": str(s.cumulative_pnl),
            }
            for s in snapshots
        ]
        console.print(json.dumps(data, indent=2))
        return

    if not snapshots:
        console.print("[yellow]No snapshots in this range.[/yellow] Run `gainday refresh` or `gainday snapshot backfill`.")
        return

    table = Table(title=f"Snapshots ({range_})")
    table.add_column("Date")
    table.add_column("Value", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Daily", justify="right")
    table.add_column("Daily %", justify="right")
    table.add_column("Cumulative", justify="right")
    for s in snapshots:
        table.add_row(
            s.snapshot_date.isoformat(),
            format_money(s.total_value, s.currency),
            format_money(s.total_cost, s.currency),
            colored_money(s.daily_pnl, s.currency),
            colored_percent(s.daily_pnl_percent),
            colored_money(s.cumulative_pnl, s.currency),
        )
    console.print(table)


@snapshot.command("latest")
@click.option("--portfolio", "-p", "portfolio_id", type=int, default=None, help="Portfolio ID (default: all)")
@click.pass_context
@handle_cli_errors
def snapshot_latest(ctx: click.Context, portfolio_id: Optional[int]) -> None:
    """Show the most recent snapshot with its asset breakdown."""
    console: Console = ctx.obj["console"]
    latest = WidgetProjection(_scope(portfolio_id)).latest()
    if latest is None:
        console.print("[yellow]No snapshot recorded yet.[/yellow]")
        return

    ccy = latest.currency
    lines = [
        f"[bold]Value:[/bold]       {format_money(latest.total_value, ccy)}",
        f"[bold]Cost:[/bold]        {format_money(latest.total_cost, ccy)}",
        f"[bold]Unrealized:[/bold]  {colored_money(latest.unrealized_pnl, ccy)} "
        f"({colored_percent(latest.unrealized_pnl_percent)})",
        f"[bold]Daily:[/bold]       {colored_money(latest.daily_pnl, ccy)} ({colored_percent(latest.daily_pnl_percent)})",
        f"[bold]Cumulative:[/bold]  {colored_money(latest.cumulative_pnl, ccy)}",
    ]
    console.print(
        Panel(
            "\n".join(lines),
            title=f"{latest.scope_key} @ {latest.snapshot_date.isoformat()}",
            border_style=BORDER_PRIMARY,
            padding=PANEL_PADDING,
        )
    )

    breakdown = latest.breakdown
    if breakdown:
        table = Table(title="Breakdown")
        table.add_column("Asset type")
        table.add_column("Currency")
        table.add_column("Value", justify="right")
        table.add_column("Cost", justify="right")
        table.add_column("P&L", justify="right")
        for item in breakdown:
            table.add_row(
                item.asset_type.display_name,
                item.currency,
                format_money(item.value, ccy),
                format_money(item.cost, ccy),
                colored_money(item.pnl, ccy),
            )
        console.print(table)


@snapshot.command("top")
@click.option("--limit", "-n", type=int, default=None, help="Number of holdings (default from config)")
@click.option("--portfolio", "-p", "portfolio_id", type=int, default=None, help="Portfolio ID (default: all)")
@click.pass_context
@handle_cli_errors
def snapshot_top(ctx: click.Context, limit: Optional[int], portfolio_id: Optional[int]) -> None:
    """Largest holdings by value in the latest snapshot."""
    console: Console = ctx.obj["console"]
    projection = WidgetProjection(_scope(portfolio_id), top_n=config.top_holdings_limit)
    latest = projection.latest()
    holdings = projection.top_holdings(limit)
    if latest is None or not holdings:
        console.print("[yellow]No holdings in the latest snapshot.[/yellow]")
        return

    table = Table(title=f"Top holdings ({latest.snapshot_date.isoformat()})")
    table.add_column("Symbol", style="bold")
    table.add_column("Name")
    table.add_column("Value", justify="right")
    table.add_column("Daily", justify="right")
    table.add_column("Daily %", justify="right")
    for h in holdings:
        table.add_row(
            h.symbol,
            h.name,
            format_money(h.market_value, latest.currency),
            colored_money(h.daily_pnl, latest.currency),
            colored_percent(h.daily_pnl_percent),
        )
    console.print(table)


@snapshot.command("stats")
@click.option("--month", default=None, help="Month as YYYY-MM (default: current month)")
@click.option("--year", type=int, default=None, help="Show monthly totals for a year instead")
@click.option("--portfolio", "-p", "portfolio_id", type=int, default=None, help="Portfolio ID (default: all)")
@click.pass_context
@handle_cli_errors
def snapshot_stats(ctx: click.Context, month: Optional[str], year: Optional[int], portfolio_id: Optional[int]) -> None:
    """Win rate, best and worst day for a month, or monthly totals for a year."""
    console: Console = ctx.obj["console"]
    scope = _scope(portfolio_id)

    if year is not None:
        snapshots = get_year_snapshots(year, scope)
        if not snapshots:
            console.print(f"[yellow]No snapshots in {year}.[/yellow]")
            return
        ccy = snapshots[-1].currency
        totals = monthly_totals(snapshots)
        table = Table(title=f"Monthly P&L {year}")
        table.add_column("Month")
        table.add_column("P&L", justify="right")
        for m in range(1, 13):
            total = totals.get(m)
            table.add_row(f"{year}-{m:02d}", colored_money(total, ccy) if total is not None else MISSING)
        console.print(table)
        return

    if month:
        try:
            parsed = datetime.strptime(month, "%Y-%m")
        except ValueError:
            raise click.BadParameter(f"Invalid month '{month}'. Use YYYY-MM") from None
        y, m = parsed.year, parsed.month
    else:
        today = date.today()
        y, m = today.year, today.month

    projection = WidgetProjection(scope)
    cells = projection.month_pnl(y, m)
    stats = projection.month_stats(y, m)
    if not cells:
        console.print(f"[yellow]No snapshots in {y}-{m:02d}.[/yellow]")
        return

    ccy = projection.latest().currency
    lines = [
        f"[bold]Days:[/bold]          {stats.days}",
        f"[bold]Total P&L:[/bold]     {colored_money(stats.total_pnl, ccy)}",
        f"[bold]Profit days:[/bold]   [green]{stats.profit_days}[/green]   "
        f"[bold]Loss days:[/bold] [red]{stats.loss_days}[/red]   [bold]Flat:[/bold] {stats.flat_days}",
        f"[bold]Win rate:[/bold]      {format_percent(stats.win_rate, signed=False)}",
        f"[bold]Avg daily:[/bold]     {colored_percent(stats.average_daily_pnl_percent)}",
    ]
    if stats.best_day:
        lines.append(f"[bold]Best day:[/bold]      {stats.best_day[0].isoformat()} {colored_money(stats.best_day[1], ccy)}")
    if stats.worst_day:
        lines.append(f"[bold]Worst day:[/bold]     {stats.worst_day[0].isoformat()} {colored_money(stats.worst_day[1], ccy)}")
    console.print(
        Panel("\n".join(lines), title=f"{y}-{m:02d}", border_style=BORDER_PRIMARY, padding=PANEL_PADDING)
    )


@snapshot.command("backfill")
@click.option("--start", "start_str", default=None, help="First day (YYYY-MM-DD, default: first transaction)")
@click.option("--end", "end_str", default=None, help="Last day (YYYY-MM-DD, default: today)")
@click.option("--period", default=None, help="Yahoo history period (default from config, e.g. 1y)")
@click.pass_context
@handle_cli_errors
def snapshot_backfill(ctx: click.Context, start_str: Optional[str], end_str: Optional[str], period: Optional[str]) -> None:
    """Rebuild missing snapshots from historical prices and rates."""
    console: Console = ctx.obj["console"]
    start = _parse_day(start_str, "start date")
    end = _parse_day(end_str, "end date") or date.today()

    portfolios = PortfolioManager().load_ledgers()
    symbols = sorted({h.symbol for p in portfolios for h in p.holdings})
    if not symbols:
        console.print("[yellow]No holdings to backfill.[/yellow]")
        return

    provider = YahooMarketData(config.quote_timeout_seconds)
    period = period or config.backfill_period
    with console.status("[bold blue]Fetching price and rate history...[/bold blue]"):
        price_history = provider.fetch_price_history(symbols, period)
        rate_history = {}
        for pair in sorted(required_pairs(portfolios, config.reporting_currency, open_only=False)):
            try:
                rate_history[pair] = provider.fetch_rate_history(pair[0], pair[1], period)
            except MarketDataError as e:
                console.print(f"[yellow]Rate history unavailable for {pair[0]}{pair[1]}:[/yellow] {e}")

    if not price_history:
        console.print("[red]No price history available.[/red]")
        return

    if start is None:
        # Nothing to value before the first transaction or the first price
        first_trade = min((d for p in portfolios for h in p.holdings if (d := h.first_date()) is not None), default=None)
        start = min(min(series) for series in price_history.values())
        if first_trade is not None:
            start = max(start, first_trade)
    if start > end:
        raise click.BadParameter(f"Start {start.isoformat()} is after end {end.isoformat()}")

    written = backfill_snapshots(
        portfolios,
        price_history,
        rate_history,
        config.reporting_currency,
        start,
        end,
        lookback_days=config.history_lookback_days,
        skip_weekends=config.skip_weekend_snapshots,
    )
    console.print(
        f"[green]Backfilled {written} snapshot(s)[/green] from {start.isoformat()} to {end.isoformat()}"
    )
