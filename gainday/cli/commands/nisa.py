"""NISA quota command."""

import json
from datetime import date
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gainday.cli.error_handler import handle_cli_errors
from gainday.cli.formatting import BORDER_ERROR, BORDER_PRIMARY, PANEL_PADDING, format_man_yen, format_percent, get_quota_color
from gainday.config import config
from gainday.core.portfolio.manager import PortfolioManager
from gainday.core.quota import BucketUsage, compute_quota


def _bar(ratio: float, width: int = 20) -> str:
    filled = min(width, int(round(ratio * width)))
    color = get_quota_color(ratio)
    return f"[{color}]{'█' * filled}[/{color}][dim]{'░' * (width - filled)}[/dim]"


def _usage_row(table: Table, label: str, used, limit, remaining, ratio: float) -> None:
    color = get_quota_color(ratio)
    table.add_row(
        label,
        format_man_yen(used),
        format_man_yen(limit),
        format_man_yen(remaining),
        f"{_bar(ratio)} [{color}]{format_percent(ratio * 100, signed=False)}[/{color}]",
    )


def _bucket_dict(bucket: BucketUsage) -> dict:
    return {
        "annual_used": str(bucket.annual_used),
        "annual_limit": str(bucket.annual_limit),
        "annual_remaining": str(bucket.annual_remaining),
        "lifetime_used": str(bucket.lifetime_used),
        "lifetime_limit": str(bucket.lifetime_limit),
        "lifetime_remaining": str(bucket.lifetime_remaining),
    }


@click.command()
@click.option("--year", type=int, default=None, help="Quota year (default: current year)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
@handle_cli_errors
def nisa(ctx: click.Context, year: Optional[int], as_json: bool) -> None:
    """
    Show NISA annual and lifetime quota usage.

    Usage is the purchase amount recorded in portfolios tagged
    nisa_tsumitate or nisa_growth. Sales free lifetime quota from the
    following year.

    \b
    Examples:
        gainday nisa
        gainday nisa --year 2024
    """
    console: Console = ctx.obj["console"]
    year = year or date.today().year
    ledgers = PortfolioManager().load_ledgers()
    report = compute_quota(ledgers, year, config.quota_limits)

    if as_json:
        data = {
            "year": report.year,
            "tsumitate": _bucket_dict(report.tsumitate),
            "growth": _bucket_dict(report.growth),
            "total_annual_used": str(report.total_annual_used),
            "total_annual_remaining": str(report.total_annual_remaining),
            "lifetime_used": str(report.lifetime_used),
            "lifetime_remaining": str(report.lifetime_remaining),
        }
        console.print(json.dumps(data, indent=2))
        return

    table = Table(title=f"NISA quota {year}")
    table.add_column("Bucket", style="bold")
    table.add_column("Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Usage")

    for bucket in (report.tsumitate, report.growth):
        _usage_row(
            table,
            f"{bucket.account_type.display_name} (annual)",
            bucket.annual_used,
            bucket.annual_limit,
            bucket.annual_remaining,
            bucket.annual_ratio,
        )
    _usage_row(
        table,
        "Total (annual)",
        report.total_annual_used,
        report.total_annual_limit,
        report.total_annual_remaining,
        report.total_annual_ratio,
    )
    _usage_row(
        table,
        f"{report.growth.account_type.display_name} (lifetime)",
        report.growth.lifetime_used,
        report.growth.lifetime_limit,
        report.growth.lifetime_remaining,
        report.growth.lifetime_ratio,
    )
    _usage_row(
        table,
        "Total (lifetime)",
        report.lifetime_used,
        report.lifetime_limit,
        report.lifetime_remaining,
        report.lifetime_ratio,
    )
    console.print(table)

    if not any(p.account_type.is_nisa for p in ledgers):
        console.print("[dim]No NISA portfolios. Tag one with `gainday portfolio set-type ID nisa_growth`.[/dim]")

    if report.total_annual_ratio >= 1:
        console.print(
            Panel(
                "[red]Annual NISA quota is fully used.[/red]",
                border_style=BORDER_ERROR,
                padding=PANEL_PADDING,
            )
        )
    else:
        console.print(
            Panel(
                f"You can still invest [bold]{format_man_yen(report.total_annual_remaining)}[/bold] this year "
                f"(growth up to {format_man_yen(min(report.growth.annual_remaining, report.growth.lifetime_remaining))}).",
                border_style=BORDER_PRIMARY,
                padding=PANEL_PADDING,
            )
        )
