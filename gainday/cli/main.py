"""
Gainday CLI - portfolio valuation and ledger reconciliation.

Entry point for the command-line interface. Provides commands for:
- Portfolio, holding and transaction management
- CSV import/export of the ledger
- Live refresh (quotes, exchange rates, daily snapshots)
- Snapshot history, month statistics and historical backfill
- NISA quota usage
- Database management

Usage:
    gainday --help
    gainday portfolio create "Main" --currency JPY
    gainday portfolio add-holding 1 AAPL --name "Apple" --market US
    gainday portfolio buy 1 -q 10 -p 180 -d 2024-01-15
    gainday refresh
    gainday snapshot stats --month 2024-05
    gainday nisa
    gainday db init
"""

import logging
from collections import OrderedDict
from typing import Optional

import click
from rich.console import Console

from gainday import __version__
from gainday.cli.commands import db, nisa, portfolio, refresh, snapshot
from gainday.config import config


class OrderedGroup(click.Group):
    """Custom group that displays commands in organized categories."""

    COMMAND_GROUPS: OrderedDict[str, list[str]] = OrderedDict([
        ("Ledger", ["portfolio"]),
        ("Valuation", ["refresh", "snapshot", "nisa"]),
        ("Setup", ["db"]),
    ])

    def format_commands(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Write commands in organized groups."""
        for group_name, cmd_names in self.COMMAND_GROUPS.items():
            commands = []
            for cmd_name in cmd_names:
                cmd = self.get_command(ctx, cmd_name)
                if cmd:
                    help_text = cmd.get_short_help_str(limit=formatter.width)
                    commands.append((cmd_name, help_text))

            if commands:
                with formatter.section(group_name):
                    formatter.write_dl(commands)

# Global console for rich output
console = Console()


@click.group(cls=OrderedGroup)
@click.version_option(version=__version__, prog_name="gainday")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override GAINDAY_LOG_LEVEL",
)
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """
    Gainday - multi-currency portfolio valuation.

    Record transactions per holding, value every portfolio against live
    quotes and exchange rates, and keep one snapshot per day.

    \b
    Examples:
        gainday portfolio list            # Portfolios and their holdings
        gainday portfolio import trades.csv
        gainday refresh                   # Fetch prices, value, snapshot
        gainday snapshot list --range 1M  # Recent daily P&L
        gainday nisa --year 2025          # NISA quota usage
        gainday db init                   # Initialize database
    """
    logging.basicConfig(
        level=(log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["console"] = console


# Register command groups
cli.add_command(portfolio.portfolio)
cli.add_command(refresh.refresh)
cli.add_command(snapshot.snapshot)
cli.add_command(nisa.nisa)
cli.add_command(db.db)


def main() -> None:
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
