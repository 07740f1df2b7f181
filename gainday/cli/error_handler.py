"""Shared CLI error handling decorator.

Catches Gainday's domain errors in a single place so commands only deal
with the happy path. Commands can still handle command-specific
exceptions internally before the decorator catches the rest.

Usage:
    @click.command()
    @click.pass_context
    @handle_cli_errors
    def my_command(ctx, ...):
        ...
"""

import functools
import logging

import click
from rich.console import Console

from gainday.core.data.exceptions import (
    AccountTypeLockedError,
    CSVImportError,
    GaindayError,
    MarketDataError,
    MissingRateError,
    NegativeQuantityError,
    NotFoundError,
    UnknownEnumValueError,
)

logger = logging.getLogger(__name__)


def handle_cli_errors(f):
    """Decorator that catches Gainday exceptions with Rich-formatted output.

    Must be applied AFTER @click.pass_context so the first positional arg
    is the Click context (which provides the console via ctx.obj["console"]).
    """

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        # Get console from Click context if available
        ctx = click.get_current_context(silent=True)
        console = ctx.obj["console"] if ctx and ctx.obj and "console" in ctx.obj else Console()

        try:
            return f(*args, **kwargs)
        except SystemExit:
            raise  # Don't intercept explicit exits
        except (click.exceptions.Exit, click.exceptions.Abort, click.ClickException):
            raise  # Click reports usage errors itself
        except NotFoundError as e:
            console.print(f"[red]Not found:[/red] {e}")
            raise SystemExit(1)
        except NegativeQuantityError as e:
            console.print(f"[red]Rejected:[/red] {e}")
            console.print("[dim]Sells cannot exceed the quantity held on their date.[/dim]")
            raise SystemExit(1)
        except AccountTypeLockedError as e:
            console.print(f"[red]Rejected:[/red] {e}")
            raise SystemExit(1)
        except UnknownEnumValueError as e:
            console.print(f"[red]Invalid value:[/red] {e}")
            if e.value == "normal":
                console.print("[yellow]Run `gainday db migrate` to upgrade legacy account types.[/yellow]")
            raise SystemExit(1)
        except MissingRateError as e:
            console.print(f"[red]Missing exchange rate:[/red] {e}")
            raise SystemExit(1)
        except MarketDataError as e:
            console.print(f"[red]Market data error:[/red] {e}")
            console.print("[yellow]Check your network connection and try again.[/yellow]")
            raise SystemExit(1)
        except CSVImportError as e:
            console.print(f"[red]CSV import failed:[/red] {e}")
            raise SystemExit(1)
        except GaindayError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise SystemExit(1)
        except ValueError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise SystemExit(1)
        except Exception as e:
            logger.exception("Unexpected error in %s command", f.__name__)
            console.print(f"[red]Unexpected error:[/red] {e}")
            raise SystemExit(1)

    return wrapper
