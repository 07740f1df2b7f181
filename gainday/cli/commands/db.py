"""Database setup commands."""

import click
from rich.console import Console

from gainday.cli.error_handler import handle_cli_errors
from gainday.config import config
from gainday.core.portfolio.snapshot_service import delete_all_snapshots
from gainday.db.database import drop_all, init_db
from gainday.db.migrations import pending_account_type_migrations, run_migrations


@click.group()
@click.pass_context
def db(ctx: click.Context) -> None:
    """
    Initialise, migrate and reset the local database.

    \b
    Examples:
        gainday db init
        gainday db migrate
        gainday db reset --snapshots-only
    """
    pass


@db.command("init")
@click.pass_context
@handle_cli_errors
def db_init(ctx: click.Context) -> None:
    """Create the database and its tables."""
    console: Console = ctx.obj["console"]
    config.ensure_directories()
    init_db()
    console.print(f"[green]Database ready at {config.db_path}[/green]")


@db.command("migrate")
@click.option("--dry-run", is_flag=True, help="Only report pending migrations")
@click.pass_context
@handle_cli_errors
def db_migrate(ctx: click.Context, dry_run: bool) -> None:
    """Rewrite legacy stored values (e.g. account type 'normal' -> 'general')."""
    console: Console = ctx.obj["console"]
    init_db()
    if dry_run:
        pending = pending_account_type_migrations()
        console.print(f"{pending} portfolio(s) would be migrated")
        return
    counts = run_migrations()
    total = sum(counts.values())
    if total == 0:
        console.print("[green]Nothing to migrate[/green]")
        return
    for name, count in counts.items():
        console.print(f"[green]Migrated {count} {name} value(s)[/green]")


@db.command("reset")
@click.option("--snapshots-only", is_flag=True, help="Delete snapshots but keep portfolios and transactions")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
@handle_cli_errors
def db_reset(ctx: click.Context, snapshots_only: bool, yes: bool) -> None:
    """Delete all data (or all snapshots)."""
    console: Console = ctx.obj["console"]
    what = "all snapshots" if snapshots_only else "ALL portfolios, transactions and snapshots"
    if not yes:
        click.confirm(f"Delete {what}?", abort=True)

    if snapshots_only:
        deleted = delete_all_snapshots()
        console.print(f"[green]Deleted {deleted} snapshot(s)[/green]")
        return

    drop_all()
    init_db()
    console.print("[green]Database reset[/green]")
