"""Database migration commands, driven through Alembic's command API."""

from pathlib import Path

import typer
from alembic import command
from alembic.config import Config
from alembic.util import CommandError
from rich.console import Console

console = Console()
app = typer.Typer(help="Database management commands")

ALEMBIC_INI = Path("alembic.ini")


def _alembic_config() -> Config:
    if not ALEMBIC_INI.exists():
        console.print(f"[red]Error:[/red] {ALEMBIC_INI} not found; run from the project root")
        raise typer.Exit(1)
    return Config(str(ALEMBIC_INI))


def _run(action: str, fn, *args, **kwargs) -> None:
    try:
        fn(_alembic_config(), *args, **kwargs)
    except CommandError as e:
        console.print(f"[red]{action} failed:[/red] {e}")
        raise typer.Exit(1) from e


@app.command("migrate")
def migrate(
    revision: str = typer.Argument("head", help="Target revision (default: head)"),
):
    """Upgrade the database to a revision."""
    console.print(f"[dim]Running migrations to {revision}...[/dim]")
    _run("Migration", command.upgrade, revision)
    console.print("[green]Migrations complete![/green]")


@app.command("rollback")
def rollback(
    revision: str = typer.Argument("-1", help="Target revision (default: one step back)"),
):
    """Downgrade the database to a revision."""
    console.print(f"[dim]Rolling back to {revision}...[/dim]")
    _run("Rollback", command.downgrade, revision)
    console.print("[green]Rollback complete![/green]")


@app.command("current")
def current():
    """Show the current database revision."""
    _run("Lookup", command.current, verbose=True)


@app.command("history")
def history(
    limit: int = typer.Option(10, "--limit", "-l", help="Number of revisions to show"),
):
    """Show recent migrations."""
    _run("History", command.history, rev_range=f"-{limit}:")


@app.command("create-migration")
def create_migration(
    message: str = typer.Argument(..., help="Migration message"),
    autogenerate: bool = typer.Option(
        True, "--autogenerate/--no-autogenerate", help="Diff models against the database"
    ),
):
    """Create a new migration revision."""
    _run("Revision", command.revision, message=message, autogenerate=autogenerate)
    console.print("[green]Migration created![/green]")
