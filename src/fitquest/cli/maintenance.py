"""Maintenance CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from fitquest.database import get_session_context
from fitquest.services.maintenance import prune_expired_tokens

console = Console()
app = typer.Typer(help="Maintenance and cleanup commands")


@app.command("prune-tokens")
def prune_tokens(
    dry_run: bool = typer.Option(False, "--dry-run", help="Only report, don't delete"),
):
    """Delete expired verification tokens, refresh tokens and unused password resets."""

    async def _prune():
        async with get_session_context() as session:
            counts = await prune_expired_tokens(session, dry_run=dry_run)

        table = Table(title="Expired Tokens")
        table.add_column("Table", style="cyan")
        table.add_column("Would Delete" if dry_run else "Deleted", justify="right")
        for name, count in counts.items():
            table.add_row(name, str(count))
        console.print(table)

        if dry_run and any(counts.values()):
            console.print("\n[yellow]Dry run mode - nothing was deleted.[/yellow]")

    asyncio.run(_prune())
