"""CLI commands using Typer."""

import typer

from fitquest.cli.db import app as db_app
from fitquest.cli.maintenance import app as maintenance_app
from fitquest.cli.users import app as users_app

app = typer.Typer(name="fitquest", help="FitQuest CLI")

app.add_typer(db_app, name="db")
app.add_typer(users_app, name="users")
app.add_typer(maintenance_app, name="maintenance")


@app.command()
def version():
    """Show version information."""
    from fitquest import __version__

    typer.echo(f"FitQuest v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
):
    """Run the API server."""
    import uvicorn

    from fitquest.logging import get_uvicorn_log_config, setup_logging

    setup_logging()
    uvicorn.run(
        "fitquest.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=get_uvicorn_log_config(),
    )


if __name__ == "__main__":
    app()
