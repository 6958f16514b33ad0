"""
ConvoSpace CLI - command-line interface for ConvoSpace.

Server management plus a few inspection helpers.
"""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from convospace.logging_config import setup_logging

app = typer.Typer(
    name="convospace",
    help="ConvoSpace - chat relay to LLM providers",
    no_args_is_help=True,
)

console = Console()


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to (default: API_HOST)"),
    port: int = typer.Option(None, help="Port to bind to (default: API_PORT)"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """
    Start the FastAPI server.
    """
    import uvicorn

    from convospace.config import settings

    host = host or settings.api_host
    port = port or settings.api_port
    reload = reload or settings.api_reload

    console.print("[bold green]Starting ConvoSpace API server...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Reload: {reload}")
    console.print(f"\n  API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "convospace.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command("init-db")
def init_db() -> None:
    """
    Create all database tables from the models.

    For non-SQLite databases prefer ``alembic upgrade head``.
    """
    from convospace.config import settings
    from convospace.db.connection import init_db as create_tables

    try:
        setup_logging(context="cli")
    except PermissionError:
        import logging

        logging.basicConfig(level=logging.INFO)

    create_tables()
    console.print(f"[green]✓ Tables created[/green] ({settings.database_url.split('://')[0]})")


@app.command()
def providers() -> None:
    """Show the provider catalog and which providers are usable."""
    from convospace.providers import get_registry

    registry = get_registry()

    table = Table(title="LLM Providers")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Priority", justify="right")
    table.add_column("Default model")
    table.add_column("Available")

    for spec in registry.specs():
        available = registry.is_available(spec.id)
        table.add_row(
            spec.id,
            spec.name,
            str(spec.priority),
            spec.default_model,
            "[green]yes[/green]" if available else "[dim]no key[/dim]",
        )

    console.print(table)


@app.command("parse-commands")
def parse_commands_cmd(
    path: Path = typer.Argument(..., help="File containing model output"),
) -> None:
    """Print the command block found in a model response as JSON."""
    from convospace.chat.commands import parse_commands

    if not path.is_file():
        console.print(f"[bold red]Error:[/bold red] File not found: {path}")
        raise typer.Exit(1)

    commands = parse_commands(path.read_text(encoding="utf-8"))
    if commands is None:
        console.print("[yellow]No command block found[/yellow]")
        raise typer.Exit(1)

    console.print_json(json.dumps(commands.to_dict()))


if __name__ == "__main__":
    app()
