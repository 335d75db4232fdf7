"""
Command line interface for the connection registry.

Uses Typer for CLI and Rich for terminal output.

Usage:
    connhub test-connections                 # Every locally declared connection
    connhub test-connections books users     # Selected logical names
    connhub drivers                          # Supported driver aliases
    connhub secrets clear                    # Empty the secret cache
    connhub secrets refresh books            # Re-fetch one secret
"""

from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .bootstrap import build_connection_manager, build_secret_cache, build_secrets_service
from .database.connectors import RelationalConnector, mask_config
from .database.factory import ConnectionFactory, DRIVER_ALIASES
from .exceptions import ConnectionHubError
from .utils.config import AppConfig, describe_config, load_config
from .utils.logging import setup_logging

# Initialize typer app and rich console
app = typer.Typer(
    help="Resolve logical connection names into live backend connections",
    add_completion=False,
)
secrets_app = typer.Typer(help="Secret cache maintenance", add_completion=False)
app.add_typer(secrets_app, name="secrets")
console = Console()


def _config(ctx: typer.Context) -> AppConfig:
    return ctx.obj["config"]


@app.callback()
def main(
    ctx: typer.Context,
    env_file: Optional[str] = typer.Option(
        None,
        "--env-file",
        "-e",
        help="Path to a .env file (default: ./.env)",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Override LOG_LEVEL",
    ),
):
    """Connection registry tools."""
    try:
        config = load_config(env_file)
    except ValueError as e:
        console.print(f"[bold red]✗ {e}[/bold red]")
        raise typer.Exit(code=2)

    setup_logging(log_level or config.log_level)
    ctx.obj = {"config": config}


@app.command("test-connections")
def test_connections(
    ctx: typer.Context,
    names: Optional[List[str]] = typer.Argument(
        None,
        help="Logical connection names (default: every locally declared connection)",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Deadline in seconds per connection (default: CONNECT_TIMEOUT)",
    ),
):
    """
    Resolve, connect and probe connections.

    Exits with code 1 when any connection fails.
    """
    config = _config(ctx)
    targets = list(names) if names else list(config.local_connections)

    if not targets:
        console.print(Panel(
            "[yellow]No connections to test.[/yellow]\n\n"
            "Pass names on the command line or declare them with LOCAL_CONNECTIONS.",
            border_style="yellow",
            box=box.ROUNDED,
        ))
        raise typer.Exit(code=1)

    results_table = Table(title="Connection Tests", box=box.ROUNDED)
    results_table.add_column("Name", style="cyan")
    results_table.add_column("Backend", style="white")
    results_table.add_column("Status")
    results_table.add_column("Details", style="dim")

    failures = 0
    with build_connection_manager(config) as manager:
        connected = {}
        for name in targets:
            try:
                connector = manager.get_connection(name, timeout=timeout)
                details = ""
                if isinstance(connector, RelationalConnector):
                    with connector.connection() as connection:
                        details = f"SELECT 1 -> {connection.execute(text('SELECT 1')).scalar()}"
            except (ConnectionHubError, SQLAlchemyError) as e:
                failures += 1
                results_table.add_row(name, "-", "[red]✗ failed[/red]", str(e))
                continue
            connected[name] = (connector, details)

        health = manager.health_report(timeout=timeout)
        for name, (connector, details) in connected.items():
            healthy = health.get(name, False)
            if not healthy:
                failures += 1
            status = "[green]✓ healthy[/green]" if healthy else "[red]✗ unhealthy[/red]"
            results_table.add_row(name, connector.kind.value, status, details)

    console.print(results_table)

    if failures:
        console.print(f"[bold red]{failures} of {len(targets)} connections failed[/bold red]")
        raise typer.Exit(code=1)
    console.print(f"[bold green]All {len(targets)} connections are healthy[/bold green]")


@app.command()
def drivers():
    """List supported driver aliases."""
    drivers_table = Table(title="Supported Drivers", box=box.ROUNDED)
    drivers_table.add_column("Alias", style="cyan")
    drivers_table.add_column("Backend", style="white")
    drivers_table.add_column("Relational", style="dim")

    for alias in ConnectionFactory.supported_drivers():
        kind = DRIVER_ALIASES[alias]
        drivers_table.add_row(alias, kind.value, "yes" if kind.is_relational else "no")

    console.print(drivers_table)


@app.command("show-config")
def show_config(ctx: typer.Context):
    """Print the effective configuration without credentials."""
    console.print(Panel(
        "\n".join(describe_config(_config(ctx))),
        title=f"connhub {__version__}",
        border_style="cyan",
        box=box.ROUNDED,
    ))


@secrets_app.command("clear")
def secrets_clear(ctx: typer.Context):
    """Delete every cached secret."""
    cache = build_secret_cache(_config(ctx))
    if cache is None:
        console.print("[yellow]Secret cache is disabled (SECRET_CACHE_ENABLED=false)[/yellow]")
        raise typer.Exit(code=1)

    removed = cache.clear()
    console.print(f"[green]✓ Removed {removed} cached secrets[/green]")


@secrets_app.command("refresh")
def secrets_refresh(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Secret name to re-fetch"),
):
    """Drop a cached secret and fetch it again from AWS Secrets Manager."""
    config = _config(ctx)
    service = build_secrets_service(config, build_secret_cache(config))

    try:
        secret = service.refresh_secret(name)
    except ConnectionHubError as e:
        console.print(f"[bold red]✗ {e}[/bold red]")
        raise typer.Exit(code=1)

    secret_table = Table(title=f"Secret '{name}'", box=box.ROUNDED)
    secret_table.add_column("Key", style="cyan")
    secret_table.add_column("Value", style="white")
    for key, value in mask_config(secret).items():
        secret_table.add_row(key, str(value))
    console.print(secret_table)


if __name__ == "__main__":
    app()
