"""Main Typer application for the voxel-bang CLI.

This module defines the root CLI app and registers all command groups.
"""

import asyncio
import logging
from importlib.metadata import PackageNotFoundError, version as get_version
from pathlib import Path
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.table import Table

from voxelbang import __version__
from voxelbang.cli import scenarios as scenarios_cmd
from voxelbang.game_server.instance import serve_forever
from voxelbang.game_server.settings import load_default_settings
from voxelbang.utils.config import get_world_data_path

# Console for rich output
console = Console()

# Main app
app = typer.Typer(
    name="vb",
    help="voxel-bang CLI - Run a world server and its scenario suite.",
    rich_markup_mode="rich",
)

# Register command groups
app.add_typer(scenarios_cmd.app, name="scenarios", help="List and run scenarios")


@app.command()
def serve(
    port: int = typer.Option(25565, "--port", "-p", envvar="PORT", help="Port to listen on (0 picks a free one)"),
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    world: Optional[Path] = typer.Option(
        None,
        "--world",
        "-w",
        help="World folder for the event log (default: VOXELBANG_WORLD_DIR or ./world)",
    ),
    game_version: Optional[str] = typer.Option(None, "--game-version", help="Protocol version to speak"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Terrain seed (random when omitted)"),
    online_mode: bool = typer.Option(False, "--online-mode/--offline", help="Require authenticated logins"),
) -> None:
    """Run a world server until interrupted."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    base = load_default_settings()
    overrides = {
        "host": host,
        "port": port,
        "online_mode": online_mode,
        "world_folder": world or get_world_data_path(),
        "generation": {
            "name": base.generation.name,
            "options": {"seed": seed, "world_height": base.generation.options.world_height},
        },
    }
    if game_version:
        overrides["version"] = game_version
    settings = base.with_overrides(**overrides)
    settings.world_folder.mkdir(parents=True, exist_ok=True)

    console.print(
        f"[bold]Serving[/bold] {settings.version} on {settings.host}:{settings.port} "
        f"(world: {settings.world_folder})"
    )
    try:
        asyncio.run(serve_forever(settings))
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
    except OSError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)


@app.command()
def status(
    port: int = typer.Option(25565, "--port", "-p", envvar="PORT", help="Server port"),
    host: str = typer.Option("127.0.0.1", "--host", help="Server host"),
) -> None:
    """Show the status of a running server."""
    url = f"http://{host}:{port}/"
    try:
        response = httpx.get(url, timeout=5.0)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        console.print(f"[red]Error:[/red] could not reach {url}: {exc}")
        raise typer.Exit(code=1)

    data = response.json()
    table = Table(title=data.get("motd") or url, show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Status", str(data.get("status")))
    table.add_row("Game version", str(data.get("game_version")))
    table.add_row("Players", f"{data.get('online', 0)}/{data.get('max_players', '?')}")
    for name in data.get("players", []):
        table.add_row("", name)
    console.print(table)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        try:
            v = get_version("voxel-bang")
        except PackageNotFoundError:
            v = __version__
        console.print(f"[bold]voxel-bang[/bold] v{v}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        is_eager=True,
        callback=version_callback,
    ),
) -> None:
    """voxel-bang CLI - Run a world server and its scenario suite."""
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
