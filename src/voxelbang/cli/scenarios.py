"""Scenario commands for voxel-bang.

List the catalog and run scenarios against fresh in-process servers.
"""

import asyncio
import sys
import time
from typing import List, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from voxelbang.harness.catalog import SCENARIOS, scenarios_in
from voxelbang.harness.errors import HarnessError
from voxelbang.harness.runner import default_timeout, execute, selected_versions
from voxelbang.utils.world_data import SUPPORTED_VERSIONS

app = typer.Typer(
    name="scenarios",
    help="List and run scenarios.",
)

console = Console()


@app.command("list")
def list_scenarios(
    group: Optional[str] = typer.Option(None, "--group", "-g", help="Only show one group"),
) -> None:
    """List the scenario catalog."""
    table = Table(title="Scenarios")
    table.add_column("Name", style="bold")
    table.add_column("Group")
    table.add_column("Actors")
    table.add_column("Description")
    for scenario in scenarios_in(group):
        table.add_row(scenario.name, scenario.group, ", ".join(scenario.usernames), scenario.description)
    console.print(table)


@app.command("run")
def run(
    names: Optional[List[str]] = typer.Argument(None, help="Scenarios to run (default: all)"),
    versions: Optional[List[str]] = typer.Option(
        None,
        "--version",
        help="Game version to run against; repeatable (default: VOXELBANG_FIRST/LAST_VERSION range)",
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Per-scenario timeout in seconds"),
    fail_fast: bool = typer.Option(False, "--fail-fast", "-x", help="Stop on the first failure"),
    verbose: bool = typer.Option(False, "--verbose", help="Show harness logs"),
) -> None:
    """Run scenarios, each on its own server with freshly logged-in bots.

    Examples:
        vb scenarios run                          # Everything, every selected version
        vb scenarios run can_dig --version 1.12.2 # One scenario on one version
        vb scenarios run -x -t 30                 # Stop at the first failure, 30s bound
    """
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")

    unknown = [name for name in names or [] if name not in SCENARIOS]
    if unknown:
        console.print(f"[red]Error:[/red] unknown scenario(s): {', '.join(unknown)}")
        raise typer.Exit(code=2)
    bad_versions = [v for v in versions or [] if v not in SUPPORTED_VERSIONS]
    if bad_versions:
        console.print(
            f"[red]Error:[/red] unsupported version(s): {', '.join(bad_versions)} "
            f"(supported: {', '.join(SUPPORTED_VERSIONS)})"
        )
        raise typer.Exit(code=2)

    selected = [SCENARIOS[name] for name in names] if names else list(SCENARIOS.values())
    versions = versions or selected_versions()
    timeout = timeout if timeout is not None else default_timeout()

    results = Table(title="Results")
    results.add_column("Version")
    results.add_column("Scenario", style="bold")
    results.add_column("Result")
    results.add_column("Time", justify="right")
    failures = 0

    for game_version in versions:
        for scenario in selected:
            started = time.monotonic()
            try:
                asyncio.run(execute(scenario, game_version, timeout=timeout))
                outcome = "[green]passed[/green]"
            except HarnessError as exc:
                failures += 1
                outcome = f"[red]failed[/red] {exc}"
            except Exception as exc:  # noqa: BLE001
                failures += 1
                outcome = f"[red]error[/red] {type(exc).__name__}: {exc}"
            results.add_row(game_version, scenario.name, outcome, f"{time.monotonic() - started:.2f}s")
            if failures and fail_fast:
                break
        if failures and fail_fast:
            break

    console.print(results)
    if failures:
        console.print(f"[red]{failures} scenario run(s) failed[/red]")
        raise typer.Exit(code=1)
    console.print("[green]All scenarios passed[/green]")
