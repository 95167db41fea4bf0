"""Stats command - Show persisted usage statistics."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from agentoffice.application.settings import Settings

console = Console()


def show_stats(
    stats_file: Optional[Path] = typer.Option(None, "--file", "-f", help="Usage snapshot file"),
):
    """Print the usage snapshot written by the server."""
    path = stats_file or Path(Settings().usage_stats_file)
    if not path.exists():
        console.print(f"[yellow]No usage recorded yet ({path})[/yellow]")
        raise typer.Exit(0)

    snapshot = json.loads(path.read_text(encoding="utf-8"))

    table = Table(title=f"Usage (updated {snapshot.get('lastUpdated', 'N/A')})")
    table.add_column("Scope", style="cyan")
    table.add_column("Calls", justify="right")
    table.add_column("Cached", justify="right")
    table.add_column("API", justify="right")
    table.add_column("Est. tokens", justify="right")
    table.add_column("Hit rate", justify="right")

    for scope, key in (("Session", "sessionStats"), ("Today", "dailyStats")):
        stats = snapshot.get(key, {})
        table.add_row(
            scope,
            str(stats.get("totalCalls", 0)),
            str(stats.get("cachedCalls", 0)),
            str(stats.get("apiCalls", 0)),
            str(stats.get("estimatedTokens", 0)),
            f"{stats.get('cacheHitRate', 0):.1f}%",
        )

    console.print(table)
