"""Watch command - Stream a mission from a running server."""

import asyncio
import uuid
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from agentoffice.api.cli.output import render_event
from agentoffice.client.state import OfficeState
from agentoffice.client.stream import MissionStreamClient, StreamConnectionError

console = Console()


def watch_mission(
    mission: str = typer.Argument(..., help="Mission description"),
    mode: str = typer.Option("simulation", "--mode", "-m", help="simulation | hybrid | real"),
    url: str = typer.Option("http://localhost:3000", "--url", "-u", help="Server base URL"),
    mission_id: Optional[str] = typer.Option(None, "--mission-id", help="Mission identifier"),
):
    """Submit a mission to a server and follow its event stream."""
    client = MissionStreamClient(base_url=url)
    state = OfficeState()

    async def follow():
        state.start_mission(mission_id or f"mission-{uuid.uuid4().hex[:12]}", mission)
        async for event in client.stream_mission(mission, mode, state.current_mission_id):
            state.apply(event)
            render_event(console, event)

    try:
        asyncio.run(follow())
    except StreamConnectionError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Agents")
    table.add_column("Agent", style="cyan")
    table.add_column("Status", style="white")
    table.add_column("Zone", style="white")
    for agent in state.agents.values():
        table.add_row(agent.name, agent.status.value, agent.zone.value)
    console.print(table)

    if state.cache_status:
        console.print(f"[dim]Cache: {state.cache_status}[/dim]")
    if state.error:
        raise typer.Exit(1)
