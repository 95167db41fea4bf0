"""Run command - Execute a mission in-process."""

import asyncio
import uuid
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from agentoffice.api.cli.output import render_event
from agentoffice.application.factory import build_services
from agentoffice.core.domain.models import ExecutionMode

console = Console()


def run_mission(
    mission: str = typer.Argument(..., help="Mission description"),
    mode: Optional[str] = typer.Option(
        None, "--mode", "-m", help="simulation | hybrid | real (default: MODE env)"
    ),
    mission_id: Optional[str] = typer.Option(None, "--mission-id", help="Mission identifier"),
):
    """Execute a mission locally and print its events.

    Examples:
        agentoffice run "Build a login page"
        agentoffice run "Build a login page" --mode hybrid
    """
    services = build_services()
    try:
        execution_mode = ExecutionMode.parse(mode) if mode else services.settings.mode
    except ValueError:
        console.print("[red]Invalid mode. Must be simulation, hybrid, or real[/red]")
        raise typer.Exit(2)

    mission_id = mission_id or str(uuid.uuid4())
    console.print(f"[bold]Mission:[/bold] {escape(mission)}  [dim]({execution_mode.value}, {mission_id})[/dim]")

    async def emit(event):
        render_event(console, event)

    async def execute():
        await services.startup()
        try:
            return await services.engine.execute(mission, execution_mode, mission_id, emit)
        finally:
            await services.shutdown()

    run = asyncio.run(execute())
    if not run.finished:
        raise typer.Exit(1)
