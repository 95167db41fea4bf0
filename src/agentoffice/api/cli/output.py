"""Terminal rendering of office events."""

import logging

import structlog
from rich.console import Console
from rich.markup import escape

from agentoffice.core.domain.events import EventType, OfficeEvent

_LOG_STYLES = {
    "SYSTEM": "dim",
    "MISSION": "bold blue",
    "COLLAB": "magenta",
    "COMPLETE": "bold green",
    "AGENT": "white",
}


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


def render_event(console: Console, event: OfficeEvent) -> None:
    # Agent and mission text is user-controlled; never let it act as markup
    data = {key: escape(value) if isinstance(value, str) else value for key, value in event.data.items()}
    if event.type is EventType.TEAM_LOG:
        style = _LOG_STYLES.get(data.get("type", ""), "white")
        console.print(f"[{style}]{data.get('content', '')}[/{style}]", highlight=False)
    elif event.type is EventType.AGENT_STATUS:
        zone = f" @ {data['zone']}" if data.get("zone") else ""
        console.print(f"[cyan]{data['agentId'].upper():>5}[/cyan] {data['status']}{zone}")
    elif event.type is EventType.AGENT_MESSAGE:
        console.print(f"[cyan]{data['agentId'].upper():>5}[/cyan] [italic]{data['message']}[/italic]")
    elif event.type is EventType.AGENT_COLLABORATION:
        console.print(
            f"[magenta]{data['fromAgentId'].upper()} -> {data['toAgentId'].upper()}[/magenta] "
            f"({data['collaborationType']}) {data['message']}"
        )
    elif event.type is EventType.MISSION_DELIVERABLE:
        console.print(f"[yellow]\\[>] {data['agentId'].upper()} delivered {data['type']}: {data['title']}[/yellow]")
    elif event.type is EventType.TASK_PROGRESS:
        console.print(f"[dim]task {data['taskName']}: {data['status']} ({data['progress']}%)[/dim]")
    elif event.type is EventType.USER_PROMPT_REQUIRED:
        console.print(f"[bold yellow]? {data['agentId'].upper()} asks: {data['question']}[/bold yellow]")
    elif event.type is EventType.MISSION_COMPLETE:
        console.print(f"[bold green]\\[+] {data.get('message', 'Mission complete')}[/bold green]")
        if event.data.get("results"):
            console.print_json(data=event.data["results"])
    elif event.type is EventType.ERROR:
        console.print(f"[bold red]\\[x] {data.get('error', 'Unknown error')}[/bold red]")
