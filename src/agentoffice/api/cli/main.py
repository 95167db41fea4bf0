"""Agent Office CLI entry point."""

import typer
from rich.console import Console

from agentoffice.api.cli.commands import run, serve, stats, watch
from agentoffice.api.cli.output import configure_logging

app = typer.Typer(
    name="agentoffice",
    help="Agent Office - mission execution and event streaming",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.command("serve")(serve.serve)
app.command("run")(run.run_mission)
app.command("watch")(watch.watch_mission)
app.command("stats")(stats.show_stats)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """Agent Office CLI."""
    configure_logging(verbose)
    ctx.obj = {"verbose": verbose}


@app.command()
def version():
    """Show Agent Office version."""
    from agentoffice import __version__

    console.print(f"[bold blue]Agent Office[/bold blue] version [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
