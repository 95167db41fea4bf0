"""Serve command - Run the HTTP API."""

import typer
import uvicorn


def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(3000, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Start the Agent Office API server."""
    uvicorn.run(
        "agentoffice.api.server:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )
