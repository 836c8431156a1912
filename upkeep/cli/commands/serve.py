"""upkeep serve: run the HTTP API with uvicorn."""

from typing import Optional

import typer
from rich.console import Console

console = Console()


def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind to (default: UPKEEP_HOST)"),
    port: Optional[int] = typer.Option(None, help="Port to listen on (default: UPKEEP_PORT)"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Start the upkeep API server."""
    import uvicorn
    from upkeep.config import config

    host = host or config.host
    port = port or config.port
    console.print(f"[green]Starting upkeep API on {host}:{port}[/green]")
    uvicorn.run("upkeep.api.main:create_app", factory=True, host=host, port=port, reload=reload)
