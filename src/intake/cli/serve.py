"""
CLI: ``intake serve``: start the API server.
"""

from __future__ import annotations

import typer
import uvicorn

from intake.cli.utils import console
from intake.core.logging import configure_logging
from intake.core.settings import get_settings


def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address (default: settings)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port (default: settings)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Start the intake-core REST API server."""
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    level = (log_level or settings.log_level).upper()

    configure_logging(level=level, json_format=settings.log_json)
    console.print(
        f"[bold green]Starting intake-core API[/bold green] on {host}:{port} "
        f"(providers: {settings.provider_mode.value})"
    )
    uvicorn.run(
        "intake.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=level.lower(),
    )
