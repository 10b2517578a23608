"""The serve command: run the HTTP API with uvicorn."""

from __future__ import annotations

from typing import Annotated, Optional

import typer
import uvicorn

from sqlanalyzer.api.settings import get_api_settings


def register(app: typer.Typer) -> None:
    """Register the serve command on the given Typer app."""

    @app.command()
    def serve(
        host: Annotated[Optional[str], typer.Option("--host", help="Bind address")] = None,
        port: Annotated[Optional[int], typer.Option("--port", "-p", help="Bind port")] = None,
        reload: Annotated[bool, typer.Option("--reload", help="Enable auto-reload for development")] = False,
    ) -> None:
        """
        Run the analysis HTTP API.

        The plan source comes from SQLANALYZER_API_DATABASE_URL or
        SQLANALYZER_API_FIXTURE_PATH.
        """
        settings = get_api_settings()
        bind_host = host or settings.host
        bind_port = port or settings.port

        typer.echo(f"Starting sqlanalyzer on http://{bind_host}:{bind_port}")
        uvicorn.run(
            "sqlanalyzer.api.app:create_app",
            host=bind_host,
            port=bind_port,
            reload=reload,
            factory=True,
        )
