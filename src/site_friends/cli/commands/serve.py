"""Run the HTTP server."""

from pathlib import Path
from typing import Annotated

import typer
import uvicorn

from site_friends.api.app import create_app
from site_friends.cli.helpers import console, load_settings


def serve(
    ctx: typer.Context,
    host: Annotated[
        str | None, typer.Option("--host", "-h", help="Interface to bind to")
    ] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Port")] = None,
    site_url: Annotated[
        str | None,
        typer.Option("--site-url", help="Public root URL announced to friends"),
    ] = None,
    db_path: Annotated[
        Path | None, typer.Option("--db-path", help="SQLite database file")
    ] = None,
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Logging level")
    ] = None,
    log_file: Annotated[
        str | None, typer.Option("--log-file", help="Mirror logs into this file")
    ] = None,
) -> None:
    """Start the Site Friends server."""
    settings = load_settings(
        ctx.obj.get("config") if ctx.obj else None,
        host=host,
        port=port,
        site_url=site_url,
        db_path=db_path,
        log_level=log_level,
        log_file=log_file,
    )
    console.print(
        f"[bold green]Serving[/bold green] {settings.site.url} "
        f"on {settings.server.host}:{settings.server.port}"
    )
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )
