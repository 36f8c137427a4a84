"""Entry point of the ``site-friends`` command."""

from pathlib import Path
from typing import Annotated

import typer

from site_friends import __version__
from site_friends.cli.commands.friends import (
    accept,
    accounts,
    delete,
    refresh,
    request,
    subscribe,
)
from site_friends.cli.commands.serve import serve
from site_friends.cli.helpers import console


app = typer.Typer(
    name="site-friends",
    help="Federated friendships between independent sites",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"site-friends {__version__}")
        raise typer.Exit()


@app.callback()
def app_main(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to a TOML config file"),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """Site Friends command line."""
    ctx.obj = {"config": config}


app.command(name="serve")(serve)
app.command(name="request")(request)
app.command(name="subscribe")(subscribe)
app.command(name="accept")(accept)
app.command(name="accounts")(accounts)
app.command(name="refresh")(refresh)
app.command(name="delete")(delete)


def main() -> None:
    app()
