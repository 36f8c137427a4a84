"""Shared CLI plumbing: settings loading and service lifetimes."""

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import typer
from rich.console import Console

from site_friends.config.settings import Settings, config_manager
from site_friends.db.engine import close_db, init_db
from site_friends.exceptions import ConfigurationError, FriendsError
from site_friends.services import FriendsServices, build_services


T = TypeVar("T")

console = Console()
err_console = Console(stderr=True)


def load_settings(config: Path | None = None, **cli_args: object) -> Settings:
    """Load settings, exiting with a message on configuration errors."""
    try:
        return config_manager.load_settings(
            config_path=config,
            cli_overrides=config_manager.get_cli_overrides_from_args(**cli_args),
        )
    except ConfigurationError as e:
        err_console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1) from e


async def _with_services(
    settings: Settings, action: Callable[[FriendsServices], Awaitable[T]]
) -> T:
    await init_db(settings.database.path)
    services = build_services(settings)
    try:
        return await action(services)
    finally:
        await services.aclose()
        await close_db()


def run_with_services(
    settings: Settings, action: Callable[[FriendsServices], Awaitable[T]]
) -> T:
    """Run an async action against the local database and exit on failure."""
    try:
        return asyncio.run(_with_services(settings, action))
    except FriendsError as e:
        err_console.print(f"[red]Error:[/red] {e.message} [dim]({e.code})[/dim]")
        raise typer.Exit(1) from e
