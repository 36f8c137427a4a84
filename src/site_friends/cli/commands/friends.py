"""Friendship management commands working on the local database."""

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from site_friends.access.logins import ensure_scheme
from site_friends.cli.helpers import console, load_settings, run_with_services
from site_friends.db.models import Account, Role
from site_friends.handshake.models import FriendRequestOutcome, FriendRequestResult
from site_friends.services import FriendsServices
from site_friends.sync.engine import BatchSyncReport, SyncResult


ConfigPath = Annotated[
    Path | None, typer.Option("--config", "-c", help="Path to a TOML config file")
]

_OUTCOME_STYLES = {
    FriendRequestOutcome.PENDING: "yellow",
    FriendRequestOutcome.FRIEND: "green",
    FriendRequestOutcome.SUBSCRIBED: "cyan",
    FriendRequestOutcome.ROLE_ASSIGNMENT_FAILED: "red",
}


def _config(ctx: typer.Context, config: Path | None) -> Path | None:
    if config is not None:
        return config
    return ctx.obj.get("config") if ctx.obj else None


def request(
    ctx: typer.Context,
    site_url: Annotated[str, typer.Argument(help="Root URL of the remote site")],
    config: ConfigPath = None,
) -> None:
    """Send a friend request (sites without the protocol are subscribed to)."""
    settings = load_settings(_config(ctx, config))
    url = ensure_scheme(site_url)

    async def action(services: FriendsServices) -> FriendRequestResult:
        return await services.handshake.send_friend_request(url)

    result = run_with_services(settings, action)
    style = _OUTCOME_STYLES[result.outcome]
    console.print(f"[{style}]{result.outcome}[/{style}] {url}")


def subscribe(
    ctx: typer.Context,
    site_url: Annotated[str, typer.Argument(help="Root URL of the remote site")],
    config: ConfigPath = None,
) -> None:
    """Follow a site's public feed."""
    settings = load_settings(_config(ctx, config))
    url = ensure_scheme(site_url)

    async def action(services: FriendsServices) -> Account:
        return await services.handshake.subscribe(url)

    account = run_with_services(settings, action)
    console.print(f"[cyan]subscribed[/cyan] {account.site_url} (#{account.id})")


def accept(
    ctx: typer.Context,
    account_ids: Annotated[list[int], typer.Argument(help="Account ids to accept")],
    config: ConfigPath = None,
) -> None:
    """Accept received friend requests."""
    settings = load_settings(_config(ctx, config))

    async def action(services: FriendsServices) -> int:
        return await services.handshake.accept_friend_requests(account_ids)

    accepted = run_with_services(settings, action)
    console.print(f"[green]Accepted {accepted} friend request(s).[/green]")


def accounts(
    ctx: typer.Context,
    role: Annotated[
        Role | None, typer.Option("--role", "-r", help="Only show this role")
    ] = None,
    config: ConfigPath = None,
) -> None:
    """List known sites and their relationship."""
    settings = load_settings(_config(ctx, config))

    async def action(services: FriendsServices) -> list[Account]:
        if role is not None:
            return await services.accounts.list_by_roles([role])
        return await services.accounts.list_all()

    rows = run_with_services(settings, action)
    if not rows:
        console.print("[yellow]No accounts found.[/yellow]")
        return

    table = Table(title="Accounts")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Site")
    table.add_column("Role")
    table.add_column("Name")
    table.add_column("Last sync")
    table.add_column("Error", style="red")

    for account in rows:
        role_label = account.role + (" [bold](new)[/bold]" if account.is_new else "")
        table.add_row(
            str(account.id),
            account.site_url,
            role_label,
            account.display_name or "-",
            account.last_synced_at.strftime("%Y-%m-%d %H:%M")
            if account.last_synced_at
            else "never",
            account.last_sync_error or "",
        )

    console.print(table)


def refresh(
    ctx: typer.Context,
    account_id: Annotated[
        int | None, typer.Argument(help="Only refresh this account")
    ] = None,
    config: ConfigPath = None,
) -> None:
    """Fetch friends' feeds now."""
    settings = load_settings(_config(ctx, config))

    if account_id is not None:

        async def one(services: FriendsServices) -> SyncResult:
            return await services.sync_engine.sync_account(account_id)

        result = run_with_services(settings, one)
        console.print(
            f"[green]Synced:[/green] {result.created} new, {result.updated} updated"
        )
        return

    async def everything(services: FriendsServices) -> BatchSyncReport:
        return await services.sync_engine.sync_all()

    report = run_with_services(settings, everything)
    console.print(
        f"[green]Synced:[/green] {report.created} new, {report.updated} updated"
    )
    for failure in report.failures:
        console.print(f"[red]Failed:[/red] {failure.login}: {failure.error}")


def delete(
    ctx: typer.Context,
    account_id: Annotated[int, typer.Argument(help="Account id to delete")],
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Skip confirmation")
    ] = False,
    config: ConfigPath = None,
) -> None:
    """Delete an account and revoke its tokens."""
    if not yes and not typer.confirm(f"Delete account {account_id}?"):
        raise typer.Abort()
    settings = load_settings(_config(ctx, config))

    async def action(services: FriendsServices) -> None:
        await services.access.delete_account(account_id)

    run_with_services(settings, action)
    console.print(f"[green]Deleted account {account_id}.[/green]")
