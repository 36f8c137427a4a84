"""Health check and session identity endpoints."""

from typing import Any

from fastapi import APIRouter, Request

from site_friends import __version__
from site_friends.api.dependencies import ServicesDep


router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": __version__}


@router.get("/me")
async def me(request: Request, services: ServicesDep) -> dict[str, Any]:
    """The friend identified by a session cookie or a ``friend`` token."""
    account_id = getattr(request.state, "account_id", None)
    account = await services.accounts.get(account_id) if account_id else None
    if account is None:
        return {"authenticated": False}
    return {
        "authenticated": True,
        "account_id": account.id,
        "login": account.login,
        "site_url": account.site_url,
        "role": account.role,
    }
