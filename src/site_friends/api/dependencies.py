"""FastAPI dependencies."""

import secrets
from typing import Annotated

from fastapi import Depends, Request

from site_friends.exceptions import AuthenticationRequiredError
from site_friends.services import FriendsServices


def get_services(request: Request) -> FriendsServices:
    services: FriendsServices | None = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized")
    return services


ServicesDep = Annotated[FriendsServices, Depends(get_services)]


def _extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization")
    if not auth_header:
        return None

    # Parse "Bearer <token>"
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]


def require_admin(request: Request, services: ServicesDep) -> None:
    """Guard for the admin routes; open when no admin token is configured."""
    expected = services.settings.security.admin_token
    if not expected:
        return
    token = _extract_bearer_token(request)
    if token is None:
        raise AuthenticationRequiredError("Missing bearer token")
    if not secrets.compare_digest(token, expected):
        raise AuthenticationRequiredError("Invalid bearer token")
