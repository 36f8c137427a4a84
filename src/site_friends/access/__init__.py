"""Token authentication, token lifecycle and role transitions."""

from site_friends.access.control import (
    ROLE_RANK,
    AccessControl,
    Authentication,
    RoleTransition,
)
from site_friends.access.logins import derive_login, is_valid_site_url
from site_friends.access.sessions import SESSION_COOKIE_NAME, SessionStore
from site_friends.access.tokens import TokenStore, generate_token


__all__ = [
    "ROLE_RANK",
    "AccessControl",
    "Authentication",
    "RoleTransition",
    "derive_login",
    "is_valid_site_url",
    "SESSION_COOKIE_NAME",
    "SessionStore",
    "TokenStore",
    "generate_token",
]
