"""In-memory sessions created by remote login."""

import secrets

from cachetools import TTLCache


SESSION_COOKIE_NAME = "friends_session"


class SessionStore:
    """Session id to account id mapping that expires on its own."""

    def __init__(self, ttl_seconds: int, maxsize: int = 4096) -> None:
        self.ttl_seconds = ttl_seconds
        self._sessions: TTLCache[str, int] = TTLCache(maxsize=maxsize, ttl=ttl_seconds)

    def create(self, account_id: int) -> str:
        session_id = secrets.token_urlsafe(32)
        self._sessions[session_id] = account_id
        return session_id

    def get(self, session_id: str | None) -> int | None:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def discard_account(self, account_id: int) -> None:
        """End every session of an account."""
        for session_id in [s for s, a in self._sessions.items() if a == account_id]:
            self._sessions.pop(session_id, None)
