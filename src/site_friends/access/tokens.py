"""Token store: opaque secrets mapped to account ids."""

import secrets

from structlog import get_logger

from site_friends.db.models import TokenKind
from site_friends.db.repositories import TokenRepository


logger = get_logger(__name__)

TOKEN_BYTES = 20


def generate_token() -> str:
    """Generate a high-entropy opaque token (40 hex characters)."""
    return secrets.token_hex(TOKEN_BYTES)


class TokenStore:
    """Process-wide token to account mapping, one namespace per token kind."""

    def __init__(self, repository: TokenRepository) -> None:
        self.repository = repository

    async def lookup(self, token: str, kind: TokenKind) -> int | None:
        if not token:
            return None
        return await self.repository.get_account_id(token, kind)

    async def bind(self, token: str, kind: TokenKind, account_id: int) -> None:
        await self.repository.put(token, kind, account_id)
        logger.debug("token_bound", kind=str(kind), account_id=account_id)

    async def unbind(self, token: str) -> bool:
        return await self.repository.delete(token)

    async def forget_account(self, account_id: int, kind: TokenKind | None = None) -> int:
        """Drop every mapping of ``kind`` (or all kinds) pointing at an account."""
        removed = await self.repository.delete_for_account(account_id, kind)
        if removed:
            logger.debug(
                "tokens_forgotten",
                account_id=account_id,
                kind=str(kind) if kind else "all",
                count=removed,
            )
        return removed
