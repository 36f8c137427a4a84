"""Repository layer for database operations."""

from site_friends.db.repositories.account_repo import AccountRepository
from site_friends.db.repositories.post_repo import PostRepository
from site_friends.db.repositories.token_repo import TokenRepository


__all__ = ["AccountRepository", "PostRepository", "TokenRepository"]
