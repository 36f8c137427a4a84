"""Database package for SQLite persistence."""

from site_friends.db.engine import (
    SessionFactory,
    close_db,
    create_database,
    get_session,
    init_db,
)
from site_friends.db.models import (
    Account,
    Post,
    PostKind,
    PostStatus,
    Role,
    TokenKind,
    TokenRecord,
)


__all__ = [
    "Account",
    "Post",
    "PostKind",
    "PostStatus",
    "Role",
    "SessionFactory",
    "TokenKind",
    "TokenRecord",
    "close_db",
    "create_database",
    "get_session",
    "init_db",
]
