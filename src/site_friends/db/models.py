"""SQLModel database models."""

from datetime import UTC, datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel


class Role(StrEnum):
    """Relationship state of a remote site, from our point of view."""

    SUBSCRIPTION = "subscription"
    PENDING_FRIEND_REQUEST = "pending_friend_request"
    FRIEND_REQUEST = "friend_request"
    FRIEND = "friend"


class PostKind(StrEnum):
    """Distinguishes our own posts from cached copies of friends' posts."""

    POST = "post"
    FRIEND_POST_CACHE = "friend_post_cache"


class PostStatus(StrEnum):
    PUBLISH = "publish"
    PRIVATE = "private"


class TokenKind(StrEnum):
    """Namespaces of the token table."""

    IN = "in"  # proves an inbound request is the named friend
    REQUEST = "request"  # redeemable once the remote accepts our request


def _now() -> datetime:
    return datetime.now(UTC)


class Account(SQLModel, table=True):
    """A remote site we have a relationship with."""

    __tablename__ = "accounts"
    # Ids are never reused: cached posts outlive a deleted account
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(default=None, primary_key=True)
    login: str = Field(index=True, unique=True)
    site_url: str
    role: str = Field(index=True)
    display_name: str | None = None
    email: str | None = None

    # Unguessable placeholder, these accounts never log in with a password
    password_hash: str

    in_token: str | None = None
    out_token: str | None = None
    request_token: str | None = None

    is_new: bool = Field(default=True)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    last_synced_at: datetime | None = None
    last_sync_error: str | None = None


class TokenRecord(SQLModel, table=True):
    """Token to account mapping, looked up without loading the account."""

    __tablename__ = "tokens"

    token: str = Field(primary_key=True)
    kind: str = Field(index=True)
    account_id: int = Field(index=True, foreign_key="accounts.id")
    created_at: datetime = Field(default_factory=_now)


class Post(SQLModel, table=True):
    """A content item: one of our posts or a cached friend post."""

    __tablename__ = "posts"
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(default=None, primary_key=True)
    kind: str = Field(index=True)
    author_account_id: int | None = Field(
        default=None, index=True, foreign_key="accounts.id"
    )

    remote_post_id: str | None = Field(default=None, index=True)
    permalink: str | None = Field(default=None, index=True)

    title: str = ""
    content: str = ""
    status: str = Field(default=PostStatus.PUBLISH)
    published_at: datetime | None = None
    modified_at: datetime | None = None
    comment_count: int = Field(default=0)

    author_name: str | None = None
    avatar_url: str | None = None

    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
