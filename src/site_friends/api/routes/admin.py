"""Admin JSON API.

Endpoints:
    GET    /admin/accounts                    - List accounts with their roles
    DELETE /admin/accounts/{id}               - Delete an account and its tokens
    POST   /admin/accounts/{id}/refresh       - Sync one account's feed
    POST   /admin/friend-requests             - Send a friend request
    POST   /admin/friend-requests/accept      - Accept received requests
    POST   /admin/friend-requests/resend      - Re-send requests
    POST   /admin/subscriptions               - Subscribe to a site's feed
    POST   /admin/refresh                     - Sync every followed feed
    GET    /admin/friend-posts                - Cached friend posts
    POST   /admin/posts                       - Publish one of our own posts

Security:
    When ``security.admin_token`` is set every endpoint requires it as a
    bearer token.
"""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from site_friends.access.logins import ensure_scheme
from site_friends.api.dependencies import ServicesDep, require_admin
from site_friends.db.models import Account, Post, PostKind, PostStatus
from site_friends.exceptions import AccountNotFoundError
from site_friends.handshake.models import FriendRequestOutcome
from site_friends.sync.engine import BatchSyncReport


logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)]
)


# ============================================================================
# Request/Response Models
# ============================================================================


class AccountOut(BaseModel):
    """An account as shown to the admin; tokens are never exposed."""

    id: int
    login: str
    site_url: str
    role: str
    display_name: str | None = None
    email: str | None = None
    is_new: bool = False
    has_out_token: bool = False
    last_synced_at: datetime | None = None
    last_sync_error: str | None = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountOut":
        return cls(
            id=account.id,  # type: ignore[arg-type]
            login=account.login,
            site_url=account.site_url,
            role=account.role,
            display_name=account.display_name,
            email=account.email,
            is_new=account.is_new,
            has_out_token=bool(account.out_token),
            last_synced_at=account.last_synced_at,
            last_sync_error=account.last_sync_error,
        )


class SiteUrlRequest(BaseModel):
    site_url: str = Field(..., min_length=1, description="Root URL of the remote site")


class AccountIdsRequest(BaseModel):
    account_ids: list[int] = Field(..., description="Accounts to act on")


class FriendRequestResponse(BaseModel):
    outcome: FriendRequestOutcome
    account: AccountOut | None = None


class CountResponse(BaseModel):
    count: int


class SyncResultOut(BaseModel):
    account_id: int
    created: int
    updated: int


class SyncFailureOut(BaseModel):
    account_id: int
    login: str
    error: str


class SyncReportOut(BaseModel):
    created: int
    updated: int
    results: list[SyncResultOut]
    failures: list[SyncFailureOut]

    @classmethod
    def from_report(cls, report: BatchSyncReport) -> "SyncReportOut":
        return cls(
            created=report.created,
            updated=report.updated,
            results=[SyncResultOut(**vars(r)) for r in report.results],
            failures=[SyncFailureOut(**vars(f)) for f in report.failures],
        )


class PostOut(BaseModel):
    id: int
    kind: str
    author_account_id: int | None = None
    author_name: str | None = None
    title: str
    content: str
    status: str
    permalink: str | None = None
    remote_post_id: str | None = None
    comment_count: int = 0
    published_at: datetime | None = None
    modified_at: datetime | None = None

    @classmethod
    def from_post(cls, post: Post) -> "PostOut":
        return cls.model_validate(post, from_attributes=True)


class PostCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = ""
    status: PostStatus = PostStatus.PUBLISH


# ============================================================================
# API Endpoints
# ============================================================================


@router.get("/accounts", response_model=list[AccountOut])
async def list_accounts(
    services: ServicesDep, role: str | None = Query(default=None)
) -> list[AccountOut]:
    """List accounts, optionally filtered by role."""
    if role:
        accounts = await services.accounts.list_by_roles([role])
    else:
        accounts = await services.accounts.list_all()
    return [AccountOut.from_account(a) for a in accounts]


@router.delete("/accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(account_id: int, services: ServicesDep) -> None:
    await services.access.delete_account(account_id)
    services.sessions.discard_account(account_id)


@router.post("/accounts/{account_id}/refresh", response_model=SyncResultOut)
async def refresh_account(account_id: int, services: ServicesDep) -> SyncResultOut:
    result = await services.sync_engine.sync_account(account_id)
    return SyncResultOut(**vars(result))


@router.post("/friend-requests", response_model=FriendRequestResponse)
async def send_friend_request(
    body: SiteUrlRequest, services: ServicesDep
) -> FriendRequestResponse:
    """Send a friend request; sites without the protocol are subscribed to."""
    result = await services.handshake.send_friend_request(ensure_scheme(body.site_url))
    return FriendRequestResponse(
        outcome=result.outcome,
        account=AccountOut.from_account(result.account) if result.account else None,
    )


@router.post("/friend-requests/accept", response_model=CountResponse)
async def accept_friend_requests(
    body: AccountIdsRequest, services: ServicesDep
) -> CountResponse:
    accepted = await services.handshake.accept_friend_requests(body.account_ids)
    return CountResponse(count=accepted)


@router.post("/friend-requests/resend", response_model=CountResponse)
async def resend_friend_requests(
    body: AccountIdsRequest, services: ServicesDep
) -> CountResponse:
    sent = await services.handshake.send_friend_requests(body.account_ids)
    return CountResponse(count=sent)


@router.post("/subscriptions", response_model=AccountOut)
async def subscribe(body: SiteUrlRequest, services: ServicesDep) -> AccountOut:
    account = await services.handshake.subscribe(ensure_scheme(body.site_url))
    return AccountOut.from_account(account)


@router.post("/refresh", response_model=SyncReportOut)
async def refresh_all(services: ServicesDep) -> SyncReportOut:
    """Sync every followed feed now."""
    report = await services.sync_engine.sync_all()
    return SyncReportOut.from_report(report)


@router.get("/friend-posts", response_model=list[PostOut])
async def friend_posts(
    services: ServicesDep,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> list[PostOut]:
    posts = await services.posts.list_cached(limit=limit, offset=offset)
    return [PostOut.from_post(p) for p in posts]


@router.post("/posts", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(body: PostCreateRequest, services: ServicesDep) -> PostOut:
    """Publish one of our own posts to the feed."""
    now = datetime.now(UTC)
    post = await services.posts.create(
        kind=PostKind.POST,
        title=body.title,
        content=body.content,
        status=body.status,
        published_at=now,
        modified_at=now,
    )
    logger.info("post_published", post_id=post.id, status=str(body.status))
    return PostOut.from_post(post)


@router.get("/accounts/{account_id}", response_model=AccountOut)
async def get_account(account_id: int, services: ServicesDep) -> AccountOut:
    account = await services.accounts.get(account_id)
    if account is None:
        raise AccountNotFoundError(account_id)
    return AccountOut.from_account(account)
