"""Wiring of the repositories, clients and engines of one site."""

from dataclasses import dataclass

import httpx
from structlog import get_logger

from site_friends import __version__
from site_friends.access import AccessControl, SessionStore, TokenStore
from site_friends.config.settings import Settings
from site_friends.db.engine import SessionFactory
from site_friends.db.repositories import (
    AccountRepository,
    PostRepository,
    TokenRepository,
)
from site_friends.handshake import (
    FriendRequestRateLimiter,
    HandshakeProtocol,
    RemoteSiteClient,
)
from site_friends.sync import FeedClient, FeedSyncEngine


logger = get_logger(__name__)


@dataclass
class FriendsServices:
    """Everything a request handler, the CLI or the scheduler needs."""

    settings: Settings
    http_client: httpx.AsyncClient
    accounts: AccountRepository
    posts: PostRepository
    tokens: TokenStore
    access: AccessControl
    sessions: SessionStore
    remote: RemoteSiteClient
    feed_client: FeedClient
    sync_engine: FeedSyncEngine
    rate_limiter: FriendRequestRateLimiter
    handshake: HandshakeProtocol

    async def aclose(self) -> None:
        await self.http_client.aclose()


def create_http_client(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """Shared client for every outbound call to remote sites."""
    return httpx.AsyncClient(
        transport=transport,
        follow_redirects=True,
        max_redirects=settings.federation.max_redirects,
        timeout=settings.federation.protocol_timeout,
        headers={"user-agent": f"site-friends/{__version__}"},
    )


def build_services(
    settings: Settings,
    session_factory: SessionFactory | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FriendsServices:
    """Build the service graph.

    Args:
        settings: Application settings
        session_factory: Database session factory; the process-wide database
            is used when omitted
        http_client: Outbound HTTP client; one is created from the
            federation settings when omitted
    """
    federation = settings.federation
    http_client = http_client or create_http_client(settings)

    accounts = AccountRepository(session_factory)
    posts = PostRepository(session_factory)
    tokens = TokenStore(TokenRepository(session_factory))
    access = AccessControl(accounts, tokens)

    remote = RemoteSiteClient(http_client, timeout=federation.protocol_timeout)
    feed_client = FeedClient(
        http_client,
        timeout=federation.feed_timeout,
        attempts=federation.feed_fetch_attempts,
        retry_wait=federation.feed_retry_wait_seconds,
    )
    sync_engine = FeedSyncEngine(
        accounts,
        posts,
        feed_client,
        max_concurrency=settings.scheduler.max_concurrent_fetches,
    )
    rate_limiter = FriendRequestRateLimiter(
        max_requests=federation.rate_limit_requests,
        window_seconds=federation.rate_limit_window_seconds,
    )
    handshake = HandshakeProtocol(
        access, remote, sync_engine, settings.site, rate_limiter=rate_limiter
    )

    logger.debug("services_built", site_url=settings.site.url)
    return FriendsServices(
        settings=settings,
        http_client=http_client,
        accounts=accounts,
        posts=posts,
        tokens=tokens,
        access=access,
        sessions=SessionStore(settings.security.session_ttl_seconds),
        remote=remote,
        feed_client=feed_client,
        sync_engine=sync_engine,
        rate_limiter=rate_limiter,
        handshake=handshake,
    )
