"""Feed sync engine: mirror remote feed items into the local post cache."""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from structlog import get_logger

from site_friends.db.models import Account, Post, PostKind, Role
from site_friends.db.repositories import AccountRepository, PostRepository
from site_friends.exceptions import (
    AccountNotFoundError,
    FeedUnreachableError,
    FriendsError,
)
from site_friends.sync.feed_client import FeedClient, FeedItem, ParsedFeed


logger = get_logger(__name__)

# Roles whose feeds are refreshed by a batch run
SYNC_ROLES = (Role.FRIEND, Role.PENDING_FRIEND_REQUEST, Role.SUBSCRIPTION)


@dataclass
class SyncResult:
    """Counts of one account's sync."""

    account_id: int
    created: int = 0
    updated: int = 0


@dataclass
class SyncFailure:
    account_id: int
    login: str
    error: str


@dataclass
class BatchSyncReport:
    """Outcome of a batch run; one entry per account."""

    results: list[SyncResult] = field(default_factory=list)
    failures: list[SyncFailure] = field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(r.created for r in self.results)

    @property
    def updated(self) -> int:
        return sum(r.updated for r in self.results)


def feed_url_for(account: Account) -> str:
    """Feed URL of an account, carrying our out-token when we have one."""
    feed_url = account.site_url.rstrip("/") + "/feed/"
    if account.out_token:
        feed_url += f"?friend={account.out_token}"
    return feed_url


class FeedSyncEngine:
    """Fetches friends' feeds and reconciles them against cached posts."""

    def __init__(
        self,
        accounts: AccountRepository,
        posts: PostRepository,
        feed_client: FeedClient,
        max_concurrency: int = 4,
    ) -> None:
        self.accounts = accounts
        self.posts = posts
        self.feed_client = feed_client
        self.max_concurrency = max_concurrency
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def sync(self, account: Account, feed: ParsedFeed | None = None) -> SyncResult:
        """Fetch (unless ``feed`` is given) and reconcile one account's feed.

        Raises:
            FeedUnreachableError: If the feed could not be fetched; the error
                is also recorded on the account
        """
        account_id: int = account.id  # type: ignore[assignment]
        if feed is None:
            try:
                feed = await self.feed_client.fetch(feed_url_for(account))
            except FeedUnreachableError as e:
                await self.accounts.update(account_id, last_sync_error=e.reason)
                logger.warning(
                    "feed_sync_failed",
                    account_id=account_id,
                    login=account.login,
                    error=e.reason,
                )
                raise

        async with self._locks[account_id]:
            result = await self.reconcile(account_id, feed.items)

        await self.accounts.update(
            account_id, last_synced_at=datetime.now(UTC), last_sync_error=None
        )
        logger.info(
            "feed_synced",
            account_id=account_id,
            login=account.login,
            created=result.created,
            updated=result.updated,
        )
        return result

    async def reconcile(self, account_id: int, items: list[FeedItem]) -> SyncResult:
        """Upsert feed items as cached posts of ``account_id``.

        A cached post matches an item by remote post id first, then by
        permalink. Matching is done against both keys of every cached post, so
        an item whose id changed but whose permalink did not is still updated
        in place.
        """
        result = SyncResult(account_id=account_id)
        index: dict[str, Post] = {}
        for post in await self.posts.list_cached_for_author(account_id):
            if post.remote_post_id:
                index[post.remote_post_id] = post
            if post.permalink:
                index[post.permalink] = post

        for item in items:
            post = None
            if item.post_id:
                post = index.get(item.post_id)
            if post is None and item.permalink:
                post = index.get(item.permalink)

            common: dict[str, Any] = {
                "author_name": item.author_name,
                "avatar_url": item.gravatar,
                "remote_post_id": item.post_id,
                "comment_count": item.comment_count,
            }
            if post is not None:
                for key in (post.remote_post_id, post.permalink):
                    if key and index.get(key) is post:
                        del index[key]
                post = await self.posts.update(
                    post.id,  # type: ignore[arg-type]
                    title=item.title,
                    content=item.content,
                    modified_at=item.modified_at,
                    status=item.post_status,
                    permalink=item.permalink,
                    **common,
                )
                result.updated += 1
            else:
                post = await self.posts.create(
                    kind=PostKind.FRIEND_POST_CACHE,
                    author_account_id=account_id,
                    title=item.title,
                    content=item.content,
                    published_at=item.published_at,
                    modified_at=item.modified_at,
                    status=item.post_status,
                    permalink=item.permalink,
                    **common,
                )
                result.created += 1

            # Later items in the same feed must see this one
            if post is not None:
                if post.remote_post_id:
                    index[post.remote_post_id] = post
                if post.permalink:
                    index[post.permalink] = post

        return result

    async def sync_account(self, account_id: int) -> SyncResult:
        account = await self.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return await self.sync(account)

    async def sync_all(self) -> BatchSyncReport:
        """Sync every followed account, isolating per-account failures."""
        accounts = await self.accounts.list_by_roles(SYNC_ROLES)
        report = BatchSyncReport()
        slots = asyncio.Semaphore(self.max_concurrency)

        async def _sync_one(account: Account) -> SyncResult | SyncFailure:
            try:
                async with slots:
                    return await self.sync(account)
            except FriendsError as e:
                return SyncFailure(
                    account_id=account.id,  # type: ignore[arg-type]
                    login=account.login,
                    error=e.message,
                )
            except Exception as e:
                logger.exception("feed_sync_crashed", account_id=account.id)
                return SyncFailure(
                    account_id=account.id,  # type: ignore[arg-type]
                    login=account.login,
                    error=str(e) or type(e).__name__,
                )

        outcomes = await asyncio.gather(*(_sync_one(a) for a in accounts))
        for outcome in outcomes:
            if isinstance(outcome, SyncFailure):
                report.failures.append(outcome)
            elif isinstance(outcome, SyncResult):
                report.results.append(outcome)

        logger.info(
            "feed_batch_synced",
            accounts=len(accounts),
            created=report.created,
            updated=report.updated,
            failures=len(report.failures),
        )
        return report
