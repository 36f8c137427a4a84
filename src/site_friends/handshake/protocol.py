"""The friendship handshake between two sites.

Outbound side::

    send_friend_request ──hello──▶ remote
                        ──friend-request──▶ remote
                        ◀── {friend_request_pending} | {friend}

Inbound side::

    receive_friend_request ──hello──▶ requester   (liveness check)
                           ◀── account created as friend_request

Accepting a request moves the account to ``friend``; the requester is then
told through ``friend-request-accepted`` and answers with its own token.
"""

from structlog import get_logger

from site_friends.access.control import AccessControl, RoleTransition
from site_friends.access.logins import (
    derive_login,
    is_valid_site_url,
    normalize_site_url,
    same_site,
)
from site_friends.config.site import SiteSettings
from site_friends.db.models import Account, Role
from site_friends.exceptions import (
    FeedUnreachableError,
    FriendRequestFailedError,
    FriendsError,
    InvalidParametersError,
    InvalidSiteError,
    InvalidUrlError,
    NetworkUnavailableError,
    OfferNoLongerValidError,
    UnexpectedRemoteResponseError,
    UnsupportedSiteError,
)
from site_friends.handshake.client import HelloResult, RemoteSiteClient
from site_friends.handshake.models import (
    FriendRequestResult,
    FriendshipGrant,
)
from site_friends.handshake.rate_limit import FriendRequestRateLimiter
from site_friends.sync.engine import FeedSyncEngine, SyncResult


logger = get_logger(__name__)

NO_ROUTE_CODE = "rest_no_route"


class HandshakeProtocol:
    """Both sides of the friend request negotiation."""

    def __init__(
        self,
        access: AccessControl,
        remote: RemoteSiteClient,
        sync_engine: FeedSyncEngine,
        site: SiteSettings,
        rate_limiter: FriendRequestRateLimiter | None = None,
    ) -> None:
        self.access = access
        self.accounts = access.accounts
        self.remote = remote
        self.sync_engine = sync_engine
        self.site = site
        self.rate_limiter = rate_limiter

    async def _reload(self, account_id: int) -> Account | None:
        return await self.accounts.get(account_id)

    async def _sync_quietly(self, account: Account | None) -> SyncResult | None:
        """Sync an account's feed; a failed fetch is logged, never raised."""
        if account is None:
            return None
        try:
            return await self.sync_engine.sync(account)
        except FeedUnreachableError:
            return None

    async def transition(self, account_id: int, role: Role) -> RoleTransition:
        """Change an account's role, then notify the remote if it became a friend.

        The notification runs after the role lock is released, so it may
        itself transition the account again.
        """
        transition = await self.access.set_role(account_id, role)
        if transition.entered_friend:
            await self.notify_acceptance(transition.account)
        return transition

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def subscribe(self, site_url: str) -> Account:
        """Follow a site's public feed without a friendship.

        Raises:
            InvalidUrlError: If ``site_url`` is not an http(s) URL
            FeedUnreachableError: If the site's feed cannot be fetched
        """
        if not is_valid_site_url(site_url):
            raise InvalidUrlError(site_url)
        site_url = normalize_site_url(site_url)

        feed = await self.sync_engine.feed_client.fetch(f"{site_url}/feed/")
        account = await self.access.upgrade_or_create_account(site_url, Role.SUBSCRIPTION)
        await self.sync_engine.sync(account, feed)
        logger.info("subscribed", account_id=account.id, site_url=site_url)
        return account

    async def send_friend_request(self, site_url: str) -> FriendRequestResult:
        """Ask a remote site for friendship.

        Sites that do not speak the protocol are subscribed to instead. If
        the site already asked us, the request is accepted on the spot.

        Raises:
            InvalidUrlError: If ``site_url`` is not an http(s) URL
            FriendRequestFailedError: If the remote rejected the request
            UnexpectedRemoteResponseError: If the remote answered outside the
                protocol
            NetworkUnavailableError: If the friend-request call failed
        """
        if not is_valid_site_url(site_url):
            raise InvalidUrlError(site_url)

        try:
            hello = await self.remote.hello(site_url)
        except NetworkUnavailableError:
            hello = HelloResult(compatible=False)
        site_url = normalize_site_url(hello.canonical_url or site_url)

        if not hello.compatible:
            return FriendRequestResult.from_account(await self.subscribe(site_url))

        existing = await self.accounts.get_by_login(derive_login(site_url))
        if existing is not None and existing.role == Role.FRIEND_REQUEST:
            # They asked us first: sending a request accepts theirs
            await self.transition(existing.id, Role.FRIEND)  # type: ignore[arg-type]
            return FriendRequestResult.from_account(await self._reload(existing.id))  # type: ignore[arg-type]

        reply = await self.remote.friend_request(
            site_url, self.site.url, self.site.name, self.site.email
        )
        if not reply.ok:
            error = reply.error()
            if error is None:
                raise UnexpectedRemoteResponseError(
                    status_code=reply.status_code, body=reply.text
                )
            if error.code == NO_ROUTE_CODE:
                return FriendRequestResult.from_account(await self.subscribe(site_url))
            raise FriendRequestFailedError(error.message, code=error.code, data=error.data)

        grant = reply.grant()
        if grant is None:
            raise UnexpectedRemoteResponseError(
                status_code=reply.status_code, body=reply.text
            )

        account = await self.access.upgrade_or_create_account(
            site_url, Role.PENDING_FRIEND_REQUEST
        )
        account_id: int = account.id  # type: ignore[assignment]
        if grant.friend_request_pending:
            await self.transition(account_id, Role.PENDING_FRIEND_REQUEST)
            await self.access.store_request_redemption(
                account_id, grant.friend_request_pending
            )
            await self._sync_quietly(await self._reload(account_id))
        elif grant.friend:
            await self.make_friend(account, grant.friend)

        account = await self._reload(account_id)
        result = FriendRequestResult.from_account(account)
        logger.info(
            "friend_request_sent",
            account_id=account_id,
            site_url=site_url,
            outcome=str(result.outcome),
        )
        return result

    async def send_friend_requests(self, account_ids: list[int]) -> int:
        """(Re)send friend requests to subscriptions and pending requests.

        Returns the number of requests that went through without an error.
        """
        sent = 0
        for account_id in account_ids:
            account = await self._reload(account_id)
            if account is None or account.role not in (
                Role.SUBSCRIPTION,
                Role.PENDING_FRIEND_REQUEST,
            ):
                continue
            try:
                await self.send_friend_request(account.site_url)
            except FriendsError as e:
                logger.warning(
                    "friend_request_resend_failed",
                    account_id=account_id,
                    error=e.message,
                )
                continue
            sent += 1
        return sent

    async def accept_friend_requests(self, account_ids: list[int]) -> int:
        """Accept every listed account that asked for friendship."""
        accepted = 0
        for account_id in account_ids:
            account = await self._reload(account_id)
            if account is None or account.role != Role.FRIEND_REQUEST:
                continue
            await self.transition(account_id, Role.FRIEND)
            accepted += 1
        return accepted

    async def notify_acceptance(self, account: Account) -> None:
        """Tell a site that asked us for friendship that we accepted.

        Only accounts that hold a request-token were ever asked by the remote,
        others are left alone. A network failure or an unexpected answer
        keeps the friendship on our side.
        """
        if not account.request_token:
            return
        account_id: int = account.id  # type: ignore[assignment]

        try:
            reply = await self.remote.friend_request_accepted(
                account.site_url, account.request_token, account.in_token
            )
        except NetworkUnavailableError as e:
            logger.warning(
                "acceptance_notification_failed", account_id=account_id, error=e.message
            )
            return

        grant = reply.grant() if reply.ok else None
        if grant is not None and grant.friend:
            await self.make_friend(account, grant.friend)
            logger.info("acceptance_confirmed", account_id=account_id)
            return
        if grant is not None and grant.friend_request_pending:
            await self.transition(account_id, Role.PENDING_FRIEND_REQUEST)
            await self.access.store_request_redemption(
                account_id, grant.friend_request_pending
            )
            logger.info("acceptance_deferred", account_id=account_id)
            return

        logger.warning(
            "acceptance_notification_unexpected",
            account_id=account_id,
            status_code=reply.status_code,
        )

    async def make_friend(self, account: Account, out_token: str) -> Account | None:
        """Store the token for reading the friend's feed and become friends."""
        account_id: int = account.id  # type: ignore[assignment]
        await self.access.set_out_token(account_id, out_token)
        await self.transition(account_id, Role.FRIEND)
        account = await self._reload(account_id)  # type: ignore[assignment]
        await self._sync_quietly(account)
        return account

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def receive_friend_request(
        self,
        site_url: object,
        name: str | None = None,
        email: str | None = None,
        client_ip: str | None = None,
    ) -> FriendshipGrant:
        """Handle ``POST friend-request`` from another site.

        Repeated requests return the same pending token. A site that is
        already a friend gets its in-token back.

        Raises:
            RateLimitedError: If the client or site sent too many requests
            InvalidSiteError: If the URL is invalid or is our own
            UnsupportedSiteError: If the requester does not answer ``hello``
            FriendRequestFailedError: If no account could be created
        """
        if self.rate_limiter is not None:
            site_key = site_url.strip().lower() if isinstance(site_url, str) else None
            self.rate_limiter.check(
                f"ip:{client_ip}" if client_ip else None,
                f"site:{site_key}" if site_key else None,
            )

        if not isinstance(site_url, str) or not is_valid_site_url(site_url):
            raise InvalidSiteError()
        if same_site(site_url, self.site.url):
            raise InvalidSiteError()
        site_url = normalize_site_url(site_url)

        try:
            hello = await self.remote.hello(site_url)
        except NetworkUnavailableError as e:
            raise UnsupportedSiteError() from e
        if not hello.compatible:
            raise UnsupportedSiteError()

        try:
            account = await self.access.upgrade_or_create_account(
                site_url, Role.FRIEND_REQUEST, name, email
            )
        except FriendsError as e:
            raise FriendRequestFailedError() from e

        if account.role == Role.FRIEND:
            logger.info("friend_request_from_friend", account_id=account.id)
            return FriendshipGrant(friend=account.in_token)

        logger.info(
            "friend_request_received", account_id=account.id, site_url=site_url
        )
        return FriendshipGrant(friend_request_pending=account.request_token)

    async def confirm_acceptance(
        self, token: str | None, friend_token: str | None = None
    ) -> FriendshipGrant:
        """Handle ``POST friend-request-accepted``: the remote accepted us.

        Raises:
            InvalidParametersError: If the token does not resolve to an
                account with a site URL
            OfferNoLongerValidError: If the account's site URL no longer
                matches its login
        """
        account_id = await self.access.redeem_request_token(token)
        account = await self._reload(account_id) if account_id is not None else None
        if not token or account is None or not account.site_url:
            raise InvalidParametersError()
        if derive_login(account.site_url) != account.login:
            raise OfferNoLongerValidError()

        if friend_token:
            await self.access.set_out_token(account_id, friend_token)  # type: ignore[arg-type]
        await self.transition(account_id, Role.FRIEND)  # type: ignore[arg-type]

        account = await self._reload(account_id)  # type: ignore[arg-type]
        logger.info("friend_request_accepted_by_remote", account_id=account_id)
        return FriendshipGrant(friend=account.in_token if account else None)
