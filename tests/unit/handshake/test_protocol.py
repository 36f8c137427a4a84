"""Tests for the friendship handshake, both outbound and inbound."""

import httpx
import pytest

from site_friends.db.models import Role
from site_friends.exceptions import (
    FeedUnreachableError,
    FriendRequestFailedError,
    InvalidParametersError,
    InvalidSiteError,
    InvalidUrlError,
    OfferNoLongerValidError,
    RateLimitedError,
    UnexpectedRemoteResponseError,
    UnsupportedSiteError,
)
from site_friends.handshake import FriendRequestOutcome


REMOTE_URL = "https://b.example"


@pytest.fixture
def handshake(services):
    return services.handshake


async def _receive(handshake, **kwargs):
    """Site B asks us for friendship."""
    grant = await handshake.receive_friend_request(
        REMOTE_URL, kwargs.pop("name", "Site B"), kwargs.pop("email", None), **kwargs
    )
    account = await handshake.accounts.get_by_login("b.example")
    return grant, account


class TestSendFriendRequest:
    @pytest.mark.asyncio
    async def test_pending_grant(self, services, handshake, remote_site):
        result = await handshake.send_friend_request(REMOTE_URL)

        assert result.outcome == FriendRequestOutcome.PENDING
        account = result.account
        assert account.role == Role.PENDING_FRIEND_REQUEST
        assert account.login == "b.example"
        assert await services.access.redeem_request_token("b-pending-token") == account.id
        # The public feed is mirrored right away
        assert await services.posts.count_cached_for_author(account.id) == 1

        form = httpx.QueryParams(remote_site.calls("/friend-request")[0].content.decode())
        assert form["site_url"] == "https://a.example"
        assert form["name"] == "Site A"
        assert form["email"] == "owner@a.example"

    @pytest.mark.asyncio
    async def test_friend_grant_stores_out_token(self, services, handshake, remote_site):
        remote_site.friend_request = (200, {"friend": "b-in-token"})

        result = await handshake.send_friend_request(REMOTE_URL)

        assert result.outcome == FriendRequestOutcome.FRIEND
        assert result.account.out_token == "b-in-token"
        assert result.account.in_token
        feed_request = remote_site.calls("/feed/")[-1]
        assert feed_request.url.params["friend"] == "b-in-token"

    @pytest.mark.asyncio
    async def test_incompatible_site_is_subscribed(self, handshake, remote_site):
        remote_site.hello = (404, {"code": "rest_no_route", "message": "No route"})

        result = await handshake.send_friend_request(REMOTE_URL)

        assert result.outcome == FriendRequestOutcome.SUBSCRIBED
        assert result.account.role == Role.SUBSCRIPTION
        assert remote_site.calls("/friend-request") == []

    @pytest.mark.asyncio
    async def test_unreachable_hello_falls_back_to_subscription(
        self, handshake, remote_site
    ):
        remote_site.hello = httpx.ConnectError("connection refused")

        result = await handshake.send_friend_request(REMOTE_URL)

        assert result.outcome == FriendRequestOutcome.SUBSCRIBED

    @pytest.mark.asyncio
    async def test_no_route_answer_is_subscribed(self, handshake, remote_site):
        remote_site.friend_request = (
            404,
            {"code": "rest_no_route", "message": "No route", "data": {"status": 404}},
        )

        result = await handshake.send_friend_request(REMOTE_URL)

        assert result.outcome == FriendRequestOutcome.SUBSCRIBED

    @pytest.mark.asyncio
    async def test_remote_error_is_passed_through(self, handshake, remote_site):
        remote_site.friend_request = (
            403,
            {
                "code": "friends_invalid_site",
                "message": "An invalid site was given.",
                "data": {"status": 403},
            },
        )

        with pytest.raises(FriendRequestFailedError) as exc_info:
            await handshake.send_friend_request(REMOTE_URL)

        assert exc_info.value.code == "friends_invalid_site"
        assert exc_info.value.message == "An invalid site was given."
        assert await handshake.accounts.get_by_login("b.example") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "answer",
        [(500, b"<html>Internal error</html>"), (200, {}), (200, [1, 2])],
    )
    async def test_unexpected_answers(self, handshake, remote_site, answer):
        remote_site.friend_request = answer

        with pytest.raises(UnexpectedRemoteResponseError):
            await handshake.send_friend_request(REMOTE_URL)

    @pytest.mark.asyncio
    async def test_invalid_url(self, handshake):
        with pytest.raises(InvalidUrlError):
            await handshake.send_friend_request("not a url")

    @pytest.mark.asyncio
    async def test_accepts_their_request_instead(self, services, handshake, remote_site):
        """Sending a request to a site that already asked us accepts theirs."""
        _, received = await _receive(handshake)

        result = await handshake.send_friend_request(REMOTE_URL)

        assert result.outcome == FriendRequestOutcome.FRIEND
        assert result.account.id == received.id
        assert result.account.out_token == "b-in-token"
        assert remote_site.calls("/friend-request") == []
        form = httpx.QueryParams(
            remote_site.calls("/friend-request-accepted")[0].content.decode()
        )
        assert form["token"] == received.request_token
        assert form["friend"] == result.account.in_token

    @pytest.mark.asyncio
    async def test_resend(self, handshake):
        account = await handshake.subscribe(REMOTE_URL)

        sent = await handshake.send_friend_requests([account.id, 999])

        assert sent == 1
        account = await handshake.accounts.get(account.id)
        assert account.role == Role.PENDING_FRIEND_REQUEST


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_subscribe_mirrors_feed(self, services, handshake):
        account = await handshake.subscribe(REMOTE_URL + "/")

        assert account.role == Role.SUBSCRIPTION
        assert account.site_url == REMOTE_URL
        assert await services.posts.count_cached_for_author(account.id) == 1

    @pytest.mark.asyncio
    async def test_unreachable_feed_creates_nothing(self, handshake, remote_site):
        remote_site.feed = (404, b"not found")

        with pytest.raises(FeedUnreachableError):
            await handshake.subscribe(REMOTE_URL)

        assert await handshake.accounts.list_all() == []

    @pytest.mark.asyncio
    async def test_deleted_account_posts_stay_with_it(self, services, handshake):
        old = await handshake.subscribe(REMOTE_URL)
        await services.access.delete_account(old.id)

        new = await services.access.upgrade_or_create_account(
            "https://c.example", Role.SUBSCRIPTION
        )

        assert new.id != old.id
        assert await services.posts.count_cached_for_author(new.id) == 0
        assert await services.posts.count_cached_for_author(old.id) == 1


class TestReceiveFriendRequest:
    @pytest.mark.asyncio
    async def test_creates_friend_request(self, handshake, remote_site):
        grant, account = await _receive(handshake, email="b@b.example")

        assert account.role == Role.FRIEND_REQUEST
        assert account.display_name == "Site B"
        assert account.email == "b@b.example"
        assert grant.friend_request_pending == account.request_token
        assert grant.friend is None
        assert len(remote_site.calls("/hello")) == 1

    @pytest.mark.asyncio
    async def test_repeated_request_returns_same_token(self, handshake):
        first, _ = await _receive(handshake)
        second, _ = await _receive(handshake)

        assert first.friend_request_pending == second.friend_request_pending
        assert len(await handshake.accounts.list_all()) == 1

    @pytest.mark.asyncio
    async def test_friend_gets_in_token(self, handshake):
        _, account = await _receive(handshake)
        await handshake.accept_friend_requests([account.id])

        grant, account = await _receive(handshake)

        assert account.role == Role.FRIEND
        assert grant.friend == account.in_token
        assert grant.friend_request_pending is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "site_url", ["not a url", 42, None, "https://a.example/", " https://b.example"]
    )
    async def test_invalid_site(self, handshake, site_url):
        with pytest.raises(InvalidSiteError):
            await handshake.receive_friend_request(site_url)

    @pytest.mark.asyncio
    async def test_requester_without_protocol(self, handshake, remote_site):
        remote_site.hello = (404, {"code": "rest_no_route", "message": "No route"})

        with pytest.raises(UnsupportedSiteError):
            await handshake.receive_friend_request(REMOTE_URL)
        assert await handshake.accounts.list_all() == []

    @pytest.mark.asyncio
    async def test_unreachable_requester(self, handshake):
        with pytest.raises(UnsupportedSiteError):
            await handshake.receive_friend_request("https://c.example")

    @pytest.mark.asyncio
    async def test_rate_limited_per_client(self, handshake):
        for _ in range(5):
            await handshake.receive_friend_request(REMOTE_URL, client_ip="10.0.0.1")

        with pytest.raises(RateLimitedError):
            await handshake.receive_friend_request(REMOTE_URL, client_ip="10.0.0.1")


class TestAcceptance:
    @pytest.mark.asyncio
    async def test_accepting_notifies_requester(self, services, handshake, remote_site):
        _, account = await _receive(handshake)

        accepted = await handshake.accept_friend_requests([account.id, 999])

        assert accepted == 1
        account = await handshake.accounts.get(account.id)
        assert account.role == Role.FRIEND
        assert account.out_token == "b-in-token"
        assert account.is_new is False
        assert await services.access.verify_token(account.in_token) == account.id

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_friendship(self, handshake, remote_site):
        _, account = await _receive(handshake)
        remote_site.accepted = httpx.ConnectError("connection refused")

        await handshake.accept_friend_requests([account.id])

        account = await handshake.accounts.get(account.id)
        assert account.role == Role.FRIEND
        assert account.out_token is None

    @pytest.mark.asyncio
    async def test_pending_answer_moves_back_to_pending(
        self, services, handshake, remote_site
    ):
        _, account = await _receive(handshake)
        remote_site.accepted = (200, {"friend_request_pending": "b-later"})

        await handshake.accept_friend_requests([account.id])

        account = await handshake.accounts.get(account.id)
        assert account.role == Role.PENDING_FRIEND_REQUEST
        assert account.in_token is None
        assert await services.access.redeem_request_token("b-later") == account.id


class TestConfirmAcceptance:
    @pytest.mark.asyncio
    async def test_remote_accepts_our_request(self, services, handshake):
        result = await handshake.send_friend_request(REMOTE_URL)

        grant = await handshake.confirm_acceptance("b-pending-token", "b-in-token")

        account = await handshake.accounts.get(result.account.id)
        assert account.role == Role.FRIEND
        assert account.out_token == "b-in-token"
        assert grant.friend == account.in_token
        assert await services.access.verify_token(grant.friend) == account.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "unknown-token"])
    async def test_unknown_token(self, handshake, token):
        with pytest.raises(InvalidParametersError):
            await handshake.confirm_acceptance(token)

    @pytest.mark.asyncio
    async def test_site_url_no_longer_matches_login(self, handshake):
        result = await handshake.send_friend_request(REMOTE_URL)
        await handshake.accounts.update(result.account.id, site_url="https://c.example")

        with pytest.raises(OfferNoLongerValidError):
            await handshake.confirm_acceptance("b-pending-token")

        account = await handshake.accounts.get(result.account.id)
        assert account.role == Role.PENDING_FRIEND_REQUEST
