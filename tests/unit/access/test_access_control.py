"""Tests for AccessControl: account creation, role transitions and tokens."""

import asyncio

import pytest

from site_friends.access import AccessControl, TokenStore
from site_friends.db.models import Role, TokenKind
from site_friends.db.repositories import AccountRepository, TokenRepository
from site_friends.exceptions import AccountNotFoundError, InvalidRoleError


SITE = "https://friend.example"


@pytest.fixture
def access(session_factory) -> AccessControl:
    accounts = AccountRepository(session_factory)
    tokens = TokenStore(TokenRepository(session_factory))
    return AccessControl(accounts, tokens)


class TestUpgradeOrCreate:
    @pytest.mark.asyncio
    async def test_creates_account_with_derived_login(self, access):
        account = await access.upgrade_or_create_account(
            SITE + "/", Role.SUBSCRIPTION, name="Friend", email="f@friend.example"
        )

        assert account.login == "friend.example"
        assert account.site_url == SITE
        assert account.role == Role.SUBSCRIPTION
        assert account.display_name == "Friend"
        assert account.is_new is True
        assert account.password_hash

    @pytest.mark.asyncio
    async def test_friend_request_gets_request_token_on_creation(self, access):
        account = await access.upgrade_or_create_account(SITE, Role.FRIEND_REQUEST)
        assert account.request_token
        assert len(account.request_token) == 40

    @pytest.mark.asyncio
    async def test_upgrades_along_the_rank(self, access):
        created = await access.upgrade_or_create_account(SITE, Role.SUBSCRIPTION)
        upgraded = await access.upgrade_or_create_account(
            SITE, Role.PENDING_FRIEND_REQUEST
        )

        assert upgraded.id == created.id
        assert upgraded.role == Role.PENDING_FRIEND_REQUEST

    @pytest.mark.asyncio
    async def test_never_downgrades(self, access):
        await access.upgrade_or_create_account(SITE, Role.FRIEND_REQUEST)
        account = await access.upgrade_or_create_account(SITE, Role.SUBSCRIPTION)
        assert account.role == Role.FRIEND_REQUEST

    @pytest.mark.asyncio
    async def test_friend_is_left_alone(self, access):
        account = await access.upgrade_or_create_account(SITE, Role.SUBSCRIPTION)
        await access.set_role(account.id, Role.FRIEND)

        again = await access.upgrade_or_create_account(SITE, Role.FRIEND_REQUEST)

        assert again.role == Role.FRIEND
        assert again.request_token is None

    @pytest.mark.asyncio
    async def test_repeated_creation_is_idempotent(self, access):
        """Repeating a request keeps the account and its request token."""
        first = await access.upgrade_or_create_account(SITE, Role.FRIEND_REQUEST)
        second = await access.upgrade_or_create_account(SITE, Role.FRIEND_REQUEST)

        assert second.id == first.id
        assert second.request_token == first.request_token
        assert len(await access.accounts.list_all()) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [Role.FRIEND, "administrator"])
    async def test_rejects_roles_outside_the_rank(self, access, role):
        with pytest.raises(InvalidRoleError):
            await access.upgrade_or_create_account(SITE, role)


class TestSetRole:
    @pytest.mark.asyncio
    async def test_entering_friend_issues_in_token(self, access):
        account = await access.upgrade_or_create_account(SITE, Role.FRIEND_REQUEST)

        transition = await access.set_role(account.id, Role.FRIEND)

        assert transition.changed
        assert transition.entered_friend
        assert transition.account.in_token
        assert await access.verify_token(transition.account.in_token) == account.id
        assert transition.account.is_new is False

    @pytest.mark.asyncio
    async def test_same_role_is_a_noop(self, access):
        account = await access.upgrade_or_create_account(SITE, Role.FRIEND_REQUEST)
        await access.set_role(account.id, Role.FRIEND)
        token = (await access.accounts.get(account.id)).in_token

        transition = await access.set_role(account.id, Role.FRIEND)

        assert not transition.changed
        assert transition.account.in_token == token

    @pytest.mark.asyncio
    async def test_leaving_friend_revokes_in_token(self, access):
        account = await access.upgrade_or_create_account(SITE, Role.SUBSCRIPTION)
        friend = (await access.set_role(account.id, Role.FRIEND)).account

        transition = await access.set_role(account.id, Role.SUBSCRIPTION)

        assert transition.account.in_token is None
        assert await access.verify_token(friend.in_token) is None

    @pytest.mark.asyncio
    async def test_rotation_invalidates_previous_token(self, access):
        account = await access.upgrade_or_create_account(SITE, Role.SUBSCRIPTION)
        first = (await access.set_role(account.id, Role.FRIEND)).account.in_token
        await access.set_role(account.id, Role.SUBSCRIPTION)
        second = (await access.set_role(account.id, Role.FRIEND)).account.in_token

        assert first != second
        assert await access.verify_token(first) is None
        assert await access.verify_token(second) == account.id

    @pytest.mark.asyncio
    async def test_issue_in_token_keeps_one_live_mapping(self, access):
        account = await access.upgrade_or_create_account(SITE, Role.SUBSCRIPTION)
        await access.set_role(account.id, Role.FRIEND)

        new_token = await access.issue_in_token(account.id)

        records = await access.tokens.repository.list_for_account(account.id)
        assert [r.token for r in records if r.kind == TokenKind.IN] == [new_token]

    @pytest.mark.asyncio
    async def test_concurrent_transitions_apply_once(self, access):
        account = await access.upgrade_or_create_account(SITE, Role.FRIEND_REQUEST)

        transitions = await asyncio.gather(
            *(access.set_role(account.id, Role.FRIEND) for _ in range(5))
        )

        assert sum(t.changed for t in transitions) == 1
        records = await access.tokens.repository.list_for_account(account.id)
        in_tokens = [r.token for r in records if r.kind == TokenKind.IN]
        assert in_tokens == [(await access.accounts.get(account.id)).in_token]

    @pytest.mark.asyncio
    async def test_concurrent_creation_makes_one_account(self, access):
        accounts = await asyncio.gather(
            *(
                access.upgrade_or_create_account(SITE, Role.FRIEND_REQUEST)
                for _ in range(5)
            )
        )

        assert len({a.id for a in accounts}) == 1
        assert len({a.request_token for a in accounts}) == 1
        assert len(await access.accounts.list_all()) == 1

    @pytest.mark.asyncio
    async def test_unknown_account(self, access):
        with pytest.raises(AccountNotFoundError):
            await access.set_role(999, Role.FRIEND)


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_friend_token_authenticates(self, access):
        account = await access.upgrade_or_create_account(SITE, Role.SUBSCRIPTION)
        token = (await access.set_role(account.id, Role.FRIEND)).account.in_token

        auth = await access.authenticate(token, incoming_account_id=None)

        assert auth.account_id == account.id
        assert auth.feed_authenticated is True
        assert await access.remote_login(token) == account.id

    @pytest.mark.asyncio
    async def test_unknown_token_falls_back_to_incoming_identity(self, access):
        auth = await access.authenticate("nope", incoming_account_id=5)

        assert auth.account_id == 5
        assert auth.feed_authenticated is False
        assert await access.remote_login("nope") is None

    @pytest.mark.asyncio
    async def test_role_is_rechecked(self, access):
        """A stale mapping stops working once the account is no longer a friend."""
        account = await access.upgrade_or_create_account(SITE, Role.SUBSCRIPTION)
        token = (await access.set_role(account.id, Role.FRIEND)).account.in_token
        # Simulate a mapping that survived a role change
        await access.accounts.update(account.id, role=Role.SUBSCRIPTION)

        auth = await access.authenticate(token)

        assert auth.feed_authenticated is False
        assert await access.remote_login(token) is None


class TestRevocation:
    @pytest.mark.asyncio
    async def test_delete_account_revokes_every_token(self, access):
        account = await access.upgrade_or_create_account(SITE, Role.SUBSCRIPTION)
        in_token = (await access.set_role(account.id, Role.FRIEND)).account.in_token
        await access.store_request_redemption(account.id, "redeem-me")

        await access.delete_account(account.id)

        assert await access.accounts.get(account.id) is None
        assert await access.verify_token(in_token) is None
        assert await access.redeem_request_token("redeem-me") is None

    @pytest.mark.asyncio
    async def test_delete_unknown_account(self, access):
        with pytest.raises(AccountNotFoundError):
            await access.delete_account(42)

    @pytest.mark.asyncio
    async def test_redemption_records_resolve(self, access):
        account = await access.upgrade_or_create_account(
            SITE, Role.PENDING_FRIEND_REQUEST
        )
        await access.store_request_redemption(account.id, "pending-token")

        assert await access.redeem_request_token("pending-token") == account.id
        assert await access.redeem_request_token(None) is None
