"""Access control: token authentication, token lifecycle and role transitions.

Every role change goes through :meth:`AccessControl.set_role`, which applies
the token side effects tied to entering or leaving a role:

- leaving ``friend`` revokes the in-token
- entering ``friend`` issues a fresh in-token
- entering ``friend_request`` issues a request-token

A transition to the role an account already holds is a no-op, so repeated
friend requests keep handing out the same request-token.
"""

import asyncio
import hashlib
import secrets
from collections import defaultdict
from dataclasses import dataclass

from structlog import get_logger

from site_friends.access.logins import derive_login, normalize_site_url
from site_friends.access.tokens import TokenStore, generate_token
from site_friends.db.models import Account, Role, TokenKind
from site_friends.db.repositories import AccountRepository
from site_friends.exceptions import AccountNotFoundError, InvalidRoleError


logger = get_logger(__name__)

# Roles an account can be created with, in upgrade order
ROLE_RANK: dict[Role, int] = {
    Role.SUBSCRIPTION: 0,
    Role.PENDING_FRIEND_REQUEST: 1,
    Role.FRIEND_REQUEST: 2,
}


def _password_placeholder() -> str:
    return hashlib.sha256(secrets.token_bytes(64)).hexdigest()


@dataclass(frozen=True)
class RoleTransition:
    """Result of :meth:`AccessControl.set_role`."""

    account: Account
    old_role: Role | None
    new_role: Role

    @property
    def changed(self) -> bool:
        return self.old_role != self.new_role

    @property
    def entered_friend(self) -> bool:
        return self.changed and self.new_role == Role.FRIEND


@dataclass(frozen=True)
class Authentication:
    """Identity resolved for an inbound request."""

    account_id: int | None
    feed_authenticated: bool = False


class AccessControl:
    """Owns tokens, account creation and the role transition function."""

    def __init__(self, accounts: AccountRepository, tokens: TokenStore) -> None:
        self.accounts = accounts
        self.tokens = tokens
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _lock(self, key: str) -> asyncio.Lock:
        return self._locks[key]

    async def _require(self, account_id: int) -> Account:
        account = await self.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def verify_token(self, token: str | None) -> int | None:
        """Resolve an in-token to its account id."""
        if not token:
            return None
        return await self.tokens.lookup(token, TokenKind.IN)

    async def resolve_friend(self, token: str | None) -> Account | None:
        """Resolve an in-token to an account that is still a friend.

        The role and the stored in-token are re-checked on every call, so a
        token stops working as soon as the friendship ends or is rotated.
        """
        account_id = await self.verify_token(token)
        if account_id is None:
            return None
        account = await self.accounts.get(account_id)
        if account is None or account.role != Role.FRIEND:
            return None
        if account.in_token != token:
            return None
        return account

    async def authenticate(
        self, token: str | None, incoming_account_id: int | None = None
    ) -> Authentication:
        """Identify a request carrying ``?friend=<token>``.

        Falls back to ``incoming_account_id`` when the token does not belong
        to a current friend.
        """
        account = await self.resolve_friend(token)
        if account is None:
            return Authentication(account_id=incoming_account_id)
        return Authentication(account_id=account.id, feed_authenticated=True)

    async def session_friend(self, account_id: int | None) -> int | None:
        """Account id of a remote-login session while it is still a friend."""
        if account_id is None:
            return None
        account = await self.accounts.get(account_id)
        if account is None or account.role != Role.FRIEND:
            return None
        return account_id

    async def remote_login(self, token: str | None) -> int | None:
        """Verify a ``friend_auth`` token; the caller establishes the session."""
        account = await self.resolve_friend(token)
        if account is None:
            return None
        logger.info("remote_login", account_id=account.id, login=account.login)
        return account.id

    # ------------------------------------------------------------------
    # Token lifecycle
    # ------------------------------------------------------------------

    async def issue_in_token(self, account_id: int) -> str:
        """Rotate the in-token of an account.

        The previous in-token mapping is removed before the new one is stored,
        so at most one in-token resolves to the account.
        """
        account = await self._require(account_id)
        if account.in_token:
            await self.tokens.unbind(account.in_token)
        await self.tokens.forget_account(account_id, TokenKind.IN)

        token = generate_token()
        await self.tokens.bind(token, TokenKind.IN, account_id)
        await self.accounts.update(account_id, in_token=token)
        logger.info("in_token_issued", account_id=account_id)
        return token

    async def issue_request_token(self, account_id: int) -> str:
        """Mint the token a remote presents when accepting our friendship."""
        await self._require(account_id)
        token = generate_token()
        await self.accounts.update(account_id, request_token=token)
        logger.info("request_token_issued", account_id=account_id)
        return token

    async def store_request_redemption(self, account_id: int, token: str) -> None:
        """Remember a request-token handed to us by a remote site."""
        await self.tokens.bind(token, TokenKind.REQUEST, account_id)

    async def redeem_request_token(self, token: str | None) -> int | None:
        if not token:
            return None
        return await self.tokens.lookup(token, TokenKind.REQUEST)

    async def set_out_token(self, account_id: int, token: str | None) -> None:
        """Persist the token we present when reading a friend's feed."""
        await self.accounts.update(account_id, out_token=token)

    async def _revoke_in_token(self, account: Account) -> None:
        if account.in_token:
            await self.tokens.unbind(account.in_token)
        await self.tokens.forget_account(account.id, TokenKind.IN)  # type: ignore[arg-type]
        await self.accounts.update(account.id, in_token=None)  # type: ignore[arg-type]

    async def revoke_tokens(self, account_id: int) -> None:
        """Drop the in-token mapping and every redemption record of an account."""
        account = await self.accounts.get(account_id)
        if account is not None and account.in_token:
            await self.tokens.unbind(account.in_token)
        removed = await self.tokens.forget_account(account_id)
        logger.info("tokens_revoked", account_id=account_id, removed=removed)

    # ------------------------------------------------------------------
    # Accounts and roles
    # ------------------------------------------------------------------

    async def set_role(self, account_id: int, role: Role | str) -> RoleTransition:
        """Move an account to ``role`` and apply the token side effects."""
        new_role = Role(role)
        async with self._lock(f"account:{account_id}"):
            account = await self._require(account_id)
            old_role = Role(account.role)
            if old_role == new_role:
                return RoleTransition(account, old_role, new_role)

            fields: dict[str, object] = {"role": new_role}
            if new_role == Role.FRIEND:
                fields["is_new"] = False
            account = await self.accounts.update(account_id, **fields)  # type: ignore[assignment]
            await self._apply_role_effects(account, old_role, new_role)

            account = await self._require(account_id)
            logger.info(
                "role_changed",
                account_id=account_id,
                login=account.login,
                old_role=str(old_role),
                new_role=str(new_role),
            )
            return RoleTransition(account, old_role, new_role)

    async def _apply_role_effects(
        self, account: Account, old_role: Role | None, new_role: Role
    ) -> None:
        if old_role == Role.FRIEND:
            await self._revoke_in_token(account)
        if new_role == Role.FRIEND:
            await self.issue_in_token(account.id)  # type: ignore[arg-type]
        elif new_role == Role.FRIEND_REQUEST:
            await self.issue_request_token(account.id)  # type: ignore[arg-type]

    async def upgrade_or_create_account(
        self,
        site_url: str,
        role: Role | str,
        name: str | None = None,
        email: str | None = None,
    ) -> Account:
        """Find or create the account for ``site_url`` holding at least ``role``.

        An existing account is only ever moved up the rank table; an account
        that already ranks higher (or is a friend) is returned unchanged.
        """
        try:
            desired = Role(role)
        except ValueError as e:
            raise InvalidRoleError(str(role)) from e
        if desired not in ROLE_RANK:
            raise InvalidRoleError(str(role))

        login = derive_login(site_url)
        async with self._lock(f"login:{login}"):
            account = await self.accounts.get_by_login(login)
            if account is not None:
                for candidate, rank in ROLE_RANK.items():
                    if rank > ROLE_RANK[desired]:
                        break
                    if account.role == candidate:
                        transition = await self.set_role(account.id, desired)  # type: ignore[arg-type]
                        return transition.account
                return account

            account = await self.accounts.create(
                login=login,
                site_url=normalize_site_url(site_url),
                role=desired,
                password_hash=_password_placeholder(),
                display_name=name or None,
                email=email or None,
            )
            logger.info(
                "account_created", account_id=account.id, login=login, role=str(desired)
            )
            async with self._lock(f"account:{account.id}"):
                await self._apply_role_effects(account, None, desired)
            return await self._require(account.id)  # type: ignore[arg-type]

    async def delete_account(self, account_id: int) -> None:
        """Revoke every token of an account and delete it."""
        async with self._lock(f"account:{account_id}"):
            await self._require(account_id)
            await self.revoke_tokens(account_id)
            await self.accounts.delete(account_id)
        self._locks.pop(f"account:{account_id}", None)
        logger.info("account_deleted", account_id=account_id)
