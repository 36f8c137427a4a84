"""Persistence of accounts: one row per remote site we know."""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from sqlmodel import select

from site_friends.db.engine import SessionFactory, get_session
from site_friends.db.models import Account


class AccountRepository:
    """Lookups and updates of accounts by id, login or role."""

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session = session_factory or get_session

    async def create(
        self,
        login: str,
        site_url: str,
        role: str,
        password_hash: str,
        display_name: str | None = None,
        email: str | None = None,
    ) -> Account:
        """Insert an account; ``login`` must be unused."""
        async with self._session() as session:
            account = Account(
                login=login,
                site_url=site_url,
                role=role,
                password_hash=password_hash,
                display_name=display_name,
                email=email,
            )
            session.add(account)
            await session.commit()
            await session.refresh(account)
            return account

    async def get(self, account_id: int) -> Account | None:
        """Get an account by id."""
        async with self._session() as session:
            return await session.get(Account, account_id)

    async def get_by_login(self, login: str) -> Account | None:
        """Get an account by its derived login."""
        async with self._session() as session:
            result = await session.execute(select(Account).where(Account.login == login))
            return result.scalar_one_or_none()

    async def list_all(self) -> list[Account]:
        """List all accounts."""
        async with self._session() as session:
            result = await session.execute(select(Account).order_by(Account.id))
            return list(result.scalars().all())

    async def list_by_roles(self, roles: Iterable[str]) -> list[Account]:
        """List accounts holding any of the given roles."""
        async with self._session() as session:
            result = await session.execute(
                select(Account)
                .where(Account.role.in_([str(r) for r in roles]))  # type: ignore[attr-defined]
                .order_by(Account.id)
            )
            return list(result.scalars().all())

    async def update(self, account_id: int, **fields: Any) -> Account | None:
        """Update the given columns of an account."""
        async with self._session() as session:
            account = await session.get(Account, account_id)
            if account:
                for name, value in fields.items():
                    setattr(account, name, value)
                account.updated_at = datetime.now(UTC)
                session.add(account)
                await session.commit()
                await session.refresh(account)
            return account

    async def delete(self, account_id: int) -> bool:
        """Delete an account. Returns True if deleted, False if not found."""
        async with self._session() as session:
            account = await session.get(Account, account_id)
            if account:
                await session.delete(account)
                await session.commit()
                return True
            return False
