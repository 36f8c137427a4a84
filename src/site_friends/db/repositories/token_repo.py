"""Token repository for database operations."""

from sqlalchemy import delete
from sqlmodel import select

from site_friends.db.engine import SessionFactory, get_session
from site_friends.db.models import TokenRecord


class TokenRepository:
    """Repository for the token to account mapping."""

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session = session_factory or get_session

    async def put(self, token: str, kind: str, account_id: int) -> TokenRecord:
        """Store (or overwrite) a token mapping."""
        async with self._session() as session:
            record = await session.get(TokenRecord, token)
            if record is None:
                record = TokenRecord(token=token, kind=kind, account_id=account_id)
            else:
                record.kind = kind
                record.account_id = account_id
            session.add(record)
            await session.commit()
            await session.refresh(record)
            return record

    async def get_account_id(self, token: str, kind: str) -> int | None:
        """Resolve a token of the given kind to its account id."""
        async with self._session() as session:
            result = await session.execute(
                select(TokenRecord.account_id).where(
                    TokenRecord.token == token,
                    TokenRecord.kind == kind,
                )
            )
            return result.scalar_one_or_none()

    async def delete(self, token: str) -> bool:
        """Delete a token mapping. Returns True if deleted."""
        async with self._session() as session:
            record = await session.get(TokenRecord, token)
            if record:
                await session.delete(record)
                await session.commit()
                return True
            return False

    async def delete_for_account(self, account_id: int, kind: str | None = None) -> int:
        """Delete every mapping pointing at an account. Returns count deleted."""
        async with self._session() as session:
            statement = delete(TokenRecord).where(TokenRecord.account_id == account_id)
            if kind is not None:
                statement = statement.where(TokenRecord.kind == kind)
            result = await session.execute(statement)
            await session.commit()
            return result.rowcount or 0

    async def list_for_account(self, account_id: int) -> list[TokenRecord]:
        """List all mappings pointing at an account."""
        async with self._session() as session:
            result = await session.execute(
                select(TokenRecord).where(TokenRecord.account_id == account_id)
            )
            return list(result.scalars().all())
