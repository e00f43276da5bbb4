"""SQLAlchemy implementation of BalanceCacheRepository

Deltas are applied with a single INSERT ... ON CONFLICT DO UPDATE so two
first-time writers for the same owner cannot collide on the primary key.
"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from meta_ledger.app.repositories.balance_cache_repository import BalanceCacheRepository
from meta_ledger.domain.balance_cache import BalanceCache


class SqlAlchemyBalanceCacheRepository(BalanceCacheRepository):
    """SQLAlchemy implementation of BalanceCacheRepository (PostgreSQL / SQLite)"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _insert(self):
        if self.session.bind.dialect.name == "postgresql":
            return postgresql.insert(BalanceCache)
        return sqlite.insert(BalanceCache)

    async def get_by_owner_id(self, owner_id: str) -> Optional[BalanceCache]:
        stmt = (
            select(BalanceCache)
            .where(BalanceCache.owner_id == owner_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_all(self) -> List[BalanceCache]:
        stmt = select(BalanceCache).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def apply_delta(self, owner_id: str, delta: int, now: datetime) -> None:
        table = BalanceCache.__table__
        stmt = self._insert().values(owner_id=owner_id, balance=delta, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.owner_id],
            set_={"balance": table.c.balance + delta, "updated_at": now},
        )
        await self.session.execute(stmt)

    async def set_balance(self, owner_id: str, balance: int, now: datetime) -> None:
        table = BalanceCache.__table__
        stmt = self._insert().values(owner_id=owner_id, balance=balance, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.owner_id],
            set_={"balance": balance, "updated_at": now},
        )
        await self.session.execute(stmt)
