"""SQLAlchemy implementation of LedgerEventRepository

Events are immutable: this repository only inserts and reads.
"""

from typing import List, Tuple
from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from meta_ledger.app.repositories.ledger_event_repository import LedgerEventRepository
from meta_ledger.domain.ledger_event import LedgerEvent


class SqlAlchemyLedgerEventRepository(LedgerEventRepository):
    """SQLAlchemy implementation of LedgerEventRepository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, event: LedgerEvent) -> LedgerEvent:
        self.session.add(event)
        await self.session.flush()
        await self.session.refresh(event)
        return event

    async def list_by_owner(
        self, owner_id: str, limit: int = 20, offset: int = 0
    ) -> Tuple[List[LedgerEvent], int]:
        count_stmt = select(func.count()).select_from(LedgerEvent).where(
            LedgerEvent.owner_id == owner_id
        )
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(LedgerEvent)
            .where(LedgerEvent.owner_id == owner_id)
            .order_by(LedgerEvent.occurred_at.desc(), LedgerEvent.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def list_by_lot(self, lot_id: int) -> List[LedgerEvent]:
        stmt = (
            select(LedgerEvent)
            .where(LedgerEvent.lot_id == lot_id)
            .order_by(LedgerEvent.occurred_at.asc(), LedgerEvent.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
