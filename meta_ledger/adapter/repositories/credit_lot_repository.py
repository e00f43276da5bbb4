"""SQLAlchemy implementation of CreditLotRepository

Provides persistence for CreditLot entities with version-checked updates
so concurrent consumers detect each other instead of double-spending.
"""

from datetime import datetime
from typing import Dict, List, Optional, Set
from sqlalchemy import case, func, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from meta_ledger.app.repositories.credit_lot_repository import CreditLotRepository
from meta_ledger.domain.credit_lot import CreditLot


class SqlAlchemyCreditLotRepository(CreditLotRepository):
    """
    SQLAlchemy implementation of CreditLotRepository

    Features:
    - Spendable-lot query served by the (owner_id, expires_at) index
    - Optimistic concurrency via version predicate on UPDATE
    - Reads always refresh identity-mapped lots (populate_existing) so a
      retry after a conflict sees committed state
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_spendable(self, owner_id: str, now: datetime) -> List[CreditLot]:
        stmt = (
            select(CreditLot)
            .where(
                CreditLot.owner_id == owner_id,
                CreditLot.remaining > 0,
                CreditLot.expires_at > now,
            )
            .order_by(CreditLot.expires_at.asc(), CreditLot.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_expired_with_remaining(
        self,
        now: datetime,
        limit: int,
        exclude_ids: Optional[Set[int]] = None,
    ) -> List[CreditLot]:
        stmt = select(CreditLot).where(
            CreditLot.remaining > 0,
            CreditLot.expires_at <= now,
        )
        if exclude_ids:
            stmt = stmt.where(CreditLot.id.not_in(sorted(exclude_ids)))
        stmt = (
            stmt.order_by(CreditLot.expires_at.asc(), CreditLot.id.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_external_transaction_id(self, external_transaction_id: str) -> Optional[CreditLot]:
        stmt = select(CreditLot).where(
            CreditLot.external_transaction_id == external_transaction_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, lot: CreditLot) -> CreditLot:
        """
        Insert a new lot

        Raises:
            IntegrityError: If external_transaction_id already exists (duplicate payment)
        """
        self.session.add(lot)
        await self.session.flush()
        await self.session.refresh(lot)
        return lot

    async def update_remaining(
        self,
        lot_id: int,
        expected_version: int,
        new_remaining: int,
        now: datetime,
        require_unexpired: bool = True,
    ) -> bool:
        """
        Conditionally write remaining and bump version

        Note:
            Must run inside the caller's transaction; zero matched rows means
            another writer got there first or the lot expired mid-flight
        """
        stmt = (
            update(CreditLot)
            .where(
                CreditLot.id == lot_id,
                CreditLot.version == expected_version,
            )
            .values(remaining=new_remaining, version=CreditLot.version + 1)
            .execution_options(synchronize_session=False)
        )
        if require_unexpired:
            stmt = stmt.where(CreditLot.expires_at > now)

        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def sum_spendable(self, owner_id: str, now: datetime) -> int:
        stmt = select(func.coalesce(func.sum(CreditLot.remaining), 0)).where(
            CreditLot.owner_id == owner_id,
            CreditLot.remaining > 0,
            CreditLot.expires_at > now,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def sum_spendable_by_owner(self, now: datetime) -> Dict[str, int]:
        spendable = case(
            (CreditLot.expires_at > now, CreditLot.remaining),
            else_=0,
        )
        stmt = (
            select(CreditLot.owner_id, func.coalesce(func.sum(spendable), 0))
            .group_by(CreditLot.owner_id)
        )
        result = await self.session.execute(stmt)
        return {owner_id: int(total) for owner_id, total in result.all()}
