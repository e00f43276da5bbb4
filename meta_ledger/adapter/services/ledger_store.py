"""SQLAlchemy implementation of LedgerStore

Applies lot mutations, ledger events and balance-cache deltas through the
session's unit of work: everything commits together or rolls back together.
"""

import logging
from datetime import datetime
from sqlalchemy.exc import IntegrityError
from meta_ledger.app.repositories.balance_cache_repository import BalanceCacheRepository
from meta_ledger.app.repositories.credit_lot_repository import CreditLotRepository
from meta_ledger.app.repositories.ledger_event_repository import LedgerEventRepository
from meta_ledger.app.services.ledger_store import LedgerChange, LedgerStore
from meta_ledger.app.services.unit_of_work import UnitOfWork
from meta_ledger.domain.credit_lot import CreditLot
from meta_ledger.domain.errors import ConcurrencyConflict, DuplicatePayment
from meta_ledger.domain.ledger_event import LedgerEvent, LedgerEventType

logger = logging.getLogger(__name__)


class SqlAlchemyLedgerStore(LedgerStore):
    """
    LedgerStore over one AsyncSession

    Concurrency is detected, not prevented: each lot update carries the
    version it was read at, and a mismatch aborts the whole transaction.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        lot_repo: CreditLotRepository,
        event_repo: LedgerEventRepository,
        balance_repo: BalanceCacheRepository,
    ):
        self.uow = uow
        self.lot_repo = lot_repo
        self.event_repo = event_repo
        self.balance_repo = balance_repo

    async def apply_atomic(self, change: LedgerChange, now: datetime) -> None:
        try:
            for lot_update in change.lot_updates:
                applied = await self.lot_repo.update_remaining(
                    lot_update.lot_id,
                    expected_version=lot_update.expected_version,
                    new_remaining=lot_update.new_remaining,
                    now=now,
                    require_unexpired=lot_update.require_unexpired,
                )
                if not applied:
                    raise ConcurrencyConflict(lot_update.lot_id)

            for event in change.events:
                await self.event_repo.create(event)

            if change.balance_delta:
                await self.balance_repo.apply_delta(change.owner_id, change.balance_delta, now)

            await self.uow.commit()
        except Exception:
            await self.uow.rollback()
            raise

    async def insert_lot(self, lot: CreditLot, reason: str, now: datetime) -> CreditLot:
        try:
            created = await self.lot_repo.create(lot)
        except IntegrityError:
            await self.uow.rollback()
            if lot.external_transaction_id:
                raise DuplicatePayment(lot.external_transaction_id)
            raise

        try:
            await self.event_repo.create(
                LedgerEvent(
                    event_type=LedgerEventType.GRANT,
                    owner_id=created.owner_id,
                    amount=created.initial_amount,
                    lot_id=created.id,
                    reason=reason,
                    occurred_at=now,
                )
            )
            await self.balance_repo.apply_delta(created.owner_id, created.initial_amount, now)
            await self.uow.commit()
        except Exception:
            await self.uow.rollback()
            raise

        logger.info(
            f"Lot {created.id} granted to {created.owner_id}: "
            f"amount={created.initial_amount}, expires_at={created.expires_at.isoformat()}"
        )
        return created
