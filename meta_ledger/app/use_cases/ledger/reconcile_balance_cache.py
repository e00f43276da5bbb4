"""ReconcileBalanceCache Use Case

Compares the balance cache against the spendable sum of each owner's lots.
"""

import logging
import time
from datetime import datetime
from typing import Callable, List, Optional
from meta_ledger.libs.result import Result, Return, Error
from meta_ledger.app.services.unit_of_work import UnitOfWork
from meta_ledger.app.repositories.balance_cache_repository import BalanceCacheRepository
from meta_ledger.app.repositories.credit_lot_repository import CreditLotRepository
from meta_ledger.domain.errors import LedgerErrorCode
from .dtos import BalanceDiscrepancyDTO, ReconciliationResultDTO

logger = logging.getLogger(__name__)


class ReconcileBalanceCache:
    """
    Use Case: Reconcile balance cache against lots

    Business Rules:
    1. Expected balance = sum(remaining) over lots not yet expired
    2. Owners present in the cache or with spendable lots are checked
    3. Mismatches are logged and reported
    4. With repair=True the cache row is overwritten with the expected value

    Lots that expired but were not swept yet still sit in the cache, so run
    this after the expiry sweep.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        lot_repo: CreditLotRepository,
        balance_repo: BalanceCacheRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.uow = uow
        self.lot_repo = lot_repo
        self.balance_repo = balance_repo
        self.clock = clock or datetime.utcnow

    async def execute(self, repair: bool = False) -> Result[ReconciliationResultDTO]:
        """
        Execute balance cache reconciliation

        Args:
            repair: Overwrite diverging cache rows with the lot sum

        Returns:
            Result[ReconciliationResultDTO]: Reconciliation result with any discrepancies
        """
        start_time = time.time()
        reconciliation_time = self.clock()

        try:
            logger.info("Starting balance cache reconciliation")

            expected = await self.lot_repo.sum_spendable_by_owner(reconciliation_time)
            cached = {row.owner_id: row.balance for row in await self.balance_repo.get_all()}
            owner_ids = sorted(set(expected) | set(cached))

            discrepancies: List[BalanceDiscrepancyDTO] = []
            for owner_id in owner_ids:
                calculated = expected.get(owner_id, 0)
                cached_balance = cached.get(owner_id)
                if (cached_balance or 0) == calculated:
                    continue

                discrepancy = BalanceDiscrepancyDTO(
                    owner_id=owner_id,
                    cached_balance=cached_balance,
                    calculated_balance=calculated,
                    discrepancy=(cached_balance or 0) - calculated,
                    repaired=repair,
                )
                discrepancies.append(discrepancy)
                logger.warning(
                    f"Balance cache discrepancy for {owner_id}: "
                    f"cached={cached_balance}, calculated={calculated}, "
                    f"discrepancy={discrepancy.discrepancy}"
                )

                if repair:
                    await self.balance_repo.set_balance(owner_id, calculated, reconciliation_time)

            if repair and discrepancies:
                await self.uow.commit()

            execution_time_ms = int((time.time() - start_time) * 1000)
            if discrepancies:
                logger.warning(
                    f"Reconciliation complete. Found {len(discrepancies)} discrepancies "
                    f"out of {len(owner_ids)} owners in {execution_time_ms}ms"
                )
            else:
                logger.info(
                    f"Reconciliation complete. All {len(owner_ids)} owners balanced "
                    f"in {execution_time_ms}ms"
                )

            return Return.ok(
                ReconciliationResultDTO(
                    total_owners_checked=len(owner_ids),
                    discrepancies_found=len(discrepancies),
                    discrepancies=discrepancies,
                    repaired=repair,
                    reconciliation_time=reconciliation_time,
                    execution_time_ms=execution_time_ms,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Balance cache reconciliation failed: {e}")
            return Return.err(
                Error(
                    code=LedgerErrorCode.RECONCILIATION_FAILED.value,
                    message="Failed to reconcile balance cache",
                    reason=str(e),
                )
            )
