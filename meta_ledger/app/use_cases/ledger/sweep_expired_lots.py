"""SweepExpiredLots Use Case

Writes off the remaining credit of lots past their expiry.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Set
from meta_ledger.libs.result import Result, Return, Error
from meta_ledger.app.repositories.credit_lot_repository import CreditLotRepository
from meta_ledger.app.services.ledger_store import LedgerChange, LedgerStore, LotUpdate
from meta_ledger.domain.credit_lot import CreditLot
from meta_ledger.domain.errors import LedgerErrorCode
from meta_ledger.domain.ledger_event import LedgerEvent, LedgerEventType
from .dtos import SweepResultDTO

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpiringLot:
    id: int
    owner_id: str
    remaining: int
    version: int

    @classmethod
    def of(cls, lot: CreditLot) -> "ExpiringLot":
        return cls(id=lot.id, owner_id=lot.owner_id, remaining=lot.remaining, version=lot.version)


class SweepExpiredLots:
    """
    Use Case: Expire lots whose expires_at has passed

    Business Rules:
    1. Only lots with expires_at <= sweep time and remaining > 0 are touched
    2. Each lot is handled in its own transaction: remaining -> 0, one EXPIRE
       event for the written-off amount, cache decremented by that amount
    3. A lot that fails (e.g. consumed concurrently) is skipped and retried
       on the next run; it never aborts the sweep
    4. Re-running is a no-op for lots already at remaining = 0
    """

    def __init__(
        self,
        lot_repo: CreditLotRepository,
        ledger_store: LedgerStore,
        validity_days: int = 180,
        batch_size: int = 500,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.lot_repo = lot_repo
        self.ledger_store = ledger_store
        self.validity_days = validity_days
        self.batch_size = batch_size
        self.clock = clock or datetime.utcnow

    async def execute(self) -> Result[SweepResultDTO]:
        start_time = time.time()
        sweep_time = self.clock()
        reason = f"expired_{self.validity_days}_days"

        scanned = 0
        expired = 0
        written_off = 0
        failed_ids: Set[int] = set()

        try:
            logger.info(f"Starting lot expiry sweep at {sweep_time.isoformat()}")

            while True:
                lots = await self.lot_repo.list_expired_with_remaining(
                    sweep_time, self.batch_size, exclude_ids=failed_ids
                )
                # Snapshot: a failed lot rolls back the session, expiring every loaded instance
                batch = [ExpiringLot.of(lot) for lot in lots]
                if not batch:
                    break

                for lot in batch:
                    scanned += 1
                    amount = lot.remaining
                    change = LedgerChange(
                        owner_id=lot.owner_id,
                        lot_updates=[
                            LotUpdate(
                                lot_id=lot.id,
                                expected_version=lot.version,
                                new_remaining=0,
                                require_unexpired=False,
                            )
                        ],
                        events=[
                            LedgerEvent(
                                event_type=LedgerEventType.EXPIRE,
                                owner_id=lot.owner_id,
                                amount=amount,
                                lot_id=lot.id,
                                reason=reason,
                                occurred_at=sweep_time,
                            )
                        ],
                        balance_delta=-amount,
                    )

                    try:
                        await self.ledger_store.apply_atomic(change, sweep_time)
                    except Exception as e:
                        failed_ids.add(lot.id)
                        logger.warning(f"Failed to expire lot {lot.id} of {lot.owner_id}: {e}")
                        continue

                    expired += 1
                    written_off += amount
                    logger.info(f"Expired lot {lot.id} of {lot.owner_id}: {amount} written off")

            execution_time_ms = int((time.time() - start_time) * 1000)
            logger.info(
                f"Lot expiry sweep complete: {expired} expired, {len(failed_ids)} failed, "
                f"{written_off} written off in {execution_time_ms}ms"
            )

            return Return.ok(
                SweepResultDTO(
                    lots_scanned=scanned,
                    lots_expired=expired,
                    lots_failed=len(failed_ids),
                    credits_written_off=written_off,
                    sweep_time=sweep_time,
                    execution_time_ms=execution_time_ms,
                )
            )

        except Exception as e:
            logger.error(f"Lot expiry sweep failed: {e}")
            return Return.err(
                Error(
                    code=LedgerErrorCode.SWEEP_FAILED.value,
                    message="Failed to sweep expired lots",
                    reason=str(e),
                )
            )
