"""ConsumeCredit Use Case

Deducts credit from an owner's spendable lots, soonest-expiring first, with
optimistic concurrency control and bounded retries.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence
from meta_ledger.libs.result import Result, Return, Error
from meta_ledger.app.repositories.credit_lot_repository import CreditLotRepository
from meta_ledger.app.services.ledger_store import LedgerChange, LedgerStore, LotUpdate
from meta_ledger.domain.credit_lot import CreditLot
from meta_ledger.domain.errors import ConcurrencyConflict, LedgerErrorCode
from meta_ledger.domain.ledger_event import LedgerEvent, LedgerEventType
from .dtos import ConsumeCommandDTO, ConsumptionResponseDTO, LotDeductionDTO

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedDeduction:
    lot: CreditLot
    amount: int

    @property
    def remaining_after(self) -> int:
        return self.lot.remaining - self.amount


def plan_fifo_deductions(lots: Sequence[CreditLot], cost: int) -> Optional[List[PlannedDeduction]]:
    """
    Split cost across lots in the given order

    Args:
        lots: Spendable lots, already ordered by (expires_at, id)
        cost: Credit to deduct (> 0)

    Returns:
        Deductions covering exactly cost, or None if the lots cannot cover it
    """
    outstanding = cost
    deductions: List[PlannedDeduction] = []
    for lot in lots:
        if outstanding == 0:
            break
        take = min(lot.remaining, outstanding)
        if take <= 0:
            continue
        deductions.append(PlannedDeduction(lot=lot, amount=take))
        outstanding -= take

    if outstanding > 0:
        return None
    return deductions


class ConsumeCredit:
    """
    Use Case: Consume credit from an owner's lots

    Business Rules:
    1. cost must be positive
    2. Lots are drained in expiry order (FIFO by expires_at, then id)
    3. All or nothing: if spendable total < cost, no lot is touched
    4. Every lot touched gets one CONSUME event; the balance cache drops by cost
    5. A lot changed by someone else since it was read aborts the attempt,
       which is retried from a fresh read up to max_attempts times

    Flow:
    1. Read spendable lots
    2. Plan FIFO deductions
    3. Apply lot updates + events + cache delta atomically
    4. On ConcurrencyConflict, go back to 1
    """

    def __init__(
        self,
        lot_repo: CreditLotRepository,
        ledger_store: LedgerStore,
        max_attempts: int = 3,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.lot_repo = lot_repo
        self.ledger_store = ledger_store
        self.max_attempts = max_attempts
        self.clock = clock or datetime.utcnow

    async def execute(self, command: ConsumeCommandDTO) -> Result[ConsumptionResponseDTO]:
        """
        Execute credit consumption

        Args:
            command: ConsumeCommandDTO with owner_id, cost, reason

        Returns:
            Result[ConsumptionResponseDTO]: Per-lot breakdown or one of
            INVALID_COST, INSUFFICIENT_CREDIT, CONCURRENCY_CONFLICT,
            CONSUME_CREDIT_FAILED
        """
        if command.cost <= 0:
            return Return.err(
                Error(
                    code=LedgerErrorCode.INVALID_COST.value,
                    message=f"Cost must be positive, got {command.cost}",
                )
            )

        try:
            for attempt in range(1, self.max_attempts + 1):
                now = self.clock()
                lots = await self.lot_repo.list_spendable(command.owner_id, now)
                available = sum(lot.remaining for lot in lots)

                deductions = plan_fifo_deductions(lots, command.cost)
                if deductions is None:
                    return Return.err(
                        Error(
                            code=LedgerErrorCode.INSUFFICIENT_CREDIT.value,
                            message=f"Insufficient credit. Required: {command.cost}, Available: {available}",
                            reason=f"balance={available}, required={command.cost}",
                        )
                    )

                # Expiry is re-checked by the conditional UPDATE against the commit time
                commit_time = self.clock()
                change = LedgerChange(owner_id=command.owner_id, balance_delta=-command.cost)
                for deduction in deductions:
                    change.lot_updates.append(
                        LotUpdate(
                            lot_id=deduction.lot.id,
                            expected_version=deduction.lot.version,
                            new_remaining=deduction.remaining_after,
                        )
                    )
                    change.events.append(
                        LedgerEvent(
                            event_type=LedgerEventType.CONSUME,
                            owner_id=command.owner_id,
                            amount=deduction.amount,
                            lot_id=deduction.lot.id,
                            reason=command.reason,
                            occurred_at=commit_time,
                        )
                    )

                try:
                    await self.ledger_store.apply_atomic(change, commit_time)
                except ConcurrencyConflict as conflict:
                    logger.warning(
                        f"Consume conflict for {command.owner_id} on lot {conflict.lot_id} "
                        f"(attempt {attempt}/{self.max_attempts})"
                    )
                    continue

                return Return.ok(
                    ConsumptionResponseDTO(
                        owner_id=command.owner_id,
                        cost=command.cost,
                        deductions=[
                            LotDeductionDTO(
                                lot_id=deduction.lot.id,
                                amount=deduction.amount,
                                remaining_after=deduction.remaining_after,
                                expires_at=deduction.lot.expires_at,
                            )
                            for deduction in deductions
                        ],
                        balance_after=available - command.cost,
                        consumed_at=commit_time,
                    )
                )

            logger.error(
                f"Consume for {command.owner_id} gave up after {self.max_attempts} conflicting attempts"
            )
            return Return.err(
                Error(
                    code=LedgerErrorCode.CONCURRENCY_CONFLICT.value,
                    message="Credit lots kept changing during consumption, please retry",
                    reason=f"attempts={self.max_attempts}",
                )
            )

        except Exception as e:
            logger.error(f"Failed to consume credit for {command.owner_id}: {e}")
            return Return.err(
                Error(
                    code=LedgerErrorCode.CONSUME_CREDIT_FAILED.value,
                    message="Failed to consume credit",
                    reason=str(e),
                )
            )
