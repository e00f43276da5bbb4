"""
Get Balance Use Case

Retrieves an owner's spendable balance computed from live lots.
"""
from datetime import datetime
from typing import Callable, Optional
from meta_ledger.libs.result import Result, Return
from meta_ledger.app.repositories.credit_lot_repository import CreditLotRepository
from .dtos import BalanceResponseDTO


class GetBalance:
    """
    Use case: View Meta Balance

    The balance is always the sum of remaining over lots that are not yet
    expired, so a lot past expires_at stops counting immediately even if the
    sweeper has not run. An owner with no lots has a balance of 0.
    """

    def __init__(
        self,
        lot_repo: CreditLotRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.lot_repo = lot_repo
        self.clock = clock or datetime.utcnow

    async def execute(self, owner_id: str) -> Result[BalanceResponseDTO]:
        now = self.clock()
        lots = await self.lot_repo.list_spendable(owner_id, now)

        return Return.ok(
            BalanceResponseDTO(
                owner_id=owner_id,
                balance=sum(lot.remaining for lot in lots),
                active_lots=len(lots),
                next_expiry=lots[0].expires_at if lots else None,
                as_of=now,
            )
        )
