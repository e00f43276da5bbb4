"""
List Active Lots Use Case

Lists an owner's spendable lots in the order they will be consumed.
"""
from datetime import datetime
from typing import Callable, Optional
from meta_ledger.libs.result import Result, Return
from meta_ledger.app.repositories.credit_lot_repository import CreditLotRepository
from .dtos import ActiveLotsResponseDTO, LotDTO


class ListActiveLots:
    """Use case: View spendable lots, soonest-expiring first"""

    def __init__(
        self,
        lot_repo: CreditLotRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.lot_repo = lot_repo
        self.clock = clock or datetime.utcnow

    async def execute(self, owner_id: str) -> Result[ActiveLotsResponseDTO]:
        lots = await self.lot_repo.list_spendable(owner_id, self.clock())

        lot_dtos = [
            LotDTO(
                id=lot.id,
                initial_amount=lot.initial_amount,
                remaining=lot.remaining,
                source=lot.source.value if hasattr(lot.source, "value") else lot.source,
                purchased_at=lot.purchased_at,
                expires_at=lot.expires_at,
            )
            for lot in lots
        ]

        return Return.ok(ActiveLotsResponseDTO(owner_id=owner_id, lots=lot_dtos))
