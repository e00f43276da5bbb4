"""GrantCredit Use Case

Creates a new credit lot for a confirmed payment or an administrative grant.
Idempotent on the payment provider's transaction id.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from meta_ledger.libs.result import Result, Return, Error
from meta_ledger.app.repositories.credit_lot_repository import CreditLotRepository
from meta_ledger.app.services.ledger_store import LedgerStore
from meta_ledger.domain.credit_lot import CreditLot, LotSource
from meta_ledger.domain.errors import DuplicatePayment, LedgerErrorCode
from .dtos import GrantCreditCommandDTO, GrantCreditResponseDTO, GrantStatus

logger = logging.getLogger(__name__)

DEFAULT_GRANT_REASONS = {
    LotSource.PURCHASE: "purchase",
    LotSource.GRANT: "admin_grant",
    LotSource.PROMOTIONAL: "promotion",
}


class GrantCredit:
    """
    Use Case: Credit an owner with a new lot

    Business Rules:
    1. Missing owner or non-positive amount: acknowledged as IGNORED, nothing written
    2. A lot for the same external_transaction_id already exists: DUPLICATE,
       nothing written (redelivered webhooks are safe)
    3. New lot: remaining = initial_amount = amount,
       expires_at = now + validity_days
    4. Lot, GRANT event and cache increment commit together
    """

    def __init__(
        self,
        lot_repo: CreditLotRepository,
        ledger_store: LedgerStore,
        validity_days: int = 180,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.lot_repo = lot_repo
        self.ledger_store = ledger_store
        self.validity_days = validity_days
        self.clock = clock or datetime.utcnow

    async def execute(self, command: GrantCreditCommandDTO) -> Result[GrantCreditResponseDTO]:
        owner_id = (command.owner_id or "").strip()
        if not owner_id or command.amount <= 0:
            logger.warning(
                f"Ignoring credit request: owner_id={command.owner_id!r}, amount={command.amount}, "
                f"external_transaction_id={command.external_transaction_id}"
            )
            return Return.ok(
                GrantCreditResponseDTO(
                    status=GrantStatus.IGNORED,
                    owner_id=command.owner_id,
                    external_transaction_id=command.external_transaction_id,
                )
            )

        try:
            if command.external_transaction_id:
                existing = await self.lot_repo.get_by_external_transaction_id(
                    command.external_transaction_id
                )
                if existing:
                    return Return.ok(self._duplicate(existing, owner_id))

            now = self.clock()
            lot = CreditLot(
                owner_id=owner_id,
                purchased_at=now,
                expires_at=now + timedelta(days=self.validity_days),
                initial_amount=command.amount,
                remaining=command.amount,
                source=command.source,
                external_transaction_id=command.external_transaction_id,
                created_at=now,
            )
            reason = command.reason or DEFAULT_GRANT_REASONS[command.source]
            created = await self.ledger_store.insert_lot(lot, reason=reason, now=now)

            return Return.ok(
                GrantCreditResponseDTO(
                    status=GrantStatus.CREDITED,
                    owner_id=created.owner_id,
                    lot_id=created.id,
                    amount=created.initial_amount,
                    expires_at=created.expires_at,
                    external_transaction_id=created.external_transaction_id,
                )
            )

        except DuplicatePayment:
            # Lost the insert race against a concurrent delivery of the same payment
            try:
                existing = await self.lot_repo.get_by_external_transaction_id(
                    command.external_transaction_id
                )
            except Exception as e:
                return self._failed(owner_id, e)
            return Return.ok(self._duplicate(existing, owner_id))

        except Exception as e:
            return self._failed(owner_id, e)

    def _failed(self, owner_id: str, e: Exception) -> Result[GrantCreditResponseDTO]:
        logger.error(f"Failed to grant credit to {owner_id}: {e}")
        return Return.err(
            Error(
                code=LedgerErrorCode.GRANT_CREDIT_FAILED.value,
                message="Failed to grant credit",
                reason=str(e),
            )
        )

    def _duplicate(self, existing: Optional[CreditLot], owner_id: str) -> GrantCreditResponseDTO:
        if existing is None:
            return GrantCreditResponseDTO(status=GrantStatus.DUPLICATE, owner_id=owner_id)

        if existing.owner_id != owner_id:
            logger.warning(
                f"Payment {existing.external_transaction_id} already credited to "
                f"{existing.owner_id}, not {owner_id}"
            )
        else:
            logger.info(f"Payment {existing.external_transaction_id} already credited as lot {existing.id}")

        return GrantCreditResponseDTO(
            status=GrantStatus.DUPLICATE,
            owner_id=existing.owner_id,
            lot_id=existing.id,
            amount=existing.initial_amount,
            expires_at=existing.expires_at,
            external_transaction_id=existing.external_transaction_id,
        )
