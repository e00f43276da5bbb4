"""
List Ledger Events Use Case

Retrieves an owner's grant/consume/expire history with pagination.
"""
from meta_ledger.libs.result import Result, Return
from meta_ledger.app.repositories.ledger_event_repository import LedgerEventRepository
from .dtos import LedgerEventDTO, ListLedgerEventsResponseDTO


class ListLedgerEvents:
    """
    Use case: View ledger history

    Events are ordered by occurred_at DESC (most recent first).
    """

    def __init__(self, event_repo: LedgerEventRepository):
        self.event_repo = event_repo

    async def execute(
        self, owner_id: str, limit: int = 20, offset: int = 0
    ) -> Result[ListLedgerEventsResponseDTO]:
        """
        List ledger events for an owner with pagination.

        Args:
            owner_id: Owner identifier
            limit: Maximum number of events to return (default 20)
            offset: Number of events to skip (default 0)

        Returns:
            Result[ListLedgerEventsResponseDTO]: Paginated event list
        """
        events, total = await self.event_repo.list_by_owner(
            owner_id=owner_id,
            limit=limit,
            offset=offset,
        )

        event_dtos = [
            LedgerEventDTO(
                id=event.id,
                event_type=event.event_type.value if hasattr(event.event_type, "value") else event.event_type,
                amount=event.amount,
                lot_id=event.lot_id,
                reason=event.reason,
                occurred_at=event.occurred_at,
            )
            for event in events
        ]

        return Return.ok(
            ListLedgerEventsResponseDTO(
                owner_id=owner_id,
                events=event_dtos,
                total=total,
                limit=limit,
                offset=offset,
                has_more=offset + len(event_dtos) < total,
            )
        )
