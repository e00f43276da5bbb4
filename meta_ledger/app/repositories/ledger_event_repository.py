"""Ledger Event Repository Interface"""

from abc import ABC, abstractmethod
from typing import List, Tuple
from meta_ledger.domain.ledger_event import LedgerEvent


class LedgerEventRepository(ABC):
    """Repository interface for append-only LedgerEvent persistence"""

    @abstractmethod
    async def create(self, event: LedgerEvent) -> LedgerEvent:
        """Append an event (flushes, does not commit)"""
        pass

    @abstractmethod
    async def list_by_owner(
        self, owner_id: str, limit: int = 20, offset: int = 0
    ) -> Tuple[List[LedgerEvent], int]:
        """
        Events for an owner, newest first

        Returns:
            (page of events, total count)
        """
        pass

    @abstractmethod
    async def list_by_lot(self, lot_id: int) -> List[LedgerEvent]:
        """All events recorded against one lot, oldest first"""
        pass
