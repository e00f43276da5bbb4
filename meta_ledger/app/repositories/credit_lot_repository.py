"""Credit Lot Repository Interface

Defines the contract for credit lot persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Set
from meta_ledger.domain.credit_lot import CreditLot


class CreditLotRepository(ABC):
    """
    Repository interface for CreditLot persistence

    Lot mutations are conditional on the lot's version so that concurrent
    writers are detected instead of serialized behind a lock.
    """

    @abstractmethod
    async def list_spendable(self, owner_id: str, now: datetime) -> List[CreditLot]:
        """
        Lots with remaining > 0 and expires_at > now, soonest expiry first

        Args:
            owner_id: Owner identifier
            now: Reference time

        Returns:
            Ordered list of spendable lots (ties broken by id)
        """
        pass

    @abstractmethod
    async def list_expired_with_remaining(
        self,
        now: datetime,
        limit: int,
        exclude_ids: Optional[Set[int]] = None,
    ) -> List[CreditLot]:
        """
        Lots with expires_at <= now and remaining > 0, oldest expiry first

        Args:
            now: Reference time
            limit: Maximum number of lots to return
            exclude_ids: Lots to skip (already failed in this sweep)

        Returns:
            Lots the sweeper still has to zero out
        """
        pass

    @abstractmethod
    async def get_by_external_transaction_id(self, external_transaction_id: str) -> Optional[CreditLot]:
        """Retrieve the lot credited for a payment provider transaction"""
        pass

    @abstractmethod
    async def create(self, lot: CreditLot) -> CreditLot:
        """
        Insert a lot (flushes, does not commit)

        Raises:
            IntegrityError: If external_transaction_id already exists
        """
        pass

    @abstractmethod
    async def update_remaining(
        self,
        lot_id: int,
        expected_version: int,
        new_remaining: int,
        now: datetime,
        require_unexpired: bool = True,
    ) -> bool:
        """
        Conditionally set remaining and bump version

        The write only applies if the lot still has expected_version and,
        when require_unexpired is set, expires_at > now.

        Returns:
            True if exactly one row was updated
        """
        pass

    @abstractmethod
    async def sum_spendable(self, owner_id: str, now: datetime) -> int:
        """Sum of remaining across the owner's spendable lots"""
        pass

    @abstractmethod
    async def sum_spendable_by_owner(self, now: datetime) -> Dict[str, int]:
        """Spendable sum for every owner that has at least one lot"""
        pass
