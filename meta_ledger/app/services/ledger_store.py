"""Ledger Store Service Interface

The only write path for credit lots. Every balance-affecting change (lot
update, its ledger events, the balance cache delta) is applied in one
all-or-nothing transaction.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List
from meta_ledger.domain.credit_lot import CreditLot
from meta_ledger.domain.ledger_event import LedgerEvent


@dataclass(frozen=True)
class LotUpdate:
    """Set a lot's remaining, provided nobody else touched it since it was read"""
    lot_id: int
    expected_version: int
    new_remaining: int
    require_unexpired: bool = True


@dataclass
class LedgerChange:
    """One atomic unit of ledger mutation for a single owner"""
    owner_id: str
    lot_updates: List[LotUpdate] = field(default_factory=list)
    events: List[LedgerEvent] = field(default_factory=list)
    balance_delta: int = 0


class LedgerStore(ABC):
    """
    Transactional ledger writer

    Implementations must guarantee that a lot's remaining never changes
    without its ledger event being written, and vice versa.
    """

    @abstractmethod
    async def apply_atomic(self, change: LedgerChange, now: datetime) -> None:
        """
        Apply lot updates, events and cache delta in one transaction

        Raises:
            ConcurrencyConflict: A targeted lot changed version or expired;
                nothing was written and the caller must re-read
        """
        pass

    @abstractmethod
    async def insert_lot(self, lot: CreditLot, reason: str, now: datetime) -> CreditLot:
        """
        Insert a lot with its GRANT event and cache increment in one transaction

        Raises:
            DuplicatePayment: The lot's external_transaction_id already exists
        """
        pass
