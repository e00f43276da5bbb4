"""Balance Cache Repository Interface"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from meta_ledger.domain.balance_cache import BalanceCache


class BalanceCacheRepository(ABC):
    """Repository interface for the per-owner balance cache"""

    @abstractmethod
    async def get_by_owner_id(self, owner_id: str) -> Optional[BalanceCache]:
        pass

    @abstractmethod
    async def get_all(self) -> List[BalanceCache]:
        pass

    @abstractmethod
    async def apply_delta(self, owner_id: str, delta: int, now: datetime) -> None:
        """Add delta to the owner's cached balance, creating the row if needed"""
        pass

    @abstractmethod
    async def set_balance(self, owner_id: str, balance: int, now: datetime) -> None:
        """Overwrite the cached balance (repair path)"""
        pass
