"""Usage Log Repository Interface"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict
from meta_ledger.domain.usage_log import UsageLog


class UsageLogRepository(ABC):
    """Repository interface for feature usage records"""

    @abstractmethod
    async def create(self, usage_log: UsageLog) -> UsageLog:
        """Record one invocation (flushes, does not commit)"""
        pass

    @abstractmethod
    async def count_since(self, owner_id: str, feature_key: str, since: datetime) -> int:
        """Invocations of feature_key by owner_id at or after since"""
        pass

    @abstractmethod
    async def count_by_feature_since(self, owner_id: str, since: datetime) -> Dict[str, int]:
        """Invocation counts per feature_key at or after since"""
        pass
