"""SQLAlchemy Usage Log Repository Implementation"""

from datetime import datetime
from typing import Dict
from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from meta_ledger.app.repositories.usage_log_repository import UsageLogRepository
from meta_ledger.domain.usage_log import UsageLog


class SqlAlchemyUsageLogRepository(UsageLogRepository):
    """SQLAlchemy implementation of UsageLogRepository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, usage_log: UsageLog) -> UsageLog:
        self.session.add(usage_log)
        await self.session.flush()
        await self.session.refresh(usage_log)
        return usage_log

    async def count_since(self, owner_id: str, feature_key: str, since: datetime) -> int:
        stmt = select(func.count()).select_from(UsageLog).where(
            UsageLog.owner_id == owner_id,
            UsageLog.feature_key == feature_key,
            UsageLog.used_at >= since,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def count_by_feature_since(self, owner_id: str, since: datetime) -> Dict[str, int]:
        stmt = (
            select(UsageLog.feature_key, func.count())
            .where(UsageLog.owner_id == owner_id, UsageLog.used_at >= since)
            .group_by(UsageLog.feature_key)
        )
        result = await self.session.execute(stmt)
        return {feature_key: int(count) for feature_key, count in result.all()}
