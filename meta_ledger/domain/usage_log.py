"""Usage Log Domain Entity

One row per allowed invocation of a counter-gated feature, or per invocation
on an unlimited plan (analytics only).
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import String
from meta_ledger.domain.base import BaseModel, IdType


class UsageLog(BaseModel, table=True):
    """Usage Log - Feature invocation record backing monthly counters"""

    __tablename__ = "usage_logs"
    __table_args__ = (
        Index('ix_usage_logs_owner_feature_used', 'owner_id', 'feature_key', 'used_at'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
    )

    owner_id: str = Field(description="Owner identifier")

    feature_key: str = Field(
        sa_column=Column(String(100), nullable=False),
        description="Feature invoked"
    )

    used_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Invocation timestamp"
    )
