"""Ledger Event Domain Entity

Immutable append-only audit trail of every balance-affecting action.
Used for reconciliation and disputes, never for the hot-path balance.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import ForeignKey, String
from meta_ledger.domain.base import BaseModel, IdType


class LedgerEventType(str, Enum):
    """Ledger event types"""
    GRANT = "grant"      # Lot created (purchase, admin grant, promotion)
    CONSUME = "consume"  # Credit spent from one lot
    EXPIRE = "expire"    # Remaining credit written off by the sweeper


class LedgerEvent(BaseModel, table=True):
    """
    Ledger Event - One balance-affecting action on one lot

    Domain Rules:
    - Events are immutable (append-only)
    - amount is always positive; event_type gives the direction
    - Multi-lot consumption writes one CONSUME event per affected lot
    - Written in the same transaction as the lot mutation it records
    """

    __tablename__ = "ledger_events"
    __table_args__ = (
        Index('ix_ledger_events_owner_occurred', 'owner_id', 'occurred_at'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique event identifier (auto-increment)"
    )

    event_type: LedgerEventType = Field(
        description="Type of event (grant, consume, expire)"
    )

    owner_id: str = Field(
        index=True,
        description="Owner whose balance changed"
    )

    amount: int = Field(
        description="Credit amount affected (positive)"
    )

    lot_id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, ForeignKey("credit_lots.id"), nullable=True),
        description="Affected lot"
    )

    reason: Optional[str] = Field(
        default=None,
        sa_column=Column(String(100), nullable=True),
        description="Why (e.g. 'stripe_purchase', 'feature:fermi', 'expired_180_days')"
    )

    occurred_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Event timestamp (immutable)"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 1,
                "event_type": "consume",
                "owner_id": "8f1c2d3e-user",
                "amount": 2,
                "lot_id": 1,
                "reason": "feature:interview_10",
                "occurred_at": "2024-01-02T00:00:00Z"
            }
        }
