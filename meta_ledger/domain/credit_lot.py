"""Credit Lot Domain Entity

A discrete, time-boxed grant of spendable Meta credit. Lots are never deleted;
`remaining` only decreases (consumption) or is forced to zero (expiry sweep).
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, String
from meta_ledger.domain.base import BaseModel, IdType


class LotSource(str, Enum):
    """How a lot came into existence"""
    PURCHASE = "purchase"        # Confirmed payment (Stripe, PAY.JP)
    GRANT = "grant"              # Administrative grant
    PROMOTIONAL = "promotional"  # Campaign / referral bonus


class CreditLot(BaseModel, table=True):
    """
    Credit Lot - Spendable credit with a fixed validity window

    Domain Rules:
    - 0 <= remaining <= initial_amount
    - remaining never increases after creation
    - external_transaction_id is unique when present (crediting idempotency)
    - version is bumped on every remaining write (optimistic concurrency)
    - Spendable iff remaining > 0 and expires_at > now
    """

    __tablename__ = "credit_lots"
    __table_args__ = (
        CheckConstraint('initial_amount > 0', name='initial_amount_positive'),
        CheckConstraint('remaining >= 0', name='remaining_non_negative'),
        CheckConstraint('remaining <= initial_amount', name='remaining_within_initial'),
        Index('ix_credit_lots_owner_expires', 'owner_id', 'expires_at'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique lot identifier (auto-increment)"
    )

    owner_id: str = Field(
        index=True,
        description="Owner (auth user id) the credit belongs to"
    )

    purchased_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the lot was granted"
    )

    expires_at: datetime = Field(
        description="purchased_at + validity window"
    )

    initial_amount: int = Field(
        description="Credit granted (positive)"
    )

    remaining: int = Field(
        description="Credit still spendable on this lot"
    )

    source: LotSource = Field(
        description="Lot origin (purchase, grant, promotional)"
    )

    external_transaction_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), unique=True, nullable=True),
        description="Payment provider transaction id (idempotency key)"
    )

    version: int = Field(
        default=1,
        description="Optimistic concurrency counter"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Row creation timestamp"
    )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_spendable(self, now: datetime) -> bool:
        return self.remaining > 0 and not self.is_expired(now)

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 1,
                "owner_id": "8f1c2d3e-user",
                "purchased_at": "2024-01-01T00:00:00Z",
                "expires_at": "2024-06-29T00:00:00Z",
                "initial_amount": 7,
                "remaining": 5,
                "source": "purchase",
                "external_transaction_id": "pi_3OabcXYZ",
                "version": 2,
                "created_at": "2024-01-01T00:00:00Z"
            }
        }
