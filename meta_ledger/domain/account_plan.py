"""Account Plan Domain Entity

Tracks which monetization plan an owner is on. A missing row means FREE.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import String
from meta_ledger.domain.base import BaseModel, IdType

UNLIMITED_PLANS = frozenset({"pro", "elite"})


class Plan(str, Enum):
    """Plan tiers"""
    FREE = "free"        # Free monthly allowance, credit for everything else
    METERED = "metered"  # Larger monthly allowance, credit for everything else
    PRO = "pro"          # Unlimited
    ELITE = "elite"      # Unlimited

    @property
    def is_unlimited(self) -> bool:
        return self.value in UNLIMITED_PLANS


class AccountPlan(BaseModel, table=True):
    """
    Account Plan - Current plan of an owner

    Domain Rules:
    - One row per owner (owner_id is unique)
    - Plan changes come from subscription webhooks or admin action
    """

    __tablename__ = "account_plans"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique plan row identifier (auto-increment)"
    )

    owner_id: str = Field(
        index=True,
        unique=True,
        description="Owner identifier (unique - one plan per owner)"
    )

    plan: Plan = Field(
        default=Plan.FREE,
        description="Plan tier (free, metered, pro, elite)"
    )

    stripe_customer_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Stripe customer id"
    )

    stripe_subscription_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Stripe subscription id"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Row creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last plan change timestamp"
    )
