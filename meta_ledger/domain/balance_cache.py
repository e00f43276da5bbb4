"""Balance Cache Domain Entity

Denormalized spendable total per owner. Derived from CreditLot rows and
never the arbiter of whether a consumption may proceed.
"""

from datetime import datetime
from sqlmodel import Field
from meta_ledger.domain.base import BaseModel


class BalanceCache(BaseModel, table=True):
    """
    Balance Cache - Sum of remaining across the owner's non-expired lots

    Domain Rules:
    - Exactly one row per owner
    - Written only by grant/consume/expire mutations and reconciliation repair
    """

    __tablename__ = "balance_cache"

    owner_id: str = Field(
        primary_key=True,
        description="Owner identifier"
    )

    balance: int = Field(
        default=0,
        description="Cached spendable balance"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last recomputation / delta timestamp"
    )
