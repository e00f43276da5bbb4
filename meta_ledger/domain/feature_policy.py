"""Feature Policy

Static pricing/limit configuration consulted by the Entitlement Gate.
Not persisted.
"""

from enum import Enum
from typing import Dict, Optional
from pydantic import BaseModel, Field, model_validator


class GateKind(str, Enum):
    """How a feature is metered for non-unlimited plans"""
    COUNTER = "counter"  # Fixed number of free uses per calendar month
    CREDIT = "credit"    # Priced in ledger units


class FeaturePolicy(BaseModel):
    """
    Feature Policy - How one feature is gated

    - CREDIT features require cost > 0
    - COUNTER features read monthly_limits[plan]; a plan missing from the map
      gets 0 free uses
    - overflow_cost lets a COUNTER feature continue on credit once the
      allowance is used up
    """

    feature_key: str = Field(..., min_length=1)
    gate: GateKind
    cost: int = Field(default=0, ge=0)
    monthly_limits: Dict[str, int] = Field(default_factory=dict)
    overflow_cost: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def check_pricing(self):
        if self.gate == GateKind.CREDIT and self.cost <= 0:
            raise ValueError(f"credit-gated feature {self.feature_key} needs a positive cost")
        return self

    def monthly_limit_for(self, plan: str) -> int:
        return self.monthly_limits.get(plan, 0)
