"""Data Transfer Objects for Ledger Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from meta_ledger.domain.account_plan import Plan
from meta_ledger.domain.credit_lot import LotSource


class ConsumeCommandDTO(BaseModel):
    """
    Command DTO for consuming credits

    Used as input to ConsumeCredit use case. cost is deliberately not
    constrained here: non-positive costs are reported as INVALID_COST by the
    use case rather than rejected at construction.
    """

    owner_id: str = Field(
        ...,
        description="Owner whose lots are spent"
    )

    cost: int = Field(
        ...,
        description="Credit units to deduct (must be > 0)"
    )

    reason: Optional[str] = Field(
        default=None,
        description="Recorded on every CONSUME event (e.g. 'feature:fermi')"
    )


class LotDeductionDTO(BaseModel):
    """Credit taken from one lot by a consumption"""

    lot_id: int = Field(..., description="Lot ID")
    amount: int = Field(..., description="Credit deducted from this lot")
    remaining_after: int = Field(..., description="Lot remaining after deduction")
    expires_at: datetime = Field(..., description="Lot expiry")


class ConsumptionResponseDTO(BaseModel):
    """
    Response DTO for a successful consumption

    Returned by ConsumeCredit use case.
    """

    owner_id: str = Field(..., description="Owner identifier")
    cost: int = Field(..., description="Total credit deducted")
    deductions: List[LotDeductionDTO] = Field(
        ...,
        description="Per-lot breakdown, soonest-expiring lot first"
    )
    balance_after: int = Field(..., description="Spendable balance after consumption")
    consumed_at: datetime = Field(..., description="Consumption timestamp")

    class Config:
        json_schema_extra = {
            "example": {
                "owner_id": "8f1c2d3e-user",
                "cost": 7,
                "deductions": [
                    {"lot_id": 1, "amount": 5, "remaining_after": 0, "expires_at": "2024-03-01T00:00:00Z"},
                    {"lot_id": 2, "amount": 2, "remaining_after": 3, "expires_at": "2024-04-01T00:00:00Z"}
                ],
                "balance_after": 8,
                "consumed_at": "2024-01-15T00:00:00Z"
            }
        }


class GrantStatus(str, Enum):
    """Outcome of a crediting attempt"""
    CREDITED = "credited"    # New lot created
    DUPLICATE = "duplicate"  # Payment already credited, no-op
    IGNORED = "ignored"      # Malformed request (no owner, non-positive amount)


class GrantCreditCommandDTO(BaseModel):
    """
    Command DTO for crediting an owner

    Used as input to GrantCredit use case by payment webhooks and the admin
    grant path. owner_id and amount are validated by the use case so that
    malformed webhook metadata is acknowledged instead of retried.
    """

    owner_id: Optional[str] = Field(
        default=None,
        description="Owner to credit"
    )

    amount: int = Field(
        ...,
        description="Credit units to grant (must be > 0)"
    )

    external_transaction_id: Optional[str] = Field(
        default=None,
        description="Payment provider transaction id (idempotency key)"
    )

    source: LotSource = Field(
        default=LotSource.PURCHASE,
        description="Lot origin"
    )

    reason: Optional[str] = Field(
        default=None,
        description="Recorded on the GRANT event (e.g. 'stripe_purchase')"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "owner_id": "8f1c2d3e-user",
                "amount": 7,
                "external_transaction_id": "pi_3OabcXYZ",
                "source": "purchase",
                "reason": "stripe_purchase"
            }
        }


class GrantCreditResponseDTO(BaseModel):
    """Response DTO for GrantCredit use case"""

    status: GrantStatus = Field(..., description="credited, duplicate or ignored")
    owner_id: Optional[str] = Field(default=None, description="Owner identifier")
    lot_id: Optional[int] = Field(default=None, description="Created (or existing) lot")
    amount: Optional[int] = Field(default=None, description="Lot initial amount")
    expires_at: Optional[datetime] = Field(default=None, description="Lot expiry")
    external_transaction_id: Optional[str] = Field(default=None, description="Idempotency key")


class SweepResultDTO(BaseModel):
    """Response DTO for SweepExpiredLots use case"""

    lots_scanned: int = Field(..., description="Expired lots with remaining > 0 found")
    lots_expired: int = Field(..., description="Lots zeroed out in this run")
    lots_failed: int = Field(..., description="Lots left for the next run")
    credits_written_off: int = Field(..., description="Sum of remaining written off")
    sweep_time: datetime = Field(..., description="Reference time of the sweep")
    execution_time_ms: int = Field(..., description="Wall-clock duration")


class DenyReason(str, Enum):
    """Why the Entitlement Gate refused an invocation"""
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_CREDIT = "insufficient_credit"
    LIMIT_EXCEEDED = "limit_exceeded"


class GateMode(str, Enum):
    """Which branch of the Entitlement Gate decided"""
    UNLIMITED = "unlimited"
    FREE_QUOTA = "free_quota"
    CREDIT = "credit"


class FeatureInvocationDTO(BaseModel):
    """Command DTO for AuthorizeFeature use case"""

    owner_id: Optional[str] = Field(
        default=None,
        description="Authenticated owner (None = no valid session)"
    )

    feature_key: str = Field(
        ...,
        description="Feature being invoked (see feature catalog)"
    )


class EntitlementDecisionDTO(BaseModel):
    """
    Response DTO for AuthorizeFeature use case

    allowed=False with a reason is a normal outcome, not an error.
    remedies tells the caller what the user can do about a denial.
    """

    allowed: bool = Field(..., description="Whether the invocation may proceed")
    feature_key: str = Field(..., description="Feature requested")
    reason: Optional[DenyReason] = Field(default=None, description="Set when allowed is False")
    plan: Optional[Plan] = Field(default=None, description="Owner's plan")
    mode: Optional[GateMode] = Field(default=None, description="Deciding branch")
    cost_charged: int = Field(default=0, description="Credit deducted by this call")
    used_this_month: Optional[int] = Field(default=None, description="Counter value after this call")
    monthly_limit: Optional[int] = Field(default=None, description="Free uses per month")
    balance_after: Optional[int] = Field(default=None, description="Spendable balance after charge")
    required: Optional[int] = Field(default=None, description="Credit needed when denied for balance")
    remedies: List[str] = Field(default_factory=list, description="'top_up' and/or 'upgrade'")

    class Config:
        json_schema_extra = {
            "example": {
                "allowed": False,
                "feature_key": "interview_10",
                "reason": "insufficient_credit",
                "plan": "free",
                "mode": "credit",
                "cost_charged": 0,
                "required": 2,
                "remedies": ["top_up", "upgrade"]
            }
        }


class BalanceResponseDTO(BaseModel):
    """
    Response DTO for get balance operation

    Computed from spendable lots, not from the balance cache.
    """

    owner_id: str = Field(..., description="Owner identifier")
    balance: int = Field(..., description="Spendable credit")
    active_lots: int = Field(..., description="Number of spendable lots")
    next_expiry: Optional[datetime] = Field(default=None, description="Soonest lot expiry")
    as_of: datetime = Field(..., description="Reference time")


class LotDTO(BaseModel):
    """Spendable lot as shown to the owner"""

    id: int
    initial_amount: int
    remaining: int
    source: str
    purchased_at: datetime
    expires_at: datetime


class ActiveLotsResponseDTO(BaseModel):
    """Response DTO for ListActiveLots use case"""

    owner_id: str
    lots: List[LotDTO]


class LedgerEventDTO(BaseModel):
    """Single ledger event in a history listing"""

    id: int
    event_type: str
    amount: int
    lot_id: Optional[int] = None
    reason: Optional[str] = None
    occurred_at: datetime


class ListLedgerEventsResponseDTO(BaseModel):
    """Paginated ledger event history"""

    owner_id: str
    events: List[LedgerEventDTO]
    total: int
    limit: int
    offset: int
    has_more: bool


class FeatureUsageDTO(BaseModel):
    """Monthly usage of one counter-gated feature"""

    feature_key: str
    used_this_month: int
    monthly_limit: Optional[int] = Field(default=None, description="None on unlimited plans")
    remaining: Optional[int] = Field(default=None, description="None on unlimited plans")


class UsageSummaryResponseDTO(BaseModel):
    """Response DTO for GetUsageSummary use case"""

    owner_id: str
    plan: Plan
    month_start: datetime = Field(..., description="Start of the counting month (UTC)")
    items: List[FeatureUsageDTO]


class ChangePlanCommandDTO(BaseModel):
    """
    Command DTO for ChangePlan use case

    Without owner_id the owner is looked up by the Stripe ids.
    """

    owner_id: Optional[str] = None
    plan: Plan
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None


class AccountPlanResponseDTO(BaseModel):
    """Response DTO for ChangePlan use case"""

    owner_id: str
    plan: Plan
    previous_plan: Plan
    updated_at: datetime


class BalanceDiscrepancyDTO(BaseModel):
    """Single balance cache discrepancy found during reconciliation"""

    owner_id: str = Field(..., description="Owner identifier")
    cached_balance: Optional[int] = Field(default=None, description="Cache value (None = no row)")
    calculated_balance: int = Field(..., description="Sum of spendable lots")
    discrepancy: int = Field(..., description="cached - calculated")
    repaired: bool = Field(default=False, description="Cache overwritten with calculated value")


class ReconciliationResultDTO(BaseModel):
    """
    Response DTO for ReconcileBalanceCache use case
    """

    total_owners_checked: int = Field(..., description="Owners compared")
    discrepancies_found: int = Field(..., description="Owners whose cache diverged")
    discrepancies: List[BalanceDiscrepancyDTO] = Field(default_factory=list)
    repaired: bool = Field(default=False, description="Whether repair mode was on")
    reconciliation_time: datetime = Field(..., description="Reference time")
    execution_time_ms: int = Field(..., description="Wall-clock duration")
