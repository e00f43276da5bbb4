"""Request schemas for Ledger API

Pydantic models for validating incoming HTTP requests.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator
from meta_ledger.domain.credit_lot import LotSource


def coerce_amount(value: Any) -> Optional[int]:
    """Whole-number credit amount from loosely typed payloads, None if unusable"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        value = value.strip()
        if value.lstrip("-").isdigit():
            return int(value)
    return None


class AuthorizeFeatureRequestSchema(BaseModel):
    """
    Request schema for authorizing a feature invocation

    Used for POST /ledger/features/authorize endpoint.
    """

    feature_key: str = Field(
        ...,
        min_length=1,
        description="Feature being invoked (e.g. 'fermi', 'case_generate')"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "feature_key": "interview_10"
            }
        }


class AdminGrantRequestSchema(BaseModel):
    """
    Request schema for administrative credit grants

    Used for POST /ledger/admin/grants endpoint.
    """

    owner_id: str = Field(
        ...,
        min_length=1,
        description="Owner to credit (required, non-empty)"
    )

    amount: int = Field(
        ...,
        gt=0,
        description="Credit units to grant (must be > 0)"
    )

    source: LotSource = Field(
        default=LotSource.GRANT,
        description="Lot origin: grant or promotional"
    )

    idempotency_key: Optional[str] = Field(
        default=None,
        description="Optional key; a repeated key is a no-op"
    )

    reason: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Recorded on the GRANT event"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "owner_id": "8f1c2d3e-user",
                "amount": 10,
                "source": "promotional",
                "idempotency_key": "campaign-2024-spring:8f1c2d3e-user",
                "reason": "spring_campaign"
            }
        }


class PaymentWebhookSchema(BaseModel):
    """
    Request schema for provider-neutral payment confirmations

    Used for POST /webhooks/payments endpoint. owner_id and amount are
    optional so malformed confirmations are acknowledged, not retried.
    """

    external_transaction_id: str = Field(
        ...,
        min_length=1,
        description="Payment provider transaction id (idempotency key)"
    )

    owner_id: Optional[str] = Field(
        default=None,
        description="Owner to credit"
    )

    amount: Optional[int] = Field(
        default=None,
        description="Purchased credit units"
    )

    source: LotSource = Field(
        default=LotSource.PURCHASE,
        description="Lot origin"
    )

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, v):
        return coerce_amount(v)


class StripeEventSchema(BaseModel):
    """
    Subset of a Stripe event object

    Signature verification happens upstream; only the fields the ledger
    reads are declared.
    """

    id: Optional[str] = Field(default=None, description="Stripe event id")
    type: str = Field(..., description="Event type, e.g. checkout.session.completed")
    data: Dict[str, Any] = Field(default_factory=dict, description="Event payload")

    @property
    def data_object(self) -> Dict[str, Any]:
        return self.data.get("object") or {}
