"""Payment Webhook Routes

Credits purchased Meta and applies subscription plan changes. Every
well-formed delivery is acknowledged with 200 so providers stop retrying;
only storage failures return 5xx.
"""

import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from meta_ledger.api.error import ClientError
from meta_ledger.api.schemas.ledger_request import (
    PaymentWebhookSchema,
    StripeEventSchema,
    coerce_amount,
)
from meta_ledger.adapter.repositories import SqlAlchemyAccountPlanRepository
from meta_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from meta_ledger.app.use_cases.ledger import ChangePlan, GrantCredit
from meta_ledger.app.use_cases.ledger.dtos import (
    ChangePlanCommandDTO,
    GrantCreditCommandDTO,
    GrantStatus,
)
from meta_ledger.depends import build_ledger_store, get_session
from meta_ledger.domain.account_plan import Plan
from meta_ledger.domain.credit_lot import LotSource
from meta_ledger.domain.errors import LedgerErrorCode

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

STRIPE_PURCHASE_REASON = "stripe_purchase"
PRO_SUBSCRIPTION_STATUSES = {"active", "trialing"}


def _stripe_id(value: Any) -> Optional[str]:
    """Stripe references are ids, or expanded objects carrying an id"""
    if isinstance(value, dict):
        return value.get("id")
    return value or None


def plan_from_subscription_status(subscription_status: Optional[str]) -> Plan:
    if subscription_status in PRO_SUBSCRIPTION_STATUSES:
        return Plan.PRO
    return Plan.FREE


async def _grant(session: AsyncSession, command: GrantCreditCommandDTO) -> Dict[str, Any]:
    _, lot_repo, ledger_store = build_ledger_store(session)
    use_case = GrantCredit(
        lot_repo,
        ledger_store,
        validity_days=ApplicationConfig.LOT_VALIDITY_DAYS,
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError(result.error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    response = {"received": True, "status": result.value.status.value}
    if result.value.lot_id is not None:
        response["lot_id"] = result.value.lot_id
    return response


@router.post("/payments", status_code=status.HTTP_200_OK)
async def payment_confirmed(
    request: PaymentWebhookSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Credit a confirmed payment.

    **Returns:**
    - 200 `{"received": true, "status": "credited" | "duplicate" | "ignored"}`
    - 500: Storage failure (provider should retry)
    """
    return await _grant(
        session,
        GrantCreditCommandDTO(
            owner_id=request.owner_id,
            amount=request.amount if request.amount is not None else 0,
            external_transaction_id=request.external_transaction_id,
            source=request.source,
        ),
    )


@router.post("/stripe/meta", status_code=status.HTTP_200_OK)
async def stripe_meta_purchase(
    event: StripeEventSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Credit a Meta purchase from a verified Stripe event.

    Only `checkout.session.completed` with `mode == "payment"` is acted on.
    The owner comes from `metadata.auth_user_id` (or `userId`), the amount
    from `metadata.meta_amount` (or `metaAmount`). The payment intent id is
    the idempotency key, falling back to the checkout session id.
    """
    checkout = event.data_object
    if event.type != "checkout.session.completed" or checkout.get("mode") != "payment":
        return {"received": True, "status": GrantStatus.IGNORED.value}

    metadata = checkout.get("metadata") or {}
    owner_id = metadata.get("auth_user_id") or metadata.get("userId")
    amount = coerce_amount(metadata.get("meta_amount") or metadata.get("metaAmount"))
    external_transaction_id = _stripe_id(checkout.get("payment_intent")) or checkout.get("id")

    if not external_transaction_id:
        logger.warning(f"Stripe event {event.id} has no payment reference, ignoring")
        return {"received": True, "status": GrantStatus.IGNORED.value}

    return await _grant(
        session,
        GrantCreditCommandDTO(
            owner_id=owner_id,
            amount=amount or 0,
            external_transaction_id=external_transaction_id,
            source=LotSource.PURCHASE,
            reason=STRIPE_PURCHASE_REASON,
        ),
    )


@router.post("/stripe/subscription", status_code=status.HTTP_200_OK)
async def stripe_subscription(
    event: StripeEventSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Apply a subscription change from a verified Stripe event.

    - `checkout.session.completed` (subscription mode): owner -> pro
    - `customer.subscription.updated`: active/trialing -> pro, otherwise free
    - `customer.subscription.deleted`: owner -> free

    The owner comes from `metadata.user_id` (or `client_reference_id` on
    checkout); failing that, from the Stripe subscription/customer ids
    already on file.
    """
    obj = event.data_object
    metadata = obj.get("metadata") or {}
    owner_id = metadata.get("user_id")

    if event.type == "checkout.session.completed":
        if obj.get("mode") != "subscription":
            return {"received": True, "status": "ignored"}
        owner_id = owner_id or obj.get("client_reference_id")
        plan = Plan.PRO
        stripe_subscription_id = _stripe_id(obj.get("subscription"))
    elif event.type == "customer.subscription.updated":
        plan = plan_from_subscription_status(obj.get("status"))
        stripe_subscription_id = obj.get("id")
    elif event.type == "customer.subscription.deleted":
        plan = Plan.FREE
        stripe_subscription_id = obj.get("id")
    else:
        return {"received": True, "status": "ignored"}

    stripe_customer_id = _stripe_id(obj.get("customer"))
    if not owner_id and not stripe_subscription_id and not stripe_customer_id:
        logger.warning(f"Stripe event {event.id} ({event.type}) carries no owner reference")
        return {"received": True, "status": "ignored"}

    use_case = ChangePlan(
        uow=SqlAlchemyUnitOfWork(session),
        plan_repo=SqlAlchemyAccountPlanRepository(session),
    )
    result = await use_case.execute(
        ChangePlanCommandDTO(
            owner_id=owner_id,
            plan=plan,
            stripe_customer_id=stripe_customer_id,
            stripe_subscription_id=stripe_subscription_id,
        )
    )

    if result.is_err():
        if result.error.code == LedgerErrorCode.OWNER_NOT_FOUND.value:
            return {"received": True, "status": "ignored"}
        raise ClientError(result.error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return {"received": True, "status": "updated", "plan": result.value.plan.value}
