"""Ledger API Routes

FastAPI routes for the entitlement gate, balance display and admin grants.
"""

from typing import Dict, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from meta_ledger.api.error import ClientError
from meta_ledger.api.schemas.ledger_request import (
    AdminGrantRequestSchema,
    AuthorizeFeatureRequestSchema,
)
from meta_ledger.adapter.repositories import (
    SqlAlchemyAccountPlanRepository,
    SqlAlchemyCreditLotRepository,
    SqlAlchemyLedgerEventRepository,
    SqlAlchemyUsageLogRepository,
)
from meta_ledger.app.use_cases.ledger import (
    AuthorizeFeature,
    ConsumeCredit,
    GetBalance,
    GetUsageSummary,
    GrantCredit,
    ListActiveLots,
    ListLedgerEvents,
)
from meta_ledger.app.use_cases.ledger.dtos import (
    ActiveLotsResponseDTO,
    BalanceResponseDTO,
    DenyReason,
    EntitlementDecisionDTO,
    FeatureInvocationDTO,
    GrantCreditCommandDTO,
    GrantCreditResponseDTO,
    ListLedgerEventsResponseDTO,
    UsageSummaryResponseDTO,
)
from meta_ledger.depends import (
    build_ledger_store,
    get_current_owner_id,
    get_feature_catalog,
    get_session,
)
from meta_ledger.domain.errors import LedgerErrorCode
from meta_ledger.domain.feature_policy import FeaturePolicy
from meta_ledger.libs.result import Error

router = APIRouter(prefix="/ledger", tags=["Ledger"])

DENY_STATUS = {
    DenyReason.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    DenyReason.INSUFFICIENT_CREDIT: status.HTTP_402_PAYMENT_REQUIRED,
    DenyReason.LIMIT_EXCEEDED: status.HTTP_403_FORBIDDEN,
}

DENY_MESSAGES = {
    DenyReason.UNAUTHORIZED: "Sign-in required",
    DenyReason.INSUFFICIENT_CREDIT: "Not enough Meta for this feature",
    DenyReason.LIMIT_EXCEEDED: "Monthly free limit reached",
}

ERROR_STATUS = {
    LedgerErrorCode.UNKNOWN_FEATURE.value: status.HTTP_404_NOT_FOUND,
    LedgerErrorCode.CONCURRENCY_CONFLICT.value: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def require_owner(owner_id: Optional[str]) -> str:
    if not owner_id:
        raise ClientError(
            Error(code=LedgerErrorCode.UNAUTHORIZED.value, message="Sign-in required"),
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    return owner_id


@router.post(
    "/features/authorize",
    response_model=EntitlementDecisionDTO,
    status_code=status.HTTP_200_OK,
    responses={
        402: {
            "description": "Insufficient Meta",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "INSUFFICIENT_CREDIT",
                            "message": "Not enough Meta for this feature",
                            "details": {"required": 2, "remedies": ["top_up", "upgrade"]}
                        }
                    }
                }
            }
        },
        403: {"description": "Monthly free limit reached"},
        404: {"description": "Unknown feature"},
    }
)
async def authorize_feature(
    request: AuthorizeFeatureRequestSchema,
    session: AsyncSession = Depends(get_session),
    owner_id: Optional[str] = Depends(get_current_owner_id),
    catalog: Dict[str, FeaturePolicy] = Depends(get_feature_catalog),
):
    """
    Decide whether the caller may invoke a feature, charging it if needed.

    Call this before running any gated AI feature. An allowed decision has
    already recorded the use (free quota) or deducted the Meta (credit).

    **Returns:**
    - 200: Allowed
    - 401: No authenticated user
    - 402: Not enough Meta (`details.required`, `details.remedies`)
    - 403: Monthly free limit reached and the feature has no Meta price
    - 404: Unknown feature_key
    - 503: Lots kept changing concurrently, retry
    """
    uow, lot_repo, ledger_store = build_ledger_store(session)
    consume_credit = ConsumeCredit(
        lot_repo,
        ledger_store,
        max_attempts=ApplicationConfig.CONSUME_MAX_ATTEMPTS,
    )
    use_case = AuthorizeFeature(
        uow=uow,
        plan_repo=SqlAlchemyAccountPlanRepository(session),
        usage_repo=SqlAlchemyUsageLogRepository(session),
        consume_credit=consume_credit,
        catalog=catalog,
        usage_timezone=ApplicationConfig.USAGE_TIMEZONE,
    )

    result = await use_case.execute(
        FeatureInvocationDTO(owner_id=owner_id, feature_key=request.feature_key)
    )

    if result.is_err():
        raise ClientError(
            result.error,
            status_code=ERROR_STATUS.get(result.error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        )

    decision = result.value
    if not decision.allowed:
        raise ClientError(
            Error(code=decision.reason.value.upper(), message=DENY_MESSAGES[decision.reason]),
            status_code=DENY_STATUS[decision.reason],
            details=decision.model_dump(
                mode="json",
                include={"feature_key", "plan", "used_this_month", "monthly_limit", "required", "remedies"},
                exclude_none=True,
            ),
        )

    return decision


@router.get("/balance", response_model=BalanceResponseDTO)
async def get_balance(
    session: AsyncSession = Depends(get_session),
    owner_id: Optional[str] = Depends(get_current_owner_id),
):
    """
    Get the caller's spendable Meta balance.

    Expired lots are excluded even before the expiry sweep has run.
    """
    owner_id = require_owner(owner_id)
    result = await GetBalance(SqlAlchemyCreditLotRepository(session)).execute(owner_id)
    return result.value


@router.get("/lots", response_model=ActiveLotsResponseDTO)
async def list_active_lots(
    session: AsyncSession = Depends(get_session),
    owner_id: Optional[str] = Depends(get_current_owner_id),
):
    """List the caller's spendable lots in the order they will be consumed."""
    owner_id = require_owner(owner_id)
    result = await ListActiveLots(SqlAlchemyCreditLotRepository(session)).execute(owner_id)
    return result.value


@router.get("/events", response_model=ListLedgerEventsResponseDTO)
async def list_ledger_events(
    limit: int = Query(default=20, ge=1, le=100, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Events to skip"),
    session: AsyncSession = Depends(get_session),
    owner_id: Optional[str] = Depends(get_current_owner_id),
):
    """Get the caller's grant/consume/expire history, newest first."""
    owner_id = require_owner(owner_id)
    use_case = ListLedgerEvents(SqlAlchemyLedgerEventRepository(session))
    result = await use_case.execute(owner_id, limit=limit, offset=offset)
    return result.value


@router.get("/usage", response_model=UsageSummaryResponseDTO)
async def get_usage_summary(
    session: AsyncSession = Depends(get_session),
    owner_id: Optional[str] = Depends(get_current_owner_id),
    catalog: Dict[str, FeaturePolicy] = Depends(get_feature_catalog),
):
    """Get this month's use of counter-gated features against the plan allowance."""
    owner_id = require_owner(owner_id)
    use_case = GetUsageSummary(
        plan_repo=SqlAlchemyAccountPlanRepository(session),
        usage_repo=SqlAlchemyUsageLogRepository(session),
        catalog=catalog,
        usage_timezone=ApplicationConfig.USAGE_TIMEZONE,
    )
    result = await use_case.execute(owner_id)
    return result.value


@router.post(
    "/admin/grants",
    response_model=GrantCreditResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def admin_grant(
    request: AdminGrantRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Grant Meta to an owner outside the payment flow (support, campaigns).

    Access control is enforced upstream. A repeated idempotency_key returns
    the existing lot with status `duplicate`.
    """
    _, lot_repo, ledger_store = build_ledger_store(session)
    use_case = GrantCredit(
        lot_repo,
        ledger_store,
        validity_days=ApplicationConfig.LOT_VALIDITY_DAYS,
    )

    result = await use_case.execute(
        GrantCreditCommandDTO(
            owner_id=request.owner_id,
            amount=request.amount,
            external_transaction_id=request.idempotency_key,
            source=request.source,
            reason=request.reason,
        )
    )

    if result.is_err():
        raise ClientError(result.error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return result.value
