"""AuthorizeFeature Use Case

The Entitlement Gate: decides whether an owner may invoke a feature and
performs the matching side effect (usage log row or credit deduction).
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Optional
from meta_ledger.libs.result import Result, Return, Error
from meta_ledger.app.services.unit_of_work import UnitOfWork
from meta_ledger.app.services.billing_calendar import month_start_utc
from meta_ledger.app.repositories.account_plan_repository import AccountPlanRepository
from meta_ledger.app.repositories.usage_log_repository import UsageLogRepository
from meta_ledger.domain.account_plan import Plan
from meta_ledger.domain.errors import LedgerErrorCode
from meta_ledger.domain.feature_policy import FeaturePolicy, GateKind
from meta_ledger.domain.usage_log import UsageLog
from .consume_credit import ConsumeCredit
from .dtos import (
    ConsumeCommandDTO,
    DenyReason,
    EntitlementDecisionDTO,
    FeatureInvocationDTO,
    GateMode,
)

logger = logging.getLogger(__name__)

REMEDY_TOP_UP = "top_up"
REMEDY_UPGRADE = "upgrade"


async def resolve_plan(plan_repo: AccountPlanRepository, owner_id: str) -> Plan:
    """Owner's plan; owners with no plan row are FREE"""
    account_plan = await plan_repo.get_by_owner_id(owner_id)
    if account_plan is None:
        return Plan.FREE
    return Plan(account_plan.plan)


class AuthorizeFeature:
    """
    Use Case: Entitlement Gate

    Business Rules:
    1. No owner: deny UNAUTHORIZED, nothing written
    2. Unlimited plan (pro, elite): allow, log usage, never touch credit
    3. COUNTER feature: allow while this month's uses < plan limit and log the
       use; once exhausted, charge overflow_cost credit if the feature has one,
       otherwise deny LIMIT_EXCEEDED
    4. CREDIT feature: charge cost via ConsumeCredit; deny INSUFFICIENT_CREDIT
       when the balance cannot cover it
    5. A denial never writes anything

    The counter check and the usage insert are not serialized, so two
    concurrent calls at used = limit - 1 can both be allowed.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        plan_repo: AccountPlanRepository,
        usage_repo: UsageLogRepository,
        consume_credit: ConsumeCredit,
        catalog: Dict[str, FeaturePolicy],
        usage_timezone: str = "Asia/Tokyo",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.uow = uow
        self.plan_repo = plan_repo
        self.usage_repo = usage_repo
        self.consume_credit = consume_credit
        self.catalog = catalog
        self.usage_timezone = usage_timezone
        self.clock = clock or datetime.utcnow

    async def execute(self, command: FeatureInvocationDTO) -> Result[EntitlementDecisionDTO]:
        """
        Decide on one feature invocation

        Returns:
            Result[EntitlementDecisionDTO]: allow/deny decision, or an error for
            UNKNOWN_FEATURE, CONCURRENCY_CONFLICT and unexpected failures
        """
        if not command.owner_id:
            return Return.ok(
                EntitlementDecisionDTO(
                    allowed=False,
                    feature_key=command.feature_key,
                    reason=DenyReason.UNAUTHORIZED,
                )
            )

        policy = self.catalog.get(command.feature_key)
        if policy is None:
            return Return.err(
                Error(
                    code=LedgerErrorCode.UNKNOWN_FEATURE.value,
                    message=f"Unknown feature: {command.feature_key}",
                )
            )

        owner_id = command.owner_id
        try:
            now = self.clock()
            plan = await resolve_plan(self.plan_repo, owner_id)

            if plan.is_unlimited:
                await self._log_usage(owner_id, policy.feature_key, now)
                return Return.ok(
                    EntitlementDecisionDTO(
                        allowed=True,
                        feature_key=policy.feature_key,
                        plan=plan,
                        mode=GateMode.UNLIMITED,
                    )
                )

            if policy.gate == GateKind.COUNTER:
                limit = policy.monthly_limit_for(plan.value)
                since = month_start_utc(now, self.usage_timezone)
                used = await self.usage_repo.count_since(owner_id, policy.feature_key, since)

                if used < limit:
                    await self._log_usage(owner_id, policy.feature_key, now)
                    return Return.ok(
                        EntitlementDecisionDTO(
                            allowed=True,
                            feature_key=policy.feature_key,
                            plan=plan,
                            mode=GateMode.FREE_QUOTA,
                            used_this_month=used + 1,
                            monthly_limit=limit,
                        )
                    )

                if policy.overflow_cost is None:
                    logger.info(f"{owner_id} reached monthly limit {limit} for {policy.feature_key}")
                    return Return.ok(
                        EntitlementDecisionDTO(
                            allowed=False,
                            feature_key=policy.feature_key,
                            reason=DenyReason.LIMIT_EXCEEDED,
                            plan=plan,
                            mode=GateMode.FREE_QUOTA,
                            used_this_month=used,
                            monthly_limit=limit,
                            remedies=[REMEDY_UPGRADE],
                        )
                    )

                return await self._charge(owner_id, policy, plan, policy.overflow_cost, used, limit)

            return await self._charge(owner_id, policy, plan, policy.cost)

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Failed to authorize {command.feature_key} for {owner_id}: {e}")
            return Return.err(
                Error(
                    code=LedgerErrorCode.AUTHORIZE_FEATURE_FAILED.value,
                    message="Failed to authorize feature",
                    reason=str(e),
                )
            )

    async def _log_usage(self, owner_id: str, feature_key: str, now: datetime) -> None:
        await self.usage_repo.create(UsageLog(owner_id=owner_id, feature_key=feature_key, used_at=now))
        await self.uow.commit()

    async def _charge(
        self,
        owner_id: str,
        policy: FeaturePolicy,
        plan: Plan,
        cost: int,
        used: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Result[EntitlementDecisionDTO]:
        result = await self.consume_credit.execute(
            ConsumeCommandDTO(owner_id=owner_id, cost=cost, reason=f"feature:{policy.feature_key}")
        )

        if result.is_ok():
            return Return.ok(
                EntitlementDecisionDTO(
                    allowed=True,
                    feature_key=policy.feature_key,
                    plan=plan,
                    mode=GateMode.CREDIT,
                    cost_charged=cost,
                    used_this_month=used,
                    monthly_limit=limit,
                    balance_after=result.value.balance_after,
                )
            )

        if result.error.code == LedgerErrorCode.INSUFFICIENT_CREDIT.value:
            return Return.ok(
                EntitlementDecisionDTO(
                    allowed=False,
                    feature_key=policy.feature_key,
                    reason=DenyReason.INSUFFICIENT_CREDIT,
                    plan=plan,
                    mode=GateMode.CREDIT,
                    used_this_month=used,
                    monthly_limit=limit,
                    required=cost,
                    remedies=[REMEDY_TOP_UP, REMEDY_UPGRADE],
                )
            )

        return result
