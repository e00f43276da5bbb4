"""
Get Usage Summary Use Case

Reports this month's use of every counter-gated feature against the
owner's plan allowance.
"""
from datetime import datetime
from typing import Callable, Dict, Optional
from meta_ledger.libs.result import Result, Return
from meta_ledger.app.repositories.account_plan_repository import AccountPlanRepository
from meta_ledger.app.repositories.usage_log_repository import UsageLogRepository
from meta_ledger.app.services.billing_calendar import month_start_utc
from meta_ledger.domain.feature_policy import FeaturePolicy, GateKind
from .authorize_feature import resolve_plan
from .dtos import FeatureUsageDTO, UsageSummaryResponseDTO


class GetUsageSummary:
    """
    Use case: View monthly usage

    On unlimited plans monthly_limit and remaining are None; usage is still
    counted.
    """

    def __init__(
        self,
        plan_repo: AccountPlanRepository,
        usage_repo: UsageLogRepository,
        catalog: Dict[str, FeaturePolicy],
        usage_timezone: str = "Asia/Tokyo",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.plan_repo = plan_repo
        self.usage_repo = usage_repo
        self.catalog = catalog
        self.usage_timezone = usage_timezone
        self.clock = clock or datetime.utcnow

    async def execute(self, owner_id: str) -> Result[UsageSummaryResponseDTO]:
        since = month_start_utc(self.clock(), self.usage_timezone)
        plan = await resolve_plan(self.plan_repo, owner_id)
        counts = await self.usage_repo.count_by_feature_since(owner_id, since)

        items = []
        for feature_key in sorted(self.catalog):
            policy = self.catalog[feature_key]
            if policy.gate != GateKind.COUNTER:
                continue
            used = counts.get(feature_key, 0)
            if plan.is_unlimited:
                items.append(FeatureUsageDTO(feature_key=feature_key, used_this_month=used))
                continue
            limit = policy.monthly_limit_for(plan.value)
            items.append(
                FeatureUsageDTO(
                    feature_key=feature_key,
                    used_this_month=used,
                    monthly_limit=limit,
                    remaining=max(limit - used, 0),
                )
            )

        return Return.ok(
            UsageSummaryResponseDTO(
                owner_id=owner_id,
                plan=plan,
                month_start=since,
                items=items,
            )
        )
