"""ChangePlan Use Case

Moves an owner onto a plan tier. Driven by subscription webhooks.
"""

import logging
from datetime import datetime
from typing import Callable, Optional
from meta_ledger.libs.result import Result, Return, Error
from meta_ledger.app.services.unit_of_work import UnitOfWork
from meta_ledger.app.repositories.account_plan_repository import AccountPlanRepository
from meta_ledger.domain.account_plan import AccountPlan, Plan
from meta_ledger.domain.errors import LedgerErrorCode
from .dtos import AccountPlanResponseDTO, ChangePlanCommandDTO

logger = logging.getLogger(__name__)


class ChangePlan:
    """
    Use Case: Change an owner's plan

    Business Rules:
    1. Creates the plan row on first change (owners without one are FREE)
    2. Without an owner id, the row is found by Stripe subscription or
       customer id; an unknown subscription is OWNER_NOT_FOUND
    3. Stripe ids are only overwritten when provided
    4. Credit lots are untouched: a downgrade keeps purchased Meta
    """

    def __init__(
        self,
        uow: UnitOfWork,
        plan_repo: AccountPlanRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.uow = uow
        self.plan_repo = plan_repo
        self.clock = clock or datetime.utcnow

    async def execute(self, command: ChangePlanCommandDTO) -> Result[AccountPlanResponseDTO]:
        try:
            now = self.clock()
            if command.owner_id:
                account_plan = await self.plan_repo.get_by_owner_id(command.owner_id)
            else:
                account_plan = await self.plan_repo.get_by_stripe_ids(
                    stripe_subscription_id=command.stripe_subscription_id,
                    stripe_customer_id=command.stripe_customer_id,
                )
                if account_plan is None:
                    logger.warning(
                        f"No owner for subscription={command.stripe_subscription_id}, "
                        f"customer={command.stripe_customer_id}"
                    )
                    return Return.err(
                        Error(
                            code=LedgerErrorCode.OWNER_NOT_FOUND.value,
                            message="Could not resolve owner for plan change",
                        )
                    )

            if account_plan is None:
                previous_plan = Plan.FREE
                account_plan = AccountPlan(owner_id=command.owner_id, created_at=now)
            else:
                previous_plan = Plan(account_plan.plan)
            owner_id = account_plan.owner_id

            account_plan.plan = command.plan
            account_plan.updated_at = now
            if command.stripe_customer_id:
                account_plan.stripe_customer_id = command.stripe_customer_id
            if command.stripe_subscription_id:
                account_plan.stripe_subscription_id = command.stripe_subscription_id

            saved = await self.plan_repo.save(account_plan)
            await self.uow.commit()

            if previous_plan != command.plan:
                logger.info(f"Plan changed for {owner_id}: {previous_plan.value} -> {command.plan.value}")

            return Return.ok(
                AccountPlanResponseDTO(
                    owner_id=saved.owner_id,
                    plan=command.plan,
                    previous_plan=previous_plan,
                    updated_at=now,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Failed to change plan for {command.owner_id}: {e}")
            return Return.err(
                Error(
                    code=LedgerErrorCode.CHANGE_PLAN_FAILED.value,
                    message="Failed to change plan",
                    reason=str(e),
                )
            )
