"""SQLAlchemy Account Plan Repository Implementation"""

from typing import Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from meta_ledger.app.repositories.account_plan_repository import AccountPlanRepository
from meta_ledger.domain.account_plan import AccountPlan


class SqlAlchemyAccountPlanRepository(AccountPlanRepository):
    """
    SQLAlchemy implementation of AccountPlanRepository

    Uses async session for database operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_owner_id(self, owner_id: str) -> Optional[AccountPlan]:
        statement = select(AccountPlan).where(AccountPlan.owner_id == owner_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def save(self, account_plan: AccountPlan) -> AccountPlan:
        self.session.add(account_plan)
        await self.session.flush()
        await self.session.refresh(account_plan)
        return account_plan

    async def get_by_stripe_ids(
        self,
        stripe_subscription_id: Optional[str] = None,
        stripe_customer_id: Optional[str] = None,
    ) -> Optional[AccountPlan]:
        if stripe_subscription_id:
            statement = select(AccountPlan).where(
                AccountPlan.stripe_subscription_id == stripe_subscription_id
            )
            result = await self.session.execute(statement)
            account_plan = result.scalars().first()
            if account_plan:
                return account_plan

        if stripe_customer_id:
            statement = select(AccountPlan).where(
                AccountPlan.stripe_customer_id == stripe_customer_id
            )
            result = await self.session.execute(statement)
            return result.scalars().first()

        return None
