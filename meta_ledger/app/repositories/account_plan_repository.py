"""Account Plan Repository Interface"""

from abc import ABC, abstractmethod
from typing import Optional
from meta_ledger.domain.account_plan import AccountPlan


class AccountPlanRepository(ABC):
    """Repository interface for AccountPlan persistence"""

    @abstractmethod
    async def get_by_owner_id(self, owner_id: str) -> Optional[AccountPlan]:
        """
        Retrieve plan row by owner ID

        Returns:
            AccountPlan if found, None otherwise (caller treats None as FREE)
        """
        pass

    @abstractmethod
    async def save(self, account_plan: AccountPlan) -> AccountPlan:
        """Insert or update a plan row (flushes, does not commit)"""
        pass

    @abstractmethod
    async def get_by_stripe_ids(
        self,
        stripe_subscription_id: Optional[str] = None,
        stripe_customer_id: Optional[str] = None,
    ) -> Optional[AccountPlan]:
        """
        Find the plan row linked to a Stripe subscription or customer

        The subscription id is tried first. Used when a webhook arrives
        without the owner id in its metadata.
        """
        pass
