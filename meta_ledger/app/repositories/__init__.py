from .credit_lot_repository import CreditLotRepository
from .ledger_event_repository import LedgerEventRepository
from .balance_cache_repository import BalanceCacheRepository
from .account_plan_repository import AccountPlanRepository
from .usage_log_repository import UsageLogRepository

__all__ = [
    "CreditLotRepository",
    "LedgerEventRepository",
    "BalanceCacheRepository",
    "AccountPlanRepository",
    "UsageLogRepository",
]
