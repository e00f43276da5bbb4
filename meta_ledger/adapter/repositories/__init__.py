from .credit_lot_repository import SqlAlchemyCreditLotRepository
from .ledger_event_repository import SqlAlchemyLedgerEventRepository
from .balance_cache_repository import SqlAlchemyBalanceCacheRepository
from .account_plan_repository import SqlAlchemyAccountPlanRepository
from .usage_log_repository import SqlAlchemyUsageLogRepository

__all__ = [
    "SqlAlchemyCreditLotRepository",
    "SqlAlchemyLedgerEventRepository",
    "SqlAlchemyBalanceCacheRepository",
    "SqlAlchemyAccountPlanRepository",
    "SqlAlchemyUsageLogRepository",
]
