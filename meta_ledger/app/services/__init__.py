from .unit_of_work import UnitOfWork
from .ledger_store import LedgerStore, LedgerChange, LotUpdate
from .billing_calendar import month_start_utc

__all__ = [
    "UnitOfWork",
    "LedgerStore",
    "LedgerChange",
    "LotUpdate",
    "month_start_utc",
]
