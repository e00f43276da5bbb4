from .unit_of_work import SqlAlchemyUnitOfWork
from .ledger_store import SqlAlchemyLedgerStore

__all__ = [
    "SqlAlchemyUnitOfWork",
    "SqlAlchemyLedgerStore",
]
