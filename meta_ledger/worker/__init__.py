"""Background workers for the ledger service"""
from .lot_expiry_sweeper import LotExpirySweeperWorker
from .balance_reconciler import BalanceReconcilerWorker

__all__ = ["LotExpirySweeperWorker", "BalanceReconcilerWorker"]
