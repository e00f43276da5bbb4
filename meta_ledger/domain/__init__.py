from .base import BaseModel
from .credit_lot import CreditLot, LotSource
from .ledger_event import LedgerEvent, LedgerEventType
from .balance_cache import BalanceCache
from .account_plan import AccountPlan, Plan
from .usage_log import UsageLog
from .feature_policy import FeaturePolicy, GateKind
from .errors import LedgerErrorCode, ConcurrencyConflict, DuplicatePayment

__all__ = [
    "BaseModel",
    "CreditLot",
    "LotSource",
    "LedgerEvent",
    "LedgerEventType",
    "BalanceCache",
    "AccountPlan",
    "Plan",
    "UsageLog",
    "FeaturePolicy",
    "GateKind",
    "LedgerErrorCode",
    "ConcurrencyConflict",
    "DuplicatePayment",
]
