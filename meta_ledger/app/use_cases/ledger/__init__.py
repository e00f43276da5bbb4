"""Ledger use cases"""
from .consume_credit import ConsumeCredit, plan_fifo_deductions
from .grant_credit import GrantCredit
from .sweep_expired_lots import SweepExpiredLots
from .authorize_feature import AuthorizeFeature
from .get_balance import GetBalance
from .list_active_lots import ListActiveLots
from .list_ledger_events import ListLedgerEvents
from .get_usage_summary import GetUsageSummary
from .change_plan import ChangePlan
from .reconcile_balance_cache import ReconcileBalanceCache
from .feature_catalog import default_feature_catalog, load_feature_catalog
from .dtos import (
    ConsumeCommandDTO,
    ConsumptionResponseDTO,
    LotDeductionDTO,
    GrantCreditCommandDTO,
    GrantCreditResponseDTO,
    GrantStatus,
    SweepResultDTO,
    FeatureInvocationDTO,
    EntitlementDecisionDTO,
    DenyReason,
    GateMode,
    BalanceResponseDTO,
    LotDTO,
    ActiveLotsResponseDTO,
    LedgerEventDTO,
    ListLedgerEventsResponseDTO,
    FeatureUsageDTO,
    UsageSummaryResponseDTO,
    ChangePlanCommandDTO,
    AccountPlanResponseDTO,
    BalanceDiscrepancyDTO,
    ReconciliationResultDTO,
)

__all__ = [
    "ConsumeCredit",
    "plan_fifo_deductions",
    "GrantCredit",
    "SweepExpiredLots",
    "AuthorizeFeature",
    "GetBalance",
    "ListActiveLots",
    "ListLedgerEvents",
    "GetUsageSummary",
    "ChangePlan",
    "ReconcileBalanceCache",
    "default_feature_catalog",
    "load_feature_catalog",
    "ConsumeCommandDTO",
    "ConsumptionResponseDTO",
    "LotDeductionDTO",
    "GrantCreditCommandDTO",
    "GrantCreditResponseDTO",
    "GrantStatus",
    "SweepResultDTO",
    "FeatureInvocationDTO",
    "EntitlementDecisionDTO",
    "DenyReason",
    "GateMode",
    "BalanceResponseDTO",
    "LotDTO",
    "ActiveLotsResponseDTO",
    "LedgerEventDTO",
    "ListLedgerEventsResponseDTO",
    "FeatureUsageDTO",
    "UsageSummaryResponseDTO",
    "ChangePlanCommandDTO",
    "AccountPlanResponseDTO",
    "BalanceDiscrepancyDTO",
    "ReconciliationResultDTO",
]
