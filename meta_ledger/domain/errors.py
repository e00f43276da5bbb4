"""Ledger error codes and internal exceptions"""

from enum import Enum


class LedgerErrorCode(str, Enum):
    """Codes carried by meta_ledger.libs.result.Error"""
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_COST = "INVALID_COST"
    INSUFFICIENT_CREDIT = "INSUFFICIENT_CREDIT"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    UNKNOWN_FEATURE = "UNKNOWN_FEATURE"
    CONSUME_CREDIT_FAILED = "CONSUME_CREDIT_FAILED"
    GRANT_CREDIT_FAILED = "GRANT_CREDIT_FAILED"
    AUTHORIZE_FEATURE_FAILED = "AUTHORIZE_FEATURE_FAILED"
    OWNER_NOT_FOUND = "OWNER_NOT_FOUND"
    CHANGE_PLAN_FAILED = "CHANGE_PLAN_FAILED"
    SWEEP_FAILED = "SWEEP_FAILED"
    RECONCILIATION_FAILED = "RECONCILIATION_FAILED"


class ConcurrencyConflict(Exception):
    """A targeted lot changed (or expired) since it was read; retry from a fresh read"""

    def __init__(self, lot_id: int):
        super().__init__(f"Lot {lot_id} was modified concurrently or is no longer spendable")
        self.lot_id = lot_id


class DuplicatePayment(Exception):
    """A lot already exists for this external transaction id"""

    def __init__(self, external_transaction_id: str):
        super().__init__(f"Payment {external_transaction_id} already credited")
        self.external_transaction_id = external_transaction_id
