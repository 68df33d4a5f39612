"""
Data Models Package

This package contains all Pydantic models used in the Household Ledger.
All data flowing through the system must conform to these schemas.
"""

from household_ledger.models.transaction import (
    EXPENSE_CATEGORY_LABELS,
    INCOME_SOURCE_LABELS,
    PAYMENT_METHOD_LABELS,
    ExpenseCategory,
    IncomeSource,
    PaymentMethod,
    Transaction,
    TransactionDraft,
    TransactionTotals,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    parse_amount,
)
from household_ledger.models.household import (
    HouseholdBootstrap,
    HouseholdSettings,
    ReconcileReport,
)
from household_ledger.models.account import AuthenticatedUser
from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "EXPENSE_CATEGORY_LABELS",
    "INCOME_SOURCE_LABELS",
    "PAYMENT_METHOD_LABELS",
    "ExpenseCategory",
    "IncomeSource",
    "PaymentMethod",
    "Transaction",
    "TransactionDraft",
    "TransactionTotals",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "parse_amount",
    # Household models
    "HouseholdBootstrap",
    "HouseholdSettings",
    "ReconcileReport",
    # Account models
    "AuthenticatedUser",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
