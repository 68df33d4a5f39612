"""Household transactions: storage, windows and aggregates."""

from household_ledger.transactions.filters import (
    NO_SOURCE,
    UNCATEGORISED,
    MonthWindow,
    RangeWindow,
    TransactionWindow,
    apply_window,
    current_month,
    expense_by_category,
    format_currency,
    income_by_source,
    month_label,
    month_of,
    month_options,
    summarize,
)
from household_ledger.transactions.store import TransactionStore, build_document

__all__ = [
    # Windows and aggregates
    "NO_SOURCE",
    "UNCATEGORISED",
    "MonthWindow",
    "RangeWindow",
    "TransactionWindow",
    "apply_window",
    "current_month",
    "expense_by_category",
    "format_currency",
    "income_by_source",
    "month_label",
    "month_of",
    "month_options",
    "summarize",
    # Store
    "TransactionStore",
    "build_document",
]
