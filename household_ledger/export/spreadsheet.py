"""
Spreadsheet Export

Turns the transactions of the selected window into a CSV file or an
Excel workbook. Rows are written oldest first, with one fixed column set
for both income and expense (the other variant's columns stay blank).

The workbook has three sheets:
- Transactions: one row per transaction
- Summary: the window, totals and counts
- Categories: expense per category and income per source, largest first
"""

from io import BytesIO
from typing import Iterable

import pandas as pd

from household_ledger.models.transaction import (
    EXPENSE_CATEGORY_LABELS,
    ExpenseCategory,
    Transaction,
)
from household_ledger.transactions.filters import (
    TransactionWindow,
    expense_by_category,
    income_by_source,
    summarize,
)


EXPORT_COLUMNS = [
    "date",
    "type",
    "amount",
    "income_source",
    "income_receipt_method",
    "expense_payment_method",
    "expense_bank_wallet",
    "expense_category",
    "expense_category_other",
    "notes",
]

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MIME = "text/csv"


def _plain_category(value: str) -> str:
    try:
        return EXPENSE_CATEGORY_LABELS[ExpenseCategory(value)]
    except ValueError:
        return value


def transaction_row(t: Transaction) -> dict:
    """One export row. Notes are flattened to a single line."""
    notes = (t.notes or "").replace("\r\n", " ").replace("\n", " ")
    if t.is_income:
        return {
            "date": t.date,
            "type": "income",
            "amount": float(t.amount),
            "income_source": t.source_label if t.income_source else "",
            "income_receipt_method": t.income_receipt_method,
            "expense_payment_method": "",
            "expense_bank_wallet": "",
            "expense_category": "",
            "expense_category_other": "",
            "notes": notes,
        }
    return {
        "date": t.date,
        "type": "expense",
        "amount": float(t.amount),
        "income_source": "",
        "income_receipt_method": "",
        "expense_payment_method": t.payment_label,
        "expense_bank_wallet": t.expense_bank_wallet,
        "expense_category": _plain_category(t.category),
        "expense_category_other": t.expense_category_other,
        "notes": notes,
    }


def transactions_to_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """
    Export rows as a DataFrame.

    Input is expected newest first (as the live feed delivers it);
    output is oldest first.
    """
    rows = [transaction_row(t) for t in reversed(list(transactions))]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def summary_frame(transactions: list[Transaction], window: TransactionWindow) -> pd.DataFrame:
    totals = summarize(transactions)
    return pd.DataFrame(
        [
            ("period", window.label),
            ("income", float(totals.income)),
            ("expense", float(totals.expense)),
            ("net", float(totals.net)),
            ("count", totals.count),
            ("incomes", totals.income_count),
            ("expenses", totals.expense_count),
        ],
        columns=["metric", "value"],
    )


def categories_frame(transactions: list[Transaction]) -> pd.DataFrame:
    rows = [
        ("expense", name, float(total))
        for name, total in expense_by_category(transactions)
    ] + [
        ("income", name, float(total))
        for name, total in income_by_source(transactions)
    ]
    return pd.DataFrame(rows, columns=["kind", "name", "total"])


def transactions_to_csv(transactions: Iterable[Transaction]) -> bytes:
    """CSV bytes (UTF-8) of the export rows."""
    return transactions_to_frame(transactions).to_csv(index=False).encode("utf-8")


def transactions_to_xlsx(
    transactions: Iterable[Transaction],
    window: TransactionWindow,
) -> bytes:
    """Excel workbook bytes with Transactions, Summary and Categories sheets."""
    transactions = list(transactions)
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        transactions_to_frame(transactions).to_excel(
            writer, sheet_name="Transactions", index=False
        )
        summary_frame(transactions, window).to_excel(
            writer, sheet_name="Summary", index=False
        )
        categories_frame(transactions).to_excel(
            writer, sheet_name="Categories", index=False
        )
    return buffer.getvalue()


def export_filename(window: TransactionWindow, extension: str) -> str:
    """e.g. transactions_2024-03.xlsx or transactions_range_2024-01-10_x.csv"""
    return f"transactions_{window.file_tag}.{extension}"
