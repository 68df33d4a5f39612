"""Tests for CSV and Excel export."""

from decimal import Decimal
from io import BytesIO, StringIO

import pandas as pd

from household_ledger.export import (
    EXPORT_COLUMNS,
    export_filename,
    transactions_to_csv,
    transactions_to_frame,
    transactions_to_xlsx,
)
from household_ledger.models.transaction import Transaction, TransactionType
from household_ledger.transactions import MonthWindow, RangeWindow


# newest first, as the live feed delivers them
FEED = [
    Transaction(
        id="e1",
        date="2024-03-10",
        amount=Decimal("12.5"),
        category="other",
        expense_category_other="Pets",
        expense_payment_method="credit_card",
        expense_bank_wallet="Alpha Bank",
        notes="vet\nvisit",
    ),
    Transaction(
        id="i1",
        date="2024-03-01",
        amount=Decimal("1500"),
        type=TransactionType.INCOME,
        income_source="salary",
        income_receipt_method="Revolut Bank",
    ),
]


class TestExportRows:
    """Tests for the row layout."""

    def test_columns_and_order(self):
        """Test the fixed column set and oldest-first rows."""
        frame = transactions_to_frame(FEED)
        assert list(frame.columns) == EXPORT_COLUMNS
        assert list(frame["type"]) == ["income", "expense"]

    def test_income_row(self):
        """Test that an income row leaves expense columns blank."""
        row = transactions_to_frame(FEED).iloc[0]
        assert row["income_source"] == "Salary"
        assert row["income_receipt_method"] == "Revolut Bank"
        assert row["expense_payment_method"] == ""
        assert row["amount"] == 1500.0

    def test_expense_row(self):
        """Test that an expense row carries labels and single-line notes."""
        row = transactions_to_frame(FEED).iloc[1]
        assert row["expense_category"] == "Other"
        assert row["expense_category_other"] == "Pets"
        assert row["expense_payment_method"] == "Credit card"
        assert row["expense_bank_wallet"] == "Alpha Bank"
        assert row["notes"] == "vet visit"
        assert row["income_source"] == ""


class TestExportFiles:
    """Tests for the exported files."""

    def test_csv(self):
        """Test that the CSV reads back with the same rows."""
        frame = pd.read_csv(StringIO(transactions_to_csv(FEED).decode("utf-8")), keep_default_na=False)
        assert list(frame.columns) == EXPORT_COLUMNS
        assert list(frame["date"]) == ["2024-03-01", "2024-03-10"]

    def test_empty_csv_has_header(self):
        """Test that an empty window still exports the header."""
        assert transactions_to_csv([]).decode("utf-8").strip() == ",".join(EXPORT_COLUMNS)

    def test_xlsx_sheets(self):
        """Test the workbook's sheets and summary figures."""
        content = transactions_to_xlsx(FEED, MonthWindow(month="2024-03"))
        sheets = pd.read_excel(BytesIO(content), sheet_name=None, engine="openpyxl")
        assert list(sheets) == ["Transactions", "Summary", "Categories"]

        summary = dict(zip(sheets["Summary"]["metric"], sheets["Summary"]["value"]))
        assert summary["period"] == "03/2024"
        assert float(summary["net"]) == 1487.5

        categories = sheets["Categories"]
        assert list(categories["kind"]) == ["expense", "income"]
        assert list(categories["name"]) == ["Pets", "Salary"]

    def test_filenames(self):
        """Test file names by window."""
        assert export_filename(MonthWindow(month="2024-03"), "xlsx") == "transactions_2024-03.xlsx"
        assert export_filename(RangeWindow(end="2024-01-31"), "csv") == (
            "transactions_range_x_2024-01-31.csv"
        )
