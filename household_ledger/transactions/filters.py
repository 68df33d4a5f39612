"""
Windows and Aggregates

Totals are computed client-side over whichever window the user selected:
one calendar month, or an inclusive date range where either end may be
left open. Both compare the ISO "YYYY-MM-DD" date strings directly, which
sort in calendar order.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Union

from pydantic import BaseModel, Field

from household_ledger.models.transaction import Transaction, TransactionTotals


UNCATEGORISED = "uncategorised"
NO_SOURCE = "no source"


def current_month(today: Optional[date] = None) -> str:
    return (today or date.today()).strftime("%Y-%m")


def month_of(date_text: str) -> str:
    """Month part of an ISO date: 2024-03-15 -> 2024-03."""
    return str(date_text or "")[:7]


class MonthWindow(BaseModel):
    """All transactions dated within one calendar month."""

    month: str = Field(
        default_factory=current_month,
        pattern=r"^\d{4}-\d{2}$",
        description="Month as YYYY-MM"
    )

    def contains(self, date_text: str) -> bool:
        return bool(date_text) and str(date_text).startswith(self.month)

    @property
    def label(self) -> str:
        return month_label(self.month)

    @property
    def file_tag(self) -> str:
        return self.month


class RangeWindow(BaseModel):
    """
    All transactions dated between start and end, both inclusive.

    An empty start or end leaves that side open.
    """

    start: str = ""
    end: str = ""

    def contains(self, date_text: str) -> bool:
        if not date_text:
            return False
        d = str(date_text)
        if self.start and d < self.start:
            return False
        if self.end and d > self.end:
            return False
        return True

    @property
    def label(self) -> str:
        return f"{self.start or '…'} – {self.end or '…'}"

    @property
    def file_tag(self) -> str:
        return f"range_{self.start or 'x'}_{self.end or 'x'}"


TransactionWindow = Union[MonthWindow, RangeWindow]


def apply_window(
    transactions: Iterable[Transaction],
    window: TransactionWindow,
) -> list[Transaction]:
    """Transactions inside the window, order preserved."""
    return [t for t in transactions if window.contains(t.date)]


def summarize(transactions: Iterable[Transaction]) -> TransactionTotals:
    """
    Income, expense and net over the given transactions.

    Anything that is not income counts as expense.
    """
    totals = TransactionTotals()
    for t in transactions:
        if t.is_income:
            totals.income += t.amount
            totals.income_count += 1
        else:
            totals.expense += t.amount
            totals.expense_count += 1
    return totals


def month_options(transactions: Iterable[Transaction], selected: str) -> list[str]:
    """
    Months that have transactions, newest first.

    The selected month is always offered, even when it has none.
    """
    months = sorted({month_of(t.date) for t in transactions if t.date}, reverse=True)
    if selected not in months:
        months.insert(0, selected)
    return months


def _sorted_totals(totals: dict[str, Decimal]) -> list[tuple[str, Decimal]]:
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def expense_by_category(transactions: Iterable[Transaction]) -> list[tuple[str, Decimal]]:
    """Expense total per category, largest first."""
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for t in transactions:
        if not t.is_income:
            key = t.category_label.strip() if t.category else ""
            totals[key or UNCATEGORISED] += t.amount
    return _sorted_totals(totals)


def income_by_source(transactions: Iterable[Transaction]) -> list[tuple[str, Decimal]]:
    """Income total per source, largest first."""
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for t in transactions:
        if t.is_income:
            key = t.source_label.strip() if t.income_source else ""
            totals[key or NO_SOURCE] += t.amount
    return _sorted_totals(totals)


def format_currency(value, symbol: str = "€") -> str:
    """
    Format an amount the way the app displays money.

    Dot for thousands, comma for decimals, symbol last: 1234.5 -> "1.234,50 €".
    """
    amount = Decimal(str(value or 0)).quantize(Decimal("0.01"))
    text = f"{abs(amount):,.2f}".replace(",", " ").replace(".", ",").replace(" ", ".")
    sign = "-" if amount < 0 else ""
    return f"{sign}{text} {symbol}"


def month_label(month: str) -> str:
    """Display form of a month: 2024-03 -> 03/2024."""
    year, _, number = str(month or "").partition("-")
    if not number:
        return str(month or "")
    return f"{number}/{year}"
