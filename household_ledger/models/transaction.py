"""
Transaction Models for Household Ledger

These models define the schemas for money moving in and out of a household.
They are designed to:
1. Keep what the user typed (drafts) apart from what is stored (records)
2. Provide clear validation messages before anything reaches the backend
3. Map cleanly onto the backend document fields

DESIGN DECISION: A draft keeps the amount as the text the user entered.
Parsing (comma as decimal separator, positivity) belongs to the validator,
so a draft can always be constructed from a half-filled form.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money."""
    INCOME = "income"
    EXPENSE = "expense"


class ExpenseCategory(str, Enum):
    """
    Expense categories offered in the form.

    OTHER requires a free-text category alongside it.
    """
    GROCERIES = "groceries"
    RENT_MORTGAGE = "rent_mortgage"
    BILLS = "bills"
    FUEL_TRANSPORT = "fuel_transport"
    EATING_OUT = "eating_out"
    KIDS_SCHOOL = "kids_school"
    HEALTH = "health"
    ENTERTAINMENT = "entertainment"
    OTHER = "other"


class PaymentMethod(str, Enum):
    """How an expense was paid."""
    CASH = "cash"
    DEBIT_CARD = "debit_card"
    CREDIT_CARD = "credit_card"
    BANK_ACCOUNT = "bank_account"
    OTHER = "other"

    @property
    def needs_bank_wallet(self) -> bool:
        """Card and account payments draw on a bank/wallet."""
        return self in (
            PaymentMethod.DEBIT_CARD,
            PaymentMethod.CREDIT_CARD,
            PaymentMethod.BANK_ACCOUNT,
        )


class IncomeSource(str, Enum):
    """Where income came from. OTHER requires a free-text source."""
    SALARY = "salary"
    OTHER = "other"


EXPENSE_CATEGORY_LABELS: dict[ExpenseCategory, str] = {
    ExpenseCategory.GROCERIES: "Groceries",
    ExpenseCategory.RENT_MORTGAGE: "Rent / Mortgage",
    ExpenseCategory.BILLS: "Bills",
    ExpenseCategory.FUEL_TRANSPORT: "Fuel / Transport",
    ExpenseCategory.EATING_OUT: "Eating out / Coffee",
    ExpenseCategory.KIDS_SCHOOL: "Kids / School",
    ExpenseCategory.HEALTH: "Health",
    ExpenseCategory.ENTERTAINMENT: "Entertainment",
    ExpenseCategory.OTHER: "Other",
}

PAYMENT_METHOD_LABELS: dict[PaymentMethod, str] = {
    PaymentMethod.CASH: "Cash",
    PaymentMethod.DEBIT_CARD: "Debit card",
    PaymentMethod.CREDIT_CARD: "Credit card",
    PaymentMethod.BANK_ACCOUNT: "Bank account",
    PaymentMethod.OTHER: "Other",
}

INCOME_SOURCE_LABELS: dict[IncomeSource, str] = {
    IncomeSource.SALARY: "Salary",
    IncomeSource.OTHER: "Other",
}


def parse_amount(text: Any) -> Optional[Decimal]:
    """
    Parse a user-entered amount.

    Accepts a comma as decimal separator ("12,50"). Returns None when the
    text is empty or not a finite number. Sign is preserved; positivity is
    a validation rule, not a parsing one.
    """
    if text is None:
        return None
    if isinstance(text, Decimal):
        value = text
    else:
        raw = str(text).strip().replace(",", ".")
        if not raw:
            return None
        try:
            value = Decimal(raw)
        except InvalidOperation:
            return None
    if not value.is_finite():
        return None
    return value


# =============================================================================
# DRAFT MODEL - what the form submits
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A transaction as entered in the form.

    Fields for the variant that does not apply are ignored when the
    record is written (they are stored as empty strings).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType = TransactionType.EXPENSE
    date: str = Field(
        default="",
        description="Day of the transaction as YYYY-MM-DD"
    )
    amount: str = Field(
        default="",
        description="Amount as typed, comma or dot as decimal separator"
    )
    notes: str = Field(default="", max_length=1000)

    # Expense variant
    expense_category: ExpenseCategory = ExpenseCategory.GROCERIES
    expense_category_other: str = ""
    expense_payment_method: PaymentMethod = PaymentMethod.CASH
    expense_bank_wallet: str = ""

    # Income variant
    income_source: IncomeSource = IncomeSource.SALARY
    income_source_other: str = ""
    income_receipt_method: str = Field(
        default="",
        description="Bank/wallet (or cash) the income was received into"
    )

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, v: Any) -> str:
        """Numbers are accepted and kept as their text form."""
        if v is None:
            return ""
        return str(v)


# =============================================================================
# RECORD MODEL - what the backend holds
# =============================================================================

class Transaction(BaseModel):
    """
    A stored transaction as read back from a household's collection.

    Tolerant of older or partial documents: missing fields read as
    empty strings, an unreadable amount reads as zero, and any type other
    than income reads as expense.
    """

    id: str
    date: str = ""
    month: str = ""
    type: TransactionType = TransactionType.EXPENSE
    amount: Decimal = Decimal("0")
    category: str = ""
    expense_category_other: str = ""
    expense_payment_method: str = ""
    expense_bank_wallet: str = ""
    income_source: str = ""
    income_source_other: str = ""
    income_receipt_method: str = ""
    notes: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by_uid: str = ""

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def category_label(self) -> str:
        """Expense category for display; custom text replaces "other"."""
        if self.category == ExpenseCategory.OTHER.value:
            return self.expense_category_other or EXPENSE_CATEGORY_LABELS[ExpenseCategory.OTHER]
        try:
            return EXPENSE_CATEGORY_LABELS[ExpenseCategory(self.category)]
        except ValueError:
            return self.category

    @property
    def source_label(self) -> str:
        """Income source for display; custom text replaces "other"."""
        if self.income_source == IncomeSource.OTHER.value:
            return self.income_source_other or INCOME_SOURCE_LABELS[IncomeSource.OTHER]
        try:
            return INCOME_SOURCE_LABELS[IncomeSource(self.income_source)]
        except ValueError:
            return self.income_source

    @property
    def payment_label(self) -> str:
        try:
            return PAYMENT_METHOD_LABELS[PaymentMethod(self.expense_payment_method)]
        except ValueError:
            return self.expense_payment_method

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "Transaction":
        """Build a record from a backend document."""
        date_text = str(data.get("date") or "")
        amount = parse_amount(data.get("amount"))

        return cls(
            id=doc_id,
            date=date_text,
            month=str(data.get("month") or date_text[:7]),
            type=(
                TransactionType.INCOME
                if data.get("type") == TransactionType.INCOME.value
                else TransactionType.EXPENSE
            ),
            amount=amount if amount is not None else Decimal("0"),
            category=str(data.get("category") or ""),
            expense_category_other=str(data.get("expenseCategoryOther") or ""),
            expense_payment_method=str(data.get("expensePaymentMethod") or ""),
            expense_bank_wallet=str(data.get("expenseBankWallet") or ""),
            income_source=str(data.get("incomeSource") or ""),
            income_source_other=str(data.get("incomeSourceOther") or ""),
            income_receipt_method=str(data.get("incomeReceiptMethod") or ""),
            notes=str(data.get("notes") or ""),
            created_at=data.get("createdAt") if isinstance(data.get("createdAt"), datetime) else None,
            updated_at=data.get("updatedAt") if isinstance(data.get("updatedAt"), datetime) else None,
            created_by_uid=str(data.get("createdByUid") or ""),
        )

    def to_draft(self) -> TransactionDraft:
        """Form values for editing this record."""
        draft = TransactionDraft(
            type=self.type,
            date=self.date,
            amount=format(self.amount, "f"),
            notes=self.notes,
        )
        if self.is_income:
            try:
                source = IncomeSource(self.income_source)
            except ValueError:
                source = IncomeSource.OTHER
            other = ""
            if source == IncomeSource.OTHER:
                # unknown stored sources become the custom text
                other = self.income_source_other or (
                    "" if self.income_source == IncomeSource.OTHER.value else self.income_source
                )
            return draft.model_copy(update={
                "income_source": source,
                "income_source_other": other,
                "income_receipt_method": self.income_receipt_method,
            })

        try:
            category = ExpenseCategory(self.category)
        except ValueError:
            category = ExpenseCategory.OTHER
        try:
            method = PaymentMethod(self.expense_payment_method)
        except ValueError:
            method = PaymentMethod.CASH
        other = ""
        if category == ExpenseCategory.OTHER:
            other = self.expense_category_other or (
                "" if self.category == ExpenseCategory.OTHER.value else self.category
            )
        return draft.model_copy(update={
            "expense_category": category,
            "expense_category_other": other,
            "expense_payment_method": method,
            "expense_bank_wallet": self.expense_bank_wallet,
        })


class TransactionTotals(BaseModel):
    """Aggregates over a set of transactions."""

    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    income_count: int = 0
    expense_count: int = 0

    @property
    def net(self) -> Decimal:
        return self.income - self.expense

    @property
    def count(self) -> int:
        return self.income_count + self.expense_count


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a transaction draft.

    Stage 1: Required fields (date, amount, variant fields)
    Stage 2: Plausibility checks (warnings only)
    """

    is_valid: bool = Field(
        ...,
        description="True when no error-level issue was found"
    )
    amount: Optional[Decimal] = Field(
        default=None,
        description="Parsed amount, when the amount text was a number"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
