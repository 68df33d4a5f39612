"""
Tests for Household Ledger models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (against the in-memory document store)
3. No real API calls in tests (use mocks)
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from household_ledger.models.transaction import (
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
from household_ledger.models.household import ReconcileReport
from household_ledger.models.account import AuthenticatedUser
from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestParseAmount:
    """Tests for user-entered amount parsing."""

    def test_dot_and_comma_decimal_separator(self):
        """Test that both separators parse to the same value."""
        assert parse_amount("12.50") == Decimal("12.50")
        assert parse_amount("12,50") == Decimal("12.50")

    def test_surrounding_whitespace(self):
        """Test that whitespace around the number is ignored."""
        assert parse_amount("  7 ") == Decimal("7")

    def test_empty_and_garbage(self):
        """Test that non-numbers give None rather than raising."""
        assert parse_amount("") is None
        assert parse_amount(None) is None
        assert parse_amount("abc") is None
        assert parse_amount("1.2.3") is None

    def test_non_finite(self):
        """Test that infinity and NaN are not amounts."""
        assert parse_amount("Infinity") is None
        assert parse_amount("NaN") is None

    def test_sign_is_kept(self):
        """Test that negative numbers parse; positivity is a validation rule."""
        assert parse_amount("-5") == Decimal("-5")


class TestTransactionModels:
    """Tests for transaction-related Pydantic models."""

    def test_draft_defaults(self):
        """Test that a blank draft is an expense paid in cash."""
        draft = TransactionDraft()
        assert draft.type == TransactionType.EXPENSE
        assert draft.expense_category == ExpenseCategory.GROCERIES
        assert draft.expense_payment_method == PaymentMethod.CASH
        assert draft.amount == ""

    def test_draft_strips_whitespace(self):
        """Test that whitespace is stripped from text fields."""
        draft = TransactionDraft(notes="  weekly shop  ", amount=" 12,5 ")
        assert draft.notes == "weekly shop"
        assert draft.amount == "12,5"

    def test_draft_accepts_numeric_amount(self):
        """Test that a number is kept as its text form."""
        assert TransactionDraft(amount=42).amount == "42"

    def test_needs_bank_wallet(self):
        """Test which payment methods draw on a bank/wallet."""
        assert PaymentMethod.DEBIT_CARD.needs_bank_wallet
        assert PaymentMethod.CREDIT_CARD.needs_bank_wallet
        assert PaymentMethod.BANK_ACCOUNT.needs_bank_wallet
        assert not PaymentMethod.CASH.needs_bank_wallet
        assert not PaymentMethod.OTHER.needs_bank_wallet

    def test_from_document_expense(self):
        """Test reading a stored expense document."""
        created = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)
        t = Transaction.from_document("tx1", {
            "date": "2024-03-10",
            "month": "2024-03",
            "type": "expense",
            "amount": 23.4,
            "category": "groceries",
            "expensePaymentMethod": "debit_card",
            "expenseBankWallet": "Alpha Bank",
            "notes": "market",
            "createdAt": created,
            "createdByUid": "u1",
        })
        assert t.id == "tx1"
        assert not t.is_income
        assert t.amount == Decimal("23.4")
        assert t.category_label == "Groceries"
        assert t.payment_label == "Debit card"
        assert t.created_at == created
        assert t.created_by_uid == "u1"

    def test_from_document_is_tolerant(self):
        """Test that odd documents still read: unknown type is expense, bad amount is zero."""
        t = Transaction.from_document("tx2", {"type": "transfer", "amount": "n/a", "date": "2024-01-05"})
        assert t.type == TransactionType.EXPENSE
        assert t.amount == Decimal("0")
        assert t.month == "2024-01"
        assert t.created_at is None

    def test_other_labels_use_custom_text(self):
        """Test that 'other' is replaced by the custom text for display."""
        expense = Transaction(id="a", category="other", expense_category_other="Pets")
        income = Transaction(
            id="b",
            type=TransactionType.INCOME,
            income_source="other",
            income_source_other="Rent from flat",
        )
        assert expense.category_label == "Pets"
        assert income.source_label == "Rent from flat"

    def test_to_draft_expense(self):
        """Test loading a stored expense back into the form."""
        t = Transaction(
            id="a",
            date="2024-03-01",
            amount=Decimal("12.5"),
            category="bills",
            expense_payment_method="credit_card",
            expense_bank_wallet="Eurobank",
        )
        draft = t.to_draft()
        assert draft.type == TransactionType.EXPENSE
        assert draft.amount == "12.5"
        assert draft.expense_category == ExpenseCategory.BILLS
        assert draft.expense_payment_method == PaymentMethod.CREDIT_CARD
        assert draft.expense_bank_wallet == "Eurobank"

    def test_to_draft_unknown_category_becomes_other(self):
        """Test that a category outside the list is kept as custom text."""
        t = Transaction(id="a", category="pets", expense_payment_method="cheque")
        draft = t.to_draft()
        assert draft.expense_category == ExpenseCategory.OTHER
        assert draft.expense_category_other == "pets"
        assert draft.expense_payment_method == PaymentMethod.CASH

    def test_to_draft_income(self):
        """Test loading a stored income back into the form."""
        t = Transaction(
            id="b",
            type=TransactionType.INCOME,
            amount=Decimal("1500"),
            income_source="salary",
            income_receipt_method="Alpha Bank",
        )
        draft = t.to_draft()
        assert draft.type == TransactionType.INCOME
        assert draft.income_source == IncomeSource.SALARY
        assert draft.income_receipt_method == "Alpha Bank"

    def test_totals(self):
        """Test net and count of totals."""
        totals = TransactionTotals(
            income=Decimal("100"),
            expense=Decimal("30"),
            income_count=1,
            expense_count=2,
        )
        assert totals.net == Decimal("70")
        assert totals.count == 3


class TestHouseholdModels:
    """Tests for household and account models."""

    def test_reconcile_report_consistent(self):
        """Test that an empty repair list means consistent."""
        assert ReconcileReport(household_id="h", invite_code="abc").was_consistent
        assert not ReconcileReport(
            household_id="h", invite_code="abc", repaired=["membership"]
        ).was_consistent

    def test_user_label(self):
        """Test that the display name is preferred over the email."""
        assert AuthenticatedUser(uid="u", email="a@b.c", display_name="Maria").label == "Maria"
        assert AuthenticatedUser(uid="u", email="a@b.c").label == "a@b.c"

    def test_id_token_not_in_repr(self):
        """Test that the ID token is kept out of repr."""
        user = AuthenticatedUser(uid="u", email="a@b.c", id_token="secret-token")
        assert "secret-token" not in repr(user)


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.HOUSEHOLD_CREATED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.HOUSEHOLD_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_id="tx1",
            household_id="h1",
            correlation_id=correlation_id,
            description="Test",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "transaction_deleted"
        assert log_dict["entity_id"] == "tx1"
        assert log_dict["household_id"] == "h1"
        assert log_dict["correlation_id"] == str(correlation_id)
        assert "timestamp" in log_dict

    def test_audit_event_builder_transaction_saved(self):
        """Test that created and updated saves get their own event types."""
        created = AuditEventBuilder.transaction_saved(
            household_id="h1",
            transaction_id="tx1",
            user_id="u1",
            tx_type="expense",
            amount="12.5",
            created=True,
        )
        updated = AuditEventBuilder.transaction_saved(
            household_id="h1",
            transaction_id="tx1",
            user_id="u1",
            tx_type="expense",
            amount="12.5",
            created=False,
        )
        assert created.event_type == AuditEventType.TRANSACTION_CREATED
        assert updated.event_type == AuditEventType.TRANSACTION_UPDATED
        assert created.is_user_action

    def test_audit_event_builder_bootstrap_failed(self):
        """Test bootstrap failure event carries the step and error kind."""
        event = AuditEventBuilder.household_bootstrap_failed(
            user_id="u1",
            household_id="h1",
            step="invite_mapping",
            error_kind="permission_denied",
            error_message="denied",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.details["step"] == "invite_mapping"
        assert event.error_kind == "permission_denied"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Please enter a valid amount.",
                    severity="error",
                ),
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date is far ahead",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test result with only warnings."""
        result = ValidationResult(
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message="Amount seems high",
                    severity="warning",
                ),
            ],
            warnings=["Amount seems high"],
        )
        assert not result.has_errors
        assert result.error_count == 0

    def test_issue_severity_pattern(self):
        """Test that unknown severities are rejected."""
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


class TestCategories:
    """Tests for the option lists."""

    def test_all_categories_exist(self):
        """Test all expected categories are defined."""
        expected = [
            "groceries", "rent_mortgage", "bills", "fuel_transport",
            "eating_out", "kids_school", "health", "entertainment", "other",
        ]
        assert [c.value for c in ExpenseCategory] == expected

    def test_payment_methods(self):
        """Test payment method values."""
        assert [m.value for m in PaymentMethod] == [
            "cash", "debit_card", "credit_card", "bank_account", "other",
        ]
