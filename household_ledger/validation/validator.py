"""
Two-Stage Transaction Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - REQUIRED FIELDS:
- Date present and in YYYY-MM-DD form
- Amount is a number and strictly positive
- Income: custom source when the source is "other", a receipt method
- Expense: custom category when the category is "other", a bank/wallet
  when the payment method draws on one
- Errors here block the save

STAGE 2 - PLAUSIBILITY:
- Unusually large amounts
- Dates far in the future
- These are warnings only; the household's own numbers are trusted

IMPORTANT: Validation runs before any backend call and NEVER silently
fixes input. A draft that fails stage 1 is never written.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from household_ledger.config import get_settings
from household_ledger.config.settings import AppSettings
from household_ledger.errors import ValidationFailedError
from household_ledger.models.transaction import (
    ExpenseCategory,
    IncomeSource,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    parse_amount,
)


FUTURE_DATE_TOLERANCE_DAYS = 31


def parse_iso_date(text: str) -> Optional[date]:
    """Parse YYYY-MM-DD strictly. None for anything else."""
    if not text or len(text) != 10:
        return None
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        return None


class TransactionValidator:
    """
    Validates transaction drafts before they are written.

    Stage 1: Required fields (blocking)
    Stage 2: Plausibility checks (warnings)
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _validate_required(
        self,
        draft: TransactionDraft,
    ) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        """
        Stage 1: Required field validation.

        Returns: (parsed_amount, list_of_issues)
        """
        issues = []

        if not draft.date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Please choose a date.",
                severity="error",
            ))
        elif parse_iso_date(draft.date) is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message="Date must be in YYYY-MM-DD form.",
                severity="error",
            ))

        amount = parse_amount(draft.amount)
        if amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing" if not draft.amount else "invalid_format",
                message="Please enter a valid amount.",
                severity="error",
            ))
        elif amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero.",
                severity="error",
            ))

        if draft.type == TransactionType.INCOME:
            if draft.income_source == IncomeSource.OTHER and not draft.income_source_other:
                issues.append(ValidationIssue(
                    field="income_source_other",
                    issue_type="missing",
                    message="Please describe the income source.",
                    severity="error",
                ))
            if not draft.income_receipt_method:
                issues.append(ValidationIssue(
                    field="income_receipt_method",
                    issue_type="missing",
                    message="Please choose where the income was received.",
                    severity="error",
                ))
        else:
            if draft.expense_category == ExpenseCategory.OTHER and not draft.expense_category_other:
                issues.append(ValidationIssue(
                    field="expense_category_other",
                    issue_type="missing",
                    message="Please describe the expense category.",
                    severity="error",
                ))
            if draft.expense_payment_method.needs_bank_wallet and not draft.expense_bank_wallet:
                issues.append(ValidationIssue(
                    field="expense_bank_wallet",
                    issue_type="missing",
                    message="Please choose a bank/wallet for card or bank payments.",
                    severity="error",
                ))

        return amount, issues

    def _validate_plausibility(
        self,
        draft: TransactionDraft,
        amount: Decimal,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Plausibility checks. Only warnings.
        """
        issues = []

        ceiling = Decimal(str(self._settings.max_transaction_amount))
        if amount > ceiling:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=(
                    f"Amount ({self._settings.currency_symbol}{amount:,.2f}) "
                    "seems unusually high"
                ),
                severity="warning",
            ))

        day = parse_iso_date(draft.date)
        if day and day > date.today() + timedelta(days=FUTURE_DATE_TOLERANCE_DAYS):
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({draft.date}) is more than a month in the future",
                severity="warning",
            ))

        return issues

    def validate(self, draft: TransactionDraft) -> ValidationResult:
        """
        Run both validation stages.

        Stage 2 only runs when stage 1 found no errors.
        """
        amount, issues = self._validate_required(draft)
        is_valid = not any(issue.severity == "error" for issue in issues)

        if is_valid and amount is not None:
            issues.extend(self._validate_plausibility(draft, amount))

        return ValidationResult(
            is_valid=is_valid,
            amount=amount,
            issues=issues,
            warnings=[i.message for i in issues if i.severity == "warning"],
        )

    def require_valid(self, draft: TransactionDraft) -> ValidationResult:
        """
        Validate and raise on the first blocking issue.

        Raises:
            ValidationFailedError: Carrying every issue found
        """
        result = self.validate(draft)
        if not result.is_valid:
            raise ValidationFailedError(issues=result.issues)
        return result

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Short text listing what needs fixing, for display under the form.
        """
        if result.is_valid and not result.warnings:
            return "✅ Looks good."

        lines = []
        errors = [i for i in result.issues if i.severity == "error"]
        if errors:
            lines.append("❌ Please fix the following:")
            for issue in errors:
                lines.append(f"   • {issue.message}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please double-check:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
