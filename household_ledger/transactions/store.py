"""
Transaction Store Adapter

Creates, updates, deletes and watches the transactions of one household.

DESIGN DECISION: Income and expense share one flat document shape. The
fields of the variant that does not apply are written as empty strings
rather than omitted, so every reader can treat a record as a union keyed
by "type" without checking which fields exist.

Writes are last-write-wins: two members editing the same record at once
are not coordinated.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from household_ledger.audit import AuditLogger
from household_ledger.errors import LedgerError, ValidationFailedError
from household_ledger.models.transaction import (
    ExpenseCategory,
    IncomeSource,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from household_ledger.services.storage import SERVER_TIMESTAMP, DocumentStore, Subscription
from household_ledger.services.storage.paths import transaction_doc, transactions_collection
from household_ledger.validation import TransactionValidator


def build_document(draft: TransactionDraft, amount: Decimal) -> dict:
    """
    Backend fields for a validated draft, without timestamps.
    """
    base = {
        "date": draft.date,
        "month": draft.date[:7],
        "type": draft.type.value,
        "amount": float(amount),
        "notes": draft.notes,
    }

    if draft.type == TransactionType.INCOME:
        return {
            **base,
            "category": "",
            "incomeSource": draft.income_source.value,
            "incomeSourceOther": (
                draft.income_source_other if draft.income_source == IncomeSource.OTHER else ""
            ),
            "incomeReceiptMethod": draft.income_receipt_method,
            "expenseCategoryOther": "",
            "expensePaymentMethod": "",
            "expenseBankWallet": "",
        }

    return {
        **base,
        "category": draft.expense_category.value,
        "expenseCategoryOther": (
            draft.expense_category_other if draft.expense_category == ExpenseCategory.OTHER else ""
        ),
        "expensePaymentMethod": draft.expense_payment_method.value,
        "expenseBankWallet": (
            draft.expense_bank_wallet if draft.expense_payment_method.needs_bank_wallet else ""
        ),
        "incomeSource": "",
        "incomeSourceOther": "",
        "incomeReceiptMethod": "",
    }


class TransactionStore:
    """
    Transaction operations for households.

    Usage:
        with transactions.subscribe(household_id) as feed:
            rows = feed.latest or []
        tx_id = await transactions.create(household_id, draft, uid)
    """

    def __init__(
        self,
        store: DocumentStore,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or TransactionValidator()
        self._audit = audit_logger or AuditLogger()

    @property
    def validator(self) -> TransactionValidator:
        return self._validator

    def subscribe(self, household_id: str) -> Subscription:
        """
        Live feed of a household's transactions, newest created first.

        Each snapshot is the whole list. Close the subscription when the
        household changes or the view goes away.
        """
        return self._store.watch_collection(
            transactions_collection(household_id),
            order_by="createdAt",
            descending=True,
            transform=Transaction.from_document,
        )

    async def _validated_document(
        self,
        household_id: str,
        draft: TransactionDraft,
        user_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> dict:
        try:
            result = self._validator.require_valid(draft)
        except ValidationFailedError as e:
            await self._audit.log_validation_failed(
                household_id=household_id,
                user_id=user_id,
                issues=[issue.model_dump() for issue in e.issues],
                correlation_id=correlation_id,
            )
            raise
        return build_document(draft, result.amount)

    async def _log_backend_error(
        self,
        operation: str,
        household_id: str,
        error: LedgerError,
        correlation_id: Optional[UUID],
    ) -> None:
        await self._audit.log_backend_error(
            operation=operation,
            error_kind=error.kind.value,
            error_message=error.message,
            household_id=household_id,
            correlation_id=correlation_id,
        )

    async def create(
        self,
        household_id: str,
        draft: TransactionDraft,
        creator_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Validate and store a new transaction.

        Returns:
            The new transaction's ID

        Raises:
            ValidationFailedError: Nothing was sent to the backend
        """
        document = await self._validated_document(household_id, draft, creator_id, correlation_id)

        transaction_id = self._store.new_id(transactions_collection(household_id))
        try:
            await self._store.create(
                transaction_doc(household_id, transaction_id),
                {
                    **document,
                    "createdAt": SERVER_TIMESTAMP,
                    "updatedAt": SERVER_TIMESTAMP,
                    "createdByUid": creator_id,
                },
            )
        except LedgerError as e:
            await self._log_backend_error("transaction_create", household_id, e, correlation_id)
            raise

        await self._audit.log_transaction_saved(
            household_id=household_id,
            transaction_id=transaction_id,
            user_id=creator_id,
            tx_type=draft.type.value,
            amount=str(document["amount"]),
            created=True,
            correlation_id=correlation_id,
        )
        return transaction_id

    async def update(
        self,
        household_id: str,
        transaction_id: str,
        draft: TransactionDraft,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Validate and overwrite an existing transaction's fields.

        Creation time and creator are kept.

        Raises:
            ValidationFailedError: Nothing was sent to the backend
            NotFoundError: The transaction was deleted meanwhile
        """
        document = await self._validated_document(household_id, draft, actor_id, correlation_id)

        try:
            await self._store.update(
                transaction_doc(household_id, transaction_id),
                {**document, "updatedAt": SERVER_TIMESTAMP},
            )
        except LedgerError as e:
            await self._log_backend_error("transaction_update", household_id, e, correlation_id)
            raise

        await self._audit.log_transaction_saved(
            household_id=household_id,
            transaction_id=transaction_id,
            user_id=actor_id or "",
            tx_type=draft.type.value,
            amount=str(document["amount"]),
            created=False,
            correlation_id=correlation_id,
        )

    async def delete(
        self,
        household_id: str,
        transaction_id: str,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Remove a transaction for good."""
        try:
            await self._store.delete(transaction_doc(household_id, transaction_id))
        except LedgerError as e:
            await self._log_backend_error("transaction_delete", household_id, e, correlation_id)
            raise
        await self._audit.log_transaction_deleted(
            household_id=household_id,
            transaction_id=transaction_id,
            user_id=actor_id or "",
            correlation_id=correlation_id,
        )
