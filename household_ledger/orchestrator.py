"""
Main Orchestrator for Household Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Accounts (register -> join or create household, sign in -> resolve household)
2. Households (create/join later, invite code and link, bank/wallet list, repair)
3. Transactions (save, delete, live feed, totals, export)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Local validation happens before any backend call
- A signed-in user ends up with exactly one household pointer
- Every step is audited

The Streamlit layer calls these flows and renders the outcome; it never
talks to the backend directly.
"""

from typing import Optional
from uuid import UUID

import structlog

from household_ledger.audit import AuditLogger, create_correlation_id
from household_ledger.config import get_settings
from household_ledger.config.settings import AppSettings
from household_ledger.errors import (
    AuthError,
    ErrorKind,
    InvalidInviteCodeError,
    LedgerError,
    RegistrationIncompleteError,
    ValidationFailedError,
)
from household_ledger.export import (
    CSV_MIME,
    XLSX_MIME,
    export_filename,
    transactions_to_csv,
    transactions_to_xlsx,
)
from household_ledger.households import (
    HouseholdResolver,
    HouseholdSettingsStore,
    build_invite_link,
    invite_code_from_input,
    is_valid_invite_code,
)
from household_ledger.models.account import AuthenticatedUser
from household_ledger.models.household import (
    HouseholdBootstrap,
    HouseholdSettings,
    ReconcileReport,
)
from household_ledger.models.transaction import (
    Transaction,
    TransactionDraft,
    TransactionTotals,
    ValidationResult,
)
from household_ledger.services.auth import FirebaseAuthClient
from household_ledger.services.storage import (
    DocumentStore,
    FirestoreClient,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    Subscription,
)
from household_ledger.transactions import (
    TransactionStore,
    TransactionWindow,
    apply_window,
    summarize,
)
from household_ledger.validation import TransactionValidator


logger = structlog.get_logger(__name__)


class AccountFlow:
    """
    Orchestrates sign-up, sign-in and password reset.

    Registration flow:
    1. Check passwords match and the invite code (if any) is well formed
    2. Create the account, set the display name
    3. Join the invited household, or create a new one

    Sign-in flow:
    1. Authenticate
    2. Read the household pointer
    3. Top up the membership record (best effort)
    """

    def __init__(
        self,
        auth_client: Optional[FirebaseAuthClient],
        resolver: HouseholdResolver,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._auth = auth_client
        self._resolver = resolver
        self._audit_logger = audit_logger or AuditLogger()

    def _client(self) -> FirebaseAuthClient:
        if self._auth is None:
            raise AuthError(
                "Authentication is not configured (FIREBASE_WEB_API_KEY).",
                kind=ErrorKind.OPERATION_NOT_ALLOWED,
            )
        return self._auth

    async def register(
        self,
        email: str,
        password: str,
        password_confirm: str,
        display_name: str = "",
        invite_code: str = "",
    ) -> tuple[AuthenticatedUser, str]:
        """
        Create an account and attach it to a household.

        Returns:
            (user, household_id)

        Raises:
            RegistrationIncompleteError: Signed up, but joining or creating
                the household failed; the error carries the user
        """
        correlation_id = create_correlation_id()
        name = (display_name or "").strip()

        if password != password_confirm:
            raise ValidationFailedError(message="Passwords do not match.")

        code = invite_code_from_input(invite_code)
        if code and not is_valid_invite_code(code):
            raise InvalidInviteCodeError()

        try:
            user = self._client().sign_up(email, password)
            if name:
                user = self._client().update_display_name(user, name)
        except AuthError as e:
            await self._audit_logger.log_auth_failed(
                operation="register",
                error_kind=e.kind.value,
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_user_registered(user.uid, correlation_id=correlation_id)

        try:
            if code:
                household_id = await self._resolver.join_household_by_invite_code(
                    user.uid, code, name, correlation_id=correlation_id
                )
            else:
                result = await self._resolver.create_household_with_invite(
                    user.uid, name or "home", correlation_id=correlation_id
                )
                household_id = result.household_id
        except LedgerError as e:
            # the account exists now; the user continues without a household
            raise RegistrationIncompleteError(user, e) from e

        return user, household_id

    async def sign_in(
        self,
        email: str,
        password: str,
    ) -> tuple[AuthenticatedUser, Optional[str]]:
        """
        Sign in and find the user's household.

        Returns:
            (user, household_id or None when the user has none yet)
        """
        correlation_id = create_correlation_id()
        try:
            user = self._client().sign_in(email, password)
        except AuthError as e:
            await self._audit_logger.log_auth_failed(
                operation="sign_in",
                error_kind=e.kind.value,
                correlation_id=correlation_id,
            )
            raise

        household_id = await self._resolver.load_household_for_user(user.uid)
        if household_id:
            try:
                await self._resolver.ensure_membership(user.uid, household_id, user.display_name)
            except LedgerError as e:
                # membership top-up never blocks sign-in
                logger.warning(
                    "membership_topup_failed",
                    user_id=user.uid,
                    household_id=household_id,
                    error_kind=e.kind.value,
                )

        await self._audit_logger.log_user_signed_in(
            user.uid, household_id, correlation_id=correlation_id
        )
        return user, household_id

    async def send_password_reset(self, email: str) -> None:
        if not (email or "").strip():
            raise ValidationFailedError(
                message="Enter your email first, then ask for a reset link."
            )
        self._client().send_password_reset(email)


class HouseholdFlow:
    """
    Orchestrates household actions of a signed-in user.
    """

    def __init__(
        self,
        resolver: HouseholdResolver,
        settings_store: HouseholdSettingsStore,
        app_settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._resolver = resolver
        self._settings_store = settings_store
        self._app_settings = app_settings or get_settings().app
        self._audit_logger = audit_logger or AuditLogger()

    async def create_now(self, user: AuthenticatedUser) -> HouseholdBootstrap:
        """Create a household for a user who has none."""
        return await self._resolver.create_household_with_invite(
            user.uid, user.display_name or "home"
        )

    async def join_now(self, user: AuthenticatedUser, code: str) -> str:
        """Join a household by code (or pasted invite link) for a user who has none."""
        code = invite_code_from_input(code)
        if not code:
            raise InvalidInviteCodeError("Enter an invite code.")
        return await self._resolver.join_household_by_invite_code(
            user.uid, code, user.display_name
        )

    async def invite_code(self, household_id: str) -> str:
        return await self._resolver.get_invite_code(household_id)

    def invite_link(self, code: str) -> str:
        return build_invite_link(self._app_settings.public_origin, code)

    async def rotate_invite(
        self,
        household_id: str,
        user: AuthenticatedUser,
        draft: str,
    ) -> str:
        return await self._resolver.rotate_invite_code(household_id, draft, user.uid)

    async def load_settings(self, household_id: str) -> HouseholdSettings:
        return await self._settings_store.load_settings(household_id)

    async def add_bank_wallet(
        self,
        household_id: str,
        user: AuthenticatedUser,
        value: str,
    ) -> list[str]:
        """Add a bank/wallet label; returns the updated list."""
        try:
            wallets = await self._settings_store.add_bank_wallet(household_id, user.uid, value)
        except LedgerError as e:
            await self._audit_logger.log_backend_error(
                operation="add_bank_wallet",
                error_kind=e.kind.value,
                error_message=e.message,
                household_id=household_id,
            )
            raise
        if (value or "").strip():
            await self._audit_logger.log_bank_wallet_added(
                household_id=household_id,
                user_id=user.uid,
                label=value.strip(),
            )
        return wallets

    async def reconcile(self, household_id: str, user: AuthenticatedUser) -> ReconcileReport:
        """Repair a household left half-created."""
        return await self._resolver.reconcile_household(
            household_id, user.uid, user.display_name or "home"
        )


class TransactionFlow:
    """
    Orchestrates the transaction list of one household.
    """

    def __init__(
        self,
        transaction_store: TransactionStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transactions = transaction_store
        self._audit_logger = audit_logger or AuditLogger()

    def subscribe(self, household_id: str) -> Subscription:
        return self._transactions.subscribe(household_id)

    def check(self, draft: TransactionDraft) -> tuple[ValidationResult, str]:
        """
        Validate a draft without saving it.

        Returns:
            (result, text to show under the form)
        """
        validator = self._transactions.validator
        result = validator.validate(draft)
        return result, validator.get_user_friendly_summary(result)

    async def save(
        self,
        household_id: str,
        user: AuthenticatedUser,
        draft: TransactionDraft,
        editing_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Create a transaction, or update the one being edited.

        Returns:
            The transaction ID
        """
        if editing_id:
            await self._transactions.update(
                household_id, editing_id, draft, actor_id=user.uid, correlation_id=correlation_id
            )
            return editing_id
        return await self._transactions.create(
            household_id, draft, user.uid, correlation_id=correlation_id
        )

    async def delete(
        self,
        household_id: str,
        user: AuthenticatedUser,
        transaction_id: str,
    ) -> None:
        await self._transactions.delete(household_id, transaction_id, actor_id=user.uid)

    @staticmethod
    def summarize(
        transactions: list[Transaction],
        window: TransactionWindow,
    ) -> tuple[list[Transaction], TransactionTotals]:
        """Transactions in the window and their totals."""
        visible = apply_window(transactions, window)
        return visible, summarize(visible)

    async def export(
        self,
        household_id: str,
        user: AuthenticatedUser,
        transactions: list[Transaction],
        window: TransactionWindow,
        file_format: str = "xlsx",
    ) -> tuple[str, bytes, str]:
        """
        Export the window's transactions.

        Returns:
            (file_name, content, mime_type)
        """
        visible = apply_window(transactions, window)
        if file_format == "csv":
            content, mime = transactions_to_csv(visible), CSV_MIME
        elif file_format == "xlsx":
            content, mime = transactions_to_xlsx(visible, window), XLSX_MIME
        else:
            raise ValueError(f"Unsupported export format: {file_format}")

        await self._audit_logger.log_export_generated(
            household_id=household_id,
            user_id=user.uid,
            file_format=file_format,
            period=window.label,
            row_count=len(visible),
        )
        return export_filename(window, file_format), content, mime


def create_app_components(
    use_backend: bool = True,
    store: Optional[DocumentStore] = None,
) -> tuple[AccountFlow, HouseholdFlow, TransactionFlow, DocumentStore]:
    """
    Factory function to create all application components.

    Args:
        use_backend: Whether to use Firebase. Set to False for tests and
                    local demos; data then lives in process memory and
                    sign-in is unavailable.
        store: Document store to use instead of building one.

    Returns:
        (account_flow, household_flow, transaction_flow, store)
    """
    audit_logger = AuditLogger()
    app_settings = get_settings().app
    auth_client = None

    if store is None and use_backend:
        try:
            firebase_settings = get_settings().firebase
            store = FirestoreDocumentStore(FirestoreClient(firebase_settings))
            auth_client = FirebaseAuthClient(firebase_settings)
        except Exception as e:
            # Backend not configured - continue in memory
            logger.warning("backend_not_configured", error=str(e))
            store = None
            auth_client = None

    if store is None:
        store = InMemoryDocumentStore()

    settings_store = HouseholdSettingsStore(store, app_settings.default_bank_wallets_list)
    resolver = HouseholdResolver(
        store,
        settings_store,
        audit_logger=audit_logger,
        invite_code_attempts=app_settings.invite_code_attempts,
    )
    transaction_store = TransactionStore(
        store,
        validator=TransactionValidator(app_settings),
        audit_logger=audit_logger,
    )

    account_flow = AccountFlow(auth_client, resolver, audit_logger=audit_logger)
    household_flow = HouseholdFlow(
        resolver,
        settings_store,
        app_settings=app_settings,
        audit_logger=audit_logger,
    )
    transaction_flow = TransactionFlow(transaction_store, audit_logger=audit_logger)

    return account_flow, household_flow, transaction_flow, store
