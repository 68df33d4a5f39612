"""Tests for error kinds and user-facing messages."""

from household_ledger.errors import (
    USER_MESSAGES,
    AuthError,
    CodeTakenError,
    ErrorKind,
    InvalidInviteCodeError,
    LedgerError,
    NotFoundError,
    PermissionDeniedError,
    RegistrationIncompleteError,
    ValidationFailedError,
    user_message,
)
from household_ledger.models.transaction import ValidationIssue
from household_ledger.services.storage import DuplicateError, StorageError


class TestErrorKinds:
    """Tests for the error hierarchy."""

    def test_every_kind_has_a_message(self):
        """Test that no kind lacks a user message."""
        assert set(USER_MESSAGES) == set(ErrorKind)

    def test_default_kinds(self):
        """Test the kind each exception carries by default."""
        assert InvalidInviteCodeError().kind == ErrorKind.INVALID_CODE
        assert NotFoundError().kind == ErrorKind.NOT_FOUND
        assert CodeTakenError().kind == ErrorKind.CODE_TAKEN
        assert PermissionDeniedError().kind == ErrorKind.PERMISSION_DENIED
        assert ValidationFailedError().kind == ErrorKind.VALIDATION_FAILED
        assert StorageError().kind == ErrorKind.UNKNOWN
        assert AuthError().kind == ErrorKind.UNKNOWN

    def test_kind_override(self):
        """Test that adapters can pin a more specific kind."""
        error = StorageError("denied", kind=ErrorKind.PERMISSION_DENIED)
        assert error.kind == ErrorKind.PERMISSION_DENIED
        assert StorageError().kind == ErrorKind.UNKNOWN

    def test_storage_errors_are_ledger_errors(self):
        """Test the hierarchy used by callers to catch backend failures."""
        assert issubclass(DuplicateError, StorageError)
        assert issubclass(StorageError, LedgerError)

    def test_registration_incomplete_keeps_user_and_cause(self):
        """Test that the wrapper carries the user and the cause's kind and text."""
        cause = NotFoundError("Invite code not found.")
        error = RegistrationIncompleteError(user="uid-1", cause=cause)
        assert error.user == "uid-1"
        assert error.cause is cause
        assert error.kind == ErrorKind.NOT_FOUND
        assert user_message(error) == "Invite code not found."

    def test_validation_error_message_from_first_issue(self):
        """Test that a validation error shows its first blocking issue."""
        error = ValidationFailedError(issues=[
            ValidationIssue(field="date", issue_type="future_date", message="Far ahead", severity="warning"),
            ValidationIssue(field="amount", issue_type="missing", message="Enter an amount.", severity="error"),
        ])
        assert error.message == "Enter an amount."
        assert len(error.issues) == 2


class TestUserMessage:
    """Tests for user_message."""

    def test_fixed_messages_by_kind(self):
        """Test that mapped kinds ignore the raw message."""
        error = AuthError("EMAIL_EXISTS", kind=ErrorKind.EMAIL_IN_USE)
        assert user_message(error) == USER_MESSAGES[ErrorKind.EMAIL_IN_USE]
        assert user_message(CodeTakenError()) == "This invite code is already in use."

    def test_contextual_messages(self):
        """Test that validation and not-found errors keep their own text."""
        assert user_message(ValidationFailedError(message="Passwords do not match.")) == (
            "Passwords do not match."
        )
        assert user_message(NotFoundError("Invite code not found.")) == "Invite code not found."

    def test_foreign_exception(self):
        """Test that errors from outside the package get the generic text."""
        assert user_message(RuntimeError("boom")) == "Something went wrong."
