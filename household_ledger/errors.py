"""
Error Taxonomy for Household Ledger

DESIGN DECISION: Every failure that can reach a user is one of a closed set
of error kinds. Backend adapters (Firestore, Firebase Auth) translate their
own identifiers into these kinds, so nothing above the adapter layer ever
matches on backend-specific strings.

Three families of failure exist:
1. Local validation failures (never reach the backend)
2. Backend rejections (auth failure, permission denial, not-found)
3. Consistency conflicts (invite code already owned by another household)
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced to callers."""
    INVALID_EMAIL = "invalid_email"
    MISSING_PASSWORD = "missing_password"
    WEAK_PASSWORD = "weak_password"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_IN_USE = "email_in_use"
    USER_NOT_FOUND = "user_not_found"
    OPERATION_NOT_ALLOWED = "operation_not_allowed"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    INVALID_CODE = "invalid_code"
    CODE_TAKEN = "code_taken"
    VALIDATION_FAILED = "validation_failed"
    UNKNOWN = "unknown"


USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_EMAIL: "The email address is not valid.",
    ErrorKind.MISSING_PASSWORD: "Please enter a password.",
    ErrorKind.WEAK_PASSWORD: "The password is too weak. Use at least 6 characters.",
    ErrorKind.INVALID_CREDENTIALS: "Wrong email or password.",
    ErrorKind.EMAIL_IN_USE: "An account with this email already exists.",
    ErrorKind.USER_NOT_FOUND: "No account was found for this email.",
    ErrorKind.OPERATION_NOT_ALLOWED: (
        "Email/password sign-in is not enabled for this project."
    ),
    ErrorKind.PERMISSION_DENIED: (
        "Access denied by the database rules. Check that they are published."
    ),
    ErrorKind.NOT_FOUND: "Not found.",
    ErrorKind.INVALID_CODE: (
        "Invite code: 3-32 characters, letters, digits and hyphens only "
        "(e.g. smith-family)."
    ),
    ErrorKind.CODE_TAKEN: "This invite code is already in use.",
    ErrorKind.VALIDATION_FAILED: "Please check the highlighted fields.",
    ErrorKind.UNKNOWN: "Something went wrong.",
}


class LedgerError(Exception):
    """
    Base exception for every failure surfaced by this package.

    Subclasses pin a default kind; the kind can be overridden per instance
    when an adapter maps a backend code onto a more specific one.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: Optional[str] = None, kind: Optional[ErrorKind] = None):
        if kind is not None:
            self.kind = kind
        self.message = message or USER_MESSAGES[self.kind]
        super().__init__(self.message)


class ValidationFailedError(LedgerError):
    """Local validation failed; no backend call was attempted."""

    kind = ErrorKind.VALIDATION_FAILED

    def __init__(self, issues: Optional[list] = None, message: Optional[str] = None):
        self.issues = list(issues or [])
        if message is None:
            errors = [i for i in self.issues if getattr(i, "severity", "error") == "error"]
            if errors:
                message = errors[0].message
        super().__init__(message)


class InvalidInviteCodeError(LedgerError):
    """Invite code does not satisfy the format rule after normalization."""

    kind = ErrorKind.INVALID_CODE


class NotFoundError(LedgerError):
    """Requested document (household, invite mapping, record) does not exist."""

    kind = ErrorKind.NOT_FOUND


class CodeTakenError(LedgerError):
    """Invite code is already mapped to a different household."""

    kind = ErrorKind.CODE_TAKEN


class PermissionDeniedError(LedgerError):
    """Backend access policy rejected the operation."""

    kind = ErrorKind.PERMISSION_DENIED


class AuthError(LedgerError):
    """Authentication provider rejected the request."""

    def __init__(
        self,
        message: Optional[str] = None,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        provider_code: Optional[str] = None,
    ):
        self.provider_code = provider_code
        super().__init__(message, kind=kind)


class RegistrationIncompleteError(LedgerError):
    """
    The account was created but could not be attached to a household.

    Carries the signed-up user so the caller can keep them signed in;
    kind and message are those of the underlying failure.
    """

    def __init__(self, user, cause: LedgerError):
        self.user = user
        self.cause = cause
        super().__init__(cause.message, kind=cause.kind)


def user_message(error: BaseException) -> str:
    """
    Short user-facing message for any error.

    Kinds with a fixed text are keyed by kind. Validation failures, not-found
    and unmapped failures keep their own message. Errors from outside this
    package get the generic text.
    """
    if isinstance(error, LedgerError):
        if error.kind in _CONTEXTUAL_KINDS:
            return error.message or USER_MESSAGES[error.kind]
        return USER_MESSAGES[error.kind]
    return USER_MESSAGES[ErrorKind.UNKNOWN]


_CONTEXTUAL_KINDS = frozenset({
    ErrorKind.VALIDATION_FAILED,
    ErrorKind.NOT_FOUND,
    ErrorKind.UNKNOWN,
})
