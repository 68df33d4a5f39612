"""
Authentication Service using Firebase Authentication

DESIGN DECISION: We call the Identity Toolkit REST endpoints directly:
1. Email/password is the only sign-in method the ledger offers
2. The Admin SDK cannot verify passwords, only the public endpoints can
3. A plain HTTP client keeps the error strings visible for mapping

This service handles:
1. Sign up, sign in, display name update, password reset email
2. Translating provider error strings into ErrorKind values

Calls are never retried: a second sign-up after a timeout could succeed
on the first attempt and fail with EMAIL_EXISTS on the second.
"""

from typing import Optional

import requests
import structlog

from household_ledger.config import get_settings
from household_ledger.config.settings import FirebaseSettings
from household_ledger.errors import AuthError, ErrorKind
from household_ledger.models.account import AuthenticatedUser


IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts:{action}"

# Provider error strings -> error kinds. Anything else maps to UNKNOWN.
PROVIDER_ERROR_KINDS: dict[str, ErrorKind] = {
    "EMAIL_EXISTS": ErrorKind.EMAIL_IN_USE,
    "INVALID_EMAIL": ErrorKind.INVALID_EMAIL,
    "MISSING_EMAIL": ErrorKind.INVALID_EMAIL,
    "WEAK_PASSWORD": ErrorKind.WEAK_PASSWORD,
    "MISSING_PASSWORD": ErrorKind.MISSING_PASSWORD,
    "EMAIL_NOT_FOUND": ErrorKind.USER_NOT_FOUND,
    "INVALID_PASSWORD": ErrorKind.INVALID_CREDENTIALS,
    "INVALID_LOGIN_CREDENTIALS": ErrorKind.INVALID_CREDENTIALS,
    "OPERATION_NOT_ALLOWED": ErrorKind.OPERATION_NOT_ALLOWED,
    "PASSWORD_LOGIN_DISABLED": ErrorKind.OPERATION_NOT_ALLOWED,
}


def provider_error_code(message: str) -> str:
    """
    Extract the code from a provider error message.

    "WEAK_PASSWORD : Password should be at least 6 characters" -> "WEAK_PASSWORD"
    """
    return (message or "").split(":", 1)[0].strip()


def map_provider_error(message: str) -> AuthError:
    code = provider_error_code(message)
    kind = PROVIDER_ERROR_KINDS.get(code, ErrorKind.UNKNOWN)
    return AuthError(kind=kind, provider_code=code or None)


class FirebaseAuthClient:
    """
    Email/password authentication against Firebase.

    IMPORTANT BOUNDARIES:
    1. This service only authenticates - it never touches household data
    2. Every failure surfaces as AuthError with a mapped kind
    """

    def __init__(
        self,
        settings: Optional[FirebaseSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        self._settings = settings or get_settings().firebase
        self._session = session
        self._logger = structlog.get_logger(__name__)

    def _post(self, action: str, payload: dict) -> dict:
        url = IDENTITY_TOOLKIT_URL.format(action=action)
        poster = self._session.post if self._session is not None else requests.post
        try:
            response = poster(
                url,
                params={"key": self._settings.web_api_key},
                json=payload,
                timeout=self._settings.auth_timeout_seconds,
            )
        except requests.RequestException as e:
            self._logger.error("auth_request_failed", action=action, error=str(e))
            raise AuthError(
                "Could not reach the authentication service.",
                kind=ErrorKind.UNKNOWN,
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code != 200:
            message = (body.get("error") or {}).get("message", "")
            error = map_provider_error(message)
            self._logger.warning(
                "auth_rejected",
                action=action,
                status=response.status_code,
                provider_code=error.provider_code,
                kind=error.kind.value,
            )
            raise error

        return body

    @staticmethod
    def _check_credentials(email: str, password: str) -> None:
        if not email or "@" not in email:
            raise AuthError(kind=ErrorKind.INVALID_EMAIL)
        if not password:
            raise AuthError(kind=ErrorKind.MISSING_PASSWORD)

    def sign_up(self, email: str, password: str) -> AuthenticatedUser:
        """
        Create an account.

        Args:
            email: Account email (trimmed)
            password: Plain password, sent over TLS to the provider

        Returns:
            The new user, already signed in

        Raises:
            AuthError: With EMAIL_IN_USE, WEAK_PASSWORD, INVALID_EMAIL, ...
        """
        email = (email or "").strip()
        self._check_credentials(email, password)
        data = self._post("signUp", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        return AuthenticatedUser(
            uid=data["localId"],
            email=data.get("email", email),
            display_name=data.get("displayName", ""),
            id_token=data.get("idToken"),
        )

    def sign_in(self, email: str, password: str) -> AuthenticatedUser:
        """
        Sign in with email and password.

        Raises:
            AuthError: With INVALID_CREDENTIALS, USER_NOT_FOUND, ...
        """
        email = (email or "").strip()
        self._check_credentials(email, password)
        data = self._post("signInWithPassword", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        return AuthenticatedUser(
            uid=data["localId"],
            email=data.get("email", email),
            display_name=data.get("displayName", ""),
            id_token=data.get("idToken"),
        )

    def update_display_name(self, user: AuthenticatedUser, display_name: str) -> AuthenticatedUser:
        """Set the profile display name. Returns the updated user."""
        display_name = (display_name or "").strip()
        if not display_name or not user.id_token:
            return user
        data = self._post("update", {
            "idToken": user.id_token,
            "displayName": display_name,
            "returnSecureToken": False,
        })
        return user.model_copy(update={
            "display_name": data.get("displayName", display_name),
        })

    def send_password_reset(self, email: str) -> None:
        """Ask the provider to email a password reset link."""
        email = (email or "").strip()
        if not email or "@" not in email:
            raise AuthError(kind=ErrorKind.INVALID_EMAIL)
        self._post("sendOobCode", {
            "requestType": "PASSWORD_RESET",
            "email": email,
        })
