"""Authentication services package."""

from household_ledger.services.auth.firebase_auth import (
    PROVIDER_ERROR_KINDS,
    FirebaseAuthClient,
    map_provider_error,
    provider_error_code,
)

__all__ = [
    "PROVIDER_ERROR_KINDS",
    "FirebaseAuthClient",
    "map_provider_error",
    "provider_error_code",
]
