"""Services package."""

from household_ledger.services.auth import FirebaseAuthClient
from household_ledger.services.storage import (
    SERVER_TIMESTAMP,
    BackendConnectionError,
    DocumentStore,
    DocumentTransaction,
    DuplicateError,
    FirestoreClient,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    StorageError,
    Subscription,
)

__all__ = [
    # Authentication
    "FirebaseAuthClient",
    # Storage services
    "SERVER_TIMESTAMP",
    "BackendConnectionError",
    "DocumentStore",
    "DocumentTransaction",
    "DuplicateError",
    "FirestoreClient",
    "FirestoreDocumentStore",
    "InMemoryDocumentStore",
    "NotFoundError",
    "StorageError",
    "Subscription",
]
