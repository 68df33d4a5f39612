"""
Storage Services Package

Provides the abstract document store interface and its implementations.
Firestore is the production backend; the in-memory store backs tests and
local demos.
"""

from household_ledger.services.storage import paths
from household_ledger.services.storage.interface import (
    SERVER_TIMESTAMP,
    BackendConnectionError,
    DocumentStore,
    DocumentTransaction,
    DuplicateError,
    NotFoundError,
    StorageError,
)
from household_ledger.services.storage.subscription import Subscription
from household_ledger.services.storage.memory import InMemoryDocumentStore
from household_ledger.services.storage.firestore import (
    FirestoreClient,
    FirestoreDocumentStore,
    translate_backend_error,
)

__all__ = [
    "paths",
    # Interfaces
    "DocumentStore",
    "DocumentTransaction",
    "SERVER_TIMESTAMP",
    "Subscription",
    # Exceptions
    "BackendConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Firestore implementation
    "FirestoreClient",
    "FirestoreDocumentStore",
    "translate_backend_error",
    # In-memory implementation
    "InMemoryDocumentStore",
]
