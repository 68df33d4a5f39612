"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface over a document store.
This allows us to:
1. Run against Firestore in production
2. Use an in-memory store for tests and local demos
3. Keep household and transaction logic free of backend-specific calls

The interface is intentionally small: the handful of document primitives
the household and transaction flows actually use. Documents are addressed
by slash-separated paths (see paths.py) and carried as plain dicts.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, TypeVar

from household_ledger.errors import ErrorKind, LedgerError, NotFoundError
from household_ledger.services.storage.subscription import Subscription


T = TypeVar("T")


class _ServerTimestamp:
    """Placeholder replaced by the backend's commit time."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class DocumentTransaction(ABC):
    """
    Handle passed to a transaction callback.

    All reads must happen before the first write. Writes are buffered and
    applied together when the callback returns; if the callback raises,
    nothing is written.
    """

    @abstractmethod
    def get(self, path: str) -> Optional[dict]:
        """Read a document inside the transaction. None if absent."""
        pass

    @abstractmethod
    def set(self, path: str, data: dict, merge: bool = False) -> None:
        pass

    @abstractmethod
    def create(self, path: str, data: dict) -> None:
        """Create-only write; the commit fails with DuplicateError if present."""
        pass

    @abstractmethod
    def update(self, path: str, data: dict) -> None:
        pass

    @abstractmethod
    def delete(self, path: str) -> None:
        pass


class DocumentStore(ABC):
    """
    Abstract interface for document storage operations.

    Any storage implementation (Firestore, in-memory, etc.)
    must implement these methods.
    """

    @abstractmethod
    def new_id(self, collection_path: str) -> str:
        """
        Generate an identifier for a new document in a collection.

        No write happens; the ID is only reserved by convention.
        """
        pass

    @abstractmethod
    async def get(self, path: str) -> Optional[dict]:
        """
        Read a document.

        Args:
            path: Slash-separated document path

        Returns:
            The document fields if it exists, None otherwise

        Raises:
            PermissionDeniedError: If the backend rejects the read
            StorageError: For any other backend failure
        """
        pass

    @abstractmethod
    async def set(self, path: str, data: dict, merge: bool = False) -> None:
        """
        Write a document.

        Args:
            path: Slash-separated document path
            data: Fields to write; SERVER_TIMESTAMP values are resolved at commit
            merge: Keep fields not present in data instead of replacing the document
        """
        pass

    @abstractmethod
    async def create(self, path: str, data: dict) -> None:
        """
        Create a document that must not already exist.

        Raises:
            DuplicateError: If a document already exists at path
        """
        pass

    @abstractmethod
    async def update(self, path: str, data: dict) -> None:
        """
        Update fields of an existing document.

        Raises:
            NotFoundError: If the document doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> None:
        """
        Delete a document. Deleting an absent document is not an error.
        """
        pass

    @abstractmethod
    async def run_transaction(
        self,
        callback: Callable[[DocumentTransaction], T],
    ) -> T:
        """
        Run callback atomically.

        Args:
            callback: Synchronous function receiving a DocumentTransaction.
                     Any exception it raises aborts the transaction.

        Returns:
            Whatever the callback returned

        Raises:
            The callback's exception, unchanged, when it aborts
            DuplicateError: If a create-only write collides at commit
        """
        pass

    @abstractmethod
    def watch_collection(
        self,
        collection_path: str,
        order_by: str,
        descending: bool = True,
        transform: Optional[Callable[[str, dict], Any]] = None,
    ) -> Subscription:
        """
        Start a live query over a whole collection.

        Every change delivers the full ordered result set, not a delta.
        Documents missing the order_by field are not included.

        Args:
            collection_path: Slash-separated collection path
            order_by: Field to order by
            descending: Newest first when ordering by a timestamp
            transform: Maps (document_id, fields) to the delivered item.
                      Defaults to {"id": document_id, **fields}.

        Returns:
            Subscription delivering lists of transformed documents
        """
        pass


def default_transform(doc_id: str, data: dict) -> dict:
    return {"id": doc_id, **data}


class StorageError(LedgerError):
    """Base exception for storage operations."""

    kind = ErrorKind.UNKNOWN


class DuplicateError(StorageError):
    """Create-only write found an existing document."""
    pass


class BackendConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
