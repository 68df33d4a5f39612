"""
Firestore Storage Implementation

DESIGN DECISION: Firestore is the production backend because:
1. Live queries push changes to every member's open session
2. Native transactions cover the invite-code rotation and settings updates
3. Access rules live next to the data (households are member-only)

TRADEOFFS:
- Multi-document writes outside a transaction are not atomic; the
  household bootstrap therefore writes idempotently and can be reconciled
- The client library is synchronous; calls run inline in async methods

Backend exceptions are translated to the package's error kinds here and
nowhere else.
"""

from contextlib import contextmanager
from typing import Any, Callable, Optional, TypeVar

import structlog
from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from household_ledger.config import get_settings
from household_ledger.config.settings import FirebaseSettings
from household_ledger.errors import LedgerError, NotFoundError, PermissionDeniedError
from household_ledger.services.storage.interface import (
    SERVER_TIMESTAMP,
    BackendConnectionError,
    DocumentStore,
    DocumentTransaction,
    DuplicateError,
    StorageError,
    default_transform,
)
from household_ledger.services.storage.subscription import Subscription


T = TypeVar("T")

logger = structlog.get_logger(__name__)


def translate_backend_error(error: Exception) -> LedgerError:
    """Map a google-api-core exception onto the package's error kinds."""
    if isinstance(error, google_exceptions.PermissionDenied):
        return PermissionDeniedError()
    if isinstance(error, google_exceptions.Unauthenticated):
        return PermissionDeniedError()
    if isinstance(error, google_exceptions.NotFound):
        return NotFoundError()
    if isinstance(error, google_exceptions.AlreadyExists):
        return DuplicateError(str(error))
    return StorageError(f"Backend request failed: {error}")


@contextmanager
def _backend_errors():
    try:
        yield
    except google_exceptions.GoogleAPICallError as e:
        raise translate_backend_error(e) from e


def _to_backend(data: dict) -> dict:
    return {
        key: (firestore.SERVER_TIMESTAMP if value is SERVER_TIMESTAMP else value)
        for key, value in data.items()
    }


class FirestoreClient:
    """
    Low-level Firestore client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[FirebaseSettings] = None):
        self._client: Optional[firestore.Client] = None
        self._settings = settings or get_settings().firebase

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> firestore.Client:
        """
        Establish connection to Firestore.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=["https://www.googleapis.com/auth/datastore"],
                )
                self._client = firestore.Client(
                    project=self._settings.project_id or credentials.project_id,
                    credentials=credentials,
                    database=self._settings.database,
                )
            except FileNotFoundError:
                raise BackendConnectionError(
                    f"Firebase credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise BackendConnectionError(f"Failed to connect to Firestore: {e}")

        return self._client


class _FirestoreTransaction(DocumentTransaction):
    def __init__(self, client: firestore.Client, transaction: firestore.Transaction):
        self._client = client
        self._transaction = transaction

    def get(self, path: str) -> Optional[dict]:
        snapshot = self._client.document(path).get(transaction=self._transaction)
        return snapshot.to_dict() if snapshot.exists else None

    def set(self, path: str, data: dict, merge: bool = False) -> None:
        self._transaction.set(self._client.document(path), _to_backend(data), merge=merge)

    def create(self, path: str, data: dict) -> None:
        self._transaction.create(self._client.document(path), _to_backend(data))

    def update(self, path: str, data: dict) -> None:
        self._transaction.update(self._client.document(path), _to_backend(data))

    def delete(self, path: str) -> None:
        self._transaction.delete(self._client.document(path))


class FirestoreDocumentStore(DocumentStore):
    """
    Firestore implementation of the document store.
    """

    def __init__(self, client: Optional[FirestoreClient] = None):
        self._client = client or FirestoreClient()

    @property
    def _db(self) -> firestore.Client:
        return self._client.connect()

    def new_id(self, collection_path: str) -> str:
        return self._db.collection(collection_path).document().id

    async def get(self, path: str) -> Optional[dict]:
        with _backend_errors():
            snapshot = self._db.document(path).get()
        return snapshot.to_dict() if snapshot.exists else None

    async def set(self, path: str, data: dict, merge: bool = False) -> None:
        with _backend_errors():
            self._db.document(path).set(_to_backend(data), merge=merge)

    async def create(self, path: str, data: dict) -> None:
        with _backend_errors():
            self._db.document(path).create(_to_backend(data))

    async def update(self, path: str, data: dict) -> None:
        with _backend_errors():
            self._db.document(path).update(_to_backend(data))

    async def delete(self, path: str) -> None:
        with _backend_errors():
            self._db.document(path).delete()

    async def run_transaction(self, callback: Callable[[DocumentTransaction], T]) -> T:
        db = self._db

        @firestore.transactional
        def _run(transaction: firestore.Transaction) -> T:
            return callback(_FirestoreTransaction(db, transaction))

        with _backend_errors():
            return _run(db.transaction())

    def watch_collection(
        self,
        collection_path: str,
        order_by: str,
        descending: bool = True,
        transform: Optional[Callable[[str, dict], Any]] = None,
    ) -> Subscription:
        transform = transform or default_transform
        subscription: Subscription = Subscription()
        query = self._db.collection(collection_path).order_by(
            order_by,
            direction=(
                firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            ),
        )

        def on_snapshot(documents, changes, read_time) -> None:
            try:
                items = [transform(doc.id, doc.to_dict() or {}) for doc in documents]
            except Exception as e:
                logger.error(
                    "snapshot_transform_failed",
                    collection=collection_path,
                    error=str(e),
                )
                subscription.fail(StorageError(f"Could not read snapshot: {e}"))
                return
            subscription.publish(items)

        with _backend_errors():
            watch = query.on_snapshot(on_snapshot)
        subscription.attach(watch.unsubscribe)
        return subscription
