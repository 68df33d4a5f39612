"""
In-Memory Document Store

Process-local implementation of the DocumentStore interface. Used by the
test suite and by local demos that run without Firebase credentials.

It keeps the semantics the household flows rely on:
- transactions are all-or-nothing and serialized
- create-only writes fail on an existing document
- server timestamps strictly increase, so ordering by createdAt is total
- live queries deliver the full ordered collection after every commit
"""

import copy
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, TypeVar
from uuid import uuid4

from household_ledger.errors import LedgerError, NotFoundError
from household_ledger.services.storage.interface import (
    SERVER_TIMESTAMP,
    DocumentStore,
    DocumentTransaction,
    DuplicateError,
    StorageError,
    default_transform,
)
from household_ledger.services.storage.subscription import Subscription


T = TypeVar("T")


def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


class _Watcher:
    def __init__(
        self,
        collection_path: str,
        order_by: str,
        descending: bool,
        transform: Callable[[str, dict], Any],
        subscription: Subscription,
    ):
        self.collection_path = collection_path
        self.order_by = order_by
        self.descending = descending
        self.transform = transform
        self.subscription = subscription


class _MemoryTransaction(DocumentTransaction):
    """Buffers writes; reads see committed state only."""

    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        self.writes: list[tuple[str, str, Optional[dict], bool]] = []

    def get(self, path: str) -> Optional[dict]:
        if self.writes:
            raise StorageError("Transaction reads must happen before writes")
        self._store._check_failure("get", path)
        return self._store._read(path)

    def set(self, path: str, data: dict, merge: bool = False) -> None:
        self.writes.append(("set", path, dict(data), merge))

    def create(self, path: str, data: dict) -> None:
        self.writes.append(("create", path, dict(data), False))

    def update(self, path: str, data: dict) -> None:
        self.writes.append(("update", path, dict(data), False))

    def delete(self, path: str) -> None:
        self.writes.append(("delete", path, None, False))


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed document store.

    Usage:
        store = InMemoryDocumentStore()
        await store.set("users/u1", {"householdId": "h1"})
        store.fail_next("create", "inviteCodes/", PermissionDeniedError())
    """

    def __init__(self):
        self._docs: dict[str, dict] = {}
        self._lock = threading.RLock()
        self._watchers: dict[int, _Watcher] = {}
        self._next_watcher = 0
        self._last_timestamp: Optional[datetime] = None
        self._failures: list[tuple[str, str, LedgerError]] = []

    # ------------------------------------------------------------------
    # Test hooks
    # ------------------------------------------------------------------

    def fail_next(self, operation: str, path_prefix: str, error: LedgerError) -> None:
        """
        Make the next matching operation raise error (one shot).

        operation is one of get, set, create, update, delete, commit.
        A path matches when it starts with path_prefix.
        """
        with self._lock:
            self._failures.append((operation, path_prefix, error))

    def dump(self) -> dict[str, dict]:
        """Deep copy of every stored document keyed by path."""
        with self._lock:
            return copy.deepcopy(self._docs)

    def _check_failure(self, operation: str, path: str) -> None:
        for i, (op, prefix, error) in enumerate(self._failures):
            if op == operation and path.startswith(prefix):
                del self._failures[i]
                raise error

    # ------------------------------------------------------------------
    # DocumentStore
    # ------------------------------------------------------------------

    def new_id(self, collection_path: str) -> str:
        return uuid4().hex[:20]

    async def get(self, path: str) -> Optional[dict]:
        with self._lock:
            self._check_failure("get", path)
            return self._read(path)

    async def set(self, path: str, data: dict, merge: bool = False) -> None:
        self._commit([("set", path, dict(data), merge)])

    async def create(self, path: str, data: dict) -> None:
        self._commit([("create", path, dict(data), False)])

    async def update(self, path: str, data: dict) -> None:
        self._commit([("update", path, dict(data), False)])

    async def delete(self, path: str) -> None:
        self._commit([("delete", path, None, False)])

    async def run_transaction(self, callback: Callable[[DocumentTransaction], T]) -> T:
        with self._lock:
            tx = _MemoryTransaction(self)
            result = callback(tx)
            self._commit(tx.writes, transactional=True)
            return result

    def watch_collection(
        self,
        collection_path: str,
        order_by: str,
        descending: bool = True,
        transform: Optional[Callable[[str, dict], Any]] = None,
    ) -> Subscription:
        subscription: Subscription = Subscription()
        watcher = _Watcher(
            collection_path=collection_path,
            order_by=order_by,
            descending=descending,
            transform=transform or default_transform,
            subscription=subscription,
        )
        with self._lock:
            watcher_id = self._next_watcher
            self._next_watcher += 1
            self._watchers[watcher_id] = watcher
            self._deliver(watcher)

        def unsubscribe() -> None:
            with self._lock:
                self._watchers.pop(watcher_id, None)

        subscription.attach(unsubscribe)
        return subscription

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _read(self, path: str) -> Optional[dict]:
        doc = self._docs.get(path)
        return copy.deepcopy(doc) if doc is not None else None

    def _timestamp(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    @staticmethod
    def _resolve(data: dict, now: datetime) -> dict:
        return {
            key: (now if value is SERVER_TIMESTAMP else copy.deepcopy(value))
            for key, value in data.items()
        }

    def _commit(
        self,
        writes: list[tuple[str, str, Optional[dict], bool]],
        transactional: bool = False,
    ) -> None:
        with self._lock:
            if transactional and writes:
                self._check_failure("commit", writes[0][1])

            now = self._timestamp()
            staged: dict[str, Optional[dict]] = {}

            def current(path: str) -> Optional[dict]:
                if path in staged:
                    return staged[path]
                return self._docs.get(path)

            for operation, path, data, merge in writes:
                if not transactional:
                    self._check_failure(operation, path)
                existing = current(path)

                if operation == "create":
                    if existing is not None:
                        raise DuplicateError(f"Document already exists: {path}")
                    staged[path] = self._resolve(data, now)
                elif operation == "update":
                    if existing is None:
                        raise NotFoundError(f"No document to update: {path}")
                    staged[path] = {**existing, **self._resolve(data, now)}
                elif operation == "set":
                    if merge and existing is not None:
                        staged[path] = {**existing, **self._resolve(data, now)}
                    else:
                        staged[path] = self._resolve(data, now)
                elif operation == "delete":
                    staged[path] = None
                else:
                    raise StorageError(f"Unknown write operation: {operation}")

            for path, doc in staged.items():
                if doc is None:
                    self._docs.pop(path, None)
                else:
                    self._docs[path] = doc

            touched = {_parent(path) for path in staged}
            for watcher in list(self._watchers.values()):
                if watcher.collection_path in touched:
                    self._deliver(watcher)

    def _deliver(self, watcher: _Watcher) -> None:
        rows = [
            (path.rsplit("/", 1)[1], doc)
            for path, doc in self._docs.items()
            if _parent(path) == watcher.collection_path and watcher.order_by in doc
        ]
        rows.sort(key=lambda row: row[1][watcher.order_by], reverse=watcher.descending)
        try:
            snapshot = [watcher.transform(doc_id, copy.deepcopy(doc)) for doc_id, doc in rows]
        except LedgerError as e:
            watcher.subscription.fail(e)
            return
        except Exception as e:
            watcher.subscription.fail(StorageError(f"Could not read snapshot: {e}"))
            return
        watcher.subscription.publish(snapshot)
