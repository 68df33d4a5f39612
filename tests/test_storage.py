"""
Tests for the document store layer.

The in-memory store stands in for Firestore everywhere else in the suite,
so its semantics (create-only writes, atomic transactions, ordered live
queries) are pinned down here.
"""

import asyncio

import pytest

from conftest import run
from household_ledger.errors import NotFoundError, PermissionDeniedError
from household_ledger.services.storage import (
    SERVER_TIMESTAMP,
    DuplicateError,
    InMemoryDocumentStore,
    StorageError,
    Subscription,
)
from household_ledger.services.storage.paths import (
    invite_code_doc,
    member_doc,
    settings_doc,
    transaction_doc,
    transactions_collection,
    user_doc,
)


class TestPaths:
    """Tests for document path builders."""

    def test_paths(self):
        """Test the document layout."""
        assert user_doc("u1") == "users/u1"
        assert member_doc("h1", "u1") == "households/h1/members/u1"
        assert settings_doc("h1") == "households/h1/meta/settings"
        assert transaction_doc("h1", "t1") == "households/h1/transactions/t1"
        assert invite_code_doc("smith-family") == "inviteCodes/smith-family"

    def test_rejects_bad_segments(self):
        """Test that empty IDs and slashes never build a path."""
        with pytest.raises(ValueError):
            user_doc("")
        with pytest.raises(ValueError):
            invite_code_doc("a/b")


class TestInMemoryDocumentStore:
    """Tests for InMemoryDocumentStore writes."""

    def test_set_get_roundtrip_and_copy(self):
        """Test that reads return copies, not live references."""
        store = InMemoryDocumentStore()
        run(store.set("users/u1", {"householdId": "h1"}))
        data = run(store.get("users/u1"))
        data["householdId"] = "changed"
        assert run(store.get("users/u1")) == {"householdId": "h1"}

    def test_missing_document(self):
        """Test that a missing document reads as None."""
        assert run(InMemoryDocumentStore().get("users/nobody")) is None

    def test_create_only(self):
        """Test that create fails on an existing document."""
        store = InMemoryDocumentStore()
        run(store.create("inviteCodes/abc", {"householdId": "h1"}))
        with pytest.raises(DuplicateError):
            run(store.create("inviteCodes/abc", {"householdId": "h2"}))
        assert run(store.get("inviteCodes/abc")) == {"householdId": "h1"}

    def test_update_requires_existing(self):
        """Test that update fails on a missing document."""
        with pytest.raises(NotFoundError):
            run(InMemoryDocumentStore().update("households/h1", {"inviteCode": "x"}))

    def test_merge(self):
        """Test set with and without merge."""
        store = InMemoryDocumentStore()
        run(store.set("users/u1", {"a": 1, "b": 2}))
        run(store.set("users/u1", {"b": 3}, merge=True))
        assert run(store.get("users/u1")) == {"a": 1, "b": 3}
        run(store.set("users/u1", {"c": 4}))
        assert run(store.get("users/u1")) == {"c": 4}

    def test_server_timestamps_increase(self):
        """Test that each commit gets a later timestamp."""
        store = InMemoryDocumentStore()
        run(store.set("a/1", {"at": SERVER_TIMESTAMP}))
        run(store.set("a/2", {"at": SERVER_TIMESTAMP}))
        first = run(store.get("a/1"))["at"]
        second = run(store.get("a/2"))["at"]
        assert second > first

    def test_fail_next_is_one_shot(self):
        """Test the failure injection hook."""
        store = InMemoryDocumentStore()
        store.fail_next("set", "users/", PermissionDeniedError())
        with pytest.raises(PermissionDeniedError):
            run(store.set("users/u1", {"x": 1}))
        assert run(store.get("users/u1")) is None
        run(store.set("users/u1", {"x": 1}))
        assert run(store.get("users/u1")) == {"x": 1}


class TestTransactions:
    """Tests for run_transaction."""

    def test_all_writes_apply(self):
        """Test that a transaction's writes land together."""
        store = InMemoryDocumentStore()
        run(store.set("households/h1", {"inviteCode": "old"}))

        def rotate(tx):
            tx.get("households/h1")
            tx.set("inviteCodes/new", {"householdId": "h1"})
            tx.update("households/h1", {"inviteCode": "new"})
            return "done"

        assert run(store.run_transaction(rotate)) == "done"
        assert run(store.get("inviteCodes/new")) == {"householdId": "h1"}
        assert run(store.get("households/h1"))["inviteCode"] == "new"

    def test_nothing_applies_on_failure(self):
        """Test that one failing write discards the others."""
        store = InMemoryDocumentStore()
        run(store.create("inviteCodes/taken", {"householdId": "h2"}))

        def clash(tx):
            tx.set("households/h1", {"inviteCode": "taken"})
            tx.create("inviteCodes/taken", {"householdId": "h1"})

        with pytest.raises(DuplicateError):
            run(store.run_transaction(clash))
        assert run(store.get("households/h1")) is None

    def test_injected_commit_failure(self):
        """Test that a rejected commit writes nothing."""
        store = InMemoryDocumentStore()
        store.fail_next("commit", "inviteCodes/", PermissionDeniedError())

        def write(tx):
            tx.set("inviteCodes/abc", {"householdId": "h1"})

        with pytest.raises(PermissionDeniedError):
            run(store.run_transaction(write))
        assert store.dump() == {}

    def test_read_after_write_rejected(self):
        """Test that transactions read everything before writing."""
        store = InMemoryDocumentStore()

        def bad(tx):
            tx.set("a/1", {"x": 1})
            tx.get("a/2")

        with pytest.raises(StorageError):
            run(store.run_transaction(bad))


class TestLiveQueries:
    """Tests for watch_collection and Subscription."""

    def _add(self, store, tx_id, created):
        run(store.set(transaction_doc("h1", tx_id), {"createdAt": created, "amount": 1}))

    def test_initial_snapshot_ordered(self):
        """Test that the first snapshot is the whole collection, newest first."""
        store = InMemoryDocumentStore()
        self._add(store, "old", 1)
        self._add(store, "new", 2)
        run(store.set(transaction_doc("h1", "pending"), {"amount": 3}))

        sub = store.watch_collection(transactions_collection("h1"), order_by="createdAt")
        assert [row["id"] for row in sub.latest] == ["new", "old"]
        sub.close()

    def test_snapshot_after_each_write(self):
        """Test that writes to the collection publish a new full snapshot."""
        store = InMemoryDocumentStore()
        sub = store.watch_collection(transactions_collection("h1"), order_by="createdAt")
        assert sub.latest == []
        self._add(store, "a", 1)
        assert [row["id"] for row in sub.latest] == ["a"]
        run(store.delete(transaction_doc("h1", "a")))
        assert sub.latest == []
        sub.close()

    def test_other_collections_ignored(self):
        """Test that another household's writes do not reach the subscriber."""
        store = InMemoryDocumentStore()
        sub = store.watch_collection(transactions_collection("h1"), order_by="createdAt")
        run(store.set(transaction_doc("h2", "x"), {"createdAt": 1}))
        assert sub.latest == []
        sub.close()

    def test_close_stops_delivery(self):
        """Test that nothing arrives after close, and close is repeatable."""
        store = InMemoryDocumentStore()
        sub = store.watch_collection(transactions_collection("h1"), order_by="createdAt")
        sub.close()
        sub.close()
        self._add(store, "a", 1)
        assert sub.closed
        assert sub.latest == []

    def test_context_manager_closes(self):
        """Test that leaving the with block closes the subscription."""
        store = InMemoryDocumentStore()
        with store.watch_collection(transactions_collection("h1"), order_by="createdAt") as sub:
            assert not sub.closed
        assert sub.closed

    def test_transform_failure_fails_subscription(self):
        """Test that an unreadable snapshot closes the feed with an error."""
        store = InMemoryDocumentStore()
        self._add(store, "a", 1)

        def broken(doc_id, data):
            raise KeyError("amount")

        sub = store.watch_collection(
            transactions_collection("h1"), order_by="createdAt", transform=broken
        )
        assert sub.closed
        assert isinstance(sub.error, StorageError)

    def test_async_iteration(self):
        """Test consuming snapshots with async for."""
        store = InMemoryDocumentStore()

        async def consume():
            seen = []
            sub = store.watch_collection(transactions_collection("h1"), order_by="createdAt")
            async with sub:
                async for snapshot in sub:
                    seen.append([row["id"] for row in snapshot])
                    if len(seen) == 1:
                        await store.set(transaction_doc("h1", "a"), {"createdAt": 1})
                    else:
                        break
            return seen, sub.closed

        seen, closed = run(consume())
        assert seen == [[], ["a"]]
        assert closed

    def test_async_iteration_ends_on_close(self):
        """Test that a closed subscription ends iteration after the last snapshot."""
        sub = Subscription()
        sub.publish(["first"])
        sub.close()

        async def consume():
            return [snapshot async for snapshot in sub]

        assert run(consume()) == [["first"]]

    def test_async_iteration_wakes_on_publish(self):
        """Test that a waiting consumer is woken by a later publish."""
        sub = Subscription()

        async def consume():
            async def producer():
                await asyncio.sleep(0.01)
                sub.publish(["late"])

            task = asyncio.ensure_future(producer())
            snapshot = await sub.__anext__()
            await task
            return snapshot

        assert run(consume()) == ["late"]

    def test_async_iteration_raises_failure(self):
        """Test that a listener failure surfaces from the iterator."""
        sub = Subscription()
        sub.fail(PermissionDeniedError())

        async def consume():
            async for _ in sub:
                pass

        with pytest.raises(PermissionDeniedError):
            run(consume())

    def test_attach_after_close_tears_down(self):
        """Test that a listener attached to a closed handle is removed at once."""
        calls = []
        sub = Subscription()
        sub.close()
        sub.attach(lambda: calls.append("unsubscribed"))
        assert calls == ["unsubscribed"]
