"""
Integration tests for the orchestrator flows.

Authentication is a mock; households and transactions run against the
in-memory document store.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from conftest import logged_event_types, run
from household_ledger.errors import (
    AuthError,
    ErrorKind,
    InvalidInviteCodeError,
    NotFoundError,
    PermissionDeniedError,
    RegistrationIncompleteError,
    ValidationFailedError,
)
from household_ledger.models.account import AuthenticatedUser
from household_ledger.models.transaction import TransactionDraft
from household_ledger.orchestrator import (
    AccountFlow,
    HouseholdFlow,
    TransactionFlow,
    create_app_components,
)
from household_ledger.services.auth import FirebaseAuthClient
from household_ledger.services.storage import InMemoryDocumentStore, StorageError
from household_ledger.services.storage.paths import member_doc
from household_ledger.transactions import MonthWindow


@pytest.fixture
def auth_client():
    client = MagicMock(spec=FirebaseAuthClient)

    def sign_up(email, password):
        return AuthenticatedUser(uid=f"uid-{email.split('@')[0]}", email=email, id_token="t")

    def update_display_name(user, name):
        return user.model_copy(update={"display_name": name})

    client.sign_up.side_effect = sign_up
    client.update_display_name.side_effect = update_display_name
    return client


@pytest.fixture
def account_flow(auth_client, resolver, audit_logger):
    return AccountFlow(auth_client, resolver, audit_logger=audit_logger)


@pytest.fixture
def household_flow(resolver, settings_store, app_settings, audit_logger):
    return HouseholdFlow(resolver, settings_store, app_settings=app_settings, audit_logger=audit_logger)


@pytest.fixture
def transaction_flow(transaction_store, audit_logger):
    return TransactionFlow(transaction_store, audit_logger=audit_logger)


class TestAccountFlow:
    """Tests for registration and sign-in."""

    def test_register_creates_household(self, account_flow, resolver, audit_sink):
        """Test that registering without a code starts a household."""
        user, household_id = run(account_flow.register(
            "maria@example.com", "secret1", "secret1", display_name="Maria"
        ))
        assert user.display_name == "Maria"
        assert run(resolver.load_household_for_user(user.uid)) == household_id
        assert run(resolver.get_invite_code(household_id)).startswith("maria-")
        assert logged_event_types(audit_sink) == ["user_registered", "household_created"]

    def test_register_with_invite_joins(self, account_flow, resolver):
        """Test that registering with a code joins that household."""
        _, household_id = run(account_flow.register("maria@example.com", "secret1", "secret1", "Maria"))
        run(resolver.rotate_invite_code(household_id, "smith-family", "uid-maria"))

        user, joined = run(account_flow.register(
            "nikos@example.com", "secret1", "secret1", "Nikos", invite_code="Smith Family"
        ))
        assert joined == household_id
        assert run(resolver.load_household_for_user(user.uid)) == household_id

    def test_password_mismatch_creates_no_account(self, account_flow, auth_client):
        """Test that a local check fails before sign-up."""
        with pytest.raises(ValidationFailedError):
            run(account_flow.register("maria@example.com", "secret1", "secret2"))
        auth_client.sign_up.assert_not_called()

    def test_malformed_invite_creates_no_account(self, account_flow, auth_client):
        """Test that a bad code fails before sign-up."""
        with pytest.raises(InvalidInviteCodeError):
            run(account_flow.register("maria@example.com", "secret1", "secret1", invite_code="ab"))
        auth_client.sign_up.assert_not_called()

    def test_unknown_invite_after_sign_up(self, account_flow, auth_client, resolver):
        """Test that an unmapped code still hands back the signed-up user."""
        with pytest.raises(RegistrationIncompleteError) as exc_info:
            run(account_flow.register(
                "maria@example.com", "secret1", "secret1", invite_code="no-such-code"
            ))
        assert exc_info.value.user.uid == "uid-maria"
        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert isinstance(exc_info.value.cause, NotFoundError)
        assert run(resolver.load_household_for_user("uid-maria")) is None

    def test_register_with_pasted_link(self, account_flow, resolver):
        """Test that a full invite link works in place of the code."""
        _, household_id = run(account_flow.register("maria@example.com", "secret1", "secret1", "Maria"))
        run(resolver.rotate_invite_code(household_id, "smith-family", "uid-maria"))

        _, joined = run(account_flow.register(
            "nikos@example.com", "secret1", "secret1", "Nikos",
            invite_code="https://ledger.example.com/?invite=smith-family",
        ))
        assert joined == household_id

    def test_auth_failure_is_audited(self, account_flow, auth_client, audit_sink):
        """Test that provider rejections are logged and re-raised."""
        auth_client.sign_up.side_effect = AuthError(kind=ErrorKind.EMAIL_IN_USE)
        with pytest.raises(AuthError):
            run(account_flow.register("maria@example.com", "secret1", "secret1"))
        assert logged_event_types(audit_sink) == ["auth_failed"]

    def test_sign_in_resolves_household(self, account_flow, auth_client, resolver, store, maria):
        """Test that sign-in finds the household and tops up membership."""
        result = run(resolver.create_household_with_invite(maria.uid, "Maria"))
        run(store.delete(member_doc(result.household_id, maria.uid)))
        auth_client.sign_in.return_value = maria

        user, household_id = run(account_flow.sign_in("maria@example.com", "secret1"))
        assert user == maria
        assert household_id == result.household_id
        assert store.dump()[member_doc(household_id, maria.uid)]["uid"] == maria.uid

    def test_sign_in_without_household(self, account_flow, auth_client, maria):
        """Test that a user with no pointer signs in with no household."""
        auth_client.sign_in.return_value = maria
        assert run(account_flow.sign_in("maria@example.com", "secret1")) == (maria, None)

    def test_membership_topup_failure_does_not_block(self, account_flow, auth_client, resolver, store, maria):
        """Test that a denied membership write still signs the user in."""
        result = run(resolver.create_household_with_invite(maria.uid, "Maria"))
        run(store.delete(member_doc(result.household_id, maria.uid)))
        store.fail_next("set", "households/", PermissionDeniedError())
        auth_client.sign_in.return_value = maria

        _, household_id = run(account_flow.sign_in("maria@example.com", "secret1"))
        assert household_id == result.household_id

    def test_password_reset_needs_email(self, account_flow, auth_client):
        """Test that an empty email is refused locally."""
        with pytest.raises(ValidationFailedError):
            run(account_flow.send_password_reset("  "))
        auth_client.send_password_reset.assert_not_called()

    def test_unconfigured_authentication(self, resolver):
        """Test the error when no auth client was configured."""
        flow = AccountFlow(None, resolver)
        with pytest.raises(AuthError) as exc_info:
            run(flow.sign_in("maria@example.com", "secret1"))
        assert exc_info.value.kind == ErrorKind.OPERATION_NOT_ALLOWED


class TestHouseholdFlow:
    """Tests for household actions."""

    def test_create_join_and_link(self, household_flow, maria, nikos):
        """Test starting a household and inviting a second member."""
        created = run(household_flow.create_now(maria))
        code = run(household_flow.rotate_invite(created.household_id, maria, "Smith Family"))
        assert run(household_flow.invite_code(created.household_id)) == "smith-family"
        assert household_flow.invite_link(code) == "https://ledger.example.com/?invite=smith-family"
        assert run(household_flow.join_now(nikos, code)) == created.household_id

    def test_join_requires_code(self, household_flow, nikos):
        """Test that an empty code is refused."""
        with pytest.raises(InvalidInviteCodeError):
            run(household_flow.join_now(nikos, "  "))

    def test_bank_wallets(self, household_flow, maria, audit_sink):
        """Test loading and adding bank/wallet labels."""
        created = run(household_flow.create_now(maria))
        wallets = run(household_flow.add_bank_wallet(created.household_id, maria, "Wise"))
        assert wallets[-1] == "Wise"
        assert run(household_flow.load_settings(created.household_id)).bank_wallets == wallets
        assert logged_event_types(audit_sink)[-1] == "bank_wallet_added"

    def test_join_with_pasted_link(self, household_flow, maria, nikos):
        """Test that the join field accepts an invite link."""
        created = run(household_flow.create_now(maria))
        code = run(household_flow.rotate_invite(created.household_id, maria, "smith-family"))
        link = household_flow.invite_link(code)
        assert run(household_flow.join_now(nikos, link)) == created.household_id

    def test_bank_wallet_backend_error_is_audited(self, household_flow, store, maria, audit_sink):
        """Test that a rejected bank/wallet write is logged and re-raised."""
        created = run(household_flow.create_now(maria))
        store.fail_next("commit", f"households/{created.household_id}/", PermissionDeniedError())
        with pytest.raises(PermissionDeniedError):
            run(household_flow.add_bank_wallet(created.household_id, maria, "Wise"))
        assert logged_event_types(audit_sink)[-1] == "backend_error"

    def test_reconcile(self, household_flow, maria):
        """Test the repair entry point."""
        created = run(household_flow.create_now(maria))
        report = run(household_flow.reconcile(created.household_id, maria))
        assert report.was_consistent


class TestTransactionFlow:
    """Tests for saving, deleting and exporting."""

    def draft(self, **overrides):
        values = {"date": "2024-03-10", "amount": "20"}
        values.update(overrides)
        return TransactionDraft(**values)

    def test_check_reports_warnings(self, transaction_flow):
        """Test that a plausible-but-odd draft is valid with a warning text."""
        result, summary = transaction_flow.check(self.draft(date="2999-01-01"))
        assert result.is_valid
        assert "more than a month in the future" in summary

        result, summary = transaction_flow.check(self.draft(amount=""))
        assert not result.is_valid
        assert summary.startswith("❌")

    def test_save_creates_then_updates(self, transaction_flow, maria):
        """Test that save creates, and updates when editing."""
        with transaction_flow.subscribe("h1") as feed:
            tx_id = run(transaction_flow.save("h1", maria, self.draft()))
            assert run(transaction_flow.save("h1", maria, self.draft(amount="25"), editing_id=tx_id)) == tx_id
            [t] = feed.latest
            assert t.amount == Decimal("25")

    def test_resubscribe_after_failure(self, transaction_flow, maria):
        """Test that a failed feed stays closed and a new one picks up the records."""
        failed = transaction_flow.subscribe("h1")
        failed.fail(StorageError("listener lost"))
        assert failed.closed
        assert failed.error is not None

        run(transaction_flow.save("h1", maria, self.draft()))
        with transaction_flow.subscribe("h1") as fresh:
            assert not fresh.closed
            assert len(fresh.latest) == 1

    def test_delete(self, transaction_flow, maria):
        """Test that delete removes the record."""
        tx_id = run(transaction_flow.save("h1", maria, self.draft()))
        run(transaction_flow.delete("h1", maria, tx_id))
        with transaction_flow.subscribe("h1") as feed:
            assert feed.latest == []

    def test_summarize_and_export(self, transaction_flow, maria, audit_sink):
        """Test totals and export over the selected month."""
        run(transaction_flow.save("h1", maria, self.draft()))
        run(transaction_flow.save("h1", maria, self.draft(date="2024-02-01")))
        with transaction_flow.subscribe("h1") as feed:
            records = feed.latest

        window = MonthWindow(month="2024-03")
        visible, totals = transaction_flow.summarize(records, window)
        assert len(visible) == 1
        assert totals.count == 1

        name, content, mime = run(transaction_flow.export("h1", maria, records, window, "csv"))
        assert name == "transactions_2024-03.csv"
        assert mime == "text/csv"
        assert content.decode("utf-8").count("\n") == 2
        assert logged_event_types(audit_sink)[-1] == "export_generated"

    def test_unknown_export_format(self, transaction_flow, maria):
        """Test that only csv and xlsx are offered."""
        with pytest.raises(ValueError):
            run(transaction_flow.export("h1", maria, [], MonthWindow(month="2024-03"), "pdf"))


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_local_components(self):
        """Test that the factory wires the flows over one store."""
        account_flow, household_flow, transaction_flow, store = create_app_components(
            use_backend=False
        )
        assert isinstance(store, InMemoryDocumentStore)
        assert isinstance(account_flow, AccountFlow)
        assert isinstance(household_flow, HouseholdFlow)
        assert isinstance(transaction_flow, TransactionFlow)

    def test_given_store_is_used(self, store, maria):
        """Test that an injected store backs every flow."""
        _, household_flow, _, used = create_app_components(store=store)
        assert used is store
        created = run(household_flow.create_now(maria))
        assert any(path.startswith(f"households/{created.household_id}") for path in store.dump())
