"""
Shared fixtures.

Every test runs against the in-memory document store; nothing here talks
to Firebase.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from household_ledger.audit import AuditLogger
from household_ledger.config import AppSettings
from household_ledger.households import HouseholdResolver, HouseholdSettingsStore
from household_ledger.models.account import AuthenticatedUser
from household_ledger.services.storage import InMemoryDocumentStore
from household_ledger.transactions import TransactionStore
from household_ledger.validation import TransactionValidator


DEFAULT_WALLETS = ["Alpha Bank", "Revolut Bank"]


def run(coro):
    """Run a coroutine to completion."""
    return asyncio.run(coro)


def logged_event_types(sink: MagicMock) -> list[str]:
    """Audit event types written to a mocked structlog logger, in order."""
    return [
        kwargs["event_type"]
        for _, args, kwargs in sink.method_calls
        if args and args[0] == "audit_event"
    ]


@pytest.fixture
def app_settings():
    return AppSettings(
        default_bank_wallets=",".join(DEFAULT_WALLETS),
        invite_code_attempts=5,
        public_origin="https://ledger.example.com",
    )


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def audit_sink():
    return MagicMock()


@pytest.fixture
def audit_logger(audit_sink):
    return AuditLogger(logger=audit_sink)


@pytest.fixture
def settings_store(store):
    return HouseholdSettingsStore(store, default_bank_wallets=list(DEFAULT_WALLETS))


@pytest.fixture
def resolver(store, settings_store, audit_logger):
    return HouseholdResolver(
        store,
        settings_store,
        audit_logger=audit_logger,
        invite_code_attempts=5,
    )


@pytest.fixture
def transaction_store(store, app_settings, audit_logger):
    return TransactionStore(
        store,
        validator=TransactionValidator(app_settings),
        audit_logger=audit_logger,
    )


@pytest.fixture
def maria():
    return AuthenticatedUser(uid="uid-maria", email="maria@example.com", display_name="Maria")


@pytest.fixture
def nikos():
    return AuthenticatedUser(uid="uid-nikos", email="nikos@example.com", display_name="Nikos")
