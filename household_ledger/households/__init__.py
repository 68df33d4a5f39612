"""Household identity, invite codes and shared settings."""

from household_ledger.households.invite_codes import (
    build_invite_link,
    fallback_invite_code,
    invite_code_from_input,
    invite_code_from_url,
    is_valid_invite_code,
    normalize_invite_code,
    propose_invite_code,
    random_suffix,
)
from household_ledger.households.resolver import HouseholdResolver
from household_ledger.households.settings import HouseholdSettingsStore, merge_bank_wallets

__all__ = [
    # Invite codes
    "build_invite_link",
    "fallback_invite_code",
    "invite_code_from_input",
    "invite_code_from_url",
    "is_valid_invite_code",
    "normalize_invite_code",
    "propose_invite_code",
    "random_suffix",
    # Resolver
    "HouseholdResolver",
    # Settings
    "HouseholdSettingsStore",
    "merge_bank_wallets",
]
