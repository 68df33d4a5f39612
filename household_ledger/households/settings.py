"""
Household Settings

The settings document holds the bank/wallet labels a household picks from
when recording card payments and income receipts. Members can add labels;
nothing removes them.
"""

from typing import Optional

from household_ledger.config import get_settings
from household_ledger.models.household import HouseholdSettings
from household_ledger.services.storage import SERVER_TIMESTAMP, DocumentStore, DocumentTransaction
from household_ledger.services.storage.paths import settings_doc


def merge_bank_wallets(current: list[str], value: str) -> list[str]:
    """Append value unless already present, keeping first-seen order."""
    return list(dict.fromkeys([*current, value]))


class HouseholdSettingsStore:
    """Reads and writes households/{id}/meta/settings."""

    def __init__(
        self,
        store: DocumentStore,
        default_bank_wallets: Optional[list[str]] = None,
    ):
        self._store = store
        if default_bank_wallets is None:
            default_bank_wallets = get_settings().app.default_bank_wallets_list
        self._defaults = list(default_bank_wallets)

    @property
    def default_bank_wallets(self) -> list[str]:
        return list(self._defaults)

    def _wallets_from(self, data: Optional[dict]) -> list[str]:
        wallets = (data or {}).get("bankWallets")
        if not isinstance(wallets, list):
            return list(self._defaults)
        return [str(w) for w in wallets]

    async def load_settings(self, household_id: str) -> HouseholdSettings:
        """
        Load a household's settings.

        A missing document, or one without a bank/wallet list, reads as
        the default list.
        """
        data = await self._store.get(settings_doc(household_id))
        return HouseholdSettings(
            bank_wallets=self._wallets_from(data),
            updated_by=(data or {}).get("updatedBy"),
        )

    async def write_defaults(self, household_id: str, user_id: str) -> bool:
        """
        Seed the default bank/wallet list if the household has none.

        Returns True if a write happened.
        """
        path = settings_doc(household_id)
        existing = await self._store.get(path)
        if existing is not None and isinstance(existing.get("bankWallets"), list):
            return False

        await self._store.set(
            path,
            {
                "bankWallets": list(self._defaults),
                "updatedAt": SERVER_TIMESTAMP,
                "updatedBy": user_id,
            },
            merge=True,
        )
        return True

    async def add_bank_wallet(self, household_id: str, user_id: str, value: str) -> list[str]:
        """
        Add a bank/wallet label.

        Runs as a read-modify-write transaction so two members adding
        labels at the same time both keep theirs. Blank values are ignored.

        Returns:
            The household's list after the change
        """
        label = str(value or "").strip()
        if not label:
            return (await self.load_settings(household_id)).bank_wallets

        path = settings_doc(household_id)

        def _add(tx: DocumentTransaction) -> list[str]:
            current = self._wallets_from(tx.get(path))
            updated = merge_bank_wallets(current, label)
            tx.set(
                path,
                {
                    "bankWallets": updated,
                    "updatedAt": SERVER_TIMESTAMP,
                    "updatedBy": user_id,
                },
                merge=True,
            )
            return updated

        return await self._store.run_transaction(_add)
