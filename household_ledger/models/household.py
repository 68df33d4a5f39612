"""
Household Models

A household is the unit of sharing: members see and edit the same
transactions and settings. Households are found by invite code.
"""

from typing import Optional

from pydantic import BaseModel, Field


class HouseholdBootstrap(BaseModel):
    """Outcome of creating (or resuming the creation of) a household."""

    household_id: str
    invite_code: str = Field(
        ...,
        description="Normalized invite code mapped to this household"
    )


class ReconcileReport(BaseModel):
    """
    What a reconciliation pass repaired.

    `repaired` lists the bootstrap steps that had to write, in order
    (e.g. ["membership", "invite_mapping"]). An empty list means the
    household was already consistent.
    """

    household_id: str
    invite_code: str
    repaired: list[str] = Field(default_factory=list)

    @property
    def was_consistent(self) -> bool:
        return not self.repaired


class HouseholdSettings(BaseModel):
    """Per-household options shared by every member."""

    bank_wallets: list[str] = Field(
        default_factory=list,
        description="Bank/wallet labels offered for card payments and income receipts"
    )
    updated_by: Optional[str] = None
