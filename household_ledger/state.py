"""
Application State

DESIGN DECISION: The UI keeps one immutable AppState. Every user action
is a pure function (state, inputs) -> new state; the Streamlit layer only
stores the current value and renders it. This keeps the many small flags
of the screen (auth mode, form fields, filter mode) in one place and
makes each transition testable without a browser.

Side effects (backend calls) happen in the orchestrator flows; reducers
only record their outcomes.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from household_ledger.households.invite_codes import invite_code_from_input, normalize_invite_code
from household_ledger.models.account import AuthenticatedUser
from household_ledger.models.transaction import (
    Transaction,
    TransactionDraft,
    TransactionTotals,
    TransactionType,
)
from household_ledger.transactions.filters import (
    MonthWindow,
    RangeWindow,
    TransactionWindow,
    apply_window,
    current_month,
    summarize,
)


class AuthMode(str, Enum):
    LOGIN = "login"
    REGISTER = "register"


class FilterMode(str, Enum):
    MONTH = "month"
    RANGE = "range"


class AuthFormState(BaseModel):
    """Sign-in / registration form."""
    model_config = ConfigDict(frozen=True)

    mode: AuthMode = AuthMode.LOGIN
    email: str = ""
    display_name: str = ""
    invite_code: str = Field(
        default="",
        description="Invite code to join on registration; empty creates a household"
    )
    error: str = ""
    notice: str = ""


class FilterState(BaseModel):
    """Which transactions the list and totals cover."""
    model_config = ConfigDict(frozen=True)

    mode: FilterMode = FilterMode.MONTH
    month: str = Field(default_factory=current_month)
    range_start: str = ""
    range_end: str = ""

    @property
    def window(self) -> TransactionWindow:
        if self.mode == FilterMode.RANGE:
            return RangeWindow(start=self.range_start, end=self.range_end)
        return MonthWindow(month=self.month)


class TransactionFormState(BaseModel):
    """Add / edit transaction form."""
    model_config = ConfigDict(frozen=True)

    editing_id: Optional[str] = None
    draft: TransactionDraft = Field(default_factory=TransactionDraft)

    @property
    def is_editing(self) -> bool:
        return self.editing_id is not None


class AppState(BaseModel):
    """Everything the screen shows."""
    model_config = ConfigDict(frozen=True)

    user: Optional[AuthenticatedUser] = None
    household_id: Optional[str] = None
    invite_code: str = ""
    transactions: tuple[Transaction, ...] = ()
    bank_wallets: tuple[str, ...] = ()
    auth: AuthFormState = Field(default_factory=AuthFormState)
    filters: FilterState = Field(default_factory=FilterState)
    form: TransactionFormState = Field(default_factory=TransactionFormState)

    @property
    def visible_transactions(self) -> list[Transaction]:
        return apply_window(self.transactions, self.filters.window)

    @property
    def totals(self) -> TransactionTotals:
        return summarize(self.visible_transactions)


# =============================================================================
# REDUCERS
# =============================================================================

def _blank_draft(bank_wallets: tuple[str, ...], today: Optional[date]) -> TransactionDraft:
    return TransactionDraft(
        date=(today or date.today()).isoformat(),
        income_receipt_method=bank_wallets[0] if bank_wallets else "",
    )


def initial_state(invite_from_url: str = "", today: Optional[date] = None) -> AppState:
    """State of a fresh visit. An invite link opens the registration form."""
    code = normalize_invite_code(invite_from_url)
    return AppState(
        auth=AuthFormState(
            mode=AuthMode.REGISTER if code else AuthMode.LOGIN,
            invite_code=code,
        ),
        filters=FilterState(month=current_month(today)),
        form=TransactionFormState(draft=_blank_draft((), today)),
    )


def switch_auth_mode(state: AppState, mode: AuthMode) -> AppState:
    return state.model_copy(update={
        "auth": state.auth.model_copy(update={"mode": mode, "error": "", "notice": ""}),
    })


def invite_prefilled(state: AppState, code: str) -> AppState:
    """Carry an invite code (typed or from a link) into the auth form."""
    normalized = invite_code_from_input(code)
    update = {"invite_code": normalized}
    if normalized:
        update["mode"] = AuthMode.REGISTER
    return state.model_copy(update={"auth": state.auth.model_copy(update=update)})


def auth_failed(state: AppState, message: str) -> AppState:
    return state.model_copy(update={
        "auth": state.auth.model_copy(update={"error": message, "notice": ""}),
    })


def auth_notice(state: AppState, message: str) -> AppState:
    return state.model_copy(update={
        "auth": state.auth.model_copy(update={"error": "", "notice": message}),
    })


def signed_in(state: AppState, user: AuthenticatedUser) -> AppState:
    return state.model_copy(update={
        "user": user,
        "auth": AuthFormState(mode=state.auth.mode),
    })


def signed_out(state: AppState, invite_from_url: str = "", today: Optional[date] = None) -> AppState:
    """Back to a fresh visit; nothing of the previous user survives."""
    return initial_state(invite_from_url, today)


def household_resolved(
    state: AppState,
    household_id: Optional[str],
    invite_code: str = "",
) -> AppState:
    """
    Record the user's household.

    A different household clears the transactions of the previous one.
    """
    if household_id == state.household_id:
        return state.model_copy(update={"invite_code": invite_code or state.invite_code})
    return state.model_copy(update={
        "household_id": household_id,
        "invite_code": invite_code,
        "transactions": (),
        "form": TransactionFormState(draft=_blank_draft(state.bank_wallets, None)),
    })


def invite_code_loaded(state: AppState, code: str) -> AppState:
    return state.model_copy(update={"invite_code": normalize_invite_code(code)})


def snapshot_received(state: AppState, transactions: list[Transaction]) -> AppState:
    """Replace the working set with a full snapshot from the live feed."""
    return state.model_copy(update={"transactions": tuple(transactions)})


def bank_wallets_loaded(state: AppState, wallets: list[str]) -> AppState:
    """
    Store the household's bank/wallet list.

    An income form with no receipt method yet gets the first option.
    """
    wallets = tuple(wallets)
    draft = state.form.draft
    if not draft.income_receipt_method and wallets:
        draft = draft.model_copy(update={"income_receipt_method": wallets[0]})
    return state.model_copy(update={
        "bank_wallets": wallets,
        "form": state.form.model_copy(update={"draft": draft}),
    })


def draft_changed(state: AppState, draft: TransactionDraft) -> AppState:
    return state.model_copy(update={"form": state.form.model_copy(update={"draft": draft})})


def start_edit(state: AppState, transaction: Transaction) -> AppState:
    """Load a stored transaction into the form."""
    draft = transaction.to_draft()
    if draft.type == TransactionType.INCOME and not draft.income_receipt_method and state.bank_wallets:
        draft = draft.model_copy(update={"income_receipt_method": state.bank_wallets[0]})
    return state.model_copy(update={
        "form": TransactionFormState(editing_id=transaction.id, draft=draft),
    })


def reset_form(state: AppState, today: Optional[date] = None) -> AppState:
    """Empty form for a new transaction (after save or cancel)."""
    return state.model_copy(update={
        "form": TransactionFormState(draft=_blank_draft(state.bank_wallets, today)),
    })


def switch_type(state: AppState, tx_type: TransactionType) -> AppState:
    """Switch the form between income and expense, keeping shared fields."""
    draft = state.form.draft.model_copy(update={"type": tx_type})
    if tx_type == TransactionType.INCOME and not draft.income_receipt_method and state.bank_wallets:
        draft = draft.model_copy(update={"income_receipt_method": state.bank_wallets[0]})
    return draft_changed(state, draft)


def select_month(state: AppState, month: str) -> AppState:
    return state.model_copy(update={
        "filters": state.filters.model_copy(update={"mode": FilterMode.MONTH, "month": month}),
    })


def select_range(state: AppState, start: str = "", end: str = "") -> AppState:
    return state.model_copy(update={
        "filters": state.filters.model_copy(update={
            "mode": FilterMode.RANGE,
            "range_start": start or "",
            "range_end": end or "",
        }),
    })
