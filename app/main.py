"""
Streamlit Frontend for Household Ledger

This is the screen every member of a household shares: sign in, see the
month's income and expenses, add or edit a transaction, export.

DESIGN PRINCIPLES:
1. One AppState in the session, changed only through reducers
2. Backend work goes through the orchestrator flows
3. Errors are shown as short sentences, never raw backend text
4. The transaction list follows the live feed without a manual refresh

The live feed is a Subscription owned by the session; it is closed and
reopened whenever the household changes, and on sign-out.
"""

import asyncio
from datetime import date
from typing import Optional

import streamlit as st

from household_ledger import state as reducers
from household_ledger.config import get_settings, validate_all_settings
from household_ledger.errors import LedgerError, RegistrationIncompleteError, user_message
from household_ledger.models.transaction import (
    EXPENSE_CATEGORY_LABELS,
    INCOME_SOURCE_LABELS,
    PAYMENT_METHOD_LABELS,
    ExpenseCategory,
    IncomeSource,
    PaymentMethod,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from household_ledger.orchestrator import (
    AccountFlow,
    HouseholdFlow,
    TransactionFlow,
    create_app_components,
)
from household_ledger.state import AppState, AuthMode, FilterMode
from household_ledger.transactions import (
    expense_by_category,
    format_currency,
    income_by_source,
    month_label,
    month_options,
)


# Page configuration
st.set_page_config(
    page_title="Household Ledger",
    page_icon="🏠",
    layout="wide",
    initial_sidebar_state="expanded",
)

FEED_REFRESH_SECONDS = 2


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components(use_backend=True)


# =============================================================================
# SESSION STATE
# =============================================================================

def get_state() -> AppState:
    if "app_state" not in st.session_state:
        code = st.query_params.get("invite", "")
        st.session_state.app_state = reducers.initial_state(code)
    return st.session_state.app_state


def set_state(new_state: AppState) -> None:
    st.session_state.app_state = new_state


def close_feed() -> None:
    feed = st.session_state.pop("feed", None)
    if feed is not None:
        feed.close()
    st.session_state.pop("feed_household", None)


def ensure_feed(transaction_flow: TransactionFlow, household_id: Optional[str]) -> None:
    """Keep exactly one open live feed, for the current household."""
    feed = st.session_state.get("feed")
    if (
        feed is not None
        and not feed.closed
        and st.session_state.get("feed_household") == household_id
    ):
        return
    close_feed()
    if household_id:
        st.session_state.feed = transaction_flow.subscribe(household_id)
        st.session_state.feed_household = household_id


def enter_household(household_flow: HouseholdFlow, household_id: Optional[str]) -> None:
    """Record the household and load its invite code and bank/wallet list."""
    state = reducers.household_resolved(get_state(), household_id)
    if household_id:
        code = run_async(household_flow.invite_code(household_id))
        settings = run_async(household_flow.load_settings(household_id))
        state = reducers.invite_code_loaded(state, code)
        state = reducers.bank_wallets_loaded(state, settings.bank_wallets)
    set_state(state)


def main():
    """Main application entry point."""
    account_flow, household_flow, transaction_flow, _ = get_components()
    state = get_state()

    if state.user is None:
        close_feed()
        render_auth_page(account_flow, household_flow)
        return

    render_sidebar(household_flow)

    if not state.household_id:
        close_feed()
        render_no_household_page(household_flow)
        return

    ensure_feed(transaction_flow, state.household_id)

    st.title("🏠 Household Ledger")
    render_transaction_form(transaction_flow)
    st.markdown("---")
    render_filters()
    render_live_list(transaction_flow)
    st.markdown("---")
    render_export(transaction_flow)


# =============================================================================
# AUTHENTICATION
# =============================================================================

def render_auth_page(account_flow: AccountFlow, household_flow: HouseholdFlow):
    """Render sign-in and registration."""
    state = get_state()
    st.title("🏠 Household Ledger")

    mode = st.radio(
        "Account",
        options=list(AuthMode),
        index=list(AuthMode).index(state.auth.mode),
        format_func=lambda m: "Sign in" if m == AuthMode.LOGIN else "Create account",
        horizontal=True,
    )
    if mode != state.auth.mode:
        set_state(reducers.switch_auth_mode(state, mode))
        st.rerun()

    if state.auth.error:
        st.error(state.auth.error)
    if state.auth.notice:
        st.info(state.auth.notice)

    email = st.text_input("Email", value=state.auth.email)
    password = st.text_input("Password", type="password")

    if mode == AuthMode.LOGIN:
        col1, col2 = st.columns(2)
        with col1:
            if st.button("Sign in", type="primary"):
                try:
                    user, household_id = run_async(account_flow.sign_in(email, password))
                    set_state(reducers.signed_in(get_state(), user))
                    enter_household(household_flow, household_id)
                except LedgerError as e:
                    set_state(reducers.auth_failed(get_state(), user_message(e)))
                st.rerun()
        with col2:
            if st.button("Forgot password?"):
                try:
                    run_async(account_flow.send_password_reset(email))
                    set_state(reducers.auth_notice(get_state(), "Password reset email sent."))
                except LedgerError as e:
                    set_state(reducers.auth_failed(get_state(), user_message(e)))
                st.rerun()
        return

    password_confirm = st.text_input("Repeat password", type="password")
    display_name = st.text_input("Your name", value=state.auth.display_name)
    invite_code = st.text_input(
        "Invite code (optional)",
        value=state.auth.invite_code,
        help="Leave empty to start a new household",
    )

    if st.button("Create account", type="primary"):
        try:
            user, household_id = run_async(
                account_flow.register(
                    email=email,
                    password=password,
                    password_confirm=password_confirm,
                    display_name=display_name,
                    invite_code=invite_code,
                )
            )
            set_state(reducers.signed_in(get_state(), user))
            enter_household(household_flow, household_id)
        except RegistrationIncompleteError as e:
            # signed up; the no-household page shows the message
            state = reducers.signed_in(get_state(), e.user)
            state = reducers.invite_prefilled(state, invite_code)
            set_state(reducers.auth_failed(state, user_message(e)))
        except LedgerError as e:
            state = reducers.invite_prefilled(get_state(), invite_code)
            set_state(reducers.auth_failed(state, user_message(e)))
        st.rerun()


def render_no_household_page(household_flow: HouseholdFlow):
    """A signed-in user without a household: join one or start one."""
    state = get_state()
    st.title("🏠 Welcome")
    st.markdown("You are not part of a household yet.")
    if state.auth.error:
        st.error(state.auth.error)

    code = st.text_input("Invite code", value=state.auth.invite_code)
    col1, col2 = st.columns(2)
    with col1:
        if st.button("Join household", type="primary"):
            try:
                household_id = run_async(household_flow.join_now(state.user, code))
                enter_household(household_flow, household_id)
                st.rerun()
            except LedgerError as e:
                st.error(user_message(e))
    with col2:
        if st.button("Start a new household"):
            try:
                result = run_async(household_flow.create_now(state.user))
                enter_household(household_flow, result.household_id)
                st.rerun()
            except LedgerError as e:
                st.error(user_message(e))


# =============================================================================
# SIDEBAR
# =============================================================================

def render_sidebar(household_flow: HouseholdFlow):
    state = get_state()
    st.sidebar.title("🏠 Household Ledger")
    st.sidebar.markdown(f"Signed in as **{state.user.label}**")

    if st.sidebar.button("Sign out"):
        close_feed()
        set_state(reducers.signed_out(get_state()))
        st.rerun()

    if not state.household_id:
        return

    st.sidebar.markdown("---")
    st.sidebar.markdown("### Invite")
    if state.invite_code:
        st.sidebar.code(state.invite_code)
        st.sidebar.markdown(household_flow.invite_link(state.invite_code))
    else:
        st.sidebar.warning("This household has no invite code.")
        if st.sidebar.button("Repair household"):
            try:
                report = run_async(household_flow.reconcile(state.household_id, state.user))
                set_state(reducers.invite_code_loaded(get_state(), report.invite_code))
                st.rerun()
            except LedgerError as e:
                st.sidebar.error(user_message(e))

    new_code = st.sidebar.text_input("New invite code")
    if st.sidebar.button("Change code"):
        try:
            code = run_async(household_flow.rotate_invite(state.household_id, state.user, new_code))
            set_state(reducers.invite_code_loaded(get_state(), code))
            st.rerun()
        except LedgerError as e:
            st.sidebar.error(user_message(e))

    st.sidebar.markdown("---")
    st.sidebar.markdown("### Banks and wallets")
    for wallet in state.bank_wallets:
        st.sidebar.markdown(f"- {wallet}")
    wallet = st.sidebar.text_input("Add bank or wallet")
    if st.sidebar.button("Add"):
        try:
            wallets = run_async(
                household_flow.add_bank_wallet(state.household_id, state.user, wallet)
            )
            set_state(reducers.bank_wallets_loaded(get_state(), wallets))
            st.rerun()
        except LedgerError as e:
            st.sidebar.error(user_message(e))

    with st.sidebar.expander("⚙️ Connection status"):
        status = validate_all_settings()
        for name, key in [("Firebase", "firebase"), ("App settings", "app")]:
            if status.get(key, False):
                st.success(f"✅ {name}")
            else:
                st.error(f"❌ {name} - {status.get(f'{key}_error', 'Not configured')}")


# =============================================================================
# TRANSACTION FORM
# =============================================================================

def _index_of(options: list, value, default: int = 0) -> int:
    try:
        return options.index(value)
    except ValueError:
        return default


def render_transaction_form(transaction_flow: TransactionFlow):
    """Add a transaction, or edit the one picked from the list."""
    state = get_state()
    draft = state.form.draft
    key = state.form.editing_id or "new"

    st.subheader("✏️ Edit transaction" if state.form.is_editing else "➕ New transaction")

    tx_type = st.radio(
        "Type",
        options=list(TransactionType),
        index=_index_of(list(TransactionType), draft.type),
        format_func=lambda t: t.value.title(),
        horizontal=True,
        key=f"type_{key}",
    )
    if tx_type != draft.type:
        set_state(reducers.switch_type(state, tx_type))
        st.rerun()

    col1, col2 = st.columns(2)
    with col1:
        tx_date = st.date_input(
            "Date *",
            value=date.fromisoformat(draft.date) if draft.date else date.today(),
            key=f"date_{key}",
        )
        amount = st.text_input("Amount *", value=draft.amount, key=f"amount_{key}")

    fields = {}
    with col2:
        if tx_type == TransactionType.EXPENSE:
            categories = list(ExpenseCategory)
            fields["expense_category"] = st.selectbox(
                "Category *",
                options=categories,
                index=_index_of(categories, draft.expense_category),
                format_func=lambda c: EXPENSE_CATEGORY_LABELS[c],
                key=f"category_{key}",
            )
            if fields["expense_category"] == ExpenseCategory.OTHER:
                fields["expense_category_other"] = st.text_input(
                    "Which category? *",
                    value=draft.expense_category_other,
                    key=f"category_other_{key}",
                )
            methods = list(PaymentMethod)
            fields["expense_payment_method"] = st.selectbox(
                "Paid with *",
                options=methods,
                index=_index_of(methods, draft.expense_payment_method),
                format_func=lambda m: PAYMENT_METHOD_LABELS[m],
                key=f"payment_{key}",
            )
            if fields["expense_payment_method"].needs_bank_wallet:
                wallets = list(state.bank_wallets)
                fields["expense_bank_wallet"] = st.selectbox(
                    "Bank / wallet *",
                    options=[""] + wallets,
                    index=_index_of([""] + wallets, draft.expense_bank_wallet),
                    key=f"wallet_{key}",
                )
        else:
            sources = list(IncomeSource)
            fields["income_source"] = st.selectbox(
                "Source *",
                options=sources,
                index=_index_of(sources, draft.income_source),
                format_func=lambda s: INCOME_SOURCE_LABELS[s],
                key=f"source_{key}",
            )
            if fields["income_source"] == IncomeSource.OTHER:
                fields["income_source_other"] = st.text_input(
                    "Which source? *",
                    value=draft.income_source_other,
                    key=f"source_other_{key}",
                )
            wallets = list(state.bank_wallets)
            fields["income_receipt_method"] = st.selectbox(
                "Received into *",
                options=[""] + wallets,
                index=_index_of([""] + wallets, draft.income_receipt_method),
                key=f"receipt_{key}",
            )

    notes = st.text_area("Notes (optional)", value=draft.notes, key=f"notes_{key}")

    new_draft = TransactionDraft.model_validate(draft.model_copy(update={
        "type": tx_type,
        "date": tx_date.isoformat(),
        "amount": amount,
        "notes": notes,
        **fields,
    }).model_dump())
    result, summary = transaction_flow.check(new_draft)
    if result.is_valid and result.warnings:
        st.warning(summary)

    col1, col2 = st.columns([2, 1])
    with col1:
        if st.button("💾 Save", type="primary"):
            set_state(reducers.draft_changed(get_state(), new_draft))
            try:
                run_async(
                    transaction_flow.save(
                        state.household_id,
                        state.user,
                        new_draft,
                        editing_id=state.form.editing_id,
                    )
                )
                set_state(reducers.reset_form(get_state()))
                st.rerun()
            except LedgerError as e:
                st.error(user_message(e))
    with col2:
        if state.form.is_editing and st.button("Cancel"):
            set_state(reducers.reset_form(get_state()))
            st.rerun()


# =============================================================================
# LIST, TOTALS, EXPORT
# =============================================================================

def render_filters():
    state = get_state()
    mode = st.radio(
        "Show",
        options=list(FilterMode),
        index=list(FilterMode).index(state.filters.mode),
        format_func=lambda m: "Month" if m == FilterMode.MONTH else "Date range",
        horizontal=True,
    )

    if mode == FilterMode.MONTH:
        months = month_options(state.transactions, state.filters.month)
        month = st.selectbox(
            "Month",
            options=months,
            index=_index_of(months, state.filters.month),
            format_func=month_label,
        )
        if mode != state.filters.mode or month != state.filters.month:
            set_state(reducers.select_month(state, month))
            st.rerun()
        return

    col1, col2 = st.columns(2)
    with col1:
        start = st.date_input("From", value=None)
    with col2:
        end = st.date_input("To", value=None)
    start_text = start.isoformat() if start else ""
    end_text = end.isoformat() if end else ""
    if (
        mode != state.filters.mode
        or start_text != state.filters.range_start
        or end_text != state.filters.range_end
    ):
        set_state(reducers.select_range(state, start_text, end_text))
        st.rerun()


@st.fragment(run_every=FEED_REFRESH_SECONDS)
def render_live_list(transaction_flow: TransactionFlow):
    """Totals and list, refreshed from the live feed."""
    feed = st.session_state.get("feed")
    if feed is not None and feed.error is not None:
        st.error(user_message(feed.error))
        # a failed feed is closed; the next refresh reads from a new one
        ensure_feed(transaction_flow, get_state().household_id)
    elif feed is not None and feed.has_snapshot:
        set_state(reducers.snapshot_received(get_state(), feed.latest))

    state = get_state()
    symbol = get_settings().app.currency_symbol
    visible, totals = transaction_flow.summarize(list(state.transactions), state.filters.window)

    col1, col2, col3 = st.columns(3)
    col1.metric("Income", format_currency(totals.income, symbol))
    col2.metric("Expenses", format_currency(totals.expense, symbol))
    col3.metric("Net", format_currency(totals.net, symbol))

    with st.expander("📊 By category"):
        for name, total in expense_by_category(visible):
            st.markdown(f"- {name}: {format_currency(total, symbol)}")
        for name, total in income_by_source(visible):
            st.markdown(f"- {name} (income): {format_currency(total, symbol)}")

    if not visible:
        st.info("No transactions in this period.")
        return

    for t in visible:
        render_transaction_row(transaction_flow, t, symbol)


def render_transaction_row(transaction_flow: TransactionFlow, t: Transaction, symbol: str):
    state = get_state()
    col1, col2, col3, col4, col5 = st.columns([2, 3, 2, 1, 1])
    col1.markdown(t.date)
    if t.is_income:
        col2.markdown(f"💶 {t.source_label} → {t.income_receipt_method}")
        col3.markdown(f"**+{format_currency(t.amount, symbol)}**")
    else:
        wallet = f" ({t.expense_bank_wallet})" if t.expense_bank_wallet else ""
        col2.markdown(f"🧾 {t.category_label} · {t.payment_label}{wallet}")
        col3.markdown(f"**-{format_currency(t.amount, symbol)}**")
    if col4.button("✏️", key=f"edit_{t.id}"):
        set_state(reducers.start_edit(state, t))
        st.rerun(scope="app")
    # deletion has no undo
    with col5.popover("🗑️"):
        st.markdown("Delete this transaction?")
        if st.button("Delete", key=f"delete_{t.id}", type="primary"):
            try:
                run_async(transaction_flow.delete(state.household_id, state.user, t.id))
            except LedgerError as e:
                st.error(user_message(e))
    if t.notes:
        st.caption(t.notes)


def render_export(transaction_flow: TransactionFlow):
    state = get_state()
    st.subheader("⬇️ Export")
    window = state.filters.window
    st.markdown(f"Period: **{window.label}**")

    col1, col2 = st.columns(2)
    with col1:
        file_format = st.selectbox(
            "Format",
            options=["xlsx", "csv"],
            format_func=lambda f: "Excel" if f == "xlsx" else "CSV",
        )
    with col2:
        if st.button("Prepare file"):
            try:
                st.session_state.export_file = run_async(
                    transaction_flow.export(
                        state.household_id,
                        state.user,
                        list(state.transactions),
                        window,
                        file_format=file_format,
                    )
                )
            except LedgerError as e:
                st.error(user_message(e))

    prepared = st.session_state.get("export_file")
    if prepared:
        file_name, content, mime = prepared
        st.download_button(
            f"Download {file_name}",
            data=content,
            file_name=file_name,
            mime=mime,
        )


if __name__ == "__main__":
    main()
