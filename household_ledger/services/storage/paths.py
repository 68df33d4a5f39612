"""
Document paths.

Every document the ledger reads or writes lives at one of these paths:

    users/{userId}                                   household pointer
    households/{householdId}                         invite code + audit fields
    households/{householdId}/members/{userId}        membership
    households/{householdId}/meta/settings           bank/wallet list
    households/{householdId}/transactions/{txId}     transaction records
    inviteCodes/{code}                               code -> household lookup
"""

USERS = "users"
HOUSEHOLDS = "households"
INVITE_CODES = "inviteCodes"


def _segment(value: str, name: str) -> str:
    if not value or "/" in value:
        raise ValueError(f"Invalid {name}: {value!r}")
    return value


def user_doc(user_id: str) -> str:
    return f"{USERS}/{_segment(user_id, 'user id')}"


def household_doc(household_id: str) -> str:
    return f"{HOUSEHOLDS}/{_segment(household_id, 'household id')}"


def members_collection(household_id: str) -> str:
    return f"{household_doc(household_id)}/members"


def member_doc(household_id: str, user_id: str) -> str:
    return f"{members_collection(household_id)}/{_segment(user_id, 'user id')}"


def settings_doc(household_id: str) -> str:
    return f"{household_doc(household_id)}/meta/settings"


def transactions_collection(household_id: str) -> str:
    return f"{household_doc(household_id)}/transactions"


def transaction_doc(household_id: str, transaction_id: str) -> str:
    return f"{transactions_collection(household_id)}/{_segment(transaction_id, 'transaction id')}"


def invite_code_doc(code: str) -> str:
    return f"{INVITE_CODES}/{_segment(code, 'invite code')}"
