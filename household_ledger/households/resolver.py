"""
Identity / Household Resolver

Given an authenticated user, makes sure the user belongs to exactly one
household, either by creating one or by joining through an invite code,
and keeps the household's invite code and its reverse mapping in step.

DESIGN DECISION: Household creation spans several documents and the
backend offers no transaction across them that the access rules allow
(membership must exist before the other writes are permitted). Instead of
pretending to be atomic, every bootstrap step checks before it writes:

    household record -> membership -> user pointer -> settings -> invite mapping

Running the bootstrap again with the household ID of an interrupted
attempt resumes where it stopped. reconcile_household() does the same for
a household found later in an inconsistent state, including one whose
recorded invite code was taken by another household in the meantime.

Invite code rotation, where atomicity is required, is one transaction.
"""

from typing import Optional
from uuid import UUID

import structlog

from household_ledger.audit import AuditLogger, create_correlation_id
from household_ledger.config import get_settings
from household_ledger.errors import (
    CodeTakenError,
    InvalidInviteCodeError,
    LedgerError,
    NotFoundError,
)
from household_ledger.households.invite_codes import (
    fallback_invite_code,
    is_valid_invite_code,
    normalize_invite_code,
    propose_invite_code,
)
from household_ledger.households.settings import HouseholdSettingsStore
from household_ledger.models.household import HouseholdBootstrap, ReconcileReport
from household_ledger.services.storage import (
    SERVER_TIMESTAMP,
    DocumentStore,
    DocumentTransaction,
    DuplicateError,
)
from household_ledger.services.storage.paths import (
    HOUSEHOLDS,
    household_doc,
    invite_code_doc,
    member_doc,
    user_doc,
)


logger = structlog.get_logger(__name__)


def _recorded_code(household: dict) -> str:
    return normalize_invite_code(
        str(household.get("inviteCodeLower") or household.get("inviteCode") or "")
    )


class HouseholdResolver:
    """
    Household identity operations for one backend.

    Usage:
        resolver = HouseholdResolver(store, HouseholdSettingsStore(store))
        household_id = await resolver.load_household_for_user(uid)
        if household_id is None:
            result = await resolver.create_household_with_invite(uid, "Maria")
    """

    def __init__(
        self,
        store: DocumentStore,
        settings_store: HouseholdSettingsStore,
        audit_logger: Optional[AuditLogger] = None,
        invite_code_attempts: Optional[int] = None,
    ):
        self._store = store
        self._settings = settings_store
        self._audit = audit_logger or AuditLogger()
        if invite_code_attempts is None:
            invite_code_attempts = get_settings().app.invite_code_attempts
        self._attempts = invite_code_attempts

    # =========================================================================
    # Lookups
    # =========================================================================

    async def load_household_for_user(self, user_id: str) -> Optional[str]:
        """Household pointer recorded on the user, or None."""
        data = await self._store.get(user_doc(user_id))
        household_id = (data or {}).get("householdId")
        if isinstance(household_id, str) and household_id:
            return household_id
        return None

    async def get_invite_code(self, household_id: str) -> str:
        """Current normalized invite code of a household, "" if none."""
        data = await self._store.get(household_doc(household_id))
        if data is None:
            return ""
        return _recorded_code(data)

    # =========================================================================
    # Idempotent steps
    # =========================================================================

    async def ensure_membership(
        self,
        user_id: str,
        household_id: str,
        display_name: Optional[str],
    ) -> bool:
        """
        Create the membership record unless it already exists.

        Existing records are never rewritten. Before a user is a member the
        access rules may forbid reading the record; an unreadable existence
        check is logged and creation goes ahead.

        Returns True if the record was created.
        """
        path = member_doc(household_id, user_id)
        try:
            if await self._store.get(path) is not None:
                return False
        except LedgerError as e:
            logger.info(
                "membership_check_unreadable",
                household_id=household_id,
                user_id=user_id,
                error_kind=e.kind.value,
            )

        await self._store.set(path, {
            "uid": user_id,
            "displayName": display_name or None,
            "joinedAt": SERVER_TIMESTAMP,
        })
        return True

    async def _ensure_user_pointer(self, user_id: str, household_id: str) -> bool:
        data = await self._store.get(user_doc(user_id))
        if (data or {}).get("householdId") == household_id:
            return False
        await self._set_user_pointer(user_id, household_id)
        return True

    async def _set_user_pointer(self, user_id: str, household_id: str) -> None:
        await self._store.set(
            user_doc(user_id),
            {"householdId": household_id, "updatedAt": SERVER_TIMESTAMP},
            merge=True,
        )

    async def _ensure_invite_mapping(self, household_id: str, code: str, user_id: str) -> bool:
        """
        Create inviteCodes/{code} for this household.

        Returns True if written, False if it already pointed here.
        Raises CodeTakenError if it points at another household.
        """
        path = invite_code_doc(code)
        existing = await self._store.get(path)
        if existing is None:
            try:
                await self._store.create(path, {
                    "householdId": household_id,
                    "createdByUid": user_id,
                    "createdAt": SERVER_TIMESTAMP,
                })
                return True
            except DuplicateError:
                existing = await self._store.get(path) or {}

        if existing.get("householdId") == household_id:
            return False
        raise CodeTakenError()

    async def _allocate_invite_code(self, name_like: Optional[str]) -> str:
        """
        Pick a code whose mapping does not exist yet.

        Tries up to the configured number of candidates. If no free one was
        confirmed (all collided, or the check could not be read) the last
        candidate is used; the create-only mapping write is the final guard.
        """
        base = name_like or "home"
        candidate = propose_invite_code(base)

        for attempt in range(self._attempts):
            code = normalize_invite_code(candidate)
            try:
                taken = await self._store.get(invite_code_doc(code)) is not None
            except LedgerError as e:
                logger.warning(
                    "invite_code_check_inconclusive",
                    candidate=code,
                    attempt=attempt + 1,
                    error_kind=e.kind.value,
                )
                break
            if not taken:
                break
            candidate = propose_invite_code(base)

        code = normalize_invite_code(candidate)
        if not is_valid_invite_code(code):
            code = normalize_invite_code(fallback_invite_code())
        return code

    # =========================================================================
    # Flows
    # =========================================================================

    async def create_household_with_invite(
        self,
        user_id: str,
        display_name: Optional[str],
        household_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> HouseholdBootstrap:
        """
        Create a household owned by user_id, or finish creating one.

        Args:
            user_id: Creator
            display_name: Used for the membership record and to derive the code
            household_id: ID of an interrupted earlier attempt to resume.
                         A fresh ID is generated when omitted.
            correlation_id: Trace ID for audit events

        Returns:
            HouseholdBootstrap with the household ID and its invite code

        Raises:
            LedgerError: From the first step that failed. Steps already done
                        stay done; call again with the same household_id.
        """
        correlation_id = correlation_id or create_correlation_id()
        step = "household"

        try:
            existing = None
            if household_id:
                existing = await self._store.get(household_doc(household_id))

            if existing is not None:
                code = _recorded_code(existing)
                if not is_valid_invite_code(code):
                    code = await self._allocate_invite_code(display_name)
                    await self._store.update(household_doc(household_id), {
                        "inviteCode": code,
                        "inviteCodeLower": code,
                        "inviteUpdatedAt": SERVER_TIMESTAMP,
                        "inviteUpdatedBy": user_id,
                    })
            else:
                code = await self._allocate_invite_code(display_name)
                household_id = household_id or self._store.new_id(HOUSEHOLDS)
                await self._store.create(household_doc(household_id), {
                    "createdAt": SERVER_TIMESTAMP,
                    "createdBy": user_id,
                    "inviteCode": code,
                    "inviteCodeLower": code,
                    "inviteUpdatedAt": SERVER_TIMESTAMP,
                    "inviteUpdatedBy": user_id,
                })

            # membership first: the rules gate every later write on it
            step = "membership"
            await self.ensure_membership(user_id, household_id, display_name)

            step = "user_pointer"
            await self._ensure_user_pointer(user_id, household_id)

            step = "settings"
            await self._settings.write_defaults(household_id, user_id)

            step = "invite_mapping"
            await self._ensure_invite_mapping(household_id, code, user_id)

        except LedgerError as e:
            await self._audit.log_bootstrap_failed(
                user_id=user_id,
                household_id=household_id,
                step=step,
                error_kind=e.kind.value,
                error_message=e.message,
                correlation_id=correlation_id,
            )
            raise

        await self._audit.log_household_created(
            household_id=household_id,
            user_id=user_id,
            invite_code=code,
            correlation_id=correlation_id,
        )
        return HouseholdBootstrap(household_id=household_id, invite_code=code)

    async def join_household_by_invite_code(
        self,
        user_id: str,
        code: str,
        display_name: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Join the household an invite code points to.

        Raises:
            InvalidInviteCodeError: The code is malformed (nothing is read)
            NotFoundError: No household uses this code (nothing is written)
        """
        normalized = normalize_invite_code(code)
        try:
            if not is_valid_invite_code(normalized):
                raise InvalidInviteCodeError()

            mapping = await self._store.get(invite_code_doc(normalized))
            household_id = (mapping or {}).get("householdId")
            if not isinstance(household_id, str) or not household_id:
                raise NotFoundError("Invite code not found.")
        except LedgerError as e:
            await self._audit.log_join_rejected(
                user_id=user_id,
                code=normalized,
                error_kind=e.kind.value,
                correlation_id=correlation_id,
            )
            raise

        await self._set_user_pointer(user_id, household_id)
        await self.ensure_membership(user_id, household_id, display_name)

        await self._audit.log_member_joined(
            household_id=household_id,
            user_id=user_id,
            via="invite_code",
            correlation_id=correlation_id,
        )
        return household_id

    async def rotate_invite_code(
        self,
        household_id: str,
        new_code_draft: str,
        actor_user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Change a household's invite code.

        One transaction: the new mapping, the household record and the
        removal of the old mapping all apply, or none do. Rotating to the
        current code rewrites the mapping and deletes nothing.

        Returns:
            The new normalized code

        Raises:
            InvalidInviteCodeError: Draft does not satisfy the format rule
            NotFoundError: Household does not exist
            CodeTakenError: Another household owns the code
        """
        next_code = normalize_invite_code(new_code_draft)
        if not is_valid_invite_code(next_code):
            await self._audit.log_invite_code_rotation_rejected(
                household_id=household_id,
                user_id=actor_user_id,
                draft=next_code,
                error_kind=InvalidInviteCodeError.kind.value,
                correlation_id=correlation_id,
            )
            raise InvalidInviteCodeError()

        household_path = household_doc(household_id)
        next_path = invite_code_doc(next_code)

        def _rotate(tx: DocumentTransaction) -> str:
            household = tx.get(household_path)
            if household is None:
                raise NotFoundError("Household not found.")

            old_code = _recorded_code(household)
            mapping = tx.get(next_path)
            if mapping is not None:
                owner = mapping.get("householdId")
                if owner and owner != household_id:
                    raise CodeTakenError()

            # only remove an old mapping that still points here
            old_path = None
            if old_code and old_code != next_code:
                candidate = invite_code_doc(old_code)
                old_mapping = tx.get(candidate)
                if old_mapping is not None and old_mapping.get("householdId") == household_id:
                    old_path = candidate

            tx.set(next_path, {
                "householdId": household_id,
                "createdByUid": actor_user_id,
                "createdAt": SERVER_TIMESTAMP,
            })
            tx.update(household_path, {
                "inviteCode": next_code,
                "inviteCodeLower": next_code,
                "inviteUpdatedAt": SERVER_TIMESTAMP,
                "inviteUpdatedBy": actor_user_id,
            })
            if old_path is not None:
                tx.delete(old_path)
            return old_code

        try:
            old_code = await self._store.run_transaction(_rotate)
        except LedgerError as e:
            await self._audit.log_invite_code_rotation_rejected(
                household_id=household_id,
                user_id=actor_user_id,
                draft=next_code,
                error_kind=e.kind.value,
                correlation_id=correlation_id,
            )
            raise

        await self._audit.log_invite_code_rotated(
            household_id=household_id,
            user_id=actor_user_id,
            old_code=old_code,
            new_code=next_code,
            correlation_id=correlation_id,
        )
        return next_code

    async def reconcile_household(
        self,
        household_id: str,
        actor_user_id: str,
        display_name: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> ReconcileReport:
        """
        Bring an existing household back to a consistent state.

        Re-runs every bootstrap step for the actor and repairs the invite
        mapping: a missing mapping is created, and a recorded code that is
        invalid or owned by another household is replaced by a fresh one
        through rotation. A user pointer to a different household is left
        alone.

        Raises:
            NotFoundError: Household does not exist
        """
        correlation_id = correlation_id or create_correlation_id()
        household = await self._store.get(household_doc(household_id))
        if household is None:
            raise NotFoundError("Household not found.")

        repaired: list[str] = []

        if await self.ensure_membership(actor_user_id, household_id, display_name):
            repaired.append("membership")

        if await self.load_household_for_user(actor_user_id) is None:
            await self._set_user_pointer(actor_user_id, household_id)
            repaired.append("user_pointer")

        if await self._settings.write_defaults(household_id, actor_user_id):
            repaired.append("settings")

        code = _recorded_code(household)
        needs_new_code = not is_valid_invite_code(code)
        if not needs_new_code:
            try:
                if await self._ensure_invite_mapping(household_id, code, actor_user_id):
                    repaired.append("invite_mapping")
            except CodeTakenError:
                needs_new_code = True

        if needs_new_code:
            fresh = await self._allocate_invite_code(display_name)
            code = await self.rotate_invite_code(
                household_id,
                fresh,
                actor_user_id,
                correlation_id=correlation_id,
            )
            repaired.append("invite_code")

        await self._audit.log_household_reconciled(
            household_id=household_id,
            user_id=actor_user_id,
            repaired=repaired,
            correlation_id=correlation_id,
        )
        return ReconcileReport(household_id=household_id, invite_code=code, repaired=repaired)
