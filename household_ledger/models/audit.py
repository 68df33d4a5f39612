"""
Audit Models for Household Ledger

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of who changed what in a shared household
2. Debugging information when a backend call fails
3. A record of partially-completed household bootstraps

DESIGN DECISION: Audit events are emitted, never edited.
Entity IDs are backend document IDs (strings), not UUIDs.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the household and transaction flows has its own event type.
    """
    # Authentication
    USER_REGISTERED = "user_registered"
    USER_SIGNED_IN = "user_signed_in"
    AUTH_FAILED = "auth_failed"

    # Household identity
    HOUSEHOLD_CREATED = "household_created"
    HOUSEHOLD_BOOTSTRAP_FAILED = "household_bootstrap_failed"
    HOUSEHOLD_RECONCILED = "household_reconciled"
    MEMBER_JOINED = "member_joined"
    JOIN_REJECTED = "join_rejected"
    INVITE_CODE_ROTATED = "invite_code_rotated"
    INVITE_CODE_ROTATION_REJECTED = "invite_code_rotation_rejected"

    # Household settings
    BANK_WALLET_ADDED = "bank_wallet_added"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    VALIDATION_FAILED = "validation_failed"
    EXPORT_GENERATED = "export_generated"

    # System events
    BACKEND_ERROR = "backend_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'household', 'transaction', 'invite_code')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Backend ID of the entity this event relates to"
    )
    household_id: Optional[str] = None
    actor_id: Optional[str] = Field(
        default=None,
        description="User who triggered the event"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all steps of one registration)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_kind: Optional[str] = None
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "household_id": self.household_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_kind": self.error_kind,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.household_created(household_id, user_id, code)
        event = AuditEventBuilder.transaction_deleted(household_id, tx_id, user_id)
    """

    @staticmethod
    def user_registered(
        user_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user_id,
            actor_id=user_id,
            correlation_id=correlation_id,
            description="New account registered",
            is_user_action=True,
        )

    @staticmethod
    def user_signed_in(
        user_id: str,
        household_id: Optional[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_IN,
            entity_type="user",
            entity_id=user_id,
            actor_id=user_id,
            household_id=household_id,
            correlation_id=correlation_id,
            description="User signed in",
            details={"has_household": household_id is not None},
            is_user_action=True,
        )

    @staticmethod
    def auth_failed(
        operation: str,
        error_kind: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            correlation_id=correlation_id,
            description=f"Authentication failed during {operation}",
            error_kind=error_kind,
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def household_created(
        household_id: str,
        user_id: str,
        invite_code: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOUSEHOLD_CREATED,
            entity_type="household",
            entity_id=household_id,
            household_id=household_id,
            actor_id=user_id,
            correlation_id=correlation_id,
            description=f"Household created with invite code {invite_code}",
            details={"invite_code": invite_code},
            is_user_action=True,
        )

    @staticmethod
    def household_bootstrap_failed(
        user_id: str,
        household_id: Optional[str],
        step: str,
        error_kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOUSEHOLD_BOOTSTRAP_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="household",
            entity_id=household_id,
            household_id=household_id,
            actor_id=user_id,
            correlation_id=correlation_id,
            description=f"Household bootstrap stopped at step: {step}",
            error_kind=error_kind,
            error_message=error_message,
            details={"step": step},
        )

    @staticmethod
    def household_reconciled(
        household_id: str,
        user_id: str,
        repaired: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOUSEHOLD_RECONCILED,
            severity=AuditSeverity.WARNING if repaired else AuditSeverity.INFO,
            entity_type="household",
            entity_id=household_id,
            household_id=household_id,
            actor_id=user_id,
            correlation_id=correlation_id,
            description=(
                f"Household reconciled, repaired: {', '.join(repaired)}"
                if repaired
                else "Household reconciled, nothing to repair"
            ),
            details={"repaired": repaired},
            is_user_action=True,
        )

    @staticmethod
    def member_joined(
        household_id: str,
        user_id: str,
        via: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_JOINED,
            entity_type="membership",
            entity_id=user_id,
            household_id=household_id,
            actor_id=user_id,
            correlation_id=correlation_id,
            description=f"User joined household via {via}",
            details={"via": via},
            is_user_action=True,
        )

    @staticmethod
    def join_rejected(
        user_id: str,
        code: str,
        error_kind: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.JOIN_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="invite_code",
            entity_id=code or None,
            actor_id=user_id,
            correlation_id=correlation_id,
            description="Join by invite code rejected",
            error_kind=error_kind,
            is_user_action=True,
        )

    @staticmethod
    def invite_code_rotated(
        household_id: str,
        user_id: str,
        old_code: str,
        new_code: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVITE_CODE_ROTATED,
            entity_type="invite_code",
            entity_id=new_code,
            household_id=household_id,
            actor_id=user_id,
            correlation_id=correlation_id,
            description=f"Invite code changed from {old_code or '-'} to {new_code}",
            details={"old_code": old_code, "new_code": new_code},
            is_user_action=True,
        )

    @staticmethod
    def invite_code_rotation_rejected(
        household_id: str,
        user_id: str,
        draft: str,
        error_kind: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVITE_CODE_ROTATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="invite_code",
            entity_id=draft or None,
            household_id=household_id,
            actor_id=user_id,
            correlation_id=correlation_id,
            description="Invite code change rejected",
            error_kind=error_kind,
            is_user_action=True,
        )

    @staticmethod
    def bank_wallet_added(
        household_id: str,
        user_id: str,
        label: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BANK_WALLET_ADDED,
            entity_type="settings",
            household_id=household_id,
            actor_id=user_id,
            correlation_id=correlation_id,
            description=f"Bank/wallet option added: {label}",
            details={"label": label},
            is_user_action=True,
        )

    @staticmethod
    def transaction_saved(
        household_id: str,
        transaction_id: str,
        user_id: str,
        tx_type: str,
        amount: str,
        created: bool,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.TRANSACTION_CREATED
                if created
                else AuditEventType.TRANSACTION_UPDATED
            ),
            entity_type="transaction",
            entity_id=transaction_id,
            household_id=household_id,
            actor_id=user_id,
            correlation_id=correlation_id,
            description=f"{tx_type.capitalize()} {'created' if created else 'updated'}: {amount}",
            details={"type": tx_type, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        household_id: str,
        transaction_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            household_id=household_id,
            actor_id=user_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        household_id: Optional[str],
        user_id: Optional[str],
        issues: list[dict],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            household_id=household_id,
            actor_id=user_id,
            correlation_id=correlation_id,
            description=f"Transaction validation failed with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def export_generated(
        household_id: str,
        user_id: str,
        file_format: str,
        period: str,
        row_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_GENERATED,
            entity_type="export",
            household_id=household_id,
            actor_id=user_id,
            correlation_id=correlation_id,
            description=f"{file_format.upper()} export for {period} ({row_count} rows)",
            details={"format": file_format, "period": period, "row_count": row_count},
            is_user_action=True,
        )

    @staticmethod
    def backend_error(
        operation: str,
        error_kind: str,
        error_message: str,
        household_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKEND_ERROR,
            severity=AuditSeverity.ERROR,
            household_id=household_id,
            description=f"Backend error during {operation}",
            error_kind=error_kind,
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
