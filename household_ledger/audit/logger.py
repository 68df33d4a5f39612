"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of shared-household changes
2. Debugging capability when the backend rejects an operation
3. A record of bootstraps that stopped halfway

The audit logger:
- Is async so flows can await it uniformly
- Never raises into the caller (a logging failure must not fail a save)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from household_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Events go to the structured local log. The household's own data is the
    record of truth; audit events exist for operators, not for users.
    """

    def __init__(self, logger=None):
        """
        Initialize audit logger.

        Args:
            logger: structlog logger to write to. Defaults to the module logger.
        """
        self._logger = logger or structlog.get_logger("household_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False

        return True

    async def log_household_created(
        self,
        household_id: str,
        user_id: str,
        invite_code: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a completed household bootstrap."""
        await self.log(AuditEventBuilder.household_created(
            household_id=household_id,
            user_id=user_id,
            invite_code=invite_code,
            correlation_id=correlation_id,
        ))

    async def log_bootstrap_failed(
        self,
        user_id: str,
        household_id: Optional[str],
        step: str,
        error_kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a bootstrap that stopped at a given step."""
        await self.log(AuditEventBuilder.household_bootstrap_failed(
            user_id=user_id,
            household_id=household_id,
            step=step,
            error_kind=error_kind,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_household_reconciled(
        self,
        household_id: str,
        user_id: str,
        repaired: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.household_reconciled(
            household_id=household_id,
            user_id=user_id,
            repaired=repaired,
            correlation_id=correlation_id,
        ))

    async def log_member_joined(
        self,
        household_id: str,
        user_id: str,
        via: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a membership write."""
        await self.log(AuditEventBuilder.member_joined(
            household_id=household_id,
            user_id=user_id,
            via=via,
            correlation_id=correlation_id,
        ))

    async def log_join_rejected(
        self,
        user_id: str,
        code: str,
        error_kind: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.join_rejected(
            user_id=user_id,
            code=code,
            error_kind=error_kind,
            correlation_id=correlation_id,
        ))

    async def log_invite_code_rotated(
        self,
        household_id: str,
        user_id: str,
        old_code: str,
        new_code: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an invite code change."""
        await self.log(AuditEventBuilder.invite_code_rotated(
            household_id=household_id,
            user_id=user_id,
            old_code=old_code,
            new_code=new_code,
            correlation_id=correlation_id,
        ))

    async def log_invite_code_rotation_rejected(
        self,
        household_id: str,
        user_id: str,
        draft: str,
        error_kind: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.invite_code_rotation_rejected(
            household_id=household_id,
            user_id=user_id,
            draft=draft,
            error_kind=error_kind,
            correlation_id=correlation_id,
        ))

    async def log_bank_wallet_added(
        self,
        household_id: str,
        user_id: str,
        label: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.bank_wallet_added(
            household_id=household_id,
            user_id=user_id,
            label=label,
            correlation_id=correlation_id,
        ))

    async def log_transaction_saved(
        self,
        household_id: str,
        transaction_id: str,
        user_id: str,
        tx_type: str,
        amount: str,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a transaction create or update."""
        await self.log(AuditEventBuilder.transaction_saved(
            household_id=household_id,
            transaction_id=transaction_id,
            user_id=user_id,
            tx_type=tx_type,
            amount=amount,
            created=created,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        household_id: str,
        transaction_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            household_id=household_id,
            transaction_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        household_id: Optional[str],
        user_id: Optional[str],
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log validation failure."""
        await self.log(AuditEventBuilder.validation_failed(
            household_id=household_id,
            user_id=user_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_auth_failed(
        self,
        operation: str,
        error_kind: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.auth_failed(
            operation=operation,
            error_kind=error_kind,
            correlation_id=correlation_id,
        ))

    async def log_user_registered(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.user_registered(
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_user_signed_in(
        self,
        user_id: str,
        household_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.user_signed_in(
            user_id=user_id,
            household_id=household_id,
            correlation_id=correlation_id,
        ))

    async def log_export_generated(
        self,
        household_id: str,
        user_id: str,
        file_format: str,
        period: str,
        row_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.export_generated(
            household_id=household_id,
            user_id=user_id,
            file_format=file_format,
            period=period,
            row_count=row_count,
            correlation_id=correlation_id,
        ))

    async def log_backend_error(
        self,
        operation: str,
        error_kind: str,
        error_message: str,
        household_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a backend rejection or failure."""
        await self.log(AuditEventBuilder.backend_error(
            operation=operation,
            error_kind=error_kind,
            error_message=error_message,
            household_id=household_id,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., registration).
    Pass it through all subsequent operations.
    """
    return uuid4()
