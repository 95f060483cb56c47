"""
Audit Logger

DESIGN DECISION: Every write against the shared ledger is logged.
This provides:
1. Traceability of who changed what, from which profile
2. The ids needed to repair one-sided transfers by hand
3. Debugging information for failed refreshes and imports

The audit logger:
- Is async, like the storage it writes to
- Gracefully handles failures (a failed audit write never fails the ledger write)
- Supports correlation IDs to trace related events (e.g. both transfer legs)
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from gastos_pareja.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from gastos_pareja.services.storage import AuditStorageInterface


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
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog output through the stdlib root logger at ``log_level``."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level.upper()))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (the AuditLog sheet), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_entry_saved(
        self,
        entry_id: str,
        profile: str,
        amount: int,
        category: str,
        correlation_id: UUID,
    ) -> None:
        """Log a stored entry."""
        event = AuditEventBuilder.entry_saved(
            entry_id=entry_id,
            profile=profile,
            amount=amount,
            category=category,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_entry_deleted(
        self,
        entry_id: str,
        correlation_id: UUID,
        profile: Optional[str] = None,
    ) -> None:
        """Log an entry deletion."""
        event = AuditEventBuilder.entry_deleted(
            entry_id=entry_id,
            correlation_id=correlation_id,
            profile=profile,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        issues: list[dict],
        correlation_id: UUID,
        profile: Optional[str] = None,
    ) -> None:
        """Log a rejected entry."""
        event = AuditEventBuilder.validation_failed(
            issues=issues,
            correlation_id=correlation_id,
            profile=profile,
        )
        await self.log(event)

    async def log_ledger_replaced(
        self,
        count: int,
        correlation_id: UUID,
    ) -> None:
        """Log a bulk import that replaced the ledger."""
        event = AuditEventBuilder.ledger_replaced(
            count=count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_import_rejected(
        self,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log an import aborted before any write."""
        event = AuditEventBuilder.import_rejected(
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_fixed_charges_generated(
        self,
        month: str,
        entry_ids: list[str],
        correlation_id: UUID,
    ) -> None:
        """Log fixed charges materialized for a month."""
        event = AuditEventBuilder.fixed_charges_generated(
            month=month,
            entry_ids=entry_ids,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_goal_transfer_completed(
        self,
        goal_id: str,
        amount: int,
        debit_id: str,
        credit_id: str,
        profile: str,
        correlation_id: UUID,
    ) -> None:
        """Log a transfer whose two legs were stored."""
        event = AuditEventBuilder.goal_transfer_completed(
            goal_id=goal_id,
            amount=amount,
            debit_id=debit_id,
            credit_id=credit_id,
            profile=profile,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_goal_transfer_partial(
        self,
        goal_id: str,
        orphan_entry_id: str,
        error_message: str,
        profile: str,
        correlation_id: UUID,
    ) -> None:
        """Log a one-sided transfer left in the ledger."""
        event = AuditEventBuilder.goal_transfer_partial(
            goal_id=goal_id,
            orphan_entry_id=orphan_entry_id,
            error_message=error_message,
            profile=profile,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_config_updated(
        self,
        correlation_id: UUID,
        profile: Optional[str] = None,
    ) -> None:
        """Log a configuration replacement."""
        event = AuditEventBuilder.config_updated(
            correlation_id=correlation_id,
            profile=profile,
        )
        await self.log(event)

    async def log_device_registered(
        self,
        device_id: str,
        profile: str,
        correlation_id: UUID,
    ) -> None:
        """Log a device -> profile assignment."""
        event = AuditEventBuilder.device_registered(
            device_id=device_id,
            profile=profile,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_refresh_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed refresh."""
        event = AuditEventBuilder.refresh_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a goal transfer).
    Pass it through all subsequent operations.
    """
    return uuid4()
