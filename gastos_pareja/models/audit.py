"""
Audit Models for Gastos Pareja

Every write against the ledger is logged for audit purposes.
This provides:
1. Traceability of who changed the shared ledger, and when
2. The trail needed to repair one-sided transfers by hand
3. Debugging information when a refresh or import fails

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Entries
    ENTRY_SAVED = "entry_saved"
    ENTRY_DELETED = "entry_deleted"
    VALIDATION_FAILED = "validation_failed"

    # Bulk import
    LEDGER_REPLACED = "ledger_replaced"
    IMPORT_REJECTED = "import_rejected"

    # Derived writes
    FIXED_CHARGES_GENERATED = "fixed_charges_generated"
    GOAL_TRANSFER_COMPLETED = "goal_transfer_completed"
    GOAL_TRANSFER_PARTIAL = "goal_transfer_partial"

    # Configuration
    CONFIG_UPDATED = "config_updated"
    DEVICE_REGISTERED = "device_registered"

    # System events
    REFRESH_FAILED = "refresh_failed"
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


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
    Every ledger write creates one of these.
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

    # Context - what is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'ledger', 'config')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    profile: Optional[str] = Field(
        default=None,
        description="Profile that performed the action"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., both legs of a transfer)"
    )

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
    error_message: Optional[str] = None

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
            "profile": self.profile,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         profile, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.profile or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, ensure_ascii=False) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_saved(entry, correlation_id)
        event = AuditEventBuilder.ledger_replaced(count, correlation_id)
    """

    @staticmethod
    def entry_saved(
        entry_id: str,
        profile: str,
        amount: int,
        category: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_SAVED,
            entity_type="entry",
            entity_id=entry_id,
            profile=profile,
            correlation_id=correlation_id,
            description=f"Entry saved: {category} ${amount:,}",
            details={
                "amount": amount,
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_deleted(
        entry_id: str,
        correlation_id: UUID,
        profile: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            entity_type="entry",
            entity_id=entry_id,
            profile=profile,
            correlation_id=correlation_id,
            description=f"Entry deleted: {entry_id}",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: UUID,
        profile: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="entry",
            profile=profile,
            correlation_id=correlation_id,
            description=f"Entry rejected with {len(issues)} issues",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def ledger_replaced(
        count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_REPLACED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger replaced by import of {count} entries",
            details={
                "count": count,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_rejected(
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Import rejected before any write",
            error_message=reason,
        )

    @staticmethod
    def fixed_charges_generated(
        month: str,
        entry_ids: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIXED_CHARGES_GENERATED,
            entity_type="ledger",
            entity_id=month,
            correlation_id=correlation_id,
            description=f"Generated {len(entry_ids)} fixed charges for {month}",
            details={
                "month": month,
                "entry_ids": entry_ids,
            },
        )

    @staticmethod
    def goal_transfer_completed(
        goal_id: str,
        amount: int,
        debit_id: str,
        credit_id: str,
        profile: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_TRANSFER_COMPLETED,
            entity_type="goal",
            entity_id=goal_id,
            profile=profile,
            correlation_id=correlation_id,
            description=f"Transfer of ${amount:,} on goal {goal_id}",
            details={
                "amount": amount,
                "debit_id": debit_id,
                "credit_id": credit_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_transfer_partial(
        goal_id: str,
        orphan_entry_id: str,
        error_message: str,
        profile: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_TRANSFER_PARTIAL,
            severity=AuditSeverity.ERROR,
            entity_type="entry",
            entity_id=orphan_entry_id,
            profile=profile,
            correlation_id=correlation_id,
            description=f"One-sided transfer on goal {goal_id}; delete {orphan_entry_id} by hand",
            details={
                "goal_id": goal_id,
            },
            error_message=error_message,
        )

    @staticmethod
    def config_updated(
        correlation_id: UUID,
        profile: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONFIG_UPDATED,
            entity_type="config",
            profile=profile,
            correlation_id=correlation_id,
            description="Configuration replaced",
            is_user_action=True,
        )

    @staticmethod
    def device_registered(
        device_id: str,
        profile: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEVICE_REGISTERED,
            entity_type="device",
            entity_id=device_id,
            profile=profile,
            correlation_id=correlation_id,
            description=f"Device {device_id} assigned to {profile}",
        )

    @staticmethod
    def refresh_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REFRESH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Refresh failed; keeping last good snapshot",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
