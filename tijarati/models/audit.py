"""
Audit Models for Tijarati

Every state change in the host core is logged for audit purposes:
1. Record writes and deletes
2. Bulk import / clear / export
3. Reminder lifecycle
4. Lock, unlock and PIN changes

DESIGN DECISION: Audit events never carry secrets. PIN values, PIN digests
and API keys are not part of any event.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger records
    TRANSACTION_SAVED = "transaction_saved"
    TRANSACTION_DELETED = "transaction_deleted"
    PARTNER_SAVED = "partner_saved"
    PARTNER_DELETED = "partner_deleted"

    # Bulk operations
    DATA_IMPORTED = "data_imported"
    DATA_EXPORTED = "data_exported"
    DATA_CLEARED = "data_cleared"
    BULK_OPERATION_FAILED = "bulk_operation_failed"

    # Reminders
    REMINDER_SCHEDULED = "reminder_scheduled"
    REMINDER_CANCELLED = "reminder_cancelled"
    REMINDER_FIRED = "reminder_fired"

    # Security
    PIN_SET = "pin_set"
    PIN_DISABLED = "pin_disabled"
    BIOMETRIC_TOGGLED = "biometric_toggled"
    APP_LOCKED = "app_locked"
    APP_UNLOCKED = "app_unlocked"
    UNLOCK_FAILED = "unlock_failed"

    # Bridge
    REQUEST_FAILED = "request_failed"
    REQUEST_REJECTED = "request_rejected"

    # System events
    SYSTEM_ERROR = "system_error"
    BEST_EFFORT_FAILED = "best_effort_failed"


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
        default_factory=datetime.utcnow,
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
        description="Type of entity (e.g., 'transaction', 'partner', 'reminder')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - the bridge request id, when there is one
    correlation_id: Optional[str] = Field(
        default=None,
        description="Request id this event was produced for"
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
    error_code: Optional[str] = None
    error_message: Optional[str] = None

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
            "correlation_id": self.correlation_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_saved("t1")
        event = AuditEventBuilder.data_imported(partners=2, transactions=40)
    """

    @staticmethod
    def transaction_saved(tx_id: str, has_reminder: bool = False) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=tx_id,
            description=f"Transaction saved: {tx_id}",
            details={"has_reminder": has_reminder},
        )

    @staticmethod
    def transaction_deleted(
        tx_id: str,
        reminder_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=tx_id,
            description=f"Transaction deleted: {tx_id}",
            details={"cancelled_reminder": reminder_id},
        )

    @staticmethod
    def partner_saved(partner_id: Optional[int], name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTNER_SAVED,
            entity_type="partner",
            entity_id=str(partner_id) if partner_id is not None else None,
            description=f"Partner saved: {name}",
            details={"explicit_id": partner_id is not None},
        )

    @staticmethod
    def partner_deleted(partner_id: Optional[int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTNER_DELETED,
            entity_type="partner",
            entity_id=str(partner_id) if partner_id is not None else None,
            description=f"Partner deleted: {partner_id}",
        )

    @staticmethod
    def data_imported(
        partners: int,
        transactions: int,
        skipped: int,
        cancelled_reminders: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            entity_type="store",
            description=f"Imported {partners} partners and {transactions} transactions",
            details={
                "partners": partners,
                "transactions": transactions,
                "skipped": skipped,
                "cancelled_reminders": cancelled_reminders,
            },
        )

    @staticmethod
    def data_exported(partners: int, transactions: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            entity_type="store",
            description=f"Exported {partners} partners and {transactions} transactions",
            details={"partners": partners, "transactions": transactions},
        )

    @staticmethod
    def data_cleared(cancelled_reminders: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            severity=AuditSeverity.WARNING,
            entity_type="store",
            description="All transactions and partners deleted",
            details={"cancelled_reminders": cancelled_reminders},
        )

    @staticmethod
    def bulk_operation_failed(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BULK_OPERATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="store",
            description=f"{operation} rolled back",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def reminder_scheduled(
        reminder_id: str,
        tx_id: Optional[str],
        delay_seconds: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMINDER_SCHEDULED,
            entity_type="reminder",
            entity_id=reminder_id,
            description=f"Reminder scheduled in {delay_seconds}s",
            details={"tx_id": tx_id, "delay_seconds": delay_seconds},
        )

    @staticmethod
    def reminder_cancelled(reminder_id: str, was_live: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMINDER_CANCELLED,
            entity_type="reminder",
            entity_id=reminder_id,
            description="Reminder cancelled" if was_live else "Reminder already gone",
            details={"was_live": was_live},
        )

    @staticmethod
    def reminder_fired(reminder_id: str, tx_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMINDER_FIRED,
            entity_type="reminder",
            entity_id=reminder_id,
            description="Reminder delivered",
            details={"tx_id": tx_id},
        )

    @staticmethod
    def pin_set() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PIN_SET,
            entity_type="security",
            description="App PIN set; app locked",
        )

    @staticmethod
    def pin_disabled(had_pin: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PIN_DISABLED,
            entity_type="security",
            description="App PIN disabled" if had_pin else "App PIN already disabled",
            details={"had_pin": had_pin},
        )

    @staticmethod
    def biometric_toggled(enabled: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BIOMETRIC_TOGGLED,
            entity_type="security",
            description=f"Biometric unlock {'enabled' if enabled else 'disabled'}",
            details={"enabled": enabled},
        )

    @staticmethod
    def app_locked(trigger: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.APP_LOCKED,
            entity_type="security",
            description=f"App locked ({trigger})",
            details={"trigger": trigger},
        )

    @staticmethod
    def app_unlocked(method: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.APP_UNLOCKED,
            entity_type="security",
            description=f"App unlocked with {method}",
            details={"method": method},
        )

    @staticmethod
    def unlock_failed(method: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNLOCK_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="security",
            description=f"Unlock with {method} failed",
            error_code=reason,
            details={"method": method},
        )

    @staticmethod
    def request_failed(
        request_id: Optional[str],
        request_type: str,
        error_code: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REQUEST_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="request",
            entity_id=request_type,
            correlation_id=request_id,
            description=f"{request_type} failed: {error_code}",
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def request_rejected(
        request_id: Optional[str],
        request_type: str,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REQUEST_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="request",
            entity_id=request_type or None,
            correlation_id=request_id,
            description=f"Request rejected: {reason}",
            error_code=reason,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[str] = None,
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
    def best_effort_failed(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BEST_EFFORT_FAILED,
            severity=AuditSeverity.WARNING,
            description=f"Ignored failure in {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
