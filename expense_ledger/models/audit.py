"""
Audit Models for the Expense Ledger

Every write to the ledger and every aggregation is recorded as an audit event.
This provides:
1. Traceability of who changed which expense and when
2. Debugging information when a write is rolled back
3. A correlation id linking all events of one call

DESIGN DECISION: The audit trail only grows. Stored events are never edited or removed.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Writes
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSE_WRITE_FAILED = "expense_write_failed"

    # Input
    VALIDATION_FAILED = "validation_failed"

    # Reads
    AGGREGATE_COMPUTED = "aggregate_computed"
    AGGREGATE_FAILED = "aggregate_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """How loudly an event is logged."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    One row in the audit_log table, one line in the structured log.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
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

    # Subject
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'aggregate')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    actor_id: Optional[int] = Field(
        default=None,
        description="Caller identity, when known"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate the events of one call"
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
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_row(self) -> dict:
        """Convert to a flat row for the audit_log table."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details_json": json.dumps(self.details) if self.details else None,
            "error_message": self.error_message,
        }

    @classmethod
    def from_row(cls, row: dict) -> "AuditEvent":
        return cls(
            event_id=UUID(row["event_id"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            event_type=AuditEventType(row["event_type"]),
            severity=AuditSeverity(row["severity"]),
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            actor_id=row["actor_id"],
            correlation_id=UUID(row["correlation_id"]) if row["correlation_id"] else None,
            description=row["description"],
            details=json.loads(row["details_json"]) if row["details_json"] else {},
            error_message=row["error_message"],
        )


class AuditEventBuilder:
    """
    Factory methods for the events the ledger emits.

    Usage:
        event = AuditEventBuilder.expense_created(expense_id, owner_id, amount, correlation_id)
        event = AuditEventBuilder.write_failed("delete", error, owner_id, correlation_id)
    """

    @staticmethod
    def expense_created(
        expense_id: int,
        owner_id: int,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=str(expense_id),
            actor_id=owner_id,
            correlation_id=correlation_id,
            description=f"Expense {expense_id} created",
            details={"amount": amount},
        )

    @staticmethod
    def expense_updated(
        expense_id: int,
        owner_id: int,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=str(expense_id),
            actor_id=owner_id,
            correlation_id=correlation_id,
            description=f"Expense {expense_id} updated",
            details={"amount": amount},
        )

    @staticmethod
    def expense_deleted(
        expense_id: int,
        owner_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=str(expense_id),
            actor_id=owner_id,
            correlation_id=correlation_id,
            description=f"Expense {expense_id} deleted",
        )

    @staticmethod
    def write_failed(
        operation: str,
        error: Exception,
        actor_id: Optional[int] = None,
        expense_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="expense",
            entity_id=str(expense_id) if expense_id is not None else None,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Expense {operation} rolled back",
            details={
                "operation": operation,
                "error_type": type(error).__name__,
            },
            error_message=str(error),
        )

    @staticmethod
    def validation_failed(
        operation: str,
        issues: list[dict],
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"{operation.capitalize()} request failed validation with {len(issues)} issues",
            details={
                "operation": operation,
                "issues": issues,
            },
        )

    @staticmethod
    def aggregate_computed(
        filter_name: str,
        window: str,
        record_count: int,
        total: str,
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AGGREGATE_COMPUTED,
            entity_type="aggregate",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Aggregated {record_count} expenses for {filter_name}",
            details={
                "filter": filter_name,
                "window": window,
                "record_count": record_count,
                "total": total,
            },
        )

    @staticmethod
    def aggregate_failed(
        filter_name: str,
        error: Exception,
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AGGREGATE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="aggregate",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Aggregation failed for filter {filter_name!r}",
            details={
                "filter": filter_name,
                "error_type": type(error).__name__,
            },
            error_message=str(error),
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            actor_id=actor_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
