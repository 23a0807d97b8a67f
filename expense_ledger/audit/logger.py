"""
Audit Logger

DESIGN DECISION: Every ledger write and every aggregation is logged.
This provides:
1. Complete traceability of who changed which expense
2. Debugging capability when a transaction is rolled back
3. A correlation id linking all events of one call

The audit logger:
- Is async so it composes with the ledger service
- Gracefully handles failures (never fails a ledger operation if logging fails)
- Tags events with the caller's correlation id
"""

import logging
import sys
from typing import Optional
from uuid import UUID

import structlog

from expense_ledger.config import AppSettings, get_settings
from expense_ledger.models.audit import AuditEvent, AuditEventBuilder
from expense_ledger.services.storage import AuditStorageInterface


def configure_structlog(settings: Optional[AppSettings] = None) -> None:
    """
    Configure the structlog processor chain.

    JSON output by default; console rendering when ``log_json`` is off.
    Leaves the stdlib root logger alone.
    """
    settings = settings or get_settings().app

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )

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
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(settings: Optional[AppSettings] = None) -> None:
    """Route stdlib logging to stdout at the configured level, then configure structlog."""
    settings = settings or get_settings().app

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )
    logging.getLogger().setLevel(getattr(logging, settings.log_level))
    configure_structlog(settings)


# Configure structlog for local logging
configure_structlog()


class AuditLogger:
    """Writes audit events to the structured log and, optionally, to storage."""

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Where events are persisted.
                    None keeps them in the structured log only.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        The structured log entry is always written; storage only when configured.

        Returns False only when a configured storage rejected the event.
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit persistence never fails the caller
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_created(
        self,
        expense_id: int,
        owner_id: int,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.expense_created(
            expense_id=expense_id,
            owner_id=owner_id,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_updated(
        self,
        expense_id: int,
        owner_id: int,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.expense_updated(
            expense_id=expense_id,
            owner_id=owner_id,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_deleted(
        self,
        expense_id: int,
        owner_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_write_failed(
        self,
        operation: str,
        error: Exception,
        actor_id: Optional[int] = None,
        expense_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a write that was rolled back."""
        event = AuditEventBuilder.write_failed(
            operation=operation,
            error=error,
            actor_id=actor_id,
            expense_id=expense_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        operation: str,
        issues: list[dict],
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.validation_failed(
            operation=operation,
            issues=issues,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_aggregate_computed(
        self,
        filter_name: str,
        window: str,
        record_count: int,
        total: str,
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.aggregate_computed(
            filter_name=filter_name,
            window=window,
            record_count=record_count,
            total=total,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_aggregate_failed(
        self,
        filter_name: str,
        error: Exception,
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.aggregate_failed(
            filter_name=filter_name,
            error=error,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an unexpected error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )
        await self.log(event)
