"""Tests for logging configuration and the AuditLogger."""

import logging
from uuid import uuid4

import pytest

from expense_ledger.audit import AuditLogger, configure_logging, configure_structlog
from expense_ledger.config import AppSettings
from expense_ledger.models.audit import AuditEventBuilder, AuditEventType
from expense_ledger.services.storage import InMemoryAuditStorage


class TestConfigureLogging:
    """Tests for structlog and stdlib setup."""

    def test_structlog_setup_leaves_root_logger_alone(self):
        """Configuring structlog alone adds no root handlers and keeps the level."""
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        configure_structlog(AppSettings(_env_file=None, log_json=False))
        assert root.handlers == handlers
        assert root.level == level

    def test_configure_logging_sets_root_level(self):
        """The full setup applies the configured level to the root logger."""
        root = logging.getLogger()
        level = root.level
        try:
            configure_logging(AppSettings(_env_file=None, log_level="warning"))
            assert root.level == logging.WARNING
        finally:
            root.setLevel(level)
            configure_structlog(AppSettings(_env_file=None))


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.mark.asyncio
    async def test_log_error_records_system_error(self):
        """log_error persists a system_error event."""
        storage = InMemoryAuditStorage()
        correlation_id = uuid4()
        await AuditLogger(storage).log_error(
            error_type="RuntimeError",
            error_message="boom",
            details={"operation": "add"},
            actor_id=7,
            correlation_id=correlation_id,
        )
        [event] = await storage.get_events_by_correlation_id(correlation_id)
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.actor_id == 7
        assert event.error_message == "boom"

    @pytest.mark.asyncio
    async def test_storage_failure_is_reported_not_raised(self):
        """A storage exception makes log() return False."""

        class BrokenStorage(InMemoryAuditStorage):
            async def append_event(self, event):
                raise RuntimeError("storage down")

        event = AuditEventBuilder.expense_deleted(expense_id=1, owner_id=1)
        assert await AuditLogger(BrokenStorage()).log(event) is False

    @pytest.mark.asyncio
    async def test_without_storage(self):
        """With no storage configured, log() succeeds locally."""
        event = AuditEventBuilder.expense_deleted(expense_id=1, owner_id=1)
        assert await AuditLogger().log(event) is True
