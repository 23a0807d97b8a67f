"""Audit logging package."""

from expense_ledger.audit.logger import AuditLogger, configure_logging, configure_structlog

__all__ = ["AuditLogger", "configure_logging", "configure_structlog"]
