"""Audit logging package."""

from tijarati.audit.logger import (
    AuditLogger,
    best_effort,
    configure_log_level,
    get_logger,
)

__all__ = ["AuditLogger", "best_effort", "configure_log_level", "get_logger"]
