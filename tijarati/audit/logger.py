"""
Audit Logger

DESIGN DECISION: Every state change in the host core is logged.
This provides:
1. Traceability of destructive operations (delete, clear, import)
2. A record of lock / unlock attempts
3. Debugging capability for requests that failed at the bridge

The audit logger:
- Writes structured JSON lines through structlog
- Never raises: a broken log sink must not break a request
- Supports the bridge request id as correlation id
"""

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from tijarati.models.audit import AuditEvent, AuditEventBuilder


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


T = TypeVar("T")


def configure_log_level(level: str = "INFO") -> None:
    """Route structlog output to stderr at the configured level."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central audit logging service.

    Events are written to the structured local log only. The ledger itself
    is the user-visible history; the audit trail is for support and
    debugging.
    """

    def __init__(self, logger: Optional[structlog.stdlib.BoundLogger] = None):
        self._logger = logger or structlog.get_logger("tijarati.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the log write itself failed.
        """
        log_dict = event.to_log_dict()
        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False
        return True

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """Log an unexpected error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


async def best_effort(
    operation: str,
    func: Callable[..., Awaitable[T]],
    *args: Any,
    audit: Optional[AuditLogger] = None,
    **kwargs: Any,
) -> Optional[T]:
    """
    Run a secondary effect whose failure must not fail the caller.

    Used for reminder cancellation around deletes, clears and imports:
    the primary write proceeds whether or not the cancellation worked.
    Failures are logged and swallowed; the return value is None on failure.
    """
    try:
        return await func(*args, **kwargs)
    except Exception as e:
        (audit or AuditLogger()).log(
            AuditEventBuilder.best_effort_failed(operation, str(e))
        )
        return None
