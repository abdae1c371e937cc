"""
Data Models Package

This package contains all Pydantic models used by the Tijarati host core.
Records, bridge envelopes and audit events all conform to these schemas.
"""

from tijarati.models.ledger import (
    ImportResult,
    LedgerSummary,
    Partner,
    PricingMode,
    Snapshot,
    Transaction,
    TransactionType,
    ValidationIssue,
    coerce_record_list,
    now_millis,
)
from tijarati.models.bridge import (
    PAYLOAD_MODELS,
    UNGATED_KINDS,
    RequestEnvelope,
    RequestKind,
    ResponseEnvelope,
)
from tijarati.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "ImportResult",
    "LedgerSummary",
    "Partner",
    "PricingMode",
    "Snapshot",
    "Transaction",
    "TransactionType",
    "ValidationIssue",
    "coerce_record_list",
    "now_millis",
    # Bridge models
    "PAYLOAD_MODELS",
    "UNGATED_KINDS",
    "RequestEnvelope",
    "RequestKind",
    "ResponseEnvelope",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
