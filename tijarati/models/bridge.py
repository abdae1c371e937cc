"""
Bridge Message Models

The presentation layer talks to the host through text envelopes:

    request:  {"id": "...", "type": "SAVE_TRANSACTION", "payload": {...}}
    response: {"id": "...", "result": {...}}

DESIGN DECISION: `type` is decoded into a closed enum (RequestKind) and every
kind has exactly one typed payload model. An unknown type is a decode error,
never a silent fallthrough.
"""

import json
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from tijarati.models.ledger import Partner, Transaction


class RequestKind(str, Enum):
    """Every request type the host understands."""
    # Ledger
    GET_TRANSACTIONS = "GET_TRANSACTIONS"
    SAVE_TRANSACTION = "SAVE_TRANSACTION"
    DELETE_TRANSACTION = "DELETE_TRANSACTION"
    GET_PARTNERS = "GET_PARTNERS"
    SAVE_PARTNER = "SAVE_PARTNER"
    DELETE_PARTNER = "DELETE_PARTNER"

    # Reminders
    SCHEDULE_DEBT_REMINDER = "SCHEDULE_DEBT_REMINDER"
    CANCEL_DEBT_REMINDER = "CANCEL_DEBT_REMINDER"

    # Bulk
    CLEAR_ALL_DATA = "CLEAR_ALL_DATA"
    IMPORT_DATA = "IMPORT_DATA"
    EXPORT_DATA = "EXPORT_DATA"

    # Security
    SECURITY_GET = "SECURITY_GET"
    SECURITY_SET_PIN = "SECURITY_SET_PIN"
    SECURITY_DISABLE_PIN = "SECURITY_DISABLE_PIN"
    SECURITY_SET_BIOMETRIC = "SECURITY_SET_BIOMETRIC"
    SECURITY_UNLOCK = "SECURITY_UNLOCK"

    # Assistant
    AI_STATUS = "AI_STATUS"
    AI_SET_GEMINI_KEY = "AI_SET_GEMINI_KEY"
    AI_CLEAR_GEMINI_KEY = "AI_CLEAR_GEMINI_KEY"
    AI_GEMINI = "AI_GEMINI"

    # Cloud (disabled in this build)
    CLOUD_STATUS = "CLOUD_STATUS"
    CLOUD_BACKUP = "CLOUD_BACKUP"
    CLOUD_RESTORE = "CLOUD_RESTORE"

    # Navigation signals
    EXIT_APP = "EXIT_APP"
    OPEN_EXTERNAL = "OPEN_EXTERNAL"


# Kinds still served while the app is locked. Changing the PIN or the
# biometric flag needs an unlocked app; disabling the PIN checks the current one.
UNGATED_KINDS = frozenset({
    RequestKind.SECURITY_GET,
    RequestKind.SECURITY_UNLOCK,
    RequestKind.SECURITY_DISABLE_PIN,
    RequestKind.EXIT_APP,
    RequestKind.OPEN_EXTERNAL,
})


# =============================================================================
# PAYLOADS
# =============================================================================

class PayloadModel(BaseModel):
    """Lenient base for request payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


class EmptyPayload(PayloadModel):
    """Payload for requests that carry no arguments."""
    pass


class TransactionIdPayload(PayloadModel):
    id: str = ""


class PartnerIdPayload(PayloadModel):
    id: Optional[int] = None


class ReminderIdPayload(PayloadModel):
    id: Optional[str] = None


class ReminderPayload(PayloadModel):
    """Arguments for SCHEDULE_DEBT_REMINDER."""

    # Left loose on purpose: the scheduler reports bad timestamps itself
    timestamp: Any = None
    title: Optional[str] = None
    body: Optional[str] = None
    tx_id: Optional[str] = None


class ImportPayload(PayloadModel):
    """
    Arguments for IMPORT_DATA.

    The snapshot may arrive as JSON text (`content`), as an object
    (`state`), or as the payload itself.
    """

    content: Optional[str] = None
    state: Optional[dict] = None
    transactions: Optional[Any] = None
    partners: Optional[Any] = None

    def snapshot_data(self) -> Any:
        """Resolve the raw snapshot object (may raise ValueError on bad JSON)."""
        if self.content:
            return json.loads(self.content)
        if self.state is not None:
            return self.state
        return {
            "transactions": self.transactions,
            "partners": self.partners,
        }


class PinPayload(PayloadModel):
    pin: str = ""

    @field_validator('pin', mode='before')
    @classmethod
    def none_is_blank(cls, v: Any) -> Any:
        return "" if v is None else v


class UnlockPayload(PayloadModel):
    """Arguments for SECURITY_UNLOCK: a PIN, or a request for the biometric prompt."""

    pin: str = ""
    biometric: bool = False

    @field_validator('pin', mode='before')
    @classmethod
    def none_is_blank(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator('biometric', mode='before')
    @classmethod
    def truthy(cls, v: Any) -> bool:
        return bool(v)


class BiometricPayload(PayloadModel):
    enabled: bool = False

    @field_validator('enabled', mode='before')
    @classmethod
    def truthy(cls, v: Any) -> bool:
        return bool(v)


class GeminiKeyPayload(PayloadModel):
    key: str = ""

    @field_validator('key', mode='before')
    @classmethod
    def none_is_blank(cls, v: Any) -> Any:
        return "" if v is None else v


class AskPayload(PayloadModel):
    """Arguments for AI_GEMINI."""

    message: str = ""
    lang: str = "english"
    summary: Optional[dict] = None

    @field_validator('summary', mode='before')
    @classmethod
    def objects_only(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else None


class ExternalUrlPayload(PayloadModel):
    url: str = ""


PAYLOAD_MODELS: dict[RequestKind, type[BaseModel]] = {
    RequestKind.GET_TRANSACTIONS: EmptyPayload,
    RequestKind.SAVE_TRANSACTION: Transaction,
    RequestKind.DELETE_TRANSACTION: TransactionIdPayload,
    RequestKind.GET_PARTNERS: EmptyPayload,
    RequestKind.SAVE_PARTNER: Partner,
    RequestKind.DELETE_PARTNER: PartnerIdPayload,
    RequestKind.SCHEDULE_DEBT_REMINDER: ReminderPayload,
    RequestKind.CANCEL_DEBT_REMINDER: ReminderIdPayload,
    RequestKind.CLEAR_ALL_DATA: EmptyPayload,
    RequestKind.IMPORT_DATA: ImportPayload,
    RequestKind.EXPORT_DATA: EmptyPayload,
    RequestKind.SECURITY_GET: EmptyPayload,
    RequestKind.SECURITY_SET_PIN: PinPayload,
    RequestKind.SECURITY_DISABLE_PIN: PinPayload,
    RequestKind.SECURITY_SET_BIOMETRIC: BiometricPayload,
    RequestKind.SECURITY_UNLOCK: UnlockPayload,
    RequestKind.AI_STATUS: EmptyPayload,
    RequestKind.AI_SET_GEMINI_KEY: GeminiKeyPayload,
    RequestKind.AI_CLEAR_GEMINI_KEY: EmptyPayload,
    RequestKind.AI_GEMINI: AskPayload,
    RequestKind.CLOUD_STATUS: EmptyPayload,
    RequestKind.CLOUD_BACKUP: EmptyPayload,
    RequestKind.CLOUD_RESTORE: EmptyPayload,
    RequestKind.EXIT_APP: EmptyPayload,
    RequestKind.OPEN_EXTERNAL: ExternalUrlPayload,
}


# =============================================================================
# ENVELOPES
# =============================================================================

class RequestEnvelope(BaseModel):
    """
    A decoded request before its payload is typed.

    `id` is None for fire-and-forget messages; those are handled but never
    answered.
    """

    id: Optional[str] = None
    type: str = ""
    payload: Any = None

    @field_validator('id', mode='before')
    @classmethod
    def falsy_id_is_none(cls, v: Any) -> Optional[str]:
        if v is None or v == "" or v is False or v == 0:
            return None
        return str(v)

    @field_validator('type', mode='before')
    @classmethod
    def type_as_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


LINE_SEPARATOR_ESCAPES = {
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


class ResponseEnvelope(BaseModel):
    """The single answer to a request that carried an id."""

    id: str
    result: Any = None

    def encode(self) -> str:
        """
        Serialize for the transport.

        U+2028 / U+2029 are legal in JSON but break the script-injection
        channel the web view listens on, so they are escaped.
        """
        text = json.dumps(
            {"id": self.id, "result": self.result},
            ensure_ascii=False,
            default=str,
        )
        for raw, escaped in LINE_SEPARATOR_ESCAPES.items():
            text = text.replace(raw, escaped)
        return text

    @classmethod
    def decode(cls, text: str) -> "ResponseEnvelope":
        return cls.model_validate(json.loads(text))


def failure(error: str, **extra: Any) -> dict:
    """Build the structured failure result every error is reported as."""
    return {"success": False, "error": error, **extra}


def success(**extra: Any) -> dict:
    return {"success": True, **extra}


__all__ = [
    "AskPayload",
    "BiometricPayload",
    "EmptyPayload",
    "ExternalUrlPayload",
    "GeminiKeyPayload",
    "ImportPayload",
    "PAYLOAD_MODELS",
    "PartnerIdPayload",
    "PinPayload",
    "ReminderIdPayload",
    "ReminderPayload",
    "RequestEnvelope",
    "RequestKind",
    "ResponseEnvelope",
    "TransactionIdPayload",
    "UnlockPayload",
    "UNGATED_KINDS",
    "failure",
    "success",
]
