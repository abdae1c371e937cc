"""
Bridge Request Dispatcher

Receives text envelopes from the presentation layer, routes each to its
handler and produces exactly one response per envelope that carries an id.

DESIGN DECISION: Nothing escapes `handle_message`. Every failure, expected
or not, becomes a `{success: false, error}` result, because a request that
never gets an answer leaves the web bundle waiting forever.

Flow:
1. Decode JSON and the envelope (unparseable → dropped, nothing to answer)
2. Resolve `type` to a RequestKind (unknown → BridgeError)
3. Refuse data requests while the app is locked
4. Validate the payload against that kind's model
5. Run the handler
6. Encode the response (only if the envelope had an id)
"""

import json
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

import pydantic
import structlog

from tijarati.audit import AuditLogger
from tijarati.errors import TijaratiError
from tijarati.models.audit import AuditEventBuilder
from tijarati.models.bridge import (
    PAYLOAD_MODELS,
    UNGATED_KINDS,
    AskPayload,
    BiometricPayload,
    EmptyPayload,
    ExternalUrlPayload,
    GeminiKeyPayload,
    ImportPayload,
    PartnerIdPayload,
    PinPayload,
    ReminderIdPayload,
    ReminderPayload,
    RequestEnvelope,
    RequestKind,
    ResponseEnvelope,
    TransactionIdPayload,
    UnlockPayload,
    failure,
    success,
)
from tijarati.models.ledger import Partner, Transaction
from tijarati.bridge.navigation import NavigationHandler, is_allowed_url
from tijarati.services.assistant import GeminiAssistant
from tijarati.services.cloud import DisabledCloudBackup
from tijarati.services.security import AuthError, SecurityGate
from tijarati.services.storage import NotFoundError
from tijarati.services.transfer import SnapshotEngine
from tijarati.validation import RecordValidator, ValidationError

if TYPE_CHECKING:
    from tijarati.orchestrator import LedgerFlow


logger = structlog.get_logger(__name__)

Handler = Callable[[Any], Awaitable[Any]]


class BridgeError(TijaratiError):
    """Malformed envelope, unknown request type or unusable channel."""
    pass


# Optional reads: "nothing there yet" is an answer, not an error
NOT_FOUND_RESULTS = {
    RequestKind.CLOUD_STATUS: lambda: success(user=None, manifest=None),
    RequestKind.CLOUD_RESTORE: lambda: success(restored=None),
}


class Dispatcher:
    """
    Routes bridge requests to the host components.

    Every RequestKind must have a handler; a missing one is a programming
    error reported when the dispatcher is built, not when a request arrives.
    """

    def __init__(
        self,
        flow: "LedgerFlow",
        engine: SnapshotEngine,
        gate: SecurityGate,
        assistant: GeminiAssistant,
        cloud: DisabledCloudBackup,
        navigation: NavigationHandler,
        validator: Optional[RecordValidator] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self._flow = flow
        self._engine = engine
        self._gate = gate
        self._assistant = assistant
        self._cloud = cloud
        self._navigation = navigation
        self._validator = validator or RecordValidator()
        self._audit = audit or AuditLogger()

        self._handlers: dict[RequestKind, Handler] = {
            RequestKind.GET_TRANSACTIONS: self._get_transactions,
            RequestKind.SAVE_TRANSACTION: self._save_transaction,
            RequestKind.DELETE_TRANSACTION: self._delete_transaction,
            RequestKind.GET_PARTNERS: self._get_partners,
            RequestKind.SAVE_PARTNER: self._save_partner,
            RequestKind.DELETE_PARTNER: self._delete_partner,
            RequestKind.SCHEDULE_DEBT_REMINDER: self._schedule_reminder,
            RequestKind.CANCEL_DEBT_REMINDER: self._cancel_reminder,
            RequestKind.CLEAR_ALL_DATA: self._clear_all,
            RequestKind.IMPORT_DATA: self._import_data,
            RequestKind.EXPORT_DATA: self._export_data,
            RequestKind.SECURITY_GET: self._security_get,
            RequestKind.SECURITY_SET_PIN: self._security_set_pin,
            RequestKind.SECURITY_DISABLE_PIN: self._security_disable_pin,
            RequestKind.SECURITY_SET_BIOMETRIC: self._security_set_biometric,
            RequestKind.SECURITY_UNLOCK: self._security_unlock,
            RequestKind.AI_STATUS: self._ai_status,
            RequestKind.AI_SET_GEMINI_KEY: self._ai_set_key,
            RequestKind.AI_CLEAR_GEMINI_KEY: self._ai_clear_key,
            RequestKind.AI_GEMINI: self._ai_ask,
            RequestKind.CLOUD_STATUS: self._cloud_status,
            RequestKind.CLOUD_BACKUP: self._cloud_backup,
            RequestKind.CLOUD_RESTORE: self._cloud_restore,
            RequestKind.EXIT_APP: self._exit_app,
            RequestKind.OPEN_EXTERNAL: self._open_external,
        }
        missing = [kind.value for kind in RequestKind if kind not in self._handlers]
        if missing:
            raise BridgeError(f"No handler for request types: {', '.join(missing)}")

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def handle_message(self, raw: str) -> Optional[str]:
        """
        Process one raw envelope.

        Returns:
            The encoded response, or None when there is nobody to answer
            (no id, or the envelope could not be parsed at all)
        """
        envelope = self.decode_envelope(raw)
        if envelope is None:
            return None

        result = await self.dispatch(envelope)

        if envelope.id is None:
            return None
        return ResponseEnvelope(id=envelope.id, result=result).encode()

    def decode_envelope(self, raw: Any) -> Optional[RequestEnvelope]:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("bridge_message_unparseable", size=len(raw or ""))
            return None
        if not isinstance(data, dict):
            logger.warning("bridge_message_not_an_object")
            return None
        try:
            return RequestEnvelope.model_validate(data)
        except pydantic.ValidationError as e:
            logger.warning("bridge_envelope_invalid", error=str(e))
            return None

    async def dispatch(self, envelope: RequestEnvelope) -> Any:
        """Run one request and return its result. Never raises."""
        kind: Optional[RequestKind] = None
        try:
            kind = self._resolve_kind(envelope.type)
            if kind not in UNGATED_KINDS:
                self._gate.require_unlocked()
            payload = self._parse_payload(kind, envelope.payload)
            return await self._handlers[kind](payload)

        except NotFoundError as e:
            if kind in NOT_FOUND_RESULTS:
                return NOT_FOUND_RESULTS[kind]()
            self._audit.log(AuditEventBuilder.request_failed(
                envelope.id, envelope.type, type(e).__name__, str(e)
            ))
            return failure(str(e))

        except AuthError as e:
            self._audit.log(AuditEventBuilder.request_rejected(
                envelope.id, envelope.type, e.reason.value
            ))
            return failure(str(e), reason=e.reason.value)

        except TijaratiError as e:
            self._audit.log(AuditEventBuilder.request_failed(
                envelope.id, envelope.type, type(e).__name__, str(e)
            ))
            return failure(str(e))

        except Exception as e:
            logger.exception(
                "bridge_handler_crashed",
                request_id=envelope.id,
                request_type=envelope.type,
            )
            self._audit.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"request_type": envelope.type},
                correlation_id=envelope.id,
            )
            return failure(str(e) or type(e).__name__)

    def _resolve_kind(self, type_name: str) -> RequestKind:
        if not type_name:
            raise BridgeError("Missing request type")
        try:
            return RequestKind(type_name)
        except ValueError:
            raise BridgeError(f"Unknown request type: {type_name}")

    def _parse_payload(self, kind: RequestKind, payload: Any) -> Any:
        model = PAYLOAD_MODELS[kind]
        if model is EmptyPayload:
            return EmptyPayload()
        return self._validator.parse(model, payload)

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    async def _get_transactions(self, payload: EmptyPayload) -> list[dict]:
        return [tx.to_wire() for tx in await self._flow.list_transactions()]

    async def _save_transaction(self, tx: Transaction) -> dict:
        await self._flow.save_transaction(tx)
        return success()

    async def _delete_transaction(self, payload: TransactionIdPayload) -> dict:
        tx_id = payload.id.strip()
        if not tx_id:
            raise ValidationError("Transaction id is required")
        await self._flow.delete_transaction(tx_id)
        return success()

    async def _get_partners(self, payload: EmptyPayload) -> list[dict]:
        return [p.to_wire() for p in await self._flow.list_partners()]

    async def _save_partner(self, partner: Partner) -> dict:
        partner_id = await self._flow.save_partner(partner)
        return success(id=partner_id)

    async def _delete_partner(self, payload: PartnerIdPayload) -> dict:
        if payload.id is None:
            raise ValidationError("Partner id is required")
        await self._flow.delete_partner(payload.id)
        return success()

    # -------------------------------------------------------------------------
    # Reminders
    # -------------------------------------------------------------------------

    async def _schedule_reminder(self, payload: ReminderPayload) -> dict:
        reminder_id = await self._flow.schedule_reminder(
            payload.timestamp,
            title=payload.title,
            body=payload.body,
            tx_id=payload.tx_id,
        )
        return success(reminderId=reminder_id)

    async def _cancel_reminder(self, payload: ReminderIdPayload) -> dict:
        await self._flow.cancel_reminder(payload.id)
        return success()

    # -------------------------------------------------------------------------
    # Bulk
    # -------------------------------------------------------------------------

    async def _clear_all(self, payload: EmptyPayload) -> dict:
        await self._engine.clear_all()
        return success()

    async def _import_data(self, payload: ImportPayload) -> dict:
        try:
            data = payload.snapshot_data()
        except ValueError as e:
            raise ValidationError(f"Invalid snapshot JSON: {e}")
        result = await self._engine.import_snapshot(data)
        return success(
            counts={
                "partners": result.imported_partners,
                "transactions": result.imported_transactions,
            },
            skipped={
                "partners": result.skipped_partners,
                "transactions": result.skipped_transactions,
            },
        )

    async def _export_data(self, payload: EmptyPayload) -> dict:
        snapshot = await self._engine.export_snapshot()
        return success(snapshot=snapshot.to_wire())

    # -------------------------------------------------------------------------
    # Security
    # -------------------------------------------------------------------------

    async def _security_get(self, payload: EmptyPayload) -> dict:
        status = await self._gate.status()
        return success(**status.model_dump(by_alias=True))

    async def _security_set_pin(self, payload: PinPayload) -> dict:
        await self._gate.set_pin(payload.pin)
        return success()

    async def _security_disable_pin(self, payload: PinPayload) -> dict:
        await self._gate.disable_pin(payload.pin)
        return success()

    async def _security_set_biometric(self, payload: BiometricPayload) -> dict:
        await self._gate.set_biometric(payload.enabled)
        return success()

    async def _security_unlock(self, payload: UnlockPayload) -> dict:
        if payload.biometric:
            unlocked = await self._gate.unlock_with_biometrics()
            return success(unlocked=unlocked or not self._gate.locked)
        await self._gate.unlock_with_pin(payload.pin)
        return success(unlocked=True)

    # -------------------------------------------------------------------------
    # Assistant
    # -------------------------------------------------------------------------

    async def _ai_status(self, payload: EmptyPayload) -> dict:
        return success(**await self._assistant.status())

    async def _ai_set_key(self, payload: GeminiKeyPayload) -> dict:
        if await self._assistant.set_key(payload.key):
            return success(cleared=True)
        return success()

    async def _ai_clear_key(self, payload: EmptyPayload) -> dict:
        await self._assistant.clear_key()
        return success()

    async def _ai_ask(self, payload: AskPayload) -> dict:
        summary = payload.summary
        if summary is None:
            summary = (await self._flow.summary()).to_wire()
        reply = await self._assistant.ask(payload.message, payload.lang, summary)
        return success(reply=reply)

    # -------------------------------------------------------------------------
    # Cloud
    # -------------------------------------------------------------------------

    async def _cloud_status(self, payload: EmptyPayload) -> dict:
        return success(**await self._cloud.status())

    async def _cloud_backup(self, payload: EmptyPayload) -> dict:
        return success(**await self._cloud.backup())

    async def _cloud_restore(self, payload: EmptyPayload) -> dict:
        return success(**await self._cloud.restore())

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    async def _exit_app(self, payload: EmptyPayload) -> dict:
        await self._navigation.exit_app()
        return success()

    async def _open_external(self, payload: ExternalUrlPayload) -> dict:
        url = payload.url.strip()
        if not is_allowed_url(url):
            logger.warning("external_url_blocked", url=url)
            raise BridgeError("Blocked URL")
        await self._navigation.open_external(url)
        return success()
