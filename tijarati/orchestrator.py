"""
Main Orchestrator for Tijarati

This module ties together all the components and defines the
record-level flows:
1. Save / delete a transaction (keeping its reminder consistent)
2. Save / delete a partner
3. Schedule / cancel a debt reminder

DESIGN DECISION: The orchestrator enforces the boundaries:
- A transaction never outlives its reminder's cancellation attempt
- A reminder cancellation failure never fails the delete
- Every write is audited

`create_host()` builds the whole object graph explicitly. There is no
module-level store or scheduler: whoever creates the host owns it.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog

from tijarati.audit import AuditLogger, best_effort, configure_log_level
from tijarati.bridge.dispatcher import Dispatcher
from tijarati.bridge.navigation import LoggingNavigation, NavigationHandler
from tijarati.config import Settings, get_settings
from tijarati.models.audit import AuditEventBuilder
from tijarati.models.ledger import LedgerSummary, Partner, Transaction
from tijarati.services.assistant import GeminiAssistant
from tijarati.services.cloud import DisabledCloudBackup
from tijarati.services.reminders import NotificationSink, ReminderScheduler
from tijarati.services.security import (
    BiometricProvider,
    FileSecretStore,
    LockState,
    SecretStore,
    SecurityGate,
)
from tijarati.services.storage import LedgerStorageInterface, SQLiteLedgerStore
from tijarati.services.transfer import SnapshotEngine
from tijarati.validation import RecordValidator


logger = structlog.get_logger(__name__)


class LedgerFlow:
    """
    Orchestrates single-record writes.

    Flow for delete:
    1. Delete the row (the store hands back the reminder it referenced)
    2. Cancel that reminder, best effort
    3. Audit
    """

    def __init__(
        self,
        store: LedgerStorageInterface,
        scheduler: ReminderScheduler,
        audit: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._scheduler = scheduler
        self._audit = audit or AuditLogger()

    async def list_transactions(self) -> list[Transaction]:
        return await self._store.get_all_transactions()

    async def list_partners(self) -> list[Partner]:
        return await self._store.get_all_partners()

    async def summary(self) -> LedgerSummary:
        return LedgerSummary.from_transactions(await self._store.get_all_transactions())

    async def save_transaction(self, tx: Transaction) -> None:
        """
        Insert or replace a transaction.

        If the replaced row pointed at a different reminder, that reminder
        is cancelled.
        """
        previous = await self._store.get_transaction(tx.id)
        await self._store.upsert_transaction(tx)

        if previous is not None and previous.reminder_id and previous.reminder_id != tx.reminder_id:
            await best_effort(
                "cancel_replaced_reminder",
                self._scheduler.cancel,
                previous.reminder_id,
                audit=self._audit,
            )

        self._audit.log(AuditEventBuilder.transaction_saved(
            tx.id, has_reminder=tx.reminder_id is not None
        ))

    async def delete_transaction(self, tx_id: str) -> None:
        reminder_id = await self._store.delete_transaction(tx_id)
        if reminder_id:
            await best_effort(
                "cancel_reminder", self._scheduler.cancel, reminder_id, audit=self._audit
            )
        self._audit.log(AuditEventBuilder.transaction_deleted(tx_id, reminder_id))

    async def save_partner(self, partner: Partner) -> int:
        partner_id = await self._store.upsert_partner(partner)
        self._audit.log(AuditEventBuilder.partner_saved(partner_id, partner.name))
        return partner_id

    async def delete_partner(self, partner_id: int) -> bool:
        removed = await self._store.delete_partner(partner_id)
        self._audit.log(AuditEventBuilder.partner_deleted(partner_id))
        return removed

    async def schedule_reminder(
        self,
        timestamp: Any,
        title: Optional[str] = None,
        body: Optional[str] = None,
        tx_id: Optional[str] = None,
    ) -> str:
        return await self._scheduler.schedule(timestamp, title=title, body=body, tx_id=tx_id)

    async def cancel_reminder(self, handle: Optional[str]) -> bool:
        return await self._scheduler.cancel(handle)


@dataclass
class TijaratiHost:
    """Every component of a running host, wired together."""

    settings: Settings
    store: LedgerStorageInterface
    scheduler: ReminderScheduler
    gate: SecurityGate
    engine: SnapshotEngine
    assistant: GeminiAssistant
    cloud: DisabledCloudBackup
    flow: LedgerFlow
    dispatcher: Dispatcher
    navigation: NavigationHandler
    audit: AuditLogger

    async def handle_message(self, raw: str) -> Optional[str]:
        return await self.dispatcher.handle_message(raw)

    async def on_foreground(self) -> LockState:
        """App came back: deliver overdue reminders and re-lock if needed."""
        await self.scheduler.fire_due()
        return await self.gate.on_foreground()

    async def on_background(self) -> LockState:
        return await self.gate.on_background()

    async def close(self) -> None:
        await self.scheduler.shutdown()
        await self.store.close()


async def create_host(
    settings: Optional[Settings] = None,
    store: Optional[LedgerStorageInterface] = None,
    secrets: Optional[SecretStore] = None,
    biometrics: Optional[BiometricProvider] = None,
    sink: Optional[NotificationSink] = None,
    navigation: Optional[NavigationHandler] = None,
    clock: Optional[Callable[[], int]] = None,
) -> TijaratiHost:
    """
    Factory function to create all host components.

    Args:
        settings: Defaults to get_settings()
        store: Defaults to the SQLite store at the configured path
        secrets: Defaults to the file secret store at the configured path
        biometrics: Defaults to no biometric hardware
        sink: Where fired reminders go (defaults to the log)
        navigation: Exit / open-link handler (defaults to logging only)
        clock: Epoch-millisecond clock for the scheduler

    Returns:
        A started host: store migrated, lock state evaluated
    """
    settings = settings or get_settings()
    configure_log_level(settings.app.log_level)
    audit = AuditLogger()

    store = store or SQLiteLedgerStore(settings.store.db_path)
    await store.initialize()

    # Reminders live in memory, so handles stored by a previous run are dead
    detached = await store.detach_reminders(keep=())
    if detached:
        logger.info("stale_reminders_detached", count=detached)

    secrets = secrets or FileSecretStore(settings.security.secrets_path)
    scheduler = ReminderScheduler(sink=sink, clock=clock, audit=audit)
    gate = SecurityGate(secrets, biometrics=biometrics, audit=audit)
    validator = RecordValidator()
    engine = SnapshotEngine(store, scheduler, validator=validator, audit=audit)
    assistant = GeminiAssistant(secrets)
    cloud = DisabledCloudBackup()
    flow = LedgerFlow(store, scheduler, audit=audit)
    navigation = navigation or LoggingNavigation()

    dispatcher = Dispatcher(
        flow=flow,
        engine=engine,
        gate=gate,
        assistant=assistant,
        cloud=cloud,
        navigation=navigation,
        validator=validator,
        audit=audit,
    )

    host = TijaratiHost(
        settings=settings,
        store=store,
        scheduler=scheduler,
        gate=gate,
        engine=engine,
        assistant=assistant,
        cloud=cloud,
        flow=flow,
        dispatcher=dispatcher,
        navigation=navigation,
        audit=audit,
    )
    await gate.on_foreground()
    logger.info("host_started", locked=gate.locked)
    return host
