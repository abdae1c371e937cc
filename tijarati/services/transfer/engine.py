"""
Snapshot Import / Export

DESIGN DECISION: Import is replace-all, never merge. The whole store is
swapped inside one database transaction; any failure leaves the previous
contents untouched.

Reminder handling:
- Handles referenced by the replaced rows are read inside that same
  transaction and cancelled once it commits, so a rolled-back import never
  leaves surviving rows pointing at cancelled reminders
- An imported reminderId survives only if it names a live reminder that no
  replaced row held (scheduled but not yet saved). Handles from another
  device, or ones just cancelled, are cleared from the imported rows
"""

from typing import Any, Optional

import structlog

from tijarati.audit import AuditLogger, best_effort
from tijarati.models.audit import AuditEventBuilder
from tijarati.models.ledger import ImportResult, Partner, Snapshot, Transaction
from tijarati.services.reminders import ReminderScheduler
from tijarati.services.storage import LedgerStorageInterface, StoreError
from tijarati.validation import RecordValidator, ValidationError


logger = structlog.get_logger(__name__)


class SnapshotEngine:
    """Export, import and wipe the whole ledger."""

    def __init__(
        self,
        store: LedgerStorageInterface,
        scheduler: ReminderScheduler,
        validator: Optional[RecordValidator] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._scheduler = scheduler
        self._validator = validator or RecordValidator()
        self._audit = audit or AuditLogger()

    async def export_snapshot(self) -> Snapshot:
        snapshot = Snapshot(
            transactions=await self._store.get_all_transactions(),
            partners=await self._store.get_all_partners(),
        )
        self._audit.log(AuditEventBuilder.data_exported(
            partners=len(snapshot.partners),
            transactions=len(snapshot.transactions),
        ))
        return snapshot

    def _parse_records(self, data: Any) -> tuple[list[Partner], list[Transaction], int, int]:
        raw_partners = data.get("partners")
        raw_transactions = data.get("transactions")
        raw_partners = raw_partners if isinstance(raw_partners, list) else []
        raw_transactions = raw_transactions if isinstance(raw_transactions, list) else []

        partners = []
        for raw in raw_partners:
            partner = self._validator.try_parse(Partner, raw)
            if partner is not None:
                partners.append(partner)

        # Same id twice: the later record wins, as with repeated saves
        by_id: dict[str, Transaction] = {}
        valid_transactions = 0
        for raw in raw_transactions:
            tx = self._validator.try_parse(Transaction, raw)
            if tx is not None:
                by_id[tx.id] = tx
                valid_transactions += 1

        return (
            partners,
            list(by_id.values()),
            len(raw_partners) - len(partners),
            len(raw_transactions) - valid_transactions,
        )

    async def import_snapshot(self, data: Any) -> ImportResult:
        """
        Replace the store with the contents of a snapshot.

        Args:
            data: Decoded snapshot object `{transactions: [...], partners: [...]}`

        Returns:
            Counts of records written and skipped

        Raises:
            ValidationError: if the snapshot is not an object
            StoreError: if the write failed (store unchanged)
        """
        if not isinstance(data, dict):
            raise ValidationError("Snapshot must be an object")

        partners, transactions, skipped_partners, skipped_transactions = (
            self._parse_records(data)
        )

        for i, tx in enumerate(transactions):
            if tx.reminder_id and not self._scheduler.is_live(tx.reminder_id):
                transactions[i] = tx.model_copy(update={"reminder_id": None})

        try:
            replaced = await self._store.replace_all(partners, transactions)
        except StoreError as e:
            self._audit.log(AuditEventBuilder.bulk_operation_failed("import", str(e)))
            raise

        cancelled = await self._cancel_reminders(replaced)

        result = ImportResult(
            imported_partners=len(partners),
            imported_transactions=len(transactions),
            skipped_partners=skipped_partners,
            skipped_transactions=skipped_transactions,
        )
        self._audit.log(AuditEventBuilder.data_imported(
            partners=result.imported_partners,
            transactions=result.imported_transactions,
            skipped=skipped_partners + skipped_transactions,
            cancelled_reminders=cancelled,
        ))
        return result

    async def clear_all(self) -> int:
        """
        Delete every transaction and partner and cancel every live reminder.

        Returns:
            Number of reminders cancelled
        """
        try:
            replaced = await self._store.clear_all()
        except StoreError as e:
            self._audit.log(AuditEventBuilder.bulk_operation_failed("clear", str(e)))
            raise

        handles = list(dict.fromkeys(
            replaced + [r.id for r in self._scheduler.live_reminders()]
        ))
        cancelled = await self._cancel_reminders(handles)
        self._audit.log(AuditEventBuilder.data_cleared(cancelled_reminders=cancelled))
        return cancelled

    async def _cancel_reminders(self, handles: list[str]) -> int:
        cancelled = 0
        for handle in handles:
            if await best_effort(
                "cancel_reminder", self._scheduler.cancel, handle, audit=self._audit
            ):
                cancelled += 1
        return cancelled
