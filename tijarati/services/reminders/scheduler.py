"""
Debt Reminder Scheduler

Schedules one-shot local notifications for credit sales.

DESIGN DECISION: The scheduler owns the set of live reminders; delivery is
delegated to a NotificationSink (the OS notification service on device, a
logger or a test double elsewhere). Handles are opaque strings stored on the
transaction as `reminderId`.

Rules:
- A reminder must be at least `min_lead_seconds` in the future
- Cancelling an unknown or already-fired handle is a no-op, never an error
- Reminders live in memory; a restarted host starts with none
"""

import asyncio
import math
from typing import Any, Callable, Optional, Protocol
from uuid import uuid4

import structlog
from pydantic import BaseModel, Field

from tijarati.audit import AuditLogger
from tijarati.config import get_settings
from tijarati.errors import TijaratiError
from tijarati.models.audit import AuditEventBuilder
from tijarati.models.ledger import now_millis


logger = structlog.get_logger(__name__)


class ScheduleError(TijaratiError):
    """Base exception for reminder scheduling."""
    pass


class InvalidScheduleError(ScheduleError):
    """Timestamp missing, not a number, or too soon."""
    pass


class ScheduledReminder(BaseModel):
    """A reminder waiting to be delivered."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    fire_at: int = Field(
        ...,
        description="Delivery time in epoch milliseconds"
    )
    title: str
    body: str = ""
    tx_id: Optional[str] = None
    channel_id: str = "debts"


class NotificationSink(Protocol):
    """Where fired reminders go."""

    async def deliver(self, reminder: ScheduledReminder) -> None:
        ...


class LoggingNotificationSink:
    """Default sink: writes the notification to the log."""

    async def deliver(self, reminder: ScheduledReminder) -> None:
        logger.info(
            "notification_delivered",
            reminder_id=reminder.id,
            channel=reminder.channel_id,
            title=reminder.title,
            body=reminder.body,
            tx_id=reminder.tx_id,
        )


def parse_timestamp(value: Any) -> int:
    """
    Coerce a reminder timestamp to epoch milliseconds.

    Raises:
        InvalidScheduleError: if absent, zero or not a number
    """
    if value is None or isinstance(value, bool):
        raise InvalidScheduleError("Invalid timestamp")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidScheduleError("Invalid timestamp")
    if math.isnan(number) or math.isinf(number) or number == 0:
        raise InvalidScheduleError("Invalid timestamp")
    return int(number)


class ReminderScheduler:
    """
    In-process reminder scheduler built on the asyncio event loop.

    Usage:
        scheduler = ReminderScheduler(sink=my_sink)
        handle = await scheduler.schedule(ts_ms, "Debt reminder", "Ali owes 50")
        await scheduler.cancel(handle)
    """

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        clock: Optional[Callable[[], int]] = None,
        audit: Optional[AuditLogger] = None,
    ):
        settings = get_settings().reminders
        self._min_lead_seconds = settings.min_lead_seconds
        self._channel_id = settings.channel_id
        self._default_title = settings.default_title

        self._sink = sink or LoggingNotificationSink()
        self._clock = clock or now_millis
        self._audit = audit or AuditLogger()

        self._live: dict[str, ScheduledReminder] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._deliveries: set[asyncio.Task] = set()

    def now(self) -> int:
        return self._clock()

    async def schedule(
        self,
        timestamp: Any,
        title: Optional[str] = None,
        body: Optional[str] = None,
        tx_id: Optional[str] = None,
    ) -> str:
        """
        Schedule a reminder.

        Args:
            timestamp: Delivery time in epoch milliseconds
            title: Notification title (defaults to "Debt reminder")
            body: Notification body
            tx_id: Transaction the reminder belongs to

        Returns:
            The reminder handle

        Raises:
            InvalidScheduleError: bad timestamp or less than the minimum lead time
        """
        fire_at = parse_timestamp(timestamp)
        delay_seconds = math.ceil((fire_at - self.now()) / 1000)
        if delay_seconds < self._min_lead_seconds:
            raise InvalidScheduleError("Reminder time must be in the future")

        reminder = ScheduledReminder(
            fire_at=fire_at,
            title=title or self._default_title,
            body=body or "",
            tx_id=tx_id or None,
            channel_id=self._channel_id,
        )
        self._live[reminder.id] = reminder

        loop = asyncio.get_running_loop()
        self._timers[reminder.id] = loop.call_later(
            delay_seconds, self._on_timer, reminder.id
        )

        self._audit.log(AuditEventBuilder.reminder_scheduled(
            reminder_id=reminder.id,
            tx_id=reminder.tx_id,
            delay_seconds=delay_seconds,
        ))
        return reminder.id

    async def cancel(self, handle: Optional[str]) -> bool:
        """
        Cancel a reminder. Never raises.

        Returns:
            True if a live reminder was cancelled
        """
        if not handle:
            return False
        handle = str(handle)
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.cancel()
        was_live = self._live.pop(handle, None) is not None
        self._audit.log(AuditEventBuilder.reminder_cancelled(handle, was_live))
        return was_live

    def is_live(self, handle: Optional[str]) -> bool:
        return bool(handle) and str(handle) in self._live

    def live_reminders(self) -> list[ScheduledReminder]:
        return sorted(self._live.values(), key=lambda r: r.fire_at)

    def _on_timer(self, handle: str) -> None:
        self._timers.pop(handle, None)
        task = asyncio.ensure_future(self.fire(handle))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def fire(self, handle: str) -> bool:
        """
        Deliver a live reminder now and drop it from the live set.

        Returns:
            False if the handle was no longer live
        """
        reminder = self._live.pop(handle, None)
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.cancel()
        if reminder is None:
            return False
        try:
            await self._sink.deliver(reminder)
        except Exception as e:
            logger.error(
                "notification_delivery_failed",
                reminder_id=handle,
                error=str(e),
                exc_info=True,
            )
            return False
        self._audit.log(AuditEventBuilder.reminder_fired(handle, reminder.tx_id))
        return True

    async def fire_due(self) -> int:
        """Deliver every reminder whose time has passed (e.g. after a suspend)."""
        now = self.now()
        due = [r.id for r in self.live_reminders() if r.fire_at <= now]
        delivered = 0
        for handle in due:
            if await self.fire(handle):
                delivered += 1
        return delivered

    async def shutdown(self) -> None:
        """Drop all timers without delivering."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._live.clear()
        if self._deliveries:
            await asyncio.gather(*self._deliveries, return_exceptions=True)
