"""Services package."""

from tijarati.services.storage import (
    LedgerStorageInterface,
    NotFoundError,
    SQLiteLedgerStore,
    StoreConnectionError,
    StoreError,
)
from tijarati.services.reminders import (
    InvalidScheduleError,
    ReminderScheduler,
    ScheduleError,
)
from tijarati.services.security import (
    AuthError,
    AuthReason,
    FileSecretStore,
    InMemorySecretStore,
    SecurityGate,
)
from tijarati.services.transfer import SnapshotEngine
from tijarati.services.assistant import AssistantError, GeminiAssistant
from tijarati.services.cloud import CloudDisabledError, DisabledCloudBackup

__all__ = [
    # Storage
    "LedgerStorageInterface",
    "NotFoundError",
    "SQLiteLedgerStore",
    "StoreConnectionError",
    "StoreError",
    # Reminders
    "InvalidScheduleError",
    "ReminderScheduler",
    "ScheduleError",
    # Security
    "AuthError",
    "AuthReason",
    "FileSecretStore",
    "InMemorySecretStore",
    "SecurityGate",
    # Import / export
    "SnapshotEngine",
    # Assistant
    "AssistantError",
    "GeminiAssistant",
    # Cloud
    "CloudDisabledError",
    "DisabledCloudBackup",
]
