"""
Shared fixtures.

Every store is an isolated in-memory SQLite database, every secret store
lives in memory, and the reminder scheduler runs on a controllable clock.
"""

import json

import pytest

from tijarati.bridge import LoggingNavigation
from tijarati.orchestrator import create_host
from tijarati.services.reminders import ReminderScheduler, ScheduledReminder
from tijarati.services.security import InMemorySecretStore, SecurityGate
from tijarati.services.storage import SQLiteLedgerStore


START_MS = 1_700_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingSink:
    def __init__(self):
        self.delivered: list[ScheduledReminder] = []

    async def deliver(self, reminder: ScheduledReminder) -> None:
        self.delivered.append(reminder)


class FakeBiometrics:
    def __init__(self, hardware: bool = True, enrolled: bool = True, accept: bool = True):
        self.hardware = hardware
        self.enrolled = enrolled
        self.accept = accept
        self.prompts: list[str] = []

    async def has_hardware(self) -> bool:
        return self.hardware

    async def is_enrolled(self) -> bool:
        return self.enrolled

    async def authenticate(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.accept


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep tests away from real keys and files in the working directory."""
    monkeypatch.delenv("TIJARATI_GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("TIJARATI_STORE_DB_PATH", str(tmp_path / "tijarati.db"))
    monkeypatch.setenv("TIJARATI_SECURITY_SECRETS_PATH", str(tmp_path / "secrets.json"))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def biometrics():
    return FakeBiometrics(hardware=False, enrolled=False)


@pytest.fixture
def secrets():
    return InMemorySecretStore()


@pytest.fixture
async def store():
    s = SQLiteLedgerStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
async def scheduler(clock, sink):
    s = ReminderScheduler(sink=sink, clock=clock)
    yield s
    await s.shutdown()


@pytest.fixture
def gate(secrets, biometrics):
    return SecurityGate(secrets, biometrics=biometrics)


@pytest.fixture
def navigation():
    return LoggingNavigation()


@pytest.fixture
async def host(store, secrets, biometrics, sink, navigation, clock):
    h = await create_host(
        store=store,
        secrets=secrets,
        biometrics=biometrics,
        sink=sink,
        navigation=navigation,
        clock=clock,
    )
    yield h
    await h.close()


@pytest.fixture
def call(host):
    """Send one envelope through the dispatcher and return its result."""

    async def _call(kind: str, payload=None, request_id: str = "req-1"):
        raw = json.dumps({"id": request_id, "type": kind, "payload": payload})
        response = await host.handle_message(raw)
        assert response is not None
        decoded = json.loads(response)
        assert decoded["id"] == request_id
        return decoded["result"]

    return _call
