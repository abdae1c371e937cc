"""Tests for the app lock and secret stores."""

import json
import os
import stat

import pytest

from tijarati.services.security import (
    AuthError,
    AuthReason,
    FileSecretStore,
    LockState,
    SecurityGate,
    hash_pin,
)


PIN_KEY = "tijarati_pin_hash"
BIO_KEY = "tijarati_bio_enabled"


class TestHashPin:

    def test_hash_is_sha256_of_trimmed_pin(self):
        assert hash_pin(" 1234 ") == hash_pin("1234")
        assert len(hash_pin("1234")) == 64
        assert hash_pin("1234") != hash_pin("4321")


class TestLockLifecycle:
    """Tests for the Locked / Unlocked state machine."""

    async def test_no_pin_stays_unlocked(self, gate):
        assert await gate.on_foreground() == LockState.UNLOCKED
        await gate.on_background()
        assert not gate.locked

    async def test_set_pin_locks(self, gate):
        await gate.set_pin("1234")
        assert gate.locked

    async def test_pin_is_stored_as_digest(self, gate, secrets):
        await gate.set_pin("1234")
        stored = await secrets.get(PIN_KEY)
        assert stored == hash_pin("1234")
        assert "1234" not in stored

    async def test_unlock_with_pin(self, gate):
        await gate.set_pin("1234")
        await gate.unlock_with_pin(" 1234 ")
        assert gate.state == LockState.UNLOCKED

    async def test_background_then_foreground_locks(self, gate):
        await gate.set_pin("1234")
        await gate.unlock_with_pin("1234")
        await gate.on_background()
        assert gate.locked
        await gate.unlock_with_pin("1234")
        assert await gate.on_foreground() == LockState.LOCKED

    async def test_wrong_pin(self, gate):
        await gate.set_pin("1234")
        with pytest.raises(AuthError, match="Wrong PIN") as exc:
            await gate.unlock_with_pin("9999")
        assert exc.value.reason == AuthReason.PIN_WRONG
        assert gate.locked

    async def test_short_pin_on_unlock(self, gate):
        await gate.set_pin("1234")
        with pytest.raises(AuthError, match="PIN must be at least 4 digits") as exc:
            await gate.unlock_with_pin("12")
        assert exc.value.reason == AuthReason.PIN_TOO_SHORT

    async def test_short_pin_on_set(self, gate, secrets):
        with pytest.raises(AuthError) as exc:
            await gate.set_pin("123")
        assert exc.value.reason == AuthReason.PIN_TOO_SHORT
        assert await secrets.get(PIN_KEY) is None
        assert not gate.locked

    async def test_require_unlocked(self, gate):
        gate.require_unlocked()
        await gate.set_pin("1234")
        with pytest.raises(AuthError, match="App is locked") as exc:
            gate.require_unlocked()
        assert exc.value.reason == AuthReason.APP_LOCKED


class TestDisablePin:

    async def test_disable_requires_pin(self, gate):
        await gate.set_pin("1234")
        with pytest.raises(AuthError) as exc:
            await gate.disable_pin("")
        assert exc.value.reason == AuthReason.PIN_REQUIRED
        assert str(exc.value) == "PIN_REQUIRED"

    async def test_disable_with_wrong_pin(self, gate, secrets):
        await gate.set_pin("1234")
        with pytest.raises(AuthError) as exc:
            await gate.disable_pin("0000")
        assert exc.value.reason == AuthReason.PIN_WRONG
        assert await secrets.get(PIN_KEY) is not None

    async def test_disable_clears_pin_and_biometrics(self, gate, secrets, biometrics):
        biometrics.hardware = biometrics.enrolled = True
        await gate.set_pin("1234")
        await gate.set_biometric(True)

        await gate.disable_pin("1234")

        assert await secrets.get(PIN_KEY) is None
        assert await secrets.get(BIO_KEY) == "0"
        assert not gate.locked

    async def test_disable_without_pin_is_allowed(self, gate, secrets):
        await gate.disable_pin("")
        assert await secrets.get(BIO_KEY) == "0"


class TestBiometrics:
    """Tests for the biometric unlock path."""

    async def test_enable_requires_pin(self, gate, biometrics):
        biometrics.hardware = biometrics.enrolled = True
        with pytest.raises(AuthError, match="Enable PIN first") as exc:
            await gate.set_biometric(True)
        assert exc.value.reason == AuthReason.PIN_NOT_SET

    async def test_enable_requires_hardware(self, gate):
        await gate.set_pin("1234")
        with pytest.raises(AuthError, match="Biometrics not available") as exc:
            await gate.set_biometric(True)
        assert exc.value.reason == AuthReason.BIOMETRICS_UNAVAILABLE

    async def test_disable_always_allowed(self, gate, secrets):
        await gate.set_biometric(False)
        assert await secrets.get(BIO_KEY) == "0"

    async def test_foreground_unlocks_with_fingerprint(self, gate, biometrics):
        biometrics.hardware = biometrics.enrolled = True
        await gate.set_pin("1234")
        await gate.set_biometric(True)

        assert await gate.on_foreground() == LockState.UNLOCKED
        assert biometrics.prompts == ["Unlock Tijarati"]

    async def test_rejected_fingerprint_stays_locked(self, gate, biometrics):
        biometrics.hardware = biometrics.enrolled = True
        await gate.set_pin("1234")
        await gate.set_biometric(True)
        biometrics.accept = False

        assert await gate.on_foreground() == LockState.LOCKED
        assert await gate.unlock_with_biometrics() is False

    async def test_lost_enrollment_falls_back_to_pin(self, gate, biometrics):
        biometrics.hardware = biometrics.enrolled = True
        await gate.set_pin("1234")
        await gate.set_biometric(True)
        biometrics.enrolled = False

        assert await gate.on_foreground() == LockState.LOCKED
        assert biometrics.prompts == []

    async def test_provider_errors_never_raise(self, secrets):
        class BrokenBiometrics:
            async def has_hardware(self):
                raise RuntimeError("sensor crashed")

            async def is_enrolled(self):
                return True

            async def authenticate(self, prompt):
                return True

        await secrets.set(PIN_KEY, hash_pin("1234"))
        await secrets.set(BIO_KEY, "1")
        gate = SecurityGate(secrets, biometrics=BrokenBiometrics())

        assert await gate.on_foreground() == LockState.LOCKED
        assert await gate.probe_biometrics() is False


class TestStatus:

    async def test_status_does_not_change_lock(self, gate):
        await gate.set_pin("1234")
        status = await gate.status()
        assert status.pin_enabled is True
        assert status.locked is True
        await gate.unlock_with_pin("1234")
        status = await gate.status()
        assert status.locked is False
        assert not gate.locked

    async def test_status_wire_names(self, gate):
        wire = (await gate.status()).model_dump(by_alias=True)
        assert wire == {
            "pinEnabled": False,
            "biometricEnabled": False,
            "biometricsAvailable": False,
            "locked": False,
        }


class TestFileSecretStore:
    """Tests for the JSON file secret store."""

    async def test_values_persist(self, tmp_path):
        path = tmp_path / "secrets.json"
        await FileSecretStore(str(path)).set("k", "v")
        assert await FileSecretStore(str(path)).get("k") == "v"
        assert json.loads(path.read_text()) == {"k": "v"}

    async def test_missing_file_reads_empty(self, tmp_path):
        assert await FileSecretStore(str(tmp_path / "none.json")).get("k") is None

    async def test_delete(self, tmp_path):
        store = FileSecretStore(str(tmp_path / "secrets.json"))
        await store.set("a", "1")
        await store.set("b", "2")
        await store.delete("a")
        await store.delete("missing")
        assert await store.get("a") is None
        assert await store.get("b") == "2"

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions only")
    async def test_file_is_owner_only(self, tmp_path):
        path = tmp_path / "secrets.json"
        await FileSecretStore(str(path)).set("k", "v")
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    async def test_gate_over_file_store(self, tmp_path):
        path = str(tmp_path / "secrets.json")
        await SecurityGate(FileSecretStore(path)).set_pin("1234")

        restarted = SecurityGate(FileSecretStore(path))
        assert await restarted.on_foreground() == LockState.LOCKED
        await restarted.unlock_with_pin("1234")
        assert not restarted.locked
