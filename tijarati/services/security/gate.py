"""
App Lock (PIN + Biometrics)

State machine:

    Unlocked --background / foreground (PIN set)--> Locked
    Locked   --correct PIN or biometric match-----> Unlocked
    (no PIN configured)                             always Unlocked

DESIGN DECISION: The PIN itself is never stored. Only the SHA-256 hex digest
of the trimmed PIN goes to the secret store, and verification compares
digests in constant time.
"""

import hashlib
import hmac
from enum import Enum
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from tijarati.audit import AuditLogger
from tijarati.config import get_settings
from tijarati.errors import TijaratiError
from tijarati.models.audit import AuditEventBuilder
from tijarati.services.security.biometrics import BiometricProvider, NoBiometrics
from tijarati.services.security.secrets import SecretStore


logger = structlog.get_logger(__name__)

UNLOCK_PROMPT = "Unlock Tijarati"


class LockState(str, Enum):
    UNLOCKED = "unlocked"
    LOCKED = "locked"


class AuthReason(str, Enum):
    """Reason codes carried by AuthError."""
    PIN_TOO_SHORT = "PIN_TOO_SHORT"
    PIN_REQUIRED = "PIN_REQUIRED"
    PIN_WRONG = "PIN_WRONG"
    PIN_NOT_SET = "PIN_NOT_SET"
    BIOMETRICS_UNAVAILABLE = "BIOMETRICS_UNAVAILABLE"
    APP_LOCKED = "APP_LOCKED"


_DEFAULT_MESSAGES = {
    AuthReason.PIN_REQUIRED: "PIN_REQUIRED",
    AuthReason.PIN_WRONG: "PIN_WRONG",
    AuthReason.PIN_NOT_SET: "Enable PIN first",
    AuthReason.BIOMETRICS_UNAVAILABLE: "Biometrics not available",
    AuthReason.APP_LOCKED: "App is locked",
}


class AuthError(TijaratiError):
    """A security operation was refused."""

    def __init__(self, reason: AuthReason, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or _DEFAULT_MESSAGES.get(reason, reason.value))


def hash_pin(pin: str) -> str:
    """SHA-256 hex digest of the trimmed PIN."""
    return hashlib.sha256(str(pin or "").strip().encode("utf-8")).hexdigest()


class SecurityStatus(BaseModel):
    """What SECURITY_GET reports."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pin_enabled: bool
    biometric_enabled: bool
    biometrics_available: bool
    locked: bool


class SecurityGate:
    """
    Owns the lock state and the PIN / biometric secrets.

    Call `on_foreground()` at startup and whenever the app returns to the
    foreground, and `on_background()` when it leaves.
    """

    def __init__(
        self,
        secrets: SecretStore,
        biometrics: Optional[BiometricProvider] = None,
        audit: Optional[AuditLogger] = None,
    ):
        settings = get_settings().security
        self._min_pin_length = settings.min_pin_length
        self._pin_key = settings.pin_hash_key
        self._bio_key = settings.biometric_flag_key

        self._secrets = secrets
        self._biometrics = biometrics or NoBiometrics()
        self._audit = audit or AuditLogger()

        self._state = LockState.UNLOCKED
        self._biometrics_available = False

    @property
    def state(self) -> LockState:
        return self._state

    @property
    def locked(self) -> bool:
        return self._state == LockState.LOCKED

    def require_unlocked(self) -> None:
        if self.locked:
            raise AuthError(AuthReason.APP_LOCKED)

    # -------------------------------------------------------------------------
    # Secret access
    # -------------------------------------------------------------------------

    async def _pin_hash(self) -> Optional[str]:
        return await self._secrets.get(self._pin_key) or None

    async def pin_enabled(self) -> bool:
        return await self._pin_hash() is not None

    async def biometric_enabled(self) -> bool:
        return await self._secrets.get(self._bio_key) == "1"

    async def probe_biometrics(self) -> bool:
        """Re-check hardware and enrollment. Provider errors count as unavailable."""
        try:
            available = bool(
                await self._biometrics.has_hardware()
                and await self._biometrics.is_enrolled()
            )
        except Exception as e:
            logger.warning("biometric_probe_failed", error=str(e))
            available = False
        self._biometrics_available = available
        return available

    async def status(self) -> SecurityStatus:
        """Current settings and lock state. Does not change the lock state."""
        return SecurityStatus(
            pin_enabled=await self.pin_enabled(),
            biometric_enabled=await self.biometric_enabled(),
            biometrics_available=await self.probe_biometrics(),
            locked=self.locked,
        )

    # -------------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------------

    def _lock(self, trigger: str) -> None:
        if self._state != LockState.LOCKED:
            self._state = LockState.LOCKED
            self._audit.log(AuditEventBuilder.app_locked(trigger))

    def _unlock(self, method: str) -> None:
        if self._state != LockState.UNLOCKED:
            self._state = LockState.UNLOCKED
            self._audit.log(AuditEventBuilder.app_unlocked(method))

    async def on_foreground(self) -> LockState:
        """Lock if a PIN is set, then try biometric unlock."""
        await self.probe_biometrics()
        if not await self.pin_enabled():
            self._unlock("no_pin")
            return self._state
        self._lock("foreground")
        await self.unlock_with_biometrics()
        return self._state

    async def on_background(self) -> LockState:
        if await self.pin_enabled():
            self._lock("background")
        return self._state

    async def unlock_with_pin(self, pin: str) -> None:
        """
        Unlock with the PIN.

        Raises:
            AuthError: PIN_TOO_SHORT or PIN_WRONG (state stays Locked)
        """
        stored = await self._pin_hash()
        if stored is None:
            self._unlock("no_pin")
            return

        entered = str(pin or "").strip()
        if len(entered) < self._min_pin_length:
            self._audit.log(AuditEventBuilder.unlock_failed("pin", AuthReason.PIN_TOO_SHORT.value))
            raise AuthError(
                AuthReason.PIN_TOO_SHORT,
                f"PIN must be at least {self._min_pin_length} digits",
            )
        if not hmac.compare_digest(hash_pin(entered), stored):
            self._audit.log(AuditEventBuilder.unlock_failed("pin", AuthReason.PIN_WRONG.value))
            raise AuthError(AuthReason.PIN_WRONG, "Wrong PIN")

        self._unlock("pin")

    async def unlock_with_biometrics(self) -> bool:
        """
        Attempt a biometric unlock.

        Returns:
            True if the gate is now Unlocked by this call. Never raises.
        """
        if not self.locked:
            return False
        try:
            if not await self.pin_enabled() or not await self.biometric_enabled():
                return False
            if not await self.probe_biometrics():
                return False
            matched = await self._biometrics.authenticate(UNLOCK_PROMPT)
        except Exception as e:
            logger.warning("biometric_unlock_failed", error=str(e))
            matched = False
        if not matched:
            self._audit.log(AuditEventBuilder.unlock_failed("biometric", "no_match"))
            return False
        self._unlock("biometric")
        return True

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def set_pin(self, pin: str) -> None:
        """Store a new PIN digest and lock immediately."""
        entered = str(pin or "").strip()
        if len(entered) < self._min_pin_length:
            raise AuthError(
                AuthReason.PIN_TOO_SHORT,
                f"PIN must be at least {self._min_pin_length} digits",
            )
        await self._secrets.set(self._pin_key, hash_pin(entered))
        self._audit.log(AuditEventBuilder.pin_set())
        self._lock("pin_set")

    async def disable_pin(self, pin: str) -> None:
        """
        Remove the PIN. Requires the current PIN when one is set.

        Biometric unlock is always switched off as well.
        """
        stored = await self._pin_hash()
        if stored is not None:
            entered = str(pin or "").strip()
            if len(entered) < self._min_pin_length:
                raise AuthError(AuthReason.PIN_REQUIRED)
            if not hmac.compare_digest(hash_pin(entered), stored):
                raise AuthError(AuthReason.PIN_WRONG)
            await self._secrets.delete(self._pin_key)

        await self._secrets.set(self._bio_key, "0")
        self._audit.log(AuditEventBuilder.pin_disabled(had_pin=stored is not None))
        self._unlock("pin_disabled")

    async def set_biometric(self, enabled: bool) -> None:
        available = await self.probe_biometrics()
        if enabled and not await self.pin_enabled():
            raise AuthError(AuthReason.PIN_NOT_SET)
        if enabled and not available:
            raise AuthError(AuthReason.BIOMETRICS_UNAVAILABLE)
        await self._secrets.set(self._bio_key, "1" if enabled else "0")
        self._audit.log(AuditEventBuilder.biometric_toggled(enabled))
