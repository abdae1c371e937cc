"""Biometric authentication providers."""

from typing import Protocol


class BiometricProvider(Protocol):
    """Platform fingerprint / face unlock."""

    async def has_hardware(self) -> bool:
        ...

    async def is_enrolled(self) -> bool:
        ...

    async def authenticate(self, prompt: str) -> bool:
        """Show the system prompt; True only on a successful match."""
        ...


class NoBiometrics:
    """Provider for hosts without a biometric sensor."""

    async def has_hardware(self) -> bool:
        return False

    async def is_enrolled(self) -> bool:
        return False

    async def authenticate(self, prompt: str) -> bool:
        return False
