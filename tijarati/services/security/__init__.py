"""App lock: PIN, biometrics and secret storage."""

from tijarati.services.security.biometrics import BiometricProvider, NoBiometrics
from tijarati.services.security.gate import (
    AuthError,
    AuthReason,
    LockState,
    SecurityGate,
    SecurityStatus,
    hash_pin,
)
from tijarati.services.security.secrets import (
    FileSecretStore,
    InMemorySecretStore,
    SecretStore,
    SecretStoreError,
)

__all__ = [
    "AuthError",
    "AuthReason",
    "BiometricProvider",
    "FileSecretStore",
    "InMemorySecretStore",
    "LockState",
    "NoBiometrics",
    "SecretStore",
    "SecretStoreError",
    "SecurityGate",
    "SecurityStatus",
    "hash_pin",
]
