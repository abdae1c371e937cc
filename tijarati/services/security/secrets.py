"""
Secret Storage

Holds the PIN digest, the biometric flag and a runtime assistant key.
On device this is the platform keystore; the host ships a JSON file
implementation and an in-memory one for tests.
"""

import asyncio
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import structlog

from tijarati.errors import TijaratiError


logger = structlog.get_logger(__name__)


class SecretStoreError(TijaratiError):
    """The secret store could not be read or written."""
    pass


class SecretStore(ABC):
    """Key/value store for small string secrets."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        pass


class InMemorySecretStore(SecretStore):

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = str(value)

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)


class FileSecretStore(SecretStore):
    """
    Secrets kept in a JSON object on disk.

    Writes go to a temp file that replaces the original, so a crash never
    leaves a half-written file. The file is created owner-readable only.
    """

    def __init__(self, path: str):
        self._path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as e:
            raise SecretStoreError(f"Failed to read secrets from {self._path}: {e}")
        if not isinstance(data, dict):
            logger.warning("secret_file_not_an_object", path=str(self._path))
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".secrets-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise SecretStoreError(f"Failed to write secrets to {self._path}: {e}")

    def _get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def _set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = str(value)
            self._write(data)

    def _delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete, key)
