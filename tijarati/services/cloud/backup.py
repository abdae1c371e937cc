"""
Cloud Backup

Cloud backup and restore are disabled in this build. The requests are still
understood so the web bundle gets a clear answer instead of a timeout.
"""

from tijarati.errors import TijaratiError
from tijarati.services.storage.interface import NotFoundError


class CloudDisabledError(TijaratiError):
    pass


class DisabledCloudBackup:
    """Cloud backend for builds without cloud support."""

    async def status(self) -> dict:
        """
        Latest backup manifest for the signed-in user.

        Raises:
            NotFoundError: always (no user, no backup)
        """
        raise NotFoundError("No cloud backup found")

    async def backup(self) -> dict:
        raise CloudDisabledError("Cloud backup is disabled in this build.")

    async def restore(self) -> dict:
        raise CloudDisabledError("Cloud restore is disabled in this build.")
