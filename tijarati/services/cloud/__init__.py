"""Cloud backup (disabled in this build)."""

from tijarati.services.cloud.backup import CloudDisabledError, DisabledCloudBackup

__all__ = ["CloudDisabledError", "DisabledCloudBackup"]
