"""Whole-ledger snapshot import, export and wipe."""

from tijarati.services.transfer.engine import SnapshotEngine

__all__ = ["SnapshotEngine"]
