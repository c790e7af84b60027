"""Offline repositories - embedded snapshot and mutation queue."""

from app.repositories.offline.mutations import PendingMutationRepository
from app.repositories.offline.snapshot import OfflineSnapshotRepository

__all__ = [
    "OfflineSnapshotRepository",
    "PendingMutationRepository",
]
