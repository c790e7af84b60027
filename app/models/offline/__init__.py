"""Offline store models - snapshot mirror and pending mutation queue."""

from app.models.offline.mutation import (
    PENDING_MUTATION_DDL,
    SYNC_CONFLICT_DDL,
    MutationOperation,
    MutationStatus,
    PendingMutation,
    SyncConflict,
    SyncReport,
)
from app.models.offline.snapshot import OFFLINE_REQUIREMENT_DDL, OFFLINE_SNAPSHOT_DDL

__all__ = [
    "OFFLINE_REQUIREMENT_DDL",
    "OFFLINE_SNAPSHOT_DDL",
    "PENDING_MUTATION_DDL",
    "SYNC_CONFLICT_DDL",
    "MutationOperation",
    "MutationStatus",
    "PendingMutation",
    "SyncConflict",
    "SyncReport",
]
