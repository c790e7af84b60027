"""Pending offline mutations and replay conflicts."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from app.models.common import BaseEntity

PENDING_MUTATION_DDL = """
CREATE TABLE IF NOT EXISTS pending_mutation (
    id VARCHAR PRIMARY KEY,
    user_id VARCHAR NOT NULL,
    record_id VARCHAR NOT NULL,
    operation VARCHAR NOT NULL,
    patch JSON NOT NULL,
    queued_at TIMESTAMP NOT NULL,
    retries INTEGER NOT NULL DEFAULT 0,
    last_error VARCHAR,
    status VARCHAR NOT NULL DEFAULT 'pending',
    next_attempt TIMESTAMP
)
"""

SYNC_CONFLICT_DDL = """
CREATE TABLE IF NOT EXISTS sync_conflict (
    mutation_id VARCHAR PRIMARY KEY,
    record_id VARCHAR NOT NULL,
    local_patch JSON NOT NULL,
    remote_row JSON NOT NULL,
    detected_at TIMESTAMP NOT NULL
)
"""


class MutationOperation(StrEnum):
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class MutationStatus(StrEnum):
    PENDING = "pending"
    SYNCING = "syncing"
    FAILED = "failed"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class PendingMutation(BaseEntity):
    """A write made while offline, waiting to be replayed."""

    id: str
    user_id: str
    record_id: str
    operation: MutationOperation
    patch: dict[str, Any]
    queued_at: datetime
    retries: int = 0
    last_error: str | None = None
    status: MutationStatus = MutationStatus.PENDING
    next_attempt: datetime | None = None


@dataclass(frozen=True)
class SyncConflict(BaseEntity):
    """Server row changed after the local patch was queued."""

    mutation_id: str
    record_id: str
    local_patch: dict[str, Any]
    remote_row: dict[str, Any]
    detected_at: datetime


@dataclass(frozen=True)
class SyncReport(BaseEntity):
    """Outcome of one replay batch."""

    processed: int = 0
    failed: int = 0
    conflicts: int = 0
