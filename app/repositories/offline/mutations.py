"""Pending mutation repository - offline writes queued for replay."""

import json
import uuid
from datetime import datetime
from typing import Any

import duckdb
from loguru import logger

from app.models.common import Clock, utcnow
from app.models.offline import (
    MutationOperation,
    MutationStatus,
    PendingMutation,
    SyncConflict,
)
from app.repositories.base import BaseRepository
from app.repositories.db import get_offline_db

_COLUMNS = "id, user_id, record_id, operation, patch, queued_at, retries, last_error, status, next_attempt"
_M_COLUMNS = ", ".join(f"m.{col.strip()}" for col in _COLUMNS.split(","))


def _to_mutation(row: tuple) -> PendingMutation:
    return PendingMutation(
        id=row[0],
        user_id=row[1],
        record_id=row[2],
        operation=MutationOperation(row[3]),
        patch=json.loads(row[4]),
        queued_at=row[5],
        retries=row[6],
        last_error=row[7],
        status=MutationStatus(row[8]),
        next_attempt=row[9],
    )


class PendingMutationRepository(BaseRepository):
    """Queue of offline writes and the conflicts found while replaying them."""

    def __init__(self, conn=None, clock: Clock = utcnow):
        super().__init__(conn)
        self._clock = clock

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return get_offline_db()

    def enqueue(
        self,
        user_id: str,
        record_id: str,
        operation: MutationOperation,
        patch: dict[str, Any] | None = None,
    ) -> PendingMutation:
        """Queue a write for later replay."""
        mutation = PendingMutation(
            id=str(uuid.uuid4()),
            user_id=user_id,
            record_id=record_id,
            operation=operation,
            patch=patch or {},
            queued_at=self._clock(),
        )
        self.execute(
            f"INSERT INTO pending_mutation ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                mutation.id,
                user_id,
                record_id,
                str(operation),
                json.dumps(mutation.patch, default=str),
                mutation.queued_at,
                0,
                None,
                str(MutationStatus.PENDING),
                None,
            ],
        )
        return mutation

    def get(self, mutation_id: str) -> PendingMutation | None:
        row = self.fetchone(f"SELECT {_COLUMNS} FROM pending_mutation WHERE id = ?", [mutation_id])
        return _to_mutation(row) if row else None

    def ready(self, limit: int, now: datetime | None = None) -> list[PendingMutation]:
        """Pending or failed items whose backoff has elapsed, oldest first.

        An item is held back while an older item for the same record is
        still unresolved (backing off, parked as a conflict or mid-replay),
        so writes to one record always land in the order they were made.
        """
        now = now or self._clock()
        rows = self.fetchall(
            f"""
            SELECT {_M_COLUMNS} FROM pending_mutation m
            WHERE m.status IN ('pending', 'failed')
              AND (m.next_attempt IS NULL OR m.next_attempt <= ?)
              AND NOT EXISTS (
                  SELECT 1 FROM pending_mutation older
                  WHERE older.record_id = m.record_id
                    AND (older.queued_at < m.queued_at OR (older.queued_at = m.queued_at AND older.id < m.id))
                    AND (
                        older.status IN ('conflict', 'syncing')
                        OR (older.status = 'failed' AND older.next_attempt > ?)
                    )
              )
            ORDER BY m.queued_at, m.id
            LIMIT ?
            """,
            [now, now, limit],
        )
        return [_to_mutation(r) for r in rows]

    def mark_syncing(self, mutation_id: str) -> None:
        self.execute("UPDATE pending_mutation SET status = 'syncing' WHERE id = ?", [mutation_id])

    def release(self, mutation_id: str) -> None:
        """Return an interrupted item to the queue untouched."""
        self.execute(
            "UPDATE pending_mutation SET status = 'pending' WHERE id = ? AND status = 'syncing'",
            [mutation_id],
        )

    def reclaim_interrupted(self) -> int:
        """Requeue items left mid-replay by a cancelled run or a dead process."""
        rows = self.fetchall("UPDATE pending_mutation SET status = 'pending' WHERE status = 'syncing' RETURNING id")
        if rows:
            logger.warning("Reclaimed {} interrupted queue items", len(rows))
        return len(rows)

    def mark_failed(self, mutation_id: str, error: str, next_attempt: datetime) -> None:
        self.execute(
            """
            UPDATE pending_mutation
            SET status = 'failed', retries = retries + 1, last_error = ?, next_attempt = ?
            WHERE id = ?
            """,
            [error, next_attempt, mutation_id],
        )

    def remove(self, mutation_id: str) -> None:
        """Drop a replayed (or discarded) item."""
        self.execute("DELETE FROM pending_mutation WHERE id = ?", [mutation_id])

    def park_conflict(self, mutation: PendingMutation, remote_row: dict[str, Any]) -> SyncConflict:
        """Hold an item for user resolution instead of overwriting a newer server row."""
        conflict = SyncConflict(
            mutation_id=mutation.id,
            record_id=mutation.record_id,
            local_patch=mutation.patch,
            remote_row=remote_row,
            detected_at=self._clock(),
        )
        with self.transaction() as cur:
            cur.execute(
                "UPDATE pending_mutation SET status = 'conflict', last_error = ? WHERE id = ?",
                ["Conflict detected - awaiting user resolution", mutation.id],
            )
            cur.execute(
                """
                INSERT OR REPLACE INTO sync_conflict (mutation_id, record_id, local_patch, remote_row, detected_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    conflict.mutation_id,
                    conflict.record_id,
                    json.dumps(conflict.local_patch, default=str),
                    json.dumps(remote_row, default=str),
                    conflict.detected_at,
                ],
            )
        return conflict

    def conflicts(self) -> list[SyncConflict]:
        rows = self.fetchall(
            "SELECT mutation_id, record_id, local_patch, remote_row, detected_at FROM sync_conflict ORDER BY detected_at"
        )
        return [
            SyncConflict(
                mutation_id=r[0],
                record_id=r[1],
                local_patch=json.loads(r[2]),
                remote_row=json.loads(r[3]),
                detected_at=r[4],
            )
            for r in rows
        ]

    def requeue(self, mutation_id: str) -> None:
        """Release a conflicted item for replay; it is now newer than the server row.

        Later items for the same record move forward by the same amount so
        they still replay after it.
        """
        item = self.get(mutation_id)
        if item is None:
            return
        shift = self._clock() - item.queued_at
        with self.transaction() as cur:
            rows = cur.execute(
                """
                SELECT id, queued_at FROM pending_mutation
                WHERE record_id = ? AND (queued_at > ? OR (queued_at = ? AND id >= ?))
                """,
                [item.record_id, item.queued_at, item.queued_at, item.id],
            ).fetchall()
            for row_id, queued_at in rows:
                cur.execute("UPDATE pending_mutation SET queued_at = ? WHERE id = ?", [queued_at + shift, row_id])
            cur.execute(
                "UPDATE pending_mutation SET status = 'pending', last_error = NULL, next_attempt = NULL WHERE id = ?",
                [mutation_id],
            )
            cur.execute("DELETE FROM sync_conflict WHERE mutation_id = ?", [mutation_id])

    def discard(self, mutation_id: str) -> None:
        """Drop a conflicted item in favour of the server row."""
        with self.transaction() as cur:
            cur.execute("DELETE FROM pending_mutation WHERE id = ?", [mutation_id])
            cur.execute("DELETE FROM sync_conflict WHERE mutation_id = ?", [mutation_id])

    def count(self) -> int:
        return int(self.fetchone("SELECT COUNT(*) FROM pending_mutation")[0])
