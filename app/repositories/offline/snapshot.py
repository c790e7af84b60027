"""Offline snapshot repository - per-user mirror of the unfiltered first page."""

from datetime import timedelta
from typing import Any

import duckdb
import polars as pl
from loguru import logger

from app.models.common import Clock, utcnow
from app.models.requirements import EDITABLE_COLUMNS, REQUIREMENT_COLUMNS, Requirement
from app.repositories.base import BaseRepository
from app.repositories.db import get_offline_db
from app.repositories.requirements import requirements_frame
from settings import OFFLINE_SNAPSHOT_TTL

_OFFLINE_COLUMNS = ("position", *REQUIREMENT_COLUMNS)


class OfflineSnapshotRepository(BaseRepository):
    """Embedded store holding the last online first page for each user."""

    def __init__(self, conn=None, ttl: int = OFFLINE_SNAPSHOT_TTL, clock: Clock = utcnow):
        super().__init__(conn)
        self._ttl = ttl
        self._clock = clock

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return get_offline_db()

    def save_snapshot(self, user_id: str, records: list[Requirement]) -> None:
        """Overwrite the user's snapshot with `records` (in display order)."""
        now = self._clock()
        df = requirements_frame(records).with_columns(pl.lit(user_id).alias("user_id")).with_row_index("position")
        with self.transaction() as cur:
            cur.register("snapshot_df", df)
            cur.execute(
                "DELETE FROM offline_requirement WHERE user_id = ? AND id NOT IN (SELECT id FROM snapshot_df)",
                [user_id],
            )
            cur.execute(
                f"INSERT OR REPLACE INTO offline_requirement ({', '.join(_OFFLINE_COLUMNS)}) "
                f"SELECT {', '.join(_OFFLINE_COLUMNS)} FROM snapshot_df"
            )
            cur.unregister("snapshot_df")
            cur.execute(
                "INSERT OR REPLACE INTO offline_snapshot (user_id, cached_at, expires_at, count) VALUES (?, ?, ?, ?)",
                [user_id, now, now + timedelta(seconds=self._ttl), len(records)],
            )
        logger.info("Offline snapshot saved for {}: {} records", user_id, len(records))

    def load_snapshot(self, user_id: str, allow_stale: bool = False) -> list[Requirement] | None:
        """Snapshot records, or None when absent or expired (unless `allow_stale`)."""
        meta = self.fetchone("SELECT expires_at FROM offline_snapshot WHERE user_id = ?", [user_id])
        if meta is None:
            return None
        expired = meta[0] <= self._clock()
        if expired and not allow_stale:
            logger.debug("Offline snapshot for {} expired", user_id)
            return None
        if expired:
            logger.warning("Serving expired offline snapshot for {}", user_id)

        rows = self.fetchall(
            f"SELECT {', '.join(REQUIREMENT_COLUMNS)} FROM offline_requirement WHERE user_id = ? ORDER BY position",
            [user_id],
        )
        return [Requirement.from_row(r) for r in rows]

    def apply_patch(self, user_id: str, record_id: str, patch: dict[str, Any]) -> bool:
        """Optimistically patch one mirrored record. Returns False if it is not mirrored."""
        data = {k: v for k, v in patch.items() if k in EDITABLE_COLUMNS}
        data["updated_at"] = self._clock()
        assignments = ", ".join(f"{col} = ?" for col in data)
        row = self.fetchone(
            f"UPDATE offline_requirement SET {assignments} WHERE user_id = ? AND id = ? RETURNING id",
            [*data.values(), user_id, record_id],
        )
        return row is not None

    def remove_cached_record(self, user_id: str, record_id: str) -> None:
        """Drop one mirrored record and keep the metadata count accurate."""
        with self.transaction() as cur:
            cur.execute("DELETE FROM offline_requirement WHERE user_id = ? AND id = ?", [user_id, record_id])
            cur.execute(
                """
                UPDATE offline_snapshot
                SET count = (SELECT COUNT(*) FROM offline_requirement WHERE user_id = ?)
                WHERE user_id = ?
                """,
                [user_id, user_id],
            )

    def clear_snapshot(self, user_id: str) -> None:
        """Forget the user's snapshot entirely."""
        with self.transaction() as cur:
            cur.execute("DELETE FROM offline_requirement WHERE user_id = ?", [user_id])
            cur.execute("DELETE FROM offline_snapshot WHERE user_id = ?", [user_id])
        logger.info("Offline snapshot cleared for {}", user_id)

    def stats(self) -> dict[str, int]:
        """Snapshot row and user counts."""
        row = self.fetchone("SELECT COUNT(*), COUNT(DISTINCT user_id) FROM offline_requirement")
        return {"records": int(row[0]), "users": int(row[1])}
