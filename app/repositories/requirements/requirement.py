"""Requirement repository - relational store access for requirement rows."""

import uuid
from collections.abc import Iterable
from typing import Any

import polars as pl
from loguru import logger

from app.errors import RequirementNotFoundError
from app.models.common import Clock, utcnow
from app.models.requirements import (
    EDITABLE_COLUMNS,
    REQUIREMENT_COLUMNS,
    Requirement,
    RequirementStatus,
)
from app.repositories.base import BaseRepository
from app.repositories.requirements.query_builder import PageQuery, parse_rate

_SELECT = f"SELECT {', '.join(REQUIREMENT_COLUMNS)} FROM requirements"

_NON_TEXT = {
    "requirement_number": pl.Int64,
    "rate": pl.Float64,
    "created_at": pl.Datetime("us"),
    "updated_at": pl.Datetime("us"),
}
REQUIREMENT_SCHEMA = {col: _NON_TEXT.get(col, pl.Utf8) for col in REQUIREMENT_COLUMNS}


def requirements_frame(records: Iterable[Requirement], **extra: Any) -> pl.DataFrame:
    """Typed DataFrame of requirement rows, with constant `extra` columns prepended."""
    rows = [{**extra, **r.to_dict()} for r in records]
    schema = {**{k: pl.Utf8 for k in extra}, **REQUIREMENT_SCHEMA}
    return pl.DataFrame(rows, schema=schema)


class RequirementRepository(BaseRepository):
    """Repository for requirement reads (paged) and single-row writes."""

    def __init__(self, conn=None, clock: Clock = utcnow):
        super().__init__(conn)
        self._clock = clock

    def select_page(self, query: PageQuery) -> list[Requirement]:
        """Rows for one window (up to limit + 1)."""
        sql, params = query.select_sql()
        rows = self.fetchall(sql, params)
        logger.debug("select_page: {} rows", len(rows))
        return [Requirement.from_row(r) for r in rows]

    def count(self, query: PageQuery) -> int:
        """Exact number of rows matching the filters."""
        sql, params = query.count_sql()
        row = self.fetchone(sql, params)
        return int(row[0]) if row else 0

    def get(self, requirement_id: str) -> Requirement | None:
        """Single requirement by id."""
        row = self.fetchone(f"{_SELECT} WHERE id = ?", [requirement_id])
        return Requirement.from_row(row) if row else None

    def create(self, user_id: str, values: dict[str, Any], actor: str | None = None) -> Requirement:
        """Insert a requirement with the tenant's next display number."""
        data = _editable(values)
        if not data.get("title"):
            raise ValueError("title is required")
        status = RequirementStatus.parse(data.get("status")) or RequirementStatus.NEW
        now = self._clock()

        with self.transaction() as cur:
            row = cur.execute(
                "SELECT COALESCE(MAX(requirement_number), 0) FROM requirements WHERE user_id = ?",
                [user_id],
            ).fetchone()
            record = Requirement(
                **{
                    **data,
                    "id": str(uuid.uuid4()),
                    "user_id": user_id,
                    "requirement_number": int(row[0]) + 1,
                    "status": str(status),
                    "created_at": now,
                    "updated_at": now,
                    "created_by": actor,
                    "updated_by": actor,
                }
            )
            values_row = record.to_dict()
            cur.execute(
                f"INSERT INTO requirements ({', '.join(REQUIREMENT_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in REQUIREMENT_COLUMNS)})",
                [values_row[c] for c in REQUIREMENT_COLUMNS],
            )

        logger.info("Created requirement #{} for {}", record.requirement_number, user_id)
        return record

    def update(self, requirement_id: str, patch: dict[str, Any], actor: str | None = None) -> Requirement:
        """Apply a field patch; returns the updated row."""
        data = _editable(patch)
        if "status" in data:
            status = RequirementStatus.parse(data["status"])
            if status is None:
                raise ValueError(f"Unknown status: {data['status']!r}")
            data["status"] = str(status)
        data["updated_at"] = self._clock()
        data["updated_by"] = actor

        assignments = ", ".join(f"{col} = ?" for col in data)
        row = self.fetchone(
            f"UPDATE requirements SET {assignments} WHERE id = ? RETURNING {', '.join(REQUIREMENT_COLUMNS)}",
            [*data.values(), requirement_id],
        )
        if row is None:
            raise RequirementNotFoundError(requirement_id)
        logger.debug("Updated requirement {}: {}", requirement_id, sorted(data))
        return Requirement.from_row(row)

    def delete(self, requirement_id: str) -> Requirement | None:
        """Delete by id; returns the removed row, or None if it did not exist."""
        row = self.fetchone(
            f"DELETE FROM requirements WHERE id = ? RETURNING {', '.join(REQUIREMENT_COLUMNS)}",
            [requirement_id],
        )
        if row is None:
            return None
        logger.info("Deleted requirement {}", requirement_id)
        return Requirement.from_row(row)

    def insert_many(self, records: list[Requirement]) -> int:
        """Bulk insert already-built rows (imports, fixtures)."""
        if not records:
            return 0
        df = requirements_frame(records)
        with self.transaction() as cur:
            cur.register("requirements_df", df)
            cur.execute(
                f"INSERT INTO requirements ({', '.join(REQUIREMENT_COLUMNS)}) "
                f"SELECT {', '.join(REQUIREMENT_COLUMNS)} FROM requirements_df"
            )
            cur.unregister("requirements_df")
        logger.info("Inserted {} requirements", len(records))
        return len(records)


def _editable(values: dict[str, Any]) -> dict[str, Any]:
    """Keep caller-settable columns; rates arrive as free text from forms."""
    data = {k: v for k, v in values.items() if k in EDITABLE_COLUMNS}
    if "rate" in data:
        data["rate"] = parse_rate(data["rate"])
    return data
