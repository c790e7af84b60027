"""Requirement model - the tenant-scoped job requirement record."""

from dataclasses import dataclass, fields
from datetime import datetime
from enum import StrEnum
from typing import Any

from app.models.common import BaseEntity

REQUIREMENT_DDL = """
CREATE TABLE IF NOT EXISTS requirements (
    id VARCHAR PRIMARY KEY,
    user_id VARCHAR NOT NULL,
    requirement_number INTEGER NOT NULL,
    title VARCHAR NOT NULL,
    status VARCHAR NOT NULL DEFAULT 'NEW',
    company VARCHAR,
    end_client VARCHAR,
    description VARCHAR,
    location VARCHAR,
    consultant_id VARCHAR,
    applied_for VARCHAR,
    rate DOUBLE,
    primary_tech_stack VARCHAR,
    imp_name VARCHAR,
    client_website VARCHAR,
    imp_website VARCHAR,
    vendor_company VARCHAR,
    vendor_website VARCHAR,
    vendor_person_name VARCHAR,
    vendor_phone VARCHAR,
    vendor_email VARCHAR,
    next_step VARCHAR,
    remote VARCHAR,
    duration VARCHAR,
    created_by VARCHAR,
    updated_by VARCHAR,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
)
"""

REQUIREMENT_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_requirements_user_created ON requirements(user_id, created_at)",
]


class RequirementStatus(StrEnum):
    """Pipeline stage of a requirement."""

    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    INTERVIEW = "INTERVIEW"
    OFFER = "OFFER"
    REJECTED = "REJECTED"
    CLOSED = "CLOSED"

    @classmethod
    def parse(cls, value: str | None) -> "RequirementStatus | None":
        """Return the member for `value`, or None when it is not a recognized status."""
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class RemoteType(StrEnum):
    """Work-location classifier stored in `requirements.remote`."""

    REMOTE = "REMOTE"
    ONSITE = "ONSITE"
    HYBRID = "HYBRID"


@dataclass(frozen=True)
class Requirement(BaseEntity):
    """A requirement row. Immutable: changes produce a new instance."""

    id: str
    user_id: str
    requirement_number: int
    title: str
    status: str
    created_at: datetime
    updated_at: datetime
    company: str | None = None
    end_client: str | None = None
    description: str | None = None
    location: str | None = None
    consultant_id: str | None = None
    applied_for: str | None = None
    rate: float | None = None
    primary_tech_stack: str | None = None
    imp_name: str | None = None
    client_website: str | None = None
    imp_website: str | None = None
    vendor_company: str | None = None
    vendor_website: str | None = None
    vendor_person_name: str | None = None
    vendor_phone: str | None = None
    vendor_email: str | None = None
    next_step: str | None = None
    remote: str | None = None
    duration: str | None = None
    created_by: str | None = None
    updated_by: str | None = None

    @classmethod
    def from_row(cls, row: tuple) -> "Requirement":
        """Build from a `SELECT <REQUIREMENT_COLUMNS>` row."""
        return cls(**dict(zip(REQUIREMENT_COLUMNS, row)))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Requirement":
        """Build from a JSON-decoded dict (timestamps as ISO strings)."""
        values = {k: data.get(k) for k in REQUIREMENT_COLUMNS}
        for key in ("created_at", "updated_at"):
            if isinstance(values[key], str):
                values[key] = datetime.fromisoformat(values[key])
        if values["rate"] is not None:
            values["rate"] = float(values["rate"])
        return cls(**values)

    def to_json_dict(self) -> dict[str, Any]:
        """Dict with ISO timestamps, safe for json.dumps."""
        data = self.to_dict()
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data


# Column order of every SELECT issued for requirements
REQUIREMENT_COLUMNS: tuple[str, ...] = tuple(f.name for f in fields(Requirement))

# Columns a caller may set through create/update
EDITABLE_COLUMNS: frozenset[str] = frozenset(REQUIREMENT_COLUMNS) - {
    "id",
    "user_id",
    "requirement_number",
    "created_at",
    "updated_at",
    "created_by",
    "updated_by",
}
