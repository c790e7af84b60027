"""Query descriptor, cursor and page result for the requirements list."""

import base64
import binascii
import hashlib
import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

from loguru import logger

from app.models.common import BaseEntity
from app.models.requirements.requirement import Requirement, RequirementStatus
from settings import DEFAULT_PAGE_SIZE

KEY_PREFIX = "requirements-page:"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"

    @property
    def sql(self) -> str:
        return "ASC" if self is SortDirection.ASC else "DESC"

    @property
    def keyset_operator(self) -> str:
        """Operator selecting rows strictly after the cursor in this direction."""
        return ">" if self is SortDirection.ASC else "<"


class SortField(StrEnum):
    """Sortable fields. Each maps explicitly to a store expression."""

    DATE = "date"
    UPDATED = "updated"
    COMPANY = "company"
    TITLE = "title"
    RATE = "rate"
    NUMBER = "number"

    @property
    def column(self) -> str:
        return _SORT_COLUMNS[self][0]

    @property
    def expression(self) -> str:
        """SQL expression ordered on; nullable columns are coalesced so keyset comparisons hold."""
        column, default = _SORT_COLUMNS[self]
        if default is None:
            return column
        literal = f"'{default}'" if isinstance(default, str) else str(default)
        return f"COALESCE({column}, {literal})"

    @property
    def is_timestamp(self) -> bool:
        return self in (SortField.DATE, SortField.UPDATED)

    def value_of(self, record: Requirement) -> Any:
        """Python-side value of `expression` for a record."""
        column, default = _SORT_COLUMNS[self]
        value = getattr(record, column)
        return default if value is None else value


# field -> (column, null default used in COALESCE or None when NOT NULL)
_SORT_COLUMNS: dict[SortField, tuple[str, Any]] = {
    SortField.DATE: ("created_at", None),
    SortField.UPDATED: ("updated_at", None),
    SortField.COMPANY: ("company", ""),
    SortField.TITLE: ("title", None),
    SortField.RATE: ("rate", 0),
    SortField.NUMBER: ("requirement_number", None),
}


class RemoteFilter(StrEnum):
    ALL = "ALL"
    REMOTE = "REMOTE"
    ONSITE = "ONSITE"
    HYBRID = "HYBRID"


def _parse_enum(enum_cls, value, default, upper: bool = False):
    """Member of `enum_cls` for `value`; unknown values fall back to `default`."""
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip()
    try:
        return enum_cls(text.upper() if upper else text.lower())
    except ValueError:
        logger.debug("Ignoring unknown {} value: {!r}", enum_cls.__name__, value)
        return default


@dataclass(frozen=True)
class Cursor(BaseEntity):
    """Keyset position: sort value and id of the last row already shown."""

    sort_value: Any
    id: str

    @classmethod
    def from_record(cls, record: Requirement, sort_by: SortField) -> "Cursor":
        value = sort_by.value_of(record)
        if isinstance(value, datetime):
            value = value.isoformat()
        return cls(sort_value=value, id=record.id)


def encode_cursor(cursor: Cursor) -> str:
    """Opaque URL-safe token for a cursor."""
    raw = json.dumps({"sort_value": cursor.sort_value, "id": cursor.id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode()).decode()


def decode_cursor(token: str | None) -> Cursor | None:
    """Decode a token from `encode_cursor`. Malformed tokens yield None."""
    if not token:
        return None
    try:
        data = json.loads(base64.urlsafe_b64decode(token.encode()).decode())
        return Cursor(sort_value=data["sort_value"], id=str(data["id"]))
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError):
        logger.debug("Dropping malformed cursor token")
        return None


def canonical_json(data: dict[str, Any]) -> str:
    """Deterministic JSON: sorted keys, no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


@dataclass(frozen=True)
class QueryDescriptor(BaseEntity):
    """Canonical page request: tenant, window, filters and sort."""

    user_id: str
    page: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    cursor: Cursor | None = None
    search: str = ""
    status: str = "ALL"
    date_from: str | None = None
    date_to: str | None = None
    min_rate: str | None = None
    max_rate: str | None = None
    remote: RemoteFilter = RemoteFilter.ALL
    sort_by: SortField = SortField.DATE
    sort_order: SortDirection = SortDirection.DESC

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueryDescriptor":
        """Build from a loose mapping (UI state). Unknown keys are ignored."""
        cursor = data.get("cursor")
        if isinstance(cursor, str):
            cursor = decode_cursor(cursor)
        elif isinstance(cursor, dict):
            cursor = Cursor(sort_value=cursor.get("sort_value"), id=str(cursor.get("id")))
        return cls(
            user_id=str(data["user_id"]),
            page=max(0, int(data.get("page") or 0)),
            page_size=int(data.get("page_size") or DEFAULT_PAGE_SIZE),
            cursor=cursor,
            search=str(data.get("search") or ""),
            status=str(data.get("status") or "ALL"),
            date_from=_optional_str(data.get("date_from")),
            date_to=_optional_str(data.get("date_to")),
            min_rate=_optional_str(data.get("min_rate")),
            max_rate=_optional_str(data.get("max_rate")),
            remote=_parse_enum(RemoteFilter, data.get("remote") or "ALL", RemoteFilter.ALL, upper=True),
            sort_by=_parse_enum(SortField, data.get("sort_by") or "date", SortField.DATE),
            sort_order=_parse_enum(SortDirection, data.get("sort_order") or "desc", SortDirection.DESC),
        )

    def key_fields(self) -> dict[str, Any]:
        """Normalized field values; semantically equal descriptors give equal dicts."""
        return {
            "user_id": self.user_id,
            "page": self.page,
            "page_size": self.page_size,
            "cursor": None if self.cursor is None else {"sort_value": self.cursor.sort_value, "id": self.cursor.id},
            **self.filter_fields(),
            "sort_by": str(self.sort_by),
            "sort_order": str(self.sort_order),
        }

    def filter_fields(self) -> dict[str, Any]:
        """Fields that determine which rows match, ignoring window and order."""
        return {
            "user_id": self.user_id,
            "search": self.search.strip(),
            "status": str(RequirementStatus.parse(self.status) or "ALL"),
            "date_from": self.date_from or "",
            "date_to": self.date_to or "",
            "min_rate": self.min_rate or "",
            "max_rate": self.max_rate or "",
            "remote": str(self.remote),
        }

    def fingerprint(self) -> str:
        """Cache key for this exact page."""
        return KEY_PREFIX + hashlib.sha256(canonical_json(self.key_fields()).encode()).hexdigest()

    def filter_fingerprint(self) -> str:
        """Key shared by every page of one filter combination (used for totals)."""
        return "requirements-total:" + hashlib.sha256(canonical_json(self.filter_fields()).encode()).hexdigest()

    @property
    def is_first_page(self) -> bool:
        return self.page == 0 and self.cursor is None

    @property
    def is_unfiltered(self) -> bool:
        f = self.filter_fields()
        return (
            not f["search"]
            and f["status"] == "ALL"
            and not (f["date_from"] or f["date_to"] or f["min_rate"] or f["max_rate"])
            and self.remote is RemoteFilter.ALL
        )

    @property
    def is_offline_mirror(self) -> bool:
        """Only the unfiltered first page is mirrored into the offline store."""
        return self.is_first_page and self.is_unfiltered

    def with_filters(self, **changes) -> "QueryDescriptor":
        """New filter combination: resets the window to page one."""
        return replace(self, page=0, cursor=None, **changes)

    def next_page(self, result: "PageResult") -> "QueryDescriptor | None":
        """Keyset descriptor for the page after `result`, or None at the end."""
        if not result.has_more or result.next_cursor is None:
            return None
        return replace(self, page=self.page + 1, cursor=result.next_cursor)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class PageResult(BaseEntity):
    """Immutable page snapshot. Updates go through `app.services.requirements.reducers`."""

    records: tuple[Requirement, ...] = field(default_factory=tuple)
    has_more: bool = False
    total: int | None = None
    next_cursor: Cursor | None = None

    @property
    def ids(self) -> list[str]:
        return [r.id for r in self.records]

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "records": [r.to_json_dict() for r in self.records],
            "has_more": self.has_more,
            "total": self.total,
            "next_cursor": None if self.next_cursor is None else self.next_cursor.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PageResult":
        cursor = data.get("next_cursor")
        return cls(
            records=tuple(Requirement.from_dict(r) for r in data.get("records", [])),
            has_more=bool(data.get("has_more")),
            total=data.get("total"),
            next_cursor=Cursor(**cursor) if cursor else None,
        )


EMPTY_PAGE = PageResult()
