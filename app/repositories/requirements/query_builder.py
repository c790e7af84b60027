"""Query builder - translates a QueryDescriptor into one parameterized SQL query.

Filter values that cannot be parsed (rates, dates, cursors, statuses) are
dropped rather than failing the query. Free-text search is cleaned of control
characters and its LIKE wildcards are escaped before it is bound.
"""

import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone

from loguru import logger

from app.models.requirements import (
    REQUIREMENT_COLUMNS,
    Cursor,
    QueryDescriptor,
    RequirementStatus,
    SortField,
)
from settings import MAX_PAGE_SIZE, MAX_SEARCH_LENGTH

SEARCH_COLUMNS = (
    "title",
    "company",
    "end_client",
    "primary_tech_stack",
    "description",
    "location",
    "vendor_company",
    "vendor_person_name",
    "vendor_email",
)

LIKE_ESCAPE = "\\"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")
_DIGITS = re.compile(r"^\d{1,9}$")


@dataclass(frozen=True)
class PageQuery:
    """Built query: WHERE/ORDER/window parts plus bound parameters."""

    where: list[str] = field(default_factory=list)
    params: list = field(default_factory=list)
    order_by: str = ""
    limit: int = 0
    offset: int = 0
    keyset: str | None = None
    keyset_params: list = field(default_factory=list)

    def select_sql(self) -> tuple[str, list]:
        """Rows for the window; fetches one extra row to detect a next page."""
        clauses = [*self.where]
        params = [*self.params]
        if self.keyset:
            clauses.append(self.keyset)
            params.extend(self.keyset_params)
        sql = (
            f"SELECT {', '.join(REQUIREMENT_COLUMNS)} FROM requirements "
            f"WHERE {' AND '.join(clauses)} ORDER BY {self.order_by} LIMIT ?"
        )
        params.append(self.limit + 1)
        if not self.keyset and self.offset:
            sql += " OFFSET ?"
            params.append(self.offset)
        return sql, params

    def count_sql(self) -> tuple[str, list]:
        """Exact count of rows matching the filters, ignoring the window."""
        return f"SELECT COUNT(*) FROM requirements WHERE {' AND '.join(self.where)}", list(self.params)


def clean_search(term: str | None) -> str:
    """Strip control characters, collapse whitespace, cap the length."""
    if not term:
        return ""
    text = _CONTROL_CHARS.sub(" ", term)
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:MAX_SEARCH_LENGTH]


def escape_like(term: str) -> str:
    """Escape LIKE metacharacters so they match literally."""
    return term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", LIKE_ESCAPE + "%").replace("_", LIKE_ESCAPE + "_")


def parse_rate(value: str | float | None) -> float | None:
    """Parse a rate bound; tolerates '$', ',' and '/hr' decorations."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().lower().replace("$", "").replace(",", "").removesuffix("/hr").strip()
    try:
        return float(text)
    except ValueError:
        logger.debug("Dropping unparseable rate filter: {!r}", value)
        return None


def parse_date_bound(value: str | None, end_of_day: bool = False) -> datetime | None:
    """Parse an ISO date or datetime; date-only upper bounds cover the whole day."""
    if not value:
        return None
    text = str(value).strip()
    try:
        if len(text) == 10:
            day = date.fromisoformat(text)
            return datetime.combine(day, time.max if end_of_day else time.min)
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Dropping invalid date filter: {!r}", value)
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _search_clause(term: str) -> tuple[str, list]:
    pattern = f"%{escape_like(term)}%"
    parts = [f"{col} ILIKE ? ESCAPE '{LIKE_ESCAPE}'" for col in SEARCH_COLUMNS]
    params: list = [pattern] * len(SEARCH_COLUMNS)

    # Exact-match shortcuts, only when the term has the right shape
    if _DIGITS.match(term):
        parts.append("requirement_number = ?")
        params.append(int(term))
    if _is_uuid(term):
        parts.append("id = ?")
        params.append(term.lower())
    if "@" in term and " " not in term:
        parts.append("lower(vendor_email) = ?")
        params.append(term.lower())

    return "(" + " OR ".join(parts) + ")", params


def _is_uuid(term: str) -> bool:
    if len(term) != 36:
        return False
    try:
        uuid.UUID(term)
    except ValueError:
        return False
    return True


def _cursor_value(cursor: Cursor, sort_by: SortField):
    """Coerce a cursor's sort value to the column type, or None if it does not fit."""
    value = cursor.sort_value
    try:
        if sort_by.is_timestamp:
            return value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
        if sort_by is SortField.RATE:
            return float(value)
        if sort_by is SortField.NUMBER:
            return int(value)
        return str(value)
    except (TypeError, ValueError):
        logger.debug("Dropping cursor with unusable sort value: {!r}", value)
        return None


def build_page_query(descriptor: QueryDescriptor) -> PageQuery:
    """Build the filtered, ordered, windowed query for one page."""
    where = ["user_id = ?"]
    params: list = [descriptor.user_id]

    status = RequirementStatus.parse(descriptor.status)
    if status is not None:
        where.append("status = ?")
        params.append(str(status))

    term = clean_search(descriptor.search)
    if term:
        clause, clause_params = _search_clause(term)
        where.append(clause)
        params.extend(clause_params)

    min_rate = parse_rate(descriptor.min_rate)
    if min_rate is not None:
        where.append("rate >= ?")
        params.append(min_rate)
    max_rate = parse_rate(descriptor.max_rate)
    if max_rate is not None:
        where.append("rate <= ?")
        params.append(max_rate)

    if descriptor.remote != "ALL":
        where.append("remote = ?")
        params.append(str(descriptor.remote))

    date_from = parse_date_bound(descriptor.date_from)
    if date_from is not None:
        where.append("created_at >= ?")
        params.append(date_from)
    date_to = parse_date_bound(descriptor.date_to, end_of_day=True)
    if date_to is not None:
        where.append("created_at <= ?")
        params.append(date_to)

    sort_by = descriptor.sort_by
    direction = descriptor.sort_order
    expr = sort_by.expression
    order_by = f"{expr} {direction.sql}, id {direction.sql}"
    page_size = min(max(1, descriptor.page_size), MAX_PAGE_SIZE)

    keyset = None
    keyset_params: list = []
    if descriptor.cursor is not None:
        value = _cursor_value(descriptor.cursor, sort_by)
        if value is not None:
            op = direction.keyset_operator
            keyset = f"({expr} {op} ? OR ({expr} = ? AND id {op} ?))"
            keyset_params = [value, value, descriptor.cursor.id]

    return PageQuery(
        where=where,
        params=params,
        order_by=order_by,
        limit=page_size,
        offset=0 if keyset else descriptor.page * page_size,
        keyset=keyset,
        keyset_params=keyset_params,
    )
