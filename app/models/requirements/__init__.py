"""Requirements domain models - records, query descriptors and page results."""

from app.models.requirements.query import (
    EMPTY_PAGE,
    Cursor,
    PageResult,
    QueryDescriptor,
    RemoteFilter,
    SortDirection,
    SortField,
    canonical_json,
    decode_cursor,
    encode_cursor,
)
from app.models.requirements.requirement import (
    EDITABLE_COLUMNS,
    REQUIREMENT_COLUMNS,
    REQUIREMENT_DDL,
    REQUIREMENT_INDEXES,
    RemoteType,
    Requirement,
    RequirementStatus,
)

__all__ = [
    "REQUIREMENT_DDL",
    "REQUIREMENT_INDEXES",
    "REQUIREMENT_COLUMNS",
    "EDITABLE_COLUMNS",
    "Requirement",
    "RequirementStatus",
    "RemoteType",
    "QueryDescriptor",
    "Cursor",
    "PageResult",
    "EMPTY_PAGE",
    "SortField",
    "SortDirection",
    "RemoteFilter",
    "canonical_json",
    "encode_cursor",
    "decode_cursor",
]
