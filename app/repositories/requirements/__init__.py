"""Requirements repositories - query builder and relational store access."""

from app.repositories.requirements.query_builder import (
    SEARCH_COLUMNS,
    PageQuery,
    build_page_query,
    clean_search,
    escape_like,
    parse_date_bound,
    parse_rate,
)
from app.repositories.requirements.requirement import RequirementRepository, requirements_frame

__all__ = [
    "SEARCH_COLUMNS",
    "PageQuery",
    "build_page_query",
    "clean_search",
    "escape_like",
    "parse_date_bound",
    "parse_rate",
    "RequirementRepository",
    "requirements_frame",
]
