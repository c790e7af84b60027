"""Pure transitions over PageResult.

Records may be shared by several cached pages, so nothing here mutates its
input: every function returns a new PageResult, or the same object when the
record is not on the page.
"""

from dataclasses import replace
from typing import Any

from app.models.requirements import EDITABLE_COLUMNS, PageResult, Requirement


def replace_record(page: PageResult, record: Requirement) -> PageResult:
    """Swap in a newer version of a visible record."""
    if record.id not in page.ids:
        return page
    return replace(page, records=tuple(record if r.id == record.id else r for r in page.records))


def remove_record(page: PageResult, record_id: str) -> PageResult:
    """Drop a record from the page, keeping the total in step."""
    if record_id not in page.ids:
        return page
    total = page.total - 1 if page.total else page.total
    return replace(page, records=tuple(r for r in page.records if r.id != record_id), total=total)


def patch_record(page: PageResult, record_id: str, patch: dict[str, Any]) -> PageResult:
    """Apply a field patch to one visible record."""
    current = next((r for r in page.records if r.id == record_id), None)
    if current is None:
        return page
    changes = {k: v for k, v in patch.items() if k in EDITABLE_COLUMNS or k == "updated_at"}
    if not changes:
        return page
    return replace_record(page, replace(current, **changes))
