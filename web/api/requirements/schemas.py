"""Requirements API request/response schemas."""

from datetime import datetime

from pydantic import BaseModel

from settings import DEFAULT_PAGE_SIZE


class RequirementsPageRequest(BaseModel):
    """List request as sent by the table view."""

    user_id: str
    page: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    cursor: str | None = None
    search: str = ""
    status: str = "ALL"
    date_from: str | None = None
    date_to: str | None = None
    min_rate: str | None = None
    max_rate: str | None = None
    remote: str = "ALL"
    sort_by: str = "date"
    sort_order: str = "desc"


class RequirementItem(BaseModel):
    """Requirement as shown in the list and detail view."""

    id: str
    requirement_number: int
    title: str
    status: str
    company: str | None = None
    end_client: str | None = None
    description: str | None = None
    location: str | None = None
    rate: float | None = None
    primary_tech_stack: str | None = None
    vendor_company: str | None = None
    vendor_person_name: str | None = None
    vendor_phone: str | None = None
    vendor_email: str | None = None
    next_step: str | None = None
    remote: str | None = None
    duration: str | None = None
    created_at: datetime
    updated_at: datetime
    created_by_name: str | None = None
    updated_by_name: str | None = None


class RequirementsPageResponse(BaseModel):
    """One page of requirements."""

    user_id: str
    page: int
    page_size: int
    items: list[RequirementItem]
    has_next_page: bool
    total: int | None = None
    next_cursor: str | None = None


class RequirementCreate(BaseModel):
    """New requirement form."""

    title: str
    status: str | None = None
    company: str | None = None
    end_client: str | None = None
    description: str | None = None
    location: str | None = None
    consultant_id: str | None = None
    applied_for: str | None = None
    rate: str | float | None = None
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


class RequirementUpdate(BaseModel):
    """Partial update; only fields that were set are written."""

    title: str | None = None
    status: str | None = None
    company: str | None = None
    end_client: str | None = None
    description: str | None = None
    location: str | None = None
    consultant_id: str | None = None
    applied_for: str | None = None
    rate: str | float | None = None
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


class StatusChangeResponse(BaseModel):
    """Result of a status change; `queued` when it was stored for replay."""

    requirement_id: str
    status: str
    queued: bool
