"""Requirements API views - thin layer over services."""

import asyncio

from app.container import container
from app.errors import RequirementNotFoundError
from app.models.requirements import QueryDescriptor, Requirement, encode_cursor
from web.api.errors import NotFoundError, ValidationError, validate_page_size, validate_user_id

from .schemas import (
    RequirementCreate,
    RequirementItem,
    RequirementsPageRequest,
    RequirementsPageResponse,
    RequirementUpdate,
    StatusChangeResponse,
)


async def _to_items(records: list[Requirement] | tuple[Requirement, ...]) -> list[RequirementItem]:
    ids = [r.created_by for r in records] + [r.updated_by for r in records]
    names = await asyncio.to_thread(container.users.get_user_names, ids)

    def display(user_id: str | None) -> str | None:
        name = names.get(user_id) if user_id else None
        return name.full_name if name else None

    return [
        RequirementItem(
            **r.to_dict(),
            created_by_name=display(r.created_by),
            updated_by_name=display(r.updated_by),
        )
        for r in records
    ]


async def get_requirements_page(request: RequirementsPageRequest) -> RequirementsPageResponse:
    """Get one filtered, sorted page of a user's requirements."""
    validate_user_id(request.user_id)
    validate_page_size(request.page_size)
    descriptor = QueryDescriptor.from_dict(request.model_dump())

    page = await container.page_cache.get(descriptor, include_count=descriptor.is_first_page)

    return RequirementsPageResponse(
        user_id=descriptor.user_id,
        page=descriptor.page,
        page_size=descriptor.page_size,
        items=await _to_items(page.records),
        has_next_page=page.has_more,
        total=page.total,
        next_cursor=encode_cursor(page.next_cursor) if page.next_cursor else None,
    )


async def get_requirement(requirement_id: str) -> RequirementItem:
    """Get a single requirement for the detail view."""
    record = await container.fetcher.get_requirement(requirement_id)
    if record is None:
        raise NotFoundError(f"Requirement not found: {requirement_id}")
    return (await _to_items([record]))[0]


async def create_requirement(user_id: str, data: RequirementCreate, actor: str | None = None) -> RequirementItem:
    """Create a requirement; it gets the user's next display number."""
    validate_user_id(user_id)
    try:
        record = await container.fetcher.create(user_id, data.model_dump(exclude_none=True), actor)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return (await _to_items([record]))[0]


async def update_requirement(
    requirement_id: str,
    data: RequirementUpdate,
    actor: str | None = None,
) -> RequirementItem:
    """Update the fields that were set on `data`."""
    patch = data.model_dump(exclude_unset=True)
    if not patch:
        raise ValidationError("Nothing to update")
    try:
        record = await container.fetcher.update(requirement_id, patch, actor)
    except RequirementNotFoundError as e:
        raise NotFoundError(e.message) from e
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return (await _to_items([record]))[0]


async def delete_requirement(requirement_id: str, actor: str | None = None) -> None:
    """Delete a requirement."""
    if not await container.fetcher.delete(requirement_id, actor):
        raise NotFoundError(f"Requirement not found: {requirement_id}")


async def change_status(
    user_id: str,
    requirement_id: str,
    status: str,
    actor: str | None = None,
) -> StatusChangeResponse:
    """Move a requirement to another status; queued for replay when offline."""
    validate_user_id(user_id)
    try:
        result = await container.offline_sync.change_status(user_id, requirement_id, status, actor)
    except RequirementNotFoundError as e:
        raise NotFoundError(e.message) from e
    except ValueError as e:
        raise ValidationError(str(e)) from e

    if isinstance(result, Requirement):
        return StatusChangeResponse(requirement_id=requirement_id, status=result.status, queued=False)
    return StatusChangeResponse(requirement_id=requirement_id, status=result.patch["status"], queued=True)
