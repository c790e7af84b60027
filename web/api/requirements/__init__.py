"""Requirements API."""

from web.api.requirements.views import (
    change_status,
    create_requirement,
    delete_requirement,
    get_requirement,
    get_requirements_page,
    update_requirement,
)

__all__ = [
    "get_requirements_page",
    "get_requirement",
    "create_requirement",
    "update_requirement",
    "delete_requirement",
    "change_status",
]
