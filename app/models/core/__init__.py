"""Core domain models - user accounts."""

from app.models.core.user import USER_DDL, UserName

__all__ = [
    "USER_DDL",
    "UserName",
]
