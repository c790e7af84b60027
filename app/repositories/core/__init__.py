"""Core repositories - user accounts."""

from app.repositories.core.user import UserNameCache, UserRepository

__all__ = [
    "UserNameCache",
    "UserRepository",
]
