"""Common repositories - shared cache tier."""

from app.repositories.common.cache import SharedCacheRepository

__all__ = [
    "SharedCacheRepository",
]
