"""Common models - base classes and shared tables."""

from app.models.common.base import BaseEntity, Clock, utcnow
from app.models.common.cache import SHARED_CACHE_DDL

__all__ = [
    "BaseEntity",
    "Clock",
    "utcnow",
    "SHARED_CACHE_DDL",
]
