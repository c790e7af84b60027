"""Repositories package - data access layer for the store, cache and offline databases."""

from app.repositories.base import BaseRepository
from app.repositories.common import SharedCacheRepository
from app.repositories.core import UserNameCache, UserRepository
from app.repositories.db import (
    close_db,
    get_cache_db,
    get_db,
    get_offline_db,
    get_store_db,
    init_tables,
)
from app.repositories.offline import OfflineSnapshotRepository, PendingMutationRepository
from app.repositories.requirements import RequirementRepository

__all__ = [
    # DB
    "get_db",
    "get_store_db",
    "get_cache_db",
    "get_offline_db",
    "close_db",
    "init_tables",
    # Base
    "BaseRepository",
    # Common
    "SharedCacheRepository",
    # Core
    "UserNameCache",
    "UserRepository",
    # Requirements
    "RequirementRepository",
    # Offline
    "OfflineSnapshotRepository",
    "PendingMutationRepository",
]
