"""Models package - DDL and entities for all domains."""

from app.models.common import SHARED_CACHE_DDL, BaseEntity, utcnow
from app.models.core import USER_DDL, UserName
from app.models.offline import (
    OFFLINE_REQUIREMENT_DDL,
    OFFLINE_SNAPSHOT_DDL,
    PENDING_MUTATION_DDL,
    SYNC_CONFLICT_DDL,
    MutationOperation,
    MutationStatus,
    PendingMutation,
    SyncConflict,
    SyncReport,
)
from app.models.requirements import (
    REQUIREMENT_DDL,
    REQUIREMENT_INDEXES,
    Cursor,
    PageResult,
    QueryDescriptor,
    Requirement,
    RequirementStatus,
    SortDirection,
    SortField,
)

# Relational store (system of record)
STORE_DDL = [
    USER_DDL,
    REQUIREMENT_DDL,
    *REQUIREMENT_INDEXES,
]

# Distributed cache tier
CACHE_DDL = [
    SHARED_CACHE_DDL,
]

# Embedded per-device store
OFFLINE_DDL = [
    OFFLINE_REQUIREMENT_DDL,
    OFFLINE_SNAPSHOT_DDL,
    PENDING_MUTATION_DDL,
    SYNC_CONFLICT_DDL,
]

__all__ = [
    # Common
    "BaseEntity",
    "utcnow",
    # Core
    "UserName",
    # Requirements
    "Requirement",
    "RequirementStatus",
    "QueryDescriptor",
    "Cursor",
    "PageResult",
    "SortField",
    "SortDirection",
    # Offline
    "MutationOperation",
    "MutationStatus",
    "PendingMutation",
    "SyncConflict",
    "SyncReport",
    # DDL groups
    "STORE_DDL",
    "CACHE_DDL",
    "OFFLINE_DDL",
]
