"""Requirements list services - fetch orchestration, client cache and realtime."""

from app.services.requirements.fetcher import RequirementsFetcher
from app.services.requirements.page_cache import CacheEntry, PageCache, PageState, PageView
from app.services.requirements.realtime import (
    ChangeFeed,
    ChangeType,
    DetailView,
    ListReconciler,
    RecordChange,
    SubscriptionState,
)
from app.services.requirements.reducers import patch_record, remove_record, replace_record

__all__ = [
    "RequirementsFetcher",
    "CacheEntry",
    "PageCache",
    "PageState",
    "PageView",
    "ChangeFeed",
    "ChangeType",
    "DetailView",
    "ListReconciler",
    "RecordChange",
    "SubscriptionState",
    "patch_record",
    "remove_record",
    "replace_record",
]
