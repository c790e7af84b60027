"""Services package - service class exports."""

from app.services.network import ConnectivityMonitor
from app.services.offline import OfflineSync
from app.services.requirements import (
    ChangeFeed,
    DetailView,
    ListReconciler,
    PageCache,
    PageView,
    RequirementsFetcher,
)

__all__ = [
    "ConnectivityMonitor",
    "OfflineSync",
    "ChangeFeed",
    "DetailView",
    "ListReconciler",
    "PageCache",
    "PageView",
    "RequirementsFetcher",
]
