"""Dependency Injection container - initialized at app startup."""

from app.repositories.common import SharedCacheRepository
from app.repositories.core import UserNameCache, UserRepository
from app.repositories.db import close_db, get_cache_db, get_offline_db, get_store_db
from app.repositories.offline import OfflineSnapshotRepository, PendingMutationRepository
from app.repositories.requirements import RequirementRepository
from app.services.network import ConnectivityMonitor
from app.services.offline import OfflineSync
from app.services.requirements import ChangeFeed, DetailView, ListReconciler, PageCache, PageView, RequirementsFetcher
from settings import DB_PATH, OFFLINE_DB_PATH, SHARED_CACHE_PATH


class Container:
    """Application DI container - holds all singleton instances."""

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def init(
        self,
        db_path: str = DB_PATH,
        cache_path: str = SHARED_CACHE_PATH,
        offline_path: str = OFFLINE_DB_PATH,
        online: bool = True,
        **service_options,
    ) -> None:
        """Initialize all dependencies. Call once at app startup.

        `service_options` may carry `fetcher`, `page_cache` and `sync` dicts of
        constructor overrides (TTLs, retry counts, clocks).
        """
        if self._initialized:
            return

        # Repositories (singletons)
        store = get_store_db(db_path)
        self.requirements_repo = RequirementRepository(store)
        self.users = UserRepository(store, cache=UserNameCache())
        self.shared_cache = SharedCacheRepository(get_cache_db(cache_path))
        offline = get_offline_db(offline_path)
        self.snapshots = OfflineSnapshotRepository(offline)
        self.mutations = PendingMutationRepository(offline)

        # Services (with injected repos)
        self.feed = ChangeFeed()
        self.connectivity = ConnectivityMonitor(online=online)

        self.fetcher = RequirementsFetcher(
            repo=self.requirements_repo,
            cache=self.shared_cache,
            feed=self.feed,
            **service_options.get("fetcher", {}),
        )

        self.page_cache = PageCache(
            fetcher=self.fetcher,
            connectivity=self.connectivity,
            snapshots=self.snapshots,
            **service_options.get("page_cache", {}),
        )

        self.offline_sync = OfflineSync(
            fetcher=self.fetcher,
            snapshots=self.snapshots,
            mutations=self.mutations,
            connectivity=self.connectivity,
            page_cache=self.page_cache,
            **service_options.get("sync", {}),
        )

        self._initialized = True

    def page_view(self) -> PageView:
        """A new list view bound to the shared client cache."""
        return PageView(self.page_cache, self.connectivity)

    def list_reconciler(self, view: PageView, user_id: str) -> ListReconciler:
        return ListReconciler(self.feed, view, user_id)

    def detail_view(self, notify=None) -> DetailView:
        return DetailView(self.feed, notify)

    def reset(self) -> None:
        """Drop all instances and close connections (tests, re-init with new paths)."""
        close_db()
        self._initialized = False


# Global container instance
container = Container()
