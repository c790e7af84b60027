"""Client page cache and page view - stale-while-revalidate over the fetcher.

`PageCache` is the per-session in-memory tier: short TTL, collapses identical
requests (in flight or inside the dedupe window), retries transient failures
and falls back to the offline snapshot when the device is offline.

`PageView` is what the UI binds to. It keeps the previous page visible while
the next one loads, revalidates silently on focus and reconnect, and ignores
responses for descriptors it has already moved past.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_fixed

from app.errors import is_transient
from app.models.requirements import EMPTY_PAGE, PageResult, QueryDescriptor, Requirement, RequirementStatus
from app.repositories.offline import OfflineSnapshotRepository
from app.repositories.requirements import SEARCH_COLUMNS, clean_search
from app.services.network import ConnectivityMonitor
from app.services.requirements.fetcher import RequirementsFetcher
from settings import (
    CLIENT_CACHE_TTL,
    DEDUPING_INTERVAL,
    ERROR_RETRY_COUNT,
    ERROR_RETRY_INTERVAL,
    FOCUS_THROTTLE_INTERVAL,
)

Transition = Callable[[PageResult], PageResult]


@dataclass(frozen=True)
class CacheEntry:
    page: PageResult
    fetched_at: float


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "Page fetch failed (attempt {}), retrying: {}",
        retry_state.attempt_number,
        retry_state.outcome.exception(),
    )


def _discard(items: list, item: Any) -> None:
    if item in items:
        items.remove(item)


def _matches_offline(record: Requirement, descriptor: QueryDescriptor, term: str) -> bool:
    status = RequirementStatus.parse(descriptor.status)
    if status is not None and record.status != status:
        return False
    if not term:
        return True
    needle = term.lower()
    return any(needle in (getattr(record, col) or "").lower() for col in SEARCH_COLUMNS)


class PageCache:
    """In-memory client tier keyed by descriptor fingerprint."""

    def __init__(
        self,
        fetcher: RequirementsFetcher,
        connectivity: ConnectivityMonitor,
        snapshots: OfflineSnapshotRepository | None = None,
        ttl: float = CLIENT_CACHE_TTL,
        dedupe_interval: float = DEDUPING_INTERVAL,
        retry_count: int = ERROR_RETRY_COUNT,
        retry_interval: float = ERROR_RETRY_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetcher = fetcher
        self._connectivity = connectivity
        self._snapshots = snapshots
        self._ttl = ttl
        self._dedupe_interval = dedupe_interval
        self._retry_count = retry_count
        self._retry_interval = retry_interval
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._inflight: dict[tuple[str, bool], asyncio.Task] = {}

    @property
    def is_online(self) -> bool:
        return self._connectivity.is_online

    def peek(self, descriptor: QueryDescriptor) -> CacheEntry | None:
        """Fresh entry for the descriptor, if any. Expired entries are dropped."""
        key = descriptor.fingerprint()
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.fetched_at >= self._ttl:
            del self._entries[key]
            return None
        return entry

    def is_recent(self, entry: CacheEntry) -> bool:
        """Inside the dedupe window, so a refetch would be redundant."""
        return self._clock() - entry.fetched_at < self._dedupe_interval

    async def get(self, descriptor: QueryDescriptor, include_count: bool = False, force: bool = False) -> PageResult:
        """Page for the descriptor. `force` skips the dedupe window but still joins an in-flight fetch.

        A request for a total is never answered by a page fetched without one.
        """
        entry = self.peek(descriptor)
        counted = entry is not None and (not include_count or entry.page.total is not None)
        if counted and not force and self.is_recent(entry):
            logger.debug("Client cache dedupe hit: page {}", descriptor.page)
            return entry.page

        if not self.is_online:
            if entry is not None:
                return entry.page
            return await self._offline_page(descriptor)

        key = (descriptor.fingerprint(), include_count)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._fetch(descriptor, include_count))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            logger.debug("Joining in-flight fetch: page {}", descriptor.page)
        return await asyncio.shield(task)

    def _forget(self, key: tuple[str, bool], task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            task.exception()

    async def _fetch(self, descriptor: QueryDescriptor, include_count: bool) -> PageResult:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_count + 1),
            wait=wait_fixed(self._retry_interval),
            retry=retry_if_exception(is_transient),
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                page = await self._fetcher.fetch_page(descriptor, include_count)

        self._entries[descriptor.fingerprint()] = CacheEntry(page=page, fetched_at=self._clock())
        if descriptor.is_offline_mirror:
            await self._mirror(descriptor.user_id, page)
        return page

    async def _mirror(self, user_id: str, page: PageResult) -> None:
        if self._snapshots is None:
            return
        try:
            await asyncio.to_thread(self._snapshots.save_snapshot, user_id, list(page.records))
        except Exception as e:
            logger.warning("Offline snapshot refresh failed for {}: {}", user_id, e)

    async def _offline_page(self, descriptor: QueryDescriptor) -> PageResult:
        """Offline with nothing cached: first pages come from the snapshot, later pages are empty."""
        if self._snapshots is None or not descriptor.is_first_page:
            return EMPTY_PAGE
        try:
            records = await asyncio.to_thread(self._snapshots.load_snapshot, descriptor.user_id, True)
        except Exception as e:
            logger.warning("Offline snapshot unreadable for {}: {}", descriptor.user_id, e)
            return EMPTY_PAGE
        if not records:
            logger.debug("Offline with no snapshot for {}", descriptor.user_id)
            return EMPTY_PAGE

        term = clean_search(descriptor.search)
        matching = [r for r in records if _matches_offline(r, descriptor, term)]
        return PageResult(records=tuple(matching[: descriptor.page_size]), has_more=False)

    def mutate(self, transition: Transition, descriptor: QueryDescriptor | None = None) -> None:
        """Apply a pure transition to one cached page, or to every cached page."""
        keys = [descriptor.fingerprint()] if descriptor is not None else list(self._entries)
        for key in keys:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries[key] = replace(entry, page=transition(entry.page))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class PageState:
    """Snapshot of what the UI renders."""

    descriptor: QueryDescriptor | None = None
    data: PageResult | None = None
    data_descriptor: QueryDescriptor | None = None
    is_loading: bool = False
    is_validating: bool = False
    error: Exception | None = None
    revalidation_error: Exception | None = None
    pending_inserts: int = 0

    @property
    def records(self) -> tuple[Requirement, ...]:
        return self.data.records if self.data is not None else ()

    @property
    def has_next_page(self) -> bool:
        return self.data is not None and self.data.has_more

    @property
    def is_previous_data(self) -> bool:
        """Showing the last descriptor's page while the current one loads."""
        return self.data is not None and self.data_descriptor != self.descriptor


class PageView:
    """UI-facing handle over PageCache for one list on screen."""

    def __init__(
        self,
        cache: PageCache,
        connectivity: ConnectivityMonitor | None = None,
        focus_throttle: float = FOCUS_THROTTLE_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cache = cache
        self._focus_throttle = focus_throttle
        self._clock = clock
        self._state = PageState()
        self._generation = 0
        self._closed = False
        self._last_focus: float | None = None
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[Callable[[PageState], Any]] = []
        self._error_listeners: list[Callable[[Exception], Any]] = []
        self._unsubscribe_reconnect = connectivity.on_reconnect(self.on_reconnect) if connectivity else None

    @property
    def state(self) -> PageState:
        return self._state

    async def use_page(self, descriptor: QueryDescriptor) -> PageState:
        """Show `descriptor`. Previous data stays visible until the new page arrives."""
        self._generation += 1
        generation = self._generation

        entry = self._cache.peek(descriptor)
        if entry is not None:
            self._set(
                descriptor=descriptor,
                data=entry.page,
                data_descriptor=descriptor,
                is_loading=False,
                error=None,
                pending_inserts=0,
            )
            if not self._cache.is_recent(entry):
                self._spawn(self.revalidate())
            return self._state

        self._set(descriptor=descriptor, is_loading=True, error=None)
        try:
            page = await self._cache.get(descriptor, include_count=descriptor.is_first_page)
        except Exception as e:
            if self._is_current(generation):
                logger.warning("Page fetch failed for {}: {}", descriptor.user_id, e)
                self._set(is_loading=False, error=e)
            return self._state

        if not self._is_current(generation):
            logger.debug("Discarding response for superseded page {}", descriptor.page)
            return self._state
        self._set(data=page, data_descriptor=descriptor, is_loading=False, error=None, pending_inserts=0)
        return self._state

    async def revalidate(self) -> PageState:
        """Refetch the current descriptor in the background without a loading state.

        A failure keeps the displayed data and is reported to error listeners.
        """
        descriptor = self._state.descriptor
        if descriptor is None or self._closed or not self._cache.is_online:
            return self._state
        generation = self._generation

        self._set(is_validating=True)
        try:
            page = await self._cache.get(descriptor, include_count=descriptor.is_first_page, force=True)
        except Exception as e:
            logger.warning("Revalidation failed for {}: {}", descriptor.user_id, e)
            if self._is_current(generation):
                self._set(is_validating=False, revalidation_error=e)
            for listener in list(self._error_listeners):
                listener(e)
            return self._state

        if self._is_current(generation):
            self._set(
                data=page,
                data_descriptor=descriptor,
                is_validating=False,
                revalidation_error=None,
                pending_inserts=0,
            )
        return self._state

    def on_focus(self) -> asyncio.Task | None:
        """Window focus: revalidate, at most once per throttle interval."""
        now = self._clock()
        if self._last_focus is not None and now - self._last_focus < self._focus_throttle:
            return None
        self._last_focus = now
        return self._spawn(self.revalidate())

    async def on_reconnect(self) -> None:
        await self.revalidate()

    def apply(self, transition: Transition) -> PageState:
        """Apply a reducer to the displayed page and its cache entry."""
        current = self._state.data
        if current is None:
            return self._state
        page = transition(current)
        if page is current:
            return self._state
        if self._state.data_descriptor is not None:
            self._cache.mutate(transition, self._state.data_descriptor)
        self._set(data=page)
        return self._state

    def note_insert(self) -> PageState:
        self._set(pending_inserts=self._state.pending_inserts + 1)
        return self._state

    def subscribe(self, listener: Callable[[PageState], Any]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: _discard(self._listeners, listener)

    def on_error(self, listener: Callable[[Exception], Any]) -> Callable[[], None]:
        """Out-of-band channel for background revalidation failures."""
        self._error_listeners.append(listener)
        return lambda: _discard(self._error_listeners, listener)

    async def wait_idle(self) -> None:
        """Wait for background revalidations to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Unmount: pending responses are dropped and background work cancelled."""
        self._closed = True
        self._generation += 1
        for task in list(self._tasks):
            task.cancel()
        if self._unsubscribe_reconnect is not None:
            self._unsubscribe_reconnect()
            self._unsubscribe_reconnect = None

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _set(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)
