"""Tests for the client page cache and page view."""

import asyncio

import pytest

from app.errors import StoreUnavailableError
from app.models.requirements import EMPTY_PAGE, PageResult, QueryDescriptor
from app.services.network import ConnectivityMonitor
from app.services.requirements import PageCache, PageView, RequirementsFetcher

USER = "user-1"


class FakeFetcher:
    """Stands in for RequirementsFetcher: scripted pages, failures and gates."""

    def __init__(self, pages=None):
        self.pages = pages or {}
        self.calls: list[QueryDescriptor] = []
        self.failures: list[Exception] = []
        self.gates: dict[int, asyncio.Event] = {}

    async def fetch_page(self, descriptor, include_count=False):
        self.calls.append(descriptor)
        gate = self.gates.get(descriptor.page)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        if self.failures:
            raise self.failures.pop(0)
        return self.pages.get(descriptor.page, EMPTY_PAGE)


@pytest.fixture
def pages(seeded_records):
    own = [r for r in seeded_records if r.user_id == USER]
    return {
        0: PageResult(records=tuple(own[:20]), has_more=True, total=61),
        1: PageResult(records=tuple(own[20:40]), has_more=True),
    }


@pytest.fixture
def fetcher(pages):
    return FakeFetcher(pages)


@pytest.fixture
def online():
    return ConnectivityMonitor(online=True)


@pytest.fixture
def cache(fetcher, online, snapshots, ticker):
    return PageCache(fetcher, online, snapshots=snapshots, retry_count=2, retry_interval=0, clock=ticker)


class TestDedupe:
    def test_concurrent_identical_requests_collapse(self, cache, fetcher):
        d = QueryDescriptor(user_id=USER)

        async def scenario():
            return await asyncio.gather(cache.get(d), cache.get(d), cache.get(d))

        results = asyncio.run(scenario())
        assert len(fetcher.calls) == 1
        assert results[0] is results[1] is results[2]

    def test_recent_entry_reused(self, cache, fetcher, ticker):
        d = QueryDescriptor(user_id=USER)

        async def scenario():
            await cache.get(d)
            ticker.advance(1)
            await cache.get(d)

        asyncio.run(scenario())
        assert len(fetcher.calls) == 1

    def test_refetch_after_dedupe_window(self, cache, fetcher, ticker):
        d = QueryDescriptor(user_id=USER)

        async def scenario():
            await cache.get(d)
            ticker.advance(3)
            await cache.get(d)

        asyncio.run(scenario())
        assert len(fetcher.calls) == 2

    def test_entry_expires_after_ttl(self, cache, ticker):
        d = QueryDescriptor(user_id=USER)
        asyncio.run(cache.get(d))
        assert cache.peek(d) is not None
        ticker.advance(31)
        assert cache.peek(d) is None


class TestRetry:
    def test_transient_errors_retried(self, cache, fetcher):
        fetcher.failures = [StoreUnavailableError(), ConnectionError("reset")]
        page = asyncio.run(cache.get(QueryDescriptor(user_id=USER)))
        assert len(page.records) == 20
        assert len(fetcher.calls) == 3

    def test_gives_up_after_bounded_attempts(self, cache, fetcher):
        fetcher.failures = [StoreUnavailableError()] * 5
        with pytest.raises(StoreUnavailableError):
            asyncio.run(cache.get(QueryDescriptor(user_id=USER)))
        assert len(fetcher.calls) == 3

    def test_non_transient_not_retried(self, cache, fetcher):
        fetcher.failures = [ValueError("bad")]
        with pytest.raises(ValueError):
            asyncio.run(cache.get(QueryDescriptor(user_id=USER)))
        assert len(fetcher.calls) == 1

    def test_failure_not_cached(self, cache, fetcher):
        d = QueryDescriptor(user_id=USER)
        fetcher.failures = [ValueError("bad")]
        with pytest.raises(ValueError):
            asyncio.run(cache.get(d))
        assert cache.peek(d) is None


class TestOffline:
    def test_snapshot_written_for_unfiltered_first_page(self, cache, snapshots):
        asyncio.run(cache.get(QueryDescriptor(user_id=USER)))
        assert len(snapshots.load_snapshot(USER)) == 20

    def test_snapshot_not_written_for_filtered_or_later_pages(self, cache, snapshots):
        asyncio.run(cache.get(QueryDescriptor(user_id=USER, status="NEW")))
        asyncio.run(cache.get(QueryDescriptor(user_id=USER, page=1)))
        assert snapshots.load_snapshot(USER) is None

    def test_offline_falls_back_to_stale_snapshot(self, fetcher, snapshots, pages, clock, ticker):
        snapshots.save_snapshot(USER, list(pages[0].records))
        clock.advance(3600)
        cache = PageCache(fetcher, ConnectivityMonitor(online=False), snapshots=snapshots, clock=ticker)

        page = asyncio.run(cache.get(QueryDescriptor(user_id=USER)))
        assert page.ids == pages[0].ids
        assert not page.has_more
        assert fetcher.calls == []

    def test_offline_snapshot_filtered_locally(self, fetcher, snapshots, pages, ticker):
        snapshots.save_snapshot(USER, list(pages[0].records))
        cache = PageCache(fetcher, ConnectivityMonitor(online=False), snapshots=snapshots, clock=ticker)

        page = asyncio.run(cache.get(QueryDescriptor(user_id=USER, status="NEW")))
        assert page.records
        assert all(r.status == "NEW" for r in page.records)

    def test_offline_later_page_is_empty(self, fetcher, snapshots, pages, ticker):
        snapshots.save_snapshot(USER, list(pages[0].records))
        cache = PageCache(fetcher, ConnectivityMonitor(online=False), snapshots=snapshots, clock=ticker)
        assert asyncio.run(cache.get(QueryDescriptor(user_id=USER, page=1))) == EMPTY_PAGE

    def test_offline_without_snapshot_is_empty_not_error(self, fetcher, snapshots, ticker):
        cache = PageCache(fetcher, ConnectivityMonitor(online=False), snapshots=snapshots, clock=ticker)
        page = asyncio.run(cache.get(QueryDescriptor(user_id=USER)))
        assert page.records == ()
        assert fetcher.calls == []

    def test_offline_prefers_cached_entry(self, cache, online, fetcher, ticker):
        d = QueryDescriptor(user_id=USER, status="NEW")

        async def scenario():
            first = await cache.get(d)
            await online.set_online(False)
            ticker.advance(5)
            return first, await cache.get(d)

        first, second = asyncio.run(scenario())
        assert second is first
        assert len(fetcher.calls) == 1


class TestPageView:
    def test_loads_first_page(self, cache):
        view = PageView(cache)
        state = asyncio.run(view.use_page(QueryDescriptor(user_id=USER)))
        assert not state.is_loading
        assert len(state.records) == 20
        assert state.has_next_page
        assert state.error is None

    def test_previous_page_stays_visible_while_loading(self, cache, fetcher, pages):
        view = PageView(cache)
        seen = []
        view.subscribe(seen.append)

        async def scenario():
            fetcher.gates[1] = asyncio.Event()
            await view.use_page(QueryDescriptor(user_id=USER))
            loading = asyncio.create_task(view.use_page(QueryDescriptor(user_id=USER, page=1)))
            await asyncio.sleep(0.01)
            mid = view.state
            fetcher.gates[1].set()
            await loading
            return mid

        mid = asyncio.run(scenario())
        assert mid.is_loading
        assert mid.data.ids == pages[0].ids
        assert mid.is_previous_data
        assert view.state.data.ids == pages[1].ids
        assert not view.state.is_previous_data
        assert not any(s.is_loading and s.data is None for s in seen[1:])

    def test_superseded_response_discarded(self, cache, fetcher, pages):
        view = PageView(cache)

        async def scenario():
            fetcher.gates[1] = asyncio.Event()
            slow = asyncio.create_task(view.use_page(QueryDescriptor(user_id=USER, page=1)))
            await asyncio.sleep(0.01)
            await view.use_page(QueryDescriptor(user_id=USER))
            fetcher.gates[1].set()
            await slow

        asyncio.run(scenario())
        assert view.state.data.ids == pages[0].ids
        assert view.state.descriptor.page == 0

    def test_closed_view_ignores_response(self, cache, fetcher):
        view = PageView(cache)

        async def scenario():
            fetcher.gates[0] = asyncio.Event()
            task = asyncio.create_task(view.use_page(QueryDescriptor(user_id=USER)))
            await asyncio.sleep(0.01)
            view.close()
            fetcher.gates[0].set()
            await task

        asyncio.run(scenario())
        assert view.state.data is None

    def test_error_surfaces_in_state(self, cache, fetcher):
        fetcher.failures = [StoreUnavailableError()] * 3
        state = asyncio.run(PageView(cache).use_page(QueryDescriptor(user_id=USER)))
        assert isinstance(state.error, StoreUnavailableError)
        assert not state.is_loading

    def test_failed_revalidation_keeps_data(self, cache, fetcher, pages):
        view = PageView(cache)
        errors = []
        view.on_error(errors.append)

        async def scenario():
            await view.use_page(QueryDescriptor(user_id=USER))
            fetcher.failures = [ValueError("boom")]
            await view.revalidate()

        asyncio.run(scenario())
        assert view.state.data.ids == pages[0].ids
        assert view.state.error is None
        assert isinstance(view.state.revalidation_error, ValueError)
        assert not view.state.is_validating
        assert len(errors) == 1

    def test_successful_revalidation_replaces_data_without_loading(self, cache, fetcher, pages, seeded_records):
        view = PageView(cache)
        seen = []
        view.subscribe(seen.append)
        fresh = PageResult(records=tuple(seeded_records[40:60]), has_more=True)

        async def scenario():
            await view.use_page(QueryDescriptor(user_id=USER))
            fetcher.pages[0] = fresh
            await view.revalidate()

        asyncio.run(scenario())
        assert view.state.data.ids == fresh.ids
        assert not any(s.is_loading for s in seen[2:])

    def test_cached_entry_served_then_revalidated(self, cache, fetcher, ticker):
        view = PageView(cache)
        d = QueryDescriptor(user_id=USER)

        async def scenario():
            await cache.get(d)
            ticker.advance(10)
            state = await view.use_page(d)
            await view.wait_idle()
            return state

        state = asyncio.run(scenario())
        assert not state.is_loading
        assert len(state.records) == 20
        assert len(fetcher.calls) == 2

    def test_focus_revalidation_throttled(self, cache, fetcher, ticker):
        view = PageView(cache, clock=ticker)

        async def scenario():
            await view.use_page(QueryDescriptor(user_id=USER))
            ticker.advance(3)
            first = view.on_focus()
            second = view.on_focus()
            await view.wait_idle()
            return first, second

        first, second = asyncio.run(scenario())
        assert first is not None
        assert second is None
        assert len(fetcher.calls) == 2

    def test_reconnect_revalidates(self, fetcher, snapshots, ticker):
        monitor = ConnectivityMonitor(online=True)
        cache = PageCache(fetcher, monitor, snapshots=snapshots, retry_interval=0, clock=ticker)
        view = PageView(cache, monitor)

        async def scenario():
            await view.use_page(QueryDescriptor(user_id=USER))
            await monitor.set_online(False)
            ticker.advance(3)
            await monitor.set_online(True)

        asyncio.run(scenario())
        assert len(fetcher.calls) == 2

    def test_total_requested_after_uncounted_fetch(self, seeded_repo, shared_cache, online, ticker):
        cache = PageCache(RequirementsFetcher(seeded_repo, shared_cache), online, clock=ticker)
        d = QueryDescriptor(user_id=USER, status="NEW")

        async def scenario():
            plain = await cache.get(d)
            counted = await cache.get(d, include_count=True)
            return plain, counted

        plain, counted = asyncio.run(scenario())
        assert plain.total is None
        assert counted.total == 31
        assert seeded_repo.count_calls == 1

    def test_counted_request_does_not_join_uncounted_fetch(self, seeded_repo, shared_cache, online, ticker):
        cache = PageCache(RequirementsFetcher(seeded_repo, shared_cache), online, clock=ticker)
        d = QueryDescriptor(user_id=USER, status="NEW")

        async def scenario():
            return await asyncio.gather(cache.get(d), cache.get(d, include_count=True))

        _, counted = asyncio.run(scenario())
        assert counted.total == 31

    def test_works_with_real_fetcher(self, seeded_repo, shared_cache, online, ticker):
        cache = PageCache(RequirementsFetcher(seeded_repo, shared_cache), online, clock=ticker)
        state = asyncio.run(PageView(cache).use_page(QueryDescriptor(user_id=USER)))
        assert state.data.total == 61
        assert len(state.records) == 20
