"""Offline sync - optimistic writes while offline and replay on reconnect."""

import asyncio
from datetime import timedelta
from typing import Any

from loguru import logger

from app.errors import is_transient
from app.models.common import Clock, utcnow
from app.models.offline import MutationOperation, PendingMutation, SyncConflict, SyncReport
from app.models.requirements import Requirement, RequirementStatus
from app.repositories.offline import OfflineSnapshotRepository, PendingMutationRepository
from app.services.network import ConnectivityMonitor
from app.services.requirements.fetcher import RequirementsFetcher
from app.services.requirements.page_cache import PageCache, PageView, Transition
from app.services.requirements.reducers import patch_record, remove_record, replace_record
from settings import SYNC_BATCH_SIZE, SYNC_MAX_BACKOFF


class OfflineSync:
    """Routes list writes online or into the pending queue, and replays the queue.

    Offline writes are applied at once to the page on screen, to every cached
    client page and to the offline snapshot. Replayed writes go through the
    normal write path; cached pages are left to expire rather than patched.
    """

    def __init__(
        self,
        fetcher: RequirementsFetcher,
        snapshots: OfflineSnapshotRepository,
        mutations: PendingMutationRepository,
        connectivity: ConnectivityMonitor,
        page_cache: PageCache | None = None,
        batch_size: int = SYNC_BATCH_SIZE,
        max_backoff: int = SYNC_MAX_BACKOFF,
        clock: Clock = utcnow,
    ):
        self._fetcher = fetcher
        self._snapshots = snapshots
        self._mutations = mutations
        self._connectivity = connectivity
        self._page_cache = page_cache
        self._batch_size = batch_size
        self._max_backoff = max_backoff
        self._clock = clock
        self._lock = asyncio.Lock()
        connectivity.on_reconnect(self.on_reconnect)
        logger.debug("OfflineSync initialized (batch={}, max_backoff={}s)", batch_size, max_backoff)

    async def change_status(
        self,
        user_id: str,
        record_id: str,
        status: str,
        actor: str | None = None,
        view: PageView | None = None,
    ) -> Requirement | PendingMutation:
        """Status change from the list (drag between columns, quick action)."""
        parsed = RequirementStatus.parse(status)
        if parsed is None:
            raise ValueError(f"Unknown status: {status!r}")
        return await self.update(user_id, record_id, {"status": str(parsed)}, actor, view)

    async def update(
        self,
        user_id: str,
        record_id: str,
        patch: dict[str, Any],
        actor: str | None = None,
        view: PageView | None = None,
    ) -> Requirement | PendingMutation:
        """Write through when online; otherwise queue and apply optimistically."""
        if self._connectivity.is_online:
            try:
                record = await self._fetcher.update(record_id, patch, actor)
            except Exception as e:
                if not is_transient(e):
                    raise
                logger.warning("Update of {} failed transiently, queueing: {}", record_id, e)
            else:
                self._apply(view, lambda page: replace_record(page, record))
                return record

        mutation = await asyncio.to_thread(
            self._mutations.enqueue, user_id, record_id, MutationOperation.UPDATE, patch
        )
        await asyncio.to_thread(self._snapshots.apply_patch, user_id, record_id, patch)
        optimistic = {**patch, "updated_at": mutation.queued_at}
        self._apply(view, lambda page: patch_record(page, record_id, optimistic))
        logger.info("Queued offline update for {}: {}", record_id, sorted(patch))
        return mutation

    async def delete(
        self,
        user_id: str,
        record_id: str,
        actor: str | None = None,
        view: PageView | None = None,
    ) -> bool | PendingMutation:
        if self._connectivity.is_online:
            try:
                removed = await self._fetcher.delete(record_id, actor)
            except Exception as e:
                if not is_transient(e):
                    raise
                logger.warning("Delete of {} failed transiently, queueing: {}", record_id, e)
            else:
                self._apply(view, lambda page: remove_record(page, record_id))
                return removed

        mutation = await asyncio.to_thread(self._mutations.enqueue, user_id, record_id, MutationOperation.DELETE)
        await asyncio.to_thread(self._snapshots.remove_cached_record, user_id, record_id)
        self._apply(view, lambda page: remove_record(page, record_id))
        logger.info("Queued offline delete for {}", record_id)
        return mutation

    def _apply(self, view: PageView | None, transition: Transition) -> None:
        if self._page_cache is not None:
            self._page_cache.mutate(transition)
        if view is not None:
            view.apply(transition)

    async def process_queue(self, batch_size: int | None = None) -> SyncReport:
        """Replay ready queue items in order. Returns counts of the outcomes.

        Once an item for a record fails or is parked, the rest of that
        record's items wait for a later run.
        """
        if not self._connectivity.is_online:
            logger.debug("Offline, skipping queue replay")
            return SyncReport()

        async with self._lock:
            await asyncio.to_thread(self._mutations.reclaim_interrupted)
            items = await asyncio.to_thread(self._mutations.ready, batch_size or self._batch_size)
            processed = failed = conflicts = 0
            blocked: set[str] = set()
            for item in items:
                if item.record_id in blocked:
                    continue
                await asyncio.to_thread(self._mutations.mark_syncing, item.id)
                try:
                    replayed = await self._replay(item)
                except Exception as e:
                    failed += 1
                    blocked.add(item.record_id)
                    await self._backoff(item, e)
                    continue
                except BaseException:
                    # Cancelled or shutting down: the item goes back untouched
                    self._mutations.release(item.id)
                    raise
                if replayed:
                    processed += 1
                else:
                    conflicts += 1
                    blocked.add(item.record_id)

        if items:
            logger.info("Replayed queue: {} processed, {} failed, {} conflicts", processed, failed, conflicts)
        return SyncReport(processed=processed, failed=failed, conflicts=conflicts)

    async def _replay(self, item: PendingMutation) -> bool:
        """Send one item through the write path; False when it was parked as a conflict."""
        if item.operation is MutationOperation.DELETE:
            await self._fetcher.delete(item.record_id, item.user_id)
            await asyncio.to_thread(self._mutations.remove, item.id)
            return True

        current = await self._fetcher.get_requirement(item.record_id)
        if current is None:
            logger.warning("Record {} no longer exists, dropping queued update", item.record_id)
            await asyncio.to_thread(self._mutations.remove, item.id)
            return True
        # Rows last written by the same user (an earlier replay) are not conflicts
        if current.updated_at > item.queued_at and current.updated_by != item.user_id:
            await asyncio.to_thread(self._mutations.park_conflict, item, current.to_json_dict())
            logger.warning("Conflict on {}: server copy changed after the offline edit", item.record_id)
            return False

        await self._fetcher.update(item.record_id, item.patch, item.user_id)
        await asyncio.to_thread(self._mutations.remove, item.id)
        return True

    async def _backoff(self, item: PendingMutation, error: Exception) -> None:
        retries = item.retries + 1
        delay = min(self._max_backoff, 2**retries)
        next_attempt = self._clock() + timedelta(seconds=delay)
        await asyncio.to_thread(self._mutations.mark_failed, item.id, str(error), next_attempt)
        if delay >= self._max_backoff:
            logger.error("Replay of {} keeps failing ({} retries): {}", item.record_id, retries, error)
        else:
            logger.warning("Replay of {} failed, retry in {}s: {}", item.record_id, delay, error)

    async def resolve_conflict(self, mutation_id: str, keep: str) -> None:
        """Settle a parked item: "local" replays the offline edit, "remote" drops it."""
        if keep == "local":
            await asyncio.to_thread(self._mutations.requeue, mutation_id)
        elif keep == "remote":
            await asyncio.to_thread(self._mutations.discard, mutation_id)
        else:
            raise ValueError(f"keep must be 'local' or 'remote', got {keep!r}")
        logger.info("Conflict {} resolved keeping {}", mutation_id, keep)

    async def conflicts(self) -> list[SyncConflict]:
        return await asyncio.to_thread(self._mutations.conflicts)

    async def on_reconnect(self) -> None:
        await self.process_queue()

    async def snapshot_stats(self) -> dict[str, int]:
        """Offline record count plus queued mutation count."""
        stats = await asyncio.to_thread(self._snapshots.stats)
        pending = await asyncio.to_thread(self._mutations.count)
        return {**stats, "pending_mutations": pending}

    async def remove_cached_record(self, user_id: str, record_id: str) -> None:
        await asyncio.to_thread(self._snapshots.remove_cached_record, user_id, record_id)

    async def clear_snapshot(self, user_id: str) -> None:
        await asyncio.to_thread(self._snapshots.clear_snapshot, user_id)
