"""Fetch orchestrator - distributed cache in front of the relational store."""

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from loguru import logger

from app.models.requirements import Cursor, PageResult, QueryDescriptor, Requirement
from app.repositories.common import SharedCacheRepository
from app.repositories.requirements import PageQuery, RequirementRepository, build_page_query
from app.services.requirements.realtime import ChangeFeed, ChangeType, RecordChange
from settings import SHARED_CACHE_TTL

AuditHook = Callable[[str, Requirement, str | None], Any]


class RequirementsFetcher:
    """Page reads through the shared cache, plus the create/update/delete write path.

    Writes never touch the shared cache: cached pages expire on their TTL.
    After a write the caller revalidates whatever page it displays.
    """

    def __init__(
        self,
        repo: RequirementRepository,
        cache: SharedCacheRepository,
        feed: ChangeFeed | None = None,
        ttl: int = SHARED_CACHE_TTL,
        audit: AuditHook | None = None,
    ):
        self._repo = repo
        self._cache = cache
        self._feed = feed
        self._ttl = ttl
        self._audit = audit
        self._background: set[asyncio.Task] = set()
        logger.debug("RequirementsFetcher initialized (ttl={}s)", ttl)

    async def fetch_page(self, descriptor: QueryDescriptor, include_count: bool = False) -> PageResult:
        """One page for `descriptor`. Counting runs only when asked and not already known."""
        key = descriptor.fingerprint()
        cached = await self._lookup(key)
        if cached is not None:
            page = PageResult.from_dict(cached)
            if include_count and page.total is None:
                page = replace(page, total=await self._total(descriptor, build_page_query(descriptor), True))
            return page

        query = build_page_query(descriptor)
        rows = await asyncio.to_thread(self._repo.select_page, query)
        records = rows[: query.limit]
        has_more = len(rows) > query.limit
        next_cursor = Cursor.from_record(records[-1], descriptor.sort_by) if has_more and records else None
        total = await self._total(descriptor, query, include_count)

        page = PageResult(records=tuple(records), has_more=has_more, total=total, next_cursor=next_cursor)
        await self._store(key, page.to_json_dict())
        logger.debug("Fetched page {} for {}: {} rows", descriptor.page, descriptor.user_id, len(records))
        return page

    async def _total(self, descriptor: QueryDescriptor, query: PageQuery, include_count: bool) -> int | None:
        key = descriptor.filter_fingerprint()
        cached = await self._lookup(key)
        if cached is not None:
            return int(cached["total"])
        if not include_count:
            return None
        total = await asyncio.to_thread(self._repo.count, query)
        await self._store(key, {"total": total})
        return total

    async def _lookup(self, key: str) -> dict | None:
        # an unreachable cache falls through to the store
        try:
            return await asyncio.to_thread(self._cache.get, key)
        except Exception as e:
            logger.warning("Shared cache lookup failed for {}: {}", key, e)
            return None

    async def _store(self, key: str, value: dict) -> None:
        # a failed cache write never fails the read
        try:
            await asyncio.to_thread(self._cache.set, key, value, self._ttl)
        except Exception as e:
            logger.warning("Shared cache population failed for {}: {}", key, e)

    async def get_requirement(self, requirement_id: str) -> Requirement | None:
        return await asyncio.to_thread(self._repo.get, requirement_id)

    async def create(self, user_id: str, values: dict[str, Any], actor: str | None = None) -> Requirement:
        record = await asyncio.to_thread(self._repo.create, user_id, values, actor)
        self._after_write(ChangeType.INSERT, record, actor)
        return record

    async def update(self, requirement_id: str, patch: dict[str, Any], actor: str | None = None) -> Requirement:
        record = await asyncio.to_thread(self._repo.update, requirement_id, patch, actor)
        self._after_write(ChangeType.UPDATE, record, actor)
        return record

    async def delete(self, requirement_id: str, actor: str | None = None) -> bool:
        record = await asyncio.to_thread(self._repo.delete, requirement_id)
        if record is None:
            return False
        self._after_write(ChangeType.DELETE, record, actor)
        return True

    def _after_write(self, change_type: ChangeType, record: Requirement, actor: str | None) -> None:
        if self._feed is not None:
            self._feed.publish(RecordChange(type=change_type, record=record, actor=actor))
        if self._audit is None:
            return
        try:
            result = self._audit(str(change_type), record, actor)
        except Exception as e:
            logger.warning("Audit hook failed for {}: {}", record.id, e)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._background.add(task)
            task.add_done_callback(self._audit_done)

    def _audit_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Audit hook failed: {}", task.exception())
