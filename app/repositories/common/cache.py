"""Shared cache repository - distributed, TTL-bounded page cache.

Keys are query fingerprints, values are JSON documents. Entries are never
served past `expires_at`, and nothing invalidates them early: staleness is
bounded by the TTL alone. Concurrent writers for one key overwrite each other.
Every failure here degrades to a miss so reads fall through to the store.
"""

import json
from datetime import timedelta
from typing import Any

import duckdb
from loguru import logger

from app.models.common import Clock, utcnow
from app.repositories.base import BaseRepository
from app.repositories.db import get_cache_db
from settings import SHARED_CACHE_PREFIX, SHARED_CACHE_TTL


class SharedCacheRepository(BaseRepository):
    """Repository for the shared key-value cache table."""

    def __init__(self, conn=None, prefix: str = SHARED_CACHE_PREFIX, clock: Clock = utcnow):
        super().__init__(conn)
        self._prefix = prefix
        self._clock = clock

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return get_cache_db()

    def get(self, key: str) -> Any | None:
        """Cached value, or None on miss, expiry or cache failure."""
        try:
            row = self.fetchone(
                "SELECT data, expires_at FROM shared_cache WHERE key = ?",
                [self._prefix + key],
            )
        except duckdb.Error as e:
            logger.warning("Shared cache get failed, treating as miss: {}", e)
            return None
        if row is None:
            logger.debug("Shared cache miss: {}", key)
            return None
        if row[1] <= self._clock():
            logger.debug("Shared cache expired: {}", key)
            return None
        logger.debug("Shared cache hit: {}", key)
        return json.loads(row[0])

    def set(self, key: str, value: Any, ttl: int = SHARED_CACHE_TTL) -> bool:
        """Store a value for `ttl` seconds. Returns False if the write failed."""
        now = self._clock()
        try:
            self.execute(
                """
                INSERT OR REPLACE INTO shared_cache (key, data, stored_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                [self._prefix + key, json.dumps(value), now, now + timedelta(seconds=ttl)],
            )
        except duckdb.Error as e:
            logger.warning("Shared cache set failed, ignoring: {}", e)
            return False
        logger.debug("Shared cache saved: {} (ttl={}s)", key, ttl)
        return True

    def stats(self) -> dict[str, int]:
        """Live and expired entry counts."""
        row = self.fetchone(
            """
            SELECT
                COUNT(*) FILTER (WHERE expires_at > ?) AS live,
                COUNT(*) FILTER (WHERE expires_at <= ?) AS expired
            FROM shared_cache
            """,
            [self._clock(), self._clock()],
        )
        return {"live": int(row[0] or 0), "expired": int(row[1] or 0)}

    def purge_expired(self) -> int:
        """Housekeeping: drop rows that can no longer be served."""
        row = self.fetchone(
            "SELECT COUNT(*) FROM shared_cache WHERE expires_at <= ?",
            [self._clock()],
        )
        removed = int(row[0] or 0)
        if removed:
            self.execute("DELETE FROM shared_cache WHERE expires_at <= ?", [self._clock()])
            logger.info("Shared cache purged {} expired entries", removed)
        return removed
