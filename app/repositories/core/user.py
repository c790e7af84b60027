"""User repository - creator/updater display names behind a bounded TTL cache."""

import time
from collections import OrderedDict
from collections.abc import Callable

import duckdb
from loguru import logger

from app.models.core import UserName
from app.repositories.base import BaseRepository
from settings import USER_CACHE_MAX_SIZE, USER_CACHE_TTL

_MISSING = object()


class UserNameCache:
    """LRU cache of user id -> UserName (or None for unknown users), with TTL."""

    def __init__(
        self,
        max_size: int = USER_CACHE_MAX_SIZE,
        ttl: float = USER_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._max_size = max_size
        self._ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, UserName | None]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, user_id: str):
        """Cached value, or the `_MISSING` sentinel (None is a cached negative result)."""
        entry = self._entries.get(user_id)
        if entry is None:
            return _MISSING
        stored_at, value = entry
        if self._clock() - stored_at > self._ttl:
            del self._entries[user_id]
            return _MISSING
        self._entries.move_to_end(user_id)
        return value

    def set(self, user_id: str, value: UserName | None) -> None:
        self._entries[user_id] = (self._clock(), value)
        self._entries.move_to_end(user_id)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


class UserRepository(BaseRepository):
    """Repository for user display names."""

    def __init__(self, conn=None, cache: UserNameCache | None = None):
        super().__init__(conn)
        self._names = cache if cache is not None else UserNameCache()

    def get_user_name(self, user_id: str | None) -> UserName | None:
        """Display name for a user id; unknown users and lookup failures cache None."""
        if not user_id:
            return None
        cached = self._names.get(user_id)
        if cached is not _MISSING:
            return cached

        try:
            row = self.fetchone("SELECT full_name, email FROM users WHERE id = ?", [user_id])
        except duckdb.Error as e:
            logger.warning("User lookup failed for {}: {}", user_id, e)
            row = None
        result = UserName.from_row(row[0], row[1]) if row else None
        if row is None:
            logger.debug("User {} not found", user_id)
        self._names.set(user_id, result)
        return result

    def get_user_names(self, user_ids: list[str | None]) -> dict[str, UserName | None]:
        """Resolve several ids (e.g. created_by/updated_by of a page)."""
        return {uid: self.get_user_name(uid) for uid in dict.fromkeys(u for u in user_ids if u)}

    def add_user(self, user_id: str, email: str | None, full_name: str | None) -> None:
        """Insert or replace a user row and refresh its cached name."""
        self.execute(
            "INSERT OR REPLACE INTO users (id, email, full_name) VALUES (?, ?, ?)",
            [user_id, email, full_name],
        )
        self._names.set(user_id, UserName.from_row(full_name, email))
