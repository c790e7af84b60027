"""Tests for user display names and the bounded name cache."""

import duckdb

from app.models import STORE_DDL
from app.repositories.core import UserNameCache, UserRepository
from app.repositories.db import init_tables


class TestUserNameCache:
    def test_lru_eviction(self, ticker):
        cache = UserNameCache(max_size=2, ttl=60, clock=ticker)
        cache.set("a", None)
        cache.set("b", None)
        cache.get("a")
        cache.set("c", None)
        assert len(cache) == 2
        assert cache.get("a") is None
        assert cache.get("b") is not None  # evicted -> sentinel

    def test_ttl_expiry(self, ticker):
        cache = UserNameCache(max_size=10, ttl=60, clock=ticker)
        cache.set("a", None)
        ticker.advance(61)
        assert cache.get("a") is not None
        assert len(cache) == 0

    def test_clear(self, ticker):
        cache = UserNameCache(clock=ticker)
        cache.set("a", None)
        cache.clear()
        assert len(cache) == 0


class TestUserRepository:
    def test_display_name_fallbacks(self, store_conn):
        repo = UserRepository(store_conn, cache=UserNameCache())
        repo.add_user("u1", "alice@example.com", "Alice Smith")
        repo.add_user("u2", "bob@example.com", None)
        repo.add_user("u3", None, "  ")

        assert repo.get_user_name("u1").full_name == "Alice Smith"
        assert repo.get_user_name("u2").full_name == "bob"
        assert repo.get_user_name("u3").full_name == "Unknown"
        assert repo.get_user_name("u3").email == "N/A"

    def test_cached_lookups(self, store_conn):
        cache = UserNameCache()
        repo = UserRepository(store_conn, cache=cache)
        store_conn.execute("INSERT INTO users VALUES ('u1', 'a@b.c', 'Ann')")
        assert repo.get_user_name("u1").full_name == "Ann"
        store_conn.execute("UPDATE users SET full_name = 'Changed' WHERE id = 'u1'")
        assert repo.get_user_name("u1").full_name == "Ann"

    def test_unknown_user_cached_as_none(self, store_conn):
        cache = UserNameCache()
        repo = UserRepository(store_conn, cache=cache)
        assert repo.get_user_name("ghost") is None
        assert cache.get("ghost") is None
        assert len(cache) == 1

    def test_empty_id(self, store_conn):
        assert UserRepository(store_conn).get_user_name(None) is None

    def test_get_user_names_dedupes(self, store_conn):
        repo = UserRepository(store_conn)
        repo.add_user("u1", "a@b.c", "Ann")
        names = repo.get_user_names(["u1", None, "u1", "ghost"])
        assert set(names) == {"u1", "ghost"}
        assert names["ghost"] is None

    def test_lookup_failure_degrades(self, tmp_path):
        conn = duckdb.connect(str(tmp_path / "users.duckdb"))
        init_tables(conn, STORE_DDL)
        repo = UserRepository(conn)
        conn.close()
        assert repo.get_user_name("u1") is None
