"""DuckDB connection management - one shared connection per database file."""

import threading
from pathlib import Path

import duckdb
from loguru import logger

from app.models import CACHE_DDL, OFFLINE_DDL, STORE_DDL
from settings import DB_PATH, OFFLINE_DB_PATH, SHARED_CACHE_PATH

_lock = threading.Lock()
_connections: dict[str, duckdb.DuckDBPyConnection] = {}


def db_exists(path: str) -> bool:
    """Check if database file exists."""
    return Path(path).exists()


def init_tables(conn: duckdb.DuckDBPyConnection, ddl: list[str]) -> None:
    """Run DDL statements (idempotent - all use IF NOT EXISTS)."""
    for statement in ddl:
        conn.execute(statement)
    logger.debug("DB tables initialized ({} statements)", len(ddl))


def get_db(path: str, ddl: list[str] | None = None) -> duckdb.DuckDBPyConnection:
    """Get the shared connection for `path`, creating tables on first connect.

    Repositories never run statements on this object directly; they open a
    cursor per statement so worker threads do not share connection state.
    """
    with _lock:
        conn = _connections.get(path)
        if conn is None:
            if path != ":memory:" and not db_exists(path):
                logger.warning("DB not found: {}. Creating empty DB.", path)
            conn = duckdb.connect(path)
            if ddl:
                init_tables(conn, ddl)
            _connections[path] = conn
            logger.debug("DB connected: {}", path)
    return conn


def close_db(path: str | None = None) -> None:
    """Close one connection, or all of them."""
    with _lock:
        paths = [path] if path else list(_connections)
        for p in paths:
            conn = _connections.pop(p, None)
            if conn is not None:
                conn.close()
                logger.debug("DB connection closed: {}", p)


def get_store_db(path: str = DB_PATH) -> duckdb.DuckDBPyConnection:
    """Relational store (system of record)."""
    return get_db(path, STORE_DDL)


def get_cache_db(path: str = SHARED_CACHE_PATH) -> duckdb.DuckDBPyConnection:
    """Distributed cache tier database."""
    return get_db(path, CACHE_DDL)


def get_offline_db(path: str = OFFLINE_DB_PATH) -> duckdb.DuckDBPyConnection:
    """Embedded per-device offline store."""
    return get_db(path, OFFLINE_DDL)
