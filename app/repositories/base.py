"""Base repository class."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import duckdb
from loguru import logger

from app.repositories.db import get_store_db


class BaseRepository:
    """Base repository with common functionality."""

    def __init__(self, conn: duckdb.DuckDBPyConnection | None = None):
        self._db = conn if conn is not None else self._connect()
        logger.debug("{} initialized", self.__class__.__name__)

    def _connect(self) -> duckdb.DuckDBPyConnection:
        """Default connection when none is injected."""
        return get_store_db()

    def execute(self, query: str, params: list | None = None) -> duckdb.DuckDBPyConnection:
        """Execute SQL on a fresh cursor."""
        cursor = self._db.cursor()
        if params:
            return cursor.execute(query, params)
        return cursor.execute(query)

    def fetchall(self, query: str, params: list | None = None) -> list:
        """Execute and fetch all rows."""
        return self.execute(query, params).fetchall()

    def fetchone(self, query: str, params: list | None = None) -> Any:
        """Execute and fetch one row."""
        return self.execute(query, params).fetchone()

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Cursor wrapped in BEGIN/COMMIT, rolled back on error."""
        cursor = self._db.cursor()
        cursor.execute("BEGIN TRANSACTION")
        try:
            yield cursor
            cursor.execute("COMMIT")
        except Exception:
            cursor.execute("ROLLBACK")
            raise
        finally:
            cursor.close()
