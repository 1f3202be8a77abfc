"""SQLite database adapter."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from urllib.parse import quote

from metaspine.core.errors import DatabaseConnectionError
from metaspine.core.protocols import Connection

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter.

    Uses the built-in sqlite3 module. One connection is shared by all
    threads; a re-entrant lock serialises statements and transactions on it.

    Suitable for:
    - Snapshot-backed read-only stores (private in-memory database)
    - Development and testing
    - Single-process applications
    """

    def __init__(
        self,
        path: str = ":memory:",
        *,
        readonly: bool = False,
        timeout: float = 5.0,
        **kwargs: Any,
    ):
        config = DatabaseConfig(
            db_type=DatabaseType.SQLITE,
            path=path,
            timeout=timeout,
            readonly=readonly,
            options=kwargs,
        )
        super().__init__(config)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._depth = 0

    @classmethod
    def private_memory(cls, name: str, **kwargs: Any) -> SQLiteAdapter:
        """Adapter over a named in-memory database (``file:<name>?mode=memory``)."""
        return cls(f"file:{quote(name)}?mode=memory&cache=shared", **kwargs)

    def connect(self) -> None:
        """Connect to SQLite database."""
        if self._conn is not None:
            return

        path = self._config.to_connection_string()
        try:
            self._conn = sqlite3.connect(
                path,
                timeout=self._config.timeout,
                check_same_thread=False,
                uri=self._config.is_uri,
            )
            self._conn.row_factory = sqlite3.Row

            # Enable foreign keys
            self._conn.execute("PRAGMA foreign_keys = ON")

            if self._config.readonly:
                self._conn.execute("PRAGMA query_only = ON")

            self._connected = True

        except sqlite3.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to SQLite: {e}",
                cause=e,
            ).with_context(resource=path) from e

    def disconnect(self) -> None:
        """Close SQLite connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                self._connected = False

    def get_connection(self) -> Connection:
        """Get the SQLite connection."""
        if not self._conn:
            self.connect()
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Transaction context manager; holds the adapter lock throughout.

        A transaction opened inside another one on the same thread joins it:
        only the outermost block commits or rolls back.
        """
        with self._lock:
            conn = self.get_connection()
            if self._depth:
                self._depth += 1
                try:
                    yield conn
                finally:
                    self._depth -= 1
                return

            self._depth = 1
            try:
                yield conn
                conn.commit()
            except BaseException:
                conn.rollback()
                raise
            finally:
                self._depth = 0

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def execute(self, sql: str, params: tuple = ()) -> Any:
        with self._lock:
            return super().execute(sql, params)

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute query and return results as dicts."""
        with self._lock:
            conn = self.get_connection()
            cursor = conn.execute(sql, params)
            return [dict(row) for row in cursor.fetchall()]


__all__ = [
    "SQLiteAdapter",
]
