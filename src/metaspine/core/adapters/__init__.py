"""Database adapters for the aspect stores.

Architecture::

    DatabaseAdapter (base.py)        Abstract base with connect/transaction/query
        |-- SQLiteAdapter            stdlib sqlite3

    DatabaseConfig (types.py)        Connection parameters
    DatabaseType (types.py)          Enum of supported backends

Guardrails:
    ❌ ``conn.execute("SELECT * FROM t WHERE urn=" + urn)``
    ✅ ``conn.execute("SELECT * FROM t WHERE urn=?", (urn,))``
"""

from .base import DatabaseAdapter
from .sqlite import SQLiteAdapter
from .types import DatabaseConfig, DatabaseType

__all__ = [
    "DatabaseAdapter",
    "DatabaseConfig",
    "DatabaseType",
    "SQLiteAdapter",
]
