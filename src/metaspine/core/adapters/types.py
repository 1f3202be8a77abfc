"""Database types and configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DatabaseType(str, Enum):
    """Supported database types."""

    SQLITE = "sqlite"


@dataclass
class DatabaseConfig:
    """Configuration for a database connection."""

    db_type: DatabaseType = DatabaseType.SQLITE

    # SQLite path, ``:memory:`` or a ``file:`` URI
    path: str | None = None

    timeout: float = 5.0
    readonly: bool = False

    # Extra options (driver-specific)
    options: dict[str, Any] = field(default_factory=dict)

    def to_connection_string(self) -> str:
        """Generate connection string for the database type."""
        return self.path or ":memory:"

    @property
    def is_uri(self) -> bool:
        path = self.to_connection_string()
        return path.startswith("file:")
