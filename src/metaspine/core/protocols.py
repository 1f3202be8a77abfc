"""
Canonical protocol definitions for metaspine.

Single source of truth for the structural protocols shared across the
package. Store implementations depend on the ``Connection`` shape, not on
``sqlite3`` directly.

Architecture:
    ::

        protocols.py
        ├── Connection      : sync DB protocol (sqlite3.Connection satisfies it)
        └── ChangeNotifier  : post-commit hook receiving ChangeEvents

    Capability protocols for the aspect stores (AspectReader, AspectWriter)
    live beside the store contract in ``metaspine.store.base``.

Guardrails:
    ❌ DON'T: Duplicate Connection(Protocol) in other modules
    ✅ DO: Import from metaspine.core.protocols

Tags:
    protocol, connection, notifier, metaspine, contracts
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from metaspine.core.events import ChangeEvent


@runtime_checkable
class Connection(Protocol):
    """
    Minimal SYNCHRONOUS connection interface for database operations.

    Architecture:
        ::

            ┌────────────────────────────────────────────────────────┐
            │ execute(sql, params)   → Execute single statement      │
            │ executemany(sql, list) → Execute for multiple params   │
            │ commit()               → Commit transaction            │
            │ rollback()             → Rollback transaction          │
            └────────────────────────────────────────────────────────┘
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters. SYNC."""
        ...

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        """Execute SQL statement for multiple parameter sets. SYNC."""
        ...

    def commit(self) -> None:
        """Commit current transaction. SYNC."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction. SYNC."""
        ...


@runtime_checkable
class ChangeNotifier(Protocol):
    """
    Contract for the post-commit change hook.

    Invoked by the store after every successful write. Implementations must
    return promptly; the store treats delivery as fire-and-forget.
    """

    def notify(self, event: ChangeEvent) -> None:
        """Deliver a change event."""
        ...


__all__ = [
    "Connection",
    "ChangeNotifier",
]
