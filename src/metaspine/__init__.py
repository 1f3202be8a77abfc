"""
metaspine - URN-keyed, versioned aspect storage.

Entities are identified by URNs; their metadata is split into aspects,
each versioned and audited on its own. ``metaspine.store`` holds the
mutable SQLite store and the read-only snapshot store.
"""

__version__ = "0.1.0"
