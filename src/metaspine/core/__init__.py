"""metaspine core -- value types, errors and infrastructure shared by every store.

Architecture::

    Layer 1 -- Errors & Protocols
        errors.py          Structured error hierarchy (MetaSpineError, ParseError, ...)
        protocols.py       Connection and ChangeNotifier protocols
        timestamps.py      UTC / epoch-millis helpers (stdlib-only)

    Layer 2 -- Value Types
        urn.py             Urn and typed URN subclasses
        aspects.py         Aspect base model + AspectUnion (pydantic codec)
        audit.py           AuditStamp + the bootstrap stamp
        events.py          ChangeEvent + notifiers

    Layer 3 -- Storage Infrastructure
        adapters/          Database adapters (SQLite)
        schema/            SQL DDL for metadata_aspect / metadata_id
        schema_loader.py   Schema script discovery and execution

    Layer 4 -- Cross-Cutting Concerns
        logging.py         Structured logging (structlog)
        settings.py        MetaSpineSettings (pydantic-settings, METASPINE_ env)
"""

from metaspine.core.errors import (
    ConcurrencyExhaustedError,
    ConfigError,
    DatabaseConnectionError,
    ErrorCategory,
    MetaSpineError,
    ParseError,
    ResourceInitError,
    StorageError,
    UnsupportedOperationError,
    ValidationError,
    VersionConflictError,
)
from metaspine.core.urn import Urn
from metaspine.core.aspects import Aspect, AspectUnion
from metaspine.core.audit import BOOTSTRAP_AUDIT_STAMP, AuditStamp
from metaspine.core.events import (
    ChangeEvent,
    InMemoryChangeNotifier,
    LoggingChangeNotifier,
    NoopChangeNotifier,
)
from metaspine.core.protocols import ChangeNotifier, Connection
from metaspine.core.settings import MetaSpineSettings, get_settings

__all__ = [
    # errors
    "ConcurrencyExhaustedError",
    "ConfigError",
    "DatabaseConnectionError",
    "ErrorCategory",
    "MetaSpineError",
    "ParseError",
    "ResourceInitError",
    "StorageError",
    "UnsupportedOperationError",
    "ValidationError",
    "VersionConflictError",
    # value types
    "Urn",
    "Aspect",
    "AspectUnion",
    "AuditStamp",
    "BOOTSTRAP_AUDIT_STAMP",
    "ChangeEvent",
    # notifiers / protocols
    "ChangeNotifier",
    "Connection",
    "InMemoryChangeNotifier",
    "LoggingChangeNotifier",
    "NoopChangeNotifier",
    # settings
    "MetaSpineSettings",
    "get_settings",
]
