"""Aspect stores.

    LocalAspectStore       mutable, SQLite-backed (AspectReader + AspectWriter)
    ImmutableAspectStore   read-only, bootstrapped from a snapshot (AspectReader)

    load_aspects           JSON snapshot → {Urn: aspect}
"""

from metaspine.store.base import (
    DEFAULT_ID_NAMESPACE,
    LATEST_VERSION,
    MAX_VERSION,
    AspectKey,
    AspectReader,
    AspectWriter,
    BaseAspectStore,
    RetryStats,
    VersionedAspect,
)
from metaspine.store.immutable import ImmutableAspectStore
from metaspine.store.local import LocalAspectStore
from metaspine.store.snapshot import dump_aspects, load_aspects, load_aspects_from_path, snapshot_stream

__all__ = [
    "DEFAULT_ID_NAMESPACE",
    "LATEST_VERSION",
    "MAX_VERSION",
    "AspectKey",
    "AspectReader",
    "AspectWriter",
    "BaseAspectStore",
    "ImmutableAspectStore",
    "LocalAspectStore",
    "RetryStats",
    "VersionedAspect",
    "dump_aspects",
    "load_aspects",
    "load_aspects_from_path",
    "snapshot_stream",
]
