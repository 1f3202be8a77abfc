"""
Read-only aspect store bootstrapped from a static snapshot.

Manifesto:
    Some metadata is declared, not written: platform catalogs, reference
    datasets, fixtures shipped with a service. It still wants the full read
    surface of an aspect store (versions, audit stamps, listing), but it must
    never change after start-up.

    :class:`ImmutableAspectStore` gets that by composition. It owns a private
    :class:`~metaspine.store.local.LocalAspectStore`, pushes the whole snapshot
    through the store's own ``save`` path once, and from then on exposes only
    the :class:`~metaspine.store.base.AspectReader` capability.

Architecture:
    ::

        ImmutableAspectStore(union, {urn: aspect}, urn_class)
          │
          ├── SQLiteAdapter.private_memory(<union>-<id>)
          ├── read_schema_script(settings.schema_script) → execute
          ├── one transaction:
          │     for urn, aspect: engine.save(urn, aspect, bootstrap_stamp,
          │                                  LATEST_VERSION, is_insert=True)
          │     → every aspect lands at version 0
          └── reads delegate to the private engine

        add() / new_numeric_id()  → UnsupportedOperationError
        isinstance(store, AspectWriter)  → False (no save())

Guardrails:
    ❌ DON'T: Reach into ``_engine`` to write after construction
    ✅ DO: Build a new store from a new snapshot

    ❌ DON'T: Expect a half-loaded store after a failed snapshot
    ✅ DO: Handle the construction error; nothing is returned on failure

Tags:
    immutable, read-only, snapshot, bootstrap, aspect-store, metaspine
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any, NoReturn

from metaspine.core.adapters import DatabaseAdapter, SQLiteAdapter
from metaspine.core.aspects import Aspect, AspectUnion
from metaspine.core.audit import BOOTSTRAP_AUDIT_STAMP, AuditStamp
from metaspine.core.errors import UnsupportedOperationError
from metaspine.core.events import NoopChangeNotifier
from metaspine.core.logging import LogContext, get_logger
from metaspine.core.settings import MetaSpineSettings, get_settings
from metaspine.core.timestamps import utc_now
from metaspine.core.urn import Urn

from .base import LATEST_VERSION, A, AspectKey, DEFAULT_ID_NAMESPACE, VersionedAspect
from .local import LocalAspectStore

logger = get_logger(__name__)


class ImmutableAspectStore:
    """
    Aspect store serving a fixed snapshot; implements ``AspectReader`` only.

    Production form::

        store = ImmutableAspectStore(DATASET_ASPECTS, snapshot, DatasetUrn)

    Test form (no bundled-script read; optional DDL)::

        store = ImmutableAspectStore.for_testing(DATASET_ASPECTS, snapshot, True, DatasetUrn)

    Args:
        aspect_union: Closed set of aspect classes the snapshot may contain
        urn_aspects: Snapshot to serve, one aspect per URN
        urn_class: URN class every key must be an instance of
        bootstrap_stamp: Audit stamp recorded on every snapshot value
        settings: Overrides the process-wide settings

    Raises:
        ResourceInitError: the bundled schema script is missing or unreadable
        ValidationError: a key or value is outside the store's URN class / union
        StorageError: the backing store failed while loading
    """

    def __init__(
        self,
        aspect_union: AspectUnion,
        urn_aspects: Mapping[Urn, Aspect],
        urn_class: type[Urn] = Urn,
        *,
        bootstrap_stamp: AuditStamp = BOOTSTRAP_AUDIT_STAMP,
        settings: MetaSpineSettings | None = None,
    ):
        settings = settings or get_settings()
        adapter = SQLiteAdapter.private_memory(
            f"{aspect_union.name}-{uuid.uuid4().hex[:12]}",
            timeout=settings.sqlite_timeout,
        )
        self._bootstrap(
            aspect_union,
            urn_aspects,
            urn_class,
            adapter=adapter,
            ddl_generate=True,
            bootstrap_stamp=bootstrap_stamp,
            settings=settings,
        )

    @classmethod
    def for_testing(
        cls,
        aspect_union: AspectUnion,
        urn_aspects: Mapping[Urn, Aspect],
        ddl_generate: bool,
        urn_class: type[Urn] = Urn,
        *,
        adapter: DatabaseAdapter | None = None,
        bootstrap_stamp: AuditStamp = BOOTSTRAP_AUDIT_STAMP,
        settings: MetaSpineSettings | None = None,
    ) -> ImmutableAspectStore:
        """Build over a plain ``:memory:`` database or a pre-initialized ``adapter``.

        The bundled schema script is only read when ``ddl_generate`` is true.
        """
        store = cls.__new__(cls)
        store._bootstrap(
            aspect_union,
            urn_aspects,
            urn_class,
            adapter=adapter or SQLiteAdapter(":memory:"),
            ddl_generate=ddl_generate,
            bootstrap_stamp=bootstrap_stamp,
            settings=settings or get_settings(),
        )
        return store

    def _bootstrap(
        self,
        aspect_union: AspectUnion,
        urn_aspects: Mapping[Urn, Aspect],
        urn_class: type[Urn],
        *,
        adapter: DatabaseAdapter,
        ddl_generate: bool,
        bootstrap_stamp: AuditStamp,
        settings: MetaSpineSettings,
    ) -> None:
        started = utc_now()
        with LogContext(store=aspect_union.name):
            try:
                engine = LocalAspectStore(
                    aspect_union,
                    adapter,
                    notifier=NoopChangeNotifier(),
                    urn_class=urn_class,
                    settings=settings,
                    ddl_generate=ddl_generate,
                )
            except BaseException:
                adapter.disconnect()
                raise

            try:
                with engine.batch():
                    for urn, aspect in urn_aspects.items():
                        engine.save(urn, aspect, bootstrap_stamp, LATEST_VERSION, True)
                count = len(urn_aspects)
            except BaseException as e:
                logger.error("immutable.bootstrap_failed", error=str(e))
                engine.close()
                raise

            self._engine = engine
            self._bootstrap_stamp = bootstrap_stamp
            logger.info(
                "immutable.bootstrapped",
                aspects=count,
                elapsed_ms=int((utc_now() - started).total_seconds() * 1000),
            )

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def aspect_union(self) -> AspectUnion:
        return self._engine.aspect_union

    @property
    def urn_class(self) -> type[Urn]:
        return self._engine.urn_class

    @property
    def bootstrap_stamp(self) -> AuditStamp:
        return self._bootstrap_stamp

    # ── AspectReader ─────────────────────────────────────────────────────

    def get(self, urn: Urn, aspect_class: type[A], version: int = LATEST_VERSION) -> A | None:
        return self._engine.get(urn, aspect_class, version)

    def get_versioned(
        self, urn: Urn, aspect_class: type[Aspect], version: int = LATEST_VERSION
    ) -> VersionedAspect | None:
        return self._engine.get_versioned(urn, aspect_class, version)

    def batch_get(self, keys: Iterable[AspectKey]) -> dict[AspectKey, Aspect | None]:
        return self._engine.batch_get(keys)

    def list_versions(self, urn: Urn, aspect_class: type[Aspect]) -> list[int]:
        return self._engine.list_versions(urn, aspect_class)

    def get_latest_version(self, urn: Urn, aspect_class: type[Aspect]) -> int | None:
        return self._engine.get_latest_version(urn, aspect_class)

    def list_urns(self, aspect_class: type[Aspect], start: int = 0, count: int | None = None) -> list[Urn]:
        return self._engine.list_urns(aspect_class, start, count)

    def exists(self, urn: Urn) -> bool:
        return self._engine.exists(urn)

    # ── Closed write surface ─────────────────────────────────────────────

    def add(
        self,
        urn: Urn,
        aspect_class: type[Aspect],
        update_fn: Callable[[Any], Any],
        audit_stamp: AuditStamp,
        max_retry: int | None = None,
    ) -> NoReturn:
        raise UnsupportedOperationError("add", "Not supported by immutable aspect store")

    def new_numeric_id(self, namespace: str = DEFAULT_ID_NAMESPACE) -> NoReturn:
        raise UnsupportedOperationError("new_numeric_id", "Not supported by immutable aspect store")

    # ── Lifecycle ────────────────────────────────────────────────────────

    def close(self) -> None:
        self._engine.close()

    def __enter__(self) -> ImmutableAspectStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ImmutableAspectStore({self.aspect_union.name!r}, urn_class={self.urn_class.__name__})"


__all__ = [
    "ImmutableAspectStore",
]
