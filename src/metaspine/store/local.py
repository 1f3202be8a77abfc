"""SQLite-backed aspect store.

Implements the :class:`~metaspine.store.base.BaseAspectStore` primitives over
the ``metadata_aspect`` / ``metadata_id`` tables defined in
``metaspine/core/schema/00_metadata_aspect.sql``. All writes run inside
``adapter.transaction()``, which holds the adapter lock, so the read of the
current maximum version and the insert of the next one are atomic. The
``(urn, aspect, version)`` primary key backs that up at the storage level.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from metaspine.core.adapters import DatabaseAdapter, SQLiteAdapter
from metaspine.core.aspects import Aspect, AspectUnion
from metaspine.core.audit import AuditStamp
from metaspine.core.errors import StorageError, ValidationError, VersionConflictError
from metaspine.core.events import ChangeEvent
from metaspine.core.logging import get_logger
from metaspine.core.protocols import ChangeNotifier, Connection
from metaspine.core.schema_loader import apply_schema_script, read_schema_script
from metaspine.core.settings import MetaSpineSettings
from metaspine.core.urn import Urn

from .base import LATEST_VERSION, BaseAspectStore, VersionedAspect

logger = get_logger(__name__)

_SELECT_COLUMNS = "version, metadata, createdon, createdby, createdfor"


class LocalAspectStore(BaseAspectStore):
    """
    Mutable aspect store on a local SQLite database.

    Args:
        aspect_union: Closed set of aspect classes this store accepts
        adapter: Database adapter; defaults to ``SQLiteAdapter(settings.database_path)``
        notifier: Receives a ChangeEvent after every committed write
        urn_class: URN class every key must be an instance of
        settings: Overrides the process-wide settings
        ddl_generate: Create the tables from the bundled schema script

    Example:
        >>> with LocalAspectStore(DATASET_ASPECTS, urn_class=DatasetUrn) as store:
        ...     store.save(urn, Status(removed=False), stamp)
    """

    def __init__(
        self,
        aspect_union: AspectUnion,
        adapter: DatabaseAdapter | None = None,
        *,
        notifier: ChangeNotifier | None = None,
        urn_class: type[Urn] = Urn,
        settings: MetaSpineSettings | None = None,
        ddl_generate: bool = True,
    ):
        super().__init__(aspect_union, notifier=notifier, urn_class=urn_class, settings=settings)
        self._local = threading.local()
        self._adapter = adapter or SQLiteAdapter(
            self._settings.database_path,
            timeout=self._settings.sqlite_timeout,
        )
        self._adapter.connect()
        if ddl_generate:
            self.create_schema()

    @property
    def adapter(self) -> DatabaseAdapter:
        return self._adapter

    def create_schema(self, script: str | None = None) -> int:
        """Execute a schema script (the bundled one by default).

        Returns the number of statements executed.
        """
        sql = read_schema_script(script or self._settings.schema_script)
        with self._storage_errors("create_schema"), self._adapter.transaction() as conn:
            count = apply_schema_script(conn, sql)
        logger.debug("schema.created", statements=count, store=self._aspect_union.name)
        return count

    @contextmanager
    def batch(self) -> Iterator[LocalAspectStore]:
        """Run several writes as one transaction.

        Either every write in the block commits or none does. Change events
        are held back and delivered only after the commit.
        """
        if getattr(self._local, "pending", None) is not None:
            yield self
            return

        self._local.pending = []
        try:
            with self._storage_errors("batch"), self._adapter.transaction():
                yield self
            events = self._local.pending
        finally:
            self._local.pending = None

        for event in events:
            super()._notify(event)

    def _notify(self, event: ChangeEvent) -> None:
        pending = getattr(self._local, "pending", None)
        if pending is not None:
            pending.append(event)
        else:
            super()._notify(event)

    def close(self) -> None:
        self._adapter.disconnect()

    def __enter__(self) -> LocalAspectStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ── Helpers ──────────────────────────────────────────────────────────

    @contextmanager
    def _storage_errors(self, operation: str, urn: Urn | None = None, kind: str | None = None) -> Iterator[None]:
        """Translate driver errors into StorageError."""
        try:
            yield
        except sqlite3.Error as e:
            raise StorageError(f"{operation} failed: {e}", cause=e).with_context(
                urn=str(urn) if urn is not None else None,
                aspect=kind,
                operation=operation,
            ) from e

    def _to_versioned(self, urn: Urn, kind: str, row: Any) -> VersionedAspect:
        version, payload, created_on, created_by, created_for = row
        return VersionedAspect(
            urn=urn,
            aspect=self._aspect_union.decode(kind, payload),
            version=version,
            audit_stamp=AuditStamp(
                actor=Urn.from_string(created_by),
                time=created_on,
                impersonator=Urn.from_string(created_for) if created_for else None,
            ),
        )

    @staticmethod
    def _fetch_row(conn: Connection, urn: Urn, kind: str, version: int) -> Any:
        if version == LATEST_VERSION:
            cursor = conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM metadata_aspect "
                "WHERE urn = ? AND aspect = ? ORDER BY version DESC LIMIT 1",
                (str(urn), kind),
            )
        else:
            cursor = conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM metadata_aspect "
                "WHERE urn = ? AND aspect = ? AND version = ?",
                (str(urn), kind, version),
            )
        return cursor.fetchone()

    @staticmethod
    def _max_version(conn: Connection, urn: Urn, kind: str) -> int | None:
        row = conn.execute(
            "SELECT MAX(version) FROM metadata_aspect WHERE urn = ? AND aspect = ?",
            (str(urn), kind),
        ).fetchone()
        return row[0]

    # ── Primitives ───────────────────────────────────────────────────────

    def _read(self, urn: Urn, kind: str, version: int) -> VersionedAspect | None:
        with self._storage_errors("read", urn, kind), self._adapter.transaction() as conn:
            row = self._fetch_row(conn, urn, kind, version)
        return self._to_versioned(urn, kind, row) if row is not None else None

    def _write(
        self,
        urn: Urn,
        kind: str,
        aspect: Aspect,
        audit_stamp: AuditStamp,
        version: int,
        is_insert: bool,
    ) -> tuple[VersionedAspect, Aspect | None]:
        payload = self._aspect_union.encode(aspect)
        audit = (
            audit_stamp.time,
            str(audit_stamp.actor),
            str(audit_stamp.impersonator) if audit_stamp.impersonator is not None else None,
        )

        with self._storage_errors("write", urn, kind), self._adapter.transaction() as conn:
            latest = self._max_version(conn, urn, kind)

            if version == LATEST_VERSION:
                if latest is None:
                    if not is_insert:
                        raise StorageError(f"No latest version of {kind} for {urn} to update").with_context(
                            urn=str(urn), aspect=kind
                        )
                    target, insert = 0, True
                else:
                    target, insert = latest, False
            elif is_insert:
                expected = 0 if latest is None else latest + 1
                if version < expected:
                    raise VersionConflictError(
                        f"Version {version} of {kind} for {urn} already exists"
                    ).with_context(urn=str(urn), aspect=kind, version=version)
                if version > expected:
                    raise ValidationError(
                        f"Version {version} would leave a gap; next version of {kind} for {urn} is {expected}",
                        field="version",
                        value=version,
                    ).with_context(urn=str(urn), aspect=kind, version=version)
                target, insert = version, True
            else:
                if latest is None or version > latest:
                    raise StorageError(f"Version {version} of {kind} for {urn} does not exist").with_context(
                        urn=str(urn), aspect=kind, version=version
                    )
                target, insert = version, False

            # The value this write replaces: the overwritten row, or the
            # previous latest when appending.
            previous_version = target if not insert else latest
            previous = (
                self._fetch_row(conn, urn, kind, previous_version) if previous_version is not None else None
            )

            if insert:
                try:
                    conn.execute(
                        "INSERT INTO metadata_aspect "
                        "(urn, aspect, version, metadata, createdon, createdby, createdfor) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?)",
                        (str(urn), kind, target, payload, *audit),
                    )
                except sqlite3.IntegrityError as e:
                    raise VersionConflictError(
                        f"Version {target} of {kind} for {urn} was written concurrently",
                        cause=e,
                    ).with_context(urn=str(urn), aspect=kind, version=target) from e
            else:
                conn.execute(
                    "UPDATE metadata_aspect SET metadata = ?, createdon = ?, createdby = ?, createdfor = ? "
                    "WHERE urn = ? AND aspect = ? AND version = ?",
                    (payload, *audit, str(urn), kind, target),
                )

        old_value = self._to_versioned(urn, kind, previous).aspect if previous is not None else None
        committed = VersionedAspect(urn=urn, aspect=aspect, version=target, audit_stamp=audit_stamp)
        return committed, old_value

    def _list_versions(self, urn: Urn, kind: str) -> list[int]:
        with self._storage_errors("list_versions", urn, kind):
            rows = self._adapter.query(
                "SELECT version FROM metadata_aspect WHERE urn = ? AND aspect = ? ORDER BY version",
                (str(urn), kind),
            )
        return [row["version"] for row in rows]

    def _list_urns(self, kind: str, start: int, count: int | None) -> list[str]:
        with self._storage_errors("list_urns", kind=kind):
            rows = self._adapter.query(
                "SELECT DISTINCT urn FROM metadata_aspect WHERE aspect = ? ORDER BY urn LIMIT ? OFFSET ?",
                (kind, -1 if count is None else count, start),
            )
        return [row["urn"] for row in rows]

    def _urn_exists(self, urn: Urn) -> bool:
        with self._storage_errors("exists", urn):
            row = self._adapter.query_one("SELECT 1 AS found FROM metadata_aspect WHERE urn = ? LIMIT 1", (str(urn),))
        return row is not None

    def _allocate_id(self, namespace: str) -> int:
        with self._storage_errors("new_numeric_id"), self._adapter.transaction() as conn:
            row = conn.execute(
                "SELECT COALESCE(MAX(id), 0) + 1 FROM metadata_id WHERE namespace = ?",
                (namespace,),
            ).fetchone()
            new_id = row[0]
            conn.execute("INSERT INTO metadata_id (namespace, id) VALUES (?, ?)", (namespace, new_id))
        return new_id


__all__ = [
    "LocalAspectStore",
]
