"""
Aspect storage contract: capabilities, versioning rules and optimistic writes.

Manifesto:
    Every aspect write must be attributable and versioned, and concurrent
    writers must never silently clobber each other. This module owns those
    rules once, so every backing store gets them for free:

    - **Capabilities, not conventions:** reading and writing are separate
      protocols. A read-only store simply does not implement
      :class:`AspectWriter`; callers that need writes ask for one.
    - **Contiguous versions:** versions of a (urn, aspect kind) run 0..n with
      no gaps. Inserting anywhere but the next version is refused.
    - **Optimistic add:** read, apply the updater outside any lock, commit as
      the next version, and retry the whole cycle when another writer got
      there first. The retry budget counts attempts, not seconds.

Architecture:
    ::

        AspectReader (Protocol)           AspectWriter (Protocol)
          get / get_versioned               save
          batch_get / list_versions         add
          get_latest_version                new_numeric_id
          list_urns / exists
                 ▲                                ▲
                 └──────────┐        ┌────────────┘
                      BaseAspectStore (ABC)
                        _read / _write / _allocate_id   ← backing store primitives
                            ▲
                      LocalAspectStore (SQLite)

    add() loop:
        ┌──────────────────────────────────────────────────────────────┐
        │ for attempt in 1..max_retry+1:                               │
        │     current = _read(urn, kind, LATEST)                       │
        │     new = update_fn(current)          # outside any lock      │
        │     _write(new, version=current+1)    # conditional insert    │
        │       ✓ → notify, return new                                 │
        │       VersionConflictError → retry                           │
        │ raise ConcurrencyExhaustedError                              │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> store = LocalAspectStore(DATASET_ASPECTS, urn_class=DatasetUrn)
    >>> stamp = AuditStamp.now(CorpUserUrn.of("jdoe"))
    >>> store.add(urn, Ownership, lambda old: Ownership(owners=["jdoe"]), stamp)
    Ownership(owners=['jdoe'])
    >>> store.list_versions(urn, Ownership)
    [0]

Tags:
    storage, versioning, optimistic-concurrency, audit, capabilities, metaspine
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar, runtime_checkable

from metaspine.core.aspects import Aspect, AspectUnion
from metaspine.core.audit import AuditStamp
from metaspine.core.errors import (
    ConcurrencyExhaustedError,
    ParseError,
    ValidationError,
    VersionConflictError,
)
from metaspine.core.events import ChangeEvent, NoopChangeNotifier
from metaspine.core.logging import get_logger
from metaspine.core.protocols import ChangeNotifier
from metaspine.core.settings import MetaSpineSettings, get_settings
from metaspine.core.urn import Urn

logger = get_logger(__name__)

A = TypeVar("A", bound=Aspect)

# Reserved version meaning "the most recent version".
LATEST_VERSION = -1

# Versions are stored in a signed 64-bit column.
MAX_VERSION = 2**63 - 1

DEFAULT_ID_NAMESPACE = "global"


@dataclass(frozen=True)
class VersionedAspect:
    """A stored aspect value together with its version and audit stamp."""

    urn: Urn
    aspect: Aspect
    version: int
    audit_stamp: AuditStamp

    @property
    def aspect_kind(self) -> str:
        return self.aspect.aspect_name()


@dataclass(frozen=True)
class AspectKey:
    """Address of one aspect value for batch reads."""

    aspect_class: type[Aspect]
    urn: Urn
    version: int = LATEST_VERSION


class RetryStats:
    """Thread-safe counters for the ``add`` retry loop."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.adds = 0
        self.attempts = 0
        self.conflicts = 0
        self.exhausted = 0

    def record(self, *, adds: int = 0, attempts: int = 0, conflicts: int = 0, exhausted: int = 0) -> None:
        with self._lock:
            self.adds += adds
            self.attempts += attempts
            self.conflicts += conflicts
            self.exhausted += exhausted

    def to_dict(self) -> dict[str, int]:
        with self._lock:
            return {
                "adds": self.adds,
                "attempts": self.attempts,
                "conflicts": self.conflicts,
                "exhausted": self.exhausted,
            }


# ---------------------------------------------------------------------------
# Capability protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class AspectReader(Protocol):
    """Read capability of an aspect store."""

    @property
    def aspect_union(self) -> AspectUnion: ...

    def get(self, urn: Urn, aspect_class: type[A], version: int = LATEST_VERSION) -> A | None: ...

    def get_versioned(
        self, urn: Urn, aspect_class: type[Aspect], version: int = LATEST_VERSION
    ) -> VersionedAspect | None: ...

    def batch_get(self, keys: Iterable[AspectKey]) -> dict[AspectKey, Aspect | None]: ...

    def list_versions(self, urn: Urn, aspect_class: type[Aspect]) -> list[int]: ...

    def get_latest_version(self, urn: Urn, aspect_class: type[Aspect]) -> int | None: ...

    def list_urns(self, aspect_class: type[Aspect], start: int = 0, count: int | None = None) -> list[Urn]: ...

    def exists(self, urn: Urn) -> bool: ...


@runtime_checkable
class AspectWriter(Protocol):
    """Write capability of an aspect store."""

    def save(
        self,
        urn: Urn,
        aspect: Aspect,
        audit_stamp: AuditStamp,
        version: int = LATEST_VERSION,
        is_insert: bool = True,
    ) -> VersionedAspect: ...

    def add(
        self,
        urn: Urn,
        aspect_class: type[A],
        update_fn: Callable[[A | None], A],
        audit_stamp: AuditStamp,
        max_retry: int | None = None,
    ) -> A: ...

    def new_numeric_id(self, namespace: str = DEFAULT_ID_NAMESPACE) -> int: ...


# ---------------------------------------------------------------------------
# Base store
# ---------------------------------------------------------------------------


class BaseAspectStore(ABC):
    """
    Versioned, audited aspect store over backing-store primitives.

    Subclasses supply the storage primitives; everything a caller sees
    (validation, the version policy of ``save``, the retry loop of ``add``,
    change notification, logging) lives here.
    """

    def __init__(
        self,
        aspect_union: AspectUnion,
        *,
        notifier: ChangeNotifier | None = None,
        urn_class: type[Urn] = Urn,
        settings: MetaSpineSettings | None = None,
    ):
        if not isinstance(aspect_union, AspectUnion):
            raise ValidationError("aspect_union must be an AspectUnion", field="aspect_union", value=aspect_union)
        if not (isinstance(urn_class, type) and issubclass(urn_class, Urn)):
            raise ValidationError("urn_class must be a Urn subclass", field="urn_class", value=urn_class)

        self._aspect_union = aspect_union
        self._urn_class = urn_class
        self._notifier: ChangeNotifier = notifier or NoopChangeNotifier()
        self._settings = settings or get_settings()
        self.retry_stats = RetryStats()

    @property
    def aspect_union(self) -> AspectUnion:
        return self._aspect_union

    @property
    def urn_class(self) -> type[Urn]:
        return self._urn_class

    # ── Backing store primitives ─────────────────────────────────────────

    @abstractmethod
    def _read(self, urn: Urn, kind: str, version: int) -> VersionedAspect | None:
        """Read one version (or the latest for ``LATEST_VERSION``)."""
        ...

    @abstractmethod
    def _write(
        self,
        urn: Urn,
        kind: str,
        aspect: Aspect,
        audit_stamp: AuditStamp,
        version: int,
        is_insert: bool,
    ) -> tuple[VersionedAspect, Aspect | None]:
        """Atomically apply the version policy and write.

        Returns the committed value and the value it replaced as latest
        (``None`` when the aspect was absent).

        Raises:
            VersionConflictError: the target version was taken by another writer
            ValidationError: the insert would leave a gap in the version sequence
            StorageError: the backing store failed, or an update targets a
                version that does not exist
        """
        ...

    @abstractmethod
    def _list_versions(self, urn: Urn, kind: str) -> list[int]: ...

    @abstractmethod
    def _list_urns(self, kind: str, start: int, count: int | None) -> list[str]: ...

    @abstractmethod
    def _urn_exists(self, urn: Urn) -> bool: ...

    @abstractmethod
    def _allocate_id(self, namespace: str) -> int: ...

    # ── Validation ───────────────────────────────────────────────────────

    def _check_urn(self, urn: Any) -> Urn:
        """Return ``urn`` as an instance of the store's URN class.

        URNs are compared by canonical form, so a generic ``Urn`` of the right
        entity type is accepted and re-parsed.
        """
        if isinstance(urn, self._urn_class):
            return urn
        if not isinstance(urn, Urn):
            raise ValidationError(
                f"Expected a {self._urn_class.__name__}, got {type(urn).__name__}",
                field="urn",
                value=urn,
            )
        try:
            return self._urn_class.from_string(str(urn))
        except ParseError as e:
            raise ValidationError(
                f"Expected a {self._urn_class.__name__}, got {urn}",
                field="urn",
                value=urn,
                cause=e,
            ) from e

    @staticmethod
    def _check_version(version: Any) -> int:
        if isinstance(version, bool) or not isinstance(version, int) or (
            version < 0 and version != LATEST_VERSION
        ) or version > MAX_VERSION:
            raise ValidationError(
                f"Version must be LATEST_VERSION or an integer in [0, MAX_VERSION], got {version!r}",
                field="version",
                value=version,
            )
        return version

    @staticmethod
    def _check_audit_stamp(audit_stamp: Any) -> AuditStamp:
        if not isinstance(audit_stamp, AuditStamp):
            raise ValidationError(
                "Every write requires an AuditStamp",
                field="audit_stamp",
                value=audit_stamp,
            )
        return audit_stamp

    # ── Reads ────────────────────────────────────────────────────────────

    def get(self, urn: Urn, aspect_class: type[A], version: int = LATEST_VERSION) -> A | None:
        """Aspect value at ``version`` (latest by default), or None when absent."""
        versioned = self.get_versioned(urn, aspect_class, version)
        return versioned.aspect if versioned is not None else None

    def get_versioned(
        self, urn: Urn, aspect_class: type[Aspect], version: int = LATEST_VERSION
    ) -> VersionedAspect | None:
        """Aspect value with its version number and audit stamp."""
        urn = self._check_urn(urn)
        kind = self._aspect_union.kind_of(aspect_class)
        return self._read(urn, kind, self._check_version(version))

    def batch_get(self, keys: Iterable[AspectKey]) -> dict[AspectKey, Aspect | None]:
        return {key: self.get(key.urn, key.aspect_class, key.version) for key in keys}

    def list_versions(self, urn: Urn, aspect_class: type[Aspect]) -> list[int]:
        """All stored versions, ascending."""
        urn = self._check_urn(urn)
        return self._list_versions(urn, self._aspect_union.kind_of(aspect_class))

    def get_latest_version(self, urn: Urn, aspect_class: type[Aspect]) -> int | None:
        versions = self.list_versions(urn, aspect_class)
        return versions[-1] if versions else None

    def list_urns(self, aspect_class: type[Aspect], start: int = 0, count: int | None = None) -> list[Urn]:
        """URNs carrying ``aspect_class``, ordered by canonical string."""
        if start < 0 or (count is not None and count < 0):
            raise ValidationError("start and count must be non-negative", field="start", value=(start, count))
        kind = self._aspect_union.kind_of(aspect_class)
        return [self._urn_class.from_string(value) for value in self._list_urns(kind, start, count)]

    def exists(self, urn: Urn) -> bool:
        """Whether any aspect is stored for ``urn``."""
        return self._urn_exists(self._check_urn(urn))

    # ── Writes ───────────────────────────────────────────────────────────

    def save(
        self,
        urn: Urn,
        aspect: Aspect,
        audit_stamp: AuditStamp,
        version: int = LATEST_VERSION,
        is_insert: bool = True,
    ) -> VersionedAspect:
        """
        Write ``aspect`` at ``version`` for ``urn``.

        Version policy:
            LATEST_VERSION, insert     create version 0, or overwrite the latest in place
            LATEST_VERSION, update     overwrite the latest in place (must exist)
            explicit N, insert         append; N must be the next version
            explicit N, update         overwrite version N in place (must exist)

        No retry. On success the change notifier receives a ChangeEvent.
        """
        urn = self._check_urn(urn)
        kind = self._aspect_union.ensure(aspect)
        self._check_audit_stamp(audit_stamp)
        self._check_version(version)
        return self._commit(urn, kind, aspect, audit_stamp, version, is_insert)

    def add(
        self,
        urn: Urn,
        aspect_class: type[A],
        update_fn: Callable[[A | None], A],
        audit_stamp: AuditStamp,
        max_retry: int | None = None,
    ) -> A:
        """
        Optimistic read-modify-write of the latest ``aspect_class`` value.

        ``update_fn`` receives the current value (None when absent) and
        returns the new one, which is committed as the next version. If
        another writer commits in between, the whole cycle is retried; at
        most ``max_retry + 1`` attempts are made.

        An updater that returns a value equal to the current one writes
        nothing and gets the current value back.

        Raises:
            ConcurrencyExhaustedError: every attempt lost a version race
            StorageError: backing store failure (never retried)
        """
        urn = self._check_urn(urn)
        kind = self._aspect_union.kind_of(aspect_class)
        self._check_audit_stamp(audit_stamp)
        if max_retry is None:
            max_retry = self._settings.max_transaction_retry
        if isinstance(max_retry, bool) or not isinstance(max_retry, int) or max_retry < 0:
            raise ValidationError("max_retry must be a non-negative integer", field="max_retry", value=max_retry)

        self.retry_stats.record(adds=1)
        attempts = 0
        while attempts <= max_retry:
            attempts += 1
            self.retry_stats.record(attempts=1)

            current = self._read(urn, kind, LATEST_VERSION)
            old_value = current.aspect if current is not None else None
            new_value = update_fn(old_value)
            if not isinstance(new_value, aspect_class):
                raise ValidationError(
                    f"update_fn must return a {aspect_class.__name__}, got {type(new_value).__name__}",
                    field="update_fn",
                    value=new_value,
                )

            if old_value is not None and new_value == old_value:
                logger.debug("aspect.add.unchanged", urn=str(urn), aspect=kind, version=current.version)
                return old_value

            next_version = current.version + 1 if current is not None else 0
            try:
                self._commit(urn, kind, new_value, audit_stamp, next_version, True)
            except VersionConflictError:
                self.retry_stats.record(conflicts=1)
                logger.debug(
                    "aspect.add.conflict",
                    urn=str(urn),
                    aspect=kind,
                    version=next_version,
                    attempt=attempts,
                    max_retry=max_retry,
                )
                continue
            return new_value

        self.retry_stats.record(exhausted=1)
        logger.warning("aspect.add.exhausted", urn=str(urn), aspect=kind, attempts=attempts)
        raise ConcurrencyExhaustedError(
            f"Gave up updating {kind} for {urn} after {attempts} attempts",
            attempts=attempts,
            max_retry=max_retry,
        ).with_context(urn=str(urn), aspect=kind)

    def new_numeric_id(self, namespace: str = DEFAULT_ID_NAMESPACE) -> int:
        """Allocate a store-unique, increasing integer within ``namespace``."""
        if not namespace:
            raise ValidationError("namespace must not be empty", field="namespace", value=namespace)
        new_id = self._allocate_id(namespace)
        logger.debug("numeric_id.allocated", namespace=namespace, id=new_id)
        return new_id

    def _commit(
        self,
        urn: Urn,
        kind: str,
        aspect: Aspect,
        audit_stamp: AuditStamp,
        version: int,
        is_insert: bool,
    ) -> VersionedAspect:
        committed, old_value = self._write(urn, kind, aspect, audit_stamp, version, is_insert)
        logger.debug(
            "aspect.saved",
            urn=str(urn),
            aspect=kind,
            version=committed.version,
            actor=str(audit_stamp.actor),
        )
        self._notify(
            ChangeEvent(
                urn=urn,
                aspect_kind=kind,
                old_value=old_value,
                new_value=committed.aspect,
                audit_stamp=audit_stamp,
                version=committed.version,
            )
        )
        return committed

    def _notify(self, event: ChangeEvent) -> None:
        # The write is already committed; a failing notifier must not undo it.
        try:
            self._notifier.notify(event)
        except Exception as e:
            logger.error(
                "change_notifier.failed",
                urn=str(event.urn),
                aspect=event.aspect_kind,
                version=event.version,
                error=str(e),
            )


__all__ = [
    "LATEST_VERSION",
    "MAX_VERSION",
    "DEFAULT_ID_NAMESPACE",
    "AspectKey",
    "AspectReader",
    "AspectWriter",
    "BaseAspectStore",
    "RetryStats",
    "VersionedAspect",
]
