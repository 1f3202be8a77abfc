"""Change events and notifiers.

Why This Module Exists
----------------------
Every successful aspect write is externally observable: downstream indexes,
caches and audit pipelines want to know that ``urn`` moved from ``old`` to
``new``. The store does not own that transport. It hands a
:class:`ChangeEvent` to whatever :class:`~metaspine.core.protocols.ChangeNotifier`
it was built with and moves on.

Delivery is fire-and-forget from the store's point of view: the write is
already committed when ``notify`` runs, so a notifier failure is logged by
the store and does not undo or fail the write.

Usage::

    from metaspine.core.events import InMemoryChangeNotifier

    notifier = InMemoryChangeNotifier()
    store = LocalAspectStore(DATASET_ASPECTS, notifier=notifier)
    store.save(urn, DatasetProperties(description="d"), stamp)
    assert notifier.events[0].new_value.description == "d"

Notifiers
---------
NoopChangeNotifier      drops every event (bootstrap and read-only stores)
InMemoryChangeNotifier  records events and calls subscribed handlers
LoggingChangeNotifier   logs a structured ``aspect.changed`` line per event
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from metaspine.core.aspects import Aspect
from metaspine.core.audit import AuditStamp
from metaspine.core.logging import get_logger
from metaspine.core.urn import Urn

__all__ = [
    "ChangeEvent",
    "ChangeHandler",
    "NoopChangeNotifier",
    "InMemoryChangeNotifier",
    "LoggingChangeNotifier",
]

logger = get_logger(__name__)


# ── Event Model ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ChangeEvent:
    """Result of one committed aspect write.

    Attributes:
        urn: Entity that changed
        aspect_kind: Kind tag of the aspect that changed
        old_value: Value before the write (None when the aspect was absent)
        new_value: Value after the write
        audit_stamp: Attribution recorded with the write
        version: Version number the write committed
        event_id: Unique event identifier
    """

    urn: Urn
    aspect_kind: str
    old_value: Aspect | None
    new_value: Aspect
    audit_stamp: AuditStamp
    version: int
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def is_create(self) -> bool:
        return self.old_value is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "urn": str(self.urn),
            "aspect": self.aspect_kind,
            "version": self.version,
            "old_value": self.old_value.model_dump(mode="json") if self.old_value is not None else None,
            "new_value": self.new_value.model_dump(mode="json"),
            "audit_stamp": self.audit_stamp.to_dict(),
        }


ChangeHandler = Callable[[ChangeEvent], None]


# ── Notifiers ────────────────────────────────────────────────────────────


class NoopChangeNotifier:
    """Notifier used when no event pipeline is configured."""

    def notify(self, event: ChangeEvent) -> None:
        return None


class InMemoryChangeNotifier:
    """Records every event and fans it out to subscribed handlers.

    Thread-safe; stores may call ``notify`` from several writer threads.
    Handler exceptions are logged and do not stop delivery to the rest.
    """

    def __init__(self) -> None:
        self._events: list[ChangeEvent] = []
        self._handlers: dict[str, tuple[str | None, ChangeHandler]] = {}
        self._lock = threading.Lock()

    @property
    def events(self) -> list[ChangeEvent]:
        with self._lock:
            return list(self._events)

    def subscribe(self, handler: ChangeHandler, aspect_kind: str | None = None) -> str:
        """Register ``handler`` for all events, or only those of ``aspect_kind``.

        Returns:
            Subscription ID for :meth:`unsubscribe`
        """
        sub_id = str(uuid.uuid4())
        with self._lock:
            self._handlers[sub_id] = (aspect_kind, handler)
        return sub_id

    def unsubscribe(self, subscription_id: str) -> None:
        with self._lock:
            self._handlers.pop(subscription_id, None)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def notify(self, event: ChangeEvent) -> None:
        with self._lock:
            self._events.append(event)
            handlers = [
                (sub_id, handler)
                for sub_id, (kind, handler) in self._handlers.items()
                if kind is None or kind == event.aspect_kind
            ]

        for sub_id, handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "change_handler.failed",
                    subscription_id=sub_id,
                    event_id=event.event_id,
                    error=str(e),
                )


class LoggingChangeNotifier:
    """Logs one structured line per change."""

    def __init__(self, level: str = "info") -> None:
        self._log = getattr(logger, level)

    def notify(self, event: ChangeEvent) -> None:
        self._log(
            "aspect.changed",
            urn=str(event.urn),
            aspect=event.aspect_kind,
            version=event.version,
            actor=str(event.audit_stamp.actor),
            created=event.is_create,
        )
