"""Tests for metaspine.core.events -- ChangeEvent and notifiers."""

from __future__ import annotations

import pytest

from metaspine.core.audit import AuditStamp
from metaspine.core.events import (
    ChangeEvent,
    InMemoryChangeNotifier,
    LoggingChangeNotifier,
    NoopChangeNotifier,
)
from metaspine.core.protocols import ChangeNotifier
from metaspine.domain.dataset import CorpUserUrn, DatasetUrn, Status


def _event(old=None, new=None, kind="com.linkedin.common.Status", version=0) -> ChangeEvent:
    return ChangeEvent(
        urn=DatasetUrn.of("foo"),
        aspect_kind=kind,
        old_value=old,
        new_value=new or Status(removed=True),
        audit_stamp=AuditStamp(actor=CorpUserUrn.of("jdoe"), time=10),
        version=version,
    )


# ------------------------------------------------------------------ #
# ChangeEvent
# ------------------------------------------------------------------ #


class TestChangeEvent:
    def test_is_create(self):
        assert _event().is_create is True
        assert _event(old=Status(removed=False)).is_create is False

    def test_unique_ids(self):
        assert _event().event_id != _event().event_id

    def test_to_dict(self):
        d = _event(old=Status(removed=False), version=1).to_dict()
        assert d["urn"] == "urn:li:dataset:foo"
        assert d["aspect"] == "com.linkedin.common.Status"
        assert d["old_value"] == {"removed": False}
        assert d["new_value"] == {"removed": True}
        assert d["audit_stamp"] == {"actor": "urn:li:corpuser:jdoe", "time": 10}
        assert d["version"] == 1


# ------------------------------------------------------------------ #
# Notifiers
# ------------------------------------------------------------------ #


class TestNotifiers:
    @pytest.mark.parametrize("cls", [NoopChangeNotifier, InMemoryChangeNotifier, LoggingChangeNotifier])
    def test_satisfy_protocol(self, cls):
        assert isinstance(cls(), ChangeNotifier)

    def test_noop_accepts_events(self):
        NoopChangeNotifier().notify(_event())

    def test_logging_notifier_does_not_raise(self):
        LoggingChangeNotifier(level="debug").notify(_event())


class TestInMemoryChangeNotifier:
    def test_records_events(self):
        notifier = InMemoryChangeNotifier()
        event = _event()
        notifier.notify(event)
        assert notifier.events == [event]

    def test_clear(self):
        notifier = InMemoryChangeNotifier()
        notifier.notify(_event())
        notifier.clear()
        assert notifier.events == []

    def test_subscribe_all(self):
        notifier = InMemoryChangeNotifier()
        received = []
        notifier.subscribe(received.append)
        notifier.notify(_event())
        notifier.notify(_event(kind="com.linkedin.common.Ownership"))
        assert len(received) == 2

    def test_subscribe_filtered_by_kind(self):
        notifier = InMemoryChangeNotifier()
        received = []
        notifier.subscribe(received.append, aspect_kind="com.linkedin.common.Ownership")
        notifier.notify(_event())
        notifier.notify(_event(kind="com.linkedin.common.Ownership"))
        assert [e.aspect_kind for e in received] == ["com.linkedin.common.Ownership"]

    def test_unsubscribe(self):
        notifier = InMemoryChangeNotifier()
        received = []
        sub_id = notifier.subscribe(received.append)
        notifier.unsubscribe(sub_id)
        notifier.notify(_event())
        assert received == []

    def test_failing_handler_does_not_block_others(self):
        notifier = InMemoryChangeNotifier()
        received = []

        def broken(event):
            raise RuntimeError("handler down")

        notifier.subscribe(broken)
        notifier.subscribe(received.append)
        notifier.notify(_event())
        assert len(received) == 1
        assert len(notifier.events) == 1
