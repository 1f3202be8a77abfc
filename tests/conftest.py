"""
Shared pytest fixtures and configuration for metaspine tests.

This module provides:
- Auto-applied ``unit`` / ``integration`` markers by location
- Logging configuration reset after every test
- The bundled dataset union, typed URNs and audit stamps
- Fresh in-memory stores and a recording change notifier

Usage:
    Fixtures are auto-discovered by pytest; take them as test arguments:

    def test_save(store, dataset_urn, stamp):
        store.save(dataset_urn, Status(removed=True), stamp)
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from metaspine.core.audit import AuditStamp
from metaspine.core.events import InMemoryChangeNotifier
from metaspine.core.settings import MetaSpineSettings
from metaspine.domain.dataset import (
    DATASET_ASPECTS,
    CorpUserUrn,
    DatasetProperties,
    DatasetUrn,
    Status,
)
from metaspine.store.local import LocalAspectStore


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path) or "_e2e" in item.name:
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Undo configure_logging() calls made during a test (CLI invocations included)."""
    root = logging.getLogger()
    level = root.level
    yield
    structlog.reset_defaults()
    for handler in root.handlers[:]:
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
    root.setLevel(level)


# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest.fixture
def union():
    return DATASET_ASPECTS


@pytest.fixture
def dataset_urn() -> DatasetUrn:
    return DatasetUrn.of("foo")


@pytest.fixture
def other_urn() -> DatasetUrn:
    return DatasetUrn.of("bar")


@pytest.fixture
def actor() -> CorpUserUrn:
    return CorpUserUrn.of("jdoe")


@pytest.fixture
def stamp(actor: CorpUserUrn) -> AuditStamp:
    """Deterministic audit stamp (2024-01-01T00:00:00Z)."""
    return AuditStamp(actor=actor, time=1_704_067_200_000)


@pytest.fixture
def settings() -> MetaSpineSettings:
    return MetaSpineSettings(database_path=":memory:", max_transaction_retry=3)


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def notifier() -> InMemoryChangeNotifier:
    return InMemoryChangeNotifier()


@pytest.fixture
def store(notifier: InMemoryChangeNotifier, settings: MetaSpineSettings) -> Generator[LocalAspectStore, None, None]:
    """Fresh mutable store on a private in-memory database."""
    s = LocalAspectStore(DATASET_ASPECTS, notifier=notifier, urn_class=DatasetUrn, settings=settings)
    yield s
    s.close()


@pytest.fixture
def snapshot() -> dict[DatasetUrn, DatasetProperties]:
    return {
        DatasetUrn.of("foo"): DatasetProperties(description="Foo table"),
        DatasetUrn.of("bar"): DatasetProperties(description="Bar table", tags=("pii",)),
    }


@pytest.fixture
def removed() -> Status:
    return Status(removed=True)
