"""Tests for metaspine.store.immutable -- snapshot-backed read-only store."""

from __future__ import annotations

import pytest

from metaspine.core.adapters import SQLiteAdapter
from metaspine.core.audit import BOOTSTRAP_AUDIT_STAMP, AuditStamp
from metaspine.core.errors import ResourceInitError, StorageError, UnsupportedOperationError, ValidationError
from metaspine.core.schema_loader import apply_schema_script, read_schema_script
from metaspine.core.settings import MetaSpineSettings
from metaspine.core.urn import Urn
from metaspine.domain.dataset import (
    DATASET_ASPECTS,
    CorpUserUrn,
    DatasetProperties,
    DatasetUrn,
    Ownership,
    Status,
)
from metaspine.store.base import AspectKey, AspectReader, AspectWriter
from metaspine.store.immutable import ImmutableAspectStore
from metaspine.store.snapshot import load_aspects, snapshot_stream


@pytest.fixture
def immutable(snapshot):
    store = ImmutableAspectStore(DATASET_ASPECTS, snapshot, DatasetUrn)
    yield store
    store.close()


class TestBootstrap:
    def test_every_entry_at_version_zero(self, immutable, snapshot):
        for urn, aspect in snapshot.items():
            versioned = immutable.get_versioned(urn, DatasetProperties)
            assert versioned.aspect == aspect
            assert versioned.version == 0
            assert immutable.list_versions(urn, DatasetProperties) == [0]

    def test_bootstrap_stamp_recorded(self, immutable):
        versioned = immutable.get_versioned(DatasetUrn.of("foo"), DatasetProperties)
        assert versioned.audit_stamp == BOOTSTRAP_AUDIT_STAMP
        assert str(versioned.audit_stamp.actor) == "urn:li:dummy:unknown"
        assert versioned.audit_stamp.time == 0

    def test_custom_bootstrap_stamp(self, snapshot):
        stamp = AuditStamp(actor=CorpUserUrn.of("loader"), time=99)
        with ImmutableAspectStore(DATASET_ASPECTS, snapshot, DatasetUrn, bootstrap_stamp=stamp) as store:
            assert store.bootstrap_stamp == stamp
            assert store.get_versioned(DatasetUrn.of("foo"), DatasetProperties).audit_stamp == stamp

    def test_empty_snapshot(self):
        with ImmutableAspectStore(DATASET_ASPECTS, {}, DatasetUrn) as store:
            assert store.list_urns(DatasetProperties) == []
            assert store.exists(DatasetUrn.of("foo")) is False

    def test_mixed_aspect_kinds(self):
        snapshot = {DatasetUrn.of("foo"): Status(removed=True), DatasetUrn.of("bar"): Ownership()}
        with ImmutableAspectStore(DATASET_ASPECTS, snapshot, DatasetUrn) as store:
            assert store.get(DatasetUrn.of("foo"), Status) == Status(removed=True)
            assert store.get(DatasetUrn.of("bar"), Ownership) == Ownership()
            assert store.get(DatasetUrn.of("foo"), Ownership) is None

    def test_stores_are_isolated(self, snapshot):
        with ImmutableAspectStore(DATASET_ASPECTS, snapshot, DatasetUrn) as first:
            with ImmutableAspectStore(DATASET_ASPECTS, {}, DatasetUrn) as second:
                assert first.exists(DatasetUrn.of("foo")) is True
                assert second.exists(DatasetUrn.of("foo")) is False


class TestReads:
    def test_absent_values(self, immutable):
        assert immutable.get(DatasetUrn.of("nope"), DatasetProperties) is None
        assert immutable.get(DatasetUrn.of("foo"), DatasetProperties, 1) is None
        assert immutable.get_latest_version(DatasetUrn.of("nope"), DatasetProperties) is None

    def test_list_urns(self, immutable):
        assert [u.entity_key for u in immutable.list_urns(DatasetProperties)] == ["bar", "foo"]

    def test_batch_get(self, immutable):
        key = AspectKey(DatasetProperties, DatasetUrn.of("bar"))
        assert immutable.batch_get([key]) == {key: DatasetProperties(description="Bar table", tags=("pii",))}

    def test_properties(self, immutable):
        assert immutable.aspect_union is DATASET_ASPECTS
        assert immutable.urn_class is DatasetUrn
        assert "DatasetAspect" in repr(immutable)


class TestClosedWriteSurface:
    def test_add_unsupported(self, immutable, stamp):
        with pytest.raises(UnsupportedOperationError) as exc_info:
            immutable.add(DatasetUrn.of("foo"), Status, lambda _: Status(), stamp)
        assert str(exc_info.value) == "Not supported by immutable aspect store"
        assert exc_info.value.operation == "add"
        assert immutable.get(DatasetUrn.of("foo"), Status) is None

    def test_new_numeric_id_unsupported(self, immutable):
        with pytest.raises(UnsupportedOperationError) as exc_info:
            immutable.new_numeric_id()
        assert str(exc_info.value) == "Not supported by immutable aspect store"

    def test_capabilities(self, immutable):
        assert isinstance(immutable, AspectReader)
        assert not isinstance(immutable, AspectWriter)
        assert not hasattr(immutable, "save")


class TestBootstrapFailure:
    def test_urn_of_wrong_class(self):
        snapshot = {CorpUserUrn.of("jdoe"): DatasetProperties()}
        with pytest.raises(ValidationError):
            ImmutableAspectStore(DATASET_ASPECTS, snapshot, DatasetUrn)

    def test_aspect_outside_union(self):
        with pytest.raises(ValidationError):
            ImmutableAspectStore(DATASET_ASPECTS, {DatasetUrn.of("foo"): {"removed": True}}, DatasetUrn)

    def test_failed_batch_is_rolled_back(self, snapshot):
        adapter = SQLiteAdapter.private_memory("rollback-check")
        keeper = SQLiteAdapter.private_memory("rollback-check")
        apply_schema_script(keeper.get_connection(), read_schema_script("00_metadata_aspect.sql"))
        keeper.get_connection().commit()
        bad = {**snapshot, CorpUserUrn.of("jdoe"): DatasetProperties()}

        with pytest.raises(ValidationError):
            ImmutableAspectStore.for_testing(DATASET_ASPECTS, bad, False, DatasetUrn, adapter=adapter)
        assert keeper.query("SELECT urn FROM metadata_aspect") == []
        keeper.disconnect()

    def test_missing_schema_script(self, snapshot):
        settings = MetaSpineSettings(schema_script="99_missing.sql")
        with pytest.raises(ResourceInitError):
            ImmutableAspectStore(DATASET_ASPECTS, snapshot, DatasetUrn, settings=settings)


class TestForTesting:
    def test_with_ddl(self, snapshot):
        store = ImmutableAspectStore.for_testing(DATASET_ASPECTS, snapshot, True, DatasetUrn)
        assert store.get(DatasetUrn.of("foo"), DatasetProperties) == DatasetProperties(description="Foo table")
        store.close()

    def test_without_ddl_skips_schema_script(self, snapshot):
        settings = MetaSpineSettings(schema_script="99_missing.sql")
        adapter = SQLiteAdapter(":memory:")
        apply_schema_script(adapter.get_connection(), read_schema_script("00_metadata_aspect.sql"))
        store = ImmutableAspectStore.for_testing(
            DATASET_ASPECTS, snapshot, False, DatasetUrn, adapter=adapter, settings=settings
        )
        assert store.exists(DatasetUrn.of("bar"))
        store.close()

    def test_without_ddl_on_empty_database_fails(self, snapshot):
        with pytest.raises(StorageError):
            ImmutableAspectStore.for_testing(DATASET_ASPECTS, snapshot, False, DatasetUrn)

    def test_with_ddl_missing_script(self, snapshot):
        settings = MetaSpineSettings(schema_script="99_missing.sql")
        with pytest.raises(ResourceInitError):
            ImmutableAspectStore.for_testing(DATASET_ASPECTS, snapshot, True, DatasetUrn, settings=settings)


class TestGenericUrnKeys:
    def test_snapshot_loaded_with_generic_urns(self):
        text = '{"urn:li:dataset:foo": {"description": "Foo table"}}'
        aspects = load_aspects(DatasetProperties, snapshot_stream(text))
        assert type(next(iter(aspects))) is Urn

        with ImmutableAspectStore(DATASET_ASPECTS, aspects, DatasetUrn) as store:
            assert store.get(DatasetUrn.of("foo"), DatasetProperties).description == "Foo table"
            assert store.get(Urn.from_string("urn:li:dataset:foo"), DatasetProperties).description == "Foo table"
            assert store.list_urns(DatasetProperties) == [DatasetUrn.of("foo")]

    def test_generic_urn_of_other_type_rejected(self):
        snapshot = {Urn.from_string("urn:li:corpuser:jdoe"): DatasetProperties()}
        with pytest.raises(ValidationError):
            ImmutableAspectStore(DATASET_ASPECTS, snapshot, DatasetUrn)


class TestEndToEnd:
    def test_snapshot_to_store_e2e(self):
        text = '{"urn:corp:dataset:foo": {"description": "Foo table", "tags": ["pii"]}}'
        aspects = load_aspects(DatasetProperties, snapshot_stream(text), DatasetUrn)
        with ImmutableAspectStore(DATASET_ASPECTS, aspects, DatasetUrn) as store:
            urn = DatasetUrn.from_string("urn:corp:dataset:foo")
            versioned = store.get_versioned(urn, DatasetProperties)
            assert versioned.aspect == DatasetProperties(description="Foo table", tags=("pii",))
            assert versioned.version == 0
            assert versioned.audit_stamp == BOOTSTRAP_AUDIT_STAMP
            assert store.list_urns(DatasetProperties) == [urn]
            with pytest.raises(UnsupportedOperationError):
                store.add(urn, DatasetProperties, lambda current: DatasetProperties(description="e"), BOOTSTRAP_AUDIT_STAMP)
            assert store.get(urn, DatasetProperties).description == "Foo table"
            with pytest.raises(UnsupportedOperationError):
                store.new_numeric_id()
