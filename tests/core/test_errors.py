"""Tests for metaspine.core.errors module."""

import sqlite3

import pytest

from metaspine.core.errors import (
    ConcurrencyExhaustedError,
    ConfigError,
    DatabaseConnectionError,
    ErrorCategory,
    ErrorContext,
    MetaSpineError,
    ParseError,
    ResourceInitError,
    StorageError,
    UnsupportedOperationError,
    ValidationError,
    VersionConflictError,
    categorize_error,
    is_retryable,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.urn is None
        assert ctx.aspect is None
        assert ctx.metadata == {}

    def test_to_dict_includes_set_fields(self):
        """to_dict includes only non-None fields."""
        ctx = ErrorContext(urn="urn:li:dataset:foo", version=2, metadata={"key": "value"})
        d = ctx.to_dict()
        assert d["urn"] == "urn:li:dataset:foo"
        assert d["version"] == 2
        assert d["key"] == "value"
        assert "aspect" not in d


class TestMetaSpineError:
    """Test base MetaSpineError."""

    def test_defaults(self):
        error = MetaSpineError("Something broke")
        assert error.message == "Something broke"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert error.cause is None

    def test_cause_is_chained(self):
        cause = sqlite3.OperationalError("disk I/O error")
        error = StorageError("Insert failed", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "disk I/O error"

    def test_with_context_fluent(self):
        error = StorageError("Failed").with_context(urn="urn:li:dataset:foo", operation="write")
        assert error.context.urn == "urn:li:dataset:foo"
        assert error.context.metadata["operation"] == "write"

    def test_to_dict(self):
        d = ValidationError("bad", field="version", value=-5).to_dict()
        assert d["error_type"] == "ValidationError"
        assert d["category"] == "VALIDATION"
        assert d["field"] == "version"
        assert d["value"] == "-5"


class TestSubclasses:
    @pytest.mark.parametrize(
        ("error", "category", "retryable"),
        [
            (ParseError("x"), ErrorCategory.PARSE, False),
            (ValidationError("x"), ErrorCategory.VALIDATION, False),
            (ConfigError("x"), ErrorCategory.CONFIG, False),
            (ResourceInitError("x"), ErrorCategory.RESOURCE, False),
            (StorageError("x"), ErrorCategory.STORAGE, False),
            (DatabaseConnectionError("x"), ErrorCategory.DATABASE, True),
            (VersionConflictError("x"), ErrorCategory.CONCURRENCY, True),
            (ConcurrencyExhaustedError("x", attempts=4, max_retry=3), ErrorCategory.CONCURRENCY, False),
            (UnsupportedOperationError("add"), ErrorCategory.UNSUPPORTED, False),
        ],
    )
    def test_category_and_retryable(self, error, category, retryable):
        assert error.category == category
        assert error.retryable is retryable
        assert is_retryable(error) is retryable

    def test_version_conflict_is_storage_error(self):
        assert isinstance(VersionConflictError("x"), StorageError)

    def test_parse_error_fields(self):
        error = ParseError("bad value", key="urn:li:dataset:foo", observed_type="str")
        d = error.to_dict()
        assert d["key"] == "urn:li:dataset:foo"
        assert d["observed_type"] == "str"

    def test_resource_init_sets_context(self):
        error = ResourceInitError("missing", resource="00_metadata_aspect.sql")
        assert error.context.resource == "00_metadata_aspect.sql"

    def test_exhausted_carries_attempts(self):
        error = ConcurrencyExhaustedError("gave up", attempts=4, max_retry=3)
        assert error.attempts == 4
        assert error.to_dict()["max_retry"] == 3

    def test_unsupported_default_message(self):
        error = UnsupportedOperationError("new_numeric_id")
        assert error.operation == "new_numeric_id"
        assert "new_numeric_id" in str(error)


class TestHelpers:
    def test_plain_exceptions_not_retryable(self):
        assert is_retryable(RuntimeError("x")) is False

    def test_categorize(self):
        assert categorize_error(ParseError("x")) == ErrorCategory.PARSE
        assert categorize_error(ValueError("x")) == ErrorCategory.PARSE
        assert categorize_error(OSError("x")) == ErrorCategory.STORAGE
        assert categorize_error(RuntimeError("x")) == ErrorCategory.UNKNOWN
