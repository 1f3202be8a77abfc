"""
Structured error types for metaspine.

Provides a typed hierarchy of errors with metadata for retry decisions,
error categorization and root cause analysis through error chaining.

Instead of generic exceptions that lose context, MetaSpineError and its
subclasses carry:
- **Category:** What kind of error (parse, storage, concurrency, etc.)
- **Retryable:** Whether the operation can be retried automatically
- **Context:** Structured metadata (urn, aspect, version, resource)
- **Cause:** Chained underlying exception for root cause analysis

Manifesto:
    - **Typed Error Hierarchy:** Different error types for different failure modes
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       MetaSpineError                             │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ParseError          ValidationError     ConfigError            │
        │  (PARSE)             (VALIDATION)        (CONFIG)               │
        │                                                                  │
        │  StorageError        ConcurrencyExhaustedError                  │
        │  (STORAGE)           (CONCURRENCY)                              │
        │       │                                                          │
        │  VersionConflictError (CONCURRENCY, retryable)                  │
        │  DatabaseConnectionError (DATABASE, retryable)                  │
        │                                                                  │
        │  UnsupportedOperationError    ResourceInitError                 │
        │  (UNSUPPORTED)                (RESOURCE)                        │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    Chaining a driver error:

    >>> try:
    ...     conn.execute("INSERT ...")
    ... except sqlite3.Error as e:
    ...     raise StorageError("Insert failed", cause=e) from e
    Traceback (most recent call last):
    ...
    StorageError: Insert failed

    Adding context:

    >>> error = ParseError("Bad urn").with_context(urn="urn:li:corpuser:x")
    >>> error.context.urn
    'urn:li:corpuser:x'

Guardrails:
    ❌ DON'T: Use generic Exception - loses all metadata
    ✅ DO: Use the appropriate MetaSpineError subclass

    ❌ DON'T: Retry on StorageError
    ✅ DO: Retry only on VersionConflictError (``add`` does this for you)

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context, metaspine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        DATABASE: Connection to the backing store
        STORAGE: Store I/O or transactional failure
        CONCURRENCY: Version conflicts between writers
        PARSE: Malformed URN or snapshot structure
        VALIDATION: Value outside the accepted shape (union, version range)
        RESOURCE: Missing or unreadable bundled resource / input stream
        UNSUPPORTED: Operation not offered by this store
        CONFIG: Missing config, invalid settings
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    # Infrastructure errors
    DATABASE = "DATABASE"
    STORAGE = "STORAGE"
    CONCURRENCY = "CONCURRENCY"

    # Data errors
    PARSE = "PARSE"
    VALIDATION = "VALIDATION"

    # Setup errors (never retryable)
    RESOURCE = "RESOURCE"
    CONFIG = "CONFIG"

    # Contract errors
    UNSUPPORTED = "UNSUPPORTED"

    # Internal errors
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        urn: Canonical URN string the operation addressed
        aspect: Aspect kind (dotted name) the operation addressed
        version: Version number involved, if any
        resource: Resource name or path (schema script, snapshot file)
        metadata: Additional key-value pairs
    """

    urn: str | None = None
    aspect: str | None = None
    version: int | None = None
    resource: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["urn", "aspect", "version", "resource"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class MetaSpineError(Exception):
    """
    Base exception for all metaspine errors.

    Subclasses set ``default_category`` and ``default_retryable`` class
    attributes to provide defaults for their domain.

    Examples:
        >>> error = MetaSpineError("Something broke")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
    """

    # Default category for this error type
    default_category: ErrorCategory = ErrorCategory.INTERNAL
    # Default retryable setting
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        # Chain the cause if provided
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> MetaSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StorageError("Failed").with_context(
                urn=str(urn),
                aspect=kind,
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# DATA ERRORS
# =============================================================================


class ParseError(MetaSpineError):
    """
    Malformed URN string or malformed snapshot structure.

    ``key`` names the offending snapshot key (or URN string) and
    ``observed_type`` the shape actually seen, when relevant.
    """

    default_category = ErrorCategory.PARSE
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        observed_type: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.key = key
        self.observed_type = observed_type

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.key is not None:
            result["key"] = self.key
        if self.observed_type is not None:
            result["observed_type"] = self.observed_type
        return result


class ValidationError(MetaSpineError):
    """
    Value outside the accepted shape.

    Never retryable - the caller must fix the input.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


# =============================================================================
# CONFIGURATION / RESOURCE ERRORS
# =============================================================================


class ConfigError(MetaSpineError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class ResourceInitError(MetaSpineError):
    """A required resource (schema script, snapshot file) is missing or unreadable."""

    default_category = ErrorCategory.RESOURCE
    default_retryable = False

    def __init__(self, message: str, *, resource: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.resource = resource
        if resource is not None:
            self.context.resource = resource


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StorageError(MetaSpineError):
    """Backing store I/O or transactional failure."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


class DatabaseConnectionError(StorageError):
    """Failed to open the backing store connection."""

    default_category = ErrorCategory.DATABASE
    default_retryable = True


class VersionConflictError(StorageError):
    """
    Another writer committed the target version first.

    Raised by the store's conditional write; ``add`` catches it and retries.
    """

    default_category = ErrorCategory.CONCURRENCY
    default_retryable = True


class ConcurrencyExhaustedError(MetaSpineError):
    """``add`` ran out of retries without a successful commit."""

    default_category = ErrorCategory.CONCURRENCY
    default_retryable = False

    def __init__(self, message: str, *, attempts: int, max_retry: int, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.attempts = attempts
        self.max_retry = max_retry

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["attempts"] = self.attempts
        result["max_retry"] = self.max_retry
        return result


# =============================================================================
# CONTRACT ERRORS
# =============================================================================


class UnsupportedOperationError(MetaSpineError):
    """The store does not offer this operation (e.g. writes on a read-only store)."""

    default_category = ErrorCategory.UNSUPPORTED
    default_retryable = False

    def __init__(self, operation: str, message: str | None = None, **kwargs: Any):
        self.operation = operation
        super().__init__(message or f"{operation} is not supported by this store", **kwargs)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, MetaSpineError):
        return error.retryable
    return False


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category for any exception."""
    if isinstance(error, MetaSpineError):
        return error.category
    if isinstance(error, ValueError):
        return ErrorCategory.PARSE
    if isinstance(error, OSError):
        return ErrorCategory.STORAGE
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "MetaSpineError",
    "ParseError",
    "ValidationError",
    "ConfigError",
    "ResourceInitError",
    "StorageError",
    "DatabaseConnectionError",
    "VersionConflictError",
    "ConcurrencyExhaustedError",
    "UnsupportedOperationError",
    "is_retryable",
    "categorize_error",
]
