"""
Typed entity identifiers (URNs).

A URN is the primary key dimension of aspect storage. Its canonical string
form is ``urn:<namespace>:<entity_type>:<entity_key>``; equality, hashing
and ordering all go through that string, so two URNs that print the same
are the same key regardless of the Python class that parsed them.

The entity key is everything after the third colon. It may contain colons
and parenthesised tuples of nested URNs:

    urn:li:corpuser:jdoe
    urn:li:dataset:(urn:li:dataPlatform:hive,SampleTable,PROD)

Typed subclasses pin ``ENTITY_TYPE`` so that parsing through them rejects
identifiers of another entity kind:

    >>> class CorpUserUrn(Urn):
    ...     ENTITY_TYPE = "corpuser"
    >>> CorpUserUrn.from_string("urn:li:corpuser:jdoe").entity_key
    'jdoe'
    >>> CorpUserUrn.from_string("urn:li:dataset:foo")
    Traceback (most recent call last):
    ...
    ParseError: Expected entity type 'corpuser' but got 'dataset' in 'urn:li:dataset:foo'

Tags:
    urn, identifier, value-object, metaspine
"""

from __future__ import annotations

from functools import total_ordering
from typing import Any, ClassVar

from metaspine.core.errors import ParseError

URN_PREFIX = "urn"
DEFAULT_NAMESPACE = "li"


@total_ordering
class Urn:
    """Immutable entity identifier with a typed entity kind."""

    __slots__ = ("_namespace", "_entity_type", "_entity_key", "_canonical")

    # Subclasses set this to restrict the entity kind they accept.
    ENTITY_TYPE: ClassVar[str | None] = None

    def __init__(self, namespace: str, entity_type: str, entity_key: str):
        for label, part in (("namespace", namespace), ("entity type", entity_type)):
            if not part or ":" in part or part != part.strip():
                raise ParseError(f"Invalid URN {label}: {part!r}", key=part)
        if not entity_key or entity_key != entity_key.strip():
            raise ParseError(f"Invalid URN entity key: {entity_key!r}", key=entity_key)
        if not _balanced(entity_key):
            raise ParseError(f"Unbalanced parentheses in URN entity key: {entity_key!r}", key=entity_key)

        canonical = f"{URN_PREFIX}:{namespace}:{entity_type}:{entity_key}"
        expected = type(self).ENTITY_TYPE
        if expected is not None and entity_type != expected:
            raise ParseError(
                f"Expected entity type {expected!r} but got {entity_type!r} in {canonical!r}",
                key=canonical,
            )

        object.__setattr__(self, "_namespace", namespace)
        object.__setattr__(self, "_entity_type", entity_type)
        object.__setattr__(self, "_entity_key", entity_key)
        object.__setattr__(self, "_canonical", canonical)

    @classmethod
    def from_string(cls, value: str) -> Urn:
        """Parse a canonical URN string into an instance of ``cls``."""
        if not isinstance(value, str):
            raise ParseError(
                f"URN must be a string, got {type(value).__name__}",
                observed_type=type(value).__name__,
            )
        parts = value.split(":", 3)
        if len(parts) != 4 or parts[0] != URN_PREFIX:
            raise ParseError(
                f"Invalid URN {value!r}: expected 'urn:<namespace>:<entity_type>:<entity_key>'",
                key=value,
            )
        _, namespace, entity_type, entity_key = parts
        return cls(namespace, entity_type, entity_key)

    @classmethod
    def from_type_specific(
        cls,
        entity_type: str,
        entity_key: str,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> Urn:
        """Build a URN from its entity type and key, e.g. ``("corpuser", "jdoe")``."""
        return cls(namespace, entity_type, entity_key)

    @classmethod
    def of(cls, entity_key: str, namespace: str = DEFAULT_NAMESPACE) -> Urn:
        """Build a URN of this subclass's fixed entity type."""
        if cls.ENTITY_TYPE is None:
            raise TypeError(f"{cls.__name__} has no fixed ENTITY_TYPE; use from_type_specific()")
        return cls(namespace, cls.ENTITY_TYPE, entity_key)

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def entity_type(self) -> str:
        return self._entity_type

    @property
    def entity_key(self) -> str:
        return self._entity_key

    def key_parts(self) -> list[str]:
        """Split a tuple key ``(a,b,c)`` into its top-level parts.

        A plain key is returned as a one-element list.
        """
        key = self._entity_key
        if not (key.startswith("(") and key.endswith(")")):
            return [key]

        parts: list[str] = []
        depth = 0
        start = 1
        for i, char in enumerate(key[1:-1], start=1):
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
            elif char == "," and depth == 0:
                parts.append(key[start:i])
                start = i + 1
        parts.append(key[start:-1])
        return parts

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __str__(self) -> str:
        return self._canonical

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._canonical!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Urn):
            return NotImplemented
        return self._canonical == other._canonical

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Urn):
            return NotImplemented
        return self._canonical < other._canonical

    def __hash__(self) -> int:
        return hash(self._canonical)

    def __reduce__(self):
        return (type(self).from_string, (self._canonical,))


def _balanced(value: str) -> bool:
    depth = 0
    for char in value:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


__all__ = [
    "URN_PREFIX",
    "DEFAULT_NAMESPACE",
    "Urn",
]
