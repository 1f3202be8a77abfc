"""
Aspects and aspect unions.

An aspect is one typed facet of an entity's metadata (properties, ownership,
status, ...). Aspects are frozen pydantic records: once built they never
change, and pydantic is the codec that turns them into the JSON payloads the
store persists.

An :class:`AspectUnion` is the closed set of aspect shapes an entity kind may
carry. Stores are bound to one union and reject anything outside it, and the
union's kind tag is part of every storage key::

    (urn, aspect kind, version) → payload

Examples:
    >>> class Status(Aspect):
    ...     ASPECT_NAME = "com.example.Status"
    ...     removed: bool = False
    >>> union = AspectUnion("DatasetAspect", [Status])
    >>> union.kind_of(Status)
    'com.example.Status'
    >>> union.decode(union.kind_of(Status), '{"removed": true}')
    Status(removed=True)

Tags:
    aspect, union, pydantic, codec, metaspine
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from types import MappingProxyType
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from metaspine.core.errors import ParseError, ValidationError


class Aspect(BaseModel):
    """Base class for aspect records.

    Subclasses may set ``ASPECT_NAME`` to pin the kind tag; otherwise the
    dotted path of the class is used.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ASPECT_NAME: ClassVar[str | None] = None

    @classmethod
    def aspect_name(cls) -> str:
        return cls.ASPECT_NAME or f"{cls.__module__}.{cls.__qualname__}"


class AspectUnion:
    """Closed set of aspect classes, indexed by kind tag."""

    def __init__(self, name: str, members: Iterable[type[Aspect]]):
        by_kind: dict[str, type[Aspect]] = {}
        for member in members:
            if not (isinstance(member, type) and issubclass(member, Aspect)):
                raise ValidationError(
                    f"Aspect union {name!r} member must be an Aspect subclass",
                    field="members",
                    value=member,
                )
            kind = member.aspect_name()
            if kind in by_kind and by_kind[kind] is not member:
                raise ValidationError(
                    f"Aspect union {name!r} has two members named {kind!r}",
                    field="members",
                    value=kind,
                )
            by_kind[kind] = member
        if not by_kind:
            raise ValidationError(f"Aspect union {name!r} has no members", field="members")

        self._name = name
        self._by_kind = MappingProxyType(by_kind)

    @property
    def name(self) -> str:
        return self._name

    @property
    def members(self) -> tuple[type[Aspect], ...]:
        return tuple(self._by_kind.values())

    @property
    def kinds(self) -> tuple[str, ...]:
        return tuple(self._by_kind)

    def __contains__(self, aspect_class: object) -> bool:
        if not (isinstance(aspect_class, type) and issubclass(aspect_class, Aspect)):
            return False
        return self._by_kind.get(aspect_class.aspect_name()) is aspect_class

    def __iter__(self) -> Iterator[type[Aspect]]:
        return iter(self._by_kind.values())

    def __len__(self) -> int:
        return len(self._by_kind)

    def __repr__(self) -> str:
        return f"AspectUnion({self._name!r}, {list(self._by_kind)})"

    def kind_of(self, aspect_class: type[Aspect]) -> str:
        """Kind tag of ``aspect_class``; rejects classes outside the union."""
        if aspect_class not in self:
            raise ValidationError(
                f"{getattr(aspect_class, '__name__', aspect_class)!s} is not a member of aspect union {self._name!r}",
                field="aspect_class",
                value=aspect_class,
            )
        return aspect_class.aspect_name()

    def class_for(self, kind: str) -> type[Aspect]:
        """Aspect class registered under ``kind``."""
        try:
            return self._by_kind[kind]
        except KeyError:
            raise ValidationError(
                f"Unknown aspect kind {kind!r} for aspect union {self._name!r}",
                field="aspect",
                value=kind,
            ) from None

    def resolve(self, name: str) -> type[Aspect]:
        """Find a member by kind tag or by bare class name (``DatasetProperties``)."""
        if name in self._by_kind:
            return self._by_kind[name]
        matches = [cls for cls in self._by_kind.values() if cls.__name__ == name]
        if len(matches) == 1:
            return matches[0]
        raise ValidationError(
            f"No unique aspect named {name!r} in aspect union {self._name!r}",
            field="aspect",
            value=name,
        )

    def ensure(self, aspect: Any) -> str:
        """Check that ``aspect`` is an instance of a member; return its kind."""
        kind = self.kind_of(type(aspect)) if isinstance(aspect, Aspect) else None
        if kind is None:
            raise ValidationError(
                f"Expected an aspect of union {self._name!r}, got {type(aspect).__name__}",
                field="aspect",
                value=aspect,
            )
        return kind

    def encode(self, aspect: Aspect) -> str:
        """Serialize a member instance to its JSON payload."""
        self.ensure(aspect)
        return aspect.model_dump_json()

    def decode(self, kind: str, payload: str) -> Aspect:
        """Deserialize a stored JSON payload of the given kind."""
        aspect_class = self.class_for(kind)
        try:
            return aspect_class.model_validate_json(payload)
        except PydanticValidationError as e:
            raise ParseError(
                f"Stored payload does not decode as {kind}",
                key=kind,
                cause=e,
            ) from e


__all__ = [
    "Aspect",
    "AspectUnion",
]
