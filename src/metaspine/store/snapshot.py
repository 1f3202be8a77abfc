"""Snapshot loading: JSON mapping of URN string → aspect record.

A snapshot file is a flat JSON object::

    {
      "urn:li:dataset:foo": {"description": "Foo table"},
      "urn:li:dataset:bar": {"description": "Bar table", "tags": ["pii"]}
    }

:func:`load_aspects` decodes it into ``{Urn: aspect}`` for one aspect class,
ready to hand to :class:`~metaspine.store.immutable.ImmutableAspectStore`.
The stream is closed on every exit path.
"""

from __future__ import annotations

import io
import json
from collections.abc import Mapping
from pathlib import Path
from typing import IO, Any, TypeVar

from pydantic import ValidationError as PydanticValidationError

from metaspine.core.aspects import Aspect
from metaspine.core.errors import ParseError, ResourceInitError
from metaspine.core.logging import get_logger
from metaspine.core.urn import Urn

logger = get_logger(__name__)

A = TypeVar("A", bound=Aspect)


def _read_text(stream: IO[Any]) -> str:
    try:
        data = stream.read()
    except OSError as e:
        raise ResourceInitError(f"Snapshot stream could not be read: {e}", cause=e) from e
    if isinstance(data, bytes):
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError("Snapshot is not valid UTF-8", cause=e) from e
    return data


def load_aspects(
    aspect_class: type[A],
    stream: IO[Any],
    urn_class: type[Urn] = Urn,
) -> dict[Urn, A]:
    """
    Decode a snapshot stream into a mapping of URN to ``aspect_class``.

    Args:
        aspect_class: Aspect record type of every value
        stream: Binary or text stream holding a JSON object; always closed
        urn_class: URN class used to parse the keys

    Raises:
        ResourceInitError: the stream cannot be read
        ParseError: malformed JSON, a non-object top level, a malformed key,
            a value that is not an object, or a value that does not decode
            as ``aspect_class``
    """
    with stream:
        text = _read_text(stream)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Snapshot is not valid JSON: {e.msg}", cause=e) from e

    if not isinstance(data, dict):
        raise ParseError(
            f"Snapshot must be a JSON object, got {type(data).__name__}",
            observed_type=type(data).__name__,
        )

    aspects: dict[Urn, A] = {}
    for key, value in data.items():
        urn = urn_class.from_string(key)

        if not isinstance(value, dict):
            raise ParseError(
                f"Failed to parse value for urn `{key}`. Expected an object but got `{type(value).__name__}`.",
                key=key,
                observed_type=type(value).__name__,
            ).with_context(urn=key)

        try:
            aspects[urn] = aspect_class.model_validate(value)
        except PydanticValidationError as e:
            raise ParseError(
                f"Failed to decode value for urn `{key}` as {aspect_class.__name__}",
                key=key,
                observed_type="object",
                cause=e,
            ).with_context(urn=key, aspect=aspect_class.aspect_name()) from e

    logger.debug("snapshot.loaded", aspect=aspect_class.aspect_name(), count=len(aspects))
    return aspects


def load_aspects_from_path(
    aspect_class: type[A],
    path: str | Path,
    urn_class: type[Urn] = Urn,
) -> dict[Urn, A]:
    """Open ``path`` and decode it with :func:`load_aspects`."""
    try:
        stream = Path(path).open("rb")
    except OSError as e:
        raise ResourceInitError(f"Cannot open snapshot {path}: {e}", resource=str(path), cause=e) from e
    return load_aspects(aspect_class, stream, urn_class)


def dump_aspects(aspects: Mapping[Urn, Aspect], stream: IO[str] | None = None) -> str:
    """Encode ``aspects`` as a snapshot (sorted keys, UTF-8 safe).

    Writes to ``stream`` when given and returns the encoded text.
    """
    data = {str(urn): aspect.model_dump(mode="json") for urn, aspect in sorted(aspects.items())}
    text = json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)
    if stream is not None:
        stream.write(text)
    return text


def snapshot_stream(text: str) -> IO[bytes]:
    """Wrap snapshot text in a binary stream."""
    return io.BytesIO(text.encode("utf-8"))


__all__ = [
    "load_aspects",
    "load_aspects_from_path",
    "dump_aspects",
    "snapshot_stream",
]
