"""
CLI: ``metaspine snapshot`` -- validate and query snapshot files.
"""

from __future__ import annotations

from pathlib import Path

import typer

from metaspine.cli.utils import console, fail, import_object, print_dict, print_json, print_table
from metaspine.core.aspects import AspectUnion
from metaspine.core.errors import ConfigError, MetaSpineError
from metaspine.core.urn import Urn

app = typer.Typer(no_args_is_help=True)

DEFAULT_UNION = "metaspine.domain.dataset:DATASET_ASPECTS"
DEFAULT_URN_CLASS = "metaspine.domain.dataset:DatasetUrn"

_UNION_OPTION = typer.Option(DEFAULT_UNION, "--union", "-u", help="Aspect union as module:attribute")
_URN_CLASS_OPTION = typer.Option(DEFAULT_URN_CLASS, "--urn-class", help="URN class as module:attribute")
_ASPECT_OPTION = typer.Option(..., "--aspect", "-a", help="Aspect kind or class name")


def _resolve(union_path: str, urn_class_path: str) -> tuple[AspectUnion, type[Urn]]:
    union = import_object(union_path)
    if not isinstance(union, AspectUnion):
        raise ConfigError(f"{union_path} is not an AspectUnion")
    urn_class = import_object(urn_class_path)
    if not (isinstance(urn_class, type) and issubclass(urn_class, Urn)):
        raise ConfigError(f"{urn_class_path} is not a Urn class")
    return union, urn_class


@app.command()
def validate(
    file: Path = typer.Argument(..., help="Snapshot JSON file"),
    aspect: str = _ASPECT_OPTION,
    union_path: str = _UNION_OPTION,
    urn_class_path: str = _URN_CLASS_OPTION,
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Decode a snapshot and list the URNs it holds."""
    from metaspine.store.snapshot import load_aspects_from_path

    try:
        union, urn_class = _resolve(union_path, urn_class_path)
        aspect_class = union.resolve(aspect)
        aspects = load_aspects_from_path(aspect_class, file, urn_class)
    except MetaSpineError as e:
        fail(e)
        return

    kind = aspect_class.aspect_name()
    if json_out:
        print_json({"aspect": kind, "count": len(aspects), "urns": [str(u) for u in sorted(aspects)]})
        return
    print_table([{"urn": str(urn), "aspect": kind} for urn in sorted(aspects)], title=f"{file.name}")
    console.print(f"\n[green]OK[/green] {len(aspects)} {kind} value(s)")


@app.command()
def get(
    file: Path = typer.Argument(..., help="Snapshot JSON file"),
    urn: str = typer.Argument(..., help="URN to look up"),
    aspect: str = _ASPECT_OPTION,
    union_path: str = _UNION_OPTION,
    urn_class_path: str = _URN_CLASS_OPTION,
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Load a snapshot into a read-only store and print one aspect."""
    from metaspine.store.immutable import ImmutableAspectStore
    from metaspine.store.snapshot import load_aspects_from_path

    try:
        union, urn_class = _resolve(union_path, urn_class_path)
        aspect_class = union.resolve(aspect)
        key = urn_class.from_string(urn)
        aspects = load_aspects_from_path(aspect_class, file, urn_class)
        with ImmutableAspectStore(union, aspects, urn_class) as store:
            versioned = store.get_versioned(key, aspect_class)
    except MetaSpineError as e:
        fail(e)
        return

    if versioned is None:
        console.print(f"[yellow]Not found[/yellow]: {aspect_class.aspect_name()} for {key}")
        raise typer.Exit(code=2)

    payload = {
        "urn": str(versioned.urn),
        "aspect": versioned.aspect_kind,
        "version": versioned.version,
        "value": versioned.aspect.model_dump(mode="json"),
        "audit_stamp": versioned.audit_stamp.to_dict(),
    }
    if json_out:
        print_json(payload)
        return
    print_dict(payload, title=versioned.aspect_kind)
