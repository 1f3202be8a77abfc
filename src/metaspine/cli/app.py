"""
Root Typer application for the metaspine CLI.
"""

from __future__ import annotations

import sys

import typer
from typer import Typer

from metaspine.core.logging import configure_logging
from metaspine.core.settings import get_settings

app = Typer(
    name="metaspine",
    help="metaspine: URN-keyed, versioned aspect storage.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from metaspine import __version__

        typer.echo(f"metaspine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """metaspine CLI: inspect and validate aspect snapshots."""
    configure_logging(
        level="DEBUG" if verbose else "WARNING",
        json_format=get_settings().json_logs,
        stream=sys.stderr,
    )


# ── Sub-command registration ─────────────────────────────────────────────

from metaspine.cli.snapshot import app as snapshot_app  # noqa: E402

app.add_typer(snapshot_app, name="snapshot", help="Snapshot validation and lookup.")
