"""SQL schema loading utilities.

Reads the bundled schema scripts under ``metaspine/core/schema/`` and applies
them to a database connection. Stores read the script named by
``MetaSpineSettings.schema_script`` and execute it statement by statement.
"""

from __future__ import annotations

import logging
from pathlib import Path

from metaspine.core.errors import ResourceInitError
from metaspine.core.protocols import Connection

logger = logging.getLogger(__name__)

# Default schema directory
SCHEMA_DIR = Path(__file__).resolve().parent / "schema"


def _split_sql(sql: str) -> list[str]:
    """Split a SQL script into individual statements.

    Handles semicolon-terminated statements and skips comment lines.
    """
    statements = []
    current = []
    for line in sql.splitlines():
        stripped = line.strip()
        if stripped.startswith("--") or not stripped:
            continue
        current.append(line)
        if stripped.endswith(";"):
            stmt = "\n".join(current).strip()
            if stmt and stmt != ";":
                statements.append(stmt)
            current = []
    # Remaining unterminated statement
    if current:
        stmt = "\n".join(current).strip()
        if stmt:
            statements.append(stmt)
    return statements


def read_schema_script(name: str, schema_dir: Path | str | None = None) -> str:
    """Read one bundled schema script as UTF-8 text.

    Parameters
    ----------
    name
        File name of the script, e.g. ``00_metadata_aspect.sql``.
    schema_dir
        Directory to resolve ``name`` against. Defaults to core/schema/.

    Raises
    ------
    ResourceInitError
        If the script is missing, unreadable, or not valid UTF-8.
    """
    path = (Path(schema_dir) if schema_dir else SCHEMA_DIR) / name
    try:
        with path.open("r", encoding="utf-8") as f:
            sql = f.read()
    except FileNotFoundError as e:
        raise ResourceInitError(
            f"Schema script not found: {name}", resource=str(path), cause=e
        ) from e
    except (OSError, UnicodeDecodeError) as e:
        raise ResourceInitError(
            f"Schema script could not be read: {name}", resource=str(path), cause=e
        ) from e

    logger.debug("schema.read", extra={"file": name, "chars": len(sql)})
    return sql


def apply_schema_script(conn: Connection, sql: str) -> int:
    """Execute every statement of ``sql`` on ``conn``.

    Returns
    -------
    int
        Number of statements executed.
    """
    statements = _split_sql(sql)
    for statement in statements:
        conn.execute(statement)
    return len(statements)
