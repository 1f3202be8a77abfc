"""Settings for metaspine stores and the CLI.

Configuration is explicit, validated, and environment-driven. Every field
can be overridden with a ``METASPINE_`` environment variable or a ``.env``
file.

Examples:
    >>> from metaspine.core.settings import MetaSpineSettings
    >>> settings = MetaSpineSettings(max_transaction_retry=5)
    >>> settings.schema_script
    '00_metadata_aspect.sql'

Tags:
    settings, configuration, pydantic, environment, metaspine
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MetaSpineSettings(BaseSettings):
    """Settings shared by the aspect stores and the CLI.

    Fields
    ──────
    database_path          : SQLite path for mutable stores (``:memory:`` by default)
    schema_script          : Bundled schema script executed by production-form stores
    max_transaction_retry  : Default retry budget for ``add``
    sqlite_timeout         : Seconds SQLite waits on a locked database
    log_level              : Structlog log level
    json_logs              : JSON log output (None = auto-detect from tty)
    """

    model_config = SettingsConfigDict(
        env_prefix="METASPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: str = ":memory:"
    schema_script: str = "00_metadata_aspect.sql"
    max_transaction_retry: int = Field(default=3, ge=0)
    sqlite_timeout: float = Field(default=5.0, gt=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None


@lru_cache(maxsize=1)
def get_settings() -> MetaSpineSettings:
    """Process-wide settings, read once from the environment."""
    return MetaSpineSettings()
