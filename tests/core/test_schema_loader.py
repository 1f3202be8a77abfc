"""Tests for SQL schema loading utilities."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from metaspine.core.errors import ResourceInitError
from metaspine.core.schema_loader import SCHEMA_DIR, _split_sql, apply_schema_script, read_schema_script


# ── read_schema_script tests ──────────────────────────────────────────


class TestReadSchemaScript:
    def test_reads_bundled_script(self):
        sql = read_schema_script("00_metadata_aspect.sql")
        assert "CREATE TABLE IF NOT EXISTS metadata_aspect" in sql
        assert (SCHEMA_DIR / "00_metadata_aspect.sql").exists()

    def test_missing_script(self, tmp_path: Path):
        with pytest.raises(ResourceInitError) as exc_info:
            read_schema_script("missing.sql", tmp_path)
        assert exc_info.value.resource == str(tmp_path / "missing.sql")

    def test_non_utf8_script(self, tmp_path: Path):
        (tmp_path / "bad.sql").write_bytes(b"CREATE TABLE \xff\xfe (id INTEGER);")
        with pytest.raises(ResourceInitError):
            read_schema_script("bad.sql", tmp_path)

    def test_directory_instead_of_file(self, tmp_path: Path):
        (tmp_path / "dir.sql").mkdir()
        with pytest.raises(ResourceInitError):
            read_schema_script("dir.sql", tmp_path)


# ── statement splitting / application ─────────────────────────────────


class TestApplySchema:
    def test_split_skips_comments_and_blank_lines(self):
        sql = "-- header\n\nCREATE TABLE a (id INTEGER);\n-- note\nCREATE TABLE b (\n  id INTEGER\n);\n"
        assert _split_sql(sql) == ["CREATE TABLE a (id INTEGER);", "CREATE TABLE b (\n  id INTEGER\n);"]

    def test_split_keeps_unterminated_tail(self):
        assert _split_sql("CREATE TABLE a (id INTEGER)") == ["CREATE TABLE a (id INTEGER)"]

    def test_bundled_script_creates_tables(self):
        conn = sqlite3.connect(":memory:")
        apply_schema_script(conn, read_schema_script("00_metadata_aspect.sql"))
        tables = [row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")]
        assert tables == ["metadata_aspect", "metadata_id"]
        conn.close()

    def test_script_is_idempotent(self):
        conn = sqlite3.connect(":memory:")
        sql = read_schema_script("00_metadata_aspect.sql")
        apply_schema_script(conn, sql)
        assert apply_schema_script(conn, sql) == 3
        conn.close()

    def test_custom_script_dir(self, tmp_path: Path):
        (tmp_path / "00_a.sql").write_text("CREATE TABLE a (id INTEGER);\nCREATE TABLE b (id INTEGER);")
        conn = sqlite3.connect(":memory:")
        assert apply_schema_script(conn, read_schema_script("00_a.sql", tmp_path)) == 2
        conn.close()
