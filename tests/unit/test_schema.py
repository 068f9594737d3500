"""Tests for database schema."""

import sqlite3

import pytest

from nodespace.core.database.schema import (
    SCHEMA_VERSION,
    create_schema,
    get_metadata,
    get_schema_version,
    migrate_schema,
    set_metadata,
)


def test_create_schema_creates_nodes_and_metadata_tables() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    tables = {
        row[0]
        for row in conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ).fetchall()
    }
    assert {"nodes", "metadata"} <= tables


def test_create_schema_indexes_parent_id() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    indexes = {
        row[0]
        for row in conn.execute(
            "SELECT name FROM sqlite_master WHERE type='index' AND tbl_name='nodes'"
        ).fetchall()
    }
    assert "idx_nodes_parent" in indexes


def test_migrate_schema_on_empty_db_creates_schema_and_sets_version() -> None:
    conn = sqlite3.connect(":memory:")
    assert get_schema_version(conn) is None
    migrate_schema(conn)
    assert get_schema_version(conn) == SCHEMA_VERSION


def test_migrate_schema_is_idempotent() -> None:
    conn = sqlite3.connect(":memory:")
    migrate_schema(conn)
    migrate_schema(conn)
    assert get_schema_version(conn) == SCHEMA_VERSION


def test_migrate_schema_rejects_newer_database() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    set_metadata(conn, "schema_version", str(SCHEMA_VERSION + 1))
    with pytest.raises(RuntimeError, match="newer than supported"):
        migrate_schema(conn)


def test_metadata_round_trip() -> None:
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    assert get_metadata(conn, "seeded") is None
    set_metadata(conn, "seeded", "yes")
    set_metadata(conn, "seeded", "again")
    assert get_metadata(conn, "seeded") == "again"
