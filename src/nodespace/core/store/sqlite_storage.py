"""SQLite-backed record storage for node stores."""

import json
import sqlite3
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

from loguru import logger

from nodespace.core.database.schema import migrate_schema
from nodespace.exceptions import StorageError


class SqliteStorage:
    """Keep one JSON record per node in the ``nodes`` table.

    Each write_batch() is one transaction. ``parent_id`` and ``updated_at`` are
    copied out of the record so the table can be inspected with plain SQL.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        migrate_schema(conn)

    @classmethod
    def open(cls, db_path: Path) -> "SqliteStorage":
        """Open (creating if needed) the database file at db_path."""
        db_path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Opening node database {}", db_path)
        return cls(sqlite3.connect(str(db_path)))

    def get(self, node_id: str) -> dict[str, Any] | None:
        try:
            row = self.conn.execute(
                "SELECT record FROM nodes WHERE id = ?", (node_id,)
            ).fetchone()
        except sqlite3.Error as e:
            msg = f"Failed to read node {node_id!r}: {e}"
            raise StorageError(msg) from e
        return json.loads(row[0]) if row else None

    def put(self, node_id: str, record: dict[str, Any]) -> None:
        self.write_batch([(node_id, record)])

    def delete(self, node_id: str) -> None:
        self.write_batch([], [node_id])

    def write_batch(
        self,
        puts: Sequence[tuple[str, dict[str, Any]]],
        deletes: Sequence[str] = (),
    ) -> None:
        """Write all records in one transaction; on failure nothing is kept."""
        rows = [
            (node_id, record.get("parent_id"), json.dumps(record), record["updated_at"])
            for node_id, record in puts
        ]
        try:
            with self.conn:
                self.conn.executemany(
                    """INSERT OR REPLACE INTO nodes (id, parent_id, record, updated_at)
                       VALUES (?, ?, ?, ?)""",
                    rows,
                )
                self.conn.executemany(
                    "DELETE FROM nodes WHERE id = ?", [(node_id,) for node_id in deletes]
                )
        except sqlite3.Error as e:
            ids = [node_id for node_id, _ in puts] + list(deletes)
            msg = f"Failed to write nodes {ids}: {e}"
            raise StorageError(msg) from e

    def items(self) -> Iterator[tuple[str, dict[str, Any]]]:
        try:
            rows = self.conn.execute("SELECT id, record FROM nodes ORDER BY rowid").fetchall()
        except sqlite3.Error as e:
            msg = f"Failed to list nodes: {e}"
            raise StorageError(msg) from e
        for node_id, raw in rows:
            yield node_id, json.loads(raw)

    def close(self) -> None:
        self.conn.close()
