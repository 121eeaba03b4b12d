"""SQLite-backed store holding one index per (project, language).

Each stored record is the JSON document produced by ``Index.to_dict()``, so
the schema version travels with the data. A ``put`` replaces the record for
its key inside a single transaction: readers see either the previous index or
the new one, never a partial write.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from doctree.cancel import CancelToken, check
from doctree.errors import IndexIOError, IndexNotFoundError, SchemaError, SchemaVersionError
from doctree.schema import LATEST_VERSION, Index

logger = logging.getLogger(__name__)

STORE_VERSION = "1"

SCHEMA_SQL = """
-- doctree index store
-- Every row is derived from a source tree and can be regenerated by reindexing.

PRAGMA journal_mode = WAL;

CREATE TABLE IF NOT EXISTS indexes (
    project        TEXT NOT NULL,
    language       TEXT NOT NULL,
    schema_version INTEGER NOT NULL,
    num_files      INTEGER NOT NULL DEFAULT 0,
    num_bytes      INTEGER NOT NULL DEFAULT 0,
    payload        TEXT NOT NULL,
    indexed_at     TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (project, language)
);

CREATE INDEX IF NOT EXISTS idx_indexes_project ON indexes(project);

-- Metadata table for store versioning and cache invalidation
CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT
);

INSERT OR IGNORE INTO meta (key, value) VALUES ('store_version', '1');
INSERT OR IGNORE INTO meta (key, value) VALUES ('generation', '0');
INSERT OR IGNORE INTO meta (key, value) VALUES ('created_at', datetime('now'));
"""


@dataclass
class IndexInfo:
    """Metadata about one stored index, without loading its payload."""

    project: str
    language: str
    schema_version: int
    num_files: int
    num_bytes: int
    indexed_at: datetime


def _check_key(project: str, language: str) -> None:
    if not project:
        raise ValueError("Project name must not be empty")
    if not language:
        raise ValueError("Language must not be empty")


class IndexStore:
    """
    Durable (project, language) -> Index store.

    Thread Safety:
        Writes are serialized by a lock and run in one transaction each.
        Reads use thread-local connections and may run concurrently with
        writes; WAL journaling keeps them on the last committed state.
    """

    def __init__(self, db_path: Path, timeout: float = 30.0):
        """
        Initialize the store.

        Args:
            db_path: Path to the SQLite database file
            timeout: Seconds to wait for another process holding the write lock
        """
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._local = threading.local()
        self._write_lock = threading.Lock()
        self._initialized = False
        self._init_lock = threading.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "conn", None) is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._local.conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
            self._local.conn.row_factory = sqlite3.Row
        return self._local.conn

    @contextmanager
    def _read_cursor(self, what: str) -> Iterator[sqlite3.Cursor]:
        """Get a cursor for read operations, translating storage failures."""
        self._ensure_initialized()
        try:
            conn = self._get_connection()
            cursor = conn.cursor()
            try:
                yield cursor
            finally:
                cursor.close()
        except (sqlite3.Error, OSError) as e:
            raise IndexIOError(f"Failed to {what} in {self.db_path}: {e}", str(self.db_path)) from e

    @contextmanager
    def _write_cursor(self, what: str) -> Iterator[sqlite3.Cursor]:
        """Get a cursor for write operations with locking, one transaction per use."""
        self._ensure_initialized()
        with self._write_lock:
            try:
                conn = self._get_connection()
                cursor = conn.cursor()
                try:
                    cursor.execute("BEGIN IMMEDIATE")
                    yield cursor
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise
                finally:
                    cursor.close()
            except (sqlite3.Error, OSError) as e:
                raise IndexIOError(f"Failed to {what} in {self.db_path}: {e}", str(self.db_path)) from e

    def initialize(self) -> None:
        """Create the database schema if needed."""
        with self._init_lock:
            if self._initialized:
                return
            try:
                conn = self._get_connection()
                conn.executescript(SCHEMA_SQL)
                conn.commit()
            except (sqlite3.Error, OSError) as e:
                raise IndexIOError(
                    f"Failed to initialize index store {self.db_path}: {e}", str(self.db_path)
                ) from e
            self._initialized = True

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.initialize()

    def close(self) -> None:
        """Close this thread's database connection."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    def __enter__(self) -> IndexStore:
        self.initialize()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Index operations

    def put(self, project: str, language: str, index: Index, ctx: CancelToken | None = None) -> None:
        """
        Store ``index`` under (project, language), replacing any previous one.

        Raises:
            SchemaError: if the index violates structural invariants.
            IndexIOError: if the database write fails.
            OperationCancelled: if ``ctx`` fired before the write started.
        """
        _check_key(project, language)
        if index.language != language:
            raise SchemaError(
                f"Index language '{index.language}' does not match key language '{language}'"
            )
        index.validate()
        payload = json.dumps(index.to_dict(), ensure_ascii=False, separators=(",", ":"))
        check(ctx)

        with self._write_cursor(f"store {project}/{language}") as cursor:
            cursor.execute(
                """INSERT INTO indexes
                (project, language, schema_version, num_files, num_bytes, payload)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(project, language) DO UPDATE SET
                    schema_version = excluded.schema_version,
                    num_files = excluded.num_files,
                    num_bytes = excluded.num_bytes,
                    payload = excluded.payload,
                    indexed_at = datetime('now')
                """,
                (
                    project,
                    language,
                    index.schema_version,
                    index.num_files,
                    index.num_bytes,
                    payload,
                ),
            )
            self._bump_generation(cursor)
        logger.debug("Stored %s/%s (%d bytes of JSON)", project, language, len(payload))

    def get(self, project: str, language: str, ctx: CancelToken | None = None) -> Index:
        """
        Load the index stored under (project, language).

        Raises:
            IndexNotFoundError: if nothing is stored for the key.
            SchemaVersionError: if the record was written by a newer schema.
            IndexIOError: if the database read fails or the record is corrupt.
        """
        _check_key(project, language)
        check(ctx)
        with self._read_cursor(f"load {project}/{language}") as cursor:
            cursor.execute(
                "SELECT schema_version, payload FROM indexes WHERE project = ? AND language = ?",
                (project, language),
            )
            row = cursor.fetchone()
        if row is None:
            raise IndexNotFoundError(project, language)

        key = f"{project}/{language}"
        if row["schema_version"] > LATEST_VERSION:
            raise SchemaVersionError(row["schema_version"], LATEST_VERSION, key)
        try:
            data = json.loads(row["payload"])
        except json.JSONDecodeError as e:
            raise IndexIOError(f"Corrupt index record for {key}: {e}", key) from e
        try:
            return Index.from_dict(data)
        except SchemaVersionError as e:
            raise SchemaVersionError(e.found, e.supported, key) from e
        except SchemaError as e:
            raise IndexIOError(f"Corrupt index record for {key}: {e}", key) from e

    def exists(self, project: str, language: str) -> bool:
        """Whether an index is stored for (project, language)."""
        with self._read_cursor(f"look up {project}/{language}") as cursor:
            cursor.execute(
                "SELECT 1 FROM indexes WHERE project = ? AND language = ?",
                (project, language),
            )
            return cursor.fetchone() is not None

    def delete(self, project: str, language: str) -> bool:
        """Delete the index for (project, language). Returns whether one existed."""
        with self._write_cursor(f"delete {project}/{language}") as cursor:
            cursor.execute(
                "DELETE FROM indexes WHERE project = ? AND language = ?",
                (project, language),
            )
            deleted = cursor.rowcount > 0
            if deleted:
                self._bump_generation(cursor)
        return deleted

    def list(self) -> list[tuple[str, str]]:
        """All stored (project, language) keys, ordered by project then language."""
        with self._read_cursor("list indexes") as cursor:
            cursor.execute("SELECT project, language FROM indexes ORDER BY project, language")
            return [(row["project"], row["language"]) for row in cursor.fetchall()]

    def list_info(self, project: str | None = None) -> list[IndexInfo]:
        """Metadata for stored indexes, optionally for one project."""
        query = """SELECT project, language, schema_version, num_files, num_bytes, indexed_at
            FROM indexes"""
        params: list = []
        if project:
            query += " WHERE project = ?"
            params.append(project)
        query += " ORDER BY project, language"

        with self._read_cursor("list indexes") as cursor:
            cursor.execute(query, params)
            return [
                IndexInfo(
                    project=row["project"],
                    language=row["language"],
                    schema_version=row["schema_version"],
                    num_files=row["num_files"],
                    num_bytes=row["num_bytes"],
                    indexed_at=datetime.fromisoformat(row["indexed_at"]),
                )
                for row in cursor.fetchall()
            ]

    def projects(self) -> list[str]:
        """Names of all projects with at least one stored index."""
        with self._read_cursor("list projects") as cursor:
            cursor.execute("SELECT DISTINCT project FROM indexes ORDER BY project")
            return [row["project"] for row in cursor.fetchall()]

    def languages(self, project: str) -> list[str]:
        """Languages stored for one project."""
        with self._read_cursor(f"list languages of {project}") as cursor:
            cursor.execute(
                "SELECT language FROM indexes WHERE project = ? ORDER BY language",
                (project,),
            )
            return [row["language"] for row in cursor.fetchall()]

    def generation(self) -> int:
        """Counter bumped by every put/delete, used to invalidate derived caches."""
        with self._read_cursor("read store generation") as cursor:
            cursor.execute("SELECT value FROM meta WHERE key = 'generation'")
            row = cursor.fetchone()
            return int(row["value"]) if row else 0

    @staticmethod
    def _bump_generation(cursor: sqlite3.Cursor) -> None:
        cursor.execute(
            "UPDATE meta SET value = CAST(CAST(value AS INTEGER) + 1 AS TEXT) WHERE key = 'generation'"
        )
