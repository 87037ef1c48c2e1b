# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""SQLite-based symbol store for fast workspace symbol search.

Stores flattened document symbols per file in SQLite. The store is a derived
cache of what the symbol provider reports, never a source of truth, which
allows a few simplifications:

- WAL journal with synchronous=NORMAL (a crash may lose the last writes)
- No migrations: a schema version mismatch drops the database and starts over
- A corrupted database is deleted and rebuilt by the caller

Usage:
    store = SymbolStore("/path/to/workspace/.symbol_window/symbols.db")
    store.open()

    store.insert_file_and_symbols("/path/to/workspace/app.py", mtime, symbols)

    # Every token must match the name or the container name
    results = store.search("user controller", limit=100, offset=0)

    store.close()
"""

import logging
import os
import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from symbol_window.codebase.flattener import ExtractedSymbol
from symbol_window.lsp.types import Range

logger = logging.getLogger(__name__)

# Bump whenever the table layout changes; older databases are discarded
SCHEMA_VERSION = 1

# Rows per multi-row INSERT; 50 rows x 13 columns stays below SQLite's
# historical 999 bound variable limit
SYMBOL_CHUNK_SIZE = 50

LIKE_ESCAPE = "\\"
DATABASE_FILE_SUFFIXES = ("", "-wal", "-shm", "-journal")

_CORRUPTION_MARKERS = (
    "malformed",
    "not a database",
    "corrupt",
    "disk image",
)

_SYMBOL_COLUMNS = (
    "file_id",
    "name",
    "detail",
    "kind",
    "range_start_line",
    "range_start_char",
    "range_end_line",
    "range_end_char",
    "selection_range_start_line",
    "selection_range_start_char",
    "selection_range_end_line",
    "selection_range_end_char",
    "container_name",
)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS files (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        path TEXT NOT NULL UNIQUE,
        mtime INTEGER NOT NULL,
        indexed_at INTEGER NOT NULL
    );

    CREATE TABLE IF NOT EXISTS symbols (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        file_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        detail TEXT NOT NULL DEFAULT '',
        kind INTEGER NOT NULL,
        range_start_line INTEGER NOT NULL,
        range_start_char INTEGER NOT NULL,
        range_end_line INTEGER NOT NULL,
        range_end_char INTEGER NOT NULL,
        selection_range_start_line INTEGER NOT NULL,
        selection_range_start_char INTEGER NOT NULL,
        selection_range_end_line INTEGER NOT NULL,
        selection_range_end_char INTEGER NOT NULL,
        container_name TEXT NOT NULL DEFAULT '',
        FOREIGN KEY (file_id) REFERENCES files(id) ON DELETE CASCADE
    );

    -- Indexes for fast queries
    CREATE INDEX IF NOT EXISTS idx_symbols_name ON symbols(name);
    CREATE INDEX IF NOT EXISTS idx_symbols_container ON symbols(container_name);
    CREATE INDEX IF NOT EXISTS idx_symbols_file ON symbols(file_id);
"""


class StoreError(Exception):
    """A symbol store operation failed."""


class StoreCorruptedError(StoreError):
    """The database file is damaged and must be rebuilt."""


@dataclass(frozen=True)
class FileEntry:
    """An indexed file."""

    id: int
    path: str
    mtime: int  # ms since epoch, as observed when indexed
    indexed_at: int  # ms since epoch


@dataclass(frozen=True)
class SymbolEntry:
    """A stored symbol, optionally joined with its file path."""

    id: int
    file_id: int
    name: str
    detail: str
    kind: int
    range: Range
    selection_range: Range
    container_name: str
    file_path: Optional[str] = None


def now_ms() -> int:
    return int(time.time() * 1000)


def escape_like(token: str) -> str:
    """Escape LIKE wildcards so the token matches literally."""
    return (
        token.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def _is_corruption(error: BaseException) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _CORRUPTION_MARKERS)


def _row_to_file(row: sqlite3.Row) -> FileEntry:
    return FileEntry(
        id=row["id"],
        path=row["path"],
        mtime=row["mtime"],
        indexed_at=row["indexed_at"],
    )


def _row_to_symbol(row: sqlite3.Row) -> SymbolEntry:
    keys = row.keys()
    return SymbolEntry(
        id=row["id"],
        file_id=row["file_id"],
        name=row["name"],
        detail=row["detail"],
        kind=row["kind"],
        range=Range.from_tuple(
            (
                row["range_start_line"],
                row["range_start_char"],
                row["range_end_line"],
                row["range_end_char"],
            )
        ),
        selection_range=Range.from_tuple(
            (
                row["selection_range_start_line"],
                row["selection_range_start_char"],
                row["selection_range_end_line"],
                row["selection_range_end_char"],
            )
        ),
        container_name=row["container_name"],
        file_path=row["file_path"] if "file_path" in keys else None,
    )


def _symbol_params(file_id: int, symbol: ExtractedSymbol) -> Tuple:
    return (
        file_id,
        symbol.name,
        symbol.detail or "",
        int(symbol.kind),
        *symbol.range.as_tuple(),
        *symbol.selection_range.as_tuple(),
        symbol.container_name or "",
    )


class SymbolStore:
    """SQLite storage for files and their flattened symbols.

    All access is serialized through a re-entrant lock, so the store can be
    shared between the event loop and helper threads.
    """

    def __init__(self, db_path: Union[str, Path]):
        """Initialize symbol store.

        Args:
            db_path: Location of the SQLite database file
        """
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Open the database, discarding it when the schema version differs.

        Raises:
            StoreError: If the database cannot be created at all
        """
        with self._lock:
            if self._conn is not None:
                return

            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StoreError(f"Cannot create {self.db_path.parent}: {e}") from e
            existed = self.db_path.exists()

            version: Optional[int]
            try:
                self._conn = self._connect()
                version = self._conn.execute("PRAGMA user_version").fetchone()[0]
            except sqlite3.DatabaseError as e:
                logger.warning(f"Symbol database {self.db_path} is unreadable ({e}), rebuilding")
                version = None

            if version != SCHEMA_VERSION:
                if existed:
                    logger.info(
                        f"Schema version mismatch (DB: {version}, App: {SCHEMA_VERSION}). "
                        "Rebuilding symbol database."
                    )
                self._close_connection()
                try:
                    self.delete_database_files(self.db_path)
                    self._conn = self._connect()
                    self._conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
                except (OSError, sqlite3.Error) as e:
                    self._close_connection()
                    raise StoreError(f"Cannot create symbol database {self.db_path}: {e}") from e

            with self._guard("create schema"):
                self._conn.executescript(_SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False, isolation_level=None)
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def close(self) -> None:
        """Checkpoint the WAL into the main file and close."""
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            except sqlite3.Error as e:
                logger.warning(f"WAL checkpoint failed on close: {e}")
            self._close_connection()

    def recreate(self) -> None:
        """Drop the database file (and WAL artifacts) and open a fresh one."""
        with self._lock:
            self._close_connection()
            try:
                self.delete_database_files(self.db_path)
            except OSError as e:
                raise StoreError(f"Cannot delete {self.db_path}: {e}") from e
            logger.info(f"Recreating symbol database at {self.db_path}")
            self.open()

    def _close_connection(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
        except sqlite3.Error as e:
            logger.debug(f"Error closing symbol database: {e}")
        self._conn = None

    @staticmethod
    def database_files(db_path: Union[str, Path]) -> List[str]:
        """The database file and the companions SQLite writes next to it."""
        base = str(db_path)
        return [base + suffix for suffix in DATABASE_FILE_SUFFIXES]

    @staticmethod
    def delete_database_files(db_path: Union[str, Path]) -> None:
        """Remove the database and its -wal/-shm companions if present."""
        for candidate in SymbolStore.database_files(db_path):
            try:
                os.remove(candidate)
            except FileNotFoundError:
                pass

    def _require(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("Symbol database is not open")
        return self._conn

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        """Translate sqlite3 errors into StoreError / StoreCorruptedError."""
        try:
            yield
        except sqlite3.Error as e:
            if _is_corruption(e):
                raise StoreCorruptedError(f"{operation}: {e}") from e
            raise StoreError(f"{operation}: {e}") from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_file_and_symbols(
        self, path: str, mtime: int, symbols: Sequence[ExtractedSymbol]
    ) -> int:
        """Replace a file's record and all of its symbols atomically.

        The previous file row is deleted first (cascading to its symbols),
        then the file and its symbols are inserted. On any error the whole
        transaction is rolled back and the previous state is kept.

        Returns:
            The id of the new file row
        """
        with self._lock, self._guard(f"index {path}"):
            conn = self._require()
            conn.execute("BEGIN")
            try:
                conn.execute("DELETE FROM files WHERE path = ?", (path,))
                cursor = conn.execute(
                    "INSERT INTO files (path, mtime, indexed_at) VALUES (?, ?, ?)",
                    (path, int(mtime), now_ms()),
                )
                file_id = cursor.lastrowid

                for start in range(0, len(symbols), SYMBOL_CHUNK_SIZE):
                    chunk = symbols[start : start + SYMBOL_CHUNK_SIZE]
                    self._insert_symbol_chunk(conn, file_id, chunk)

                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            return file_id

    def _insert_symbol_chunk(
        self, conn: sqlite3.Connection, file_id: int, chunk: Sequence[ExtractedSymbol]
    ) -> None:
        row_placeholder = "(" + ", ".join("?" for _ in _SYMBOL_COLUMNS) + ")"
        sql = (
            f"INSERT INTO symbols ({', '.join(_SYMBOL_COLUMNS)}) VALUES "
            + ", ".join(row_placeholder for _ in chunk)
        )
        params: List = []
        for symbol in chunk:
            params.extend(_symbol_params(file_id, symbol))
        conn.execute(sql, params)

    def delete_file(self, path: str) -> bool:
        """Delete a file and (by cascade) its symbols.

        Returns:
            True if a row was deleted
        """
        with self._lock, self._guard(f"delete {path}"):
            cursor = self._require().execute("DELETE FROM files WHERE path = ?", (path,))
            return cursor.rowcount > 0

    def delete_directory(self, path: str) -> int:
        """Delete every file stored under a directory.

        Returns:
            Number of file rows deleted
        """
        prefix = path.rstrip("/\\") + os.sep
        # Exact, case-sensitive prefix match (LIKE folds ASCII case)
        with self._lock, self._guard(f"delete directory {path}"):
            cursor = self._require().execute(
                "DELETE FROM files WHERE path = ? OR substr(path, 1, ?) = ?",
                (path, len(prefix), prefix),
            )
            return cursor.rowcount

    def clear(self) -> None:
        """Remove all files and symbols."""
        with self._lock, self._guard("clear"):
            conn = self._require()
            conn.execute("BEGIN")
            try:
                conn.execute("DELETE FROM symbols")
                conn.execute("DELETE FROM files")
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_files(self) -> Dict[str, FileEntry]:
        """Return every stored file keyed by path."""
        with self._lock, self._guard("list files"):
            rows = self._require().execute("SELECT * FROM files").fetchall()
        return {row["path"]: _row_to_file(row) for row in rows}

    def get_file(self, path: str) -> Optional[FileEntry]:
        with self._lock, self._guard(f"get {path}"):
            row = self._require().execute("SELECT * FROM files WHERE path = ?", (path,)).fetchone()
        return _row_to_file(row) if row else None

    def get_symbols_for_file(self, path: str) -> List[SymbolEntry]:
        with self._lock, self._guard(f"symbols of {path}"):
            rows = (
                self._require()
                .execute(
                    """SELECT s.*, f.path AS file_path
                       FROM symbols s JOIN files f ON s.file_id = f.id
                       WHERE f.path = ?
                       ORDER BY s.id""",
                    (path,),
                )
                .fetchall()
            )
        return [_row_to_symbol(row) for row in rows]

    def file_count(self) -> int:
        with self._lock, self._guard("count files"):
            return self._require().execute("SELECT COUNT(*) FROM files").fetchone()[0]

    def symbol_count(self) -> int:
        with self._lock, self._guard("count symbols"):
            return self._require().execute("SELECT COUNT(*) FROM symbols").fetchone()[0]

    def search(self, query: str, limit: int, offset: int = 0) -> List[SymbolEntry]:
        """Multi-keyword substring search over symbol and container names.

        The query is split on whitespace; every token must occur (case
        insensitive, literally) in the symbol name or its container name.
        Results are ordered by name, then file path, so that successive
        pages with increasing offsets are stable.

        Args:
            query: Search text
            limit: Page size
            offset: Number of results to skip

        Returns:
            Matching symbols joined with their file path
        """
        tokens = query.split()
        if not tokens or limit <= 0:
            return []

        conditions: List[str] = []
        params: List = []
        for token in tokens:
            pattern = f"%{escape_like(token)}%"
            conditions.append(
                f"(s.name LIKE ? ESCAPE '{LIKE_ESCAPE}' "
                f"OR s.container_name LIKE ? ESCAPE '{LIKE_ESCAPE}')"
            )
            params.extend((pattern, pattern))

        sql = f"""
            SELECT s.*, f.path AS file_path
            FROM symbols s
            JOIN files f ON s.file_id = f.id
            WHERE {' AND '.join(conditions)}
            ORDER BY s.name ASC, f.path ASC, s.id ASC
            LIMIT ? OFFSET ?
        """
        params.extend((int(limit), max(0, int(offset))))

        with self._lock, self._guard("search"):
            rows = self._require().execute(sql, params).fetchall()
        return [_row_to_symbol(row) for row in rows]
