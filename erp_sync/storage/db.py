"""
SQLite database module for the CRM record store and identity mappings.

Provides persistent storage for imported records and for the mapping of
external (ERP) ids to internal record ids used to avoid duplicates across runs.
"""

import json
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from erp_sync.storage.record import Record


def _utcnow() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


# SQL Schema for records and the identity mapping table
SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    module TEXT NOT NULL,
    data TEXT NOT NULL DEFAULT '{}',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_records_module ON records(module);

CREATE TABLE IF NOT EXISTS records_map (
    id INTEGER PRIMARY KEY,
    external_system TEXT NOT NULL,
    source_table TEXT NOT NULL,
    external_id TEXT NOT NULL,
    internal_id INTEGER NOT NULL REFERENCES records(id),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(external_system, source_table, external_id)
);

CREATE INDEX IF NOT EXISTS idx_records_map_lookup
    ON records_map(external_system, source_table, external_id);
CREATE INDEX IF NOT EXISTS idx_records_map_internal ON records_map(internal_id);
"""


class StorageError(Exception):
    """Base class for record store errors."""

    pass


class RecordNotFoundError(StorageError):
    """Raised when a record id does not exist in the requested module."""

    pass


class PersistenceError(StorageError):
    """Raised when the store rejects a save (constraint violation, I/O error)."""

    pass


class SyncDatabase:
    """
    SQLite database manager for CRM records and identity mappings.

    Provides methods for:
    - Loading and saving records
    - Looking up and inserting external id -> internal id mappings
    - Reporting mapping and record counts

    Usage:
        db = SyncDatabase('/path/to/erp_sync.db')
        db.initialize()

        # Or use in-memory for testing:
        db = SyncDatabase(':memory:')
        db.initialize()
    """

    def __init__(self, db_path: str):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory database
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None

    def __repr__(self) -> str:
        return f"SyncDatabase(db_path={self.db_path!r})"

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        For in-memory databases, returns a shared connection to ensure
        schema persists across operations. For file databases, creates
        a new connection each time.
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(":memory:")
                self._shared_connection.row_factory = sqlite3.Row
                self._shared_connection.execute("PRAGMA foreign_keys = ON")
            return self._shared_connection

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Everything executed inside one block is committed together, or rolled
        back together if the block raises.

        Usage:
            with db.connection() as conn:
                conn.execute("SELECT * FROM records_map")
        """
        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """Create the records and records_map tables if they don't exist."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    def close(self) -> None:
        """Close the shared in-memory connection, if any."""
        if self._shared_connection is not None:
            self._shared_connection.close()
            self._shared_connection = None

    # =========================================================================
    # Identity Mapping Operations
    # =========================================================================

    def find_mapping(
        self, external_system: str, source_table: str, external_id: Any
    ) -> Optional[int]:
        """
        Find the internal id mapped to an external id.

        Args:
            external_system: Name of the external system (e.g. 'wapro')
            source_table: ERP table the id comes from (e.g. 'FIRMA')
            external_id: Primary key of the row in the ERP

        Returns:
            Internal record id, or None if the external id was never imported
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                SELECT internal_id FROM records_map
                WHERE external_system = ? AND source_table = ? AND external_id = ?
                """,
                (external_system, source_table, str(external_id)),
            )
            row = cursor.fetchone()
            if row:
                return int(row["internal_id"])
            return None

    def insert_mapping(
        self,
        external_system: str,
        source_table: str,
        external_id: Any,
        internal_id: int,
    ) -> None:
        """
        Insert a new identity mapping.

        Raises:
            PersistenceError: If the external id is already mapped or the
                              internal record does not exist
        """
        try:
            with self.connection() as conn:
                self._insert_mapping(
                    conn, external_system, source_table, str(external_id), internal_id
                )
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to map {external_system}/{source_table}/{external_id}: {e}"
            ) from e

    @staticmethod
    def _insert_mapping(
        conn: sqlite3.Connection,
        external_system: str,
        source_table: str,
        external_id: str,
        internal_id: int,
    ) -> None:
        conn.execute(
            """
            INSERT INTO records_map (
                external_system, source_table, external_id, internal_id, created_at
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                external_system,
                source_table,
                external_id,
                internal_id,
                _utcnow(),
            ),
        )

    def get_mappings(
        self, external_system: str, source_table: str
    ) -> list[dict[str, Any]]:
        """
        Get all mappings for one source table.

        Returns:
            List of mapping dictionaries ordered by external id
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                SELECT external_system, source_table, external_id, internal_id,
                       created_at
                FROM records_map
                WHERE external_system = ? AND source_table = ?
                ORDER BY external_id
                """,
                (external_system, source_table),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_mapping_counts(self) -> list[dict[str, Any]]:
        """
        Count mappings per external system and source table.

        Returns:
            List of {'external_system', 'source_table', 'count'} dictionaries
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                SELECT external_system, source_table, COUNT(*) AS count
                FROM records_map
                GROUP BY external_system, source_table
                ORDER BY external_system, source_table
                """
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_mapping_count(self) -> int:
        """Get the total number of identity mappings."""
        with self.connection() as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM records_map")
            result: int = cursor.fetchone()[0]
            return result

    # =========================================================================
    # Record Operations
    # =========================================================================

    def load_record(self, module: str, record_id: int) -> Record:
        """
        Load a record by id.

        Raises:
            RecordNotFoundError: If no record with that id exists in the module
        """
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT id, module, data FROM records WHERE id = ? AND module = ?",
                (record_id, module),
            )
            row = cursor.fetchone()

        if row is None:
            raise RecordNotFoundError(f"Record {module}#{record_id} does not exist")

        return Record(
            module=row["module"], id=row["id"], attributes=json.loads(row["data"])
        )

    def save_record(self, record: Record) -> int:
        """
        Insert or update a record.

        A new record that carries a pending identity mapping is inserted in the
        same transaction as the mapping, so either both exist or neither does.

        Args:
            record: Record to persist; its id is set after the first save

        Returns:
            The record id

        Raises:
            PersistenceError: If the store rejects the write
        """
        data = json.dumps(record.attributes, default=str, sort_keys=True)
        now = _utcnow()

        try:
            with self.connection() as conn:
                if record.is_new:
                    cursor = conn.execute(
                        """
                        INSERT INTO records (module, data, created_at, updated_at)
                        VALUES (?, ?, ?, ?)
                        """,
                        (record.module, data, now, now),
                    )
                    record_id = int(cursor.lastrowid)
                    mapping = record.pending_mapping
                    if mapping is not None:
                        self._insert_mapping(
                            conn,
                            mapping.external_system,
                            mapping.source_table,
                            mapping.external_id,
                            record_id,
                        )
                else:
                    record_id = record.id  # type: ignore[assignment]
                    cursor = conn.execute(
                        "UPDATE records SET data = ?, updated_at = ? "
                        "WHERE id = ? AND module = ?",
                        (data, now, record_id, record.module),
                    )
                    if cursor.rowcount == 0:
                        raise RecordNotFoundError(
                            f"Record {record.module}#{record_id} does not exist"
                        )
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to save {record.module} record: {e}"
            ) from e

        # Only touch the in-memory record once the transaction committed
        record.id = record_id
        record.pending_mapping = None
        return record_id

    def get_record_counts(self) -> dict[str, int]:
        """Count records per module."""
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT module, COUNT(*) AS count FROM records "
                "GROUP BY module ORDER BY module"
            )
            return {row["module"]: row["count"] for row in cursor.fetchall()}

