"""SQLite adapter — embedded file database, the default backend.

The only backend with historical database files, so initialization also
performs additive schema evolution: columns missing from an older
``people`` table are added, never dropped or renamed. Blocking sqlite3
calls run in a worker thread so each engine call is awaitable.
"""

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from people_import.core.adapters.base import (
    REQUIRED_COLUMNS,
    TABLE_NAME,
    DatabaseAdapter,
    insert_values,
)
from people_import.core.config import settings
from people_import.core.errors import PersistenceError
from people_import.core.models import BackendType, SaveResult

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id TEXT,
    first_name TEXT,
    last_name TEXT,
    birth_date TEXT,
    status TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    additional_data TEXT
)
"""

# created_at is set explicitly: evolved legacy tables cannot carry a
# CURRENT_TIMESTAMP column default
INSERT_SQL = (
    f"INSERT INTO {TABLE_NAME} "
    "(external_id, first_name, last_name, birth_date, status, additional_data, created_at) "
    "VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)"
)


def _column_type(column: str) -> str:
    # SQLite rejects non-constant defaults in ALTER TABLE ADD COLUMN
    if column == "created_at":
        return "TEXT DEFAULT NULL"
    return "TEXT"


class SQLiteAdapter(DatabaseAdapter):
    backend = BackendType.SQLITE.value

    async def initialize(self, config: Optional[str] = None) -> sqlite3.Connection:
        """Open (or create) the database file and bring the people table up to date."""
        db_path = Path(config or settings.db_path)
        logger.info(f"Initializing SQLite database at: {db_path}")
        try:
            return await asyncio.to_thread(self._initialize_sync, db_path)
        except sqlite3.Error as e:
            logger.error(f"Error initializing SQLite database: {e}")
            raise PersistenceError(f"Failed to initialize SQLite database: {e}") from e
        except OSError as e:
            logger.error(f"Error preparing SQLite database path: {e}")
            raise PersistenceError(f"Failed to initialize SQLite database: {e}") from e

    def _initialize_sync(self, db_path: Path) -> sqlite3.Connection:
        if str(db_path) != ":memory:":
            db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db_path), check_same_thread=False, isolation_level=None)
        try:
            exists = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (TABLE_NAME,)
            ).fetchone()
            if exists:
                logger.info("People table already exists, checking for schema updates")
                self._evolve_schema(conn)
            else:
                logger.info("Creating people table")
                conn.execute(CREATE_TABLE_SQL)
        except sqlite3.Error:
            conn.close()
            raise
        logger.info("SQLite database initialized successfully")
        return conn

    def _evolve_schema(self, conn: sqlite3.Connection) -> None:
        existing = {row[1] for row in conn.execute(f"PRAGMA table_info({TABLE_NAME})")}
        missing = [column for column in REQUIRED_COLUMNS if column not in existing]
        if not missing:
            logger.info("Table schema is up to date")
            return

        logger.info(f"Adding {len(missing)} missing columns to people table")
        for column in missing:
            conn.execute(f"ALTER TABLE {TABLE_NAME} ADD COLUMN {column} {_column_type(column)}")
            logger.info(f"Added column {column} to people table")

    async def save(self, handle: sqlite3.Connection, records: Sequence[Mapping[str, Any]]) -> SaveResult:
        if not records:
            return self._empty_result()

        logger.info(f"Preparing to save {len(records)} records to SQLite database")
        result = await asyncio.to_thread(self._save_sync, handle, records)
        logger.info(
            f"Successfully saved {result.inserted} records to SQLite database ({result.errors} errors)"
        )
        return result

    def _save_sync(self, conn: sqlite3.Connection, records: Sequence[Mapping[str, Any]]) -> SaveResult:
        try:
            conn.execute("BEGIN")
        except sqlite3.Error as e:
            logger.error(f"Error starting transaction: {e}")
            raise PersistenceError(f"Failed to save to SQLite database: {e}") from e

        result = SaveResult()
        for record in records:
            if self._skip_ineligible(record):
                continue
            try:
                conn.execute(INSERT_SQL, insert_values(record))
            except Exception as e:
                self._log_record_error(e, record)
                result.errors += 1
            else:
                result.inserted += 1

        # Counts are final; commit once for every applied record
        try:
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            logger.error(f"Error committing transaction: {e}")
            try:
                conn.execute("ROLLBACK")
            except sqlite3.Error as rollback_error:
                logger.error(f"Error rolling back transaction: {rollback_error}")
            raise PersistenceError(f"Failed to commit transaction: {e}") from e
        return result

    async def close(self, handle: sqlite3.Connection, force: bool = False) -> None:
        try:
            await asyncio.to_thread(handle.close)
        except sqlite3.Error as e:
            logger.error(f"Error closing SQLite database connection: {e}")
            raise PersistenceError(f"Failed to close SQLite database connection: {e}") from e
        logger.info("SQLite database connection closed")
