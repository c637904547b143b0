"""MySQL adapter — one plain client connection per handle.

The table is created with the full column set, so no schema evolution is
needed. Statements on one connection are serialized by a lock; concurrent
sub-batch inserts queue on it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

import mysql.connector
from mysql.connector.aio import connect

from people_import.core.adapters.base import TABLE_NAME, ClientServerAdapter, insert_values
from people_import.core.config import settings
from people_import.core.errors import PersistenceError
from people_import.core.models import BackendType, DatabaseConfig, SaveResult

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    id INT AUTO_INCREMENT PRIMARY KEY,
    external_id VARCHAR(255),
    first_name VARCHAR(255),
    last_name VARCHAR(255),
    birth_date VARCHAR(50),
    status VARCHAR(50),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    additional_data JSON
) CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci
"""

INSERT_SQL = (
    f"INSERT INTO {TABLE_NAME} "
    "(external_id, first_name, last_name, birth_date, status, additional_data) "
    "VALUES (%s, %s, %s, %s, %s, %s)"
)

@dataclass(eq=False)
class MySQLHandle:
    connection: Any
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


async def _execute(handle: MySQLHandle, sql: str, params: Optional[tuple] = None) -> None:
    async with handle.lock:
        cursor = await handle.connection.cursor()
        try:
            await cursor.execute(sql, params)
        finally:
            await cursor.close()


class MySQLAdapter(ClientServerAdapter):
    backend = BackendType.MYSQL.value

    def __init__(self):
        # Handles opened by this adapter and not yet closed
        self._open_handles: set[MySQLHandle] = set()

    async def initialize(self, config: Optional[DatabaseConfig] = None) -> MySQLHandle:
        config = config or DatabaseConfig()
        port = config.port or settings.mysql_port
        logger.info(f"Initializing MySQL database at: {config.host}:{port}/{config.database}")

        try:
            connection = await connect(
                host=config.host or "localhost",
                port=port,
                user=config.user or "root",
                password=config.password if config.password is not None else "test_password",
                database=config.database,
                charset="utf8mb4",
                autocommit=False,
            )
        except mysql.connector.Error as e:
            logger.error(f"Error connecting to MySQL database: {e}")
            raise PersistenceError(f"Failed to initialize MySQL database: {e}") from e

        handle = MySQLHandle(connection=connection)
        try:
            await _execute(handle, CREATE_TABLE_SQL)
        except mysql.connector.Error as e:
            logger.error(f"Error creating people table: {e}")
            await connection.close()
            raise PersistenceError(f"Failed to initialize MySQL database: {e}") from e

        self._open_handles.add(handle)
        logger.info("MySQL database initialized successfully")
        return handle

    async def _insert_record(self, handle: MySQLHandle, record: Mapping[str, Any]) -> None:
        await _execute(handle, INSERT_SQL, insert_values(record))

    async def save(self, handle: MySQLHandle, records: Sequence[Mapping[str, Any]]) -> SaveResult:
        if not records:
            return self._empty_result()

        logger.info(f"Preparing to save {len(records)} records to MySQL database")
        connection = handle.connection
        try:
            await connection.start_transaction()
            result = await self._insert_sub_batches(handle, records)
            await connection.commit()
        except mysql.connector.Error as e:
            logger.error(f"Error saving to MySQL database: {e}")
            try:
                await connection.rollback()
            except mysql.connector.Error as rollback_error:
                logger.error(f"Error rolling back transaction: {rollback_error}")
            raise PersistenceError(f"Failed to save to MySQL database: {e}") from e

        logger.info(
            f"Successfully saved {result.inserted} records to MySQL database ({result.errors} errors)"
        )
        return result

    async def close(self, handle: MySQLHandle, force: bool = False) -> None:
        self._open_handles.discard(handle)
        try:
            await handle.connection.close()
        except mysql.connector.Error as e:
            logger.error(f"Error closing MySQL database connection: {e}")
            raise PersistenceError(f"Failed to close MySQL database connection: {e}") from e
        logger.info("MySQL database connection closed")

    async def drain(self, force: bool = False) -> None:
        if force:
            await self.close_all_connections()

    async def close_all_connections(self) -> None:
        """Close every handle this adapter opened that is still open."""
        handles = list(self._open_handles)
        self._open_handles.clear()
        for handle in handles:
            try:
                await handle.connection.close()
            except mysql.connector.Error as e:
                logger.error(f"Error closing MySQL connection: {e}")
        if handles:
            logger.info(f"Closed {len(handles)} remaining MySQL connections")
