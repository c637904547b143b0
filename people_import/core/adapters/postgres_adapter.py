"""PostgreSQL adapter — pooled client connections via asyncpg.

Each adapter instance caches one pool per set of connection parameters and
shares it between every handle pointing at the same server; the registry
owning the adapter drains those pools at shutdown. A handle is one
connection acquired from its pool; closing it returns the connection, and
a forced close also tears the pool down. Each record is inserted inside a
savepoint so one rejected record does not abort the enclosing transaction.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

import asyncpg

from people_import.core.adapters.base import TABLE_NAME, ClientServerAdapter, insert_values
from people_import.core.config import settings
from people_import.core.errors import PersistenceError
from people_import.core.models import BackendType, DatabaseConfig, SaveResult

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    id SERIAL PRIMARY KEY,
    external_id VARCHAR(255),
    first_name VARCHAR(255),
    last_name VARCHAR(255),
    birth_date VARCHAR(50),
    status VARCHAR(50),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    additional_data JSONB
)
"""

INSERT_SQL = (
    f"INSERT INTO {TABLE_NAME} "
    "(external_id, first_name, last_name, birth_date, status, additional_data) "
    "VALUES ($1, $2, $3, $4, $5, $6)"
)

# host, port, user, password, database
PoolKey = tuple[str, int, str, str, str]


@dataclass(eq=False)
class PostgresHandle:
    pool: asyncpg.Pool
    connection: Any
    key: PoolKey
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def connect_params(config: DatabaseConfig) -> dict[str, Any]:
    """Keyword arguments for asyncpg; credentials are passed as-is, never URL-encoded."""
    return {
        "host": config.host,
        "port": config.port or settings.postgres_port,
        "user": config.user or "postgres",
        "password": config.password if config.password is not None else "test_password",
        "database": config.database,
    }


def pool_key(params: Mapping[str, Any]) -> PoolKey:
    return (params["host"], params["port"], params["user"], params["password"], params["database"])


class PostgresAdapter(ClientServerAdapter):
    backend = BackendType.POSTGRES.value

    def __init__(self):
        self._pools: dict[PoolKey, asyncpg.Pool] = {}

    async def _get_pool(self, params: Mapping[str, Any], pool_size: int) -> asyncpg.Pool:
        key = pool_key(params)
        pool = self._pools.get(key)
        if pool is not None:
            logger.info("Reusing existing PostgreSQL connection pool")
            return pool

        pool = await asyncpg.create_pool(
            **params,
            min_size=1,
            max_size=max(pool_size, 1),
            max_inactive_connection_lifetime=settings.postgres_idle_timeout,
            timeout=settings.postgres_acquire_timeout,
        )
        self._pools[key] = pool
        logger.info("Created new PostgreSQL connection pool")
        return pool

    async def initialize(self, config: Optional[DatabaseConfig] = None) -> PostgresHandle:
        config = config or DatabaseConfig()
        params = connect_params(config)
        logger.info(
            f"Initializing PostgreSQL database at: {params['host']}:{params['port']}/{params['database']}"
        )

        try:
            pool = await self._get_pool(params, config.pool_size)
            connection = await pool.acquire(timeout=settings.postgres_acquire_timeout)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Error initializing PostgreSQL database: {e}")
            raise PersistenceError(f"Failed to initialize PostgreSQL database: {e}") from e

        try:
            await connection.execute(CREATE_TABLE_SQL)
        except asyncpg.PostgresError as e:
            logger.error(f"Error creating people table: {e}")
            await pool.release(connection)
            raise PersistenceError(f"Failed to initialize PostgreSQL database: {e}") from e

        logger.info("PostgreSQL database initialized successfully")
        return PostgresHandle(pool=pool, connection=connection, key=pool_key(params))

    async def _insert_record(self, handle: PostgresHandle, record: Mapping[str, Any]) -> None:
        async with handle.lock:
            async with handle.connection.transaction():
                await handle.connection.execute(INSERT_SQL, *insert_values(record))

    async def save(self, handle: PostgresHandle, records: Sequence[Mapping[str, Any]]) -> SaveResult:
        if not records:
            return self._empty_result()

        logger.info(f"Preparing to save {len(records)} records to PostgreSQL database")
        transaction = handle.connection.transaction()
        try:
            await transaction.start()
            result = await self._insert_sub_batches(handle, records)
            await transaction.commit()
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error(f"Error saving to PostgreSQL database: {e}")
            try:
                await transaction.rollback()
            except (asyncpg.PostgresError, asyncpg.InterfaceError) as rollback_error:
                logger.error(f"Error rolling back transaction: {rollback_error}")
            raise PersistenceError(f"Failed to save to PostgreSQL database: {e}") from e

        logger.info(
            f"Successfully saved {result.inserted} records to PostgreSQL database ({result.errors} errors)"
        )
        return result

    async def close(self, handle: Optional[PostgresHandle], force: bool = False) -> None:
        """Return the connection to its pool; with force, also close the pool.

        Failures are logged so teardown always runs to the end.
        """
        if handle is None:
            logger.warning("No PostgreSQL connection to close")
            return

        try:
            await handle.pool.release(handle.connection)
            logger.info("PostgreSQL client connection released")
        except Exception as e:
            logger.error(f"Error releasing PostgreSQL client connection: {e}")

        if force:
            self._pools.pop(handle.key, None)
            try:
                await handle.pool.close()
                logger.info("PostgreSQL connection pool closed")
            except Exception as e:
                logger.error(f"Error closing PostgreSQL connection pool: {e}")

        logger.info("PostgreSQL database connection closed")

    async def drain(self, force: bool = False) -> None:
        await self.close_all_pools()
        if force:
            self.terminate_all_pools()

    async def close_all_pools(self) -> None:
        """Gracefully close every cached pool, terminating any that will not close in time."""
        if not self._pools:
            logger.info("No PostgreSQL connection pools to close")
            return

        pools = list(self._pools.values())
        self._pools.clear()
        for pool in pools:
            try:
                await asyncio.wait_for(pool.close(), timeout=settings.postgres_acquire_timeout)
            except asyncio.TimeoutError:
                logger.warning("PostgreSQL pool did not close in time, terminating")
                pool.terminate()
            except Exception as e:
                logger.error(f"Error closing PostgreSQL connection pool: {e}")
        logger.info("All PostgreSQL connection pools closed")

    def terminate_all_pools(self) -> None:
        """Forcefully terminate every cached pool without waiting for connections."""
        pools = list(self._pools.values())
        self._pools.clear()
        for pool in pools:
            try:
                pool.terminate()
            except Exception as e:
                logger.error(f"Error terminating PostgreSQL connection pool: {e}")
        logger.info("All PostgreSQL connection pools terminated")
