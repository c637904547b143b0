"""Connection Registry — named, cached database connections over the adapters.

A ``Connection`` pairs an engine handle with the adapter that created it
and the backend tag, and enforces the connection lifecycle. The
``ConnectionRegistry`` caches connections by caller-supplied id so repeated
requests reuse one engine handle; it is constructed once per process (or
per test) and drained explicitly at shutdown.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional, Sequence

from people_import.core.adapters.base import DatabaseAdapter
from people_import.core.adapters.mysql_adapter import MySQLAdapter
from people_import.core.adapters.postgres_adapter import PostgresAdapter
from people_import.core.adapters.sqlite_adapter import SQLiteAdapter
from people_import.core.config import settings
from people_import.core.errors import ConnectionStateError
from people_import.core.field_normalizer import reconcile
from people_import.core.models import (
    BackendType,
    ConnectionState,
    DatabaseConfig,
    DatabaseOptions,
    SaveResult,
)

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION_ID = "default"


def default_adapters() -> dict[BackendType, DatabaseAdapter]:
    return {
        BackendType.SQLITE: SQLiteAdapter(),
        BackendType.MYSQL: MySQLAdapter(),
        BackendType.POSTGRES: PostgresAdapter(),
    }


def default_config(backend: BackendType) -> Optional[DatabaseConfig]:
    """Environment-derived connection parameters for a client/server backend."""
    if backend is BackendType.MYSQL:
        return DatabaseConfig(
            host=settings.mysql_host,
            port=settings.mysql_port,
            user=settings.mysql_user,
            password=settings.mysql_password,
            database=settings.mysql_database,
        )
    if backend is BackendType.POSTGRES:
        return DatabaseConfig(
            host=settings.postgres_host,
            port=settings.postgres_port,
            user=settings.postgres_user,
            password=settings.postgres_password,
            database=settings.postgres_database,
            pool_size=settings.postgres_pool_size,
        )
    return None


class Connection:
    """An initialized engine handle bound to its adapter.

    Lifecycle: UNINITIALIZED -> INITIALIZING -> READY -> CLOSING -> CLOSED.
    ``save`` is only valid while READY and a closed connection never reopens.
    Saves and the close share one lock, so a handle is never closed while a
    save is still running on it and concurrent saves run one at a time.
    ``checkouts`` counts the callers currently holding the connection from
    the registry.
    """

    def __init__(self, adapter: DatabaseAdapter, backend: BackendType):
        self.adapter = adapter
        self.backend = backend
        self.handle: Any = None
        self.state = ConnectionState.UNINITIALIZED
        self.checkouts = 0
        self._lock = asyncio.Lock()

    async def open(self, config: Any) -> "Connection":
        if self.state is not ConnectionState.UNINITIALIZED:
            raise ConnectionStateError(f"Cannot initialize a {self.state.value} connection")
        self.state = ConnectionState.INITIALIZING
        try:
            self.handle = await self.adapter.initialize(config)
        except Exception:
            self.state = ConnectionState.CLOSED
            raise
        self.state = ConnectionState.READY
        return self

    async def save(self, records: Sequence[Mapping[str, Any]]) -> SaveResult:
        """Reconcile every record's field names, then insert the batch."""
        async with self._lock:
            if self.state is not ConnectionState.READY:
                raise ConnectionStateError(
                    f"Cannot save on a {self.state.value} {self.backend.value} connection"
                )
            normalized = [reconcile(record) for record in records]
            return await self.adapter.save(self.handle, normalized)

    async def close(self, force: bool = False) -> None:
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return
        self.state = ConnectionState.CLOSING
        async with self._lock:
            try:
                await self.adapter.close(self.handle, force)
            finally:
                self.state = ConnectionState.CLOSED


class ConnectionRegistry:
    """Caches live connections by identifier and owns their teardown."""

    def __init__(self, adapters: Optional[Mapping[BackendType, DatabaseAdapter]] = None):
        self._adapters = dict(adapters) if adapters is not None else default_adapters()
        self._connections: dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    def get_adapter(self, backend: BackendType) -> DatabaseAdapter:
        return self._adapters[backend]

    def active_connection_ids(self) -> list[str]:
        return list(self._connections)

    async def get_connection(
        self,
        connection_id: str = DEFAULT_CONNECTION_ID,
        options: Optional[DatabaseOptions] = None,
    ) -> Connection:
        """Return the cached connection for connection_id or initialize a new one."""
        options = options or DatabaseOptions()
        async with self._lock:
            cached = self._connections.get(connection_id)
            if cached is not None and cached.state is ConnectionState.READY:
                logger.info(f"Reusing existing database connection: {connection_id}")
                cached.checkouts += 1
                return cached
            if cached is not None:
                # Stale entry; a closed connection cannot become ready again
                del self._connections[connection_id]

            backend = BackendType.parse(options.type or settings.db_type)
            logger.info(f"Creating new {backend.value} database connection: {connection_id}")

            if backend is BackendType.SQLITE:
                config: Any = options.path or settings.db_path
            else:
                config = options.config or default_config(backend)

            connection = await Connection(self.get_adapter(backend), backend).open(config)
            connection.checkouts = 1
            self._connections[connection_id] = connection
            return connection

    async def release_connection(self, connection_id: str, connection: Connection) -> None:
        """Hand back a connection obtained from get_connection.

        The connection is evicted and closed once its last holder releases
        it; earlier releases leave it cached and open for the other holders.
        """
        async with self._lock:
            connection.checkouts = max(connection.checkouts - 1, 0)
            if connection.checkouts > 0:
                logger.info(
                    f"Released database connection: {connection_id} "
                    f"({connection.checkouts} holders remaining)"
                )
                return
            if self._connections.get(connection_id) is connection:
                del self._connections[connection_id]
        await connection.close()
        logger.info(f"Closed database connection: {connection_id}")

    async def close_connection(self, connection_id: str = DEFAULT_CONNECTION_ID, force: bool = False) -> None:
        """Evict and close one connection whatever its holders.

        Waits for a save already running on it. Adapter close failures
        propagate.
        """
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return
        await connection.close(force)
        logger.info(f"Closed database connection: {connection_id}")

    async def close_all_connections(self, force: bool = True) -> None:
        """Close every cached connection, then drain backend pools. Never raises."""
        entries = list(self._connections.items())
        self._connections.clear()

        outcomes = await asyncio.gather(
            *(connection.close(force) for _, connection in entries),
            return_exceptions=True,
        )
        for (connection_id, _), outcome in zip(entries, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"Error closing database connection: {connection_id}: {outcome}")
            else:
                logger.info(f"Closed database connection: {connection_id}")

        for backend, adapter in self._adapters.items():
            try:
                await adapter.drain(force)
            except Exception as e:
                logger.error(f"Error draining {backend.value} connections: {e}")

        logger.info("All database connections closed")
