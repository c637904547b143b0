"""people-import command — import one spreadsheet file into the people table.

Prints a JSON summary on stdout. On failure prints a JSON error on stderr
and exits with status 1.
"""

import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional

import click

from people_import.core.config import settings
from people_import.core.database import DEFAULT_CONNECTION_ID, ConnectionRegistry
from people_import.core.ingestion_engine import import_file
from people_import.core.models import (
    BackendType,
    DatabaseConfig,
    DatabaseOptions,
    ImportOptions,
    ImportResult,
)

logger = logging.getLogger(__name__)


def build_db_options(
    db_type: str,
    db_path: Optional[str],
    mysql: dict,
    pg: dict,
) -> DatabaseOptions:
    """Translate CLI flags into DatabaseOptions for the selected backend."""
    backend = BackendType.parse(db_type)
    if backend is BackendType.MYSQL:
        return DatabaseOptions(type=backend.value, config=DatabaseConfig(**mysql))
    if backend is BackendType.POSTGRES:
        return DatabaseOptions(type=backend.value, config=DatabaseConfig(**pg))
    return DatabaseOptions(type=backend.value, path=db_path or settings.db_path)


async def _run(file_path: Path, options: ImportOptions) -> ImportResult:
    registry = ConnectionRegistry()
    try:
        return await import_file(file_path, options, registry)
    finally:
        await registry.close_all_connections(force=True)


@click.command()
@click.argument("file_path", type=click.Path(path_type=Path))
@click.option("--db-type", default=lambda: settings.db_type, show_default="DB_TYPE or sqlite",
              help="sqlite, mysql or postgres")
@click.option("--db-path", default=None, help="[sqlite] Database file path")
@click.option("--connection-id", default=DEFAULT_CONNECTION_ID, show_default=True)
@click.option("--chunk-size", default=lambda: settings.chunk_size, type=int,
              help="Records per save call")
@click.option("--use-streaming", "--stream", "use_streaming", is_flag=True, default=False,
              help="Force the chunked read path")
@click.option("--stream-threshold", default=lambda: settings.stream_threshold_mb, type=float,
              help="File size in MB above which streaming is used")
@click.option("--mysql-host", default=lambda: settings.mysql_host)
@click.option("--mysql-port", default=lambda: settings.mysql_port, type=int)
@click.option("--mysql-user", default=lambda: settings.mysql_user)
@click.option("--mysql-password", default=lambda: settings.mysql_password)
@click.option("--mysql-database", default=lambda: settings.mysql_database)
@click.option("--pg-host", default=lambda: settings.postgres_host)
@click.option("--pg-port", default=lambda: settings.postgres_port, type=int)
@click.option("--pg-user", default=lambda: settings.postgres_user)
@click.option("--pg-password", default=lambda: settings.postgres_password)
@click.option("--pg-database", default=lambda: settings.postgres_database)
@click.option("--pg-pool-size", default=lambda: settings.postgres_pool_size, type=int)
@click.option("--log-level", default=lambda: settings.log_level,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def main(
    file_path: Path,
    db_type: str,
    db_path: Optional[str],
    connection_id: str,
    chunk_size: int,
    use_streaming: bool,
    stream_threshold: float,
    mysql_host: str,
    mysql_port: int,
    mysql_user: str,
    mysql_password: str,
    mysql_database: str,
    pg_host: str,
    pg_port: int,
    pg_user: str,
    pg_password: str,
    pg_database: str,
    pg_pool_size: int,
    log_level: str,
) -> None:
    """Import the people in FILE_PATH into the configured database."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    started = time.monotonic()

    db_options = build_db_options(
        db_type,
        db_path,
        mysql=dict(host=mysql_host, port=mysql_port, user=mysql_user,
                   password=mysql_password, database=mysql_database),
        pg=dict(host=pg_host, port=pg_port, user=pg_user, password=pg_password,
                database=pg_database, pool_size=pg_pool_size),
    )
    options = ImportOptions(
        connection_id=connection_id,
        db_options=db_options,
        use_streaming=use_streaming,
        stream_threshold_mb=stream_threshold,
        chunk_size=chunk_size,
    )
    logger.info(f"Using {db_options.type} database, connection ID: {connection_id}")

    try:
        result = asyncio.run(_run(file_path, options))
    except Exception as e:
        logger.error(f"Error in import process: {e}", exc_info=True)
        click.echo(json.dumps({
            "success": False,
            "message": "Failed to import data",
            "error": str(e),
        }, indent=2), err=True)
        sys.exit(1)

    duration = time.monotonic() - started
    click.echo(json.dumps({
        "success": True,
        "message": f"Successfully imported {result.inserted} records into the database",
        "duration": f"{duration:.2f} seconds",
        "records": result.inserted,
        "errors": result.errors,
        "importRunId": result.import_run_id,
        "connectionId": connection_id,
        "databaseType": result.database_type,
        "sourceFile": str(file_path),
    }, indent=2))


if __name__ == "__main__":
    main()
