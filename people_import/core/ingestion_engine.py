"""Ingestion Engine — orchestrates the full import pipeline.

Takes an Excel file, parses it into canonical person records (whole-sheet
or streaming depending on size), obtains a connection from the registry
and persists the records in consecutive chunks with running totals. The
connection is always released before returning or raising.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from people_import.core.config import settings
from people_import.core.database import ConnectionRegistry
from people_import.core.excel_parser import parse_excel
from people_import.core.id_gen import generate_import_run_id
from people_import.core.models import ImportOptions, ImportResult, SaveResult

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


def should_stream(file_size: int, use_streaming: bool, threshold_mb: float) -> bool:
    """Streaming is used when forced or when the file exceeds the threshold."""
    return use_streaming or file_size / BYTES_PER_MB > threshold_mb


def split_chunks(records: list, chunk_size: int) -> list[list]:
    """Split records into consecutive chunks; one chunk when they fit."""
    if len(records) <= chunk_size:
        return [records]
    return [records[i:i + chunk_size] for i in range(0, len(records), chunk_size)]


async def import_file(
    file_path: Path,
    options: Optional[ImportOptions] = None,
    registry: Optional[ConnectionRegistry] = None,
) -> ImportResult:
    """Run a full import of file_path and return aggregate counts.

    Steps:
    1. Pick whole-sheet or streaming read from the file size
    2. Parse and shape rows into canonical records
    3. Get a connection from the registry
    4. Save in chunks of chunk_size, summing inserted/errors
    5. Release the connection on success and on failure; it is closed
       once no other import is still holding it

    Per-record insert failures only increase ``errors``. Parse, connect and
    commit failures propagate after the connection is released; earlier chunks
    stay committed.
    """
    options = options or ImportOptions()
    registry = registry or ConnectionRegistry()
    file_path = Path(file_path)
    started = time.monotonic()
    import_run_id = generate_import_run_id()

    chunk_size = options.chunk_size or settings.chunk_size
    read_chunk_size = options.read_chunk_size or settings.read_chunk_size
    threshold_mb = (
        options.stream_threshold_mb
        if options.stream_threshold_mb is not None
        else settings.stream_threshold_mb
    )
    connection_id = options.connection_id

    logger.info(f"Processing Excel file: {file_path} (import run {import_run_id})")

    connection = None
    try:
        if not file_path.exists():
            raise FileNotFoundError(f"Excel file not found: {file_path}")

        file_size = file_path.stat().st_size
        use_streaming = should_stream(file_size, options.use_streaming, threshold_mb)
        logger.info(
            f"File size: {file_size / BYTES_PER_MB:.2f} MB, "
            f"{'using' if use_streaming else 'not using'} streaming mode"
        )

        records = await asyncio.to_thread(
            parse_excel, file_path, use_streaming, read_chunk_size,
        )

        connection = await registry.get_connection(connection_id, options.db_options)

        totals = SaveResult()
        chunks = split_chunks(records, chunk_size)
        if len(chunks) > 1:
            logger.info(f"Processing {len(records)} records in chunks of {chunk_size}")

        for number, chunk in enumerate(chunks, start=1):
            if len(chunks) > 1:
                logger.info(f"Processing chunk {number} of {len(chunks)} ({len(chunk)} records)")
            result = await connection.save(chunk)
            totals.inserted += result.inserted
            totals.errors += result.errors
            if len(chunks) > 1:
                logger.info(f"Chunk processed: {result.inserted} inserted, {result.errors} errors")

        released, connection = connection, None
        await registry.release_connection(connection_id, released)
    except Exception as e:
        logger.error(f"Error processing Excel file: {e}")
        if connection is not None:
            try:
                await registry.release_connection(connection_id, connection)
            except Exception as close_error:
                logger.error(f"Error closing database connection: {close_error}")
        raise

    duration = time.monotonic() - started
    logger.info(
        f"Successfully saved {totals.inserted} records to the database "
        f"({totals.errors} errors) in {duration:.2f} seconds"
    )
    return ImportResult(
        import_run_id=import_run_id,
        source_file=file_path.name,
        database_type=released.backend.value,
        connection_id=connection_id,
        inserted=totals.inserted,
        errors=totals.errors,
        duration_seconds=round(duration, 3),
    )
