"""Database Adapter contract shared by the SQLite, MySQL and PostgreSQL backends.

Every adapter creates the ``people`` table, inserts records with per-record
error isolation inside one transaction, and releases its engine handle.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping, Sequence

from people_import.core.models import SaveResult

logger = logging.getLogger(__name__)

TABLE_NAME = "people"
CORE_COLUMNS = ("external_id", "first_name", "last_name", "birth_date", "status")
REQUIRED_COLUMNS = CORE_COLUMNS + ("created_at", "additional_data")

# Client/server engines: records per sub-batch of overlapped inserts
SUB_BATCH_SIZE = 100


def is_eligible(record: Mapping[str, Any]) -> bool:
    """A record needs a birth date, an external id, or both name components."""
    return bool(
        record.get("birth_date")
        or record.get("external_id")
        or (record.get("first_name") and record.get("last_name"))
    )


def insert_values(record: Mapping[str, Any]) -> tuple:
    """Positional INSERT values: the five core columns then additional_data.

    Absent core fields are stored as "", non-core keys are folded into one
    JSON object, or None when there are none.
    """
    core = tuple(record.get(column) or "" for column in CORE_COLUMNS)
    extra = {k: v for k, v in record.items() if k not in CORE_COLUMNS}
    additional_data = json.dumps(extra, ensure_ascii=False, default=str) if extra else None
    return core + (additional_data,)


def serialize_record(record: Mapping[str, Any]) -> str:
    return json.dumps(dict(record), ensure_ascii=False, default=str)


def sub_batches(records: Sequence[Any], size: int = SUB_BATCH_SIZE) -> Iterator[Sequence[Any]]:
    for start in range(0, len(records), size):
        yield records[start:start + size]


class InsertOutcome(str, Enum):
    INSERTED = "inserted"
    FAILED = "failed"
    SKIPPED = "skipped"


def tally(outcomes: Iterable[InsertOutcome], result: SaveResult) -> SaveResult:
    """Fold per-record outcomes into result. Skipped records count nowhere."""
    for outcome in outcomes:
        if outcome is InsertOutcome.INSERTED:
            result.inserted += 1
        elif outcome is InsertOutcome.FAILED:
            result.errors += 1
    return result


class DatabaseAdapter(ABC):
    """Uniform persistence contract. ``handle`` is the engine-specific object
    returned by ``initialize`` and passed back to ``save`` and ``close``."""

    backend: str = ""

    @abstractmethod
    async def initialize(self, config: Any) -> Any:
        """Open the engine handle and ensure the people table exists."""

    @abstractmethod
    async def save(self, handle: Any, records: Sequence[Mapping[str, Any]]) -> SaveResult:
        """Insert records; per-record failures are counted, not raised."""

    @abstractmethod
    async def close(self, handle: Any, force: bool = False) -> None:
        """Release the engine handle. ``force`` is only meaningful to pooled engines."""

    async def drain(self, force: bool = False) -> None:
        """Tear down any engine resources outliving individual handles."""

    def _skip_ineligible(self, record: Mapping[str, Any]) -> bool:
        if is_eligible(record):
            return False
        logger.warning(
            f"Skipping record with insufficient identifying information: {serialize_record(record)}"
        )
        return True

    def _log_record_error(self, error: Exception, record: Mapping[str, Any]) -> None:
        logger.error(f"Error inserting record: {error} person={serialize_record(record)}")

    def _empty_result(self) -> SaveResult:
        logger.warning("No people data to save")
        return SaveResult(inserted=0, errors=0)


class ClientServerAdapter(DatabaseAdapter):
    """Shared insert loop for the network engines.

    Records are processed in sub-batches of SUB_BATCH_SIZE: inserts within a
    sub-batch are issued together and awaited together, sub-batches run in
    order. Completion order inside a sub-batch is not defined.
    """

    async def _insert_sub_batches(self, handle: Any, records: Sequence[Mapping[str, Any]]) -> SaveResult:
        result = SaveResult()
        for batch in sub_batches(records):
            outcomes = await asyncio.gather(*(self._attempt_insert(handle, r) for r in batch))
            tally(outcomes, result)
        return result

    async def _attempt_insert(self, handle: Any, record: Mapping[str, Any]) -> InsertOutcome:
        if self._skip_ineligible(record):
            return InsertOutcome.SKIPPED
        try:
            await self._insert_record(handle, record)
        except Exception as e:
            self._log_record_error(e, record)
            return InsertOutcome.FAILED
        return InsertOutcome.INSERTED

    @abstractmethod
    async def _insert_record(self, handle: Any, record: Mapping[str, Any]) -> None:
        """Run one INSERT for record on handle."""
