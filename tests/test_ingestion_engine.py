"""Tests for the import orchestrator — real workbooks, in-memory adapters."""

import asyncio
import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeAdapter, create_test_workbook
from people_import.core.database import ConnectionRegistry
from people_import.core.errors import DataInsufficientError, PersistenceError
from people_import.core.ingestion_engine import import_file, should_stream, split_chunks
from people_import.core.models import BackendType, DatabaseOptions, ImportOptions


def _sqlite_options(**kwargs) -> ImportOptions:
    return ImportOptions(db_options=DatabaseOptions(type="sqlite", path="people.db"), **kwargs)


class TestShouldStream:
    def test_forced(self):
        assert should_stream(10, use_streaming=True, threshold_mb=10.0)

    def test_below_threshold(self):
        assert not should_stream(5 * 1024 * 1024, use_streaming=False, threshold_mb=10.0)

    def test_above_threshold(self):
        assert should_stream(11 * 1024 * 1024, use_streaming=False, threshold_mb=10.0)

    def test_exactly_at_threshold_is_not_streamed(self):
        assert not should_stream(10 * 1024 * 1024, use_streaming=False, threshold_mb=10.0)


class TestSplitChunks:
    def test_fits_in_one_chunk(self):
        records = list(range(500))
        assert split_chunks(records, 500) == [records]

    def test_consecutive_chunks(self):
        chunks = split_chunks(list(range(2000)), 500)
        assert [len(c) for c in chunks] == [500, 500, 500, 500]
        assert chunks[1][0] == 500

    def test_last_chunk_is_partial(self):
        assert [len(c) for c in split_chunks(list(range(7)), 3)] == [3, 3, 1]


class TestImportFile:
    @pytest.mark.asyncio
    async def test_small_file_single_save(self, french_workbook, fake_registry, fake_adapters):
        result = await import_file(french_workbook, _sqlite_options(), fake_registry)

        adapter = fake_adapters[BackendType.SQLITE]
        assert len(adapter.saved_batches) == 1
        assert result.inserted == 3
        assert result.errors == 0
        assert result.database_type == "sqlite"
        assert result.source_file == french_workbook.name
        assert result.import_run_id.startswith("ir_")

    @pytest.mark.asyncio
    async def test_large_import_is_chunked(self, tmp_path, fake_registry, fake_adapters):
        rows = [["matricule", "nom", "prenom"]]
        rows += [[f"ID{i:05d}", f"Last{i}", f"First{i}"] for i in range(2000)]
        path = create_test_workbook(tmp_path, rows)

        result = await import_file(path, _sqlite_options(chunk_size=500), fake_registry)

        batches = fake_adapters[BackendType.SQLITE].saved_batches
        assert [len(b) for b in batches] == [500, 500, 500, 500]
        assert batches[0][0]["external_id"] == "ID00000"
        assert batches[3][-1]["external_id"] == "ID01999"
        assert result.inserted == 2000

    @pytest.mark.asyncio
    async def test_connection_closed_after_success(self, french_workbook, fake_registry, fake_adapters):
        await import_file(french_workbook, _sqlite_options(), fake_registry)

        assert len(fake_adapters[BackendType.SQLITE].closed) == 1
        assert fake_registry.active_connection_ids() == []

    @pytest.mark.asyncio
    async def test_connection_closed_after_save_failure(self, french_workbook):
        adapter = FakeAdapter(fail_on_save=PersistenceError("Failed to commit transaction"))
        registry = ConnectionRegistry(adapters={backend: adapter for backend in BackendType})

        with pytest.raises(PersistenceError):
            await import_file(french_workbook, _sqlite_options(), registry)

        assert len(adapter.closed) == 1
        assert registry.active_connection_ids() == []

    @pytest.mark.asyncio
    async def test_parse_failure_never_opens_connection(self, tmp_path, fake_registry, fake_adapters):
        path = create_test_workbook(tmp_path, [["id", "name"]])

        with pytest.raises(DataInsufficientError):
            await import_file(path, _sqlite_options(), fake_registry)

        assert fake_adapters[BackendType.SQLITE].initialize_calls == []

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path, fake_registry):
        with pytest.raises(FileNotFoundError, match="Excel file not found"):
            await import_file(tmp_path / "absent.xlsx", _sqlite_options(), fake_registry)

    @pytest.mark.asyncio
    async def test_threshold_selects_streaming(self, french_workbook, fake_registry):
        parse = MagicMock(return_value=[{"external_id": "1"}])
        with patch("people_import.core.ingestion_engine.parse_excel", parse):
            await import_file(
                french_workbook,
                _sqlite_options(stream_threshold_mb=0.0, read_chunk_size=250),
                fake_registry,
            )

        parse.assert_called_once_with(french_workbook, True, 250)

    @pytest.mark.asyncio
    async def test_small_file_reads_whole_sheet(self, french_workbook, fake_registry):
        parse = MagicMock(return_value=[{"external_id": "1"}])
        with patch("people_import.core.ingestion_engine.parse_excel", parse):
            await import_file(french_workbook, _sqlite_options(), fake_registry)

        assert parse.call_args.args[1] is False

    @pytest.mark.asyncio
    async def test_ineligible_records_are_not_counted(self, tmp_path, fake_registry):
        path = create_test_workbook(tmp_path, [["id", "status"], ["1", "Actif"], [None, "Inactif"]])

        result = await import_file(path, _sqlite_options(), fake_registry)

        assert (result.inserted, result.errors) == (1, 0)


class TestImportFileSQLite:
    @pytest.mark.asyncio
    async def test_end_to_end(self, french_workbook, tmp_path):
        db_path = tmp_path / "people.db"
        options = ImportOptions(db_options=DatabaseOptions(type="sqlite", path=str(db_path)))
        registry = ConnectionRegistry()

        result = await import_file(french_workbook, options, registry)
        await registry.close_all_connections()

        assert (result.inserted, result.errors) == (3, 0)
        assert db_path.exists()

    @pytest.mark.asyncio
    async def test_concurrent_imports_share_one_connection(self, tmp_path):
        first = create_test_workbook(tmp_path, [["id"]] + [[f"A{i}"] for i in range(300)], name="a.xlsx")
        second = create_test_workbook(tmp_path, [["id"]] + [[f"B{i}"] for i in range(300)], name="b.xlsx")
        db_path = tmp_path / "shared.db"
        options = ImportOptions(
            db_options=DatabaseOptions(type="sqlite", path=str(db_path)),
            chunk_size=50,
        )
        registry = ConnectionRegistry()

        results = await asyncio.gather(
            import_file(first, options, registry),
            import_file(second, options, registry),
        )
        await registry.close_all_connections()

        assert [(r.inserted, r.errors) for r in results] == [(300, 0), (300, 0)]
        assert registry.active_connection_ids() == []
        conn = sqlite3.connect(db_path)
        try:
            assert conn.execute("SELECT COUNT(*) FROM people").fetchone()[0] == 600
        finally:
            conn.close()

    @pytest.mark.asyncio
    async def test_failed_import_leaves_concurrent_import_running(self, tmp_path, french_workbook, fake_adapters):
        registry = ConnectionRegistry(adapters=fake_adapters)
        header_only = create_test_workbook(tmp_path, [["id", "name"]], name="empty.xlsx")

        results = await asyncio.gather(
            import_file(french_workbook, _sqlite_options(), registry),
            import_file(header_only, _sqlite_options(), registry),
            return_exceptions=True,
        )

        assert results[0].inserted == 3
        assert isinstance(results[1], DataInsufficientError)
        assert len(fake_adapters[BackendType.SQLITE].closed) == 1
