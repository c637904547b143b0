"""Tests for the Excel parser — uses programmatic openpyxl workbooks."""

from datetime import date, datetime

import pytest

from people_import.core.errors import DataInsufficientError, SpreadsheetReadError
from people_import.core.excel_parser import (
    count_rows,
    iter_row_windows,
    parse_excel,
    read_header,
    read_rows,
)
from conftest import FRENCH_ROWS, create_test_workbook


class TestReadRows:
    def test_reads_first_sheet_only(self, tmp_path):
        path = create_test_workbook(tmp_path, FRENCH_ROWS)
        rows = read_rows(path)
        assert rows[0] == FRENCH_ROWS[0]
        assert len(rows) == len(FRENCH_ROWS)

    def test_trailing_empty_cells_are_trimmed(self, tmp_path):
        path = create_test_workbook(tmp_path, [["id", "name", None], ["1", "Ann Lee", None]])
        assert read_rows(path)[1] == ["1", "Ann Lee"]

    def test_read_header(self, french_workbook):
        assert read_header(french_workbook) == FRENCH_ROWS[0]

    def test_count_rows_includes_header(self, french_workbook):
        assert count_rows(french_workbook) == 4


class TestIterRowWindows:
    def test_windows_cover_every_data_row(self, tmp_path):
        rows = [["id"]] + [[f"P{i}"] for i in range(7)]
        path = create_test_workbook(tmp_path, rows)

        windows = list(iter_row_windows(path, chunk_size=3))

        assert [len(w) for w in windows] == [3, 3, 1]
        assert [r[0] for w in windows for r in w] == [f"P{i}" for i in range(7)]


class TestParseExcel:
    def test_whole_sheet(self, french_workbook):
        records = parse_excel(french_workbook)

        assert len(records) == 3
        assert records[0] == {
            "external_id": "FRSE2X8S",
            "last_name": "Girard",
            "first_name": "David",
            "birth_date": "1984-09-21",
            "status": "Inactif",
            "name": "Girard David",
        }
        assert records[1]["birth_date"] == "03/13/1971"

    def test_streaming_matches_whole_sheet(self, tmp_path):
        rows = [["matricule", "nom", "prenom"]]
        rows += [[f"ID{i}", f"Last{i}", f"First{i}"] for i in range(11)]
        path = create_test_workbook(tmp_path, rows)

        whole = parse_excel(path, use_streaming=False)
        streamed = parse_excel(path, use_streaming=True, chunk_size=4)

        assert streamed == whole
        assert len(streamed) == 11

    def test_date_cells_render_as_iso(self, tmp_path):
        path = create_test_workbook(tmp_path, [
            ["id", "birth date"],
            ["1", date(1984, 9, 21)],
            ["2", datetime(1971, 3, 13, 0, 0)],
        ])

        records = parse_excel(path)

        assert records[0]["birth_date"] == "1984-09-21"
        assert records[1]["birth_date"] == "1971-03-13"

    def test_numeric_ids_render_without_fraction(self, tmp_path):
        path = create_test_workbook(tmp_path, [["id", "name"], [1001, "Ann Lee"]])
        assert parse_excel(path)[0]["external_id"] == "1001"

    @pytest.mark.parametrize("use_streaming", [False, True])
    def test_zero_cell_is_kept(self, tmp_path, use_streaming):
        path = create_test_workbook(tmp_path, [["id", "name"], [0, None]])

        records = parse_excel(path, use_streaming=use_streaming)

        assert records == [{"external_id": "0"}]

    def test_blank_rows_skipped(self, tmp_path):
        path = create_test_workbook(tmp_path, [
            ["id"], ["1"], [None], ["2"],
        ])
        assert [r["external_id"] for r in parse_excel(path)] == ["1", "2"]

    @pytest.mark.parametrize("use_streaming", [False, True])
    def test_header_only_sheet(self, tmp_path, use_streaming):
        path = create_test_workbook(tmp_path, [["id", "name"]])
        with pytest.raises(DataInsufficientError):
            parse_excel(path, use_streaming=use_streaming)

    @pytest.mark.parametrize("use_streaming", [False, True])
    def test_unidentifiable_sheet(self, tmp_path, use_streaming):
        path = create_test_workbook(tmp_path, [["phone", "city"], ["555", "Paris"]])
        with pytest.raises(DataInsufficientError, match="identify people"):
            parse_excel(path, use_streaming=use_streaming)

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "broken.xlsx"
        path.write_text("this is not a workbook")

        with pytest.raises(SpreadsheetReadError, match="Failed to parse Excel file"):
            parse_excel(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(SpreadsheetReadError):
            parse_excel(tmp_path / "absent.xlsx")
