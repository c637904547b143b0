"""Excel Parser — reads the first worksheet and produces canonical person records.

Parses Excel files using openpyxl in read-only mode. Small files are read
whole; large files go through the streaming path, which reads the header
row once and then re-reads the sheet in consecutive row windows. Both paths
funnel rows through the Record Shaper.
"""

import logging
from pathlib import Path
from typing import Any, Iterator, Optional

import openpyxl

from people_import.core.errors import DataInsufficientError, SpreadsheetReadError
from people_import.core.record_shaper import check_headers, map_headers, shape_rows, shape_sheet

logger = logging.getLogger(__name__)


def _open_workbook(file_path: Path):
    """Open a workbook for values-only reading (no formulas, no styles)."""
    return openpyxl.load_workbook(file_path, read_only=True, data_only=True)


def _trim_row(row: tuple) -> list[Any]:
    """Drop trailing empty cells so rows carry only their populated width."""
    values = list(row)
    while values and values[-1] is None:
        values.pop()
    return values


def read_rows(file_path: Path) -> list[list[Any]]:
    """Read the whole first sheet as a list of rows of raw cell values."""
    wb = _open_workbook(file_path)
    try:
        ws = wb.worksheets[0]
        return [_trim_row(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def read_header(file_path: Path) -> list[Any]:
    """Read only the header row of the first sheet."""
    wb = _open_workbook(file_path)
    try:
        ws = wb.worksheets[0]
        for row in ws.iter_rows(min_row=1, max_row=1, values_only=True):
            return _trim_row(row)
        return []
    finally:
        wb.close()


def count_rows(file_path: Path) -> int:
    """Total number of rows in the first sheet, header included.

    Uses the sheet dimension metadata; when the file carries none the rows
    are counted by a values-only scan.
    """
    wb = _open_workbook(file_path)
    try:
        ws = wb.worksheets[0]
        if ws.max_row is not None:
            return ws.max_row
        return sum(1 for _ in ws.iter_rows(values_only=True))
    finally:
        wb.close()


def iter_row_windows(
    file_path: Path,
    chunk_size: int,
    total_rows: Optional[int] = None,
) -> Iterator[list[list[Any]]]:
    """Yield data rows (header excluded) in windows of at most chunk_size rows."""
    if total_rows is None:
        total_rows = count_rows(file_path)

    wb = _open_workbook(file_path)
    try:
        ws = wb.worksheets[0]
        # openpyxl rows are 1-based; row 1 is the header
        for start_row in range(2, total_rows + 1, chunk_size):
            end_row = min(start_row + chunk_size - 1, total_rows)
            logger.info(f"Processing rows {start_row - 1} to {end_row - 1}")
            yield [
                _trim_row(row)
                for row in ws.iter_rows(min_row=start_row, max_row=end_row, values_only=True)
            ]
    finally:
        wb.close()


def _parse_whole(file_path: Path) -> list[dict[str, str]]:
    grid = read_rows(file_path)
    return shape_sheet(grid)


def _parse_streaming(file_path: Path, chunk_size: int) -> list[dict[str, str]]:
    headers = read_header(file_path)
    total_rows = count_rows(file_path)
    if not headers or total_rows < 2:
        raise DataInsufficientError(
            "Excel file does not contain enough data. "
            "Expected at least a header row and one data row."
        )

    mapped = map_headers(headers)
    check_headers(mapped)

    logger.info(f"Excel file has {total_rows} rows, processing in chunks of {chunk_size}")
    records: list[dict[str, str]] = []
    for window in iter_row_windows(file_path, chunk_size, total_rows):
        records.extend(shape_rows(mapped, window))
    return records


def parse_excel(
    file_path: Path,
    use_streaming: bool = False,
    chunk_size: int = 1000,
) -> list[dict[str, str]]:
    """Parse an Excel file into canonical person records.

    Raises DataInsufficientError when the sheet cannot identify people and
    SpreadsheetReadError when the file cannot be read at all.
    """
    mode = "streaming" if use_streaming else "whole-sheet"
    logger.info(f"Parsing Excel file ({mode}): {file_path}")

    try:
        if use_streaming:
            records = _parse_streaming(file_path, chunk_size)
        else:
            records = _parse_whole(file_path)
    except DataInsufficientError as e:
        logger.error(f"Error parsing Excel file: {e}")
        raise
    except Exception as e:
        logger.error(f"Error parsing Excel file: {e}")
        raise SpreadsheetReadError(f"Failed to parse Excel file: {e}") from e

    logger.info(f"Successfully parsed {len(records)} records from Excel file")
    return records
