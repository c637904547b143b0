"""Record Shaper — turns header-mapped sheet rows into canonical person records.

Headers are trimmed and run through the Header Normalizer once; every data
row is then zipped against the mapped headers. Blank rows are dropped and a
full ``name`` is derived from ``last_name``/``first_name`` (surname first).
"""

import logging
from datetime import date, datetime, time
from typing import Any, Iterable, Optional, Sequence

from people_import.core.errors import DataInsufficientError
from people_import.core.header_mapping import normalize_header

logger = logging.getLogger(__name__)

STANDARD_HEADERS = ("external_id", "last_name", "first_name", "birth_date", "status")


def _stringify_cell(value: Any) -> str:
    """Render a raw cell value as the display string stored in a record."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_blank_row(row: Sequence[Any]) -> bool:
    return all(cell is None or cell == "" for cell in row)


def _clean_header(header: Any) -> str:
    if header is None:
        return ""
    return str(header).strip()


def map_headers(headers: Sequence[Any]) -> list[str]:
    """Trim and normalize headers, preserving order and length."""
    original = [_clean_header(h) for h in headers]
    mapped = [normalize_header(h) for h in original]
    logger.debug(f"Original headers: {original}")
    logger.debug(f"Mapped headers: {mapped}")
    return mapped


def check_headers(mapped_headers: Sequence[str]) -> None:
    """Validate that mapped headers can identify a person.

    Missing standard headers only produce a warning.
    """
    missing = [h for h in STANDARD_HEADERS if h not in mapped_headers]
    if missing:
        logger.warning(f"Excel file missing some standard headers: {', '.join(missing)}")
        logger.info("Will attempt to process with available fields")

    has_name = "name" in mapped_headers
    has_components = "first_name" in mapped_headers and "last_name" in mapped_headers
    has_email = "email" in mapped_headers
    has_id = "external_id" in mapped_headers

    if not (has_name or has_components or has_email or has_id):
        raise DataInsufficientError(
            "Excel file does not contain enough information to identify people. "
            "Need at least one of: name, first_name+last_name, email, or external_id."
        )


def _derive_name(record: dict[str, str], components_only: bool) -> None:
    """Fill ``name`` as "{last_name} {first_name}" when it is missing.

    When the sheet has last/first name columns but no name column, the name
    is built from those cells even if one of them is empty.
    """
    if record.get("name"):
        return
    last_name = record.get("last_name", "")
    first_name = record.get("first_name", "")
    both_cells_present = "last_name" in record and "first_name" in record
    if (first_name and last_name) or (components_only and both_cells_present):
        record["name"] = f"{last_name} {first_name}".strip()


def shape_rows(mapped_headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> list[dict[str, str]]:
    """Build one canonical record per non-blank row, in input order."""
    components_only = (
        "name" not in mapped_headers
        and "first_name" in mapped_headers
        and "last_name" in mapped_headers
    )

    records = []
    for row in rows:
        if not row or _is_blank_row(row):
            continue

        record: dict[str, str] = {}
        for index, header in enumerate(mapped_headers):
            if index >= len(row) or not header:
                continue
            record[header] = _stringify_cell(row[index])

        _derive_name(record, components_only)
        records.append(record)

    return records


def shape(headers: Optional[Sequence[Any]], rows: Sequence[Sequence[Any]]) -> list[dict[str, str]]:
    """Shape a header row plus data rows into canonical person records.

    Raises DataInsufficientError when there is no header or no data row, or
    when no mapped header can identify a person. No partial results.
    """
    input_rows = (1 if headers else 0) + len(rows)
    if not headers or input_rows < 2:
        raise DataInsufficientError(
            "Excel file does not contain enough data. "
            "Expected at least a header row and one data row."
        )

    mapped = map_headers(headers)
    check_headers(mapped)
    return shape_rows(mapped, rows)


def shape_sheet(grid: Sequence[Sequence[Any]]) -> list[dict[str, str]]:
    """Shape a row-major cell grid whose first row is the header row."""
    if not grid:
        return shape(None, [])
    return shape(grid[0], grid[1:])
