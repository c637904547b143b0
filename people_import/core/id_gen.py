"""Import run identifiers, time-sortable via UUID v7."""

from uuid_extensions import uuid7

IMPORT_RUN_PREFIX = "ir_"


def generate_import_run_id() -> str:
    """Return an id like "ir_01926f4e8b7d7a8e9c0d1e2f3a4b5c6d".

    Ids sort by creation time, so log lines and results from consecutive
    imports of the same file order naturally.
    """
    return f"{IMPORT_RUN_PREFIX}{uuid7().hex}"
