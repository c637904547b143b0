"""Shared test fixtures for the people import test suite."""

from pathlib import Path
from typing import Any, Optional

import openpyxl
import pytest

from people_import.core.adapters.base import DatabaseAdapter, is_eligible
from people_import.core.database import ConnectionRegistry
from people_import.core.models import BackendType, SaveResult

FRENCH_ROWS = [
    ["matricule", "nom", "prenom", "datedenaissance", "status"],
    ["FRSE2X8S", "Girard", "David", "1984-09-21", "Inactif"],
    ["LKSTKRAH", "Thomas", "Rachel", "03/13/1971", "Actif"],
    ["ABC123XY", "Dupont", "Jean", "1990-05-15", "Actif"],
]


def create_test_workbook(directory: Path, rows: list[list], name: str = "people.xlsx") -> Path:
    """Write rows to the first sheet of a new workbook. First row is headers."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "People"
    for row in rows:
        ws.append(row)
    path = directory / name
    wb.save(path)
    wb.close()
    return path


class FakeAdapter(DatabaseAdapter):
    """In-memory adapter recording every call."""

    def __init__(self, backend: BackendType = BackendType.SQLITE, fail_on_save: Optional[Exception] = None):
        self.backend = backend.value
        self.fail_on_save = fail_on_save
        self.initialize_calls: list[Any] = []
        self.saved_batches: list[list[dict]] = []
        self.closed: list[tuple[Any, bool]] = []
        self.drained: list[bool] = []

    async def initialize(self, config: Any = None) -> Any:
        self.initialize_calls.append(config)
        return {"handle": len(self.initialize_calls)}

    async def save(self, handle: Any, records) -> SaveResult:
        if self.fail_on_save is not None:
            raise self.fail_on_save
        self.saved_batches.append(list(records))
        return SaveResult(inserted=sum(1 for r in records if is_eligible(r)), errors=0)

    async def close(self, handle: Any, force: bool = False) -> None:
        self.closed.append((handle, force))

    async def drain(self, force: bool = False) -> None:
        self.drained.append(force)


@pytest.fixture
def fake_adapters() -> dict[BackendType, FakeAdapter]:
    return {backend: FakeAdapter(backend) for backend in BackendType}


@pytest.fixture
def fake_registry(fake_adapters) -> ConnectionRegistry:
    return ConnectionRegistry(adapters=fake_adapters)


@pytest.fixture
def french_workbook(tmp_path) -> Path:
    return create_test_workbook(tmp_path, FRENCH_ROWS)
