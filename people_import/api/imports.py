"""Import endpoint — upload a spreadsheet and persist its people records."""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from people_import.api.deps import get_registry
from people_import.core.config import settings
from people_import.core.database import DEFAULT_CONNECTION_ID, ConnectionRegistry
from people_import.core.errors import DataInsufficientError, PersistenceError, SpreadsheetReadError
from people_import.core.ingestion_engine import import_file
from people_import.core.models import DatabaseOptions, ImportOptions, ImportResult

logger = logging.getLogger(__name__)

router = APIRouter()

SUPPORTED_SUFFIXES = (".xlsx", ".xlsm")


@router.post("/imports", response_model=ImportResult)
async def create_import(
    file: UploadFile = File(...),
    db_type: Optional[str] = Form(None),
    connection_id: str = Form(DEFAULT_CONNECTION_ID),
    use_streaming: bool = Form(False),
    registry: ConnectionRegistry = Depends(get_registry),
):
    """Upload an Excel file and import its rows into the people table.

    - **file**: Excel workbook (.xlsx, .xlsm); only the first sheet is read
    - **db_type**: sqlite, mysql or postgres (defaults to DB_TYPE)
    - **connection_id**: registry key of the connection to use
    - **use_streaming**: force the chunked read path
    """
    if not file.filename or not file.filename.lower().endswith(SUPPORTED_SUFFIXES):
        raise HTTPException(status_code=400, detail="Only Excel files (.xlsx, .xlsm) are supported")

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    file_path = upload_dir / Path(file.filename).name
    content = await file.read()
    file_path.write_bytes(content)

    options = ImportOptions(
        connection_id=connection_id,
        db_options=DatabaseOptions(type=db_type),
        use_streaming=use_streaming,
    )
    try:
        return await import_file(file_path, options, registry)
    except (DataInsufficientError, SpreadsheetReadError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PersistenceError as e:
        logger.error(f"Import failed: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail=f"Import failed: {e}")
