"""Pydantic models for backend options, import options and API responses."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class BackendType(str, Enum):
    SQLITE = "sqlite"
    MYSQL = "mysql"
    POSTGRES = "postgres"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BackendType":
        """Resolve a configured backend tag. Unknown or missing tags select SQLite."""
        tag = (value or "").strip().lower()
        if tag in ("postgres", "postgresql"):
            return cls.POSTGRES
        if tag == "mysql":
            return cls.MYSQL
        return cls.SQLITE


class ConnectionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"


# --- Backend options ---


class DatabaseConfig(BaseModel):
    """Connection parameters for the client/server engines."""
    host: str = "localhost"
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None
    database: str = "people"
    pool_size: int = 10


class DatabaseOptions(BaseModel):
    type: Optional[str] = None
    path: Optional[str] = None
    config: Optional[DatabaseConfig] = None


class ImportOptions(BaseModel):
    connection_id: str = "default"
    db_options: DatabaseOptions = Field(default_factory=DatabaseOptions)
    use_streaming: bool = False
    stream_threshold_mb: Optional[float] = None
    chunk_size: Optional[int] = None
    read_chunk_size: Optional[int] = None


# --- Results ---


class SaveResult(BaseModel):
    inserted: int = 0
    errors: int = 0


class ImportResult(BaseModel):
    import_run_id: str
    source_file: str
    database_type: str
    connection_id: str
    inserted: int = 0
    errors: int = 0
    duration_seconds: float = 0.0


# --- API schemas ---


class NormalizeRequest(BaseModel):
    records: list[dict[str, Any]]


class NormalizeResponse(BaseModel):
    records: list[dict[str, Any]]
