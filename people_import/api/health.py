"""Health check endpoint — reports backend status and cached connections."""

from fastapi import APIRouter, Depends

from people_import.api.deps import get_registry
from people_import.core.config import settings
from people_import.core.database import ConnectionRegistry

router = APIRouter()


@router.get("/health")
async def health_check(registry: ConnectionRegistry = Depends(get_registry)):
    """Check backend status and list the connections currently cached."""
    return {
        "status": "ok",
        "database_type": settings.db_type,
        "connections": registry.active_connection_ids(),
    }
