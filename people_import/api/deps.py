"""FastAPI dependencies for per-app shared state."""

from fastapi import Request

from people_import.core.database import ConnectionRegistry


async def get_registry(request: Request) -> ConnectionRegistry:
    """Return the process-wide connection registry created in the app lifespan."""
    return request.app.state.registry
