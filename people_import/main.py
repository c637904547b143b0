"""People Import service — FastAPI application entry point.

Creates the connection registry on startup, drains every connection and
pool on shutdown, and registers the API routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from people_import.api import health, imports, people
from people_import.core.config import settings
from people_import.core.database import ConnectionRegistry

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the connection registry for the lifetime of the process."""
    logger.info("Starting People Import backend...")
    app.state.registry = ConnectionRegistry()
    logger.info("People Import backend ready")
    yield

    logger.info("Shutting down People Import backend...")
    await app.state.registry.close_all_connections(force=True)
    logger.info("People Import backend stopped")


app = FastAPI(
    title="People Import",
    version="0.1.0",
    description="Imports multilingual people spreadsheets into SQLite, "
                "MySQL or PostgreSQL.",
    lifespan=lifespan,
)

app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(imports.router, prefix="/api", tags=["imports"])
app.include_router(people.router, prefix="/api", tags=["people"])
