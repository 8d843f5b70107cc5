"""
FastAPI application for the illustration version graph.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .db.base import init_database
from .logging_config import configure_logging
from .versioning.routes import router as illustrations_router

logger = structlog.get_logger()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging(settings)
    logger.info("service_starting", app_name=settings.app_name, environment=settings.environment)

    try:
        await init_database()
    except Exception:
        logger.exception("service_start_failed")
        raise

    yield

    logger.info("service_stopped")


app = FastAPI(
    title=settings.app_name,
    description="Version lineages of generated illustrations and their gallery view",
    version=importlib.metadata.version("illustration-versions"),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(illustrations_router)


@app.get("/health", tags=["system"])
async def health() -> dict:
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/version", tags=["system"])
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": importlib.metadata.version("illustration-versions")}
