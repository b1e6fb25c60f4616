"""OOH Mapper - record points and KML layers for out-of-home campaigns.

Main FastAPI application. Run with ``uvicorn app.main:app``.
"""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.config import settings
from app.errors import install_error_handlers
from app.routers import geo_router, layers_router, map_data_router
from mapper.context import build_context


def configure_logging() -> None:
    """Route loguru to stderr at the configured level."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if settings.debug else settings.log_level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    configure_logging()
    logger.info(f"{settings.app_name} starting")

    context = build_context(settings)
    app.state.context = context

    yield

    await context.aclose()
    logger.info(f"{settings.app_name} shutting down...")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Record-backed map points and KML layer management",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

# Include routers
app.include_router(map_data_router)
app.include_router(layers_router)
app.include_router(geo_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "operational",
        "version": "0.1.0",
        "system": settings.app_name,
    }
