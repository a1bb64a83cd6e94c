# src/storyweave/main.py
"""Main entry point for the StoryWeave application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from storyweave.api.v1 import (
    content_router,
    sessions_router,
    stories_router,
    submissions_router,
    system_router,
)
from storyweave.core.settings import settings
from storyweave.services.engine import get_engine, shutdown_engine
from storyweave.services.sweeper import ExpirySweepWorker
from storyweave.storage.kv import get_kv_store

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="StoryWeave API",
    description="Collaborative storytelling with reputation-weighted voting",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(submissions_router, prefix="/api/v1")
app.include_router(sessions_router, prefix="/api/v1")
app.include_router(content_router, prefix="/api/v1")
app.include_router(stories_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if settings.expiry_sweep_enabled:
        worker = ExpirySweepWorker(get_engine())
        await worker.start()
        app.state.sweep_worker = worker
        logger.info("Expiry sweep running every %ss", worker.interval)
    else:
        app.state.sweep_worker = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: ExpirySweepWorker | None = getattr(app.state, "sweep_worker", None)
    if worker:
        await worker.stop()
    await shutdown_engine()
    await get_kv_store().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "StoryWeave API",
        "version": settings.app_version,
        "description": "Collaborative storytelling with reputation-weighted voting",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("storyweave.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
