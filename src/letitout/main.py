# src/letitout/main.py
"""Main entry point for the Let It Out local sync service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from letitout.api.v1 import (
    feed_router,
    moderation_router,
    mood_router,
    sync_router,
    vents_router,
)
from letitout.core.errors import NotFound, StorageUnavailable, ValidationFailure
from letitout.core.logging_setup import configure_logging
from letitout.core.settings import settings
from letitout.db.session import create_engine, create_session_factory, create_tables
from letitout.repositories.local_store import LocalStore
from letitout.services.engine import SyncEngine
from letitout.services.gateway import RemoteGateway

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Let It Out",
    description="Local-first sync core for anonymous venting and mood journaling",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(feed_router, prefix="/api/v1")
app.include_router(vents_router, prefix="/api/v1")
app.include_router(moderation_router, prefix="/api/v1")
app.include_router(mood_router, prefix="/api/v1")
app.include_router(sync_router, prefix="/api/v1")


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": f"{exc.entity} not found"},
    )


@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


@app.exception_handler(StorageUnavailable)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailable) -> JSONResponse:
    logger.error("Request %s failed: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Local storage is unavailable"},
    )


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging(settings.log_level)
    db_engine = create_engine()
    await create_tables(db_engine)
    engine = SyncEngine(LocalStore(create_session_factory(db_engine)), RemoteGateway())
    await engine.start()
    app.state.db_engine = db_engine
    app.state.engine = engine
    logger.info(
        "Sync engine started (backend %s)",
        settings.api_base_url if settings.remote_enabled else "not configured",
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    engine: SyncEngine | None = getattr(app.state, "engine", None)
    if engine:
        await engine.stop()
    db_engine = getattr(app.state, "db_engine", None)
    if db_engine is not None:
        await db_engine.dispose()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("letitout.main:app", host="127.0.0.1", port=8000, reload=settings.debug)
