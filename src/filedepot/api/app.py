"""FastAPI application factory for FileDepot."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from filedepot import __version__
from filedepot.api.deps import build_depot, init_depot, reset_depot
from filedepot.api.errors import register_exception_handlers
from filedepot.api.middleware import (
    RateLimiter,
    RateLimitMiddleware,
    RequestBodyLimitMiddleware,
    RequestTimingMiddleware,
)
from filedepot.api.routers import files
from filedepot.api.schemas import HealthResponse
from filedepot.settings import Settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Create the upload root and a fresh (empty) index for this process."""
    settings: Settings = app.state.settings
    depot = build_depot(settings)
    depot.store.root.mkdir(parents=True, exist_ok=True)
    init_depot(depot)
    logger.info("Serving uploads from %s", depot.store.root)
    try:
        yield
    finally:
        reset_depot()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="FileDepot",
        description="Upload files in batches and load them back by URI.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    register_exception_handlers(app)

    # Middleware (last added runs first)
    app.add_middleware(
        RequestBodyLimitMiddleware,
        max_file_size=settings.max_file_size,
        max_files=settings.max_files,
    )
    if settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            limiter=RateLimiter(
                {"upload": settings.upload_rate_limit, "download": settings.download_rate_limit},
                window_seconds=settings.rate_limit_window_seconds,
            ),
            window_seconds=settings.rate_limit_window_seconds,
        )
    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_middleware(RequestTimingMiddleware)

    app.include_router(files.router, prefix="/api", tags=["files"])
    app.include_router(files.uploads_router, prefix="/uploads", tags=["files"])

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    return app


def main() -> None:
    """Run the REST API server using settings from environment / .env file."""
    settings = Settings()

    logging.basicConfig(level=settings.log_level.upper())
    logger.info(
        "FileDepot API Server v%s starting (host=%s, port=%d)",
        __version__, settings.api_server_host, settings.effective_port,
    )

    uvicorn.run(
        "filedepot.api.app:create_app",
        factory=True,
        host=settings.api_server_host,
        port=settings.effective_port,
        log_level=settings.log_level.lower(),
    )
