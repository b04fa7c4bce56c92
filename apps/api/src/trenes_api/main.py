"""FastAPI application entry point."""

from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from trenes_api.config import get_settings
from trenes_api.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from trenes_api.routers.trenes import router as trenes_router
from trenes_api.services.feeds.cache import FeedCache, get_feed_cache, reset_feed_cache

logger = get_logger(__name__)

BANNER = (
    "Trenes API - datos GTFS-RT de Renfe\n"
    "\n"
    "Endpoints:\n"
    "  GET /api/trenes       trenes en circulación con retraso e incidencias\n"
    "  GET /api/incidencias  incidencias activas\n"
    "  GET /api/lineas       líneas con trenes en circulación\n"
    "  GET /health           estado del servicio\n"
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    setup_logging()
    settings = get_settings()
    logger.info(
        "Starting Trenes API",
        port=settings.port,
        cache_ttl_seconds=settings.cache_ttl_seconds,
    )

    yield

    reset_feed_cache()
    logger.info("Shutting down Trenes API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Merged Renfe GTFS-RT vehicle positions, trip delays and service alerts",
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        bind_request_context(request_id=request_id, path=request.url.path)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        clear_request_context()
        return response

    app.include_router(trenes_router)

    @app.get("/", response_class=PlainTextResponse, tags=["meta"])
    async def banner() -> str:
        """Plain-text service banner listing the available endpoints."""
        return BANNER

    @app.get("/health", tags=["meta"])
    async def health_check(cache: FeedCache = Depends(get_feed_cache)) -> dict[str, Any]:
        """Health check reporting cache age and the outcome of the last refresh."""
        settings = get_settings()
        snapshot = cache.snapshot
        feeds = {name: result.to_dict() for name, result in snapshot.feeds.items()} if snapshot else {}

        if snapshot is None:
            status = "starting"
        elif all(feed["status"] == "ok" for feed in feeds.values()):
            status = "healthy"
        else:
            status = "degraded"

        age = cache.age_seconds
        return {
            "service": settings.app_name,
            "status": status,
            "version": settings.app_version,
            "environment": settings.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                "cache": {
                    "ttlSeconds": cache.ttl_seconds,
                    "ageSeconds": round(age, 3) if age is not None else None,
                    "refreshCount": cache.refresh_count,
                    "lastFetchedAt": snapshot.timestamp_ms if snapshot else None,
                },
                "feeds": feeds,
            },
        }

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "timestamp": int(time.time() * 1000),
            },
        )

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app on the configured port."""
    settings = get_settings()
    uvicorn.run(
        "trenes_api.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
