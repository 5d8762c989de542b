"""
PenguinWatch Backend - FastAPI Application Factory
====================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app(settings) builds the database handle and
       services for that settings object, registers middleware, exception
       handlers and routers, and returns the app.
Who:   uvicorn (`uvicorn penguinwatch.main:app`) and the test suite, which
       builds one isolated app per test.

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                      FastAPI App                        │
    │                                                         │
    │  app.state: settings, db (Database), image_service,     │
    │             observation_service, stats_service          │
    │                                                         │
    │  Middleware: Request ID → Logging → GZip → CORS         │
    │                                                         │
    │  Routes: /api/observations[/{id}]  /api/stats           │
    │          /api/location-metrics  /uploads/{name}  /health│
    │                                                         │
    │  Exception Handlers:                                    │
    │    ValidationError / RequestValidationError → 400       │
    │    NotFoundError → 404   HTTPException → its status     │
    │    FileStorageError / DatabaseError / Exception → 500   │
    └─────────────────────────────────────────────────────────┘

Error bodies:
    400: {"error": [{"path": [...], "message": "...", "code": "..."}]}
    other: {"error": {"message": "...", "status": 404, "timestamp": "..."}}

Lifecycle:
    Startup:  logging, upload directory, optional schema creation, DB ping
    Shutdown: dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from penguinwatch import __version__
from penguinwatch.config import Settings, settings as default_settings
from penguinwatch.database import Database
from penguinwatch.exceptions import PenguinWatchError, ValidationError
from penguinwatch.middleware.logging import RequestLoggingMiddleware
from penguinwatch.middleware.request_id import RequestIDMiddleware, request_id_var
from penguinwatch.routes import health, observations, stats, uploads
from penguinwatch.schemas.observation import format_validation_errors
from penguinwatch.services.image_service import ImageService
from penguinwatch.services.observation_service import ObservationService
from penguinwatch.services.stats_service import StatsService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(settings: Settings) -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during app startup, before any other initialization.
    """
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )

    # Third-party libraries log every operation at DEBUG/INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    db: Database = app.state.db

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings)
    logger.info("=" * 60)
    logger.info("PenguinWatch Backend starting up...")

    uploads_dir = Path(settings.upload_dir)
    uploads_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Upload directory: %s", uploads_dir.resolve())

    if settings.auto_create_tables:
        await db.create_all()

    if await db.ping():
        logger.info("Database connection established")
    else:
        # Keep serving: /health reports the outage and requests get 500s
        logger.error("Database is unreachable; check DATABASE_URL")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("PenguinWatch Backend shutting down...")
    await db.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_envelope(message: str, status: int) -> dict:
    """Body for every non-validation error response."""
    return {
        "error": {
            "message": message,
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        ValidationError          → 400 {"error": [field errors]}
        RequestValidationError   → 400 {"error": [field errors]} (bad path ids, form parts)
        PenguinWatchError        → exc.status_code envelope (404 / 500)
        StarletteHTTPException   → exc.status_code envelope (unknown route, bad method)
        Exception (fallback)     → 500 envelope with a generic message

    Context dicts and stack traces are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s %s", rid, exc.message, exc.errors)
        return JSONResponse(status_code=400, content={"error": exc.errors})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        rid = request_id_var.get("")
        errors = format_validation_errors(list(exc.errors()))
        logger.warning("[%s] Request validation error: %s", rid, errors)
        return JSONResponse(status_code=400, content={"error": errors})

    @app.exception_handler(PenguinWatchError)
    async def handle_app_error(request: Request, exc: PenguinWatchError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(exc.message, exc.status_code),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(str(exc.detail), exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_envelope("An unexpected error occurred. Please try again.", 500),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration to build against; the environment-derived
                  default is used when omitted.

    Returns:
        Configured FastAPI instance. Its database handle and services live on
        app.state, so two apps never share a connection pool or upload dir.
    """
    settings = settings or default_settings

    app = FastAPI(
        title="PenguinWatch API",
        description=(
            "Data entry and review of penguin colony observations: counts, notes "
            "and optional photos per named site, plus dashboard aggregates."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Per-application state ─────────────────────────────────────────────
    image_service = ImageService(settings.upload_dir, settings.max_image_size)
    app.state.settings = settings
    app.state.db = Database(settings)
    app.state.image_service = image_service
    app.state.observation_service = ObservationService(image_service)
    app.state.stats_service = StatsService()

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = first to execute
    origins = settings.cors_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(observations.router)
    app.include_router(stats.router)
    app.include_router(uploads.router)
    app.include_router(health.router)

    return app


# uvicorn expects `penguinwatch.main:app` to be importable
app = create_app()
