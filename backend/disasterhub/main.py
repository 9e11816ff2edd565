"""
DisasterHub Backend — FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() wires middleware, exception handlers
       and routers; lifespan() handles startup and shutdown.
Who:   uvicorn (`uvicorn disasterhub.main:app`) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                        FastAPI App                           │
    │                                                              │
    │  Middleware Chain:                                           │
    │  ┌────────────┐ ┌──────────┐ ┌─────────┐ ┌──────┐ ┌──────┐   │
    │  │ Rate Limit │→│  Req ID  │→│ Logging │→│ GZip │→│ CORS │   │
    │  └────────────┘ └──────────┘ └─────────┘ └──────┘ └──────┘   │
    │                                                              │
    │  Routes (under /api):                                        │
    │  auth · disasters · notifications · files · ws · health      │
    │                                                              │
    │  Exception Handlers:                                         │
    │  Validation/Conflict→400 │ Auth→401 │ Forbidden→403 │        │
    │  NotFound→404 │ Database/FileStorage/unexpected→500          │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Validate configuration (logged, not fatal)
    3. Create the storage directory; create tables on SQLite
    4. Apply the realtime toggle; bootstrap the admin account

    Shutdown:
    1. Dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from disasterhub import __version__
from disasterhub.config import settings
from disasterhub.database import async_session_factory, create_all_tables, dispose_engine, engine
from disasterhub.exceptions import (
    AccountDisabledError,
    ConflictError,
    DatabaseError,
    DisasterHubError,
    FileStorageError,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from disasterhub.middleware.logging import RequestLoggingMiddleware
from disasterhub.middleware.rate_limit import RateLimitMiddleware
from disasterhub.middleware.request_id import RequestIDMiddleware, request_id_var
from disasterhub.routes import auth, disasters, files, health, notifications, realtime
from disasterhub.schemas.common import field_errors
from disasterhub.services.auth_service import auth_service
from disasterhub.services.realtime import realtime_hub

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, before any other initialization.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are noisy at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("DisasterHub Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Not fatal: the API still serves, health checks still answer
        logger.error("Configuration error: %s", str(e))

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())

    if engine.dialect.name == "sqlite":
        # PostgreSQL schemas are managed by Alembic
        await create_all_tables()
        logger.info("SQLite schema ensured")

    realtime_hub.enabled = settings.realtime_enabled
    logger.info("Realtime channel: %s", "enabled" if realtime_hub.enabled else "disabled")

    try:
        async with async_session_factory() as db:
            await auth_service.ensure_bootstrap_admin(db)
    except Exception as e:
        logger.error("Bootstrap admin could not be created: %s", str(e), exc_info=True)

    logger.info("Server ready at http://%s:%d%s", settings.backend_host, settings.backend_port, settings.api_prefix)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("DisasterHub Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build the `{error, message, details?, request_id}` body every error uses."""
    content: Dict[str, Any] = {"error": error, "message": message}
    if details:
        content["details"] = details
    content["request_id"] = request_id_var.get("") or None
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to HTTP responses.

    Handler hierarchy (most specific class wins):
        ValidationError, RequestValidationError → 400 validation_error
        ConflictError                           → 400 conflict
        AccountDisabledError                    → 401 account_disabled
        UnauthenticatedError                    → 401 unauthenticated
        ForbiddenError                          → 403 forbidden
        NotFoundError                           → 404 not_found
        DatabaseError, FileStorageError         → 500 server_error
        DisasterHubError (base)                 → 500 server_error
        HTTPException (routing: 404/405)        → its own status
        Exception (fallback)                    → 500 internal_server_error

    Internal details (stack traces, SQL, paths) are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        details = {"errors": exc.errors} if exc.errors else None
        return error_response(400, "validation_error", exc.message, details)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        # loc starts with "body", "query" or "path"
        errors = field_errors(exc.errors(), skip_prefix=1)
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), errors)
        return error_response(400, "validation_error", "Validation failed", {"errors": errors})

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        logger.info("[%s] Conflict: %s", request_id_var.get(""), exc.message)
        return error_response(400, "conflict", exc.message)

    @app.exception_handler(AccountDisabledError)
    async def handle_account_disabled(request: Request, exc: AccountDisabledError):
        return error_response(401, "account_disabled", exc.message)

    @app.exception_handler(UnauthenticatedError)
    async def handle_unauthenticated(request: Request, exc: UnauthenticatedError):
        return error_response(
            401, "unauthenticated", exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(request: Request, exc: ForbiddenError):
        logger.info("[%s] Forbidden: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return error_response(403, "forbidden", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return error_response(404, "not_found", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error("[%s] File storage error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return error_response(500, "server_error", exc.message)

    @app.exception_handler(DisasterHubError)
    async def handle_application_error(request: Request, exc: DisasterHubError):
        logger.error("[%s] Unhandled application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        error = "not_found" if exc.status_code == 404 else "http_error"
        return error_response(exc.status_code, error, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Assemble middleware, exception handlers and routers into a new app."""
    app = FastAPI(
        title="DisasterHub API",
        description=(
            "Disaster reporting and volunteer coordination. Users report disasters, "
            "volunteers accept and resolve them, admins manage accounts, and everyone "
            "involved receives notifications."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Executed in reverse order of addition: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    for module in (auth, disasters, notifications, files, realtime, health):
        app.include_router(module.router, prefix=settings.api_prefix)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()
