"""
ScentMatch Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting, error mapping,
       and ownership of process-wide resources (database, notifier).
How:   create_app() returns a configured FastAPI instance. Resources passed
       in (tests) are used as-is; missing ones are built from settings in
       the lifespan handler, which also disposes what it built.
Who:   uvicorn (`uvicorn scentmatch.main:app`) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                    FastAPI App                       │
    │  Middleware: RateLimit → RequestID → Logging → CORS  │
    │  Routes:     /auth/*   /perfumes   /notes   /health  │
    │  Errors:     400 │ 401 │ 404 │ 409 │ 429 │ 500       │
    │  State:      app.state.database, app.state.notifier  │
    └──────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from scentmatch import __version__
from scentmatch.config import settings
from scentmatch.database import Database
from scentmatch.exceptions import DatabaseError, ScentMatchError
from scentmatch.middleware.logging import RequestLoggingMiddleware
from scentmatch.middleware.rate_limit import RateLimitMiddleware
from scentmatch.middleware.request_id import RequestIDMiddleware, request_id_var
from scentmatch.routes import auth, catalog, health
from scentmatch.services.notifier import LoggingNotifier, Notifier

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "Internal server error"


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure process-wide logging once at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s on stdout.
    Third-party loggers that log every query/connection are raised to WARNING.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
        1. Setup logging
        2. Report unsafe production configuration
        3. Open the database unless one was injected
    Shutdown:
        Dispose the database if this lifespan opened it
    """
    setup_logging()
    logger.info("ScentMatch Backend %s starting up (environment=%s)", __version__, settings.environment)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))

    owns_database = app.state.database is None
    if owns_database:
        app.state.database = Database.from_settings(settings)
    if settings.otp_code_in_responses:
        logger.warning("Login codes are returned in API responses (EXPOSE_OTP_CODE=true)")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    logger.info("ScentMatch Backend shutting down...")
    if owns_database:
        await app.state.database.dispose()
        app.state.database = None
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": message,
            "requestId": request_id_var.get(""),
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to `{"success": false, "error": ...}` responses.

    Handler hierarchy:
        RequestValidationError → 400 (malformed JSON body / wrong field types)
        DatabaseError          → 500, generic message, context logged
        ScentMatchError        → exc.status_code with exc.message
        Exception              → 500, generic message, stack trace logged

    Internal details (SQL, constraint names, stack traces) are only logged.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = "Invalid request body"
        if location:
            message = f"Invalid request: {location} {first.get('msg', 'is invalid')}".strip()
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), errors)
        return _error_response(400, message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(500, GENERIC_SERVER_ERROR)

    @app.exception_handler(ScentMatchError)
    async def handle_app_error(request: Request, exc: ScentMatchError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
            return _error_response(exc.status_code, GENERIC_SERVER_ERROR)
        logger.info("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        headers = None
        if getattr(exc, "retry_after", None):
            headers = {"Retry-After": str(exc.retry_after)}
        return _error_response(exc.status_code, exc.message, headers=headers)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=exc,
        )
        return _error_response(500, GENERIC_SERVER_ERROR)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    database: Optional[Database] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        database: Pre-built Database (tests). None → built from settings at startup.
        notifier: Login code delivery. None → LoggingNotifier (development).
    """
    app = FastAPI(
        title="ScentMatch API",
        description=(
            "Perfume recommendation backend: passwordless email/phone login "
            "and the perfume / scent-note catalog."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.database = database
    app.state.notifier = notifier or LoggingNotifier()

    # Middleware executes in REVERSE order of addition:
    # RateLimit → RequestID → Logging → GZip → CORS → route
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,  # the session cookie
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(catalog.router)
    app.include_router(health.router)

    return app


app = create_app()
