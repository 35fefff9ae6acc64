"""
Music Journal Backend — FastAPI Application Factory
=====================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers, and routers.
       The lifespan opens the Database handle, builds the JournalStore and
       services, and disposes everything on shutdown.
Who:   uvicorn musicjournal.main:app

Lifecycle:
    Startup:
    1. Configure logging
    2. Validate ENCRYPTION_KEY (fatal if invalid)
    3. Open the database (fatal if unavailable) and create missing tables
    4. Build JournalStore, IdentityService, SpotifyAuthService on app.state

    Shutdown:
    1. Close the Spotify HTTP client
    2. Dispose the database handle
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from musicjournal import __version__
from musicjournal.config import settings
from musicjournal.crypto import load_key
from musicjournal.database import Database
from musicjournal.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConstraintViolationError,
    DatabaseError,
    DecryptionError,
    IdentityProviderError,
    MusicJournalError,
    NotFoundError,
    ValidationError,
)
from musicjournal.middleware.logging import RequestLoggingMiddleware
from musicjournal.middleware.request_id import RequestIDMiddleware, request_id_var
from musicjournal.routes import auth, health, journal, tracks
from musicjournal.services.identity_service import IdentityService
from musicjournal.services.journal_store import JournalStore
from musicjournal.services.spotify_auth import SpotifyAuthService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: 2024-01-15T12:00:00 [INFO] musicjournal.services.journal_store: ...
    Called once at startup, before anything else logs.
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
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Music Journal backend starting up...")

    # A wrong or missing key would make every stored entry unreadable,
    # so startup stops here instead of serving requests.
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        raise ConfigurationError(message=str(e)) from e
    key = load_key(settings.encryption_key)

    db = Database(settings.database_url, echo=settings.log_level == "DEBUG")
    await db.connect()
    await db.create_all()

    store = JournalStore(db, key)
    spotify_auth = SpotifyAuthService()
    app.state.store = store
    app.state.identity_service = IdentityService(store)
    app.state.spotify_auth = spotify_auth

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    try:
        yield
    finally:
        logger.info("Music Journal backend shutting down...")
        await spotify_auth.aclose()
        await db.dispose()
        logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details=None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and response bodies.

        ValidationError          → 400
        AuthenticationError      → 401
        NotFoundError            → 404
        ConstraintViolationError → 409
        IdentityProviderError    → 502
        DecryptionError          → 500
        DatabaseError            → 500
        MusicJournalError (base) → 500
        Exception (fallback)     → 500

    Engine messages, ciphertext, and stack traces are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return JSONResponse(
            status_code=401,
            content=_error_body("unauthorized", exc.message),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body("not_found", exc.message),
        )

    @app.exception_handler(ConstraintViolationError)
    async def handle_constraint_violation(request: Request, exc: ConstraintViolationError):
        logger.warning(
            "[%s] Constraint violation: %s | %s",
            request_id_var.get(""),
            exc.message,
            exc.detail,
        )
        return JSONResponse(
            status_code=409,
            content=_error_body("conflict", exc.message),
        )

    @app.exception_handler(IdentityProviderError)
    async def handle_identity_provider_error(request: Request, exc: IdentityProviderError):
        logger.error("[%s] Spotify error: %s | %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(
            status_code=502,
            content=_error_body("identity_provider_error", exc.message),
        )

    @app.exception_handler(DecryptionError)
    async def handle_decryption_error(request: Request, exc: DecryptionError):
        logger.error("[%s] Decryption error: %s | %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "Stored journal data could not be read."),
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(MusicJournalError)
    async def handle_app_error(request: Request, exc: MusicJournalError):
        logger.error("[%s] Application error: %s | %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Tests build their own instance and override get_store /
    get_current_user instead of running the lifespan.
    """
    app = FastAPI(
        title="Music Journal API",
        description=(
            "Attach encrypted journal entries to Spotify tracks. "
            "Entries are scoped to the authenticated Spotify user."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Middleware executes in reverse order of addition: RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,  # the access token travels in a cookie
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(tracks.router)
    app.include_router(journal.router)
    app.include_router(health.router)

    return app


app = create_app()
