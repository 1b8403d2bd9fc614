"""
RouteDesk Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes app configuration, middleware registration, route mounting,
       and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn routedesk.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                    FastAPI App                       │
    │                                                      │
    │  Middleware Chain:                                   │
    │  ┌──────────┐ ┌──────────┐ ┌──────┐ ┌─────────────┐  │
    │  │  Req ID  │→│ Logging  │→│ GZip │→│    CORS     │  │
    │  └──────────┘ └──────────┘ └──────┘ └─────────────┘  │
    │                                                      │
    │  Routes:                                             │
    │  ┌──────────────┐ ┌─────────────────┐ ┌───────────┐  │
    │  │ /api/routes  │ │ /api/locations  │ │  /health  │  │
    │  └──────────────┘ └─────────────────┘ └───────────┘  │
    │                                                      │
    │  Exception Handlers:                                 │
    │  ┌────────────────────────────────────────────────┐  │
    │  │ Validation→400 │ NotFound→404 │ Database→500  │  │
    │  └────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────┘

Error Body:
    Every error answers {"error": <message>, "code": <machine code>,
    "request_id": ...}, plus "details" when there is context and "hint" for
    configuration problems. The admin UI only reads "error".
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from routedesk import __version__
from routedesk import database
from routedesk.config import settings
from routedesk.exceptions import (
    DatabaseError,
    DatabaseNotConnectedError,
    NotFoundError,
    RouteDeskError,
    ValidationError,
)
from routedesk.middleware.logging import RequestLoggingMiddleware
from routedesk.middleware.request_id import RequestIDMiddleware, request_id_var
from routedesk.routes import health, locations, routes

logger = logging.getLogger(__name__)

# Header list the admin UI has always been allowed to send
CORS_ALLOW_HEADERS = [
    "X-CSRF-Token",
    "X-Requested-With",
    "Accept",
    "Accept-Version",
    "Content-Length",
    "Content-MD5",
    "Content-Type",
    "Date",
    "X-Api-Version",
    "X-Request-ID",
]
CORS_ALLOW_METHODS = ["GET", "OPTIONS", "PATCH", "DELETE", "POST", "PUT"]


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Level comes from settings.log_level (LOG_LEVEL).
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
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
    Startup: configure logging and report whether the database is usable.
    Shutdown: dispose the engine so pooled connections are closed.

    A missing DATABASE_URL is reported but does not stop the server; the
    resource endpoints answer 500 "Database not connected" instead.
    """
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("RouteDesk Backend %s starting up...", __version__)

    if database.engine is None:
        logger.error("Database not connected. Check DATABASE_URL environment variable.")
    else:
        logger.info("Database engine ready (%s)", database.engine.url.render_as_string(hide_password=True))

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("RouteDesk Backend shutting down...")
    await database.dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_body(
    message: str,
    code: str,
    details: Optional[Dict[str, Any]] = None,
    hint: Optional[str] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": message, "code": code}
    if details:
        body["details"] = jsonable_encoder(details)
    if hint:
        body["hint"] = hint
    body["request_id"] = request_id_var.get("")
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        ValidationError            → 400 Bad Request
        RequestValidationError     → 400 Bad Request (malformed query/body)
        NotFoundError              → 404 Not Found
        DatabaseNotConnectedError  → 500 with a configuration hint
        DatabaseError              → 500 echoing the database message
        RouteDeskError (base)      → 500
        StarletteHTTPException     → its own status (405, 404 for unknown paths)
        Exception (fallback)       → 500 echoing the raw message

    This is an internal admin tool; database and unexpected error messages are
    returned to the caller as they are, and logged with the request id.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=error_body(exc.message, "validation_error", exc.context),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"Invalid field '{location}': {first.get('msg')}" if location else "Invalid request"
        logger.warning("[%s] Request validation error: %s", request_id_var.get(""), message)
        return JSONResponse(
            status_code=400,
            content=error_body(message, "validation_error", {"errors": errors}),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=error_body(exc.message, "not_found", exc.context),
        )

    @app.exception_handler(DatabaseNotConnectedError)
    async def handle_database_not_connected(request: Request, exc: DatabaseNotConnectedError):
        logger.error("[%s] %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=500,
            content=error_body(exc.message, "database_not_connected", hint=exc.hint),
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=error_body(exc.message, "database_error"),
        )

    @app.exception_handler(RouteDeskError)
    async def handle_routedesk_error(request: Request, exc: RouteDeskError):
        logger.error("[%s] %s: %s", request_id_var.get(""), type(exc).__name__, exc.message)
        return JSONResponse(
            status_code=500,
            content=error_body(exc.message, "server_error", exc.context),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            message = f"Method {request.method} not allowed"
        else:
            message = str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(message, "http_error"),
            headers=getattr(exc, "headers", None),
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
            content=error_body(str(exc) or type(exc).__name__, "internal_server_error"),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns: Fully configured FastAPI instance ready to receive requests.
    Tests build their own instance and override get_db_session.
    """
    app = FastAPI(
        title="RouteDesk API",
        description=(
            "Routes and delivery locations for the RouteDesk admin table: "
            "CRUD, batch sparse updates, and image list maintenance."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → GZip → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(routes.router)
    app.include_router(locations.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()
