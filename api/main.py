"""
api/main.py -- FastAPI application entry point for authstarter.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- limiter state; per-route limits live on the handlers

Lifespan handles startup (engine, stores, mailer, optional object storage)
and shutdown (dispose engine) symmetrically.

Error envelope: every failure leaves as {code, message, error?, errors?}
with the HTTP status equal to code. Service errors keep their message.
Database constraint failures that reach the app map to 409 (unique) or 400
(foreign key); other database errors become a 500 "database_error". Anything
unexpected becomes a generic 500 and the traceback goes to the log only.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ApiResponse, ErrorResponse, FieldError, HealthResponse, HealthStatus
from api.routes.auth import router as auth_router
from auth.service import AuthService
from auth.store import SessionStore, UserStore, create_db_engine
from core.config import get_settings
from core.errors import ServiceError
from core.mailer import build_mailer
from core.storage import StorageProvider

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authstarter.api")

_settings = get_settings()
_started_at = time.monotonic()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create shared resources on startup and release them on shutdown.

    Startup order matters:
      1. Engine + connection check -- fail fast if the database is unreachable.
      2. Stores and mailer -- the service depends on both.
      3. Object storage last, and only when S3_ENDPOINT is configured.
    """
    logger.info("%s API starting up", _settings.app_name)
    engine = create_db_engine(_settings.database_url)
    app.state.user_store = UserStore(engine)
    app.state.session_store = SessionStore(engine)
    app.state.user_store.check_connection()

    app.state.auth_service = AuthService(
        app.state.user_store,
        app.state.session_store,
        build_mailer(_settings),
        _settings,
    )

    app.state.storage = None
    if _settings.storage_configured:
        app.state.storage = StorageProvider.from_settings(_settings)
        app.state.storage.initialize()
    logger.info("Auth initialized (storage=%s)", "on" if app.state.storage else "off")

    yield

    engine.dispose()
    logger.info("%s API shutdown complete", _settings.app_name)


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="authstarter API",
    description="User registration, login, logout, password reset and session tracking.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if _settings.enable_api_docs else None,
    redoc_url="/redoc" if _settings.enable_api_docs else None,
    openapi_url="/openapi.json" if _settings.enable_api_docs else None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the app, so the last one added is outermost. Add
# innermost first: SlowAPI -> CORS -> TrustedHost.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, error: str | None = None, errors=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(code=status_code, message=message, error=error, errors=errors).model_dump(
            exclude_none=True
        ),
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Map typed service errors to their HTTP status."""
    return _error(exc.status_code, exc.message, error=exc.code)


_UNIQUE_VIOLATION = "23505"
_FOREIGN_KEY_VIOLATION = "23503"


def _integrity_kind(exc: IntegrityError) -> str | None:
    """Classify a constraint failure as "unique", "foreign_key" or None.

    PostgreSQL drivers expose the SQLSTATE as `pgcode` (psycopg2) or
    `sqlstate` (psycopg 3); SQLite only reports it in the message text.
    """
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate == _UNIQUE_VIOLATION:
        return "unique"
    if sqlstate == _FOREIGN_KEY_VIOLATION:
        return "foreign_key"
    text = str(orig).upper()
    if "UNIQUE CONSTRAINT" in text or "DUPLICATE KEY" in text:
        return "unique"
    if "FOREIGN KEY CONSTRAINT" in text:
        return "foreign_key"
    return None


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Map constraint violations that escaped the service layer to 409 / 400."""
    kind = _integrity_kind(exc)
    logger.error("integrity error (%s) on %s %s: %s", kind, request.method, request.url.path, exc.orig)
    if kind == "unique":
        return _error(409, "Duplicate entry detected", error="duplicate_entry")
    if kind == "foreign_key":
        return _error(400, "Invalid reference to a related resource", error="invalid_reference")
    return _error(400, "The request violates a database constraint.", error="constraint_violation")


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Any other database failure. Details go to the log, never to the client."""
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(500, "A database error occurred.", error="database_error")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with one entry per failed field."""
    errors = [
        FieldError(
            field=".".join(str(part) for part in err.get("loc", ())[1:]) or "body",
            message=err.get("msg", "Invalid value"),
        )
        for err in exc.errors()
    ]
    return _error(422, "Request validation failed.", error="validation_error", errors=errors)


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After (seconds until the window resets).

    Plain def: SlowAPIMiddleware calls this handler without awaiting it for
    sync endpoints.
    """
    retry_after = 60
    view_limit = getattr(request.state, "view_rate_limit", None)
    if view_limit is not None:
        item, identifiers = view_limit
        reset_at, _remaining = limiter.limiter.get_window_stats(item, *identifiers)
        retry_after = max(1, int(reset_at - time.time()))
    logger.warning("rate limit exceeded (%s): %s", exc.detail, request.url.path)
    response = _error(429, "Too many requests.", error="rate_limited")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return the envelope for routing errors (404 / 405) and explicit HTTPExceptions."""
    if exc.status_code == 404:
        message = (
            f"Sorry, the {request.url.hostname}{request.url.path} HTTP method {request.method} "
            "resource you are looking for was not found."
        )
        return _error(404, message, error="not_found")
    return _error(exc.status_code, str(exc.detail), error=f"http_{exc.status_code}")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected errors. The traceback is logged, never returned."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "An unexpected error occurred.", error="internal_error")


# ---------------------------------------------------------------------------
# Index and health
#
# Defined here (not in a router) so they are reachable regardless of router
# registration. Exempt from the rate limit -- load balancer health checks must not
# be throttled.
# ---------------------------------------------------------------------------


@app.get("/", response_model=ApiResponse, tags=["Health"])
def index() -> ApiResponse:
    return ApiResponse(message="API Server is running")


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request) -> JSONResponse:
    """Report database reachability and uptime. Always 200; see X-Health-Check."""
    db_ok = request.app.state.user_store.ping()
    status = HealthStatus(
        database="Ok" if db_ok else "Failed",
        timezone=str(datetime.now().astimezone().tzinfo),
        date=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.monotonic() - _started_at, 3),
    )
    resp = JSONResponse(content=HealthResponse(message="Server Uptime", data=status).model_dump())
    resp.headers["X-Health-Check"] = "Healthy" if db_ok else "Unhealthy"
    return resp


# Registered by name; the middleware matches on endpoint module + name.
limiter.exempt(index)
limiter.exempt(health)
