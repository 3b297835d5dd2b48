"""
api/main.py -- ParkSpot ASGI application: lifespan, middleware, JSON API.

Serve with:  uvicorn asgi:app --reload

Request path through the middleware, first to last:
  TrustedHostMiddleware  -- Host header must be in ALLOWED_HOSTS
  CORSMiddleware         -- browser origins from CORS_ORIGINS
  SlowAPIMiddleware      -- per-route limits declared with core.limiter
  log_requests           -- one INFO line per request with latency
  attach_identity        -- session token -> request.state.user

The lifespan turns Settings into the objects every handler shares (engine,
UserStore, RecordStore, TokenCodec) and hangs them on app.state. They are
read-only after startup. The engine is disposed on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.records import router as records_router
from auth.dependencies import resolve_identity
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import get_settings
from core.database import create_db_engine
from core.limiter import limiter, retry_after_seconds
from records.store import RecordStore

_VERSION = "0.1.0"

_settings = get_settings()

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("parkspot.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the database and build the shared stores and codec.

    If the database cannot be opened, startup fails here. A missing
    SECRET_KEY has already failed earlier, inside get_settings().
    """
    settings = get_settings()
    engine = create_db_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.user_store = UserStore(engine)
    app.state.records = RecordStore(engine)
    app.state.codec = TokenCodec(settings.secret_key, settings.token_expire_seconds)
    logger.info("ParkSpot %s ready (sessions last %ds)", _VERSION, settings.token_expire_seconds)

    yield

    engine.dispose()
    logger.info("ParkSpot stopped")


app = FastAPI(
    title="ParkSpot",
    description="Parking reservations and posts behind a signed session cookie.",
    version=_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
#
# Each registration wraps everything registered before it, so the list below
# reads innermost first.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def attach_identity(request: Request, call_next):
    """Store the caller's Identity (or None) on request.state.user.

    resolve_identity() swallows every token failure into None, so a bad
    cookie makes the request anonymous and never produces an error response.
    """
    request.state.user = resolve_identity(request)
    return await call_next(request)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %d in %.1fms from %s",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
        request.client.host if request.client else "-",
    )
    return response


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

# SlowAPIMiddleware finds the limiter on app.state.
app.state.limiter = limiter

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(records_router, prefix="/api/v1", tags=["Records"])
# The HTML routes are added in asgi.py so this module never imports web/.


# ---------------------------------------------------------------------------
# Error envelope
#
# Every API error, whatever raised it, leaves as {"error": {code, message, detail}}.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit on %s from %s", request.url.path, request.client.host if request.client else "-")
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after_seconds(exc))
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Wrap HTTPException in the envelope.

    Routes that raise with a dict detail (code/message) have already built
    the error body, so it is passed through unchanged.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback and return a bare 500; nothing from exc reaches the client."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Liveness plus a SELECT 1 against the configured database."""
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database", exc_info=True)
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=_VERSION,
        components={"app": "ok", "database": database},
    )
