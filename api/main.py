"""
api/main.py -- FastAPI application entry point for CronoCodex.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware     -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware  -- enforces per-route rate limits from api.limiter

Lifespan builds the process-wide collaborators once and hangs them on
app.state:
  user_store   PrincipalStore  (auth/store.py)
  hr_store     HRStore         (hr/store.py)
  gate         AuthGate        (auth/gate.py) over user_store + TokenCodec
The signing secret and the token TTL come from Settings and are fixed for
the life of the process.

Exception handlers translate gate outcomes into transport responses and
nothing more. No authorization logic lives here:
  InvalidCredentials       401 bad_credentials
  TokenInvalid             401 unauthenticated
  Forbidden                403 forbidden
  CollaboratorUnavailable  503 unavailable (Retry-After)
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.absences import router as absences_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.time_events import router as time_events_router
from api.routes.v1.users import router as users_router
from auth.errors import AuthError, CollaboratorUnavailable, Forbidden, InvalidCredentials, TokenInvalid
from auth.gate import AuthGate
from auth.models import Principal, Role
from auth.passwords import derive
from auth.store import PrincipalStore
from auth.tokens import TokenCodec
from core.config import Settings, get_settings
from hr.store import HRStore

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cronocodex.api")


# ---------------------------------------------------------------------------
# Startup helpers
# ---------------------------------------------------------------------------


def build_gate(user_store: PrincipalStore, settings: Settings) -> AuthGate:
    codec = TokenCodec(settings.secret_key, ttl=timedelta(seconds=settings.token_expire_seconds))
    return AuthGate(user_store, codec)


def bootstrap_root_admin(user_store: PrincipalStore, settings: Settings) -> int | None:
    """Seed the first GENERAL_ADMIN if none exists and bootstrap creds are set.

    Returns the new account id, or None when nothing was created.
    """
    if user_store.has_general_admin():
        return None
    if not settings.bootstrap_admin_email or not settings.bootstrap_admin_password:
        logger.warning(
            "No GENERAL_ADMIN account exists. Set BOOTSTRAP_ADMIN_EMAIL and "
            "BOOTSTRAP_ADMIN_PASSWORD to seed one on startup."
        )
        return None
    root = Principal(
        email=settings.bootstrap_admin_email,
        full_name=settings.bootstrap_admin_name,
        role=Role.GENERAL_ADMIN,
    )
    uid = user_store.create_user(root, derive(settings.bootstrap_admin_password))
    logger.info("Seeded root GENERAL_ADMIN account %s", uid)
    return uid


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create stores and the gate on startup; dispose engines on shutdown.

    get_settings() has already raised at import if SECRET_KEY is missing
    outside test mode, so a misconfigured process never serves a request.
    """
    settings = get_settings()
    logger.info("CronoCodex API starting up")
    app.state.user_store = PrincipalStore(settings.database_url)
    app.state.hr_store = HRStore(settings.database_url)
    app.state.gate = build_gate(app.state.user_store, settings)
    bootstrap_root_admin(app.state.user_store, settings)
    logger.info("Auth initialized (token ttl=%ss)", settings.token_expire_seconds)

    yield

    app.state.hr_store.close()
    app.state.user_store.close()
    logger.info("CronoCodex API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="CronoCodex API",
    description="Time tracking and absence approvals along a supervisor hierarchy.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(time_events_router, prefix="/api/v1", tags=["Time events"])
app.include_router(absences_router, prefix="/api/v1", tags=["Absences"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

# Fixed public text per outcome. The exception's own message is never sent.
_AUTH_OUTCOMES: dict[type[AuthError], tuple[int, str, str]] = {
    InvalidCredentials: (401, "bad_credentials", "Invalid email or password."),
    TokenInvalid: (401, "unauthenticated", "Authentication required."),
    Forbidden: (403, "forbidden", "Not authorized."),
    CollaboratorUnavailable: (503, "unavailable", "Service temporarily unavailable. Retry later."),
}


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render a gate outcome. Unknown AuthError subclasses are treated as Forbidden."""
    status, code, message = _AUTH_OUTCOMES.get(type(exc), _AUTH_OUTCOMES[Forbidden])
    if isinstance(exc, CollaboratorUnavailable):
        logger.error("%s %s failed: principal store unavailable", request.method, request.url.path)
    response = JSONResponse(
        status_code=status,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
    )
    if isinstance(exc, InvalidCredentials):
        response.headers["Cache-Control"] = "no-store"
    elif isinstance(exc, TokenInvalid):
        response.headers["WWW-Authenticate"] = "Bearer"
    elif isinstance(exc, CollaboratorUnavailable):
        response.headers["Retry-After"] = "5"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with a dict detail ({"code", "message"}).
    When detail is already a dict, use it directly as the error field.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
