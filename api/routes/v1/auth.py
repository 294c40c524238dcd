"""
api/routes/v1/auth.py -- Login and identity endpoints.

Routes:
  POST /api/v1/auth/login   -- email/password login; returns a bearer token
  GET  /api/v1/auth/me      -- current principal and what it may do

Security:
  POST /login is rate-limited per client IP (Settings.login_rate_limit).
  Wrong email, wrong password and deactivated account all produce the same
  401 body, because AuthGate.open_session() raises one InvalidCredentials for all three.
  Cache-Control: no-store on login responses, success or failure.

Tokens are stateless. There is no logout endpoint: a client discards its
token, and the token dies at expiry.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, MeResponse, UserResponse
from auth.dependencies import get_current_principal, get_gate
from auth.gate import AuthGate
from auth.models import Principal
from auth.policy import approver_scope, creatable_roles
from core.config import get_settings

router = APIRouter()


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


@limiter.limit(_login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest, gate: AuthGate = Depends(get_gate)) -> JSONResponse:
    """Authenticate with email and password; return a signed bearer token.

    Failures propagate as InvalidCredentials and are rendered by the handler
    in api/main.py, which also sets Cache-Control: no-store.
    """
    principal, token = gate.open_session(body.email, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- token type, not a password
            expires_in=int(gate.codec.ttl.total_seconds()),
            user=UserResponse.from_principal(principal),
        ).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/me", response_model=MeResponse)
async def me(principal: Principal = Depends(get_current_principal)) -> MeResponse:
    """Return the authenticated principal as currently stored."""
    return MeResponse(
        user=UserResponse.from_principal(principal),
        can_create=sorted(creatable_roles(principal.role), key=lambda r: r.value),
        is_approver=not approver_scope(principal.role).is_empty,
    )
