"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Requests authenticate with an "Authorization: Bearer <token>" header. The
token is handed to AuthGate.authenticate(), which verifies it and re-reads
the principal from the store, so a deactivated account is locked out even
while its token is unexpired.

get_current_principal() raises TokenInvalid; the exception handler in
api/main.py turns that into a 401. It never raises HTTPException itself so
every auth outcome goes through one translation table.

Layer rule: no imports from hr/ or core/. This module may import from
fastapi because it is part of the dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.gate import AuthGate
from auth.models import Principal


def get_gate(request: Request) -> AuthGate:
    return request.app.state.gate


def bearer_token(request: Request) -> str | None:
    """Extract the raw token from the Authorization header, or None."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def get_current_principal(request: Request, gate: AuthGate = Depends(get_gate)) -> Principal:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    return gate.authenticate(bearer_token(request))
