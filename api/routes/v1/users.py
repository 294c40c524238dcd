"""
api/routes/v1/users.py -- Account creation down the supervisor chain.

Routes:
  POST  /api/v1/users        -- create a subordinate account
  GET   /api/v1/users        -- GENERAL_ADMIN: everyone; others: direct reports
  PATCH /api/v1/users/{id}   -- activate / deactivate an account

Every decision is the gate's. This module only sequences the calls:
authenticate -> authorize -> store write -> response.

The new account's supervisor is always the caller; a client cannot choose
it. role and supervisor_id cannot be changed afterwards.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError

from api.models import UserCreate, UserPatch, UserResponse
from auth.dependencies import get_current_principal, get_gate
from auth.gate import AuthGate
from auth.models import Principal, Role
from auth.passwords import derive
from auth.store import PrincipalStore

logger = logging.getLogger("cronocodex.api")

router = APIRouter()


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(
    request: Request,
    body: UserCreate,
    actor: Principal = Depends(get_current_principal),
    gate: AuthGate = Depends(get_gate),
) -> UserResponse:
    """Create an account one level below the caller."""
    gate.authorize_create(actor, body.role)

    user_store: PrincipalStore = request.app.state.user_store
    new_user = Principal(
        email=body.email,
        full_name=body.full_name,
        role=body.role,
        supervisor_id=actor.id,
    )
    try:
        user_id = user_store.create_user(new_user, derive(body.password))
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "An account with that email already exists."},
        ) from exc

    logger.info("Principal %s created %s account %s", actor.id, body.role.value, user_id)
    return _user_to_response(user_store.find_by_id(user_id))


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    request: Request,
    actor: Principal = Depends(get_current_principal),
) -> list[UserResponse]:
    user_store: PrincipalStore = request.app.state.user_store
    if actor.role == Role.GENERAL_ADMIN:
        found = user_store.list_users()
    else:
        found = user_store.list_by_supervisor(actor.id)
    return [UserResponse.from_principal(p) for p in found]


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    actor: Principal = Depends(get_current_principal),
    gate: AuthGate = Depends(get_gate),
) -> UserResponse:
    """Toggle an account's active flag.

    A deactivated account cannot log in, and any token it already holds stops
    working on its next request because authenticate() re-reads the record.
    """
    gate.authorize_manage(actor, user_id)

    user_store: PrincipalStore = request.app.state.user_store
    user_store.set_active(user_id, body.active)
    logger.info("Principal %s set active=%s on account %s", actor.id, body.active, user_id)
    return _user_to_response(user_store.find_by_id(user_id))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _user_to_response(user: Principal | None) -> UserResponse:
    if user is None:
        raise HTTPException(
            status_code=500,
            detail={"code": "internal_error", "message": "Account not found after write."},
        )
    return UserResponse.from_principal(user)
