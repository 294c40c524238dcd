"""
api/routes/v1/absences.py -- Absence requests and the approval queue.

Routes:
  POST  /api/v1/absences          -- file a request (status PENDING)
  GET   /api/v1/absences/me       -- caller's own requests
  GET   /api/v1/absences/pending  -- pending requests in the caller's approver scope
  PATCH /api/v1/absences/{id}     -- approve or reject

Decisions:
  The gate re-derives scope membership from the live supervisor chain at
  decision time (authorize_decision). A list the client fetched from
  /pending earlier is never trusted.

  An unknown request id is answered with the same 403 as an out-of-scope
  one, so probing ids reveals nothing about other teams. A request that is
  in scope but already decided gets 409.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import AbsenceCreate, AbsenceDecision, AbsenceResponse
from auth.dependencies import get_current_principal, get_gate
from auth.errors import Forbidden
from auth.gate import AuthGate
from auth.models import Principal
from hr.models import AbsenceRequest, AbsenceStatus
from hr.store import HRStore

logger = logging.getLogger("cronocodex.api")

router = APIRouter()


@router.post("/absences", response_model=AbsenceResponse, status_code=201)
async def create_absence(
    request: Request,
    body: AbsenceCreate,
    actor: Principal = Depends(get_current_principal),
) -> AbsenceResponse:
    hr_store: HRStore = request.app.state.hr_store
    created = hr_store.create_absence_request(
        AbsenceRequest(
            user_id=actor.id,
            start_date=body.start_date.isoformat(),
            end_date=body.end_date.isoformat(),
            type=body.type,
            comment=body.comment,
        )
    )
    return AbsenceResponse.from_request(created)


@router.get("/absences/me", response_model=list[AbsenceResponse])
async def list_my_absences(
    request: Request,
    actor: Principal = Depends(get_current_principal),
) -> list[AbsenceResponse]:
    hr_store: HRStore = request.app.state.hr_store
    return [AbsenceResponse.from_request(r) for r in hr_store.list_absence_requests_for_user(actor.id)]


@router.get("/absences/pending", response_model=list[AbsenceResponse])
async def list_pending_absences(
    request: Request,
    actor: Principal = Depends(get_current_principal),
    gate: AuthGate = Depends(get_gate),
) -> list[AbsenceResponse]:
    scope = gate.approval_scope(actor)
    hr_store: HRStore = request.app.state.hr_store
    return [AbsenceResponse.from_request(r) for r in hr_store.list_pending_for_scope(scope, actor.id)]


@router.patch("/absences/{request_id}", response_model=AbsenceResponse)
async def decide_absence(
    request: Request,
    request_id: int,
    body: AbsenceDecision,
    actor: Principal = Depends(get_current_principal),
    gate: AuthGate = Depends(get_gate),
) -> AbsenceResponse:
    hr_store: HRStore = request.app.state.hr_store
    existing = hr_store.get_absence_request(request_id)
    if existing is None:
        raise Forbidden("not authorized")
    gate.authorize_decision(actor, existing.user_id)

    decided = hr_store.decide_absence_request(
        request_id,
        AbsenceStatus(body.status),
        approver_id=actor.id,
        decision_comment=body.decision_comment,
    )
    if decided is None:
        raise HTTPException(
            status_code=409,
            detail={"code": "already_decided", "message": "This request has already been decided."},
        )
    logger.info("Principal %s set absence %s to %s", actor.id, request_id, body.status)
    return AbsenceResponse.from_request(decided)
