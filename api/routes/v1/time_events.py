"""
api/routes/v1/time_events.py -- Clock-in / clock-out log.

Routes:
  POST /api/v1/time-events            -- record an event for the caller
  GET  /api/v1/time-events/me         -- caller's own events
  GET  /api/v1/time-events/{user_id}  -- another account's events; the account
                                         must be inside the caller's approver
                                         scope (AuthGate.authorize_oversight)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import TimeEventCreate, TimeEventResponse
from auth.dependencies import get_current_principal, get_gate
from auth.gate import AuthGate
from auth.models import Principal
from hr.models import TimeEvent
from hr.store import HRStore

router = APIRouter()


@router.post("/time-events", response_model=TimeEventResponse, status_code=201)
async def create_time_event(
    request: Request,
    body: TimeEventCreate,
    actor: Principal = Depends(get_current_principal),
) -> TimeEventResponse:
    hr_store: HRStore = request.app.state.hr_store
    created = hr_store.create_time_event(TimeEvent(user_id=actor.id, event_type=body.type, notes=body.notes))
    return TimeEventResponse.from_event(created)


@router.get("/time-events/me", response_model=list[TimeEventResponse])
async def list_my_time_events(
    request: Request,
    actor: Principal = Depends(get_current_principal),
) -> list[TimeEventResponse]:
    hr_store: HRStore = request.app.state.hr_store
    return [TimeEventResponse.from_event(e) for e in hr_store.list_time_events(actor.id)]


@router.get("/time-events/{user_id}", response_model=list[TimeEventResponse])
async def list_time_events_for_user(
    request: Request,
    user_id: int,
    actor: Principal = Depends(get_current_principal),
    gate: AuthGate = Depends(get_gate),
) -> list[TimeEventResponse]:
    gate.authorize_oversight(actor, user_id)
    hr_store: HRStore = request.app.state.hr_store
    return [TimeEventResponse.from_event(e) for e in hr_store.list_time_events(user_id)]
