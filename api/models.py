"""
API request and response models for CronoCodex REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
hr/models.py, which own the internal domain representation. Route handlers
map between the two.
"""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from auth.models import Principal, Role
from hr.models import AbsenceRequest, AbsenceType, EventType, TimeEvent

# Shape check only; deliverability is not our concern.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class UserResponse(BaseModel):
    """Public view of a principal. Password material is never included."""

    model_config = ConfigDict(frozen=True)

    id: int
    full_name: str
    email: str
    role: Role
    supervisor_id: Optional[int] = None
    active: bool
    created_at: str = ""

    @classmethod
    def from_principal(cls, principal: Principal) -> "UserResponse":
        return cls(
            id=principal.id,
            full_name=principal.full_name,
            email=principal.email,
            role=principal.role,
            supervisor_id=principal.supervisor_id,
            active=principal.active,
            created_at=principal.created_at or "",
        )


class LoginResponse(BaseModel):
    """Response body for a successful login."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me.

    can_create lists the roles this principal may create (at most one), so a
    client can decide which account form to show without encoding policy.
    """

    user: UserResponse
    can_create: list[Role]
    is_approver: bool


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users. supervisor_id is always the caller."""

    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=255)
    role: Role


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/users/{id}. Only the active flag may change."""

    active: bool


# ---------------------------------------------------------------------------
# Time events
# ---------------------------------------------------------------------------


class TimeEventCreate(BaseModel):
    type: EventType
    notes: Optional[str] = Field(default=None, max_length=1000)


class TimeEventResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    event_type: EventType
    event_time: str
    notes: Optional[str] = None

    @classmethod
    def from_event(cls, event: TimeEvent) -> "TimeEventResponse":
        return cls(
            id=event.id,
            user_id=event.user_id,
            event_type=event.event_type,
            event_time=event.event_time,
            notes=event.notes,
        )


# ---------------------------------------------------------------------------
# Absence requests
# ---------------------------------------------------------------------------


class AbsenceCreate(BaseModel):
    """Request body for POST /api/v1/absences."""

    start_date: date
    end_date: date
    type: AbsenceType = AbsenceType.VACATION
    comment: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def check_range(self) -> "AbsenceCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AbsenceDecision(BaseModel):
    """Request body for PATCH /api/v1/absences/{id}."""

    status: Literal["APPROVED", "REJECTED"]
    decision_comment: Optional[str] = Field(default=None, max_length=1000)


class AbsenceResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    start_date: str
    end_date: str
    type: AbsenceType
    comment: Optional[str] = None
    status: str
    approver_id: Optional[int] = None
    decision_comment: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    employee_name: Optional[str] = None

    @classmethod
    def from_request(cls, request: AbsenceRequest) -> "AbsenceResponse":
        return cls(
            id=request.id,
            user_id=request.user_id,
            start_date=request.start_date,
            end_date=request.end_date,
            type=request.type,
            comment=request.comment,
            status=request.status.value,
            approver_id=request.approver_id,
            decision_comment=request.decision_comment,
            created_at=request.created_at,
            updated_at=request.updated_at,
            employee_name=request.employee_name,
        )


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
