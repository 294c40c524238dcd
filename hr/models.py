"""
hr/models.py -- Domain dataclasses for time tracking and absence requests.

These are pure data containers with zero logic. Who may read or decide them
is the gate's business (auth/gate.py); hr/store.py only persists them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventType(str, Enum):
    CLOCK_IN = "CLOCK_IN"
    CLOCK_OUT = "CLOCK_OUT"
    BREAK_START = "BREAK_START"
    BREAK_END = "BREAK_END"


class AbsenceType(str, Enum):
    VACATION = "VACATION"
    SICKNESS = "SICKNESS"
    PERSONAL = "PERSONAL"


class AbsenceStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


@dataclass
class TimeEvent:
    """One clock event. event_time is set by the store on insert."""

    user_id: int
    event_type: EventType
    notes: Optional[str] = None
    event_time: str = ""  # ISO 8601
    id: Optional[int] = None


@dataclass
class AbsenceRequest:
    """A request for time off, decided by someone in the owner's approver scope.

    employee_name is filled only by the pending-queue query, which joins the
    owner's account for display.
    """

    user_id: int
    start_date: str  # ISO date
    end_date: str  # ISO date
    type: AbsenceType = AbsenceType.VACATION
    comment: Optional[str] = None
    status: AbsenceStatus = AbsenceStatus.PENDING
    approver_id: Optional[int] = None
    decision_comment: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    employee_name: Optional[str] = None
    id: Optional[int] = None
