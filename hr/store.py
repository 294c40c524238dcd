"""
hr/store.py -- SQLAlchemy Core persistence for time events and absence requests.

Pattern: Repository + Data Mapper (same as auth/store.py).

Shares the database with auth/store.py: the pending-request queue joins the
users table to walk the supervisor chain, so both stores must point at the
same database URL. The users table is owned by auth/store.py; this module
only reads it, and creates it if missing so a fresh database works in any
construction order.

Approver scope -> SQL:
  unscoped   no owner filter
  depth N    owner.supervisor_id = :approver
             OR sup1.supervisor_id = :approver
             ... up to N links, one LEFT JOIN per extra link
  depth 0    nothing is queried; an empty list is returned

Layer rule: may import from auth/ (schema and scope descriptor). No imports
from api/.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, or_, select
from sqlalchemy.engine import Engine

from auth.policy import ApproverScope
from auth.store import make_engine, now_iso, users
from hr.models import AbsenceRequest, AbsenceStatus, AbsenceType, EventType, TimeEvent

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

# user_id / approver_id reference users.id. The constraint is not declared
# because users lives in auth/store.py's MetaData.
_time_events = Table(
    "time_events",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("event_type", String(20), nullable=False),
    Column("event_time", String(32), nullable=False),
    Column("notes", Text),
    Column("created_at", String(32), nullable=False),
)

_absence_requests = Table(
    "absence_requests",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("start_date", String(10), nullable=False),
    Column("end_date", String(10), nullable=False),
    Column("type", String(20), nullable=False, server_default="VACATION"),
    Column("comment", Text),
    Column("status", String(20), nullable=False, server_default="PENDING"),
    Column("approver_id", Integer),
    Column("decision_comment", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


class HRStore:
    """Repository for TimeEvent and AbsenceRequest entities."""

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        users.create(self.engine, checkfirst=True)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Time events
    # ------------------------------------------------------------------

    def create_time_event(self, event: TimeEvent) -> TimeEvent:
        """Insert a clock event stamped with the current UTC time and return it."""
        stamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _time_events.insert().values(
                    user_id=event.user_id,
                    event_type=EventType(event.event_type).value,
                    event_time=stamp,
                    notes=event.notes,
                    created_at=stamp,
                )
            )
            conn.commit()
            new_id = result.inserted_primary_key[0]
        return TimeEvent(
            id=new_id,
            user_id=event.user_id,
            event_type=EventType(event.event_type),
            notes=event.notes,
            event_time=stamp,
        )

    def list_time_events(self, user_id: int) -> list[TimeEvent]:
        """Return a user's events, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _time_events.select()
                .where(_time_events.c.user_id == user_id)
                .order_by(_time_events.c.event_time.desc(), _time_events.c.id.desc())
            ).fetchall()
        return [_row_to_time_event(r) for r in rows]

    # ------------------------------------------------------------------
    # Absence requests
    # ------------------------------------------------------------------

    def create_absence_request(self, request: AbsenceRequest) -> AbsenceRequest | None:
        """Insert a PENDING request and return it as stored."""
        stamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _absence_requests.insert().values(
                    user_id=request.user_id,
                    start_date=request.start_date,
                    end_date=request.end_date,
                    type=AbsenceType(request.type).value,
                    comment=request.comment,
                    status=AbsenceStatus.PENDING.value,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
            new_id = result.inserted_primary_key[0]
        return self.get_absence_request(new_id)

    def get_absence_request(self, request_id: int) -> AbsenceRequest | None:
        with self.engine.connect() as conn:
            row = conn.execute(_absence_requests.select().where(_absence_requests.c.id == request_id)).fetchone()
        return _row_to_absence(row) if row is not None else None

    def list_absence_requests_for_user(self, user_id: int) -> list[AbsenceRequest]:
        """Return every request a user has filed, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _absence_requests.select()
                .where(_absence_requests.c.user_id == user_id)
                .order_by(_absence_requests.c.created_at.desc(), _absence_requests.c.id.desc())
            ).fetchall()
        return [_row_to_absence(r) for r in rows]

    def list_pending_for_scope(self, scope: ApproverScope, approver_id: int) -> list[AbsenceRequest]:
        """Return pending requests inside an approver's scope, oldest first.

        The scope must come from the gate (AuthGate.approval_scope), which has
        already refused empty scopes; an empty scope here still yields [].
        """
        if scope.is_empty:
            return []

        owner = users.alias("owner")
        source = _absence_requests.join(owner, _absence_requests.c.user_id == owner.c.id)
        conditions = []
        if not scope.unscoped:
            link = owner
            for level in range(scope.depth):
                conditions.append(link.c.supervisor_id == approver_id)
                if level + 1 < scope.depth:
                    parent = users.alias(f"sup{level + 1}")
                    source = source.outerjoin(parent, link.c.supervisor_id == parent.c.id)
                    link = parent

        query = (
            select(_absence_requests, owner.c.full_name.label("employee_name"))
            .select_from(source)
            .where(_absence_requests.c.status == AbsenceStatus.PENDING.value)
        )
        if conditions:
            query = query.where(or_(*conditions))
        query = query.order_by(_absence_requests.c.created_at.asc(), _absence_requests.c.id.asc())

        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_absence(r) for r in rows]

    def decide_absence_request(
        self,
        request_id: int,
        status: AbsenceStatus,
        approver_id: int,
        decision_comment: str | None = None,
    ) -> AbsenceRequest | None:
        """Record a decision on a still-pending request.

        The UPDATE is conditional on status = PENDING, so two approvers racing
        on the same request cannot both win. Returns the updated request, or
        None if it does not exist or was already decided.
        """
        if AbsenceStatus(status) == AbsenceStatus.PENDING:
            raise ValueError("A decision must be APPROVED or REJECTED.")
        with self.engine.connect() as conn:
            result = conn.execute(
                _absence_requests.update()
                .where(
                    (_absence_requests.c.id == request_id)
                    & (_absence_requests.c.status == AbsenceStatus.PENDING.value)
                )
                .values(
                    status=AbsenceStatus(status).value,
                    approver_id=approver_id,
                    decision_comment=decision_comment,
                    updated_at=now_iso(),
                )
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_absence_request(request_id)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_time_event(row) -> TimeEvent:
    return TimeEvent(
        id=row.id,
        user_id=row.user_id,
        event_type=EventType(row.event_type),
        notes=row.notes,
        event_time=row.event_time,
    )


def _row_to_absence(row) -> AbsenceRequest:
    return AbsenceRequest(
        id=row.id,
        user_id=row.user_id,
        start_date=row.start_date,
        end_date=row.end_date,
        type=AbsenceType(row.type),
        comment=row.comment,
        status=AbsenceStatus(row.status),
        approver_id=row.approver_id,
        decision_comment=row.decision_comment,
        created_at=row.created_at,
        updated_at=row.updated_at,
        employee_name=row._mapping.get("employee_name"),
    )
