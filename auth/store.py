"""
auth/store.py -- SQLAlchemy Core persistence layer for principals.

Pattern: Repository + Data Mapper (same as hr/store.py).
PrincipalStore is the repository; _row_to_principal / _row_to_credential are
the mappers. The gate and route code never touch SQL directly.

This is the collaborator the authorization gate reads through:
  find_by_id(id)             -> Principal | None
  find_credential(email)     -> (Principal, Credential) | None
A row whose role is not a Role member reads as None on every path, so the
gate answers InvalidCredentials / TokenInvalid instead of crashing.
Everything else here (create, list, activate) is account administration used
by the routes after the gate has allowed the action.

Security:
  All queries use bound parameters. No f-strings in SQL.
  role and supervisor_id are written once on insert and never updated --
  there is no update path for them in this module.

Layer rule: no imports from api/, core/ or hr/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

from auth.models import Credential, Principal, Role

logger = logging.getLogger("cronocodex.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("full_name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("password_salt", Text, nullable=False),
    Column("password_iterations", Integer, nullable=False, server_default="120000"),
    Column("password_digest", String(30), nullable=False, server_default="sha512"),
    Column("role", String(30), nullable=False),
    Column("supervisor_id", Integer, ForeignKey("users.id")),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("active", Integer, nullable=False, server_default="1"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", set_wal_mode)
    return engine


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PrincipalStore:
    """Repository for Principal records and their credentials.

    Usage:
        store = PrincipalStore("sqlite:///cronocodex.db")
        uid = store.create_user(Principal(email="a@b.c", full_name="A", role=Role.GENERAL_ADMIN), derive("pw"))
        principal = store.find_by_id(uid)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Gate collaborator interface
    # ------------------------------------------------------------------

    def find_by_id(self, principal_id: int) -> Principal | None:
        """Look up a principal by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == principal_id)).fetchone()
        return _map_principal(row) if row is not None else None

    def find_credential(self, email: str) -> tuple[Principal, Credential] | None:
        """Look up a principal and its stored credential by login identifier."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == normalize_email(email))).fetchone()
        principal = _map_principal(row) if row is not None else None
        if principal is None:
            return None
        return principal, _row_to_credential(row)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def create_user(self, principal: Principal, credential: Credential) -> int:
        """Insert a new principal and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        stamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                users.insert().values(
                    full_name=principal.full_name,
                    email=normalize_email(principal.email),
                    password_hash=credential.password_hash,
                    password_salt=credential.salt,
                    password_iterations=credential.iterations,
                    password_digest=credential.digest,
                    role=Role(principal.role).value,
                    supervisor_id=principal.supervisor_id,
                    created_at=stamp,
                    updated_at=stamp,
                    active=1 if principal.active else 0,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def list_users(self) -> list[Principal]:
        """Return every principal, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(users.select().order_by(users.c.created_at.desc(), users.c.id.desc())).fetchall()
        return [p for p in map(_map_principal, rows) if p is not None]

    def list_by_supervisor(self, supervisor_id: int) -> list[Principal]:
        """Return the direct reports of a principal, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                users.select()
                .where(users.c.supervisor_id == supervisor_id)
                .order_by(users.c.created_at.desc(), users.c.id.desc())
            ).fetchall()
        return [p for p in map(_map_principal, rows) if p is not None]

    def set_active(self, principal_id: int, active: bool) -> bool:
        """Toggle the active flag. Returns False if principal_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(
                users.update()
                .where(users.c.id == principal_id)
                .values(active=1 if active else 0, updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def has_general_admin(self) -> bool:
        """Return True if at least one GENERAL_ADMIN account exists."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(users.c.id).where(users.c.role == Role.GENERAL_ADMIN.value).limit(1)
            ).fetchone()
        return row is not None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_principal(row) -> Principal:
    return Principal(
        id=row.id,
        email=row.email,
        full_name=row.full_name,
        role=Role(row.role),
        supervisor_id=row.supervisor_id,
        active=bool(row.active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _map_principal(row) -> Principal | None:
    """Map a row, or return None if it holds a role outside the closed set.

    Such a row cannot be authorized against any policy table, so every read
    path treats it as absent.
    """
    try:
        return _row_to_principal(row)
    except ValueError:
        logger.error("users row %s holds unknown role %r; treating it as absent", row.id, row.role)
        return None


def _row_to_credential(row) -> Credential:
    return Credential(
        salt=row.password_salt,
        password_hash=row.password_hash,
        iterations=row.password_iterations,
        digest=row.password_digest,
    )
