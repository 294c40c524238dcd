"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in hr/models.py: dataclasses own domain shape; stores, the gate and routes
do the work.

Layer rule: no imports from api/, core/ or hr/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Closed set of account kinds, highest privilege first."""

    GENERAL_ADMIN = "GENERAL_ADMIN"
    AREA_MANAGER = "AREA_MANAGER"
    HR_ADMIN = "HR_ADMIN"
    WORKER = "WORKER"


@dataclass(frozen=True)
class Credential:
    """Stored password material for one principal.

    iterations and digest are kept next to the hash so a row derived under an
    older scheme still verifies after the defaults change. Any field may be
    None on a damaged row; verification treats that as a mismatch.
    """

    salt: str | None
    password_hash: str | None
    iterations: int | None = None
    digest: str | None = None


@dataclass
class Principal:
    """An account in the supervisor forest.

    supervisor_id is None only for a root GENERAL_ADMIN. role and
    supervisor_id never change after creation; active may toggle.
    id is None before the record is written to the database.
    """

    email: str
    full_name: str
    role: Role
    id: int | None = None
    supervisor_id: int | None = None
    active: bool = True
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """The verified content of a session token."""

    principal_id: int
    role: Role
    expires_at: int  # epoch seconds
