"""
auth/gate.py -- Authorization gate.

Composes the token codec, the password hasher and the role policy over a
principal store. This is the only place an allow/deny decision is made; the
routes call a gate method and translate whatever it raises.

Contract:
  login(email, password)              -> token          | InvalidCredentials
  open_session(email, password)       -> (Principal, token) | InvalidCredentials
  authenticate(token)                 -> Principal      | TokenInvalid
  authorize_create(actor, role)       -> None           | Forbidden
  approval_scope(actor)               -> ApproverScope  | Forbidden
  authorize_decision(actor, owner_id) -> None           | Forbidden
  authorize_oversight(actor, owner_id)-> None           | Forbidden
  authorize_manage(actor, target_id)  -> None           | Forbidden
Any of them may raise CollaboratorUnavailable when the store cannot answer.

The gate only reads. Every Forbidden carries the same meaning to the caller;
the reason is logged at DEBUG and nowhere else.

Scope membership is always re-derived from the live supervisor chain at the
moment of the check, never from a list the caller fetched earlier.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from auth import passwords
from auth.errors import CollaboratorUnavailable, Forbidden, InvalidCredentials, TokenInvalid
from auth.models import Credential, Principal, Role
from auth.policy import ApproverScope, approver_scope, can_create
from auth.tokens import TokenCodec

logger = logging.getLogger("cronocodex.auth")

T = TypeVar("T")


class PrincipalDirectory(Protocol):
    """What the gate needs from storage. PrincipalStore satisfies it."""

    def find_by_id(self, principal_id: int) -> Principal | None: ...

    def find_credential(self, email: str) -> tuple[Principal, Credential] | None: ...


class AuthGate:
    def __init__(self, directory: PrincipalDirectory, codec: TokenCodec) -> None:
        self._directory = directory
        self._codec = codec

    @property
    def codec(self) -> TokenCodec:
        return self._codec

    # ------------------------------------------------------------------
    # Collaborator access
    # ------------------------------------------------------------------

    def _read(self, fn: Callable[..., T], *args) -> T:
        try:
            return fn(*args)
        except SQLAlchemyError as exc:
            logger.error("Principal store unavailable: %s", exc.__class__.__name__, exc_info=True)
            raise CollaboratorUnavailable("principal store unavailable") from exc

    def _find(self, principal_id: int | None) -> Principal | None:
        if principal_id is None:
            return None
        return self._read(self._directory.find_by_id, principal_id)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def verify_login(self, email: str, password: str) -> Principal:
        """Check an email/password pair and return the principal.

        Always runs one PBKDF2 verification, against a dummy credential when
        the email is unknown, so timing does not reveal account existence.
        Unknown email, wrong password and inactive account all raise the
        same InvalidCredentials.
        """
        found = self._read(self._directory.find_credential, email)
        if found is None:
            passwords.verify(password, passwords.DUMMY_CREDENTIAL)
            raise InvalidCredentials("invalid credentials")
        principal, credential = found
        if not passwords.verify(password, credential):
            raise InvalidCredentials("invalid credentials")
        if not principal.active:
            raise InvalidCredentials("invalid credentials")
        return principal

    def open_session(self, email: str, password: str) -> tuple[Principal, str]:
        """Verify credentials and issue a token. Returns (principal, token)."""
        principal = self.verify_login(email, password)
        logger.info("Login succeeded for principal %s", principal.id)
        return principal, self._codec.issue(principal.id, principal.role)

    def login(self, email: str, password: str) -> str:
        return self.open_session(email, password)[1]

    def authenticate(self, token: str | None) -> Principal:
        """Resolve a bearer token to the current, active principal.

        The token is verified first; only a valid signature leads to a store
        read. The stored record must still exist, be active, and hold the
        role the token was issued for.
        """
        claims = self._codec.verify(token)
        if claims is None:
            raise TokenInvalid("token rejected")
        principal = self._find(claims.principal_id)
        if principal is None or not principal.active or principal.role != claims.role:
            raise TokenInvalid("principal not resolvable")
        return principal

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorize_create(self, actor: Principal, desired_role: Role) -> None:
        if not can_create(actor.role, desired_role):
            logger.debug("Denied create of %s by principal %s", desired_role, actor.id)
            raise Forbidden("not authorized")

    def approval_scope(self, actor: Principal) -> ApproverScope:
        scope = approver_scope(actor.role)
        if scope.is_empty:
            logger.debug("Denied approval view for principal %s", actor.id)
            raise Forbidden("not authorized")
        return scope

    def in_scope(self, actor: Principal, owner_id: int) -> bool:
        """Return True if owner_id falls inside actor's approver scope right now."""
        scope = approver_scope(actor.role)
        if scope.is_empty:
            return False
        owner = self._find(owner_id)
        if owner is None:
            return False
        if scope.unscoped:
            return True
        current = owner
        for _ in range(scope.depth):
            if current.supervisor_id is None:
                return False
            if current.supervisor_id == actor.id:
                return True
            current = self._find(current.supervisor_id)
            if current is None:
                return False
        return False

    def authorize_decision(self, actor: Principal, request_owner_id: int) -> None:
        if not self.in_scope(actor, request_owner_id):
            logger.debug("Denied decision on owner %s by principal %s", request_owner_id, actor.id)
            raise Forbidden("not authorized")

    def authorize_oversight(self, actor: Principal, owner_id: int) -> None:
        """Allow reading another principal's records (e.g. time events)."""
        if actor.id == owner_id:
            return
        if not self.in_scope(actor, owner_id):
            raise Forbidden("not authorized")

    def authorize_manage(self, actor: Principal, target_id: int) -> None:
        """Allow toggling a principal's active flag.

        The direct supervisor may manage their reports; a GENERAL_ADMIN may
        manage anyone except themselves.
        """
        if target_id == actor.id:
            raise Forbidden("not authorized")
        target = self._find(target_id)
        if target is None:
            raise Forbidden("not authorized")
        if target.supervisor_id == actor.id or actor.role == Role.GENERAL_ADMIN:
            return
        raise Forbidden("not authorized")
