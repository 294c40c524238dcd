"""
auth/policy.py -- Role hierarchy policy.

Two static tables, two total functions over them:

  _CREATION_RULES   creator role -> the single role it may create
      GENERAL_ADMIN -> AREA_MANAGER -> HR_ADMIN -> WORKER
  _APPROVER_DEPTH   approver role -> how far up the owner's supervisor chain
                    the approver may sit
      GENERAL_ADMIN  unscoped (every pending request)
      AREA_MANAGER   2  (owner's supervisor, or that supervisor's supervisor)
      HR_ADMIN       1  (owner's direct supervisor)
      WORKER         0  (never approves)

This is domain policy, not deployment configuration: nothing here is read
from the environment.

Known limitation: the AREA_MANAGER rule reaches exactly two levels. It fits
the four-role chain above; if deeper hierarchies are ever introduced the
depth table must be revisited rather than generalised silently.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

from auth.models import Role

_CREATION_RULES = MappingProxyType(
    {
        Role.GENERAL_ADMIN: frozenset({Role.AREA_MANAGER}),
        Role.AREA_MANAGER: frozenset({Role.HR_ADMIN}),
        Role.HR_ADMIN: frozenset({Role.WORKER}),
        Role.WORKER: frozenset(),
    }
)

# None = unscoped.
_APPROVER_DEPTH = MappingProxyType(
    {
        Role.GENERAL_ADMIN: None,
        Role.AREA_MANAGER: 2,
        Role.HR_ADMIN: 1,
        Role.WORKER: 0,
    }
)


@dataclass(frozen=True)
class ApproverScope:
    """Which pending requests an approver may see and decide.

    unscoped -- every request, regardless of owner.
    depth    -- otherwise, the approver must appear within the first `depth`
                links of the owner's supervisor chain. 0 means empty scope.
    """

    unscoped: bool = False
    depth: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.unscoped and self.depth <= 0


def can_create(creator_role: Role, target_role: Role) -> bool:
    """Return True if creator_role may create an account of target_role."""
    try:
        return Role(target_role) in _CREATION_RULES[Role(creator_role)]
    except ValueError:
        return False


def creatable_roles(creator_role: Role) -> frozenset[Role]:
    return _CREATION_RULES.get(Role(creator_role), frozenset())


def approver_scope(approver_role: Role) -> ApproverScope:
    """Return the approval scope descriptor for a role."""
    try:
        depth = _APPROVER_DEPTH[Role(approver_role)]
    except (KeyError, ValueError):
        return ApproverScope()
    if depth is None:
        return ApproverScope(unscoped=True)
    return ApproverScope(depth=depth)
