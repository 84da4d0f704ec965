"""
Workspace role-based access control.

Roles form a total order: OWNER (2) > ANALYST (1). A session grants nothing
by itself; every workspace access needs a membership row for
(session user, workspace).

SECURITY: "no membership" and "role too low" both raise the same generic
403 so callers cannot probe which workspaces exist.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy.orm import Session

from src.auth.sessions import SessionContext
from src.models.membership import Membership, MembershipRole
from src.platform.audit import AuditOutcome, SecurityAction, log_security_event
from src.platform.errors import AuthenticationError, PermissionDeniedError

logger = logging.getLogger(__name__)

ROLE_WEIGHT: Dict[MembershipRole, int] = {
    MembershipRole.ANALYST: 1,
    MembershipRole.OWNER: 2,
}


@dataclass(frozen=True)
class Actor:
    """The authenticated user acting inside one workspace."""

    user_id: str
    email: str
    name: Optional[str]
    workspace_id: str
    role: MembershipRole
    session_id: str


def role_satisfies(role: MembershipRole, min_role: MembershipRole) -> bool:
    return ROLE_WEIGHT[role] >= ROLE_WEIGHT[min_role]


def get_membership_role(db: Session, user_id: str, workspace_id: str) -> Optional[MembershipRole]:
    membership = (
        db.query(Membership)
        .filter(
            Membership.user_id == user_id,
            Membership.workspace_id == workspace_id,
        )
        .first()
    )
    return membership.role if membership else None


def get_actor_and_role(
    db: Session,
    session: Optional[SessionContext],
    workspace_id: str,
) -> Actor:
    """
    Resolve the acting user's role in ``workspace_id``.

    Raises:
        AuthenticationError: no valid session (401).
        PermissionDeniedError: the user has no membership in the workspace (403).
    """
    if session is None:
        raise AuthenticationError()

    role = get_membership_role(db, session.user_id, workspace_id)
    if role is None:
        log_security_event(
            SecurityAction.ACCESS_DENIED,
            outcome=AuditOutcome.DENIED,
            workspace_id=workspace_id,
            user_id=session.user_id,
            metadata={"reason": "no_membership"},
        )
        raise PermissionDeniedError()

    return Actor(
        user_id=session.user_id,
        email=session.email,
        name=session.name,
        workspace_id=workspace_id,
        role=role,
        session_id=session.id,
    )


def require_role(
    db: Session,
    session: Optional[SessionContext],
    workspace_id: str,
    min_role: MembershipRole,
) -> Actor:
    """get_actor_and_role plus a minimum-role check (403 when below)."""
    actor = get_actor_and_role(db, session, workspace_id)
    if not role_satisfies(actor.role, min_role):
        log_security_event(
            SecurityAction.ACCESS_DENIED,
            outcome=AuditOutcome.DENIED,
            workspace_id=workspace_id,
            user_id=actor.user_id,
            metadata={"reason": "insufficient_role", "role": actor.role.value, "required": min_role.value},
        )
        raise PermissionDeniedError()
    return actor


def require_owner(db: Session, session: Optional[SessionContext], workspace_id: str) -> Actor:
    return require_role(db, session, workspace_id, MembershipRole.OWNER)
