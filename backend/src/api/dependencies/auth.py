"""
Session and workspace-role dependencies.

get_session_context resolves the ``pharos_session`` cookie once per request
and stores it on ``request.state.session``. Guards do not depend on it: a
user-scoped rate limit loads the session through resolve_session only after
the CSRF check has passed.

Usage:
    @router.get("/api/workspaces/{workspace_id}/skus")
    def list_skus(actor: Actor = Depends(workspace_actor(MembershipRole.ANALYST))):
        ...
"""

from typing import Callable, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from src.auth.rbac import Actor, require_role
from src.auth.sessions import SESSION_COOKIE_NAME, SessionContext, SessionStore
from src.database.session import get_db_session
from src.models.membership import MembershipRole


def get_session_store(db: Session = Depends(get_db_session)) -> SessionStore:
    return SessionStore(db)


def resolve_session(request: Request, store: SessionStore) -> Optional[SessionContext]:
    """Look the session cookie up at most once per request."""
    if hasattr(request.state, "session"):
        return request.state.session
    session = store.get_session(request.cookies.get(SESSION_COOKIE_NAME))
    request.state.session = session
    return session


def get_session_context(
    request: Request,
    store: SessionStore = Depends(get_session_store),
) -> Optional[SessionContext]:
    """The current session, or None when the cookie is absent, unknown or expired."""
    return resolve_session(request, store)


def workspace_actor(min_role: MembershipRole = MembershipRole.ANALYST) -> Callable[..., Actor]:
    """
    Dependency factory: the acting user in the ``workspace_id`` path param.

    Raises 401 without a session and a generic 403 without a membership or
    when the role is below ``min_role``.
    """

    def dependency(
        workspace_id: str,
        db: Session = Depends(get_db_session),
        session: Optional[SessionContext] = Depends(get_session_context),
    ) -> Actor:
        return require_role(db, session, workspace_id, min_role)

    return dependency
