"""
Login / logout routes.

Handles:
- POST /api/auth/login: verify credentials, open a session, issue cookies
- POST /api/auth/logout: destroy the session and clear cookies

SECURITY:
- Login is rate limited per client IP (10 per minute)
- Login sets a fresh CSRF token; logout requires it
- Wrong email and wrong password produce the same 401
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from src.api.dependencies.auth import get_session_context, get_session_store
from src.api.schemas.auth import LoginRequest, LoginResponse, LoginUser, OkResponse
from src.auth.passwords import verify_password
from src.auth.sessions import SESSION_COOKIE_NAME, SessionStore
from src.config.settings import get_session_max_age_seconds, is_production
from src.database.session import get_db_session
from src.models.membership import Membership
from src.models.user import User
from src.platform.audit import AuditOutcome, SecurityAction, log_security_event
from src.platform.errors import AuthenticationError, PermissionDeniedError
from src.security.csrf import CSRF_COOKIE_NAME, generate_csrf_token
from src.security.guards import RateLimitSpec, guarded, ip_scope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

LOGIN_RATE_LIMIT = RateLimitSpec(route="auth.login", limit=10, window_seconds=60, scope=ip_scope)


def _set_auth_cookies(response: Response, session_token: str, csrf_token: str) -> None:
    max_age = get_session_max_age_seconds()
    secure = is_production()
    response.set_cookie(
        SESSION_COOKIE_NAME,
        session_token,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=secure,
        samesite="lax",
    )
    # Readable by same-origin script so it can be echoed in the header
    response.set_cookie(
        CSRF_COOKIE_NAME,
        csrf_token,
        max_age=max_age,
        path="/",
        httponly=False,
        secure=secure,
        samesite="lax",
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(guarded(rate_limit=LOGIN_RATE_LIMIT))],
)
def login(
    request: Request,
    response: Response,
    payload: LoginRequest,
    db: Session = Depends(get_db_session),
    store: SessionStore = Depends(get_session_store),
):
    """Authenticate with email and password; the first membership becomes active."""
    user = db.query(User).filter(User.email == payload.email).first()

    if user is None or not verify_password(payload.password, user.password_hash or ""):
        log_security_event(
            SecurityAction.AUTH_LOGIN_FAILED,
            outcome=AuditOutcome.FAILURE,
            user_id=user.id if user else None,
            request=request,
            metadata={"email": payload.email},
        )
        raise AuthenticationError("Invalid email or password")

    membership = (
        db.query(Membership)
        .filter(Membership.user_id == user.id)
        .order_by(Membership.created_at.asc())
        .first()
    )
    if membership is None:
        log_security_event(
            SecurityAction.AUTH_LOGIN_FAILED,
            outcome=AuditOutcome.DENIED,
            user_id=user.id,
            request=request,
            metadata={"reason": "no_membership"},
        )
        raise PermissionDeniedError()

    session = store.create_session(user.id, membership.workspace_id)
    _set_auth_cookies(response, session.token, generate_csrf_token())

    log_security_event(
        SecurityAction.AUTH_LOGIN,
        workspace_id=membership.workspace_id,
        user_id=user.id,
        request=request,
    )

    return LoginResponse(
        user=LoginUser(id=user.id, email=user.email, name=user.name),
        workspace_id=membership.workspace_id,
    )


@router.post(
    "/logout",
    response_model=OkResponse,
    dependencies=[Depends(guarded(csrf=True))],
)
def logout(
    request: Request,
    response: Response,
    store: SessionStore = Depends(get_session_store),
    session=Depends(get_session_context),
):
    """Destroy the current session. Succeeds even when no session is active."""
    store.destroy_session(request.cookies.get(SESSION_COOKIE_NAME))
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    response.delete_cookie(CSRF_COOKIE_NAME, path="/")

    log_security_event(
        SecurityAction.AUTH_LOGOUT,
        workspace_id=session.workspace_id if session else None,
        user_id=session.user_id if session else None,
        request=request,
    )
    return OkResponse()
