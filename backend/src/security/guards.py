"""
Guard composition for route handlers.

Each guard is a function of the request returning ``None`` (proceed) or a
GuardFailure. run_guards evaluates the enabled guards in a fixed order,
CSRF first and then the rate limit, and returns the first failure. The
handler never runs after a failure.

Usage:
    @router.post(
        "/api/workspaces/{workspace_id}/skus",
        dependencies=[Depends(guarded(
            csrf=True,
            rate_limit=RateLimitSpec("skus.create", 60, 60, user_scope),
        ))],
    )
    def create_sku(...):
        ...
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional, Union

from fastapi import Depends, Request

from src.api.dependencies.auth import get_session_store, resolve_session
from src.auth.sessions import SessionStore
from src.config.settings import is_rate_limit_enabled
from src.middleware.rate_limit import FixedWindowRateLimiter, get_client_ip, get_rate_limiter
from src.platform.audit import AuditOutcome, SecurityAction, log_security_event
from src.platform.errors import AppError, GuardFailure
from src.security.csrf import CSRF_COOKIE_NAME, check_request_csrf

logger = logging.getLogger(__name__)

ScopeResolver = Union[str, Callable[[Request], str]]


class GuardError(AppError):
    """A guard rejected the request; rendered by the AppError handler."""

    def __init__(self, failure: GuardFailure):
        error = failure.to_error()
        super().__init__(
            code=error.code,
            message=error.message,
            status_code=error.status_code,
            details=error.details,
            headers=error.headers,
        )
        self.failure = failure


def ip_scope(request: Request) -> str:
    return f"ip:{get_client_ip(request)}"


def _load_session(request: Request):
    loader = getattr(request.state, "session_loader", None)
    if loader is not None:
        return loader()
    return getattr(request.state, "session", None)


def user_scope(request: Request) -> str:
    """Key on the session user; anonymous callers fall back to their IP."""
    session = _load_session(request)
    if session is not None:
        return f"user:{session.user_id}"
    return ip_scope(request)


@dataclass(frozen=True)
class RateLimitSpec:
    route: str
    limit: int
    window_seconds: int
    scope: ScopeResolver = ip_scope

    def resolve_scope(self, request: Request) -> str:
        if callable(self.scope):
            return self.scope(request)
        return self.scope


def _session_user_id(request: Request) -> Optional[str]:
    session = getattr(request.state, "session", None)
    return session.user_id if session is not None else None


def run_guards(
    request: Request,
    *,
    csrf: bool = False,
    rate_limit: Optional[RateLimitSpec] = None,
    limiter: Optional[FixedWindowRateLimiter] = None,
) -> Optional[GuardFailure]:
    """Evaluate the enabled guards in order; the first failure wins."""
    if csrf:
        failure = check_request_csrf(request)
        if failure is not None:
            reason = "missing" if not request.cookies.get(CSRF_COOKIE_NAME) else "mismatch"
            log_security_event(
                SecurityAction.CSRF_REJECTED,
                outcome=AuditOutcome.DENIED,
                user_id=_session_user_id(request),
                request=request,
                metadata={"reason": reason},
            )
            return failure

    if rate_limit is not None and is_rate_limit_enabled():
        limiter = limiter or get_rate_limiter(request)
        scope_key = rate_limit.resolve_scope(request)
        failure = limiter.check(rate_limit.route, scope_key, rate_limit.limit, rate_limit.window_seconds)
        if failure is not None:
            log_security_event(
                SecurityAction.RATE_LIMIT_TRIGGERED,
                outcome=AuditOutcome.DENIED,
                user_id=_session_user_id(request),
                request=request,
                metadata={
                    "route": rate_limit.route,
                    "scope_key": scope_key,
                    "limit": rate_limit.limit,
                    "window_seconds": rate_limit.window_seconds,
                    "retry_after": failure.retry_after,
                },
            )
            return failure

    return None


def enforce_guards(
    request: Request,
    *,
    csrf: bool = False,
    rate_limit: Optional[RateLimitSpec] = None,
    limiter: Optional[FixedWindowRateLimiter] = None,
) -> None:
    """Raising form of run_guards."""
    failure = run_guards(request, csrf=csrf, rate_limit=rate_limit, limiter=limiter)
    if failure is not None:
        raise GuardError(failure)


def guarded(*, csrf: bool = False, rate_limit: Optional[RateLimitSpec] = None) -> Callable[..., None]:
    """
    Build a FastAPI dependency running the given guards before the handler.

    The session is not looked up here. user_scope pulls it through
    ``request.state.session_loader``, which only happens once CSRF has passed.
    """

    def dependency(request: Request, store: SessionStore = Depends(get_session_store)) -> None:
        request.state.session_loader = partial(resolve_session, request, store)
        enforce_guards(request, csrf=csrf, rate_limit=rate_limit)

    return dependency
