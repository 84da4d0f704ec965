"""
Double-submit CSRF verification.

At login the server sets a random token in the ``pharos_csrf`` cookie,
which same-origin script can read and echo back in the ``x-pharos-csrf``
header. A cross-origin page can make the browser send the cookie but cannot
read it, so it cannot produce a matching header.

Only mutating methods are checked. The check is pure: no server-side token
storage and no side effects.
"""

import hmac
import secrets
from typing import Optional, Set

from fastapi import Request, status

from src.platform.errors import ErrorCode, GuardFailure

CSRF_COOKIE_NAME = "pharos_csrf"
CSRF_HEADER_NAME = "x-pharos-csrf"

MUTATING_METHODS: Set[str] = {"POST", "PUT", "PATCH", "DELETE"}

_CSRF_FAILURE_MESSAGE = "CSRF token missing or invalid"


def is_mutating_method(method: str) -> bool:
    """True for create/update/delete-style HTTP methods."""
    return method.upper() in MUTATING_METHODS


def generate_csrf_token() -> str:
    return secrets.token_urlsafe(24)


def check_csrf(
    method: str,
    cookie_token: Optional[str],
    header_token: Optional[str],
) -> Optional[GuardFailure]:
    """
    Evaluate the double-submit pair for one request.

    Returns None when the request may proceed, or a CSRF_INVALID failure
    when the method is mutating and either token is absent/empty or the two
    differ. Comparison is exact and constant-time.
    """
    if not is_mutating_method(method):
        return None

    if not cookie_token or not header_token:
        return GuardFailure(ErrorCode.CSRF_INVALID, _CSRF_FAILURE_MESSAGE, status.HTTP_403_FORBIDDEN)

    if not hmac.compare_digest(cookie_token.encode("utf-8"), header_token.encode("utf-8")):
        return GuardFailure(ErrorCode.CSRF_INVALID, _CSRF_FAILURE_MESSAGE, status.HTTP_403_FORBIDDEN)

    return None


def check_request_csrf(request: Request) -> Optional[GuardFailure]:
    return check_csrf(
        request.method,
        request.cookies.get(CSRF_COOKIE_NAME),
        request.headers.get(CSRF_HEADER_NAME),
    )
