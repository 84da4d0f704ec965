"""
Guard composer tests.

Verifies:
- CSRF runs before the rate limit and short-circuits it
- The first failure is returned; None means proceed
- RATE_LIMIT_ENABLED=false disables only the rate limit
- Rate-limit scopes resolve from strings, client IPs and sessions
"""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from starlette.requests import Request

from src.platform.errors import ErrorCode
from src.security.csrf import CSRF_COOKIE_NAME, CSRF_HEADER_NAME
from src.security.guards import (
    GuardError,
    RateLimitSpec,
    enforce_guards,
    ip_scope,
    run_guards,
    user_scope,
)


def make_request(method="POST", cookies=None, headers=None, session=None):
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if cookies:
        cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        raw_headers.append((b"cookie", cookie_header.encode()))
    scope = {
        "type": "http",
        "method": method,
        "path": "/api/workspaces/ws-1/skus",
        "query_string": b"",
        "headers": raw_headers,
        "app": SimpleNamespace(state=SimpleNamespace()),
        "state": {},
    }
    request = Request(scope)
    request.state.session = session
    return request


def csrf_pair(token="tok-123"):
    return {"cookies": {CSRF_COOKIE_NAME: token}, "headers": {CSRF_HEADER_NAME: token}}


@pytest.fixture(autouse=True)
def rate_limit_enabled(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "true")


class TestRunGuards:

    def test_no_guards_enabled_passes(self, rate_limiter):
        assert run_guards(make_request(), limiter=rate_limiter) is None

    def test_csrf_failure_short_circuits_rate_limit(self):
        limiter = Mock()
        spec = RateLimitSpec("skus.create", 1, 60, "user:u1")

        failure = run_guards(make_request(), csrf=True, rate_limit=spec, limiter=limiter)

        assert failure.code == ErrorCode.CSRF_INVALID
        limiter.check.assert_not_called()

    def test_csrf_failure_never_loads_session(self, rate_limiter):
        request = make_request()
        request.state.session_loader = Mock()
        spec = RateLimitSpec("skus.create", 5, 60, user_scope)

        failure = run_guards(request, csrf=True, rate_limit=spec, limiter=rate_limiter)

        assert failure.code == ErrorCode.CSRF_INVALID
        request.state.session_loader.assert_not_called()

    def test_valid_csrf_then_rate_limit(self, rate_limiter):
        spec = RateLimitSpec("skus.create", 2, 60, "user:u1")

        results = [
            run_guards(make_request(**csrf_pair()), csrf=True, rate_limit=spec, limiter=rate_limiter)
            for _ in range(3)
        ]

        assert results[0] is None
        assert results[1] is None
        assert results[2].code == ErrorCode.TOO_MANY_REQUESTS
        assert results[2].http_status == 429

    def test_read_only_request_skips_csrf(self, rate_limiter):
        assert run_guards(make_request(method="GET"), csrf=True, limiter=rate_limiter) is None

    def test_csrf_disabled_allows_tokenless_post(self, rate_limiter):
        assert run_guards(make_request(), csrf=False, limiter=rate_limiter) is None

    def test_kill_switch_disables_rate_limit(self, rate_limiter, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
        spec = RateLimitSpec("auth.login", 1, 60, "ip:1.1.1.1")

        for _ in range(5):
            assert run_guards(make_request(), rate_limit=spec, limiter=rate_limiter) is None

    def test_kill_switch_keeps_csrf(self, rate_limiter, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")

        failure = run_guards(make_request(), csrf=True, limiter=rate_limiter)

        assert failure.code == ErrorCode.CSRF_INVALID

    def test_limiter_from_app_state(self, rate_limiter):
        request = make_request()
        request.app.state.rate_limiter = rate_limiter
        spec = RateLimitSpec("r", 1, 60, "s")

        assert run_guards(request, rate_limit=spec) is None
        assert run_guards(make_request(), rate_limit=spec, limiter=rate_limiter).code == ErrorCode.TOO_MANY_REQUESTS

    def test_failures_are_logged(self, rate_limiter, caplog):
        with caplog.at_level("WARNING", logger="pharos.audit"):
            run_guards(make_request(), csrf=True, limiter=rate_limiter)

        actions = [r.audit["action"] for r in caplog.records if hasattr(r, "audit")]
        assert "csrf.rejected" in actions


class TestScopes:

    def test_string_scope(self):
        assert RateLimitSpec("r", 1, 60, "ws:abc").resolve_scope(make_request()) == "ws:abc"

    def test_ip_scope_prefers_forwarded_for(self):
        request = make_request(headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "10.0.0.2"})

        assert ip_scope(request) == "ip:203.0.113.7"

    def test_ip_scope_falls_back_to_real_ip_then_unknown(self):
        assert ip_scope(make_request(headers={"X-Real-IP": "10.0.0.2"})) == "ip:10.0.0.2"
        assert ip_scope(make_request()) == "ip:unknown"

    def test_user_scope_uses_session_user(self):
        request = make_request(session=SimpleNamespace(user_id="user-42"))

        assert user_scope(request) == "user:user-42"

    def test_user_scope_without_session_uses_ip(self):
        assert user_scope(make_request(headers={"X-Real-IP": "10.0.0.9"})) == "ip:10.0.0.9"

    def test_user_scope_loads_session_lazily(self):
        request = make_request()
        request.state.session_loader = Mock(return_value=SimpleNamespace(user_id="user-7"))

        assert user_scope(request) == "user:user-7"
        request.state.session_loader.assert_called_once_with()


class TestEnforceGuards:

    def test_raises_guard_error_with_retry_after(self, rate_limiter):
        spec = RateLimitSpec("r", 1, 60, "s")
        enforce_guards(make_request(), rate_limit=spec, limiter=rate_limiter)

        with pytest.raises(GuardError) as exc_info:
            enforce_guards(make_request(), rate_limit=spec, limiter=rate_limiter)

        error = exc_info.value
        assert error.status_code == 429
        assert int(error.headers["Retry-After"]) >= 1
        assert error.failure.code == ErrorCode.TOO_MANY_REQUESTS

    def test_csrf_guard_error_shape(self, rate_limiter):
        with pytest.raises(GuardError) as exc_info:
            enforce_guards(make_request(), csrf=True, limiter=rate_limiter)

        assert exc_info.value.status_code == 403
        assert exc_info.value.to_dict() == {
            "ok": False,
            "error": {"code": "CSRF_INVALID", "message": "CSRF token missing or invalid", "details": {}},
        }
