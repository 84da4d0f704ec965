"""
Tests for rate limiting configuration and wiring.

Verifies:
- Backend selection from RATE_LIMIT_BACKEND / REDIS_URL
- The limiter lives on app.state and is created lazily when absent
- A 429 response carries Retry-After and the standard envelope
- Redis failure degrades gracefully (allows request)
"""

from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
import redis as redis_lib

from src.config.settings import get_rate_limit_backend, is_rate_limit_enabled
from src.middleware.rate_limit import (
    FixedWindowRateLimiter,
    InMemoryRateLimitStore,
    RedisRateLimitStore,
    create_rate_limit_store,
    get_rate_limiter,
)
from src.tests.fixtures import login


class TestBackendSelection:

    @patch.dict("os.environ", {"RATE_LIMIT_BACKEND": "redis", "REDIS_URL": "redis://cache:6379/0"})
    def test_redis_when_configured(self):
        assert get_rate_limit_backend() == "redis"
        store = create_rate_limit_store()
        assert isinstance(store, RedisRateLimitStore)
        assert store.redis_url == "redis://cache:6379/0"

    @patch.dict("os.environ", {"RATE_LIMIT_BACKEND": "redis", "REDIS_URL": ""})
    def test_redis_without_url_falls_back_to_memory(self):
        assert get_rate_limit_backend() == "memory"
        assert isinstance(create_rate_limit_store(), InMemoryRateLimitStore)

    @patch.dict("os.environ", {"RATE_LIMIT_BACKEND": "memory", "REDIS_URL": "redis://cache:6379/0"})
    def test_memory_when_requested(self):
        assert isinstance(create_rate_limit_store(), InMemoryRateLimitStore)

    @pytest.mark.parametrize("value,expected", [("true", True), ("1", True), ("false", False), ("no", False)])
    def test_kill_switch_parsing(self, monkeypatch, value, expected):
        monkeypatch.setenv("RATE_LIMIT_ENABLED", value)

        assert is_rate_limit_enabled() is expected


class TestLimiterOnAppState:

    def test_existing_limiter_is_returned(self, rate_limiter):
        request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(rate_limiter=rate_limiter)))

        assert get_rate_limiter(request) is rate_limiter

    @patch.dict("os.environ", {"RATE_LIMIT_BACKEND": "memory"})
    def test_missing_limiter_is_created_once(self):
        request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace()))

        first = get_rate_limiter(request)

        assert isinstance(first, FixedWindowRateLimiter)
        assert get_rate_limiter(request) is first


class TestThrottledResponse:

    def test_429_response_shape(self, client, tenant):
        for _ in range(10):
            login(client, "owner@a.example", ip="192.0.2.10")

        response = login(client, "owner@a.example", ip="192.0.2.10")

        assert response.status_code == 429
        assert response.json() == {
            "ok": False,
            "error": {
                "code": "TOO_MANY_REQUESTS",
                "message": "Too many requests",
                "details": {
                    "limit": 10,
                    "route": "auth.login",
                    "retry_after_seconds": int(response.headers["Retry-After"]),
                },
            },
        }
        assert "X-Correlation-ID" in response.headers

    def test_throttle_is_audited(self, client, tenant, caplog):
        with caplog.at_level("WARNING", logger="pharos.audit"):
            for _ in range(11):
                login(client, "owner@a.example", ip="192.0.2.11")

        events = [r.audit for r in caplog.records if hasattr(r, "audit")]
        triggered = [e for e in events if e["action"] == "rate_limit.triggered"]
        assert len(triggered) == 1
        assert triggered[0]["metadata"]["scope_key"] == "ip:192.0.2.11"

    def test_redis_outage_allows_login(self, app, client, tenant):
        """Redis failure results in graceful degradation (allow request)."""
        mock_redis = Mock()
        pipe = Mock()
        pipe.execute.side_effect = redis_lib.ConnectionError("Redis down")
        mock_redis.pipeline.return_value = pipe
        app.state.rate_limiter = FixedWindowRateLimiter(
            RedisRateLimitStore("redis://localhost:6379/0", client=mock_redis)
        )

        for _ in range(15):
            assert login(client, "owner@a.example", ip="192.0.2.12").status_code == 200
