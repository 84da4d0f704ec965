"""
CSRF double-submit verification tests.

Verifies:
- Read-only methods are never checked
- Mutating methods need a cookie and a header with equal values
- Failures carry CSRF_INVALID / 403
"""

import pytest

from src.platform.errors import CsrfError, ErrorCode
from src.security.csrf import (
    MUTATING_METHODS,
    check_csrf,
    generate_csrf_token,
    is_mutating_method,
)


class TestMethodClassification:

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE", "post", "delete"])
    def test_mutating_methods(self, method):
        assert is_mutating_method(method) is True

    @pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS"])
    def test_read_only_methods(self, method):
        assert is_mutating_method(method) is False


class TestCheckCsrf:

    @pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS"])
    def test_read_only_method_passes_without_tokens(self, method):
        """Read-only requests are not checked at all."""
        assert check_csrf(method, None, None) is None
        assert check_csrf(method, "a", "b") is None

    @pytest.mark.parametrize("method", sorted(MUTATING_METHODS))
    def test_matching_pair_passes(self, method):
        token = generate_csrf_token()
        assert check_csrf(method, token, token) is None

    @pytest.mark.parametrize(
        "cookie,header",
        [
            (None, None),
            ("tok", None),
            (None, "tok"),
            ("", ""),
            ("", "tok"),
            ("tok", ""),
        ],
    )
    def test_missing_token_fails(self, cookie, header):
        failure = check_csrf("POST", cookie, header)

        assert failure is not None
        assert failure.code == ErrorCode.CSRF_INVALID
        assert failure.http_status == 403

    def test_mismatched_pair_fails(self):
        failure = check_csrf("DELETE", "token-one", "token-two")

        assert failure is not None
        assert failure.code == ErrorCode.CSRF_INVALID

    def test_comparison_is_exact(self):
        """No trimming or case folding."""
        assert check_csrf("POST", "Token", "token") is not None
        assert check_csrf("POST", "token", "token ") is not None

    def test_failure_converts_to_csrf_error(self):
        error = check_csrf("PUT", "a", "b").to_error()

        assert isinstance(error, CsrfError)
        assert error.status_code == 403
        assert error.to_dict()["error"]["code"] == "CSRF_INVALID"


class TestTokenGeneration:

    def test_tokens_are_unique_and_url_safe(self):
        tokens = {generate_csrf_token() for _ in range(50)}

        assert len(tokens) == 50
        for token in tokens:
            assert len(token) >= 32
            assert all(c.isalnum() or c in "-_" for c in token)
