"""
Runtime configuration for the PharOS backend.

All values are read from environment variables at call time so tests can
override them with ``monkeypatch.setenv`` / ``patch.dict("os.environ")``.

Configuration (environment variables):
- DATABASE_URL:            SQLAlchemy URL (default: "sqlite:///./pharos.db")
- REDIS_URL:               Redis URL for shared rate-limit counters (unset = memory)
- RATE_LIMIT_BACKEND:      "redis" or "memory" (default: "redis")
- RATE_LIMIT_ENABLED:      Kill switch (default: "true")
- SESSION_MAX_AGE_SECONDS: Session lifetime (default: 7 days)
- ENVIRONMENT:             "production" marks cookies Secure (default: "development")
- LOG_LEVEL:               Root log level (default: "INFO")
"""

import os
from typing import Optional

DEFAULT_DATABASE_URL = "sqlite:///./pharos.db"
DEFAULT_SESSION_MAX_AGE_SECONDS = 60 * 60 * 24 * 7

RATE_LIMIT_BACKEND_REDIS = "redis"
RATE_LIMIT_BACKEND_MEMORY = "memory"


def get_database_url() -> str:
    url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    # Heroku-style URLs are not accepted by SQLAlchemy 1.4+
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def get_redis_url() -> Optional[str]:
    return os.getenv("REDIS_URL") or None


def is_rate_limit_enabled() -> bool:
    """Check if rate limiting is enabled via environment variable."""
    return os.getenv("RATE_LIMIT_ENABLED", "true").lower() in ("true", "1", "yes")


def get_rate_limit_backend() -> str:
    """
    Resolve the rate-limit storage backend.

    Redis is only selected when it is both requested and configured;
    otherwise counters live in process memory.
    """
    configured = os.getenv("RATE_LIMIT_BACKEND", RATE_LIMIT_BACKEND_REDIS).lower()
    if configured == RATE_LIMIT_BACKEND_REDIS and get_redis_url():
        return RATE_LIMIT_BACKEND_REDIS
    return RATE_LIMIT_BACKEND_MEMORY


def get_session_max_age_seconds() -> int:
    return int(os.getenv("SESSION_MAX_AGE_SECONDS", str(DEFAULT_SESSION_MAX_AGE_SECONDS)))


def is_production() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()
