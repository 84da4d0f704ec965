"""Configuration module for backend services."""

from src.config.settings import (
    get_database_url,
    get_redis_url,
    get_rate_limit_backend,
    get_session_max_age_seconds,
    is_production,
    is_rate_limit_enabled,
    get_log_level,
)

__all__ = [
    "get_database_url",
    "get_redis_url",
    "get_rate_limit_backend",
    "get_session_max_age_seconds",
    "is_production",
    "is_rate_limit_enabled",
    "get_log_level",
]
