"""Fixtures for the security guard suite."""

from src.tests.fixtures import (  # noqa: F401
    app,
    client,
    clock,
    db_engine,
    db_session,
    rate_limiter,
    session_factory,
    tenant,
)
