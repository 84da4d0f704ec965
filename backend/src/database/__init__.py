"""Database engine and session management."""

from src.database.session import (
    get_engine,
    get_session_factory,
    get_db_session,
    get_db_session_sync,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "get_db_session",
    "get_db_session_sync",
]
