"""
Opaque-token session store backed by the ``sessions`` table.

Lifecycle:
1. Login calls create_session(); the token goes into the httpOnly
   ``pharos_session`` cookie.
2. Every request resolves the cookie through get_session(). A row whose
   expires_at has passed is deleted and treated as absent.
3. Logout calls destroy_session().

The store is constructed per request around the request's DB session; it
holds no state of its own.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from src.config.settings import get_session_max_age_seconds
from src.models.auth_session import AuthSession

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "pharos_session"


@dataclass(frozen=True)
class SessionContext:
    """Read-only view of a valid session."""

    id: str
    user_id: str
    workspace_id: Optional[str]
    expires_at: datetime
    email: str
    name: Optional[str]


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on round-trip
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SessionStore:
    """CRUD for login sessions keyed by opaque token."""

    def __init__(self, db: Session, clock: Callable[[], float] = time.time):
        self.db = db
        self._clock = clock

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def create_session(
        self,
        user_id: str,
        workspace_id: Optional[str] = None,
        max_age_seconds: Optional[int] = None,
    ) -> AuthSession:
        """Persist a new session and return it (``token`` is set on the row)."""
        max_age = max_age_seconds if max_age_seconds is not None else get_session_max_age_seconds()
        now = self._now()
        record = AuthSession(
            token=generate_session_token(),
            user_id=user_id,
            workspace_id=workspace_id,
            created_at=now,
            expires_at=now + timedelta(seconds=max_age),
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        logger.info(
            "Session created",
            extra={"session_id": record.id, "user_id": user_id, "workspace_id": workspace_id},
        )
        return record

    def get_session(self, token: Optional[str]) -> Optional[SessionContext]:
        """Resolve a token to a live session, or None when unknown or expired."""
        if not token:
            return None

        record = self.db.query(AuthSession).filter(AuthSession.token == token).first()
        if record is None:
            return None

        if _as_utc(record.expires_at) <= self._now():
            logger.info("Session expired", extra={"session_id": record.id, "user_id": record.user_id})
            self.db.delete(record)
            self.db.commit()
            return None

        return SessionContext(
            id=record.id,
            user_id=record.user_id,
            workspace_id=record.workspace_id,
            expires_at=_as_utc(record.expires_at),
            email=record.user.email,
            name=record.user.name,
        )

    def destroy_session(self, token: Optional[str]) -> int:
        """Delete the session for ``token``. Returns rows removed."""
        if not token:
            return 0
        removed = self.db.query(AuthSession).filter(AuthSession.token == token).delete()
        self.db.commit()
        return removed
