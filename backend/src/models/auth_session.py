"""
Login session model.

One row per opaque session token. Rows are created at login and deleted at
logout, or lazily on the first read after expires_at.
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from src.db_base import Base
from src.models.base import utcnow


class AuthSession(Base):
    __tablename__ = "sessions"

    id = Column(String(255), primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String(255), nullable=False, unique=True, index=True)
    user_id = Column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    workspace_id = Column(
        String(255),
        ForeignKey("workspaces.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", lazy="joined")

    def __repr__(self) -> str:
        # token deliberately omitted
        return f"<AuthSession(id={self.id}, user_id={self.user_id})>"
