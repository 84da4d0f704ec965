"""
Membership model binding a user to a workspace with a role.

At most one membership exists per (user, workspace).
"""

import enum
import uuid

from sqlalchemy import Column, Enum as SAEnum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from src.db_base import Base
from src.models.base import TimestampMixin


class MembershipRole(str, enum.Enum):
    """Workspace roles. Ordering for authorization lives in src.auth.rbac."""
    OWNER = "OWNER"
    ANALYST = "ANALYST"


class Membership(Base, TimestampMixin):
    __tablename__ = "memberships"

    id = Column(String(255), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    workspace_id = Column(
        String(255),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(
        SAEnum(MembershipRole, name="membership_role", create_constraint=True),
        nullable=False,
        default=MembershipRole.ANALYST,
    )

    user = relationship("User", back_populates="memberships")
    workspace = relationship("Workspace", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("user_id", "workspace_id", name="uq_membership_user_workspace"),
    )

    def __repr__(self) -> str:
        return (
            f"<Membership(user_id={self.user_id}, workspace_id={self.workspace_id}, "
            f"role={self.role.value if self.role else None})>"
        )
