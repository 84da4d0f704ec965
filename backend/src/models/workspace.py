"""
Workspace model: the tenant boundary.

plan_override lets a reseller pin a tier regardless of the Stripe
subscription; billing_managed_by_reseller forces an ACTIVE billing status.
"""

import uuid

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

from src.db_base import Base
from src.models.base import TimestampMixin


class Workspace(Base, TimestampMixin):
    __tablename__ = "workspaces"

    id = Column(String(255), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    plan_override = Column(String(50), nullable=True)
    billing_managed_by_reseller = Column(Boolean, nullable=False, default=False)

    memberships = relationship(
        "Membership",
        back_populates="workspace",
        cascade="all, delete-orphan",
    )
    subscription = relationship(
        "WorkspaceSubscription",
        back_populates="workspace",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Workspace(id={self.id}, name={self.name})>"
