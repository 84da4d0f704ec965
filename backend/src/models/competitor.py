"""Competitor model: a storefront whose prices are tracked."""

import uuid

from sqlalchemy import Column, String, UniqueConstraint

from src.db_base import Base
from src.models.base import TimestampMixin, WorkspaceScopedMixin


class Competitor(Base, TimestampMixin, WorkspaceScopedMixin):
    __tablename__ = "competitors"

    id = Column(String(255), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    domain = Column(String(255), nullable=True)
    currency = Column(String(3), nullable=False, default="INR")

    __table_args__ = (
        UniqueConstraint("workspace_id", "name", name="uq_competitor_workspace_name"),
    )

    def __repr__(self) -> str:
        return f"<Competitor(workspace_id={self.workspace_id}, name={self.name})>"
