"""User model. Email is stored lower-cased and is unique."""

import uuid

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from src.db_base import Base
from src.models.base import TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(String(255), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(320), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=True)

    memberships = relationship(
        "Membership",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="Membership.created_at",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
