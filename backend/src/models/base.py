"""
Shared model mixins.

Workspace-scoped models inherit WorkspaceScopedMixin so every tenant row
carries an indexed, non-null workspace_id.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import declared_attr


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Adds created_at / updated_at columns."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


class WorkspaceScopedMixin:
    """Tenant boundary: every row belongs to exactly one workspace."""

    @declared_attr
    def workspace_id(cls):
        return Column(
            String(255),
            ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
