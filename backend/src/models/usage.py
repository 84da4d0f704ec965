"""
Monthly usage counters.

Seats, SKUs and competitors are live row counts and are never stored here.
Only the snapshot-import row counter accumulates per calendar month.
"""

import uuid

from sqlalchemy import Column, Integer, String, UniqueConstraint

from src.db_base import Base
from src.models.base import TimestampMixin, WorkspaceScopedMixin


class WorkspaceUsageMonth(Base, TimestampMixin, WorkspaceScopedMixin):
    __tablename__ = "workspace_usage_months"

    id = Column(String(255), primary_key=True, default=lambda: str(uuid.uuid4()))
    year_month = Column(String(7), nullable=False, comment="UTC month, YYYY-MM")
    snapshot_import_rows_used = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("workspace_id", "year_month", name="uq_usage_workspace_month"),
    )

    def __repr__(self) -> str:
        return (
            f"<WorkspaceUsageMonth(workspace_id={self.workspace_id}, "
            f"year_month={self.year_month}, rows={self.snapshot_import_rows_used})>"
        )
