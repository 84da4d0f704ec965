"""
Workspace usage counting.

Seats, SKUs and competitors are counted from live rows on every call; there
is no running counter that could drift from the data. The snapshot-import
row counter is the exception: imported rows are not a standing population,
so it accumulates per UTC calendar month in WorkspaceUsageMonth.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.entitlements.plans import LimitKey
from src.models.competitor import Competitor
from src.models.membership import Membership
from src.models.sku import SKU
from src.models.usage import WorkspaceUsageMonth

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkspaceUsage:
    year_month: str
    seats_used: int
    skus_used: int
    competitors_used: int
    snapshot_import_rows_used: int

    def used(self, key: LimitKey) -> int:
        if key == LimitKey.SEATS:
            return self.seats_used
        if key == LimitKey.SKUS:
            return self.skus_used
        if key == LimitKey.COMPETITORS:
            return self.competitors_used
        return self.snapshot_import_rows_used

    def to_dict(self) -> dict:
        return {
            "year_month": self.year_month,
            "seats_used": self.seats_used,
            "skus_used": self.skus_used,
            "competitors_used": self.competitors_used,
            "snapshot_import_rows_used": self.snapshot_import_rows_used,
        }


def current_year_month(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{now.year:04d}-{now.month:02d}"


def _count(db: Session, model, workspace_id: str) -> int:
    return db.query(func.count(model.id)).filter(model.workspace_id == workspace_id).scalar() or 0


def get_or_create_usage_month(db: Session, workspace_id: str, year_month: str) -> WorkspaceUsageMonth:
    usage = (
        db.query(WorkspaceUsageMonth)
        .filter(
            WorkspaceUsageMonth.workspace_id == workspace_id,
            WorkspaceUsageMonth.year_month == year_month,
        )
        .first()
    )
    if usage is not None:
        return usage

    usage = WorkspaceUsageMonth(
        workspace_id=workspace_id,
        year_month=year_month,
        snapshot_import_rows_used=0,
    )
    db.add(usage)
    try:
        db.commit()
    except IntegrityError:
        # Another request created the row first
        db.rollback()
        return (
            db.query(WorkspaceUsageMonth)
            .filter(
                WorkspaceUsageMonth.workspace_id == workspace_id,
                WorkspaceUsageMonth.year_month == year_month,
            )
            .one()
        )
    db.refresh(usage)
    return usage


def count_usage(db: Session, workspace_id: str, now: Optional[datetime] = None) -> WorkspaceUsage:
    """Count current tenant rows for ``workspace_id``."""
    year_month = current_year_month(now)
    usage_month = get_or_create_usage_month(db, workspace_id, year_month)
    return WorkspaceUsage(
        year_month=year_month,
        seats_used=_count(db, Membership, workspace_id),
        skus_used=_count(db, SKU, workspace_id),
        competitors_used=_count(db, Competitor, workspace_id),
        snapshot_import_rows_used=usage_month.snapshot_import_rows_used,
    )


def increment_snapshot_rows(
    db: Session,
    workspace_id: str,
    rows: int,
    now: Optional[datetime] = None,
) -> int:
    """Add ``rows`` to this month's import counter. Returns the new total."""
    year_month = current_year_month(now)
    usage = get_or_create_usage_month(db, workspace_id, year_month)
    # Single UPDATE ... SET x = x + n so concurrent commits do not lose rows
    db.query(WorkspaceUsageMonth).filter(WorkspaceUsageMonth.id == usage.id).update(
        {WorkspaceUsageMonth.snapshot_import_rows_used: WorkspaceUsageMonth.snapshot_import_rows_used + rows},
        synchronize_session=False,
    )
    db.commit()
    db.refresh(usage)
    logger.info(
        "Snapshot import rows recorded",
        extra={"workspace_id": workspace_id, "rows": rows, "year_month": year_month},
    )
    return usage.snapshot_import_rows_used
