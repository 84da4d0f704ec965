"""SKU model: a tracked product variant within a workspace."""

import enum
import uuid

from sqlalchemy import Column, Enum as SAEnum, Numeric, String, UniqueConstraint

from src.db_base import Base
from src.models.base import TimestampMixin, WorkspaceScopedMixin


class SkuStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"


class SKU(Base, TimestampMixin, WorkspaceScopedMixin):
    __tablename__ = "skus"

    id = Column(String(255), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    sku = Column(String(128), nullable=False)
    cost = Column(Numeric(12, 2), nullable=False)
    current_price = Column(Numeric(12, 2), nullable=False)
    status = Column(
        SAEnum(SkuStatus, name="sku_status", create_constraint=True),
        nullable=False,
        default=SkuStatus.ACTIVE,
    )

    __table_args__ = (
        UniqueConstraint("workspace_id", "sku", name="uq_sku_workspace_code"),
    )

    def __repr__(self) -> str:
        return f"<SKU(workspace_id={self.workspace_id}, sku={self.sku})>"
