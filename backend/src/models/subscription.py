"""
WorkspaceSubscription model.

One row per workspace, created lazily with plan STARTER / status TRIALING
the first time the workspace plan is resolved. Stripe fields are populated
by the billing webhook flow.
"""

import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum as SAEnum, ForeignKey, String
from sqlalchemy.orm import relationship

from src.db_base import Base
from src.entitlements.plans import PlanTier
from src.models.base import TimestampMixin


class SubscriptionStatus(str, enum.Enum):
    """Billing status mirrored from Stripe."""
    TRIALING = "TRIALING"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"


# Statuses that block billable writes
BLOCKING_STATUSES = frozenset({SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED})


class WorkspaceSubscription(Base, TimestampMixin):
    __tablename__ = "workspace_subscriptions"

    id = Column(String(255), primary_key=True, default=lambda: str(uuid.uuid4()))
    workspace_id = Column(
        String(255),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    plan = Column(
        SAEnum(PlanTier, name="plan_tier", create_constraint=True),
        nullable=False,
        default=PlanTier.STARTER,
    )
    status = Column(
        SAEnum(SubscriptionStatus, name="subscription_status", create_constraint=True),
        nullable=False,
        default=SubscriptionStatus.TRIALING,
    )
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True, unique=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)

    workspace = relationship("Workspace", back_populates="subscription")

    def __repr__(self) -> str:
        return (
            f"<WorkspaceSubscription(workspace_id={self.workspace_id}, "
            f"plan={self.plan.value if self.plan else None}, "
            f"status={self.status.value if self.status else None})>"
        )
