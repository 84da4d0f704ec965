"""
Workspace plan resolution: override -> subscription -> STARTER default.

get_workspace_plan assembles tier, billing status, limits, feature flags and
live usage. It enforces nothing; comparisons against the limits belong to
the caller (see src.entitlements.policy).

Usage is recounted on every call. This re-scans tenant tables per gated
request, which is acceptable at current scale and keeps allow/deny
decisions from ever reading a stale counter.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.entitlements.plans import (
    FeatureKey,
    LimitKey,
    PlanDefinition,
    PlanTier,
    get_plan_definition,
    parse_plan_tier,
)
from src.entitlements.usage import WorkspaceUsage, count_usage
from src.models.subscription import SubscriptionStatus, WorkspaceSubscription
from src.models.workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkspacePlanInfo:
    workspace_id: str
    plan: PlanTier
    status: SubscriptionStatus
    stripe_customer_id: Optional[str]
    stripe_subscription_id: Optional[str]
    current_period_end: Optional[datetime]
    cancel_at_period_end: bool
    limits: PlanDefinition
    usage: WorkspaceUsage

    def has_feature(self, feature: FeatureKey) -> bool:
        return self.limits.has_feature(feature)

    def limit_status(self, key: LimitKey) -> tuple:
        """(current, limit) for ``key``."""
        return self.usage.used(key), self.limits.limit_for(key)

    def is_over_limit(self, key: LimitKey, delta: int = 1) -> bool:
        current, limit = self.limit_status(key)
        return current + delta > limit

    def to_dict(self) -> dict:
        return {
            "workspace_id": self.workspace_id,
            "plan": self.plan.value,
            "status": self.status.value,
            "stripe_customer_id": self.stripe_customer_id,
            "stripe_subscription_id": self.stripe_subscription_id,
            "current_period_end": self.current_period_end.isoformat() if self.current_period_end else None,
            "cancel_at_period_end": self.cancel_at_period_end,
            "limits": self.limits.to_dict(),
            "usage": self.usage.to_dict(),
        }


def ensure_workspace_subscription(db: Session, workspace_id: str) -> WorkspaceSubscription:
    """Return the workspace subscription row, creating STARTER/TRIALING if absent."""
    subscription = (
        db.query(WorkspaceSubscription)
        .filter(WorkspaceSubscription.workspace_id == workspace_id)
        .first()
    )
    if subscription is not None:
        return subscription

    subscription = WorkspaceSubscription(
        workspace_id=workspace_id,
        plan=PlanTier.STARTER,
        status=SubscriptionStatus.TRIALING,
        cancel_at_period_end=False,
    )
    db.add(subscription)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return (
            db.query(WorkspaceSubscription)
            .filter(WorkspaceSubscription.workspace_id == workspace_id)
            .one()
        )
    db.refresh(subscription)
    logger.info("Workspace subscription initialized", extra={"workspace_id": workspace_id})
    return subscription


def get_workspace_plan(
    db: Session,
    workspace_id: str,
    now: Optional[datetime] = None,
) -> WorkspacePlanInfo:
    """
    Resolve the effective plan and current usage for a workspace.

    - tier: workspace.plan_override when it names a known tier, else the
      subscription tier.
    - status: ACTIVE when billing is managed by a reseller, else the
      subscription status.
    - usage: counted from current rows (see src.entitlements.usage).
    """
    subscription = ensure_workspace_subscription(db, workspace_id)
    workspace = db.query(Workspace).filter(Workspace.id == workspace_id).first()

    override = parse_plan_tier(workspace.plan_override) if workspace else None
    if workspace is not None and workspace.plan_override and override is None:
        logger.warning(
            "Ignoring unknown plan override",
            extra={"workspace_id": workspace_id, "plan_override": workspace.plan_override},
        )
    plan = override or subscription.plan or PlanTier.STARTER

    if workspace is not None and workspace.billing_managed_by_reseller:
        status = SubscriptionStatus.ACTIVE
    else:
        status = subscription.status or SubscriptionStatus.TRIALING

    return WorkspacePlanInfo(
        workspace_id=workspace_id,
        plan=plan,
        status=status,
        stripe_customer_id=subscription.stripe_customer_id,
        stripe_subscription_id=subscription.stripe_subscription_id,
        current_period_end=subscription.current_period_end,
        cancel_at_period_end=bool(subscription.cancel_at_period_end),
        limits=get_plan_definition(plan),
        usage=count_usage(db, workspace_id, now=now),
    )
