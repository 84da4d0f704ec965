"""
Entitlement enforcement for route handlers.

The plan resolver (src.entitlements.service) only reports; these helpers
compare its output with what the caller is about to do and raise
EntitlementError when the plan does not allow it. Each denial is recorded
as a ``limit.blocked`` security event.
"""

import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from src.entitlements.errors import EntitlementError, EntitlementReason
from src.entitlements.plans import FeatureKey, LimitKey
from src.entitlements.service import WorkspacePlanInfo, get_workspace_plan
from src.models.subscription import BLOCKING_STATUSES
from src.platform.audit import AuditOutcome, SecurityAction, log_security_event

logger = logging.getLogger(__name__)


def _emit_blocked(
    workspace_id: str,
    reason: EntitlementReason,
    request: Optional[Request],
    user_id: Optional[str],
    **metadata,
) -> None:
    log_security_event(
        SecurityAction.LIMIT_BLOCKED,
        outcome=AuditOutcome.DENIED,
        workspace_id=workspace_id,
        user_id=user_id,
        request=request,
        metadata={"reason": reason.value, **metadata},
    )


def require_feature(
    db: Session,
    workspace_id: str,
    feature: FeatureKey,
    *,
    request: Optional[Request] = None,
    user_id: Optional[str] = None,
) -> WorkspacePlanInfo:
    """Raise FEATURE_LOCKED unless the workspace plan enables ``feature``."""
    plan = get_workspace_plan(db, workspace_id)
    if not plan.has_feature(feature):
        _emit_blocked(
            workspace_id,
            EntitlementReason.FEATURE_LOCKED,
            request,
            user_id,
            feature=feature.value,
            plan=plan.plan.value,
        )
        raise EntitlementError(
            EntitlementReason.FEATURE_LOCKED,
            f"Your plan does not include {feature.value}",
            {"feature": feature.value, "plan": plan.plan.value},
        )
    return plan


def require_within_limit(
    db: Session,
    workspace_id: str,
    key: LimitKey,
    delta: int = 1,
    *,
    request: Optional[Request] = None,
    user_id: Optional[str] = None,
) -> WorkspacePlanInfo:
    """
    Raise LIMIT_EXCEEDED when ``current + delta`` would pass the plan limit.

    ``current`` is counted from live rows, so a row created by the previous
    request is already visible here.
    """
    if delta < 0:
        raise ValueError("delta must be >= 0")

    plan = get_workspace_plan(db, workspace_id)
    if plan.is_over_limit(key, delta):
        current, limit = plan.limit_status(key)
        _emit_blocked(
            workspace_id,
            EntitlementReason.LIMIT_EXCEEDED,
            request,
            user_id,
            limit_key=key.value,
            current=current,
            delta=delta,
            limit=limit,
        )
        raise EntitlementError(
            EntitlementReason.LIMIT_EXCEEDED,
            f"Plan limit reached for {key.value}",
            {"limit_key": key.value, "current": current, "limit": limit, "plan": plan.plan.value},
        )
    return plan


def require_billing_write_access(
    db: Session,
    workspace_id: str,
    reason: str,
    *,
    request: Optional[Request] = None,
    user_id: Optional[str] = None,
) -> WorkspacePlanInfo:
    """Block writes while the subscription is PAST_DUE or CANCELED."""
    plan = get_workspace_plan(db, workspace_id)
    if plan.status in BLOCKING_STATUSES:
        _emit_blocked(
            workspace_id,
            EntitlementReason.FEATURE_LOCKED,
            request,
            user_id,
            billing_status=plan.status.value,
            action=reason,
        )
        raise EntitlementError(
            EntitlementReason.FEATURE_LOCKED,
            "Billing is not active for this workspace",
            {"billing_status": plan.status.value, "action": reason},
        )
    return plan
