"""
Workspace team, billing and import routes.

- POST /api/workspaces/{workspace_id}/memberships            (CSRF, OWNER, seat limit)
- GET  /api/workspaces/{workspace_id}/billing/plan           (ANALYST)
- POST /api/workspaces/{workspace_id}/import/snapshots/commit (CSRF, ANALYST, csv_import, monthly rows)
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.api.dependencies.auth import workspace_actor
from src.api.schemas.workspaces import (
    MembershipCreateRequest,
    MembershipEnvelope,
    MembershipResponse,
    PlanEnvelope,
    SnapshotImportCommitRequest,
    SnapshotImportCommitResponse,
)
from src.auth.rbac import Actor
from src.database.session import get_db_session
from src.entitlements.plans import FeatureKey, LimitKey
from src.entitlements.policy import require_billing_write_access, require_feature, require_within_limit
from src.entitlements.service import get_workspace_plan
from src.entitlements.usage import increment_snapshot_rows
from src.models.membership import Membership, MembershipRole
from src.models.user import User
from src.platform.audit import SecurityAction, log_security_event
from src.platform.errors import ConflictError, NotFoundError
from src.security.guards import guarded

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/workspaces/{workspace_id}", tags=["workspaces"])


@router.post(
    "/memberships",
    response_model=MembershipEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(guarded(csrf=True))],
)
def add_membership(
    request: Request,
    payload: MembershipCreateRequest,
    actor: Actor = Depends(workspace_actor(MembershipRole.OWNER)),
    db: Session = Depends(get_db_session),
):
    """Add an existing user to the workspace. Consumes one seat."""
    user = db.query(User).filter(User.email == payload.email).first()
    if user is None:
        raise NotFoundError("User")

    existing = (
        db.query(Membership)
        .filter(Membership.user_id == user.id, Membership.workspace_id == actor.workspace_id)
        .first()
    )
    if existing is not None:
        raise ConflictError("User is already a member of this workspace")

    require_within_limit(db, actor.workspace_id, LimitKey.SEATS, request=request, user_id=actor.user_id)

    membership = Membership(user_id=user.id, workspace_id=actor.workspace_id, role=payload.role)
    db.add(membership)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("User is already a member of this workspace") from exc
    db.refresh(membership)

    log_security_event(
        SecurityAction.MEMBERSHIP_ADDED,
        workspace_id=actor.workspace_id,
        user_id=actor.user_id,
        request=request,
        metadata={"member_user_id": user.id, "role": payload.role.value},
    )
    return MembershipEnvelope(
        membership=MembershipResponse(
            id=membership.id,
            user_id=user.id,
            email=user.email,
            role=membership.role,
        )
    )


@router.get("/billing/plan", response_model=PlanEnvelope)
def get_billing_plan(
    actor: Actor = Depends(workspace_actor(MembershipRole.ANALYST)),
    db: Session = Depends(get_db_session),
):
    return PlanEnvelope(plan=get_workspace_plan(db, actor.workspace_id).to_dict())


@router.post(
    "/import/snapshots/commit",
    response_model=SnapshotImportCommitResponse,
    dependencies=[Depends(guarded(csrf=True))],
)
def commit_snapshot_import(
    request: Request,
    payload: SnapshotImportCommitRequest,
    actor: Actor = Depends(workspace_actor(MembershipRole.ANALYST)),
    db: Session = Depends(get_db_session),
):
    """
    Record a previewed snapshot import against the monthly row allowance.

    The rows themselves arrive through the import pipeline; this endpoint
    gates and meters the commit.
    """
    require_feature(db, actor.workspace_id, FeatureKey.CSV_IMPORT, request=request, user_id=actor.user_id)
    require_billing_write_access(
        db, actor.workspace_id, "snapshot_bulk_import_commit", request=request, user_id=actor.user_id
    )
    plan = require_within_limit(
        db,
        actor.workspace_id,
        LimitKey.SNAPSHOT_ROWS,
        delta=payload.row_count,
        request=request,
        user_id=actor.user_id,
    )

    used = increment_snapshot_rows(db, actor.workspace_id, payload.row_count)
    return SnapshotImportCommitResponse(
        rows_committed=payload.row_count,
        rows_used_this_month=used,
        monthly_limit=plan.limits.monthly_snapshot_import_limit,
    )
