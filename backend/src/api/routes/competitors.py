"""
Competitor routes.

- GET  /api/workspaces/{workspace_id}/competitors  (ANALYST)
- POST /api/workspaces/{workspace_id}/competitors  (CSRF, ANALYST, billing active, competitor limit)
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.api.dependencies.auth import workspace_actor
from src.api.schemas.catalog import (
    CompetitorCreateRequest,
    CompetitorEnvelope,
    CompetitorListResponse,
    CompetitorResponse,
)
from src.auth.rbac import Actor
from src.database.session import get_db_session
from src.entitlements.plans import LimitKey
from src.entitlements.policy import require_billing_write_access, require_within_limit
from src.models.competitor import Competitor
from src.models.membership import MembershipRole
from src.platform.errors import ConflictError
from src.security.guards import guarded

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/workspaces/{workspace_id}/competitors", tags=["competitors"])


@router.get("", response_model=CompetitorListResponse)
def list_competitors(
    actor: Actor = Depends(workspace_actor(MembershipRole.ANALYST)),
    db: Session = Depends(get_db_session),
):
    competitors = (
        db.query(Competitor)
        .filter(Competitor.workspace_id == actor.workspace_id)
        .order_by(Competitor.name.asc())
        .all()
    )
    return CompetitorListResponse(
        competitors=[CompetitorResponse.model_validate(c) for c in competitors],
        total=len(competitors),
    )


@router.post(
    "",
    response_model=CompetitorEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(guarded(csrf=True))],
)
def create_competitor(
    request: Request,
    payload: CompetitorCreateRequest,
    actor: Actor = Depends(workspace_actor(MembershipRole.ANALYST)),
    db: Session = Depends(get_db_session),
):
    require_billing_write_access(
        db, actor.workspace_id, "competitor_create", request=request, user_id=actor.user_id
    )
    require_within_limit(db, actor.workspace_id, LimitKey.COMPETITORS, request=request, user_id=actor.user_id)

    # Names are unique per workspace regardless of case
    duplicate = (
        db.query(Competitor.id)
        .filter(
            Competitor.workspace_id == actor.workspace_id,
            func.lower(Competitor.name) == payload.name.lower(),
        )
        .first()
    )
    if duplicate is not None:
        raise ConflictError("Competitor already exists", {"name": payload.name})

    competitor = Competitor(
        workspace_id=actor.workspace_id,
        name=payload.name,
        domain=payload.domain,
        currency=payload.currency,
    )
    db.add(competitor)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Competitor already exists", {"name": payload.name}) from exc
    db.refresh(competitor)

    logger.info(
        "Competitor created",
        extra={"workspace_id": actor.workspace_id, "competitor_id": competitor.id, "user_id": actor.user_id},
    )
    return CompetitorEnvelope(competitor=CompetitorResponse.model_validate(competitor))
