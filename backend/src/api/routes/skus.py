"""
SKU routes.

- GET    /api/workspaces/{workspace_id}/skus            (ANALYST)
- POST   /api/workspaces/{workspace_id}/skus            (CSRF, rate limit, ANALYST, SKU limit)
- DELETE /api/workspaces/{workspace_id}/skus/{sku_id}   (CSRF, OWNER)
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.api.dependencies.auth import workspace_actor
from src.api.schemas.auth import OkResponse
from src.api.schemas.catalog import SkuCreateRequest, SkuEnvelope, SkuListResponse, SkuResponse
from src.auth.rbac import Actor
from src.database.session import get_db_session
from src.entitlements.plans import LimitKey
from src.entitlements.policy import require_within_limit
from src.models.membership import MembershipRole
from src.models.sku import SKU
from src.platform.errors import ConflictError, NotFoundError
from src.security.guards import RateLimitSpec, guarded, user_scope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/workspaces/{workspace_id}/skus", tags=["skus"])

SKU_CREATE_RATE_LIMIT = RateLimitSpec(route="skus.create", limit=60, window_seconds=60, scope=user_scope)


@router.get("", response_model=SkuListResponse)
def list_skus(
    actor: Actor = Depends(workspace_actor(MembershipRole.ANALYST)),
    db: Session = Depends(get_db_session),
):
    skus = (
        db.query(SKU)
        .filter(SKU.workspace_id == actor.workspace_id)
        .order_by(SKU.created_at.desc())
        .all()
    )
    return SkuListResponse(
        skus=[SkuResponse.model_validate(sku) for sku in skus],
        total=len(skus),
    )


@router.post(
    "",
    response_model=SkuEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(guarded(csrf=True, rate_limit=SKU_CREATE_RATE_LIMIT))],
)
def create_sku(
    request: Request,
    payload: SkuCreateRequest,
    actor: Actor = Depends(workspace_actor(MembershipRole.ANALYST)),
    db: Session = Depends(get_db_session),
):
    require_within_limit(db, actor.workspace_id, LimitKey.SKUS, request=request, user_id=actor.user_id)

    existing = (
        db.query(SKU)
        .filter(SKU.workspace_id == actor.workspace_id, SKU.sku == payload.sku)
        .first()
    )
    if existing is not None:
        raise ConflictError("SKU code already exists", {"sku": payload.sku})

    sku = SKU(
        workspace_id=actor.workspace_id,
        title=payload.title,
        sku=payload.sku,
        cost=payload.cost,
        current_price=payload.current_price,
        status=payload.status,
    )
    db.add(sku)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("SKU code already exists", {"sku": payload.sku}) from exc
    db.refresh(sku)

    logger.info(
        "SKU created",
        extra={"workspace_id": actor.workspace_id, "sku_id": sku.id, "user_id": actor.user_id},
    )
    return SkuEnvelope(sku=SkuResponse.model_validate(sku))


@router.delete(
    "/{sku_id}",
    response_model=OkResponse,
    dependencies=[Depends(guarded(csrf=True))],
)
def delete_sku(
    sku_id: str,
    actor: Actor = Depends(workspace_actor(MembershipRole.OWNER)),
    db: Session = Depends(get_db_session),
):
    sku = (
        db.query(SKU)
        .filter(SKU.id == sku_id, SKU.workspace_id == actor.workspace_id)
        .first()
    )
    if sku is None:
        raise NotFoundError("SKU")

    db.delete(sku)
    db.commit()
    logger.info(
        "SKU deleted",
        extra={"workspace_id": actor.workspace_id, "sku_id": sku_id, "user_id": actor.user_id},
    )
    return OkResponse()
