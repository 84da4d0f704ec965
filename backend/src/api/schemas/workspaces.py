"""Pydantic schemas for workspace team, billing and import endpoints."""

from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator

from src.models.membership import MembershipRole


class MembershipCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320, description="Existing user to add")
    role: MembershipRole = MembershipRole.ANALYST

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class MembershipResponse(BaseModel):
    id: str
    user_id: str
    email: str
    role: MembershipRole


class MembershipEnvelope(BaseModel):
    ok: bool = True
    membership: MembershipResponse


class PlanEnvelope(BaseModel):
    ok: bool = True
    plan: Dict[str, Any]


class SnapshotImportCommitRequest(BaseModel):
    row_count: int = Field(..., ge=1, le=100_000, description="Rows accepted by the preview step")


class SnapshotImportCommitResponse(BaseModel):
    ok: bool = True
    rows_committed: int
    rows_used_this_month: int
    monthly_limit: int
