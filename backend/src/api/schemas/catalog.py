"""
Pydantic schemas for the SKU and competitor endpoints.

Money values are decimals with two places; competitor currency codes are
stored upper-cased.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.sku import SkuStatus


class SkuCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    sku: str = Field(..., min_length=1, max_length=128, description="Merchant SKU code, unique per workspace")
    cost: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    current_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    status: SkuStatus = SkuStatus.ACTIVE

    @field_validator("title", "sku")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class SkuResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    sku: str
    cost: Decimal
    current_price: Decimal
    status: SkuStatus
    created_at: datetime


class SkuEnvelope(BaseModel):
    ok: bool = True
    sku: SkuResponse


class SkuListResponse(BaseModel):
    ok: bool = True
    skus: List[SkuResponse]
    total: int


class CompetitorCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    domain: Optional[str] = Field(None, max_length=255)
    currency: str = Field("INR", min_length=3, max_length=3)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.upper()


class CompetitorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    domain: Optional[str] = None
    currency: str
    created_at: datetime


class CompetitorEnvelope(BaseModel):
    ok: bool = True
    competitor: CompetitorResponse


class CompetitorListResponse(BaseModel):
    ok: bool = True
    competitors: List[CompetitorResponse]
    total: int
