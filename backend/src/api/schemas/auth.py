"""Request and response models for the login/logout endpoints."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=8, max_length=256)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        local, sep, domain = value.partition("@")
        if not sep or not local or "." not in domain:
            raise ValueError("invalid email address")
        return value


class LoginUser(BaseModel):
    id: str
    email: str
    name: Optional[str] = None


class LoginResponse(BaseModel):
    ok: bool = True
    user: LoginUser
    workspace_id: str


class OkResponse(BaseModel):
    ok: bool = True
