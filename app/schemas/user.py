"""Pydantic schemas for User CRUD."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator

_VALID_ROLES = {"admin", "staff"}


def _normalise(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v:
        raise ValueError("Invalid email address")
    return v


class UserCreate(BaseModel):
    email: str
    password: str
    full_name: str | None = None
    role: str = "admin"

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: str) -> str:
        if v not in _VALID_ROLES:
            raise ValueError(f"Role must be one of: {sorted(_VALID_ROLES)}")
        return v

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return _normalise(v)


class UserRead(BaseModel):
    id: int
    email: str
    full_name: str | None
    role: str
    is_active: bool
    is_blocked: bool = False
    is_login: bool = False
    created_at: datetime | None

    model_config = {"from_attributes": True}
