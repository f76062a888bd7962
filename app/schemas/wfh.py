"""Pydantic schemas for work-from-home requests."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.attendance import UTCDateTime


class WfhCreate(BaseModel):
    # Defaults to today in the organization timezone
    request_date: date | None = None
    reason: str | None = Field(default=None, max_length=500)


class WfhRead(BaseModel):
    id: int
    staff_id: int
    request_date: date
    reason: str | None = None
    status: str
    decided_by: int | None = None
    decided_at: UTCDateTime | None = None
    time_in: UTCDateTime | None = None
    time_out: UTCDateTime | None = None
    created_at: datetime | None = None
    date_status: Literal["past", "today", "future"] | None = None

    model_config = {"from_attributes": True}


class WfhStatusUpdate(BaseModel):
    status: Literal["approved", "rejected"]
