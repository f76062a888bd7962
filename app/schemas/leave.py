"""Pydantic schemas for leave requests."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class LeaveCreate(BaseModel):
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=500)
    # Admins may file on behalf of a staff member
    staff_id: int | None = None

    @model_validator(mode="after")
    def _check_range(self) -> "LeaveCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        return self


class LeaveRead(BaseModel):
    id: int
    staff_id: int
    start_date: date
    end_date: date
    reason: str | None = None
    status: str
    decided_by: int | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class LeaveStatusUpdate(BaseModel):
    status: Literal["approved", "rejected"]
