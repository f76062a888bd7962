"""Pydantic schemas for staff accounts and weekly shift schedules."""

from __future__ import annotations

from datetime import datetime, time

from pydantic import BaseModel, Field, field_validator


class StaffCreate(BaseModel):
    email: str
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=1, max_length=200)
    leave_entitlement: int | None = Field(default=None, ge=0)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class StaffRead(BaseModel):
    id: int
    user_id: int
    full_name: str
    leave_entitlement: int
    leave_balance: int
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class DaySchedule(BaseModel):
    start: time | None = None
    end: time | None = None


class WeeklyScheduleBody(BaseModel):
    """Seven days, Monday first.  Omitted days are days off."""

    monday: DaySchedule | None = None
    tuesday: DaySchedule | None = None
    wednesday: DaySchedule | None = None
    thursday: DaySchedule | None = None
    friday: DaySchedule | None = None
    saturday: DaySchedule | None = None
    sunday: DaySchedule | None = None


class ScheduleConfigRead(BaseModel):
    start: time
    end: time
    margin_minutes: int
    alert_minutes: int

    model_config = {"from_attributes": True}


class ScheduleConfigUpdate(BaseModel):
    start: time | None = None
    end: time | None = None
    margin_minutes: int | None = Field(default=None, ge=0, le=240)
    alert_minutes: int | None = Field(default=None, ge=0, le=240)
