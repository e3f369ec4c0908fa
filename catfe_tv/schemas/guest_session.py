from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class CheckInIn(BaseModel):
    guest_name: str = Field(..., min_length=1, max_length=255)
    guest_count: int = Field(1, ge=1, le=20)
    duration: Literal["15", "30", "60"]
    notes: str | None = Field(None, max_length=500)


class ExtendIn(BaseModel):
    additional_minutes: int = Field(..., ge=5, le=60)


class NotesIn(BaseModel):
    notes: str | None = Field(None, max_length=500)


class TimeStatusOut(BaseModel):
    label: str
    minutes: int
    seconds: int
    is_expired: bool
    is_urgent: bool
    percent: float


class GuestSessionOut(BaseModel):
    id: int
    guest_name: str
    guest_count: int
    duration: str
    notes: str | None = None
    status: str
    check_in_at: datetime
    expires_at: datetime
    checked_out_at: datetime | None = None
    reminder_shown: bool

    class Config:
        from_attributes = True


class GuestSessionStatusOut(GuestSessionOut):
    session_label: str
    time_status: TimeStatusOut


class TodayStatsOut(BaseModel):
    total_guests: int
    active_sessions: int
    completed_sessions: int
