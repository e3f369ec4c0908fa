from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from catfe_tv.schemas.playlist import check_days, check_hhmm
from catfe_tv.schemas.screen import ScreenOut


class TimeSlotIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    time_start: str
    time_end: str
    days_of_week: list[int] = []
    is_active: bool = True

    @field_validator("time_start", "time_end")
    @classmethod
    def _hhmm(cls, value):
        return check_hhmm(value)

    @field_validator("days_of_week")
    @classmethod
    def _days(cls, value):
        return check_days(value)


class TimeSlotUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    time_start: str | None = None
    time_end: str | None = None
    days_of_week: list[int] | None = None
    is_active: bool | None = None

    @field_validator("time_start", "time_end")
    @classmethod
    def _hhmm(cls, value):
        return check_hhmm(value)

    @field_validator("days_of_week")
    @classmethod
    def _days(cls, value):
        return check_days(value)


class TimeSlotOut(BaseModel):
    id: int
    name: str
    time_start: str
    time_end: str
    days_of_week: list[int] = []
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class OpenTimeSlotOut(TimeSlotOut):
    screens: list[ScreenOut] = []
