from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from catfe_tv.services.scheduling import is_valid_hhmm


def check_hhmm(value):
    if value is not None and not is_valid_hhmm(value):
        raise ValueError("time must be HH:MM (00:00-23:59)")
    return value


def check_days(value):
    if value is None:
        return value
    for day in value:
        if day < 0 or day > 6:
            raise ValueError("days_of_week must be in range 0-6")
    return sorted(set(value))


class TimeWindow(BaseModel):
    """One daily window; an end earlier than the start runs past midnight."""

    time_start: str
    time_end: str

    @field_validator("time_start", "time_end")
    @classmethod
    def _hhmm(cls, value):
        return check_hhmm(value)


class _PlaylistFields(BaseModel):
    @field_validator("time_start", "time_end", mode="before", check_fields=False)
    @classmethod
    def _empty_string_is_null(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("time_start", "time_end", check_fields=False)
    @classmethod
    def _hhmm(cls, value):
        return check_hhmm(value)

    @field_validator("days_of_week", check_fields=False)
    @classmethod
    def _days(cls, value):
        return check_days(value)


class PlaylistIn(_PlaylistFields):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=500)
    color: str = Field("#C2884E", max_length=32)
    scheduling_enabled: bool = False
    days_of_week: list[int] | None = None
    time_start: str | None = None
    time_end: str | None = None
    time_windows: list[TimeWindow] | None = None


class PlaylistUpdate(_PlaylistFields):
    """Partial update: only fields present in the request are applied."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=500)
    color: str | None = Field(None, max_length=32)
    scheduling_enabled: bool | None = None
    days_of_week: list[int] | None = None
    time_start: str | None = None
    time_end: str | None = None
    time_windows: list[TimeWindow] | None = None


class PlaylistOut(BaseModel):
    id: int
    name: str
    description: str | None = None
    color: str = "#C2884E"
    sort_order: int = 0
    is_active: bool = False
    is_default: bool = False
    scheduling_enabled: bool = False
    days_of_week: list[int] = []
    time_start: str | None = None
    time_end: str | None = None
    time_windows: list[TimeWindow] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class ScreenIdsIn(BaseModel):
    screen_ids: list[int]


class CurrentlyServingOut(BaseModel):
    id: int | None = None
    name: str
    reason: Literal["scheduled", "manual", "default", "fallback"]
