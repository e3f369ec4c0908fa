from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from catfe_tv.services.clock import to_cafe_naive
from catfe_tv.services.scheduling import SCREEN_TYPES, is_valid_hhmm

ScreenType = Literal[SCREEN_TYPES]  # type: ignore[valid-type]


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class _ScreenFields(BaseModel):
    @field_validator("qr_url", "livestream_url", "time_start", "time_end", mode="before", check_fields=False)
    @classmethod
    def _empty_string_is_null(cls, value):
        return _blank_to_none(value)

    @field_validator("time_start", "time_end", check_fields=False)
    @classmethod
    def _hhmm(cls, value):
        if value is not None and not is_valid_hhmm(value):
            raise ValueError("time must be HH:MM (00:00-23:59)")
        return value

    @field_validator("start_at", "end_at", check_fields=False)
    @classmethod
    def _cafe_local(cls, value):
        # stored and compared as naive café wall-clock time
        return to_cafe_naive(value)

    @field_validator("days_of_week", check_fields=False)
    @classmethod
    def _days(cls, value):
        if value is None:
            return value
        for day in value:
            if day < 0 or day > 6:
                raise ValueError("days_of_week must be in range 0-6")
        return sorted(set(value))


class ScreenIn(_ScreenFields):
    type: ScreenType = "EVENT"
    title: str = Field(..., min_length=1, max_length=255)
    subtitle: str | None = Field(None, max_length=255)
    body: str | None = None
    image_path: str | None = Field(None, max_length=1024)
    image_display_mode: Literal["cover", "contain"] | None = None
    qr_url: str | None = Field(None, max_length=1024)
    livestream_url: str | None = Field(None, max_length=1024)
    event_time: str | None = Field(None, max_length=100)
    event_location: str | None = Field(None, max_length=255)
    priority: int = Field(1, ge=1, le=10)
    duration_seconds: int = Field(10, ge=1, le=300)
    sort_order: int = 0
    is_active: bool = True
    is_protected: bool = False
    is_adopted: bool = False
    scheduling_enabled: bool = False
    start_at: datetime | None = None
    end_at: datetime | None = None
    days_of_week: list[int] | None = None
    time_start: str | None = None
    time_end: str | None = None


class ScreenUpdate(_ScreenFields):
    """Partial update: only fields present in the request are applied."""

    type: ScreenType | None = None
    title: str | None = Field(None, min_length=1, max_length=255)
    subtitle: str | None = Field(None, max_length=255)
    body: str | None = None
    image_path: str | None = Field(None, max_length=1024)
    image_display_mode: Literal["cover", "contain"] | None = None
    qr_url: str | None = Field(None, max_length=1024)
    livestream_url: str | None = Field(None, max_length=1024)
    event_time: str | None = Field(None, max_length=100)
    event_location: str | None = Field(None, max_length=255)
    priority: int | None = Field(None, ge=1, le=10)
    duration_seconds: int | None = Field(None, ge=1, le=300)
    sort_order: int | None = None
    is_active: bool | None = None
    is_protected: bool | None = None
    is_adopted: bool | None = None
    scheduling_enabled: bool | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    days_of_week: list[int] | None = None
    time_start: str | None = None
    time_end: str | None = None


class ScreenOrderIn(BaseModel):
    id: int
    sort_order: int


class ScreenOut(BaseModel):
    id: int
    type: str
    title: str
    subtitle: str | None = None
    body: str | None = None
    image_path: str | None = None
    image_display_mode: str | None = None
    qr_url: str | None = None
    livestream_url: str | None = None
    event_time: str | None = None
    event_location: str | None = None
    priority: int = 1
    duration_seconds: int | None = None
    sort_order: int = 0
    is_active: bool = True
    is_protected: bool = False
    is_adopted: bool = False
    scheduling_enabled: bool = False
    start_at: datetime | None = None
    end_at: datetime | None = None
    days_of_week: list[int] = []
    time_start: str | None = None
    time_end: str | None = None

    class Config:
        from_attributes = True
