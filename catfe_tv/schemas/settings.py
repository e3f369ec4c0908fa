from typing import Literal

from pydantic import BaseModel, Field


class SettingsUpdate(BaseModel):
    location_name: str | None = Field(None, max_length=255)
    default_duration_seconds: int | None = Field(None, ge=1, le=300)
    snap_and_purr_frequency: int | None = Field(None, ge=1, le=20)
    refresh_interval_seconds: int | None = Field(None, ge=10, le=600)
    fallback_mode: Literal["AMBIENT", "LOOP_DEFAULT"] | None = None
    total_adoption_count: int | None = Field(None, ge=0)
    logo_url: str | None = Field(None, max_length=1024)
    wifi_name: str | None = Field(None, max_length=255)
    wifi_password: str | None = Field(None, max_length=255)


class SettingsOut(BaseModel):
    location_name: str = "Catfé"
    default_duration_seconds: int = 10
    snap_and_purr_frequency: int = 5
    refresh_interval_seconds: int = 60
    fallback_mode: str = "LOOP_DEFAULT"
    total_adoption_count: int = 0
    logo_url: str | None = None
    wifi_name: str | None = None
    wifi_password: str | None = None

    class Config:
        from_attributes = True
