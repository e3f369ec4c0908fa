from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

PhotoType = Literal["happy_tails", "snap_purr"]


class PhotoSubmitIn(BaseModel):
    type: PhotoType
    submitter_name: str = Field(..., min_length=1, max_length=255)
    submitter_email: str | None = Field(None, max_length=320)
    photo_base64: str = Field(..., min_length=1)
    caption: str | None = Field(None, max_length=500)
    cat_name: str | None = Field(None, max_length=255)


class FingerprintIn(BaseModel):
    fingerprint: str = Field(..., min_length=1, max_length=64)


class RejectIn(BaseModel):
    reason: str | None = Field(None, max_length=500)


class PhotoOut(BaseModel):
    id: int
    type: str
    submitter_name: str
    photo_path: str
    caption: str | None = None
    cat_name: str | None = None
    status: str
    show_on_tv: bool
    is_featured: bool
    likes_count: int
    rejection_reason: str | None = None
    created_at: datetime | None = None
    reviewed_at: datetime | None = None

    class Config:
        from_attributes = True
