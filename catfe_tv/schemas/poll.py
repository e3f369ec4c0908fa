from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class PollOption(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    text: str = Field(..., min_length=1, max_length=100)
    image_url: str | None = None


class PollIn(BaseModel):
    question: str = Field(..., min_length=1, max_length=255)
    options: list[PollOption] = Field(..., min_length=2, max_length=6)
    is_recurring: bool = False


class PollUpdate(BaseModel):
    question: str | None = Field(None, min_length=1, max_length=255)
    options: list[PollOption] | None = Field(None, min_length=2, max_length=6)
    status: Literal["draft", "active", "ended"] | None = None
    is_recurring: bool | None = None


class VoteIn(BaseModel):
    option_id: str = Field(..., min_length=1, max_length=64)
    fingerprint: str = Field(..., min_length=1, max_length=64)


class PollOptionResult(PollOption):
    vote_count: int = 0
    percentage: int = 0


class PollOut(BaseModel):
    id: int
    question: str
    status: str
    sort_order: int
    total_votes: int
    is_recurring: bool
    last_shown_at: datetime | None = None
    options: list[PollOption] = []


class PollResultsOut(PollOut):
    options: list[PollOptionResult] = []
