# write intents handed to an external submitter
from typing import List, Literal, Protocol

from pydantic import BaseModel, Field, field_validator, model_validator

from .config import MAX_DURATION_SECONDS

MAX_TITLE_LENGTH = 120

UNIT_SECONDS = {
    "minutes": 60,
    "hours": 60 * 60,
    "days": 24 * 60 * 60,
    "weeks": 7 * 24 * 60 * 60,
}


def duration_seconds(value: float, unit: str, cap: int = MAX_DURATION_SECONDS) -> int:
    """
    Whole seconds for `value` units, floored and capped.
    """
    if unit not in UNIT_SECONDS:
        raise ValueError(f"unknown duration unit: {unit}")
    raw = max(0, int(value * UNIT_SECONDS[unit]))
    return min(raw, cap)


class CreateVotingIntent(BaseModel):
    title: str = Field(..., examples=["Approve the new regulation?"])
    options: List[str] = Field(..., examples=[["Yes", "No"]])
    duration: float = Field(10, ge=0)
    unit: Literal["minutes", "hours", "days", "weeks"] = "minutes"

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title is required")
        if len(v) > MAX_TITLE_LENGTH:
            raise ValueError(f"title is longer than {MAX_TITLE_LENGTH} characters")
        return v

    @field_validator("options")
    @classmethod
    def _options(cls, v: List[str]) -> List[str]:
        cleaned = [o.strip() for o in v if o.strip()]
        seen = set()
        for o in cleaned:
            key = o.casefold()
            if key in seen:
                raise ValueError(f"duplicate option: {o}")
            seen.add(key)
        if len(cleaned) < 2:
            raise ValueError("at least two options are required")
        return cleaned

    @model_validator(mode="after")
    def _duration(self) -> "CreateVotingIntent":
        if self.duration_seconds <= 0:
            raise ValueError("duration must be at least one second")
        return self

    @property
    def duration_seconds(self) -> int:
        return duration_seconds(self.duration, self.unit)


class CastVoteIntent(BaseModel):
    voting_id: int = Field(..., ge=0, lt=2 ** 256)
    option_index: int = Field(..., ge=0, lt=2 ** 256)


class WriteSubmitter(Protocol):
    """
    Signs and sends write transactions. Not part of this package; an
    implementation is injected into the app.
    """

    async def create_voting(self, title: str, options: List[str], duration_seconds: int) -> str: ...

    async def cast_vote(self, voting_id: int, option_index: int) -> str: ...
