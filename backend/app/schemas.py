from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventCreate(_CamelModel):
    name: str = Field(min_length=1)
    organizer_id: str = Field(min_length=1)
    starts_at: datetime

    @field_validator("name", "organizer_id")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must be a non-empty string")
        return v

    @field_validator("starts_at")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        # Naive input is taken as UTC.
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class EventRead(_CamelModel):
    id: str
    name: str
    organizer_id: str
    starts_at: datetime


class TicketTypeCreate(_CamelModel):
    name: str = Field(min_length=1)
    price: float = Field(gt=0)
    color: str = "#3b82f6"
    capacity: Optional[int] = Field(default=None, ge=0)
    is_public: bool = True
    description: str = ""


class LayoutSaved(_CamelModel):
    event_id: str
    seats: int
    sections: int
