from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Event(SQLModel, table=True):
    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str
    organizer_id: str = Field(index=True)
    starts_at: datetime = Field(sa_type=DateTime(timezone=True))

    created_at: datetime = Field(default_factory=_utc_now, sa_type=DateTime(timezone=True))


class TicketTypeRecord(SQLModel, table=True):
    __tablename__ = "ticket_type"

    id: str = Field(default_factory=_new_id, primary_key=True)
    event_id: str = Field(index=True, foreign_key="event.id")
    name: str
    price: float
    color: str = "#3b82f6"
    capacity: Optional[int] = None
    is_public: bool = True
    description: str = ""

    created_at: datetime = Field(default_factory=_utc_now, sa_type=DateTime(timezone=True))


class LayoutRecord(SQLModel, table=True):
    __tablename__ = "layout"

    # One stored layout document per event.
    event_id: str = Field(primary_key=True, foreign_key="event.id")
    document_json: str

    updated_at: datetime = Field(default_factory=_utc_now, sa_type=DateTime(timezone=True))
