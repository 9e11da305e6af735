from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from venue_layout.models import LayoutDocument, TicketType
from venue_layout.persistence import (
    EventInPast,
    EventNotFound,
    StoreUnavailable,
    Unauthorized,
    check_document,
    document_to_dict,
)
from venue_layout.storage import as_utc, utc_now

from .models import Event, LayoutRecord, TicketTypeRecord


def ticket_type_from_record(r: TicketTypeRecord) -> TicketType:
    return TicketType(
        id=r.id,
        name=r.name,
        price=r.price,
        color=r.color,
        capacity=r.capacity,
        is_public=r.is_public,
        description=r.description,
    )


class SqlLayoutStore:
    """
    ``LayoutStore`` over the service tables.

    Reads are open; ``save`` needs the organizer who owns the event.
    """

    def __init__(self, session: Session, organizer_id: Optional[str] = None, clock=utc_now):
        self.session = session
        self.organizer_id = organizer_id
        self._clock = clock

    def _event(self, event_id: str) -> Event:
        event = self.session.get(Event, event_id)
        if event is None:
            raise EventNotFound("event not found")
        return event

    def load(self, event_id: str) -> Optional[dict[str, Any]]:
        self._event(event_id)
        rec = self.session.get(LayoutRecord, event_id)
        if rec is None:
            return None
        try:
            data = json.loads(rec.document_json)
        except ValueError:
            logger.warning("stored layout for event {} is not valid JSON", event_id)
            return None
        return data if isinstance(data, dict) else None

    def list_ticket_types(self, event_id: str) -> list[TicketType]:
        self._event(event_id)
        rows = self.session.exec(
            select(TicketTypeRecord).where(TicketTypeRecord.event_id == event_id).order_by(TicketTypeRecord.created_at)
        ).all()
        return [ticket_type_from_record(r) for r in rows]

    def event_starts_at(self, event_id: str) -> Optional[datetime]:
        return self._event(event_id).starts_at

    def save(self, event_id: str, document: LayoutDocument) -> None:
        if not self.organizer_id:
            raise Unauthorized("organizer identity required")
        event = self.session.get(Event, event_id)
        # Events owned by someone else are reported as missing.
        if event is None or event.organizer_id != self.organizer_id:
            raise EventNotFound("event not found")
        if as_utc(event.starts_at) < self._clock():
            raise EventInPast("cannot modify the layout of a past event")
        check_document(document, [t.id for t in self.list_ticket_types(event_id)])

        payload = json.dumps(document_to_dict(document))
        rec = self.session.get(LayoutRecord, event_id)
        if rec is None:
            rec = LayoutRecord(event_id=event_id, document_json=payload)
        else:
            rec.document_json = payload
            rec.updated_at = utc_now()
        try:
            self.session.add(rec)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreUnavailable(f"failed to store layout: {e}") from e
