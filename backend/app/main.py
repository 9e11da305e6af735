from __future__ import annotations

import csv
import io
from dataclasses import asdict
from typing import Iterator, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from loguru import logger
from sqlmodel import Session

from venue_layout.layout import Layout
from venue_layout.models import LayoutDocument
from venue_layout.persistence import (
    EventInPast,
    EventNotFound,
    LayoutValidationError,
    StoreError,
    StoreUnavailable,
    Unauthorized,
    deserialize,
)
from venue_layout.storage import as_utc

from .db import get_session, init_db
from .models import Event, TicketTypeRecord
from .schemas import EventCreate, EventRead, LayoutSaved, TicketTypeCreate
from .store import SqlLayoutStore


app = FastAPI(title="Venue Layout API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup() -> None:
    init_db()


def _session() -> Iterator[Session]:
    with get_session() as session:
        yield session


_STATUS_CODES: list[tuple[type[StoreError], int]] = [
    (Unauthorized, 401),
    (EventNotFound, 404),
    (EventInPast, 409),
    (LayoutValidationError, 422),
    (StoreUnavailable, 503),
]


def _http_error(e: StoreError) -> HTTPException:
    status = next((code for cls, code in _STATUS_CODES if isinstance(e, cls)), 500)
    if isinstance(e, LayoutValidationError):
        return HTTPException(status_code=status, detail={"message": str(e), "problems": e.problems[:50]})
    return HTTPException(status_code=status, detail=str(e))


def _event_or_404(session: Session, event_id: str) -> Event:
    event = session.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="event not found")
    return event


def _event_out(e: Event) -> dict:
    out = EventRead(id=e.id, name=e.name, organizer_id=e.organizer_id, starts_at=as_utc(e.starts_at))
    return out.model_dump(mode="json", by_alias=True)


def _stored_layout(session: Session, event_id: str) -> Layout:
    store = SqlLayoutStore(session)
    try:
        raw = store.load(event_id)
        ticket_types = store.list_ticket_types(event_id)
    except StoreError as e:
        raise _http_error(e) from e
    layout = deserialize(raw, ticket_types) if raw is not None else None
    if layout is None:
        raise HTTPException(status_code=404, detail="layout not found")
    return layout


@app.get("/health")
def health() -> dict:
    return {"ok": True}


@app.post("/events")
def create_event(payload: EventCreate, session: Session = Depends(_session)) -> dict:
    e = Event(**payload.model_dump())
    session.add(e)
    session.commit()
    session.refresh(e)
    return _event_out(e)


@app.get("/events/{event_id}")
def get_event(event_id: str, session: Session = Depends(_session)) -> dict:
    return _event_out(_event_or_404(session, event_id))


@app.get("/events/{event_id}/ticket-types")
def list_ticket_types(event_id: str, session: Session = Depends(_session)) -> list[dict]:
    try:
        types = SqlLayoutStore(session).list_ticket_types(event_id)
    except StoreError as e:
        raise _http_error(e) from e
    return [t.model_dump(mode="json", by_alias=True) for t in types]


@app.post("/events/{event_id}/ticket-types")
def create_ticket_type(event_id: str, payload: TicketTypeCreate, session: Session = Depends(_session)) -> dict:
    _event_or_404(session, event_id)
    r = TicketTypeRecord(event_id=event_id, **payload.model_dump())
    session.add(r)
    session.commit()
    session.refresh(r)
    return {"id": r.id, "name": r.name, "price": r.price, "color": r.color}


@app.get("/events/{event_id}/layout")
def get_layout(event_id: str, session: Session = Depends(_session)) -> dict:
    try:
        raw = SqlLayoutStore(session).load(event_id)
    except StoreError as e:
        raise _http_error(e) from e
    if raw is None:
        raise HTTPException(status_code=404, detail="layout not found")
    return raw


@app.put("/events/{event_id}/layout")
def save_layout(
    event_id: str,
    payload: LayoutDocument,
    x_organizer_id: Optional[str] = Header(default=None),
    session: Session = Depends(_session),
) -> dict:
    store = SqlLayoutStore(session, organizer_id=x_organizer_id)
    try:
        store.save(event_id, payload)
    except StoreError as e:
        logger.warning("layout save for event {} rejected: {}", event_id, e)
        raise _http_error(e) from e
    logger.info("stored layout for event {}: {} seats", event_id, len(payload.seats))
    return LayoutSaved(event_id=event_id, seats=len(payload.seats), sections=len(payload.sections)).model_dump(
        by_alias=True
    )


@app.get("/events/{event_id}/layout/summary")
def layout_summary(event_id: str, session: Session = Depends(_session)) -> dict:
    layout = _stored_layout(session, event_id)
    return {"event_id": event_id, **asdict(layout.summary())}


@app.get("/events/{event_id}/seats.csv")
def export_seats_csv(event_id: str, session: Session = Depends(_session)) -> Response:
    event = _event_or_404(session, event_id)
    layout = _stored_layout(session, event_id)

    out = io.StringIO()
    w = csv.writer(out)
    w.writerow(["event", "section", "row", "seat", "seat_code", "seat_kind", "status", "ticket_type", "price", "x", "y"])

    for s in layout.seats:
        sec = layout.get_section(s.section_id) if s.section_id else None
        tt = layout.ticket_type(s.ticket_type_id)
        w.writerow(
            [
                event.name,
                sec.name if sec else "",
                s.row,
                s.number,
                f"{sec.name}-{s.label}" if sec else s.label,
                s.seat_kind.value,
                s.status.value,
                tt.name if tt else "",
                tt.price if tt else "",
                round(s.x, 2),
                round(s.y, 2),
            ]
        )

    return Response(
        content=out.getvalue(),
        media_type="text/csv",
        headers={"content-disposition": f'attachment; filename="event_{event_id}_seats.csv"'},
    )
