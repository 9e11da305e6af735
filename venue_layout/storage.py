from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from loguru import logger

from .models import LayoutDocument, TicketType
from .persistence import (
    EventInPast,
    EventNotFound,
    StoreUnavailable,
    check_document,
    document_to_dict,
)


def as_utc(dt: datetime) -> datetime:
    # Naive timestamps are taken to be UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _EventRecord:
    starts_at: Optional[datetime] = None
    ticket_types: list[TicketType] = field(default_factory=list)
    document: Optional[dict[str, Any]] = None


class InMemoryLayoutStore:
    """A ``LayoutStore`` kept in a dict; documents are stored as plain JSON values."""

    def __init__(self, clock=utc_now):
        self._events: dict[str, _EventRecord] = {}
        self._clock = clock
        self.available = True
        self.saves = 0

    def add_event(
        self,
        event_id: str,
        *,
        starts_at: Optional[datetime] = None,
        ticket_types: Iterable[TicketType] = (),
        document: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._events[event_id] = _EventRecord(
            starts_at=starts_at,
            ticket_types=list(ticket_types),
            document=copy.deepcopy(dict(document)) if document is not None else None,
        )

    def _event(self, event_id: str) -> _EventRecord:
        if not self.available:
            raise StoreUnavailable("layout store is unavailable")
        rec = self._events.get(event_id)
        if rec is None:
            raise EventNotFound(f"event not found: {event_id}")
        return rec

    def load(self, event_id: str) -> Optional[dict[str, Any]]:
        rec = self._event(event_id)
        return copy.deepcopy(rec.document) if rec.document is not None else None

    def list_ticket_types(self, event_id: str) -> list[TicketType]:
        return list(self._event(event_id).ticket_types)

    def event_starts_at(self, event_id: str) -> Optional[datetime]:
        return self._event(event_id).starts_at

    def save(self, event_id: str, document: LayoutDocument) -> None:
        rec = self._event(event_id)
        if rec.starts_at is not None and as_utc(rec.starts_at) < self._clock():
            raise EventInPast("cannot modify the layout of a past event")
        check_document(document, [t.id for t in rec.ticket_types])
        rec.document = document_to_dict(document)
        self.saves += 1


class JsonFileLayoutStore:
    """
    A ``LayoutStore`` backed by one JSON file per event under ``root``:
    ``{"startsAt": ..., "ticketTypes": [...], "layout": {...} | null}``.
    """

    def __init__(self, root: str | Path, clock=utc_now):
        self.root = Path(root)
        self._clock = clock

    def _path(self, event_id: str) -> Path:
        return self.root / f"{event_id}.json"

    def _read(self, event_id: str) -> dict[str, Any]:
        p = self._path(event_id)
        if not p.exists():
            raise EventNotFound(f"event file not found: {p}")
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreUnavailable(f"failed to read event JSON: {e}") from e
        if not isinstance(data, dict):
            raise StoreUnavailable(f"event file is not a JSON object: {p}")
        return data

    def _write(self, event_id: str, data: dict[str, Any]) -> None:
        p = self._path(event_id)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            tmp = p.with_suffix(".json.tmp")
            tmp.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
            tmp.replace(p)
        except OSError as e:
            raise StoreUnavailable(f"failed to write event JSON: {e}") from e

    def create_event(
        self,
        event_id: str,
        *,
        starts_at: Optional[datetime] = None,
        ticket_types: Iterable[TicketType] = (),
        overwrite: bool = False,
    ) -> None:
        if self._path(event_id).exists() and not overwrite:
            return
        self._write(
            event_id,
            {
                "startsAt": starts_at.isoformat() if starts_at is not None else None,
                "ticketTypes": [t.model_dump(mode="json", by_alias=True) for t in ticket_types],
                "layout": None,
            },
        )

    def load(self, event_id: str) -> Optional[dict[str, Any]]:
        doc = self._read(event_id).get("layout")
        return doc if isinstance(doc, dict) else None

    def list_ticket_types(self, event_id: str) -> list[TicketType]:
        raw = self._read(event_id).get("ticketTypes") or []
        return [TicketType.model_validate(t) for t in raw]

    def event_starts_at(self, event_id: str) -> Optional[datetime]:
        raw = self._read(event_id).get("startsAt")
        return datetime.fromisoformat(raw) if raw else None

    def save(self, event_id: str, document: LayoutDocument) -> None:
        data = self._read(event_id)
        raw_start = data.get("startsAt")
        if raw_start and as_utc(datetime.fromisoformat(raw_start)) < self._clock():
            raise EventInPast("cannot modify the layout of a past event")
        check_document(document, [t.get("id") for t in data.get("ticketTypes") or []])
        data["layout"] = document_to_dict(document)
        self._write(event_id, data)
        logger.debug("wrote layout for event {} to {}", event_id, self._path(event_id))
