from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Protocol, TypeVar, Union

from loguru import logger
from pydantic import ValidationError

from .layout import Layout
from .models import LayoutDocument, LayoutSettings, Seat, Section, StageConfig, TicketType

ModelT = TypeVar("ModelT", LayoutSettings, StageConfig)


class StoreError(Exception):
    """Base class for failures reported by a layout store."""


class LayoutValidationError(StoreError):
    def __init__(self, message: str, problems: Optional[list[str]] = None):
        super().__init__(message)
        self.problems = problems or []


class Unauthorized(StoreError):
    pass


class EventNotFound(StoreError):
    pass


class EventInPast(StoreError):
    pass


class StoreUnavailable(StoreError):
    pass


class LayoutStore(Protocol):
    """
    The external layout store.

    ``load`` returns the stored JSON value (a mapping) or None when the event
    has no layout yet. Implementations raise ``StoreError`` subclasses.
    """

    def load(self, event_id: str) -> Optional[Mapping[str, Any]]: ...

    def save(self, event_id: str, document: LayoutDocument) -> None: ...

    def list_ticket_types(self, event_id: str) -> list[TicketType]: ...

    def event_starts_at(self, event_id: str) -> Optional[datetime]: ...


DocumentInput = Union[LayoutDocument, Mapping[str, Any], str, bytes]


def serialize(layout: Layout) -> LayoutDocument:
    return LayoutDocument(
        layout=layout.settings,
        stage_config=layout.stage,
        sections=layout.sections,
        seats=layout.seats,
    )


def document_to_dict(doc: LayoutDocument) -> dict[str, Any]:
    return doc.model_dump(mode="json", by_alias=True)


def document_to_json(doc: LayoutDocument) -> str:
    return json.dumps(document_to_dict(doc), indent=2) + "\n"


def _as_mapping(doc: DocumentInput) -> Optional[Mapping[str, Any]]:
    if isinstance(doc, LayoutDocument):
        return document_to_dict(doc)
    if isinstance(doc, (str, bytes)):
        try:
            doc = json.loads(doc)
        except ValueError as e:
            logger.warning("layout document is not valid JSON: {}", e)
            return None
    if not isinstance(doc, Mapping):
        return None
    return doc


def _part(data: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in data:
            return data[k]
    return None


def _over_defaults(model_cls: type[ModelT], raw: Mapping[str, Any], what: str) -> ModelT:
    # Each stored key fills in over the defaults on its own; a bad value only loses that key.
    kept = {}
    for key, value in raw.items():
        try:
            model_cls.model_validate({key: value})
        except ValidationError:
            logger.warning("layout document {} field {!r} rejected; using default", what, key)
            continue
        kept[key] = value
    return model_cls.model_validate(kept)


def deserialize(doc: DocumentInput, ticket_types: Iterable[TicketType] = ()) -> Optional[Layout]:
    """
    Rebuild a ``Layout`` from a stored document, tolerating damage.

    ``layout`` and ``stageConfig`` fill in over the defaults key by key, so an
    invalid value falls back to its default. Invalid or duplicate sections and
    seats are skipped, and seats pointing at a missing section lose the
    reference. Returns None only when the document as a whole is unusable,
    which callers treat as "no layout yet".
    """
    data = _as_mapping(doc)
    if data is None:
        return None

    raw_settings = _part(data, "layout") or {}
    raw_stage = _part(data, "stageConfig", "stage_config") or {}
    if not isinstance(raw_settings, Mapping) or not isinstance(raw_stage, Mapping):
        logger.warning("layout document has malformed settings or stage")
        return None
    settings = _over_defaults(LayoutSettings, raw_settings, "settings")
    stage = _over_defaults(StageConfig, raw_stage, "stage")

    raw_sections = _part(data, "sections")
    raw_seats = _part(data, "seats")
    if not isinstance(raw_sections, list):
        raw_sections = []
    if not isinstance(raw_seats, list):
        raw_seats = []

    sections: dict[str, Section] = {}
    for i, item in enumerate(raw_sections):
        try:
            sec = Section.model_validate(item)
        except ValidationError as e:
            logger.warning("skipping section #{}: {} validation errors", i, e.error_count())
            continue
        if sec.id in sections:
            logger.warning("skipping duplicate section {}", sec.id)
            continue
        sections[sec.id] = sec

    seats: dict[str, Seat] = {}
    for i, item in enumerate(raw_seats):
        try:
            seat = Seat.model_validate(item)
        except ValidationError as e:
            logger.warning("skipping seat #{}: {} validation errors", i, e.error_count())
            continue
        if seat.id in seats:
            logger.warning("skipping duplicate seat {}", seat.id)
            continue
        if seat.section_id is not None and seat.section_id not in sections:
            logger.warning("seat {} references missing section {}; detached", seat.id, seat.section_id)
            seat = seat.model_copy(update={"section_id": None})
        seats[seat.id] = seat

    return Layout(
        settings,
        stage,
        sections=sections.values(),
        seats=seats.values(),
        ticket_types=ticket_types,
    )


def document_problems(doc: LayoutDocument, ticket_type_ids: Iterable[str]) -> list[str]:
    """Referential problems that make a document unsaveable; empty when it is fine."""
    known_types = set(ticket_type_ids)
    problems = []
    if not known_types:
        problems.append("event has no ticket types")

    section_ids: set[str] = set()
    for sec in doc.sections:
        if sec.id in section_ids:
            problems.append(f"duplicate section id {sec.id}")
        section_ids.add(sec.id)

    seat_ids: set[str] = set()
    for seat in doc.seats:
        if seat.id in seat_ids:
            problems.append(f"duplicate seat id {seat.id}")
        seat_ids.add(seat.id)
        if seat.section_id is not None and seat.section_id not in section_ids:
            problems.append(f"seat {seat.id} references unknown section {seat.section_id}")
        if seat.ticket_type_id not in known_types:
            problems.append(f"seat {seat.id} has no valid ticket type")
    return problems


def check_document(doc: LayoutDocument, ticket_type_ids: Iterable[str]) -> None:
    problems = document_problems(doc, ticket_type_ids)
    if problems:
        raise LayoutValidationError(f"layout rejected: {problems[0]}", problems)


def prepare_for_save(layout: Layout, confirm: Callable[[str], bool]) -> LayoutDocument:
    """
    Serialize ``layout`` for saving.

    Seats without a valid ticket type get the first ticket type once
    ``confirm`` agrees; the assignment is applied to the in-memory layout too.
    """
    default = layout.default_ticket_type()
    if default is None:
        raise LayoutValidationError("create at least one ticket type before saving the layout")

    missing = [s for s in layout.seats if layout.ticket_type(s.ticket_type_id) is None]
    if missing:
        if not confirm(f"{len(missing)} seats have no ticket type. Assign {default.name!r} to them?"):
            raise LayoutValidationError(f"{len(missing)} seats have no ticket type")
        for seat in missing:
            layout.update_seat(seat.id, ticket_type_id=default.id)
        logger.info("assigned default ticket type {!r} to {} seats", default.name, len(missing))
    return serialize(layout)
