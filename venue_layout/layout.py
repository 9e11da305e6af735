from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from loguru import logger

from .geometry import rotate_point
from .models import (
    LayoutSettings,
    Seat,
    SeatStatus,
    Section,
    StageConfig,
    TicketType,
)


class LayoutError(Exception):
    pass


@dataclass(frozen=True)
class LayoutSummary:
    seats_total: int
    sections_total: int
    seats_by_status: dict[str, int] = field(default_factory=dict)
    seats_by_ticket_type: dict[str, int] = field(default_factory=dict)
    unassigned_seats: int = 0
    sellable_capacity: int = 0
    potential_revenue: float = 0.0


class Layout:
    """
    The aggregate root for one event: venue settings, the stage, and the
    sections, seats and ticket types drawn on it.

    Seats are kept in a flat id-keyed arena; ``section_id`` on a seat is a
    lookup relation backed by an index, never ownership. Every write
    validates a fresh entity and either applies completely or raises.
    """

    def __init__(
        self,
        settings: Optional[LayoutSettings] = None,
        stage: Optional[StageConfig] = None,
        *,
        sections: Iterable[Section] = (),
        seats: Iterable[Seat] = (),
        ticket_types: Iterable[TicketType] = (),
    ):
        self.settings = settings or LayoutSettings()
        self.stage = stage or StageConfig()
        self.revision = 0
        self._sections: dict[str, Section] = {}
        self._seats: dict[str, Seat] = {}
        self._seats_by_section: dict[str, dict[str, None]] = {}
        self._ticket_types: dict[str, TicketType] = {}

        for sec in sections:
            self.add_section(sec)
        for seat in seats:
            self.add_seat(seat)
        self.set_ticket_types(ticket_types)
        self.revision = 0

    # -- read side -------------------------------------------------------

    @property
    def seats(self) -> list[Seat]:
        return list(self._seats.values())

    @property
    def sections(self) -> list[Section]:
        return list(self._sections.values())

    @property
    def ticket_types(self) -> list[TicketType]:
        return list(self._ticket_types.values())

    def item_count(self) -> int:
        return len(self._seats) + len(self._sections)

    def get_seat(self, seat_id: str) -> Optional[Seat]:
        return self._seats.get(seat_id)

    def get_section(self, section_id: str) -> Optional[Section]:
        return self._sections.get(section_id)

    def ticket_type(self, ticket_type_id: Optional[str]) -> Optional[TicketType]:
        if ticket_type_id is None:
            return None
        return self._ticket_types.get(ticket_type_id)

    def default_ticket_type(self) -> Optional[TicketType]:
        return next(iter(self._ticket_types.values()), None)

    def seats_in_section(self, section_id: str) -> list[Seat]:
        ids = self._seats_by_section.get(section_id, {})
        return [self._seats[sid] for sid in ids]

    # -- internals -------------------------------------------------------

    def _touch(self) -> None:
        self.revision += 1

    def _index_seat(self, seat: Seat) -> None:
        if seat.section_id is not None:
            self._seats_by_section.setdefault(seat.section_id, {})[seat.id] = None

    def _unindex_seat(self, seat: Seat) -> None:
        if seat.section_id is None:
            return
        bucket = self._seats_by_section.get(seat.section_id)
        if bucket is not None:
            bucket.pop(seat.id, None)
            if not bucket:
                del self._seats_by_section[seat.section_id]

    def _check_section_ref(self, seat: Seat) -> None:
        if seat.section_id is not None and seat.section_id not in self._sections:
            raise LayoutError(f"seat {seat.id} references unknown section {seat.section_id}")

    # -- seats -----------------------------------------------------------

    def add_seat(self, seat: Seat) -> Seat:
        seat = Seat.model_validate(seat.model_dump())
        if seat.id in self._seats:
            raise LayoutError(f"duplicate seat id: {seat.id}")
        self._check_section_ref(seat)
        self._seats[seat.id] = seat
        self._index_seat(seat)
        self._touch()
        return seat

    def update_seat(self, seat_id: str, **changes: Any) -> Seat:
        cur = self._seats.get(seat_id)
        if cur is None:
            raise LayoutError(f"seat not found: {seat_id}")
        changes.pop("id", None)
        new = Seat.model_validate({**cur.model_dump(), **changes})
        self._check_section_ref(new)
        self._unindex_seat(cur)
        self._seats[seat_id] = new
        self._index_seat(new)
        self._touch()
        return new

    def delete_seat(self, seat_id: str) -> Optional[Seat]:
        seat = self._seats.pop(seat_id, None)
        if seat is None:
            return None
        self._unindex_seat(seat)
        self._touch()
        return seat

    def delete_seats(self, seat_ids: Iterable[str]) -> list[Seat]:
        removed = []
        for sid in list(seat_ids):
            seat = self._seats.pop(sid, None)
            if seat is not None:
                self._unindex_seat(seat)
                removed.append(seat)
        if removed:
            self._touch()
        return removed

    # -- sections --------------------------------------------------------

    def add_section(self, section: Section) -> Section:
        section = Section.model_validate(section.model_dump())
        if section.id in self._sections:
            raise LayoutError(f"duplicate section id: {section.id}")
        self._sections[section.id] = section
        self._touch()
        return section

    def update_section(self, section_id: str, **changes: Any) -> Section:
        cur = self._sections.get(section_id)
        if cur is None:
            raise LayoutError(f"section not found: {section_id}")
        changes.pop("id", None)
        new = Section.model_validate({**cur.model_dump(), **changes})
        self._sections[section_id] = new
        self._touch()
        return new

    def delete_section(self, section_id: str) -> tuple[Optional[Section], list[Seat]]:
        """Remove a section together with every seat pointing at it."""
        section = self._sections.pop(section_id, None)
        if section is None:
            return None, []
        seat_ids = list(self._seats_by_section.pop(section_id, {}))
        removed = [self._seats.pop(sid) for sid in seat_ids]
        self._touch()
        logger.debug("deleted section {} with {} seats", section_id, len(removed))
        return section, removed

    def replace_section_seats(self, section_id: str, seats: Iterable[Seat]) -> list[Seat]:
        """Purge every seat of ``section_id`` and insert ``seats`` in their place."""
        if section_id not in self._sections:
            raise LayoutError(f"section not found: {section_id}")
        fresh = [Seat.model_validate({**s.model_dump(), "section_id": section_id}) for s in seats]
        purge = set(self._seats_by_section.get(section_id, {}))
        ids = [s.id for s in fresh]
        if len(set(ids)) != len(ids) or any(sid in self._seats and sid not in purge for sid in ids):
            raise LayoutError("generated seat ids collide with existing seats")

        for sid in purge:
            del self._seats[sid]
        self._seats_by_section.pop(section_id, None)
        for seat in fresh:
            self._seats[seat.id] = seat
            self._index_seat(seat)
        self._touch()
        return fresh

    def rotate_section(self, section_id: str, degrees: float, *, rotate_seats: bool = False) -> Section:
        cur = self._sections.get(section_id)
        if cur is None:
            raise LayoutError(f"section not found: {section_id}")
        if cur.is_arc:
            raise LayoutError("arc sections cannot be rotated")
        owned = self.seats_in_section(section_id) if rotate_seats else []
        if any(s.is_locked for s in owned):
            raise LayoutError("section has reserved or sold seats")

        center = cur.center
        moved = []
        for seat in owned:
            p = rotate_point((seat.x, seat.y), center, degrees)
            moved.append(
                Seat.model_validate(
                    {**seat.model_dump(), "x": p.x, "y": p.y, "rotation_degrees": seat.rotation_degrees + degrees}
                )
            )
        new = Section.model_validate({**cur.model_dump(), "rotation_degrees": cur.rotation_degrees + degrees})

        self._sections[section_id] = new
        for seat in moved:
            self._seats[seat.id] = seat
        self._touch()
        return new

    # -- settings & ticket types ----------------------------------------

    def update_settings(self, **changes: Any) -> LayoutSettings:
        self.settings = LayoutSettings.model_validate({**self.settings.model_dump(), **changes})
        self._touch()
        return self.settings

    def update_stage(self, **changes: Any) -> StageConfig:
        self.stage = StageConfig.model_validate({**self.stage.model_dump(), **changes})
        self._touch()
        return self.stage

    def set_ticket_types(self, ticket_types: Iterable[TicketType]) -> None:
        self._ticket_types = {t.id: t for t in ticket_types}
        self._touch()

    def clear(self) -> None:
        self._sections.clear()
        self._seats.clear()
        self._seats_by_section.clear()
        self._touch()

    # -- analytics -------------------------------------------------------

    def summary(self) -> LayoutSummary:
        by_status: Counter[str] = Counter()
        by_type: Counter[str] = Counter()
        unassigned = 0
        capacity = 0
        revenue = 0.0
        for seat in self._seats.values():
            by_status[seat.status.value] += 1
            tt = self.ticket_type(seat.ticket_type_id)
            if tt is None:
                unassigned += 1
            else:
                by_type[tt.id] += 1
            if seat.status != SeatStatus.unavailable:
                capacity += 1
                if tt is not None:
                    revenue += tt.price
        return LayoutSummary(
            seats_total=len(self._seats),
            sections_total=len(self._sections),
            seats_by_status=dict(by_status),
            seats_by_ticket_type=dict(by_type),
            unassigned_seats=unassigned,
            sellable_capacity=capacity,
            potential_revenue=round(revenue, 2),
        )
