from __future__ import annotations

import re
from typing import Optional

from loguru import logger

from .geometry import polar_to_cartesian, rotate_point, sweep_degrees
from .layout import Layout, LayoutError
from .models import ArcData, LayoutSettings, Seat, SeatStatus, Section


_TRAILING_NUMBER = re.compile(r"^(.*?)(\d+)$")


def _alpha_to_index(label: str) -> int:
    # Bijective base-26: A=1 .. Z=26, AA=27
    n = 0
    for ch in label.upper():
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n


def _index_to_alpha(n: int) -> str:
    out = []
    while n > 0:
        n, rem = divmod(n - 1, 26)
        out.append(chr(ord("A") + rem))
    return "".join(reversed(out))


def advance_row_label(start: str, offset: int) -> str:
    """
    Row label ``offset`` rows after ``start``.

    Letters advance alphabetically (A, B, ... Z, AA, AB), numbers
    numerically, and labels ending in digits advance that number.
    """
    start = (start or "A").strip() or "A"
    if offset == 0:
        return start
    if start.isascii() and start.isalpha():
        return _index_to_alpha(max(1, _alpha_to_index(start) + offset))
    m = _TRAILING_NUMBER.match(start)
    if m:
        prefix, digits = m.groups()
        return f"{prefix}{int(digits) + offset}"
    return f"{start}{offset}"


def _step(span: float, count: int) -> float:
    return span / ((count - 1) or 1)


def _rect_seats(section: Section, ticket_type_id: Optional[str]) -> list[Seat]:
    rows = section.rows
    per_row = section.seats_per_row
    start_x = section.width / 2 - (per_row * section.seat_spacing) / 2 + section.seat_spacing / 2
    start_y = section.height / 2 - (rows * section.row_spacing) / 2 + section.row_spacing / 2
    center = section.center

    seats = []
    for r in range(rows):
        row_label = advance_row_label(section.row_start_label, r)
        for c in range(per_row):
            local_x = section.x + start_x + c * section.seat_spacing
            local_y = section.y + start_y + r * section.row_spacing
            p = rotate_point((local_x, local_y), center, section.rotation_degrees)
            seats.append(
                Seat(
                    row=row_label,
                    number=str(section.seat_start_number + c),
                    x=p.x,
                    y=p.y,
                    rotation_degrees=section.rotation_degrees,
                    status=SeatStatus.available,
                    ticket_type_id=ticket_type_id,
                    section_id=section.id,
                )
            )
    return seats


def _arc_seats(section: Section, arc: ArcData, ticket_type_id: Optional[str]) -> list[Seat]:
    rows = section.rows
    per_row = section.seats_per_row
    radius_step = _step(arc.outer_radius - arc.inner_radius, rows)
    angle_step = _step(sweep_degrees(arc.start_angle_deg, arc.end_angle_deg), per_row)
    center = (arc.center_x, arc.center_y)

    seats = []
    for r in range(rows):
        row_label = advance_row_label(section.row_start_label, r)
        radius = arc.inner_radius + r * radius_step
        for c in range(per_row):
            angle = arc.start_angle_deg + c * angle_step
            p = polar_to_cartesian(center, radius, angle)
            seats.append(
                Seat(
                    row=row_label,
                    number=str(section.seat_start_number + c),
                    x=p.x,
                    y=p.y,
                    # Seats face away from the arc centre.
                    rotation_degrees=angle + 90,
                    status=SeatStatus.available,
                    ticket_type_id=ticket_type_id,
                    section_id=section.id,
                )
            )
    return seats


def generate_section_seats(section: Section, ticket_type_id: Optional[str]) -> list[Seat]:
    if section.is_arc and section.arc_data is not None:
        return _arc_seats(section, section.arc_data, ticket_type_id)
    return _rect_seats(section, ticket_type_id)


def regenerate_section_seats(layout: Layout, section_id: str, ticket_type_id: Optional[str]) -> list[Seat]:
    section = layout.get_section(section_id)
    if section is None:
        raise LayoutError(f"section not found: {section_id}")
    seats = layout.replace_section_seats(section_id, generate_section_seats(section, ticket_type_id))
    logger.info("generated {} seats for section {!r}", len(seats), section.name)
    return seats


def sample_theater_sections(settings: LayoutSettings) -> list[Section]:
    """A stock theatre: curved main block, two angled wings and a VIP block in front."""
    cx = settings.venue_width / 2
    cy = settings.venue_height - 200
    return [
        Section(
            name="Main Seating",
            color="hsl(210, 70%, 75%)",
            is_arc=True,
            arc_data=ArcData(
                center_x=cx,
                center_y=cy,
                inner_radius=200,
                outer_radius=350,
                start_angle_deg=210,
                end_angle_deg=330,
                rows=5,
            ),
            rows=5,
            seats_per_row=20,
            row_spacing=30,
            seat_spacing=15,
        ),
        Section(
            name="Left Wing",
            x=cx - 450,
            y=cy - 150,
            width=150,
            height=250,
            color="hsl(180, 70%, 75%)",
            rows=5,
            seats_per_row=5,
            row_spacing=30,
            seat_spacing=30,
            rotation_degrees=15,
        ),
        Section(
            name="Right Wing",
            x=cx + 300,
            y=cy - 150,
            width=150,
            height=250,
            color="hsl(150, 70%, 75%)",
            rows=5,
            seats_per_row=5,
            row_spacing=30,
            seat_spacing=30,
            rotation_degrees=-15,
        ),
        Section(
            name="VIP",
            x=cx - 150,
            y=cy - 180,
            width=300,
            height=120,
            color="hsl(330, 70%, 75%)",
            rows=4,
            seats_per_row=10,
            row_start_label="AA",
            row_spacing=30,
            seat_spacing=30,
        ),
    ]


def build_sample_layout(layout: Layout, ticket_type_id: Optional[str]) -> int:
    """Replace every section and seat of ``layout`` with the stock theatre. Returns the seat count."""
    sections = sample_theater_sections(layout.settings)
    layout.clear()
    total = 0
    for sec in sections:
        added = layout.add_section(sec)
        if ticket_type_id is not None:
            total += len(layout.replace_section_seats(added.id, generate_section_seats(added, ticket_type_id)))
    return total
