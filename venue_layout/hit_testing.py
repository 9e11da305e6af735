from __future__ import annotations

from typing import Iterable, Optional, Sequence

from .config import get_settings
from .geometry import Rect, distance, point_in_annulus_sector, point_in_rotated_rect
from .models import Seat, Section


def find_seat_at(
    point: tuple[float, float],
    seats: Iterable[Seat],
    seat_size: float,
    *,
    radius_divisor: Optional[float] = None,
) -> Optional[Seat]:
    """Nearest seat within seat_size / 1.5 of ``point``; on equal distance the earlier seat wins."""
    divisor = radius_divisor or get_settings().hit_radius_divisor
    limit = seat_size / divisor
    best: Optional[Seat] = None
    best_d = limit
    for seat in seats:
        d = distance(point, (seat.x, seat.y))
        if d > limit:
            continue
        if best is None or d < best_d:
            best = seat
            best_d = d
    return best


def section_contains(section: Section, point: tuple[float, float]) -> bool:
    if section.is_arc and section.arc_data is not None:
        a = section.arc_data
        return point_in_annulus_sector(
            point,
            a.center_x,
            a.center_y,
            a.inner_radius,
            a.outer_radius,
            a.start_angle_deg,
            a.end_angle_deg,
        )
    return point_in_rotated_rect(
        point,
        Rect(section.x, section.y, section.width, section.height),
        section.rotation_degrees,
    )


def find_section_at(point: tuple[float, float], sections: Sequence[Section]) -> Optional[Section]:
    # Later sections are drawn on top, so they win on overlap.
    for section in reversed(list(sections)):
        if section_contains(section, point):
            return section
    return None


def selectable(seat: Seat) -> bool:
    return seat.is_selectable
