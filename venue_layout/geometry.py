from __future__ import annotations

import math
from typing import TYPE_CHECKING, NamedTuple

from shapely import affinity
from shapely.geometry import Point as ShapelyPoint, Polygon as ShapelyPolygon, box

if TYPE_CHECKING:
    from .models import Section


_EPS = 1e-9


class Point(NamedTuple):
    x: float
    y: float


class Rect(NamedTuple):
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2.0, self.y + self.height / 2.0)


def normalize_degrees(d: float) -> float:
    t = float(d) % 360.0
    # -1e-17 % 360 == 360.0 in floating point
    return 0.0 if t >= 360.0 else t


def distance(a: tuple[float, float], b: tuple[float, float]) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def rotate_point(point: tuple[float, float], center: tuple[float, float], degrees: float) -> Point:
    if degrees == 0:
        return Point(float(point[0]), float(point[1]))
    rad = math.radians(degrees)
    cos_r = math.cos(rad)
    sin_r = math.sin(rad)
    dx = point[0] - center[0]
    dy = point[1] - center[1]
    return Point(
        center[0] + dx * cos_r - dy * sin_r,
        center[1] + dx * sin_r + dy * cos_r,
    )


def polar_to_cartesian(center: tuple[float, float], radius: float, angle_deg: float) -> Point:
    rad = math.radians(angle_deg)
    return Point(center[0] + radius * math.cos(rad), center[1] + radius * math.sin(rad))


def angle_of(center: tuple[float, float], point: tuple[float, float]) -> float:
    """Angle from center to point in degrees, 0 at 3 o'clock, increasing with y (screen clockwise)."""
    return normalize_degrees(math.degrees(math.atan2(point[1] - center[1], point[0] - center[0])))


def snap_to_grid(point: tuple[float, float], grid_size: float) -> Point:
    if grid_size <= 0:
        return Point(float(point[0]), float(point[1]))
    return Point(round(point[0] / grid_size) * grid_size, round(point[1] / grid_size) * grid_size)


def point_in_rotated_rect(point: tuple[float, float], rect: Rect, rotation_deg: float) -> bool:
    r = Rect(*rect)
    p = ShapelyPoint(point[0], point[1])
    if rotation_deg:
        # Bring the point into the rectangle's local (unrotated) frame.
        p = affinity.rotate(p, -rotation_deg, origin=r.center, use_radians=False)
    return box(r.x, r.y, r.x + r.width, r.y + r.height).covers(p)


def sweep_degrees(start_deg: float, end_deg: float) -> float:
    """Angular extent swept from start to end; wraps through 0 when end < start."""
    span = end_deg - start_deg
    if span >= 360.0:
        return 360.0
    if span > 0:
        return span
    return span % 360.0


def angle_in_sweep(angle_deg: float, start_deg: float, end_deg: float) -> bool:
    sweep = sweep_degrees(start_deg, end_deg)
    if sweep >= 360.0:
        return True
    offset = (angle_deg - start_deg) % 360.0
    if offset > 360.0 - _EPS:
        offset = 0.0
    return offset <= sweep + _EPS


def point_in_annulus_sector(
    point: tuple[float, float],
    center_x: float,
    center_y: float,
    inner_r: float,
    outer_r: float,
    start_deg: float,
    end_deg: float,
) -> bool:
    d = distance((center_x, center_y), point)
    if d < inner_r - _EPS or d > outer_r + _EPS:
        return False
    if d <= _EPS:
        # The centre itself only counts when the ring is a full disc.
        return inner_r <= _EPS and sweep_degrees(start_deg, end_deg) >= 360.0
    return angle_in_sweep(angle_of((center_x, center_y), point), start_deg, end_deg)


def _arc_points(cx: float, cy: float, r: float, start_deg: float, sweep: float, step_deg: float) -> list[tuple[float, float]]:
    n = max(1, int(math.ceil(sweep / max(step_deg, 0.5))))
    pts = []
    for i in range(n + 1):
        p = polar_to_cartesian((cx, cy), r, start_deg + sweep * i / n)
        pts.append((p.x, p.y))
    return pts


def annulus_sector_polygon(
    center_x: float,
    center_y: float,
    inner_r: float,
    outer_r: float,
    start_deg: float,
    end_deg: float,
    *,
    step_deg: float = 5.0,
) -> ShapelyPolygon:
    sweep = sweep_degrees(start_deg, end_deg)
    outer = _arc_points(center_x, center_y, outer_r, start_deg, sweep, step_deg)
    if inner_r > 0:
        inner = list(reversed(_arc_points(center_x, center_y, inner_r, start_deg, sweep, step_deg)))
    else:
        inner = [(center_x, center_y)]
    return ShapelyPolygon(outer + inner)


def section_outline(section: "Section", *, step_deg: float = 5.0) -> ShapelyPolygon:
    if section.is_arc and section.arc_data is not None:
        a = section.arc_data
        return annulus_sector_polygon(
            a.center_x,
            a.center_y,
            a.inner_radius,
            a.outer_radius,
            a.start_angle_deg,
            a.end_angle_deg,
            step_deg=step_deg,
        )
    rect = box(section.x, section.y, section.x + section.width, section.y + section.height)
    if section.rotation_degrees:
        rect = affinity.rotate(rect, section.rotation_degrees, origin="center", use_radians=False)
    return rect
