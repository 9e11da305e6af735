from __future__ import annotations

import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Protocol

from loguru import logger
from shapely.geometry import box
from shapely.strtree import STRtree

from .config import get_settings
from .geometry import section_outline
from .layout import Layout
from .models import Seat, SeatStatus, Section
from .viewport import Viewport

if TYPE_CHECKING:
    from .editor import Selection


HIGHLIGHT_COLOR = "#3b82f6"
DEFAULT_SEAT_COLOR = "#10b981"
STAGE_COLOR = "#1f2937"
GRID_COLOR = "#f1f5f9"
ROW_LABEL_COLOR = "#0f172a"
STATUS_COLORS = {
    SeatStatus.unavailable: "#6b7280",
    SeatStatus.reserved: "#eab308",
    SeatStatus.sold: "#ef4444",
    SeatStatus.booked: "#d1d5db",
    SeatStatus.selected: HIGHLIGHT_COLOR,
}


def seat_fill(seat: Seat, layout: Layout, selected: bool = False) -> str:
    if selected:
        return HIGHLIGHT_COLOR
    if seat.status != SeatStatus.available:
        return STATUS_COLORS.get(seat.status, DEFAULT_SEAT_COLOR)
    tt = layout.ticket_type(seat.ticket_type_id)
    if tt is not None and tt.color:
        return tt.color
    return DEFAULT_SEAT_COLOR


def _selected_ids(selection: Optional["Selection"]) -> set[str]:
    if selection is None:
        return set()
    ids = set(selection.seat_ids)
    if selection.section_id is not None:
        ids.add(selection.section_id)
    return ids


# -- visibility ------------------------------------------------------------


@dataclass(frozen=True)
class VisibleItems:
    sections: list[Section] = field(default_factory=list)
    seats: list[Seat] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.sections) + len(self.seats)


class VisibilityCache:
    """
    Throttled viewport culling.

    The visible subset is recomputed at most once per ``interval`` seconds
    while the viewport moves, and immediately after ``invalidate()`` or a
    layout revision change. The spatial tree is only rebuilt on revision
    changes.
    """

    def __init__(self, interval: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.interval = get_settings().visibility_interval_s if interval is None else interval
        self._clock = clock
        self._dirty = True
        self._layout_key: Optional[tuple[int, int]] = None
        self._viewport_state: Optional[tuple] = None
        self._computed_at = 0.0
        self._tree: Optional[STRtree] = None
        self._items: list[Seat | Section] = []
        self._result = VisibleItems()
        self.recomputations = 0

    def invalidate(self) -> None:
        self._dirty = True

    def _rebuild(self, layout: Layout) -> None:
        half = layout.settings.seat_size / 2.0
        self._items = [*layout.sections, *layout.seats]
        geoms = [section_outline(s, step_deg=get_settings().arc_outline_step_deg) for s in layout.sections]
        geoms += [box(s.x - half, s.y - half, s.x + half, s.y + half) for s in layout.seats]
        self._tree = STRtree(geoms) if geoms else None

    def visible(self, layout: Layout, viewport: Viewport) -> VisibleItems:
        now = self._clock()
        layout_key = (id(layout), layout.revision)
        state = viewport.state()

        layout_changed = layout_key != self._layout_key
        moved = state != self._viewport_state
        throttled = now - self._computed_at < self.interval
        if not (self._dirty or layout_changed or (moved and not throttled)):
            return self._result

        if layout_changed:
            self._rebuild(layout)
        self._result = self._query(viewport)
        self._layout_key = layout_key
        self._viewport_state = state
        self._computed_at = now
        self._dirty = False
        self.recomputations += 1
        return self._result

    def _query(self, viewport: Viewport) -> VisibleItems:
        if self._tree is None:
            return VisibleItems()
        hits = sorted(int(i) for i in self._tree.query(box(*viewport.world_bounds()), predicate="intersects"))
        sections = [self._items[i] for i in hits if isinstance(self._items[i], Section)]
        seats = [self._items[i] for i in hits if isinstance(self._items[i], Seat)]
        return VisibleItems(sections=sections, seats=seats)


# -- renderers -------------------------------------------------------------


class SceneRenderer(Protocol):
    def render(self, layout: Layout, viewport: Viewport, selection: Optional["Selection"] = None): ...


def grid_path(width: float, height: float, step: float) -> str:
    """SVG path data for grid lines every ``step`` units across the venue."""
    if step <= 0:
        return ""
    parts = []
    x = 0.0
    while x <= width:
        parts.append(f"M{x:g} 0V{height:g}")
        x += step
    y = 0.0
    while y <= height:
        parts.append(f"M0 {y:g}H{width:g}")
        y += step
    return " ".join(parts)


def row_label_anchors(seats: Iterable[Seat], seat_size: float) -> list[tuple[str, float, float]]:
    """One ``(row, x, y)`` per section row, just left of the row's leftmost seat."""
    leftmost: dict[tuple[Optional[str], str], Seat] = {}
    for seat in seats:
        if not seat.row:
            continue
        key = (seat.section_id, seat.row)
        cur = leftmost.get(key)
        if cur is None or seat.x < cur.x:
            leftmost[key] = seat
    return [(seat.row, seat.x - seat_size - 10, seat.y) for seat in leftmost.values()]


class VectorRenderer:
    """Immediate mode: emits a complete SVG document on every call."""

    def __init__(self, visibility: Optional[VisibilityCache] = None):
        self.visibility = visibility or VisibilityCache()

    def render(self, layout: Layout, viewport: Viewport, selection: Optional["Selection"] = None) -> str:
        s = layout.settings
        selected = _selected_ids(selection)
        visible = self.visibility.visible(layout, viewport)

        root = ET.Element(
            "svg",
            xmlns="http://www.w3.org/2000/svg",
            width=f"{viewport.width:g}",
            height=f"{viewport.height:g}",
        )
        scene = ET.SubElement(
            root,
            "g",
            transform=f"translate({viewport.offset_x:g} {viewport.offset_y:g}) scale({viewport.scale:g})",
        )
        ET.SubElement(
            scene,
            "rect",
            {"class": "venue", "width": f"{s.venue_width:g}", "height": f"{s.venue_height:g}", "fill": "#ffffff"},
        )

        if s.show_grid and s.grid_size > 0:
            ET.SubElement(
                scene,
                "path",
                {
                    "class": "grid",
                    "d": grid_path(s.venue_width, s.venue_height, s.grid_size),
                    "stroke": GRID_COLOR,
                    "fill": "none",
                },
            )

        st = layout.stage
        stage_el = ET.SubElement(
            scene,
            "rect",
            {
                "class": "stage",
                "x": f"{st.x:g}",
                "y": f"{st.y:g}",
                "width": f"{st.width:g}",
                "height": f"{st.height:g}",
                "fill": STAGE_COLOR,
            },
        )
        if st.rotation_degrees:
            stage_el.set("transform", f"rotate({st.rotation_degrees:g} {st.x + st.width / 2:g} {st.y + st.height / 2:g})")

        step = get_settings().arc_outline_step_deg
        for sec in visible.sections:
            outline = section_outline(sec, step_deg=step)
            points = " ".join(f"{x:.2f},{y:.2f}" for x, y in list(outline.exterior.coords)[:-1])
            ET.SubElement(
                scene,
                "polygon",
                {
                    "id": sec.id,
                    "class": "section selected" if sec.id in selected else "section",
                    "points": points,
                    "fill": sec.color,
                    "fill-opacity": "0.35",
                    "stroke": HIGHLIGHT_COLOR if sec.id in selected else "#64748b",
                },
            )
            if s.show_section_labels:
                cx, cy = outline.centroid.x, outline.centroid.y
                label = ET.SubElement(scene, "text", {"x": f"{cx:.2f}", "y": f"{cy:.2f}", "text-anchor": "middle"})
                label.text = sec.name

        if s.show_row_labels:
            for row, x, y in row_label_anchors(visible.seats, s.seat_size):
                row_el = ET.SubElement(
                    scene,
                    "text",
                    {"class": "row-label", "x": f"{x:.2f}", "y": f"{y:.2f}", "text-anchor": "end", "fill": ROW_LABEL_COLOR},
                )
                row_el.text = row

        radius = s.seat_size / 2.0
        for seat in visible.seats:
            el = ET.SubElement(
                scene,
                "circle",
                {
                    "id": seat.id,
                    "class": "seat selected" if seat.id in selected else "seat",
                    "cx": f"{seat.x:.2f}",
                    "cy": f"{seat.y:.2f}",
                    "r": f"{radius:g}",
                    "fill": seat_fill(seat, layout, seat.id in selected),
                },
            )
            if s.show_seat_numbers and seat.number:
                num = ET.SubElement(
                    scene,
                    "text",
                    {"x": f"{seat.x:.2f}", "y": f"{seat.y:.2f}", "text-anchor": "middle", "font-size": "8"},
                )
                num.text = seat.number
            if seat.rotation_degrees:
                el.set("transform", f"rotate({seat.rotation_degrees:g} {seat.x:.2f} {seat.y:.2f})")

        return ET.tostring(root, encoding="unicode")


@dataclass(frozen=True)
class SceneNode:
    id: str
    kind: str  # "stage" | "section" | "seat"
    points: tuple[tuple[float, float], ...]
    fill: str
    rotation_degrees: float = 0.0
    label: str = ""


@dataclass(frozen=True)
class SceneDiff:
    created: int = 0
    updated: int = 0
    removed: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.created or self.updated or self.removed)


class SceneGraphRenderer:
    """Retained mode: keeps one node per visible item and applies only the differences."""

    STAGE_ID = "__stage__"

    def __init__(self, visibility: Optional[VisibilityCache] = None):
        self.visibility = visibility or VisibilityCache()
        self.nodes: dict[str, SceneNode] = {}
        self.last_diff = SceneDiff()

    def _build(self, layout: Layout, viewport: Viewport, selected: set[str]) -> dict[str, SceneNode]:
        st = layout.stage
        nodes = {
            self.STAGE_ID: SceneNode(
                id=self.STAGE_ID,
                kind="stage",
                points=((st.x, st.y), (st.x + st.width, st.y + st.height)),
                fill=STAGE_COLOR,
                rotation_degrees=st.rotation_degrees,
                label=st.name,
            )
        }
        visible = self.visibility.visible(layout, viewport)
        step = get_settings().arc_outline_step_deg
        for sec in visible.sections:
            coords = tuple((round(x, 2), round(y, 2)) for x, y in list(section_outline(sec, step_deg=step).exterior.coords)[:-1])
            nodes[sec.id] = SceneNode(
                id=sec.id,
                kind="section",
                points=coords,
                fill=HIGHLIGHT_COLOR if sec.id in selected else sec.color,
                rotation_degrees=sec.rotation_degrees,
                label=sec.name,
            )
        for seat in visible.seats:
            nodes[seat.id] = SceneNode(
                id=seat.id,
                kind="seat",
                points=((seat.x, seat.y),),
                fill=seat_fill(seat, layout, seat.id in selected),
                rotation_degrees=seat.rotation_degrees,
                label=seat.label,
            )
        return nodes

    def render(self, layout: Layout, viewport: Viewport, selection: Optional["Selection"] = None) -> SceneDiff:
        wanted = self._build(layout, viewport, _selected_ids(selection))
        created = updated = 0
        for node_id, node in wanted.items():
            cur = self.nodes.get(node_id)
            if cur is None:
                created += 1
            elif cur != node:
                updated += 1
            else:
                continue
            self.nodes[node_id] = node
        gone = [node_id for node_id in self.nodes if node_id not in wanted]
        for node_id in gone:
            del self.nodes[node_id]

        self.last_diff = SceneDiff(created=created, updated=updated, removed=len(gone))
        return self.last_diff


class RendererKind(str, Enum):
    VECTOR = "vector"
    SCENE_GRAPH = "scene-graph"


def choose_renderer(item_count: int, threshold: Optional[int] = None) -> RendererKind:
    limit = get_settings().renderer_threshold if threshold is None else threshold
    return RendererKind.SCENE_GRAPH if item_count > limit else RendererKind.VECTOR


class RendererSelector:
    """Holds one renderer of each kind and delegates to the one the item count calls for."""

    def __init__(self, threshold: Optional[int] = None, visibility: Optional[VisibilityCache] = None):
        self.threshold = threshold
        self.visibility = visibility or VisibilityCache()
        self.renderers: dict[RendererKind, SceneRenderer] = {
            RendererKind.VECTOR: VectorRenderer(self.visibility),
            RendererKind.SCENE_GRAPH: SceneGraphRenderer(self.visibility),
        }
        self.current: Optional[RendererKind] = None

    def select(self, layout: Layout) -> SceneRenderer:
        kind = choose_renderer(layout.item_count(), self.threshold)
        if kind != self.current:
            logger.debug("renderer switched to {} at {} items", kind.value, layout.item_count())
            self.current = kind
        return self.renderers[kind]

    def render(self, layout: Layout, viewport: Viewport, selection: Optional["Selection"] = None):
        return self.select(layout).render(layout, viewport, selection)
