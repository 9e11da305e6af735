from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from loguru import logger
from pydantic import ValidationError

from .config import get_settings
from .generation import regenerate_section_seats
from .geometry import Point, angle_of, distance, snap_to_grid
from .hit_testing import find_seat_at, find_section_at, selectable
from .layout import Layout, LayoutError
from .models import ArcData, Seat, SeatStatus, Section
from .viewport import Viewport


class EditorMode(str, Enum):
    VIEW = "view"
    DRAW = "draw"
    EDIT = "edit"
    DELETE = "delete"


class DrawTool(str, Enum):
    SEAT = "seat"
    SECTION = "section"
    ARC_SECTION = "arc-section"


class ArcStage(str, Enum):
    AWAITING_CENTER = "awaiting_center"
    AWAITING_INNER_RADIUS = "awaiting_inner_radius"
    AWAITING_OUTER_RADIUS = "awaiting_outer_radius"
    AWAITING_START_ANGLE = "awaiting_start_angle"
    AWAITING_END_ANGLE = "awaiting_end_angle"


Confirm = Callable[[str], bool]

SECTION_PALETTE = (
    "hsl(210, 70%, 75%)",
    "hsl(150, 70%, 75%)",
    "hsl(330, 70%, 75%)",
    "hsl(45, 70%, 75%)",
    "hsl(270, 70%, 75%)",
    "hsl(15, 70%, 75%)",
)


def _accept(message: str) -> bool:
    return True


@dataclass(frozen=True)
class ArcDraft:
    stage: ArcStage = ArcStage.AWAITING_CENTER
    center: Optional[Point] = None
    inner_radius: Optional[float] = None
    outer_radius: Optional[float] = None
    start_angle: Optional[float] = None


@dataclass
class Selection:
    seat_ids: dict[str, None] = field(default_factory=dict)
    section_id: Optional[str] = None

    def clear(self) -> None:
        self.seat_ids.clear()
        self.section_id = None

    def has_seat(self, seat_id: str) -> bool:
        return seat_id in self.seat_ids


@dataclass(frozen=True)
class _Drag:
    kind: str  # "seat" | "section"
    item_id: str
    press: Point
    origin: Point


class LayoutEditorState:
    """
    Editor mode/tool state plus the pointer-gesture interpretation that turns
    clicks and drags into mutations of a single ``Layout``.

    Entry points never raise for bad input: a structurally invalid request
    (too-small section, degenerate arc, no active ticket type) or a denied
    business rule (locked seat, read-only layout) is dropped and the layout
    stays as it was.
    """

    def __init__(
        self,
        layout: Layout,
        *,
        confirm: Confirm = _accept,
        viewport: Optional[Viewport] = None,
        read_only: bool = False,
    ):
        self.layout = layout
        self.confirm = confirm
        self.viewport = viewport
        self.read_only = read_only

        self.mode = EditorMode.VIEW
        self.tool: Optional[DrawTool] = None
        self.selection = Selection()
        self.active_ticket_type_id: Optional[str] = None
        default_tt = layout.default_ticket_type()
        if default_tt is not None:
            self.active_ticket_type_id = default_tt.id

        self.section_draft: Optional[Point] = None
        self.arc_draft = ArcDraft()
        self._drag: Optional[_Drag] = None

    # -- mode / tool -----------------------------------------------------

    def _reset_gestures(self) -> None:
        self.section_draft = None
        self.arc_draft = ArcDraft()
        self._drag = None

    def set_mode(self, mode: EditorMode) -> None:
        mode = EditorMode(mode)
        self._reset_gestures()
        self.mode = mode
        if mode == EditorMode.DRAW:
            if self.tool is None:
                self.tool = DrawTool.SEAT
        else:
            self.tool = None

    def set_tool(self, tool: Optional[DrawTool]) -> None:
        self._reset_gestures()
        if tool is None:
            self.tool = None
            return
        tool = DrawTool(tool)
        if self.mode != EditorMode.DRAW:
            self.mode = EditorMode.DRAW
        self.tool = tool

    def set_active_ticket_type(self, ticket_type_id: Optional[str]) -> bool:
        if ticket_type_id is not None and self.layout.ticket_type(ticket_type_id) is None:
            logger.debug("ignoring unknown ticket type {}", ticket_type_id)
            return False
        self.active_ticket_type_id = ticket_type_id
        return True

    @property
    def is_dragging(self) -> bool:
        return self._drag is not None

    def _writable(self, action: str) -> bool:
        if self.read_only:
            logger.warning("layout is read-only; {} rejected", action)
            return False
        return True

    def _snap(self, point: tuple[float, float]) -> Point:
        s = self.layout.settings
        if s.snap_to_grid:
            return snap_to_grid(point, s.grid_size)
        return Point(float(point[0]), float(point[1]))

    # -- selection -------------------------------------------------------

    def selected_seats(self) -> list[Seat]:
        return [s for sid in self.selection.seat_ids if (s := self.layout.get_seat(sid)) is not None]

    def selected_section(self) -> Optional[Section]:
        if self.selection.section_id is None:
            return None
        return self.layout.get_section(self.selection.section_id)

    def toggle_seat(self, seat_id: str) -> None:
        seat = self.layout.get_seat(seat_id)
        if seat is None or not selectable(seat):
            return
        if self.selection.has_seat(seat_id):
            del self.selection.seat_ids[seat_id]
        else:
            self.selection.seat_ids[seat_id] = None
        self.selection.section_id = None

    def select_section(self, section_id: str) -> None:
        if self.layout.get_section(section_id) is None:
            return
        self.selection.seat_ids.clear()
        self.selection.section_id = section_id

    def clear_selection(self) -> None:
        self.selection.clear()

    def select_all_seats(self) -> int:
        self.selection.section_id = None
        self.selection.seat_ids = {s.id: None for s in self.layout.seats if selectable(s)}
        return len(self.selection.seat_ids)

    def _forget(self, seat_ids: list[str], section_id: Optional[str] = None) -> None:
        for sid in seat_ids:
            self.selection.seat_ids.pop(sid, None)
        if section_id is not None and self.selection.section_id == section_id:
            self.selection.section_id = None

    # -- pointer gestures ------------------------------------------------

    def click(self, point: tuple[float, float]) -> None:
        p = Point(float(point[0]), float(point[1]))
        if self.mode in (EditorMode.VIEW, EditorMode.EDIT):
            self._click_select(p)
        elif self.mode == EditorMode.DRAW:
            self._click_draw(p)
        elif self.mode == EditorMode.DELETE:
            self._click_delete(p)

    def _click_select(self, p: Point) -> None:
        seat = find_seat_at(p, self.layout.seats, self.layout.settings.seat_size)
        if seat is not None:
            self.toggle_seat(seat.id)
            return
        section = find_section_at(p, self.layout.sections)
        if section is not None:
            self.select_section(section.id)
            return
        self.clear_selection()

    def _click_draw(self, p: Point) -> None:
        if self.tool is None or not self._writable("draw"):
            return
        p = self._snap(p)
        if self.tool == DrawTool.SEAT:
            self._place_seat(p)
        elif self.tool == DrawTool.SECTION:
            self._section_click(p)
        elif self.tool == DrawTool.ARC_SECTION:
            self._arc_click(p)

    def _place_seat(self, p: Point) -> Optional[Seat]:
        if self.layout.ticket_type(self.active_ticket_type_id) is None:
            logger.debug("seat placement rejected: no active ticket type")
            return None
        return self.layout.add_seat(
            Seat(x=p.x, y=p.y, status=SeatStatus.available, ticket_type_id=self.active_ticket_type_id)
        )

    def _next_section_style(self) -> tuple[str, str]:
        n = len(self.layout.sections)
        return f"Section {n + 1}", SECTION_PALETTE[n % len(SECTION_PALETTE)]

    def _commit_section(self, **fields: object) -> Optional[Section]:
        try:
            added = self.layout.add_section(Section.model_validate(fields))
        except (ValidationError, LayoutError) as e:
            logger.debug("section rejected: {}", e)
            return None
        self.select_section(added.id)
        logger.info("added section {!r}", added.name)
        return added

    def _section_click(self, p: Point) -> Optional[Section]:
        if self.section_draft is None:
            self.section_draft = p
            return None
        start = self.section_draft
        self.section_draft = None
        width = abs(p.x - start.x)
        height = abs(p.y - start.y)
        min_size = get_settings().min_section_size
        if width < min_size or height < min_size:
            logger.debug("section too small: {}x{}", width, height)
            return None
        name, color = self._next_section_style()
        return self._commit_section(
            name=name,
            x=min(p.x, start.x),
            y=min(p.y, start.y),
            width=width,
            height=height,
            color=color,
            rows=5,
            seats_per_row=10,
        )

    def _arc_click(self, p: Point) -> Optional[Section]:
        d = self.arc_draft
        if d.stage == ArcStage.AWAITING_CENTER:
            self.arc_draft = ArcDraft(stage=ArcStage.AWAITING_INNER_RADIUS, center=p)
        elif d.stage == ArcStage.AWAITING_INNER_RADIUS:
            self.arc_draft = ArcDraft(
                stage=ArcStage.AWAITING_OUTER_RADIUS, center=d.center, inner_radius=distance(d.center, p)
            )
        elif d.stage == ArcStage.AWAITING_OUTER_RADIUS:
            self.arc_draft = ArcDraft(
                stage=ArcStage.AWAITING_START_ANGLE,
                center=d.center,
                inner_radius=d.inner_radius,
                outer_radius=distance(d.center, p),
            )
        elif d.stage == ArcStage.AWAITING_START_ANGLE:
            self.arc_draft = ArcDraft(
                stage=ArcStage.AWAITING_END_ANGLE,
                center=d.center,
                inner_radius=d.inner_radius,
                outer_radius=d.outer_radius,
                start_angle=angle_of(d.center, p),
            )
        else:
            self.arc_draft = ArcDraft()
            return self._commit_arc(d, angle_of(d.center, p))
        return None

    def _commit_arc(self, d: ArcDraft, end_angle: float) -> Optional[Section]:
        if d.inner_radius >= d.outer_radius or end_angle == d.start_angle:
            logger.debug("degenerate arc rejected: r={}..{} a={}..{}", d.inner_radius, d.outer_radius, d.start_angle, end_angle)
            return None
        if end_angle < d.start_angle:
            # Sweep forward through 0 degrees.
            end_angle += 360.0
        name, color = self._next_section_style()
        return self._commit_section(
            name=name,
            color=color,
            is_arc=True,
            arc_data=ArcData(
                center_x=d.center.x,
                center_y=d.center.y,
                inner_radius=d.inner_radius,
                outer_radius=d.outer_radius,
                start_angle_deg=d.start_angle,
                end_angle_deg=end_angle,
                rows=5,
            ),
            rows=5,
            seats_per_row=10,
        )

    def _click_delete(self, p: Point) -> None:
        if not self._writable("delete"):
            return
        seat = find_seat_at(p, self.layout.seats, self.layout.settings.seat_size)
        if seat is not None:
            if seat.is_locked:
                logger.warning("seat {} is {}; delete denied", seat.label or seat.id, seat.status.value)
                return
            self.layout.delete_seat(seat.id)
            self._forget([seat.id])
            return
        section = find_section_at(p, self.layout.sections)
        if section is None:
            return
        owned = len(self.layout.seats_in_section(section.id))
        if not self.confirm(f"Delete section {section.name!r} and its {owned} seats?"):
            return
        _, removed = self.layout.delete_section(section.id)
        self._forget([s.id for s in removed], section.id)

    # -- drag (edit mode) ------------------------------------------------

    def press(self, point: tuple[float, float]) -> bool:
        if self.mode != EditorMode.EDIT or self.read_only:
            return False
        p = Point(float(point[0]), float(point[1]))
        seat = find_seat_at(p, self.layout.seats, self.layout.settings.seat_size)
        if seat is not None:
            if seat.is_locked:
                logger.warning("seat {} is {}; move denied", seat.label or seat.id, seat.status.value)
                return False
            self._drag = _Drag("seat", seat.id, p, Point(seat.x, seat.y))
            return True
        section = find_section_at(p, self.layout.sections)
        if section is not None:
            if section.is_arc and section.arc_data is not None:
                origin = Point(section.arc_data.center_x, section.arc_data.center_y)
            else:
                origin = Point(section.x, section.y)
            self._drag = _Drag("section", section.id, p, origin)
            return True
        return False

    def move(self, point: tuple[float, float]) -> None:
        drag = self._drag
        if drag is None:
            return
        target = self._snap((drag.origin.x + point[0] - drag.press.x, drag.origin.y + point[1] - drag.press.y))
        if drag.kind == "seat":
            if self.layout.get_seat(drag.item_id) is None:
                self._drag = None
                return
            self.layout.update_seat(drag.item_id, x=target.x, y=target.y)
            return

        section = self.layout.get_section(drag.item_id)
        if section is None:
            self._drag = None
            return
        if section.is_arc and section.arc_data is not None:
            arc = section.arc_data.model_copy(update={"center_x": target.x, "center_y": target.y})
            self.layout.update_section(section.id, arc_data=arc)
        else:
            self.layout.update_section(section.id, x=target.x, y=target.y)

    def release(self) -> None:
        self._drag = None

    # -- discrete actions ------------------------------------------------

    def rotate_selected_section(self, clockwise: bool = True) -> Optional[Section]:
        if not self._writable("rotate"):
            return None
        section = self.selected_section()
        if section is None or section.is_arc:
            return None
        step = get_settings().rotation_step_deg
        degrees = step if clockwise else -step

        owned = self.layout.seats_in_section(section.id)
        rotate_seats = False
        if owned and self.confirm(f"Do you want to rotate the {len(owned)} seats in this section too?"):
            if any(s.is_locked for s in owned):
                logger.warning("section {!r} has reserved or sold seats; seats keep their placement", section.name)
            else:
                rotate_seats = True
        return self.layout.rotate_section(section.id, degrees, rotate_seats=rotate_seats)

    def assign_ticket_type_to_selection(self, ticket_type_id: str) -> int:
        if not self._writable("assign ticket type"):
            return 0
        if self.layout.ticket_type(ticket_type_id) is None:
            logger.debug("unknown ticket type {}", ticket_type_id)
            return 0
        updated = 0
        for seat in self.selected_seats():
            if seat.is_locked:
                continue
            self.layout.update_seat(seat.id, ticket_type_id=ticket_type_id)
            updated += 1
        return updated

    def delete_selected_items(self) -> int:
        if not self._writable("delete selection"):
            return 0
        removed_ids: list[str] = []
        section_id = self.selection.section_id
        if section_id is not None:
            _, removed = self.layout.delete_section(section_id)
            removed_ids.extend(s.id for s in removed)

        doomed = [s.id for s in self.selected_seats() if not s.is_locked]
        removed_ids.extend(s.id for s in self.layout.delete_seats(doomed))
        self._forget(removed_ids, section_id)
        return len(removed_ids)

    def generate_seats_for_section(self, section_id: str, ticket_type_id: Optional[str] = None) -> list[Seat]:
        if not self._writable("generate seats"):
            return []
        if self.layout.get_section(section_id) is None:
            return []
        tt = self.layout.ticket_type(ticket_type_id or self.active_ticket_type_id) or self.layout.default_ticket_type()
        if tt is None:
            logger.debug("seat generation rejected: no ticket types")
            return []
        existing = self.layout.seats_in_section(section_id)
        if existing and not self.confirm("This will replace the existing seats. Continue?"):
            return []
        self._forget([s.id for s in existing])
        return regenerate_section_seats(self.layout, section_id, tt.id)

    # -- keyboard --------------------------------------------------------

    def handle_key(self, key: str, *, ctrl: bool = False) -> bool:
        """Apply a keyboard shortcut. Returns True when the key was handled."""
        if ctrl:
            if key == "a" and self.mode != EditorMode.DRAW:
                self.select_all_seats()
                return True
            if self.viewport is not None and key in ("=", "+", "-", "0"):
                if key == "-":
                    self.viewport.zoom_out()
                elif key == "0":
                    self.viewport.reset()
                else:
                    self.viewport.zoom_in()
                return True
            return False

        modes = {"v": EditorMode.VIEW, "d": EditorMode.DRAW, "e": EditorMode.EDIT}
        tools = {"1": DrawTool.SEAT, "2": DrawTool.SECTION, "3": DrawTool.ARC_SECTION}
        if key in modes:
            self.set_mode(modes[key])
            return True
        if key in tools and self.mode == EditorMode.DRAW:
            self.set_tool(tools[key])
            return True
        if key in ("Delete", "Backspace"):
            self.delete_selected_items()
            return True
        if key == "Escape":
            self.clear_selection()
            self._reset_gestures()
            if self.mode == EditorMode.DRAW:
                self.tool = None
            return True
        return False
