from __future__ import annotations

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .geometry import normalize_degrees


def new_id() -> str:
    return str(uuid.uuid4())


class SeatStatus(str, Enum):
    available = "available"
    reserved = "reserved"
    sold = "sold"
    booked = "booked"
    unavailable = "unavailable"
    selected = "selected"


# Seats in these states belong to a buyer; the editor never moves or deletes them.
LOCKED_STATUSES = frozenset({SeatStatus.reserved, SeatStatus.sold})

# Seats in these states cannot be picked in the selection set.
UNSELECTABLE_STATUSES = frozenset({SeatStatus.booked, SeatStatus.unavailable})


class SeatKind(str, Enum):
    regular = "regular"
    accessible = "accessible"
    vip = "vip"
    premium = "premium"
    standing = "standing"


class VenueType(str, Enum):
    seated = "seated"
    standing = "standing"
    mixed = "mixed"


class StageShape(str, Enum):
    rectangle = "rectangle"
    semicircle = "semicircle"
    circle = "circle"


class _Model(BaseModel):
    # Documents use camelCase keys; Python code uses snake_case attributes.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TicketType(_Model):
    id: str = Field(default_factory=new_id)
    name: str
    price: float = Field(gt=0)
    color: str = "#3b82f6"
    capacity: Optional[int] = Field(default=None, ge=0)
    is_public: bool = True
    description: str = ""


class Seat(_Model):
    id: str = Field(default_factory=new_id)
    row: str = ""
    number: str = ""
    x: float = 0.0
    y: float = 0.0
    rotation_degrees: float = 0.0
    status: SeatStatus = SeatStatus.available
    seat_kind: SeatKind = SeatKind.regular
    ticket_type_id: Optional[str] = None
    section_id: Optional[str] = None

    @field_validator("rotation_degrees")
    @classmethod
    def _normalize_rotation(cls, v: float) -> float:
        return normalize_degrees(v)

    @field_validator("number", "row", mode="before")
    @classmethod
    def _label_as_text(cls, v: object) -> object:
        # Older documents store seat numbers as integers.
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def label(self) -> str:
        return f"{self.row}{self.number}"

    @property
    def is_locked(self) -> bool:
        return self.status in LOCKED_STATUSES

    @property
    def is_selectable(self) -> bool:
        return self.status not in UNSELECTABLE_STATUSES


class ArcData(_Model):
    center_x: float
    center_y: float
    inner_radius: float = Field(ge=0)
    outer_radius: float = Field(gt=0)
    start_angle_deg: float
    end_angle_deg: float
    rows: int = Field(default=5, ge=1)

    @model_validator(mode="after")
    def _check_ring(self) -> "ArcData":
        if self.inner_radius >= self.outer_radius:
            raise ValueError("innerRadius must be smaller than outerRadius")
        if self.start_angle_deg == self.end_angle_deg:
            raise ValueError("startAngleDeg and endAngleDeg must differ")
        return self


class Section(_Model):
    id: str = Field(default_factory=new_id)
    name: str = "Section"
    x: float = 100.0
    y: float = 100.0
    width: float = Field(default=200.0, ge=0)
    height: float = Field(default=100.0, ge=0)
    color: str = "hsl(210, 70%, 75%)"
    rotation_degrees: float = 0.0
    rows: int = Field(default=5, ge=1)
    seats_per_row: int = Field(default=10, ge=1)
    row_spacing: float = Field(default=35.0, gt=0)
    seat_spacing: float = Field(default=30.0, gt=0)
    row_start_label: str = "A"
    seat_start_number: int = 1
    is_arc: bool = False
    arc_data: Optional[ArcData] = None

    @field_validator("rotation_degrees")
    @classmethod
    def _normalize_rotation(cls, v: float) -> float:
        return normalize_degrees(v)

    @model_validator(mode="after")
    def _sync_arc(self) -> "Section":
        if self.is_arc:
            if self.arc_data is None:
                raise ValueError("arc sections require arcData")
            a = self.arc_data
            # Bounding box is the square circumscribing the outer radius.
            self.x = a.center_x - a.outer_radius
            self.y = a.center_y - a.outer_radius
            self.width = a.outer_radius * 2
            self.height = a.outer_radius * 2
            if "rows" not in self.model_fields_set:
                self.rows = a.rows
            elif a.rows != self.rows:
                self.arc_data = a.model_copy(update={"rows": self.rows})
        elif self.arc_data is not None:
            self.arc_data = None
        return self

    @property
    def center(self) -> tuple[float, float]:
        if self.is_arc and self.arc_data is not None:
            return (self.arc_data.center_x, self.arc_data.center_y)
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)


class StageConfig(_Model):
    name: str = "SCREEN"
    shape: StageShape = StageShape.rectangle
    x: float = 250.0
    y: float = 520.0
    width: float = Field(default=300.0, ge=0)
    height: float = Field(default=60.0, ge=0)
    rotation_degrees: float = 0.0

    @field_validator("rotation_degrees")
    @classmethod
    def _normalize_rotation(cls, v: float) -> float:
        return normalize_degrees(v)


class LayoutSettings(_Model):
    name: str = "New Venue Layout"
    venue_type: VenueType = VenueType.seated
    seat_size: float = Field(default=25.0, gt=0)
    grid_size: float = Field(default=20.0, ge=0)
    snap_to_grid: bool = True
    venue_width: float = Field(default=800.0, gt=0)
    venue_height: float = Field(default=600.0, gt=0)
    show_grid: bool = True
    show_row_labels: bool = True
    show_seat_numbers: bool = True
    show_section_labels: bool = True


class LayoutDocument(_Model):
    """The JSON value exchanged with the layout store."""

    layout: LayoutSettings = Field(default_factory=LayoutSettings)
    stage_config: StageConfig = Field(default_factory=StageConfig)
    sections: list[Section] = Field(default_factory=list)
    seats: list[Seat] = Field(default_factory=list)
