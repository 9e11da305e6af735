from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .geometry import Point


@dataclass
class Viewport:
    """Screen-space window onto layout space: screen = world * scale + offset."""

    width: float = 800.0
    height: float = 600.0
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    min_scale: float = 0.1
    max_scale: float = 5.0
    scale_step: float = 0.1

    def __post_init__(self) -> None:
        self.scale = self._clamp(self.scale)

    def _clamp(self, scale: float) -> float:
        return max(self.min_scale, min(self.max_scale, scale))

    def to_screen(self, point: tuple[float, float]) -> Point:
        return Point(point[0] * self.scale + self.offset_x, point[1] * self.scale + self.offset_y)

    def to_world(self, point: tuple[float, float]) -> Point:
        return Point((point[0] - self.offset_x) / self.scale, (point[1] - self.offset_y) / self.scale)

    def zoom(self, scale: float, pointer: Optional[tuple[float, float]] = None) -> None:
        new_scale = self._clamp(scale)
        if pointer is not None:
            # Keep the layout point under the pointer fixed on screen.
            ratio = new_scale / self.scale
            self.offset_x = pointer[0] - (pointer[0] - self.offset_x) * ratio
            self.offset_y = pointer[1] - (pointer[1] - self.offset_y) * ratio
        self.scale = new_scale

    def zoom_in(self) -> None:
        self.zoom(self.scale + self.scale_step)

    def zoom_out(self) -> None:
        self.zoom(self.scale - self.scale_step)

    def pan(self, dx: float, dy: float) -> None:
        self.offset_x += dx
        self.offset_y += dy

    def reset(self) -> None:
        self.scale = self._clamp(1.0)
        self.offset_x = 0.0
        self.offset_y = 0.0

    def zoom_to_fit(self, content_width: float, content_height: float, padding: float = 20.0) -> None:
        if content_width <= 0 or content_height <= 0:
            return
        sx = (self.width - padding * 2) / content_width
        sy = (self.height - padding * 2) / content_height
        self.scale = self._clamp(min(sx, sy))
        self.offset_x = 0.0
        self.offset_y = 0.0

    def world_bounds(self) -> tuple[float, float, float, float]:
        tl = self.to_world((0.0, 0.0))
        br = self.to_world((self.width, self.height))
        return (tl.x, tl.y, br.x, br.y)

    def state(self) -> tuple[float, float, float, float, float]:
        return (self.width, self.height, self.scale, self.offset_x, self.offset_y)
