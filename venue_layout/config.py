from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="VENUE_LAYOUT_", env_ignore_empty=True, extra="ignore")

    # Switch from the vector renderer to the scene graph above this many items.
    renderer_threshold: int = 2000
    visibility_interval_s: float = 0.15

    # A click hits a seat within seat_size / hit_radius_divisor of its centre.
    hit_radius_divisor: float = 1.5

    min_section_size: float = 20.0
    rotation_step_deg: float = 15.0
    arc_outline_step_deg: float = 5.0


@lru_cache
def get_settings() -> EngineSettings:
    return EngineSettings()
