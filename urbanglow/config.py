# urbanglow/config.py

import json
import os
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, Optional, Tuple

from urbanglow.constants import (
    ASSETS, LIGHTS_CUTOVER_YEAR, LIGHTS_BAND, BUILDINGS_BAND, BUILDINGS_TIME_PROPERTY,
    ANCHOR_TIMEZONE, YEARS_ALL, DETECTION_THRESHOLD, INFLATION_RADIUS_M,
    LIGHTS_VIS, BUILDINGS_VIS, EXPORT_CONFIG,
)


@dataclass(frozen=True)
class VisParams:
    """Value range and color ramp used to turn one band into RGB."""
    min: float
    max: float
    palette: Tuple[str, ...]

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "VisParams":
        return cls(min=float(d["min"]), max=float(d["max"]), palette=tuple(d["palette"]))

    def to_ee(self) -> Dict[str, Any]:
        return {"min": self.min, "max": self.max, "palette": list(self.palette)}


@dataclass(frozen=True)
class PipelineConfig:
    """
    Explicit configuration for one pipeline run.
    Every component receives the values it needs from here; nothing reads global state.
    """
    years: Tuple[int, ...] = tuple(YEARS_ALL)
    threshold: float = DETECTION_THRESHOLD
    inflation_radius_m: float = INFLATION_RADIUS_M
    lights_vis: VisParams = field(default_factory=lambda: VisParams.from_dict(LIGHTS_VIS))
    buildings_vis: VisParams = field(default_factory=lambda: VisParams.from_dict(BUILDINGS_VIS))

    fps: float = EXPORT_CONFIG["fps"]
    seconds_per_year: float = EXPORT_CONFIG["seconds_per_year"]
    freeze_seconds: float = EXPORT_CONFIG["freeze_seconds"]
    dimensions: int = EXPORT_CONFIG["dimensions"]
    max_pixels: float = EXPORT_CONFIG["max_pixels"]
    export_name: str = EXPORT_CONFIG["name"]
    drive_folder: Optional[str] = None

    lights_asset_a: str = ASSETS["lights_v21"]
    lights_asset_b: str = ASSETS["lights_v22"]
    buildings_asset: str = ASSETS["buildings"]
    lights_band: str = LIGHTS_BAND
    buildings_band: str = BUILDINGS_BAND
    buildings_time_property: str = BUILDINGS_TIME_PROPERTY
    timezone: str = ANCHOR_TIMEZONE
    lights_cutover_year: int = LIGHTS_CUTOVER_YEAR

    max_workers: int = 1

    def __post_init__(self):
        # Normalize list inputs so the dataclass stays hashable and immutable
        object.__setattr__(self, "years", tuple(int(y) for y in self.years))
        self.validate()

    def validate(self) -> None:
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {self.threshold}")
        if self.inflation_radius_m < 0:
            raise ValueError(f"inflation_radius_m must be >= 0, got {self.inflation_radius_m}")
        if self.fps <= 0:
            raise ValueError(f"fps must be > 0, got {self.fps}")
        if self.seconds_per_year < 0 or self.freeze_seconds < 0:
            raise ValueError("Durations must be >= 0")
        if self.dimensions <= 0:
            raise ValueError(f"dimensions must be > 0, got {self.dimensions}")
        if self.max_pixels <= 0:
            raise ValueError(f"max_pixels must be > 0, got {self.max_pixels}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if any(b <= a for a, b in zip(self.years, self.years[1:])):
            raise ValueError(f"years must be strictly ascending, got {list(self.years)}")
        for name, vis in (("lights_vis", self.lights_vis), ("buildings_vis", self.buildings_vis)):
            if vis.min >= vis.max:
                raise ValueError(f"{name}: min must be below max ({vis.min} >= {vis.max})")
            if not vis.palette:
                raise ValueError(f"{name}: palette must not be empty")

    @classmethod
    def from_dict(cls, overrides: Dict[str, Any]) -> "PipelineConfig":
        """
        Builds a config from a plain mapping (e.g. parsed JSON).
        Unknown keys are rejected so typos don't silently fall back to defaults.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        kwargs = dict(overrides)
        for key in ("lights_vis", "buildings_vis"):
            if key in kwargs and isinstance(kwargs[key], dict):
                kwargs[key] = VisParams.from_dict(kwargs[key])
        return cls(**kwargs)

    @classmethod
    def from_json(cls, path: str) -> "PipelineConfig":
        if not os.path.exists(path):
            raise ValueError(f"Configuration file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["years"] = list(self.years)
        for key in ("lights_vis", "buildings_vis"):
            d[key]["palette"] = list(d[key]["palette"])
        return d
