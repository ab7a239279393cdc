# urbanglow/compositor.py

from dataclasses import dataclass
from typing import Any

from urbanglow.backend import RasterBackend
from urbanglow.config import PipelineConfig
from urbanglow.errors import MissingDataError
from urbanglow.resolver import ResolvedDatasets
from urbanglow.temporal import TemporalKey


@dataclass(frozen=True, eq=False)
class Frame:
    """A visualization-ready RGB raster tagged with the year it represents."""
    year: int
    image: Any
    has_buildings: bool = True


class FrameCompositor:
    """
    Builds one blended frame per year: nighttime lights underneath,
    thresholded and inflated building detections on top.
    """

    def __init__(self, backend: RasterBackend, config: PipelineConfig):
        self.backend = backend
        self.config = config

    def building_mask(self, datasets: ResolvedDatasets, key: TemporalKey):
        """
        Returns (mask, has_buildings). The mask is 1 where presence exceeds the
        threshold after inflation; an empty match yields a fully masked raster.
        """
        b, cfg = self.backend, self.config
        matched = b.filter_equals(datasets.buildings, cfg.buildings_time_property, key.epoch_seconds)

        has_buildings = b.count(matched) > 0
        if has_buildings:
            presence = b.select(b.mosaic(matched), cfg.buildings_band)
        else:
            print(f"[WARN] No building tiles for {key.year} "
                  f"({cfg.buildings_time_property}={key.epoch_seconds}); rendering lights only.")
            presence = b.empty(cfg.buildings_band)

        detected = b.threshold_gt(presence, cfg.threshold)
        return b.dilate(detected, cfg.inflation_radius_m), has_buildings

    def lights_image(self, datasets: ResolvedDatasets, key: TemporalKey):
        """Annual lights composite; the first tile in archive order wins when several match."""
        b = self.backend
        matched = b.filter_calendar_years(datasets.lights, key.start_year, key.end_year)
        if b.count(matched) == 0:
            raise MissingDataError(key.year)
        return b.first(matched)

    def compose(self, datasets: ResolvedDatasets, key: TemporalKey) -> Frame:
        b, cfg = self.backend, self.config

        mask, has_buildings = self.building_mask(datasets, key)
        light = self.lights_image(datasets, key)

        light_rgb = b.visualize(light, cfg.lights_vis)
        build_rgb = b.visualize(b.self_mask(mask), cfg.buildings_vis)

        image = b.set_property(b.blend(light_rgb, build_rgb), "year", key.year)
        return Frame(year=key.year, image=image, has_buildings=has_buildings)
