# urbanglow/resolver.py

from dataclasses import dataclass
from typing import Any

from urbanglow.backend import RasterBackend
from urbanglow.config import PipelineConfig
from urbanglow.errors import ArchiveOverlapError


@dataclass(frozen=True)
class ResolvedDatasets:
    """Query-ready handles for one pipeline run."""
    lights: Any
    buildings: Any


class DatasetResolver:
    """
    Opens the version-split lights archives and the buildings archive.
    Establishes scope only: no temporal filtering happens here.
    """

    def __init__(self, backend: RasterBackend, config: PipelineConfig, validate_overlap: bool = True):
        self.backend = backend
        self.config = config
        self.validate_overlap = validate_overlap

    def resolve(self) -> ResolvedDatasets:
        cfg = self.config
        # Any missing archive or band raises DataSourceError before a handle is returned
        lights_a = self.backend.collection(cfg.lights_asset_a, cfg.lights_band)
        lights_b = self.backend.collection(cfg.lights_asset_b, cfg.lights_band)
        buildings = self.backend.collection(cfg.buildings_asset, cfg.buildings_band)

        if self.validate_overlap:
            self._check_cutover(lights_a, lights_b)

        lights = self.backend.merge(lights_a, lights_b)
        return ResolvedDatasets(lights=lights, buildings=buildings)

    def _check_cutover(self, lights_a, lights_b) -> None:
        cutover = self.config.lights_cutover_year
        span_a = self.backend.year_span(lights_a)
        span_b = self.backend.year_span(lights_b)

        if span_a is not None and span_a[1] >= cutover:
            raise ArchiveOverlapError(
                f"'{self.config.lights_asset_a}' covers {span_a[0]}-{span_a[1]}, "
                f"which reaches the cutover year {cutover}"
            )
        if span_b is not None and span_b[0] < cutover:
            raise ArchiveOverlapError(
                f"'{self.config.lights_asset_b}' covers {span_b[0]}-{span_b[1]}, "
                f"which starts before the cutover year {cutover}"
            )
