# urbanglow/ee_backend.py

import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from urbanglow.backend import RasterBackend
from urbanglow.config import VisParams
from urbanglow.constants import RATE_LIMIT_MARKERS
from urbanglow.errors import DataSourceError, EngineError


def _is_rate_limited(exc: Exception) -> bool:
    msg = str(exc).lower()
    return any(k in msg for k in RATE_LIMIT_MARKERS)


class EarthEngineBackend(RasterBackend):
    """
    Thin wrapper around Earth Engine collection & image operations.
    Kept separate from the pipeline so that `ee` is only imported when this backend is used.
    """

    def __init__(self, project_id: Optional[str] = None, max_retries: int = 5, backoff_factor: float = 0.6):
        self.project_id = project_id
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self._ee_initialized = False

    def initialize_ee(self) -> None:
        import ee
        # Stored credentials, then the browser flow, then the notebook flow (Colab)
        attempts = (None, {}, {'auth_mode': 'notebook'})
        last_exc = None
        for auth_kwargs in attempts:
            try:
                if auth_kwargs is not None:
                    ee.Authenticate(**auth_kwargs)
                ee.Initialize(project=self.project_id)
                self._ee_initialized = True
                return
            except Exception as e:
                last_exc = e
        raise EngineError(
            "Earth Engine authentication failed. Check that the 'Earth Engine API' is enabled "
            f"for project '{self.project_id}' and that your account can use it: {last_exc}"
        ) from last_exc

    def _ensure_ee(self) -> None:
        if not self._ee_initialized:
            self.initialize_ee()

    def _ee_getinfo(self, ee_object):
        """
        Robust wrapper around `ee_object.getInfo()` with exponential backoff for transient errors (429 rate limits).
        Returns the Python representation of the EE object. Server-side failures surface as EngineError.
        """
        import ee
        last_exc = None
        for attempt in range(self.max_retries):
            try:
                return ee_object.getInfo()
            except Exception as e:
                last_exc = e
                if _is_rate_limited(e):
                    time.sleep(self.backoff_factor * (2 ** attempt))
                    continue
                if isinstance(e, ee.EEException):
                    raise EngineError(f"Earth Engine request failed: {e}") from e
                raise
        raise EngineError(f"EE getInfo failed after {self.max_retries} attempts: {last_exc}")

    def tile_url(self, image, vis_params: Optional[Dict[str, Any]] = None) -> str:
        """Map tile URL template for an (already visualized) image, retried on transient 429s."""
        import ee
        self._ensure_ee()
        last_exc = None
        for attempt in range(self.max_retries):
            try:
                map_id = ee.Image(image).getMapId(vis_params or {})
                return map_id["tile_fetcher"].url_format
            except Exception as e:
                last_exc = e
                if _is_rate_limited(e) and attempt < self.max_retries - 1:
                    time.sleep(self.backoff_factor * (2 ** attempt))
                    continue
                if isinstance(e, ee.EEException):
                    raise EngineError(f"Earth Engine map request failed: {e}") from e
                raise
        raise EngineError(f"EE getMapId failed after {self.max_retries} attempts: {last_exc}")

    def geometry(self, region: Dict[str, Any]):
        import ee
        self._ensure_ee()
        return ee.Geometry(region)

    # --- Collections ---

    def collection(self, asset_id: str, band: str):
        import ee
        self._ensure_ee()
        try:
            ee.data.getAsset(asset_id)
        except ee.EEException as e:
            raise DataSourceError(f"Archive '{asset_id}' not found: {e}") from e

        col = ee.ImageCollection(asset_id)
        if self.count(col) > 0:
            bands = self._ee_getinfo(col.first().bandNames()) or []
            if band not in bands:
                raise DataSourceError(f"Band '{band}' not found in archive '{asset_id}'. Available: {bands}")
        return col.select(band)

    def merge(self, first, second):
        return first.merge(second)

    def filter_calendar_years(self, col, start_year: int, end_year: int):
        import ee
        return col.filter(ee.Filter.calendarRange(start_year, end_year, 'year'))

    def filter_equals(self, col, prop: str, value: Any):
        import ee
        return col.filter(ee.Filter.eq(prop, value))

    def count(self, col) -> int:
        return int(self._ee_getinfo(col.size()) or 0)

    def year_span(self, col) -> Optional[Tuple[int, int]]:
        import ee
        if self.count(col) == 0:
            return None
        span = self._ee_getinfo(ee.Dictionary({
            'min': col.aggregate_min('system:time_start'),
            'max': col.aggregate_max('system:time_start'),
        }))
        to_year = lambda ms: datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).year
        return to_year(span['min']), to_year(span['max'])

    def first(self, col):
        import ee
        return ee.Image(col.first())

    def mosaic(self, col):
        return col.mosaic()

    def empty(self, band: str):
        import ee
        return ee.Image.constant(0).rename(band).selfMask()

    # --- Rasters ---

    def select(self, raster, band: str):
        return raster.select(band)

    def threshold_gt(self, raster, value: float):
        return raster.gt(value)

    def dilate(self, raster, radius_m: float):
        if radius_m == 0:
            return raster
        return raster.focal_max(radius=radius_m, kernelType='circle', units='meters')

    def self_mask(self, raster):
        return raster.selfMask()

    def visualize(self, raster, vis: VisParams):
        return raster.visualize(**vis.to_ee())

    def blend(self, bottom, top):
        return bottom.blend(top)

    def set_property(self, raster, key: str, value: Any):
        return raster.set(key, value)
