# urbanglow/memory_backend.py
"""
In-memory raster backend built on numpy.
Serves local previews and tests with the same semantics the hosted service offers:
first-valid-pixel mosaics, disk dilation in meters, self-masking, palette stretch
and alpha blending.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
from scipy import ndimage
from PIL import Image, ImageColor

from urbanglow.backend import RasterBackend
from urbanglow.config import VisParams
from urbanglow.errors import DataSourceError

VIS_BANDS = ("vis-red", "vis-green", "vis-blue")
TIME_START = "system:time_start"


@dataclass(frozen=True, eq=False)
class MemoryRaster:
    """
    A raster on a fixed grid. Every band shares one alpha plane (0 = masked, 1 = opaque).
    """
    bands: Dict[str, np.ndarray]
    alpha: np.ndarray
    pixel_size_m: float = 30.0
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.alpha.shape

    @property
    def band_names(self) -> List[str]:
        return list(self.bands)

    def values(self) -> np.ndarray:
        """Values of the first band."""
        return next(iter(self.bands.values()))

    def valid(self) -> np.ndarray:
        return self.alpha > 0

    def to_pil(self) -> Image.Image:
        """RGBA image of a visualized raster."""
        missing = [b for b in VIS_BANDS if b not in self.bands]
        if missing:
            raise ValueError(f"Raster is not visualized (missing {missing}); call visualize() first")
        rgb = np.stack([self.bands[b] for b in VIS_BANDS], axis=-1)
        a = np.round(self.alpha * 255.0)[..., None]
        rgba = np.concatenate([rgb, a], axis=-1).clip(0, 255).astype(np.uint8)
        return Image.fromarray(rgba)


@dataclass(frozen=True)
class MemoryCollection:
    band: str
    tiles: Tuple[MemoryRaster, ...] = ()


def make_tile(band: str, values, *, year: Optional[int] = None, mask=None,
              pixel_size_m: float = 30.0, **properties) -> MemoryRaster:
    """
    Builds a single-band tile. `year` sets `system:time_start` to January 1st (UTC)
    of that year, matching how annual composites are stamped.
    """
    arr = np.asarray(values, dtype=float)
    alpha = np.ones(arr.shape) if mask is None else np.asarray(mask, dtype=float)
    props = dict(properties)
    if year is not None:
        start = datetime(int(year), 1, 1, tzinfo=timezone.utc)
        props[TIME_START] = int(start.timestamp() * 1000)
    return MemoryRaster(bands={band: arr}, alpha=alpha, pixel_size_m=pixel_size_m, properties=props)


def _tile_year(tile: MemoryRaster) -> Optional[int]:
    ms = tile.properties.get(TIME_START)
    if ms is None:
        return None
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).year


def _disk(radius_px: float) -> np.ndarray:
    """Boolean footprint of every pixel within `radius_px` of the center."""
    r = int(np.floor(radius_px))
    y, x = np.ogrid[-r:r + 1, -r:r + 1]
    return x * x + y * y <= radius_px * radius_px


def _palette_rgb(palette: Iterable[str]) -> np.ndarray:
    return np.array([ImageColor.getrgb(c)[:3] for c in palette], dtype=float)


class MemoryBackend(RasterBackend):
    """
    Serves named archives held in memory.

    Args:
        archives: Mapping of asset id -> list of tiles, in ingestion order.
        shape: Grid shape for empty rasters. Inferred from the first tile if omitted.
        pixel_size_m: Ground size of one pixel. Inferred from the first tile if omitted.
    """

    def __init__(self, archives: Dict[str, List[MemoryRaster]],
                 shape: Optional[Tuple[int, int]] = None,
                 pixel_size_m: Optional[float] = None):
        self.archives = {k: tuple(v) for k, v in archives.items()}
        sample = next((t for tiles in self.archives.values() for t in tiles), None)
        if shape is None:
            if sample is None:
                raise ValueError("Cannot infer grid shape from empty archives; pass shape=")
            shape = sample.shape
        if pixel_size_m is None:
            pixel_size_m = sample.pixel_size_m if sample is not None else 30.0
        self.shape = tuple(shape)
        self.pixel_size_m = float(pixel_size_m)

    # --- Collections ---

    def collection(self, asset_id: str, band: str) -> MemoryCollection:
        if asset_id not in self.archives:
            raise DataSourceError(f"Archive '{asset_id}' not found")
        tiles = self.archives[asset_id]
        for tile in tiles:
            if band not in tile.bands:
                raise DataSourceError(
                    f"Band '{band}' not found in archive '{asset_id}'. Available: {tile.band_names}"
                )
        return MemoryCollection(band=band, tiles=tuple(self._only(t, band) for t in tiles))

    def merge(self, first: MemoryCollection, second: MemoryCollection) -> MemoryCollection:
        return MemoryCollection(band=first.band, tiles=first.tiles + second.tiles)

    def filter_calendar_years(self, col: MemoryCollection, start_year: int, end_year: int) -> MemoryCollection:
        kept = tuple(t for t in col.tiles
                     if _tile_year(t) is not None and start_year <= _tile_year(t) <= end_year)
        return replace(col, tiles=kept)

    def filter_equals(self, col: MemoryCollection, prop: str, value: Any) -> MemoryCollection:
        return replace(col, tiles=tuple(t for t in col.tiles if t.properties.get(prop) == value))

    def count(self, col: MemoryCollection) -> int:
        return len(col.tiles)

    def year_span(self, col: MemoryCollection) -> Optional[Tuple[int, int]]:
        years = [y for y in (_tile_year(t) for t in col.tiles) if y is not None]
        if not years:
            return None
        return min(years), max(years)

    def first(self, col: MemoryCollection) -> MemoryRaster:
        if not col.tiles:
            raise ValueError("Cannot take the first tile of an empty collection")
        return col.tiles[0]

    def mosaic(self, col: MemoryCollection) -> MemoryRaster:
        if not col.tiles:
            return self.empty(col.band)
        values = np.zeros(self.shape)
        alpha = np.zeros(self.shape)
        for tile in col.tiles:
            take = (alpha == 0) & tile.valid()
            values = np.where(take, tile.bands[col.band], values)
            alpha = np.where(take, tile.alpha, alpha)
        return MemoryRaster(bands={col.band: values}, alpha=alpha, pixel_size_m=self.pixel_size_m)

    def empty(self, band: str) -> MemoryRaster:
        return MemoryRaster(bands={band: np.zeros(self.shape)}, alpha=np.zeros(self.shape),
                            pixel_size_m=self.pixel_size_m)

    # --- Rasters ---

    @staticmethod
    def _only(raster: MemoryRaster, band: str) -> MemoryRaster:
        return replace(raster, bands={band: raster.bands[band]})

    def select(self, raster: MemoryRaster, band: str) -> MemoryRaster:
        if band not in raster.bands:
            raise DataSourceError(f"Band '{band}' not found. Available: {raster.band_names}")
        return self._only(raster, band)

    def threshold_gt(self, raster: MemoryRaster, value: float) -> MemoryRaster:
        name = raster.band_names[0]
        binary = (raster.values() > value).astype(float)
        return replace(raster, bands={name: binary})

    def dilate(self, raster: MemoryRaster, radius_m: float) -> MemoryRaster:
        if radius_m < 0:
            raise ValueError(f"radius_m must be >= 0, got {radius_m}")
        name = raster.band_names[0]
        valid = raster.valid()
        disk = _disk(radius_m / raster.pixel_size_m)
        values = np.where(valid, raster.values(), -np.inf)

        # Masked pixels and the area outside the grid never win the maximum
        out = ndimage.grey_dilation(values, footprint=disk, mode="constant", cval=-np.inf)
        out_valid = ndimage.binary_dilation(valid, structure=disk)

        out = np.where(out_valid, out, 0.0)
        return replace(raster, bands={name: out}, alpha=out_valid.astype(float))

    def self_mask(self, raster: MemoryRaster) -> MemoryRaster:
        alpha = np.where(raster.values() != 0, raster.alpha, 0.0)
        return replace(raster, alpha=alpha)

    def visualize(self, raster: MemoryRaster, vis: VisParams) -> MemoryRaster:
        colors = _palette_rgb(vis.palette)
        # Masked pixels may hold NaN; they stay hidden by alpha either way
        values = np.where(raster.valid(), np.nan_to_num(raster.values(), nan=vis.min), vis.min)
        t = np.clip((values - vis.min) / (vis.max - vis.min), 0.0, 1.0)

        if len(colors) == 1:
            rgb = np.broadcast_to(colors[0], raster.shape + (3,))
        else:
            pos = t * (len(colors) - 1)
            lo = np.minimum(np.floor(pos).astype(int), len(colors) - 2)
            frac = (pos - lo)[..., None]
            rgb = colors[lo] * (1.0 - frac) + colors[lo + 1] * frac

        rgb = np.round(rgb)
        bands = {name: rgb[..., i].copy() for i, name in enumerate(VIS_BANDS)}
        return replace(raster, bands=bands)

    def blend(self, bottom: MemoryRaster, top: MemoryRaster) -> MemoryRaster:
        if bottom.shape != top.shape:
            raise ValueError(f"Cannot blend rasters of shape {bottom.shape} and {top.shape}")
        a_top, a_bot = top.alpha, bottom.alpha
        a_out = a_top + a_bot * (1.0 - a_top)
        safe = np.where(a_out > 0, a_out, 1.0)

        bands = {}
        for name in VIS_BANDS:
            c_top, c_bot = top.bands[name], bottom.bands[name]
            mixed = (c_top * a_top + c_bot * a_bot * (1.0 - a_top)) / safe
            # Transparent top pixels pass the bottom through unchanged
            bands[name] = np.where(a_top == 0, c_bot, np.where(a_top == 1, c_top, mixed))
        return MemoryRaster(bands=bands, alpha=a_out, pixel_size_m=bottom.pixel_size_m,
                            properties=dict(bottom.properties))

    def set_property(self, raster: MemoryRaster, key: str, value: Any) -> MemoryRaster:
        props = dict(raster.properties)
        props[key] = value
        return replace(raster, properties=props)
