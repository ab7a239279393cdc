# urbanglow/backend.py
"""
Raster query service interface.

The pipeline never builds or serializes expression graphs itself; it issues one
call per operation against a backend and passes the returned handles along.
Handles are opaque to the caller.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple

from urbanglow.config import VisParams


class RasterBackend(ABC):

    # --- Collections ---

    @abstractmethod
    def collection(self, asset_id: str, band: str) -> Any:
        """
        Opens a raw archive restricted to one measurement band.
        Raises DataSourceError if the archive or the band does not exist.
        """

    @abstractmethod
    def merge(self, first: Any, second: Any) -> Any:
        """Concatenates two collections, keeping `first`'s tiles ahead of `second`'s."""

    @abstractmethod
    def filter_calendar_years(self, col: Any, start_year: int, end_year: int) -> Any:
        """Keeps tiles whose acquisition year lies in [start_year, end_year]."""

    @abstractmethod
    def filter_equals(self, col: Any, prop: str, value: Any) -> Any:
        """Keeps tiles whose property `prop` equals `value`."""

    @abstractmethod
    def count(self, col: Any) -> int:
        pass

    @abstractmethod
    def year_span(self, col: Any) -> Optional[Tuple[int, int]]:
        """(first_year, last_year) covered by the collection, or None if it is empty."""

    @abstractmethod
    def first(self, col: Any) -> Any:
        """First tile in collection order."""

    @abstractmethod
    def mosaic(self, col: Any) -> Any:
        pass

    @abstractmethod
    def empty(self, band: str) -> Any:
        """A raster with a single, fully masked band."""

    # --- Rasters ---

    @abstractmethod
    def select(self, raster: Any, band: str) -> Any:
        pass

    @abstractmethod
    def threshold_gt(self, raster: Any, value: float) -> Any:
        """Binary raster: 1 where the value is strictly greater than `value`, else 0."""

    @abstractmethod
    def dilate(self, raster: Any, radius_m: float) -> Any:
        """Focal maximum over a disk-shaped kernel of `radius_m` meters."""

    @abstractmethod
    def self_mask(self, raster: Any) -> Any:
        """Masks out pixels whose own value is zero."""

    @abstractmethod
    def visualize(self, raster: Any, vis: VisParams) -> Any:
        """Maps a single band through a value range and palette into 3-channel RGB."""

    @abstractmethod
    def blend(self, bottom: Any, top: Any) -> Any:
        """Alpha-composites `top` over `bottom`."""

    @abstractmethod
    def set_property(self, raster: Any, key: str, value: Any) -> Any:
        pass
