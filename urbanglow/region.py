# urbanglow/region.py

import glob
import json
import os
import shutil
import tempfile
import zipfile
from typing import Any, Dict, Optional, Sequence, Union

import geopandas as gpd
from shapely.geometry import box, mapping, shape
from shapely.geometry.base import BaseGeometry


def _as_geojson(geom: BaseGeometry) -> Dict[str, Any]:
    # Plain lists all the way down, as the Earth Engine client expects
    return json.loads(json.dumps(mapping(geom)))


class RegionLoader:
    """
    Normalizes the export region into a GeoJSON polygon mapping in WGS84.
    Accepts a (west, south, east, north) bbox, a GeoJSON geometry/feature,
    a shapely geometry, or a boundary file (GPKG, SHP, GeoJSON, zipped SHP).
    """

    @staticmethod
    def from_bbox(bbox: Sequence[float]) -> Dict[str, Any]:
        if len(bbox) != 4:
            raise ValueError(f"bbox must be (west, south, east, north), got {bbox}")
        w, s, e, n = (float(v) for v in bbox)
        if w >= e or s >= n:
            raise ValueError(f"Degenerate bbox: {bbox}")
        if not (-180 <= w <= 180 and -180 <= e <= 180 and -90 <= s <= 90 and -90 <= n <= 90):
            raise ValueError(f"bbox is outside WGS84 bounds: {bbox}")
        return _as_geojson(box(w, s, e, n))

    @staticmethod
    def from_geometry(geom: Union[BaseGeometry, Dict[str, Any]]) -> Dict[str, Any]:
        if isinstance(geom, dict):
            if geom.get("type") == "Feature":
                geom = geom.get("geometry") or {}
            try:
                geom = shape(geom)
            except Exception as e:
                raise ValueError(f"Invalid GeoJSON geometry: {e}")
        if geom.is_empty:
            raise ValueError("Region geometry is empty")
        if geom.geom_type not in ("Polygon", "MultiPolygon"):
            raise ValueError(f"Region must be a Polygon or MultiPolygon, got {geom.geom_type}")
        return _as_geojson(geom)

    @staticmethod
    def from_file(path: str, name_col: Optional[str] = None, name: Optional[str] = None,
                  layer: Optional[str] = None) -> Dict[str, Any]:
        """
        Reads a boundary file, optionally keeps the features whose `name_col` equals `name`,
        and dissolves them into one region.
        """
        temp_dir = None
        if path.endswith('.zip'):
            temp_dir = tempfile.mkdtemp()
            with zipfile.ZipFile(path, 'r') as zip_ref:
                zip_ref.extractall(temp_dir)

            shps = glob.glob(os.path.join(temp_dir, "**/*.shp"), recursive=True)
            if not shps:
                shutil.rmtree(temp_dir)
                raise ValueError("No .shp found in zip")
            file_to_read = shps[0]
        else:
            file_to_read = path

        try:
            if layer:
                gdf = gpd.read_file(file_to_read, layer=layer)
            else:
                gdf = gpd.read_file(file_to_read)
        except Exception as e:
            raise ValueError(f"Failed to read file: {e}")
        finally:
            if temp_dir:
                shutil.rmtree(temp_dir)

        # Ensure WGS84
        if gdf.crs is not None and gdf.crs != "EPSG:4326":
            gdf = gdf.to_crs("EPSG:4326")

        if name_col is not None:
            col_map = {c.upper(): c for c in gdf.columns}
            if name_col.upper() not in col_map:
                raise ValueError(f"Name column '{name_col}' not found. Available: {list(gdf.columns)}")
            real_col = col_map[name_col.upper()]
            if name is not None:
                gdf = gdf[gdf[real_col].astype(str).str.strip() == str(name).strip()]

        if gdf.empty:
            raise ValueError(f"No features selected from {path}")

        return RegionLoader.from_geometry(gdf.geometry.union_all())

    @classmethod
    def load(cls, region: Any) -> Dict[str, Any]:
        """Dispatches on the input type."""
        if isinstance(region, str):
            return cls.from_file(region)
        if isinstance(region, (dict, BaseGeometry)):
            return cls.from_geometry(region)
        if isinstance(region, (list, tuple)):
            return cls.from_bbox(region)
        raise ValueError(f"Unsupported region type: {type(region).__name__}")
