# urbanglow/exporter.py
"""
UrbanGlow Export Module
Packages a frame sequence into a single video export job and hands it to a render service.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from unidecode import unidecode

from urbanglow.compositor import Frame
from urbanglow.constants import EXPORT_NAME_ALLOWED, EXPORT_NAME_MAX_LEN
from urbanglow.errors import ExportRejectedError


def sanitize_name(name: str) -> str:
    """Transliterates and strips a task name down to the characters Earth Engine accepts."""
    ascii_name = unidecode(name or "").strip().replace(" ", "_")
    cleaned = "".join(ch for ch in ascii_name if ch in EXPORT_NAME_ALLOWED)
    if not cleaned:
        raise ValueError(f"Export name {name!r} has no usable characters")
    return cleaned[:EXPORT_NAME_MAX_LEN]


def _freeze(value: Any) -> Any:
    """Read-only copy of a GeoJSON value: mappings become proxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True, eq=False)
class ExportTask:
    """Immutable description of one video rendering job."""
    frames: Tuple[Frame, ...]
    region: Mapping[str, Any]
    dimensions: int
    fps: float
    max_pixels: float
    name: str
    folder: Optional[str] = None

    @property
    def years(self) -> Tuple[int, ...]:
        return tuple(f.year for f in self.frames)

    def geojson(self) -> Dict[str, Any]:
        """Plain, mutable GeoJSON copy of the region."""
        return _thaw(self.region)


class RenderService(ABC):
    """External video render/delivery service."""

    @abstractmethod
    def submit(self, task: ExportTask) -> str:
        """
        Hands the task over for asynchronous processing and returns a job identifier.
        Raises ExportRejectedError if the service declines the task.
        """


class DriveVideoRenderService(RenderService):
    """Submits the sequence as an Earth Engine video export to Google Drive."""

    def submit(self, task: ExportTask) -> str:
        import ee
        try:
            params = {
                "collection": ee.ImageCollection.fromImages([f.image for f in task.frames]),
                "description": task.name,
                "dimensions": task.dimensions,
                "framesPerSecond": task.fps,
                "region": ee.Geometry(task.geojson()),
                "maxPixels": task.max_pixels,
            }
            if task.folder:
                params["folder"] = task.folder
            ee_task = ee.batch.Export.video.toDrive(**params)
            ee_task.start()
        except Exception as e:
            raise ExportRejectedError(f"Export task '{task.name}' was rejected: {e}") from e
        return ee_task.id


class GifRenderService(RenderService):
    """
    Renders frames produced by the in-memory backend into an animated GIF.
    Used for local previews; rendering happens synchronously inside submit().
    """

    def __init__(self, output_dir: str = "exports"):
        self.output_dir = Path(output_dir)

    def submit(self, task: ExportTask) -> str:
        from PIL import Image

        if not task.frames:
            raise ExportRejectedError(f"Export task '{task.name}' has no frames")

        first = task.frames[0].image
        h, w = first.shape
        scale = task.dimensions / max(h, w)
        out_w, out_h = max(1, int(round(w * scale))), max(1, int(round(h * scale)))

        total = out_w * out_h * len(task.frames)
        if total > task.max_pixels:
            raise ExportRejectedError(
                f"Export task '{task.name}' needs {total} pixels, above the {task.max_pixels:.0f} budget"
            )

        images = [f.image.to_pil().convert("RGB").resize((out_w, out_h), resample=Image.NEAREST)
                  for f in task.frames]

        os.makedirs(self.output_dir, exist_ok=True)
        out_path = self.output_dir / f"{task.name}.gif"
        images[0].save(
            out_path,
            save_all=True,
            append_images=images[1:],
            duration=int(round(1000.0 / task.fps)),
            loop=0,
        )
        return str(out_path)


class ExportTaskBuilder:
    """Builds exactly one ExportTask and submits it once; no retries."""

    def __init__(self, render_service: RenderService):
        self.render_service = render_service

    def build(self, sequence: Sequence[Frame], region: Dict[str, Any], dimensions: int,
              fps: float, max_pixels: float, name: str, folder: Optional[str] = None) -> ExportTask:
        return ExportTask(
            frames=tuple(sequence),
            region=_freeze(region),
            dimensions=int(dimensions),
            fps=fps,
            max_pixels=max_pixels,
            name=sanitize_name(name),
            folder=folder,
        )

    def submit(self, sequence: Sequence[Frame], region: Dict[str, Any], dimensions: int,
               fps: float, max_pixels: float, name: str, folder: Optional[str] = None) -> Tuple[ExportTask, str]:
        task = self.build(sequence, region, dimensions, fps, max_pixels, name, folder)
        job_id = self.render_service.submit(task)
        print(f"[INFO] Export task '{task.name}' accepted ({len(task.frames)} frames, id={job_id}).")
        return task, job_id
