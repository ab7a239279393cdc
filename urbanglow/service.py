# urbanglow/service.py

import concurrent.futures
from typing import Any, Callable, List, Optional

from urbanglow.backend import RasterBackend
from urbanglow.compositor import Frame, FrameCompositor
from urbanglow.config import PipelineConfig
from urbanglow.errors import FrameError, MissingDataError
from urbanglow.exporter import ExportTask, ExportTaskBuilder, RenderService
from urbanglow.region import RegionLoader
from urbanglow.resolver import DatasetResolver, ResolvedDatasets
from urbanglow.sequencer import sequence_frames
from urbanglow.temporal import temporal_key

ProgressCallback = Callable[[float, str], None]

# Share of the progress bar spent composing frames
FRAMES_START = 0.05
FRAMES_END = 0.9


class UrbanGlowPipeline:
    """
    Core service for the urban growth animation.
    Resolves the archives, composes one frame per configured year, sequences them
    and submits a single video export job.
    """

    def __init__(self, backend: RasterBackend, render_service: RenderService,
                 config: Optional[PipelineConfig] = None):
        self.backend = backend
        self.render_service = render_service
        self.config = config or PipelineConfig()
        self.compositor = FrameCompositor(backend, self.config)
        self.builder = ExportTaskBuilder(render_service)
        self.last_job_id: Optional[str] = None

    def resolve(self) -> ResolvedDatasets:
        return DatasetResolver(self.backend, self.config).resolve()

    def build_frame(self, year: int, datasets: Optional[ResolvedDatasets] = None) -> Frame:
        if datasets is None:
            datasets = self.resolve()
        return self.compositor.compose(datasets, temporal_key(year, self.config.timezone))

    def build_frames(self, datasets: Optional[ResolvedDatasets] = None,
                     progress_callback: Optional[ProgressCallback] = None) -> List[Frame]:
        """
        One frame per configured year, in year order.
        Any failing year aborts the whole run; no partial list is returned.
        """
        if datasets is None:
            datasets = self.resolve()
        years = list(self.config.years)
        print(f"[INFO] Composing frames for {len(years)} years...")

        frames: List[Optional[Frame]] = [None] * len(years)
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            future_to_idx = {executor.submit(self.build_frame, yr, datasets): i for i, yr in enumerate(years)}
            for completed, future in enumerate(concurrent.futures.as_completed(future_to_idx), start=1):
                idx = future_to_idx[future]
                try:
                    frames[idx] = future.result()
                except Exception as e:
                    executor.shutdown(wait=False, cancel_futures=True)
                    if isinstance(e, MissingDataError):
                        print(f"[WARN] Aborting: year {e.year} has no lights data.")
                        raise
                    print(f"[WARN] Aborting: year {years[idx]} failed: {e}")
                    raise FrameError(years[idx], e) from e
                if progress_callback:
                    frac = completed / len(years)
                    progress_callback(FRAMES_START + (FRAMES_END - FRAMES_START) * frac,
                                      f"Composed {completed}/{len(years)} frames")
        return frames

    def build_sequence(self, datasets: Optional[ResolvedDatasets] = None,
                       progress_callback: Optional[ProgressCallback] = None) -> List[Frame]:
        cfg = self.config
        frames = self.build_frames(datasets, progress_callback)
        return sequence_frames(frames, cfg.fps, cfg.seconds_per_year, cfg.freeze_seconds)

    def build_export_task(self, region: Any, progress_callback: Optional[ProgressCallback] = None) -> ExportTask:
        """
        Entry point for front ends: builds the full sequence for `region` and submits it.

        Args:
            region: bbox tuple, GeoJSON mapping, shapely geometry or boundary file path.
            progress_callback: Optional callable(float, str) to report progress (0.0-1.0, message)
        """
        cfg = self.config
        geometry = RegionLoader.load(region)

        if progress_callback: progress_callback(0.0, "Resolving datasets...")
        datasets = self.resolve()

        sequence = self.build_sequence(datasets, progress_callback)
        if progress_callback: progress_callback(0.95, "Submitting export task...")
        task, job_id = self.builder.submit(
            sequence, geometry, cfg.dimensions, cfg.fps, cfg.max_pixels, cfg.export_name, cfg.drive_folder,
        )
        self.last_job_id = job_id
        if progress_callback: progress_callback(1.0, "Export task submitted")
        return task

    def preview(self, year: Optional[int] = None) -> Frame:
        """Single frame for map previews; defaults to the last configured year."""
        if year is None:
            if not self.config.years:
                raise ValueError("No years configured")
            year = self.config.years[-1]
        return self.build_frame(year)
