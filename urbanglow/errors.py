# urbanglow/errors.py
"""Exception taxonomy for the frame pipeline."""

from typing import Optional


class UrbanGlowError(RuntimeError):
    """Base class for pipeline failures."""


class DataSourceError(UrbanGlowError):
    """A raw archive or its measurement band could not be found."""


class ArchiveOverlapError(DataSourceError):
    """The two lights archives overlap around the configured cutover year."""


class MissingDataError(UrbanGlowError):
    """No lights tile matched a requested year."""

    def __init__(self, year: int, message: Optional[str] = None):
        self.year = year
        super().__init__(message or f"No nighttime lights composite found for year {year}")


class ExportRejectedError(UrbanGlowError):
    """The render service declined an export task."""


class EngineError(UrbanGlowError):
    """Earth Engine could not be initialized or failed to evaluate a request."""


class FrameError(UrbanGlowError):
    """Composing the frame for one year failed."""

    def __init__(self, year: int, cause: Exception):
        self.year = year
        super().__init__(f"Frame for year {year} failed: {cause}")
