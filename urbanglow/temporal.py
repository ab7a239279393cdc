# urbanglow/temporal.py

from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from urbanglow.constants import ANCHOR_MONTH, ANCHOR_DAY, ANCHOR_TIMEZONE


@dataclass(frozen=True)
class TemporalKey:
    """
    Query keys for one calendar year.

    The lights archive is matched with an inclusive calendar-year range,
    the buildings archive with an exact epoch-seconds timestamp.
    """
    year: int
    start_year: int
    end_year: int
    epoch_seconds: int


def anchor_epoch_seconds(year: int, timezone: str = ANCHOR_TIMEZONE) -> int:
    """Epoch seconds of June 30, 00:00 local time in `timezone` for the given year."""
    anchor = datetime(int(year), ANCHOR_MONTH, ANCHOR_DAY, tzinfo=ZoneInfo(timezone))
    return int(anchor.timestamp())


def temporal_key(year: int, timezone: str = ANCHOR_TIMEZONE) -> TemporalKey:
    """Never fails for an integer year; unsupported years simply match nothing downstream."""
    year = int(year)
    return TemporalKey(
        year=year,
        start_year=year,
        end_year=year,
        epoch_seconds=anchor_epoch_seconds(year, timezone),
    )
