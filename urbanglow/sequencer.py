# urbanglow/sequencer.py

import math
from typing import List, Sequence

from urbanglow.compositor import Frame


def repeat_count(fps: float, seconds: float) -> int:
    """Frames needed to show something for `seconds` at `fps`, rounded half up."""
    if fps <= 0:
        raise ValueError(f"fps must be > 0, got {fps}")
    if seconds < 0:
        raise ValueError(f"seconds must be >= 0, got {seconds}")
    # Tolerate float noise just below a .5 boundary
    return int(math.floor(fps * seconds + 0.5 + 1e-9))


def sequence_frames(frames: Sequence[Frame], fps: float, seconds_per_year: float,
                    freeze_seconds: float) -> List[Frame]:
    """
    Expands one frame per year into playback order.

    Each year's frame is repeated contiguously, in input order, then the last
    frame is held for the freeze duration. Frames are referenced, never copied.
    """
    per_year = repeat_count(fps, seconds_per_year)
    freeze = repeat_count(fps, freeze_seconds)
    if not frames:
        return []

    sequence: List[Frame] = []
    for frame in frames:
        sequence.extend([frame] * per_year)
    sequence.extend([frames[-1]] * freeze)
    return sequence
