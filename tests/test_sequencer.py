"""
Unit tests for urbanglow.sequencer module.
"""

import pytest
from urbanglow.compositor import Frame
from urbanglow.sequencer import repeat_count, sequence_frames


def make_frames(years):
    return [Frame(year=y, image=object()) for y in years]


class TestRepeatCount:

    @pytest.mark.parametrize("fps, seconds, expected", [
        (3, 1.0, 3),
        (3, 4 / 3, 4),
        (3, 0.5, 2),     # 1.5 rounds half up
        (24, 0.0, 0),
        (30, 2.0, 60),
    ])
    def test_counts(self, fps, seconds, expected):
        assert repeat_count(fps, seconds) == expected

    def test_invalid_fps_raises(self):
        with pytest.raises(ValueError):
            repeat_count(0, 1.0)


class TestSequenceFrames:

    def test_reference_example_length(self):
        """8 years at 3 fps, 1 s per year, 4-frame freeze -> 8*3 + 4 = 28."""
        frames = make_frames(range(2016, 2024))
        seq = sequence_frames(frames, fps=3, seconds_per_year=1.0, freeze_seconds=4 / 3)
        assert len(seq) == 28

    def test_blocks_follow_year_order(self):
        frames = make_frames([2016, 2017, 2018])
        seq = sequence_frames(frames, fps=2, seconds_per_year=1.0, freeze_seconds=1.5)
        per_year, freeze = 2, 3

        assert len(seq) == len(frames) * per_year + freeze
        for i, frame in enumerate(frames):
            block = seq[i * per_year:(i + 1) * per_year]
            assert all(f is frame for f in block)
        assert [seq[i].year for i in range(0, len(frames) * per_year, per_year)] == [2016, 2017, 2018]
        assert all(f is frames[-1] for f in seq[-freeze:])

    def test_frames_are_referenced_not_copied(self):
        frames = make_frames([2020])
        seq = sequence_frames(frames, fps=3, seconds_per_year=1.0, freeze_seconds=1.0)
        assert {id(f) for f in seq} == {id(frames[0])}

    def test_empty_input_has_no_freeze(self):
        assert sequence_frames([], fps=3, seconds_per_year=1.0, freeze_seconds=2.0) == []

    def test_repeated_calls_are_identical(self):
        frames = make_frames(range(2016, 2020))
        a = sequence_frames(frames, fps=3, seconds_per_year=1.0, freeze_seconds=1.0)
        b = sequence_frames(frames, fps=3, seconds_per_year=1.0, freeze_seconds=1.0)
        assert [id(f) for f in a] == [id(f) for f in b]
