"""
Unit tests for urbanglow.resolver module.
"""

import dataclasses

import pytest
from urbanglow.constants import ASSETS
from urbanglow.errors import ArchiveOverlapError, DataSourceError
from urbanglow.memory_backend import MemoryBackend, MemoryCollection
from urbanglow.resolver import DatasetResolver

from conftest import GRID, PIXEL_M, build_archives, lights_tile


class TestDatasetResolver:

    def test_lights_archives_are_concatenated_in_order(self, backend, config):
        resolved = DatasetResolver(backend, config).resolve()
        years = [backend.year_span(MemoryCollection(band="average", tiles=(t,)))[0]
                 for t in resolved.lights.tiles]
        assert years == list(range(2016, 2024))
        assert backend.count(resolved.buildings) == 8

    def test_missing_archive_raises_data_source_error(self, archives, config):
        del archives[ASSETS["lights_v22"]]
        backend = MemoryBackend(archives, shape=GRID, pixel_size_m=PIXEL_M)
        with pytest.raises(DataSourceError):
            DatasetResolver(backend, config).resolve()

    def test_missing_band_raises_data_source_error(self, backend, config):
        cfg = dataclasses.replace(config, lights_band="avg_rad")
        with pytest.raises(DataSourceError, match="avg_rad"):
            DatasetResolver(backend, cfg).resolve()

    def test_overlap_across_cutover_raises(self, config):
        archives = build_archives()
        archives[ASSETS["lights_v21"]].append(lights_tile(2022))
        backend = MemoryBackend(archives, shape=GRID, pixel_size_m=PIXEL_M)
        with pytest.raises(ArchiveOverlapError, match="cutover"):
            DatasetResolver(backend, config).resolve()

    def test_overlap_check_can_be_disabled(self, config):
        archives = build_archives()
        archives[ASSETS["lights_v22"]].insert(0, lights_tile(2021, level=99))
        backend = MemoryBackend(archives, shape=GRID, pixel_size_m=PIXEL_M)
        resolved = DatasetResolver(backend, config, validate_overlap=False).resolve()
        assert backend.count(resolved.lights) == 9

    def test_empty_archive_skips_overlap_check(self, config):
        archives = build_archives(lights_years=range(2016, 2022))
        backend = MemoryBackend(archives, shape=GRID, pixel_size_m=PIXEL_M)
        resolved = DatasetResolver(backend, config).resolve()
        assert backend.count(resolved.lights) == 6
