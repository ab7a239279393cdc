"""
Unit tests for urbanglow.ee_backend module.

Earth Engine is replaced with a MagicMock module, so these tests check the calls the
backend issues rather than server results.
"""

import sys
from unittest.mock import MagicMock

import pytest
from urbanglow.config import VisParams
from urbanglow.ee_backend import EarthEngineBackend
from urbanglow.errors import DataSourceError, EngineError


class FakeEEException(Exception):
    pass


@pytest.fixture
def fake_ee(monkeypatch):
    ee = MagicMock()
    ee.EEException = FakeEEException
    col = ee.ImageCollection.return_value
    col.size.return_value.getInfo.return_value = 9
    col.first.return_value.bandNames.return_value.getInfo.return_value = ["average", "cf_cvg"]
    monkeypatch.setitem(sys.modules, "ee", ee)
    return ee


@pytest.fixture
def ee_backend(fake_ee, monkeypatch):
    monkeypatch.setattr("urbanglow.ee_backend.time.sleep", lambda s: None)
    backend = EarthEngineBackend(project_id="demo-project")
    backend._ee_initialized = True
    return backend


class TestCollection:

    def test_selects_band(self, fake_ee, ee_backend):
        result = ee_backend.collection("NOAA/VIIRS/DNB/ANNUAL_V21", "average")
        fake_ee.ImageCollection.assert_called_with("NOAA/VIIRS/DNB/ANNUAL_V21")
        fake_ee.ImageCollection.return_value.select.assert_called_once_with("average")
        assert result is fake_ee.ImageCollection.return_value.select.return_value

    def test_missing_asset_raises(self, fake_ee, ee_backend):
        fake_ee.data.getAsset.side_effect = FakeEEException("Asset not found")
        with pytest.raises(DataSourceError, match="not found"):
            ee_backend.collection("NOAA/VIIRS/DNB/ANNUAL_V99", "average")

    def test_missing_band_raises(self, ee_backend):
        with pytest.raises(DataSourceError, match="avg_rad"):
            ee_backend.collection("NOAA/VIIRS/DNB/ANNUAL_V21", "avg_rad")


class TestOperations:

    def test_filters(self, fake_ee, ee_backend):
        col = MagicMock()
        ee_backend.filter_calendar_years(col, 2020, 2020)
        fake_ee.Filter.calendarRange.assert_called_once_with(2020, 2020, 'year')
        ee_backend.filter_equals(col, "inference_time_epoch_s", 1593500400)
        fake_ee.Filter.eq.assert_called_once_with("inference_time_epoch_s", 1593500400)

    def test_dilate_uses_circle_in_meters(self, ee_backend):
        img = MagicMock()
        ee_backend.dilate(img, 30)
        img.focal_max.assert_called_once_with(radius=30, kernelType='circle', units='meters')

    def test_zero_radius_is_identity(self, ee_backend):
        img = MagicMock()
        assert ee_backend.dilate(img, 0) is img
        img.focal_max.assert_not_called()

    def test_visualize_and_blend(self, ee_backend):
        img, top = MagicMock(), MagicMock()
        ee_backend.visualize(img, VisParams(0, 1, ("#39FF14",)))
        img.visualize.assert_called_once_with(min=0, max=1, palette=["#39FF14"])
        ee_backend.blend(img, top)
        img.blend.assert_called_once_with(top)

    def test_year_span(self, fake_ee, ee_backend):
        col = MagicMock()
        col.size.return_value.getInfo.return_value = 2
        fake_ee.Dictionary.return_value.getInfo.return_value = {"min": 1356998400000, "max": 1609459200000}
        assert ee_backend.year_span(col) == (2013, 2021)


class TestRetries:

    def test_rate_limit_is_retried(self, ee_backend):
        obj = MagicMock()
        obj.getInfo.side_effect = [Exception("429 Too Many Requests"), 42]
        assert ee_backend._ee_getinfo(obj) == 42

    def test_other_errors_propagate(self, ee_backend):
        obj = MagicMock()
        obj.getInfo.side_effect = ValueError("bad band")
        with pytest.raises(ValueError, match="bad band"):
            ee_backend._ee_getinfo(obj)

    def test_gives_up_after_max_retries(self, ee_backend):
        obj = MagicMock()
        obj.getInfo.side_effect = Exception("quota exceeded")
        with pytest.raises(EngineError, match="after 5 attempts"):
            ee_backend._ee_getinfo(obj)
        assert obj.getInfo.call_count == 5

    def test_tile_url(self, fake_ee, ee_backend):
        fake_ee.Image.return_value.getMapId.return_value = {"tile_fetcher": MagicMock(url_format="https://tiles/{z}/{x}/{y}")}
        assert ee_backend.tile_url("img") == "https://tiles/{z}/{x}/{y}"

    def test_server_errors_become_engine_errors(self, ee_backend):
        obj = MagicMock()
        obj.getInfo.side_effect = FakeEEException("Computation timed out.")
        with pytest.raises(EngineError, match="Computation timed out"):
            ee_backend._ee_getinfo(obj)
        assert obj.getInfo.call_count == 1


class TestInitialize:

    def test_stored_credentials_skip_authentication(self, fake_ee):
        backend = EarthEngineBackend(project_id="demo-project")
        backend.initialize_ee()
        fake_ee.Initialize.assert_called_once_with(project="demo-project")
        fake_ee.Authenticate.assert_not_called()

    def test_falls_back_to_notebook_flow(self, fake_ee):
        fake_ee.Initialize.side_effect = [Exception("no creds"), Exception("still none"), None]
        backend = EarthEngineBackend(project_id="demo-project")
        backend.initialize_ee()
        assert backend._ee_initialized
        assert fake_ee.Authenticate.call_args_list[-1].kwargs == {"auth_mode": "notebook"}

    def test_failure_raises_engine_error(self, fake_ee):
        fake_ee.Initialize.side_effect = Exception("permission denied")
        with pytest.raises(EngineError, match="permission denied"):
            EarthEngineBackend(project_id="demo-project").initialize_ee()
