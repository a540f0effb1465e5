"""End-to-end tests of the forecast and battery analysis runs."""
from datetime import date, datetime, timedelta

import pytest
import requests

from pv_plant_analytics.models.inference import (
    BatteryModelSession,
    ForecastModelSession,
)
from pv_plant_analytics.pipelines.battery import run_battery_analysis
from pv_plant_analytics.pipelines.forecast import run_forecast
from pv_plant_analytics.pipelines.history import load_station_history
from pv_plant_analytics.utils.errors import MissingInputError, PipelineCancelled
from pv_plant_analytics.utils.logging import Logger

from conftest import (
    HISTORY_DAYS,
    HISTORY_START,
    BatteryModelStub,
    forecast_weather_csv,
    weather_csv,
    write,
)


@pytest.fixture
def forecast_session(forecast_estimator, forecast_metadata):
    return ForecastModelSession(forecast_estimator, forecast_metadata)


@pytest.fixture
def battery_stub():
    return BatteryModelStub()


@pytest.fixture
def battery_session(battery_stub, battery_metadata):
    return BatteryModelSession(battery_stub, battery_metadata)


class TestStationHistory:
    """Test the aligned history shared by both runs."""

    def test_every_station_reading_is_aligned(self, station, paths):
        history = load_station_history(station, paths)
        assert history.height == HISTORY_DAYS * 13
        assert {"soc_clean", "solar_elev", "weather_timestamp"} <= set(history.columns)

    def test_missing_weather_history(self, station, paths):
        paths.weather_history().unlink()
        with pytest.raises(MissingInputError, match="Weather data not found"):
            load_station_history(station, paths)


class TestForecast:
    """Test the forecast run."""

    def test_forecast_with_operational_overlap(self, forecast_session, station, paths):
        result = run_forecast(forecast_session, station, paths, fetcher=None)
        assert len(result.predictions) == 24
        assert result.operational_data_found
        assert result.calibration_performed
        assert result.calibration.slope > 0
        stamps = [p.timestamp for p in result.predictions]
        assert stamps == sorted(stamps)
        assert all(0.0 <= p.power_w <= 5000.0 for p in result.predictions)

    def test_night_rows_produce_no_power(self, forecast_session, station, paths):
        result = run_forecast(forecast_session, station, paths, fetcher=None)
        midnight = next(
            p for p in result.predictions if p.timestamp == datetime(2024, 6, 5, 0)
        )
        assert midnight.power_w == 0.0
        assert midnight.irradiance == 0.0

    def test_no_operational_overlap(self, forecast_session, station, paths):
        write(
            paths.weather_forecast_candidates[0],
            forecast_weather_csv(start=datetime(2025, 1, 10, 0)),
        )
        result = run_forecast(forecast_session, station, paths, fetcher=None)
        assert not result.operational_data_found
        assert len(result.predictions) == 24

    def test_result_frame(self, forecast_session, station, paths):
        frame = run_forecast(forecast_session, station, paths, fetcher=None).to_frame()
        assert frame.columns == [
            "timestamp", "power_w", "temperature_2m", "cloud_cover", "irradiance_wm2"
        ]
        assert frame.height == 24

    def test_fetches_when_no_local_weather(self, forecast_session, station, paths):
        paths.weather_forecast().unlink()
        calls = []

        def fetcher(latitude, longitude, destination):
            calls.append((latitude, longitude, destination))
            return write(destination, forecast_weather_csv())

        result = run_forecast(forecast_session, station, paths, fetcher=fetcher)
        assert calls == [(45.0, 25.0, paths.weather_forecast_candidates[0])]
        assert len(result.predictions) == 24

    def test_missing_forecast_weather_without_fetcher(self, forecast_session, station, paths):
        paths.weather_forecast().unlink()
        with pytest.raises(MissingInputError, match="Forecast weather not found"):
            run_forecast(forecast_session, station, paths, fetcher=None)

    def test_failed_fetch_is_missing_input(self, forecast_session, station, paths):
        paths.weather_forecast().unlink()

        def fetcher(latitude, longitude, destination):
            raise requests.ConnectionError("network down")

        with pytest.raises(MissingInputError, match="could not be fetched: network down"):
            run_forecast(forecast_session, station, paths, fetcher=fetcher)

    def test_missing_station_file(self, forecast_session, station, paths):
        paths.station.unlink()
        with pytest.raises(MissingInputError, match="Operational data not found"):
            run_forecast(forecast_session, station, paths, fetcher=None)

    def test_cancellation(self, forecast_session, station, paths):
        with pytest.raises(PipelineCancelled):
            run_forecast(
                forecast_session, station, paths,
                fetcher=None, should_cancel=lambda: True,
            )

    def test_progress_reaches_listener(self, forecast_session, station, paths):
        messages = []
        logger = Logger(verbose=2, listener=messages.append)
        run_forecast(forecast_session, station, paths, fetcher=None, logger=logger)
        assert any(m.startswith("Forecast 24 rows") for m in messages)
        assert any("mystery_feature" in m for m in messages)


class TestBatteryAnalysis:
    """Test the battery analysis run."""

    def test_days_are_classified_in_order(self, battery_session, battery_stub, station, paths):
        result = run_battery_analysis(battery_session, station, paths)
        expected = [HISTORY_START + timedelta(days=d) for d in range(HISTORY_DAYS)]
        assert [d.day for d in result.days] == expected
        assert all(d.label == "Balanced" for d in result.days)
        assert result.days[0].stress == pytest.approx(0.4)
        assert battery_stub.inputs.shape == (HISTORY_DAYS, 16, 7)

    def test_validity_channel_marks_samples(self, battery_session, battery_stub, station, paths):
        run_battery_analysis(battery_session, station, paths)
        valid = battery_stub.inputs[..., -1]
        assert valid[:, :13].min() == 1.0
        assert valid[:, 13:].max() == 0.0

    def test_samples_and_frame(self, battery_session, station, paths):
        result = run_battery_analysis(battery_session, station, paths)
        assert result.samples.columns == ["timestamp", "soc_clean", "batt_temp_c"]
        assert result.samples.height == HISTORY_DAYS * 13
        frame = result.to_frame()
        assert frame.get_column("date").to_list()[0] == date(2024, 6, 1)
        assert set(frame.get_column("label").to_list()) == {"Balanced"}

    def test_no_overlap_is_an_error(self, battery_session, station, paths, data_root):
        write(
            data_root / "csv" / "weather_data.csv",
            weather_csv(start=date(2023, 1, 1)),
        )
        with pytest.raises(MissingInputError):
            run_battery_analysis(battery_session, station, paths)

    def test_cancellation(self, battery_session, station, paths):
        with pytest.raises(PipelineCancelled):
            run_battery_analysis(
                battery_session, station, paths, should_cancel=lambda: True
            )
