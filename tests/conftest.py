"""Pytest configuration and shared fixtures."""
from datetime import date, datetime, timedelta
from pathlib import Path

import numpy as np
import polars as pl
import pytest

from pv_plant_analytics.config.env import DataPaths
from pv_plant_analytics.config.station import StationConfig
from pv_plant_analytics.models.io import ModelMetadata

HISTORY_START = date(2024, 6, 1)
HISTORY_DAYS = 4
DAY_HOURS = range(6, 19)

STATION_HEADER = (
    "collecttime,soc_bap2,t_bap1,p_bap2,pvtp,"
    "pcc_ap1,pcc_ap2,pcc_ap3,ap1,ap2,ap3"
)
WEATHER_HEADER = (
    "time,temperature_2m,cloud_cover,shortwave_radiation,wind_speed_10m"
)


class LinearRegressorStub:
    """Deterministic stand-in for a fitted regressor: x @ w + b."""

    def __init__(self, weights, bias=0.0):
        self.weights = np.asarray(weights, dtype=float)
        self.bias = bias
        self.calls = []

    def predict(self, x):
        self.calls.append(np.array(x, copy=True))
        return x @ self.weights + self.bias


class BatteryModelStub:
    """Multi-output battery model returning the same outputs for every day."""

    def __init__(self, probabilities=(0.1, 0.7, 0.2), stress=0.4, utilization=0.6):
        self.probabilities = np.asarray(probabilities, dtype=float)
        self.stress = stress
        self.utilization = utilization
        self.inputs = None

    def predict(self, x):
        self.inputs = np.array(x, copy=True)
        days = x.shape[0]
        return [
            np.tile(self.probabilities, (days, 1)),
            np.full((days, 1), self.stress),
            np.full((days, 1), self.utilization),
        ]


def bell(hour):
    """Clear-sky shape: 0 at 06:00 and 18:00, 1 at noon."""
    return max(0.0, 1.0 - abs(hour - 12) / 6.0)


def station_csv(start=HISTORY_START, days=HISTORY_DAYS):
    """Hourly station readings; PV output grows day by day."""
    lines = [STATION_HEADER]
    for d in range(days):
        day = start + timedelta(days=d)
        for h in DAY_HOURS:
            pv_w = 1000.0 * (d + 1) * bell(h)
            lines.append(
                f"{day.isoformat()} {h:02d}:00:00,{40 + h},24,1500,"
                f"{pv_w:.1f}W,0.5,0.5,0.5,0.2,0.2,0.2"
            )
    return "\n".join(lines) + "\n"


def weather_csv(start=HISTORY_START, days=HISTORY_DAYS, hours=DAY_HOURS):
    """Hourly weather history; irradiance grows day by day."""
    lines = [WEATHER_HEADER]
    for d in range(days):
        day = start + timedelta(days=d)
        for h in hours:
            irr = (600.0 + 50.0 * d) * bell(h)
            lines.append(
                f"{day.isoformat()}T{h:02d}:00,{20 + 0.5 * h:.1f},"
                f"{10 * d},{irr:.1f},3.0"
            )
    return "\n".join(lines) + "\n"


def forecast_weather_csv(start=datetime(2024, 6, 4, 19), hours=24):
    """Hourly forecast weather beginning at `start`."""
    lines = [WEATHER_HEADER]
    for i in range(hours):
        ts = start + timedelta(hours=i)
        irr = 700.0 * bell(ts.hour)
        lines.append(
            f"{ts.strftime('%Y-%m-%dT%H:%M')},{18 + 0.5 * ts.hour:.1f},"
            f"20,{irr:.1f},4.0"
        )
    return "\n".join(lines) + "\n"


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def frame_at(times, **columns):
    """Frame with a timestamp column and Float64 payload columns."""
    data = {"timestamp": pl.Series(list(times), dtype=pl.Datetime("us"))}
    for name, values in columns.items():
        data[name] = pl.Series(list(values), dtype=pl.Float64)
    return pl.DataFrame(data)


@pytest.fixture
def station():
    """Station at mid latitude with a 5 kW inverter."""
    return StationConfig(latitude=45.0, longitude=25.0, inverter_power_kw=5.0)


@pytest.fixture
def data_root(tmp_path):
    """Data directory with station, weather history and forecast files."""
    write(tmp_path / "csv" / "station_data.csv", station_csv())
    write(tmp_path / "csv" / "weather_data.csv", weather_csv())
    write(
        tmp_path / "csv" / "weather" / "weather_next_7days.csv",
        forecast_weather_csv(),
    )
    return tmp_path


@pytest.fixture
def paths(data_root):
    return DataPaths(data_root)


@pytest.fixture
def forecast_metadata():
    """Forecast model statistics including one feature nothing computes."""
    return ModelMetadata.from_dict(
        {
            "features": [
                "hour",
                "irradiance_wm2",
                "cloud_cover",
                "power_kw_lag1",
                "mystery_feature",
            ],
            "mean": [12.0, 300.0, 30.0, 1.0, 7.0],
            "scale": [6.0, 200.0, 20.0, 1.0, 0.0],
        }
    )


@pytest.fixture
def forecast_estimator():
    """Power rises with standardized irradiance."""
    return LinearRegressorStub([0.0, 1.5, 0.0, 0.0, 0.0], bias=2.0)


@pytest.fixture
def battery_metadata():
    return ModelMetadata.from_dict(
        {
            "features": [
                "soc_clean",
                "battery_power_kw",
                "batt_temp_c",
                "pv_power_kw",
                "grid_power_kw",
                "load_power_kw",
            ],
            "mean": [50.0, 0.0, 25.0, 1.0, 0.0, 0.5],
            "scale": [25.0, 1.0, 5.0, 1.0, 1.0, 0.5],
            "max_timesteps": 16,
        }
    )
