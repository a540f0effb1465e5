# stdlib
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional
# thirdpartylib
import polars as pl
import requests
# projectlib
from pv_plant_analytics.config.env import DataPaths
from pv_plant_analytics.config.station import StationConfig
from pv_plant_analytics.data.loaders import load_operational, load_weather
from pv_plant_analytics.data.schemas import Column
from pv_plant_analytics.data.weather_api import refresh_forecast_weather
from pv_plant_analytics.models.calibration import Calibration, CalibrationEngine
from pv_plant_analytics.models.inference import ForecastModelSession
from pv_plant_analytics.models.postprocessing import (
    PostProcessingChain,
    fade_factor
)
from pv_plant_analytics.pipelines.history import load_station_history
from pv_plant_analytics.preprocessing.alignment import attach_operational
from pv_plant_analytics.preprocessing.astronomy import add_solar_geometry
from pv_plant_analytics.preprocessing.features import (
    build_feature_matrix,
    imputed_features
)
from pv_plant_analytics.utils.errors import MissingInputError
from pv_plant_analytics.utils.logging import Logger
from pv_plant_analytics.utils.runtime import check_cancelled
from pv_plant_analytics.utils.typing import CancelCheck

# (latitude, longitude, destination) -> written CSV path
type WeatherFetcher = Callable[[float, float, Path], Path]


@dataclass(frozen=True)
class ForecastPrediction(object):
    """Final forecast for one timestamp with the weather it used."""
    timestamp: datetime
    power_w: float
    temperature: float
    cloud_cover: float
    irradiance: float


@dataclass(frozen=True)
class ForecastResult(object):
    """Outcome of a forecast run."""
    predictions: tuple[ForecastPrediction, ...]
    operational_data_found: bool
    calibration: Calibration

    @property
    def calibration_performed(self) -> bool:
        return not self.calibration.is_identity

    def to_frame(self) -> pl.DataFrame:
        return pl.DataFrame(
            {
                Column.TIMESTAMP.value: [p.timestamp for p in self.predictions],
                "power_w": [p.power_w for p in self.predictions],
                Column.TEMPERATURE.value: [p.temperature for p in self.predictions],
                Column.CLOUD_COVER.value: [p.cloud_cover for p in self.predictions],
                Column.IRRADIANCE.value: [p.irradiance for p in self.predictions],
            },
            schema={
                Column.TIMESTAMP.value: pl.Datetime("us"),
                "power_w": pl.Float64,
                Column.TEMPERATURE.value: pl.Float64,
                Column.CLOUD_COVER.value: pl.Float64,
                Column.IRRADIANCE.value: pl.Float64,
            },
        )


def _forecast_weather(
        station: StationConfig,
        paths: DataPaths,
        fetcher: Optional[WeatherFetcher],
        logger: Logger,
    ) -> pl.DataFrame:
    """Local forecast weather, fetched first when no file exists."""
    path = paths.weather_forecast()
    if path is None:
        if fetcher is None:
            searched = ", ".join(
                str(p) for p in paths.weather_forecast_candidates
            )
            raise MissingInputError(
                f"Forecast weather not found (looked in {searched})."
            )
        logger("No local forecast weather, fetching.", verbosity=1)
        try:
            path = fetcher(
                station.latitude,
                station.longitude,
                paths.weather_forecast_candidates[0],
            )
        except (requests.RequestException, ValueError, OSError) as e:
            raise MissingInputError(
                f"Forecast weather not found and could not be fetched: {e}"
            ) from e
    weather = load_weather(path, logger=logger).frame
    if weather.is_empty():
        raise MissingInputError(f"Forecast weather in {path} has no usable rows.")
    return weather

def run_forecast(
        session: ForecastModelSession,
        station: StationConfig,
        paths: DataPaths,
        *,
        fetcher: Optional[WeatherFetcher] = refresh_forecast_weather,
        logger: Optional[Logger] = None,
        should_cancel: Optional[CancelCheck] = None,
    ) -> ForecastResult:
    """
    Produce the multi-day PV power forecast.

    Forecast weather rows get solar geometry and the nearest
    operational reading (within 120 minutes, zeros otherwise), are
    turned into model features and run through the model and the
    post-processing chain. The calibration slope is derived from the
    aligned station and weather history of the same run.

    Parameters
    ----------
    session : ForecastModelSession
        Loaded power model and its feature statistics.
    station : StationConfig
        Site coordinates and capacity.
    paths : DataPaths
        Location of the station and weather CSV files.
    fetcher : WeatherFetcher, optional
        Called when no local forecast weather exists. Defaults to the
        Open-Meteo client; pass None to fail instead.
    logger : Logger, optional
        Progress and diagnostics sink.
    should_cancel : CancelCheck, optional
        Polled between stages.

    Returns
    -------
    ForecastResult

    Raises
    ------
    MissingInputError
        If forecast weather, station data, weather history or their
        overlap is missing.
    InferenceError
        If the model rejects the features or returns a bad shape.
    PipelineCancelled
        If `should_cancel` returns True between stages.
    """
    logger = logger or Logger()
    check_cancelled(should_cancel, "loading forecast weather")
    weather = _forecast_weather(station, paths, fetcher, logger)
    weather = add_solar_geometry(weather, station.latitude, station.longitude)

    check_cancelled(should_cancel, "attaching operational data")
    operational = load_operational(paths.station, logger=logger).frame
    rows = attach_operational(weather, operational, logger=logger).sort(
        Column.TIMESTAMP.value, maintain_order=True
    )
    operational_found = bool(
        rows.select(
            ((pl.col(Column.BATTERY_SOC.value) != 0)
             | (pl.col(Column.PV_POWER.value) != 0)).any()
        ).item()
    )

    check_cancelled(should_cancel, "calibration")
    chain = PostProcessingChain.for_station(station)
    history = load_station_history(
        station, paths, operational=operational, logger=logger
    )
    calibration = CalibrationEngine(session, chain, logger=logger).fit(history)

    check_cancelled(should_cancel, "inference")
    imputed = imputed_features(session.feature_names, rows.columns)
    if imputed:
        logger(f"Mean-imputed features: {', '.join(imputed)}", verbosity=2)
    features = build_feature_matrix(
        rows, session.feature_names, session.metadata.mean
    )
    raw = session.raw_predict_many(features)
    fade = fade_factor(
        rows.get_column(Column.IRRADIANCE.value).to_numpy(),
        rows.get_column(Column.CLOUD_COVER.value).to_numpy(),
        rows.get_column(Column.SOLAR_ELEV_NORM.value).to_numpy(),
    )
    power = chain.apply(raw, fade, calibration)

    predictions = tuple(
        ForecastPrediction(ts, float(p), float(t), float(c), float(i))
        for ts, p, t, c, i in zip(
            rows.get_column(Column.TIMESTAMP.value).to_list(),
            power,
            rows.get_column(Column.TEMPERATURE.value).to_list(),
            rows.get_column(Column.CLOUD_COVER.value).to_list(),
            rows.get_column(Column.IRRADIANCE.value).to_list(),
        )
    )
    logger(
        f"Forecast {len(predictions)} rows, peak "
        f"{max((p.power_w for p in predictions), default=0.0):.0f} W, "
        f"calibration slope {calibration.slope:.3f}.",
        verbosity=1,
    )
    return ForecastResult(predictions, operational_found, calibration)
