# stdlib
from typing import Optional
# thirdpartylib
import polars as pl
# projectlib
from pv_plant_analytics.config.env import DataPaths
from pv_plant_analytics.config.station import StationConfig
from pv_plant_analytics.data.loaders import (
    filter_usable_weather,
    load_operational,
    load_weather
)
from pv_plant_analytics.preprocessing.alignment import align_station_weather
from pv_plant_analytics.utils.errors import MissingInputError
from pv_plant_analytics.utils.logging import Logger


def load_station_history(
        station: StationConfig,
        paths: DataPaths,
        *,
        operational: Optional[pl.DataFrame] = None,
        logger: Optional[Logger] = None,
    ) -> pl.DataFrame:
    """
    Load station readings and weather history and align them.

    `operational` may be passed when the station file was already read.

    Raises
    ------
    MissingInputError
        If the station file or the weather history is missing, or if
        either holds no usable rows.
    """
    if operational is None:
        operational = load_operational(paths.station, logger=logger).frame
    if operational.is_empty():
        raise MissingInputError(
            f"Operational data not found: {paths.station} has no "
            "readable rows."
        )
    weather_path = paths.weather_history()
    if weather_path is None:
        searched = ", ".join(str(p) for p in paths.weather_history_candidates)
        raise MissingInputError(f"Weather data not found (looked in {searched}).")
    weather = filter_usable_weather(load_weather(weather_path, logger=logger).frame)
    if weather.is_empty():
        raise MissingInputError(
            f"Weather data not found: {weather_path} has no usable rows."
        )
    return align_station_weather(
        operational,
        weather,
        station.latitude,
        station.longitude,
        logger=logger,
    )
