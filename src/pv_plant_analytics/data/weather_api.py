# stdlib
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Optional
# thirdpartylib
import polars as pl
import requests
# projectlib
from pv_plant_analytics.utils.logging import Logger
from pv_plant_analytics.utils.paths import validate_address
from pv_plant_analytics.utils.typing import Address

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
HOURLY_VARIABLES = (
    "temperature_2m",
    "cloud_cover",
    "shortwave_radiation",
    "direct_radiation",
    "diffuse_radiation",
    "wind_speed_10m",
)
REQUEST_TIMEOUT_S = 20


def fetch_hourly_forecast(
        latitude: float,
        longitude: float,
        *,
        days: int = 7,
        today: Optional[date] = None,
    ) -> pl.DataFrame:
    """
    Request the hourly weather forecast from Open-Meteo.

    Parameters
    ----------
    latitude, longitude : float
        Site coordinates in degrees.
    days : int, default 7
        Number of calendar days, starting today.
    today : date, optional
        First forecast day. Defaults to the local current date.

    Returns
    -------
    pl.DataFrame
        ``time`` as text plus one Float64 column per entry of
        ``HOURLY_VARIABLES``. Missing values are null.

    Raises
    ------
    requests.HTTPError
        If the service answers with an error status.
    ValueError
        If the response does not contain an ``hourly`` block.
    """
    if days < 1:
        raise ValueError("days must be at least 1.")
    start = today or date.today()
    end = start + timedelta(days=days - 1)
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "hourly": ",".join(HOURLY_VARIABLES),
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "timezone": "auto",
    }
    response = requests.get(
        OPEN_METEO_URL, params=params, timeout=REQUEST_TIMEOUT_S
    )
    response.raise_for_status()
    payload: dict[str, Any] = response.json()
    if "hourly" not in payload:
        raise ValueError("Open-Meteo response has no hourly data.")
    hourly: dict[str, list[Any]] = payload["hourly"]
    times = hourly.get("time", [])
    columns: dict[str, pl.Series] = {
        "time": pl.Series("time", times, dtype=pl.String)
    }
    for name in HOURLY_VARIABLES:
        values = hourly.get(name) or [None] * len(times)
        columns[name] = pl.Series(name, values, dtype=pl.Float64, strict=False)
    return pl.DataFrame(columns)

def write_weather_csv(frame: pl.DataFrame, destination: Address) -> Path:
    """Write weather rows with one decimal; missing values stay empty."""
    destination = Path(destination)
    validate_address(destination.parent, mkdir=True)
    frame.write_csv(destination, float_precision=1, null_value="")
    return destination

def refresh_forecast_weather(
        latitude: float,
        longitude: float,
        destination: Address,
        *,
        days: int = 7,
        logger: Optional[Logger] = None,
    ) -> Path:
    """Fetch the forecast and store it where the forecast run reads it."""
    frame = fetch_hourly_forecast(latitude, longitude, days=days)
    path = write_weather_csv(frame, destination)
    if logger is not None:
        logger(f"Fetched {frame.height} forecast weather rows to {path}.",
               verbosity=1)
    return path
