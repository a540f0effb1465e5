# stdlib
from datetime import timedelta
from typing import Optional
# thirdpartylib
import numpy as np
import polars as pl
from numpy.typing import NDArray
# projectlib
from pv_plant_analytics.data.schemas import Column, OPERATIONAL_FIELDS
from pv_plant_analytics.preprocessing.astronomy import add_solar_geometry
from pv_plant_analytics.preprocessing.interpolation import clean_soc
from pv_plant_analytics.utils.logging import Logger

# Station readings vs weather observations (battery, calibration)
STATION_WEATHER_TOLERANCE = timedelta(minutes=60)
# Forecast weather rows vs operational readings
FORECAST_OPERATIONAL_TOLERANCE = timedelta(minutes=120)

_ROW = "__row"
_MATCH = "__match"


def nearest_indices(
        left: NDArray[np.int64],
        right: NDArray[np.int64],
        tolerance: int,
    ) -> NDArray[np.int64]:
    """
    Index of the nearest `right` element for every `left` element.

    Both inputs must be sorted ascending and share a unit. The element
    with the smallest absolute difference wins; on an exact tie the
    earlier element of `right` wins. Elements whose best difference
    exceeds `tolerance` get -1.

    Parameters
    ----------
    left, right : ndarray of int64
        Sorted timestamps.
    tolerance : int
        Maximum accepted difference, in the unit of the inputs.

    Returns
    -------
    ndarray of int64
        Positions into `right`, or -1 where no element is close enough.
    """
    left = np.asarray(left, dtype=np.int64)
    right = np.asarray(right, dtype=np.int64)
    m = right.size
    if m == 0 or left.size == 0:
        return np.full(left.size, -1, dtype=np.int64)
    # First right element not earlier than each left element
    pos = np.searchsorted(right, left, side="left")
    has_before = pos > 0
    has_after = pos < m
    before = np.where(has_before, pos - 1, 0)
    # Equal timestamps: the first of the run was encountered first
    before = np.searchsorted(right, right[before], side="left")
    after = np.where(has_after, pos, m - 1)
    unreachable = np.iinfo(np.int64).max
    d_before = np.where(has_before, left - right[before], unreachable)
    d_after = np.where(has_after, right[after] - left, unreachable)
    idx = np.where(d_before <= d_after, before, after).astype(np.int64)
    idx[np.minimum(d_before, d_after) > tolerance] = -1
    return idx

def merge_nearest(
        left: pl.DataFrame,
        right: pl.DataFrame,
        tolerance: timedelta,
        *,
        keep_unmatched: bool = False,
        time_col: str = Column.TIMESTAMP.value,
        right_time_name: str = Column.WEATHER_TIMESTAMP.value,
    ) -> pl.DataFrame:
    """
    Nearest-within-tolerance join of two time series.

    Every `left` row is paired with the `right` row closest in time.
    A `right` row may be paired with several `left` rows. Left rows
    with no partner within `tolerance` are dropped, or kept with null
    right-hand fields when `keep_unmatched` is True.

    Parameters
    ----------
    left, right : pl.DataFrame
        Frames with a Datetime column `time_col`.
    tolerance : timedelta
        Maximum accepted absolute time difference (inclusive).
    keep_unmatched : bool, default False
        Keep unmatched left rows instead of dropping them.
    time_col : str
        Timestamp column shared by both frames.
    right_time_name : str
        Name under which the matched right timestamp is kept.

    Returns
    -------
    pl.DataFrame
        Left columns, the matched right timestamp and the right
        columns not already present on the left, in chronological
        order of `left`.
    """
    left = left.sort(time_col, maintain_order=True)
    right = right.sort(time_col, maintain_order=True)
    idx = nearest_indices(
        left.get_column(time_col).dt.epoch("us").to_numpy(),
        right.get_column(time_col).dt.epoch("us").to_numpy(),
        # Exact comparison: 60 min 30 s exceeds a 60 min tolerance
        tolerance // timedelta(microseconds=1),
    )
    payload_cols = [
        c for c in right.columns if c != time_col and c not in left.columns
    ]
    payload = right.select(
        pl.col(time_col).alias(right_time_name), *payload_cols
    ).with_row_index(_MATCH)
    match = pl.Series(
        _MATCH,
        [int(i) if i >= 0 else None for i in idx],
        dtype=pl.UInt32,
    )
    keyed = left.with_row_index(_ROW).with_columns(match)
    merged = keyed.join(
        payload, on=_MATCH, how="left" if keep_unmatched else "inner"
    )
    return merged.sort(_ROW).drop(_ROW, _MATCH)

def align_station_weather(
        operational: pl.DataFrame,
        weather: pl.DataFrame,
        latitude: float,
        longitude: float,
        *,
        tolerance: timedelta = STATION_WEATHER_TOLERANCE,
        logger: Optional[Logger] = None,
    ) -> pl.DataFrame:
    """
    Pair station readings with weather and derive aligned fields.

    Adds the matched weather timestamp, solar elevation (clamped and
    normalized) and ``soc_clean``. Station rows with no weather
    observation within `tolerance` are dropped.
    """
    aligned = merge_nearest(operational, weather, tolerance)
    aligned = add_solar_geometry(aligned, latitude, longitude)
    aligned = aligned.with_columns(clean_soc())
    if logger is not None:
        logger(
            f"Aligned {aligned.height} of {operational.height} station "
            f"rows with weather (tolerance {tolerance}).",
            verbosity=1,
        )
    return aligned

def attach_operational(
        forecast_weather: pl.DataFrame,
        operational: pl.DataFrame,
        *,
        tolerance: timedelta = FORECAST_OPERATIONAL_TOLERANCE,
        logger: Optional[Logger] = None,
    ) -> pl.DataFrame:
    """
    Attach the nearest operational reading to each forecast weather row.

    Forecast rows are never dropped; rows without an operational
    reading within `tolerance` carry 0 for every operational field.
    """
    merged = merge_nearest(
        forecast_weather,
        operational,
        tolerance,
        keep_unmatched=True,
        right_time_name="operational_timestamp",
    )
    fields = [f.value for f in OPERATIONAL_FIELDS]
    missing = [f for f in fields if f not in merged.columns]
    merged = merged.with_columns(
        *[pl.col(f).fill_null(0.0) for f in fields if f in merged.columns],
        *[pl.lit(0.0, dtype=pl.Float64).alias(f) for f in missing],
    )
    if logger is not None:
        matched = merged.get_column("operational_timestamp").is_not_null().sum()
        logger(
            f"Matched operational data to {matched} of "
            f"{forecast_weather.height} forecast rows.",
            verbosity=1,
        )
    return merged
