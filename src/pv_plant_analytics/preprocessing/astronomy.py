# stdlib
import math
from datetime import datetime
# thirdpartylib
import polars as pl
# projectlib
from pv_plant_analytics.data.schemas import Column

# Clamp range applied to elevations before normalization
MIN_ELEVATION = -5.0
MAX_ELEVATION = 90.0

_DEG = math.pi / 180.0


def solar_elevation(
        latitude: float,
        longitude: float,
        when: datetime,
    ) -> float:
    """
    Approximate solar elevation angle in degrees.

    Uses Cooper's declination formula and an hour angle measured from
    local clock noon:

        decl = 23.45 * sin(360 * (284 + doy) / 365)
        h    = 15 * (hour + minute / 60 - 12)
        elev = asin(sin(lat) sin(decl) + cos(lat) cos(decl) cos(h))

    Parameters
    ----------
    latitude : float
        Site latitude in degrees.
    longitude : float
        Site longitude in degrees. Accepted for a stable signature; the
        approximation applies no longitude or time-zone correction and
        no atmospheric refraction.
    when : datetime
        Local wall-clock time of the sample.

    Returns
    -------
    float
        Elevation in degrees, unclamped.
    """
    doy = when.timetuple().tm_yday
    decl = 23.45 * math.sin(360.0 * (284 + doy) / 365.0 * _DEG)
    hour_angle = 15.0 * (when.hour + when.minute / 60.0 - 12.0)
    lat = latitude * _DEG
    s = (
        math.sin(lat) * math.sin(decl * _DEG)
        + math.cos(lat) * math.cos(decl * _DEG) * math.cos(hour_angle * _DEG)
    )
    # Rounding can push the argument just outside asin's domain
    return math.degrees(math.asin(max(-1.0, min(1.0, s))))

def solar_elevation_expr(
        latitude: float,
        time_col: str = Column.TIMESTAMP.value,
    ) -> pl.Expr:
    """Vectorized `solar_elevation` over a Datetime column."""
    ts = pl.col(time_col)
    doy = ts.dt.ordinal_day().cast(pl.Float64)
    clock = ts.dt.hour().cast(pl.Float64) + ts.dt.minute().cast(pl.Float64) / 60.0
    decl = (23.45 * (360.0 * (284.0 + doy) / 365.0 * _DEG).sin()) * _DEG
    hour_angle = 15.0 * (clock - 12.0) * _DEG
    lat = latitude * _DEG
    s = (
        math.sin(lat) * decl.sin()
        + math.cos(lat) * decl.cos() * hour_angle.cos()
    )
    return s.clip(-1.0, 1.0).arcsin() / _DEG

def add_solar_geometry(
        frame: pl.DataFrame,
        latitude: float,
        longitude: float,
        *,
        time_col: str = Column.TIMESTAMP.value,
    ) -> pl.DataFrame:
    """
    Append clamped and normalized solar elevation columns.

    ``solar_elev`` is clamped to [-5, 90]; ``solar_elev_norm`` is
    max(0, solar_elev) / 90.
    """
    elevation = solar_elevation_expr(latitude, time_col).clip(
        MIN_ELEVATION, MAX_ELEVATION
    )
    return frame.with_columns(
        elevation.alias(Column.SOLAR_ELEV.value)
    ).with_columns(
        (pl.col(Column.SOLAR_ELEV.value).clip(0.0, MAX_ELEVATION) / 90.0)
        .alias(Column.SOLAR_ELEV_NORM.value)
    )
