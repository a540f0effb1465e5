# stdlib
import math
from typing import Optional, Sequence
# thirdpartylib
import numpy as np
import polars as pl
# projectlib
from pv_plant_analytics.data.naming import parse_lag
from pv_plant_analytics.data.schemas import Column
from pv_plant_analytics.utils.typing import FloatArray

_TIME = Column.TIMESTAMP.value


def _col(column: Column) -> pl.Expr:
    return pl.col(column.value)

def _hour() -> pl.Expr:
    return pl.col(_TIME).dt.hour().cast(pl.Float64)

def _day_angle() -> pl.Expr:
    return 2 * math.pi * pl.col(_TIME).dt.ordinal_day().cast(pl.Float64) / 365.0

def _hour_sin() -> pl.Expr:
    return (2 * math.pi * _hour() / 24.0).sin()

def _float(column: Column) -> pl.Expr:
    return _col(column).cast(pl.Float64)


# Named features derivable from an aligned or forecast frame. A name
# only resolves when every column its expression reads is present.
FEATURES: dict[str, pl.Expr] = {
    # Calendar
    "hour": _hour(),
    "hour_sin": _hour_sin(),
    "hour_cos": (2 * math.pi * _hour() / 24.0).cos(),
    "day_sin": _day_angle().sin(),
    "day_cos": _day_angle().cos(),
    # Weather
    "temperature_2m": _float(Column.TEMPERATURE),
    "cloud_cover": _float(Column.CLOUD_COVER),
    "irradiance_wm2": _float(Column.IRRADIANCE),
    "shortwave_radiation": _float(Column.IRRADIANCE),
    "wind_speed_10m": _float(Column.WIND_SPEED),
    "solar_elev": _float(Column.SOLAR_ELEV),
    "solar_elev_norm": _float(Column.SOLAR_ELEV_NORM),
    # Interactions
    "effective_irradiance": (
        _col(Column.IRRADIANCE) * (1 - _col(Column.CLOUD_COVER) / 100.0)
    ),
    "irradiance_sq": _col(Column.IRRADIANCE) ** 2,
    "temp_sq": _col(Column.TEMPERATURE) ** 2,
    "hour_sin_irr": _hour_sin() * _col(Column.IRRADIANCE),
    # Operational, forecast model spelling
    "battery_soc": _float(Column.BATTERY_SOC),
    "battery_power": _float(Column.BATTERY_POWER),
    "grid_power": _float(Column.GRID_POWER),
    "load_power": _float(Column.LOAD_POWER),
    "power_kw": _float(Column.PV_POWER),
    # Operational, battery model spelling
    "soc_clean": _float(Column.SOC_CLEAN),
    "battery_power_kw": _float(Column.BATTERY_POWER),
    "batt_temp_c": _float(Column.BATT_TEMP),
    "pv_power_kw": _float(Column.PV_POWER),
    "grid_power_kw": _float(Column.GRID_POWER),
    "load_power_kw": _float(Column.LOAD_POWER),
}
# Operational features that may carry a `_lag1` suffix
LAGGABLE_FEATURES = frozenset(
    {
        "battery_soc",
        "battery_power",
        "grid_power",
        "load_power",
        "power_kw",
        "soc_clean",
        "battery_power_kw",
        "batt_temp_c",
        "pv_power_kw",
        "grid_power_kw",
        "load_power_kw",
    }
)


def _available(expr: pl.Expr, columns: Sequence[str]) -> bool:
    return all(name in columns for name in expr.meta.root_names())

def resolve_feature(name: str, columns: Sequence[str]) -> Optional[pl.Expr]:
    """
    Expression computing feature `name`, or None if it cannot be built.

    ``<base>_lag1`` of an operational feature resolves to the value of
    `base` one row earlier, with 0 for the first row. Other lags are not
    computed. Rows must be in chronological order.
    """
    expr = FEATURES.get(name)
    if expr is not None:
        return expr if _available(expr, columns) else None
    lag = parse_lag(name)
    if lag is not None:
        base, k = lag
        if k != 1 or base not in LAGGABLE_FEATURES:
            return None
        base_expr = resolve_feature(base, columns)
        if base_expr is None:
            return None
        return base_expr.shift(k).fill_null(0.0)
    return None

def imputed_features(
        names: Sequence[str],
        columns: Sequence[str],
    ) -> list[str]:
    """Feature names that will fall back to their stored mean."""
    return [n for n in names if resolve_feature(n, columns) is None]

def historical_variant(frame: pl.DataFrame) -> pl.DataFrame:
    """
    Adapt an aligned historical frame to the forecast feature contract.

    Historical weather carries no wind speed, so it is zeroed, and the
    elevation is re-derived from its normalized value, which removes
    the negative range.
    """
    return frame.with_columns(
        pl.lit(0.0, dtype=pl.Float64).alias(Column.WIND_SPEED.value),
        (_col(Column.SOLAR_ELEV_NORM) * 90.0).alias(Column.SOLAR_ELEV.value),
    )

def build_feature_matrix(
        frame: pl.DataFrame,
        feature_names: Sequence[str],
        means: Sequence[float],
    ) -> FloatArray:
    """
    Compute an ordered feature matrix from a frame of samples.

    Parameters
    ----------
    frame : pl.DataFrame
        Samples with a ``timestamp`` column. Rows are put into
        chronological order (stable) before lags are taken.
    feature_names : Sequence[str]
        Ordered feature names expected by the model.
    means : Sequence[float]
        Per-position feature means used for names that cannot be
        computed from `frame`. Positions beyond its length take 0.

    Returns
    -------
    FloatArray
        Array of shape ``(rows, len(feature_names))``.
    """
    if not feature_names:
        return np.zeros((frame.height, 0), dtype=np.float64)
    frame = frame.sort(_TIME, maintain_order=True)
    columns = frame.columns
    exprs: list[pl.Expr] = []
    for i, name in enumerate(feature_names):
        expr = resolve_feature(name, columns)
        if expr is None:
            fallback = float(means[i]) if i < len(means) else 0.0
            expr = pl.lit(fallback, dtype=pl.Float64)
        exprs.append(expr.cast(pl.Float64).alias(f"f{i}"))
    # Keep a real column in the select so literals broadcast to the height
    matrix = frame.select(pl.col(_TIME), *exprs).drop(_TIME)
    return matrix.to_numpy().astype(np.float64, copy=False)

def standardize(
        values: FloatArray,
        mean: Sequence[float],
        scale: Sequence[float],
    ) -> FloatArray:
    """
    Per-feature ``(value - mean) / scale`` over the last axis.

    Features with a zero scale are emitted as 0.
    """
    values = np.asarray(values, dtype=np.float64)
    mean_ = np.asarray(mean, dtype=np.float64)
    scale_ = np.asarray(scale, dtype=np.float64)
    if values.shape[-1] != mean_.size or mean_.size != scale_.size:
        raise ValueError(
            f"Cannot standardize {values.shape[-1]} features with "
            f"{mean_.size} means and {scale_.size} scales."
        )
    safe = np.where(scale_ == 0, 1.0, scale_)
    out = (values - mean_) / safe
    return np.where(scale_ == 0, 0.0, out)
