# stdlib
from typing import Sequence, Union
# thirdpartylib
import polars as pl
# projectlib
from pv_plant_analytics.data.schemas import Column

SOC_MIN = 0.0
SOC_MAX = 100.0


def zero_gap_fill(expr: pl.Expr) -> pl.Expr:
    """
    Treat zeros as missing and fill them from neighbouring readings.

    Each zero takes the last preceding non-zero value; zeros before the
    first non-zero value take that first value instead. A column with
    no non-zero value stays all-zero. The operation is idempotent and
    assumes chronological row order.
    """
    return (
        pl.when(expr != 0)
        .then(expr)
        .fill_null(strategy="forward")
        .fill_null(strategy="backward")
        .fill_null(0.0)
    )

def fill_zero_gaps(values: Union[pl.Series, Sequence[float]]) -> pl.Series:
    """Apply `zero_gap_fill` to a single series of readings."""
    series = pl.Series("values", values, dtype=pl.Float64)
    name = series.name
    return series.to_frame().select(zero_gap_fill(pl.col(name))).to_series()

def clean_soc(source: str = Column.BATTERY_SOC.value) -> pl.Expr:
    """State of charge clamped to [0, 100] and gap-filled."""
    clamped = pl.col(source).clip(SOC_MIN, SOC_MAX)
    return zero_gap_fill(clamped).alias(Column.SOC_CLEAN.value)
