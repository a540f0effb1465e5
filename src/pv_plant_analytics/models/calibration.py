# stdlib
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence
# thirdpartylib
import numpy as np
import polars as pl
from numpy.typing import ArrayLike
# projectlib
from pv_plant_analytics.data.schemas import Column
from pv_plant_analytics.evaluation.metrics import calibration_report
from pv_plant_analytics.models.inference import ForecastModelSession
from pv_plant_analytics.models.postprocessing import (
    PostProcessingChain,
    fade_factor
)
from pv_plant_analytics.preprocessing.features import (
    build_feature_matrix,
    historical_variant
)
from pv_plant_analytics.utils.errors import MissingInputError
from pv_plant_analytics.utils.logging import Logger
from pv_plant_analytics.utils.typing import FloatArray

# Station samples are 5-minute readings
SAMPLE_INTERVAL_H = 5.0 / 60.0
DAYLIGHT_IRRADIANCE = 50.0
MIN_CALIBRATION_DAYS = 3
MIN_PREDICTION_VARIANCE = 1e-8


@dataclass(frozen=True)
class Calibration(object):
    """Linear correction ``y = slope * x + intercept`` of daily energy."""
    slope: float = 1.0
    intercept: float = 0.0

    @classmethod
    def identity(cls) -> "Calibration":
        return cls(1.0, 0.0)

    @property
    def is_identity(self) -> bool:
        return self.slope == 1.0 and self.intercept == 0.0

    def apply(self, values: ArrayLike) -> FloatArray:
        return self.slope * np.asarray(values, dtype=np.float64) + self.intercept


@dataclass(frozen=True)
class DailyEnergy(object):
    """Per-day measured and predicted energy in kWh, ascending dates."""
    dates: tuple[date, ...]
    true_kwh: FloatArray
    pred_kwh: FloatArray


def daily_energy(
        dates: Sequence[date],
        true_kw: ArrayLike,
        pred_kw: ArrayLike,
        *,
        interval_h: float = SAMPLE_INTERVAL_H,
    ) -> DailyEnergy:
    """Integrate power samples into daily energy by fixed-interval sums."""
    frame = pl.DataFrame(
        {
            "date": pl.Series(list(dates), dtype=pl.Date),
            "true": np.asarray(true_kw, dtype=np.float64),
            "pred": np.asarray(pred_kw, dtype=np.float64),
        }
    )
    daily = (
        frame.group_by("date", maintain_order=True)
        .agg(
            (pl.col("true").sum() * interval_h).alias("true"),
            (pl.col("pred").sum() * interval_h).alias("pred"),
        )
        .sort("date")
    )
    return DailyEnergy(
        tuple(daily.get_column("date").to_list()),
        daily.get_column("true").to_numpy(),
        daily.get_column("pred").to_numpy(),
    )

def fit_linear_calibration(
        pred_kwh: ArrayLike,
        true_kwh: ArrayLike,
        *,
        min_days: int = MIN_CALIBRATION_DAYS,
        min_variance: float = MIN_PREDICTION_VARIANCE,
    ) -> Calibration:
    """
    Ordinary least squares fit of measured on predicted daily energy.

    Uses population statistics:

        a = Cov(x, y) / Var(x),   b = mean(y) - a * mean(x)

    Returns the identity calibration when fewer than `min_days` pairs
    are given or when Var(x) is below `min_variance`.
    """
    x = np.asarray(pred_kwh, dtype=np.float64)
    y = np.asarray(true_kwh, dtype=np.float64)
    if x.shape != y.shape:
        raise ValueError(
            f"Mismatched calibration inputs: {x.shape} vs {y.shape}."
        )
    if x.size < min_days:
        return Calibration.identity()
    x_mean = x.mean()
    y_mean = y.mean()
    var = np.mean((x - x_mean) ** 2)
    if var < min_variance:
        return Calibration.identity()
    slope = np.mean((x - x_mean) * (y - y_mean)) / var
    return Calibration(float(slope), float(y_mean - slope * x_mean))


class CalibrationEngine(object):
    """
    Derive the forecast calibration from historical station data.

    The raw model is run over the historical aligned rows and its
    output passed through the pre-calibration steps of the
    post-processing chain. Daylight samples are integrated into daily
    energy, which is regressed against the measured PV energy.
    """

    def __init__(
            self,
            session: ForecastModelSession,
            chain: PostProcessingChain,
            *,
            logger: Optional[Logger] = None,
        ) -> None:
        self.session = session
        self.chain = chain
        self.logger = logger or Logger()

    def daily_pairs(self, history: pl.DataFrame) -> DailyEnergy:
        """Measured vs pre-calibration predicted energy of usable days."""
        frame = historical_variant(history).sort(
            Column.TIMESTAMP.value, maintain_order=True
        )
        features = build_feature_matrix(
            frame, self.session.feature_names, self.session.metadata.mean
        )
        raw = self.session.raw_predict_many(features)
        irradiance = frame.get_column(Column.IRRADIANCE.value).to_numpy()
        fade = fade_factor(
            irradiance,
            frame.get_column(Column.CLOUD_COVER.value).to_numpy(),
            frame.get_column(Column.SOLAR_ELEV_NORM.value).to_numpy(),
        )
        predicted = self.chain.pre_calibration(raw, fade)
        measured = np.maximum(
            frame.get_column(Column.PV_POWER.value).to_numpy(), 0.0
        )
        daylight = irradiance > DAYLIGHT_IRRADIANCE
        dates = frame.get_column(Column.TIMESTAMP.value).dt.date().to_list()
        energy = daily_energy(
            [d for d, keep in zip(dates, daylight) if keep],
            measured[daylight],
            predicted[daylight],
        )
        usable = energy.true_kwh > 0
        return DailyEnergy(
            tuple(d for d, keep in zip(energy.dates, usable) if keep),
            energy.true_kwh[usable],
            energy.pred_kwh[usable],
        )

    def fit(self, history: pl.DataFrame) -> Calibration:
        """
        Compute the calibration for one forecast run.

        Raises
        ------
        MissingInputError
            If `history` holds no aligned station/weather rows.
        """
        if history.is_empty():
            raise MissingInputError(
                "No overlap between station and weather history; "
                "calibration requires aligned historical data."
            )
        pairs = self.daily_pairs(history)
        calibration = fit_linear_calibration(pairs.pred_kwh, pairs.true_kwh)
        if calibration.is_identity:
            self.logger(
                f"Identity calibration ({len(pairs.dates)} usable days).",
                verbosity=2,
            )
            return calibration
        report = calibration_report(
            pairs.true_kwh, pairs.pred_kwh, calibration.apply(pairs.pred_kwh)
        )
        self.logger(
            f"Calibration a={calibration.slope:.3f}, "
            f"b={calibration.intercept:.3f}: {report.summary()}",
            verbosity=1,
        )
        return calibration
