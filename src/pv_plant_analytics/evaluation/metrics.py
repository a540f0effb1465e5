# stdlib
from dataclasses import dataclass
# thirdpartylib
import numpy as np
from numpy.typing import ArrayLike
from sklearn.metrics import mean_absolute_error, root_mean_squared_error


def safe_mape(
        y_true: ArrayLike,
        y_pred: ArrayLike,
        eps: float = 1e-6
    ) -> float:
    """
    Numerically safe Mean Absolute Percentage Error (MAPE).

    The denominator is clamped to `eps` to avoid division by zero and
    excessive inflation when y_true is near zero.

    Returns
    -------
    float
        MAPE expressed as a percentage.
    """
    y_true = np.asarray(y_true, dtype=np.float64)
    y_pred = np.asarray(y_pred, dtype=np.float64)
    return float(
        np.mean(
            np.abs((y_true - y_pred) / np.maximum(eps, y_true))
        ) * 100.0
    )

def strict_r2(
    y_true: ArrayLike,
    y_pred: ArrayLike,
    eps: float = 1e-12
) -> float:
    """
    Textbook coefficient of determination.

        R² = 1 - Σ(y_true - y_pred)² / Σ(y_true - ȳ_true)²

    Unlike :func:`sklearn.metrics.r2_score`, a (near) zero variance of
    ``y_true`` yields ``NaN`` rather than a conventional 0.0 or 1.0.
    """
    y_true = np.asarray(y_true, dtype=np.float64)
    y_pred = np.asarray(y_pred, dtype=np.float64)
    denom = np.sum((y_true - y_true.mean()) ** 2)
    if denom <= eps:
        return float("nan")
    return float(1.0 - np.sum((y_true - y_pred) ** 2) / denom)


@dataclass(frozen=True)
class CalibrationReport(object):
    """Daily-energy error of the forecast before and after calibration."""
    days: int
    mae_before: float
    rmse_before: float
    mae_after: float
    rmse_after: float
    r2_before: float
    r2_after: float
    mape_before: float
    mape_after: float

    def summary(self) -> str:
        return (
            f"{self.days} days, "
            f"MAE {self.mae_before:.3f} -> {self.mae_after:.3f} kWh, "
            f"RMSE {self.rmse_before:.3f} -> {self.rmse_after:.3f} kWh, "
            f"R2 {self.r2_before:.3f} -> {self.r2_after:.3f}, "
            f"MAPE {self.mape_before:.1f}% -> {self.mape_after:.1f}%"
        )


def calibration_report(
        true_kwh: ArrayLike,
        pred_kwh: ArrayLike,
        calibrated_kwh: ArrayLike,
    ) -> CalibrationReport:
    """Compare raw and calibrated daily energy against the measurement."""
    y_true = np.asarray(true_kwh, dtype=np.float64)
    before = np.asarray(pred_kwh, dtype=np.float64)
    after = np.asarray(calibrated_kwh, dtype=np.float64)
    if y_true.size == 0:
        raise ValueError("Cannot report on zero days.")
    return CalibrationReport(
        days=int(y_true.size),
        mae_before=float(mean_absolute_error(y_true, before)),
        rmse_before=float(root_mean_squared_error(y_true, before)),
        mae_after=float(mean_absolute_error(y_true, after)),
        rmse_after=float(root_mean_squared_error(y_true, after)),
        r2_before=strict_r2(y_true, before),
        r2_after=strict_r2(y_true, after),
        mape_before=safe_mape(y_true, before),
        mape_after=safe_mape(y_true, after),
    )
