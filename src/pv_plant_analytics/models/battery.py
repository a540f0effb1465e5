# stdlib
from dataclasses import dataclass
from datetime import date
from typing import Sequence
# thirdpartylib
import numpy as np
# projectlib
from pv_plant_analytics.models.inference import BatteryPrediction
from pv_plant_analytics.utils.errors import InferenceError

CLASS_LABELS = (
    "Oversized/Idle",
    "Balanced",
    "Undersized/High stress",
)


@dataclass(frozen=True)
class BatteryDayResult(object):
    """Battery sizing verdict for one calendar day."""
    day: date
    class_id: int
    stress: float
    utilization: float

    @property
    def label(self) -> str:
        return CLASS_LABELS[self.class_id]


def classify_days(
        dates: Sequence[date],
        prediction: BatteryPrediction,
    ) -> list[BatteryDayResult]:
    """
    Turn per-day model outputs into discrete results.

    The class is the argmax of the probabilities with ties going to the
    lowest index. Stress and utilization are clipped to [0, 1].
    """
    if len(dates) != len(prediction):
        raise InferenceError(
            f"Got {len(prediction)} battery predictions for "
            f"{len(dates)} days."
        )
    # np.argmax returns the first maximum
    classes = np.argmax(prediction.class_probabilities, axis=1)
    stress = np.clip(prediction.stress, 0.0, 1.0)
    utilization = np.clip(prediction.utilization, 0.0, 1.0)
    return [
        BatteryDayResult(day, int(c), float(s), float(u))
        for day, c, s, u in zip(dates, classes, stress, utilization)
    ]
