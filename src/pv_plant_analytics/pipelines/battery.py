# stdlib
from collections import Counter
from dataclasses import dataclass
from typing import Optional
# thirdpartylib
import polars as pl
# projectlib
from pv_plant_analytics.config.env import DataPaths
from pv_plant_analytics.config.station import StationConfig
from pv_plant_analytics.data.schemas import Column
from pv_plant_analytics.models.battery import BatteryDayResult, classify_days
from pv_plant_analytics.models.inference import BatteryModelSession
from pv_plant_analytics.pipelines.history import load_station_history
from pv_plant_analytics.preprocessing.reshape import build_daily_sequences
from pv_plant_analytics.utils.errors import MissingInputError
from pv_plant_analytics.utils.logging import Logger
from pv_plant_analytics.utils.runtime import check_cancelled
from pv_plant_analytics.utils.typing import CancelCheck

SAMPLE_COLUMNS = (
    Column.TIMESTAMP.value,
    Column.SOC_CLEAN.value,
    Column.BATT_TEMP.value,
)


@dataclass(frozen=True)
class BatteryAnalysisResult(object):
    """
    Per-day battery verdicts plus the aligned samples behind them.

    ``samples`` holds timestamp, ``soc_clean`` and ``batt_temp_c`` in
    chronological order for plotting by the caller.
    """
    days: tuple[BatteryDayResult, ...]
    samples: pl.DataFrame

    def to_frame(self) -> pl.DataFrame:
        return pl.DataFrame(
            {
                Column.DATE.value: [d.day for d in self.days],
                "class_id": [d.class_id for d in self.days],
                "label": [d.label for d in self.days],
                "stress": [d.stress for d in self.days],
                "utilization": [d.utilization for d in self.days],
            },
            schema={
                Column.DATE.value: pl.Date,
                "class_id": pl.Int64,
                "label": pl.String,
                "stress": pl.Float64,
                "utilization": pl.Float64,
            },
        )


def run_battery_analysis(
        session: BatteryModelSession,
        station: StationConfig,
        paths: DataPaths,
        *,
        logger: Optional[Logger] = None,
        should_cancel: Optional[CancelCheck] = None,
    ) -> BatteryAnalysisResult:
    """
    Classify each day of station history as idle, balanced or stressed.

    Station readings are aligned with the weather history (60 minute
    tolerance), grouped into per-day sequences and scored by the
    battery model in a single batch.

    Raises
    ------
    MissingInputError
        If station data or weather history is missing, or nothing could
        be aligned.
    InferenceError
        If the model input or output shape is wrong.
    PipelineCancelled
        If `should_cancel` returns True between stages.
    """
    logger = logger or Logger()
    check_cancelled(should_cancel, "loading station history")
    aligned = load_station_history(station, paths, logger=logger)
    if aligned.is_empty():
        raise MissingInputError(
            "No station readings lie within the weather tolerance; "
            "nothing to analyse."
        )

    check_cancelled(should_cancel, "building daily sequences")
    sequences = build_daily_sequences(
        aligned,
        session.feature_names,
        session.max_timesteps,
        session.metadata.mean,
        session.metadata.scale,
    )
    logger(
        f"Built {len(sequences)} daily sequences of "
        f"{sequences.max_timesteps} steps "
        f"({int(sequences.mask.sum())} valid).",
        verbosity=1,
    )

    check_cancelled(should_cancel, "battery inference")
    prediction = session.predict_batch(sequences.values)
    days = tuple(classify_days(sequences.dates, prediction))
    counts = Counter(d.label for d in days)
    logger(
        "Battery days: " + ", ".join(f"{k}={v}" for k, v in counts.items()),
        verbosity=1,
    )
    samples = aligned.sort(
        Column.TIMESTAMP.value, maintain_order=True
    ).select(SAMPLE_COLUMNS)
    return BatteryAnalysisResult(days, samples)
