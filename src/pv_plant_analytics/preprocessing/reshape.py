# stdlib
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Sequence
# thirdpartylib
import numpy as np
import polars as pl
from numpy.typing import NDArray
# projectlib
from pv_plant_analytics.data.schemas import Column
from pv_plant_analytics.preprocessing.features import (
    build_feature_matrix,
    standardize
)


@dataclass(frozen=True)
class DailySequences(object):
    """
    Fixed-length per-day model input.

    Attributes
    ----------
    dates : tuple[date, ...]
        Calendar days in ascending order, one per leading index.
    values : ndarray of float32
        Shape ``(days, max_timesteps, n_features + 1)``. The last
        channel is 1.0 for a real sample and 0.0 for padding; padded
        steps are all-zero.
    """
    dates: tuple[date, ...]
    values: NDArray[np.float32]

    @property
    def n_features(self) -> int:
        return self.values.shape[-1] - 1

    @property
    def max_timesteps(self) -> int:
        return self.values.shape[1]

    @property
    def mask(self) -> NDArray[np.bool_]:
        """Validity of each ``(day, timestep)``."""
        return self.values[..., -1] > 0

    def __len__(self) -> int:
        return len(self.dates)


def build_daily_sequences(
        frame: pl.DataFrame,
        feature_names: Sequence[str],
        max_timesteps: int,
        mean: Sequence[float],
        scale: Sequence[float],
        *,
        dates: Optional[Iterable[date]] = None,
    ) -> DailySequences:
    """
    Convert aligned samples into one padded, masked sequence per day.

    Rows are grouped by calendar date in chronological order. Each day
    keeps its earliest `max_timesteps` samples; later samples are
    dropped. Feature channels of real samples are standardized with
    `mean` and `scale`; the validity channel and padding are not.

    Parameters
    ----------
    frame : pl.DataFrame
        Aligned samples with a ``timestamp`` column.
    feature_names : Sequence[str]
        Ordered model feature names.
    max_timesteps : int
        Sequence length per day.
    mean, scale : Sequence[float]
        Per-feature standardization statistics.
    dates : Iterable[date], optional
        Days to emit. Defaults to the days present in `frame`. A day
        without samples yields an all-invalid sequence.

    Returns
    -------
    DailySequences
    """
    if max_timesteps < 1:
        raise ValueError(f"max_timesteps must be positive, got {max_timesteps}.")
    frame = frame.sort(Column.TIMESTAMP.value, maintain_order=True)
    row_dates: list[date] = (
        frame.get_column(Column.TIMESTAMP.value).dt.date().to_list()
    )
    days = sorted(set(row_dates if dates is None else dates))
    # Stable grouping of row positions by date
    groups: dict[date, list[int]] = defaultdict(list)
    for row, day in enumerate(row_dates):
        groups[day].append(row)

    n_features = len(feature_names)
    features = build_feature_matrix(frame, feature_names, mean)
    values = np.zeros((len(days), max_timesteps, n_features + 1), np.float32)
    for d, day in enumerate(days):
        rows = groups.get(day, [])[:max_timesteps]
        if not rows:
            continue
        n = len(rows)
        values[d, :n, :n_features] = standardize(features[rows], mean, scale)
        values[d, :n, n_features] = 1.0

    return DailySequences(tuple(days), values)
