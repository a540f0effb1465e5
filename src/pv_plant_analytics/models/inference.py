# stdlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence
# thirdpartylib
import numpy as np
from numpy.typing import ArrayLike, NDArray
# projectlib
from pv_plant_analytics.models.io import (
    METADATA_FILE,
    ModelMetadata,
    find_model_file,
    load_estimator,
    load_metadata,
)
from pv_plant_analytics.preprocessing.features import standardize
from pv_plant_analytics.utils.errors import InferenceError
from pv_plant_analytics.utils.logging import Logger
from pv_plant_analytics.utils.typing import Address, FloatArray

N_BATTERY_CLASSES = 3


def _is_keras(estimator: Any) -> bool:
    return type(estimator).__module__.split(".")[0] == "keras"

def _predict(estimator: Any, inputs: NDArray[Any]) -> Any:
    """Call the estimator, silencing Keras progress output."""
    try:
        if _is_keras(estimator):
            return estimator.predict(inputs.astype(np.float32), verbose=0)
        return estimator.predict(inputs)
    except (ValueError, TypeError) as e:
        raise InferenceError(f"Model rejected input of shape "
                             f"{inputs.shape}: {e}") from e


class ForecastModelSession(object):
    """
    Caller-owned handle on the power regression model.

    Feature vectors are given in raw units in ``metadata.features``
    order; the session standardizes them before calling the model and
    floors the output at 0 kW.
    """

    def __init__(self, estimator: Any, metadata: ModelMetadata) -> None:
        self._estimator = estimator
        self.metadata = metadata

    @classmethod
    def from_directory(
            cls,
            directory: Address,
            *,
            logger: Optional[Logger] = None,
        ) -> "ForecastModelSession":
        """Load ``scaler.json`` and the model artifact from `directory`."""
        directory = Path(directory)
        metadata = load_metadata(directory / METADATA_FILE)
        estimator = load_estimator(find_model_file(directory), logger=logger)
        return cls(estimator, metadata)

    @property
    def feature_names(self) -> tuple[str, ...]:
        return self.metadata.features

    def normalize(self, features: ArrayLike) -> FloatArray:
        return standardize(
            np.asarray(features, dtype=np.float64),
            self.metadata.mean,
            self.metadata.scale,
        )

    def raw_predict_many(self, features: ArrayLike) -> FloatArray:
        """
        Predict PV power in kW for each row of `features`.

        Raises
        ------
        InferenceError
            If the feature width does not match the metadata or the
            model returns a different number of outputs.
        """
        matrix = np.atleast_2d(np.asarray(features, dtype=np.float64))
        if matrix.shape[1] != self.metadata.n_features:
            raise InferenceError(
                f"Expected {self.metadata.n_features} features, "
                f"got {matrix.shape[1]}."
            )
        if matrix.shape[0] == 0:
            return np.zeros(0, dtype=np.float64)
        output = np.asarray(
            _predict(self._estimator, self.normalize(matrix)),
            dtype=np.float64,
        ).reshape(-1)
        if output.size != matrix.shape[0]:
            raise InferenceError(
                f"Model returned {output.size} values for "
                f"{matrix.shape[0]} rows."
            )
        return np.maximum(output, 0.0)

    def raw_predict(self, features: Sequence[float]) -> float:
        """Predict PV power in kW for a single feature vector."""
        vector = np.asarray(features, dtype=np.float64).reshape(1, -1)
        return float(self.raw_predict_many(vector)[0])


@dataclass(frozen=True)
class BatteryPrediction(object):
    """Per-day battery model outputs, floored at 0."""
    class_probabilities: FloatArray
    stress: FloatArray
    utilization: FloatArray

    def __len__(self) -> int:
        return self.stress.shape[0]


class BatteryModelSession(object):
    """
    Caller-owned handle on the multi-output battery sequence model.

    The model consumes ``(days, max_timesteps, n_features + 1)``
    sequences and returns class probabilities ``(days, 3)``, stress
    ``(days, 1)`` and utilization ``(days, 1)``.
    """

    def __init__(self, estimator: Any, metadata: ModelMetadata) -> None:
        if metadata.max_timesteps is None or metadata.max_timesteps < 1:
            raise InferenceError(
                "Battery model metadata does not define max_timesteps."
            )
        self._estimator = estimator
        self.metadata = metadata

    @classmethod
    def from_directory(
            cls,
            directory: Address,
            *,
            logger: Optional[Logger] = None,
        ) -> "BatteryModelSession":
        directory = Path(directory)
        metadata = load_metadata(directory / METADATA_FILE)
        estimator = load_estimator(find_model_file(directory), logger=logger)
        return cls(estimator, metadata)

    @property
    def feature_names(self) -> tuple[str, ...]:
        return self.metadata.features

    @property
    def max_timesteps(self) -> int:
        return int(self.metadata.max_timesteps or 0)

    def predict_batch(self, sequences: NDArray[np.float32]) -> BatteryPrediction:
        """
        Run the battery model over a batch of daily sequences.

        Raises
        ------
        InferenceError
            If the input is not ``(days, max_timesteps, n_features + 1)``
            or the model does not return three outputs of matching
            length.
        """
        sequences = np.asarray(sequences, dtype=np.float32)
        expected = (self.max_timesteps, self.metadata.n_features + 1)
        if sequences.ndim != 3 or sequences.shape[1:] != expected:
            raise InferenceError(
                f"Expected sequences of shape (days, {expected[0]}, "
                f"{expected[1]}), got {sequences.shape}."
            )
        days = sequences.shape[0]
        if days == 0:
            return BatteryPrediction(
                np.zeros((0, N_BATTERY_CLASSES)), np.zeros(0), np.zeros(0)
            )
        outputs = _predict(self._estimator, sequences)
        if not isinstance(outputs, (list, tuple)) or len(outputs) != 3:
            raise InferenceError(
                "Battery model must return class probabilities, stress "
                "and utilization."
            )
        try:
            probs = np.asarray(outputs[0], dtype=np.float64).reshape(
                days, N_BATTERY_CLASSES
            )
            stress = np.asarray(outputs[1], dtype=np.float64).reshape(days)
            utilization = np.asarray(outputs[2], dtype=np.float64).reshape(days)
        except ValueError as e:
            raise InferenceError(
                f"Battery model output does not match {days} days: {e}"
            ) from e
        return BatteryPrediction(
            np.maximum(probs, 0.0),
            np.maximum(stress, 0.0),
            np.maximum(utilization, 0.0),
        )
