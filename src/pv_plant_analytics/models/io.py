# stdlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
# thirdpartylib
import joblib # pyright: ignore[reportMissingTypeStubs]
import numpy as np
from numpy.typing import NDArray
# projectlib
from pv_plant_analytics.utils.errors import InferenceError
from pv_plant_analytics.utils.logging import Logger
from pv_plant_analytics.utils.paths import validate_address
from pv_plant_analytics.utils.typing import Address

METADATA_FILE = "scaler.json"
KERAS_SUFFIXES = (".keras", ".h5")
# Searched in order inside a model directory
MODEL_CANDIDATES = ("model.keras", "model.h5", "model.joblib")


def _frozen(values: Any) -> NDArray[np.float64]:
    array = np.asarray(values, dtype=np.float64).reshape(-1)
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class ModelMetadata(object):
    """
    Static model statistics loaded once and shared by reference.

    Attributes
    ----------
    features : tuple[str, ...]
        Ordered feature names the model expects.
    mean, scale : ndarray
        Read-only per-feature standardization statistics.
    max_timesteps : int, optional
        Sequence length for sequence models, None otherwise.
    """
    features: tuple[str, ...]
    mean: NDArray[np.float64]
    scale: NDArray[np.float64]
    max_timesteps: Optional[int] = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ModelMetadata":
        try:
            features = tuple(str(f) for f in payload["features"])
            mean = _frozen(payload["mean"])
            scale = _frozen(payload["scale"])
        except (KeyError, TypeError, ValueError) as e:
            raise InferenceError(f"Malformed model metadata: {e}") from e
        if not (len(features) == mean.size == scale.size):
            raise InferenceError(
                f"Model metadata lists {len(features)} features but "
                f"{mean.size} means and {scale.size} scales."
            )
        max_timesteps = payload.get("max_timesteps")
        return cls(
            features,
            mean,
            scale,
            int(max_timesteps) if max_timesteps is not None else None,
        )

    @property
    def n_features(self) -> int:
        return len(self.features)


def load_metadata(path: Address) -> ModelMetadata:
    """Read ``scaler.json`` (features, mean, scale, max_timesteps)."""
    try:
        path = validate_address(path, extension=".json")
    except (FileNotFoundError, NotADirectoryError) as e:
        raise InferenceError(f"Model metadata not found: {path}") from e
    with open(path, "r", encoding="utf-8") as file:
        try:
            payload = json.load(file)
        except json.JSONDecodeError as e:
            raise InferenceError(f"Model metadata is not JSON: {path}") from e
    return ModelMetadata.from_dict(payload)

def load_estimator(path: Address, *, logger: Optional[Logger] = None) -> Any:
    """
    Load a pretrained model from disk.

    Keras artifacts (``.keras``, ``.h5``) are restored with
    ``keras.saving.load_model``; anything else is read with `joblib`.

    Raises
    ------
    InferenceError
        If the file does not exist or cannot be deserialized.
    """
    path = Path(path)
    if not path.is_file():
        raise InferenceError(f"Model file not found: {path}")
    try:
        if path.suffix in KERAS_SUFFIXES:
            # Keras pulls in a backend on import; only pay for it here
            import keras # pyright: ignore[reportMissingTypeStubs]
            model = keras.saving.load_model(path, compile=False)
        else:
            model = joblib.load(path) # pyright: ignore[reportUnknownMemberType]
    except (OSError, ValueError, EOFError) as e:
        raise InferenceError(f"Could not load model from {path}: {e}") from e
    if logger is not None:
        logger(f"Loaded {type(model).__name__} from {path}", verbosity=1)
    return model

def find_model_file(directory: Address) -> Path:
    """First existing model artifact in `directory`."""
    directory = Path(directory)
    for name in MODEL_CANDIDATES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    raise InferenceError(
        f"No model artifact ({', '.join(MODEL_CANDIDATES)}) in {directory}"
    )

def save_model(model: Any, output_dir: Address, *, name: str = "model") -> Path:
    """Persist a non-Keras model next to its metadata with `joblib`."""
    output_dir = validate_address(output_dir, mkdir=True)
    path = output_dir / f"{name}.joblib"
    joblib.dump(model, path) # pyright: ignore[reportUnknownMemberType]
    return path
