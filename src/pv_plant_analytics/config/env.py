# stdlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
# thirdpartylib
from dotenv import load_dotenv
# projectlib
from pv_plant_analytics.utils.paths import first_existing

def fetch_var(name: str) -> str:
    """Fetch a required environment variable or fail loudly."""
    try:
        value = os.environ[name].strip()
        if not value:
            raise RuntimeError(
                f"Environment variable '{name}' is empty."
            )
        return value
    except KeyError as e:
        raise RuntimeError(
            f"Environment variable '{name}' is not set. "
            "Create a .env file or define the variable."
        ) from e

def fetch_optional(name: str, default: str) -> str:
    """Fetch an environment variable, using `default` if unset or blank."""
    value = os.environ.get(name, "").strip()
    return value or default


# Load env variables
load_dotenv()


@dataclass(frozen=True)
class DataPaths(object):
    """
    Location of the CSV inputs under a single data root.

    Weather files have a primary and a legacy location; the resolver
    methods return whichever exists first, or None.
    """
    root: Path

    @property
    def station(self) -> Path:
        return self.root / "csv" / "station_data.csv"

    @property
    def weather_history_candidates(self) -> tuple[Path, ...]:
        return (
            self.root / "csv" / "weather_data.csv",
            self.root / "csv" / "weather" / "weather_last_max_period.csv",
        )

    @property
    def weather_forecast_candidates(self) -> tuple[Path, ...]:
        return (
            self.root / "csv" / "weather" / "weather_next_7days.csv",
            self.root / "csv" / "weather_next_7days.csv",
        )

    def weather_history(self) -> Optional[Path]:
        return first_existing(*self.weather_history_candidates)

    def weather_forecast(self) -> Optional[Path]:
        return first_existing(*self.weather_forecast_candidates)


def data_paths_from_env() -> DataPaths:
    """Build `DataPaths` from ``DATA_ROOT``."""
    return DataPaths(Path(fetch_var("DATA_ROOT")))

def model_root_from_env() -> Path:
    """Directory holding ``prediction/`` and ``battery/`` model folders."""
    return Path(fetch_optional("MODEL_ROOT", "models"))
