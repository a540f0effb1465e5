# stdlib
from dataclasses import dataclass
# projectlib
from pv_plant_analytics.config.env import fetch_var, fetch_optional
from pv_plant_analytics.utils.errors import MissingInputError

DEFAULT_PERFORMANCE_RATIO = 0.8


@dataclass(frozen=True)
class StationConfig(object):
    """
    Static description of a PV station.

    Attributes
    ----------
    latitude, longitude : float
        Site coordinates in degrees.
    inverter_power_kw : float
        Rated inverter power. Takes precedence as the capacity cap.
    panel_power_w : float
        Nameplate power of a single panel.
    panel_count : int
        Number of installed panels.
    performance_ratio : float, default 0.8
        System derate applied after the capacity cap.
    """
    latitude: float
    longitude: float
    inverter_power_kw: float = 0.0
    panel_power_w: float = 0.0
    panel_count: int = 0
    performance_ratio: float = DEFAULT_PERFORMANCE_RATIO

    @property
    def power_cap_kw(self) -> float:
        """Inverter rating if known, otherwise total panel nameplate."""
        if self.inverter_power_kw > 0:
            return self.inverter_power_kw
        return self.panel_power_w * self.panel_count / 1000.0


def station_from_env() -> StationConfig:
    """
    Read the station configuration from the environment.

    Raises
    ------
    MissingInputError
        If the coordinates are not configured or any value is not
        numeric.
    """
    try:
        return StationConfig(
            latitude=float(fetch_var("STATION_LATITUDE")),
            longitude=float(fetch_var("STATION_LONGITUDE")),
            inverter_power_kw=float(fetch_optional("INVERTER_POWER_KW", "0")),
            panel_power_w=float(fetch_optional("PANEL_POWER_W", "0")),
            panel_count=int(fetch_optional("PANEL_COUNT", "0")),
            performance_ratio=float(
                fetch_optional(
                    "PERFORMANCE_RATIO", str(DEFAULT_PERFORMANCE_RATIO)
                )
            ),
        )
    except (RuntimeError, ValueError) as e:
        raise MissingInputError(
            f"Station configuration not found or invalid: {e}"
        ) from e
