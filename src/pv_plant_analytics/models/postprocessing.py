# stdlib
from dataclasses import dataclass
from typing import TYPE_CHECKING
# thirdpartylib
import numpy as np
from numpy.typing import ArrayLike
# projectlib
from pv_plant_analytics.config.station import (
    DEFAULT_PERFORMANCE_RATIO,
    StationConfig
)
from pv_plant_analytics.utils.typing import FloatArray

if TYPE_CHECKING:
    # calibration imports this module at runtime
    from pv_plant_analytics.models.calibration import Calibration

# Irradiance at which the fade factor saturates, W/m^2
FADE_IRRADIANCE_REF = 800.0
FADE_CLOUD_REF = 300.0
FADE_ELEVATION_WEIGHT = 0.3


def fade_factor(
        irradiance: ArrayLike,
        cloud_cover: ArrayLike,
        solar_elev_norm: ArrayLike,
    ) -> FloatArray:
    """
    Confidence damping for cloudy or low-sun samples, in [0, 1].

        clip((irr / 800) * (1 - cloud / 300) + 0.3 * elev_norm, 0, 1)
    """
    irr = np.asarray(irradiance, dtype=np.float64)
    cloud = np.asarray(cloud_cover, dtype=np.float64)
    elev = np.asarray(solar_elev_norm, dtype=np.float64)
    raw = (
        (irr / FADE_IRRADIANCE_REF) * (1.0 - cloud / FADE_CLOUD_REF)
        + elev * FADE_ELEVATION_WEIGHT
    )
    return np.clip(raw, 0.0, 1.0)


@dataclass(frozen=True)
class PostProcessingChain(object):
    """
    Ordered conversion of raw model output (kW) into reported power (W).

    The steps are applied in this order and are not commutative:

    1. clamp negative raw output to 0
    2. multiply by the fade factor
    3. divide by the performance ratio (if > 0)
    4. clip to capacity (if > 0)
    5. multiply by the calibration slope (the intercept is unused)
    6. clamp negative to 0
    7. clip to capacity (if > 0)
    8. convert kW to W

    Steps 1-4 are `pre_calibration`, steps 5-8 are `finalize`; the
    calibration fit consumes the output of steps 1-4.
    """
    capacity_kw: float = 0.0
    performance_ratio: float = DEFAULT_PERFORMANCE_RATIO

    @classmethod
    def for_station(cls, station: StationConfig) -> "PostProcessingChain":
        return cls(station.power_cap_kw, station.performance_ratio)

    def _cap(self, values: FloatArray) -> FloatArray:
        if self.capacity_kw > 0:
            return np.minimum(values, self.capacity_kw)
        return values

    def pre_calibration(self, raw_kw: ArrayLike, fade: ArrayLike) -> FloatArray:
        values = np.maximum(np.asarray(raw_kw, dtype=np.float64), 0.0)
        values = values * np.asarray(fade, dtype=np.float64)
        if self.performance_ratio > 0:
            values = values / self.performance_ratio
        return self._cap(values)

    def finalize(self, pre_kw: ArrayLike, calibration: "Calibration") -> FloatArray:
        values = np.asarray(pre_kw, dtype=np.float64) * calibration.slope
        values = self._cap(np.maximum(values, 0.0))
        return values * 1000.0

    def apply(
            self,
            raw_kw: ArrayLike,
            fade: ArrayLike,
            calibration: "Calibration",
        ) -> FloatArray:
        """Run all eight steps; returns watts."""
        return self.finalize(self.pre_calibration(raw_kw, fade), calibration)
