"""Tests for solar geometry, gap filling, features and daily sequences."""
import math
from datetime import date, datetime, timedelta

import numpy as np
import polars as pl
import pytest

from pv_plant_analytics.data.naming import lag_name, parse_lag
from pv_plant_analytics.preprocessing.astronomy import (
    add_solar_geometry,
    solar_elevation,
)
from pv_plant_analytics.preprocessing.features import (
    build_feature_matrix,
    historical_variant,
    imputed_features,
    standardize,
)
from pv_plant_analytics.preprocessing.interpolation import (
    clean_soc,
    fill_zero_gaps,
)
from pv_plant_analytics.preprocessing.reshape import build_daily_sequences

from conftest import frame_at

SOLSTICE = datetime(2023, 6, 21, 12, 0)


class TestSolarGeometry:
    """Test the elevation approximation."""

    def test_sun_overhead_at_tropic_on_solstice(self):
        assert solar_elevation(23.45, 0.0, SOLSTICE) == pytest.approx(90.0, abs=0.05)

    def test_midnight_is_below_horizon(self):
        elev = solar_elevation(0.0, 0.0, SOLSTICE.replace(hour=0))
        assert elev == pytest.approx(-(90.0 - 23.45), abs=0.05)

    def test_longitude_is_ignored(self):
        assert solar_elevation(45.0, -120.0, SOLSTICE) == solar_elevation(45.0, 120.0, SOLSTICE)

    def test_vectorized_matches_scalar_and_clamps(self):
        times = [SOLSTICE.replace(hour=h) for h in (0, 6, 9, 12)]
        frame = add_solar_geometry(frame_at(times), 45.0, 25.0)
        elev = frame.get_column("solar_elev").to_list()
        norm = frame.get_column("solar_elev_norm").to_list()
        for t, e, n in zip(times, elev, norm):
            expected = min(90.0, max(-5.0, solar_elevation(45.0, 25.0, t)))
            assert e == pytest.approx(expected, abs=1e-9)
            assert n == pytest.approx(max(0.0, e) / 90.0, abs=1e-9)
        assert elev[0] == -5.0
        assert norm[0] == 0.0


class TestGapFill:
    """Test zero-as-missing gap filling."""

    def test_forward_then_backward(self):
        assert fill_zero_gaps([0, 0, 5, 0, 7, 0]).to_list() == [5, 5, 5, 5, 7, 7]

    def test_idempotent(self):
        once = fill_zero_gaps([0, 3, 0, 0, 9, 0, 4])
        assert fill_zero_gaps(once).to_list() == once.to_list()

    def test_all_zero_stays_zero(self):
        assert fill_zero_gaps([0, 0, 0]).to_list() == [0, 0, 0]

    def test_clean_soc_clamps_before_filling(self):
        frame = pl.DataFrame({"battery_soc": [120.0, 0.0, -5.0, 50.0]})
        out = frame.select(clean_soc()).to_series().to_list()
        assert out == [100.0, 100.0, 100.0, 50.0]


class TestLagNames:
    """Test lagged feature naming."""

    def test_round_trip(self):
        assert parse_lag(lag_name("grid_power", 3)) == ("grid_power", 3)

    def test_plain_names_are_not_lags(self):
        assert parse_lag("hour_sin") is None
        assert parse_lag("power_kw_lag") is None
        assert parse_lag("power_kw_lag0") is None

    def test_lag_must_be_positive(self):
        with pytest.raises(ValueError):
            lag_name("power_kw", 0)


class TestFeatures:
    """Test named feature derivation."""

    def setup_method(self):
        t0 = datetime(2024, 3, 1, 6, 0)
        # Deliberately out of order
        self.frame = frame_at(
            [t0 + timedelta(hours=1), t0],
            irradiance_wm2=[400.0, 100.0],
            cloud_cover=[50.0, 0.0],
            temperature_2m=[10.0, 8.0],
            pv_power_kw=[2.0, 1.0],
        )

    def test_cyclical_and_interactions(self):
        names = ["hour", "hour_sin", "effective_irradiance", "temp_sq", "hour_sin_irr"]
        m = build_feature_matrix(self.frame, names, [0.0] * len(names))
        # First row is 06:00 after sorting
        assert m[0, 0] == 6.0
        assert m[0, 1] == pytest.approx(1.0)
        assert m[0, 2] == pytest.approx(100.0)
        assert m[1, 2] == pytest.approx(200.0)
        assert m[1, 3] == pytest.approx(100.0)
        assert m[0, 4] == pytest.approx(100.0)

    def test_day_encoding(self):
        m = build_feature_matrix(self.frame, ["day_sin", "day_cos"], [0.0, 0.0])
        doy = date(2024, 3, 1).timetuple().tm_yday
        assert m[0, 0] == pytest.approx(math.sin(2 * math.pi * doy / 365))
        assert m[0, 1] == pytest.approx(math.cos(2 * math.pi * doy / 365))

    def test_lag_uses_previous_chronological_row(self):
        m = build_feature_matrix(self.frame, ["power_kw", "power_kw_lag1"], [0.0, 0.0])
        assert m[:, 0].tolist() == [1.0, 2.0]
        assert m[:, 1].tolist() == [0.0, 1.0]

    def test_unknown_feature_uses_positional_mean(self):
        m = build_feature_matrix(self.frame, ["hour", "mystery", "other"], [0.0, 7.5])
        assert m[:, 1].tolist() == [7.5, 7.5]
        assert m[:, 2].tolist() == [0.0, 0.0]

    def test_known_feature_without_source_column_is_imputed(self):
        names = ["wind_speed_10m", "battery_soc_lag1"]
        assert imputed_features(names, self.frame.columns) == names
        m = build_feature_matrix(self.frame, names, [3.0, 4.0])
        assert m[:, 0].tolist() == [3.0, 3.0]
        assert m[:, 1].tolist() == [4.0, 4.0]

    def test_only_operational_lag1_is_computed(self):
        frame = self.frame.with_columns(battery_soc=pl.Series([60.0, 50.0]))
        names = ["hour_lag1", "temperature_2m_lag1", "battery_soc_lag2", "battery_soc_lag1"]
        assert imputed_features(names, frame.columns) == names[:3]
        m = build_feature_matrix(frame, names, [99.0, 99.0, 99.0, 99.0])
        assert m[:, :3].tolist() == [[99.0] * 3, [99.0] * 3]
        assert m[:, 3].tolist() == [0.0, 50.0]

    def test_historical_variant(self):
        frame = frame_at([datetime(2024, 3, 1, 12)], solar_elev_norm=[0.5], solar_elev=[-3.0])
        out = historical_variant(frame).row(0, named=True)
        assert out["wind_speed_10m"] == 0.0
        assert out["solar_elev"] == pytest.approx(45.0)

    def test_standardize_zero_scale_emits_zero(self):
        out = standardize(np.array([[4.0, 9.0]]), [2.0, 1.0], [2.0, 0.0])
        assert out.tolist() == [[1.0, 0.0]]

    def test_standardize_rejects_mismatched_stats(self):
        with pytest.raises(ValueError):
            standardize(np.zeros((1, 2)), [0.0], [1.0])


class TestDailySequences:
    """Test per-day sequence construction."""

    def _frame(self, day, hours, soc):
        times = [datetime.combine(day, datetime.min.time()) + timedelta(hours=h) for h in hours]
        return frame_at(times, soc_clean=soc)

    def test_validity_mask_and_zero_padding(self):
        frame = self._frame(date(2024, 6, 1), [8, 9, 10], [10.0, 20.0, 30.0])
        seq = build_daily_sequences(frame, ["soc_clean"], 10, [0.0], [1.0])
        assert seq.values.shape == (1, 10, 2)
        assert seq.mask[0].tolist() == [True] * 3 + [False] * 7
        assert seq.values[0, :3, 0].tolist() == [10.0, 20.0, 30.0]
        assert np.all(seq.values[0, 3:, :] == 0.0)

    def test_normalizes_valid_steps_only(self):
        frame = self._frame(date(2024, 6, 1), [8, 9], [10.0, 30.0])
        seq = build_daily_sequences(frame, ["soc_clean"], 4, [20.0], [10.0])
        assert seq.values[0, :, 0].tolist() == [-1.0, 1.0, 0.0, 0.0]
        assert seq.values[0, :, 1].tolist() == [1.0, 1.0, 0.0, 0.0]

    def test_truncation_keeps_earliest(self):
        frame = self._frame(date(2024, 6, 1), [12, 8, 10, 9, 11], [5.0, 1.0, 3.0, 2.0, 4.0])
        seq = build_daily_sequences(frame, ["soc_clean"], 3, [0.0], [1.0])
        assert seq.values[0, :, 0].tolist() == [1.0, 2.0, 3.0]

    def test_days_sorted_and_explicit_empty_day(self):
        frame = pl.concat([
            self._frame(date(2024, 6, 3), [8], [30.0]),
            self._frame(date(2024, 6, 1), [8], [10.0]),
        ])
        seq = build_daily_sequences(
            frame, ["soc_clean"], 2, [0.0], [1.0],
            dates=[date(2024, 6, 3), date(2024, 6, 2), date(2024, 6, 1)],
        )
        assert seq.dates == (date(2024, 6, 1), date(2024, 6, 2), date(2024, 6, 3))
        assert seq.mask.tolist() == [[True, False], [False, False], [True, False]]
        assert np.all(seq.values[1] == 0.0)
        assert seq.values[2, 0, 0] == 30.0
