"""
Unit Tests for Engine Configuration Module
Tests parameter validation, derived geometry, notices and JSON round-trip.
"""

import json
import math
import warnings

import pytest

from powertrain_sim.engine_config import (
    AirProperties,
    EngineSpec,
    MotorSpec,
    SimulatorConfiguration,
    V8Layout,
    VisualGeometry,
    WankelSpec,
    create_default_configuration,
)


class TestEngineSpec:

    def setup_method(self):
        self.spec = EngineSpec()

    def test_derived_geometry(self):
        assert self.spec.crank_radius == pytest.approx(0.043)
        assert self.spec.lambda_ratio == pytest.approx(0.043 / 0.145)
        assert self.spec.piston_area == pytest.approx(math.pi * 0.043**2)
        assert self.spec.clearance_volume == pytest.approx(499.5e-6 / 9.5)
        assert self.spec.total_volume_at_bdc == pytest.approx(499.5e-6 * 10.5 / 9.5)

    @pytest.mark.parametrize(
        "kwargs",
        [
            dict(bore=0.0),
            dict(stroke=-0.1),
            dict(connecting_rod_length=0.04),
            dict(compression_ratio=1.0),
            dict(displacement=0.0),
            dict(air_fuel_ratio=0.0),
            dict(fuel_heating_value=-1.0),
            dict(combustion_efficiency=1.5),
            dict(reciprocating_mass=-0.1),
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            EngineSpec(**kwargs)

    def test_frozen(self):
        with pytest.raises(AttributeError):
            self.spec.bore = 0.1


class TestOtherSpecs:

    def test_air_defaults(self):
        air = AirProperties()
        assert air.gamma == 1.35
        assert air.atmospheric_pressure == 101_325.0

    def test_air_gamma_must_exceed_one(self):
        with pytest.raises(ValueError):
            AirProperties(gamma=1.0)

    def test_visual_rod_longer_than_crank(self):
        with pytest.raises(ValueError):
            VisualGeometry(crank_radius=1.0, rod_length=0.5)

    def test_wankel_volumes(self):
        spec = WankelSpec()
        assert spec.min_volume == pytest.approx(654.0e-6 / 9.0)
        assert spec.max_volume == pytest.approx(654.0e-6 * 10.0 / 9.0)
        assert spec.flank_area == pytest.approx(0.007)
        assert WankelSpec.GEAR_RATIO == 3

    def test_wankel_eccentricity_bound(self):
        with pytest.raises(ValueError):
            WankelSpec(eccentricity=0.2)

    @pytest.mark.parametrize(
        "kwargs",
        [dict(pole_pairs=0), dict(max_current=0.0), dict(thermal_mass=0.0), dict(d_inductance=0.0)],
    )
    def test_motor_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            MotorSpec(**kwargs)

    def test_v8_firing_order(self):
        assert V8Layout().firing_order == [1, 8, 4, 3, 6, 5, 7, 2]

    def test_v8_delay_out_of_range(self):
        with pytest.raises(ValueError):
            V8Layout(firing_delays={1: 0.0, 2: 720.0})

    def test_v8_firing_window_bounds(self):
        assert V8Layout().firing_window == 90.0
        with pytest.raises(ValueError):
            V8Layout(firing_window=0.0)
        with pytest.raises(ValueError):
            V8Layout(firing_window=721.0)


class TestSimulatorConfiguration:

    def test_default_configuration_is_quiet(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            config = create_default_configuration()
        assert config.piston.compression_ratio == 10.5
        assert config.motor.pole_pairs == 3

    def test_unusual_compression_ratio_warns(self):
        with pytest.warns(UserWarning, match="Compression ratio"):
            SimulatorConfiguration(piston=EngineSpec(compression_ratio=30.0))

    def test_displacement_mismatch_warns(self):
        with pytest.warns(UserWarning, match="Displacement"):
            SimulatorConfiguration(piston=EngineSpec(displacement=800e-6))

    def test_reversed_saliency_warns(self):
        with pytest.warns(UserWarning, match="Lq < Ld"):
            SimulatorConfiguration(motor=MotorSpec(d_inductance=400e-6, q_inductance=300e-6))

    def test_to_dict_uses_string_cylinder_keys(self):
        data = create_default_configuration().to_dict()
        assert set(data) == {"air", "piston", "visual", "rotary", "motor", "v8"}
        assert data["v8"]["firing_delays"]["8"] == 90.0

    def test_json_round_trip(self, tmp_path):
        original = SimulatorConfiguration(
            piston=EngineSpec(pumping_drag=7.5),
            motor=MotorSpec(base_speed_rpm=4000.0),
        )
        path = tmp_path / "config.json"
        original.to_json(str(path))

        loaded = SimulatorConfiguration.from_json(str(path))
        assert loaded == original
        assert loaded.v8.firing_delays[8] == 90.0
        assert isinstance(loaded.motor.pole_pairs, int)

    def test_missing_section_raises_key_error(self, tmp_path):
        data = create_default_configuration().to_dict()
        del data["motor"]
        path = tmp_path / "broken.json"
        path.write_text(json.dumps(data))
        with pytest.raises(KeyError, match="motor"):
            SimulatorConfiguration.from_json(str(path))

    def test_invalid_value_in_file_raises_value_error(self):
        data = create_default_configuration().to_dict()
        data["piston"]["bore"] = -1.0
        with pytest.raises(ValueError):
            SimulatorConfiguration.from_dict(data)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SimulatorConfiguration.from_json(str(tmp_path / "absent.json"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
