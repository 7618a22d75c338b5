"""
Stepper and Session Tests
Per-frame pipelines, V8 phasing, the engine-type registry and the cycle sweep.
"""

import math

import numpy as np
import pytest

from powertrain_sim.cycle import FrameInput, StrokePhase
from powertrain_sim.engine_config import AirProperties, EngineSpec, create_default_configuration
from powertrain_sim.simulation import STEPPER_REGISTRY, EngineSimulation, EngineType
from powertrain_sim.steppers import (
    ElectricStepper,
    PistonSnapshot,
    PistonStepper,
    RotarySnapshot,
    RotaryStepper,
    V8Snapshot,
    V8Stepper,
    sweep_cycle,
)
from powertrain_sim.torque import TorqueAggregator
from powertrain_sim.v8 import V8Cylinder, build_cylinders, firing_cylinder


@pytest.fixture
def config():
    return create_default_configuration()


# ── Torque ────────────────────────────────────────────────────────────────────


class TestTorqueAggregator:

    def setup_method(self):
        self.agg = TorqueAggregator(EngineSpec(), AirProperties())

    def test_no_torque_at_tdc_outside_pumping(self):
        assert self.agg.net_torque(0.0, 3000.0, 5.0e6, StrokePhase.INTAKE) == 0.0

    def test_pumping_drag_only_at_ambient_standstill(self):
        torque = self.agg.net_torque(3.5 * math.pi, 0.0, 101_325.0, StrokePhase.EXHAUST)
        assert torque == pytest.approx(-5.0)

    def test_gas_force_relative_to_ambient(self):
        assert self.agg.gas_force(101_325.0) == 0.0
        area = EngineSpec().piston_area
        assert self.agg.gas_force(201_325.0) == pytest.approx(1.0e5 * area)

    def test_inertia_force_at_tdc(self):
        omega = 3000.0 * 2.0 * math.pi / 60.0
        spec = EngineSpec()
        expected = 0.4 * spec.crank_radius * omega**2 * (1.0 + spec.lambda_ratio)
        assert self.agg.inertia_force(0.0, 3000.0) == pytest.approx(expected)

    def test_positive_torque_on_power_stroke(self):
        theta = 2.0 * math.pi + math.pi / 2.0
        assert self.agg.net_torque(theta, 1000.0, 20.0e5, StrokePhase.POWER) > 0.0


# ── Piston ────────────────────────────────────────────────────────────────────


class TestPistonStepper:

    def test_standstill_holds_angle(self, config):
        stepper = PistonStepper(config)
        snap = stepper.advance(FrameInput(rpm=0.0, dt=1.0))
        assert snap.angle == 0.0
        assert snap.phase is StrokePhase.INTAKE

    def test_single_frame_advance(self, config):
        stepper = PistonStepper(config)
        stepper.advance(FrameInput(rpm=6000.0, dt=0.01))
        assert stepper.integrator.angle == 6000.0 * 2.0 * math.pi / 60.0 * 0.01

    def test_manual_angle_on_boundary_is_compression(self, config):
        stepper = PistonStepper(config)
        snap = stepper.advance(FrameInput(rpm=3000.0, dt=0.016, paused=True, manual_angle=math.pi))
        assert snap.angle == math.pi
        assert snap.phase is StrokePhase.COMPRESSION

    def test_manual_angle_overrides_history(self, config):
        stepper = PistonStepper(config)
        for _ in range(25):
            stepper.advance(FrameInput(rpm=5500.0, dt=0.016))
        snap = stepper.advance(FrameInput(rpm=5500.0, dt=0.016, paused=True, manual_angle=1.5))
        assert snap.angle == 1.5

    def test_snapshot_units_and_visuals(self, config):
        stepper = PistonStepper(config)
        snap = stepper.advance(FrameInput(rpm=3000.0, dt=0.016, paused=True, manual_angle=0.0))
        assert isinstance(snap, PistonSnapshot)
        assert snap.piston_y == pytest.approx(4.0)  # visual r + l at TDC
        assert snap.volume == pytest.approx(config.piston.clearance_volume * 1e6)
        assert snap.pressure == pytest.approx((101_325.0 - 450.0) / 1e5)
        assert snap.intake_lift == pytest.approx(0.0, abs=1e-12)
        assert snap.exhaust_lift == 0.0
        assert snap.piston_speed == pytest.approx(8.6)

    def test_piston_velocity_and_rod_angle(self, config):
        stepper = PistonStepper(config)
        tdc = stepper.advance(FrameInput(rpm=3000.0, dt=0.016, paused=True, manual_angle=0.0))
        assert tdc.piston_velocity == pytest.approx(0.0, abs=1e-12)
        assert tdc.rod_angle == pytest.approx(0.0, abs=1e-12)

        quarter = stepper.advance(
            FrameInput(rpm=3000.0, dt=0.016, paused=True, manual_angle=math.pi / 2.0)
        )
        assert quarter.piston_velocity == pytest.approx(0.043 * 100.0 * math.pi)
        assert quarter.rod_angle == pytest.approx(math.asin(0.043 / 0.145))

    def test_extreme_speed_stays_valid(self, config):
        stepper = PistonStepper(config)
        snap = stepper.advance(FrameInput(rpm=50_000.0, dt=0.016, paused=True, manual_angle=0.5))
        assert snap.phase is StrokePhase.INTAKE
        assert snap.pressure == pytest.approx(0.1 * 101_325.0 / 1e5)
        assert math.isfinite(snap.torque)

    def test_fuel_flow_follows_air_flow(self, config):
        snap = PistonStepper(config).advance(FrameInput(rpm=4500.0, dt=0.016))
        assert snap.fuel_flow == pytest.approx(snap.air_flow / 14.7)
        assert snap.ve == pytest.approx(0.95)

    def test_angle_normalised_but_integrator_raw(self, config):
        stepper = PistonStepper(config)
        for _ in range(100):
            snap = stepper.advance(FrameInput(rpm=6000.0, dt=0.01))
        assert stepper.integrator.angle > 4.0 * math.pi
        assert 0.0 <= snap.angle < 4.0 * math.pi

    def test_reset(self, config):
        stepper = PistonStepper(config)
        stepper.advance(FrameInput(rpm=6000.0, dt=0.05))
        stepper.reset()
        assert stepper.integrator.angle == 0.0


# ── Rotary ────────────────────────────────────────────────────────────────────


class TestRotaryStepper:

    def test_three_faces_in_distinct_phases(self, config):
        snap = RotaryStepper(config).evaluate(0.0)
        assert isinstance(snap, RotarySnapshot)
        assert snap.chamber_phases == (
            StrokePhase.INTAKE,
            StrokePhase.POWER,
            StrokePhase.COMPRESSION,
        )

    def test_tracked_face_matches_first_chamber(self, config):
        snap = RotaryStepper(config).evaluate(2.0)
        assert snap.volume == pytest.approx(snap.chamber_volumes[0])
        assert snap.phase is snap.chamber_phases[0]

    def test_rotor_turns_at_third_speed(self, config):
        snap = RotaryStepper(config).evaluate(3.0)
        assert snap.rotor_angle == pytest.approx(1.0)

    def test_chamber_volumes_within_bounds(self, config):
        stepper = RotaryStepper(config)
        v_min = config.rotary.min_volume * 1e6
        v_max = config.rotary.max_volume * 1e6
        for theta in np.linspace(0.0, 6.0 * math.pi, 181):
            snap = stepper.evaluate(float(theta))
            for vol in snap.chamber_volumes:
                assert v_min - 1e-9 <= vol <= v_max + 1e-9

    def test_advance_uses_integrator(self, config):
        stepper = RotaryStepper(config)
        snap = stepper.advance(FrameInput(rpm=60.0, dt=1.0))
        assert snap.angle == pytest.approx(2.0 * math.pi)
        assert snap.phase is StrokePhase.COMPRESSION


# ── Electric ──────────────────────────────────────────────────────────────────


class TestElectricStepper:

    def test_below_base_speed_currents(self, config):
        snap = ElectricStepper(config).advance(FrameInput(rpm=100.0, dt=0.016))
        assert snap.i_d == 0.0
        assert snap.i_q == 200.0

    def test_stator_heats_while_running(self, config):
        stepper = ElectricStepper(config)
        for _ in range(5):
            snap = stepper.advance(FrameInput(rpm=1000.0, dt=0.5))
        assert snap.temperature > 25.0

    def test_stator_keeps_heating_while_paused(self, config):
        stepper = ElectricStepper(config)
        temperatures = []
        for _ in range(20):
            snap = stepper.advance(FrameInput(rpm=1000.0, dt=0.5, paused=True, manual_angle=0.1))
            temperatures.append(snap.temperature)
        assert snap.angle == pytest.approx(0.1)
        assert temperatures[-1] > 25.0
        assert all(b > a for a, b in zip(temperatures, temperatures[1:]))

    def test_reset_restores_cold_stator(self, config):
        stepper = ElectricStepper(config)
        stepper.advance(FrameInput(rpm=1000.0, dt=2.0))
        stepper.reset()
        assert stepper.integrator.angle == 0.0
        assert stepper.motor.temperature == 25.0


# ── V8 ────────────────────────────────────────────────────────────────────────


class TestV8:

    def test_firing_order(self, config):
        assert [c.cylinder_id for c in build_cylinders(config.v8)] == [1, 8, 4, 3, 6, 5, 7, 2]

    def test_fixed_offset_derivation(self, config):
        """Cylinder 8 at master 450° sits where cylinder 1 is at master 360°."""
        stepper = V8Stepper(config)
        late = {c.cylinder_id: c.state for c in stepper.evaluate(math.radians(450.0), 3000.0).cylinders}
        early = {c.cylinder_id: c.state for c in stepper.evaluate(math.radians(360.0), 3000.0).cylinders}
        assert late[8].angle == pytest.approx(early[1].angle, abs=1e-12)

    def test_offset_cylinder_replays_cylinder_one(self, config):
        stepper = V8Stepper(config)
        late = {c.cylinder_id: c.state for c in stepper.evaluate(math.radians(460.0), 3000.0).cylinders}
        early = {c.cylinder_id: c.state for c in stepper.evaluate(math.radians(370.0), 3000.0).cylinders}
        assert late[8].phase is early[1].phase
        assert late[8].pressure == pytest.approx(early[1].pressure, rel=1e-9)

    def test_local_angle(self):
        cyl = V8Cylinder(8, 90.0)
        assert cyl.local_angle(math.radians(450.0)) == pytest.approx(2.0 * math.pi)
        assert cyl.bank == "R"
        assert V8Cylinder(3, 270.0).bank == "L"

    def test_cylinder_snapshots_carry_bank(self, config):
        snap = V8Stepper(config).evaluate(0.5, 3000.0)
        by_id = {c.cylinder_id: c for c in snap.cylinders}
        assert by_id[1].bank == "L"
        assert by_id[1].bank_angle == 45.0
        assert by_id[8].bank == "R"
        assert by_id[8].bank_angle == -45.0

    @pytest.mark.parametrize(
        "master_deg, expected",
        [(365.0, 1), (455.0, 8), (345.0, 2), (5.0, 6), (700.0, 3), (400.0, 1), (275.0, 2), (135.0, 5)],
    )
    def test_firing_cylinder(self, config, master_deg, expected):
        assert firing_cylinder(math.radians(master_deg), config.v8) == expected

    def test_one_cylinder_always_firing(self, config):
        counts = {cyl: 0 for cyl in range(1, 9)}
        for step in range(720):
            fired = firing_cylinder(math.radians(step + 0.5), config.v8)
            assert fired is not None
            counts[fired] += 1
        assert all(count == 90 for count in counts.values())

    def test_snapshot_aggregates_cylinders(self, config):
        snap = V8Stepper(config).advance(FrameInput(rpm=3000.0, dt=0.004))
        assert isinstance(snap, V8Snapshot)
        assert len(snap.cylinders) == 8
        assert snap.torque == pytest.approx(sum(c.state.torque for c in snap.cylinders))
        cyl1 = next(c for c in snap.cylinders if c.cylinder_id == 1)
        assert snap.phase is cyl1.state.phase

    def test_cylinders_use_commanded_rpm(self, config):
        snap = V8Stepper(config).advance(FrameInput(rpm=4500.0, dt=0.01))
        assert all(c.state.ve == pytest.approx(0.95) for c in snap.cylinders)

    def test_two_cylinders_per_phase(self, config):
        snap = V8Stepper(config).evaluate(math.radians(10.0), 3000.0)
        phases = [c.state.phase for c in snap.cylinders]
        assert all(phases.count(p) == 2 for p in StrokePhase)


# ── Session ───────────────────────────────────────────────────────────────────


class TestEngineSimulation:

    def test_registry_covers_every_engine(self):
        assert set(STEPPER_REGISTRY) == set(EngineType)

    def test_default_is_piston(self):
        sim = EngineSimulation()
        assert sim.engine_type is EngineType.PISTON
        assert isinstance(sim.tick(FrameInput(rpm=1000.0, dt=0.016)), PistonSnapshot)

    def test_select_by_value_string(self):
        sim = EngineSimulation()
        sim.select("rotary")
        assert isinstance(sim.stepper, RotaryStepper)

    def test_unknown_engine_rejected(self):
        with pytest.raises(ValueError):
            EngineSimulation().select("diesel")

    def test_switching_starts_fresh(self):
        sim = EngineSimulation(EngineType.ELECTRIC)
        sim.tick(FrameInput(rpm=2000.0, dt=0.5))
        sim.select(EngineType.ELECTRIC)
        assert sim.stepper.integrator.angle == 0.0
        assert sim.stepper.motor.temperature == 25.0

    def test_reinitialize_zeroes_angle(self):
        sim = EngineSimulation(EngineType.V8)
        sim.tick(FrameInput(rpm=3000.0, dt=0.1))
        sim.reinitialize()
        assert sim.stepper.integrator.angle == 0.0
        assert sim.last_snapshot is None

    def test_tick_after_teardown(self):
        sim = EngineSimulation()
        sim.teardown()
        with pytest.raises(RuntimeError):
            sim.tick(FrameInput(rpm=1000.0, dt=0.016))


# ── Cycle sweep ───────────────────────────────────────────────────────────────


class TestSweepCycle:

    def test_sample_count_and_labels(self, config):
        trace = sweep_cycle(config, 3000.0)
        assert len(trace.crank_angles_deg) == 721
        assert trace.crank_angles_deg[-1] == 720.0
        assert len(trace.phases) == 721
        assert trace.phases[90] == "Intake"
        assert trace.phases[270] == "Compression"
        assert trace.phases[450] == "Power"
        assert trace.phases[630] == "Exhaust"

    def test_positive_indicated_work(self, config):
        trace = sweep_cycle(config, 3000.0)
        assert trace.indicated_work > 0.0
        assert trace.imep == pytest.approx(trace.indicated_work / config.piston.displacement)
        assert np.all(trace.pressure > 0.0)

    def test_invalid_arguments(self, config):
        with pytest.raises(ValueError):
            sweep_cycle(config, -1.0)
        with pytest.raises(ValueError):
            sweep_cycle(config, 3000.0, resolution_deg=0.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
