"""
Steppers
Per-frame pipelines producing one immutable snapshot per engine type.

Each stepper owns exactly one AngleIntegrator and runs, in order,

    angle → phase → kinematics → thermodynamics → torque

so no model ever reads an angle that has not yet been advanced this frame.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import numpy.typing as npt

from .cycle import (
    FOUR_STROKE_CYCLE,
    ROTARY_CYCLE,
    AngleIntegrator,
    FrameInput,
    StrokePhase,
    normalize_angle,
    rpm_to_angular_velocity,
)
from .electric_motor import ElectricMotorModel, MotorState
from .engine_config import SimulatorConfiguration, WankelSpec
from .kinematics import SliderCrank, ValveTiming
from .thermodynamics import OttoThermodynamics, WankelThermodynamics, indicated_work
from .torque import TorqueAggregator
from .v8 import V8Cylinder, build_cylinders, firing_cylinder

# Tracked face k lags face 0 by one shaft revolution per face
_FACE_LAG = 2.0 * math.pi


# ── Snapshots ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PistonSnapshot:
    """Read-only state of a four-stroke cylinder.

    Units: angle rad ∈ [0, 4π), pressure bar, temperature K, volume cc,
    torque N·m, air/fuel flow g/s, piston speed and velocity m/s, rod angle
    rad; piston_y and valve lifts are scene units.
    """

    angle: float
    phase: StrokePhase
    piston_y: float
    pressure: float
    temperature: float
    volume: float
    torque: float
    ve: float
    air_flow: float
    fuel_flow: float
    piston_speed: float
    piston_velocity: float
    rod_angle: float
    intake_lift: float
    exhaust_lift: float


@dataclass(frozen=True)
class RotarySnapshot:
    """Read-only state of the Wankel, tracked on rotor face 0.

    ``chamber_volumes`` (cc) and ``chamber_phases`` list faces 0, 1, 2.
    """

    angle: float
    rotor_angle: float
    phase: StrokePhase
    pressure: float
    temperature: float
    volume: float
    torque: float
    chamber_volumes: Tuple[float, float, float]
    chamber_phases: Tuple[StrokePhase, StrokePhase, StrokePhase]


ElectricSnapshot = MotorState


@dataclass(frozen=True)
class CylinderSnapshot:
    cylinder_id: int
    delay: float
    bank: str
    bank_angle: float
    state: PistonSnapshot


@dataclass(frozen=True)
class V8Snapshot:
    """Read-only state of the V8.

    ``phase`` is cylinder 1's stroke; ``torque`` sums all eight cylinders.
    """

    angle: float
    phase: StrokePhase
    torque: float
    cylinders: Tuple[CylinderSnapshot, ...]
    firing_cylinder: Optional[int]


# ── Piston pipeline ──────────────────────────────────────────────────────────


class PistonPipeline:
    """Stateless four-stroke evaluation shared by the piston and V8 steppers."""

    def __init__(self, config: SimulatorConfiguration) -> None:
        self.config = config
        self.thermo = OttoThermodynamics(config.piston, config.air)
        self.torque = TorqueAggregator(config.piston, config.air)
        # Rendered piston has its own crank, decoupled from the gas model
        self.visual_crank = SliderCrank(
            config.visual.crank_radius, config.visual.rod_length
        )
        self.valves = ValveTiming()

    def evaluate(self, raw_angle: float, rpm: float) -> PistonSnapshot:
        angle = normalize_angle(raw_angle, FOUR_STROKE_CYCLE)
        gas = self.thermo.state(angle, rpm)
        breathing = self.thermo.breathing(rpm)
        torque = self.torque.net_torque(angle, rpm, gas.pressure, gas.phase)
        gas = gas.with_torque(torque)
        max_lift = self.config.visual.max_valve_lift

        return PistonSnapshot(
            angle=angle,
            phase=gas.phase,
            piston_y=self.visual_crank.pin_height(angle),
            pressure=gas.pressure_bar,
            temperature=gas.temperature,
            volume=gas.volume_cc,
            torque=gas.torque,
            ve=breathing.volumetric_efficiency,
            air_flow=breathing.air_flow,
            fuel_flow=breathing.fuel_flow,
            piston_speed=breathing.mean_piston_speed,
            piston_velocity=self.thermo.slider_crank.velocity(
                angle, rpm_to_angular_velocity(rpm)
            ),
            rod_angle=self.thermo.slider_crank.connecting_rod_angle(angle),
            intake_lift=self.valves.intake_lift(angle, max_lift),
            exhaust_lift=self.valves.exhaust_lift(angle, max_lift),
        )


# ── Steppers ─────────────────────────────────────────────────────────────────


class PistonStepper:
    """Single-cylinder Otto engine."""

    def __init__(self, config: SimulatorConfiguration) -> None:
        self.config = config
        self.integrator = AngleIntegrator()
        self.pipeline = PistonPipeline(config)

    def advance(self, frame: FrameInput) -> PistonSnapshot:
        raw = self.integrator.advance_frame(frame)
        return self.pipeline.evaluate(raw, frame.rpm)

    def reset(self) -> None:
        self.integrator.reset()


class RotaryStepper:
    """Single-rotor Wankel; the gas model follows face 0."""

    def __init__(self, config: SimulatorConfiguration) -> None:
        self.config = config
        self.integrator = AngleIntegrator()
        self.thermo = WankelThermodynamics(config.rotary, config.air)

    def advance(self, frame: FrameInput) -> RotarySnapshot:
        raw = self.integrator.advance_frame(frame)
        return self.evaluate(raw)

    def evaluate(self, raw_angle: float) -> RotarySnapshot:
        angle = normalize_angle(raw_angle, ROTARY_CYCLE)
        gas, progress = self.thermo.state(angle)
        torque = self.thermo.torque(gas, progress)

        volumes = []
        phases = []
        for face in range(WankelSpec.FACES):
            face_gas, _ = self.thermo.state(angle - face * _FACE_LAG)
            volumes.append(face_gas.volume_cc)
            phases.append(face_gas.phase)

        return RotarySnapshot(
            angle=angle,
            rotor_angle=self.thermo.chamber.rotor_angle(angle),
            phase=gas.phase,
            pressure=gas.pressure_bar,
            temperature=gas.temperature,
            volume=gas.volume_cc,
            torque=torque,
            chamber_volumes=tuple(volumes),
            chamber_phases=tuple(phases),
        )

    def reset(self) -> None:
        self.integrator.reset()


class ElectricStepper:
    """PM synchronous motor; owns the stator temperature as well as the angle.

    The thermal model integrates every frame, paused or not: pausing freezes
    the rotor angle, not the copper.
    """

    def __init__(self, config: SimulatorConfiguration) -> None:
        self.config = config
        self.integrator = AngleIntegrator()
        self.motor = ElectricMotorModel(config.motor)

    def advance(self, frame: FrameInput) -> ElectricSnapshot:
        raw = self.integrator.advance_frame(frame)
        return self.motor.evaluate(raw, frame.rpm, frame.dt)

    def reset(self) -> None:
        self.integrator.reset()
        self.motor.reset()


class V8Stepper:
    """Crossplane V8 driven by one master crank angle."""

    def __init__(self, config: SimulatorConfiguration) -> None:
        self.config = config
        self.integrator = AngleIntegrator()
        self.pipeline = PistonPipeline(config)
        self.cylinders: List[V8Cylinder] = build_cylinders(config.v8)

    def advance(self, frame: FrameInput) -> V8Snapshot:
        master = self.integrator.advance_frame(frame)
        return self.evaluate(master, frame.rpm)

    def evaluate(self, master_angle: float, rpm: float) -> V8Snapshot:
        snapshots = tuple(
            CylinderSnapshot(
                cylinder_id=cyl.cylinder_id,
                delay=cyl.delay_deg,
                bank=cyl.bank,
                bank_angle=cyl.bank_angle_deg,
                state=self.pipeline.evaluate(cyl.local_angle(master_angle), rpm),
            )
            for cyl in self.cylinders
        )
        by_id = {snap.cylinder_id: snap.state for snap in snapshots}
        reference = by_id.get(1, snapshots[0].state)

        return V8Snapshot(
            angle=normalize_angle(master_angle, FOUR_STROKE_CYCLE),
            phase=reference.phase,
            torque=sum(snap.state.torque for snap in snapshots),
            cylinders=snapshots,
            firing_cylinder=firing_cylinder(master_angle, self.config.v8),
        )

    def reset(self) -> None:
        self.integrator.reset()


# ── Cycle sweep ──────────────────────────────────────────────────────────────


@dataclass
class CycleTrace:
    """One four-stroke cycle sampled at fixed crank resolution.

    All arrays are aligned to ``crank_angles_deg`` and kept in SI units.
    """

    rpm: float
    crank_angles_deg: npt.NDArray[np.float64]  # [deg]
    volume: npt.NDArray[np.float64]  # [m³]
    pressure: npt.NDArray[np.float64]  # [Pa]
    temperature: npt.NDArray[np.float64]  # [K]
    torque: npt.NDArray[np.float64]  # [N·m]
    phases: List[str] = field(default_factory=list)

    indicated_work: float = 0.0  # [J]   W = ∮ P dV
    imep: float = 0.0  # [Pa]
    mean_torque: float = 0.0  # [N·m]


def sweep_cycle(
    config: SimulatorConfiguration, rpm: float, resolution_deg: float = 1.0
) -> CycleTrace:
    """Evaluate the piston pipeline over 0°–720° at a fixed speed.

    Parameters
    ----------
    config         : SimulatorConfiguration
    rpm            : float  Engine speed  [rev/min]  (≥ 0)
    resolution_deg : float  Crank-angle step  [deg]  (> 0)

    Returns
    -------
    CycleTrace  endpoints included for a closed P-V loop

    Raises
    ------
    ValueError
        If rpm < 0 or resolution_deg ≤ 0.
    """
    if rpm < 0.0:
        raise ValueError(f"rpm must be ≥ 0, got {rpm}")
    if resolution_deg <= 0.0:
        raise ValueError(f"resolution_deg must be > 0, got {resolution_deg}")

    pipeline = PistonPipeline(config)
    crank_angles_deg = np.arange(0.0, 720.0 + resolution_deg, resolution_deg)
    crank_angles_deg = crank_angles_deg[crank_angles_deg <= 720.0]
    num_steps = len(crank_angles_deg)

    volume = np.zeros(num_steps)
    pressure = np.zeros(num_steps)
    temperature = np.zeros(num_steps)
    torque = np.zeros(num_steps)
    phases: List[str] = []

    for i, theta in enumerate(np.deg2rad(crank_angles_deg)):
        gas = pipeline.thermo.state(theta, rpm)
        volume[i] = gas.volume
        pressure[i] = gas.pressure
        temperature[i] = gas.temperature
        torque[i] = pipeline.torque.net_torque(
            normalize_angle(theta, FOUR_STROKE_CYCLE), rpm, gas.pressure, gas.phase
        )
        phases.append(gas.phase.value)

    work = indicated_work(pressure, volume)

    return CycleTrace(
        rpm=rpm,
        crank_angles_deg=crank_angles_deg,
        volume=volume,
        pressure=pressure,
        temperature=temperature,
        torque=torque,
        phases=phases,
        indicated_work=work,
        imep=work / config.piston.displacement,
        mean_torque=float(np.mean(torque)),
    )
