"""
Thermodynamics Module
Single-zone, closed-form gas models for the Otto and Wankel cycles.

Mathematical Basis
------------------
Both models are stateless: the gas state is recomputed from the cycle angle
and engine speed on every call, with no memory carried between frames.

Polytropic compression from the charge volume V₁ (index γ, losses included)
    P = P_atm · (V₁/V)^γ
    T = T_amb · (V₁/V)^(γ−1)

Wiebe mass fraction burned
    x_b(θ) = 1 − exp[−a · ((θ − θ_s) / Δθ)^(m+1)]

Heat released by a full burn
    Q = (m_air / AFR) · LHV · η_c

Fired temperature and pressure during the power stroke
    T = T_motoring + x_b · Q / (m_air · cv)
    P = m_air · R · T / V

Reference: Heywood, Internal Combustion Engine Fundamentals, §9.2.
"""

import math
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np
from scipy.integrate import trapezoid

from .cycle import (
    FOUR_STROKE_CYCLE,
    ROTARY_CYCLE,
    StrokePhase,
    normalize_angle,
    phase_progress,
)
from .engine_config import AirProperties, EngineSpec, WankelSpec
from .kinematics import SliderCrank, WankelChamber

# ── Volumetric-efficiency calibration ────────────────────────────────────────
_VE_PEAK_RPM: float = 4500.0
_VE_BASE: float = 0.95
_VE_PISTON_SPEED_LIMIT: float = 20.0  # m/s, ports choke above this
_VE_CHOKE_FACTOR: float = 0.8
VE_MIN: float = 0.2
VE_MAX: float = 1.0

# ── Gas-exchange proxies ─────────────────────────────────────────────────────
_INTAKE_LOSS_PER_RPM2: float = 5.0e-5  # Pa / rpm²
_INTAKE_PRESSURE_FLOOR: float = 0.1  # × P_atm
_EXHAUST_RISE_PER_RPM: float = 2.0  # Pa / rpm
_EXHAUST_TEMPERATURE: float = 800.0  # K


# ── Data classes ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class GasState:
    """Immutable snapshot of the working gas at one angle.

    Attributes
    ----------
    pressure    : Pa   (> 0)
    temperature : K    (> 0)
    volume      : m³   (> 0)
    phase       : stroke the chamber is in
    torque      : N·m  instantaneous shaft torque (filled in after the gas model)
    """

    pressure: float
    temperature: float
    volume: float
    phase: StrokePhase
    torque: float = 0.0

    def __post_init__(self) -> None:
        if self.pressure <= 0.0:
            raise ValueError(f"Pressure must be > 0 Pa, got {self.pressure}")
        if self.temperature <= 0.0:
            raise ValueError(f"Temperature must be > 0 K, got {self.temperature}")
        if self.volume <= 0.0:
            raise ValueError(f"Volume must be > 0 m³, got {self.volume}")

    @property
    def pressure_bar(self) -> float:
        return self.pressure / 1.0e5

    @property
    def volume_cc(self) -> float:
        return self.volume * 1.0e6

    def with_torque(self, torque: float) -> "GasState":
        """Copy of this state carrying the aggregated shaft torque."""
        return replace(self, torque=torque)


@dataclass(frozen=True)
class BreathingMetrics:
    """Air-path quantities at one engine speed.

    Attributes
    ----------
    volumetric_efficiency : [-]   ∈ [0.2, 1.0]
    trapped_mass          : kg    air trapped per cycle
    air_flow              : g/s
    fuel_flow             : g/s
    mean_piston_speed     : m/s
    """

    volumetric_efficiency: float
    trapped_mass: float
    air_flow: float
    fuel_flow: float
    mean_piston_speed: float


# ── Combustion ───────────────────────────────────────────────────────────────


class WiebeCombustion:
    """Wiebe mass-fraction-burned curve over a fixed crank window.

    Defaults place the burn 20° before firing TDC (θ = 2π in the 0–4π
    cycle) and let it run 60°, with a = 5 (≈ 99.3 % burnout) and
    m = 2 (cubic exponent).
    """

    def __init__(
        self,
        start_angle: float = 2.0 * math.pi - math.radians(20.0),
        duration: float = math.radians(60.0),
        a: float = 5.0,
        m: float = 2.0,
    ) -> None:
        """
        Parameters
        ----------
        start_angle : float  Start of combustion in the cycle window  [rad]
        duration    : float  Burn duration  [rad]  (> 0)
        a           : float  Efficiency parameter  (> 0)
        m           : float  Shape factor  (≥ 0)

        Raises
        ------
        ValueError
            If parameters are outside physical bounds.
        """
        if a <= 0.0:
            raise ValueError(f"Wiebe 'a' must be > 0, got {a}")
        if m < 0.0:
            raise ValueError(f"Wiebe 'm' must be ≥ 0, got {m}")
        if duration <= 0.0:
            raise ValueError(f"Combustion duration must be > 0 rad, got {duration}")
        self.start_angle = start_angle
        self.duration = duration
        self.a = a
        self.m = m

    @property
    def end_angle(self) -> float:
        return self.start_angle + self.duration

    def burn_fraction(self, theta: float) -> float:
        """Mass fraction burned  x_b ∈ [0, 1]  at cycle angle θ  [rad]."""
        if theta < self.start_angle:
            return 0.0
        if theta > self.end_angle:
            return 1.0

        normalized = (theta - self.start_angle) / self.duration
        exponent = -self.a * normalized ** (self.m + 1.0)
        # −expm1(x) = 1 − e^x without cancellation for small burns
        return -math.expm1(exponent)


# ── Breathing ────────────────────────────────────────────────────────────────


def volumetric_efficiency(rpm: float, mean_piston_speed: float) -> float:
    """RPM-dependent volumetric efficiency  ∈ [0.2, 1.0].

    A bell curve peaking at 4500 RPM,

        ve = 0.95 · (1 − 0.5 · (N/4500 − 1)²)

    derated by 20 % once the mean piston speed exceeds 20 m/s, then
    hard-clamped.
    """
    rpm_norm = rpm / _VE_PEAK_RPM
    ve = _VE_BASE * (1.0 - 0.5 * (rpm_norm - 1.0) ** 2)
    if mean_piston_speed > _VE_PISTON_SPEED_LIMIT:
        ve *= _VE_CHOKE_FACTOR
    return max(VE_MIN, min(VE_MAX, ve))


# ── Otto cycle ───────────────────────────────────────────────────────────────


class OttoThermodynamics:
    """Four-stroke gas model keyed by stroke phase.

    ==============  ==================================================
    Intake          P = max(P_atm − 5e-5·N², 0.1·P_atm),  T = T_amb
    Compression     polytropic from V_c + V_d
    Power           motoring temperature + Wiebe heat release, ideal gas
    Exhaust         P = P_atm + 2·N,  T = 800 K
    ==============  ==================================================
    """

    def __init__(
        self,
        spec: EngineSpec,
        air: AirProperties,
        combustion: Optional[WiebeCombustion] = None,
    ) -> None:
        self.spec = spec
        self.air = air
        self.combustion = combustion if combustion is not None else WiebeCombustion()
        self.slider_crank = SliderCrank(spec.crank_radius, spec.connecting_rod_length)

    # ── Geometry ──────────────────────────────────────────────────────────

    def volume(self, theta: float) -> float:
        """Instantaneous cylinder volume  V = V_c + A·s(θ)  [m³]."""
        return self.spec.clearance_volume + self.spec.piston_area * (
            self.slider_crank.displacement(theta)
        )

    # ── Breathing ─────────────────────────────────────────────────────────

    def breathing(self, rpm: float) -> BreathingMetrics:
        """Volumetric efficiency, trapped mass and flows at ``rpm``."""
        piston_speed = self.slider_crank.mean_piston_speed(rpm)
        ve = volumetric_efficiency(rpm, piston_speed)

        # One intake event per two revolutions
        air_flow = self.spec.displacement * (rpm / 60.0) * 0.5 * self.air.density_stp * ve
        air_flow_g = air_flow * 1000.0

        return BreathingMetrics(
            volumetric_efficiency=ve,
            trapped_mass=self.air.density_stp * self.spec.displacement * ve,
            air_flow=air_flow_g,
            fuel_flow=air_flow_g / self.spec.air_fuel_ratio,
            mean_piston_speed=piston_speed,
        )

    def heat_release(self, trapped_mass: float) -> float:
        """Heat from burning the full charge  Q = (m/AFR)·LHV·η_c  [J]."""
        fuel_mass = trapped_mass / self.spec.air_fuel_ratio
        return fuel_mass * self.spec.fuel_heating_value * self.spec.combustion_efficiency

    def motoring_temperature(self, volume: float) -> float:
        """Polytropic compression temperature extrapolated to ``volume``  [K]."""
        ratio = self.spec.total_volume_at_bdc / volume
        return self.air.ambient_temperature * ratio ** (self.air.gamma - 1.0)

    # ── State ─────────────────────────────────────────────────────────────

    def state(self, theta: float, rpm: float) -> GasState:
        """Gas state at cycle angle θ and engine speed ``rpm``.

        Parameters
        ----------
        theta : float  Crank angle, normalised internally to [0, 4π)  [rad]
        rpm   : float  Engine speed  [rev/min]  (≥ 0)

        Returns
        -------
        GasState  (torque left at 0; see TorqueAggregator)
        """
        angle = normalize_angle(theta, FOUR_STROKE_CYCLE)
        phase, _ = phase_progress(angle, FOUR_STROKE_CYCLE)
        vol = self.volume(angle)
        p_atm = self.air.atmospheric_pressure

        if phase is StrokePhase.INTAKE:
            pressure = max(
                p_atm - _INTAKE_LOSS_PER_RPM2 * rpm * rpm,
                _INTAKE_PRESSURE_FLOOR * p_atm,
            )
            temperature = self.air.ambient_temperature

        elif phase is StrokePhase.COMPRESSION:
            ratio = self.spec.total_volume_at_bdc / vol
            pressure = p_atm * ratio**self.air.gamma
            temperature = self.motoring_temperature(vol)

        elif phase is StrokePhase.POWER:
            trapped_mass = self.breathing(rpm).trapped_mass
            q_total = self.heat_release(trapped_mass)
            x_b = self.combustion.burn_fraction(angle)

            temperature = self.motoring_temperature(vol) + (
                x_b * q_total / (trapped_mass * self.air.cv)
            )
            pressure = trapped_mass * self.air.gas_constant * temperature / vol

        else:
            pressure = p_atm + _EXHAUST_RISE_PER_RPM * rpm
            temperature = _EXHAUST_TEMPERATURE

        return GasState(
            pressure=pressure, temperature=temperature, volume=vol, phase=phase
        )


# ── Wankel cycle ─────────────────────────────────────────────────────────────


class WankelThermodynamics:
    """Gas model for the tracked rotor face over its 6π shaft cycle.

    Compression is polytropic from the chamber maximum.  Combustion is a
    single lumped constant-volume temperature jump at minimum volume,

        T₂ = T_amb · CR^(γ−1),  T₃ = T₂ + ΔT,  P₃ = P_atm · CR^γ · T₃/T₂

    followed by polytropic expansion from V_min.  The exponents are the
    piston-engine ones without rotor-specific calibration.
    """

    def __init__(self, spec: WankelSpec, air: AirProperties) -> None:
        self.spec = spec
        self.air = air
        self.chamber = WankelChamber(spec)

        gamma = air.gamma
        cr = spec.compression_ratio
        self._t_compressed = air.ambient_temperature * cr ** (gamma - 1.0)
        self._t_fired = self._t_compressed + spec.combustion_temperature_rise
        self._p_fired = (
            air.atmospheric_pressure * cr**gamma * (self._t_fired / self._t_compressed)
        )

    def state(self, shaft_angle: float) -> Tuple[GasState, float]:
        """Gas state of the tracked face and progress through its phase.

        Parameters
        ----------
        shaft_angle : float  Eccentric-shaft angle, normalised to [0, 6π)  [rad]

        Returns
        -------
        Tuple[GasState, float]  (state, progress ∈ [0, 1))
        """
        phase, progress = phase_progress(shaft_angle, ROTARY_CYCLE)
        vol = self.chamber.volume_at_progress(phase, progress)
        gamma = self.air.gamma
        p_atm = self.air.atmospheric_pressure

        if phase is StrokePhase.INTAKE:
            pressure = p_atm
            temperature = self.air.ambient_temperature

        elif phase is StrokePhase.COMPRESSION:
            ratio = self.spec.max_volume / vol
            pressure = p_atm * ratio**gamma
            temperature = self.air.ambient_temperature * ratio ** (gamma - 1.0)

        elif phase is StrokePhase.POWER:
            inverse_expansion = self.spec.min_volume / vol
            pressure = self._p_fired * inverse_expansion**gamma
            temperature = self._t_fired * inverse_expansion ** (gamma - 1.0)

        else:
            pressure = p_atm * self.spec.exhaust_pressure_ratio
            temperature = self.spec.exhaust_temperature

        state = GasState(
            pressure=pressure, temperature=temperature, volume=vol, phase=phase
        )
        return state, progress

    def torque(self, state: GasState, progress: float) -> float:
        """Output-shaft torque of the tracked face  [N·m].

            τ = (P − P_atm) · (width·R) · e · k(p) · 3

        with k = sin(πp) during Power, −0.5·sin(πp) during Compression and
        0 otherwise.
        """
        if state.phase is StrokePhase.POWER:
            factor = math.sin(progress * math.pi)
        elif state.phase is StrokePhase.COMPRESSION:
            factor = -0.5 * math.sin(progress * math.pi)
        else:
            return 0.0

        gas_force = (state.pressure - self.air.atmospheric_pressure) * self.spec.flank_area
        return gas_force * self.spec.eccentricity * factor * WankelSpec.FACES


# ── Cycle work ───────────────────────────────────────────────────────────────


def indicated_work(pressure: np.ndarray, volume: np.ndarray) -> float:
    """Net indicated work from an ordered P-V trace  W = ∮ P dV  [J].

    Uses the scipy trapezoidal rule; W > 0 for a power cycle.

    Raises
    ------
    ValueError
        If the arrays differ in length or hold fewer than two points.
    """
    if len(pressure) != len(volume):
        raise ValueError(
            f"pressure and volume must have equal length, got "
            f"{len(pressure)} and {len(volume)}"
        )
    if len(pressure) < 2:
        raise ValueError("At least two points are required to integrate ∮ P dV")
    return float(trapezoid(pressure, volume))
