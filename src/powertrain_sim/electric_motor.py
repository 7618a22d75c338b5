"""
Electric Motor Module
Field-oriented control and lumped thermal model of an IPM synchronous motor.

Mathematical Basis
------------------
Electrical angle          θ_e = p · θ_m
Current references (FOC, with field weakening above base speed N_b)
    N ≤ N_b :  i_q = I_max,        i_d = 0
    N > N_b :  i_q = I_max · w,    i_d = −0.5 · I_max · (1 − w),   w = N_b / N
Inverse Park
    i_α = i_d cos θ_e − i_q sin θ_e
    i_β = i_d sin θ_e + i_q cos θ_e
Inverse Clarke (amplitude invariant)
    i_u = i_α
    i_v = −½ i_α + (√3/2) i_β
    i_w = −½ i_α − (√3/2) i_β
Electromagnetic torque    τ = 1.5 · p · (ψ_m i_q + (L_d − L_q) i_d i_q)
Back-EMF                  e = ω · ψ_m · p
Stator thermal balance (explicit Euler, thermal mass C)
    R(T)  = R_s · (1 + α (T − T_ref))
    P_cu  = 1.5 · |i|² · R(T)
    T    += (P_cu − (T − T_cool)(h₀ + h₁ N)) · dt / C
"""

import math
from dataclasses import dataclass
from typing import Tuple

from .cycle import REVOLUTION, normalize_angle, rpm_to_angular_velocity
from .engine_config import MotorSpec

_SQRT3_2 = math.sqrt(3.0) / 2.0
_SECTOR_WIDTH = math.pi / 3.0
_EFFICIENCY_CAP = 99.9
_MIN_ELECTRICAL_POWER = 1.0  # W


def field_oriented_currents(rpm: float, spec: MotorSpec) -> Tuple[float, float]:
    """d/q current references  (i_d, i_q)  [A] at shaft speed ``rpm``."""
    if rpm <= spec.base_speed_rpm:
        return 0.0, spec.max_current

    weakening = spec.base_speed_rpm / rpm
    i_q = spec.max_current * weakening
    i_d = -0.5 * spec.max_current * (1.0 - weakening)
    return i_d, i_q


def inverse_park_clarke(
    i_d: float, i_q: float, electrical_angle: float
) -> Tuple[Tuple[float, float], Tuple[float, float, float]]:
    """Rotate d/q currents into the stator frame.

    Returns
    -------
    ((i_α, i_β), (i_u, i_v, i_w))
        Stationary two-axis currents and the three phase currents.
        The phase currents always sum to zero.
    """
    cos_t = math.cos(electrical_angle)
    sin_t = math.sin(electrical_angle)

    i_alpha = i_d * cos_t - i_q * sin_t
    i_beta = i_d * sin_t + i_q * cos_t

    i_u = i_alpha
    i_v = -0.5 * i_alpha + _SQRT3_2 * i_beta
    i_w = -0.5 * i_alpha - _SQRT3_2 * i_beta
    return (i_alpha, i_beta), (i_u, i_v, i_w)


def commutation_sector(electrical_angle: float) -> int:
    """Six-step commutation sector  0..5  of an electrical angle."""
    sector = int(normalize_angle(electrical_angle, REVOLUTION) // _SECTOR_WIDTH)
    return min(sector, 5)


@dataclass(frozen=True)
class MotorState:
    """Electrical, mechanical and thermal state for one frame.

    The commutation sector stands in for the stroke phase of the combustion
    engines; a motor has no strokes.

    Attributes
    ----------
    angle          : mechanical rotor angle, normalised to [0, 2π)  rad
    sector         : commutation sector 0..5
    phase_currents : (i_u, i_v, i_w)  A
    field_angle    : stator current-vector angle in mechanical rad
    back_emf       : V
    torque         : N·m
    power          : mechanical shaft power  W
    efficiency     : %  ∈ [0, 99.9]
    temperature    : stator temperature  °C
    i_d, i_q       : A
    flux_vector    : (i_α, i_β, 0)
    bus_current    : DC link current  A
    """

    angle: float
    sector: int
    phase_currents: Tuple[float, float, float]
    field_angle: float
    back_emf: float
    torque: float
    power: float
    efficiency: float
    temperature: float
    i_d: float
    i_q: float
    flux_vector: Tuple[float, float, float]
    bus_current: float


class ElectricMotorModel:
    """FOC motor model owning the persistent stator temperature."""

    def __init__(self, spec: MotorSpec) -> None:
        self.spec = spec
        self.temperature = spec.coolant_temperature

    def reset(self) -> None:
        """Return the stator to coolant temperature."""
        self.temperature = self.spec.coolant_temperature

    def phase_resistance(self) -> float:
        """Copper resistance at the current stator temperature  [Ω]."""
        rise = self.temperature - self.spec.reference_temperature
        return self.spec.stator_resistance * (1.0 + self.spec.copper_temp_coefficient * rise)

    def electromagnetic_torque(self, i_d: float, i_q: float) -> float:
        """τ = 1.5·p·(ψ i_q + (L_d − L_q) i_d i_q)  [N·m]."""
        spec = self.spec
        reluctance = (spec.d_inductance - spec.q_inductance) * i_d * i_q
        return 1.5 * spec.pole_pairs * (spec.flux_linkage * i_q + reluctance)

    def copper_loss(self, i_d: float, i_q: float) -> float:
        """Three-phase I²R loss  [W]."""
        return 1.5 * (i_d * i_d + i_q * i_q) * self.phase_resistance()

    def _integrate_temperature(self, loss: float, rpm: float, dt: float) -> None:
        spec = self.spec
        conductance = spec.cooling_base + spec.cooling_per_rpm * rpm
        cooling = (self.temperature - spec.coolant_temperature) * conductance
        self.temperature += (loss - cooling) * dt / spec.thermal_mass

    def evaluate(
        self, mechanical_angle: float, rpm: float, dt: float
    ) -> MotorState:
        """Compute the motor state at one shaft angle and speed.

        Parameters
        ----------
        mechanical_angle  : float  Raw rotor angle  [rad]
        rpm               : float  Shaft speed  [rev/min]  (≥ 0)
        dt                : float  Frame time used by the thermal step  [s]

        Returns
        -------
        MotorState
        """
        spec = self.spec
        electrical_angle = mechanical_angle * spec.pole_pairs
        omega = rpm_to_angular_velocity(rpm)

        i_d, i_q = field_oriented_currents(rpm, spec)
        (i_alpha, i_beta), currents = inverse_park_clarke(i_d, i_q, electrical_angle)

        torque = self.electromagnetic_torque(i_d, i_q)
        mechanical_power = torque * omega
        loss = self.copper_loss(i_d, i_q)

        self._integrate_temperature(loss, rpm, dt)

        electrical_power = mechanical_power + loss
        if electrical_power > _MIN_ELECTRICAL_POWER:
            efficiency = mechanical_power / electrical_power * 100.0
        else:
            efficiency = 0.0
        efficiency = min(_EFFICIENCY_CAP, max(0.0, efficiency))

        return MotorState(
            angle=normalize_angle(mechanical_angle, REVOLUTION),
            sector=commutation_sector(electrical_angle),
            phase_currents=currents,
            field_angle=math.atan2(i_beta, i_alpha) / spec.pole_pairs,
            back_emf=omega * spec.flux_linkage * spec.pole_pairs,
            torque=torque,
            power=mechanical_power,
            efficiency=efficiency,
            temperature=self.temperature,
            i_d=i_d,
            i_q=i_q,
            flux_vector=(i_alpha, i_beta, 0.0),
            bus_current=electrical_power / spec.dc_bus_voltage,
        )
