"""
Torque Module
Crankshaft torque from gas pressure and reciprocating inertia.

    F_gas     = (P − P_atm) · A
    F_inertia = m_recip · r ω² (cos θ + λ cos 2θ)
    τ         = (F_gas − F_inertia) · r (sin θ + λ sin θ cos θ / cos β)

A constant pumping drag is subtracted while the piston works against the
charge (Compression) or pushes it out (Exhaust).
"""

from .cycle import StrokePhase, rpm_to_angular_velocity
from .engine_config import AirProperties, EngineSpec
from .kinematics import SliderCrank

_PUMPING_PHASES = (StrokePhase.COMPRESSION, StrokePhase.EXHAUST)


class TorqueAggregator:
    """Net instantaneous torque of one piston cylinder."""

    def __init__(self, spec: EngineSpec, air: AirProperties) -> None:
        self.spec = spec
        self.air = air
        self.slider_crank = SliderCrank(spec.crank_radius, spec.connecting_rod_length)

    def gas_force(self, pressure: float) -> float:
        """Net force of the gas on the crown relative to ambient  [N]."""
        return (pressure - self.air.atmospheric_pressure) * self.spec.piston_area

    def inertia_force(self, theta: float, rpm: float) -> float:
        """Reciprocating inertia force  m·a  [N]."""
        omega = rpm_to_angular_velocity(rpm)
        return self.spec.reciprocating_mass * self.slider_crank.harmonic_acceleration(
            theta, omega
        )

    def net_torque(
        self, theta: float, rpm: float, pressure: float, phase: StrokePhase
    ) -> float:
        """Crankshaft torque at θ  [N·m].

        Parameters
        ----------
        theta    : float        Crank angle  [rad]
        rpm      : float        Engine speed  [rev/min]
        pressure : float        Cylinder pressure  [Pa]
        phase    : StrokePhase  Stroke at θ

        Returns
        -------
        float  τ  [N·m]; zero lever (TDC/BDC) gives zero before drag
        """
        force = self.gas_force(pressure) - self.inertia_force(theta, rpm)
        torque = force * self.slider_crank.force_to_torque_factor(theta)

        if phase in _PUMPING_PHASES:
            torque -= self.spec.pumping_drag
        return torque
