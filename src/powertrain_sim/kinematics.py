"""
Kinematics Module
Slider-crank piston motion, visual valve lift and Wankel chamber volume.

Mathematical Basis
------------------
Slider-crank notation
    r  = crank radius = stroke / 2              [m]
    l  = connecting rod length                  [m]
    λ  = r / l
    θ  = crank angle from TDC                   [rad]
    β  = connecting rod angle, sin β = λ sin θ  [rad]

Exact relations
    s(θ)  = r (1 − cos θ) + l (1 − √(1 − λ² sin² θ))      displacement from TDC
    y(θ)  = r cos θ + √(l² − r² sin² θ) = r + l − s(θ)    pin height above crank axis
    v(θ)  = r ω sin θ · [1 + λ cos θ / cos β]
    K(θ)  = r (sin θ + λ sin θ cos θ / cos β)              torque lever arm

Second-order harmonic acceleration (used for reciprocating inertia)
    a(θ)  ≈ r ω² (cos θ + λ cos 2θ)

Wankel chamber (raised-cosine approximation of the trochoid)
    rising  : V = V_min + V_d · (1 − cos πp) / 2
    falling : V = V_min + V_d · (1 + cos πp) / 2
with p the fractional progress through the current 1.5π phase.
"""

import math

from .cycle import ROTARY_CYCLE, StrokePhase, phase_progress
from .engine_config import WankelSpec


class SliderCrank:
    """Exact slider-crank mechanism kinematics.

    One instance is built from the physical EngineSpec for the gas model and
    a second, independent instance from VisualGeometry for the rendered
    piston; both use these same equations.

    Attributes
    ----------
    r            : float  Crank radius
    l            : float  Connecting rod length
    lambda_ratio : float  λ = r / l
    """

    def __init__(self, crank_radius: float, connecting_rod_length: float) -> None:
        """
        Parameters
        ----------
        crank_radius           : float  r  (must be > 0)
        connecting_rod_length  : float  l  (must be > r)

        Raises
        ------
        ValueError
            If crank_radius ≤ 0 or connecting_rod_length ≤ crank_radius.
        """
        if crank_radius <= 0.0:
            raise ValueError(f"crank_radius must be > 0, got {crank_radius}")
        if connecting_rod_length <= crank_radius:
            raise ValueError(
                f"connecting_rod_length ({connecting_rod_length}) must be > "
                f"crank_radius ({crank_radius}); otherwise mechanism locks up."
            )

        self.r = crank_radius
        self.l = connecting_rod_length
        self.lambda_ratio = crank_radius / connecting_rod_length

    # ── Internal helper ───────────────────────────────────────────────────

    def _discriminant(self, sin_theta: float) -> float:
        """Return D = 1 − λ² sin² θ = cos² β, clamped to [0, 1].

        Round-off can push D slightly negative near the kinematic limit;
        clamping keeps the square root real.
        """
        d = 1.0 - self.lambda_ratio**2 * sin_theta**2
        return max(0.0, min(1.0, d))

    # ── Public kinematics ─────────────────────────────────────────────────

    def displacement(self, theta: float) -> float:
        """Piston displacement from TDC  s(θ).

        Boundary conditions:
            s(0) = 0,  s(π) = 2r
        """
        sin_theta = math.sin(theta)
        sqrt_d = math.sqrt(self._discriminant(sin_theta))

        # 1 − cos θ = 2 sin²(θ/2); l(1 − √D) rewritten as r·λ·sin²θ / (1 + √D)
        term1 = 2.0 * math.sin(theta / 2.0) ** 2
        term2 = (self.lambda_ratio * sin_theta**2) / (1.0 + sqrt_d)

        return self.r * (term1 + term2)

    def pin_height(self, theta: float) -> float:
        """Piston-pin height above the crank axis  y(θ) = r cos θ + √(l² − r² sin² θ).

        Maximum r + l at TDC, minimum l − r at BDC.
        """
        sin_theta = math.sin(theta)
        term = self.l**2 - self.r**2 * sin_theta**2
        return self.r * math.cos(theta) + math.sqrt(max(0.0, term))

    def velocity(self, theta: float, omega: float) -> float:
        """Piston velocity  v(θ, ω)  (positive = moving away from TDC)."""
        sin_theta = math.sin(theta)
        cos_theta = math.cos(theta)

        d = self._discriminant(sin_theta)
        if d < 1e-14:
            return 0.0

        correction = 1.0 + (self.lambda_ratio * cos_theta) / math.sqrt(d)
        return self.r * omega * sin_theta * correction

    def harmonic_acceleration(self, theta: float, omega: float) -> float:
        """Second-order acceleration  a ≈ r ω² (cos θ + λ cos 2θ).

        Primary (cos θ) and secondary (λ cos 2θ) harmonics of the exact
        expression; positive at TDC.
        """
        return (
            self.r
            * omega**2
            * (math.cos(theta) + self.lambda_ratio * math.cos(2.0 * theta))
        )

    def connecting_rod_angle(self, theta: float) -> float:
        """Connecting rod angle  β = arcsin(λ sin θ)  [rad]."""
        argument = self.lambda_ratio * math.sin(theta)
        argument = max(-1.0, min(1.0, argument))
        return math.asin(argument)

    def force_to_torque_factor(self, theta: float) -> float:
        """Multiply by piston force to get crankshaft torque.

            K(θ) = r · (sin θ + λ sin θ cos θ / cos β)

        Zero at TDC and BDC.
        """
        sin_theta = math.sin(theta)
        cos_theta = math.cos(theta)

        d = self._discriminant(sin_theta)
        if d < 1.0e-14:
            return 0.0

        cos_beta = math.sqrt(d)
        return self.r * (sin_theta + self.lambda_ratio * sin_theta * cos_theta / cos_beta)

    def mean_piston_speed(self, rpm: float) -> float:
        """Mean piston speed  2·stroke·N/60."""
        return 2.0 * (2.0 * self.r) * rpm / 60.0


class ValveTiming:
    """Sinusoidal valve lift for the rendered valve train.

    Angles are cycle degrees with 0° = TDC at the start of intake.

    Default windows
    ─────────────────────────────
    Intake    0° – 180°   (Intake stroke)
    Exhaust 540° – 720°   (Exhaust stroke)
    ─────────────────────────────
    """

    def __init__(
        self,
        intake_open: float = 0.0,
        intake_close: float = 180.0,
        exhaust_open: float = 540.0,
        exhaust_close: float = 720.0,
    ) -> None:
        """
        Raises
        ------
        ValueError
            If a window closes at or before it opens.
        """
        if intake_close <= intake_open:
            raise ValueError(
                f"intake_close ({intake_close}°) must be > intake_open ({intake_open}°)"
            )
        if exhaust_close <= exhaust_open:
            raise ValueError(
                f"exhaust_close ({exhaust_close}°) must be > "
                f"exhaust_open ({exhaust_open}°)"
            )
        self.intake_open = float(intake_open)
        self.intake_close = float(intake_close)
        self.exhaust_open = float(exhaust_open)
        self.exhaust_close = float(exhaust_close)

    @staticmethod
    def _lift(angle_deg: float, opens: float, closes: float, max_lift: float) -> float:
        if not (opens <= angle_deg <= closes):
            return 0.0
        normalized = (angle_deg - opens) / (closes - opens)
        return max(0.0, max_lift * math.sin(math.pi * normalized))

    def intake_lift(self, theta: float, max_lift: float) -> float:
        """Intake valve lift at cycle angle θ  [rad]."""
        angle = math.degrees(theta) % 720.0
        return self._lift(angle, self.intake_open, self.intake_close, max_lift)

    def exhaust_lift(self, theta: float, max_lift: float) -> float:
        """Exhaust valve lift at cycle angle θ  [rad]."""
        angle = math.degrees(theta) % 720.0
        return self._lift(angle, self.exhaust_open, self.exhaust_close, max_lift)


class WankelChamber:
    """Volume of one rotor face over its 6π-shaft-radian cycle."""

    def __init__(self, spec: WankelSpec) -> None:
        self.spec = spec
        self.v_min = spec.min_volume
        self.v_disp = spec.displacement

    @staticmethod
    def rotor_angle(shaft_angle: float) -> float:
        """Rotor angle: the rotor turns at one third of eccentric-shaft speed."""
        return shaft_angle / WankelSpec.GEAR_RATIO

    def volume_at_progress(self, phase: StrokePhase, progress: float) -> float:
        """Chamber volume given a phase and the progress through it  [m³]."""
        half_cos = 0.5 * math.cos(progress * math.pi)
        if phase in (StrokePhase.INTAKE, StrokePhase.POWER):
            return self.v_min + self.v_disp * (0.5 - half_cos)
        return self.v_min + self.v_disp * (0.5 + half_cos)

    def volume(self, shaft_angle: float) -> float:
        """Chamber volume at a shaft angle  [m³]  ∈ [V_min, V_min + V_d]."""
        phase, progress = phase_progress(shaft_angle, ROTARY_CYCLE)
        return self.volume_at_progress(phase, progress)
