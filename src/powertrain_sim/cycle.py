"""
Cycle Module
Shaft-angle integration, cycle normalisation and stroke-phase classification.

Angle conventions
-----------------
    θ_raw   : integrated shaft angle, grows without bound while running  [rad]
    θ       : θ_raw folded into the cycle window of the engine type      [rad]

    Four-stroke piston / V8 : one cycle = 2 crank revolutions = 4π
    Wankel (one rotor face) : one cycle = 3 shaft revolutions = 6π
    Electric motor          : one mechanical revolution       = 2π

Each consumer normalises the same raw accumulator over its own window, so
engines with different cycle lengths stay phased from one integrator.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

# ── Cycle windows ────────────────────────────────────────────────────────────

FOUR_STROKE_CYCLE: float = 4.0 * math.pi
ROTARY_CYCLE: float = 6.0 * math.pi
REVOLUTION: float = 2.0 * math.pi


class StrokePhase(Enum):
    """The four strokes of a cycle, in firing order."""

    INTAKE = "Intake"
    COMPRESSION = "Compression"
    POWER = "Power"
    EXHAUST = "Exhaust"


_PHASE_ORDER = (
    StrokePhase.INTAKE,
    StrokePhase.COMPRESSION,
    StrokePhase.POWER,
    StrokePhase.EXHAUST,
)


# ── Normalisation ────────────────────────────────────────────────────────────


def rpm_to_angular_velocity(rpm: float) -> float:
    """Angular velocity  ω = 2π·N/60  [rad/s]."""
    return rpm * 2.0 * math.pi / 60.0


def normalize_angle(theta: float, cycle_length: float = FOUR_STROKE_CYCLE) -> float:
    """Fold an angle into  [0, cycle_length)  using floor-modulo semantics.

    Negative inputs map into the positive window (−π/2 → 7π/2 for 4π).
    ``math.fmod`` keeps the sign of the dividend, so a negative remainder is
    shifted up by one window; the final check catches the case where that
    shift rounds up to exactly ``cycle_length``.

    Parameters
    ----------
    theta        : float  Raw angle  [rad]
    cycle_length : float  Window length  [rad]  (> 0)

    Returns
    -------
    float  θ ∈ [0, cycle_length)
    """
    remainder = math.fmod(theta, cycle_length)
    if remainder < 0.0:
        remainder += cycle_length
    if remainder >= cycle_length:
        remainder = 0.0
    return remainder


def phase_boundaries(cycle_length: float = FOUR_STROKE_CYCLE) -> Tuple[float, ...]:
    """Start angles of the Compression, Power and Exhaust quarters  [rad]."""
    quarter = cycle_length / 4.0
    return (quarter, 2.0 * quarter, 3.0 * quarter)


def phase_progress(
    theta: float, cycle_length: float = FOUR_STROKE_CYCLE
) -> Tuple[StrokePhase, float]:
    """Stroke phase and fractional progress through it.

    Boundaries are half-open: ``[0, q) → Intake``, ``[q, 2q) → Compression``,
    ``[2q, 3q) → Power``, ``[3q, 4q) → Exhaust`` with ``q = cycle_length / 4``.

    Parameters
    ----------
    theta        : float  Angle, normalised or not  [rad]
    cycle_length : float  Cycle window  [rad]

    Returns
    -------
    Tuple[StrokePhase, float]
        (phase, progress)  with progress ∈ [0, 1)
    """
    angle = normalize_angle(theta, cycle_length)
    quarter = cycle_length / 4.0
    b1, b2, b3 = phase_boundaries(cycle_length)

    if angle < b1:
        index, start = 0, 0.0
    elif angle < b2:
        index, start = 1, b1
    elif angle < b3:
        index, start = 2, b2
    else:
        index, start = 3, b3

    progress = (angle - start) / quarter
    return _PHASE_ORDER[index], max(0.0, min(progress, 1.0))


def classify_phase(
    theta: float, cycle_length: float = FOUR_STROKE_CYCLE
) -> StrokePhase:
    """Map an angle to exactly one StrokePhase (see ``phase_progress``)."""
    return phase_progress(theta, cycle_length)[0]


# ── Per-frame input ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FrameInput:
    """Inputs supplied to a stepper once per rendered frame.

    Attributes
    ----------
    rpm          : commanded shaft speed  [rev/min]  (≥ 0)
    dt           : elapsed wall time since the previous frame  [s]  (> 0)
    paused       : freeze the angle accumulator
    manual_angle : absolute raw angle applied every frame while paused  [rad]
    """

    rpm: float
    dt: float
    paused: bool = False
    manual_angle: Optional[float] = None

    def __post_init__(self) -> None:
        if self.rpm < 0.0:
            raise ValueError(f"rpm must be ≥ 0, got {self.rpm}")
        if self.dt <= 0.0:
            raise ValueError(f"dt must be > 0 s, got {self.dt}")

    @property
    def angular_velocity(self) -> float:
        """ω = 2π·N/60  [rad/s]."""
        return rpm_to_angular_velocity(self.rpm)


# ── Integrator ───────────────────────────────────────────────────────────────


class AngleIntegrator:
    """Owns one raw shaft-angle accumulator.

    Update rules for one frame:

    ============================  ===================================
    paused, manual angle given    θ ← manual_angle  (absolute)
    running                       θ ← θ + (2π·N/60)·dt
    paused, no manual angle       θ unchanged
    ============================  ===================================
    """

    def __init__(self, initial_angle: float = 0.0) -> None:
        self.angle = float(initial_angle)

    def advance(
        self,
        rpm: float,
        dt: float,
        paused: bool = False,
        manual_angle: Optional[float] = None,
    ) -> float:
        """Apply one frame and return the raw (non-normalised) angle  [rad]."""
        if paused:
            if manual_angle is not None:
                self.angle = float(manual_angle)
        else:
            self.angle += rpm_to_angular_velocity(rpm) * dt
        return self.angle

    def advance_frame(self, frame: FrameInput) -> float:
        """``advance`` driven by a FrameInput."""
        return self.advance(frame.rpm, frame.dt, frame.paused, frame.manual_angle)

    def reset(self) -> None:
        """Zero the accumulator (explicit reinitialisation only)."""
        self.angle = 0.0
