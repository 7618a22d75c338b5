"""
V8 Module
Crossplane firing table and per-cylinder angle derivation.

Every cylinder runs the same four-stroke model as the single piston engine,
shifted by its firing delay from one master crank angle:

    θ_c = θ_master − δ_c

No cylinder owns an integrator of its own, so the eight cylinders can never
drift out of phase.
"""

import math
from typing import List, Optional

from .cycle import FOUR_STROKE_CYCLE, normalize_angle
from .engine_config import V8Layout

_CYCLE_DEG = 720.0
# Cylinder 1 fires at TDC between compression and power
_FIRING_POINT_DEG = 360.0


class V8Cylinder:
    """One cylinder of the V8: identifier, bank and firing delay."""

    def __init__(self, cylinder_id: int, delay_deg: float, bank_angle_deg: float = 90.0) -> None:
        """
        Parameters
        ----------
        cylinder_id    : int    Cylinder number 1..8 (odd = left bank)
        delay_deg      : float  Crank degrees after cylinder 1 fires  [deg]
        bank_angle_deg : float  Included angle between banks  [deg]
        """
        self.cylinder_id = cylinder_id
        self.delay_deg = delay_deg
        self.delay_rad = math.radians(delay_deg)
        self.bank = "L" if cylinder_id % 2 == 1 else "R"
        half = bank_angle_deg / 2.0
        self.bank_angle_deg = half if self.bank == "L" else -half

    @property
    def firing_point_deg(self) -> float:
        """Master-cycle position at which this cylinder fires  [deg]."""
        return (_FIRING_POINT_DEG + self.delay_deg) % _CYCLE_DEG

    def local_angle(self, master_angle: float) -> float:
        """Raw local crank angle  θ_master − δ  [rad]."""
        return master_angle - self.delay_rad

    def __repr__(self) -> str:
        return f"V8Cylinder(id={self.cylinder_id}, delay={self.delay_deg:g}°, bank={self.bank})"


def build_cylinders(layout: V8Layout) -> List[V8Cylinder]:
    """Cylinders of ``layout`` in firing order."""
    return [
        V8Cylinder(cyl, layout.firing_delays[cyl], layout.bank_angle)
        for cyl in layout.firing_order
    ]


def _degrees_since(position: float, firing_point: float) -> float:
    """Crank degrees elapsed since ``firing_point``, in [0, 720)."""
    return (position - firing_point) % _CYCLE_DEG


def firing_cylinder(master_angle: float, layout: V8Layout) -> Optional[int]:
    """Cylinder currently inside its firing window, if any.

    A cylinder is "firing" over the half-open window
    ``[fire, fire + layout.firing_window)`` after its firing point
    ``fire = (360° + δ) mod 720°``.  With the default 90° window and 90°
    spacing exactly one cylinder is firing at any master angle.

    Returns
    -------
    Optional[int]  cylinder id, or None when no window covers the position
    """
    position = math.degrees(normalize_angle(master_angle, FOUR_STROKE_CYCLE))
    for cyl in build_cylinders(layout):
        if _degrees_since(position, cyl.firing_point_deg) < layout.firing_window:
            return cyl.cylinder_id
    return None
