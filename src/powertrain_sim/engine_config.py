"""
Engine Configuration Module
Immutable specifications for the four simulated powertrains.

Every model reads its constants from one of the frozen dataclasses below;
they are fixed for the lifetime of a session.  Lengths and volumes are SI
(m, m³) except where a field name says otherwise.
"""

import math
import json
import warnings
from dataclasses import dataclass, field
from typing import Dict, List

# ── Working fluid ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AirProperties:
    """Lumped properties of the intake charge and the ambient.

    Attributes
    ----------
    gamma               : polytropic index (losses included)   [-]   (> 1)
    gas_constant        : R                                      J/(kg·K)
    cv                  : specific heat at constant volume       J/(kg·K)
    density_stp         : ρ at standard conditions               kg/m³
    atmospheric_pressure: P_atm                                  Pa
    ambient_temperature : T_amb                                  K
    """

    gamma: float = 1.35
    gas_constant: float = 287.0
    cv: float = 718.0
    density_stp: float = 1.225
    atmospheric_pressure: float = 101_325.0
    ambient_temperature: float = 300.0

    def __post_init__(self) -> None:
        if self.gamma <= 1.0:
            raise ValueError(f"gamma must be > 1, got {self.gamma}")
        if self.gas_constant <= 0.0:
            raise ValueError(
                f"gas_constant must be > 0 J/(kg·K), got {self.gas_constant}"
            )
        if self.cv <= 0.0:
            raise ValueError(f"cv must be > 0 J/(kg·K), got {self.cv}")
        if self.density_stp <= 0.0:
            raise ValueError(f"density_stp must be > 0 kg/m³, got {self.density_stp}")
        if self.atmospheric_pressure <= 0.0:
            raise ValueError(
                f"atmospheric_pressure must be > 0 Pa, got {self.atmospheric_pressure}"
            )
        if self.ambient_temperature <= 0.0:
            raise ValueError(
                f"ambient_temperature must be > 0 K, got {self.ambient_temperature}"
            )


# ── Piston engine ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EngineSpec:
    """Single-cylinder four-stroke specification (2.0 L inline-4 reference).

    Attributes
    ----------
    bore                  : m
    stroke                : m
    connecting_rod_length : m               (> stroke / 2)
    compression_ratio     : dimensionless   (> 1)
    displacement          : swept volume per cylinder  m³
    air_fuel_ratio        : mass AFR  [-]
    fuel_heating_value    : lower heating value  J/kg
    combustion_efficiency : fraction of fuel energy released  (0, 1]
    reciprocating_mass    : piston + small-end share of rod  kg
    pumping_drag          : constant drag torque on Compression/Exhaust  N·m
    """

    bore: float = 0.086
    stroke: float = 0.086
    connecting_rod_length: float = 0.145
    compression_ratio: float = 10.5
    displacement: float = 499.5e-6
    air_fuel_ratio: float = 14.7
    fuel_heating_value: float = 44.0e6
    combustion_efficiency: float = 0.90
    reciprocating_mass: float = 0.4
    pumping_drag: float = 5.0

    def __post_init__(self) -> None:
        if self.bore <= 0.0:
            raise ValueError(f"bore must be > 0 m, got {self.bore}")
        if self.stroke <= 0.0:
            raise ValueError(f"stroke must be > 0 m, got {self.stroke}")
        if self.connecting_rod_length <= self.stroke / 2.0:
            raise ValueError(
                f"connecting_rod_length ({self.connecting_rod_length} m) must be > "
                f"crank_radius ({self.stroke / 2.0} m); otherwise slider-crank "
                "mechanism locks up."
            )
        if self.compression_ratio <= 1.0:
            raise ValueError(
                f"compression_ratio must be > 1, got {self.compression_ratio}"
            )
        if self.displacement <= 0.0:
            raise ValueError(f"displacement must be > 0 m³, got {self.displacement}")
        if self.air_fuel_ratio <= 0.0:
            raise ValueError(f"air_fuel_ratio must be > 0, got {self.air_fuel_ratio}")
        if self.fuel_heating_value <= 0.0:
            raise ValueError(
                f"fuel_heating_value must be > 0 J/kg, got {self.fuel_heating_value}"
            )
        if not (0.0 < self.combustion_efficiency <= 1.0):
            raise ValueError(
                "combustion_efficiency must be in (0, 1], "
                f"got {self.combustion_efficiency}"
            )
        if self.reciprocating_mass < 0.0:
            raise ValueError(
                f"reciprocating_mass must be ≥ 0 kg, got {self.reciprocating_mass}"
            )

    # ── Derived properties ────────────────────────────────────────────────

    @property
    def crank_radius(self) -> float:
        """Crank radius  r = stroke / 2  [m]."""
        return self.stroke / 2.0

    @property
    def lambda_ratio(self) -> float:
        """Crank-to-rod ratio  λ = r / l  [dimensionless]."""
        return self.crank_radius / self.connecting_rod_length

    @property
    def piston_area(self) -> float:
        """Piston crown area  A = π·(D/2)²  [m²]."""
        return math.pi * (self.bore / 2.0) ** 2

    @property
    def clearance_volume(self) -> float:
        """Clearance (TDC) volume  Vc = Vd / (CR − 1)  [m³]."""
        return self.displacement / (self.compression_ratio - 1.0)

    @property
    def total_volume_at_bdc(self) -> float:
        """Charge volume at the start of compression  Vc + Vd  [m³]."""
        return self.clearance_volume + self.displacement


@dataclass(frozen=True)
class VisualGeometry:
    """Scene-unit crank dimensions for the rendered piston assembly.

    Deliberately separate from EngineSpec: the rendered piston height is
    computed with its own slider crank and never feeds the gas model.
    """

    crank_radius: float = 1.0
    rod_length: float = 3.0
    max_valve_lift: float = 0.4

    def __post_init__(self) -> None:
        if self.crank_radius <= 0.0:
            raise ValueError(f"crank_radius must be > 0, got {self.crank_radius}")
        if self.rod_length <= self.crank_radius:
            raise ValueError(
                f"rod_length ({self.rod_length}) must be > crank_radius "
                f"({self.crank_radius})"
            )
        if self.max_valve_lift < 0.0:
            raise ValueError(f"max_valve_lift must be ≥ 0, got {self.max_valve_lift}")


# ── Rotary engine ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class WankelSpec:
    """Single-rotor Wankel specification (1.3 L twin-rotor reference).

    Attributes
    ----------
    generating_radius : R  m
    eccentricity      : e  m
    housing_width     : m
    displacement      : swept volume per chamber  m³
    compression_ratio : fixed geometric ratio  [-]
    combustion_temperature_rise : lumped constant-volume ΔT  K
    exhaust_pressure_ratio      : exhaust back-pressure / P_atm  [-]
    exhaust_temperature         : K
    """

    generating_radius: float = 0.10
    eccentricity: float = 0.015
    housing_width: float = 0.07
    displacement: float = 654.0e-6
    compression_ratio: float = 9.0
    combustion_temperature_rise: float = 1800.0
    exhaust_pressure_ratio: float = 1.1
    exhaust_temperature: float = 900.0

    # Rotor turns at one third of shaft speed; fixed by the phasing gear.
    GEAR_RATIO = 3
    FACES = 3

    def __post_init__(self) -> None:
        if self.generating_radius <= 0.0:
            raise ValueError(
                f"generating_radius must be > 0 m, got {self.generating_radius}"
            )
        if not (0.0 < self.eccentricity < self.generating_radius):
            raise ValueError(
                f"eccentricity must be in (0, R), got {self.eccentricity}"
            )
        if self.housing_width <= 0.0:
            raise ValueError(f"housing_width must be > 0 m, got {self.housing_width}")
        if self.displacement <= 0.0:
            raise ValueError(f"displacement must be > 0 m³, got {self.displacement}")
        if self.compression_ratio <= 1.0:
            raise ValueError(
                f"compression_ratio must be > 1, got {self.compression_ratio}"
            )

    @property
    def min_volume(self) -> float:
        """Chamber volume at minimum  V_min = Vd / CR  [m³]."""
        return self.displacement / self.compression_ratio

    @property
    def max_volume(self) -> float:
        """Chamber volume at maximum  V_min + Vd  [m³]."""
        return self.min_volume + self.displacement

    @property
    def flank_area(self) -> float:
        """Rough projected rotor-flank area  width·R  [m²]."""
        return self.housing_width * self.generating_radius


# ── Electric motor ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MotorSpec:
    """Interior permanent-magnet synchronous motor (rear traction unit).

    Attributes
    ----------
    pole_pairs          : p  [-]
    flux_linkage        : ψ_m  Wb
    stator_resistance   : R_s at the reference temperature  Ω
    d_inductance        : L_d  H
    q_inductance        : L_q  H  (L_q > L_d for an IPM rotor)
    max_current         : current-controller limit  A
    dc_bus_voltage      : V
    base_speed_rpm      : onset of field weakening  rev/min
    copper_temp_coefficient : α_Cu  1/°C
    reference_temperature   : temperature at which R_s is specified  °C
    coolant_temperature     : cooling reference / initial stator temperature  °C
    cooling_base            : W/K
    cooling_per_rpm         : W/(K·rpm)
    thermal_mass            : lumped stator heat capacity  J/K
    """

    pole_pairs: int = 3
    flux_linkage: float = 0.05
    stator_resistance: float = 0.007
    d_inductance: float = 150.0e-6
    q_inductance: float = 350.0e-6
    max_current: float = 200.0
    dc_bus_voltage: float = 400.0
    base_speed_rpm: float = 3000.0
    copper_temp_coefficient: float = 0.00393
    reference_temperature: float = 20.0
    coolant_temperature: float = 25.0
    cooling_base: float = 5.0
    cooling_per_rpm: float = 0.01
    thermal_mass: float = 5000.0

    def __post_init__(self) -> None:
        if self.pole_pairs < 1:
            raise ValueError(f"pole_pairs must be ≥ 1, got {self.pole_pairs}")
        if self.flux_linkage <= 0.0:
            raise ValueError(f"flux_linkage must be > 0 Wb, got {self.flux_linkage}")
        if self.stator_resistance <= 0.0:
            raise ValueError(
                f"stator_resistance must be > 0 Ω, got {self.stator_resistance}"
            )
        if self.d_inductance <= 0.0 or self.q_inductance <= 0.0:
            raise ValueError(
                f"inductances must be > 0 H, got Ld={self.d_inductance}, "
                f"Lq={self.q_inductance}"
            )
        if self.max_current <= 0.0:
            raise ValueError(f"max_current must be > 0 A, got {self.max_current}")
        if self.dc_bus_voltage <= 0.0:
            raise ValueError(
                f"dc_bus_voltage must be > 0 V, got {self.dc_bus_voltage}"
            )
        if self.base_speed_rpm <= 0.0:
            raise ValueError(
                f"base_speed_rpm must be > 0, got {self.base_speed_rpm}"
            )
        if self.thermal_mass <= 0.0:
            raise ValueError(f"thermal_mass must be > 0 J/K, got {self.thermal_mass}")


# ── V8 ────────────────────────────────────────────────────────────────────────


def _crossplane_delays() -> Dict[int, float]:
    return {1: 0.0, 8: 90.0, 4: 180.0, 3: 270.0, 6: 360.0, 5: 450.0, 7: 540.0, 2: 630.0}


@dataclass(frozen=True)
class V8Layout:
    """Crossplane V8 firing configuration.

    Attributes
    ----------
    firing_delays : cylinder id → crank-degree delay after cylinder 1 fires
    bank_angle    : degrees between banks
    firing_window : span after each firing point during which a cylinder
                    counts as firing  [deg]
    """

    firing_delays: Dict[int, float] = field(default_factory=_crossplane_delays)
    bank_angle: float = 90.0
    firing_window: float = 90.0

    def __post_init__(self) -> None:
        if not self.firing_delays:
            raise ValueError("firing_delays must name at least one cylinder")
        for cyl, delay in self.firing_delays.items():
            if not (0.0 <= delay < 720.0):
                raise ValueError(
                    f"firing delay for cylinder {cyl} must be in [0, 720)°, got {delay}"
                )
        if not (0.0 < self.firing_window <= 720.0):
            raise ValueError(
                f"firing_window must be in (0, 720]°, got {self.firing_window}"
            )

    @property
    def firing_order(self) -> List[int]:
        """Cylinder ids sorted by firing delay  (1-8-4-3-6-5-7-2)."""
        return [cyl for cyl, _ in sorted(self.firing_delays.items(), key=lambda kv: kv[1])]


# ── Top-level configuration ───────────────────────────────────────────────────


@dataclass(frozen=True)
class SimulatorConfiguration:
    """Complete configuration shared by every stepper.

    All sub-configurations validate themselves on construction.
    Valid-but-unusual values are reported as ``UserWarning`` notices.
    """

    air: AirProperties = field(default_factory=AirProperties)
    piston: EngineSpec = field(default_factory=EngineSpec)
    visual: VisualGeometry = field(default_factory=VisualGeometry)
    rotary: WankelSpec = field(default_factory=WankelSpec)
    motor: MotorSpec = field(default_factory=MotorSpec)
    v8: V8Layout = field(default_factory=V8Layout)

    def __post_init__(self) -> None:
        self._check_typical_ranges()

    def _check_typical_ranges(self) -> None:
        """Emit notices for parameters outside their usual automotive range."""
        notices: List[str] = []

        cr = self.piston.compression_ratio
        if not (6.0 <= cr <= 25.0):
            notices.append(f"Compression ratio {cr:.1f} outside typical range [6, 25]")

        rod_ratio = 1.0 / self.piston.lambda_ratio
        if not (2.0 <= rod_ratio <= 10.0):
            notices.append(f"Rod ratio {rod_ratio:.2f} outside typical range [2, 10]")

        swept = self.piston.piston_area * self.piston.stroke
        mismatch = abs(swept - self.piston.displacement) / self.piston.displacement
        if mismatch > 0.05:
            notices.append(
                f"Displacement {self.piston.displacement * 1e6:.1f} cc differs from "
                f"bore × stroke ({swept * 1e6:.1f} cc) by {mismatch * 100:.0f}%"
            )

        if self.motor.q_inductance < self.motor.d_inductance:
            notices.append(
                "Lq < Ld: reluctance torque opposes magnet torque under field weakening"
            )

        for msg in notices:
            warnings.warn(msg, stacklevel=3)

    # ── Serialisation ─────────────────────────────────────────────────────

    def to_dict(self) -> Dict:
        """Serialise configuration to a plain dictionary."""
        return {
            "air": _fields(self.air),
            "piston": _fields(self.piston),
            "visual": _fields(self.visual),
            "rotary": _fields(self.rotary),
            "motor": _fields(self.motor),
            "v8": {
                # JSON object keys are strings
                "firing_delays": {str(k): v for k, v in self.v8.firing_delays.items()},
                "bank_angle": self.v8.bank_angle,
                "firing_window": self.v8.firing_window,
            },
        }

    def to_json(self, filepath: str) -> None:
        """Persist configuration to a JSON file."""
        with open(filepath, "w", encoding="utf-8") as fh:
            json.dump(self.to_dict(), fh, indent=2)

    @classmethod
    def from_dict(cls, data: Dict) -> "SimulatorConfiguration":
        """Build a configuration from ``to_dict`` output.

        Raises
        ------
        KeyError
            If a required section is missing.
        ValueError
            If a field has an invalid value.
        """
        try:
            air = data["air"]
            piston = data["piston"]
            visual = data["visual"]
            rotary = data["rotary"]
            motor = dict(data["motor"])
            v8 = dict(data["v8"])
        except KeyError as exc:
            raise KeyError(f"Missing section in configuration file: {exc}") from exc

        motor["pole_pairs"] = int(motor.get("pole_pairs", 3))
        v8["firing_delays"] = {
            int(k): float(v) for k, v in v8.get("firing_delays", {}).items()
        }

        return cls(
            air=AirProperties(**air),
            piston=EngineSpec(**piston),
            visual=VisualGeometry(**visual),
            rotary=WankelSpec(**rotary),
            motor=MotorSpec(**motor),
            v8=V8Layout(**v8),
        )

    @classmethod
    def from_json(cls, filepath: str) -> "SimulatorConfiguration":
        """Load configuration from a JSON file.

        Raises
        ------
        FileNotFoundError
            If filepath does not exist.
        KeyError
            If a required section is missing from the JSON.
        ValueError
            If a field has an invalid value.
        """
        with open(filepath, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        return cls.from_dict(data)


def _fields(spec) -> Dict[str, float]:
    return {name: getattr(spec, name) for name in spec.__dataclass_fields__}


# ── Factory functions ─────────────────────────────────────────────────────────


def create_default_configuration() -> SimulatorConfiguration:
    """Reference configuration used by the visualizer.

        Piston : 86 × 86 mm, 145 mm rod, CR 10.5, 499.5 cc per cylinder
        Rotary : R 100 mm, e 15 mm, width 70 mm, 654 cc per chamber, CR 9
        Motor  : 3 pole pairs, ψ 0.05 Wb, 200 A control limit, 400 V bus
        V8     : crossplane, firing order 1-8-4-3-6-5-7-2
    """
    return SimulatorConfiguration()
