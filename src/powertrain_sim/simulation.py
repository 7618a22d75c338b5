"""
Simulation Session
Selects one powertrain at a time and drives its stepper frame by frame.
"""

from enum import Enum
from typing import Dict, Optional, Type, Union

from .cycle import FrameInput
from .engine_config import SimulatorConfiguration, create_default_configuration
from .steppers import (
    ElectricSnapshot,
    ElectricStepper,
    PistonSnapshot,
    PistonStepper,
    RotarySnapshot,
    RotaryStepper,
    V8Snapshot,
    V8Stepper,
)

Snapshot = Union[PistonSnapshot, RotarySnapshot, ElectricSnapshot, V8Snapshot]
Stepper = Union[PistonStepper, RotaryStepper, ElectricStepper, V8Stepper]


class EngineType(Enum):
    """Powertrain selectable in a session."""

    PISTON = "piston"
    ROTARY = "rotary"
    ELECTRIC = "electric"
    V8 = "v8"


STEPPER_REGISTRY: Dict[EngineType, Type] = {
    EngineType.PISTON: PistonStepper,
    EngineType.ROTARY: RotaryStepper,
    EngineType.ELECTRIC: ElectricStepper,
    EngineType.V8: V8Stepper,
}


class EngineSimulation:
    """One visualizer session with at most one active stepper.

    Switching engine type tears the active stepper down and builds a fresh
    one, so the new engine starts from angle zero (and a cold stator).
    """

    def __init__(
        self,
        engine_type: EngineType = EngineType.PISTON,
        config: Optional[SimulatorConfiguration] = None,
    ) -> None:
        self.config = config if config is not None else create_default_configuration()
        self.engine_type: Optional[EngineType] = None
        self.stepper: Optional[Stepper] = None
        self.last_snapshot: Optional[Snapshot] = None
        self.select(engine_type)

    def select(self, engine_type: Union[EngineType, str]) -> None:
        """Activate ``engine_type`` (enum member or its value string).

        Raises
        ------
        ValueError
            If the name does not match an EngineType.
        """
        engine_type = EngineType(engine_type)
        self.teardown()
        self.engine_type = engine_type
        self.stepper = STEPPER_REGISTRY[engine_type](self.config)

    def tick(self, frame: FrameInput) -> Snapshot:
        """Advance the active stepper by one frame.

        Raises
        ------
        RuntimeError
            If no stepper is active.
        """
        if self.stepper is None:
            raise RuntimeError("No engine selected; call select() first")
        self.last_snapshot = self.stepper.advance(frame)
        return self.last_snapshot

    def reinitialize(self) -> None:
        """Zero the active stepper's accumulators."""
        if self.stepper is not None:
            self.stepper.reset()
        self.last_snapshot = None

    def teardown(self) -> None:
        """Drop the active stepper and everything it owns."""
        self.stepper = None
        self.engine_type = None
        self.last_snapshot = None
