"""
Basic Powertrain Simulation Example
Demonstrates simple usage of the four steppers, the cycle sweep and plotting.
"""

import os

# Headless environment check
if "DISPLAY" not in os.environ and os.name != "nt":
    import matplotlib

    matplotlib.use("Agg")
    print("Physical display not detected. Using 'Agg' backend for plot exports.")

from powertrain_sim.cycle import FrameInput
from powertrain_sim.engine_config import EngineSpec, SimulatorConfiguration
from powertrain_sim.simulation import EngineSimulation, EngineType
from powertrain_sim.steppers import sweep_cycle
from powertrain_sim.utilities import DataExporter, TelemetryHistory, calculate_statistics
from powertrain_sim.visualization import EnginePlotter


def example_1_piston_cycle():
    """Example 1: Sweep one Otto cycle and plot it"""

    print("=" * 70)
    print("EXAMPLE 1: Single Cylinder Otto Cycle")
    print("=" * 70)
    print()

    config = SimulatorConfiguration(
        piston=EngineSpec(compression_ratio=11.0, pumping_drag=6.0),
    )
    trace = sweep_cycle(config, rpm=4500.0, resolution_deg=0.5)

    print(f"Peak pressure:   {trace.pressure.max() / 1e5:.1f} bar")
    print(f"Indicated work:  {trace.indicated_work:.1f} J")
    print(f"IMEP:            {trace.imep / 1e5:.2f} bar")
    print(f"Mean torque:     {trace.mean_torque:.1f} N·m")
    print()

    plotter = EnginePlotter(show=False)
    plotter.plot_pv_diagram(trace, save_path="pv_diagram.png")
    plotter.plot_cycle(trace, save_path="cycle.png")
    DataExporter.export_trace_to_csv(trace, "cycle.csv")


def example_2_switch_engines():
    """Example 2: Run every powertrain for two seconds of frames"""

    print("=" * 70)
    print("EXAMPLE 2: Switching Powertrains")
    print("=" * 70)
    print()

    simulation = EngineSimulation()
    frame = FrameInput(rpm=3000.0, dt=1.0 / 60.0)

    for engine_type in EngineType:
        simulation.select(engine_type)
        torques = [simulation.tick(frame).torque for _ in range(120)]
        stats = calculate_statistics(torques)
        print(
            f"{engine_type.value:>9}: mean torque {stats['mean']:8.1f} N·m, "
            f"range {stats['range']:8.1f} N·m"
        )
    print()


def example_3_motor_telemetry():
    """Example 3: Oscilloscope view of the electric motor in field weakening"""

    print("=" * 70)
    print("EXAMPLE 3: Electric Motor Telemetry")
    print("=" * 70)
    print()

    simulation = EngineSimulation(EngineType.ELECTRIC)
    history = TelemetryHistory()
    frame = FrameInput(rpm=6000.0, dt=1.0 / 60.0)
    for _ in range(300):
        history.record(simulation.tick(frame))

    last = simulation.last_snapshot
    print(f"Torque:       {last.torque:.1f} N·m")
    print(f"Efficiency:   {last.efficiency:.1f} %")
    print(f"Stator temp:  {last.temperature:.1f} °C")
    print()

    plotter = EnginePlotter(show=False)
    plotter.plot_telemetry(
        history, ["phase_currents_0", "phase_currents_1", "phase_currents_2", "temperature"],
        save_path="motor_scope.png",
    )


if __name__ == "__main__":
    example_1_piston_cycle()
    example_2_switch_engines()
    example_3_motor_telemetry()
