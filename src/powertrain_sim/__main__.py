"""
CLI entry point for powertrain_sim.
"""
import argparse
import sys

from .cycle import FrameInput
from .engine_config import SimulatorConfiguration, create_default_configuration
from .simulation import EngineSimulation, EngineType
from .steppers import sweep_cycle
from .utilities import DataExporter, TelemetryHistory, calculate_statistics

SUMMARY_CHANNELS = {
    EngineType.PISTON: ["pressure", "temperature", "torque", "ve"],
    EngineType.ROTARY: ["pressure", "temperature", "volume", "torque"],
    EngineType.ELECTRIC: ["torque", "power", "efficiency", "temperature", "back_emf"],
    EngineType.V8: ["torque"],
}


def run_engine(engine, rpm, frames, dt, config=None, csv_path=None, json_path=None, plot_path=None):
    engine_type = EngineType(engine)
    simulation = EngineSimulation(engine_type, config)
    history = TelemetryHistory()

    print("\n" + "═" * 50)
    print(f"  SIMULATION: {engine_type.value.upper()} at {rpm:.0f} RPM")
    print(f"  {frames} frames, dt = {dt * 1000:.1f} ms")
    print("═" * 50)

    frame = FrameInput(rpm=rpm, dt=dt)
    snapshots = []
    for _ in range(frames):
        snapshot = simulation.tick(frame)
        history.record(snapshot)
        snapshots.append(snapshot)

    last = snapshots[-1]
    print("Status: Complete")
    print(f"Final angle: {last.angle:.3f} rad")
    if hasattr(last, "phase"):
        print(f"Final phase: {last.phase.value}")

    statistics = {
        name: calculate_statistics([getattr(s, name) for s in snapshots])
        for name in SUMMARY_CHANNELS[engine_type]
    }
    exporter = DataExporter()
    print(exporter.create_summary_report(engine_type.value, statistics))

    if csv_path:
        exporter.export_snapshots_to_csv(snapshots, csv_path)
    if json_path:
        summary = {"engine": engine_type.value, "rpm": rpm, "frames": frames, "dt": dt}
        for name, stats in statistics.items():
            summary[f"{name}_mean"] = stats["mean"]
            summary[f"{name}_max"] = stats["max"]
        exporter.export_to_json(summary, json_path)
    if plot_path:
        # matplotlib is only needed when plotting
        from .visualization import EnginePlotter

        plotter = EnginePlotter(show=False)
        if engine_type is EngineType.PISTON:
            plotter.plot_cycle(sweep_cycle(simulation.config, rpm), save_path=plot_path)
        else:
            plotter.plot_telemetry(history, SUMMARY_CHANNELS[engine_type], save_path=plot_path)

    print("═" * 50 + "\n")
    return snapshots


def main(argv=None):
    parser = argparse.ArgumentParser(description="Powertrain Simulator CLI")
    parser.add_argument(
        "--engine",
        choices=[t.value for t in EngineType],
        default="piston",
        help="Powertrain to run (default: piston)",
    )
    parser.add_argument("--rpm", type=float, default=3000.0, help="Shaft speed in RPM (default: 3000.0)")
    parser.add_argument("--frames", type=int, default=120, help="Number of frames to run (default: 120)")
    parser.add_argument("--dt", type=float, default=1.0 / 60.0, help="Frame time in seconds (default: 1/60)")
    parser.add_argument("--config", help="JSON configuration file (default: built-in reference)")
    parser.add_argument("--csv", help="Write per-frame telemetry to this CSV file")
    parser.add_argument("--json", help="Write a summary to this JSON file")
    parser.add_argument("--plot", help="Save a plot to this image file")

    args = parser.parse_args(argv)
    if args.frames < 1:
        parser.error("--frames must be ≥ 1")

    config = SimulatorConfiguration.from_json(args.config) if args.config else create_default_configuration()
    try:
        run_engine(args.engine, args.rpm, args.frames, args.dt, config, args.csv, args.json, args.plot)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
