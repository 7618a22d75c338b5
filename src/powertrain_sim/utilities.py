"""
Utilities Module
Telemetry history, snapshot flattening and data export.
"""

import csv
import json
from collections import deque
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional

import numpy as np

from .steppers import CycleTrace, CylinderSnapshot

# Oscilloscope traces keep the most recent 100 frames
HISTORY_LENGTH: int = 100


def snapshot_to_dict(snapshot: Any) -> Dict[str, Any]:
    """Flatten a snapshot dataclass into scalar columns.

    Enums become their display value, numeric tuples expand to
    ``name_0, name_1, ...`` and V8 cylinders expand to
    ``cyl<id>_phase``, ``cyl<id>_pressure`` and ``cyl<id>_torque``.
    """
    if not is_dataclass(snapshot):
        raise TypeError(f"Expected a snapshot dataclass, got {type(snapshot).__name__}")

    row: Dict[str, Any] = {}
    for f in fields(snapshot):
        value = getattr(snapshot, f.name)
        if isinstance(value, Enum):
            row[f.name] = value.value
        elif isinstance(value, tuple):
            for i, item in enumerate(value):
                if isinstance(item, CylinderSnapshot):
                    prefix = f"cyl{item.cylinder_id}"
                    row[f"{prefix}_phase"] = item.state.phase.value
                    row[f"{prefix}_pressure"] = item.state.pressure
                    row[f"{prefix}_torque"] = item.state.torque
                elif isinstance(item, Enum):
                    row[f"{f.name}_{i}"] = item.value
                else:
                    row[f"{f.name}_{i}"] = item
        else:
            row[f.name] = value
    return row


class TelemetryHistory:
    """Rolling per-channel buffers for oscilloscope-style traces.

    Each numeric snapshot column becomes a channel; channels are zero-filled
    to full length on first sight so every trace spans the same window.
    """

    def __init__(self, length: int = HISTORY_LENGTH) -> None:
        if length < 1:
            raise ValueError(f"length must be ≥ 1, got {length}")
        self.length = length
        self.channels: Dict[str, Deque[float]] = {}

    def record(self, snapshot: Any) -> None:
        """Append every numeric column of ``snapshot``."""
        for name, value in snapshot_to_dict(snapshot).items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            if name not in self.channels:
                self.channels[name] = deque([0.0] * self.length, maxlen=self.length)
            self.channels[name].append(float(value))

    def series(self, name: str) -> np.ndarray:
        """Buffered values of one channel, oldest first.

        Raises
        ------
        KeyError
            If the channel was never recorded.
        """
        return np.array(self.channels[name], dtype=float)

    def clear(self) -> None:
        self.channels.clear()

    def __len__(self) -> int:
        return len(self.channels)


class DataExporter:
    """
    Export simulation results to CSV or JSON.
    """

    @staticmethod
    def export_snapshots_to_csv(
        snapshots: Iterable[Any], filepath: str, variables: Optional[List[str]] = None
    ):
        """
        Export a sequence of snapshots, one row per frame.

        Args:
            snapshots: Snapshots returned by a stepper
            filepath: Output file path
            variables: Column names to export (None = all)
        """
        rows = [snapshot_to_dict(s) for s in snapshots]
        if not rows:
            raise ValueError("No data to export")

        header = list(rows[0].keys())
        if variables:
            header = [k for k in header if k in variables]

        with open(filepath, "w", newline="") as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow(header)
            for row in rows:
                writer.writerow([row.get(key) for key in header])

        print(f"Data exported to {filepath}")

    @staticmethod
    def export_trace_to_csv(trace: CycleTrace, filepath: str):
        """
        Export a swept cycle to CSV.

        Args:
            trace: CycleTrace from sweep_cycle
            filepath: Output file path
        """
        data_dict = {
            "crank_angle_deg": trace.crank_angles_deg,
            "volume_m3": trace.volume,
            "pressure_pa": trace.pressure,
            "pressure_bar": trace.pressure / 1e5,
            "temperature_k": trace.temperature,
            "torque_nm": trace.torque,
        }
        num_rows = len(trace.crank_angles_deg)

        with open(filepath, "w", newline="") as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow(list(data_dict.keys()) + ["phase"])
            for i in range(num_rows):
                row = [data_dict[key][i] for key in data_dict.keys()]
                writer.writerow(row + [trace.phases[i]])

        print(f"Data exported to {filepath}")

    @staticmethod
    def export_to_json(data: Dict[str, Any], filepath: str):
        """
        Export data dictionary to JSON file.

        Args:
            data: Dictionary of data to export
            filepath: Output file path
        """
        serializable_data = {}
        for key, value in data.items():
            if isinstance(value, np.ndarray):
                serializable_data[key] = value.tolist()
            elif isinstance(value, (int, float, str, bool, list, dict, type(None))):
                serializable_data[key] = value
            else:
                serializable_data[key] = str(value)

        with open(filepath, "w") as f:
            json.dump(serializable_data, f, indent=2)

        print(f"Data exported to {filepath}")

    @staticmethod
    def create_summary_report(engine: str, statistics: Dict[str, Dict[str, float]]) -> str:
        """
        Create a formatted per-channel summary.

        Args:
            engine: Engine type label
            statistics: Channel name -> calculate_statistics output

        Returns:
            Formatted report string
        """
        report = []
        report.append("=" * 60)
        report.append(f"{engine.upper()} TELEMETRY SUMMARY")
        report.append("=" * 60)
        report.append(f"  {'channel':<18}{'mean':>12}{'min':>12}{'max':>12}")
        report.append("-" * 60)
        for name, stats in statistics.items():
            report.append(
                f"  {name:<18}{stats['mean']:>12.3f}{stats['min']:>12.3f}{stats['max']:>12.3f}"
            )
        report.append("=" * 60)
        return "\n".join(report)


def calculate_statistics(data: List[float]) -> Dict[str, float]:
    """
    Calculate basic statistics for a data series.

    Args:
        data: List or array of numerical data

    Returns:
        Dictionary of statistics

    Raises:
        ValueError: If data is empty
    """
    data_array = np.array(data, dtype=float)
    if data_array.size == 0:
        raise ValueError("Cannot compute statistics of an empty series")

    stats = {
        "mean": float(np.mean(data_array)),
        "std": float(np.std(data_array, ddof=0)),
        "min": float(np.min(data_array)),
        "max": float(np.max(data_array)),
        "median": float(np.median(data_array)),
        "range": float(np.max(data_array) - np.min(data_array)),  # peak-to-peak
    }

    return stats
