"""
Visualization Module
Plots of a swept piston cycle and of recorded telemetry.
"""

import matplotlib.pyplot as plt
import numpy as np
from typing import Optional, Sequence

from .steppers import CycleTrace
from .utilities import TelemetryHistory

_PHASE_COLORS = {
    "Intake": "green",
    "Compression": "orange",
    "Power": "red",
    "Exhaust": "gray",
}


class EnginePlotter:
    """
    Creates plots for simulation results.

    Supports:
    - P-V diagram of a swept cycle
    - Pressure and torque vs crank angle with stroke shading
    - Oscilloscope view of recorded telemetry channels
    """

    def __init__(self, style: str = "default", show: bool = True):
        """
        Args:
            style: Matplotlib style name
            show: Call plt.show() after each plot
        """
        if style != "default":
            try:
                plt.style.use(style)
            except OSError as e:
                print(f"Warning: Style '{style}' not found, using default. Error: {e}")

        self.show = show
        self.fig_size = (12, 8)

    def _finish(self, fig, save_path: Optional[str], label: str):
        plt.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches="tight")
            print(f"{label} saved to {save_path}")

        if self.show:
            plt.show()
        return fig

    @staticmethod
    def _shade_phases(ax, trace: CycleTrace):
        """Shade contiguous runs of the same stroke."""
        angles = trace.crank_angles_deg
        start = 0
        labelled = set()
        for i in range(1, len(trace.phases) + 1):
            if i == len(trace.phases) or trace.phases[i] != trace.phases[start]:
                phase = trace.phases[start]
                end = angles[min(i, len(angles) - 1)]
                ax.axvspan(
                    angles[start],
                    end,
                    alpha=0.15,
                    color=_PHASE_COLORS.get(phase, "white"),
                    label=phase if phase not in labelled else None,
                )
                labelled.add(phase)
                start = i

    def plot_pv_diagram(self, trace: CycleTrace, save_path: Optional[str] = None):
        """
        Create P-V (indicator) diagram.

        Args:
            trace: Swept cycle
            save_path: Optional path to save figure
        """
        fig, ax = plt.subplots(figsize=(10, 8))

        volume_cm3 = trace.volume * 1e6
        pressure_bar = trace.pressure / 1e5

        ax.plot(volume_cm3, pressure_bar, "b-", linewidth=2, label="Otto cycle")

        peak_idx = int(np.argmax(trace.pressure))
        ax.plot(
            volume_cm3[peak_idx], pressure_bar[peak_idx], "ro", markersize=8, label="Peak"
        )

        ax.set_xlabel("Volume (cm³)", fontsize=12, fontweight="bold")
        ax.set_ylabel("Pressure (bar)", fontsize=12, fontweight="bold")
        ax.set_title(
            f"P-V Diagram at {trace.rpm:.0f} RPM", fontsize=14, fontweight="bold"
        )
        ax.grid(True, alpha=0.3)
        ax.legend(fontsize=10)

        ax.text(
            0.05,
            0.95,
            f"IMEP = {trace.imep / 1e5:.2f} bar",
            transform=ax.transAxes,
            fontsize=11,
            verticalalignment="top",
            bbox=dict(boxstyle="round", facecolor="wheat", alpha=0.5),
        )

        return self._finish(fig, save_path, "P-V diagram")

    def plot_cycle(self, trace: CycleTrace, save_path: Optional[str] = None):
        """
        Pressure and torque vs crank angle on shared axes.

        Args:
            trace: Swept cycle
            save_path: Optional path to save figure
        """
        fig, (ax_p, ax_t) = plt.subplots(2, 1, figsize=self.fig_size, sharex=True)

        ax_p.plot(trace.crank_angles_deg, trace.pressure / 1e5, "b-", linewidth=2)
        self._shade_phases(ax_p, trace)
        ax_p.set_ylabel("Pressure (bar)", fontsize=12, fontweight="bold")
        ax_p.grid(True, alpha=0.3)
        ax_p.legend(loc="upper right", fontsize=9)

        ax_t.plot(trace.crank_angles_deg, trace.torque, "r-", linewidth=2)
        ax_t.axhline(
            trace.mean_torque,
            color="k",
            linestyle="--",
            label=f"Mean = {trace.mean_torque:.1f} N·m",
        )
        self._shade_phases(ax_t, trace)
        ax_t.set_xlabel("Crank Angle (degrees)", fontsize=12, fontweight="bold")
        ax_t.set_ylabel("Torque (N·m)", fontsize=12, fontweight="bold")
        ax_t.set_xlim(0, 720)
        ax_t.grid(True, alpha=0.3)

        return self._finish(fig, save_path, "Cycle plot")

    def plot_telemetry(
        self,
        history: TelemetryHistory,
        channels: Sequence[str],
        save_path: Optional[str] = None,
    ):
        """
        Oscilloscope view: one subplot per channel, newest sample on the right.

        Args:
            history: Recorded telemetry
            channels: Channel names to draw
            save_path: Optional path to save figure

        Raises:
            ValueError: If no channels are requested
        """
        if not channels:
            raise ValueError("At least one channel is required")

        fig, axes = plt.subplots(
            len(channels), 1, figsize=self.fig_size, sharex=True, squeeze=False
        )
        for ax, name in zip(axes[:, 0], channels):
            ax.plot(history.series(name), linewidth=1.5)
            ax.set_ylabel(name, fontsize=10, fontweight="bold")
            ax.grid(True, alpha=0.3)
        axes[-1, 0].set_xlabel("Frame", fontsize=12, fontweight="bold")

        return self._finish(fig, save_path, "Telemetry plot")
