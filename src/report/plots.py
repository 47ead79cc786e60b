from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np

from hotcells.engine import CalibrationReport

from .tables import energy_table

__all__ = ["plot_thresholds"]


def plot_thresholds(report: CalibrationReport, path: str | Path) -> Path:
    """Threshold energy and hot-cell count versus eta."""

    table = energy_table(report)
    if table.empty:
        raise ValueError("Calibration report has no bands to plot.")

    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    width = report.geometry.eta_width

    fig, ax = plt.subplots(figsize=(8, 4.5))
    ax.step(table["eta"], table["threshold"], where="mid", color="C0", label="threshold")
    ax.set_xlabel(r"$\eta$")
    ax.set_ylabel("Threshold energy [GeV]")
    ax.grid(True, alpha=0.3)

    ax_hot = ax.twinx()
    n_hot = table["n_hot"].to_numpy(dtype=np.float64)
    ax_hot.bar(table["eta"], np.nan_to_num(n_hot), width=0.8 * width, color="C1", alpha=0.35, label="hot cells")
    ax_hot.set_ylabel("Hot cells")

    ax.set_title(f"Hot-cell calibration (p = {report.targets.p_value:g})")
    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path
