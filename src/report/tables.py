from __future__ import annotations

from pathlib import Path
from typing import Iterable

import numpy as np
import pandas as pd

from hotcells.engine import CalibrationReport
from hotcells.histogram import BandOccupancy
from hotcells.solver import excluded_count

__all__ = ["energy_table", "hotcell_table", "scan_table", "write_tables"]


def energy_table(report: CalibrationReport) -> pd.DataFrame:
    """Threshold and hot-cell count per band; failed bands carry NaN."""

    geometry = report.geometry
    rows: list[dict[str, object]] = []
    for outcome in report.outcomes:
        result = outcome.result
        rows.append(
            {
                "ieta": geometry.band_label(outcome.band),
                "eta": geometry.band_center(outcome.band),
                "n_hot": len(result.excluded) if result is not None else np.nan,
                "threshold": result.threshold if result is not None else np.nan,
                "p_value": result.p_value if result is not None else np.nan,
            }
        )
    return pd.DataFrame(rows, columns=["ieta", "eta", "n_hot", "threshold", "p_value"])


def hotcell_table(report: CalibrationReport) -> pd.DataFrame:
    """One row per excluded cell with its centred indices and mean coordinates."""

    geometry = report.geometry
    rows = [
        {
            "ieta": geometry.band_label(result.band),
            "eta": geometry.band_center(result.band),
            "iphi": geometry.channel_label(channel),
            "phi": geometry.channel_center(channel),
        }
        for result in report.results
        for channel in result.excluded
    ]
    return pd.DataFrame(rows, columns=["ieta", "eta", "iphi", "phi"])


def scan_table(
    view: BandOccupancy,
    energies: Iterable[float],
    target_p_value: float,
) -> pd.DataFrame:
    """Number of hot cells the pruner needs at each cutoff of ``energies``."""

    grid = np.asarray(list(energies), dtype=np.float64)
    counts = [excluded_count(view, float(energy), target_p_value) for energy in grid]
    return pd.DataFrame({"energy": grid, "n_hot": np.asarray(counts, dtype=np.int64)})


def write_tables(report: CalibrationReport, root: Path) -> tuple[Path, Path]:
    root.mkdir(parents=True, exist_ok=True)
    energy_path = root / "thresholds.csv"
    hot_path = root / "hot_cells.csv"
    energy_table(report).to_csv(energy_path, index=False)
    hotcell_table(report).to_csv(hot_path, index=False)
    return energy_path, hot_path
