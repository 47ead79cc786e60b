"""Hot-cell threshold calibration driven by a chi-square uniformity test."""

from __future__ import annotations

from .config import (
    SolverSettings,
    TargetConfig,
    format_targets,
    load_solver_settings,
    load_targets,
    parse_targets,
)
from .engine import BandOutcome, CalibrationReport, calibrate_band, run_calibration
from .errors import (
    CalibrationError,
    ConvergenceError,
    DataSourceError,
    DegenerateHistogramError,
    EmptyHistogramError,
    ParseError,
)
from .geometry import HB_GEOMETRY, DetectorGeometry
from .histogram import BandOccupancy, occupancy
from .hits import Hit, HitCollection
from .pruning import PruningResult, prune_band, prune_outliers
from .solver import BandResult, solve_threshold
from .uniformity import UniformityResult, uniformity_test

__all__ = [
    "BandOccupancy",
    "BandOutcome",
    "BandResult",
    "CalibrationError",
    "CalibrationReport",
    "ConvergenceError",
    "DataSourceError",
    "DegenerateHistogramError",
    "DetectorGeometry",
    "EmptyHistogramError",
    "HB_GEOMETRY",
    "Hit",
    "HitCollection",
    "ParseError",
    "PruningResult",
    "SolverSettings",
    "TargetConfig",
    "UniformityResult",
    "calibrate_band",
    "format_targets",
    "load_solver_settings",
    "load_targets",
    "occupancy",
    "parse_targets",
    "prune_band",
    "prune_outliers",
    "run_calibration",
    "solve_threshold",
    "uniformity_test",
]
