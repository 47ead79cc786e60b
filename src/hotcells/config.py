"""
Configuration for the hot-cell calibration.

Two inputs are read here. The *targets* file is the plain-text format used by
the detector groups (a global ``pvalue`` and one ``<ieta> <count>`` line per
band); the *solver settings* are optional YAML overrides for the numeric knobs
of the threshold search.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

import yaml

from .errors import DataSourceError, ParseError
from .geometry import HB_GEOMETRY, DetectorGeometry

__all__ = [
    "POLICIES",
    "SolverSettings",
    "TargetConfig",
    "format_targets",
    "load_solver_settings",
    "load_targets",
    "parse_targets",
]

DEFAULT_P_VALUE = 0.01
POLICIES = ("fail-fast", "collect")


@dataclass(frozen=True)
class TargetConfig:
    """Global significance plus the requested number of hot cells per band."""

    p_value: float = DEFAULT_P_VALUE
    exclude_counts: Mapping[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 < float(self.p_value) <= 1.0:
            raise ValueError("p_value must lie in (0, 1].")
        counts = {int(band): int(count) for band, count in dict(self.exclude_counts).items()}
        if any(count < 0 for count in counts.values()):
            raise ValueError("Exclusion counts must be non-negative.")
        object.__setattr__(self, "p_value", float(self.p_value))
        object.__setattr__(self, "exclude_counts", counts)

    def target(self, band: int) -> int:
        """Requested exclusion count for ``band`` (0 when the file is silent)."""

        return int(self.exclude_counts.get(int(band), 0))


@dataclass(frozen=True)
class SolverSettings:
    """Numeric knobs of the threshold search and of the run itself."""

    energy_min: float = 0.0
    energy_max: float = 10.0
    slope: float = 1.0
    xtol: float = 1e-6
    rtol: float = 1e-10
    maxiter: int = 100
    round_bias: float = 1e-4
    decimals: int = 2
    workers: int | None = None
    policy: str = "fail-fast"
    energy_column: str = "had_energy"

    def __post_init__(self) -> None:
        if not (math.isfinite(self.energy_min) and math.isfinite(self.energy_max)):
            raise ValueError("energy_min and energy_max must be finite.")
        if self.energy_min >= self.energy_max:
            raise ValueError("energy_min must be smaller than energy_max.")
        if self.slope <= 0.0:
            raise ValueError("slope must be positive.")
        if self.xtol <= 0.0 or self.rtol <= 0.0:
            raise ValueError("xtol and rtol must be positive.")
        if self.maxiter <= 0:
            raise ValueError("maxiter must be positive.")
        if self.round_bias < 0.0:
            raise ValueError("round_bias must be non-negative.")
        if self.decimals < 0:
            raise ValueError("decimals must be non-negative.")
        if self.workers is not None and self.workers <= 0:
            raise ValueError("workers must be positive when provided.")
        if self.policy not in POLICIES:
            raise ValueError(f"policy must be one of {POLICIES}.")

    def with_overrides(self, **kwargs: object) -> "SolverSettings":
        data = self.__dict__ | {key: value for key, value in kwargs.items() if value is not None}
        return SolverSettings(**data)


def _split_words(line: str) -> list[str]:
    words: list[str] = []
    for word in line.split():
        if word.startswith("#"):
            break
        words.append(word)
    return words


def _to_float(line_number: int, word: str) -> float:
    try:
        return float(word)
    except ValueError:
        raise ParseError(line_number, f"cannot interpret '{word}' as a number") from None


def _to_int(line_number: int, word: str) -> int:
    try:
        return int(word, 10)
    except ValueError:
        raise ParseError(line_number, f"cannot interpret '{word}' as a number") from None


def parse_targets(
    lines: Iterable[str] | str,
    geometry: DetectorGeometry = HB_GEOMETRY,
) -> TargetConfig:
    """
    Parse the line-oriented targets format.

    Blank lines and anything after ``#`` are ignored. Each remaining line holds
    exactly two words: ``pvalue <p>`` with ``0 < p <= 1``, or ``<ieta> <count>``
    with ``ieta`` in the centred band convention and a non-negative count.
    Errors are reported as :class:`ParseError` with the 1-based line number.
    """

    if isinstance(lines, str):
        lines = lines.splitlines()

    p_value = DEFAULT_P_VALUE
    counts: dict[int, int] = {}
    for line_number, line in enumerate(lines, start=1):
        words = _split_words(line)
        if not words:
            continue
        if len(words) != 2:
            raise ParseError(line_number, "incomplete statement")

        key, value = words
        if key == "pvalue":
            p_value = _to_float(line_number, value)
            if not 0.0 < p_value <= 1.0:
                raise ParseError(line_number, "pvalue must be in (0, 1]")
            continue

        try:
            ieta = int(key, 10)
        except ValueError:
            raise ParseError(line_number, f"unknown parameter '{key}'") from None
        band = ieta + geometry.band_offset
        if not 0 <= band < geometry.n_bands:
            raise ParseError(line_number, "ieta out of bounds")
        count = _to_int(line_number, value)
        if count < 0:
            raise ParseError(line_number, "value must be positive")
        counts[band] = count

    return TargetConfig(p_value=p_value, exclude_counts=counts)


def load_targets(path: str | Path, geometry: DetectorGeometry = HB_GEOMETRY) -> TargetConfig:
    """Read and parse a targets file; unreadable files raise :class:`DataSourceError`."""

    target_path = Path(path)
    try:
        with target_path.open("r", encoding="utf-8") as handle:
            return parse_targets(handle, geometry)
    except OSError as exc:
        raise DataSourceError(f"cannot open '{target_path}': {exc.strerror or exc}") from exc


def format_targets(config: TargetConfig, geometry: DetectorGeometry = HB_GEOMETRY) -> str:
    """Render ``config`` in the targets format; :func:`parse_targets` reads it back exactly."""

    lines = ["# hot cell targets", f"pvalue {config.p_value!r}"]
    for band in sorted(config.exclude_counts):
        lines.append(f"{geometry.band_label(band)} {config.exclude_counts[band]}")
    return "\n".join(lines) + "\n"


def load_solver_settings(
    config_path: str | Path | None = None,
    **overrides: object,
) -> SolverSettings:
    """
    Load solver settings from YAML, falling back to defaults for missing keys.

    Keyword ``overrides`` (typically from the command line) win over the file;
    ``None`` values are ignored so unset CLI flags do not clobber the YAML.
    """

    defaults = SolverSettings()
    config_data = _read_yaml_dict(Path(config_path)) if config_path is not None else {}

    unknown = sorted(set(config_data) - set(defaults.__dict__))
    if unknown:
        raise ValueError(f"Unknown solver settings: {', '.join(unknown)}")

    merged = defaults.__dict__ | {
        key: config_data.get(key, getattr(defaults, key))
        for key in defaults.__dict__.keys()
    }
    merged |= {key: value for key, value in overrides.items() if value is not None}

    try:
        _normalise_types(merged)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid solver settings: {exc}") from exc

    return SolverSettings(**merged)


def _normalise_types(merged: dict[str, object]) -> None:
    for key in ("energy_min", "energy_max", "slope", "xtol", "rtol", "round_bias"):
        merged[key] = float(merged[key])
    merged["maxiter"] = int(merged["maxiter"])
    merged["decimals"] = int(merged["decimals"])
    if merged.get("workers") is not None:
        merged["workers"] = int(merged["workers"])
    merged["policy"] = str(merged["policy"]).strip().lower()
    merged["energy_column"] = str(merged["energy_column"]).strip()


def _read_yaml_dict(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        try:
            loaded = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Solver settings at {path} are not valid YAML: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ValueError(f"Solver settings at {path} must be a mapping.")
    return loaded
