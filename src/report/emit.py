"""
Text emitters for calibration reports.

All band and channel indices are written in the centred convention (``ieta``,
``iphi``) consumed by the tower filters.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from hotcells.engine import BandOutcome, CalibrationReport

__all__ = [
    "format_results",
    "format_cpp_initializer",
    "results_payload",
    "write_results_json",
]


def _format_threshold(value: float, decimals: int) -> str:
    return f"{value:.{decimals}f}"


def _outcome_block(outcome: BandOutcome, report: CalibrationReport) -> list[str]:
    geometry = report.geometry
    lines = [f"band {geometry.band_label(outcome.band)}"]
    if outcome.result is None:
        error = outcome.error
        lines.append(f"error {type(error).__name__}: {error}")
        return lines
    result = outcome.result
    hot = " ".join(str(geometry.channel_label(ch)) for ch in result.excluded)
    lines.append(f"threshold {_format_threshold(result.threshold, report.settings.decimals)}")
    lines.append(f"hot {hot}".rstrip())
    lines.append(f"target {result.target}")
    lines.append(f"pvalue {result.p_value:.6g}")
    return lines


def format_results(report: CalibrationReport) -> str:
    """Render one ``key value`` block per band, blocks separated by blank lines."""

    header = [
        f"# bands {len(report.outcomes)}",
        f"# pvalue {report.targets.p_value!r}",
        f"# failures {len(report.failures)}",
    ]
    blocks = ["\n".join(header)]
    blocks.extend("\n".join(_outcome_block(outcome, report)) for outcome in report.outcomes)
    return "\n\n".join(blocks) + "\n"


def format_cpp_initializer(report: CalibrationReport, *, name: str = "goodhb") -> str:
    """
    Emit C++ initialisers for a per-band threshold array and hot-cell vectors.

    Bands that were not calibrated get an infinite threshold so a filter built
    from the arrays rejects them.
    """

    geometry = report.geometry
    decimals = report.settings.decimals
    lines = [f"float {name}_energies[{geometry.n_bands}] = {{"]
    for band in geometry.bands():
        result = report.result_for(band)
        value = "INFINITY" if result is None else f"{_format_threshold(result.threshold, decimals)}f"
        lines.append(f"  {value}, // ieta {geometry.band_label(band)}")
    lines.append("};")
    lines.append(f"std::vector<int> {name}_hotcells[{geometry.n_bands}];")
    for result in report.results:
        for channel in result.excluded:
            lines.append(
                f"{name}_hotcells[{result.band}].push_back({geometry.channel_label(channel)});"
                f" // ieta {geometry.band_label(result.band)}"
            )
    return "\n".join(lines) + "\n"


def results_payload(report: CalibrationReport) -> dict[str, Any]:
    geometry = report.geometry
    settings = report.settings
    bands: list[dict[str, Any]] = []
    failures: list[dict[str, Any]] = []
    for outcome in report.outcomes:
        ieta = geometry.band_label(outcome.band)
        if outcome.result is None:
            error = outcome.error
            failures.append(
                {
                    "ieta": ieta,
                    "kind": type(error).__name__,
                    "message": str(error),
                    "context": {key: _jsonable(value) for key, value in error.context.items()},
                }
            )
            continue
        result = outcome.result
        bands.append(
            {
                "ieta": ieta,
                "eta": float(geometry.band_center(outcome.band)),
                "threshold": float(result.threshold),
                "hot_cells": [geometry.channel_label(ch) for ch in result.excluded],
                "target": int(result.target),
                "root": float(result.root),
                "p_value": float(result.p_value),
            }
        )
    return {
        "generated_at": report.generated_at.isoformat(),
        "p_value": float(report.targets.p_value),
        "n_hits": int(report.n_hits),
        "settings": {
            "energy_min": float(settings.energy_min),
            "energy_max": float(settings.energy_max),
            "slope": float(settings.slope),
            "xtol": float(settings.xtol),
            "maxiter": int(settings.maxiter),
            "round_bias": float(settings.round_bias),
            "decimals": int(settings.decimals),
        },
        "bands": bands,
        "failures": failures,
    }


def write_results_json(report: CalibrationReport, path: str | Path) -> Path:
    payload = results_payload(report)
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return output_path


def _jsonable(value: Any) -> Any:
    if isinstance(value, (bool, int, float, str)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    try:
        return float(value)
    except (TypeError, ValueError):
        return str(value)
