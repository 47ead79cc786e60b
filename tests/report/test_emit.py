from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from hotcells.config import SolverSettings, TargetConfig
from hotcells.engine import BandOutcome, CalibrationReport
from hotcells.errors import ConvergenceError
from hotcells.geometry import DetectorGeometry
from hotcells.solver import BandResult
from report.emit import format_cpp_initializer, format_results, results_payload, write_results_json

pytestmark = pytest.mark.unit

GEOMETRY = DetectorGeometry(n_bands=4, n_channels=8)


@pytest.fixture
def report() -> CalibrationReport:
    error = ConvergenceError("no sign change of the cost function", band=0, context={"target": 2})
    outcomes = (
        BandOutcome(band=0, error=error),
        BandOutcome(
            band=1,
            result=BandResult(band=1, threshold=0.01, excluded=(3, 6), root=0.0, p_value=0.5, target=2),
        ),
        BandOutcome(
            band=2,
            result=BandResult(band=2, threshold=2.5, excluded=(), root=2.4998, p_value=0.25, target=0),
        ),
    )
    return CalibrationReport(
        outcomes=outcomes,
        targets=TargetConfig(p_value=0.05, exclude_counts={0: 2, 1: 2}),
        settings=SolverSettings(policy="collect"),
        geometry=GEOMETRY,
        n_hits=1234,
        generated_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
    )


def test_format_results(report: CalibrationReport) -> None:
    expected = (
        "# bands 3\n"
        "# pvalue 0.05\n"
        "# failures 1\n"
        "\n"
        "band -2\n"
        "error ConvergenceError: band 0: no sign change of the cost function (target=2)\n"
        "\n"
        "band -1\n"
        "threshold 0.01\n"
        "hot -1 2\n"
        "target 2\n"
        "pvalue 0.5\n"
        "\n"
        "band 0\n"
        "threshold 2.50\n"
        "hot\n"
        "target 0\n"
        "pvalue 0.25\n"
    )
    assert format_results(report) == expected


def test_format_cpp_initializer(report: CalibrationReport) -> None:
    text = format_cpp_initializer(report, name="goodhb")
    lines = text.splitlines()
    assert lines[0] == "float goodhb_energies[4] = {"
    assert lines[1] == "  INFINITY, // ieta -2"
    assert lines[2] == "  0.01f, // ieta -1"
    assert lines[3] == "  2.50f, // ieta 0"
    assert lines[4] == "  INFINITY, // ieta 1"
    assert "std::vector<int> goodhb_hotcells[4];" in lines
    assert "goodhb_hotcells[1].push_back(-1); // ieta -1" in lines
    assert "goodhb_hotcells[1].push_back(2); // ieta -1" in lines


def test_results_payload(report: CalibrationReport, tmp_path: Path) -> None:
    payload = results_payload(report)
    assert payload["p_value"] == pytest.approx(0.05)
    assert payload["n_hits"] == 1234
    assert payload["generated_at"].startswith("2024-01-02T03:04:05")
    assert [band["ieta"] for band in payload["bands"]] == [-1, 0]
    assert payload["bands"][0]["hot_cells"] == [-1, 2]
    assert payload["failures"] == [
        {
            "ieta": -2,
            "kind": "ConvergenceError",
            "message": "band 0: no sign change of the cost function (target=2)",
            "context": {"target": 2},
        }
    ]

    path = write_results_json(report, tmp_path / "out" / "results.json")
    assert json.loads(path.read_text(encoding="utf-8")) == payload
