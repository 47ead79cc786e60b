"""Determine per-band energy thresholds and hot-cell lists from a tower table."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import NoReturn, Sequence

from calotower import Subdetector, collect_from_source
from hotcells import (
    CalibrationReport,
    DataSourceError,
    ParseError,
    load_solver_settings,
    load_targets,
    run_calibration,
)
from hotcells.config import POLICIES
from report import format_cpp_initializer, format_results, write_results_json, write_tables

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_CALIBRATION_FAILED = 2

_LOGGER = logging.getLogger("calibrate_hot_cells")


class _ArgumentParser(argparse.ArgumentParser):
    """Argument errors exit with the input-error code instead of argparse's 2."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_INPUT_ERROR, f"{self.prog}: error: {message}\n")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = _ArgumentParser(
        description="Calibrate energy thresholds and hot cells per eta band.",
        epilog=(
            "The targets file holds 'pvalue <p>' and '<ieta> <count>' lines; "
            "the data source is a CSV or Parquet tower table."
        ),
    )
    parser.add_argument("targets", type=Path, help="File with the number of cells to remove in every eta bin.")
    parser.add_argument("data", type=Path, help="Tower table (CSV/TXT or Parquet).")
    parser.add_argument("--settings", type=Path, default=None, help="Optional YAML solver settings.")
    parser.add_argument("--workers", type=int, default=None, help="Worker processes for band solving.")
    parser.add_argument(
        "--policy",
        choices=POLICIES,
        default=None,
        help="Stop at the first failing band or collect every failure.",
    )
    parser.add_argument(
        "--subdetector",
        default="hb",
        choices=("eb", "ee", "hb", "he", "hf"),
        help="Towers to collect (default: hb).",
    )
    parser.add_argument("--energy-column", default=None, help="Energy column (default from settings).")
    parser.add_argument("--weight-column", default=None, help="Optional per-tower weight column.")
    parser.add_argument("--json", type=Path, default=None, help="Write the results as JSON.")
    parser.add_argument("--cpp", type=Path, default=None, help="Write C++ initialisers for the tower filter.")
    parser.add_argument("--tables", type=Path, default=None, help="Directory for CSV summary tables.")
    parser.add_argument("--plot", type=Path, default=None, help="Write a threshold-vs-eta figure.")
    parser.add_argument("--verbose", action="store_true", help="Log progress for each band.")
    return parser.parse_args(argv)


def _write_outputs(report: CalibrationReport, args: argparse.Namespace) -> None:
    if args.json is not None:
        write_results_json(report, args.json)
    if args.cpp is not None:
        args.cpp.parent.mkdir(parents=True, exist_ok=True)
        args.cpp.write_text(format_cpp_initializer(report), encoding="utf-8")
    if args.tables is not None:
        write_tables(report, args.tables)
    if args.plot is not None:
        from report.plots import plot_thresholds  # defer matplotlib import

        plot_thresholds(report, args.plot)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        targets = load_targets(args.targets)
    except (ParseError, DataSourceError) as exc:
        print(f"Error: cannot read configuration from '{args.targets}': {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    try:
        settings = load_solver_settings(
            args.settings,
            workers=args.workers,
            policy=args.policy,
            energy_column=args.energy_column,
        )
    except (OSError, ValueError) as exc:
        print(f"Error: invalid solver settings: {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    try:
        hits = collect_from_source(
            args.data,
            Subdetector(args.subdetector),
            energy_column=settings.energy_column,
            weight_column=args.weight_column,
        )
    except DataSourceError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    report = run_calibration(hits, targets, settings)
    print(format_results(report), end="")

    try:
        _write_outputs(report, args)
    except OSError as exc:
        print(f"Error: cannot write outputs: {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    if not report.ok:
        for outcome in report.failures:
            _LOGGER.error("calibration failed: %s", outcome.error)
        return EXIT_CALIBRATION_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
