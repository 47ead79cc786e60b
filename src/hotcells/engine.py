from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Sequence

from .config import POLICIES, SolverSettings, TargetConfig
from .errors import CalibrationError
from .geometry import HB_GEOMETRY, DetectorGeometry
from .histogram import BandOccupancy
from .hits import HitCollection
from .solver import BandResult, solve_threshold

__all__ = [
    "BandOutcome",
    "CalibrationReport",
    "calibrate_band",
    "run_calibration",
]

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BandOutcome:
    """Either the accepted result or the error of one band, never both."""

    band: int
    result: BandResult | None = None
    error: CalibrationError | None = None

    def __post_init__(self) -> None:
        if (self.result is None) == (self.error is None):
            raise ValueError("BandOutcome needs exactly one of result or error.")

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CalibrationReport:
    """Outcome of a full run, ordered by band."""

    outcomes: tuple[BandOutcome, ...]
    targets: TargetConfig
    settings: SolverSettings
    geometry: DetectorGeometry
    n_hits: int
    generated_at: datetime

    @property
    def results(self) -> tuple[BandResult, ...]:
        return tuple(outcome.result for outcome in self.outcomes if outcome.result is not None)

    @property
    def failures(self) -> tuple[BandOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if outcome.error is not None)

    @property
    def ok(self) -> bool:
        return not self.failures

    def result_for(self, band: int) -> BandResult | None:
        for outcome in self.outcomes:
            if outcome.band == int(band):
                return outcome.result
        return None

    def raise_for_failures(self) -> None:
        """Re-raise the first band error, for callers that prefer exceptions."""

        for outcome in self.failures:
            raise outcome.error  # type: ignore[misc]


def calibrate_band(
    hits: HitCollection,
    band: int,
    targets: TargetConfig,
    settings: SolverSettings,
    geometry: DetectorGeometry = HB_GEOMETRY,
) -> BandOutcome:
    """Solve one band, returning calibration errors as values instead of raising."""

    view = BandOccupancy.from_hits(hits, band, geometry.n_channels)
    try:
        result = solve_threshold(view, targets.target(band), targets.p_value, settings)
    except CalibrationError as exc:
        exc.with_band(band)
        _LOGGER.warning("calibration failed for %s", exc)
        return BandOutcome(band=int(band), error=exc)
    return BandOutcome(band=int(band), result=result)


def _band_worker(
    payload: tuple[HitCollection, int, TargetConfig, SolverSettings, DetectorGeometry]
) -> BandOutcome:
    hits, band, targets, settings, geometry = payload
    return calibrate_band(hits, band, targets, settings, geometry)


def run_calibration(
    hits: HitCollection,
    targets: TargetConfig,
    settings: SolverSettings | None = None,
    geometry: DetectorGeometry = HB_GEOMETRY,
    *,
    bands: Iterable[int] | None = None,
    policy: str | None = None,
) -> CalibrationReport:
    """
    Calibrate every requested band of ``hits``.

    Bands are independent. With ``settings.workers`` above one they are solved
    in a process pool, each worker receiving only its band's hits. Under the
    ``fail-fast`` policy no new band is started after the first failure and the
    report carries the outcomes gathered so far; ``collect`` always solves
    every band.

    Sequential fail-fast runs stop at the lowest failing band. In the pool,
    bands finish in whatever order the workers reach them, so which failing
    band is reported (and which other bands appear) depends on timing; use
    ``collect`` when the full set of failures must be reproducible.
    """

    settings = settings or SolverSettings()
    policy = (policy or settings.policy).strip().lower()
    if policy not in POLICIES:
        raise ValueError(f"Unknown failure policy: {policy}")

    band_list = sorted({int(band) for band in (geometry.bands() if bands is None else bands)})
    for band in band_list:
        if not 0 <= band < geometry.n_bands:
            raise ValueError(f"Band {band} outside [0, {geometry.n_bands}).")

    _LOGGER.info(
        "calibrating %d bands from %d hits (p=%.3g, policy=%s)",
        len(band_list),
        len(hits),
        targets.p_value,
        policy,
    )

    payloads = [(hits.for_band(band), band, targets, settings, geometry) for band in band_list]
    max_workers = max(1, settings.workers or 1)
    if len(payloads) <= 1 or max_workers == 1:
        outcomes = _run_sequential(payloads, fail_fast=policy == "fail-fast")
    else:
        outcomes = _run_pool(payloads, max_workers, fail_fast=policy == "fail-fast")

    return CalibrationReport(
        outcomes=tuple(sorted(outcomes, key=lambda outcome: outcome.band)),
        targets=targets,
        settings=settings,
        geometry=geometry,
        n_hits=len(hits),
        generated_at=datetime.now(timezone.utc),
    )


def _run_sequential(payloads: Sequence[tuple], *, fail_fast: bool) -> list[BandOutcome]:
    outcomes: list[BandOutcome] = []
    for payload in payloads:
        outcome = _band_worker(payload)
        outcomes.append(outcome)
        if fail_fast and not outcome.ok:
            break
    return outcomes


def _run_pool(payloads: Sequence[tuple], max_workers: int, *, fail_fast: bool) -> list[BandOutcome]:
    outcomes: list[BandOutcome] = []
    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        pending: set[Future] = {executor.submit(_band_worker, payload) for payload in payloads}
        while pending:
            done, pending = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                outcomes.append(future.result())
            if fail_fast and any(not outcome.ok for outcome in outcomes):
                for future in pending:
                    future.cancel()
                # Bands already running still finish; keep their outcomes.
                for future in pending:
                    if not future.cancelled():
                        outcomes.append(future.result())
                break
    return outcomes
