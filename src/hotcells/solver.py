"""
Energy-threshold search for one band.

The number of channels the pruner must exclude, ``n(E)``, is a non-increasing
step function of the cutoff ``E``. Brent's method needs a sign change rather
than a plateau, so the search runs on

    cost(E) = n(E) - target + (slope * E if n(E) > target else -slope * E)

whose zero sits at the energy where ``n(E)`` crosses the requested count. The
root is biased upwards by ``round_bias`` and rounded up to ``decimals`` places;
the hot-cell list is then recomputed at that rounded threshold.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable

from scipy.optimize import brentq

from .config import SolverSettings
from .errors import ConvergenceError, DegenerateHistogramError, EmptyHistogramError
from .histogram import BandOccupancy
from .pruning import prune_band

__all__ = [
    "BandResult",
    "excluded_count",
    "make_cost",
    "round_threshold",
    "solve_threshold",
]

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BandResult:
    """Accepted calibration of one band, in storage indices."""

    band: int
    threshold: float
    excluded: tuple[int, ...]
    root: float
    p_value: float
    target: int

    def __len__(self) -> int:
        return len(self.excluded)


def excluded_count(view: BandOccupancy, energy: float, target_p_value: float) -> int:
    """
    Number of channels the pruner removes above ``energy``.

    A band with no hits above ``energy`` needs none. When the pruner empties
    the histogram by excluding channels, every remaining hit sits in those
    channels and all of them count.
    """

    try:
        return len(prune_band(view, energy, target_p_value))
    except EmptyHistogramError as exc:
        return len(exc.excluded)


def make_cost(
    view: BandOccupancy,
    target: int,
    target_p_value: float,
    *,
    slope: float = 1.0,
) -> Callable[[float], float]:
    """Build the tie-broken cost function whose root locates the threshold."""

    def cost(energy: float) -> float:
        count = excluded_count(view, energy, target_p_value)
        tilt = slope * energy if count > target else -slope * energy
        value = float(count - target + tilt)
        _LOGGER.debug("band %d: E=%.6g excluded=%d cost=%.6g", view.band, energy, count, value)
        return value

    return cost


def round_threshold(root: float, *, round_bias: float = 1e-4, decimals: int = 2) -> float:
    """Round ``root + round_bias`` up to ``decimals`` places."""

    scale = 10.0 ** int(decimals)
    return math.ceil((float(root) + float(round_bias)) * scale) / scale


def solve_threshold(
    view: BandOccupancy,
    target: int,
    target_p_value: float,
    settings: SolverSettings | None = None,
) -> BandResult:
    """
    Find the band threshold at which the pruner removes ``target`` channels.

    Raises
    ------
    DegenerateHistogramError
        When ``target`` can never be met (more than ``n_channels - 2``), or the
        histogram degenerates at the accepted threshold.
    ConvergenceError
        When the cost function does not change sign over the search interval,
        Brent's method runs out of iterations, or the rounded threshold leaves
        the search interval.
    """

    settings = settings or SolverSettings()
    target = int(target)
    context = {
        "target": target,
        "energy_min": settings.energy_min,
        "energy_max": settings.energy_max,
    }
    if target < 0:
        raise ValueError("target must be non-negative.")
    if target > view.n_channels - 2:
        raise DegenerateHistogramError(
            f"cannot exclude {target} of {view.n_channels} channels",
            band=view.band,
            context=context,
        )

    cost = make_cost(view, target, target_p_value, slope=settings.slope)
    try:
        root, info = brentq(
            cost,
            settings.energy_min,
            settings.energy_max,
            xtol=settings.xtol,
            rtol=settings.rtol,
            maxiter=settings.maxiter,
            full_output=True,
            disp=False,
        )
    except ValueError as exc:
        raise ConvergenceError(f"no sign change of the cost function ({exc})", band=view.band, context=context) from exc

    if not info.converged:
        raise ConvergenceError(
            f"root finder stopped after {info.iterations} iterations ({info.flag})",
            band=view.band,
            context=context | {"last_root": float(root)},
        )

    threshold = round_threshold(root, round_bias=settings.round_bias, decimals=settings.decimals)
    if not settings.energy_min <= threshold <= settings.energy_max:
        raise ConvergenceError(
            "rounded threshold outside the search interval",
            band=view.band,
            context=context | {"root": float(root), "threshold": threshold},
        )

    excluded, p_value = _final_pruning(view, threshold, target_p_value)
    _LOGGER.info(
        "band %d: root=%.6g threshold=%.*f excluded=%d (target %d) p=%.3g",
        view.band,
        root,
        settings.decimals,
        threshold,
        len(excluded),
        target,
        p_value,
    )
    return BandResult(
        band=view.band,
        threshold=threshold,
        excluded=excluded,
        root=float(root),
        p_value=p_value,
        target=target,
    )


def _final_pruning(
    view: BandOccupancy,
    threshold: float,
    target_p_value: float,
) -> tuple[tuple[int, ...], float]:
    try:
        pruned = prune_band(view, threshold, target_p_value)
    except EmptyHistogramError as exc:
        if exc.excluded:
            # The hits above the threshold all sit in the excluded channels; no test is left to pass.
            raise DegenerateHistogramError(
                "every hit above the threshold sits in excluded channels",
                band=view.band,
                context=exc.context | {"threshold": threshold},
                excluded=exc.excluded,
            ) from exc
        _LOGGER.warning("band %d: no hits above threshold %.6g", view.band, threshold)
        return (), 1.0
    return pruned.excluded, pruned.p_value
