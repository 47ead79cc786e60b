from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .errors import DegenerateHistogramError
from .histogram import BandOccupancy
from .uniformity import UniformityResult, uniformity_test

__all__ = ["PruningResult", "prune_outliers", "prune_band"]

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PruningResult:
    """Hot channels removed, in removal order, and the passing test."""

    excluded: tuple[int, ...]
    test: UniformityResult

    def __len__(self) -> int:
        return len(self.excluded)

    @property
    def p_value(self) -> float:
        return self.test.p_value


def prune_outliers(counts: np.ndarray, target_p_value: float) -> PruningResult:
    """
    Greedily exclude the most occupied channel until the histogram looks flat.

    Each iteration runs :func:`uniformity_test`; if the p-value reaches
    ``target_p_value`` the current exclusion list is returned, otherwise the
    hottest remaining channel is appended. The list grows by exactly one
    channel per step, so the loop ends after at most ``n_channels - 1`` tests:
    the test itself raises :class:`DegenerateHistogramError` once fewer than
    two channels remain.
    """

    if not 0.0 < float(target_p_value) <= 1.0:
        raise ValueError("target_p_value must lie in (0, 1].")

    excluded: list[int] = []
    while True:
        try:
            test = uniformity_test(counts, excluded)
        except DegenerateHistogramError as exc:
            exc.excluded = tuple(excluded)
            exc.context.setdefault("target_p_value", float(target_p_value))
            raise
        if test.passes(target_p_value):
            return PruningResult(excluded=tuple(excluded), test=test)
        _LOGGER.debug(
            "p=%.3g < %.3g with %d excluded; dropping channel %d",
            test.p_value,
            target_p_value,
            len(excluded),
            test.hottest,
        )
        excluded.append(test.hottest)


def prune_band(view: BandOccupancy, cutoff: float, target_p_value: float) -> PruningResult:
    """Prune the band's histogram above ``cutoff``, tagging failures with band and energy."""

    try:
        return prune_outliers(view.at(cutoff), target_p_value)
    except DegenerateHistogramError as exc:
        exc.context.setdefault("energy", float(cutoff))
        raise exc.with_band(view.band)
