from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np
from scipy.stats import chi2 as chi2_dist

from .errors import DegenerateHistogramError, EmptyHistogramError

__all__ = ["UniformityResult", "uniformity_test"]


@dataclass(frozen=True)
class UniformityResult:
    """Chi-square goodness-of-fit of an occupancy histogram against a flat expectation."""

    chi2: float
    dof: int
    p_value: float
    mean: float
    n_good: int
    hottest: int

    def passes(self, target_p_value: float) -> bool:
        return self.p_value >= float(target_p_value)


def uniformity_test(
    counts: np.ndarray,
    excluded: Iterable[int] = (),
) -> UniformityResult:
    """
    Test whether the non-excluded channels of ``counts`` are uniformly occupied.

    Parameters
    ----------
    counts:
        Per-channel (weighted) occupancy, indexed by channel.
    excluded:
        Channels removed from the test. They still count against the number of
        channels only through ``n_good = n_channels - len(excluded)``.

    Returns
    -------
    UniformityResult
        ``chi2 = sum(x^2) / mean - n_good * mean`` with ``n_good - 1`` degrees of
        freedom, its upper-tail probability and the most occupied remaining
        channel (lowest index wins ties).

    Raises
    ------
    DegenerateHistogramError
        When fewer than two channels remain.
    EmptyHistogramError
        When the remaining channels hold no hits at all.
    """

    values = np.asarray(counts, dtype=np.float64).reshape(-1)
    n_channels = int(values.size)
    excluded_idx = np.unique(np.asarray(list(excluded), dtype=np.int64))
    if excluded_idx.size and (int(excluded_idx.min()) < 0 or int(excluded_idx.max()) >= n_channels):
        raise ValueError(f"Excluded channel outside [0, {n_channels}).")

    n_good = n_channels - int(excluded_idx.size)
    if n_good <= 1:
        raise DegenerateHistogramError(
            "uniformity test needs at least two channels",
            context={"n_channels": n_channels, "n_excluded": int(excluded_idx.size)},
            excluded=tuple(int(ch) for ch in excluded_idx),
        )

    keep = np.ones(n_channels, dtype=bool)
    keep[excluded_idx] = False
    keep &= values > 0.0
    kept = values[keep]

    total = float(kept.sum())
    mean = total / n_good
    if mean <= 0.0:
        raise EmptyHistogramError(
            "no hits left above the cutoff",
            context={"n_good": n_good},
            excluded=tuple(int(ch) for ch in excluded_idx),
        )

    sum_sq = float(np.dot(kept, kept))
    statistic = sum_sq / mean - n_good * mean
    dof = n_good - 1
    p_value = float(chi2_dist.sf(statistic, dof))

    # argmax returns the first maximum, so ties go to the lowest channel.
    masked = np.where(keep, values, -np.inf)
    hottest = int(np.argmax(masked))

    return UniformityResult(
        chi2=float(statistic),
        dof=dof,
        p_value=p_value,
        mean=mean,
        n_good=n_good,
        hottest=hottest,
    )
