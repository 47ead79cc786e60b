"""
Per-channel occupancy above an energy cutoff.

The histogram is recomputed for every pruning step of every root-finder trial,
so :class:`BandOccupancy` keeps the band's hits sorted by energy and answers
``energy > cutoff`` queries with a binary search plus one ``bincount``.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .hits import HitCollection

__all__ = ["occupancy", "BandOccupancy"]


def occupancy(
    hits: HitCollection,
    band: int,
    cutoff: float,
    n_channels: int,
) -> np.ndarray:
    """Weighted hit count per channel for hits in ``band`` with ``energy > cutoff``."""

    mask = (hits.band == int(band)) & (hits.energy > float(cutoff))
    channels = hits.channel[mask]
    if channels.size and (int(channels.min()) < 0 or int(channels.max()) >= n_channels):
        raise ValueError(f"Channel index outside [0, {n_channels}) in band {band}.")
    counts = np.bincount(channels, weights=hits.weight[mask], minlength=int(n_channels))
    return counts.astype(np.float64, copy=False)


@dataclass(frozen=True)
class BandOccupancy:
    """Energy-sorted view over the hits of a single band."""

    band: int
    n_channels: int
    energy: np.ndarray
    channel: np.ndarray
    weight: np.ndarray

    @classmethod
    def from_hits(cls, hits: HitCollection, band: int, n_channels: int) -> "BandOccupancy":
        subset = hits.for_band(band)
        order = np.argsort(subset.energy, kind="stable")
        channel = subset.channel[order]
        if channel.size and (int(channel.min()) < 0 or int(channel.max()) >= n_channels):
            raise ValueError(f"Channel index outside [0, {n_channels}) in band {band}.")
        return cls(
            band=int(band),
            n_channels=int(n_channels),
            energy=subset.energy[order],
            channel=channel,
            weight=subset.weight[order],
        )

    def at(self, cutoff: float) -> np.ndarray:
        """Histogram of hits with ``energy > cutoff``; identical to :func:`occupancy`."""

        start = int(np.searchsorted(self.energy, float(cutoff), side="right"))
        return np.bincount(
            self.channel[start:],
            weights=self.weight[start:],
            minlength=self.n_channels,
        ).astype(np.float64, copy=False)
