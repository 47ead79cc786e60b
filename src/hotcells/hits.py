from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, NamedTuple

import numpy as np

__all__ = ["Hit", "HitCollection"]


class Hit(NamedTuple):
    """One weighted energy deposit in a band/channel cell."""

    band: int
    channel: int
    energy: float
    weight: float = 1.0


def _frozen(values: Iterable[float] | np.ndarray, dtype: type) -> np.ndarray:
    arr = np.array(values, dtype=dtype, copy=True).reshape(-1)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class HitCollection:
    """Read-only columnar store of the hits collected for one calibration run.

    The collection is owned by the caller and handed to the engine explicitly;
    its arrays are flagged non-writeable so every band can read them safely.
    """

    band: np.ndarray
    channel: np.ndarray
    energy: np.ndarray
    weight: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "band", _frozen(self.band, np.int64))
        object.__setattr__(self, "channel", _frozen(self.channel, np.int64))
        object.__setattr__(self, "energy", _frozen(self.energy, np.float64))
        object.__setattr__(self, "weight", _frozen(self.weight, np.float64))
        sizes = {self.band.size, self.channel.size, self.energy.size, self.weight.size}
        if len(sizes) != 1:
            raise ValueError("band, channel, energy and weight must have the same length.")
        if self.weight.size and float(self.weight.min()) < 0.0:
            raise ValueError("Hit weights must be non-negative.")
        if not np.all(np.isfinite(self.energy)):
            raise ValueError("Hit energies must be finite.")

    @classmethod
    def empty(cls) -> "HitCollection":
        return cls(
            band=np.empty(0, dtype=np.int64),
            channel=np.empty(0, dtype=np.int64),
            energy=np.empty(0, dtype=np.float64),
            weight=np.empty(0, dtype=np.float64),
        )

    @classmethod
    def from_hits(cls, hits: Iterable[Hit | tuple]) -> "HitCollection":
        rows = [Hit(*hit) for hit in hits]
        if not rows:
            return cls.empty()
        return cls(
            band=[row.band for row in rows],
            channel=[row.channel for row in rows],
            energy=[row.energy for row in rows],
            weight=[row.weight for row in rows],
        )

    @classmethod
    def concatenate(cls, parts: Iterable["HitCollection"]) -> "HitCollection":
        chunks = list(parts)
        if not chunks:
            return cls.empty()
        return cls(
            band=np.concatenate([part.band for part in chunks]),
            channel=np.concatenate([part.channel for part in chunks]),
            energy=np.concatenate([part.energy for part in chunks]),
            weight=np.concatenate([part.weight for part in chunks]),
        )

    def __len__(self) -> int:
        return int(self.band.size)

    def __iter__(self):
        for band, channel, energy, weight in zip(self.band, self.channel, self.energy, self.weight):
            yield Hit(int(band), int(channel), float(energy), float(weight))

    @property
    def total_weight(self) -> float:
        return float(self.weight.sum())

    def bands(self) -> list[int]:
        """Sorted band indices that received at least one hit."""

        return [int(band) for band in np.unique(self.band)]

    def for_band(self, band: int) -> "HitCollection":
        mask = self.band == int(band)
        return HitCollection(
            band=self.band[mask],
            channel=self.channel[mask],
            energy=self.energy[mask],
            weight=self.weight[mask],
        )
