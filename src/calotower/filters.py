"""
Composable tower predicates.

Predicates are small immutable values forming an expression tree. They combine
with ``&``, ``|`` and ``~`` and evaluate either on a whole DataFrame chunk
(:meth:`Predicate.mask`, vectorised) or on a single :class:`TowerRecord`
(calling the predicate). Composites hold their operands by value, so a tree
can be built, shared between workers and dropped without any bookkeeping.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

import numpy as np
import pandas as pd

from hotcells.geometry import HB_GEOMETRY, DetectorGeometry

from .records import TowerRecord

__all__ = [
    "Predicate",
    "Always",
    "Subdetector",
    "Compare",
    "InBand",
    "And",
    "Or",
    "Not",
    "GoodTowers",
    "ColdCells",
    "GoodEB",
    "DEFAULT_EB_HOT_CELLS",
    "DEFAULT_EB_THRESHOLDS",
    "COLD_EB",
    "GOOD_EB",
    "EB",
    "EE",
    "HB",
    "HE",
    "HF",
]

_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}

_SUBDETECTOR_COLUMNS = {
    "eb": "eb_hits",
    "ee": "ee_hits",
    "hb": "hb_hits",
    "he": "he_hits",
    "hf": "hf_hits",
}


def _as_row(record: TowerRecord | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(record, TowerRecord):
        return record._asdict()
    return record


class Predicate:
    """Base class of the predicate expression tree."""

    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        raise NotImplementedError

    def test(self, row: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def columns(self) -> frozenset[str]:
        """Columns the predicate reads; the reader checks them up front."""

        return frozenset()

    def __call__(self, record: TowerRecord | Mapping[str, Any]) -> bool:
        return bool(self.test(_as_row(record)))

    def __and__(self, other: "Predicate") -> "Predicate":
        return And(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return Or(self, other)

    def __invert__(self) -> "Predicate":
        return Not(self)


@dataclass(frozen=True)
class Always(Predicate):
    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        return np.ones(len(frame), dtype=bool)

    def test(self, row: Mapping[str, Any]) -> bool:
        return True


@dataclass(frozen=True)
class Subdetector(Predicate):
    """Towers built with at least one hit in the named subdetector (eb, ee, hb, he, hf)."""

    name: str

    def __post_init__(self) -> None:
        if self.name not in _SUBDETECTOR_COLUMNS:
            raise ValueError(f"Unknown subdetector '{self.name}'.")

    @property
    def column(self) -> str:
        return _SUBDETECTOR_COLUMNS[self.name]

    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        return frame[self.column].to_numpy() > 0

    def test(self, row: Mapping[str, Any]) -> bool:
        return row[self.column] > 0

    def columns(self) -> frozenset[str]:
        return frozenset({self.column})


@dataclass(frozen=True)
class Compare(Predicate):
    """``column <op> value`` for one of ``> >= < <= == !=``."""

    column: str
    op: str
    value: float

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported comparison '{self.op}'.")

    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        return np.asarray(_OPERATORS[self.op](frame[self.column].to_numpy(), self.value), dtype=bool)

    def test(self, row: Mapping[str, Any]) -> bool:
        return bool(_OPERATORS[self.op](row[self.column], self.value))

    def columns(self) -> frozenset[str]:
        return frozenset({self.column})


@dataclass(frozen=True)
class InBand(Predicate):
    """Towers whose ``eta`` falls in one of the given storage bands."""

    bands: tuple[int, ...]
    geometry: DetectorGeometry = HB_GEOMETRY

    def __post_init__(self) -> None:
        object.__setattr__(self, "bands", tuple(sorted({int(band) for band in self.bands})))

    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        band = self.geometry.band_index(frame["eta"].to_numpy())
        return np.isin(band, np.asarray(self.bands, dtype=np.int64))

    def test(self, row: Mapping[str, Any]) -> bool:
        return int(self.geometry.band_index(row["eta"])) in self.bands

    def columns(self) -> frozenset[str]:
        return frozenset({"eta"})


@dataclass(frozen=True)
class And(Predicate):
    lhs: Predicate
    rhs: Predicate

    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        return self.lhs.mask(frame) & self.rhs.mask(frame)

    def test(self, row: Mapping[str, Any]) -> bool:
        return self.lhs.test(row) and self.rhs.test(row)

    def columns(self) -> frozenset[str]:
        return self.lhs.columns() | self.rhs.columns()


@dataclass(frozen=True)
class Or(Predicate):
    lhs: Predicate
    rhs: Predicate

    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        return self.lhs.mask(frame) | self.rhs.mask(frame)

    def test(self, row: Mapping[str, Any]) -> bool:
        return self.lhs.test(row) or self.rhs.test(row)

    def columns(self) -> frozenset[str]:
        return self.lhs.columns() | self.rhs.columns()


@dataclass(frozen=True)
class Not(Predicate):
    arg: Predicate

    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        return ~self.arg.mask(frame)

    def test(self, row: Mapping[str, Any]) -> bool:
        return not self.arg.test(row)

    def columns(self) -> frozenset[str]:
        return self.arg.columns()


@dataclass(frozen=True)
class GoodTowers(Predicate):
    """
    Towers passing a calibrated cut: energy at or above the band threshold and
    ``phi`` channel not listed as hot for that band. Bands without an entry
    are rejected.
    """

    thresholds: tuple[tuple[int, float], ...]
    hot_cells: tuple[tuple[int, tuple[int, ...]], ...]
    geometry: DetectorGeometry = HB_GEOMETRY
    energy_column: str = "had_energy"

    @classmethod
    def from_results(
        cls,
        results: Iterable[Any],
        geometry: DetectorGeometry = HB_GEOMETRY,
        *,
        energy_column: str = "had_energy",
    ) -> "GoodTowers":
        """Build the cut from band results exposing ``band``, ``threshold`` and ``excluded``."""

        rows = list(results)
        return cls(
            thresholds=tuple((int(res.band), float(res.threshold)) for res in rows),
            hot_cells=tuple((int(res.band), tuple(int(ch) for ch in res.excluded)) for res in rows),
            geometry=geometry,
            energy_column=energy_column,
        )

    def _lookup(self) -> tuple[np.ndarray, np.ndarray]:
        threshold = np.full(self.geometry.n_bands, np.inf, dtype=np.float64)
        for band, value in self.thresholds:
            threshold[band] = value
        hot = np.zeros((self.geometry.n_bands, self.geometry.n_channels), dtype=bool)
        for band, channels in self.hot_cells:
            hot[band, list(channels)] = True
        return threshold, hot

    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        band = self.geometry.band_index(frame["eta"].to_numpy())
        channel = self.geometry.channel_index(frame["phi"].to_numpy())
        inside = self.geometry.contains(band, channel)
        threshold, hot = self._lookup()
        result = np.zeros(len(frame), dtype=bool)
        idx = np.flatnonzero(inside)
        energy = frame[self.energy_column].to_numpy(dtype=np.float64)[idx]
        result[idx] = (energy >= threshold[band[idx]]) & ~hot[band[idx], channel[idx]]
        return result

    def test(self, row: Mapping[str, Any]) -> bool:
        frame = pd.DataFrame([{key: row[key] for key in self.columns()}])
        return bool(self.mask(frame)[0])

    def columns(self) -> frozenset[str]:
        return frozenset({"eta", "phi", self.energy_column})


DEFAULT_EB_HOT_CELLS: tuple[tuple[int, int], ...] = (
    (-16, -36),
    (-16, -35),
    (-15, -35),
    (-11, -35),
    (-18, 35),
    (-17, 35),
    (-16, 35),
    (-15, 35),
    (-17, -11),
    (-10, -7),
    (-9, 0),
    (8, -8),
    (2, 11),
    (0, 11),
    (-6, 24),
    (-18, 31),
    (11, 11),
    (13, 12),
    (14, 12),
    (14, 11),
    (15, 11),
    (16, 11),
)

# GeV per crystal for towers of 1, 2, 3 and more crystals.
DEFAULT_EB_THRESHOLDS: tuple[float, ...] = (0.37, 0.28, 0.25, 0.22)


@dataclass(frozen=True)
class ColdCells(Predicate):
    """
    Towers of one subdetector outside a list of hot ``(ieta, iphi)`` cells.

    Coordinates are the centred logical indices ``floor(eta / eta_width)`` and
    ``floor(phi / phi_width)``; they are not limited to the geometry's band
    range, so cells beyond it (EB reaches ``ieta = -18``) can be listed.
    """

    cells: tuple[tuple[int, int], ...] = DEFAULT_EB_HOT_CELLS
    subdetector: str = "eb"
    geometry: DetectorGeometry = HB_GEOMETRY

    def __post_init__(self) -> None:
        cells = tuple(sorted({(int(ieta), int(iphi)) for ieta, iphi in self.cells}))
        object.__setattr__(self, "cells", cells)
        Subdetector(self.subdetector)

    def _labels(self, eta: Any, phi: Any) -> tuple[np.ndarray, np.ndarray]:
        ieta = self.geometry.band_index(eta) - self.geometry.band_offset
        iphi = self.geometry.channel_index(phi) - self.geometry.channel_offset
        return ieta, iphi

    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        ieta, iphi = self._labels(frame["eta"].to_numpy(), frame["phi"].to_numpy())
        hot = np.zeros(len(frame), dtype=bool)
        for cell_eta, cell_phi in self.cells:
            hot |= (ieta == cell_eta) & (iphi == cell_phi)
        return Subdetector(self.subdetector).mask(frame) & ~hot

    def test(self, row: Mapping[str, Any]) -> bool:
        if not Subdetector(self.subdetector).test(row):
            return False
        ieta, iphi = self._labels(row["eta"], row["phi"])
        return (int(ieta), int(iphi)) not in self.cells

    def columns(self) -> frozenset[str]:
        return frozenset({"eta", "phi"}) | Subdetector(self.subdetector).columns()


@dataclass(frozen=True)
class GoodEB(Predicate):
    """
    Cold EB towers whose electromagnetic energy passes a per-crystal threshold.

    A tower of ``n`` crystals passes when ``em_energy > thresholds[n - 1] * n``;
    towers with more crystals than listed thresholds use the last one.
    """

    cells: tuple[tuple[int, int], ...] = DEFAULT_EB_HOT_CELLS
    thresholds: tuple[float, ...] = DEFAULT_EB_THRESHOLDS
    geometry: DetectorGeometry = HB_GEOMETRY

    def __post_init__(self) -> None:
        if not self.thresholds:
            raise ValueError("GoodEB needs at least one threshold.")
        object.__setattr__(self, "thresholds", tuple(float(value) for value in self.thresholds))

    @property
    def cold(self) -> ColdCells:
        return ColdCells(self.cells, "eb", self.geometry)

    def _passes(self, crystals: np.ndarray, energy: np.ndarray) -> np.ndarray:
        table = np.asarray(self.thresholds, dtype=np.float64)
        idx = np.clip(crystals, 1, table.size) - 1
        return energy > table[idx] * crystals

    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        crystals = frame["eb_hits"].to_numpy(dtype=np.int64)
        energy = frame["em_energy"].to_numpy(dtype=np.float64)
        return self.cold.mask(frame) & self._passes(crystals, energy)

    def test(self, row: Mapping[str, Any]) -> bool:
        if not self.cold.test(row):
            return False
        return bool(self._passes(np.asarray(int(row["eb_hits"])), np.asarray(float(row["em_energy"]))))

    def columns(self) -> frozenset[str]:
        return self.cold.columns() | {"em_energy"}


EB = Subdetector("eb")
EE = Subdetector("ee")
HB = Subdetector("hb")
HE = Subdetector("he")
HF = Subdetector("hf")

COLD_EB = ColdCells()
GOOD_EB = GoodEB()
