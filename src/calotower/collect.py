from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pandas as pd

from hotcells.geometry import HB_GEOMETRY, DetectorGeometry
from hotcells.hits import HitCollection

from .filters import HB, Predicate
from .reader import TowerTable

__all__ = ["collect_hits", "collect_from_source"]

_LOGGER = logging.getLogger(__name__)


def _chunk_hits(
    chunk: pd.DataFrame,
    geometry: DetectorGeometry,
    energy_column: str,
    weight_column: str | None,
) -> tuple[HitCollection, int]:
    band = geometry.band_index(chunk["eta"].to_numpy())
    channel = geometry.channel_index(chunk["phi"].to_numpy())
    energy = chunk[energy_column].to_numpy(dtype=np.float64)
    if weight_column is not None:
        weight = chunk[weight_column].to_numpy(dtype=np.float64)
    else:
        weight = np.ones(len(chunk), dtype=np.float64)
    keep = geometry.contains(band, channel) & np.isfinite(energy)
    dropped = int(keep.size - np.count_nonzero(keep))
    hits = HitCollection(band=band[keep], channel=channel[keep], energy=energy[keep], weight=weight[keep])
    return hits, dropped


def collect_hits(
    table: TowerTable,
    predicate: Predicate = HB,
    geometry: DetectorGeometry = HB_GEOMETRY,
    *,
    energy_column: str = "had_energy",
    weight_column: str | None = None,
) -> HitCollection:
    """
    Scan ``table`` once and keep ``(band, channel, energy, weight)`` of every
    tower accepted by ``predicate``.

    No energy cut is applied here; the histogram applies cutoffs later so one
    collection serves every trial of the threshold search. Towers outside the
    geometry (or with non-finite energy) are dropped and reported in the log.
    """

    required = {energy_column} | ({weight_column} if weight_column else set())
    table.require(required)

    parts: list[HitCollection] = []
    dropped = 0
    for chunk in table.iter_chunks(predicate):
        hits, chunk_dropped = _chunk_hits(chunk, geometry, energy_column, weight_column)
        parts.append(hits)
        dropped += chunk_dropped

    collection = HitCollection.concatenate(parts)
    if dropped:
        _LOGGER.warning("dropped %d towers outside the %d x %d grid", dropped, geometry.n_bands, geometry.n_channels)
    _LOGGER.info("collected %d hits in %d bands from %r", len(collection), len(collection.bands()), table)
    return collection


def collect_from_source(
    source: str | Path | pd.DataFrame,
    predicate: Predicate = HB,
    geometry: DetectorGeometry = HB_GEOMETRY,
    *,
    energy_column: str = "had_energy",
    weight_column: str | None = None,
    chunksize: int = 100_000,
) -> HitCollection:
    """Open ``source`` as a :class:`TowerTable` and collect its hits."""

    table = TowerTable(source, chunksize=chunksize, required=predicate.columns())
    return collect_hits(
        table,
        predicate,
        geometry,
        energy_column=energy_column,
        weight_column=weight_column,
    )
