from __future__ import annotations

import numpy as np
import pytest

from hotcells.histogram import BandOccupancy, occupancy
from hotcells.hits import Hit, HitCollection

pytestmark = pytest.mark.unit


def _random_hits(seed: int = 0, size: int = 500) -> HitCollection:
    rng = np.random.default_rng(seed)
    return HitCollection(
        band=rng.integers(0, 3, size=size),
        channel=rng.integers(0, 8, size=size),
        energy=rng.exponential(2.0, size=size),
        weight=rng.uniform(0.5, 1.5, size=size),
    )


def test_cutoff_is_strict() -> None:
    hits = HitCollection.from_hits(
        [
            Hit(0, 1, 1.0),
            Hit(0, 1, 1.5),
            Hit(0, 2, 0.5),
            Hit(1, 1, 9.0),
        ]
    )
    counts = occupancy(hits, 0, 1.0, n_channels=4)
    np.testing.assert_array_equal(counts, [0.0, 1.0, 0.0, 0.0])
    counts = occupancy(hits, 0, 0.0, n_channels=4)
    np.testing.assert_array_equal(counts, [0.0, 2.0, 1.0, 0.0])


def test_weights_are_summed() -> None:
    hits = HitCollection.from_hits([Hit(0, 0, 2.0, 0.25), Hit(0, 0, 3.0, 0.5), Hit(0, 1, 3.0, 2.0)])
    counts = occupancy(hits, 0, 1.0, n_channels=2)
    np.testing.assert_allclose(counts, [0.75, 2.0])


@pytest.mark.parametrize("cutoff", [-1.0, 0.0, 0.3, 1.7, 4.2, 50.0])
def test_band_view_matches_direct_histogram(cutoff: float) -> None:
    hits = _random_hits()
    for band in range(3):
        view = BandOccupancy.from_hits(hits, band, n_channels=8)
        np.testing.assert_allclose(view.at(cutoff), occupancy(hits, band, cutoff, n_channels=8))


def test_empty_band_view() -> None:
    view = BandOccupancy.from_hits(_random_hits(), 7, n_channels=8)
    assert view.energy.size == 0
    np.testing.assert_array_equal(view.at(0.0), np.zeros(8))


def test_channel_outside_range_is_rejected() -> None:
    hits = HitCollection.from_hits([Hit(0, 9, 1.0)])
    with pytest.raises(ValueError):
        occupancy(hits, 0, 0.0, n_channels=8)
    with pytest.raises(ValueError):
        BandOccupancy.from_hits(hits, 0, n_channels=8)


def test_collection_is_read_only() -> None:
    hits = _random_hits()
    with pytest.raises(ValueError):
        hits.energy[0] = 1.0
    with pytest.raises(ValueError):
        HitCollection(band=[0], channel=[0], energy=[1.0], weight=[-1.0])
    with pytest.raises(ValueError):
        HitCollection(band=[0, 1], channel=[0], energy=[1.0], weight=[1.0])


def test_collection_helpers() -> None:
    hits = HitCollection.from_hits([Hit(2, 0, 1.0), Hit(0, 1, 2.0, 3.0)])
    assert len(hits) == 2
    assert hits.bands() == [0, 2]
    assert hits.total_weight == pytest.approx(4.0)
    assert list(hits.for_band(0)) == [Hit(0, 1, 2.0, 3.0)]
    assert len(HitCollection.concatenate([hits, hits])) == 4
    assert len(HitCollection.from_hits([])) == 0
