from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

from calotower.filters import (
    COLD_EB,
    EB,
    GOOD_EB,
    HB,
    Always,
    ColdCells,
    Compare,
    GoodEB,
    GoodTowers,
    InBand,
    Subdetector,
)
from calotower.records import TowerRecord
from hotcells.geometry import HB_GEOMETRY
from hotcells.solver import BandResult

pytestmark = pytest.mark.unit


@pytest.fixture
def frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "event": [0, 0, 1, 1],
            "eta": [0.04, 0.04, -0.3, 1.2],
            "phi": [0.05, -0.05, 0.5, 2.0],
            "eb_hits": [0, 3, 1, 0],
            "hb_hits": [2, 0, 1, 0],
            "had_energy": [1.0, 2.0, 3.0, 4.0],
        }
    )


def test_subdetector_mask_and_record(frame: pd.DataFrame) -> None:
    np.testing.assert_array_equal(HB.mask(frame), [True, False, True, False])
    record = TowerRecord(event=0, eta=0.1, phi=0.0, hb_hits=1)
    assert HB(record)
    assert not EB(record)
    assert record.is_hb() and not record.is_eb()
    with pytest.raises(ValueError):
        Subdetector("zdc")


def test_composition_matches_row_evaluation(frame: pd.DataFrame) -> None:
    predicate = (HB | EB) & ~Compare("had_energy", ">", 2.5)
    expected = [True, True, False, False]
    np.testing.assert_array_equal(predicate.mask(frame), expected)
    rows = frame.to_dict(orient="records")
    assert [predicate(row) for row in rows] == expected
    assert predicate.columns() == frozenset({"hb_hits", "eb_hits", "had_energy"})


def test_always_and_compare(frame: pd.DataFrame) -> None:
    assert Always().mask(frame).all()
    np.testing.assert_array_equal(Compare("eta", "<=", 0.04).mask(frame), [True, True, True, False])
    with pytest.raises(ValueError):
        Compare("eta", "~", 1.0)


def test_in_band(frame: pd.DataFrame) -> None:
    # eta 0.04 -> ieta 0 (band 17); eta -0.3 -> ieta -4 (band 13)
    predicate = InBand((17, 13, 17))
    assert predicate.bands == (13, 17)
    np.testing.assert_array_equal(predicate.mask(frame), [True, True, True, False])
    assert predicate({"eta": 1.2}) is False


def test_predicates_are_hashable_values() -> None:
    assert (HB & EB) == (Subdetector("hb") & Subdetector("eb"))
    assert len({HB, Subdetector("hb"), EB}) == 2


def test_good_towers_applies_thresholds_and_hot_cells() -> None:
    width = math.pi / 36.0
    results = [
        BandResult(band=17, threshold=1.5, excluded=(36,), root=1.49, p_value=0.5, target=1),
    ]
    cut = GoodTowers.from_results(results, HB_GEOMETRY)
    towers = pd.DataFrame(
        {
            "eta": [0.04, 0.04, 0.04, 0.5],
            # iphi 0 is hot; iphi 3 is not
            "phi": [0.5 * width, 3.5 * width, 3.5 * width, 3.5 * width],
            "had_energy": [9.0, 1.5, 1.0, 9.0],
        }
    )
    # Band of eta 0.5 has no threshold and is rejected.
    np.testing.assert_array_equal(cut.mask(towers), [False, True, False, False])
    assert cut({"eta": 0.04, "phi": 3.5 * width, "had_energy": 2.0})


def _eb_frame() -> pd.DataFrame:
    width = math.pi / 36.0
    return pd.DataFrame(
        {
            # ieta 0 iphi 11 is a listed hot cell; ieta -18 iphi 31 too.
            "eta": [0.04, 0.04, -17.5 * 0.085, 0.04, 0.04, 0.04, 0.04],
            "phi": [11.5 * width, 10.5 * width, 31.5 * width, 10.5 * width, 10.5 * width, 10.5 * width, 10.5 * width],
            "eb_hits": [1, 1, 1, 2, 6, 6, 0],
            "em_energy": [5.0, 0.38, 5.0, 0.55, 1.33, 1.31, 5.0],
        }
    )


def test_cold_cells_drop_listed_towers() -> None:
    frame = _eb_frame()
    np.testing.assert_array_equal(COLD_EB.mask(frame), [False, True, False, True, True, True, False])
    rows = frame.to_dict(orient="records")
    assert [COLD_EB(row) for row in rows] == COLD_EB.mask(frame).tolist()
    assert COLD_EB.columns() == frozenset({"eta", "phi", "eb_hits"})
    custom = ColdCells(cells=((0, 10),))
    np.testing.assert_array_equal(custom.mask(frame), [True, False, True, False, False, False, False])


def test_good_eb_scales_threshold_with_crystals() -> None:
    frame = _eb_frame()
    expected = [False, True, False, False, True, False, False]
    np.testing.assert_array_equal(GOOD_EB.mask(frame), expected)
    record = TowerRecord(event=0, eta=0.04, phi=10.5 * math.pi / 36.0, eb_hits=6, em_energy=1.33)
    assert GOOD_EB(record)
    assert not GOOD_EB(record._replace(em_energy=1.31))
    assert [GOOD_EB(row) for row in frame.to_dict(orient="records")] == expected


def test_good_eb_uses_last_threshold_past_the_list() -> None:
    cut = GoodEB(cells=(), thresholds=(0.5,))
    frame = _eb_frame()
    # 1 crystal needs > 0.5, 2 need > 1.0, 6 need > 3.0
    np.testing.assert_array_equal(cut.mask(frame), [True, False, True, False, False, False, False])
    with pytest.raises(ValueError):
        GoodEB(thresholds=())
