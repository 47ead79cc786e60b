from __future__ import annotations

import math

import numpy as np
import pytest

from hotcells.geometry import HB_GEOMETRY, DetectorGeometry

pytestmark = pytest.mark.unit


def test_hb_constants() -> None:
    assert HB_GEOMETRY.n_bands == 34
    assert HB_GEOMETRY.n_channels == 72
    assert HB_GEOMETRY.band_offset == 17
    assert HB_GEOMETRY.channel_offset == 36
    assert len(HB_GEOMETRY.bands()) == 34


def test_index_mapping() -> None:
    eta = np.array([0.0, 0.084, 0.085, -0.001, -1.44, 1.444])
    np.testing.assert_array_equal(HB_GEOMETRY.band_index(eta), [17, 17, 18, 16, 0, 33])
    width = math.pi / 36.0
    phi = np.array([0.5 * width, -0.5 * width, -math.pi + 1e-9, math.pi - 1e-9])
    np.testing.assert_array_equal(HB_GEOMETRY.channel_index(phi), [36, 35, 0, 71])


def test_labels_round_trip() -> None:
    assert HB_GEOMETRY.band_label(0) == -17
    assert HB_GEOMETRY.band_from_label(16) == 33
    assert HB_GEOMETRY.channel_label(41) == 5
    assert HB_GEOMETRY.channel_from_label(-36) == 0
    with pytest.raises(ValueError):
        HB_GEOMETRY.band_from_label(17)
    with pytest.raises(ValueError):
        HB_GEOMETRY.channel_from_label(36)


def test_centres_and_containment() -> None:
    assert HB_GEOMETRY.band_center(17) == pytest.approx(0.0425)
    assert HB_GEOMETRY.channel_center(36) == pytest.approx(math.pi / 72.0)
    mask = HB_GEOMETRY.contains(np.array([0, 33, 34, -1]), np.array([0, 71, 0, 5]))
    np.testing.assert_array_equal(mask, [True, True, False, False])


def test_invalid_geometry() -> None:
    with pytest.raises(ValueError):
        DetectorGeometry(n_channels=2)
    with pytest.raises(ValueError):
        DetectorGeometry(eta_width=0.0)
