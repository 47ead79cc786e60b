from __future__ import annotations

import math
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

SRC_ROOT = ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))


def _band_with_hot_channel(
    band: int,
    *,
    n_channels: int,
    hot: int | None,
    step_energy: float = 2.0,
    per_channel: int = 100,
    extra: int = 100,
) -> list[tuple[int, int, float]]:
    """Flat band (same energy grid in every channel) plus ``extra`` hits at
    ``step_energy`` in channel ``hot``; the hot channel disappears above the step."""

    grid = np.linspace(0.05, 9.95, per_channel)
    hits = [(band, channel, float(energy)) for channel in range(n_channels) for energy in grid]
    if hot is not None:
        hits.extend((band, hot, float(step_energy)) for _ in range(extra))
    return hits


@pytest.fixture
def hot_band():
    return _band_with_hot_channel


@pytest.fixture
def tower_frame() -> pd.DataFrame:
    """HB towers in ieta 0 with one hot iphi (5) below 2 GeV, plus non-HB noise."""

    width = math.pi / 36.0
    rows: list[dict[str, float | int]] = []
    energies = np.linspace(0.1, 9.9, 20)
    for iphi in range(-36, 36):
        phi = (iphi + 0.5) * width
        for energy in energies:
            rows.append({"event": 0, "eta": 0.04, "phi": phi, "hb_hits": 1, "eb_hits": 0, "had_energy": energy})
    hot_phi = (5 + 0.5) * width
    for _ in range(60):
        rows.append({"event": 1, "eta": 0.04, "phi": hot_phi, "hb_hits": 1, "eb_hits": 0, "had_energy": 1.5})
    for _ in range(30):
        rows.append({"event": 2, "eta": 0.5, "phi": hot_phi, "hb_hits": 0, "eb_hits": 4, "had_energy": 5.0})
    return pd.DataFrame(rows)
