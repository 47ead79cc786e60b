"""
Logical tower coordinates for the calorimeter barrel.

Towers are grouped in ``eta`` bands of width 0.085 and ``phi`` channels of
width pi/36. Internally both indices start at zero; the output convention is
centred on zero (``ieta = band - n_bands // 2``, ``iphi = channel -
n_channels // 2``), which is what the downstream filters consume.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

__all__ = ["DetectorGeometry", "HB_GEOMETRY"]


@dataclass(frozen=True)
class DetectorGeometry:
    """Fixed binning constants for one calorimeter region."""

    n_bands: int = 34
    n_channels: int = 72
    eta_width: float = 0.085
    phi_width: float = math.pi / 36.0

    def __post_init__(self) -> None:
        if self.n_bands <= 0:
            raise ValueError("n_bands must be positive.")
        if self.n_channels < 3:
            raise ValueError("n_channels must be at least 3 for a uniformity test.")
        if self.eta_width <= 0.0 or self.phi_width <= 0.0:
            raise ValueError("eta_width and phi_width must be positive.")

    @property
    def band_offset(self) -> int:
        return self.n_bands // 2

    @property
    def channel_offset(self) -> int:
        return self.n_channels // 2

    def bands(self) -> range:
        return range(self.n_bands)

    def band_label(self, band: int) -> int:
        return int(band) - self.band_offset

    def band_from_label(self, ieta: int) -> int:
        band = int(ieta) + self.band_offset
        if not 0 <= band < self.n_bands:
            raise ValueError(f"ieta {ieta} outside [{-self.band_offset}, {self.n_bands - self.band_offset}).")
        return band

    def channel_label(self, channel: int) -> int:
        return int(channel) - self.channel_offset

    def channel_from_label(self, iphi: int) -> int:
        channel = int(iphi) + self.channel_offset
        if not 0 <= channel < self.n_channels:
            raise ValueError(
                f"iphi {iphi} outside [{-self.channel_offset}, {self.n_channels - self.channel_offset})."
            )
        return channel

    def band_center(self, band: int) -> float:
        """Mean ``eta`` of the band, used in tables and figures."""

        return (self.band_label(band) + 0.5) * self.eta_width

    def channel_center(self, channel: int) -> float:
        return (self.channel_label(channel) + 0.5) * self.phi_width

    def band_index(self, eta: np.ndarray | float) -> np.ndarray:
        """Vectorised ``floor(eta / eta_width)`` shifted to storage indices."""

        values = np.asarray(eta, dtype=np.float64)
        return np.floor(values / self.eta_width).astype(np.int64) + self.band_offset

    def channel_index(self, phi: np.ndarray | float) -> np.ndarray:
        values = np.asarray(phi, dtype=np.float64)
        return np.floor(values / self.phi_width).astype(np.int64) + self.channel_offset

    def contains(self, band: np.ndarray, channel: np.ndarray) -> np.ndarray:
        band_arr = np.asarray(band)
        channel_arr = np.asarray(channel)
        return (
            (band_arr >= 0)
            & (band_arr < self.n_bands)
            & (channel_arr >= 0)
            & (channel_arr < self.n_channels)
        )


HB_GEOMETRY = DetectorGeometry()
