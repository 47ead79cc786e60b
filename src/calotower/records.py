from __future__ import annotations

from typing import Mapping, NamedTuple

__all__ = ["TowerRecord", "TOWER_COLUMNS"]

_INT_FIELDS = frozenset({"event", "eb_hits", "ee_hits", "hb_hits", "he_hits", "hf_hits"})


class TowerRecord(NamedTuple):
    """One calorimeter tower as stored in the tower table."""

    event: int
    eta: float
    phi: float
    eb_hits: int = 0
    ee_hits: int = 0
    hb_hits: int = 0
    he_hits: int = 0
    hf_hits: int = 0
    em_energy: float = 0.0
    had_energy: float = 0.0
    total_energy: float = 0.0

    @classmethod
    def from_mapping(cls, row: Mapping[str, object]) -> "TowerRecord":
        values = {
            name: (int if name in _INT_FIELDS else float)(row[name])  # type: ignore[arg-type]
            for name in cls._fields
            if name in row
        }
        return cls(**values)

    def is_eb(self) -> bool:
        return self.eb_hits > 0

    def is_ee(self) -> bool:
        return self.ee_hits > 0

    def is_hb(self) -> bool:
        return self.hb_hits > 0

    def is_he(self) -> bool:
        return self.he_hits > 0

    def is_hf(self) -> bool:
        return self.hf_hits > 0


TOWER_COLUMNS = TowerRecord._fields
