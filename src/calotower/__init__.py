"""Calorimeter tower access: records, predicates, the tower table and hit collection."""

from __future__ import annotations

from .collect import collect_from_source, collect_hits
from .filters import (
    COLD_EB,
    EB,
    EE,
    GOOD_EB,
    HB,
    HE,
    HF,
    Always,
    And,
    ColdCells,
    Compare,
    GoodEB,
    GoodTowers,
    InBand,
    Not,
    Or,
    Predicate,
    Subdetector,
)
from .reader import REQUIRED_COLUMNS, TowerTable
from .records import TOWER_COLUMNS, TowerRecord

__all__ = [
    "Always",
    "And",
    "COLD_EB",
    "ColdCells",
    "Compare",
    "EB",
    "EE",
    "GOOD_EB",
    "GoodEB",
    "GoodTowers",
    "HB",
    "HE",
    "HF",
    "InBand",
    "Not",
    "Or",
    "Predicate",
    "REQUIRED_COLUMNS",
    "Subdetector",
    "TOWER_COLUMNS",
    "TowerRecord",
    "TowerTable",
    "collect_from_source",
    "collect_hits",
]
