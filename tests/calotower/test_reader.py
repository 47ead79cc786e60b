from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from calotower.filters import HB
from calotower.reader import TowerTable
from calotower.records import TowerRecord
from hotcells.errors import DataSourceError

pytestmark = pytest.mark.unit


def test_dataframe_source_chunks(tower_frame: pd.DataFrame) -> None:
    table = TowerTable(tower_frame, chunksize=100)
    chunks = list(table.iter_chunks())
    assert sum(len(chunk) for chunk in chunks) == len(tower_frame)
    assert max(len(chunk) for chunk in chunks) == 100
    assert table.count(HB) == 72 * 20 + 60


def test_csv_source_matches_dataframe(tmp_path: Path, tower_frame: pd.DataFrame) -> None:
    path = tmp_path / "towers.csv"
    tower_frame.to_csv(path, index=False)
    table = TowerTable(path, chunksize=250)
    assert table.path == path
    assert "had_energy" in table.columns
    assert table.count(HB) == TowerTable(tower_frame).count(HB)


def test_records_are_typed_and_scans_are_independent(tower_frame: pd.DataFrame) -> None:
    table = TowerTable(tower_frame, chunksize=7)
    first = table.iter_records(HB)
    second = table.iter_records(HB)
    a = next(first)
    next(first)
    b = next(second)
    assert a == b
    assert isinstance(a, TowerRecord)
    assert isinstance(a.hb_hits, int)
    assert a.is_hb()


def test_missing_columns_are_reported(tower_frame: pd.DataFrame) -> None:
    with pytest.raises(DataSourceError, match="phi"):
        TowerTable(tower_frame.drop(columns=["phi"]))
    table = TowerTable(tower_frame.drop(columns=["hb_hits"]))
    with pytest.raises(DataSourceError, match="hb_hits"):
        list(table.iter_chunks(HB))


def test_unreadable_sources(tmp_path: Path) -> None:
    with pytest.raises(DataSourceError):
        TowerTable(tmp_path / "absent.csv")
    bogus = tmp_path / "towers.root"
    bogus.write_text("", encoding="utf-8")
    with pytest.raises(DataSourceError, match="extension"):
        TowerTable(bogus)
    with pytest.raises(ValueError):
        TowerTable(pd.DataFrame({"eta": [], "phi": []}), chunksize=0)
