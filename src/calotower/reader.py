"""
Tabular tower source.

Towers are read from CSV/TXT or Parquet files (or an in-memory DataFrame) with
one row per tower and the columns of :class:`~calotower.records.TowerRecord`.
Every call to :meth:`TowerTable.iter_chunks` or :meth:`TowerTable.iter_records`
returns an independent generator holding its own position, so several scans
can run side by side without invalidating each other.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator

import pandas as pd

from hotcells.errors import DataSourceError

from .filters import Predicate
from .records import TowerRecord

__all__ = ["REQUIRED_COLUMNS", "TowerTable"]

REQUIRED_COLUMNS = ("eta", "phi")
_CSV_SUFFIXES = {".csv", ".txt"}
_PARQUET_SUFFIXES = {".parquet", ".pq"}

_LOGGER = logging.getLogger(__name__)


class TowerTable:
    """Read-only, filterable view over a tower table."""

    def __init__(
        self,
        source: str | Path | pd.DataFrame,
        *,
        chunksize: int = 100_000,
        required: Iterable[str] = (),
    ) -> None:
        if chunksize <= 0:
            raise ValueError("chunksize must be positive.")
        self.chunksize = int(chunksize)
        if isinstance(source, pd.DataFrame):
            self.path: Path | None = None
            self._frame: pd.DataFrame | None = source
            columns = list(source.columns)
        else:
            self.path = Path(source)
            self._frame = None
            columns = self._peek_columns(self.path)
        self.columns = tuple(str(col) for col in columns)
        self.require(REQUIRED_COLUMNS)
        self.require(required)

    def __repr__(self) -> str:
        origin = str(self.path) if self.path is not None else "<DataFrame>"
        return f"TowerTable({origin!r}, columns={list(self.columns)!r})"

    def require(self, columns: Iterable[str]) -> None:
        """Raise :class:`DataSourceError` unless every column is present."""

        missing = sorted(set(columns) - set(self.columns))
        if missing:
            origin = str(self.path) if self.path is not None else "DataFrame"
            raise DataSourceError(f"{origin} is missing required columns: {', '.join(missing)}")

    @staticmethod
    def _peek_columns(path: Path) -> list[str]:
        suffix = path.suffix.lower()
        try:
            if suffix in _CSV_SUFFIXES:
                return list(pd.read_csv(path, nrows=0).columns)
            if suffix in _PARQUET_SUFFIXES:
                return list(pd.read_parquet(path).columns)
        except (OSError, ValueError, ImportError) as exc:
            raise DataSourceError(f"cannot open '{path}': {exc}") from exc
        raise DataSourceError(f"Unsupported file extension for tower table: {suffix or '<none>'}")

    def _raw_chunks(self) -> Iterator[pd.DataFrame]:
        if self._frame is not None:
            for start in range(0, len(self._frame), self.chunksize):
                yield self._frame.iloc[start : start + self.chunksize]
            return
        assert self.path is not None
        suffix = self.path.suffix.lower()
        try:
            if suffix in _CSV_SUFFIXES:
                with pd.read_csv(self.path, chunksize=self.chunksize) as reader:
                    yield from reader
            else:
                frame = pd.read_parquet(self.path)
                for start in range(0, len(frame), self.chunksize):
                    yield frame.iloc[start : start + self.chunksize]
        except (OSError, pd.errors.ParserError) as exc:
            raise DataSourceError(f"cannot read '{self.path}': {exc}") from exc

    def iter_chunks(self, predicate: Predicate | None = None) -> Iterator[pd.DataFrame]:
        """Yield DataFrame chunks, keeping only rows accepted by ``predicate``."""

        if predicate is not None:
            self.require(predicate.columns())
        for chunk in self._raw_chunks():
            if predicate is None:
                yield chunk
                continue
            selected = chunk.loc[predicate.mask(chunk)]
            if not selected.empty:
                yield selected

    def iter_records(self, predicate: Predicate | None = None) -> Iterator[TowerRecord]:
        """Yield :class:`TowerRecord` objects lazily, one forward pass per call."""

        for chunk in self.iter_chunks(predicate):
            for row in chunk.to_dict(orient="records"):
                yield TowerRecord.from_mapping(row)

    def count(self, predicate: Predicate | None = None) -> int:
        total = sum(len(chunk) for chunk in self.iter_chunks(predicate))
        _LOGGER.debug("%r: %d towers pass %r", self, total, predicate)
        return total
