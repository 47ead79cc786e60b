"""Exception hierarchy shared by the calibration pipeline."""

from __future__ import annotations

from typing import Any, Mapping

__all__ = [
    "CalibrationError",
    "ParseError",
    "DataSourceError",
    "DegenerateHistogramError",
    "EmptyHistogramError",
    "ConvergenceError",
]


class CalibrationError(RuntimeError):
    """Base class for every failure raised by the calibration pipeline.

    ``band`` identifies the offending band (storage index) when the failure is
    band-scoped, and ``context`` carries the parameter values that caused it.
    """

    def __init__(
        self,
        message: str,
        *,
        band: int | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.band = band
        self.context: dict[str, Any] = dict(context or {})

    def __str__(self) -> str:
        parts = [self.message]
        if self.band is not None:
            parts.insert(0, f"band {self.band}:")
        if self.context:
            details = ", ".join(f"{key}={value!r}" for key, value in sorted(self.context.items()))
            parts.append(f"({details})")
        return " ".join(parts)

    def with_band(self, band: int) -> "CalibrationError":
        """Attach the band index if the error was raised without one."""

        if self.band is None:
            self.band = int(band)
        return self


class ParseError(CalibrationError, ValueError):
    """Raised when a target configuration line cannot be interpreted."""

    def __init__(self, line: int, description: str) -> None:
        super().__init__(f"line {line}: {description}", context={})
        self.line = int(line)
        self.description = description
        self.args = (self.line, description)


class DataSourceError(CalibrationError):
    """Raised when the tower data source is unreadable or incomplete."""


class DegenerateHistogramError(CalibrationError):
    """Raised when the uniformity test has no degree of freedom left."""

    def __init__(
        self,
        message: str,
        *,
        band: int | None = None,
        context: Mapping[str, Any] | None = None,
        excluded: tuple[int, ...] = (),
    ) -> None:
        super().__init__(message, band=band, context=context)
        self.excluded = tuple(excluded)


class EmptyHistogramError(DegenerateHistogramError):
    """Raised when no hit survives the energy cutoff (mean occupancy is zero)."""


class ConvergenceError(CalibrationError):
    """Raised when the threshold search cannot bracket or converge to a root."""
