"""
Source selection parameters.

A SourceSelector names a remote image collection and the filters applied to it
before any band math happens. The platforms interpret it.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple


@dataclass(frozen=True)
class DateRange:
    """Half-open date interval [start, end)."""

    start: date
    end: date

    @classmethod
    def for_year(cls, year: int) -> "DateRange":
        return cls(date(year, 1, 1), date(year + 1, 1, 1))

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end

    def as_strings(self) -> Tuple[str, str]:
        return self.start.isoformat(), self.end.isoformat()


@dataclass(frozen=True)
class QualityFilter:
    """Keep images whose metadata property is strictly below max_value."""

    property: str
    max_value: float


@dataclass(frozen=True)
class SourceSelector:
    collection_id: str
    bands: Tuple[str, ...]
    quality: Optional[QualityFilter] = None
    # Static datasets (e.g. a DEM) are not filtered by date
    temporal: bool = True
