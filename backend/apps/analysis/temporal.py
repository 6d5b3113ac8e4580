"""
Monthly aggregation of image collections into a 12-point time series.
"""

import calendar
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .reducers import Reducer, clean_value

logger = logging.getLogger(__name__)

MONTHS = tuple(range(1, 13))


@dataclass(frozen=True)
class TimeSeriesEntry:
    """One calendar month; values maps measure band -> value (None when no data)."""

    period: int
    values: Dict[str, Optional[float]]

    @property
    def month_name(self) -> str:
        return calendar.month_abbr[self.period]

    @property
    def value(self) -> Optional[float]:
        """Value of the first measure, for single-measure series."""
        return next(iter(self.values.values()), None)

    def to_dict(self):
        return {"month": self.period, "month_name": self.month_name, **self.values}


def monthly_composites(platform, collection, method, year):
    """
    Bucket a collection by calendar month and reduce each bucket.

    Always returns 12 (month, image) pairs ordered January to December, even
    when a month has no source images (its composite then has no bands).
    Each composite is stamped with `month` and a time_start in `year`.
    """
    composites = []
    for month in MONTHS:
        monthly = platform.composite(platform.filter_month(collection, month), method)
        composites.append((month, platform.stamp(monthly, month, year)))
    return composites


def monthly_series(platform, composites, region, bands: Sequence[str], *, scale, max_pixels) -> List[TimeSeriesEntry]:
    """Spatially average each monthly composite over the region."""
    futures = [
        (month, platform.reduce_region(image, region, Reducer.MEAN, scale=scale, max_pixels=max_pixels))
        for month, image in composites
    ]

    series = []
    for month, future in futures:
        stats = future.result()
        values = {band: clean_value(stats.get(band)) for band in bands}
        series.append(TimeSeriesEntry(period=month, values=values))

    missing = [e.month_name for e in series if all(v is None for v in e.values.values())]
    if missing:
        logger.warning(f"No source data for months: {', '.join(missing)}")
    return series


def series_frame(series: Sequence[TimeSeriesEntry]) -> pd.DataFrame:
    """DataFrame indexed by month with one column per measure plus month_name."""
    df = pd.DataFrame([entry.to_dict() for entry in series])
    if df.empty:
        return df
    return df.set_index("month").sort_index()
