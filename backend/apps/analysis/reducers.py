"""
Region reduction kinds and helpers for normalizing reducer output.

Both platforms return plain mappings:
- sum / mean:   {band: value}
- minMax:       {"<band>_min": value, "<band>_max": value}
- groupedSum:   {class_id: area_m2}
- histogram:    {bucket_center: pixel_count}
A band that is missing from the image is missing from the mapping; a band with
no valid pixels maps to None.
"""

import math
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional


class Reducer(str, Enum):
    SUM = "sum"
    MEAN = "mean"
    MIN_MAX = "minMax"
    GROUPED_SUM = "groupedSum"
    HISTOGRAM = "histogram"


DEFAULT_MAX_PIXELS = 1e9

SQUARE_METERS_PER_HECTARE = 10_000


def square_meters_to_hectares(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return value / SQUARE_METERS_PER_HECTARE


def clean_value(value):
    """Map NaN and missing values to None."""
    if value is None:
        return None
    value = float(value)
    if math.isnan(value):
        return None
    return value


def normalize_groups(groups: Iterable[Mapping], group_name="class") -> Dict[int, float]:
    """Turn [{'class': 1, 'sum': 5.0}, ...] into {1: 5.0, ...}."""
    result = {}
    for group in groups or []:
        key = group.get(group_name)
        if key is None:
            continue
        result[int(key)] = float(group.get("sum") or 0.0)
    return result


def normalize_histogram(band_histogram: Optional[Mapping]) -> Dict[float, int]:
    """Turn an Earth Engine histogram dictionary into {bucket_center: count}."""
    if not band_histogram:
        return {}
    means = band_histogram.get("bucketMeans") or []
    counts = band_histogram.get("histogram") or []
    if not means:
        bucket_min = band_histogram.get("bucketMin", 0.0)
        width = band_histogram.get("bucketWidth", 1.0)
        means = [bucket_min + width * (i + 0.5) for i in range(len(counts))]
    return {float(m): int(round(c)) for m, c in zip(means, counts)}


def hectares_by_class(areas_m2: Mapping[int, float]) -> Dict[int, float]:
    return {int(k): square_meters_to_hectares(v) for k, v in areas_m2.items()}
