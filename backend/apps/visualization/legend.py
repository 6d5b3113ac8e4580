"""
Legend construction for categorical and continuous map layers.

One builder for every product: the categorical mode walks a classification
scheme, the continuous mode partitions a value range over a palette.
"""

import html
import logging
import math
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegendEntry:
    color: str
    label: str

    def to_dict(self):
        return {"color": self.color, "label": self.label}


def _hex(color: str) -> str:
    return color if color.startswith("#") else f"#{color}"


def _format(value: float, precision: int) -> str:
    text = f"{value:.{precision}f}"
    # avoid "-0" / "-0.0" labels
    if float(text) == 0:
        text = f"{0:.{precision}f}"
    return text


def build_categorical_legend(scheme, areas: Optional[Mapping[int, float]] = None) -> List[LegendEntry]:
    """
    One row per class, in class index order.

    Args:
        scheme: ClassificationScheme with index-aligned names and colors
        areas: optional {class_id: hectares}; a missing class shows 0.00 ha

    Returns:
        list: LegendEntry rows
    """
    if len(scheme.names) != len(scheme.colors):
        raise ValueError("Classification scheme names and colors are not index-aligned")

    entries = []
    for class_id, (name, color) in enumerate(zip(scheme.names, scheme.colors), start=1):
        if areas is None:
            label = name
        else:
            hectares = areas.get(class_id) or 0.0
            label = f"{name} ({hectares:.2f} ha)"
        entries.append(LegendEntry(_hex(color), label))
    return entries


def bucket_boundaries(vmin: float, vmax: float, steps: int) -> List[float]:
    """Divide [vmin, vmax] into `steps` equal intervals; returns steps + 1 values."""
    if steps < 1:
        raise ValueError("steps must be >= 1")
    width = (vmax - vmin) / steps
    return [vmin + width * i for i in range(steps)] + [vmax]


def build_continuous_legend(
    palette: Sequence[str],
    vmin: Optional[float] = None,
    vmax: Optional[float] = None,
    steps: int = 5,
    boundaries: Optional[Sequence[float]] = None,
    unit: str = "",
    precision: int = 0,
    separator: str = " - ",
    closing_max: bool = False,
) -> List[LegendEntry]:
    """
    Rows for a continuous layer, one per interval [lo, hi).

    With explicit boundaries the palette is read in order (entry i for
    interval i). Otherwise [vmin, vmax] is split into `steps` intervals and
    interval i takes palette[floor(i * len(palette) / steps)].
    closing_max appends a row for vmax itself in the last palette color.
    An unknown range (vmin or vmax None) yields an empty legend.
    """
    if boundaries is not None:
        boundaries = list(boundaries)
        intervals = len(boundaries) - 1
        if intervals > len(palette):
            raise ValueError(
                f"{intervals} legend intervals but only {len(palette)} palette colors"
            )
        indices = list(range(intervals))
    else:
        if vmin is None or vmax is None:
            logger.warning("No value range available, legend left empty")
            return []
        boundaries = bucket_boundaries(vmin, vmax, steps)
        indices = [math.floor(i * len(palette) / steps) for i in range(steps)]

    suffix = f" {unit}" if unit else ""
    entries = []
    for i, index in enumerate(indices):
        lo = _format(boundaries[i], precision)
        hi = _format(boundaries[i + 1], precision)
        entries.append(LegendEntry(_hex(palette[index]), f"{lo}{separator}{hi}{suffix}"))
    if closing_max:
        entries.append(LegendEntry(_hex(palette[-1]), f"{_format(boundaries[-1], precision)}{suffix}"))
    return entries


def legend_html(title: str, entries: Sequence[LegendEntry]) -> str:
    """Legend panel pinned to the bottom-left corner, above the map panes."""
    rows = "".join(
        '<div style="display:flex;align-items:center;margin:0 0 4px 0;">'
        f'<span style="background:{html.escape(e.color)};width:16px;height:16px;'
        'display:inline-block;"></span>'
        f'<span style="margin:0 0 0 6px;">{html.escape(e.label)}</span></div>'
        for e in entries
    )
    heading = "<br>".join(html.escape(line) for line in title.split("\n"))
    return (
        '<div class="map-legend" style="position:fixed;bottom:30px;left:10px;z-index:9999;'
        "background:white;padding:8px 15px;border-radius:4px;"
        'box-shadow:0 1px 4px rgba(0,0,0,0.3);font-family:Arial,sans-serif;">'
        f'<div style="font-weight:bold;font-size:18px;margin:0 0 4px 0;">{heading}</div>'
        f"{rows}</div>"
    )
