"""
Chart selection and rendering.

Charts are chosen from the shape of already-reduced data and drawn with
matplotlib. Nothing here touches the imagery platform.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import matplotlib

# Use non-interactive backend for web applications
matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

logger = logging.getLogger(__name__)

PIE = "pie"
COLUMN = "column"
LINE = "line"
DUAL_LINE = "dual_line"
HISTOGRAM = "histogram"


@dataclass
class ChartSpec:
    kind: str
    title: str
    labels: List[str]
    series: Dict[str, List[Optional[float]]]
    colors: List[str] = field(default_factory=list)
    x_label: str = ""
    y_label: str = ""
    y_range: Optional[Sequence[float]] = None
    hole: float = 0.0

    def to_dict(self):
        return {
            "kind": self.kind,
            "title": self.title,
            "labels": self.labels,
            "series": self.series,
            "colors": self.colors,
            "x_label": self.x_label,
            "y_label": self.y_label,
            "y_range": list(self.y_range) if self.y_range else None,
        }


def breakdown_chart(scheme, areas_ha, title):
    """Donut chart of area per class; classes with no area are left out."""
    labels, values, colors = [], [], []
    for class_id in sorted(areas_ha):
        if not 1 <= class_id <= len(scheme.names):
            continue
        area = areas_ha[class_id]
        labels.append(f"{scheme.class_name(class_id)} ({area:.2f} ha)")
        values.append(area)
        colors.append(scheme.class_color(class_id))
    return ChartSpec(
        kind=PIE,
        title=title,
        labels=labels,
        series={"area_ha": values},
        colors=colors,
        hole=0.4,
    )


def series_chart(series, measures, title, preferred=LINE, y_label="", y_range=None):
    """Monthly chart: two measures always give a dual-series line chart."""
    kind = DUAL_LINE if len(measures) == 2 else preferred
    return ChartSpec(
        kind=kind,
        title=title,
        labels=[entry.month_name for entry in series],
        series={m.label: [entry.values.get(m.band) for entry in series] for m in measures},
        colors=[m.color for m in measures],
        x_label="Month",
        y_label=y_label,
        y_range=y_range,
    )


def histogram_chart(histogram, title, x_label, precision=0):
    buckets = sorted(histogram)
    return ChartSpec(
        kind=HISTOGRAM,
        title=title,
        labels=[f"{b:.{precision}f}" for b in buckets],
        series={"Count": [histogram[b] for b in buckets]},
        colors=["#4C9A25"],
        x_label=x_label,
        y_label="Count",
    )


def select_chart(product, *, class_areas=None, series=None, histogram=None):
    """Pick the chart that fits the reduced data."""
    if class_areas is not None and product.scheme is not None:
        return breakdown_chart(product.scheme, class_areas, product.chart_title)
    if series:
        return series_chart(
            series,
            product.measures,
            product.chart_title,
            preferred=product.chart_type,
            y_label=product.y_label,
            y_range=product.chart_y_range,
        )
    if histogram:
        measure = product.measures[0]
        return histogram_chart(histogram, product.chart_title, f"{measure.label} ({measure.unit})")
    return None


def render_chart(spec: ChartSpec, dpi=150) -> bytes:
    """Draw a ChartSpec and return PNG bytes."""
    fig, ax = plt.subplots(figsize=(10, 6))
    try:
        if spec.kind == PIE and not any(next(iter(spec.series.values()), [])):
            ax.text(0.5, 0.5, "No data", ha="center", va="center", fontsize=14)
            ax.axis("off")
        elif spec.kind == PIE:
            values = next(iter(spec.series.values()))
            ax.pie(
                values,
                colors=spec.colors or None,
                startangle=90,
                wedgeprops={"width": 1 - spec.hole} if spec.hole else None,
            )
            ax.legend(spec.labels, loc="center left", bbox_to_anchor=(1.0, 0.5), fontsize=9)
            ax.axis("equal")
        elif spec.kind in (COLUMN, HISTOGRAM):
            name, values = next(iter(spec.series.items()))
            heights = [v if v is not None else 0 for v in values]
            ax.bar(spec.labels, heights, color=spec.colors[0] if spec.colors else None, label=name)
            if spec.kind == HISTOGRAM:
                ax.tick_params(axis="x", rotation=45)
        else:
            styles = ["o", "s"]
            for i, (name, values) in enumerate(spec.series.items()):
                ys = [v if v is not None else float("nan") for v in values]
                color = spec.colors[i] if i < len(spec.colors) else None
                ax.plot(spec.labels, ys, color=color, linewidth=2, marker=styles[i % 2], markersize=5, label=name)
            if len(spec.series) > 1:
                ax.legend(loc="lower center", bbox_to_anchor=(0.5, -0.25), ncol=len(spec.series))

        if spec.kind != PIE:
            ax.set_xlabel(spec.x_label, fontsize=12)
            ax.set_ylabel(spec.y_label, fontsize=12)
            ax.grid(True, alpha=0.3, linestyle="--")
            if spec.y_range:
                ax.set_ylim(*spec.y_range)

        ax.set_title(spec.title, fontsize=14, fontweight="bold")
        fig.tight_layout()

        buffer = io.BytesIO()
        fig.savefig(buffer, format="png", dpi=dpi, bbox_inches="tight", facecolor="white")
        logger.info(f"Rendered {spec.kind} chart '{spec.title}'")
        return buffer.getvalue()
    finally:
        plt.close(fig)  # Important: close the figure to free memory
