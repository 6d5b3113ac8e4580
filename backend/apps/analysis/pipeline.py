"""
The thematic map pipeline.

Region -> source selection -> band transform -> (monthly aggregation) ->
region reduction -> legend/chart -> map layers, run once per invocation on an
injected imagery platform.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.conf import settings

from apps.visualization.charts import ChartSpec, select_chart
from apps.visualization.legend import (
    LegendEntry,
    build_categorical_legend,
    build_continuous_legend,
)
from .products import ProductDefinition, get_product
from .reducers import DEFAULT_MAX_PIXELS, Reducer, hectares_by_class
from .region import Region, resolve_region
from .sources import DateRange
from .temporal import TimeSeriesEntry, monthly_composites, monthly_series

logger = logging.getLogger(__name__)


@dataclass
class MapLayer:
    image: Any
    vis_params: Dict[str, Any]
    name: str
    # The composite has no pixels for this band
    empty: bool = False


@dataclass
class PipelineResult:
    product: ProductDefinition
    region: Region
    year: int
    statistics: Dict[Any, Any]
    vis_params: Dict[str, Any]
    legend_title: str
    legend: List[LegendEntry]
    chart: Optional[ChartSpec]
    summary: List[str]
    layers: List[MapLayer] = field(default_factory=list)
    time_series: List[TimeSeriesEntry] = field(default_factory=list)
    histogram: Dict[float, int] = field(default_factory=dict)
    platform: Any = None

    def to_dict(self):
        return {
            "product": self.product.slug,
            "title": self.product.title,
            "year": self.year,
            "region": {
                "center": [self.region.center_lat, self.region.center_lon],
                "radius_m": self.region.radius_m,
                "bbox": list(self.region.bbox),
                "geometry": self.region.to_geojson(),
            },
            "statistics": {str(k): v for k, v in self.statistics.items()},
            "time_series": [entry.to_dict() for entry in self.time_series],
            "histogram": [{"bucket": k, "count": v} for k, v in sorted(self.histogram.items())],
            "visualization": self.vis_params,
            "legend": {
                "title": self.legend_title,
                "entries": [entry.to_dict() for entry in self.legend],
            },
            "chart": self.chart.to_dict() if self.chart else None,
            "summary": self.summary,
        }


def _format_measure(label, value, measure):
    if value is None:
        return f"{label}: no data"
    unit = f" {measure.unit}" if measure.unit else ""
    return f"{label}: {value:.{measure.precision}f}{unit}"


class ProductPipeline:
    """One run of a product over the study area."""

    def __init__(self, product: ProductDefinition, platform, region: Region, year: int,
                 max_pixels: float = DEFAULT_MAX_PIXELS):
        self.product = product
        self.platform = platform
        self.region = region
        self.year = year
        self.max_pixels = max_pixels

    def _reduce(self, image, reducer, **kwargs):
        future = self.platform.reduce_region(
            image,
            self.region,
            reducer,
            scale=self.product.scale,
            max_pixels=self.max_pixels,
            **kwargs,
        )
        # Rendering waits for the remote reduction to resolve
        return future.result()

    def run(self) -> PipelineResult:
        product = self.product
        logger.info(f"Running {product.slug} pipeline for {self.year}")

        collection = self.platform.select(product.source, self.region, DateRange.for_year(self.year))
        if product.transform is not None:
            collection = self.platform.transform(collection, product.transform)

        image = self.platform.clip(self.platform.composite(collection, product.composite), self.region)

        statistics = self._reduce(image, product.reducer)
        logger.info(f"{product.slug} statistics: {statistics}")

        series = []
        if product.monthly:
            composites = monthly_composites(self.platform, collection, product.monthly, self.year)
            series = monthly_series(
                self.platform,
                composites,
                self.region,
                product.bands,
                scale=product.scale,
                max_pixels=self.max_pixels,
            )

        histogram = {}
        if product.histogram_buckets:
            histogram = self._reduce(image, Reducer.HISTOGRAM, max_buckets=product.histogram_buckets)

        class_areas = None
        if product.reducer is Reducer.GROUPED_SUM:
            class_areas = hectares_by_class(statistics)

        vis_params = self.visualization(statistics)
        legend_title = self.legend_title(vis_params)
        legend = self.build_legend(vis_params, class_areas)

        chart = select_chart(product, class_areas=class_areas, series=series, histogram=histogram)
        if chart is not None:
            chart.title = chart.title.format(year=self.year)

        layers = []
        for m in product.measures:
            layer = MapLayer(image, dict(vis_params, bands=[m.band]), m.layer_name.format(year=self.year))
            if not self.has_data(statistics, m.band):
                logger.warning(f"No {m.band} pixels for {product.slug} in {self.year}, layer left empty")
                layer.empty = True
            layers.append(layer)

        return PipelineResult(
            product=product,
            region=self.region,
            year=self.year,
            statistics=statistics,
            vis_params=vis_params,
            legend_title=legend_title,
            legend=legend,
            chart=chart,
            summary=self.summarize(statistics, class_areas),
            layers=layers,
            time_series=series,
            histogram=histogram,
            platform=self.platform,
        )

    def has_data(self, statistics, band):
        """Whether the reduced statistics saw any pixel of the band."""
        if self.product.reducer is Reducer.GROUPED_SUM:
            return bool(statistics)
        if self.product.reducer is Reducer.MIN_MAX:
            return statistics.get(f"{band}_min") is not None
        return statistics.get(band) is not None

    def visualization(self, statistics):
        product = self.product
        vmin, vmax = product.vis_min, product.vis_max
        if vmin is None or vmax is None:
            # Stretch to the reduced range of the first measure
            band = product.measures[0].band
            vmin = statistics.get(f"{band}_min")
            vmax = statistics.get(f"{band}_max")
        return {"min": vmin, "max": vmax, "palette": list(product.palette)}

    def legend_title(self, vis_params):
        title = self.product.legend.title
        if self.product.vis_min is None and vis_params["min"] is not None and vis_params["max"] is not None:
            title = f"{title}\n{round(vis_params['min'])} - {round(vis_params['max'])}"
        return title

    def build_legend(self, vis_params, class_areas=None):
        spec = self.product.legend
        if spec.categorical:
            return build_categorical_legend(self.product.scheme, class_areas)
        return build_continuous_legend(
            self.product.palette,
            vmin=vis_params["min"],
            vmax=vis_params["max"],
            steps=spec.steps,
            boundaries=spec.boundaries,
            unit=spec.unit,
            precision=spec.precision,
            separator=spec.separator,
            closing_max=spec.closing_max,
        )

    def summarize(self, statistics, class_areas=None):
        product = self.product
        if class_areas is not None:
            lines = [f"{product.measures[0].summary_label}:"]
            for class_id, name in enumerate(product.scheme.names, start=1):
                lines.append(f"  {name}: {class_areas.get(class_id, 0.0):.2f} ha")
            return lines

        lines = []
        for measure in product.measures:
            if product.reducer is Reducer.MIN_MAX:
                lines.append(_format_measure(
                    f"Minimum {measure.summary_label}", statistics.get(f"{measure.band}_min"), measure
                ))
                lines.append(_format_measure(
                    f"Maximum {measure.summary_label}", statistics.get(f"{measure.band}_max"), measure
                ))
            else:
                lines.append(_format_measure(measure.summary_label, statistics.get(measure.band), measure))
        return lines


def run_product(slug, *, platform=None, center_lat=None, center_lon=None, radius_m=None, year=None,
                max_pixels=None) -> PipelineResult:
    """
    Run one product with the configured study area, filling unset parameters
    from settings.
    """
    from apps.earth_engine.platform import get_platform

    product = get_product(slug)
    study_area = settings.STUDY_AREA
    region = resolve_region(
        center_lat if center_lat is not None else study_area["center_lat"],
        center_lon if center_lon is not None else study_area["center_lon"],
        radius_m if radius_m is not None else study_area["radius_m"],
    )
    year = year if year is not None else settings.ANALYSIS_YEAR
    if platform is None:
        platform = get_platform(region=region, year=year)
    if max_pixels is None:
        max_pixels = getattr(settings, "PIPELINE_MAX_PIXELS", DEFAULT_MAX_PIXELS)

    return ProductPipeline(product, platform, region, year, max_pixels=max_pixels).run()
