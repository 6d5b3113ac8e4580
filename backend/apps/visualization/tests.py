"""
Tests for the visualization app.
"""

from django.test import SimpleTestCase
from rest_framework import status
from rest_framework.test import APISimpleTestCase

from apps.analysis.pipeline import ProductPipeline, run_product
from apps.analysis.products import COLLECTIONS, ELEVATION, LAND_COVER, LST, NDVI, PRECIPITATION
from apps.analysis.region import resolve_region
from apps.analysis.schemes import ESRI_LULC_SCHEME, ClassificationScheme
from apps.analysis.temporal import TimeSeriesEntry
from apps.earth_engine.memory import InMemoryPlatform, LocalImage
from .charts import (
    DUAL_LINE,
    HISTOGRAM,
    PIE,
    ChartSpec,
    render_chart,
    select_chart,
)
from .legend import (
    LegendEntry,
    bucket_boundaries,
    build_categorical_legend,
    build_continuous_legend,
    legend_html,
)
from .maps import build_map, render_map_html

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class LegendTest(SimpleTestCase):
    """Test legend construction."""

    def test_bucket_boundaries(self):
        self.assertEqual(bucket_boundaries(0, 40, 4), [0, 10, 20, 30, 40])

    def test_bucket_boundaries_requires_a_step(self):
        with self.assertRaises(ValueError):
            bucket_boundaries(0, 1, 0)

    def test_precipitation_legend(self):
        legend = build_continuous_legend(
            PRECIPITATION.palette,
            boundaries=PRECIPITATION.legend.boundaries,
            unit="mm",
        )

        self.assertEqual(
            [e.label for e in legend],
            ["0 - 100 mm", "100 - 200 mm", "200 - 300 mm", "300 - 400 mm", "400 - 500 mm"],
        )
        self.assertEqual([e.color for e in legend], ["#" + c.lstrip("#") for c in PRECIPITATION.palette[:5]])

    def test_ndvi_legend_avoids_negative_zero(self):
        spec = NDVI.legend
        legend = build_continuous_legend(
            NDVI.palette, boundaries=spec.boundaries, precision=spec.precision, separator=spec.separator
        )

        self.assertEqual(len(legend), 9)
        self.assertEqual(legend[0].label, "-0.2 to 0.0")
        self.assertEqual(legend[-1].label, "0.9 to 1.0")

    def test_sampled_palette_indices(self):
        legend = build_continuous_legend(LST.palette, vmin=0, vmax=40, steps=4, unit="°C")

        self.assertEqual([e.label for e in legend], ["0 - 10 °C", "10 - 20 °C", "20 - 30 °C", "30 - 40 °C"])
        # floor(i * 25 / 4) for i in 0..3
        self.assertEqual([e.color for e in legend], ["#040274", "#0602ff", "#3be285", "#fff705"])

    def test_elevation_legend_closes_with_maximum(self):
        spec = ELEVATION.legend
        legend = build_continuous_legend(
            ELEVATION.palette, vmin=500, vmax=1000, steps=spec.steps, unit=spec.unit,
            closing_max=spec.closing_max,
        )

        self.assertEqual(len(legend), 6)
        self.assertEqual(legend[0].label, "500 - 600 m")
        self.assertEqual(legend[-1], LegendEntry("#FF0002", "1000 m"))

    def test_unknown_range_gives_empty_legend(self):
        self.assertEqual(build_continuous_legend(ELEVATION.palette, vmin=None, vmax=None), [])

    def test_more_intervals_than_colors_fails(self):
        with self.assertRaises(ValueError):
            build_continuous_legend(("#000000",), boundaries=(0, 1, 2))

    def test_categorical_legend_with_areas(self):
        legend = build_categorical_legend(ESRI_LULC_SCHEME, {1: 12.5, 5: 0.25})

        self.assertEqual(len(legend), 9)
        self.assertEqual(legend[0], LegendEntry("#1A5BAB", "Water (12.50 ha)"))
        self.assertEqual(legend[1].label, "Trees (0.00 ha)")
        self.assertEqual(legend[4].label, "Built Area (0.25 ha)")

    def test_categorical_legend_without_areas(self):
        scheme = ClassificationScheme(names=("Low", "High"), colors=("00ff00", "ff0000"))
        legend = build_categorical_legend(scheme)
        self.assertEqual(legend, [LegendEntry("#00ff00", "Low"), LegendEntry("#ff0000", "High")])

    def test_legend_html(self):
        html = legend_html("NDVI Values\n(Vegetation Index)", [LegendEntry("#1a9850", "0.8 to 0.9")])

        self.assertIn("position:fixed", html)
        self.assertIn("bottom:30px;left:10px", html)
        self.assertIn("z-index:9999", html)
        self.assertIn("NDVI Values<br>(Vegetation Index)", html)
        self.assertIn("0.8 to 0.9", html)


def monthly(values_by_band):
    return [
        TimeSeriesEntry(period=month, values={band: values[month - 1] for band, values in values_by_band.items()})
        for month in range(1, 13)
    ]


class ChartSelectionTest(SimpleTestCase):
    """Test that charts follow the shape of the reduced data."""

    def test_breakdown_for_class_areas(self):
        chart = select_chart(LAND_COVER, class_areas={1: 2.0, 4: 1.0}, series=[], histogram={})

        self.assertEqual(chart.kind, PIE)
        self.assertEqual(chart.labels, ["Water (2.00 ha)", "Crops (1.00 ha)"])
        self.assertEqual(chart.colors, ["#1A5BAB", "#FFDB5C"])
        self.assertEqual(chart.hole, 0.4)

    def test_column_chart_for_precipitation(self):
        chart = select_chart(PRECIPITATION, series=monthly({"precipitation": [float(m) for m in range(12)]}))

        self.assertEqual(chart.kind, "column")
        self.assertEqual(chart.labels[0], "Jan")
        self.assertEqual(chart.labels[-1], "Dec")
        self.assertEqual(chart.y_label, "Precipitation (mm)")

    def test_dual_line_for_two_measures(self):
        chart = select_chart(LST, series=monthly({
            "LST_Day_1km": [30.0] * 12,
            "LST_Night_1km": [20.0] * 12,
        }))

        self.assertEqual(chart.kind, DUAL_LINE)
        self.assertEqual(chart.series["Day Temperature"], [30.0] * 12)
        self.assertEqual(chart.colors, ["#ff4e4e", "#4286f4"])

    def test_ndvi_fixed_axis_range(self):
        chart = select_chart(NDVI, series=monthly({"NDVI": [0.5] * 12}))
        self.assertEqual(chart.to_dict()["y_range"], [-1, 1])

    def test_histogram_for_elevation(self):
        chart = select_chart(ELEVATION, histogram={550.0: 3, 650.0: 7})

        self.assertEqual(chart.kind, HISTOGRAM)
        self.assertEqual(chart.labels, ["550", "650"])
        self.assertEqual(chart.x_label, "Elevation (m)")

    def test_nothing_to_chart(self):
        self.assertIsNone(select_chart(ELEVATION))


class ChartRenderingTest(SimpleTestCase):
    def test_render_each_kind(self):
        specs = [
            select_chart(LAND_COVER, class_areas={1: 2.0, 4: 1.0}),
            select_chart(PRECIPITATION, series=monthly({"precipitation": [None] + [5.0] * 11})),
            select_chart(LST, series=monthly({"LST_Day_1km": [30.0] * 12, "LST_Night_1km": [20.0] * 12})),
            select_chart(ELEVATION, histogram={550.0: 3, 650.0: 7}),
        ]
        for spec in specs:
            with self.subTest(kind=spec.kind):
                self.assertTrue(render_chart(spec, dpi=50).startswith(PNG_SIGNATURE))

    def test_empty_pie_renders(self):
        spec = ChartSpec(kind=PIE, title="Land Cover Distribution", labels=[], series={"area_ha": []})
        self.assertTrue(render_chart(spec, dpi=50).startswith(PNG_SIGNATURE))


class MapTest(SimpleTestCase):
    """Test HTML map output on the demo platform."""

    def test_map_contains_layers_and_legend(self):
        result = run_product("precipitation", year=2023)

        html = render_map_html(result)

        self.assertIn("Annual Precipitation 2023", html)
        self.assertIn("Study Area", html)
        self.assertIn("Annual Precipitation (mm)", html)
        self.assertIn("0 - 100 mm", html)

    def test_map_centered_on_region(self):
        result = run_product("elevation", year=2023)

        map_obj = build_map(result, zoom=9)

        self.assertEqual(map_obj.location, [result.region.center_lat, result.region.center_lon])
        self.assertIn("Elevation", render_map_html(result))

    def test_map_for_empty_catalog(self):
        region = resolve_region(18.5941667, 73.3675, 5000)
        for product in (PRECIPITATION, ELEVATION):
            with self.subTest(product=product.slug):
                platform = InMemoryPlatform({COLLECTIONS[product.slug]: []})
                result = ProductPipeline(product, platform, region, 2023).run()

                html = render_map_html(result)

                self.assertTrue(all(layer.empty for layer in result.layers))
                self.assertIn(f"{result.layers[0].name} (no data)", html)
                self.assertIn("Study Area", html)

    def test_missing_band_renders_transparent_overlay(self):
        region = resolve_region(18.5941667, 73.3675, 5000)
        image = LocalImage(bands={}, bounds=region.bbox)
        vis_params = {"min": 0, "max": 500, "palette": list(PRECIPITATION.palette), "bands": ["precipitation"]}

        overlay = InMemoryPlatform({}).map_layer(image, vis_params, "Annual Precipitation 2023")

        self.assertEqual(overlay.layer_name, "Annual Precipitation 2023")


class VisualizationAPITest(APISimpleTestCase):
    def test_chart_endpoint_returns_png(self):
        response = self.client.post("/api/v1/visualization/chart/land-cover/", {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response["Content-Type"], "image/png")
        self.assertIn("land-cover_2023_chart.png", response["Content-Disposition"])
        self.assertTrue(response.content.startswith(PNG_SIGNATURE))

    def test_map_endpoint_returns_html(self):
        response = self.client.post("/api/v1/visualization/map/ndvi/", {"year": 2023}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response["Content-Type"].startswith("text/html"))
        self.assertIn(b"Annual Mean NDVI 2023", response.content)

    def test_unknown_product(self):
        response = self.client.post("/api/v1/visualization/map/soil-moisture/", {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_health_is_served_by_the_analysis_app_only(self):
        self.assertEqual(self.client.get("/api/v1/visualization/health/").status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get("/api/v1/analysis/health/").status_code, status.HTTP_200_OK)
