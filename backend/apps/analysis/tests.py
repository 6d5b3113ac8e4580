"""
Tests for the analysis app.
"""

import math
from datetime import date

import numpy as np
from django.test import SimpleTestCase, override_settings
from rest_framework import status
from rest_framework.test import APISimpleTestCase

from apps.earth_engine.memory import InMemoryPlatform, LocalImage, _millis
from .exceptions import PixelLimitExceeded, PipelineError, UnknownProduct
from .pipeline import ProductPipeline, run_product
from .products import COLLECTIONS, LAND_COVER, PRECIPITATION, PRODUCTS, get_product
from .reducers import (
    Reducer,
    hectares_by_class,
    normalize_groups,
    normalize_histogram,
    square_meters_to_hectares,
)
from .region import EARTH_RADIUS_M, resolve_region
from .schemes import ESRI_LULC_SCHEME, ClassificationScheme
from .serializers import PipelineRunSerializer
from .sources import DateRange, QualityFilter, SourceSelector
from .temporal import MONTHS, monthly_composites, monthly_series, series_frame
from .transforms import CategoricalRemap, LinearTransform, NormalizedDifference


def make_region():
    return resolve_region(18.5941667, 73.3675, 5000)


class RegionResolverTest(SimpleTestCase):
    """Test study area resolution."""

    def test_ring_is_closed_and_contains_center(self):
        region = make_region()
        ring = region.ring

        self.assertEqual(len(ring), 5)
        self.assertEqual(ring[0], ring[-1])
        self.assertTrue(region.contains(region.center_lat, region.center_lon))

    def test_area_covers_buffer_circle(self):
        for radius in (100, 5000, 50000):
            region = resolve_region(18.5941667, 73.3675, radius)
            self.assertGreaterEqual(region.area_m2, math.pi * radius ** 2)

    def test_box_widens_with_latitude(self):
        equator = resolve_region(0, 10, 5000)
        north = resolve_region(60, 10, 5000)

        def width(r):
            return r.bbox[2] - r.bbox[0]

        self.assertAlmostEqual(equator.bbox[3] - equator.bbox[1], north.bbox[3] - north.bbox[1])
        self.assertGreater(width(north), width(equator))

    def test_half_height_matches_radius(self):
        region = make_region()
        half_height = math.radians(region.bbox[3] - region.center_lat) * EARTH_RADIUS_M
        self.assertAlmostEqual(half_height, 5000, places=6)

    def test_geojson(self):
        geojson = make_region().to_geojson()
        self.assertEqual(geojson["type"], "Polygon")
        self.assertEqual(len(geojson["coordinates"][0]), 5)

    def test_deterministic(self):
        self.assertEqual(make_region(), make_region())


class DateRangeTest(SimpleTestCase):
    def test_for_year_is_half_open(self):
        year = DateRange.for_year(2023)

        self.assertTrue(year.contains(date(2023, 1, 1)))
        self.assertTrue(year.contains(date(2023, 12, 31)))
        self.assertFalse(year.contains(date(2024, 1, 1)))
        self.assertEqual(year.as_strings(), ("2023-01-01", "2024-01-01"))


class ClassificationSchemeTest(SimpleTestCase):
    """Test categorical schemes and remapping."""

    def test_esri_scheme_is_aligned(self):
        self.assertEqual(len(ESRI_LULC_SCHEME.names), 9)
        self.assertEqual(len(ESRI_LULC_SCHEME.colors), 9)
        self.assertEqual(ESRI_LULC_SCHEME.class_name(1), "Water")
        self.assertEqual(ESRI_LULC_SCHEME.class_color(9), "#C6AD8D")

    def test_misaligned_scheme_fails(self):
        with self.assertRaises(ValueError):
            ClassificationScheme(names=("a", "b"), colors=("#000000",))

    def test_remap_target_out_of_range_fails(self):
        with self.assertRaises(ValueError):
            ClassificationScheme(names=("a", "b"), colors=("#000000", "#ffffff"), remap={7: 3})

    def test_remap_to_dense_index(self):
        remap = ESRI_LULC_SCHEME.remapper()
        raw = np.array([[1, 2, 4], [5, 7, 8], [9, 10, 11]], dtype=float)

        out = remap.apply_array({"b1": raw})["classification"]

        np.testing.assert_array_equal(out, np.arange(1, 10, dtype=float).reshape(3, 3))

    def test_identity_remap_is_a_no_op(self):
        classes = tuple(range(1, 10))
        remap = CategoricalRemap(classes, classes)
        raw = np.arange(1, 10, dtype=float).reshape(3, 3)

        out = remap.apply_array({"b1": raw})["classification"]

        np.testing.assert_array_equal(out, raw)

    def test_unmapped_codes_are_masked(self):
        remap = ESRI_LULC_SCHEME.remapper()
        out = remap.apply_array({"b1": np.array([3.0, 6.0, 1.0])})["classification"]

        self.assertTrue(np.isnan(out[0]))
        self.assertTrue(np.isnan(out[1]))
        self.assertEqual(out[2], 1)

    def test_unmapped_codes_with_default(self):
        remap = CategoricalRemap((1,), (1,), default_value=2)
        out = remap.apply_array({"b1": np.array([1.0, 99.0])})["classification"]
        np.testing.assert_array_equal(out, [1, 2])

    def test_output_within_class_range(self):
        remap = ESRI_LULC_SCHEME.remapper()
        raw = np.random.default_rng(1).integers(0, 15, size=(20, 20)).astype(float)

        out = remap.apply_array({"b1": raw})["classification"]
        valid = out[~np.isnan(out)]

        self.assertTrue(((valid >= 1) & (valid <= 9)).all())


class BandTransformTest(SimpleTestCase):
    def test_normalized_difference(self):
        nd = NormalizedDifference("B8", "B4", name="NDVI")
        out = nd.apply_array({"B8": np.array([0.5, 0.3]), "B4": np.array([0.1, 0.3])})["NDVI"]

        self.assertAlmostEqual(out[0], 0.4 / 0.6)
        self.assertEqual(out[1], 0.0)

    def test_normalized_difference_zero_denominator(self):
        nd = NormalizedDifference("B8", "B4", name="NDVI")
        out = nd.apply_array({"B8": np.array([0.0]), "B4": np.array([0.0])})["NDVI"]
        self.assertTrue(np.isnan(out[0]))

    def test_normalized_difference_bounded(self):
        rng = np.random.default_rng(3)
        nd = NormalizedDifference("a", "b")
        out = nd.apply_array({"a": rng.uniform(0, 1, 100), "b": rng.uniform(0, 1, 100)})["ND"]
        self.assertTrue(((out >= -1) & (out <= 1)).all())

    def test_normalized_difference_missing_bands(self):
        nd = NormalizedDifference("B8", "B4")
        self.assertEqual(nd.apply_array({"B8": np.array([1.0])}), {})
        self.assertEqual(nd.output_bands(["B8"]), [])

    def test_linear_transform_preserves_band_names(self):
        lst = LinearTransform(0.02, -273.15)
        kelvin = (273.15 + 30) / 0.02

        out = lst.apply_array({"LST_Day_1km": np.array([kelvin]), "LST_Night_1km": np.array([kelvin])})

        self.assertEqual(set(out), {"LST_Day_1km", "LST_Night_1km"})
        self.assertAlmostEqual(out["LST_Day_1km"][0], 30.0)


class ReducerHelpersTest(SimpleTestCase):
    def test_square_meters_to_hectares(self):
        self.assertEqual(square_meters_to_hectares(25000), 2.5)
        self.assertIsNone(square_meters_to_hectares(None))

    def test_normalize_groups(self):
        groups = [{"class": 1, "sum": 20000.0}, {"class": 4.0, "sum": 5000.0}, {"sum": 1.0}]
        self.assertEqual(normalize_groups(groups), {1: 20000.0, 4: 5000.0})
        self.assertEqual(normalize_groups(None), {})

    def test_normalize_histogram_from_bucket_width(self):
        histogram = normalize_histogram({"bucketMin": 100, "bucketWidth": 10, "histogram": [3, 5.0]})
        self.assertEqual(histogram, {105.0: 3, 115.0: 5})

    def test_hectares_by_class(self):
        self.assertEqual(hectares_by_class({1: 30000.0}), {1: 3.0})


class InMemoryReductionTest(SimpleTestCase):
    """Test region reductions on the in-memory platform."""

    def setUp(self):
        self.region = make_region()
        self.platform = InMemoryPlatform({})

    def image(self, bands, pixel_size=100.0):
        return LocalImage(bands=bands, pixel_size=pixel_size, bounds=self.region.bbox)

    def test_grouped_sum_in_hectares(self):
        # 100 m pixels are one hectare each
        classes = np.array([[1, 1], [2, np.nan]])
        areas = self.platform.reduce_region(
            self.image({"classification": classes}), self.region, Reducer.GROUPED_SUM,
            scale=100, max_pixels=1e9,
        ).result()

        self.assertEqual(hectares_by_class(areas), {1: 2.0, 2: 1.0})
        self.assertNotIn(0, areas)

    def test_grouped_sum_adds_up_to_total_area(self):
        classes = np.array([[1, 2, 2], [1, 1, 2], [2, 2, 2]], dtype=float)
        image = self.image({"classification": classes}, pixel_size=30.0)

        areas = self.platform.reduce_region(
            image, self.region, Reducer.GROUPED_SUM, scale=30, max_pixels=1e9
        ).result()
        total_area_m2 = classes.size * 30.0 ** 2

        self.assertEqual(set(areas), {1, 2})
        self.assertAlmostEqual(sum(hectares_by_class(areas).values()), total_area_m2 / 10_000)

    def test_pixel_ceiling_fails(self):
        image = self.image({"DSM": np.ones((10, 10))}, pixel_size=10.0)
        future = self.platform.reduce_region(image, self.region, Reducer.MIN_MAX, scale=10, max_pixels=50)

        with self.assertRaises(PixelLimitExceeded) as ctx:
            future.result()
        self.assertIn("Found 100", str(ctx.exception))
        self.assertIn("allows only 50", str(ctx.exception))

    def test_coarser_scale_fits_under_ceiling(self):
        image = self.image({"DSM": np.ones((10, 10))}, pixel_size=10.0)
        stats = self.platform.reduce_region(
            image, self.region, Reducer.MIN_MAX, scale=20, max_pixels=50
        ).result()
        self.assertEqual(stats, {"DSM_min": 1.0, "DSM_max": 1.0})

    def test_all_masked_mean_is_none(self):
        image = self.image({"precipitation": np.full((2, 2), np.nan)})
        stats = self.platform.reduce_region(
            image, self.region, Reducer.MEAN, scale=100, max_pixels=1e9
        ).result()
        self.assertEqual(stats, {"precipitation": None})

    def test_histogram_counts_all_valid_pixels(self):
        values = np.arange(100, dtype=float).reshape(10, 10)
        histogram = self.platform.reduce_region(
            self.image({"DSM": values}), self.region, Reducer.HISTOGRAM,
            scale=100, max_pixels=1e9, max_buckets=10,
        ).result()

        self.assertEqual(len(histogram), 10)
        self.assertEqual(sum(histogram.values()), 100)


class InMemorySelectionTest(SimpleTestCase):
    def setUp(self):
        self.region = make_region()

    def test_unknown_collection_fails(self):
        platform = InMemoryPlatform({})
        with self.assertRaises(PipelineError):
            platform.select(SourceSelector("missing/collection", ("b1",)), self.region)

    def test_filters_dates_quality_and_bounds(self):
        def image(day, cloudy, bounds=self.region.bbox):
            return LocalImage(
                bands={"B8": np.ones((2, 2)), "B4": np.ones((2, 2))},
                properties={"system:time_start": _millis(day), "CLOUDY_PIXEL_PERCENTAGE": cloudy},
                bounds=bounds,
            )

        platform = InMemoryPlatform({"s2": [
            image(date(2023, 3, 1), 5),
            image(date(2023, 3, 2), 20),
            image(date(2024, 1, 1), 5),
            image(date(2023, 3, 3), 5, bounds=(0.0, 0.0, 1.0, 1.0)),
        ]})
        selector = SourceSelector("s2", ("B8",), quality=QualityFilter("CLOUDY_PIXEL_PERCENTAGE", 20))

        selected = platform.select(selector, self.region, DateRange.for_year(2023))

        self.assertEqual(len(selected), 1)
        self.assertEqual(selected[0].band_names, ["B8"])


class TemporalAggregationTest(SimpleTestCase):
    """Test monthly aggregation."""

    def setUp(self):
        self.region = make_region()
        # Rain only in March and July
        images = []
        for day, value in ((date(2023, 3, 1), 10.0), (date(2023, 3, 15), 5.0), (date(2023, 7, 4), 40.0)):
            images.append(LocalImage(
                bands={"precipitation": np.full((2, 2), value)},
                properties={"system:time_start": _millis(day)},
                pixel_size=1000.0,
                bounds=self.region.bbox,
            ))
        self.platform = InMemoryPlatform({"rain": images})
        self.collection = self.platform.select(
            SourceSelector("rain", ("precipitation",)), self.region, DateRange.for_year(2023)
        )

    def test_twelve_stamped_composites_in_order(self):
        composites = monthly_composites(self.platform, self.collection, "sum", 2023)

        self.assertEqual([month for month, _ in composites], list(MONTHS))
        for month, image in composites:
            self.assertEqual(image.properties["month"], month)
            self.assertEqual(image.acquired, date(2023, month, 1))

    def test_empty_months_report_no_data(self):
        composites = monthly_composites(self.platform, self.collection, "sum", 2023)
        series = monthly_series(
            self.platform, composites, self.region, ["precipitation"], scale=5000, max_pixels=1e9
        )

        self.assertEqual(len(series), 12)
        self.assertEqual(series[2].value, 15.0)
        self.assertEqual(series[6].value, 40.0)
        self.assertIsNone(series[0].value)
        self.assertEqual(series[0].month_name, "Jan")

    def test_series_frame(self):
        composites = monthly_composites(self.platform, self.collection, "sum", 2023)
        series = monthly_series(
            self.platform, composites, self.region, ["precipitation"], scale=5000, max_pixels=1e9
        )

        df = series_frame(series)

        self.assertEqual(list(df.index), list(MONTHS))
        self.assertEqual(df.loc[7, "precipitation"], 40.0)
        self.assertEqual(df.loc[3, "month_name"], "Mar")


class ProductCatalogueTest(SimpleTestCase):
    def test_all_products_registered(self):
        self.assertEqual(set(PRODUCTS), {"land-cover", "elevation", "precipitation", "ndvi", "lst"})
        self.assertEqual(set(COLLECTIONS), set(PRODUCTS))

    def test_unknown_product(self):
        with self.assertRaises(UnknownProduct):
            get_product("soil-moisture")


class ProductPipelineTest(SimpleTestCase):
    """Test full pipeline runs on small hand-built catalogs."""

    def setUp(self):
        self.region = make_region()

    def land_cover_platform(self):
        # Two Water pixels, one Crops pixel, one unmapped code (3)
        raw = np.array([[1, 1], [5, 3]], dtype=float)
        image = LocalImage(
            bands={"b1": raw},
            properties={"system:time_start": _millis(date(2023, 1, 1))},
            pixel_size=100.0,
            bounds=self.region.bbox,
        )
        return InMemoryPlatform({COLLECTIONS["land-cover"]: [image]})

    def test_land_cover_areas_and_legend(self):
        result = ProductPipeline(LAND_COVER, self.land_cover_platform(), self.region, 2023).run()

        self.assertEqual(result.statistics, {1: 20000.0, 4: 10000.0})
        self.assertEqual(result.summary[0], "Land Cover Areas (hectares):")
        self.assertIn("  Water: 2.00 ha", result.summary)
        self.assertIn("  Rangeland: 0.00 ha", result.summary)
        self.assertEqual(len(result.legend), 9)
        self.assertEqual(result.legend[0].label, "Water (2.00 ha)")
        self.assertEqual(result.legend[3].label, "Crops (1.00 ha)")
        self.assertEqual(result.chart.kind, "pie")
        self.assertEqual(result.layers[0].name, "2023 LULC 10m")
        self.assertFalse(result.layers[0].empty)

    def test_pixel_ceiling_propagates(self):
        pipeline = ProductPipeline(LAND_COVER, self.land_cover_platform(), self.region, 2023, max_pixels=2)
        with self.assertRaises(PixelLimitExceeded):
            pipeline.run()

    def test_precipitation_without_data(self):
        platform = InMemoryPlatform({COLLECTIONS["precipitation"]: []})

        result = ProductPipeline(PRECIPITATION, platform, self.region, 2023).run()

        self.assertEqual(result.statistics, {})
        self.assertEqual(len(result.time_series), 12)
        self.assertTrue(all(entry.value is None for entry in result.time_series))
        self.assertEqual(result.summary, ["Total Annual Precipitation: no data"])
        self.assertEqual(result.chart.title, "Monthly Precipitation 2023")
        self.assertTrue(result.layers[0].empty)


class DemoPipelineTest(SimpleTestCase):
    """Run every product end to end against the synthetic demo catalog."""

    def test_every_product_runs(self):
        for slug in PRODUCTS:
            with self.subTest(product=slug):
                result = run_product(slug, year=2023)
                payload = result.to_dict()

                self.assertEqual(payload["product"], slug)
                self.assertEqual(payload["year"], 2023)
                self.assertTrue(payload["summary"])
                self.assertTrue(payload["legend"]["entries"])
                self.assertIsNotNone(payload["chart"])
                if PRODUCTS[slug].monthly:
                    self.assertEqual([e["month"] for e in payload["time_series"]], list(MONTHS))

    def test_elevation_stretches_to_reduced_range(self):
        result = run_product("elevation", year=2023)

        low, high = result.statistics["DSM_min"], result.statistics["DSM_max"]
        self.assertEqual(result.vis_params["min"], low)
        self.assertEqual(result.vis_params["max"], high)
        self.assertEqual(result.legend_title, f"Elevation (m)\n{round(low)} - {round(high)}")
        self.assertEqual(result.legend[-1].label, f"{high:.0f} m")
        self.assertTrue(result.summary[0].startswith("Minimum Elevation: "))
        self.assertTrue(result.summary[0].endswith(" m"))

    def test_lst_has_day_and_night_series(self):
        result = run_product("lst", year=2023)

        self.assertEqual(result.chart.kind, "dual_line")
        self.assertEqual(set(result.chart.series), {"Day Temperature", "Night Temperature"})
        self.assertEqual(len(result.layers), 2)
        day = result.statistics["LST_Day_1km"]
        night = result.statistics["LST_Night_1km"]
        self.assertGreater(day, night)

    @override_settings(STUDY_AREA={"center_lat": 0.0, "center_lon": 0.0, "radius_m": 1000.0, "zoom": 12})
    def test_settings_supply_defaults(self):
        result = run_product("elevation", year=2022)

        self.assertEqual(result.region.center_lat, 0.0)
        self.assertEqual(result.region.radius_m, 1000.0)
        self.assertEqual(result.year, 2022)


class PipelineRunSerializerTest(SimpleTestCase):
    def test_empty_body_is_valid(self):
        self.assertTrue(PipelineRunSerializer(data={}).is_valid())

    def test_center_requires_both_coordinates(self):
        serializer = PipelineRunSerializer(data={"center_lat": 10})
        self.assertFalse(serializer.is_valid())

    def test_latitude_range(self):
        serializer = PipelineRunSerializer(data={"center_lat": 95, "center_lon": 10})
        self.assertFalse(serializer.is_valid())
        self.assertIn("center_lat", serializer.errors)


class AnalysisAPITest(APISimpleTestCase):
    """Test analysis API endpoints."""

    def test_health_check(self):
        response = self.client.get("/api/v1/analysis/health/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "healthy")
        self.assertEqual(response.data["backend"], "demo")

    def test_list_products(self):
        response = self.client.get("/api/v1/analysis/products/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        slugs = [p["slug"] for p in response.data["products"]]
        self.assertEqual(slugs, list(PRODUCTS))

    def test_run_product(self):
        response = self.client.post("/api/v1/analysis/run/precipitation/", {"year": 2023}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(len(response.data["time_series"]), 12)
        self.assertEqual(len(response.data["legend"]["entries"]), 5)
        self.assertEqual(response.data["legend"]["entries"][0]["label"], "0 - 100 mm")

    def test_run_unknown_product(self):
        response = self.client.post("/api/v1/analysis/run/soil-moisture/", {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data["success"])

    def test_run_invalid_parameters(self):
        response = self.client.post("/api/v1/analysis/run/ndvi/", {"radius_m": -5}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("radius_m", response.data["errors"])

    def test_run_pixel_ceiling(self):
        response = self.client.post("/api/v1/analysis/run/ndvi/", {"max_pixels": 10}, format="json")

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertIn("Too many pixels", response.data["error"])
