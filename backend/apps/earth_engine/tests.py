import base64
import json
import tempfile
from concurrent.futures import Future
from unittest.mock import MagicMock, patch

import numpy as np
from django.test import SimpleTestCase, override_settings
from rest_framework import status
from rest_framework.test import APISimpleTestCase

from apps.analysis.exceptions import PlatformUnavailable
from apps.analysis.reducers import Reducer
from apps.analysis.region import resolve_region
from apps.analysis.sources import DateRange, QualityFilter, SourceSelector
from . import ee_config
from .memory import ESRI_RAW_CODES, InMemoryPlatform, build_demo_catalog
from .platform import EarthEnginePlatform, get_platform, shared_executor


class EarthEngineConfigTest(SimpleTestCase):
    """Test Earth Engine configuration."""

    def setUp(self):
        ee_config._ee_initialized = False

    def tearDown(self):
        ee_config._ee_initialized = False

    @override_settings(EARTH_ENGINE_PROJECT="demo-project")
    @patch("apps.earth_engine.ee_config.ee")
    def test_ee_initialization(self, mock_ee):
        """Test Earth Engine initialization."""
        mock_ee.Initialize.return_value = None

        self.assertTrue(ee_config.initialize_earth_engine())
        mock_ee.Initialize.assert_called_once_with(project="demo-project")
        self.assertTrue(ee_config.is_initialized())

    @patch("apps.earth_engine.ee_config.ee")
    def test_initialization_happens_once(self, mock_ee):
        ee_config.initialize_earth_engine()
        ee_config.initialize_earth_engine()
        mock_ee.Initialize.assert_called_once()

    @patch("apps.earth_engine.ee_config.ee")
    def test_ee_initialization_error(self, mock_ee):
        """Test Earth Engine initialization with error."""
        mock_ee.Initialize.side_effect = Exception("Service account error")

        self.assertFalse(ee_config.initialize_earth_engine())
        self.assertFalse(ee_config.is_initialized())

    @patch("apps.earth_engine.ee_config.ee")
    def test_service_account_from_base64(self, mock_ee):
        """Test service account authentication from a base64 key."""
        key = {"type": "service_account", "client_email": "svc@example.iam.gserviceaccount.com"}
        encoded = base64.b64encode(json.dumps(key).encode("utf-8")).decode("ascii")

        with tempfile.TemporaryDirectory() as base_dir:
            with self.settings(
                BASE_DIR=base_dir,
                EARTH_ENGINE_USE_SERVICE_ACCOUNT=True,
                EARTH_ENGINE_SERVICE_ACCOUNT_KEY_BASE64=encoded,
                EARTH_ENGINE_PROJECT="demo-project",
            ):
                self.assertTrue(ee_config.initialize_earth_engine())

                _, kwargs = mock_ee.ServiceAccountCredentials.call_args
                with open(kwargs["key_file"]) as f:
                    self.assertEqual(json.load(f), key)

        mock_ee.Initialize.assert_called_once_with(
            mock_ee.ServiceAccountCredentials.return_value, project="demo-project"
        )

    @override_settings(
        EARTH_ENGINE_USE_SERVICE_ACCOUNT=True,
        EARTH_ENGINE_SERVICE_ACCOUNT_KEY="/nonexistent/key.json",
        EARTH_ENGINE_SERVICE_ACCOUNT_KEY_BASE64=None,
    )
    @patch("apps.earth_engine.ee_config.ee")
    def test_fallback_authentication(self, mock_ee):
        """Test fallback authentication when service account is not available."""
        self.assertTrue(ee_config.initialize_earth_engine())
        mock_ee.ServiceAccountCredentials.assert_not_called()
        mock_ee.Initialize.assert_called_once()

    def test_authentication_info(self):
        info = ee_config.get_authentication_info()

        self.assertEqual(info["backend"], "demo")
        self.assertEqual(info["authentication_method"], "Default")
        self.assertFalse(info["initialized"])


class PlatformSelectionTest(SimpleTestCase):
    def setUp(self):
        self.region = resolve_region(18.5941667, 73.3675, 5000)

    def test_demo_backend(self):
        platform = get_platform(region=self.region, year=2023)
        self.assertIsInstance(platform, InMemoryPlatform)

    def test_demo_backend_needs_region_and_year(self):
        with self.assertRaises(ValueError):
            get_platform()

    @override_settings(EARTH_ENGINE_BACKEND="earthengine")
    @patch("apps.earth_engine.ee_config.initialize_earth_engine", return_value=False)
    def test_unavailable_earth_engine(self, mock_init):
        with self.assertRaises(PlatformUnavailable):
            get_platform(region=self.region, year=2023)

    @override_settings(EARTH_ENGINE_BACKEND="earthengine", PIPELINE_WORKERS=2)
    @patch("apps.earth_engine.ee_config.initialize_earth_engine", return_value=True)
    def test_earth_engine_backend(self, mock_init):
        platform = get_platform(region=self.region, year=2023)
        self.assertIsInstance(platform, EarthEnginePlatform)

    @override_settings(EARTH_ENGINE_BACKEND="earthengine")
    @patch("apps.earth_engine.ee_config.initialize_earth_engine", return_value=True)
    def test_requests_share_one_reduction_pool(self, mock_init):
        first = get_platform(region=self.region, year=2023)
        second = get_platform(region=self.region, year=2024)

        self.assertIs(first._executor, second._executor)
        self.assertIs(first._executor, shared_executor())


class DemoCatalogTest(SimpleTestCase):
    def setUp(self):
        self.region = resolve_region(18.5941667, 73.3675, 5000)
        self.catalog = build_demo_catalog(self.region, 2023, grid_size=4)

    def test_covers_every_collection(self):
        from apps.analysis.products import COLLECTIONS

        self.assertEqual(set(self.catalog), set(COLLECTIONS.values()))

    def test_land_cover_uses_raw_codes(self):
        from apps.analysis.products import COLLECTIONS

        raw = self.catalog[COLLECTIONS["land-cover"]][0].bands["b1"]
        self.assertTrue(set(np.unique(raw).astype(int)) <= set(ESRI_RAW_CODES))

    def test_daily_series_cover_the_year(self):
        from apps.analysis.products import COLLECTIONS

        rain = self.catalog[COLLECTIONS["precipitation"]]
        self.assertEqual(len(rain), 365)
        self.assertEqual(rain[0].acquired.isoformat(), "2023-01-01")
        self.assertEqual(rain[-1].acquired.isoformat(), "2023-12-31")


@patch("apps.earth_engine.platform.ee")
class EarthEnginePlatformTest(SimpleTestCase):
    """Test the Earth Engine calls issued by the platform, with ee mocked out."""

    def setUp(self):
        self.region = MagicMock()
        self.platform = EarthEnginePlatform(max_workers=1)

    def test_select_filters_bounds_dates_quality_and_bands(self, mock_ee):
        selector = SourceSelector(
            "COPERNICUS/S2_SR_HARMONIZED", ("B8", "B4"), quality=QualityFilter("CLOUDY_PIXEL_PERCENTAGE", 20)
        )

        self.platform.select(selector, self.region, DateRange.for_year(2023))

        collection = mock_ee.ImageCollection.return_value
        mock_ee.ImageCollection.assert_called_once_with("COPERNICUS/S2_SR_HARMONIZED")
        collection.filterBounds.assert_called_once_with(self.region.to_ee_geometry.return_value)
        collection.filterBounds.return_value.filterDate.assert_called_once_with("2023-01-01", "2024-01-01")
        mock_ee.Filter.lt.assert_called_once_with("CLOUDY_PIXEL_PERCENTAGE", 20)

    def test_static_source_skips_date_filter(self, mock_ee):
        selector = SourceSelector("JAXA/ALOS/AW3D30/V3_2", ("DSM",), temporal=False)

        self.platform.select(selector, self.region, DateRange.for_year(2023))

        mock_ee.ImageCollection.return_value.filterBounds.return_value.filterDate.assert_not_called()

    def test_grouped_sum_uses_pixel_area(self, mock_ee):
        image = MagicMock()
        dictionary = mock_ee.Image.pixelArea.return_value.addBands.return_value.reduceRegion.return_value
        dictionary.getInfo.return_value = {"groups": [{"class": 1, "sum": 20000.0}]}

        future = self.platform.reduce_region(image, self.region, Reducer.GROUPED_SUM, scale=10, max_pixels=1e9)

        self.assertIsInstance(future, Future)
        self.assertEqual(future.result(), {1: 20000.0})
        mock_ee.Reducer.sum.return_value.group.assert_called_once_with(groupField=1, groupName="class")
        _, kwargs = mock_ee.Image.pixelArea.return_value.addBands.return_value.reduceRegion.call_args
        self.assertEqual(kwargs["maxPixels"], 1e9)
        self.assertNotIn("bestEffort", kwargs)

    def test_reduction_errors_propagate(self, mock_ee):
        image = MagicMock()
        image.reduceRegion.return_value.getInfo.side_effect = RuntimeError("Too many pixels in the region.")

        future = self.platform.reduce_region(image, self.region, Reducer.MEAN, scale=10, max_pixels=100)

        with self.assertRaises(RuntimeError):
            future.result()

    def test_map_layer_uses_tile_url(self, mock_ee):
        mock_ee.Image.return_value.getMapId.return_value = {
            "tile_fetcher": MagicMock(url_format="https://earthengine.googleapis.com/tiles/{z}/{x}/{y}")
        }

        layer = self.platform.map_layer(MagicMock(), {"min": 0, "max": 1, "palette": ["#000000"]}, "NDVI")

        self.assertEqual(layer.tiles, "https://earthengine.googleapis.com/tiles/{z}/{x}/{y}")
        self.assertEqual(layer.layer_name, "NDVI")


class EarthEngineAPITest(APISimpleTestCase):
    def setUp(self):
        ee_config._ee_initialized = False

    def test_ee_status_endpoint_demo(self):
        response = self.client.get("/api/v1/earth-engine/status/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["earth_engine"]["status"], "demo")

    @override_settings(EARTH_ENGINE_BACKEND="earthengine")
    @patch("apps.earth_engine.views.initialize_earth_engine", return_value=False)
    def test_ee_status_error(self, mock_init):
        response = self.client.get("/api/v1/earth-engine/status/")

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertFalse(response.data["success"])

    @override_settings(EARTH_ENGINE_BACKEND="earthengine", EARTH_ENGINE_PROJECT="demo-project")
    @patch("apps.earth_engine.views.initialize_earth_engine", return_value=True)
    def test_ee_status_ready(self, mock_init):
        response = self.client.get("/api/v1/earth-engine/status/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["earth_engine"]["status"], "ready")
        self.assertEqual(response.data["earth_engine"]["project_id"], "demo-project")
