"""
Integration tests for the thematic maps backend.
"""
import json
import os
import tempfile
from io import StringIO

from django.core.management import CommandError, call_command
from django.test import SimpleTestCase
from rest_framework import status
from rest_framework.test import APISimpleTestCase

from apps.analysis.products import PRODUCTS


class RunPipelineCommandTest(SimpleTestCase):
    """Test the run_pipeline management command on the demo platform."""

    def test_prints_summary(self):
        out = StringIO()

        call_command("run_pipeline", "lst", year=2023, stdout=out)

        output = out.getvalue()
        self.assertIn("MODIS Land Surface Temperature (2023)", output)
        self.assertIn("Mean Annual Day Temperature: ", output)
        self.assertIn("Mean Annual Night Temperature: ", output)
        self.assertIn("°C", output)
        self.assertIn("Jan", output)
        self.assertIn("Dec", output)

    def test_land_cover_summary_lists_every_class(self):
        out = StringIO()

        call_command("run_pipeline", "land-cover", stdout=out)

        output = out.getvalue()
        self.assertIn("Land Cover Areas (hectares):", output)
        for name in PRODUCTS["land-cover"].scheme.names:
            self.assertIn(f"  {name}: ", output)

    def test_json_output(self):
        out = StringIO()

        call_command("run_pipeline", "elevation", json=True, stdout=out)

        payload = json.loads(out.getvalue())
        self.assertEqual(payload["product"], "elevation")
        self.assertIn("DSM_min", payload["statistics"])
        self.assertTrue(payload["histogram"])

    def test_writes_map_and_chart(self):
        with tempfile.TemporaryDirectory() as tmp:
            map_path = os.path.join(tmp, "{slug}.html")
            chart_path = os.path.join(tmp, "{slug}.png")

            call_command("run_pipeline", "all", map=map_path, chart=chart_path, stdout=StringIO())

            for slug in PRODUCTS:
                self.assertTrue(os.path.exists(os.path.join(tmp, f"{slug}.html")))
                with open(os.path.join(tmp, f"{slug}.png"), "rb") as f:
                    self.assertEqual(f.read(8), b"\x89PNG\r\n\x1a\n")

    def test_custom_study_area(self):
        out = StringIO()

        call_command("run_pipeline", "ndvi", lat=10.0, lon=76.0, radius=2000, json=True, stdout=out)

        payload = json.loads(out.getvalue())
        self.assertEqual(payload["region"]["center"], [10.0, 76.0])
        self.assertEqual(payload["region"]["radius_m"], 2000.0)

    def test_latitude_without_longitude(self):
        with self.assertRaises(CommandError):
            call_command("run_pipeline", "ndvi", lat=10.0, stdout=StringIO())

    def test_unknown_product(self):
        with self.assertRaises(CommandError):
            call_command("run_pipeline", "soil-moisture", stdout=StringIO())


class APIDocumentationTest(APISimpleTestCase):
    def test_schema_lists_endpoints(self):
        response = self.client.get("/api/schema/", HTTP_ACCEPT="application/vnd.oai.openapi+json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        paths = json.loads(response.content)["paths"]
        self.assertIn("/api/v1/analysis/run/{slug}/", paths)
        self.assertIn("/api/v1/visualization/map/{slug}/", paths)
        self.assertIn("/api/v1/earth-engine/status/", paths)

    def test_swagger_ui(self):
        response = self.client.get("/api/swagger/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class EndToEndTest(APISimpleTestCase):
    """Run every product through the API like a client would."""

    def test_every_product(self):
        for slug in PRODUCTS:
            with self.subTest(product=slug):
                response = self.client.post(f"/api/v1/analysis/run/{slug}/", {"year": 2023}, format="json")

                self.assertEqual(response.status_code, status.HTTP_200_OK)
                self.assertEqual(response.data["product"], slug)
                self.assertTrue(response.data["summary"])
