import json
import logging
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from apps.analysis.exceptions import PipelineError
from apps.analysis.pipeline import run_product
from apps.analysis.products import PRODUCTS
from apps.analysis.temporal import series_frame
from apps.visualization.charts import render_chart
from apps.visualization.maps import render_map_html

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Run one thematic product (or all of them) over the study area and print its summary."

    def add_arguments(self, parser):
        parser.add_argument("product", choices=[*PRODUCTS, "all"])
        parser.add_argument("--year", type=int)
        parser.add_argument("--lat", type=float, help="Study area center latitude")
        parser.add_argument("--lon", type=float, help="Study area center longitude")
        parser.add_argument("--radius", type=float, help="Study area radius in meters")
        parser.add_argument("--map", help="Write the HTML map to this path ({slug} is substituted)")
        parser.add_argument("--chart", help="Write the PNG chart to this path ({slug} is substituted)")
        parser.add_argument("--json", action="store_true", help="Print the full result as JSON")

    def handle(self, *args, **options):
        if (options["lat"] is None) != (options["lon"] is None):
            raise CommandError("--lat and --lon must be given together")

        slugs = list(PRODUCTS) if options["product"] == "all" else [options["product"]]
        for slug in slugs:
            logger.info(f"Running {slug} from the command line")
            try:
                result = run_product(
                    slug,
                    center_lat=options["lat"],
                    center_lon=options["lon"],
                    radius_m=options["radius"],
                    year=options["year"],
                )
            except PipelineError as e:
                raise CommandError(f"{slug}: {e}") from e

            if options["json"]:
                self.stdout.write(json.dumps(result.to_dict(), indent=2, default=str))
            else:
                self.stdout.write(self.style.MIGRATE_HEADING(f"{result.product.title} ({result.year})"))
                for line in result.summary:
                    self.stdout.write(line)
                if result.time_series:
                    frame = series_frame(result.time_series).set_index("month_name")
                    self.stdout.write(frame.to_string(na_rep="no data", float_format=lambda v: f"{v:.3f}"))

            if options["map"]:
                path = Path(options["map"].format(slug=slug))
                path.write_text(render_map_html(result), encoding="utf-8")
                self.stdout.write(self.style.SUCCESS(f"Map written to {path}"))

            if options["chart"] and result.chart is not None:
                path = Path(options["chart"].format(slug=slug))
                path.write_bytes(render_chart(result.chart))
                self.stdout.write(self.style.SUCCESS(f"Chart written to {path}"))
