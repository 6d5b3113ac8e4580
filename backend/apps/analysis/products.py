"""
Catalogue of thematic products.

Each product is one parameterization of the same pipeline: where the pixels
come from, how they are transformed and reduced, and how the result is shown.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .exceptions import UnknownProduct
from .reducers import Reducer
from .schemes import ESRI_LULC_SCHEME, ClassificationScheme
from .sources import QualityFilter, SourceSelector
from .transforms import BandTransform, LinearTransform, NormalizedDifference

COLLECTIONS = {
    "land-cover": "projects/sat-io/open-datasets/landcover/ESRI_Global-LULC_10m_TS",
    "elevation": "JAXA/ALOS/AW3D30/V3_2",
    "precipitation": "UCSB-CHG/CHIRPS/DAILY",
    "ndvi": "COPERNICUS/S2_SR_HARMONIZED",
    "lst": "MODIS/061/MOD11A1",
}


@dataclass(frozen=True)
class Measure:
    band: str
    label: str
    summary_label: str
    layer_name: str
    color: str = "#0f8755"
    unit: str = ""
    precision: int = 2


@dataclass(frozen=True)
class LegendSpec:
    title: str
    categorical: bool = False
    steps: int = 5
    boundaries: Optional[Tuple[float, ...]] = None
    unit: str = ""
    precision: int = 0
    separator: str = " - "
    # Extra row for the maximum value in the last palette color
    closing_max: bool = False


@dataclass(frozen=True)
class ProductDefinition:
    slug: str
    title: str
    source: SourceSelector
    measures: Tuple[Measure, ...]
    composite: str
    reducer: Reducer
    scale: float
    palette: Tuple[str, ...]
    legend: LegendSpec
    chart_title: str
    transform: Optional[BandTransform] = None
    scheme: Optional[ClassificationScheme] = None
    monthly: Optional[str] = None
    histogram_buckets: Optional[int] = None
    vis_min: Optional[float] = None
    vis_max: Optional[float] = None
    chart_type: str = "line"
    y_label: str = ""
    chart_y_range: Optional[Sequence[float]] = None

    @property
    def bands(self):
        return [m.band for m in self.measures]


LAND_COVER = ProductDefinition(
    slug="land-cover",
    title="Esri 10m Land Cover",
    source=SourceSelector(COLLECTIONS["land-cover"], bands=("b1",)),
    transform=ESRI_LULC_SCHEME.remapper(band="classification"),
    scheme=ESRI_LULC_SCHEME,
    measures=(
        Measure("classification", "Land Cover", "Land Cover Areas (hectares)", "{year} LULC 10m", unit="ha"),
    ),
    composite="mosaic",
    reducer=Reducer.GROUPED_SUM,
    scale=10,
    palette=ESRI_LULC_SCHEME.colors,
    vis_min=1,
    vis_max=len(ESRI_LULC_SCHEME),
    legend=LegendSpec(title="Land Cover Class", categorical=True),
    chart_title="Land Cover Distribution",
)

ELEVATION = ProductDefinition(
    slug="elevation",
    title="ALOS World 3D 30m Elevation",
    source=SourceSelector(COLLECTIONS["elevation"], bands=("DSM",), temporal=False),
    measures=(Measure("DSM", "Elevation", "Elevation", "Elevation", unit="m"),),
    composite="mosaic",
    reducer=Reducer.MIN_MAX,
    scale=30,
    histogram_buckets=20,
    palette=(
        "#006147", "#107A2F", "#4C9A25", "#92B91C", "#C7D514",
        "#FFED0F", "#FFC30B", "#FF9B08", "#FF6405", "#FF0002",
    ),
    legend=LegendSpec(title="Elevation (m)", steps=5, unit="m", closing_max=True),
    chart_title="Elevation Distribution",
    chart_type="histogram",
)

PRECIPITATION = ProductDefinition(
    slug="precipitation",
    title="CHIRPS Precipitation",
    source=SourceSelector(COLLECTIONS["precipitation"], bands=("precipitation",)),
    measures=(
        Measure(
            "precipitation", "Precipitation", "Total Annual Precipitation",
            "Annual Precipitation {year}", color="#0066cc", unit="mm",
        ),
    ),
    composite="sum",
    monthly="sum",
    reducer=Reducer.MEAN,
    scale=5000,
    palette=(
        "#FFFFFF", "#D2EFF7", "#96CCE2", "#5BA4D4", "#3E8EC4",
        "#2E6FAD", "#1C4C96", "#0C2C7E", "#041451",
    ),
    vis_min=0,
    vis_max=500,
    legend=LegendSpec(
        title="Annual Precipitation (mm)",
        boundaries=(0, 100, 200, 300, 400, 500),
        unit="mm",
    ),
    chart_title="Monthly Precipitation {year}",
    chart_type="column",
    y_label="Precipitation (mm)",
)

NDVI = ProductDefinition(
    slug="ndvi",
    title="Sentinel-2 NDVI",
    source=SourceSelector(
        COLLECTIONS["ndvi"],
        bands=("B8", "B4"),
        quality=QualityFilter("CLOUDY_PIXEL_PERCENTAGE", 20),
    ),
    transform=NormalizedDifference("B8", "B4", name="NDVI"),
    measures=(
        Measure("NDVI", "NDVI", "Mean Annual NDVI", "Annual Mean NDVI {year}", color="#0f8755", precision=3),
    ),
    composite="mean",
    monthly="mean",
    reducer=Reducer.MEAN,
    scale=10,
    palette=(
        "#d73027", "#f46d43", "#fdae61", "#fee08b", "#ffffbf",
        "#d9ef8b", "#a6d96a", "#66bd63", "#1a9850",
    ),
    vis_min=-0.2,
    vis_max=0.8,
    legend=LegendSpec(
        title="NDVI Values\n(Vegetation Index)",
        boundaries=(-0.2, 0.0, 0.2, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0),
        precision=1,
        separator=" to ",
    ),
    chart_title="Monthly NDVI {year}",
    chart_type="line",
    y_label="NDVI",
    chart_y_range=(-1, 1),
)

LST = ProductDefinition(
    slug="lst",
    title="MODIS Land Surface Temperature",
    source=SourceSelector(COLLECTIONS["lst"], bands=("LST_Day_1km", "LST_Night_1km")),
    transform=LinearTransform(0.02, -273.15),
    measures=(
        Measure(
            "LST_Day_1km", "Day Temperature", "Mean Annual Day Temperature",
            "Mean Day Temperature {year}", color="#ff4e4e", unit="°C",
        ),
        Measure(
            "LST_Night_1km", "Night Temperature", "Mean Annual Night Temperature",
            "Mean Night Temperature {year}", color="#4286f4", unit="°C",
        ),
    ),
    composite="mean",
    monthly="mean",
    reducer=Reducer.MEAN,
    scale=1000,
    palette=(
        "040274", "040281", "0502a3", "0502b8", "0502ce", "0502e6",
        "0602ff", "235cb1", "307ef3", "269db1", "30c8e2", "32d3ef",
        "3be285", "3ff38f", "86e26f", "3ae237", "b5e22e", "d6e21f",
        "fff705", "ffd611", "ffb613", "ff8b13", "ff6e08", "ff500d",
        "ff0000",
    ),
    vis_min=0,
    vis_max=40,
    legend=LegendSpec(title="Temperature (°C)", steps=4, unit="°C"),
    chart_title="Monthly Average Land Surface Temperature {year}",
    chart_type="line",
    y_label="Temperature (°C)",
)

PRODUCTS = {p.slug: p for p in (LAND_COVER, ELEVATION, PRECIPITATION, NDVI, LST)}


def get_product(slug: str) -> ProductDefinition:
    try:
        return PRODUCTS[slug]
    except KeyError:
        raise UnknownProduct(
            f"Unknown product '{slug}'. Choose one of: {', '.join(PRODUCTS)}"
        ) from None
