"""
Imagery platform capability interface and the Earth Engine implementation.

The pipeline only talks to an ImageryPlatform, so the transform / aggregate /
reduce / render logic can run against the in-memory platform in tests and in
demo mode. Raster and collection handles are opaque to the pipeline.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

import ee
import folium
from django.conf import settings

from apps.analysis.exceptions import PlatformUnavailable
from apps.analysis.reducers import Reducer, normalize_groups, normalize_histogram

logger = logging.getLogger(__name__)

_executor = None
_executor_lock = threading.Lock()


def shared_executor(max_workers=4):
    """Process-wide pool that waits on getInfo calls, created on first use."""
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ee-reduce")
            logger.info(f"Started Earth Engine reduction pool with {max_workers} workers")
        return _executor


class ImageryPlatform:
    """Operations the pipeline consumes from a remote imagery platform."""

    name = "abstract"

    def select(self, selector, region, date_range=None):
        """Filtered collection for a SourceSelector (bounds, dates, quality, bands)."""
        raise NotImplementedError

    def transform(self, collection, transform):
        """Apply a BandTransform to every image of a collection."""
        raise NotImplementedError

    def filter_month(self, collection, month):
        raise NotImplementedError

    def composite(self, collection, method):
        """Reduce a collection to one image: 'mosaic', 'sum', 'mean' or 'first'."""
        raise NotImplementedError

    def stamp(self, image, month, year):
        """Tag a monthly composite with its month and time_start."""
        raise NotImplementedError

    def clip(self, image, region):
        raise NotImplementedError

    def reduce_region(self, image, region, reducer, *, scale, max_pixels, max_buckets=20) -> Future:
        """Asynchronous region statistics; the future resolves exactly once."""
        raise NotImplementedError

    def map_layer(self, image, vis_params, name):
        """A folium layer rendering the image with the given visualization."""
        raise NotImplementedError


class EarthEnginePlatform(ImageryPlatform):
    """Google Earth Engine backed platform."""

    name = "earthengine"

    def __init__(self, max_workers=4, executor=None):
        self._executor = executor or shared_executor(max_workers)

    def select(self, selector, region, date_range=None):
        geometry = region.to_ee_geometry()
        collection = ee.ImageCollection(selector.collection_id).filterBounds(geometry)

        if selector.temporal and date_range is not None:
            start, end = date_range.as_strings()
            collection = collection.filterDate(start, end)
            logger.info(f"Filtering {selector.collection_id} to {start} .. {end}")

        if selector.quality is not None:
            collection = collection.filter(
                ee.Filter.lt(selector.quality.property, selector.quality.max_value)
            )
            logger.info(
                f"Quality filter: {selector.quality.property} < {selector.quality.max_value}"
            )

        if selector.bands:
            collection = collection.select(list(selector.bands))
        return collection

    def transform(self, collection, transform):
        if isinstance(collection, ee.Image):
            return transform.apply_ee(collection)
        return collection.map(transform.apply_ee)

    def filter_month(self, collection, month):
        return collection.filter(ee.Filter.calendarRange(month, month, "month"))

    def composite(self, collection, method):
        if method == "mosaic":
            return collection.mosaic()
        if method == "sum":
            return collection.sum()
        if method == "mean":
            return collection.mean()
        if method == "first":
            return ee.Image(collection.first())
        raise ValueError(f"Unsupported composite method: {method}")

    def stamp(self, image, month, year):
        return image.set({
            "month": month,
            "system:time_start": ee.Date.fromYMD(year, month, 1).millis(),
        })

    def clip(self, image, region):
        return image.clip(region.to_ee_geometry())

    def reduce_region(self, image, region, reducer, *, scale, max_pixels, max_buckets=20):
        reducer = Reducer(reducer)
        geometry = region.to_ee_geometry()

        if reducer is Reducer.GROUPED_SUM:
            target = ee.Image.pixelArea().addBands(image)
            ee_reducer = ee.Reducer.sum().group(groupField=1, groupName="class")
        elif reducer is Reducer.HISTOGRAM:
            target = image
            ee_reducer = ee.Reducer.histogram(maxBuckets=max_buckets)
        else:
            target = image
            ee_reducer = {
                Reducer.SUM: ee.Reducer.sum,
                Reducer.MEAN: ee.Reducer.mean,
                Reducer.MIN_MAX: ee.Reducer.minMax,
            }[reducer]()

        # No bestEffort: exceeding maxPixels must fail rather than rescale
        dictionary = target.reduceRegion(
            reducer=ee_reducer,
            geometry=geometry,
            scale=scale,
            maxPixels=max_pixels,
        )
        logger.info(f"Submitting {reducer.value} reduction at {scale} m")
        return self._executor.submit(self._evaluate, dictionary, reducer)

    @staticmethod
    def _evaluate(dictionary, reducer):
        info = dictionary.getInfo() or {}
        if reducer is Reducer.GROUPED_SUM:
            return normalize_groups(info.get("groups"))
        if reducer is Reducer.HISTOGRAM:
            if not info:
                return {}
            return normalize_histogram(next(iter(info.values())))
        return info

    def map_layer(self, image, vis_params, name):
        map_id_dict = ee.Image(image).getMapId(vis_params)
        return folium.raster_layers.TileLayer(
            tiles=map_id_dict["tile_fetcher"].url_format,
            attr="Google Earth Engine",
            name=name,
            overlay=True,
            control=True,
        )


def get_platform(region=None, year=None):
    """
    Build the configured imagery platform.

    EARTH_ENGINE_BACKEND selects 'earthengine' (default) or 'demo', an
    in-memory platform with synthetic rasters for the study area.
    """
    backend = getattr(settings, "EARTH_ENGINE_BACKEND", "earthengine")

    if backend == "demo":
        from .memory import build_demo_catalog, InMemoryPlatform

        if region is None or year is None:
            raise ValueError("The demo platform needs a region and a year")
        grid_size = getattr(settings, "DEMO_GRID_SIZE", 32)
        logger.info(f"Using demo platform ({grid_size}x{grid_size} grid) for {year}")
        return InMemoryPlatform(build_demo_catalog(region, year, grid_size=grid_size))

    from .ee_config import initialize_earth_engine

    if not initialize_earth_engine():
        raise PlatformUnavailable("Earth Engine could not be initialized")
    return EarthEnginePlatform(max_workers=getattr(settings, "PIPELINE_WORKERS", 4))
