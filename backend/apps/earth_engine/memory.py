"""
In-memory imagery platform.

Rasters are numpy arrays already resampled onto the study area grid. It backs
demo mode (synthetic data, no Earth Engine account needed) and the test suite.
Reductions follow Earth Engine semantics closely enough for the pipeline:
masked pixels are NaN, empty composites have no bands, and the pixel ceiling
is enforced before anything is computed.
"""

import logging
import math
import warnings
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import folium
import numpy as np
from matplotlib import colors as mcolors

from apps.analysis.exceptions import PipelineError, PixelLimitExceeded
from apps.analysis.reducers import Reducer, clean_value
from .platform import ImageryPlatform

logger = logging.getLogger(__name__)


def _millis(day: date) -> int:
    moment = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


@dataclass
class LocalImage:
    bands: Dict[str, np.ndarray]
    properties: Dict[str, Any] = field(default_factory=dict)
    pixel_size: float = 10.0  # meters
    bounds: Optional[Tuple[float, float, float, float]] = None

    @property
    def band_names(self) -> List[str]:
        return list(self.bands)

    @property
    def acquired(self) -> Optional[date]:
        millis = self.properties.get("system:time_start")
        if millis is None:
            return None
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).date()

    def with_bands(self, bands):
        return LocalImage(
            bands=bands,
            properties=dict(self.properties),
            pixel_size=self.pixel_size,
            bounds=self.bounds,
        )


class InMemoryPlatform(ImageryPlatform):
    """ImageryPlatform over a catalog of {collection_id: [LocalImage, ...]}."""

    name = "memory"

    def __init__(self, catalog: Mapping[str, Sequence[LocalImage]]):
        self.catalog = catalog

    def select(self, selector, region, date_range=None):
        if selector.collection_id not in self.catalog:
            raise PipelineError(f"Collection not found: {selector.collection_id}")

        selected = []
        for image in self.catalog[selector.collection_id]:
            if image.bounds is not None and not region.intersects(image.bounds):
                continue
            if selector.temporal and date_range is not None:
                acquired = image.acquired
                if acquired is None or not date_range.contains(acquired):
                    continue
            if selector.quality is not None:
                value = image.properties.get(selector.quality.property)
                if value is None or not value < selector.quality.max_value:
                    continue
            if selector.bands:
                missing = [b for b in selector.bands if b not in image.bands]
                if missing:
                    raise PipelineError(
                        f"Bands {missing} not found in {selector.collection_id}"
                    )
                image = image.with_bands({b: image.bands[b] for b in selector.bands})
            selected.append(image)

        logger.info(f"Selected {len(selected)} images from {selector.collection_id}")
        return selected

    def transform(self, collection, transform):
        if isinstance(collection, LocalImage):
            return collection.with_bands(transform.apply_array(collection.bands))
        return [img.with_bands(transform.apply_array(img.bands)) for img in collection]

    def filter_month(self, collection, month):
        return [img for img in collection if img.acquired is not None and img.acquired.month == month]

    def composite(self, collection, method):
        if not collection:
            return LocalImage(bands={})

        first = collection[0]
        if method == "first":
            return first.with_bands(dict(first.bands))

        names = [b for b in first.band_names if all(b in img.bands for img in collection)]
        stacks = {b: np.stack([img.bands[b].astype(float) for img in collection]) for b in names}

        # nanmean of fully masked pixels warns "Mean of empty slice"
        with np.errstate(invalid="ignore"), warnings.catch_warnings():
            warnings.simplefilter("ignore", category=RuntimeWarning)
            if method == "mosaic":
                # Later images are drawn on top, masked pixels let earlier ones show
                bands = {}
                for b, stack in stacks.items():
                    out = np.full(stack.shape[1:], np.nan)
                    for layer in stack:
                        out = np.where(np.isnan(layer), out, layer)
                    bands[b] = out
            elif method == "sum":
                bands = {
                    b: np.where(np.isnan(stack).all(axis=0), np.nan, np.nansum(stack, axis=0))
                    for b, stack in stacks.items()
                }
            elif method == "mean":
                bands = {b: np.nanmean(stack, axis=0) for b, stack in stacks.items()}
            else:
                raise ValueError(f"Unsupported composite method: {method}")

        return LocalImage(bands=bands, properties={}, pixel_size=first.pixel_size, bounds=first.bounds)

    def stamp(self, image, month, year):
        stamped = image.with_bands(dict(image.bands))
        stamped.properties.update({
            "month": month,
            "system:time_start": _millis(date(year, month, 1)),
        })
        return stamped

    def clip(self, image, region):
        clipped = image.with_bands(dict(image.bands))
        clipped.bounds = region.bbox
        return clipped

    def reduce_region(self, image, region, reducer, *, scale, max_pixels, max_buckets=20):
        future = Future()
        try:
            future.set_result(self._reduce(image, Reducer(reducer), scale, max_pixels, max_buckets))
        except PipelineError as e:
            future.set_exception(e)
        return future

    def _reduce(self, image, reducer, scale, max_pixels, max_buckets):
        if not image.bands:
            return {}

        # Requesting a scale finer than native does not add pixels
        effective = max(float(scale), image.pixel_size)
        native_pixels = max(arr.size for arr in image.bands.values())
        pixel_count = math.ceil(native_pixels * (image.pixel_size / effective) ** 2)
        if pixel_count > max_pixels:
            raise PixelLimitExceeded(pixel_count, max_pixels)

        if reducer is Reducer.GROUPED_SUM:
            classes = next(iter(image.bands.values()))
            valid = classes[~np.isnan(classes)]
            pixel_area = image.pixel_size ** 2
            ids, counts = np.unique(valid.astype(int), return_counts=True)
            return {int(i): float(c) * pixel_area for i, c in zip(ids, counts)}

        if reducer is Reducer.HISTOGRAM:
            values = next(iter(image.bands.values()))
            valid = values[~np.isnan(values)]
            if valid.size == 0:
                return {}
            counts, edges = np.histogram(valid, bins=max_buckets)
            centers = (edges[:-1] + edges[1:]) / 2
            return {float(c): int(n) for c, n in zip(centers, counts)}

        stats = {}
        for name, arr in image.bands.items():
            valid = arr[~np.isnan(arr)]
            if reducer is Reducer.MIN_MAX:
                stats[f"{name}_min"] = clean_value(valid.min()) if valid.size else None
                stats[f"{name}_max"] = clean_value(valid.max()) if valid.size else None
            elif reducer is Reducer.SUM:
                stats[name] = clean_value(valid.sum()) if valid.size else None
            else:
                stats[name] = clean_value(valid.mean()) if valid.size else None
        return stats

    def map_layer(self, image, vis_params, name):
        band = vis_params.get("bands", [None])[0] or next(iter(image.bands), None)
        if band in image.bands and vis_params["min"] is not None and vis_params["max"] is not None:
            palette = [c if c.startswith("#") else f"#{c}" for c in vis_params["palette"]]
            cmap = mcolors.LinearSegmentedColormap.from_list(name, palette, N=len(palette))
            cmap.set_bad(alpha=0.0)
            norm = mcolors.Normalize(vmin=vis_params["min"], vmax=vis_params["max"], clip=True)
            rgba = cmap(norm(np.ma.masked_invalid(image.bands[band])), bytes=True)
        else:
            # Nothing to draw: a single fully transparent pixel
            logger.warning(f"Band {band} missing from '{name}', rendering a transparent overlay")
            rgba = np.zeros((1, 1, 4), dtype=np.uint8)

        xmin, ymin, xmax, ymax = image.bounds
        return folium.raster_layers.ImageOverlay(
            image=rgba,
            bounds=[[ymin, xmin], [ymax, xmax]],
            name=name,
            opacity=0.8,
        )


# -----------------------------------------------------------------------------
# Demo catalog
# -----------------------------------------------------------------------------

ESRI_RAW_CODES = (1, 2, 4, 5, 7, 8, 9, 10, 11)


def _daily(year):
    day = date(year, 1, 1)
    while day.year == year:
        yield day
        day = date.fromordinal(day.toordinal() + 1)


def build_demo_catalog(region, year, grid_size=32, seed=0):
    """
    Synthetic rasters for the five products over the study area.

    Values are plausible for a Western Ghats site (monsoon rainfall peaking in
    July, greening after the monsoon, hot pre-monsoon surface temperatures).
    """
    from apps.analysis.products import COLLECTIONS

    rng = np.random.default_rng(seed)
    n = grid_size
    pixel_size = 2 * region.radius_m / n
    bounds = region.bbox
    yy, xx = np.mgrid[0:n, 0:n] / max(n - 1, 1)

    def image(bands, day=None, **properties):
        if day is not None:
            properties["system:time_start"] = _millis(day)
        return LocalImage(bands=bands, properties=properties, pixel_size=pixel_size, bounds=bounds)

    catalog = {}

    codes = rng.choice(ESRI_RAW_CODES, size=(n, n), p=[0.05, 0.25, 0.02, 0.35, 0.1, 0.05, 0.0, 0.03, 0.15])
    catalog[COLLECTIONS["land-cover"]] = [image({"b1": codes.astype(float)}, date(year, 1, 1))]

    dsm = 550 + 350 * yy + 120 * np.sin(3 * xx) + rng.normal(0, 8, (n, n))
    catalog[COLLECTIONS["elevation"]] = [image({"DSM": dsm}, date(2021, 1, 1))]

    rain = []
    for day in _daily(year):
        monsoon = math.exp(-((day.timetuple().tm_yday - 200) / 35.0) ** 2)
        rate = 18.0 * monsoon + 0.2
        rain.append(image({"precipitation": rng.gamma(0.8, rate / 0.8, (n, n))}, day))
    catalog[COLLECTIONS["precipitation"]] = rain

    s2 = []
    for day in list(_daily(year))[::5]:
        green = 0.5 + 0.35 * math.sin(2 * math.pi * (day.timetuple().tm_yday - 160) / 365)
        red = np.clip(rng.normal(0.08, 0.02, (n, n)), 0.01, None) * 10000
        nir = red * (1 + green * 6 * (0.6 + 0.4 * xx))
        s2.append(image(
            {"B8": nir, "B4": red},
            day,
            CLOUDY_PIXEL_PERCENTAGE=float(rng.uniform(0, 60)),
        ))
    catalog[COLLECTIONS["ndvi"]] = s2

    lst = []
    for day in _daily(year):
        season = 6 * math.sin(2 * math.pi * (day.timetuple().tm_yday - 50) / 365)
        day_k = (273.15 + 33 + season + rng.normal(0, 1.5, (n, n))) / 0.02
        night_k = (273.15 + 19 + season * 0.6 + rng.normal(0, 1.0, (n, n))) / 0.02
        lst.append(image({"LST_Day_1km": day_k, "LST_Night_1km": night_k}, day))
    catalog[COLLECTIONS["lst"]] = lst

    logger.info(f"Built demo catalog with {sum(len(v) for v in catalog.values())} images")
    return catalog
