"""
Band transformation utilities.

Each transform is a pure per-pixel function with two renderings: one on numpy
arrays (used by the in-memory platform) and one on Earth Engine images.
Images missing the required input bands come out band-less instead of failing,
so empty monthly composites flow through as "no data".
"""

import logging
from typing import Dict, Optional, Sequence

import ee
import numpy as np

logger = logging.getLogger(__name__)

Bands = Dict[str, np.ndarray]


class BandTransform:
    """Map pixel values of an image to the product raster."""

    def output_bands(self, input_bands: Sequence[str]):
        raise NotImplementedError

    def apply_array(self, bands: Bands) -> Bands:
        raise NotImplementedError

    def apply_ee(self, image):
        raise NotImplementedError


class CategoricalRemap(BandTransform):
    """
    Remap raw integer class codes onto a dense 1..N index.

    Codes that are not in the table are masked, matching Image.remap without a
    default value. Pass default_value to keep them under a fixed class instead.
    """

    def __init__(self, source_codes, target_codes, band="classification", default_value=None):
        if len(source_codes) != len(target_codes):
            raise ValueError("source_codes and target_codes must have the same length")
        self.source_codes = tuple(int(c) for c in source_codes)
        self.target_codes = tuple(int(c) for c in target_codes)
        self.band = band
        self.default_value = default_value

    def output_bands(self, input_bands):
        return [self.band] if input_bands else []

    def apply_array(self, bands):
        if not bands:
            return {}
        raw = next(iter(bands.values()))
        fill = np.nan if self.default_value is None else float(self.default_value)
        out = np.full(raw.shape, fill, dtype=float)
        for source, target in zip(self.source_codes, self.target_codes):
            out[raw == source] = target
        return {self.band: out}

    def apply_ee(self, image):
        if self.default_value is None:
            remapped = image.remap(list(self.source_codes), list(self.target_codes))
        else:
            remapped = image.remap(
                list(self.source_codes), list(self.target_codes), self.default_value
            )
        return ee.Image(remapped.rename(self.band).copyProperties(image, ["system:time_start"]))


class LinearTransform(BandTransform):
    """Unit conversion: output = input * scale + offset, band names preserved."""

    def __init__(self, scale, offset, bands: Optional[Sequence[str]] = None):
        self.scale = scale
        self.offset = offset
        self.bands = tuple(bands) if bands else None

    def _selected(self, names):
        if self.bands is None:
            return list(names)
        return [b for b in self.bands if b in names]

    def output_bands(self, input_bands):
        return self._selected(input_bands)

    def apply_array(self, bands):
        return {
            name: bands[name].astype(float) * self.scale + self.offset
            for name in self._selected(bands)
        }

    def apply_ee(self, image):
        selected = image.select(list(self.bands)) if self.bands else image
        converted = selected.multiply(self.scale).add(self.offset)
        return ee.Image(converted.copyProperties(image, ["system:time_start"]))


class NormalizedDifference(BandTransform):
    """(a - b) / (a + b); a zero denominator gives NaN rather than an error."""

    def __init__(self, band_a, band_b, name="ND"):
        self.band_a = band_a
        self.band_b = band_b
        self.name = name

    def output_bands(self, input_bands):
        if self.band_a in input_bands and self.band_b in input_bands:
            return [self.name]
        return []

    def apply_array(self, bands):
        if self.band_a not in bands or self.band_b not in bands:
            logger.warning(
                f"Bands {self.band_a}/{self.band_b} missing, {self.name} left empty"
            )
            return {}
        a = bands[self.band_a].astype(float)
        b = bands[self.band_b].astype(float)
        denominator = a + b
        with np.errstate(divide="ignore", invalid="ignore"):
            out = np.where(denominator == 0, np.nan, (a - b) / denominator)
        return {self.name: out}

    def apply_ee(self, image):
        nd = image.normalizedDifference([self.band_a, self.band_b]).rename(self.name)
        return ee.Image(nd.copyProperties(image, ["system:time_start"]))
