"""
Exceptions raised by the thematic map pipelines.
"""


class PipelineError(Exception):
    """Base class for pipeline failures."""


class PixelLimitExceeded(PipelineError):
    """A region reduction would touch more pixels than the configured ceiling."""

    def __init__(self, pixel_count, max_pixels):
        self.pixel_count = pixel_count
        self.max_pixels = max_pixels
        super().__init__(
            f"Too many pixels in the region. Found {int(pixel_count)}, "
            f"but maxPixels allows only {int(max_pixels)}."
        )


class UnknownProduct(PipelineError):
    """Requested product slug is not in the catalogue."""


class PlatformUnavailable(PipelineError):
    """The imagery platform could not be initialized."""
