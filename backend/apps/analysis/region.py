"""
Region resolution for the study area.

Turns a center coordinate and a buffer radius into the axis-aligned bounding
box of the circular buffer. The box is computed locally on a spherical earth
so the same polygon is used by every platform and by the map display.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

import ee

EARTH_RADIUS_M = 6371008.8

BBox = Tuple[float, float, float, float]


@dataclass(frozen=True)
class Region:
    """Fixed analysis polygon derived from a center point and buffer radius."""

    center_lat: float
    center_lon: float
    radius_m: float
    bbox: BBox  # (xmin, ymin, xmax, ymax) in degrees

    @property
    def ring(self) -> List[List[float]]:
        """Closed exterior ring, counter-clockwise, lon/lat order."""
        xmin, ymin, xmax, ymax = self.bbox
        return [
            [xmin, ymin],
            [xmax, ymin],
            [xmax, ymax],
            [xmin, ymax],
            [xmin, ymin],
        ]

    @property
    def area_m2(self) -> float:
        """Area of the lat/lon rectangle on the sphere."""
        xmin, ymin, xmax, ymax = self.bbox
        d_lon = math.radians(xmax - xmin)
        return EARTH_RADIUS_M ** 2 * d_lon * (
            math.sin(math.radians(ymax)) - math.sin(math.radians(ymin))
        )

    def contains(self, lat: float, lon: float) -> bool:
        """True when the point lies strictly inside the polygon."""
        xmin, ymin, xmax, ymax = self.bbox
        return xmin < lon < xmax and ymin < lat < ymax

    def intersects(self, other: BBox) -> bool:
        xmin, ymin, xmax, ymax = self.bbox
        return not (other[2] < xmin or other[0] > xmax or other[3] < ymin or other[1] > ymax)

    def to_geojson(self) -> Dict:
        return {"type": "Polygon", "coordinates": [self.ring]}

    def to_ee_geometry(self):
        return ee.Geometry.Rectangle(list(self.bbox), None, False)

    def to_ee_point(self):
        return ee.Geometry.Point([self.center_lon, self.center_lat])


def resolve_region(center_lat: float, center_lon: float, radius_m: float) -> Region:
    """
    Build the study area polygon.

    Args:
        center_lat: Latitude of the site in degrees
        center_lon: Longitude of the site in degrees
        radius_m: Buffer radius in meters

    Returns:
        Region: bounding box of the buffer around the center point
    """
    angular = radius_m / EARTH_RADIUS_M
    d_lat = math.degrees(angular)
    d_lon = math.degrees(angular / math.cos(math.radians(center_lat)))

    bbox = (
        center_lon - d_lon,
        center_lat - d_lat,
        center_lon + d_lon,
        center_lat + d_lat,
    )
    return Region(
        center_lat=float(center_lat),
        center_lon=float(center_lon),
        radius_m=float(radius_m),
        bbox=bbox,
    )
