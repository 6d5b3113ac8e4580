"""
Interactive map output for pipeline results.
"""

import logging

import folium
from django.conf import settings

from .legend import legend_html

logger = logging.getLogger(__name__)

SATELLITE_TILES = "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}"


def build_map(result, platform=None, zoom=None):
    """
    Folium map centered on the study area with the product layers, the region
    outline, a marker at the study area center, a layer control and the legend.
    Layers are rendered by the platform that produced the result unless one
    is given.
    """
    region = result.region
    platform = platform or result.platform
    if zoom is None:
        zoom = settings.STUDY_AREA.get("zoom", 12)

    map_obj = folium.Map(
        location=[region.center_lat, region.center_lon],
        zoom_start=zoom,
        tiles="OpenStreetMap",
        control_scale=True,
    )
    folium.TileLayer(tiles=SATELLITE_TILES, attr="Tiles © Esri", name="Satellite").add_to(map_obj)

    for layer in result.layers:
        if layer.empty:
            # Listed in the layer control so the missing data is visible
            folium.FeatureGroup(name=f"{layer.name} (no data)").add_to(map_obj)
            logger.warning(f"Layer '{layer.name}' has no data")
            continue
        platform.map_layer(layer.image, layer.vis_params, layer.name).add_to(map_obj)
        logger.info(f"Added layer '{layer.name}'")

    folium.GeoJson(
        region.to_geojson(),
        name="Study Area",
        style_function=lambda feature: {
            "color": "red",
            "weight": 3,
            "fillOpacity": 0.0,
        },
    ).add_to(map_obj)

    folium.CircleMarker(
        location=[region.center_lat, region.center_lon],
        radius=6,
        color="red",
        weight=3,
        fill=True,
        fill_color="red",
        tooltip="Study area center",
    ).add_to(map_obj)

    folium.LayerControl().add_to(map_obj)

    if result.legend:
        map_obj.get_root().html.add_child(folium.Element(legend_html(result.legend_title, result.legend)))

    return map_obj


def render_map_html(result, platform=None, zoom=None) -> str:
    """Standalone HTML document for a pipeline result."""
    return build_map(result, platform, zoom=zoom).get_root().render()
