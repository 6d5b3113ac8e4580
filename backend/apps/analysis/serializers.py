"""
Request serializers for pipeline runs.
"""

from rest_framework import serializers


class PipelineRunSerializer(serializers.Serializer):
    """Optional overrides of the configured study area and analysis year."""

    center_lat = serializers.FloatField(required=False, min_value=-90, max_value=90)
    center_lon = serializers.FloatField(required=False, min_value=-180, max_value=180)
    radius_m = serializers.FloatField(required=False, min_value=1)
    year = serializers.IntegerField(required=False, min_value=1981, max_value=2100)
    max_pixels = serializers.FloatField(required=False, min_value=1)

    def validate(self, attrs):
        center = [attrs.get("center_lat"), attrs.get("center_lon")]
        if any(v is None for v in center) and any(v is not None for v in center):
            raise serializers.ValidationError(
                "center_lat and center_lon must be given together"
            )
        return attrs
