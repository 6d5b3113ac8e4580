import logging

from django.http import HttpResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from apps.analysis.serializers import PipelineRunSerializer
from apps.analysis.views import run_from_request
from .maps import render_map_html

logger = logging.getLogger(__name__)


@extend_schema(
    summary="Product Map",
    description="Run a product and return an interactive HTML map with its layers and legend.",
    request=PipelineRunSerializer,
    responses={
        200: OpenApiResponse(response=OpenApiTypes.STR, description="HTML map"),
        400: OpenApiResponse(description="Invalid parameters"),
        404: OpenApiResponse(description="Unknown product"),
    },
)
@api_view(["POST"])
@permission_classes([AllowAny])
def product_map(request, slug):
    """Generate an interactive map for one product"""
    result, error = run_from_request(request, slug)
    if error is not None:
        return error

    try:
        html = render_map_html(result)
    except Exception as e:
        logger.error(f"Error generating map visualization: {str(e)}")
        return Response(
            {"success": False, "error": f"Visualization error: {str(e)}"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    logger.info(f"Rendered {slug} map for {result.year}")
    return HttpResponse(html, content_type="text/html; charset=utf-8")
