"""
Chart download endpoint for pipeline results
"""
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
from .charts import render_chart

logger = logging.getLogger(__name__)


@extend_schema(
    summary="Product Chart",
    description="Run a product and download its chart as PNG.",
    request=PipelineRunSerializer,
    responses={
        200: OpenApiResponse(response=OpenApiTypes.BINARY, description="PNG chart"),
        400: OpenApiResponse(description="Invalid parameters"),
        404: OpenApiResponse(description="Unknown product or no chart"),
    },
)
@api_view(["POST"])
@permission_classes([AllowAny])
def product_chart(request, slug):
    """Generate and return a downloadable chart for one product"""
    result, error = run_from_request(request, slug)
    if error is not None:
        return error

    if result.chart is None:
        return Response(
            {"success": False, "error": f"No chart available for {slug}"},
            status=status.HTTP_404_NOT_FOUND,
        )

    try:
        png = render_chart(result.chart)
    except Exception as e:
        logger.error(f"Error generating chart: {str(e)}")
        return Response(
            {"success": False, "error": f"Plot generation error: {str(e)}"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    filename = f"{slug}_{result.year}_chart.png"
    logger.info(f"Generated chart: {filename}")
    response = HttpResponse(png, content_type="image/png")
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response
