"""
Analysis endpoints: run a thematic product over the study area.
"""

import logging

from django.conf import settings
from django.utils import timezone
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .exceptions import PipelineError, PlatformUnavailable, UnknownProduct
from .pipeline import run_product
from .products import PRODUCTS
from .serializers import PipelineRunSerializer

logger = logging.getLogger(__name__)


@extend_schema(
    summary="Health Check",
    description="Report service status and the configured imagery backend.",
    responses={200: OpenApiResponse(response=OpenApiTypes.OBJECT, description="Service healthy")},
)
@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """Health check endpoint to verify system status"""
    return Response({
        "status": "healthy",
        "backend": settings.EARTH_ENGINE_BACKEND,
        "timestamp": timezone.now().isoformat(),
    }, status=status.HTTP_200_OK)


@extend_schema(
    summary="List Products",
    description="Thematic products the pipeline can run.",
    responses={200: OpenApiResponse(response=OpenApiTypes.OBJECT, description="Product catalogue")},
)
@api_view(["GET"])
@permission_classes([AllowAny])
def list_products(request):
    products = [
        {
            "slug": product.slug,
            "title": product.title,
            "collection": product.source.collection_id,
            "bands": product.bands,
            "reducer": product.reducer.value,
            "scale": product.scale,
            "monthly": bool(product.monthly),
        }
        for product in PRODUCTS.values()
    ]
    return Response({"success": True, "products": products}, status=status.HTTP_200_OK)


def run_from_request(request, slug):
    """
    Validate the request body and run the pipeline.

    Returns:
        tuple: (PipelineResult, None) or (None, error Response)
    """
    serializer = PipelineRunSerializer(data=request.data)
    if not serializer.is_valid():
        return None, Response(
            {"success": False, "errors": serializer.errors},
            status=status.HTTP_400_BAD_REQUEST,
        )

    try:
        return run_product(slug, **serializer.validated_data), None
    except UnknownProduct as e:
        return None, Response({"success": False, "error": str(e)}, status=status.HTTP_404_NOT_FOUND)
    except PlatformUnavailable as e:
        logger.error(f"Imagery platform unavailable: {str(e)}")
        return None, Response(
            {"success": False, "error": str(e)},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    except PipelineError as e:
        logger.error(f"Pipeline failed for {slug}: {str(e)}")
        return None, Response(
            {"success": False, "error": str(e)},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    except Exception as e:
        logger.exception(f"Unexpected error running {slug}: {str(e)}")
        return None, Response(
            {"success": False, "error": f"Analysis error: {str(e)}"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


@extend_schema(
    summary="Run Product",
    description="Run a thematic product over the study area and return statistics, "
                "time series, legend and chart data.",
    request=PipelineRunSerializer,
    responses={
        200: OpenApiResponse(response=OpenApiTypes.OBJECT, description="Pipeline result"),
        400: OpenApiResponse(description="Invalid parameters"),
        404: OpenApiResponse(description="Unknown product"),
        500: OpenApiResponse(description="Pipeline failure"),
    },
)
@api_view(["POST"])
@permission_classes([AllowAny])
def run_pipeline(request, slug):
    logger.info(f"Pipeline run requested for {slug}")
    result, error = run_from_request(request, slug)
    if error is not None:
        return error
    return Response({"success": True, **result.to_dict()}, status=status.HTTP_200_OK)
