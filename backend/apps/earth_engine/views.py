from django.conf import settings
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .ee_config import get_authentication_info, initialize_earth_engine


@api_view(["GET"])
@permission_classes([AllowAny])
def earth_engine_status(request):
    """
    Get Earth Engine authentication status and project information.
    """
    info = get_authentication_info()

    if info["backend"] == "demo":
        return Response(
            {
                "success": True,
                "earth_engine": {
                    **info,
                    "status": "demo",
                    "message": "Serving synthetic rasters from the in-memory platform",
                },
            }
        )

    if not initialize_earth_engine():
        return Response(
            {
                "success": False,
                "earth_engine": {
                    **info,
                    "status": "unavailable",
                    "message": "Earth Engine could not be initialized",
                },
            },
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    info["initialized"] = True
    return Response(
        {
            "success": True,
            "earth_engine": {
                **info,
                "status": "ready",
                "message": f"Earth Engine ready for project {settings.EARTH_ENGINE_PROJECT}",
            },
        }
    )
