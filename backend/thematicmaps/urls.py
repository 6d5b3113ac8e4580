"""
Main URL configuration for thematicmaps project.
"""

from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    # API Documentation
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path(
        "api/swagger/",
        SpectacularSwaggerView.as_view(url_name="schema"),
        name="swagger-ui",
    ),
    # API endpoints with versioning
    path("api/v1/analysis/", include("apps.analysis.urls")),
    path("api/v1/earth-engine/", include("apps.earth_engine.urls")),
    path("api/v1/visualization/", include("apps.visualization.urls")),
]
