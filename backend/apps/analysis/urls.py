"""
URL patterns for the analysis app.
"""

from django.urls import path
from . import views

urlpatterns = [
    path("health/", views.health_check, name="health_check"),
    path("products/", views.list_products, name="list_products"),
    path("run/<slug:slug>/", views.run_pipeline, name="run_pipeline"),
]
