from django.urls import path
from .views import earth_engine_status

app_name = 'earth_engine'

urlpatterns = [
    path("status/", earth_engine_status, name="earth_engine_status"),
]
